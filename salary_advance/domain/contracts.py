"""Repository contracts the domain depends on

Lookups return None when nothing matches. Any storage failure surfaces as
PersistenceError; the domain never sees storage-engine errors.
"""

from decimal import Decimal
from typing import List, Optional, Protocol

from salary_advance.domain.models import Customer, LedgerEntry, Rating, SourceCustomer


class CustomerRepository(Protocol):
    def find_source_customer(self, name: str, account_no: str) -> Optional[SourceCustomer]:
        """Source-of-truth row whose normalized name and account both match"""
        ...

    def check_duplicate(self, name: str, account_no: str) -> Optional[Customer]:
        """Validated customer whose normalized name and account both match"""
        ...

    def find_by_account(self, account_no: str) -> Optional[Customer]:
        ...

    def find_by_id(self, customer_id: str) -> Optional[Customer]:
        ...

    def list_all(self) -> List[Customer]:
        ...

    def create(self, customer: Customer) -> Customer:
        ...

    def update_balance(self, customer_id: str, balance: Decimal) -> None:
        ...


class TransactionRepository(Protocol):
    def create(self, entry: LedgerEntry) -> LedgerEntry:
        ...

    def has_any(self, customer_id: str) -> bool:
        ...

    def list_for_customer(self, customer_id: str) -> List[LedgerEntry]:
        ...


class RatingRepository(Protocol):
    def upsert(self, rating: Rating) -> Rating:
        """Create or overwrite the single rating row for a customer"""
        ...

    def get_by_customer_id(self, customer_id: str) -> Optional[Rating]:
        ...

    def list_all(self) -> List[Rating]:
        ...
