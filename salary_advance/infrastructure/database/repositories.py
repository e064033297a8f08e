"""Data access layer implementing the domain repository contracts

Each write commits on its own so a failed record never rolls back records
committed before it. SQLAlchemy errors are translated to PersistenceError.
"""

from contextlib import contextmanager
from decimal import Decimal
from typing import Iterator, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salary_advance.domain.exceptions import PersistenceError
from salary_advance.domain.models import (
    Customer,
    Direction,
    LedgerEntry,
    Rating,
    ScoreBreakdown,
    SourceCustomer,
)
from salary_advance.infrastructure.database.models import (
    RatingRecord,
    SourceCustomerRecord,
    TransactionRecord,
    ValidCustomerRecord,
)
from salary_advance.utils.accounts import normalize_account_no, normalize_name


@contextmanager
def translate_errors(db: Session, operation: str, message: str) -> Iterator[None]:
    """Roll back the failed unit and re-raise as PersistenceError"""
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"{message}: {e}", operation=operation) from e


def _account_key(column):
    return func.lower(func.ltrim(func.trim(column), "0"))


def _name_key(column):
    return func.lower(func.trim(column))


def _to_customer(row: ValidCustomerRecord) -> Customer:
    return Customer(
        customer_id=row.customer_id,
        customer_name=row.customer_name,
        account_no=row.account_no,
        balance=Decimal(row.customer_balance),
        mobile=row.mobile,
        branch_name=row.branch_name,
        branch_code=row.branch_code,
        product_name=row.product_name,
    )


def _to_entry(row: TransactionRecord) -> LedgerEntry:
    return LedgerEntry(
        transaction_id=row.transaction_id,
        customer_id=row.customer_id,
        from_account=row.from_account,
        to_account=row.to_account,
        amount=Decimal(row.amount),
        transaction_type=Direction(row.transaction_type),
        transaction_date=row.transaction_date,
        cleared_balance=Decimal(row.cleared_balance),
        status=row.status,
        source_type=row.source_type,
        remark=row.remark,
        request_id=row.request_id,
        reference=row.reference,
        third_party_reference=row.third_party_reference,
        institution_id=row.institution_id,
        biller_id=row.biller_id,
        synthetic=row.synthetic,
    )


def _to_rating(row: RatingRecord) -> Rating:
    return Rating(
        customer_id=row.customer_id,
        score=row.score,
        breakdown=ScoreBreakdown(**row.breakdown),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class CustomerRepository:
    """Repository for source-of-truth and validated customers"""

    def __init__(self, db: Session):
        self.db = db

    def find_source_customer(self, name: str, account_no: str) -> Optional[SourceCustomer]:
        key = normalize_account_no(account_no)
        if not key:
            return None
        with translate_errors(self.db, "find_source_customer", "database error"):
            row = (
                self.db.query(SourceCustomerRecord)
                .filter(_name_key(SourceCustomerRecord.customer_name) == normalize_name(name))
                .filter(_account_key(SourceCustomerRecord.account_no) == key)
                .first()
            )
        if row is None:
            return None
        return SourceCustomer(
            customer_name=row.customer_name,
            account_no=row.account_no,
            mobile=row.mobile,
            branch_name=row.branch_name,
            branch_code=row.branch_code,
            product_name=row.product_name,
        )

    def check_duplicate(self, name: str, account_no: str) -> Optional[Customer]:
        key = normalize_account_no(account_no)
        if not key:
            return None
        with translate_errors(self.db, "check_duplicate", "error checking duplicates in valid_customers"):
            row = (
                self.db.query(ValidCustomerRecord)
                .filter(_name_key(ValidCustomerRecord.customer_name) == normalize_name(name))
                .filter(_account_key(ValidCustomerRecord.account_no) == key)
                .first()
            )
        return _to_customer(row) if row else None

    def find_by_account(self, account_no: str) -> Optional[Customer]:
        key = normalize_account_no(account_no)
        if not key:
            return None
        with translate_errors(self.db, "find_by_account", "database error finding customer"):
            row = (
                self.db.query(ValidCustomerRecord)
                .filter(_account_key(ValidCustomerRecord.account_no) == key)
                .first()
            )
        return _to_customer(row) if row else None

    def find_by_id(self, customer_id: str) -> Optional[Customer]:
        with translate_errors(self.db, "find_by_id", "database error finding customer"):
            row = (
                self.db.query(ValidCustomerRecord)
                .filter(ValidCustomerRecord.customer_id == customer_id)
                .first()
            )
        return _to_customer(row) if row else None

    def list_all(self) -> List[Customer]:
        with translate_errors(self.db, "list_all_customers", "failed to fetch customers"):
            rows = self.db.query(ValidCustomerRecord).order_by(ValidCustomerRecord.id).all()
        return [_to_customer(row) for row in rows]

    def create(self, customer: Customer) -> Customer:
        """Persist a validated customer"""
        with translate_errors(self.db, "create_customer", "failed to save to valid_customers"):
            self.db.add(
                ValidCustomerRecord(
                    customer_id=customer.customer_id,
                    customer_name=customer.customer_name,
                    account_no=customer.account_no,
                    customer_balance=customer.balance,
                    mobile=customer.mobile,
                    branch_name=customer.branch_name,
                    branch_code=customer.branch_code,
                    product_name=customer.product_name,
                )
            )
            self.db.commit()
        return customer

    def update_balance(self, customer_id: str, balance: Decimal) -> None:
        with translate_errors(self.db, "update_balance", "failed to update customer balance"):
            row = (
                self.db.query(ValidCustomerRecord)
                .filter(ValidCustomerRecord.customer_id == customer_id)
                .first()
            )
            if row is None:
                raise PersistenceError(f"customer {customer_id} not found in valid_customers", operation="update_balance")
            row.customer_balance = balance
            self.db.commit()


class TransactionRepository:
    """Repository for ledger entries"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, entry: LedgerEntry) -> LedgerEntry:
        with translate_errors(self.db, "create_transaction", "failed to save transaction"):
            self.db.add(
                TransactionRecord(
                    transaction_id=entry.transaction_id,
                    customer_id=entry.customer_id,
                    from_account=entry.from_account,
                    to_account=entry.to_account,
                    amount=entry.amount,
                    transaction_type=entry.transaction_type.value,
                    source_type=entry.source_type,
                    remark=entry.remark,
                    request_id=entry.request_id,
                    reference=entry.reference,
                    third_party_reference=entry.third_party_reference,
                    institution_id=entry.institution_id,
                    biller_id=entry.biller_id,
                    cleared_balance=entry.cleared_balance,
                    transaction_date=entry.transaction_date,
                    status=entry.status,
                    synthetic=entry.synthetic,
                )
            )
            self.db.commit()
        return entry

    def has_any(self, customer_id: str) -> bool:
        with translate_errors(self.db, "has_any_transactions", "error checking transactions"):
            count = (
                self.db.query(func.count(TransactionRecord.id))
                .filter(TransactionRecord.customer_id == customer_id)
                .scalar()
            )
        return count > 0

    def list_for_customer(self, customer_id: str) -> List[LedgerEntry]:
        with translate_errors(self.db, "list_transactions", "failed to fetch transactions"):
            rows = (
                self.db.query(TransactionRecord)
                .filter(TransactionRecord.customer_id == customer_id)
                .order_by(TransactionRecord.transaction_date, TransactionRecord.transaction_id)
                .all()
            )
        return [_to_entry(row) for row in rows]


class RatingRepository:
    """Repository for ratings, one row per customer"""

    def __init__(self, db: Session):
        self.db = db

    def upsert(self, rating: Rating) -> Rating:
        b = rating.breakdown
        breakdown = {
            "count_score": b.count_score,
            "volume_score": b.volume_score,
            "duration_score": b.duration_score,
            "stability_score": b.stability_score,
        }
        with translate_errors(self.db, "upsert_rating", "failed to save rating"):
            row = (
                self.db.query(RatingRecord)
                .filter(RatingRecord.customer_id == rating.customer_id)
                .first()
            )
            if row is None:
                row = RatingRecord(customer_id=rating.customer_id, created_at=rating.created_at)
                self.db.add(row)
            row.score = rating.score
            row.breakdown = breakdown
            row.updated_at = rating.updated_at
            self.db.commit()
            return _to_rating(row)

    def get_by_customer_id(self, customer_id: str) -> Optional[Rating]:
        with translate_errors(self.db, "get_rating", "failed to fetch rating"):
            row = (
                self.db.query(RatingRecord)
                .filter(RatingRecord.customer_id == customer_id)
                .first()
            )
        return _to_rating(row) if row else None

    def list_all(self) -> List[Rating]:
        with translate_errors(self.db, "list_ratings", "failed to fetch ratings"):
            rows = self.db.query(RatingRecord).order_by(RatingRecord.id).all()
        return [_to_rating(row) for row in rows]
