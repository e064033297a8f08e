"""Ledger balance tracker - the single path through which a customer balance changes"""

import threading
from collections import defaultdict
from dataclasses import replace
from decimal import Decimal
from typing import Dict, Tuple

from salary_advance.domain.contracts import CustomerRepository, TransactionRepository
from salary_advance.domain.exceptions import (
    BalanceInconsistencyError,
    InsufficientFundsError,
    PersistenceError,
)
from salary_advance.domain.models import Customer, Direction, LedgerEntry


class LedgerBalanceTracker:
    """
    Applies ledger entries to customer balances.

    Invariant: a customer's stored balance equals its balance before the
    first entry plus the signed sum of its committed entries, and every
    entry's cleared_balance is the balance right after that entry.

    Balance mutation is a critical section keyed by customer id, so callers
    may post entries for different customers from different threads.
    """

    def __init__(self, customers: CustomerRepository, transactions: TransactionRepository):
        self.customers = customers
        self.transactions = transactions
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)

    def _lock_for(self, customer_id: str) -> threading.Lock:
        with self._guard:
            return self._locks[customer_id]

    @staticmethod
    def apply(
        customer: Customer,
        amount: Decimal,
        direction: Direction,
        allow_overdraft: bool = False,
    ) -> Tuple[Decimal, bool]:
        """
        Compute the post-entry balance without mutating anything.

        Returns:
            (new_balance, ok). ok is False when a debit would drive the balance
            negative and overdraft is disallowed; new_balance is then the
            unchanged current balance.
        """
        if direction == Direction.DEBIT:
            new_balance = customer.balance - amount
        else:
            new_balance = customer.balance + amount

        if new_balance < 0 and not allow_overdraft:
            return customer.balance, False
        return new_balance, True

    def post(self, customer: Customer, entry: LedgerEntry, allow_overdraft: bool = False) -> LedgerEntry:
        """
        Commit an entry and the balance it produces.

        The entry is written first; the balance is written only if that
        succeeds. On success customer.balance is updated in place.

        Raises:
            InsufficientFundsError: Overdraft refused, nothing written
            PersistenceError: Entry write failed, nothing written
            BalanceInconsistencyError: Entry written but balance write failed
        """
        with self._lock_for(customer.customer_id):
            new_balance, ok = self.apply(customer, entry.amount, entry.transaction_type, allow_overdraft)
            if not ok:
                raise InsufficientFundsError(
                    f"insufficient balance for debit: balance {customer.balance}, amount {entry.amount}"
                )

            committed = replace(entry, customer_id=customer.customer_id, cleared_balance=new_balance)
            self.transactions.create(committed)

            try:
                self.customers.update_balance(customer.customer_id, new_balance)
            except PersistenceError as e:
                raise BalanceInconsistencyError(
                    f"entry {committed.transaction_id} written but balance update failed: {e}",
                    operation="update_balance",
                ) from e

            customer.balance = new_balance
            return committed
