"""Synthetic backfill - fabricated history for customers that have none"""

import random
from decimal import Decimal
from typing import Callable, List, Optional

from salary_advance.domain.audit import AuditLog
from salary_advance.domain.contracts import CustomerRepository, TransactionRepository
from salary_advance.domain.exceptions import PersistenceError
from salary_advance.domain.importer import generate_id
from salary_advance.domain.ledger import LedgerBalanceTracker
from salary_advance.domain.models import (
    AcceptedRecord,
    Customer,
    Direction,
    LedgerEntry,
    RejectedRecord,
)
from salary_advance.infrastructure.observability.logging import (
    log_backfill_completed,
    log_persistence_failure,
)
from salary_advance.infrastructure.observability.metrics import (
    record_persistence_failure,
    record_synthetic_entries,
)
from salary_advance.utils.accounts import CENTS
from salary_advance.utils.cancellation import CancellationToken, ensure_token
from salary_advance.utils.date_utils import random_dates_within, utcnow


class SyntheticBackfillGenerator:
    """
    Guarantees every known customer has ledger history before scoring.

    For a customer with no entries, draws between `min_entries` and
    `max_entries` transactions dated uniformly over the last `window_days`.
    Dates are sorted before balances are threaded, so cleared balances replay
    in date order. A debit that would overdraw is not emitted; its slot
    becomes a credit instead.

    The random source, clock and id factory are injectable for deterministic
    tests.
    """

    def __init__(
        self,
        customers: CustomerRepository,
        transactions: TransactionRepository,
        tracker: LedgerBalanceTracker,
        rng: Optional[random.Random] = None,
        clock: Callable = utcnow,
        min_entries: int = 2,
        max_entries: int = 5,
        min_amount: float = 50.0,
        max_amount: float = 500.0,
        window_days: int = 365,
        id_factory: Callable[[str], str] = generate_id,
    ):
        if not 1 <= min_entries <= max_entries:
            raise ValueError("backfill entry bounds must satisfy 1 <= min_entries <= max_entries")
        self.customers = customers
        self.transactions = transactions
        self.tracker = tracker
        self.rng = rng or random.Random()
        self.clock = clock
        self.min_entries = min_entries
        self.max_entries = max_entries
        self.min_amount = min_amount
        self.max_amount = max_amount
        self.window_days = window_days
        self.id_factory = id_factory

    def backfill(self, audit_log: AuditLog, token: Optional[CancellationToken] = None) -> List[LedgerEntry]:
        """Generate history for every customer without entries; returns all generated entries"""
        token = ensure_token(token)
        generated: List[LedgerEntry] = []

        for customer in self.customers.list_all():
            token.raise_if_cancelled()
            try:
                if self.transactions.has_any(customer.customer_id):
                    continue
            except PersistenceError as e:
                self._failed(audit_log, customer, e)
                continue
            generated.extend(self.generate_for_customer(customer, audit_log, token))

        return generated

    def generate_for_customer(
        self,
        customer: Customer,
        audit_log: AuditLog,
        token: Optional[CancellationToken] = None,
    ) -> List[LedgerEntry]:
        """
        Post a synthetic sequence for one customer through the ledger tracker.

        Entries are posted one at a time because each depends on the previous
        running balance. A persistence failure stops the sequence; entries
        already posted stay committed.

        A debit the balance cannot cover is posted as a credit in the same
        slot, so every drawn date yields exactly one entry.
        """
        token = ensure_token(token)
        count = self.rng.randint(self.min_entries, self.max_entries)
        dates = random_dates_within(self.rng, count, self.window_days, self.clock())
        posted: List[LedgerEntry] = []

        for transaction_date in dates:
            token.raise_if_cancelled()
            amount = self._draw_amount()
            direction = Direction.CREDIT if self.rng.random() < 0.5 else Direction.DEBIT

            _, ok = self.tracker.apply(customer, amount, direction, allow_overdraft=False)
            if not ok:
                # Slot count is fixed at min_entries..max_entries
                direction = Direction.CREDIT

            entry = LedgerEntry(
                transaction_id=self.id_factory("TXN"),
                customer_id=customer.customer_id,
                from_account=customer.account_no,
                to_account=self.id_factory("SYN"),
                amount=amount,
                transaction_type=direction,
                transaction_date=transaction_date,
                status="completed",
                source_type=direction.value,
                remark=f"Synthetic {direction.value}",
                reference=f"{self.rng.getrandbits(32):08x}",
                synthetic=True,
            )
            try:
                committed = self.tracker.post(customer, entry, allow_overdraft=False)
            except PersistenceError as e:
                self._failed(audit_log, customer, e)
                break

            posted.append(committed)
            audit_log.append(
                AcceptedRecord(record_index=None, entity=committed, synthetic=True, customer_id=customer.customer_id)
            )

        record_synthetic_entries(len(posted))
        log_backfill_completed(customer.customer_id, len(posted), str(customer.balance))
        return posted

    def _draw_amount(self) -> Decimal:
        return Decimal(str(self.rng.uniform(self.min_amount, self.max_amount))).quantize(CENTS)

    @staticmethod
    def _failed(audit_log: AuditLog, customer: Customer, error: PersistenceError) -> None:
        record_persistence_failure(error.operation)
        log_persistence_failure(error.operation, error, customer_id=customer.customer_id, stage="backfill")
        audit_log.append(
            RejectedRecord(
                record_index=None,
                errors=[f"failed to generate synthetic transactions: {error}"],
                synthetic=True,
                customer_id=customer.customer_id,
            )
        )
