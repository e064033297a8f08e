"""Import & validation pipeline for customer and transaction batches

Every record is validated independently. A record either commits (entity
persisted, balance moved through the ledger tracker) or is rejected with all
of its errors; rejection never aborts the batch.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from pydantic import TypeAdapter, ValidationError

from salary_advance.domain.audit import AuditLog
from salary_advance.domain.contracts import CustomerRepository
from salary_advance.domain.exceptions import (
    AccountNotFoundError,
    BatchEmptyResult,
    ConflictError,
    InsufficientFundsError,
    InvalidBatchError,
    PersistenceError,
    RecordValidationError,
)
from salary_advance.domain.ledger import LedgerBalanceTracker
from salary_advance.domain.models import (
    AcceptedRecord,
    AuditLogEntry,
    Customer,
    Direction,
    ImportResult,
    LedgerEntry,
    RejectedRecord,
)
from salary_advance.infrastructure.observability.logging import (
    log_import_completed,
    log_persistence_failure,
    log_record_rejected,
)
from salary_advance.infrastructure.observability.metrics import (
    record_import_outcome,
    record_persistence_failure,
)
from salary_advance.utils.accounts import (
    AmountRangeError,
    coerce_account_no,
    coerce_amount,
    is_numeric_account,
)
from salary_advance.utils.cancellation import CancellationToken, ensure_token
from salary_advance.utils.date_utils import parse_epoch_millis, parse_iso_date

# Bill and wallet payments always leave the customer's account
DEBIT_TYPES = frozenset({
    "Debit",
    "Derash Bill Payment",
    "DSTV Payment",
    "OtherBank Transaction",
    "mpesa Transaction",
    "M-PESA Transaction",
    "YIMULU",
    "SAFARI AIRTIME",
    "telebirr Transaction",
})

# Transfers credit the customer only when both ends are the customer's own account
TRANSFER_TYPES = frozenset({"withInBank Transaction", "Bank2Bank Transaction"})

SUPPORTED_TYPES = DEBIT_TYPES | TRANSFER_TYPES | {"Credit"}

AUX_FIELDS = {
    "remark": "remark",
    "requestId": "request_id",
    "reference": "reference",
    "thirdPartyReference": "third_party_reference",
    "institutionId": "institution_id",
    "billerId": "biller_id",
}

_BATCH_ADAPTER = TypeAdapter(List[Dict[str, Any]])


def parse_batch(data: Union[bytes, str]) -> List[Dict[str, Any]]:
    """
    Decode a batch body into raw records.

    Raises:
        InvalidBatchError: Body is not a JSON array of objects
    """
    try:
        return _BATCH_ADAPTER.validate_json(data)
    except ValidationError as e:
        raise InvalidBatchError(f"invalid JSON format: {e.errors()[0]['msg']}") from e


def generate_id(prefix: str) -> str:
    """Short opaque identifier such as CUST-1a2b3c4d"""
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def _display(value: Any) -> str:
    return "" if value is None else str(value)


class BaseImporter:
    """Per-record loop bookkeeping shared by both importers"""

    kind = "record"

    def __init__(self, id_factory: Callable[[str], str] = generate_id):
        self.id_factory = id_factory

    def _accept(self, log: AuditLog, record_index: int, entity: Union[Customer, LedgerEntry]) -> None:
        log.append(AcceptedRecord(record_index=record_index, entity=entity))
        record_import_outcome(self.kind, verified=True)

    def _reject(self, log: AuditLog, record_index: int, errors: List[str], attempted: Dict[str, Any]) -> None:
        log.append(RejectedRecord(record_index=record_index, errors=errors, attempted=attempted))
        record_import_outcome(self.kind, verified=False)
        log_record_rejected(self.kind, record_index, errors)

    def _persistence_failed(self, error: PersistenceError, record_index: int) -> List[str]:
        record_persistence_failure(error.operation)
        log_persistence_failure(error.operation, error, kind=self.kind, record_index=record_index)
        return [str(error)]

    def _finish(
        self,
        accepted: List[Union[Customer, LedgerEntry]],
        log: AuditLog,
        total: int,
        persistence_failures: int,
        require_success: bool,
    ) -> ImportResult:
        log_import_completed(self.kind, total, len(accepted), persistence_failures)
        entries: List[AuditLogEntry] = log.entries

        if not accepted and require_success:
            raise BatchEmptyResult(f"no valid {self.kind}s imported; see logs for details", logs=entries)

        return ImportResult(accepted=accepted, logs=entries, persistence_failures=persistence_failures)


class CustomerImporter(BaseImporter):
    """
    Imports {customerName, accountNo} records.

    A record is accepted when it matches the source-of-truth customer table
    and is not already among the validated customers.
    """

    kind = "customer"

    def __init__(self, customers: CustomerRepository, id_factory: Callable[[str], str] = generate_id):
        super().__init__(id_factory)
        self.customers = customers

    def import_batch(
        self,
        data: Union[bytes, str],
        token: Optional[CancellationToken] = None,
        require_success: bool = True,
    ) -> ImportResult:
        return self.import_records(parse_batch(data), token=token, require_success=require_success)

    def import_records(
        self,
        records: Sequence[Dict[str, Any]],
        token: Optional[CancellationToken] = None,
        require_success: bool = True,
    ) -> ImportResult:
        token = ensure_token(token)
        log = AuditLog()
        accepted: List[Union[Customer, LedgerEntry]] = []
        persistence_failures = 0

        for index, raw in enumerate(records, start=1):
            token.raise_if_cancelled()
            try:
                customer = self._import_one(raw)
            except RecordValidationError as e:
                errors = e.errors
            except (AccountNotFoundError, ConflictError) as e:
                errors = [str(e)]
            except PersistenceError as e:
                persistence_failures += 1
                errors = self._persistence_failed(e, index)
            else:
                accepted.append(customer)
                self._accept(log, index, customer)
                continue

            self._reject(log, index, errors, self._attempted(raw))

        return self._finish(accepted, log, len(records), persistence_failures, require_success)

    def _import_one(self, raw: Dict[str, Any]) -> Customer:
        errors: List[str] = []

        name = raw.get("customerName")
        if not isinstance(name, str) or not name.strip():
            errors.append("customer name is required")

        try:
            account_no = coerce_account_no(raw.get("accountNo"))
        except ValueError:
            errors.append("account number is in invalid format/type")
            raise RecordValidationError(errors)

        if not account_no:
            errors.append("account number is required")
        elif not is_numeric_account(account_no):
            errors.append("account number is in invalid format/type")

        if errors:
            raise RecordValidationError(errors)

        trimmed_name = name.strip()
        source = self.customers.find_source_customer(trimmed_name, account_no)
        if source is None:
            raise AccountNotFoundError("name or account number does not match existing records in customers table")

        if self.customers.check_duplicate(trimmed_name, account_no) is not None:
            raise ConflictError("record already exists in valid_customers")

        customer = Customer(
            customer_id=self.id_factory("CUST"),
            customer_name=trimmed_name,
            account_no=account_no,
            balance=Decimal("0.00"),
            mobile=source.mobile,
            branch_name=source.branch_name,
            branch_code=source.branch_code,
            product_name=source.product_name,
        )
        return self.customers.create(customer)

    @staticmethod
    def _attempted(raw: Dict[str, Any]) -> Dict[str, Any]:
        account_no = raw.get("accountNo")
        try:
            account_display = coerce_account_no(account_no)
        except ValueError:
            account_display = _display(account_no)
        return {
            "attempted_name": _display(raw.get("customerName")),
            "attempted_account_no": account_display,
        }


@dataclass
class _StagedTransaction:
    """Transaction record that passed structural validation"""

    record_index: int
    raw: Dict[str, Any]
    from_account: str
    to_account: str
    amount: Decimal
    transaction_date: datetime
    source_type: str
    aux: Dict[str, str]


class TransactionImporter(BaseImporter):
    """
    Imports {fromAccount, toAccount, amount, transactionDate|date,
    transactionType, ...} records against validated customers.

    Records passing structural validation are applied in
    (transaction_date, record_index) order so each customer's cleared
    balances replay chronologically; the audit log stays in record order.
    """

    kind = "transaction"

    def __init__(
        self,
        customers: CustomerRepository,
        tracker: LedgerBalanceTracker,
        id_factory: Callable[[str], str] = generate_id,
    ):
        super().__init__(id_factory)
        self.customers = customers
        self.tracker = tracker

    def import_batch(
        self,
        data: Union[bytes, str],
        allow_overdraft: bool = False,
        token: Optional[CancellationToken] = None,
        require_success: bool = True,
    ) -> ImportResult:
        return self.import_records(
            parse_batch(data),
            allow_overdraft=allow_overdraft,
            token=token,
            require_success=require_success,
        )

    def import_records(
        self,
        records: Sequence[Dict[str, Any]],
        allow_overdraft: bool = False,
        token: Optional[CancellationToken] = None,
        require_success: bool = True,
    ) -> ImportResult:
        token = ensure_token(token)
        log = AuditLog()
        committed: List[Tuple[int, LedgerEntry]] = []
        persistence_failures = 0

        staged: List[_StagedTransaction] = []
        for index, raw in enumerate(records, start=1):
            token.raise_if_cancelled()
            try:
                staged.append(self._stage(index, raw))
            except RecordValidationError as e:
                self._reject(log, index, e.errors, self._attempted(raw))

        staged.sort(key=lambda s: (s.transaction_date, s.record_index))

        for record in staged:
            token.raise_if_cancelled()
            try:
                entry = self._commit(record, allow_overdraft)
            except (AccountNotFoundError, InsufficientFundsError) as e:
                errors = [str(e)]
            except PersistenceError as e:
                persistence_failures += 1
                errors = self._persistence_failed(e, record.record_index)
            else:
                committed.append((record.record_index, entry))
                self._accept(log, record.record_index, entry)
                continue

            self._reject(log, record.record_index, errors, self._attempted(record.raw))

        accepted = [entry for _, entry in sorted(committed, key=lambda pair: pair[0])]
        return self._finish(accepted, log, len(records), persistence_failures, require_success)

    def _stage(self, index: int, raw: Dict[str, Any]) -> _StagedTransaction:
        errors: List[str] = []

        from_account = ""
        try:
            if raw.get("fromAccount") is not None:
                from_account = coerce_account_no(raw["fromAccount"])
        except ValueError:
            errors.append("fromAccount is in invalid format/type")
        else:
            if not from_account:
                errors.append("fromAccount is required")

        to_account = ""
        try:
            if raw.get("toAccount") is not None:
                to_account = coerce_account_no(raw["toAccount"])
        except ValueError:
            errors.append("toAccount is in invalid format/type")

        amount = Decimal("0")
        if raw.get("amount") is None:
            errors.append("amount is required")
        else:
            try:
                amount = coerce_amount(raw["amount"])
            except AmountRangeError:
                errors.append("amount exceeds maximum")
            except ValueError:
                errors.append("amount must be a number")
            else:
                if amount <= 0:
                    errors.append("amount must be positive")

        transaction_date: Optional[datetime] = None
        if raw.get("transactionDate") is not None:
            try:
                transaction_date = parse_epoch_millis(raw["transactionDate"])
            except ValueError as e:
                errors.append(f"invalid transaction date: {e}")
        elif raw.get("date") is not None:
            try:
                transaction_date = parse_iso_date(raw["date"])
            except ValueError as e:
                errors.append(f"invalid date format: {e}")
        else:
            errors.append("transactionDate is required")

        source_type = raw.get("transactionType") or ""
        if source_type and (not isinstance(source_type, str) or source_type not in SUPPORTED_TYPES):
            errors.append(f"unsupported transaction type: {source_type}")

        if errors:
            raise RecordValidationError(errors)

        return _StagedTransaction(
            record_index=index,
            raw=raw,
            from_account=from_account,
            to_account=to_account,
            amount=amount,
            transaction_date=transaction_date,
            source_type=source_type,
            aux={attr: _display(raw.get(key)) for key, attr in AUX_FIELDS.items()},
        )

    def _commit(self, record: _StagedTransaction, allow_overdraft: bool) -> LedgerEntry:
        customer = self.customers.find_by_account(record.from_account)
        if customer is None:
            raise AccountNotFoundError(f"no customer found for account {record.from_account}")

        direction = self._resolve_direction(record, customer)
        entry = LedgerEntry(
            transaction_id=self.id_factory("TXN"),
            customer_id=customer.customer_id,
            from_account=record.from_account,
            to_account=record.to_account,
            amount=record.amount,
            transaction_type=direction,
            transaction_date=record.transaction_date,
            status="completed",
            source_type=record.source_type or direction.value,
            **record.aux,
        )
        return self.tracker.post(customer, entry, allow_overdraft=allow_overdraft)

    def _resolve_direction(self, record: _StagedTransaction, customer: Customer) -> Direction:
        if record.source_type == "Credit":
            return Direction.CREDIT
        if record.source_type in TRANSFER_TYPES and record.to_account:
            to_customer = self.customers.find_by_account(record.to_account)
            if to_customer is not None and to_customer.customer_id == customer.customer_id:
                return Direction.CREDIT
        return Direction.DEBIT

    @staticmethod
    def _attempted(raw: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "attempted_from_account": _display(raw.get("fromAccount")),
            "attempted_to_account": _display(raw.get("toAccount")),
            "attempted_amount": raw.get("amount"),
            "attempted_transaction_type": _display(raw.get("transactionType")),
        }
