"""Domain-specific exceptions"""

from typing import Any, List, Optional


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class RecordValidationError(DomainException):
    """A record is malformed: missing field, bad amount, unparseable date or unsupported type"""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class AccountNotFoundError(DomainException):
    """Referenced account or customer is unknown"""

    pass


class ConflictError(DomainException):
    """Record duplicates one that was already validated"""

    pass


class InsufficientFundsError(DomainException):
    """Debit would drive the balance negative while overdraft is disallowed"""

    pass


class PersistenceError(DomainException):
    """Repository call failed"""

    def __init__(self, message: str, operation: str = "unknown"):
        self.operation = operation
        super().__init__(message)


class BalanceInconsistencyError(PersistenceError):
    """Ledger entry was written but the balance write that follows it failed"""

    pass


class BatchEmptyResult(DomainException):
    """No record of the batch was committed"""

    def __init__(self, message: str, logs: Optional[List[Any]] = None):
        self.logs = logs or []
        super().__init__(message)


class NoHistoryError(DomainException):
    """Customer reached scoring with no ledger entries"""

    pass


class InvalidBatchError(DomainException):
    """Batch body is not a JSON array of objects"""

    pass


class OperationCancelledError(DomainException):
    """Deadline passed or caller cancelled the operation"""

    pass
