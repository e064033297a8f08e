"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class Direction(str, Enum):
    """Effect of a ledger entry on the owning customer's balance"""

    DEBIT = "Debit"
    CREDIT = "Credit"


@dataclass
class SourceCustomer:
    """Row of the source-of-truth customer table"""

    customer_name: str
    account_no: str
    mobile: str = ""
    branch_name: str = ""
    branch_code: str = ""
    product_name: str = ""


@dataclass
class Customer:
    """Validated customer; balance is only changed by the ledger tracker"""

    customer_id: str
    customer_name: str
    account_no: str
    balance: Decimal = Decimal("0.00")
    mobile: str = ""
    branch_name: str = ""
    branch_code: str = ""
    product_name: str = ""


@dataclass
class LedgerEntry:
    """Single append-only transaction against one customer"""

    transaction_id: str
    customer_id: str
    from_account: str
    to_account: str
    amount: Decimal
    transaction_type: Direction
    transaction_date: datetime
    cleared_balance: Decimal = Decimal("0.00")
    status: str = "completed"
    source_type: str = ""  # inbound type before normalization
    remark: str = ""
    request_id: str = ""
    reference: str = ""
    third_party_reference: str = ""
    institution_id: str = ""
    biller_id: str = ""
    synthetic: bool = False


@dataclass
class AcceptedRecord:
    """Audit entry for a committed record"""

    record_index: Optional[int]
    entity: Union[Customer, LedgerEntry]
    synthetic: bool = False
    customer_id: Optional[str] = None

    @property
    def verified(self) -> bool:
        return True

    @property
    def errors(self) -> List[str]:
        return []


@dataclass
class RejectedRecord:
    """Audit entry for a record that left state untouched"""

    record_index: Optional[int]
    errors: List[str]
    attempted: Dict[str, Any] = field(default_factory=dict)
    synthetic: bool = False
    customer_id: Optional[str] = None

    @property
    def verified(self) -> bool:
        return False


AuditLogEntry = Union[AcceptedRecord, RejectedRecord]


@dataclass(frozen=True)
class ScoreBreakdown:
    """Four independently normalized sub-scores, each in [0, 1]"""

    count_score: float
    volume_score: float
    duration_score: float
    stability_score: float


@dataclass
class Rating:
    """Latest rating for one customer"""

    customer_id: str
    score: float
    breakdown: ScoreBreakdown
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class ImportResult:
    """Outcome of one import batch"""

    accepted: List[Union[Customer, LedgerEntry]]
    logs: List[AuditLogEntry]
    persistence_failures: int = 0


@dataclass
class PipelineResult:
    """Outcome of import, backfill and scoring over one transaction batch"""

    transactions: List[LedgerEntry]
    ratings: List[Rating]
    logs: List[AuditLogEntry]
    persistence_failures: int = 0
