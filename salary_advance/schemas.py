"""Pydantic schemas for the JSON shape of import, audit and rating output"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict

from salary_advance.domain.models import (
    AcceptedRecord,
    AuditLogEntry,
    Customer,
    ImportResult,
    LedgerEntry,
    PipelineResult,
    Rating,
)


class CustomerSchema(BaseModel):
    """Normalized customer record"""

    customerId: str
    customerName: str
    accountNo: str
    customerBalance: float
    mobile: str = ""
    branchName: str = ""
    branchCode: str = ""
    productName: str = ""

    @classmethod
    def from_domain(cls, customer: Customer) -> "CustomerSchema":
        return cls(
            customerId=customer.customer_id,
            customerName=customer.customer_name,
            accountNo=customer.account_no,
            customerBalance=customer.balance,
            mobile=customer.mobile,
            branchName=customer.branch_name,
            branchCode=customer.branch_code,
            productName=customer.product_name,
        )


class LedgerEntrySchema(BaseModel):
    """Committed ledger entry"""

    transactionId: str
    customer_id: str
    fromAccount: str
    toAccount: str
    amount: float
    transactionType: str
    transactionDate: datetime
    clearedBalance: float
    status: str
    remark: str = ""
    requestId: str = ""
    reference: str = ""
    thirdPartyReference: str = ""
    institutionId: str = ""
    billerId: str = ""

    @classmethod
    def from_domain(cls, entry: LedgerEntry) -> "LedgerEntrySchema":
        return cls(
            transactionId=entry.transaction_id,
            customer_id=entry.customer_id,
            fromAccount=entry.from_account,
            toAccount=entry.to_account,
            amount=entry.amount,
            transactionType=entry.transaction_type.value,
            transactionDate=entry.transaction_date,
            clearedBalance=entry.cleared_balance,
            status=entry.status,
            remark=entry.remark,
            requestId=entry.request_id,
            reference=entry.reference,
            thirdPartyReference=entry.third_party_reference,
            institutionId=entry.institution_id,
            billerId=entry.biller_id,
        )


class ScoreBreakdownSchema(BaseModel):
    count_score: float
    volume_score: float
    duration_score: float
    stability_score: float


class RatingSchema(BaseModel):
    """Scoring output for one customer"""

    customer_id: str
    score: float
    breakdown: ScoreBreakdownSchema

    @classmethod
    def from_domain(cls, rating: Rating) -> "RatingSchema":
        b = rating.breakdown
        return cls(
            customer_id=rating.customer_id,
            score=rating.score,
            breakdown=ScoreBreakdownSchema(
                count_score=b.count_score,
                volume_score=b.volume_score,
                duration_score=b.duration_score,
                stability_score=b.stability_score,
            ),
        )


class AuditLogEntrySchema(BaseModel):
    """One audit log line; failures carry attempted_* fields as extras"""

    model_config = ConfigDict(extra="allow")

    record_index: Optional[int]
    verified: bool
    errors: List[str]
    synthetic: Optional[bool] = None
    customer_id: Optional[str] = None
    normalized_record: Optional[CustomerSchema] = None
    transaction: Optional[LedgerEntrySchema] = None


def entity_to_schema(entity: Union[Customer, LedgerEntry]) -> Union[CustomerSchema, LedgerEntrySchema]:
    if isinstance(entity, Customer):
        return CustomerSchema.from_domain(entity)
    return LedgerEntrySchema.from_domain(entity)


def audit_entry_to_dict(entry: AuditLogEntry) -> Dict[str, Any]:
    """Render an audit entry; only fields relevant to its variant are emitted"""
    fields: Dict[str, Any] = {
        "record_index": entry.record_index,
        "verified": entry.verified,
        "errors": list(entry.errors),
    }
    if entry.synthetic:
        fields["synthetic"] = True
    if entry.customer_id is not None:
        fields["customer_id"] = entry.customer_id

    if isinstance(entry, AcceptedRecord):
        if isinstance(entry.entity, Customer):
            fields["normalized_record"] = CustomerSchema.from_domain(entry.entity)
        else:
            fields["transaction"] = LedgerEntrySchema.from_domain(entry.entity)
    else:
        fields.update(entry.attempted)

    schema = AuditLogEntrySchema(**fields)
    rendered = schema.model_dump(mode="json", exclude_unset=True)
    rendered.update(schema.model_extra or {})
    return rendered


def import_result_to_dict(result: ImportResult) -> Dict[str, Any]:
    """{accepted: [...], logs: [...]} as returned to callers"""
    return {
        "accepted": [entity_to_schema(e).model_dump(mode="json") for e in result.accepted],
        "logs": [audit_entry_to_dict(entry) for entry in result.logs],
        "persistence_failures": result.persistence_failures,
    }


def pipeline_result_to_dict(result: PipelineResult) -> Dict[str, Any]:
    return {
        "transactions": [LedgerEntrySchema.from_domain(t).model_dump(mode="json") for t in result.transactions],
        "ratings": [RatingSchema.from_domain(r).model_dump(mode="json") for r in result.ratings],
        "logs": [audit_entry_to_dict(entry) for entry in result.logs],
        "persistence_failures": result.persistence_failures,
    }
