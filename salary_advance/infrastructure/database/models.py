"""SQLAlchemy ORM models for customers, ledger entries and ratings"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class SourceCustomerRecord(Base):
    """Source-of-truth customer table that imports are matched against"""

    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_name = Column(String(255), nullable=False)
    account_no = Column(String(255), nullable=False, index=True)
    mobile = Column(String(255), nullable=False, default="")
    branch_name = Column(String(255), nullable=False, default="")
    branch_code = Column(String(255), nullable=False, default="")
    product_name = Column(String(255), nullable=False, default="")


class ValidCustomerRecord(Base):
    """Customer accepted by import; balance is kept by the ledger tracker"""

    __tablename__ = "valid_customers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(String(255), nullable=False, unique=True, index=True)
    customer_name = Column(String(255), nullable=False)
    account_no = Column(String(255), nullable=False, index=True)
    mobile = Column(String(255), nullable=False, default="")
    branch_name = Column(String(255), nullable=False, default="")
    branch_code = Column(String(255), nullable=False, default="")
    product_name = Column(String(255), nullable=False, default="")
    customer_balance = Column(Numeric(15, 2), nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    transactions = relationship("TransactionRecord", back_populates="customer")
    rating = relationship("RatingRecord", back_populates="customer", uselist=False)


class TransactionRecord(Base):
    """Append-only ledger entry"""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_id = Column(String(64), nullable=False, unique=True)
    customer_id = Column(
        String(255),
        ForeignKey("valid_customers.customer_id", onupdate="CASCADE", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    from_account = Column(String(255), nullable=False, default="")
    to_account = Column(String(255), nullable=False, default="")
    amount = Column(Numeric(15, 2), nullable=False)
    transaction_type = Column(String(50), nullable=False)  # Debit | Credit
    source_type = Column(String(100), nullable=False, default="")
    remark = Column(Text, nullable=False, default="")
    request_id = Column(String(255), nullable=False, default="")
    reference = Column(String(255), nullable=False, default="")
    third_party_reference = Column(String(255), nullable=False, default="")
    institution_id = Column(String(255), nullable=False, default="")
    biller_id = Column(String(255), nullable=False, default="")
    cleared_balance = Column(Numeric(15, 2), nullable=False)
    transaction_date = Column(DateTime, nullable=False)
    status = Column(String(50), nullable=False, default="completed")
    synthetic = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    customer = relationship("ValidCustomerRecord", back_populates="transactions")


class RatingRecord(Base):
    """Latest rating per customer"""

    __tablename__ = "ratings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(
        String(255),
        ForeignKey("valid_customers.customer_id", onupdate="CASCADE", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    score = Column(Float, nullable=False)
    breakdown = Column(JSON, nullable=False)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    customer = relationship("ValidCustomerRecord", back_populates="rating")
