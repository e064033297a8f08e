"""Pytest fixtures for testing"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Generator
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from salary_advance.domain.ledger import LedgerBalanceTracker
from salary_advance.domain.models import Customer, Direction, LedgerEntry
from salary_advance.infrastructure.database.models import Base, SourceCustomerRecord
from salary_advance.infrastructure.database.repositories import (
    CustomerRepository,
    RatingRepository,
    TransactionRepository,
)


# Test database, shared by every session of a test
TEST_DATABASE_URL = "sqlite://"
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

FIXED_NOW = datetime(2024, 6, 30, 12, 0, 0)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def customers(db: Session) -> CustomerRepository:
    return CustomerRepository(db)


@pytest.fixture
def transactions(db: Session) -> TransactionRepository:
    return TransactionRepository(db)


@pytest.fixture
def ratings(db: Session) -> RatingRepository:
    return RatingRepository(db)


@pytest.fixture
def tracker(customers: CustomerRepository, transactions: TransactionRepository) -> LedgerBalanceTracker:
    return LedgerBalanceTracker(customers, transactions)


@pytest.fixture
def source_customers(db: Session) -> list[SourceCustomerRecord]:
    """Source-of-truth rows that customer imports are matched against"""
    rows = [
        SourceCustomerRecord(
            customer_name="Abebe Kebede",
            account_no="0012345678",
            mobile="0911000001",
            branch_name="Bole",
            branch_code="BL01",
            product_name="Savings",
        ),
        SourceCustomerRecord(
            customer_name="Sara Tesfaye",
            account_no="22223333",
            mobile="0911000002",
            branch_name="Piassa",
            branch_code="PS02",
            product_name="Current",
        ),
        SourceCustomerRecord(
            customer_name="Dawit Alemu",
            account_no="44445555",
            mobile="0911000003",
            branch_name="Megenagna",
            branch_code="MG03",
            product_name="Savings",
        ),
    ]
    db.add_all(rows)
    db.commit()
    return rows


@pytest.fixture
def make_customer(customers: CustomerRepository) -> Callable[..., Customer]:
    """Factory for validated customers persisted in valid_customers"""
    counter = iter(range(1, 10_000))

    def _make(account_no: str = "", balance: str = "0.00", name: str = "Test Customer") -> Customer:
        n = next(counter)
        customer = Customer(
            customer_id=f"CUST-{n:08x}",
            customer_name=name,
            account_no=account_no or f"{90000000 + n}",
            balance=Decimal(balance),
        )
        return customers.create(customer)

    return _make


def _entry(
    n: int,
    amount: str = "100.00",
    cleared_balance: str = "100.00",
    days_ago: int = 0,
    direction: Direction = Direction.CREDIT,
    customer_id: str = "CUST-00000001",
) -> LedgerEntry:
    """Plain ledger entry for pure scoring tests"""
    return LedgerEntry(
        transaction_id=f"TXN-{n:08x}",
        customer_id=customer_id,
        from_account="12345678",
        to_account="87654321",
        amount=Decimal(amount),
        transaction_type=direction,
        transaction_date=FIXED_NOW - timedelta(days=days_ago),
        cleared_balance=Decimal(cleared_balance),
    )


@pytest.fixture
def make_entry() -> Callable[..., LedgerEntry]:
    return _entry
