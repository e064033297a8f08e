"""Unit tests for the ledger balance tracker"""

import threading
import pytest
from decimal import Decimal
from unittest.mock import MagicMock
from salary_advance.domain.exceptions import (
    BalanceInconsistencyError,
    InsufficientFundsError,
    PersistenceError,
)
from salary_advance.domain.ledger import LedgerBalanceTracker
from salary_advance.domain.models import Customer, Direction


def _customer(balance: str) -> Customer:
    return Customer(
        customer_id="CUST-0000abcd",
        customer_name="Abebe Kebede",
        account_no="12345678",
        balance=Decimal(balance),
    )


def test_apply_credit_and_debit():
    """Test pure balance arithmetic"""
    customer = _customer("100.00")

    assert LedgerBalanceTracker.apply(customer, Decimal("50.00"), Direction.CREDIT) == (Decimal("150.00"), True)
    assert LedgerBalanceTracker.apply(customer, Decimal("40.00"), Direction.DEBIT) == (Decimal("60.00"), True)
    # Nothing was mutated
    assert customer.balance == Decimal("100.00")


def test_apply_refuses_overdraft():
    customer = _customer("100.00")
    new_balance, ok = LedgerBalanceTracker.apply(customer, Decimal("100.01"), Direction.DEBIT)
    assert ok is False
    assert new_balance == Decimal("100.00")


def test_apply_debit_to_exactly_zero_is_allowed():
    new_balance, ok = LedgerBalanceTracker.apply(_customer("25.00"), Decimal("25.00"), Direction.DEBIT)
    assert ok is True
    assert new_balance == Decimal("0.00")


def test_apply_allows_overdraft_when_enabled():
    new_balance, ok = LedgerBalanceTracker.apply(
        _customer("10.00"), Decimal("30.00"), Direction.DEBIT, allow_overdraft=True
    )
    assert ok is True
    assert new_balance == Decimal("-20.00")


def test_post_writes_entry_then_balance(make_entry):
    """Test that a posted entry carries the post-entry cleared balance"""
    customers = MagicMock()
    transactions = MagicMock()
    tracker = LedgerBalanceTracker(customers, transactions)
    customer = _customer("1000.00")
    calls = []
    transactions.create.side_effect = lambda entry: calls.append("entry")
    customers.update_balance.side_effect = lambda cid, balance: calls.append("balance")

    entry = make_entry(1, amount="250.00", direction=Direction.DEBIT, customer_id="")
    committed = tracker.post(customer, entry)

    assert calls == ["entry", "balance"]
    assert committed.customer_id == "CUST-0000abcd"
    assert committed.cleared_balance == Decimal("750.00")
    assert customer.balance == Decimal("750.00")
    customers.update_balance.assert_called_once_with("CUST-0000abcd", Decimal("750.00"))


def test_post_insufficient_funds_writes_nothing(make_entry):
    customers = MagicMock()
    transactions = MagicMock()
    tracker = LedgerBalanceTracker(customers, transactions)
    customer = _customer("1000.00")

    with pytest.raises(InsufficientFundsError) as exc_info:
        tracker.post(customer, make_entry(1, amount="1500.00", direction=Direction.DEBIT))

    assert "insufficient balance" in str(exc_info.value)
    transactions.create.assert_not_called()
    customers.update_balance.assert_not_called()
    assert customer.balance == Decimal("1000.00")


def test_post_entry_failure_skips_balance_write(make_entry):
    """Test that a failed entry write leaves the balance untouched"""
    customers = MagicMock()
    transactions = MagicMock()
    transactions.create.side_effect = PersistenceError("disk full", operation="create_transaction")
    tracker = LedgerBalanceTracker(customers, transactions)
    customer = _customer("100.00")

    with pytest.raises(PersistenceError) as exc_info:
        tracker.post(customer, make_entry(1, amount="10.00"))

    assert not isinstance(exc_info.value, BalanceInconsistencyError)
    customers.update_balance.assert_not_called()
    assert customer.balance == Decimal("100.00")


def test_post_balance_failure_is_reported_as_inconsistency(make_entry):
    """Test that an entry without its balance write is surfaced distinctly"""
    customers = MagicMock()
    customers.update_balance.side_effect = PersistenceError("connection lost", operation="update_balance")
    transactions = MagicMock()
    tracker = LedgerBalanceTracker(customers, transactions)
    customer = _customer("100.00")

    with pytest.raises(BalanceInconsistencyError) as exc_info:
        tracker.post(customer, make_entry(1, amount="10.00"))

    assert exc_info.value.operation == "update_balance"
    transactions.create.assert_called_once()
    assert customer.balance == Decimal("100.00")


def test_post_serializes_per_customer(make_entry):
    """Test concurrent posts for one customer never lose an update"""
    tracker = LedgerBalanceTracker(MagicMock(), MagicMock())
    customer = _customer("0.00")

    def worker(offset: int) -> None:
        for i in range(50):
            tracker.post(customer, make_entry(offset + i, amount="1.00"))

    threads = [threading.Thread(target=worker, args=(n * 100,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert customer.balance == Decimal("200.00")


def test_posted_history_replays_to_stored_balance(tracker, make_customer, transactions, customers, make_entry):
    """Test that stored balance equals the signed sum of committed entries"""
    customer = make_customer(balance="0.00")
    moves = [
        ("500.00", Direction.CREDIT),
        ("120.50", Direction.DEBIT),
        ("80.25", Direction.CREDIT),
        ("459.75", Direction.DEBIT),
    ]
    for n, (amount, direction) in enumerate(moves):
        tracker.post(customer, make_entry(n, amount=amount, direction=direction, days_ago=10 - n))

    history = transactions.list_for_customer(customer.customer_id)
    running = Decimal("0.00")
    for entry in history:
        running += entry.amount if entry.transaction_type == Direction.CREDIT else -entry.amount
        assert entry.cleared_balance == running

    assert customers.find_by_id(customer.customer_id).balance == running == Decimal("0.00")
