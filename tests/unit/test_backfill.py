"""Unit tests for synthetic history generation"""

import random
import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock
from prometheus_client import REGISTRY
from salary_advance.domain.audit import AuditLog
from salary_advance.domain.backfill import SyntheticBackfillGenerator
from salary_advance.domain.exceptions import PersistenceError
from salary_advance.domain.models import Direction


FIXED_NOW = datetime(2024, 6, 30, 12, 0, 0)


def _generator(customers, transactions, tracker, seed=42, **kwargs):
    return SyntheticBackfillGenerator(
        customers, transactions, tracker, rng=random.Random(seed), clock=lambda: FIXED_NOW, **kwargs
    )


def test_backfill_generates_two_to_five_entries(customers, transactions, tracker, make_customer):
    """Test every customer without history gets between 2 and 5 synthetic entries"""
    created = [make_customer() for _ in range(6)]
    log = AuditLog()

    generated = _generator(customers, transactions, tracker).backfill(log)

    for customer in created:
        history = transactions.list_for_customer(customer.customer_id)
        assert 2 <= len(history) <= 5
        assert all(entry.synthetic for entry in history)
    assert len(generated) == len(log)


def test_backfill_dates_within_window_and_balances_replay(customers, transactions, tracker, make_customer):
    """Test synthetic entries thread cleared balances in date order without going negative"""
    customer = make_customer()
    _generator(customers, transactions, tracker, seed=7).backfill(AuditLog())

    history = transactions.list_for_customer(customer.customer_id)
    running = Decimal("0.00")
    for entry in history:
        assert FIXED_NOW - timedelta(days=365) <= entry.transaction_date <= FIXED_NOW
        assert Decimal("50.00") <= entry.amount <= Decimal("500.00")
        running += entry.amount if entry.transaction_type == Direction.CREDIT else -entry.amount
        assert running >= 0
        assert entry.cleared_balance == running

    assert customers.find_by_id(customer.customer_id).balance == running


def test_backfill_first_entry_from_zero_is_credit(customers, transactions, tracker, make_customer):
    """Test that an overdrawing debit slot becomes a credit"""
    for seed in range(20):
        customer = make_customer()
        _generator(customers, transactions, tracker, seed=seed).generate_for_customer(customer, AuditLog())
        history = transactions.list_for_customer(customer.customer_id)
        assert history[0].transaction_type == Direction.CREDIT


def test_backfill_uncovered_debits_keep_their_slot(customers, transactions, tracker, make_customer):
    """Test the drawn entry count is honoured even when debits cannot be covered"""
    for seed in range(10):
        customer = make_customer()
        generator = _generator(
            customers, transactions, tracker, seed=seed, min_entries=4, max_entries=4, min_amount=400.0
        )
        generator.generate_for_customer(customer, AuditLog())

        history = transactions.list_for_customer(customer.customer_id)
        assert len(history) == 4
        assert all(entry.cleared_balance >= 0 for entry in history)


def test_backfill_skips_customers_with_history(customers, transactions, tracker, make_customer, make_entry):
    customer = make_customer()
    tracker.post(customer, make_entry(1, amount="10.00"))

    generated = _generator(customers, transactions, tracker).backfill(AuditLog())

    assert generated == []
    assert len(transactions.list_for_customer(customer.customer_id)) == 1


def test_backfill_audit_entries_are_synthetic(customers, transactions, tracker, make_customer):
    customer = make_customer()
    log = AuditLog()

    _generator(customers, transactions, tracker).backfill(log)

    for entry in log.entries:
        assert entry.verified
        assert entry.synthetic
        assert entry.record_index is None
        assert entry.customer_id == customer.customer_id


def test_backfill_is_reproducible_with_seed(customers, transactions, tracker, make_customer):
    """Test the same seed and clock yield the same amounts, dates and directions"""
    first = make_customer()
    second = make_customer()

    a = _generator(customers, transactions, tracker, seed=99).generate_for_customer(first, AuditLog())
    b = _generator(customers, transactions, tracker, seed=99).generate_for_customer(second, AuditLog())

    assert [(e.amount, e.transaction_date, e.transaction_type) for e in a] == [
        (e.amount, e.transaction_date, e.transaction_type) for e in b
    ]


def test_backfill_records_metric(customers, transactions, tracker, make_customer):
    make_customer()
    before = REGISTRY.get_sample_value("salary_advance_synthetic_entries_total") or 0.0

    generated = _generator(customers, transactions, tracker).backfill(AuditLog())

    after = REGISTRY.get_sample_value("salary_advance_synthetic_entries_total")
    assert after == before + len(generated)


def test_backfill_persistence_failure_is_logged():
    """Test that a failed write stops that customer's sequence and is audited"""
    customer = MagicMock(customer_id="CUST-0000beef", account_no="12345678", balance=Decimal("0.00"))
    customers = MagicMock()
    customers.list_all.return_value = [customer]
    transactions = MagicMock()
    transactions.has_any.return_value = False
    tracker = MagicMock()
    tracker.apply.return_value = (Decimal("0.00"), True)
    tracker.post.side_effect = PersistenceError("write failed", operation="create_transaction")
    log = AuditLog()

    generated = _generator(customers, transactions, tracker).backfill(log)

    assert generated == []
    assert tracker.post.call_count == 1
    assert len(log) == 1
    rejected = log.entries[0]
    assert not rejected.verified
    assert rejected.synthetic
    assert rejected.customer_id == "CUST-0000beef"
    assert "failed to generate synthetic transactions" in rejected.errors[0]


def test_backfill_rejects_bad_bounds():
    with pytest.raises(ValueError):
        SyntheticBackfillGenerator(MagicMock(), MagicMock(), MagicMock(), min_entries=5, max_entries=2)
