"""Unit tests for deadline and cancellation handling"""

import pytest
from unittest.mock import MagicMock
from salary_advance.domain.exceptions import OperationCancelledError
from salary_advance.domain.importer import CustomerImporter
from salary_advance.utils.cancellation import CancellationToken, ensure_token


def test_token_without_timeout_never_expires():
    token = CancellationToken()
    assert not token.cancelled
    token.raise_if_cancelled()


def test_cancel_raises():
    token = CancellationToken()
    token.cancel()

    assert token.cancelled
    with pytest.raises(OperationCancelledError, match="operation cancelled"):
        token.raise_if_cancelled()


def test_expired_deadline_raises():
    token = CancellationToken(timeout=0)

    assert token.expired
    with pytest.raises(OperationCancelledError, match="deadline exceeded"):
        token.raise_if_cancelled()


def test_ensure_token_keeps_given_token():
    token = CancellationToken()
    assert ensure_token(token) is token
    assert isinstance(ensure_token(None), CancellationToken)


def test_cancelled_import_stops_before_first_record():
    """Test that a cancelled batch touches no repository"""
    customers = MagicMock()
    token = CancellationToken()
    token.cancel()

    with pytest.raises(OperationCancelledError):
        CustomerImporter(customers).import_records(
            [{"customerName": "Abebe Kebede", "accountNo": "12345678"}], token=token
        )

    customers.find_source_customer.assert_not_called()
    customers.create.assert_not_called()
