"""Coercion of account numbers, names and amounts arriving as JSON numbers or strings"""

from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Any

CENTS = Decimal("0.01")

# Amount columns are Numeric(15, 2)
MAX_AMOUNT = Decimal("1e13")


class AmountRangeError(ValueError):
    """Amount is a valid number but too large to store"""

    pass


def coerce_account_no(value: Any) -> str:
    """
    Coerce a JSON account number to its canonical string form.

    Integral numbers are rendered without a fractional part; strings are
    trimmed. Booleans, fractional numbers and any other type raise ValueError.
    """
    if isinstance(value, bool):
        raise ValueError(f"account number has invalid type: {value!r}")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"account number is not integral: {value!r}")
        return str(int(value))
    if isinstance(value, str):
        return value.strip()
    raise ValueError(f"account number has invalid type: {value!r}")


def normalize_account_no(account_no: str) -> str:
    """Matching key: whitespace and leading zeros stripped, lower-cased"""
    return account_no.strip().lstrip("0").lower()


def normalize_name(name: str) -> str:
    """Matching key for customer names"""
    return name.strip().lower()


def is_numeric_account(account_no: str) -> bool:
    key = normalize_account_no(account_no)
    return bool(key) and key.isdigit()


def coerce_amount(value: Any) -> Decimal:
    """
    Coerce a JSON amount to a Decimal quantized to cents.

    Raises:
        AmountRangeError: Magnitude is at or above MAX_AMOUNT
        ValueError: On booleans, non-numeric strings, NaN or infinity
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"amount has invalid type: {value!r}")
    try:
        # str() keeps floats like 0.1 from dragging in binary noise
        amount = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError(f"amount is not a number: {value!r}") from e
    if not amount.is_finite():
        raise ValueError(f"amount is not finite: {value!r}")
    if amount.copy_abs() >= MAX_AMOUNT:
        raise AmountRangeError(f"amount exceeds maximum: {value!r}")
    try:
        return amount.quantize(CENTS, rounding=ROUND_HALF_EVEN)
    except InvalidOperation as e:
        raise ValueError(f"amount cannot be represented in cents: {value!r}") from e
