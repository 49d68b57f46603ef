"""
Ingestion boundary for amounts and dates.

Stored rows and client payloads may carry amounts as numeric-looking
strings; everything is turned into a cent-quantized Decimal here, once.
Non-numeric input is rejected, never silently read as zero.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from clubfunds.app.core.exceptions import AmountCoercionError

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize(value: Decimal) -> Decimal:
    """Round to whole cents (half up)."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def coerce_amount(value: Any) -> Decimal:
    """
    Convert a raw amount into a cent-quantized Decimal.

    Accepts int, Decimal, float (via its shortest repr) and numeric
    strings with surrounding whitespace.

    Raises:
        AmountCoercionError: for None, booleans, empty or non-numeric
            strings, NaN and infinities
    """
    if isinstance(value, bool) or value is None:
        raise AmountCoercionError(value)

    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, int):
        parsed = Decimal(value)
    elif isinstance(value, float):
        parsed = Decimal(repr(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise AmountCoercionError(value)
        try:
            parsed = Decimal(text)
        except InvalidOperation:
            raise AmountCoercionError(value)
    else:
        raise AmountCoercionError(value)

    if not parsed.is_finite():
        raise AmountCoercionError(value)

    return quantize(parsed)


def coerce_date(value: Any) -> date:
    """
    Convert a raw entry date into a calendar date.

    Datetimes (and ISO datetime strings) keep only their calendar day.

    Raises:
        ValueError: when the value is missing or not a parseable date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text).date()
        except ValueError:
            raise ValueError(f"Invalid date: {value!r}")
    raise ValueError(f"Invalid date: {value!r}")
