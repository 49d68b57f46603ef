"""
LedgerEntry validator.

Checks a candidate income or expense payload against every rule and
returns all violations together, in rule order, so a form can show each
problem at once. Pure: no storage access, no side effects.
"""

from decimal import Decimal
from typing import Any, List, Mapping

from clubfunds.app.core.exceptions import (
    AmountCoercionError,
    MutualExclusivityError,
    ValidationError,
)
from clubfunds.app.domain.ledger.coercion import coerce_amount, coerce_date
from clubfunds.app.domain.ledger.records import normalize_payment_method
from clubfunds.app.models.ledger_enums import (
    LedgerKind,
    IncomePaymentMethod,
    ExpensePaymentMethod,
    ExpenseStatus,
)

INCOME_PAYMENT_METHODS = {m.value for m in IncomePaymentMethod}
EXPENSE_PAYMENT_METHODS = {m.value for m in ExpensePaymentMethod}
EXPENSE_STATUSES = {s.value for s in ExpenseStatus}


def _is_blank(value: Any) -> bool:
    return value is None or not str(value).strip()


def _check_amount(value: Any) -> List[str]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return ["Amount must be greater than 0"]
    try:
        amount = coerce_amount(value)
    except AmountCoercionError:
        return ["Amount must be a number"]
    if amount <= Decimal("0"):
        return ["Amount must be greater than 0"]
    return []


def _check_date(value: Any) -> List[str]:
    if _is_blank(value):
        return ["Date is required"]
    try:
        coerce_date(value)
    except ValueError:
        return ["Date must be a valid date (YYYY-MM-DD)"]
    return []


def _validate(payload: Mapping[str, Any], kind: LedgerKind) -> List[str]:
    noun = "Income" if kind == LedgerKind.INCOME else "Expense"
    label_field = "source" if kind == LedgerKind.INCOME else "category"

    errors: List[str] = []

    # 1. Required text
    if _is_blank(payload.get(label_field)):
        errors.append(f"{label_field.capitalize()} is required")
    if _is_blank(payload.get("description")):
        errors.append("Description is required")

    # 2. Amount
    errors.extend(_check_amount(payload.get("amount")))

    # 3. Date
    errors.extend(_check_date(payload.get("date")))

    # 4. Single ownership level
    if payload.get("campaign_id") is not None and payload.get("event_id") is not None:
        errors.append(f"{noun} cannot be assigned to both event and campaign")

    # 5. Payment method vocabulary
    method = payload.get("payment_method")
    if method is not None:
        allowed = INCOME_PAYMENT_METHODS if kind == LedgerKind.INCOME else EXPENSE_PAYMENT_METHODS
        if normalize_payment_method(method) not in allowed:
            errors.append(f"Payment method '{method}' is not valid for {noun.lower()}")

    # 6. Expense status
    if kind == LedgerKind.EXPENSE:
        status = payload.get("status")
        if status is not None and str(getattr(status, "value", status)).strip().lower() not in EXPENSE_STATUSES:
            errors.append(f"Status must be one of: {', '.join(sorted(EXPENSE_STATUSES))}")

    return errors


def validate_income(payload: Mapping[str, Any]) -> List[str]:
    """Return every rule an income payload breaks (empty list means valid)."""
    return _validate(payload, LedgerKind.INCOME)


def validate_expense(payload: Mapping[str, Any]) -> List[str]:
    """Return every rule an expense payload breaks (empty list means valid)."""
    return _validate(payload, LedgerKind.EXPENSE)


def ensure_valid(kind: LedgerKind, payload: Mapping[str, Any]) -> None:
    """
    Raise if the payload breaks any rule.

    Raises:
        MutualExclusivityError: when both campaign_id and event_id are set
            (carries the other violations too)
        ValidationError: for any other violation
    """
    errors = _validate(payload, kind)
    if not errors:
        return
    if payload.get("campaign_id") is not None and payload.get("event_id") is not None:
        raise MutualExclusivityError(errors)
    raise ValidationError(errors)
