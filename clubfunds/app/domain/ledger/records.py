"""
Domain records for the financial engine.

Ledger entries (income and expense) and the hierarchy nodes they roll up
into. Records are immutable; amounts pass through ``coerce_amount`` on
construction, so anything built from a stored row is already normalized.
"""

from datetime import date as date_type, datetime
from decimal import Decimal
from typing import ClassVar, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from clubfunds.app.domain.ledger.coercion import coerce_amount, coerce_date, ZERO
from clubfunds.app.models.ledger_enums import (
    LedgerKind,
    IncomePaymentMethod,
    ExpensePaymentMethod,
    ExpenseStatus,
    OwnershipLevel,
)


def normalize_payment_method(value):
    """Accept enum members, values, names and the legacy ``allocated-funds`` spelling."""
    if isinstance(value, str):
        return value.strip().lower().replace("-", "_")
    return value


class LedgerEntry(BaseModel):
    """Common shape of income and expense entries."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    kind: ClassVar[LedgerKind]

    id: Optional[int] = None
    club_id: int
    campaign_id: Optional[int] = None
    event_id: Optional[int] = None
    description: str
    amount: Decimal
    date: date_type
    created_at: Optional[datetime] = None

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value):
        return coerce_amount(value)

    @field_validator("date", mode="before")
    @classmethod
    def _coerce_date(cls, value):
        return coerce_date(value)

    @property
    def level(self) -> OwnershipLevel:
        if self.event_id is not None:
            return OwnershipLevel.EVENT
        if self.campaign_id is not None:
            return OwnershipLevel.CAMPAIGN
        return OwnershipLevel.CLUB


class IncomeEntry(LedgerEntry):
    kind: ClassVar[LedgerKind] = LedgerKind.INCOME

    source: str
    payment_method: IncomePaymentMethod = IncomePaymentMethod.CASH
    reference: Optional[str] = None

    @field_validator("payment_method", mode="before")
    @classmethod
    def _normalize_method(cls, value):
        return normalize_payment_method(value)

    @property
    def is_allocation(self) -> bool:
        return self.payment_method == IncomePaymentMethod.ALLOCATED_FUNDS


class ExpenseEntry(LedgerEntry):
    kind: ClassVar[LedgerKind] = LedgerKind.EXPENSE

    category: str
    payment_method: ExpensePaymentMethod = ExpensePaymentMethod.CARD
    status: ExpenseStatus = ExpenseStatus.PENDING
    vendor: Optional[str] = None
    receipt_url: Optional[str] = None
    created_by: Optional[int] = None

    @field_validator("payment_method", mode="before")
    @classmethod
    def _normalize_method(cls, value):
        return normalize_payment_method(value)


ENTRY_TYPES = {
    LedgerKind.INCOME: IncomeEntry,
    LedgerKind.EXPENSE: ExpenseEntry,
}


class ClubNode(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    name: str
    summary_stale: bool = False


class CampaignNode(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    club_id: int
    name: str
    target_amount: Decimal = ZERO
    start_date: Optional[date_type] = None
    end_date: Optional[date_type] = None
    summary_stale: bool = False

    @field_validator("target_amount", mode="before")
    @classmethod
    def _coerce_target(cls, value):
        return ZERO if value is None else coerce_amount(value)


class EventNode(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    club_id: int
    campaign_id: Optional[int] = None
    title: str
    goal_amount: Decimal = ZERO
    event_date: Optional[date_type] = None
    summary_stale: bool = False

    @field_validator("goal_amount", mode="before")
    @classmethod
    def _coerce_goal(cls, value):
        return ZERO if value is None else coerce_amount(value)
