"""
Rollup calculator.

Pure aggregation over entries already scoped to one hierarchy node.
Nothing here touches storage or mutates its inputs; all sums are Decimal.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Sequence, TypeVar, Union

from pydantic import BaseModel

from clubfunds.app.domain.ledger.coercion import coerce_date, quantize, ZERO
from clubfunds.app.domain.ledger.records import (
    LedgerEntry,
    IncomeEntry,
    ExpenseEntry,
    CampaignNode,
    EventNode,
)
from clubfunds.app.models.ledger_enums import ExpenseStatus, OwnershipLevel

E = TypeVar("E", bound=LedgerEntry)

HUNDRED = Decimal("100")
END_OF_DAY = time(23, 59, 59, 999000)


# --- Primitives -------------------------------------------------------------

def total_of(entries: Iterable[LedgerEntry]) -> Decimal:
    return quantize(sum((e.amount for e in entries), ZERO))


def net_profit(total_income: Decimal, total_expenses: Decimal) -> Decimal:
    return quantize(total_income - total_expenses)


def progress_percentage(actual: Decimal, target: Decimal) -> Decimal:
    """
    Progress towards a target, capped at 100.

    Returns 0 when the target is zero or negative, and never goes below 0.
    """
    if target is None or target <= 0:
        return ZERO
    pct = (Decimal(actual) / Decimal(target)) * HUNDRED
    return quantize(max(ZERO, min(pct, HUNDRED)))


def profit_margin(total_income: Decimal, total_expenses: Decimal) -> Decimal:
    """Net profit as a percentage of income (0 when there is no income)."""
    if not total_income:
        return ZERO
    return quantize((total_income - total_expenses) / total_income * HUNDRED)


def financial_status(actual: Decimal, goal: Decimal) -> str:
    """Band a goal achievement into excellent/good/on-track/behind/poor."""
    percentage = (Decimal(actual) / Decimal(goal) * HUNDRED) if goal and goal > 0 else ZERO
    if percentage >= 100:
        return "excellent"
    if percentage >= 75:
        return "good"
    if percentage >= 50:
        return "on-track"
    if percentage >= 25:
        return "behind"
    return "poor"


def breakdown_by(entries: Iterable[E], key_fn: Callable[[E], str]) -> Dict[str, Decimal]:
    """Sum amounts per key; keys keep the order they first appear in."""
    totals: Dict[str, Decimal] = {}
    for entry in entries:
        key = key_fn(entry)
        totals[key] = totals.get(key, ZERO) + entry.amount
    return {key: quantize(value) for key, value in totals.items()}


def filter_by_level(entries: Iterable[E], level: OwnershipLevel) -> List[E]:
    if level == OwnershipLevel.CLUB:
        return [e for e in entries if e.campaign_id is None and e.event_id is None]
    if level == OwnershipLevel.CAMPAIGN:
        return [e for e in entries if e.campaign_id is not None]
    return [e for e in entries if e.event_id is not None]


def _as_datetime(value: Union[date, datetime, str]) -> datetime:
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    try:
        return datetime.fromisoformat(value.strip()).replace(tzinfo=None)
    except ValueError:
        return datetime.combine(coerce_date(value), time.min)


def filter_by_date_range(
    entries: Iterable[E],
    date_from: Optional[Union[date, str]] = None,
    date_to: Optional[Union[date, str]] = None,
) -> List[E]:
    """
    Keep entries dated within [date_from, date_to].

    ``date_to`` covers its whole day: the bound is 23:59:59.999 of that day.
    """
    lower = datetime.combine(coerce_date(date_from), time.min) if date_from else None
    upper = datetime.combine(coerce_date(date_to), END_OF_DAY) if date_to else None

    kept = []
    for entry in entries:
        when = _as_datetime(entry.date)
        if lower is not None and when < lower:
            continue
        if upper is not None and when > upper:
            continue
        kept.append(entry)
    return kept


@dataclass(frozen=True)
class EntryFilter:
    """
    Filter options for listing ledger entries.

    Every field is optional; unset fields do not filter.
    ``source`` applies to income, ``category`` and ``status`` to expenses.
    """
    level: Optional[OwnershipLevel] = None
    campaign_id: Optional[int] = None
    event_id: Optional[int] = None
    source: Optional[str] = None
    category: Optional[str] = None
    payment_method: Optional[str] = None
    status: Optional[ExpenseStatus] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    def __post_init__(self):
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        if self.level is not None and not isinstance(self.level, OwnershipLevel):
            object.__setattr__(self, "level", OwnershipLevel(self.level))
        if self.status is not None and not isinstance(self.status, ExpenseStatus):
            object.__setattr__(self, "status", ExpenseStatus(self.status))


def apply_filter(entries: Sequence[E], entry_filter: EntryFilter) -> List[E]:
    result = list(entries)
    f = entry_filter
    if f.level is not None:
        result = filter_by_level(result, f.level)
    if f.campaign_id is not None:
        result = [e for e in result if e.campaign_id == f.campaign_id]
    if f.event_id is not None:
        result = [e for e in result if e.event_id == f.event_id]
    if f.source:
        result = [e for e in result if getattr(e, "source", None) == f.source]
    if f.category:
        result = [e for e in result if getattr(e, "category", None) == f.category]
    if f.payment_method:
        method = f.payment_method.strip().lower().replace("-", "_")
        result = [e for e in result if e.payment_method.value == method]
    if f.status is not None:
        result = [e for e in result if getattr(e, "status", None) == f.status]
    if f.date_from or f.date_to:
        result = filter_by_date_range(result, f.date_from, f.date_to)
    return result


# --- Allocation totals ------------------------------------------------------

def allocation_totals(income: Iterable[IncomeEntry]):
    """
    Split a club's income into received funds and downward allocations.

    Returns:
        (received, allocated): received is income from outside the club
        (every entry not paid as allocated funds); allocated is the sum of
        allocated-funds entries at campaign or event level.
    """
    received = ZERO
    allocated = ZERO
    for entry in income:
        if entry.is_allocation:
            if entry.level != OwnershipLevel.CLUB:
                allocated += entry.amount
        else:
            received += entry.amount
    return quantize(received), quantize(allocated)


# --- Node summaries ---------------------------------------------------------

class LevelTotals(BaseModel):
    income: Decimal = ZERO
    expenses: Decimal = ZERO
    net: Decimal = ZERO


def level_totals(income: Sequence[IncomeEntry], expenses: Sequence[ExpenseEntry]) -> LevelTotals:
    total_income = total_of(income)
    total_expenses = total_of(expenses)
    return LevelTotals(
        income=total_income,
        expenses=total_expenses,
        net=net_profit(total_income, total_expenses),
    )


class EventSummary(BaseModel):
    event_id: int
    campaign_id: Optional[int] = None
    goal_amount: Decimal
    actual_amount: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    goal_achievement: Decimal
    allocated_funds: Decimal


class CampaignSummary(BaseModel):
    campaign_id: int
    target_amount: Decimal
    total_raised: Decimal
    total_expenses: Decimal
    total_profit: Decimal
    progress_percentage: Decimal
    allocated_funds: Decimal
    campaign_level: LevelTotals
    event_rollup: LevelTotals


class ClubSummary(BaseModel):
    club_id: int
    total_income: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    pending_expenses: Decimal
    approved_expenses: Decimal
    allocated_funds: Decimal
    available_for_allocation: Decimal
    club_level: LevelTotals
    expenses_by_category: Dict[str, Decimal]
    income_by_source: Dict[str, Decimal]


def _allocated(income: Iterable[IncomeEntry]) -> Decimal:
    return total_of(e for e in income if e.is_allocation)


def summarize_event(
    event: EventNode,
    income: Sequence[IncomeEntry],
    expenses: Sequence[ExpenseEntry],
) -> EventSummary:
    totals = level_totals(income, expenses)
    return EventSummary(
        event_id=event.id,
        campaign_id=event.campaign_id,
        goal_amount=event.goal_amount,
        actual_amount=totals.income,
        total_expenses=totals.expenses,
        net_profit=totals.net,
        goal_achievement=progress_percentage(totals.income, event.goal_amount),
        allocated_funds=_allocated(income),
    )


def summarize_campaign(
    campaign: CampaignNode,
    income: Sequence[IncomeEntry],
    expenses: Sequence[ExpenseEntry],
) -> CampaignSummary:
    """
    Summarize a campaign from its own entries plus those of its events.
    """
    own = level_totals(
        filter_by_level(income, OwnershipLevel.CAMPAIGN),
        filter_by_level(expenses, OwnershipLevel.CAMPAIGN),
    )
    events = level_totals(
        filter_by_level(income, OwnershipLevel.EVENT),
        filter_by_level(expenses, OwnershipLevel.EVENT),
    )
    total_raised = quantize(own.income + events.income)
    total_expenses = quantize(own.expenses + events.expenses)
    return CampaignSummary(
        campaign_id=campaign.id,
        target_amount=campaign.target_amount,
        total_raised=total_raised,
        total_expenses=total_expenses,
        total_profit=net_profit(total_raised, total_expenses),
        progress_percentage=progress_percentage(total_raised, campaign.target_amount),
        allocated_funds=_allocated(income),
        campaign_level=own,
        event_rollup=events,
    )


def summarize_club(
    club_id: int,
    income: Sequence[IncomeEntry],
    expenses: Sequence[ExpenseEntry],
) -> ClubSummary:
    """Summarize every entry the club owns, at any level."""
    totals = level_totals(income, expenses)
    received, allocated = allocation_totals(income)
    pending = total_of(e for e in expenses if e.status == ExpenseStatus.PENDING)
    approved = total_of(e for e in expenses if e.status != ExpenseStatus.PENDING)
    return ClubSummary(
        club_id=club_id,
        total_income=totals.income,
        total_expenses=totals.expenses,
        net_profit=totals.net,
        pending_expenses=pending,
        approved_expenses=approved,
        allocated_funds=allocated,
        available_for_allocation=max(ZERO, quantize(received - allocated)),
        club_level=level_totals(
            filter_by_level(income, OwnershipLevel.CLUB),
            filter_by_level(expenses, OwnershipLevel.CLUB),
        ),
        expenses_by_category=breakdown_by(expenses, lambda e: e.category),
        income_by_source=breakdown_by(income, lambda e: e.source),
    )
