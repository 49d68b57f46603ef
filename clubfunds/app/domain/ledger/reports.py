"""
Financial reports built on top of the rollup calculator.

Category and source breakdowns with counts and averages, monthly trends,
the pending-expense approval queue and allocated-funds summaries.
"""

from decimal import Decimal
from typing import Dict, List, Sequence, Tuple

from pydantic import BaseModel

from clubfunds.app.domain.ledger.coercion import quantize, ZERO
from clubfunds.app.domain.ledger.records import IncomeEntry, ExpenseEntry
from clubfunds.app.domain.ledger.rollup import net_profit, total_of
from clubfunds.app.models.ledger_enums import ExpenseStatus, OwnershipLevel


class CategoryReportRow(BaseModel):
    category: str
    transaction_count: int
    total_amount: Decimal
    average_amount: Decimal
    min_amount: Decimal
    max_amount: Decimal


class SourceReportRow(BaseModel):
    source: str
    payment_method: str
    transaction_count: int
    total_amount: Decimal
    average_amount: Decimal


class MonthlyTrend(BaseModel):
    month: int
    year: int
    total_income: Decimal
    total_expenses: Decimal
    net_profit: Decimal


class AllocationRow(BaseModel):
    target_id: int
    total_allocated: Decimal
    allocation_count: int


class AllocatedFundsSummary(BaseModel):
    total_allocated: Decimal
    campaign_allocations: List[AllocationRow]
    event_allocations: List[AllocationRow]


def expenses_by_category(expenses: Sequence[ExpenseEntry]) -> List[CategoryReportRow]:
    groups: Dict[str, List[Decimal]] = {}
    for expense in expenses:
        groups.setdefault(expense.category, []).append(expense.amount)

    rows = [
        CategoryReportRow(
            category=category,
            transaction_count=len(amounts),
            total_amount=quantize(sum(amounts, ZERO)),
            average_amount=quantize(sum(amounts, ZERO) / len(amounts)),
            min_amount=min(amounts),
            max_amount=max(amounts),
        )
        for category, amounts in groups.items()
    ]
    rows.sort(key=lambda r: r.total_amount, reverse=True)
    return rows


def income_by_source(income: Sequence[IncomeEntry]) -> List[SourceReportRow]:
    groups: Dict[Tuple[str, str], List[Decimal]] = {}
    for entry in income:
        groups.setdefault((entry.source, entry.payment_method.value), []).append(entry.amount)

    rows = [
        SourceReportRow(
            source=source,
            payment_method=method,
            transaction_count=len(amounts),
            total_amount=quantize(sum(amounts, ZERO)),
            average_amount=quantize(sum(amounts, ZERO) / len(amounts)),
        )
        for (source, method), amounts in groups.items()
    ]
    rows.sort(key=lambda r: r.total_amount, reverse=True)
    return rows


def monthly_trends(
    income: Sequence[IncomeEntry],
    expenses: Sequence[ExpenseEntry],
    year: int,
) -> List[MonthlyTrend]:
    """One row per month of ``year``; months with no entries report zeros."""
    trends = []
    for month in range(1, 13):
        month_income = total_of(e for e in income if e.date.year == year and e.date.month == month)
        month_expenses = total_of(e for e in expenses if e.date.year == year and e.date.month == month)
        trends.append(MonthlyTrend(
            month=month,
            year=year,
            total_income=month_income,
            total_expenses=month_expenses,
            net_profit=net_profit(month_income, month_expenses),
        ))
    return trends


def pending_expenses(expenses: Sequence[ExpenseEntry]) -> List[ExpenseEntry]:
    """Expenses awaiting approval, most recently recorded first."""
    pending = [e for e in expenses if e.status == ExpenseStatus.PENDING]
    pending.sort(key=lambda e: (e.created_at is not None, e.created_at, e.date), reverse=True)
    return pending


def _allocation_rows(entries: Sequence[IncomeEntry], key) -> List[AllocationRow]:
    groups: Dict[int, List[Decimal]] = {}
    for entry in entries:
        groups.setdefault(key(entry), []).append(entry.amount)
    return [
        AllocationRow(
            target_id=target_id,
            total_allocated=quantize(sum(amounts, ZERO)),
            allocation_count=len(amounts),
        )
        for target_id, amounts in groups.items()
    ]


def allocated_funds_summary(income: Sequence[IncomeEntry]) -> AllocatedFundsSummary:
    allocations = [e for e in income if e.is_allocation and e.level != OwnershipLevel.CLUB]
    campaign = [e for e in allocations if e.level == OwnershipLevel.CAMPAIGN]
    event = [e for e in allocations if e.level == OwnershipLevel.EVENT]
    return AllocatedFundsSummary(
        total_allocated=total_of(allocations),
        campaign_allocations=_allocation_rows(campaign, lambda e: e.campaign_id),
        event_allocations=_allocation_rows(event, lambda e: e.event_id),
    )
