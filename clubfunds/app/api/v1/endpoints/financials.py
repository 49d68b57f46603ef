"""
Financials API Endpoints.

Club, campaign and event summaries, reports, allocation of club funds and
on-demand recalculation of stored summaries.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from clubfunds.app.core.dependencies import get_current_club, get_entry_filter
from clubfunds.app.core.guards import ensure_club_access
from clubfunds.app.domain.ledger.allocation import AllocationCheck
from clubfunds.app.domain.ledger.rollup import EntryFilter
from clubfunds.app.schemas.ledger import (
    AllocatedFundsResponse,
    AllocationRequest,
    AllocationResponse,
    CampaignFinancialsResponse,
    CategoryReportResponse,
    ClubFinancialsResponse,
    EventFinancialsResponse,
    ExpenseResponse,
    IncomeResponse,
    MonthlyTrendsResponse,
    PendingExpensesResponse,
    RecalculateResponse,
    RecomputeStatus,
    SourceReportResponse,
)
from clubfunds.app.services.financials import FinancialService, get_financial_service

club_router = APIRouter(prefix="/clubs/{club_id}/financials", tags=["Club Financials"])
campaign_router = APIRouter(prefix="/campaigns/{campaign_id}/financials", tags=["Campaign Financials"])
event_router = APIRouter(prefix="/events/{event_id}/financials", tags=["Event Financials"])


def _recalculate_response(outcome) -> RecalculateResponse:
    return RecalculateResponse(**outcome.model_dump())


# --- Club -------------------------------------------------------------------------

@club_router.get("", response_model=ClubFinancialsResponse)
async def get_club_financials(
    club_id: int,
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    """
    Live club summary computed from every entry at every level.

    ``summary_stale`` reports whether the stored summary missed its last
    refresh; the figures returned here are always freshly computed.
    """
    ensure_club_access(club_id, current_club, "club")
    return ClubFinancialsResponse(**await service.club_financials(club_id))


@club_router.get("/expenses-by-category", response_model=CategoryReportResponse)
async def get_expenses_by_category(
    club_id: int,
    entry_filter: EntryFilter = Depends(get_entry_filter),
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    ensure_club_access(club_id, current_club, "club")
    rows, partial = await service.expenses_by_category(club_id, entry_filter)
    return CategoryReportResponse(categories=rows, partial=partial)


@club_router.get("/income-by-source", response_model=SourceReportResponse)
async def get_income_by_source(
    club_id: int,
    entry_filter: EntryFilter = Depends(get_entry_filter),
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    ensure_club_access(club_id, current_club, "club")
    rows, partial = await service.income_by_source(club_id, entry_filter)
    return SourceReportResponse(sources=rows, partial=partial)


@club_router.get("/monthly-trends", response_model=MonthlyTrendsResponse)
async def get_monthly_trends(
    club_id: int,
    year: Optional[int] = Query(None, ge=1900, le=9999, description="Defaults to the current year"),
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    ensure_club_access(club_id, current_club, "club")
    year = year or date.today().year
    months, partial = await service.monthly_trends(club_id, year)
    return MonthlyTrendsResponse(year=year, months=months, partial=partial)


@club_router.get("/pending-expenses", response_model=PendingExpensesResponse)
async def get_pending_expenses(
    club_id: int,
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    """Expenses awaiting approval, newest first."""
    ensure_club_access(club_id, current_club, "club")
    pending, total_amount, partial = await service.pending_expenses(club_id)
    return PendingExpensesResponse(
        expenses=[ExpenseResponse.model_validate(e) for e in pending],
        total=len(pending),
        total_amount=total_amount,
        partial=partial,
    )


@club_router.get("/allocated-funds", response_model=AllocatedFundsResponse)
async def get_allocated_funds(
    club_id: int,
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    ensure_club_access(club_id, current_club, "club")
    summary, partial = await service.allocated_funds(club_id)
    return AllocatedFundsResponse(summary=summary, partial=partial)


@club_router.get("/check-allocation", response_model=AllocationCheck)
async def check_allocation(
    club_id: int,
    amount: str = Query(..., description="Amount the club wants to allocate"),
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    """
    Report whether the club holds enough unallocated income for ``amount``.

    Advisory: never fails because of an overrun; read ``can_allocate`` and
    ``warning``.
    """
    ensure_club_access(club_id, current_club, "club")
    return await service.check_allocation(club_id, amount)


@club_router.post("/allocate", response_model=AllocationResponse, status_code=201)
async def allocate_funds(
    club_id: int,
    request: AllocationRequest,
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    """
    Allocate club funds to a campaign or event.

    Recorded as "Allocated Funds" income at the target. An overrun is
    reported in ``allocation_check``; it is rejected with 409 only when
    hard blocking is enabled.
    """
    ensure_club_access(club_id, current_club, "club")
    entry, check, outcome = await service.allocate(
        club_id, request.level, request.target_id, request.amount,
        request.description, on_date=request.date,
    )
    return AllocationResponse(
        income=IncomeResponse.model_validate(entry),
        allocation_check=check,
        recompute=RecomputeStatus.from_outcome(outcome),
    )


@club_router.post("/recalculate", response_model=RecalculateResponse)
async def recalculate_club_financials(
    club_id: int,
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    ensure_club_access(club_id, current_club, "club")
    return _recalculate_response(await service.recalculate_club(club_id))


# --- Campaign -----------------------------------------------------------------------

@campaign_router.get("", response_model=CampaignFinancialsResponse)
async def get_campaign_financials(
    campaign_id: int,
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    """Campaign totals (own entries plus its events) with a per-event breakdown."""
    data = await service.campaign_financials(int(current_club["club_id"]), campaign_id)
    return CampaignFinancialsResponse(**data)


@campaign_router.post("/recalculate", response_model=RecalculateResponse)
async def recalculate_campaign_financials(
    campaign_id: int,
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    """Refresh the campaign's stored summary and the club's. Safe to repeat."""
    outcome = await service.recalculate_campaign(int(current_club["club_id"]), campaign_id)
    return _recalculate_response(outcome)


# --- Event --------------------------------------------------------------------------

@event_router.get("", response_model=EventFinancialsResponse)
async def get_event_financials(
    event_id: int,
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    data = await service.event_financials(int(current_club["club_id"]), event_id)
    return EventFinancialsResponse(**data)


@event_router.post("/recalculate", response_model=RecalculateResponse)
async def recalculate_event_financials(
    event_id: int,
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    """Refresh the event's stored summary and those of its campaign and club. Safe to repeat."""
    outcome = await service.recalculate_event(int(current_club["club_id"]), event_id)
    return _recalculate_response(outcome)
