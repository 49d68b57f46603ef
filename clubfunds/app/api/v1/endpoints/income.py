"""
Income API Endpoints.

Records, lists, updates and deletes income at club, campaign and event
level. Every mutation waits for the affected summaries to be recomputed.
"""

from fastapi import APIRouter, Depends, Response, status

from clubfunds.app.core.dependencies import get_current_club, get_entry_filter
from clubfunds.app.core.guards import ensure_club_access
from clubfunds.app.domain.ledger.rollup import EntryFilter, total_of
from clubfunds.app.models.ledger_enums import LedgerKind, OwnershipLevel
from clubfunds.app.schemas.ledger import (
    DeleteResponse,
    IncomeCreate,
    IncomeListResponse,
    IncomeMutationResponse,
    IncomeResponse,
    IncomeUpdate,
    RecomputeStatus,
)
from clubfunds.app.services.financials import FinancialService, get_financial_service

router = APIRouter(tags=["Income"])


def _mutation_response(entry, outcome, check=None) -> IncomeMutationResponse:
    return IncomeMutationResponse(
        income=IncomeResponse.model_validate(entry),
        recompute=RecomputeStatus.from_outcome(outcome),
        allocation_check=check,
    )


def _list_response(entries, failed_scopes=None) -> IncomeListResponse:
    return IncomeListResponse(
        income=[IncomeResponse.model_validate(e) for e in entries],
        total=len(entries),
        total_amount=total_of(entries),
        partial=bool(failed_scopes),
        failed_scopes=failed_scopes or [],
    )


async def _create(service: FinancialService, club_id: int, payload: dict) -> IncomeMutationResponse:
    entry, outcome, check = await service.create_entry(LedgerKind.INCOME, club_id, payload)
    return _mutation_response(entry, outcome, check)


# --- Create -----------------------------------------------------------------------

@router.post("/clubs/{club_id}/income", response_model=IncomeMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_club_income(
    club_id: int,
    income_data: IncomeCreate,
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    """
    Record income for a club.

    Club level unless the body names a campaign or an event (never both).
    """
    ensure_club_access(club_id, current_club, "club")
    return await _create(service, club_id, income_data.model_dump(exclude_unset=True))


@router.post("/campaigns/{campaign_id}/income", response_model=IncomeMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_campaign_income(
    campaign_id: int,
    income_data: IncomeCreate,
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    payload = income_data.model_dump(exclude_unset=True)
    payload["campaign_id"] = campaign_id
    return await _create(service, int(current_club["club_id"]), payload)


@router.post("/events/{event_id}/income", response_model=IncomeMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_event_income(
    event_id: int,
    income_data: IncomeCreate,
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    payload = income_data.model_dump(exclude_unset=True)
    payload["event_id"] = event_id
    return await _create(service, int(current_club["club_id"]), payload)


# --- List -------------------------------------------------------------------------

@router.get("/clubs/{club_id}/income", response_model=IncomeListResponse)
async def list_club_income(
    club_id: int,
    entry_filter: EntryFilter = Depends(get_entry_filter),
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    """Club-level income only; see /income/all for every level."""
    ensure_club_access(club_id, current_club, "club")
    entries = await service.list_entries(LedgerKind.INCOME, club_id, OwnershipLevel.CLUB, club_id, entry_filter)
    return _list_response(entries)


@router.get("/clubs/{club_id}/income/all", response_model=IncomeListResponse)
async def list_all_club_income(
    club_id: int,
    entry_filter: EntryFilter = Depends(get_entry_filter),
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    """
    Income across the club, its campaigns and its events.

    When some campaign or event could not be read, the response still
    carries everything else with ``partial`` set.
    """
    ensure_club_access(club_id, current_club, "club")
    collection = await service.collect_all(LedgerKind.INCOME, club_id, entry_filter)
    return _list_response(collection.entries, collection.failed_scopes)


@router.get("/clubs/{club_id}/income/export")
async def export_club_income(
    club_id: int,
    entry_filter: EntryFilter = Depends(get_entry_filter),
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    ensure_club_access(club_id, current_club, "club")
    content = await service.export_csv(LedgerKind.INCOME, club_id, entry_filter)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="club-{club_id}-income.csv"'},
    )


@router.get("/campaigns/{campaign_id}/income", response_model=IncomeListResponse)
async def list_campaign_income(
    campaign_id: int,
    entry_filter: EntryFilter = Depends(get_entry_filter),
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    entries = await service.list_entries(
        LedgerKind.INCOME, int(current_club["club_id"]), OwnershipLevel.CAMPAIGN, campaign_id, entry_filter
    )
    return _list_response(entries)


@router.get("/events/{event_id}/income", response_model=IncomeListResponse)
async def list_event_income(
    event_id: int,
    entry_filter: EntryFilter = Depends(get_entry_filter),
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    entries = await service.list_entries(
        LedgerKind.INCOME, int(current_club["club_id"]), OwnershipLevel.EVENT, event_id, entry_filter
    )
    return _list_response(entries)


# --- Update / delete ----------------------------------------------------------------

@router.put("/income/{income_id}", response_model=IncomeMutationResponse)
async def update_income(
    income_id: int,
    income_data: IncomeUpdate,
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    """
    Update income details.

    The level is fixed at creation: sending a different campaign_id or
    event_id is rejected.
    """
    entry, outcome = await service.update_entry(
        LedgerKind.INCOME, int(current_club["club_id"]), income_id,
        income_data.model_dump(exclude_unset=True),
    )
    return _mutation_response(entry, outcome)


@router.delete("/income/{income_id}", response_model=DeleteResponse)
async def delete_income(
    income_id: int,
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    outcome = await service.delete_entry(LedgerKind.INCOME, int(current_club["club_id"]), income_id)
    return DeleteResponse(
        message="Income deleted successfully",
        id=income_id,
        recompute=RecomputeStatus.from_outcome(outcome),
    )
