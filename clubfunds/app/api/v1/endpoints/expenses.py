"""
Expense API Endpoints.

Expenses follow the same level rules as income and additionally carry an
approval status (pending, approved, paid).
"""

from fastapi import APIRouter, Depends, Response, status

from clubfunds.app.core.dependencies import get_current_club, get_entry_filter
from clubfunds.app.core.guards import ensure_club_access
from clubfunds.app.domain.ledger.rollup import EntryFilter, total_of
from clubfunds.app.models.ledger_enums import LedgerKind, OwnershipLevel
from clubfunds.app.schemas.ledger import (
    DeleteResponse,
    ExpenseCreate,
    ExpenseListResponse,
    ExpenseMutationResponse,
    ExpenseResponse,
    ExpenseUpdate,
    RecomputeStatus,
)
from clubfunds.app.services.financials import FinancialService, get_financial_service

router = APIRouter(tags=["Expenses"])


def _mutation_response(entry, outcome) -> ExpenseMutationResponse:
    return ExpenseMutationResponse(
        expense=ExpenseResponse.model_validate(entry),
        recompute=RecomputeStatus.from_outcome(outcome),
    )


def _list_response(entries, failed_scopes=None) -> ExpenseListResponse:
    return ExpenseListResponse(
        expenses=[ExpenseResponse.model_validate(e) for e in entries],
        total=len(entries),
        total_amount=total_of(entries),
        partial=bool(failed_scopes),
        failed_scopes=failed_scopes or [],
    )


def _payload(expense_data: ExpenseCreate, current_club: dict) -> dict:
    payload = expense_data.model_dump(exclude_unset=True)
    payload.setdefault("created_by", current_club.get("user_id"))
    return payload


async def _create(service: FinancialService, club_id: int, payload: dict) -> ExpenseMutationResponse:
    entry, outcome, _ = await service.create_entry(LedgerKind.EXPENSE, club_id, payload)
    return _mutation_response(entry, outcome)


# --- Create -----------------------------------------------------------------------

@router.post("/clubs/{club_id}/expenses", response_model=ExpenseMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_club_expense(
    club_id: int,
    expense_data: ExpenseCreate,
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    """Record an expense for a club (new expenses start as pending unless a status is given)."""
    ensure_club_access(club_id, current_club, "club")
    return await _create(service, club_id, _payload(expense_data, current_club))


@router.post("/campaigns/{campaign_id}/expenses", response_model=ExpenseMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_campaign_expense(
    campaign_id: int,
    expense_data: ExpenseCreate,
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    payload = _payload(expense_data, current_club)
    payload["campaign_id"] = campaign_id
    return await _create(service, int(current_club["club_id"]), payload)


@router.post("/events/{event_id}/expenses", response_model=ExpenseMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_event_expense(
    event_id: int,
    expense_data: ExpenseCreate,
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    payload = _payload(expense_data, current_club)
    payload["event_id"] = event_id
    return await _create(service, int(current_club["club_id"]), payload)


# --- List -------------------------------------------------------------------------

@router.get("/clubs/{club_id}/expenses", response_model=ExpenseListResponse)
async def list_club_expenses(
    club_id: int,
    entry_filter: EntryFilter = Depends(get_entry_filter),
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    ensure_club_access(club_id, current_club, "club")
    entries = await service.list_entries(LedgerKind.EXPENSE, club_id, OwnershipLevel.CLUB, club_id, entry_filter)
    return _list_response(entries)


@router.get("/clubs/{club_id}/expenses/all", response_model=ExpenseListResponse)
async def list_all_club_expenses(
    club_id: int,
    entry_filter: EntryFilter = Depends(get_entry_filter),
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    """Expenses across the club, its campaigns and its events."""
    ensure_club_access(club_id, current_club, "club")
    collection = await service.collect_all(LedgerKind.EXPENSE, club_id, entry_filter)
    return _list_response(collection.entries, collection.failed_scopes)


@router.get("/clubs/{club_id}/expenses/export")
async def export_club_expenses(
    club_id: int,
    entry_filter: EntryFilter = Depends(get_entry_filter),
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    ensure_club_access(club_id, current_club, "club")
    content = await service.export_csv(LedgerKind.EXPENSE, club_id, entry_filter)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="club-{club_id}-expenses.csv"'},
    )


@router.get("/campaigns/{campaign_id}/expenses", response_model=ExpenseListResponse)
async def list_campaign_expenses(
    campaign_id: int,
    entry_filter: EntryFilter = Depends(get_entry_filter),
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    entries = await service.list_entries(
        LedgerKind.EXPENSE, int(current_club["club_id"]), OwnershipLevel.CAMPAIGN, campaign_id, entry_filter
    )
    return _list_response(entries)


@router.get("/events/{event_id}/expenses", response_model=ExpenseListResponse)
async def list_event_expenses(
    event_id: int,
    entry_filter: EntryFilter = Depends(get_entry_filter),
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    entries = await service.list_entries(
        LedgerKind.EXPENSE, int(current_club["club_id"]), OwnershipLevel.EVENT, event_id, entry_filter
    )
    return _list_response(entries)


# --- Update / delete ----------------------------------------------------------------

@router.put("/expenses/{expense_id}", response_model=ExpenseMutationResponse)
async def update_expense(
    expense_id: int,
    expense_data: ExpenseUpdate,
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    """Update expense details or move it through approval (pending -> approved -> paid)."""
    entry, outcome = await service.update_entry(
        LedgerKind.EXPENSE, int(current_club["club_id"]), expense_id,
        expense_data.model_dump(exclude_unset=True),
    )
    return _mutation_response(entry, outcome)


@router.delete("/expenses/{expense_id}", response_model=DeleteResponse)
async def delete_expense(
    expense_id: int,
    current_club: dict = Depends(get_current_club),
    service: FinancialService = Depends(get_financial_service),
):
    outcome = await service.delete_entry(LedgerKind.EXPENSE, int(current_club["club_id"]), expense_id)
    return DeleteResponse(
        message="Expense deleted successfully",
        id=expense_id,
        recompute=RecomputeStatus.from_outcome(outcome),
    )
