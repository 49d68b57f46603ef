"""
Ledger Pydantic schemas.

Request bodies are deliberately loose (amounts and dates arrive as raw
JSON values) so the ledger validator can report every rule a payload
breaks at once instead of FastAPI stopping at the first type error.
"""

from datetime import date as date_type, datetime
from decimal import Decimal
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field

from clubfunds.app.domain.ledger.allocation import AllocationCheck
from clubfunds.app.domain.ledger.reports import (
    AllocatedFundsSummary,
    CategoryReportRow,
    MonthlyTrend,
    SourceReportRow,
)
from clubfunds.app.domain.ledger.rollup import CampaignSummary, ClubSummary, EventSummary
from clubfunds.app.models.ledger_enums import (
    ExpensePaymentMethod,
    ExpenseStatus,
    IncomePaymentMethod,
    OwnershipLevel,
)

RawAmount = Union[int, float, str]


class IncomeCreate(BaseModel):
    """Schema for recording income."""
    source: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[RawAmount] = None
    date: Optional[str] = Field(None, description="YYYY-MM-DD")
    payment_method: Optional[str] = Field(None, description="cash, card, transfer, cheque, instant, sponsorship, donation, ticket_sales, allocated_funds, other")
    reference: Optional[str] = None
    campaign_id: Optional[int] = None
    event_id: Optional[int] = None


class IncomeUpdate(BaseModel):
    """Schema for updating income. Level fields are accepted only to reject moves."""
    source: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[RawAmount] = None
    date: Optional[str] = None
    payment_method: Optional[str] = None
    reference: Optional[str] = None
    campaign_id: Optional[int] = None
    event_id: Optional[int] = None


class ExpenseCreate(BaseModel):
    """Schema for recording an expense."""
    category: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[RawAmount] = None
    date: Optional[str] = Field(None, description="YYYY-MM-DD")
    vendor: Optional[str] = None
    payment_method: Optional[str] = Field(None, description="cash, card, transfer, cheque, instant, other")
    status: Optional[str] = Field(None, description="pending, approved, paid")
    receipt_url: Optional[str] = None
    created_by: Optional[int] = None
    campaign_id: Optional[int] = None
    event_id: Optional[int] = None


class ExpenseUpdate(BaseModel):
    """Schema for updating an expense."""
    category: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[RawAmount] = None
    date: Optional[str] = None
    vendor: Optional[str] = None
    payment_method: Optional[str] = None
    status: Optional[str] = None
    receipt_url: Optional[str] = None
    campaign_id: Optional[int] = None
    event_id: Optional[int] = None


class IncomeResponse(BaseModel):
    id: int
    club_id: int
    campaign_id: Optional[int]
    event_id: Optional[int]
    level: OwnershipLevel
    source: str
    description: str
    amount: Decimal
    date: date_type
    payment_method: IncomePaymentMethod
    reference: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class ExpenseResponse(BaseModel):
    id: int
    club_id: int
    campaign_id: Optional[int]
    event_id: Optional[int]
    level: OwnershipLevel
    category: str
    description: str
    amount: Decimal
    date: date_type
    vendor: Optional[str]
    payment_method: ExpensePaymentMethod
    status: ExpenseStatus
    receipt_url: Optional[str]
    created_by: Optional[int]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class RecomputeStatus(BaseModel):
    """Whether the summaries touched by a mutation were refreshed."""
    stale: bool = False
    stale_nodes: List[str] = []

    @classmethod
    def from_outcome(cls, outcome) -> "RecomputeStatus":
        return cls(stale=outcome.stale, stale_nodes=list(outcome.stale_nodes))


class IncomeMutationResponse(BaseModel):
    income: IncomeResponse
    recompute: RecomputeStatus
    allocation_check: Optional[AllocationCheck] = None


class ExpenseMutationResponse(BaseModel):
    expense: ExpenseResponse
    recompute: RecomputeStatus


class DeleteResponse(BaseModel):
    message: str
    id: int
    recompute: RecomputeStatus


class IncomeListResponse(BaseModel):
    income: List[IncomeResponse]
    total: int
    total_amount: Decimal
    partial: bool = False
    failed_scopes: List[str] = []


class ExpenseListResponse(BaseModel):
    expenses: List[ExpenseResponse]
    total: int
    total_amount: Decimal
    partial: bool = False
    failed_scopes: List[str] = []


class ClubFinancialsResponse(BaseModel):
    summary: ClubSummary
    profit_margin: Decimal
    currency: str
    display: Dict[str, str]
    summary_stale: bool
    partial: bool = False
    failed_scopes: List[str] = []


class CampaignFinancialsResponse(BaseModel):
    summary: CampaignSummary
    events: List[EventSummary]
    financial_status: str
    profit_margin: Decimal
    currency: str
    summary_stale: bool
    partial: bool = False
    failed_scopes: List[str] = []


class EventFinancialsResponse(BaseModel):
    summary: EventSummary
    financial_status: str
    profit_margin: Decimal
    currency: str
    summary_stale: bool


class CategoryReportResponse(BaseModel):
    categories: List[CategoryReportRow]
    partial: bool = False


class SourceReportResponse(BaseModel):
    sources: List[SourceReportRow]
    partial: bool = False


class MonthlyTrendsResponse(BaseModel):
    year: int
    months: List[MonthlyTrend]
    partial: bool = False


class PendingExpensesResponse(BaseModel):
    expenses: List[ExpenseResponse]
    total: int
    total_amount: Decimal
    partial: bool = False


class AllocatedFundsResponse(BaseModel):
    summary: AllocatedFundsSummary
    partial: bool = False


class AllocationRequest(BaseModel):
    """Schema for allocating club money to a campaign or event."""
    level: OwnershipLevel = Field(..., description="campaign or event")
    target_id: int
    amount: Optional[RawAmount] = None
    description: str = "Allocated funds"
    date: Optional[str] = None


class AllocationResponse(BaseModel):
    income: IncomeResponse
    allocation_check: AllocationCheck
    recompute: RecomputeStatus


class RecalculateResponse(BaseModel):
    club_id: int
    stale: bool
    stale_nodes: List[str]
    event: Optional[EventSummary] = None
    campaign: Optional[CampaignSummary] = None
    club: Optional[ClubSummary] = None
