"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from clubfunds.app.api.v1.endpoints import income, expenses, financials

router = APIRouter()

# Ledger entries
router.include_router(income.router)
router.include_router(expenses.router)

# Summaries, reports, allocation and recalculation
router.include_router(financials.club_router)
router.include_router(financials.campaign_router)
router.include_router(financials.event_router)
