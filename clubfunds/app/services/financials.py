"""
Financial service.

Per-request wiring of the ledger engine: record store, hierarchy
resolver, allocation guard and recalculation coordinator. Endpoints talk
only to this class.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from fastapi import Depends
from sqlalchemy.ext.asyncio import async_sessionmaker

from clubfunds.app.core.config import settings
from clubfunds.app.core.exceptions import (
    AllocationOverrunError,
    AmountCoercionError,
    PartialFetchFailure,
    ResourceNotFoundError,
)
from clubfunds.app.core.redis_client import get_redis
from clubfunds.app.db.record_store import RecordStore, SqlAlchemyRecordStore
from clubfunds.app.db.session import get_session_factory
from clubfunds.app.domain.ledger import export, reports
from clubfunds.app.domain.ledger.allocation import AllocationCheck, AllocationGuard
from clubfunds.app.domain.ledger.coercion import coerce_amount, ZERO
from clubfunds.app.domain.ledger.hierarchy import CollectionResult, HierarchyResolver
from clubfunds.app.domain.ledger.recalculation import RecalculationCoordinator, RecomputeOutcome
from clubfunds.app.domain.ledger.records import LedgerEntry, IncomeEntry
from clubfunds.app.domain.ledger.rollup import (
    EntryFilter,
    apply_filter,
    financial_status,
    profit_margin,
    summarize_campaign,
    summarize_club,
    summarize_event,
    total_of,
)
from clubfunds.app.models.ledger_enums import (
    IncomePaymentMethod,
    LedgerKind,
    OwnershipLevel,
)
from clubfunds.app.services.recompute_locks import RecomputeLockRegistry

logger = logging.getLogger(__name__)


def _is_allocation(payload: Mapping[str, Any]) -> bool:
    method = payload.get("payment_method")
    if method is None:
        return False
    return str(getattr(method, "value", method)).strip().lower().replace("-", "_") == IncomePaymentMethod.ALLOCATED_FUNDS.value


class FinancialService:
    """
    Facade over the ledger engine for one request.

    Args:
        store: record store
        locks: recompute lock registry
        hard_block: reject allocations that exceed available funds
        currency: currency code used for display strings
    """

    def __init__(
        self,
        store: RecordStore,
        locks,
        hard_block: bool = None,
        currency: str = None,
        resolver: HierarchyResolver = None,
        coordinator: RecalculationCoordinator = None,
    ):
        self.store = store
        self.resolver = resolver or HierarchyResolver(store)
        self.guard = AllocationGuard(self.resolver)
        self.coordinator = coordinator or RecalculationCoordinator(store, self.resolver, locks)
        self.hard_block = settings.allocation_hard_block if hard_block is None else hard_block
        self.currency = currency or settings.default_currency

    # --- Helpers ----------------------------------------------------------------

    async def ensure_club(self, club_id: int):
        club = await self.store.get_club(club_id)
        if club is None:
            raise ResourceNotFoundError("Club", club_id)
        return club

    async def _guard_allocation(self, club_id: int, amount) -> AllocationCheck:
        check = await self.guard.check_allocation(club_id, amount)
        if self.hard_block and check.partial:
            # available funds are unknown while any scope is unreadable
            logger.warning("Refusing allocation for club %s: unreadable scopes %s", club_id, check.failed_scopes)
            raise PartialFetchFailure(check.failed_scopes)
        if not check.can_allocate and self.hard_block:
            raise AllocationOverrunError(check.requested, check.available)
        return check

    # --- Mutations --------------------------------------------------------------

    async def create_entry(
        self,
        kind: LedgerKind,
        club_id: int,
        payload: Mapping[str, Any],
    ) -> Tuple[LedgerEntry, RecomputeOutcome, Optional[AllocationCheck]]:
        """
        Record an entry, then refresh every summary above it.

        Income paid as allocated funds is checked against the club's
        available balance first.
        """
        await self.ensure_club(club_id)

        check = None
        if kind == LedgerKind.INCOME and _is_allocation(payload):
            try:
                amount = coerce_amount(payload.get("amount"))
            except AmountCoercionError:
                # Reported by the validator with every other violation
                amount = None
            if amount is not None and amount > ZERO:
                check = await self._guard_allocation(club_id, amount)

        entry = await self.resolver.create_entry(kind, club_id, payload)
        outcome = await self.coordinator.after_mutation(entry)
        return entry, outcome, check

    async def update_entry(
        self,
        kind: LedgerKind,
        club_id: int,
        entry_id: int,
        changes: Mapping[str, Any],
    ) -> Tuple[LedgerEntry, RecomputeOutcome]:
        _, updated = await self.resolver.update_entry(kind, club_id, entry_id, changes)
        outcome = await self.coordinator.after_mutation(updated)
        return updated, outcome

    async def delete_entry(self, kind: LedgerKind, club_id: int, entry_id: int) -> RecomputeOutcome:
        removed = await self.resolver.delete_entry(kind, club_id, entry_id)
        return await self.coordinator.after_mutation(removed)

    # --- Listing ----------------------------------------------------------------

    async def list_entries(
        self,
        kind: LedgerKind,
        club_id: int,
        level: OwnershipLevel,
        target_id: int,
        entry_filter: EntryFilter = None,
    ) -> List[LedgerEntry]:
        """Entries recorded directly at one node (no rollup from below)."""
        if level == OwnershipLevel.CLUB:
            await self.ensure_club(club_id)
            entries = await self.store.list_entries_for_club(kind, club_id)
        elif level == OwnershipLevel.CAMPAIGN:
            await self.resolver.get_campaign(club_id, target_id)
            entries = await self.store.list_entries_for_campaign(kind, target_id)
        else:
            await self.resolver.get_event(club_id, target_id)
            entries = await self.store.list_entries_for_event(kind, target_id)
        return apply_filter(entries, entry_filter or EntryFilter())

    async def collect_all(
        self,
        kind: LedgerKind,
        club_id: int,
        entry_filter: EntryFilter = None,
    ) -> CollectionResult:
        """Every entry the club owns at any level, filtered; partial when a sub-fetch failed."""
        await self.ensure_club(club_id)
        collection = await self.resolver.collect_for_club(kind, club_id)
        return CollectionResult(
            entries=apply_filter(collection.entries, entry_filter or EntryFilter()),
            failed_scopes=collection.failed_scopes,
        )

    async def export_csv(self, kind: LedgerKind, club_id: int, entry_filter: EntryFilter = None) -> str:
        collection = await self.collect_all(kind, club_id, entry_filter)
        if kind == LedgerKind.INCOME:
            return export.income_to_csv(collection.entries)
        return export.expenses_to_csv(collection.entries)

    # --- Financial summaries ------------------------------------------------------

    async def club_financials(self, club_id: int) -> Dict[str, Any]:
        club = await self.ensure_club(club_id)
        income = await self.resolver.collect_for_club(LedgerKind.INCOME, club_id)
        expenses = await self.resolver.collect_for_club(LedgerKind.EXPENSE, club_id)
        summary = summarize_club(club_id, income.entries, expenses.entries)
        display = {
            field: export.format_currency(getattr(summary, field), self.currency)
            for field in (
                "total_income", "total_expenses", "net_profit",
                "pending_expenses", "approved_expenses",
                "allocated_funds", "available_for_allocation",
            )
        }
        return {
            "summary": summary,
            "profit_margin": profit_margin(summary.total_income, summary.total_expenses),
            "currency": self.currency,
            "display": display,
            "summary_stale": club.summary_stale,
            "partial": income.partial or expenses.partial,
            "failed_scopes": income.failed_scopes + expenses.failed_scopes,
        }

    async def campaign_financials(self, club_id: int, campaign_id: int) -> Dict[str, Any]:
        campaign = await self.resolver.get_campaign(club_id, campaign_id)
        events = await self.store.list_events(club_id, campaign_id=campaign_id)
        income = await self.resolver.collect_campaign_entries(LedgerKind.INCOME, campaign, events)
        expenses = await self.resolver.collect_campaign_entries(LedgerKind.EXPENSE, campaign, events)
        summary = summarize_campaign(campaign, income.entries, expenses.entries)
        event_summaries = [
            summarize_event(
                event,
                [e for e in income.entries if e.event_id == event.id],
                [e for e in expenses.entries if e.event_id == event.id],
            )
            for event in events
        ]
        return {
            "summary": summary,
            "events": event_summaries,
            "financial_status": financial_status(summary.total_raised, summary.target_amount),
            "profit_margin": profit_margin(summary.total_raised, summary.total_expenses),
            "currency": self.currency,
            "summary_stale": campaign.summary_stale,
            "partial": income.partial or expenses.partial,
            "failed_scopes": income.failed_scopes + expenses.failed_scopes,
        }

    async def event_financials(self, club_id: int, event_id: int) -> Dict[str, Any]:
        event = await self.resolver.get_event(club_id, event_id)
        income = await self.store.list_entries_for_event(LedgerKind.INCOME, event_id)
        expenses = await self.store.list_entries_for_event(LedgerKind.EXPENSE, event_id)
        summary = summarize_event(event, income, expenses)
        return {
            "summary": summary,
            "financial_status": financial_status(summary.actual_amount, summary.goal_amount),
            "profit_margin": profit_margin(summary.actual_amount, summary.total_expenses),
            "currency": self.currency,
            "summary_stale": event.summary_stale,
        }

    # --- Reports ----------------------------------------------------------------

    async def expenses_by_category(self, club_id: int, entry_filter: EntryFilter = None):
        collection = await self.collect_all(LedgerKind.EXPENSE, club_id, entry_filter)
        return reports.expenses_by_category(collection.entries), collection.partial

    async def income_by_source(self, club_id: int, entry_filter: EntryFilter = None):
        collection = await self.collect_all(LedgerKind.INCOME, club_id, entry_filter)
        return reports.income_by_source(collection.entries), collection.partial

    async def monthly_trends(self, club_id: int, year: int):
        income = await self.collect_all(LedgerKind.INCOME, club_id)
        expenses = await self.collect_all(LedgerKind.EXPENSE, club_id)
        return (
            reports.monthly_trends(income.entries, expenses.entries, year),
            income.partial or expenses.partial,
        )

    async def pending_expenses(self, club_id: int):
        collection = await self.collect_all(LedgerKind.EXPENSE, club_id)
        pending = reports.pending_expenses(collection.entries)
        return pending, total_of(pending), collection.partial

    async def allocated_funds(self, club_id: int):
        collection = await self.collect_all(LedgerKind.INCOME, club_id)
        return reports.allocated_funds_summary(collection.entries), collection.partial

    # --- Allocation -------------------------------------------------------------

    async def check_allocation(self, club_id: int, amount) -> AllocationCheck:
        await self.ensure_club(club_id)
        return await self.guard.check_allocation(club_id, amount)

    async def allocate(
        self,
        club_id: int,
        level: OwnershipLevel,
        target_id: int,
        amount,
        description: str,
        on_date: Optional[str] = None,
    ) -> Tuple[IncomeEntry, AllocationCheck, RecomputeOutcome]:
        """
        Move club money to a campaign or event.

        Advisory unless hard blocking is enabled: an overrun is reported in
        the returned check but still recorded.
        """
        await self.ensure_club(club_id)
        check = await self._guard_allocation(club_id, amount)
        entry = await self.guard.allocate(
            club_id, level, target_id, amount, description,
            on_date=on_date,
        )
        logger.info("Allocated %s to %s %s for club %s", entry.amount, level.value, target_id, club_id)
        outcome = await self.coordinator.after_mutation(entry)
        return entry, check, outcome

    # --- Recalculation ----------------------------------------------------------

    async def recalculate_event(self, club_id: int, event_id: int) -> RecomputeOutcome:
        return await self.coordinator.recalculate_event(club_id, event_id)

    async def recalculate_campaign(self, club_id: int, campaign_id: int) -> RecomputeOutcome:
        return await self.coordinator.recalculate_campaign(club_id, campaign_id)

    async def recalculate_club(self, club_id: int) -> RecomputeOutcome:
        await self.ensure_club(club_id)
        return await self.coordinator.recalculate_club(club_id)


async def get_financial_service(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    redis=Depends(get_redis),
) -> FinancialService:
    """FastAPI dependency building the engine for one request."""
    return FinancialService(
        SqlAlchemyRecordStore(session_factory),
        RecomputeLockRegistry(redis),
    )
