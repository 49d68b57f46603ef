"""
Recalculation coordinator.

After any ledger mutation, recompute the derived metrics of the affected
node and of every ancestor: event, then its campaign, then always the
club. Each recompute starts from scratch, reading every entry the node
owns, so running it twice gives the same result.
"""

import logging
from typing import Awaitable, Callable, List, Optional, TypeVar

from pydantic import BaseModel

from clubfunds.app.core.config import settings
from clubfunds.app.core.exceptions import RecomputeFailure
from clubfunds.app.core.reliability import retry_async
from clubfunds.app.domain.ledger.hierarchy import HierarchyResolver
from clubfunds.app.domain.ledger.records import CampaignNode, EventNode, LedgerEntry
from clubfunds.app.domain.ledger.rollup import (
    CampaignSummary,
    ClubSummary,
    EventSummary,
    summarize_campaign,
    summarize_club,
    summarize_event,
)
from clubfunds.app.models.ledger_enums import LedgerKind, OwnershipLevel

logger = logging.getLogger(__name__)

S = TypeVar("S")


class RecomputeOutcome(BaseModel):
    """What a recompute cascade refreshed, and which nodes it left stale."""
    club_id: int
    stale: bool = False
    stale_nodes: List[str] = []
    event: Optional[EventSummary] = None
    campaign: Optional[CampaignSummary] = None
    club: Optional[ClubSummary] = None


class RecalculationCoordinator:
    """
    Refreshes stored summaries after mutations.

    Args:
        store: record store holding entries and summaries
        resolver: used for multi-scope collection
        locks: registry whose ``lock(club_id, level)`` serializes refreshes
        max_attempts: attempts per node before it is marked stale
        backoff_seconds: base delay between attempts (doubles each retry)
    """

    def __init__(
        self,
        store,
        resolver: HierarchyResolver,
        locks,
        max_attempts: int = None,
        backoff_seconds: float = None,
    ):
        self._store = store
        self._resolver = resolver
        self._locks = locks
        self._max_attempts = max_attempts or settings.recompute_max_attempts
        self._backoff = backoff_seconds if backoff_seconds is not None else settings.recompute_backoff_seconds

    # --- Public API -----------------------------------------------------------

    async def after_mutation(self, entry: LedgerEntry) -> RecomputeOutcome:
        """Refresh the entry's node and its ancestors."""
        outcome = RecomputeOutcome(club_id=entry.club_id)
        campaign_id = entry.campaign_id

        if entry.level == OwnershipLevel.EVENT:
            event = await self._store.get_event(entry.event_id)
            if event is not None:
                outcome.event = await self._refresh_event(event, outcome)
                campaign_id = event.campaign_id

        return await self._cascade(entry.club_id, campaign_id, outcome)

    async def recalculate_event(self, club_id: int, event_id: int) -> RecomputeOutcome:
        event = await self._resolver.get_event(club_id, event_id)
        outcome = RecomputeOutcome(club_id=club_id)
        outcome.event = await self._refresh_event(event, outcome)
        return await self._cascade(club_id, event.campaign_id, outcome)

    async def recalculate_campaign(self, club_id: int, campaign_id: int) -> RecomputeOutcome:
        await self._resolver.get_campaign(club_id, campaign_id)
        return await self._cascade(club_id, campaign_id, RecomputeOutcome(club_id=club_id))

    async def recalculate_club(self, club_id: int) -> RecomputeOutcome:
        return await self._cascade(club_id, None, RecomputeOutcome(club_id=club_id))

    # --- Cascade --------------------------------------------------------------

    async def _cascade(
        self,
        club_id: int,
        campaign_id: Optional[int],
        outcome: RecomputeOutcome,
    ) -> RecomputeOutcome:
        if campaign_id is not None:
            campaign = await self._store.get_campaign(campaign_id)
            if campaign is not None:
                outcome.campaign = await self._refresh_campaign(campaign, outcome)

        outcome.club = await self._refresh_club(club_id, outcome)
        outcome.stale = bool(outcome.stale_nodes)
        if outcome.stale:
            logger.error("Recompute for club %s left stale nodes: %s",
                         club_id, ", ".join(outcome.stale_nodes))
        return outcome

    async def _refresh(
        self,
        club_id: int,
        level: OwnershipLevel,
        node_id: int,
        build: Callable[[], Awaitable[S]],
        save: Callable[[S], Awaitable[None]],
        outcome: RecomputeOutcome,
    ) -> Optional[S]:
        """
        Build and save one node summary under the (club, level) lock.

        On exhaustion the node is flagged stale; the mutation that caused
        the refresh stays committed.
        """
        async def attempt() -> S:
            async with self._locks.lock(club_id, level):
                summary = await build()
                await save(summary)
                return summary

        try:
            return await retry_async(
                attempt,
                operation=f"Recompute {level.value} {node_id}",
                max_attempts=self._max_attempts,
                backoff_seconds=self._backoff,
            )
        except RecomputeFailure as e:
            logger.error("Marking %s %s stale: %s", level.value, node_id, e.message)
            try:
                await self._store.mark_stale(level, node_id)
            except Exception:
                # The store is usually what failed; the outcome still reports the node
                logger.exception("Could not flag %s %s stale", level.value, node_id)
            outcome.stale_nodes.append(f"{level.value}:{node_id}")
            return None

    async def _refresh_event(self, event: EventNode, outcome: RecomputeOutcome) -> Optional[EventSummary]:
        store = self._store

        async def build() -> EventSummary:
            income = await store.list_entries_for_event(LedgerKind.INCOME, event.id)
            expenses = await store.list_entries_for_event(LedgerKind.EXPENSE, event.id)
            return summarize_event(event, income, expenses)

        return await self._refresh(
            event.club_id, OwnershipLevel.EVENT, event.id,
            build, store.save_event_summary, outcome,
        )

    async def _refresh_campaign(
        self,
        campaign: CampaignNode,
        outcome: RecomputeOutcome,
    ) -> Optional[CampaignSummary]:
        store = self._store

        async def build() -> CampaignSummary:
            events = await store.list_events(campaign.club_id, campaign_id=campaign.id)
            income = await self._resolver.collect_campaign_entries(LedgerKind.INCOME, campaign, events)
            income.raise_for_partial()
            expenses = await self._resolver.collect_campaign_entries(LedgerKind.EXPENSE, campaign, events)
            expenses.raise_for_partial()
            return summarize_campaign(campaign, income.entries, expenses.entries)

        return await self._refresh(
            campaign.club_id, OwnershipLevel.CAMPAIGN, campaign.id,
            build, store.save_campaign_summary, outcome,
        )

    async def _refresh_club(self, club_id: int, outcome: RecomputeOutcome) -> Optional[ClubSummary]:
        store = self._store

        async def build() -> ClubSummary:
            campaigns = await store.list_campaigns(club_id)
            events = await store.list_events(club_id)
            income = await self._resolver.collect_club_wide_entries(
                LedgerKind.INCOME, club_id, campaigns, events
            )
            income.raise_for_partial()
            expenses = await self._resolver.collect_club_wide_entries(
                LedgerKind.EXPENSE, club_id, campaigns, events
            )
            expenses.raise_for_partial()
            return summarize_club(club_id, income.entries, expenses.entries)

        return await self._refresh(
            club_id, OwnershipLevel.CLUB, club_id,
            build, store.save_club_summary, outcome,
        )
