"""
Hierarchy resolver.

Classifies entries into Club / Campaign / Event, stores validated
mutations, and gathers every entry relevant to a club or campaign from
many independent sub-scopes with bounded concurrency.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel

from clubfunds.app.core.config import settings
from clubfunds.app.core.exceptions import (
    InsufficientPermissionsError,
    MutualExclusivityError,
    PartialFetchFailure,
    ResourceNotFoundError,
    ValidationError,
)
from clubfunds.app.domain.ledger.coercion import coerce_amount, coerce_date
from clubfunds.app.domain.ledger.records import (
    LedgerEntry,
    CampaignNode,
    EventNode,
    normalize_payment_method,
)
from clubfunds.app.domain.ledger.validator import ensure_valid
from clubfunds.app.models.ledger_enums import LedgerKind, OwnershipLevel

logger = logging.getLogger(__name__)

# Fields a caller may change after creation (level is fixed)
UPDATABLE_FIELDS = {
    LedgerKind.INCOME: {"source", "description", "amount", "date", "payment_method", "reference"},
    LedgerKind.EXPENSE: {
        "category", "description", "amount", "date", "vendor",
        "payment_method", "status", "receipt_url",
    },
}

CREATABLE_FIELDS = {
    kind: fields | {"campaign_id", "event_id"}
    for kind, fields in UPDATABLE_FIELDS.items()
}
CREATABLE_FIELDS[LedgerKind.EXPENSE] = CREATABLE_FIELDS[LedgerKind.EXPENSE] | {"created_by"}


def classify(entry: Any) -> OwnershipLevel:
    """Event if event_id is set, else Campaign if campaign_id is set, else Club."""
    if getattr(entry, "event_id", None) is not None:
        return OwnershipLevel.EVENT
    if getattr(entry, "campaign_id", None) is not None:
        return OwnershipLevel.CAMPAIGN
    return OwnershipLevel.CLUB


class CollectionResult(BaseModel):
    """Entries gathered across sub-scopes, plus the scopes that failed."""
    entries: List[Any] = []
    failed_scopes: List[str] = []

    @property
    def partial(self) -> bool:
        return bool(self.failed_scopes)

    def raise_for_partial(self) -> None:
        if self.failed_scopes:
            raise PartialFetchFailure(self.failed_scopes)


def _normalize(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Convert a validated payload into storage-ready values."""
    out = dict(data)
    if "amount" in out:
        out["amount"] = coerce_amount(out["amount"])
    if "date" in out:
        out["date"] = coerce_date(out["date"])
    if out.get("payment_method") is not None:
        out["payment_method"] = normalize_payment_method(out["payment_method"])
    if out.get("status") is not None:
        out["status"] = str(getattr(out["status"], "value", out["status"])).strip().lower()
    for text_field in ("source", "category", "description"):
        if isinstance(out.get(text_field), str):
            out[text_field] = out[text_field].strip()
    return out


class HierarchyResolver:
    """
    Entry point for ledger mutations and club-wide collection.

    Args:
        store: record store used for every read and write
        concurrency: maximum sub-fetches in flight at once
        fetch_timeout: seconds before a single sub-fetch counts as failed
    """

    def __init__(self, store, concurrency: int = None, fetch_timeout: float = None):
        self._store = store
        self._concurrency = concurrency or settings.fetch_concurrency
        self._fetch_timeout = fetch_timeout if fetch_timeout is not None else settings.fetch_timeout_seconds

    # --- Targets ------------------------------------------------------------

    async def get_campaign(self, club_id: int, campaign_id: int) -> CampaignNode:
        campaign = await self._store.get_campaign(campaign_id)
        if campaign is None:
            raise ResourceNotFoundError("Campaign", campaign_id)
        if campaign.club_id != club_id:
            raise InsufficientPermissionsError(
                message="Access denied. This campaign belongs to another club."
            )
        return campaign

    async def get_event(self, club_id: int, event_id: int) -> EventNode:
        event = await self._store.get_event(event_id)
        if event is None:
            raise ResourceNotFoundError("Event", event_id)
        if event.club_id != club_id:
            raise InsufficientPermissionsError(
                message="Access denied. This event belongs to another club."
            )
        return event

    async def get_entry(self, kind: LedgerKind, club_id: int, entry_id: int) -> LedgerEntry:
        entry = await self._store.get_entry(kind, entry_id)
        if entry is None or entry.club_id != club_id:
            raise ResourceNotFoundError(kind.value.capitalize(), entry_id)
        return entry

    # --- Mutations ----------------------------------------------------------

    async def create_entry(self, kind: LedgerKind, club_id: int, payload: Mapping[str, Any]) -> LedgerEntry:
        """
        Validate and store a new entry.

        The entry's level comes from campaign_id / event_id in the payload;
        the target must exist and belong to the club.
        """
        data = {k: v for k, v in payload.items() if k in CREATABLE_FIELDS[kind]}
        ensure_valid(kind, data)

        if data.get("event_id") is not None:
            await self.get_event(club_id, data["event_id"])
        elif data.get("campaign_id") is not None:
            await self.get_campaign(club_id, data["campaign_id"])

        data = _normalize(data)
        data["club_id"] = club_id
        entry = await self._store.create_entry(kind, data)
        logger.info(
            "Created %s %s at %s level for club %s",
            kind.value, entry.id, entry.level.value, club_id,
        )
        return entry

    async def update_entry(
        self,
        kind: LedgerKind,
        club_id: int,
        entry_id: int,
        changes: Mapping[str, Any],
    ) -> Tuple[LedgerEntry, LedgerEntry]:
        """
        Validate and apply changes to an existing entry.

        Moving an entry to another campaign or event is not an update;
        callers delete and recreate it.

        Returns:
            (previous, updated)
        """
        existing = await self.get_entry(kind, club_id, entry_id)

        moves = [
            field for field in ("campaign_id", "event_id")
            if field in changes and changes[field] != getattr(existing, field)
        ]
        if moves:
            noun = kind.value.capitalize()
            errors = [
                f"{noun} cannot be moved to a different campaign or event; "
                f"delete it and record it again at the new level"
            ]
            if changes.get("campaign_id") is not None and changes.get("event_id") is not None:
                errors.append(f"{noun} cannot be assigned to both event and campaign")
            raise MutualExclusivityError(errors)

        updates = {
            k: v for k, v in changes.items()
            if k in UPDATABLE_FIELDS[kind] and v is not None
        }
        if not updates:
            raise ValidationError(["No valid fields to update"])

        merged = existing.model_dump()
        merged.update(updates)
        ensure_valid(kind, merged)

        updated = await self._store.update_entry(kind, entry_id, _normalize(updates))
        if updated is None:
            raise ResourceNotFoundError(kind.value.capitalize(), entry_id)
        logger.info("Updated %s %s (%s)", kind.value, entry_id, ", ".join(sorted(updates)))
        return existing, updated

    async def delete_entry(self, kind: LedgerKind, club_id: int, entry_id: int) -> LedgerEntry:
        """Delete an entry and return what was removed."""
        existing = await self.get_entry(kind, club_id, entry_id)
        deleted = await self._store.delete_entry(kind, entry_id)
        if not deleted:
            raise ResourceNotFoundError(kind.value.capitalize(), entry_id)
        logger.info("Deleted %s %s from club %s", kind.value, entry_id, club_id)
        return existing

    # --- Collection ---------------------------------------------------------

    async def _collect(
        self,
        fetches: Sequence[Tuple[str, Callable[[], Awaitable[List[LedgerEntry]]]]],
    ) -> CollectionResult:
        semaphore = asyncio.Semaphore(self._concurrency)

        async def run(scope: str, fetch):
            async with semaphore:
                try:
                    return scope, await asyncio.wait_for(fetch(), timeout=self._fetch_timeout), None
                except asyncio.TimeoutError:
                    return scope, [], f"timed out after {self._fetch_timeout}s"
                except Exception as e:
                    return scope, [], f"{type(e).__name__}: {e}"

        results = await asyncio.gather(*(run(scope, fetch) for scope, fetch in fetches))

        seen = set()
        entries: List[LedgerEntry] = []
        failed: List[str] = []
        for scope, scope_entries, error in results:
            if error is not None:
                logger.warning("Ledger sub-fetch for %s failed: %s", scope, error)
                failed.append(scope)
                continue
            for entry in scope_entries:
                key = entry.id if entry.id is not None else id(entry)
                if key in seen:
                    continue
                seen.add(key)
                entries.append(entry)

        # Stable: ties keep club -> campaign -> event fetch order
        entries.sort(key=lambda e: e.date, reverse=True)
        return CollectionResult(entries=entries, failed_scopes=failed)

    async def collect_club_wide_entries(
        self,
        kind: LedgerKind,
        club_id: int,
        campaigns: Sequence[CampaignNode],
        events: Sequence[EventNode],
    ) -> CollectionResult:
        """
        Gather every entry of one kind across a club, its campaigns and its events.

        A failed or slow sub-fetch contributes no entries and is listed in
        ``failed_scopes``; it never aborts the collection.
        """
        store = self._store
        fetches = [(f"club:{club_id}", lambda: store.list_entries_for_club(kind, club_id))]
        fetches += [
            (f"campaign:{c.id}", lambda cid=c.id: store.list_entries_for_campaign(kind, cid))
            for c in campaigns
        ]
        fetches += [
            (f"event:{e.id}", lambda eid=e.id: store.list_entries_for_event(kind, eid))
            for e in events
        ]
        return await self._collect(fetches)

    async def collect_campaign_entries(
        self,
        kind: LedgerKind,
        campaign: CampaignNode,
        events: Sequence[EventNode],
    ) -> CollectionResult:
        """Gather a campaign's own entries plus those of its events."""
        store = self._store
        fetches = [(f"campaign:{campaign.id}", lambda: store.list_entries_for_campaign(kind, campaign.id))]
        fetches += [
            (f"event:{e.id}", lambda eid=e.id: store.list_entries_for_event(kind, eid))
            for e in events
            if e.campaign_id == campaign.id
        ]
        return await self._collect(fetches)

    async def collect_for_club(self, kind: LedgerKind, club_id: int) -> CollectionResult:
        """Load the club's campaigns and events, then collect club-wide."""
        campaigns = await self._store.list_campaigns(club_id)
        events = await self._store.list_events(club_id)
        return await self.collect_club_wide_entries(kind, club_id, campaigns, events)
