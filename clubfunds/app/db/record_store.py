"""
Record store.

Persistence adapter between the financial engine and the database.
Every operation opens its own short-lived session from the factory, so
concurrent callers (the resolver's parallel sub-fetches) never share one.
Rows are handed back as immutable domain records.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, delete
from sqlalchemy.ext.asyncio import async_sessionmaker

from clubfunds.app.domain.ledger.records import (
    ENTRY_TYPES,
    LedgerEntry,
    ClubNode,
    CampaignNode,
    EventNode,
)
from clubfunds.app.domain.ledger.rollup import CampaignSummary, ClubSummary, EventSummary
from clubfunds.app.models.club import Club
from clubfunds.app.models.campaign import Campaign
from clubfunds.app.models.event import Event
from clubfunds.app.models.income import Income
from clubfunds.app.models.expense import Expense
from clubfunds.app.models.ledger_enums import (
    LedgerKind,
    OwnershipLevel,
    IncomePaymentMethod,
    ExpensePaymentMethod,
    ExpenseStatus,
)

logger = logging.getLogger(__name__)

ENTRY_MODELS = {
    LedgerKind.INCOME: Income,
    LedgerKind.EXPENSE: Expense,
}

NODE_MODELS = {
    OwnershipLevel.CLUB: Club,
    OwnershipLevel.CAMPAIGN: Campaign,
    OwnershipLevel.EVENT: Event,
}


class RecordStore(ABC):
    """Storage operations the engine depends on."""

    @abstractmethod
    async def create_entry(self, kind: LedgerKind, data: Dict[str, Any]) -> LedgerEntry: ...

    @abstractmethod
    async def update_entry(self, kind: LedgerKind, entry_id: int, changes: Dict[str, Any]) -> Optional[LedgerEntry]: ...

    @abstractmethod
    async def delete_entry(self, kind: LedgerKind, entry_id: int) -> bool: ...

    @abstractmethod
    async def get_entry(self, kind: LedgerKind, entry_id: int) -> Optional[LedgerEntry]: ...

    @abstractmethod
    async def list_entries_for_club(self, kind: LedgerKind, club_id: int) -> List[LedgerEntry]:
        """Club-level entries only (no campaign, no event)."""

    @abstractmethod
    async def list_entries_for_campaign(self, kind: LedgerKind, campaign_id: int) -> List[LedgerEntry]: ...

    @abstractmethod
    async def list_entries_for_event(self, kind: LedgerKind, event_id: int) -> List[LedgerEntry]: ...

    @abstractmethod
    async def get_club(self, club_id: int) -> Optional[ClubNode]: ...

    @abstractmethod
    async def get_campaign(self, campaign_id: int) -> Optional[CampaignNode]: ...

    @abstractmethod
    async def get_event(self, event_id: int) -> Optional[EventNode]: ...

    @abstractmethod
    async def list_campaigns(self, club_id: int) -> List[CampaignNode]: ...

    @abstractmethod
    async def list_events(self, club_id: int, campaign_id: Optional[int] = None) -> List[EventNode]: ...

    @abstractmethod
    async def save_event_summary(self, summary: EventSummary) -> None: ...

    @abstractmethod
    async def save_campaign_summary(self, summary: CampaignSummary) -> None: ...

    @abstractmethod
    async def save_club_summary(self, summary: ClubSummary) -> None: ...

    @abstractmethod
    async def mark_stale(self, level: OwnershipLevel, node_id: int) -> None: ...


def _to_columns(kind: LedgerKind, data: Dict[str, Any]) -> Dict[str, Any]:
    """Map normalized entry values onto column types (enum columns take members)."""
    out = dict(data)
    if out.get("payment_method") is not None:
        method_enum = IncomePaymentMethod if kind == LedgerKind.INCOME else ExpensePaymentMethod
        out["payment_method"] = method_enum(out["payment_method"])
    if out.get("status") is not None:
        out["status"] = ExpenseStatus(out["status"])
    return out


class SqlAlchemyRecordStore(RecordStore):
    """
    RecordStore backed by SQLAlchemy async sessions.

    Args:
        session_factory: ``async_sessionmaker`` producing AsyncSession objects
    """

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    # --- Entries ----------------------------------------------------------------

    async def create_entry(self, kind: LedgerKind, data: Dict[str, Any]) -> LedgerEntry:
        model = ENTRY_MODELS[kind]
        async with self._session_factory() as db:
            row = model(**_to_columns(kind, data))
            db.add(row)
            await db.commit()
            await db.refresh(row)
            return ENTRY_TYPES[kind].model_validate(row)

    async def update_entry(self, kind: LedgerKind, entry_id: int, changes: Dict[str, Any]) -> Optional[LedgerEntry]:
        model = ENTRY_MODELS[kind]
        async with self._session_factory() as db:
            row = await db.get(model, entry_id)
            if row is None:
                return None
            for field, value in _to_columns(kind, changes).items():
                setattr(row, field, value)
            await db.commit()
            await db.refresh(row)
            return ENTRY_TYPES[kind].model_validate(row)

    async def delete_entry(self, kind: LedgerKind, entry_id: int) -> bool:
        model = ENTRY_MODELS[kind]
        async with self._session_factory() as db:
            result = await db.execute(delete(model).where(model.id == entry_id))
            await db.commit()
            return result.rowcount > 0

    async def get_entry(self, kind: LedgerKind, entry_id: int) -> Optional[LedgerEntry]:
        async with self._session_factory() as db:
            row = await db.get(ENTRY_MODELS[kind], entry_id)
            return ENTRY_TYPES[kind].model_validate(row) if row is not None else None

    async def _list_entries(self, kind: LedgerKind, *criteria) -> List[LedgerEntry]:
        model = ENTRY_MODELS[kind]
        async with self._session_factory() as db:
            result = await db.execute(
                select(model).where(*criteria).order_by(model.date.desc(), model.id.desc())
            )
            return [ENTRY_TYPES[kind].model_validate(row) for row in result.scalars().all()]

    async def list_entries_for_club(self, kind: LedgerKind, club_id: int) -> List[LedgerEntry]:
        model = ENTRY_MODELS[kind]
        return await self._list_entries(
            kind,
            model.club_id == club_id,
            model.campaign_id.is_(None),
            model.event_id.is_(None),
        )

    async def list_entries_for_campaign(self, kind: LedgerKind, campaign_id: int) -> List[LedgerEntry]:
        return await self._list_entries(kind, ENTRY_MODELS[kind].campaign_id == campaign_id)

    async def list_entries_for_event(self, kind: LedgerKind, event_id: int) -> List[LedgerEntry]:
        return await self._list_entries(kind, ENTRY_MODELS[kind].event_id == event_id)

    # --- Hierarchy nodes ----------------------------------------------------------

    async def get_club(self, club_id: int) -> Optional[ClubNode]:
        async with self._session_factory() as db:
            row = await db.get(Club, club_id)
            return ClubNode.model_validate(row) if row is not None else None

    async def get_campaign(self, campaign_id: int) -> Optional[CampaignNode]:
        async with self._session_factory() as db:
            row = await db.get(Campaign, campaign_id)
            return CampaignNode.model_validate(row) if row is not None else None

    async def get_event(self, event_id: int) -> Optional[EventNode]:
        async with self._session_factory() as db:
            row = await db.get(Event, event_id)
            return EventNode.model_validate(row) if row is not None else None

    async def list_campaigns(self, club_id: int) -> List[CampaignNode]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Campaign).where(Campaign.club_id == club_id).order_by(Campaign.id)
            )
            return [CampaignNode.model_validate(row) for row in result.scalars().all()]

    async def list_events(self, club_id: int, campaign_id: Optional[int] = None) -> List[EventNode]:
        query = select(Event).where(Event.club_id == club_id)
        if campaign_id is not None:
            query = query.where(Event.campaign_id == campaign_id)
        async with self._session_factory() as db:
            result = await db.execute(query.order_by(Event.id))
            return [EventNode.model_validate(row) for row in result.scalars().all()]

    # --- Summaries ----------------------------------------------------------------

    async def _save_summary(self, model, node_id: int, values: Dict[str, Any]) -> None:
        values = dict(values, summary_stale=False, summary_updated_at=datetime.now(timezone.utc))
        async with self._session_factory() as db:
            await db.execute(update(model).where(model.id == node_id).values(**values))
            await db.commit()

    async def save_event_summary(self, summary: EventSummary) -> None:
        await self._save_summary(Event, summary.event_id, {
            "actual_amount": summary.actual_amount,
            "total_expenses": summary.total_expenses,
            "net_profit": summary.net_profit,
        })

    async def save_campaign_summary(self, summary: CampaignSummary) -> None:
        await self._save_summary(Campaign, summary.campaign_id, {
            "total_raised": summary.total_raised,
            "total_expenses": summary.total_expenses,
            "total_profit": summary.total_profit,
            "progress_percentage": summary.progress_percentage,
        })

    async def save_club_summary(self, summary: ClubSummary) -> None:
        await self._save_summary(Club, summary.club_id, {
            "total_income": summary.total_income,
            "total_expenses": summary.total_expenses,
            "net_profit": summary.net_profit,
            "pending_expenses": summary.pending_expenses,
            "approved_expenses": summary.approved_expenses,
            "allocated_funds": summary.allocated_funds,
            "available_for_allocation": summary.available_for_allocation,
        })

    async def mark_stale(self, level: OwnershipLevel, node_id: int) -> None:
        model = NODE_MODELS[level]
        async with self._session_factory() as db:
            await db.execute(update(model).where(model.id == node_id).values(summary_stale=True))
            await db.commit()
        logger.warning("Marked %s %s summary stale", level.value, node_id)
