"""
Centralized Test Configuration.
"""

import asyncio
from datetime import date, datetime
from typing import Dict, Optional

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import Pool

from clubfunds.app.main import app
from clubfunds.app.db.session import get_session_factory, Base
from clubfunds.app.db.record_store import RecordStore, SqlAlchemyRecordStore
from clubfunds.app.core.redis_client import get_redis
from clubfunds.app.core.jwt import create_access_token
from clubfunds.app.domain.ledger.records import ENTRY_TYPES, ClubNode, CampaignNode, EventNode
from clubfunds.app.models.club import Club
from clubfunds.app.models.campaign import Campaign
from clubfunds.app.models.event import Event
from clubfunds.app.models.ledger_enums import LedgerKind, OwnershipLevel
from clubfunds.app.services.financials import FinancialService
from clubfunds.app.services.recompute_locks import RecomputeLockRegistry
import clubfunds.app.core.redis_client as redis_client_module


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# --- Redis ------------------------------------------------------------------------

class MockLock:
    """Async context manager standing in for a redis-py asyncio Lock."""

    def __init__(self, registry: "MockRedis", name: str):
        self._registry = registry
        self.name = name

    async def __aenter__(self):
        await self._registry.locks.setdefault(self.name, asyncio.Lock()).acquire()
        self._registry.acquired.append(self.name)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self._registry.locks[self.name].release()
        return False


class MockRedis:
    def __init__(self):
        self.store = {}
        self.locks: Dict[str, asyncio.Lock] = {}
        self.acquired = []
        self._closed = False

    async def ping(self):
        return not self._closed

    def lock(self, name, timeout=None, blocking_timeout=None):
        return MockLock(self, name)

    async def aclose(self):
        self._closed = True


@pytest.fixture
def mock_redis():
    return MockRedis()


# --- Database ---------------------------------------------------------------------

@pytest.fixture
async def db_session_factory(tmp_path):
    """
    Fresh SQLite file database per test.

    A file (not :memory:) so each short-lived session the record store opens
    gets its own connection to the same data.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'clubfunds.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def store(db_session_factory):
    return SqlAlchemyRecordStore(db_session_factory)


@pytest.fixture
def service(store, mock_redis):
    return FinancialService(store, RecomputeLockRegistry(mock_redis), hard_block=False, currency="EUR")


@pytest.fixture
async def hierarchy(db_session_factory):
    """
    Two clubs. Club A has a campaign with one event, plus a standalone event.

    Returns the ids as a dict.
    """
    async with db_session_factory() as db:
        club = Club(name="Riverside Rowing Club")
        other = Club(name="Hilltop Hockey Club")
        db.add_all([club, other])
        await db.flush()

        campaign = Campaign(club_id=club.id, name="New Boathouse", target_amount=10000,
                            start_date=date(2024, 1, 1), end_date=date(2024, 12, 31))
        other_campaign = Campaign(club_id=other.id, name="New Sticks", target_amount=500)
        db.add_all([campaign, other_campaign])
        await db.flush()

        gala = Event(club_id=club.id, campaign_id=campaign.id, title="Spring Gala",
                     goal_amount=2000, event_date=date(2024, 3, 1))
        quiz = Event(club_id=club.id, title="Quiz Night", goal_amount=300, event_date=date(2024, 4, 12))
        db.add_all([gala, quiz])
        await db.commit()

        return {
            "club_id": club.id,
            "other_club_id": other.id,
            "campaign_id": campaign.id,
            "other_campaign_id": other_campaign.id,
            "event_id": gala.id,
            "standalone_event_id": quiz.id,
        }


# --- HTTP -------------------------------------------------------------------------

@pytest.fixture
async def client(db_session_factory, mock_redis):
    """Async client with the database and Redis dependencies overridden."""
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = mock_redis

    async def override_get_session_factory():
        return db_session_factory

    async def override_get_redis():
        return mock_redis

    app.dependency_overrides[get_session_factory] = override_get_session_factory
    app.dependency_overrides[get_redis] = override_get_redis

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client


def token_headers(club_id: int, user_id: int = 1) -> dict:
    token = create_access_token(data={"sub": "treasurer@example.org", "user_id": user_id, "club_id": club_id})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(hierarchy):
    return token_headers(hierarchy["club_id"])


# --- In-memory store --------------------------------------------------------------

class InMemoryRecordStore(RecordStore):
    """
    RecordStore kept in dicts, with switches for injecting failures.

    ``fail(scope, times)`` makes list calls for a scope such as "campaign:2"
    raise ConnectionError (``times=None`` means always); ``delays`` slows a
    scope down; ``max_in_flight`` records peak concurrent list calls.
    """

    def __init__(self):
        self.entries = {LedgerKind.INCOME: {}, LedgerKind.EXPENSE: {}}
        self.clubs: Dict[int, ClubNode] = {}
        self.campaigns: Dict[int, CampaignNode] = {}
        self.events: Dict[int, EventNode] = {}
        self.summaries = {}
        self.stale = set()
        self.failing: Dict[str, Optional[int]] = {}
        self.delays: Dict[str, float] = {}
        self.default_delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0
        self.save_failures = 0
        self._next_id = 1

    # Seeding
    def add_club(self, club_id: int, name: str = "Club") -> ClubNode:
        self.clubs[club_id] = ClubNode(id=club_id, name=name)
        return self.clubs[club_id]

    def add_campaign(self, campaign_id: int, club_id: int, target_amount=0, name: str = "Campaign") -> CampaignNode:
        self.campaigns[campaign_id] = CampaignNode(
            id=campaign_id, club_id=club_id, name=name, target_amount=target_amount
        )
        return self.campaigns[campaign_id]

    def add_event(self, event_id: int, club_id: int, campaign_id: int = None, goal_amount=0, title: str = "Event") -> EventNode:
        self.events[event_id] = EventNode(
            id=event_id, club_id=club_id, campaign_id=campaign_id, title=title, goal_amount=goal_amount
        )
        return self.events[event_id]

    def fail(self, scope: str, times: Optional[int] = None) -> None:
        self.failing[scope] = times

    async def _scoped(self, scope: str, rows):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.delays.get(scope, self.default_delay)
            if delay:
                await asyncio.sleep(delay)
            if scope in self.failing:
                remaining = self.failing[scope]
                if remaining is None or remaining > 0:
                    if remaining is not None:
                        self.failing[scope] = remaining - 1
                    raise ConnectionError(f"{scope} unavailable")
            return sorted(rows, key=lambda e: e.date, reverse=True)
        finally:
            self.in_flight -= 1

    # Entries
    async def create_entry(self, kind, data):
        entry = ENTRY_TYPES[kind](id=self._next_id, created_at=datetime.now(), **data)
        self.entries[kind][entry.id] = entry
        self._next_id += 1
        return entry

    async def update_entry(self, kind, entry_id, changes):
        existing = self.entries[kind].get(entry_id)
        if existing is None:
            return None
        updated = ENTRY_TYPES[kind](**{**existing.model_dump(), **changes})
        self.entries[kind][entry_id] = updated
        return updated

    async def delete_entry(self, kind, entry_id):
        return self.entries[kind].pop(entry_id, None) is not None

    async def get_entry(self, kind, entry_id):
        return self.entries[kind].get(entry_id)

    async def list_entries_for_club(self, kind, club_id):
        rows = [e for e in self.entries[kind].values()
                if e.club_id == club_id and e.level == OwnershipLevel.CLUB]
        return await self._scoped(f"club:{club_id}", rows)

    async def list_entries_for_campaign(self, kind, campaign_id):
        rows = [e for e in self.entries[kind].values() if e.campaign_id == campaign_id]
        return await self._scoped(f"campaign:{campaign_id}", rows)

    async def list_entries_for_event(self, kind, event_id):
        rows = [e for e in self.entries[kind].values() if e.event_id == event_id]
        return await self._scoped(f"event:{event_id}", rows)

    # Nodes
    async def get_club(self, club_id):
        return self.clubs.get(club_id)

    async def get_campaign(self, campaign_id):
        return self.campaigns.get(campaign_id)

    async def get_event(self, event_id):
        return self.events.get(event_id)

    async def list_campaigns(self, club_id):
        return [c for c in self.campaigns.values() if c.club_id == club_id]

    async def list_events(self, club_id, campaign_id=None):
        return [
            e for e in self.events.values()
            if e.club_id == club_id and (campaign_id is None or e.campaign_id == campaign_id)
        ]

    # Summaries
    async def _save(self, key, summary):
        if self.save_failures:
            self.save_failures -= 1
            raise ConnectionError("summary write failed")
        self.summaries[key] = summary
        self.stale.discard(key)

    async def save_event_summary(self, summary):
        await self._save((OwnershipLevel.EVENT, summary.event_id), summary)

    async def save_campaign_summary(self, summary):
        await self._save((OwnershipLevel.CAMPAIGN, summary.campaign_id), summary)

    async def save_club_summary(self, summary):
        await self._save((OwnershipLevel.CLUB, summary.club_id), summary)

    async def mark_stale(self, level, node_id):
        self.stale.add((level, node_id))


@pytest.fixture
def memory_store():
    """Club 1 with campaign 10 (events 100, 101) and standalone event 200; club 2 with campaign 20."""
    store = InMemoryRecordStore()
    store.add_club(1, "Riverside Rowing Club")
    store.add_club(2, "Hilltop Hockey Club")
    store.add_campaign(10, club_id=1, target_amount=5000)
    store.add_campaign(20, club_id=2, target_amount=100)
    store.add_event(100, club_id=1, campaign_id=10, goal_amount=2000)
    store.add_event(101, club_id=1, campaign_id=10, goal_amount=1000)
    store.add_event(200, club_id=1, goal_amount=300)
    return store
