"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.pool import StaticPool

from vigil.config import VigilConfig
from vigil.database.models import Base
from vigil.engine.membership import MembershipSnapshot, RemovalError
from vigil.services.core_service import VigilCore
from vigil.services.state_store import StateStore

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced clock; call it like ``utcnow()``."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeMembership:
    """MembershipSource serving canned snapshots."""

    def __init__(self) -> None:
        self.snapshots: dict[int, MembershipSnapshot] = {}
        self.error: Exception | None = None
        self.calls: list[int] = []

    async def fetch_snapshot(self, guild_id: int) -> MembershipSnapshot:
        self.calls.append(guild_id)
        if self.error is not None:
            raise self.error
        return self.snapshots.get(guild_id, MembershipSnapshot(guild_id=guild_id))


class FakeRemover:
    """MemberRemover that records calls and fails for selected ids."""

    def __init__(self, failing: set[int] | None = None) -> None:
        self.failing = failing or set()
        self.removed: list[tuple[int, int, str]] = []
        self.attempts: list[int] = []

    async def remove_member(self, guild_id: int, member_id: int, reason: str) -> None:
        self.attempts.append(member_id)
        if member_id in self.failing:
            raise RemovalError("Missing Permissions")
        self.removed.append((guild_id, member_id, reason))


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all Vigil tables.

    Uses StaticPool so every thread shares the same in-memory database
    (required by ``asyncio.to_thread`` inside ``run_db``).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def store(db_engine: Engine) -> StateStore:
    return StateStore(db_engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def membership() -> FakeMembership:
    return FakeMembership()


@pytest.fixture
def remover() -> FakeRemover:
    return FakeRemover()


@pytest.fixture
def cfg() -> VigilConfig:
    return VigilConfig(eviction_delay_seconds=0)


@pytest.fixture
def make_core(cfg, store, membership, remover, clock):
    """Factory building a VigilCore over the shared fakes."""

    async def _no_sleep(_seconds: float) -> None:
        return None

    def _make(core_cfg: VigilConfig | None = None, **overrides) -> VigilCore:
        kwargs = dict(
            membership=membership,
            remover=remover,
            clock=clock,
            sleep=_no_sleep,
        )
        kwargs.update(overrides)
        return VigilCore.load(core_cfg or cfg, store, **kwargs)

    return _make
