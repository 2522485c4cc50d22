"""Shared fixtures."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.dialects import postgresql

from app.main import app
from app.services.leaderboard import LeaderboardEntry, WagerTotals, build_leaderboard


@pytest.fixture
async def client():
    """Create test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


def make_entry(uid: str, name: str | None = None, **wagered: float) -> LeaderboardEntry:
    return LeaderboardEntry(uid=uid, name=name or f"user-{uid}", wagered=WagerTotals(**wagered))


@pytest.fixture
def sample_entries() -> list[LeaderboardEntry]:
    return [
        make_entry("u1", "alice", today=10, this_week=100, this_month=1_000, all_time=50_000),
        make_entry("u2", "bob", today=0, this_week=300, this_month=3_000, all_time=3_000),
        make_entry("u3", "carol", today=5, this_week=0, this_month=2_000, all_time=2_500_000),
        make_entry("u4", "dave", today=0, this_week=0, this_month=0, all_time=0),
    ]


@pytest.fixture
def sample_leaderboard(sample_entries):
    return build_leaderboard(sample_entries, now=datetime(2026, 4, 15, 12, 0, tzinfo=timezone.utc))


class FakeResult:
    """Result of a FakeSession.execute() call."""

    def __init__(self, rows=None, rowcount: int = 0):
        self.rows = list(rows or [])
        self.rowcount = rowcount

    def scalars(self):
        return self

    def all(self):
        return list(self.rows)

    def scalar_one(self):
        return self.rows[0]

    def scalar_one_or_none(self):
        return self.rows[0] if self.rows else None


class FakeSession:
    """Stand-in for AsyncSession.

    Records executed statements and replays queued results in order. `fail_on`
    may raise for a given statement; `fail_on_add` for an added object.
    """

    def __init__(self, results=None, objects=None, fail_on=None, fail_on_add=None):
        self.results = list(results or [])
        self.objects = dict(objects or {})
        self.fail_on = fail_on
        self.fail_on_add = fail_on_add
        self.statements = []
        self.added = []
        self.flushes = 0
        self.savepoints = 0
        self.failed_savepoints = 0
        self._next_id = 100

    async def execute(self, stmt):
        self.statements.append(stmt)
        if self.fail_on is not None:
            self.fail_on(stmt)
        return self.results.pop(0) if self.results else FakeResult()

    def add(self, obj):
        if self.fail_on_add is not None:
            self.fail_on_add(obj)
        self.added.append(obj)

    async def flush(self):
        self.flushes += 1
        for obj in self.added:
            if hasattr(obj, "id") and obj.id is None:
                obj.id = self._next_id
                self._next_id += 1

    async def get(self, model, ident):
        return self.objects.get((model, ident))

    @asynccontextmanager
    async def begin_nested(self):
        self.savepoints += 1
        try:
            yield
        except Exception:
            self.failed_savepoints += 1
            raise


def sessions_of(session: FakeSession):
    """get_session() replacement that always yields `session`."""

    @asynccontextmanager
    async def fake_session():
        yield session

    return fake_session


def statement_params(stmt) -> dict:
    """Bound parameters of a statement compiled for Postgres."""
    return stmt.compile(dialect=postgresql.dialect()).params


@asynccontextmanager
async def fake_get_session():
    yield FakeSession()
