"""Leaderboard sync: Goated API → local tables.

Two mirrors are maintained from the same upstream fetch:
1. leaderboard_users: active users only (all-time wager > 0), upserted by uid
   in batches, every column overwritten; a failing batch is retried per user
2. goated_wager_leaderboard: every user, insert-once name, wager columns and
   last_synced only touched when a total changed

Every run writes a sync_logs row (success or error). run_full_sync() holds a
Redis lock so scheduled and manual runs never overlap, and drops the cached
leaderboard payload afterwards.
"""

import logging
import time
from collections.abc import Iterator
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import GoatedWagerLeaderboard, LeaderboardUser, SyncLog
from app.models.sync_log import SYNC_STATUS_ERROR, SYNC_STATUS_SUCCESS
from app.services.goated_client import get_goated_client
from app.services.leaderboard import (
    LeaderboardData,
    LeaderboardEntry,
    build_leaderboard,
    dedupe_entries,
    leaderboard_from_payload,
)
from app.services.overrides import apply_wager_overrides, load_active_overrides
from app.settings import get_settings
from app.stores.postgres import get_session
from app.stores.redis import (
    acquire_lock,
    get_leaderboard_cache,
    invalidate_leaderboard_caches,
    release_lock,
    set_leaderboard_cache,
)

logger = logging.getLogger("uvicorn.error")

SYNC_LOCK_KEY = "leaderboard_sync"

SYNC_TYPE_USERS = "leaderboard_users"
SYNC_TYPE_WAGER = "wager_leaderboard"

# Wager fields compared for change detection (entry field -> column)
_WAGER_COLUMNS = {
    "today": "wagered_today",
    "this_week": "wagered_this_week",
    "this_month": "wagered_this_month",
    "all_time": "wagered_all_time",
}


@dataclass
class SyncResult:
    """Result of a leaderboard_users sync."""

    total_users: int = 0
    active_users: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    duration_ms: float = 0.0


@dataclass
class WagerSyncResult:
    """Result of a goated_wager_leaderboard sync."""

    processed: int = 0
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    errors: int = 0
    duration_ms: float = 0.0


@dataclass
class FullSyncResult:
    skipped: bool = False
    users: SyncResult | None = None
    wager: WagerSyncResult | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "skipped": self.skipped,
            "users": asdict(self.users) if self.users else None,
            "wager": asdict(self.wager) if self.wager else None,
            "started_at": self.started_at.isoformat(),
        }


# ============================================================
# Pure helpers
# ============================================================


def is_active_user(entry: LeaderboardEntry) -> bool:
    return entry.wagered.all_time > 0


def chunked(items: list, size: int) -> Iterator[list]:
    """Split a list into consecutive batches of at most `size` items."""
    if size < 1:
        raise ValueError("batch size must be >= 1")
    for start in range(0, len(items), size):
        yield items[start : start + size]


def wager_changed(row: GoatedWagerLeaderboard, entry: LeaderboardEntry) -> bool:
    """True if any of the four stored totals differs from the fetched entry."""
    for entry_field, column in _WAGER_COLUMNS.items():
        stored = float(getattr(row, column) or 0)
        if abs(stored - getattr(entry.wagered, entry_field)) > 1e-8:
            return True
    return False


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


# ============================================================
# Sync logs
# ============================================================


async def record_sync_log(
    sync_type: str,
    status: str,
    duration_ms: float,
    records_processed: int = 0,
    records_updated: int = 0,
    error_message: str | None = None,
) -> None:
    # Own session so an error log survives the rollback of the failed sync.
    try:
        async with get_session() as session:
            session.add(
                SyncLog(
                    type=sync_type,
                    status=status,
                    error_message=error_message,
                    duration_ms=duration_ms,
                    records_processed=records_processed,
                    records_updated=records_updated,
                )
            )
    except Exception:
        logger.exception(f"Failed to write sync log for {sync_type}")


async def get_recent_sync_logs(limit: int = 20) -> list[SyncLog]:
    async with get_session() as session:
        result = await session.execute(
            select(SyncLog).order_by(SyncLog.created_at.desc(), SyncLog.id.desc()).limit(limit)
        )
        return list(result.scalars().all())


# ============================================================
# leaderboard_users
# ============================================================


async def _upsert_leaderboard_users(session: AsyncSession, batch: list[LeaderboardEntry]) -> None:
    rows = [
        {
            "uid": e.uid,
            "name": e.name,
            "wager_today": e.wagered.today,
            "wager_week": e.wagered.this_week,
            "wager_month": e.wagered.this_month,
            "wager_all_time": e.wagered.all_time,
        }
        for e in batch
    ]
    stmt = pg_insert(LeaderboardUser).values(rows)
    stmt = stmt.on_conflict_do_update(
        index_elements=[LeaderboardUser.uid],
        set_={
            "name": stmt.excluded.name,
            "wager_today": stmt.excluded.wager_today,
            "wager_week": stmt.excluded.wager_week,
            "wager_month": stmt.excluded.wager_month,
            "wager_all_time": stmt.excluded.wager_all_time,
            "updated_at": datetime.now(timezone.utc),
        },
    )
    await session.execute(stmt)


async def _upsert_batch(
    session: AsyncSession,
    batch: list[LeaderboardEntry],
    result: SyncResult,
) -> None:
    """Upsert a batch in a savepoint; on failure retry its users one by one."""
    try:
        async with session.begin_nested():
            await _upsert_leaderboard_users(session, batch)
        result.updated += len(batch)
        return
    except Exception as e:
        logger.warning(f"leaderboard_users batch of {len(batch)} failed ({e}), retrying per user")

    for entry in batch:
        try:
            async with session.begin_nested():
                await _upsert_leaderboard_users(session, [entry])
            result.updated += 1
        except Exception as e:
            logger.error(f"Failed to sync leaderboard user uid={entry.uid}: {e}")
            result.errors += 1


async def sync_leaderboard_users(entries: list[LeaderboardEntry] | None = None) -> SyncResult:
    """Mirror active upstream users into leaderboard_users.

    Args:
        entries: Already fetched entries (fetched fresh from the API when omitted).

    Raises:
        GoatedAPIError: Upstream fetch failed (logged to sync_logs first).
    """
    started = time.perf_counter()
    result = SyncResult()
    batch_size = get_settings().sync_batch_size

    try:
        if entries is None:
            entries = await get_goated_client().fetch_leaderboard(use_cache=False)

        # A uid twice in one INSERT ... ON CONFLICT statement is rejected by Postgres
        unique = dedupe_entries(entries)
        active = [e for e in unique if is_active_user(e)]
        result.total_users = len(unique)
        result.active_users = len(active)
        result.skipped = len(unique) - len(active)

        async with get_session() as session:
            for batch in chunked(active, batch_size):
                await _upsert_batch(session, batch, result)
    except Exception as e:
        result.duration_ms = _elapsed_ms(started)
        logger.error(f"leaderboard_users sync failed after {result.duration_ms}ms: {e}")
        await record_sync_log(
            SYNC_TYPE_USERS,
            SYNC_STATUS_ERROR,
            result.duration_ms,
            records_processed=result.total_users,
            error_message=str(e),
        )
        raise

    result.duration_ms = _elapsed_ms(started)
    await record_sync_log(
        SYNC_TYPE_USERS,
        SYNC_STATUS_SUCCESS,
        result.duration_ms,
        records_processed=result.total_users,
        records_updated=result.updated,
    )
    logger.info(
        f"leaderboard_users sync: total={result.total_users}, active={result.active_users}, "
        f"updated={result.updated}, skipped={result.skipped}, errors={result.errors}, "
        f"duration={result.duration_ms}ms"
    )
    return result


# ============================================================
# goated_wager_leaderboard
# ============================================================


async def _sync_wager_entry(
    session: AsyncSession,
    existing: dict[str, GoatedWagerLeaderboard],
    entry: LeaderboardEntry,
    now: datetime,
    result: WagerSyncResult,
) -> None:
    row = existing.get(entry.uid)
    if row is None:
        row = GoatedWagerLeaderboard(
            uid=entry.uid,
            name=entry.name,
            wagered_today=entry.wagered.today,
            wagered_this_week=entry.wagered.this_week,
            wagered_this_month=entry.wagered.this_month,
            wagered_all_time=entry.wagered.all_time,
            last_synced=now,
        )
        session.add(row)
        existing[entry.uid] = row
        result.inserted += 1
        return

    if not wager_changed(row, entry):
        result.unchanged += 1
        return

    # Name stays as first seen
    for entry_field, column in _WAGER_COLUMNS.items():
        setattr(row, column, getattr(entry.wagered, entry_field))
    row.last_synced = now
    result.updated += 1


async def sync_goated_wager_leaderboard(
    entries: list[LeaderboardEntry] | None = None,
) -> WagerSyncResult:
    """Change-tracking mirror of every upstream user into goated_wager_leaderboard."""
    started = time.perf_counter()
    result = WagerSyncResult()
    now = datetime.now(timezone.utc)

    try:
        if entries is None:
            entries = await get_goated_client().fetch_leaderboard(use_cache=False)
        entries = dedupe_entries(entries)

        async with get_session() as session:
            rows = await session.execute(select(GoatedWagerLeaderboard))
            existing = {row.uid: row for row in rows.scalars().all()}

            for entry in entries:
                result.processed += 1
                try:
                    async with session.begin_nested():
                        await _sync_wager_entry(session, existing, entry, now, result)
                except Exception as e:
                    logger.error(f"Failed to sync wager entry uid={entry.uid}: {e}")
                    result.errors += 1
    except Exception as e:
        result.duration_ms = _elapsed_ms(started)
        logger.error(f"wager_leaderboard sync failed after {result.duration_ms}ms: {e}")
        await record_sync_log(
            SYNC_TYPE_WAGER,
            SYNC_STATUS_ERROR,
            result.duration_ms,
            records_processed=result.processed,
            error_message=str(e),
        )
        raise

    result.duration_ms = _elapsed_ms(started)
    await record_sync_log(
        SYNC_TYPE_WAGER,
        SYNC_STATUS_SUCCESS,
        result.duration_ms,
        records_processed=result.processed,
        records_updated=result.inserted + result.updated,
    )
    logger.info(
        f"wager_leaderboard sync: processed={result.processed}, inserted={result.inserted}, "
        f"updated={result.updated}, unchanged={result.unchanged}, errors={result.errors}"
    )
    return result


# ============================================================
# Orchestration
# ============================================================


async def run_full_sync() -> FullSyncResult:
    """Fetch once and run both syncs under the sync lock.

    Returns FullSyncResult(skipped=True) if another run holds the lock.
    """
    try:
        got_lock = await acquire_lock(SYNC_LOCK_KEY)
    except Exception as e:
        logger.warning(f"Sync lock unavailable ({e}), running without lock")
        got_lock = None

    if got_lock is False:
        logger.info("Leaderboard sync already running, skipping")
        return FullSyncResult(skipped=True)

    try:
        started = time.perf_counter()
        try:
            entries = await get_goated_client().fetch_leaderboard(use_cache=False)
        except Exception as e:
            logger.error(f"Leaderboard sync fetch failed: {e}")
            await record_sync_log(
                SYNC_TYPE_USERS, SYNC_STATUS_ERROR, _elapsed_ms(started), error_message=str(e)
            )
            raise

        result = FullSyncResult()
        result.users = await sync_leaderboard_users(entries)
        result.wager = await sync_goated_wager_leaderboard(entries)

        try:
            await invalidate_leaderboard_caches()
        except Exception as e:
            logger.warning(f"Leaderboard cache invalidation failed: {e}")
        return result
    finally:
        if got_lock:
            try:
                await release_lock(SYNC_LOCK_KEY)
            except Exception as e:
                logger.warning(f"Failed to release sync lock: {e}")


# ============================================================
# Read path
# ============================================================


async def get_leaderboard_data(use_cache: bool = True) -> LeaderboardData:
    """Current leaderboard with admin overrides applied (cached in Redis)."""
    if use_cache:
        try:
            cached = await get_leaderboard_cache()
            if cached:
                return leaderboard_from_payload(cached)
        except Exception as e:
            logger.warning(f"Redis cache read failed: {e}")

    entries = await get_goated_client().fetch_leaderboard(use_cache=use_cache)

    now = datetime.now(timezone.utc)
    async with get_session() as session:
        overrides = await load_active_overrides(session, now)
    entries = apply_wager_overrides(entries, overrides, now)

    leaderboard = build_leaderboard(entries, now)

    try:
        await set_leaderboard_cache(leaderboard.to_payload(), get_settings().leaderboard_cache_ttl)
    except Exception as e:
        logger.warning(f"Redis cache write failed: {e}")

    return leaderboard


async def get_synced_user(uid: str) -> LeaderboardUser | None:
    """Synced leaderboard_users row for a Goated ID."""
    async with get_session() as session:
        result = await session.execute(select(LeaderboardUser).where(LeaderboardUser.uid == uid))
        return result.scalar_one_or_none()
