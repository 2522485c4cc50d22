"""Wager race lifecycle.

A race is one time-boxed period (monthly by default). Users are ranked by the
amount wagered in the period; the top N share the prize pool according to the
prize distribution.

Lifecycle:
1. ensure_current_race() opens the race for the current period (live)
2. while live, standings are computed on the fly from the leaderboard period
   of the race type (monthly for monthly races)
3. finalize_due_races() completes every open race in the last minutes before
   its end, while the upstream period totals still cover the race:
   participants upserted with prizes, a snapshot frozen, next race opened.
   A race only reached after its end is ranked from the wager mirror rows
   synced inside its window (the upstream totals have rolled over by then).

Admins can also open custom races (weekly, weekend, own prize pool) with
create_race().
"""

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import GoatedWagerLeaderboard, RaceSnapshot, WagerRace, WagerRaceParticipant
from app.models.sync_log import SYNC_STATUS_ERROR, SYNC_STATUS_SUCCESS
from app.services.leaderboard import (
    LeaderboardData,
    LeaderboardEntry,
    LeaderboardPeriod,
    WagerTotals,
    build_leaderboard,
    find_position,
)
from app.services.leaderboard_sync import get_leaderboard_data, record_sync_log
from app.services.prizes import (
    RaceConfig,
    RaceStatus,
    RaceType,
    calculate_prize_amount,
    next_window_start,
    race_key,
    race_status_at,
    race_title,
    race_window,
    snapshot_name,
)
from app.settings import get_settings
from app.stores.postgres import get_session
from app.stores.redis import acquire_lock, release_lock

__all__ = [
    "RaceConfig",
    "RaceError",
    "RaceStatus",
    "RaceType",
    "build_race_data",
    "complete_race",
    "create_race",
    "ensure_current_race",
    "finalize_due_races",
    "get_current_race",
    "get_previous_race",
    "get_race",
    "get_snapshot",
    "get_user_race_position",
    "list_snapshots",
    "update_race_status",
]

logger = logging.getLogger("uvicorn.error")

FINALIZE_LOCK_KEY = "race_finalize"
SYNC_TYPE_RACE_FINALIZE = "race_finalize"

# Leaderboard period each race type is ranked on. Upstream has no weekend
# total, weekend races use the weekly one.
RACE_PERIODS = {
    RaceType.MONTHLY: LeaderboardPeriod.MONTHLY,
    RaceType.WEEKLY: LeaderboardPeriod.WEEKLY,
    RaceType.WEEKEND: LeaderboardPeriod.WEEKLY,
}


class RaceError(RuntimeError):
    """Invalid race operation (e.g. completing a race twice)."""


@dataclass
class RaceParticipantView:
    uid: str
    name: str
    wagered: float
    position: int
    prize: float


@dataclass
class RaceData:
    """Current standings of a race."""

    race_id: int | None
    name: str
    title: str
    type: RaceType
    status: RaceStatus
    start_date: datetime
    end_date: datetime
    prize_pool: float
    prize_distribution: dict[str, float]
    participants: list[RaceParticipantView]
    total_wagered: float
    participant_count: int
    transition_ends: datetime
    next_race_starts: datetime


@dataclass
class RacePosition:
    uid: str
    position: int | None
    total_participants: int
    wagered: float
    prize: float = 0.0


@dataclass
class RaceWithParticipants:
    race: WagerRace
    participants: list[WagerRaceParticipant] = field(default_factory=list)


@dataclass
class CompletedRace:
    race: WagerRace
    participants: int
    snapshot_id: int | None
    next_race: WagerRace | None


def race_distribution(race: WagerRace) -> dict[str, float]:
    """Prize distribution stored on the race (settings default if missing)."""
    if race.prize_distribution_json:
        try:
            data = json.loads(race.prize_distribution_json)
            return {str(k): float(v) for k, v in data.items()}
        except (ValueError, AttributeError):
            logger.warning(f"Invalid prize distribution on race {race.name}, using default")
    return dict(get_settings().race_prize_distribution)


def race_config(race: WagerRace) -> RaceConfig:
    return RaceConfig(
        prize_pool=float(race.prize_pool),
        prize_distribution=race_distribution(race),
        type=race.type,
        title=race.title,
    )


def race_period(race_type: RaceType) -> LeaderboardPeriod:
    return RACE_PERIODS[race_type]


def new_race(
    race_type: RaceType,
    now: datetime,
    prize_pool: float | None = None,
    prize_distribution: dict[str, float] | None = None,
) -> WagerRace:
    """Race row for the period of `race_type` containing `now` (prizes default to settings)."""
    settings = get_settings()
    start, end = race_window(race_type, now)
    if prize_pool is None:
        prize_pool = settings.race_prize_pool
    return WagerRace(
        name=race_key(race_type, start),
        title=race_title(race_type, start),
        type=race_type,
        status=race_status_at(start, end, now),
        prize_pool=prize_pool,
        prize_distribution_json=json.dumps(prize_distribution or settings.race_prize_distribution),
        start_date=start,
        end_date=end,
    )


# ============================================================
# Standings (pure)
# ============================================================


def build_race_data(
    leaderboard: LeaderboardData,
    race: WagerRace,
    now: datetime | None = None,
    top_n: int | None = None,
) -> RaceData:
    """Standings of `race` from the leaderboard period its type is ranked on."""
    now = now or datetime.now(timezone.utc)
    top_n = top_n or get_settings().race_top_n
    distribution = race_distribution(race)
    prize_pool = float(race.prize_pool)
    period = race_period(race.type)

    ranked = leaderboard.period(period)
    participants = [
        RaceParticipantView(
            uid=entry.uid,
            name=entry.name,
            wagered=entry.wagered.for_period(period),
            position=index + 1,
            prize=calculate_prize_amount(index + 1, prize_pool, distribution),
        )
        for index, entry in enumerate(ranked[:top_n])
    ]

    return RaceData(
        race_id=race.id,
        name=race.name,
        title=race.title,
        type=race.type,
        status=race_status_at(race.start_date, race.end_date, now),
        start_date=race.start_date,
        end_date=race.end_date,
        prize_pool=prize_pool,
        prize_distribution=distribution,
        participants=participants,
        total_wagered=round(sum(e.wagered.for_period(period) for e in ranked), 2),
        participant_count=len(ranked),
        transition_ends=race.end_date + timedelta(days=1),
        next_race_starts=next_window_start(race.type, race.end_date),
    )


def get_user_race_position(
    leaderboard: LeaderboardData,
    uid: str,
    race: WagerRace | None = None,
) -> RacePosition:
    """Where `uid` currently stands in the race (position None when unranked)."""
    period = race_period(race.type) if race is not None else LeaderboardPeriod.MONTHLY
    ranked = leaderboard.period(period)
    position = find_position(leaderboard, uid, period)
    wagered = ranked[position - 1].wagered.for_period(period) if position else 0.0

    prize = 0.0
    if race is not None and position is not None and position <= get_settings().race_top_n:
        prize = calculate_prize_amount(position, float(race.prize_pool), race_distribution(race))

    return RacePosition(
        uid=uid,
        position=position,
        total_participants=len(ranked),
        wagered=wagered,
        prize=prize,
    )


# ============================================================
# Persistence
# ============================================================


async def _open_race(session: AsyncSession, race: WagerRace) -> WagerRace:
    """Insert `race` unless its period already exists, return the stored row."""
    stmt = (
        pg_insert(WagerRace)
        .values(
            name=race.name,
            title=race.title,
            type=race.type,
            status=race.status,
            prize_pool=race.prize_pool,
            prize_distribution_json=race.prize_distribution_json,
            start_date=race.start_date,
            end_date=race.end_date,
        )
        .on_conflict_do_nothing(index_elements=[WagerRace.name])
    )
    inserted = await session.execute(stmt)
    if inserted.rowcount:
        logger.info(f"Opened race {race.name} ({race.title})")

    result = await session.execute(select(WagerRace).where(WagerRace.name == race.name))
    return result.scalar_one()


async def ensure_current_race(
    session: AsyncSession,
    now: datetime | None = None,
    race_type: RaceType = RaceType.MONTHLY,
) -> WagerRace:
    """Race whose window contains `now`, created live from defaults when missing."""
    now = now or datetime.now(timezone.utc)
    race = await _open_race(session, new_race(race_type, now))

    # Upcoming races go live once their window starts
    if race.status == RaceStatus.UPCOMING and race_status_at(race.start_date, race.end_date, now) == RaceStatus.LIVE:
        race.status = RaceStatus.LIVE
        await session.flush()
    return race


async def _upsert_participants(
    session: AsyncSession,
    race: WagerRace,
    standings: list[RaceParticipantView],
) -> None:
    rows = []
    seen: set[str] = set()
    for p in standings:
        # One row per uid (best position) so the upsert never hits a row twice
        if p.uid in seen:
            continue
        seen.add(p.uid)
        rows.append(
            {
                "race_id": race.id,
                "uid": p.uid,
                "username": p.name,
                "position": p.position,
                "wagered": p.wagered,
                "prize_amount": p.prize,
            }
        )
    if not rows:
        return
    stmt = pg_insert(WagerRaceParticipant).values(rows)
    stmt = stmt.on_conflict_do_update(
        constraint="uq_race_participant_uid",
        set_={
            "username": stmt.excluded.username,
            "position": stmt.excluded.position,
            "wagered": stmt.excluded.wagered,
            "prize_amount": stmt.excluded.prize_amount,
            "updated_at": datetime.now(timezone.utc),
        },
    )
    await session.execute(stmt)


def snapshot_entries(standings: list[RaceParticipantView]) -> list[dict[str, Any]]:
    return [
        {
            "uid": p.uid,
            "username": p.name,
            "wagered": p.wagered,
            "rank": p.position,
            "prize_won": p.prize,
        }
        for p in standings
    ]


async def complete_race(
    session: AsyncSession,
    race: WagerRace,
    leaderboard: LeaderboardData,
    now: datetime | None = None,
) -> CompletedRace:
    """Complete `race`: final standings, snapshot, next race.

    Raises:
        RaceError: Race is already completed.
    """
    now = now or datetime.now(timezone.utc)
    if race.status == RaceStatus.COMPLETED:
        raise RaceError(f"Race {race.name} is already completed")

    data = build_race_data(leaderboard, race, now)

    race.status = RaceStatus.COMPLETED
    race.completed_at = now
    await session.flush()

    await _upsert_participants(session, race, data.participants)

    snapshot = RaceSnapshot(
        original_race_end_date=race.end_date,
        race_type=race.type.value,
        race_name=snapshot_name(race.type, race.end_date),
        race_config_json=json.dumps(race_config(race).to_dict()),
        leaderboard_entries_json=json.dumps(snapshot_entries(data.participants)),
    )
    session.add(snapshot)
    await session.flush()

    # The next period keeps this race's prizes
    following = next_window_start(race.type, race.end_date)
    candidate = new_race(
        race.type,
        following,
        prize_pool=float(race.prize_pool),
        prize_distribution=race_distribution(race),
    )
    # The next period is live as soon as the previous race is over
    candidate.status = RaceStatus.LIVE if following <= now else RaceStatus.UPCOMING
    next_race = await _open_race(session, candidate)

    logger.info(
        f"Completed race {race.name}: {len(data.participants)} winners, "
        f"snapshot={snapshot.id}, next={next_race.name}"
    )
    return CompletedRace(
        race=race,
        participants=len(data.participants),
        snapshot_id=snapshot.id,
        next_race=next_race,
    )


def is_race_due(race: WagerRace, now: datetime, lead: timedelta | None = None) -> bool:
    """True once `now` is within `lead` of the race end (or past it)."""
    if race.status == RaceStatus.COMPLETED:
        return False
    if lead is None:
        lead = timedelta(minutes=get_settings().race_finalize_lead_minutes)
    return now >= race.end_date - lead


async def synced_race_leaderboard(
    session: AsyncSession,
    race: WagerRace,
    now: datetime | None = None,
) -> LeaderboardData:
    """Leaderboard rebuilt from wager mirror rows last synced inside the race window.

    Used when a race is finalized after its end: the upstream period totals
    have rolled over by then, rows synced before the end still hold the race's.
    """
    result = await session.execute(
        select(GoatedWagerLeaderboard)
        .where(GoatedWagerLeaderboard.last_synced >= race.start_date)
        .where(GoatedWagerLeaderboard.last_synced <= race.end_date)
    )
    entries = [
        LeaderboardEntry(
            uid=row.uid,
            name=row.name,
            wagered=WagerTotals(
                today=float(row.wagered_today or 0),
                this_week=float(row.wagered_this_week or 0),
                this_month=float(row.wagered_this_month or 0),
                all_time=float(row.wagered_all_time or 0),
            ),
        )
        for row in result.scalars().all()
    ]
    return build_leaderboard(entries, now)


async def finalize_due_races(now: datetime | None = None) -> list[CompletedRace]:
    """Complete every open race that is about to end (or already ended).

    Races inside the finalize lead window are ranked on the live leaderboard;
    races found after their end are ranked from the synced wager mirror.
    Runs under a Redis lock; returns an empty list when another run holds it
    or nothing is due. A sync_logs row is written when races were completed
    or the run failed.
    """
    now = now or datetime.now(timezone.utc)

    try:
        got_lock = await acquire_lock(FINALIZE_LOCK_KEY)
    except Exception as e:
        logger.warning(f"Finalize lock unavailable ({e}), running without lock")
        got_lock = None

    if got_lock is False:
        logger.info("Race finalization already running, skipping")
        return []

    started = time.perf_counter()
    completed: list[CompletedRace] = []
    try:
        async with get_session() as session:
            result = await session.execute(
                select(WagerRace)
                .where(WagerRace.status.in_([RaceStatus.LIVE, RaceStatus.UPCOMING]))
                .order_by(WagerRace.end_date)
            )
            due = [race for race in result.scalars().all() if is_race_due(race, now)]

            live_leaderboard: LeaderboardData | None = None
            for race in due:
                if now <= race.end_date:
                    if live_leaderboard is None:
                        live_leaderboard = await get_leaderboard_data(use_cache=False)
                    leaderboard = live_leaderboard
                else:
                    logger.warning(
                        f"Race {race.name} ended at {race.end_date.isoformat()} before it was "
                        f"finalized, ranking it from wager totals synced during the race"
                    )
                    leaderboard = await synced_race_leaderboard(session, race, now)
                completed.append(await complete_race(session, race, leaderboard, now))

            await ensure_current_race(session, now)
    except Exception as e:
        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.error(f"Race finalization failed: {e}")
        await record_sync_log(
            SYNC_TYPE_RACE_FINALIZE, SYNC_STATUS_ERROR, duration_ms, error_message=str(e)
        )
        raise
    finally:
        if got_lock:
            try:
                await release_lock(FINALIZE_LOCK_KEY)
            except Exception as e:
                logger.warning(f"Failed to release finalize lock: {e}")

    if completed:
        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        await record_sync_log(
            SYNC_TYPE_RACE_FINALIZE,
            SYNC_STATUS_SUCCESS,
            duration_ms,
            records_processed=len(completed),
            records_updated=sum(c.participants for c in completed),
        )
    return completed


# ============================================================
# Custom races
# ============================================================


async def create_race(
    session: AsyncSession,
    config: RaceConfig,
    start: datetime | None = None,
    end: datetime | None = None,
    now: datetime | None = None,
    description: str | None = None,
) -> WagerRace:
    """Open a race with its own prize config.

    A missing start or end falls back to the window of `config.type` containing
    `start` (or `now`).

    Raises:
        ValueError: The window is empty or already over.
        RaceError: A race for that period already exists.
    """
    now = now or datetime.now(timezone.utc)
    if start is None or end is None:
        window_start, window_end = race_window(config.type, start or now)
        start = start or window_start
        end = end or window_end
    if end <= start:
        raise ValueError("Race end must be after its start")

    status = race_status_at(start, end, now)
    if status == RaceStatus.COMPLETED:
        raise ValueError("Race window is already over")

    name = race_key(config.type, start)
    existing = await session.execute(select(WagerRace.id).where(WagerRace.name == name))
    if existing.scalar_one_or_none() is not None:
        raise RaceError(f"A race for period {name} already exists")

    race = WagerRace(
        name=name,
        title=config.title or race_title(config.type, start),
        description=description,
        type=config.type,
        status=status,
        prize_pool=config.prize_pool,
        prize_distribution_json=json.dumps(config.prize_distribution),
        start_date=start,
        end_date=end,
    )
    session.add(race)
    await session.flush()
    logger.info(f"Created race {race.name} ({race.title}), pool={race.prize_pool}")
    return race


async def get_race(session: AsyncSession, race_id: int) -> RaceWithParticipants | None:
    """Race by id with its stored participants (filled in when it completes)."""
    race = await session.get(WagerRace, race_id)
    if race is None:
        return None
    participants = await session.execute(
        select(WagerRaceParticipant)
        .where(WagerRaceParticipant.race_id == race.id)
        .order_by(WagerRaceParticipant.position)
    )
    return RaceWithParticipants(race=race, participants=list(participants.scalars().all()))


# ============================================================
# Current race
# ============================================================


async def get_current_race(now: datetime | None = None) -> RaceData:
    """Standings of the current monthly race."""
    now = now or datetime.now(timezone.utc)
    leaderboard = await get_leaderboard_data()
    async with get_session() as session:
        race = await ensure_current_race(session, now)
    return build_race_data(leaderboard, race, now)


async def get_current_position(uid: str, now: datetime | None = None) -> RacePosition:
    now = now or datetime.now(timezone.utc)
    leaderboard = await get_leaderboard_data()
    async with get_session() as session:
        race = await ensure_current_race(session, now)
    return get_user_race_position(leaderboard, uid, race)


# ============================================================
# History
# ============================================================


async def get_previous_race(session: AsyncSession) -> RaceWithParticipants | None:
    """Most recently completed race with participants by position, or None."""
    result = await session.execute(
        select(WagerRace)
        .where(WagerRace.status == RaceStatus.COMPLETED)
        .order_by(WagerRace.end_date.desc())
        .limit(1)
    )
    race = result.scalar_one_or_none()
    if race is None:
        return None

    participants = await session.execute(
        select(WagerRaceParticipant)
        .where(WagerRaceParticipant.race_id == race.id)
        .order_by(WagerRaceParticipant.position)
    )
    return RaceWithParticipants(race=race, participants=list(participants.scalars().all()))


async def list_snapshots(
    session: AsyncSession,
    race_type: RaceType | str = RaceType.MONTHLY,
    limit: int = 50,
) -> list[RaceSnapshot]:
    """Snapshots of one race type, newest first."""
    type_value = race_type.value if isinstance(race_type, RaceType) else race_type
    result = await session.execute(
        select(RaceSnapshot)
        .where(RaceSnapshot.race_type == type_value)
        .order_by(RaceSnapshot.original_race_end_date.desc(), RaceSnapshot.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_snapshot(session: AsyncSession, snapshot_id: int) -> RaceSnapshot | None:
    return await session.get(RaceSnapshot, snapshot_id)


async def update_race_status(
    session: AsyncSession,
    race_id: int,
    status: RaceStatus,
    now: datetime | None = None,
) -> WagerRace | None:
    """Set a race's status manually. Returns None if the race does not exist."""
    race = await session.get(WagerRace, race_id)
    if race is None:
        return None
    race.status = status
    if status == RaceStatus.COMPLETED and race.completed_at is None:
        race.completed_at = now or datetime.now(timezone.utc)
    await session.flush()
    logger.info(f"Race {race.name} status set to {status.value}")
    return race
