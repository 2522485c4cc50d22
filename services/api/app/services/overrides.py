"""Admin wager overrides.

An override replaces one or more of a user's four wager totals before the
leaderboard is built. Matching is by Goated ID when the override carries one,
otherwise by username (case-insensitive). A NULL field keeps the upstream value.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import WagerOverride
from app.services.leaderboard import LeaderboardEntry

logger = logging.getLogger("uvicorn.error")

OVERRIDE_FIELDS = ("today", "this_week", "this_month", "all_time")


@dataclass
class OverrideInput:
    """Admin request to create an override."""

    username: str
    goated_id: str | None = None
    today: float | None = None
    this_week: float | None = None
    this_month: float | None = None
    all_time: float | None = None
    expires_at: datetime | None = None
    created_by: str | None = None
    notes: str | None = None


def _is_effective(override: WagerOverride, now: datetime) -> bool:
    if not override.active:
        return False
    if override.expires_at is None:
        return True
    expires_at = override.expires_at
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at >= now


def _matches(override: WagerOverride, entry: LeaderboardEntry) -> bool:
    if override.goated_id:
        return override.goated_id == entry.uid
    return override.username.lower() == entry.name.lower()


def apply_wager_overrides(
    entries: list[LeaderboardEntry],
    overrides: list[WagerOverride],
    now: datetime | None = None,
) -> list[LeaderboardEntry]:
    """Return entries with effective overrides applied.

    Inputs are never mutated. When several overrides match one user, later ones
    in the list win field by field.
    """
    now = now or datetime.now(timezone.utc)
    effective = [o for o in overrides if _is_effective(o, now)]
    if not effective:
        return list(entries)

    result = []
    for entry in entries:
        changes: dict[str, float] = {}
        for override in effective:
            if not _matches(override, entry):
                continue
            for field_name in OVERRIDE_FIELDS:
                value = getattr(override, f"{field_name}_override")
                if value is not None:
                    changes[field_name] = float(value)
        result.append(entry.with_wagered(**changes) if changes else entry)
    return result


async def load_active_overrides(
    session: AsyncSession,
    now: datetime | None = None,
) -> list[WagerOverride]:
    """Active, unexpired overrides. Expired ones are deactivated in the same session."""
    now = now or datetime.now(timezone.utc)

    expired = await session.execute(
        update(WagerOverride)
        .where(WagerOverride.active.is_(True))
        .where(WagerOverride.expires_at.is_not(None))
        .where(WagerOverride.expires_at < now)
        .values(active=False)
    )
    if expired.rowcount:
        logger.info(f"Deactivated {expired.rowcount} expired wager overrides")

    result = await session.execute(
        select(WagerOverride)
        .where(WagerOverride.active.is_(True))
        .order_by(WagerOverride.created_at, WagerOverride.id)
    )
    return list(result.scalars().all())


async def create_override(session: AsyncSession, data: OverrideInput) -> WagerOverride:
    if all(getattr(data, f) is None for f in OVERRIDE_FIELDS):
        raise ValueError("At least one wager override value is required")

    override = WagerOverride(
        username=data.username,
        goated_id=data.goated_id,
        today_override=data.today,
        this_week_override=data.this_week,
        this_month_override=data.this_month,
        all_time_override=data.all_time,
        active=True,
        expires_at=data.expires_at,
        created_by=data.created_by,
        notes=data.notes,
    )
    session.add(override)
    await session.flush()
    logger.info(f"Created wager override {override.id} for {data.username}")
    return override


async def list_overrides(session: AsyncSession, include_inactive: bool = False) -> list[WagerOverride]:
    query = select(WagerOverride).order_by(WagerOverride.created_at.desc(), WagerOverride.id.desc())
    if not include_inactive:
        query = query.where(WagerOverride.active.is_(True))
    result = await session.execute(query)
    return list(result.scalars().all())


async def deactivate_override(session: AsyncSession, override_id: int) -> WagerOverride | None:
    """Deactivate an override. Returns None if it does not exist."""
    override = await session.get(WagerOverride, override_id)
    if override is None:
        return None
    override.active = False
    await session.flush()
    logger.info(f"Deactivated wager override {override_id}")
    return override
