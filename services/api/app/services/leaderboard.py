"""Leaderboard transformation.

Turns the flat list of affiliate users returned by the Goated API into the
per-period leaderboards served to the frontend:
- today / weekly / monthly / all_time
- a user appears in a period only with a positive amount for that period
- each period is sorted by its amount, highest first (ties keep upstream order)
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class LeaderboardPeriod(Enum):
    """Leaderboard period and the wager field it ranks by."""

    TODAY = "today"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ALL_TIME = "all_time"

    @property
    def wager_field(self) -> str:
        return _PERIOD_FIELDS[self]


_PERIOD_FIELDS = {
    LeaderboardPeriod.TODAY: "today",
    LeaderboardPeriod.WEEKLY: "this_week",
    LeaderboardPeriod.MONTHLY: "this_month",
    LeaderboardPeriod.ALL_TIME: "all_time",
}


@dataclass(frozen=True)
class WagerTotals:
    """Wagered amounts (USD) per period."""

    today: float = 0.0
    this_week: float = 0.0
    this_month: float = 0.0
    all_time: float = 0.0

    def for_period(self, period: LeaderboardPeriod) -> float:
        return getattr(self, period.wager_field)

    def to_dict(self) -> dict[str, float]:
        return {
            "today": self.today,
            "this_week": self.this_week,
            "this_month": self.this_month,
            "all_time": self.all_time,
        }


@dataclass(frozen=True)
class LeaderboardEntry:
    """A single affiliate user as reported upstream."""

    uid: str
    name: str
    wagered: WagerTotals = field(default_factory=WagerTotals)

    def with_wagered(self, **changes: float) -> "LeaderboardEntry":
        return replace(self, wagered=replace(self.wagered, **changes))

    def to_dict(self) -> dict[str, Any]:
        return {"uid": self.uid, "name": self.name, "wagered": self.wagered.to_dict()}


@dataclass
class LeaderboardData:
    """Per-period leaderboards plus metadata."""

    total_users: int
    last_updated: datetime
    periods: dict[LeaderboardPeriod, list[LeaderboardEntry]]
    status: str = "success"

    def period(self, period: LeaderboardPeriod) -> list[LeaderboardEntry]:
        return self.periods.get(period, [])

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready payload (cached in Redis and served by /v1/affiliate/stats)."""
        return {
            "status": self.status,
            "metadata": {
                "totalUsers": self.total_users,
                "lastUpdated": self.last_updated.isoformat(),
            },
            "data": {
                period.value: {"data": [e.to_dict() for e in self.period(period)]}
                for period in LeaderboardPeriod
            },
        }


def dedupe_entries(entries: list[LeaderboardEntry]) -> list[LeaderboardEntry]:
    """One entry per uid: the last occurrence wins, first-seen order is kept."""
    by_uid: dict[str, LeaderboardEntry] = {}
    for entry in entries:
        by_uid[entry.uid] = entry
    return list(by_uid.values())


def build_leaderboard(
    entries: list[LeaderboardEntry],
    now: datetime | None = None,
) -> LeaderboardData:
    """Group entries into period leaderboards.

    Args:
        entries: Users as parsed from the upstream payload.
        now: Timestamp recorded as lastUpdated (defaults to current UTC time).

    Returns:
        LeaderboardData with all four periods populated.
    """
    periods: dict[LeaderboardPeriod, list[LeaderboardEntry]] = {}
    for period in LeaderboardPeriod:
        ranked = [e for e in entries if e.wagered.for_period(period) > 0]
        # sorted() is stable, so equal amounts keep upstream order
        ranked = sorted(ranked, key=lambda e: e.wagered.for_period(period), reverse=True)
        periods[period] = ranked

    return LeaderboardData(
        total_users=len(entries),
        last_updated=now or datetime.now(timezone.utc),
        periods=periods,
    )


def leaderboard_from_payload(payload: dict[str, Any]) -> LeaderboardData:
    """Rebuild LeaderboardData from a cached to_payload() dict."""
    periods: dict[LeaderboardPeriod, list[LeaderboardEntry]] = {}
    data = payload.get("data") or {}
    for period in LeaderboardPeriod:
        items = (data.get(period.value) or {}).get("data") or []
        periods[period] = [
            LeaderboardEntry(
                uid=str(item["uid"]),
                name=str(item["name"]),
                wagered=WagerTotals(**{k: float(v) for k, v in item["wagered"].items()}),
            )
            for item in items
        ]

    metadata = payload.get("metadata") or {}
    last_updated = metadata.get("lastUpdated")
    return LeaderboardData(
        total_users=int(metadata.get("totalUsers", 0)),
        last_updated=(
            datetime.fromisoformat(last_updated) if last_updated else datetime.now(timezone.utc)
        ),
        periods=periods,
        status=str(payload.get("status", "success")),
    )


def find_position(
    leaderboard: LeaderboardData,
    uid: str,
    period: LeaderboardPeriod,
) -> int | None:
    """1-based rank of `uid` in a period, or None if the user is not ranked."""
    for index, entry in enumerate(leaderboard.period(period)):
        if entry.uid == uid:
            return index + 1
    return None
