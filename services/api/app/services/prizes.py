"""Race periods and prize distribution.

Pure helpers shared by the race lifecycle and the API:
- Race windows: monthly (calendar month), weekly (Mon-Sun), weekend (Sat-Sun), all UTC
- Status of a race at a given instant
- Prize amount per rank from a pool and a fraction-per-rank distribution
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

from app.settings import DEFAULT_PRIZE_DISTRIBUTION


class RaceType(Enum):
    """Race period length."""

    MONTHLY = "monthly"
    WEEKLY = "weekly"
    WEEKEND = "weekend"


class RaceStatus(Enum):
    """Race lifecycle state."""

    UPCOMING = "upcoming"
    LIVE = "live"
    COMPLETED = "completed"


@dataclass
class RaceConfig:
    """Prize configuration of a race."""

    prize_pool: float
    prize_distribution: dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_PRIZE_DISTRIBUTION)
    )
    type: RaceType = RaceType.MONTHLY
    title: str = ""

    def to_dict(self) -> dict:
        return {
            "prize_pool": self.prize_pool,
            "prize_distribution": self.prize_distribution,
            "type": self.type.value,
            "title": self.title,
        }


def calculate_prize_amount(
    position: int | None,
    prize_pool: float,
    distribution: dict[str, float],
) -> float:
    """Prize for a 1-based position, rounded to cents. Unranked positions win 0."""
    if position is None or position < 1:
        return 0.0
    fraction = distribution.get(str(position), 0.0)
    if not fraction or fraction <= 0:
        return 0.0
    return round(prize_pool * fraction, 2)


def prize_fractions(distribution: dict[str, float]) -> list[float]:
    """Distribution as a list ordered by rank."""
    ranks = sorted((int(k) for k in distribution if str(k).isdigit()))
    return [distribution[str(r)] for r in ranks]


def _utc(now: datetime) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def month_window(now: datetime) -> tuple[datetime, datetime]:
    """First instant and last second of the calendar month containing `now` (UTC)."""
    now = _utc(now)
    start = datetime(now.year, now.month, 1, tzinfo=timezone.utc)
    next_start = _add_month(start)
    return start, next_start - timedelta(seconds=1)


def _add_month(start: datetime) -> datetime:
    if start.month == 12:
        return start.replace(year=start.year + 1, month=1)
    return start.replace(month=start.month + 1)


def race_window(race_type: RaceType, now: datetime) -> tuple[datetime, datetime]:
    """Window of the race of `race_type` that is current (or next, for weekends) at `now`."""
    now = _utc(now)
    if race_type == RaceType.MONTHLY:
        return month_window(now)

    midnight = datetime(now.year, now.month, now.day, tzinfo=timezone.utc)
    monday = midnight - timedelta(days=now.weekday())
    if race_type == RaceType.WEEKLY:
        return monday, monday + timedelta(days=7) - timedelta(seconds=1)

    # Weekend: Saturday 00:00 through Sunday 23:59:59 of this week
    saturday = monday + timedelta(days=5)
    return saturday, saturday + timedelta(days=2) - timedelta(seconds=1)


def next_window_start(race_type: RaceType, end: datetime) -> datetime:
    """Start of the race period that follows a race ending at `end`."""
    following = _utc(end) + timedelta(seconds=1)
    if race_type == RaceType.WEEKEND:
        return race_window(race_type, following + timedelta(days=5))[0]
    return following


def race_key(race_type: RaceType, start: datetime) -> str:
    """Stable period key: "YYYYMM" for monthly races, "<type>-YYYYMMDD" otherwise."""
    start = _utc(start)
    if race_type == RaceType.MONTHLY:
        return f"{start.year}{start.month:02d}"
    return f"{race_type.value}-{start:%Y%m%d}"


def race_title(race_type: RaceType, start: datetime) -> str:
    """Display title, e.g. "Monthly Race - April 2026"."""
    start = _utc(start)
    label = race_type.value.capitalize()
    if race_type == RaceType.MONTHLY:
        return f"{label} Race - {start:%B %Y}"
    return f"{label} Race - {start:%d %B %Y}"


def snapshot_name(race_type: RaceType, end: datetime) -> str:
    """Name of a race snapshot, e.g. "Monthly Goated Race - April 2026"."""
    end = _utc(end)
    return f"{race_type.value.capitalize()} Goated Race - {end:%B %Y}"


def race_status_at(start: datetime, end: datetime, now: datetime) -> RaceStatus:
    """Upcoming before start, live until end (inclusive), completed afterwards."""
    now = _utc(now)
    if now < _utc(start):
        return RaceStatus.UPCOMING
    if now <= _utc(end):
        return RaceStatus.LIVE
    return RaceStatus.COMPLETED
