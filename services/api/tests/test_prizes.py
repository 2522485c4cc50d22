from datetime import datetime, timezone

import pytest

from app.services.prizes import (
    RaceStatus,
    RaceType,
    calculate_prize_amount,
    month_window,
    next_window_start,
    prize_fractions,
    race_key,
    race_status_at,
    race_title,
    race_window,
    snapshot_name,
)
from app.settings import DEFAULT_PRIZE_DISTRIBUTION


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "position,expected",
    [(1, 212.5), (2, 100.0), (3, 75.0), (4, 37.5), (5, 30.0), (10, 8.75), (11, 0.0), (0, 0.0), (None, 0.0)],
)
def test_default_prize_amounts(position, expected):
    assert calculate_prize_amount(position, 500, DEFAULT_PRIZE_DISTRIBUTION) == expected


def test_default_distribution_covers_top_ten():
    fractions = prize_fractions(DEFAULT_PRIZE_DISTRIBUTION)
    assert len(fractions) == 10
    assert fractions == sorted(fractions, reverse=True)


def test_prize_fractions_ordered_by_rank():
    assert prize_fractions({"10": 0.1, "2": 0.2, "1": 0.7}) == [0.7, 0.2, 0.1]


def test_month_window():
    start, end = month_window(_utc(2026, 4, 15, 8, 30))
    assert start == _utc(2026, 4, 1)
    assert end == _utc(2026, 4, 30, 23, 59, 59)

    start, end = month_window(_utc(2026, 12, 31, 23, 0))
    assert start == _utc(2026, 12, 1)
    assert end == _utc(2026, 12, 31, 23, 59, 59)


def test_month_window_naive_treated_as_utc():
    start, _ = month_window(datetime(2026, 2, 10))
    assert start == _utc(2026, 2, 1)


def test_weekly_and_weekend_windows():
    # 2026-04-15 is a Wednesday
    start, end = race_window(RaceType.WEEKLY, _utc(2026, 4, 15, 10))
    assert start == _utc(2026, 4, 13)
    assert end == _utc(2026, 4, 19, 23, 59, 59)

    start, end = race_window(RaceType.WEEKEND, _utc(2026, 4, 15, 10))
    assert start == _utc(2026, 4, 18)
    assert end == _utc(2026, 4, 19, 23, 59, 59)


def test_next_window_start():
    assert next_window_start(RaceType.MONTHLY, _utc(2026, 12, 31, 23, 59, 59)) == _utc(2027, 1, 1)
    assert next_window_start(RaceType.WEEKLY, _utc(2026, 4, 19, 23, 59, 59)) == _utc(2026, 4, 20)
    assert next_window_start(RaceType.WEEKEND, _utc(2026, 4, 19, 23, 59, 59)) == _utc(2026, 4, 25)


def test_race_naming():
    start = _utc(2026, 4, 1)
    assert race_key(RaceType.MONTHLY, start) == "202604"
    assert race_key(RaceType.WEEKLY, _utc(2026, 4, 13)) == "weekly-20260413"
    assert race_title(RaceType.MONTHLY, start) == "Monthly Race - April 2026"
    assert snapshot_name(RaceType.MONTHLY, _utc(2026, 4, 30, 23, 59, 59)) == "Monthly Goated Race - April 2026"


def test_race_status_at():
    start, end = _utc(2026, 4, 1), _utc(2026, 4, 30, 23, 59, 59)
    assert race_status_at(start, end, _utc(2026, 3, 31, 23, 59)) == RaceStatus.UPCOMING
    assert race_status_at(start, end, start) == RaceStatus.LIVE
    assert race_status_at(start, end, end) == RaceStatus.LIVE
    assert race_status_at(start, end, _utc(2026, 5, 1)) == RaceStatus.COMPLETED
