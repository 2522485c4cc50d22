from datetime import datetime, timezone

from app.services.leaderboard import (
    LeaderboardEntry,
    LeaderboardPeriod,
    WagerTotals,
    build_leaderboard,
    dedupe_entries,
    find_position,
    leaderboard_from_payload,
)


def _entry(uid: str, **wagered: float) -> LeaderboardEntry:
    return LeaderboardEntry(uid=uid, name=f"user-{uid}", wagered=WagerTotals(**wagered))


def test_build_leaderboard_filters_and_sorts(sample_leaderboard):
    assert sample_leaderboard.total_users == 4
    assert [e.uid for e in sample_leaderboard.period(LeaderboardPeriod.TODAY)] == ["u1", "u3"]
    assert [e.uid for e in sample_leaderboard.period(LeaderboardPeriod.WEEKLY)] == ["u2", "u1"]
    assert [e.uid for e in sample_leaderboard.period(LeaderboardPeriod.MONTHLY)] == ["u2", "u3", "u1"]
    assert [e.uid for e in sample_leaderboard.period(LeaderboardPeriod.ALL_TIME)] == ["u3", "u1", "u2"]


def test_build_leaderboard_ties_keep_input_order():
    entries = [_entry("a", this_month=5), _entry("b", this_month=7), _entry("c", this_month=5)]
    leaderboard = build_leaderboard(entries)
    assert [e.uid for e in leaderboard.period(LeaderboardPeriod.MONTHLY)] == ["b", "a", "c"]


def test_build_leaderboard_empty():
    leaderboard = build_leaderboard([])
    assert leaderboard.total_users == 0
    assert all(leaderboard.period(p) == [] for p in LeaderboardPeriod)


def test_period_wager_fields():
    assert LeaderboardPeriod.WEEKLY.wager_field == "this_week"
    assert LeaderboardPeriod.MONTHLY.wager_field == "this_month"


def test_find_position(sample_leaderboard):
    assert find_position(sample_leaderboard, "u3", LeaderboardPeriod.ALL_TIME) == 1
    assert find_position(sample_leaderboard, "u2", LeaderboardPeriod.ALL_TIME) == 3
    assert find_position(sample_leaderboard, "u4", LeaderboardPeriod.ALL_TIME) is None
    assert find_position(sample_leaderboard, "nobody", LeaderboardPeriod.TODAY) is None


def test_payload_shape_and_rebuild(sample_leaderboard):
    payload = sample_leaderboard.to_payload()

    assert payload["status"] == "success"
    assert payload["metadata"]["totalUsers"] == 4
    assert payload["metadata"]["lastUpdated"] == "2026-04-15T12:00:00+00:00"
    assert payload["data"]["monthly"]["data"][0] == {
        "uid": "u2",
        "name": "bob",
        "wagered": {"today": 0, "this_week": 300, "this_month": 3_000, "all_time": 3_000},
    }

    rebuilt = leaderboard_from_payload(payload)
    assert rebuilt.total_users == 4
    assert rebuilt.last_updated == datetime(2026, 4, 15, 12, 0, tzinfo=timezone.utc)
    assert rebuilt.periods == sample_leaderboard.periods


def test_with_wagered_returns_copy():
    entry = _entry("a", today=1, all_time=10)
    changed = entry.with_wagered(all_time=99)
    assert changed.wagered.all_time == 99
    assert changed.wagered.today == 1
    assert entry.wagered.all_time == 10


def test_dedupe_entries_last_row_wins_in_first_seen_order():
    entries = [_entry("a", today=1), _entry("b", today=2), _entry("a", today=3)]
    deduped = dedupe_entries(entries)

    assert [e.uid for e in deduped] == ["a", "b"]
    assert deduped[0].wagered.today == 3
