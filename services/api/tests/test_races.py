import json
from datetime import datetime, timedelta, timezone

import pytest

from app.models import GoatedWagerLeaderboard, RaceSnapshot, WagerRace, WagerRaceParticipant
from app.services import races
from app.services.goated_client import GoatedAPIError
from app.services.leaderboard import build_leaderboard
from app.services.prizes import RaceConfig, RaceStatus, RaceType
from app.services.races import (
    RaceError,
    build_race_data,
    complete_race,
    create_race,
    ensure_current_race,
    get_race,
    get_user_race_position,
    is_race_due,
    new_race,
    race_distribution,
    snapshot_entries,
)
from app.settings import DEFAULT_PRIZE_DISTRIBUTION

from conftest import FakeResult, FakeSession, make_entry, sessions_of, statement_params

NOW = datetime(2026, 4, 15, 12, 0, tzinfo=timezone.utc)


def _race(**kwargs) -> WagerRace:
    kwargs.setdefault("name", "202604")
    kwargs.setdefault("title", "Monthly Race - April 2026")
    kwargs.setdefault("type", RaceType.MONTHLY)
    kwargs.setdefault("status", RaceStatus.LIVE)
    kwargs.setdefault("prize_pool", 500.0)
    kwargs.setdefault("start_date", datetime(2026, 4, 1, tzinfo=timezone.utc))
    kwargs.setdefault("end_date", datetime(2026, 4, 30, 23, 59, 59, tzinfo=timezone.utc))
    return WagerRace(**kwargs)


def test_new_race_for_current_month():
    race = new_race(RaceType.MONTHLY, NOW)
    assert race.name == "202604"
    assert race.title == "Monthly Race - April 2026"
    assert race.status == RaceStatus.LIVE
    assert race.start_date == datetime(2026, 4, 1, tzinfo=timezone.utc)
    assert json.loads(race.prize_distribution_json) == DEFAULT_PRIZE_DISTRIBUTION


def test_race_distribution_falls_back_to_default():
    assert race_distribution(_race()) == DEFAULT_PRIZE_DISTRIBUTION
    assert race_distribution(_race(prize_distribution_json="not json")) == DEFAULT_PRIZE_DISTRIBUTION
    assert race_distribution(_race(prize_distribution_json='{"1": 1}')) == {"1": 1.0}


def test_build_race_data(sample_leaderboard):
    data = build_race_data(sample_leaderboard, _race(), now=NOW)

    assert data.status == RaceStatus.LIVE
    assert [p.uid for p in data.participants] == ["u2", "u3", "u1"]
    assert [p.position for p in data.participants] == [1, 2, 3]
    assert [p.prize for p in data.participants] == [212.5, 100.0, 75.0]
    assert data.total_wagered == 6_000
    assert data.participant_count == 3
    assert data.transition_ends == datetime(2026, 5, 1, 23, 59, 59, tzinfo=timezone.utc)
    assert data.next_race_starts == datetime(2026, 5, 1, tzinfo=timezone.utc)


def test_build_race_data_top_n(sample_leaderboard):
    data = build_race_data(sample_leaderboard, _race(), now=NOW, top_n=2)
    assert len(data.participants) == 2
    # Totals still cover every monthly user
    assert data.participant_count == 3
    assert data.total_wagered == 6_000


def test_get_user_race_position(sample_leaderboard):
    position = get_user_race_position(sample_leaderboard, "u3", _race())
    assert position.position == 2
    assert position.total_participants == 3
    assert position.wagered == 2_000
    assert position.prize == 100.0


def test_get_user_race_position_unranked(sample_leaderboard):
    position = get_user_race_position(sample_leaderboard, "u4", _race())
    assert position.position is None
    assert position.wagered == 0.0
    assert position.prize == 0.0


def test_snapshot_entries(sample_leaderboard):
    data = build_race_data(sample_leaderboard, _race(), now=NOW, top_n=1)
    assert snapshot_entries(data.participants) == [
        {"uid": "u2", "username": "bob", "wagered": 3_000, "rank": 1, "prize_won": 212.5}
    ]


@pytest.mark.asyncio
async def test_complete_race_refuses_completed_race(sample_leaderboard):
    race = _race(status=RaceStatus.COMPLETED)
    with pytest.raises(RaceError):
        await complete_race(None, race, sample_leaderboard, NOW)


def test_build_race_data_weekly_race_ranks_weekly_totals(sample_leaderboard):
    race = _race(
        name="weekly-20260413",
        type=RaceType.WEEKLY,
        start_date=datetime(2026, 4, 13, tzinfo=timezone.utc),
        end_date=datetime(2026, 4, 19, 23, 59, 59, tzinfo=timezone.utc),
    )
    data = build_race_data(sample_leaderboard, race, now=NOW)

    assert [(p.uid, p.wagered) for p in data.participants] == [("u2", 300), ("u1", 100)]
    assert data.next_race_starts == datetime(2026, 4, 20, tzinfo=timezone.utc)


def test_is_race_due():
    race = _race()
    lead = timedelta(minutes=10)

    assert not is_race_due(race, datetime(2026, 4, 30, 12, 0, tzinfo=timezone.utc), lead)
    assert not is_race_due(race, datetime(2026, 4, 30, 23, 49, tzinfo=timezone.utc), lead)
    assert is_race_due(race, datetime(2026, 4, 30, 23, 50, tzinfo=timezone.utc), lead)
    assert is_race_due(race, datetime(2026, 5, 1, 0, 5, tzinfo=timezone.utc), lead)
    assert not is_race_due(
        _race(status=RaceStatus.COMPLETED), datetime(2026, 5, 2, tzinfo=timezone.utc), lead
    )


@pytest.mark.asyncio
async def test_ensure_current_race_opens_race_for_period():
    stored = _race(id=1)
    session = FakeSession(results=[FakeResult(rowcount=1), FakeResult([stored])])

    race = await ensure_current_race(session, NOW)

    assert race is stored
    assert "202604" in statement_params(session.statements[0]).values()
    assert session.flushes == 0


@pytest.mark.asyncio
async def test_ensure_current_race_starts_upcoming_race():
    stored = _race(id=1, status=RaceStatus.UPCOMING)
    session = FakeSession(results=[FakeResult(rowcount=0), FakeResult([stored])])

    race = await ensure_current_race(session, NOW)

    assert race.status == RaceStatus.LIVE
    assert session.flushes == 1


def _may_race() -> WagerRace:
    return _race(
        id=2,
        name="202605",
        title="Monthly Race - May 2026",
        status=RaceStatus.UPCOMING,
        start_date=datetime(2026, 5, 1, tzinfo=timezone.utc),
        end_date=datetime(2026, 5, 31, 23, 59, 59, tzinfo=timezone.utc),
    )


def _completion_results(next_race: WagerRace) -> list[FakeResult]:
    # participants upsert, next race insert, next race select
    return [FakeResult(), FakeResult(rowcount=1), FakeResult([next_race])]


def _snapshot(session: FakeSession) -> RaceSnapshot:
    [snapshot] = [obj for obj in session.added if isinstance(obj, RaceSnapshot)]
    return snapshot


@pytest.mark.asyncio
async def test_complete_race_freezes_standings_and_opens_next_race(sample_leaderboard):
    now = datetime(2026, 4, 30, 23, 55, tzinfo=timezone.utc)
    race = _race(id=1, prize_distribution_json=json.dumps({"1": 0.5, "2": 0.3, "3": 0.2}))
    may = _may_race()
    session = FakeSession(results=_completion_results(may))

    completed = await complete_race(session, race, sample_leaderboard, now)

    assert race.status == RaceStatus.COMPLETED
    assert race.completed_at == now

    participant_params = statement_params(session.statements[0]).values()
    assert {"u1", "u2", "u3"} <= set(v for v in participant_params if isinstance(v, str))
    assert 250.0 in participant_params

    snapshot = _snapshot(session)
    assert snapshot.race_name == "Monthly Goated Race - April 2026"
    assert snapshot.race_type == "monthly"
    assert snapshot.original_race_end_date == race.end_date
    assert json.loads(snapshot.race_config_json)["prize_pool"] == 500.0
    assert json.loads(snapshot.leaderboard_entries_json)[0] == {
        "uid": "u2",
        "username": "bob",
        "wagered": 3_000,
        "rank": 1,
        "prize_won": 250.0,
    }

    # May opens upcoming (its window has not started) with April's prizes
    next_params = statement_params(session.statements[1]).values()
    assert "202605" in next_params
    assert RaceStatus.UPCOMING in next_params
    assert json.dumps({"1": 0.5, "2": 0.3, "3": 0.2}) in next_params

    assert completed.participants == 3
    assert completed.snapshot_id == snapshot.id
    assert completed.next_race is may


@pytest.mark.asyncio
async def test_complete_race_without_wagers_still_snapshots():
    empty = build_leaderboard([], NOW)
    # No participants upsert: next race insert and select only
    session = FakeSession(results=[FakeResult(rowcount=1), FakeResult([_may_race()])])

    completed = await complete_race(session, _race(id=1), empty, NOW)

    assert completed.participants == 0
    assert len(session.statements) == 2
    assert json.loads(_snapshot(session).leaderboard_entries_json) == []


@pytest.mark.asyncio
async def test_participants_upsert_keeps_one_row_per_uid():
    standings = [
        races.RaceParticipantView(uid="u2", name="bob", wagered=3_000, position=1, prize=250),
        races.RaceParticipantView(uid="u2", name="bob", wagered=3_000, position=2, prize=150),
        races.RaceParticipantView(uid="u3", name="carol", wagered=2_000, position=3, prize=100),
    ]
    session = FakeSession()

    await races._upsert_participants(session, _race(id=1), standings)

    [stmt] = session.statements
    params = statement_params(stmt).values()
    assert [v for v in params if v in ("u2", "u3")] == ["u2", "u3"]
    assert 150 not in params


@pytest.fixture
def finalize_env(monkeypatch: pytest.MonkeyPatch):
    state = {"logs": [], "released": [], "ensured": [], "fetches": 0, "leaderboard": None}

    async def acquire(key, ttl=600):
        return True

    async def release(key):
        state["released"].append(key)

    async def fake_record_sync_log(sync_type, status, duration_ms, **kwargs):
        state["logs"].append((sync_type, status, kwargs))

    async def fake_ensure_current_race(session, now=None, race_type=RaceType.MONTHLY):
        state["ensured"].append(now)

    async def fake_get_leaderboard_data(use_cache=True):
        state["fetches"] += 1
        if isinstance(state["leaderboard"], Exception):
            raise state["leaderboard"]
        return state["leaderboard"]

    monkeypatch.setattr(races, "acquire_lock", acquire)
    monkeypatch.setattr(races, "release_lock", release)
    monkeypatch.setattr(races, "record_sync_log", fake_record_sync_log)
    monkeypatch.setattr(races, "ensure_current_race", fake_ensure_current_race)
    monkeypatch.setattr(races, "get_leaderboard_data", fake_get_leaderboard_data)

    def use_session(session: FakeSession) -> FakeSession:
        monkeypatch.setattr(races, "get_session", sessions_of(session))
        return session

    state["use_session"] = use_session
    return state


def _may_leaderboard():
    # Upstream monthly totals right after the reset: only May wagers
    return build_leaderboard(
        [make_entry("newbie", "newbie", today=5, this_week=5, this_month=5, all_time=5)],
        datetime(2026, 5, 1, 0, 5, tzinfo=timezone.utc),
    )


@pytest.mark.asyncio
async def test_finalize_before_end_uses_live_totals(finalize_env, sample_leaderboard):
    now = datetime(2026, 4, 30, 23, 55, tzinfo=timezone.utc)
    finalize_env["leaderboard"] = sample_leaderboard
    session = finalize_env["use_session"](
        FakeSession(results=[FakeResult([_race(id=1)])] + _completion_results(_may_race()))
    )

    completed = await races.finalize_due_races(now)

    assert [c.race.name for c in completed] == ["202604"]
    assert finalize_env["fetches"] == 1
    entries = json.loads(_snapshot(session).leaderboard_entries_json)
    assert [e["uid"] for e in entries] == ["u2", "u3", "u1"]
    assert finalize_env["logs"] == [
        ("race_finalize", "success", {"records_processed": 1, "records_updated": 3})
    ]
    assert finalize_env["released"] == ["race_finalize"]
    assert finalize_env["ensured"] == [now]


@pytest.mark.asyncio
async def test_finalize_after_rollover_ranks_synced_totals(finalize_env):
    now = datetime(2026, 5, 1, 0, 5, tzinfo=timezone.utc)
    finalize_env["leaderboard"] = _may_leaderboard()
    synced = [
        GoatedWagerLeaderboard(
            uid="u2",
            name="bob",
            wagered_today=0,
            wagered_this_week=300,
            wagered_this_month=3_000,
            wagered_all_time=3_000,
            last_synced=datetime(2026, 4, 30, 23, 50, tzinfo=timezone.utc),
        ),
        GoatedWagerLeaderboard(
            uid="u3",
            name="carol",
            wagered_today=5,
            wagered_this_week=0,
            wagered_this_month=2_000,
            wagered_all_time=2_500_000,
            last_synced=datetime(2026, 4, 29, 8, 0, tzinfo=timezone.utc),
        ),
    ]
    april = _race(id=1)
    session = finalize_env["use_session"](
        FakeSession(
            results=[FakeResult([april]), FakeResult(synced)] + _completion_results(_may_race())
        )
    )

    completed = await races.finalize_due_races(now)

    assert len(completed) == 1
    # Post-reset upstream totals never reach the April race
    assert finalize_env["fetches"] == 0
    mirror_params = statement_params(session.statements[1]).values()
    assert april.start_date in mirror_params
    assert april.end_date in mirror_params

    entries = json.loads(_snapshot(session).leaderboard_entries_json)
    assert [(e["uid"], e["wagered"]) for e in entries] == [("u2", 3_000), ("u3", 2_000)]
    # May already started, so it opens live
    assert RaceStatus.LIVE in statement_params(session.statements[3]).values()


@pytest.mark.asyncio
async def test_finalize_ignores_races_not_yet_due(finalize_env):
    now = datetime(2026, 4, 30, 12, 0, tzinfo=timezone.utc)
    session = finalize_env["use_session"](FakeSession(results=[FakeResult([_race(id=1)])]))

    assert await races.finalize_due_races(now) == []
    assert len(session.statements) == 1
    assert finalize_env["fetches"] == 0
    assert finalize_env["logs"] == []
    assert finalize_env["ensured"] == [now]


@pytest.mark.asyncio
async def test_finalize_skips_when_locked(finalize_env, monkeypatch: pytest.MonkeyPatch):
    async def locked(key, ttl=600):
        return False

    monkeypatch.setattr(races, "acquire_lock", locked)
    session = finalize_env["use_session"](FakeSession())

    assert await races.finalize_due_races() == []
    assert session.statements == []
    assert finalize_env["released"] == []


@pytest.mark.asyncio
async def test_finalize_failure_is_logged_and_lock_released(finalize_env):
    finalize_env["leaderboard"] = GoatedAPIError("Goated API request failed: 500")
    finalize_env["use_session"](FakeSession(results=[FakeResult([_race(id=1)])]))

    with pytest.raises(GoatedAPIError):
        await races.finalize_due_races(datetime(2026, 4, 30, 23, 55, tzinfo=timezone.utc))

    [(sync_type, status, kwargs)] = finalize_env["logs"]
    assert (sync_type, status) == ("race_finalize", "error")
    assert kwargs["error_message"] == "Goated API request failed: 500"
    assert finalize_env["released"] == ["race_finalize"]


@pytest.mark.asyncio
async def test_create_race_custom_weekly():
    session = FakeSession(results=[FakeResult([])])
    config = RaceConfig(prize_pool=250.0, prize_distribution={"1": 0.6, "2": 0.4}, type=RaceType.WEEKLY)

    race = await create_race(session, config, now=NOW, description="Spring sprint")

    assert race.id == 100
    assert race.name == "weekly-20260413"
    assert race.title == "Weekly Race - 13 April 2026"
    assert race.status == RaceStatus.LIVE
    assert race.end_date == datetime(2026, 4, 19, 23, 59, 59, tzinfo=timezone.utc)
    assert race_distribution(race) == {"1": 0.6, "2": 0.4}
    assert race.description == "Spring sprint"
    assert session.added == [race]


@pytest.mark.asyncio
async def test_create_race_with_explicit_window():
    session = FakeSession(results=[FakeResult([])])
    start = datetime(2026, 6, 1, tzinfo=timezone.utc)
    end = datetime(2026, 6, 30, 23, 59, 59, tzinfo=timezone.utc)
    config = RaceConfig(prize_pool=1_000.0, title="June Mega Race")

    race = await create_race(session, config, start=start, end=end, now=NOW)

    assert race.name == "202606"
    assert race.title == "June Mega Race"
    assert race.status == RaceStatus.UPCOMING


@pytest.mark.asyncio
async def test_create_race_rejects_existing_period():
    session = FakeSession(results=[FakeResult([1])])
    with pytest.raises(RaceError):
        await create_race(session, RaceConfig(prize_pool=500.0), now=NOW)
    assert session.added == []


@pytest.mark.asyncio
async def test_create_race_rejects_bad_windows():
    start = datetime(2026, 6, 1, tzinfo=timezone.utc)
    with pytest.raises(ValueError):
        await create_race(FakeSession(), RaceConfig(prize_pool=1.0), start=start, end=start, now=NOW)
    with pytest.raises(ValueError):
        await create_race(
            FakeSession(),
            RaceConfig(prize_pool=1.0),
            start=datetime(2026, 3, 1, tzinfo=timezone.utc),
            end=datetime(2026, 3, 31, tzinfo=timezone.utc),
            now=NOW,
        )


@pytest.mark.asyncio
async def test_get_race_with_participants():
    race = _race(id=1, status=RaceStatus.COMPLETED)
    winner = WagerRaceParticipant(race_id=1, uid="u2", username="bob", position=1, wagered=3_000)
    session = FakeSession(results=[FakeResult([winner])], objects={(WagerRace, 1): race})

    detail = await get_race(session, 1)
    assert detail.race is race
    assert detail.participants == [winner]

    assert await get_race(session, 2) is None
