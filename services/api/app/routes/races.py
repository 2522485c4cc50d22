"""Wager race endpoints.

GET /v1/wager-races/current    - live standings of the current monthly race
GET /v1/wager-races/previous   - final standings of the last completed race
GET /v1/wager-races/position   - a user's position in the current race
GET /v1/wager-races/{id}       - one race with its stored participants
GET /v1/race-snapshots         - snapshot list for a race type
GET /v1/race-snapshots/{id}    - one snapshot with config and entries
"""

import json

from fastapi import APIRouter, HTTPException, Query

from app.schemas import (
    CurrentRaceResponse,
    PreviousRaceResponse,
    RacePositionResponse,
    SnapshotResponse,
    SnapshotSummary,
)
from app.schemas.races import (
    PreviousParticipantOut,
    RaceDetailResponse,
    RaceMetadata,
    RaceParticipantOut,
)
from app.services.goated_client import GoatedAPIError
from app.services.prizes import RaceType, prize_fractions
from app.services.races import (
    RaceWithParticipants,
    get_current_position,
    get_current_race,
    get_previous_race,
    get_race,
    get_snapshot,
    list_snapshots,
    race_distribution,
)
from app.stores.postgres import get_session
from app.routes.deps import upstream_http_error

router = APIRouter()


def _participants_out(detail: RaceWithParticipants) -> list[PreviousParticipantOut]:
    return [
        PreviousParticipantOut(
            uid=p.uid,
            username=p.username,
            position=p.position,
            wagered=float(p.wagered or 0),
            prize_amount=float(p.prize_amount or 0),
            prize_claimed=bool(p.prize_claimed),
        )
        for p in detail.participants
    ]


def race_detail_response(detail: RaceWithParticipants) -> RaceDetailResponse:
    race = detail.race
    return RaceDetailResponse(
        race_id=race.id,
        id=race.name,
        title=race.title,
        description=race.description,
        type=race.type.value,
        status=race.status.value,
        start_date=race.start_date,
        end_date=race.end_date,
        completed_at=race.completed_at,
        prize_pool=float(race.prize_pool),
        prize_distribution=prize_fractions(race_distribution(race)),
        participants=_participants_out(detail),
    )


@router.get("/wager-races/current", response_model=CurrentRaceResponse)
async def current_race() -> CurrentRaceResponse:
    try:
        race = await get_current_race()
    except GoatedAPIError as e:
        raise upstream_http_error(e) from e

    return CurrentRaceResponse(
        id=race.name,
        title=race.title,
        type=race.type.value,
        status=race.status.value,
        start_date=race.start_date,
        end_date=race.end_date,
        prize_pool=race.prize_pool,
        participants=[
            RaceParticipantOut(
                uid=p.uid,
                name=p.name,
                wagered=p.wagered,
                position=p.position,
                prize=p.prize,
            )
            for p in race.participants
        ],
        total_wagered=race.total_wagered,
        participant_count=race.participant_count,
        metadata=RaceMetadata(
            transition_ends=race.transition_ends,
            next_race_starts=race.next_race_starts,
            prize_distribution=prize_fractions(race.prize_distribution),
        ),
    )


@router.get("/wager-races/previous", response_model=PreviousRaceResponse)
async def previous_race() -> PreviousRaceResponse:
    async with get_session() as session:
        previous = await get_previous_race(session)
    if previous is None:
        raise HTTPException(status_code=404, detail="No completed race yet")

    race = previous.race
    return PreviousRaceResponse(
        id=race.name,
        title=race.title,
        type=race.type.value,
        status=race.status.value,
        start_date=race.start_date,
        end_date=race.end_date,
        completed_at=race.completed_at,
        prize_pool=float(race.prize_pool),
        participants=_participants_out(previous),
    )


@router.get("/wager-races/position", response_model=RacePositionResponse)
async def race_position(
    uid: str = Query(min_length=1, description="Goated ID"),
) -> RacePositionResponse:
    try:
        position = await get_current_position(uid)
    except GoatedAPIError as e:
        raise upstream_http_error(e) from e

    return RacePositionResponse(
        uid=position.uid,
        position=position.position,
        total_participants=position.total_participants,
        wagered=position.wagered,
        prize=position.prize,
    )


@router.get("/race-snapshots", response_model=list[SnapshotSummary])
async def race_snapshots(
    race_type: RaceType = Query(default=RaceType.MONTHLY, alias="type"),
    limit: int = Query(default=50, ge=1, le=200),
) -> list[SnapshotSummary]:
    async with get_session() as session:
        snapshots = await list_snapshots(session, race_type, limit=limit)
    return [
        SnapshotSummary(
            id=s.id,
            race_name=s.race_name,
            race_type=s.race_type,
            end_date=s.original_race_end_date,
        )
        for s in snapshots
    ]


@router.get("/race-snapshots/{snapshot_id}", response_model=SnapshotResponse)
async def race_snapshot(snapshot_id: int) -> SnapshotResponse:
    async with get_session() as session:
        snapshot = await get_snapshot(session, snapshot_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail=f"Snapshot not found: {snapshot_id}")

    return SnapshotResponse(
        id=snapshot.id,
        race_name=snapshot.race_name,
        race_type=snapshot.race_type,
        end_date=snapshot.original_race_end_date,
        snapshot_taken_at=snapshot.snapshot_taken_at,
        config=json.loads(snapshot.race_config_json),
        entries=json.loads(snapshot.leaderboard_entries_json),
    )


@router.get("/wager-races/{race_id}", response_model=RaceDetailResponse)
async def race_detail(race_id: int) -> RaceDetailResponse:
    async with get_session() as session:
        detail = await get_race(session, race_id)
    if detail is None:
        raise HTTPException(status_code=404, detail=f"Race not found: {race_id}")
    return race_detail_response(detail)
