"""Schemas for wager race and race snapshot endpoints."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class RaceParticipantOut(BaseModel):
    uid: str
    name: str
    wagered: float
    position: int = Field(ge=1)
    prize: float


class RaceMetadata(BaseModel):
    transition_ends: datetime = Field(alias="transitionEnds")
    next_race_starts: datetime = Field(alias="nextRaceStarts")
    prize_distribution: list[float] = Field(alias="prizeDistribution")

    model_config = {"populate_by_name": True}


class CurrentRaceResponse(BaseModel):
    """Response payload for GET /v1/wager-races/current."""

    id: str
    title: str
    type: str
    status: str
    start_date: datetime = Field(alias="startDate")
    end_date: datetime = Field(alias="endDate")
    prize_pool: float = Field(alias="prizePool")
    participants: list[RaceParticipantOut]
    total_wagered: float = Field(alias="totalWagered")
    participant_count: int = Field(alias="participantCount", ge=0)
    metadata: RaceMetadata

    model_config = {"populate_by_name": True}


class PreviousParticipantOut(BaseModel):
    uid: str
    username: str
    position: int
    wagered: float
    prize_amount: float = Field(alias="prizeAmount")
    prize_claimed: bool = Field(alias="prizeClaimed")

    model_config = {"populate_by_name": True}


class PreviousRaceResponse(BaseModel):
    """Response payload for GET /v1/wager-races/previous."""

    id: str
    title: str
    type: str
    status: str
    start_date: datetime = Field(alias="startDate")
    end_date: datetime = Field(alias="endDate")
    completed_at: datetime | None = Field(alias="completedAt", default=None)
    prize_pool: float = Field(alias="prizePool")
    participants: list[PreviousParticipantOut]

    model_config = {"populate_by_name": True}


class RacePositionResponse(BaseModel):
    uid: str
    position: int | None = None
    total_participants: int = Field(alias="totalParticipants", ge=0)
    wagered: float
    prize: float = 0

    model_config = {"populate_by_name": True}


class SnapshotSummary(BaseModel):
    id: int
    race_name: str = Field(alias="raceName")
    race_type: str = Field(alias="raceType")
    end_date: datetime = Field(alias="endDate")

    model_config = {"populate_by_name": True}


class SnapshotEntry(BaseModel):
    uid: str
    username: str
    wagered: float
    rank: int
    prize_won: float = Field(alias="prizeWon")

    model_config = {"populate_by_name": True}


class SnapshotResponse(BaseModel):
    """Response payload for GET /v1/race-snapshots/{id}."""

    id: int
    race_name: str = Field(alias="raceName")
    race_type: str = Field(alias="raceType")
    end_date: datetime = Field(alias="endDate")
    snapshot_taken_at: datetime | None = Field(alias="snapshotTakenAt", default=None)
    config: dict[str, Any]
    entries: list[SnapshotEntry]

    model_config = {"populate_by_name": True}


class RaceDetailResponse(PreviousRaceResponse):
    """Response payload for GET /v1/wager-races/{id} and POST /v1/admin/races."""

    race_id: int = Field(alias="raceId")
    description: str | None = None
    prize_distribution: list[float] = Field(alias="prizeDistribution")
