"""Schemas for admin endpoints (/v1/admin/*)."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from app.services.prizes import RaceStatus, RaceType


class SyncResponse(BaseModel):
    success: bool
    skipped: bool = False
    users: dict[str, Any] | None = None
    wager: dict[str, Any] | None = None


class SyncLogOut(BaseModel):
    id: int
    type: str
    status: str
    error_message: str | None = Field(alias="errorMessage", default=None)
    duration_ms: float | None = Field(alias="durationMs", default=None)
    records_processed: int = Field(alias="recordsProcessed", default=0)
    records_updated: int = Field(alias="recordsUpdated", default=0)
    created_at: datetime | None = Field(alias="createdAt", default=None)

    model_config = {"populate_by_name": True, "from_attributes": True}


class CompletedRaceOut(BaseModel):
    race: str
    participants: int
    snapshot_id: int | None = Field(alias="snapshotId", default=None)
    next_race: str | None = Field(alias="nextRace", default=None)

    model_config = {"populate_by_name": True}


class FinalizeResponse(BaseModel):
    completed: list[CompletedRaceOut]


class RaceStatusUpdate(BaseModel):
    status: RaceStatus


class RaceCreate(BaseModel):
    """Request body for POST /v1/admin/races.

    Dates default to the window of `type` containing now; the distribution
    defaults to the configured one.
    """

    type: RaceType = RaceType.MONTHLY
    title: str | None = Field(default=None, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    prize_pool: float = Field(alias="prizePool", ge=0)
    prize_distribution: dict[str, float] | None = Field(alias="prizeDistribution", default=None)
    start_date: datetime | None = Field(alias="startDate", default=None)
    end_date: datetime | None = Field(alias="endDate", default=None)

    model_config = {"populate_by_name": True}


class RaceStatusResponse(BaseModel):
    id: int
    name: str
    status: str
    completed_at: datetime | None = Field(alias="completedAt", default=None)

    model_config = {"populate_by_name": True}


class WagerOverrideCreate(BaseModel):
    """Request body for POST /v1/admin/wager-overrides (at least one amount required)."""

    username: str = Field(min_length=1, max_length=255)
    goated_id: str | None = Field(alias="goatedId", default=None)
    today: float | None = Field(default=None, ge=0)
    this_week: float | None = Field(alias="thisWeek", default=None, ge=0)
    this_month: float | None = Field(alias="thisMonth", default=None, ge=0)
    all_time: float | None = Field(alias="allTime", default=None, ge=0)
    expires_at: datetime | None = Field(alias="expiresAt", default=None)
    created_by: str | None = Field(alias="createdBy", default=None)
    notes: str | None = Field(default=None, max_length=1000)

    model_config = {"populate_by_name": True}


class WagerOverrideOut(BaseModel):
    id: int
    username: str
    goated_id: str | None = Field(alias="goatedId", default=None)
    today_override: float | None = Field(alias="todayOverride", default=None)
    this_week_override: float | None = Field(alias="thisWeekOverride", default=None)
    this_month_override: float | None = Field(alias="thisMonthOverride", default=None)
    all_time_override: float | None = Field(alias="allTimeOverride", default=None)
    active: bool
    expires_at: datetime | None = Field(alias="expiresAt", default=None)
    created_at: datetime | None = Field(alias="createdAt", default=None)
    created_by: str | None = Field(alias="createdBy", default=None)
    notes: str | None = None

    model_config = {"populate_by_name": True, "from_attributes": True}


class CircuitBreakerResponse(BaseModel):
    state: str
    consecutive_failures: int = Field(alias="consecutiveFailures")
    failure_threshold: int = Field(alias="failureThreshold")
    retry_after_seconds: float = Field(alias="retryAfterSeconds")

    model_config = {"populate_by_name": True}
