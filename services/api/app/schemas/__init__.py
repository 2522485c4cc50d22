"""Pydantic schemas for API request/response validation."""

from app.schemas.admin import (
    CircuitBreakerResponse,
    FinalizeResponse,
    RaceCreate,
    SyncLogOut,
    SyncResponse,
    WagerOverrideCreate,
    WagerOverrideOut,
)
from app.schemas.common import ErrorDetail, ErrorResponse
from app.schemas.leaderboard import (
    AffiliateStatsResponse,
    PeriodLeaderboardResponse,
    TierOut,
    TierProgressResponse,
    UserTierResponse,
)
from app.schemas.races import (
    CurrentRaceResponse,
    PreviousRaceResponse,
    RaceDetailResponse,
    RacePositionResponse,
    SnapshotResponse,
    SnapshotSummary,
)

__all__ = [
    "AffiliateStatsResponse",
    "CircuitBreakerResponse",
    "CurrentRaceResponse",
    "ErrorDetail",
    "ErrorResponse",
    "FinalizeResponse",
    "PeriodLeaderboardResponse",
    "PreviousRaceResponse",
    "RaceCreate",
    "RaceDetailResponse",
    "RacePositionResponse",
    "SnapshotResponse",
    "SnapshotSummary",
    "SyncLogOut",
    "SyncResponse",
    "TierOut",
    "TierProgressResponse",
    "UserTierResponse",
    "WagerOverrideCreate",
    "WagerOverrideOut",
]
