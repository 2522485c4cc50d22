"""Schemas for leaderboard and tier endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field


class WagerAmounts(BaseModel):
    """Wager totals per period (upstream field names)."""

    today: float = 0
    this_week: float = 0
    this_month: float = 0
    all_time: float = 0


class LeaderboardUserOut(BaseModel):
    uid: str
    name: str
    wagered: WagerAmounts


class PeriodData(BaseModel):
    data: list[LeaderboardUserOut] = Field(default_factory=list)


class StatsMetadata(BaseModel):
    total_users: int = Field(alias="totalUsers", ge=0)
    last_updated: datetime = Field(alias="lastUpdated")

    model_config = {"populate_by_name": True}


class AffiliateStatsResponse(BaseModel):
    """Response payload for GET /v1/affiliate/stats.

    Shape: { status, metadata: {totalUsers, lastUpdated}, data: {today|weekly|monthly|all_time: {data: [...]}} }
    """

    status: str
    metadata: StatsMetadata
    data: dict[str, PeriodData]


class RankedUser(BaseModel):
    rank: int = Field(ge=1)
    uid: str
    name: str
    wagered: float
    totals: WagerAmounts


class PeriodLeaderboardResponse(BaseModel):
    """Response payload for GET /v1/leaderboard/{period}."""

    period: str
    total: int = Field(ge=0)
    last_updated: datetime = Field(alias="lastUpdated")
    data: list[RankedUser]

    model_config = {"populate_by_name": True}


class TierLevelOut(BaseModel):
    name: str
    xp: float


class TierOut(BaseModel):
    key: str
    name: str
    min_wager: float = Field(alias="minWager")
    color: str
    benefits: list[str]
    levels: list[TierLevelOut]

    model_config = {"populate_by_name": True}


class TierProgressResponse(BaseModel):
    wager: float
    current: TierOut
    next: TierOut | None = None
    level: TierLevelOut
    percentage: float = Field(ge=0, le=100)


class UserTierResponse(BaseModel):
    """Response payload for GET /v1/users/{uid}/tier."""

    uid: str
    name: str
    wager_all_time: float = Field(alias="wagerAllTime")
    tier: TierOut
    level: TierLevelOut
    next_tier: TierOut | None = Field(alias="nextTier", default=None)
    progress: float = Field(ge=0, le=100)

    model_config = {"populate_by_name": True}
