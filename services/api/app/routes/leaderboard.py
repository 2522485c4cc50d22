"""Leaderboard and VIP tier endpoints.

GET /v1/affiliate/stats        - full leaderboard payload (all periods)
GET /v1/leaderboard/{period}   - one period, ranked
GET /v1/tiers                  - tier table
GET /v1/tiers/progress         - tier progress for a wager amount
GET /v1/users/{uid}/tier       - tier of a synced user

Routers are thin: call services for business logic.
"""

from fastapi import APIRouter, HTTPException, Query

from app.schemas import (
    AffiliateStatsResponse,
    PeriodLeaderboardResponse,
    TierOut,
    TierProgressResponse,
    UserTierResponse,
)
from app.schemas.leaderboard import RankedUser, TierLevelOut, WagerAmounts
from app.services.goated_client import GoatedAPIError
from app.services.leaderboard import LeaderboardPeriod
from app.services.leaderboard_sync import get_leaderboard_data, get_synced_user
from app.services.tiers import (
    TIERS,
    TierDefinition,
    get_next_tier,
    get_tier_level,
    get_tier_progress,
)
from app.routes.deps import upstream_http_error

router = APIRouter()


def _tier_out(tier: TierDefinition) -> TierOut:
    return TierOut.model_validate(tier.to_dict())


@router.get("/affiliate/stats", response_model=AffiliateStatsResponse)
async def get_affiliate_stats() -> AffiliateStatsResponse:
    """Leaderboard for every period with wager overrides applied."""
    try:
        leaderboard = await get_leaderboard_data()
    except GoatedAPIError as e:
        raise upstream_http_error(e) from e
    return AffiliateStatsResponse.model_validate(leaderboard.to_payload())


@router.get("/leaderboard/{period}", response_model=PeriodLeaderboardResponse)
async def get_period_leaderboard(
    period: LeaderboardPeriod,
    limit: int = Query(default=100, ge=1, le=1000, description="Max users returned"),
) -> PeriodLeaderboardResponse:
    try:
        leaderboard = await get_leaderboard_data()
    except GoatedAPIError as e:
        raise upstream_http_error(e) from e

    ranked = leaderboard.period(period)
    return PeriodLeaderboardResponse(
        period=period.value,
        total=len(ranked),
        last_updated=leaderboard.last_updated,
        data=[
            RankedUser(
                rank=index + 1,
                uid=entry.uid,
                name=entry.name,
                wagered=entry.wagered.for_period(period),
                totals=WagerAmounts(**entry.wagered.to_dict()),
            )
            for index, entry in enumerate(ranked[:limit])
        ],
    )


@router.get("/tiers", response_model=list[TierOut])
async def list_tiers() -> list[TierOut]:
    return [_tier_out(tier) for tier in TIERS]


@router.get("/tiers/progress", response_model=TierProgressResponse)
async def tier_progress(
    wager: float = Query(ge=0, description="All-time wager (USD)"),
) -> TierProgressResponse:
    progress = get_tier_progress(wager)
    level = get_tier_level(wager)
    return TierProgressResponse(
        wager=wager,
        current=_tier_out(progress.current),
        next=_tier_out(progress.next) if progress.next else None,
        level=TierLevelOut(name=level.name, xp=level.xp),
        percentage=progress.percentage,
    )


@router.get("/users/{uid}/tier", response_model=UserTierResponse)
async def get_user_tier(uid: str) -> UserTierResponse:
    """VIP tier of a synced user (by Goated ID)."""
    user = await get_synced_user(uid)
    if user is None:
        raise HTTPException(status_code=404, detail=f"User not found: {uid}")

    wager = float(user.wager_all_time or 0)
    progress = get_tier_progress(wager)
    level = get_tier_level(wager)
    nxt = get_next_tier(progress.current.key)
    return UserTierResponse(
        uid=user.uid,
        name=user.name,
        wager_all_time=wager,
        tier=_tier_out(progress.current),
        level=TierLevelOut(name=level.name, xp=level.xp),
        next_tier=_tier_out(nxt) if nxt else None,
        progress=progress.percentage,
    )
