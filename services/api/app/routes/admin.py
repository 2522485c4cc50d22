"""Admin endpoints for sync, races and wager overrides.

All endpoints require the X-Admin-Key header when ADMIN_API_KEY is set.
"""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query

from app.routes.deps import require_admin_key, upstream_http_error
from app.routes.races import race_detail_response
from app.schemas import (
    CircuitBreakerResponse,
    FinalizeResponse,
    RaceCreate,
    RaceDetailResponse,
    SyncLogOut,
    SyncResponse,
    WagerOverrideCreate,
    WagerOverrideOut,
)
from app.schemas.admin import CompletedRaceOut, RaceStatusResponse, RaceStatusUpdate
from app.services.goated_client import GoatedAPIError, get_goated_client
from app.services.leaderboard_sync import get_recent_sync_logs, run_full_sync
from app.services.overrides import (
    OverrideInput,
    create_override,
    deactivate_override,
    list_overrides,
)
from app.services.prizes import RaceConfig
from app.services.races import (
    RaceError,
    RaceWithParticipants,
    create_race,
    finalize_due_races,
    update_race_status,
)
from app.settings import get_settings
from app.stores.postgres import get_session

router = APIRouter(dependencies=[Depends(require_admin_key)])
logger = logging.getLogger("uvicorn.error")


@router.post("/sync", response_model=SyncResponse)
async def trigger_sync() -> SyncResponse:
    """Run the leaderboard sync now (skipped if a run is already in progress)."""
    try:
        result = await run_full_sync()
    except GoatedAPIError as e:
        raise upstream_http_error(e) from e

    return SyncResponse(
        success=not result.skipped,
        skipped=result.skipped,
        users=asdict(result.users) if result.users else None,
        wager=asdict(result.wager) if result.wager else None,
    )


@router.get("/sync/logs", response_model=list[SyncLogOut])
async def sync_logs(limit: int = Query(default=20, ge=1, le=200)) -> list[SyncLogOut]:
    logs = await get_recent_sync_logs(limit)
    return [SyncLogOut.model_validate(log) for log in logs]


@router.post("/races/finalize", response_model=FinalizeResponse)
async def finalize_races() -> FinalizeResponse:
    """Complete every race whose end date has passed."""
    try:
        completed = await finalize_due_races()
    except GoatedAPIError as e:
        raise upstream_http_error(e) from e

    return FinalizeResponse(
        completed=[
            CompletedRaceOut(
                race=item.race.name,
                participants=item.participants,
                snapshot_id=item.snapshot_id,
                next_race=item.next_race.name if item.next_race else None,
            )
            for item in completed
        ]
    )


@router.post("/races", response_model=RaceDetailResponse, status_code=201)
async def post_race(request: RaceCreate) -> RaceDetailResponse:
    """Open a custom race (own type, window and prizes)."""
    config = RaceConfig(
        prize_pool=request.prize_pool,
        prize_distribution=request.prize_distribution or dict(get_settings().race_prize_distribution),
        type=request.type,
        title=request.title or "",
    )
    try:
        async with get_session() as session:
            race = await create_race(
                session,
                config,
                start=request.start_date,
                end=request.end_date,
                description=request.description,
            )
            out = race_detail_response(RaceWithParticipants(race=race))
    except RaceError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    logger.info(f"Admin created race {out.id}")
    return out


@router.patch("/races/{race_id}/status", response_model=RaceStatusResponse)
async def set_race_status(race_id: int, request: RaceStatusUpdate) -> RaceStatusResponse:
    async with get_session() as session:
        race = await update_race_status(session, race_id, request.status)
        if race is None:
            raise HTTPException(status_code=404, detail=f"Race not found: {race_id}")
        return RaceStatusResponse(
            id=race.id,
            name=race.name,
            status=race.status.value,
            completed_at=race.completed_at,
        )


@router.get("/wager-overrides", response_model=list[WagerOverrideOut])
async def get_wager_overrides(
    include_inactive: bool = Query(default=False, alias="includeInactive"),
) -> list[WagerOverrideOut]:
    async with get_session() as session:
        overrides = await list_overrides(session, include_inactive=include_inactive)
        return [WagerOverrideOut.model_validate(o) for o in overrides]


@router.post("/wager-overrides", response_model=WagerOverrideOut, status_code=201)
async def post_wager_override(request: WagerOverrideCreate) -> WagerOverrideOut:
    data = OverrideInput(
        username=request.username,
        goated_id=request.goated_id,
        today=request.today,
        this_week=request.this_week,
        this_month=request.this_month,
        all_time=request.all_time,
        expires_at=request.expires_at,
        created_by=request.created_by,
        notes=request.notes,
    )
    try:
        async with get_session() as session:
            override = await create_override(session, data)
            out = WagerOverrideOut.model_validate(override)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    logger.info(f"Admin created wager override for {request.username}")
    return out


@router.delete("/wager-overrides/{override_id}", response_model=WagerOverrideOut)
async def delete_wager_override(override_id: int) -> WagerOverrideOut:
    """Deactivate an override (rows are kept for audit)."""
    async with get_session() as session:
        override = await deactivate_override(session, override_id)
        if override is None:
            raise HTTPException(status_code=404, detail=f"Override not found: {override_id}")
        return WagerOverrideOut.model_validate(override)


@router.get("/circuit-breaker", response_model=CircuitBreakerResponse)
async def circuit_breaker_status() -> CircuitBreakerResponse:
    status = get_goated_client().circuit_status()
    return CircuitBreakerResponse(
        state=status.state,
        consecutive_failures=status.consecutive_failures,
        failure_threshold=status.failure_threshold,
        retry_after_seconds=status.retry_after_seconds,
    )


@router.post("/circuit-breaker/reset", response_model=CircuitBreakerResponse)
async def circuit_breaker_reset() -> CircuitBreakerResponse:
    client = get_goated_client()
    client.reset_circuit()
    status = client.circuit_status()
    return CircuitBreakerResponse(
        state=status.state,
        consecutive_failures=status.consecutive_failures,
        failure_threshold=status.failure_threshold,
        retry_after_seconds=status.retry_after_seconds,
    )
