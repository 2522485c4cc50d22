"""API routes."""

from fastapi import APIRouter

from app.routes import admin, leaderboard, races

api_router = APIRouter()

# Leaderboard + VIP tiers
api_router.include_router(leaderboard.router, prefix="/v1", tags=["leaderboard"])

# Wager races + snapshots
api_router.include_router(races.router, prefix="/v1", tags=["races"])

# Admin endpoints (sync, races, overrides)
api_router.include_router(admin.router, prefix="/v1/admin", tags=["admin"])
