"""Shared route dependencies and error mapping."""

import hmac

from fastapi import Header, HTTPException

from app.services.goated_client import CircuitOpenError, GoatedAPIError
from app.settings import get_settings


async def require_admin_key(x_admin_key: str | None = Header(default=None)) -> None:
    """Check X-Admin-Key when ADMIN_API_KEY is configured (open otherwise)."""
    expected = get_settings().admin_api_key
    if not expected:
        return
    if not x_admin_key or not hmac.compare_digest(x_admin_key, expected):
        raise HTTPException(status_code=401, detail="Invalid or missing admin key")


def upstream_http_error(exc: GoatedAPIError) -> HTTPException:
    """503 while the circuit is open, 502 for any other upstream failure."""
    if isinstance(exc, CircuitOpenError):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=502, detail=f"Goated API error: {exc}")
