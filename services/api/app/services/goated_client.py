"""Goated affiliate API client.

Fetches the referral leaderboard (every referred user with wager totals per period).

Resilience rules:
- Network errors and timeouts are retried with linear backoff (0s, 1s, 2s, ...)
- HTTP error statuses are not retried
- After N consecutive failed fetches the circuit opens and calls fail fast
  until the cooldown elapses (admin can reset it manually)

Caching:
- Raw upstream payload cached in Redis for LEADERBOARD_CACHE_TTL seconds

The upstream has changed response shapes over time; normalize_payload() accepts
all of them and returns a flat list of user dicts.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal

import httpx

from app.services.leaderboard import (
    LeaderboardEntry,
    LeaderboardPeriod,
    WagerTotals,
    dedupe_entries,
)
from app.settings import get_settings
from app.stores.redis import get_upstream_cache, set_upstream_cache

logger = logging.getLogger("uvicorn.error")


class GoatedAPIError(RuntimeError):
    """Upstream request failed or returned an unusable payload."""


class CircuitOpenError(GoatedAPIError):
    """Upstream calls are suspended after repeated failures."""


@dataclass
class CircuitStatus:
    state: Literal["closed", "open"]
    consecutive_failures: int
    failure_threshold: int
    retry_after_seconds: float


class GoatedAPIClient:
    """Client for the Goated referral leaderboard endpoint."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        leaderboard_path: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        failure_threshold: int | None = None,
        cooldown_seconds: float | None = None,
        backoff_seconds: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.goated_api_base_url).rstrip("/")
        self.token = token if token is not None else settings.goated_api_token
        self.leaderboard_path = leaderboard_path or settings.goated_leaderboard_path
        self.timeout = timeout or settings.goated_api_timeout
        self.max_retries = settings.goated_api_max_retries if max_retries is None else max_retries
        self.failure_threshold = failure_threshold or settings.circuit_failure_threshold
        self.cooldown_seconds = cooldown_seconds or settings.circuit_cooldown_seconds
        self.backoff_seconds = backoff_seconds
        self._transport = transport
        self._clock = clock
        self._http_client: httpx.AsyncClient | None = None

        self._consecutive_failures = 0
        self._open_until: float | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    # ============================================================
    # Circuit breaker
    # ============================================================

    def circuit_status(self) -> CircuitStatus:
        now = self._clock()
        is_open = self._open_until is not None and now < self._open_until
        return CircuitStatus(
            state="open" if is_open else "closed",
            consecutive_failures=self._consecutive_failures,
            failure_threshold=self.failure_threshold,
            retry_after_seconds=max(0.0, self._open_until - now) if is_open else 0.0,
        )

    def reset_circuit(self) -> None:
        self._consecutive_failures = 0
        self._open_until = None
        logger.info("Goated API circuit breaker reset")

    def _record_success(self) -> None:
        self._consecutive_failures = 0
        self._open_until = None

    def _record_failure(self) -> None:
        self._consecutive_failures += 1
        if self._consecutive_failures >= self.failure_threshold:
            self._open_until = self._clock() + self.cooldown_seconds
            logger.error(
                f"Goated API circuit OPEN after {self._consecutive_failures} consecutive failures "
                f"(cooldown {self.cooldown_seconds}s)"
            )

    # ============================================================
    # Fetching
    # ============================================================

    async def fetch_raw(self, use_cache: bool = True) -> Any:
        """Fetch the raw leaderboard payload.

        Raises:
            GoatedAPIError: Token missing, upstream error status, or retries exhausted.
            CircuitOpenError: Circuit is open.
        """
        if use_cache:
            try:
                cached = await get_upstream_cache()
                if cached is not None:
                    logger.info("Goated API cache HIT")
                    return cached
            except Exception as e:
                logger.warning(f"Redis cache read failed: {e}")

        if not self.token:
            raise GoatedAPIError("Goated API token not configured")

        status = self.circuit_status()
        if status.state == "open":
            raise CircuitOpenError(
                f"Goated API circuit open, retry in {status.retry_after_seconds:.0f}s"
            )

        try:
            data = await self._request_with_retries()
        except GoatedAPIError:
            self._record_failure()
            raise
        self._record_success()

        if use_cache:
            try:
                await set_upstream_cache(data, get_settings().leaderboard_cache_ttl)
            except Exception as e:
                logger.warning(f"Redis cache write failed: {e}")

        return data

    async def _request_with_retries(self) -> Any:
        url = f"{self.base_url}{self.leaderboard_path}"
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }
        client = await self._get_client()

        attempt = 0
        while True:
            logger.info(f"Fetching Goated leaderboard (attempt {attempt + 1}): {url}")
            try:
                response = await client.get(url, headers=headers)
            except httpx.TransportError as e:
                if attempt >= self.max_retries:
                    raise GoatedAPIError(f"Goated API unreachable: {e}") from e
                delay = attempt * self.backoff_seconds
                logger.warning(
                    f"Goated API request failed ({e.__class__.__name__}), retrying in {delay}s, "
                    f"{self.max_retries - attempt} attempts remaining"
                )
                await asyncio.sleep(delay)
                attempt += 1
                continue

            if response.status_code != 200:
                logger.error(
                    f"Goated API error: {response.status_code} - {response.text[:200]}"
                )
                raise GoatedAPIError(f"Goated API request failed: {response.status_code}")

            try:
                return response.json()
            except ValueError as e:
                raise GoatedAPIError("Goated API returned invalid JSON") from e

    async def fetch_leaderboard(self, use_cache: bool = True) -> list[LeaderboardEntry]:
        """Fetch and parse the leaderboard into entries.

        Users without uid/name are dropped; a uid listed twice keeps its last row.
        """
        data = await self.fetch_raw(use_cache=use_cache)
        items = normalize_payload(data)
        entries = dedupe_entries([entry for entry in (parse_entry(item) for item in items) if entry])
        logger.info(f"Goated API returned {len(items)} users ({len(entries)} valid)")
        return entries


# ============================================================
# Payload parsing
# ============================================================


def normalize_payload(data: Any) -> list[dict[str, Any]]:
    """Flatten any known upstream response shape into a list of user dicts.

    Accepted shapes:
    - [ {...}, ... ]
    - {"results": [ ... ]} / {"data": [ ... ]} (results is checked first)
    - {"data": {"data": [ ... ]}}
    - {"data": {"today": {"data": [...]}, "weekly": ..., "monthly": ..., "all_time": ...}}
    """
    if isinstance(data, list):
        return [item for item in data if isinstance(item, dict)]
    if not isinstance(data, dict):
        raise GoatedAPIError("Unexpected Goated API response format")

    for key in ("results", "data"):
        inner = data.get(key)
        if isinstance(inner, list):
            return [item for item in inner if isinstance(item, dict)]

    inner = data.get("data")
    if isinstance(inner, dict):
        if isinstance(inner.get("data"), list):
            return [item for item in inner["data"] if isinstance(item, dict)]
        if any(p.value in inner for p in LeaderboardPeriod):
            return _merge_period_groups(inner)

    raise GoatedAPIError("Unexpected Goated API response format")


def _merge_period_groups(grouped: dict[str, Any]) -> list[dict[str, Any]]:
    # Users appear in several periods; first occurrence wins, all_time first since
    # it is the superset of everyone else.
    seen: dict[str, dict[str, Any]] = {}
    order = [LeaderboardPeriod.ALL_TIME, LeaderboardPeriod.MONTHLY, LeaderboardPeriod.WEEKLY, LeaderboardPeriod.TODAY]
    for period in order:
        group = grouped.get(period.value) or {}
        items = group.get("data") if isinstance(group, dict) else group
        for item in items or []:
            if not isinstance(item, dict) or not item.get("uid"):
                continue
            seen.setdefault(str(item["uid"]), item)
    return list(seen.values())


def parse_amount(value: Any) -> float:
    """Parse a wager amount leniently: numbers or numeric strings, anything else is 0."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        amount = float(value)
    elif isinstance(value, str):
        try:
            amount = float(value.replace(",", "").strip())
        except ValueError:
            return 0.0
    else:
        return 0.0
    if amount != amount or amount < 0:  # NaN or negative
        return 0.0
    return amount


def parse_entry(item: dict[str, Any]) -> LeaderboardEntry | None:
    """Parse one upstream user. Returns None when uid or name is missing."""
    uid = item.get("uid")
    name = item.get("name")
    if not uid or not name:
        return None

    wagered = item.get("wagered")
    if not isinstance(wagered, dict):
        wagered = {}

    return LeaderboardEntry(
        uid=str(uid),
        name=str(name),
        wagered=WagerTotals(
            today=parse_amount(wagered.get("today")),
            this_week=parse_amount(wagered.get("this_week")),
            this_month=parse_amount(wagered.get("this_month")),
            all_time=parse_amount(wagered.get("all_time")),
        ),
    )


# Singleton client instance
_client: GoatedAPIClient | None = None


def get_goated_client() -> GoatedAPIClient:
    """Get Goated API client singleton."""
    global _client
    if _client is None:
        _client = GoatedAPIClient()
    return _client


async def close_goated_client() -> None:
    global _client
    if _client is not None:
        await _client.close()
        _client = None
