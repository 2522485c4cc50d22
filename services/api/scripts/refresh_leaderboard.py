#!/usr/bin/env python3
"""Leaderboard refresh job for external cron.

Runs what the in-process scheduler runs, once:
1. Full leaderboard sync (leaderboard_users + goated_wager_leaderboard)
2. Race finalization (complete every race whose end date has passed)

Use this when SCHEDULER_ENABLED=false and the platform provides cron instead.

Run (local / cron):
  cd services/api
  python -m scripts.refresh_leaderboard

Optional env vars:
  REFRESH_SKIP_RACES=1   only sync, do not finalize races
"""

import asyncio
import os
import sys


# Ensure imports work when executed as a script/module
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.services.goated_client import close_goated_client  # noqa: E402
from app.services.leaderboard_sync import run_full_sync  # noqa: E402
from app.services.races import finalize_due_races  # noqa: E402
from app.stores.postgres import close_db, init_db, ping_db  # noqa: E402
from app.stores.redis import close_redis, init_redis  # noqa: E402


async def main() -> None:
    # Initialize shared connections (same as API lifespan, but for a one-off cron run)
    await init_db()
    await ping_db()
    try:
        await init_redis()
    except Exception:
        # Cron can still run without Redis (no cache, no overlap lock).
        pass

    try:
        sync = await run_full_sync()

        completed = []
        if os.getenv("REFRESH_SKIP_RACES", "").strip() not in {"1", "true", "yes"}:
            completed = await finalize_due_races()

        # Final output for cron logs (single JSON-ish blob)
        print(
            {
                "ok": True,
                "sync": sync.to_dict(),
                "races_completed": [
                    {
                        "race": c.race.name,
                        "participants": c.participants,
                        "snapshot_id": c.snapshot_id,
                        "next_race": c.next_race.name if c.next_race else None,
                    }
                    for c in completed
                ],
            }
        )
    finally:
        await close_goated_client()
        await close_redis()
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
