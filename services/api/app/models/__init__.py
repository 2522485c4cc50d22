"""SQLAlchemy ORM models.

Models represent database tables:
- leaderboard_users: Active affiliate users mirrored from the Goated API
- goated_wager_leaderboard: Change-tracked wager totals per Goated ID
- sync_logs: One row per sync run
- wager_races / wager_race_participants: Race periods and final standings
- race_snapshots: Frozen race config + leaderboard at race end
- wager_overrides: Admin replacements for wager totals
"""

from app.models.leaderboard_user import LeaderboardUser
from app.models.wager_leaderboard import GoatedWagerLeaderboard
from app.models.sync_log import SyncLog
from app.models.wager_race import WagerRace, WagerRaceParticipant
from app.models.race_snapshot import RaceSnapshot
from app.models.wager_override import WagerOverride

__all__ = [
    "LeaderboardUser",
    "GoatedWagerLeaderboard",
    "SyncLog",
    "WagerRace",
    "WagerRaceParticipant",
    "RaceSnapshot",
    "WagerOverride",
]
