"""RaceSnapshot model.

Frozen copy of a race's config and final leaderboard taken when the race ends,
so history survives upstream data changes.
"""

from datetime import datetime

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.stores.postgres import Base


class RaceSnapshot(Base):
    __tablename__ = "race_snapshots"

    id: Mapped[int] = mapped_column(primary_key=True)

    snapshot_taken_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    original_race_end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)

    race_type: Mapped[str] = mapped_column(String(20), index=True)
    # e.g. "Monthly Goated Race - April 2026"
    race_name: Mapped[str] = mapped_column(String(200))

    # JSON-serialized text: RaceConfig at the time the race ended
    race_config_json: Mapped[str] = mapped_column(Text)
    # JSON-serialized text: [{uid, username, wagered, rank, prize_won}, ...]
    leaderboard_entries_json: Mapped[str] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<RaceSnapshot {self.race_name}>"
