"""GoatedWagerLeaderboard model.

Change-tracking mirror of upstream wager totals keyed by Goated ID.
The name is captured on first insert and never overwritten; wager columns and
last_synced only move when a total actually changed.
"""

from datetime import datetime

from sqlalchemy import DateTime, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.stores.postgres import Base


class GoatedWagerLeaderboard(Base):
    __tablename__ = "goated_wager_leaderboard"

    uid: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(200))

    wagered_today: Mapped[float] = mapped_column(Numeric(18, 8, asdecimal=False), default=0)
    wagered_this_week: Mapped[float] = mapped_column(Numeric(18, 8, asdecimal=False), default=0)
    wagered_this_month: Mapped[float] = mapped_column(Numeric(18, 8, asdecimal=False), default=0)
    wagered_all_time: Mapped[float] = mapped_column(Numeric(18, 8, asdecimal=False), default=0)

    last_synced: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<GoatedWagerLeaderboard {self.uid}>"
