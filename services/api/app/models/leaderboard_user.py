"""LeaderboardUser model.

Mirror of the upstream referral leaderboard, one row per active Goated user
(all-time wager > 0). Fully overwritten on every sync.
"""

from datetime import datetime

from sqlalchemy import DateTime, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.stores.postgres import Base


class LeaderboardUser(Base):
    """Active affiliate user with wager totals per period."""

    __tablename__ = "leaderboard_users"

    id: Mapped[int] = mapped_column(primary_key=True)

    # Goated ID (external user identifier)
    uid: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(200))

    # Wager totals (USD)
    wager_today: Mapped[float] = mapped_column(Numeric(18, 8, asdecimal=False), default=0)
    wager_week: Mapped[float] = mapped_column(Numeric(18, 8, asdecimal=False), default=0)
    wager_month: Mapped[float] = mapped_column(Numeric(18, 8, asdecimal=False), default=0)
    wager_all_time: Mapped[float] = mapped_column(
        Numeric(18, 8, asdecimal=False), default=0, index=True
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"<LeaderboardUser {self.uid} {self.name}>"
