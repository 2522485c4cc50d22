"""WagerOverride model.

Admin-managed replacement values for a user's wager totals. Applied on top of
upstream data when serving leaderboards and races; a NULL field means "keep upstream".
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.stores.postgres import Base


class WagerOverride(Base):
    __tablename__ = "wager_overrides"

    id: Mapped[int] = mapped_column(primary_key=True)

    username: Mapped[str] = mapped_column(String(255), index=True)
    goated_id: Mapped[str | None] = mapped_column(String(255), index=True)

    today_override: Mapped[float | None] = mapped_column(Numeric(20, 8, asdecimal=False))
    this_week_override: Mapped[float | None] = mapped_column(Numeric(20, 8, asdecimal=False))
    this_month_override: Mapped[float | None] = mapped_column(Numeric(20, 8, asdecimal=False))
    all_time_override: Mapped[float | None] = mapped_column(Numeric(20, 8, asdecimal=False))

    active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    created_by: Mapped[str | None] = mapped_column(String(255))
    notes: Mapped[str | None] = mapped_column(String(1000))

    def __repr__(self) -> str:
        return f"<WagerOverride {self.username} active={self.active}>"
