"""Wager race models.

A WagerRace is one time-boxed competition period (e.g. a calendar month).
WagerRaceParticipant rows hold the final standings written when the race completes.
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.services.prizes import RaceStatus, RaceType
from app.stores.postgres import Base


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class WagerRace(Base):
    """A wager race period."""

    __tablename__ = "wager_races"

    id: Mapped[int] = mapped_column(primary_key=True)

    # Stable period key, e.g. "202604" for April 2026
    name: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text)

    type: Mapped[RaceType] = mapped_column(
        Enum(RaceType, name="race_type", values_callable=_enum_values),
        default=RaceType.MONTHLY,
    )
    status: Mapped[RaceStatus] = mapped_column(
        Enum(RaceStatus, name="race_status", values_callable=_enum_values),
        default=RaceStatus.UPCOMING,
        index=True,
    )

    prize_pool: Mapped[float] = mapped_column(Numeric(18, 2, asdecimal=False))
    # {"1": 0.425, "2": 0.2, ...} (JSON-serialized text)
    prize_distribution_json: Mapped[str] = mapped_column(Text)

    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"<WagerRace {self.name} ({self.status.value})>"


class WagerRaceParticipant(Base):
    """Final standing of one user in a completed race."""

    __tablename__ = "wager_race_participants"
    __table_args__ = (UniqueConstraint("race_id", "uid", name="uq_race_participant_uid"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    race_id: Mapped[int] = mapped_column(ForeignKey("wager_races.id"), index=True)

    uid: Mapped[str] = mapped_column(String(100), index=True)
    username: Mapped[str] = mapped_column(String(200))

    position: Mapped[int] = mapped_column(Integer)
    wagered: Mapped[float] = mapped_column(Numeric(18, 8, asdecimal=False), default=0)
    prize_amount: Mapped[float] = mapped_column(Numeric(18, 2, asdecimal=False), default=0)
    prize_claimed: Mapped[bool] = mapped_column(Boolean, default=False)

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
