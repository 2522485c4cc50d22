"""initial_goated_schema

Revision ID: 1f4e2b7c9a30
Revises:
Create Date: 2026-10-18
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "1f4e2b7c9a30"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


race_type = sa.Enum("monthly", "weekly", "weekend", name="race_type")
race_status = sa.Enum("upcoming", "live", "completed", name="race_status")


def upgrade() -> None:
    op.create_table(
        "leaderboard_users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("uid", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("wager_today", sa.Numeric(18, 8), nullable=False),
        sa.Column("wager_week", sa.Numeric(18, 8), nullable=False),
        sa.Column("wager_month", sa.Numeric(18, 8), nullable=False),
        sa.Column("wager_all_time", sa.Numeric(18, 8), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_leaderboard_users_uid"), "leaderboard_users", ["uid"], unique=True)
    op.create_index(
        op.f("ix_leaderboard_users_wager_all_time"), "leaderboard_users", ["wager_all_time"], unique=False
    )

    op.create_table(
        "goated_wager_leaderboard",
        sa.Column("uid", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("wagered_today", sa.Numeric(18, 8), nullable=False),
        sa.Column("wagered_this_week", sa.Numeric(18, 8), nullable=False),
        sa.Column("wagered_this_month", sa.Numeric(18, 8), nullable=False),
        sa.Column("wagered_all_time", sa.Numeric(18, 8), nullable=False),
        sa.Column(
            "last_synced",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("uid"),
    )

    op.create_table(
        "sync_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("duration_ms", sa.Numeric(10, 2), nullable=True),
        sa.Column("records_processed", sa.Integer(), nullable=False),
        sa.Column("records_updated", sa.Integer(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_sync_logs_type"), "sync_logs", ["type"], unique=False)
    op.create_index(op.f("ix_sync_logs_created_at"), "sync_logs", ["created_at"], unique=False)

    op.create_table(
        "wager_races",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", race_type, nullable=False),
        sa.Column("status", race_status, nullable=False),
        sa.Column("prize_pool", sa.Numeric(18, 2), nullable=False),
        sa.Column("prize_distribution_json", sa.Text(), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_wager_races_name"), "wager_races", ["name"], unique=True)
    op.create_index(op.f("ix_wager_races_status"), "wager_races", ["status"], unique=False)
    op.create_index(op.f("ix_wager_races_end_date"), "wager_races", ["end_date"], unique=False)

    op.create_table(
        "wager_race_participants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("race_id", sa.Integer(), nullable=False),
        sa.Column("uid", sa.String(length=100), nullable=False),
        sa.Column("username", sa.String(length=200), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("wagered", sa.Numeric(18, 8), nullable=False),
        sa.Column("prize_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("prize_claimed", sa.Boolean(), nullable=False),
        sa.Column(
            "joined_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["race_id"], ["wager_races.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("race_id", "uid", name="uq_race_participant_uid"),
    )
    op.create_index(
        op.f("ix_wager_race_participants_race_id"), "wager_race_participants", ["race_id"], unique=False
    )
    op.create_index(op.f("ix_wager_race_participants_uid"), "wager_race_participants", ["uid"], unique=False)

    op.create_table(
        "race_snapshots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "snapshot_taken_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("original_race_end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("race_type", sa.String(length=20), nullable=False),
        sa.Column("race_name", sa.String(length=200), nullable=False),
        sa.Column("race_config_json", sa.Text(), nullable=False),
        sa.Column("leaderboard_entries_json", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_race_snapshots_original_race_end_date"),
        "race_snapshots",
        ["original_race_end_date"],
        unique=False,
    )
    op.create_index(op.f("ix_race_snapshots_race_type"), "race_snapshots", ["race_type"], unique=False)

    op.create_table(
        "wager_overrides",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(length=255), nullable=False),
        sa.Column("goated_id", sa.String(length=255), nullable=True),
        sa.Column("today_override", sa.Numeric(20, 8), nullable=True),
        sa.Column("this_week_override", sa.Numeric(20, 8), nullable=True),
        sa.Column("this_month_override", sa.Numeric(20, 8), nullable=True),
        sa.Column("all_time_override", sa.Numeric(20, 8), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.String(length=1000), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_wager_overrides_username"), "wager_overrides", ["username"], unique=False)
    op.create_index(op.f("ix_wager_overrides_goated_id"), "wager_overrides", ["goated_id"], unique=False)
    op.create_index(op.f("ix_wager_overrides_active"), "wager_overrides", ["active"], unique=False)


def downgrade() -> None:
    op.drop_table("wager_overrides")
    op.drop_table("race_snapshots")
    op.drop_table("wager_race_participants")
    op.drop_table("wager_races")
    op.drop_table("sync_logs")
    op.drop_table("goated_wager_leaderboard")
    op.drop_table("leaderboard_users")
    race_status.drop(op.get_bind(), checkfirst=True)
    race_type.drop(op.get_bind(), checkfirst=True)
