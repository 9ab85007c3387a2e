"""Initial schema: sports, players, games, rosters, chat and the notification queue.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SPORTS = [
    ("Basketball", "basketball", "basketball"),
    ("Pickleball", "pickleball", "pickleball"),
    ("Volleyball", "volleyball", "volleyball"),
    ("Football", "football", "football"),
    ("Ping Pong", "ping-pong", "ping-pong"),
    ("Badminton", "badminton", "badminton"),
    ("Tennis", "tennis", "tennis"),
    ("Golf", "golf", "golf"),
    ("Running", "running", "running"),
]


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Sports catalogue
    sports = op.create_table(
        "sports",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("icon", sa.String(50), nullable=True),
        sa.UniqueConstraint("slug", name="uq_sports_slug"),
    )
    op.create_index("ix_sports_id", "sports", ["id"])
    op.bulk_insert(sports, [{"name": name, "slug": slug, "icon": icon} for name, slug, icon in SPORTS])

    # Players
    op.create_table(
        "players",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("push_token", sa.String(255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_players_id", "players", ["id"])
    op.create_index("ix_players_username", "players", ["username"], unique=True)

    # Games
    op.create_table(
        "game_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("sport_id", sa.Integer(), sa.ForeignKey("sports.id"), nullable=False),
        sa.Column("creator_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=False),
        sa.Column("min_players", sa.Integer(), nullable=False),
        sa.Column("max_players", sa.Integer(), nullable=False),
        sa.Column("skill_min", sa.String(20), nullable=True),
        sa.Column("skill_max", sa.String(20), nullable=True),
        sa.Column("scheduled_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("time_type", sa.String(20), nullable=False, server_default=sa.text("'now'")),
        sa.Column("time_label", sa.String(50), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'waiting'")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint("min_players >= 2", name="check_min_players"),
        sa.CheckConstraint("max_players >= min_players", name="check_max_gte_min"),
        sa.CheckConstraint(
            "status IN ('waiting', 'confirmed', 'completed', 'cancelled')",
            name="check_game_status",
        ),
        sa.CheckConstraint(
            "time_type IN ('now', 'time_of_day', 'precise')",
            name="check_game_time_type",
        ),
    )
    op.create_index("ix_game_events_id", "game_events", ["id"])
    op.create_index("ix_game_events_sport_id", "game_events", ["sport_id"])
    # The active list ("open games, soonest first") and the stale sweep
    # ("open games scheduled before the cutoff") both filter on status and
    # range-scan scheduled_time.
    op.create_index("ix_game_events_status_time", "game_events", ["status", "scheduled_time"])

    # Rosters
    op.create_table(
        "game_participants",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("game_id", sa.Integer(), sa.ForeignKey("game_events.id"), nullable=False),
        sa.Column("player_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("game_id", "player_id", name="uq_game_participant"),
    )
    op.create_index("ix_game_participants_id", "game_participants", ["id"])
    op.create_index("ix_game_participants_game_id", "game_participants", ["game_id"])
    op.create_index("ix_game_participants_player_id", "game_participants", ["player_id"])

    # Chat
    op.create_table(
        "game_chat_messages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("game_id", sa.Integer(), sa.ForeignKey("game_events.id"), nullable=False),
        sa.Column("sender_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=False),
        sa.Column("body", sa.String(1000), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_game_chat_messages_id", "game_chat_messages", ["id"])
    op.create_index("ix_game_chat_messages_game_created", "game_chat_messages", ["game_id", "created_at"])

    # Notification queue
    op.create_table(
        "notification_queue",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=False),
        sa.Column("notification_type", sa.String(40), nullable=False),
        sa.Column("game_id", sa.Integer(), sa.ForeignKey("game_events.id"), nullable=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("body", sa.String(1000), nullable=False),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("status IN ('pending', 'sent', 'failed')", name="check_notification_status"),
    )
    op.create_index("ix_notification_queue_id", "notification_queue", ["id"])
    op.create_index("ix_notification_queue_user_id", "notification_queue", ["user_id"])
    # Worker scan: WHERE status = 'pending' AND scheduled_for <= now ORDER BY scheduled_for
    op.create_index("ix_notification_queue_status_scheduled", "notification_queue", ["status", "scheduled_for"])

    # Notification preferences
    op.create_table(
        "notification_settings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("players.id"), nullable=False),
        sa.Column("notify_30min_before_game", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("notify_5min_before_game", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("notify_new_chat_message", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("notify_player_joins_game", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.UniqueConstraint("user_id", name="uq_notification_settings_user"),
    )
    op.create_index("ix_notification_settings_id", "notification_settings", ["id"])


def downgrade() -> None:
    op.drop_table("notification_settings")
    op.drop_table("notification_queue")
    op.drop_table("game_chat_messages")
    op.drop_table("game_participants")
    op.drop_table("game_events")
    op.drop_table("players")
    op.drop_table("sports")
