"""
Push notification queue and per-player notification preferences.

Key design decisions:
- A queue row is written by whoever needs to notify a player and transitions
  exactly once, pending -> sent | failed, inside the queue worker
- Failed rows are terminal; a retry means enqueuing a fresh row
- Composite index on (status, scheduled_for) serves the
  worker's "due and pending, oldest first" scan
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, CheckConstraint, Boolean, JSON, func

from pickup.db.base import Base, TimestampMixin


class NotificationQueueItem(Base):
    __tablename__ = "notification_queue"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("players.id"), nullable=False, index=True)
    notification_type = Column(String(40), nullable=False)
    game_id = Column(Integer, ForeignKey("game_events.id"), nullable=True)
    title = Column(String(255), nullable=False)
    body = Column(String(1000), nullable=False)
    data = Column(JSON, nullable=True)
    scheduled_for = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    sent_at = Column(DateTime(timezone=True), nullable=True)
    error = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'sent', 'failed')", name="check_notification_status"),
        Index("ix_notification_queue_status_scheduled", "status", "scheduled_for"),
    )

    def __repr__(self) -> str:
        return f"<NotificationQueueItem(id={self.id}, user={self.user_id}, status={self.status})>"


class NotificationSettings(Base, TimestampMixin):
    __tablename__ = "notification_settings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("players.id"), nullable=False, unique=True)
    notify_30min_before_game = Column(Boolean, nullable=False, default=True)
    notify_5min_before_game = Column(Boolean, nullable=False, default=True)
    notify_new_chat_message = Column(Boolean, nullable=False, default=True)
    notify_player_joins_game = Column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<NotificationSettings(user={self.user_id})>"
