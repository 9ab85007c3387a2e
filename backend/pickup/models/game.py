"""
Game event and roster models.

Key design decisions:
- Occupancy is COUNT(game_participants); there is no denormalized player counter
- Unique constraint on (game_id, player_id) makes a double join impossible
- `version` column enables optimistic locking: every join, leave and termination
  bumps it, so a join that read a stale roster cannot commit
- Games are never deleted; completed/cancelled rows remain for history
"""

from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Index, CheckConstraint, UniqueConstraint, func,
)

from pickup.db.base import Base, TimestampMixin


class GameEvent(Base, TimestampMixin):
    __tablename__ = "game_events"

    id = Column(Integer, primary_key=True, index=True)
    sport_id = Column(Integer, ForeignKey("sports.id"), nullable=False, index=True)
    creator_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    min_players = Column(Integer, nullable=False)
    max_players = Column(Integer, nullable=False)
    skill_min = Column(String(20), nullable=True)
    skill_max = Column(String(20), nullable=True)
    scheduled_time = Column(DateTime(timezone=True), nullable=False)
    time_type = Column(String(20), nullable=False, default="now")
    time_label = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False, default="waiting")

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint("min_players >= 2", name="check_min_players"),
        CheckConstraint("max_players >= min_players", name="check_max_gte_min"),
        CheckConstraint(
            "status IN ('waiting', 'confirmed', 'completed', 'cancelled')",
            name="check_game_status",
        ),
        CheckConstraint(
            "time_type IN ('now', 'time_of_day', 'precise')",
            name="check_game_time_type",
        ),
        # Active list and stale sweep both filter on status and order/compare by time
        Index("ix_game_events_status_time", "status", "scheduled_time"),
    )

    def __repr__(self) -> str:
        return f"<GameEvent(id={self.id}, status={self.status}, players={self.min_players}-{self.max_players})>"


class GameParticipant(Base):
    __tablename__ = "game_participants"

    id = Column(Integer, primary_key=True, index=True)
    game_id = Column(Integer, ForeignKey("game_events.id"), nullable=False, index=True)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False, index=True)
    joined_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("game_id", "player_id", name="uq_game_participant"),
    )

    def __repr__(self) -> str:
        return f"<GameParticipant(game={self.game_id}, player={self.player_id})>"
