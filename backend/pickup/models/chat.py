"""
Game chat message. Append-only; ordered by created_at then id.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, func

from pickup.db.base import Base


class ChatMessage(Base):
    __tablename__ = "game_chat_messages"

    id = Column(Integer, primary_key=True, index=True)
    game_id = Column(Integer, ForeignKey("game_events.id"), nullable=False)
    sender_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    body = Column(String(1000), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("ix_game_chat_messages_game_created", "game_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ChatMessage(id={self.id}, game={self.game_id}, sender={self.sender_id})>"
