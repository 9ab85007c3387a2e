"""
Player profile.

Identity is provisioned upstream; this row carries what the game service
needs: a display name and the Expo push token used as notification destination.
"""

from sqlalchemy import Column, Integer, String

from pickup.db.base import Base, TimestampMixin


class Player(Base, TimestampMixin):
    __tablename__ = "players"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, index=True, nullable=False)
    push_token = Column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<Player(id={self.id}, username={self.username})>"
