"""
Pydantic schemas for game chat.
"""

from datetime import datetime
from pydantic import BaseModel, Field


class ChatMessageCreate(BaseModel):
    body: str = Field(..., min_length=1, max_length=1000)


class ChatMessageResponse(BaseModel):
    id: int
    game_id: int
    sender_id: int
    body: str
    created_at: datetime

    model_config = {"from_attributes": True}
