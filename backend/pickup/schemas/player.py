"""
Pydantic schemas for player profiles.
"""

from datetime import datetime
from pydantic import BaseModel, Field


class PlayerUpdate(BaseModel):
    username: str = Field(..., min_length=3, max_length=100, pattern=r"^[A-Za-z0-9_.]+$")


class PlayerResponse(BaseModel):
    id: int
    username: str
    has_push_token: bool = False
    created_at: datetime

    model_config = {"from_attributes": True}
