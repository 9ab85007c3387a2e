"""
Pydantic schemas for notification settings, push tokens and worker runs.
"""

from typing import Optional
from pydantic import BaseModel, Field


class NotificationSettingsResponse(BaseModel):
    notify_30min_before_game: bool
    notify_5min_before_game: bool
    notify_new_chat_message: bool
    notify_player_joins_game: bool

    model_config = {"from_attributes": True}


class NotificationSettingsUpdate(BaseModel):
    notify_30min_before_game: Optional[bool] = None
    notify_5min_before_game: Optional[bool] = None
    notify_new_chat_message: Optional[bool] = None
    notify_player_joins_game: Optional[bool] = None


class PushTokenUpdate(BaseModel):
    push_token: Optional[str] = Field(None, max_length=255)


class WorkerRunResponse(BaseModel):
    processed: int
    sent: int
    failed: int
    deferred: int
    provider_error: Optional[str] = None
