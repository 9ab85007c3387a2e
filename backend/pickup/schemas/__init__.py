from pickup.schemas.game import (
    GameCreate, GameFilter, GameResponse, GameDetailResponse, GameListResponse,
    RosterChangeResponse, SweepResponse, SportResponse,
)
from pickup.schemas.player import PlayerUpdate, PlayerResponse
from pickup.schemas.chat import ChatMessageCreate, ChatMessageResponse
from pickup.schemas.notification import (
    NotificationSettingsResponse, NotificationSettingsUpdate, PushTokenUpdate, WorkerRunResponse,
)

__all__ = [
    "GameCreate", "GameFilter", "GameResponse", "GameDetailResponse", "GameListResponse",
    "RosterChangeResponse", "SweepResponse", "SportResponse",
    "PlayerUpdate", "PlayerResponse",
    "ChatMessageCreate", "ChatMessageResponse",
    "NotificationSettingsResponse", "NotificationSettingsUpdate", "PushTokenUpdate", "WorkerRunResponse",
]
