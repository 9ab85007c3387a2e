from pickup.models.sport import Sport
from pickup.models.player import Player
from pickup.models.game import GameEvent, GameParticipant
from pickup.models.chat import ChatMessage
from pickup.models.notification import NotificationQueueItem, NotificationSettings

__all__ = [
    "Sport", "Player",
    "GameEvent", "GameParticipant",
    "ChatMessage",
    "NotificationQueueItem", "NotificationSettings",
]
