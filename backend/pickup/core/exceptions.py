"""
Error taxonomy for the game lifecycle and the notification pipeline.

User-facing lifecycle errors subclass HTTPException so route handlers can let
them propagate and FastAPI renders them with the right status code. Queue
errors are plain exceptions: they never reach an HTTP client.
"""

from typing import Optional

from fastapi import HTTPException, status


class LifecycleError(HTTPException):
    """Base class for recoverable, user-facing game errors."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "Game action rejected"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class GameNotFound(LifecycleError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Game not found"

    def __init__(self, game_id: int):
        self.game_id = game_id
        super().__init__(f"Game {game_id} not found")


class CapacityExceeded(LifecycleError):
    default_detail = "This game is full"


class AlreadyJoined(LifecycleError):
    default_detail = "You have already joined this game"


class EventClosed(LifecycleError):
    default_detail = "This game has already ended"


class StoreConflict(LifecycleError):
    """Concurrent writes kept winning the game row. The caller should retry."""

    default_detail = "Join failed due to high demand. Please try again."


class NotParticipant(LifecycleError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You are not a player in this game"


class NotGameCreator(LifecycleError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Only the game creator can do that"


class InvalidGameRequest(LifecycleError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid game parameters"


class NotificationError(Exception):
    """Base class for notification pipeline failures."""


class InvalidDestination(NotificationError):
    """Push token is missing or malformed. Terminal for the queue item."""


class ProviderUnavailable(NotificationError):
    """The push provider call itself failed. The batch stays pending."""
