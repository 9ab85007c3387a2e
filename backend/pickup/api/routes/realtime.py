"""
Live update WebSockets.

  /ws/games             - every change to the active list
  /ws/games/{game_id}   - one game's roster/status changes and its chat

Messages are JSON objects ("game_updated" or "chat_message"). Clients may
send "ping" and get "pong" back. A client that misses an update re-fetches
the game over HTTP.
"""

import asyncio

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from pickup.core.logging import get_logger
from pickup.services.notifier import (
    ACTIVE_GAMES_TOPIC, chat_topic, game_topic, get_change_notifier,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/ws", tags=["Realtime"])


async def _stream(websocket: WebSocket, topics: list[str]) -> None:
    await websocket.accept()
    notifier = get_change_notifier()

    async def forward(message: dict) -> None:
        await websocket.send_json(message)

    subscriptions = [await notifier.subscribe(topic, forward) for topic in topics]
    logger.info("websocket_connected", topics=topics)
    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        logger.info("websocket_disconnected", topics=topics)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.error("websocket_error", topics=topics, error=str(e))
    finally:
        for subscription in subscriptions:
            await notifier.unsubscribe(subscription)


@router.websocket("/games")
async def active_games_socket(websocket: WebSocket):
    await _stream(websocket, [ACTIVE_GAMES_TOPIC])


@router.websocket("/games/{game_id}")
async def game_socket(websocket: WebSocket, game_id: int):
    await _stream(websocket, [game_topic(game_id), chat_topic(game_id)])
