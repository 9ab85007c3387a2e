"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from pickup.api.routes import games, chat, sports, players, notifications, realtime

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(games.router)
api_router.include_router(chat.router)
api_router.include_router(sports.router)
api_router.include_router(players.router)
api_router.include_router(notifications.router)
api_router.include_router(realtime.router)
