"""
Game chat endpoints.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from pickup.db.session import get_db
from pickup.schemas.chat import ChatMessageCreate, ChatMessageResponse
from pickup.services.chat_service import list_chat_messages, send_chat_message
from pickup.core.security import get_current_player_id

router = APIRouter(prefix="/games", tags=["Chat"])


@router.get("/{game_id}/messages", response_model=list[ChatMessageResponse])
async def list_messages_endpoint(
    game_id: int,
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    return await list_chat_messages(db, game_id, limit)


@router.post("/{game_id}/messages", response_model=ChatMessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message_endpoint(
    game_id: int,
    message: ChatMessageCreate,
    player_id: int = Depends(get_current_player_id),
    db: AsyncSession = Depends(get_db),
):
    """Post to a game's chat. Only players on the roster may post."""
    return await send_chat_message(db, game_id, player_id, message.body)
