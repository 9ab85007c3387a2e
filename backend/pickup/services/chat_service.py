"""
Per-game chat. Only players on the roster may post; anyone may read.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pickup.core.exceptions import InvalidGameRequest, NotParticipant
from pickup.core.logging import get_logger
from pickup.models.chat import ChatMessage
from pickup.schemas.chat import ChatMessageResponse
from pickup.services import game_service
from pickup.services.notification_service import notify_chat_message
from pickup.services.notifier import publish_chat_message

logger = get_logger(__name__)

MAX_MESSAGE_LENGTH = 1000


async def send_chat_message(db: AsyncSession, game_id: int, sender_id: int, body: str) -> ChatMessage:
    """Store a message, queue pushes for the rest of the roster, and fan it out live."""
    await game_service.get_game_or_404(db, game_id)

    text = (body or "").strip()
    if not text or len(text) > MAX_MESSAGE_LENGTH:
        raise InvalidGameRequest(f"Message must be between 1 and {MAX_MESSAGE_LENGTH} characters")

    roster = await game_service.get_roster_ids(db, game_id)
    if sender_id not in roster:
        raise NotParticipant()

    message = ChatMessage(game_id=game_id, sender_id=sender_id, body=text)
    db.add(message)
    await db.flush()

    queued = await notify_chat_message(db, game_id, sender_id, text, roster)
    await db.commit()
    await db.refresh(message)

    logger.info("chat_message_sent", game_id=game_id, sender_id=sender_id, message_id=message.id, pushes=queued)
    await publish_chat_message(ChatMessageResponse.model_validate(message).model_dump(mode="json"))
    return message


async def list_chat_messages(db: AsyncSession, game_id: int, limit: int = 100) -> list[ChatMessage]:
    """The most recent `limit` messages, oldest first."""
    await game_service.get_game_or_404(db, game_id)
    result = await db.execute(
        select(ChatMessage)
        .where(ChatMessage.game_id == game_id)
        .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
        .limit(limit)
    )
    return list(reversed(result.scalars().all()))
