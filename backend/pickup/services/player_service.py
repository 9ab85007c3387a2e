"""
Player profiles. The id comes from the upstream identity; the profile only
adds a unique display name.
"""

from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pickup.core.logging import get_logger
from pickup.models.player import Player

logger = get_logger(__name__)


async def get_player(db: AsyncSession, player_id: int) -> Optional[Player]:
    result = await db.execute(select(Player).where(Player.id == player_id))
    return result.scalar_one_or_none()


async def upsert_player(db: AsyncSession, player_id: int, username: str) -> Player:
    """Create the caller's profile, or rename it."""
    player = await get_player(db, player_id)
    created = player is None
    if created:
        player = Player(id=player_id, username=username)
        db.add(player)
    else:
        player.username = username

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username already taken",
        )

    await db.refresh(player)
    logger.info("player_saved", player_id=player_id, username=username, created=created)
    return player
