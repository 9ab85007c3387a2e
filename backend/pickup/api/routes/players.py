"""
Caller profile endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from pickup.db.session import get_db
from pickup.models.player import Player
from pickup.schemas.notification import PushTokenUpdate
from pickup.schemas.player import PlayerResponse, PlayerUpdate
from pickup.services.notification_service import save_push_token
from pickup.services.player_service import get_player, upsert_player
from pickup.core.security import get_current_player_id

router = APIRouter(prefix="/players", tags=["Players"])


def _player_response(player: Player) -> PlayerResponse:
    return PlayerResponse(
        id=player.id,
        username=player.username,
        has_push_token=bool(player.push_token),
        created_at=player.created_at,
    )


@router.get("/me", response_model=PlayerResponse)
async def get_me_endpoint(
    player_id: int = Depends(get_current_player_id),
    db: AsyncSession = Depends(get_db),
):
    player = await get_player(db, player_id)
    if player is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Player profile not found",
        )
    return _player_response(player)


@router.put("/me", response_model=PlayerResponse)
async def update_me_endpoint(
    profile: PlayerUpdate,
    player_id: int = Depends(get_current_player_id),
    db: AsyncSession = Depends(get_db),
):
    """Create or rename the caller's profile."""
    player = await upsert_player(db, player_id, profile.username)
    return _player_response(player)


@router.put("/me/push-token", status_code=status.HTTP_204_NO_CONTENT)
async def update_push_token_endpoint(
    token: PushTokenUpdate,
    player_id: int = Depends(get_current_player_id),
    db: AsyncSession = Depends(get_db),
):
    """Register (or clear, with null) the caller's Expo push token."""
    player = await save_push_token(db, player_id, token.push_token)
    if player is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Player profile not found",
        )
