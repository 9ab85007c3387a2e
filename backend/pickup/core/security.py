"""
Caller identity.

Sign-up and login live in the upstream auth gateway, which forwards the
authenticated player id in the X-Player-Id header.
"""

from typing import Optional

from fastapi import Header, HTTPException, status

from pickup.core.logging import bind_log_context


PLAYER_ID_HEADER = "X-Player-Id"


async def get_current_player_id(
    x_player_id: Optional[str] = Header(default=None, alias=PLAYER_ID_HEADER),
) -> int:
    if not x_player_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    try:
        player_id = int(x_player_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid player identity",
        )
    if player_id <= 0:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid player identity",
        )

    bind_log_context(player_id=player_id)
    return player_id


async def get_optional_player_id(
    x_player_id: Optional[str] = Header(default=None, alias=PLAYER_ID_HEADER),
) -> Optional[int]:
    """Identity for read endpoints that personalise but do not require a caller."""
    if not x_player_id:
        return None
    return await get_current_player_id(x_player_id)
