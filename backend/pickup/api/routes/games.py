"""
Game endpoints: browse, create, join/leave, end/cancel and the stale sweep.
The active list is cached in Redis; single-game reads always hit the database.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from pickup.db.session import get_db
from pickup.schemas.game import (
    GameCreate, GameDetailResponse, GameFilter, GameListResponse, GameResponse,
    RosterChangeResponse, SkillLevel, SweepResponse,
)
from pickup.services import game_service, roster_service
from pickup.services.cache_service import get_cached_games, set_cached_games
from pickup.core.security import get_current_player_id, get_optional_player_id
from pickup.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/games", tags=["Games"])


def _roster_change_response(change: roster_service.RosterChange) -> RosterChangeResponse:
    return RosterChangeResponse(
        game=game_service.game_to_response(change.game, change.current_players),
        previous_status=change.transition.previous,
        status=change.game.status,
        status_changed=change.transition.changed,
    )


@router.post("/", response_model=GameResponse, status_code=status.HTTP_201_CREATED)
async def create_game_endpoint(
    game_data: GameCreate,
    player_id: int = Depends(get_current_player_id),
    db: AsyncSession = Depends(get_db),
):
    """Post a game. The poster is enrolled as its first player."""
    game = await game_service.create_game(db, game_data, player_id)
    return game_service.game_to_response(game, 1)


@router.get("/", response_model=GameListResponse)
async def list_games_endpoint(
    sport_id: Optional[int] = Query(None),
    skill_level: Optional[SkillLevel] = Query(None),
    open_slots_only: bool = Query(False),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """
    Active games, soonest first.
    Cached in Redis; invalidated on every roster or status change.
    """
    game_filter = GameFilter(sport_id=sport_id, skill_level=skill_level, open_slots_only=open_slots_only)
    filter_key = game_filter.cache_key()

    cached = await get_cached_games(filter_key, page, page_size)
    if cached:
        logger.info("games_list_cache_hit", page=page)
        cached["cached"] = True
        return GameListResponse(**cached)

    rows, total = await game_service.list_active_games(db, game_filter, page, page_size)
    response_data = {
        "games": [game_service.game_to_response(game, count).model_dump(mode="json") for game, count in rows],
        "total": total,
        "page": page,
        "page_size": page_size,
        "cached": False,
    }
    await set_cached_games(filter_key, page, page_size, response_data)
    return GameListResponse(**response_data)


@router.get("/mine", response_model=list[GameResponse])
async def my_games_endpoint(
    player_id: int = Depends(get_current_player_id),
    db: AsyncSession = Depends(get_db),
):
    rows = await game_service.list_player_games(db, player_id)
    return [game_service.game_to_response(game, count) for game, count in rows]


@router.post("/sweep", response_model=SweepResponse)
async def sweep_endpoint(db: AsyncSession = Depends(get_db)):
    """Retire stale open games. Meant for a scheduler; safe to call repeatedly."""
    retired = await game_service.sweep_stale(db)
    return SweepResponse(retired_game_ids=retired, count=len(retired))


@router.get("/{game_id}", response_model=GameDetailResponse)
async def get_game_endpoint(
    game_id: int,
    viewer_id: Optional[int] = Depends(get_optional_player_id),
    db: AsyncSession = Depends(get_db),
):
    """Game detail with roster. Not cached (needs the live roster)."""
    return await game_service.get_game_detail(db, game_id, viewer_id)


@router.post("/{game_id}/join", response_model=RosterChangeResponse)
async def join_game_endpoint(
    game_id: int,
    player_id: int = Depends(get_current_player_id),
    db: AsyncSession = Depends(get_db),
):
    change = await roster_service.join_game(db, game_id, player_id)
    return _roster_change_response(change)


@router.post("/{game_id}/leave", response_model=RosterChangeResponse)
async def leave_game_endpoint(
    game_id: int,
    player_id: int = Depends(get_current_player_id),
    db: AsyncSession = Depends(get_db),
):
    change = await roster_service.leave_game(db, game_id, player_id)
    return _roster_change_response(change)


@router.post("/{game_id}/end", response_model=GameResponse)
async def end_game_endpoint(
    game_id: int,
    player_id: int = Depends(get_current_player_id),
    db: AsyncSession = Depends(get_db),
):
    game = await game_service.end_game(db, game_id, actor_id=player_id)
    return game_service.game_to_response(game, await game_service.count_players(db, game_id))


@router.post("/{game_id}/cancel", response_model=GameResponse)
async def cancel_game_endpoint(
    game_id: int,
    player_id: int = Depends(get_current_player_id),
    db: AsyncSession = Depends(get_db),
):
    game = await game_service.cancel_game(db, game_id, actor_id=player_id)
    return game_service.game_to_response(game, await game_service.count_players(db, game_id))
