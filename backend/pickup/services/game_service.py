"""
Game registry: creating, reading, terminating and retiring game events.

Roster mutations (join/leave) live in roster_service; this module owns the
game row itself. Every mutation follows the same shape:

  1. read the game, ask the lifecycle engine what should happen
  2. apply it with an UPDATE conditional on the game still being open
  3. commit, then announce (cache invalidation + change notifier)

Announcing after commit means a subscriber that re-fetches on a live update
always sees the committed state.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy import select, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from pickup.core.exceptions import GameNotFound, InvalidGameRequest, NotGameCreator, NotParticipant
from pickup.core.logging import get_logger
from pickup.core.metrics import record_transition
from pickup.models.game import GameEvent, GameParticipant
from pickup.models.player import Player
from pickup.models.sport import Sport
from pickup.schemas.game import GameCreate, GameDetailResponse, GameFilter, GameResponse, ParticipantResponse
from pickup.services import lifecycle
from pickup.services.cache_service import invalidate_game_cache
from pickup.services.lifecycle import GameStatus, LifecyclePolicy, OPEN_STATUSES, get_lifecycle_policy
from pickup.services.notification_service import schedule_game_reminders
from pickup.services.notifier import publish_game_update
from pickup.utils.datetime_utils import as_utc, utcnow

logger = get_logger(__name__)

# Clock skew tolerance when checking a new game's time is not in the past
SCHEDULE_TOLERANCE = timedelta(minutes=1)


def game_to_response(game: GameEvent, current_players: int) -> GameResponse:
    response = GameResponse.model_validate(game)
    return response.model_copy(update={"current_players": current_players})


async def announce_game_change(game: GameEvent, current_players: int, reason: str) -> None:
    await invalidate_game_cache()
    await publish_game_update(game, current_players, reason)


async def get_game_or_404(db: AsyncSession, game_id: int) -> GameEvent:
    result = await db.execute(select(GameEvent).where(GameEvent.id == game_id))
    game = result.scalar_one_or_none()
    if not game:
        raise GameNotFound(game_id)
    return game


async def get_roster_ids(db: AsyncSession, game_id: int) -> list[int]:
    result = await db.execute(
        select(GameParticipant.player_id)
        .where(GameParticipant.game_id == game_id)
        .order_by(GameParticipant.id)
    )
    return list(result.scalars().all())


async def count_players(db: AsyncSession, game_id: int) -> int:
    result = await db.execute(
        select(func.count()).select_from(GameParticipant).where(GameParticipant.game_id == game_id)
    )
    return result.scalar() or 0


async def has_joined(db: AsyncSession, game_id: int, player_id: int) -> bool:
    result = await db.execute(
        select(GameParticipant.id).where(
            GameParticipant.game_id == game_id,
            GameParticipant.player_id == player_id,
        )
    )
    return result.scalar_one_or_none() is not None


def _player_counts():
    return (
        select(GameParticipant.game_id, func.count(GameParticipant.id).label("player_count"))
        .group_by(GameParticipant.game_id)
        .subquery()
    )


async def create_game(
    db: AsyncSession,
    game_data: GameCreate,
    creator_id: int,
    policy: Optional[LifecyclePolicy] = None,
    now: Optional[datetime] = None,
) -> GameEvent:
    """Create a game and enroll its creator as the first player, in one transaction."""
    policy = policy or get_lifecycle_policy()
    now = as_utc(now or utcnow())

    sport = await db.execute(select(Sport.id).where(Sport.id == game_data.sport_id))
    if sport.scalar_one_or_none() is None:
        raise InvalidGameRequest(f"Unknown sport {game_data.sport_id}")

    creator = await db.execute(select(Player.id).where(Player.id == creator_id))
    if creator.scalar_one_or_none() is None:
        raise InvalidGameRequest("Player profile not found")

    if not policy.skill_range_valid(game_data.skill_min, game_data.skill_max):
        raise InvalidGameRequest("skill_min must not be above skill_max")

    poster_now = now.astimezone(timezone(timedelta(minutes=game_data.utc_offset_minutes)))
    try:
        scheduled_time, time_label = policy.resolve_schedule(
            game_data.time_type,
            poster_now,
            time_of_day=game_data.time_of_day,
            scheduled_time=game_data.scheduled_time,
        )
    except ValueError as e:
        raise InvalidGameRequest(str(e))

    if scheduled_time < now - SCHEDULE_TOLERANCE:
        raise InvalidGameRequest("Game time must not be in the past")

    game = GameEvent(
        sport_id=game_data.sport_id,
        creator_id=creator_id,
        min_players=game_data.min_players,
        max_players=game_data.max_players,
        skill_min=game_data.skill_min,
        skill_max=game_data.skill_max,
        scheduled_time=scheduled_time,
        time_type=game_data.time_type,
        time_label=time_label,
        status=GameStatus.WAITING.value,
        version=1,
    )
    db.add(game)
    await db.flush()

    db.add(GameParticipant(game_id=game.id, player_id=creator_id))
    game.status = lifecycle.derive_status(game, 1)
    await db.flush()

    await schedule_game_reminders(db, game, creator_id, now=now, policy=policy)
    await db.commit()
    await db.refresh(game)

    logger.info(
        "game_created",
        game_id=game.id,
        sport_id=game.sport_id,
        creator_id=creator_id,
        players=f"{game.min_players}-{game.max_players}",
        scheduled_time=scheduled_time.isoformat(),
    )
    await announce_game_change(game, 1, "game_created")
    return game


async def _terminate(
    db: AsyncSession,
    game_id: int,
    kind: str,
    cause: str,
    actor_id: Optional[int] = None,
) -> GameEvent:
    game = await get_game_or_404(db, game_id)

    if actor_id is not None:
        if kind == GameStatus.CANCELLED.value and game.creator_id != actor_id:
            raise NotGameCreator()
        if kind == GameStatus.COMPLETED.value and not await has_joined(db, game_id, actor_id):
            raise NotParticipant()

    transition = lifecycle.terminate(game, kind)
    if not transition.changed:
        logger.info("game_terminate_noop", game_id=game_id, status=game.status, requested=kind)
        return game

    result = await db.execute(
        update(GameEvent)
        .where(GameEvent.id == game_id, GameEvent.status.in_(OPEN_STATUSES))
        .values(status=kind, version=GameEvent.version + 1)
    )
    await db.commit()
    await db.refresh(game)

    if result.rowcount:
        record_transition(kind, cause)
        logger.info("game_terminated", game_id=game_id, previous=transition.previous, status=kind, cause=cause)
        await announce_game_change(game, await count_players(db, game_id), f"game_{kind}")
    return game


async def end_game(db: AsyncSession, game_id: int, actor_id: Optional[int] = None) -> GameEvent:
    """Mark a game completed. Idempotent. When an actor is given, they must be a player."""
    return await _terminate(db, game_id, GameStatus.COMPLETED.value, "end", actor_id)


async def cancel_game(db: AsyncSession, game_id: int, actor_id: Optional[int] = None) -> GameEvent:
    """Mark a game cancelled. Idempotent. When an actor is given, they must be the creator."""
    return await _terminate(db, game_id, GameStatus.CANCELLED.value, "cancel", actor_id)


async def sweep_stale(
    db: AsyncSession,
    now_fn: Callable[[], datetime] = utcnow,
    horizon: Optional[timedelta] = None,
    policy: Optional[LifecyclePolicy] = None,
) -> list[int]:
    """
    Retire open games whose scheduled_time + horizon has passed, as completed.
    The horizon defaults to the policy's, the same one active listings hide by.

    Safe to run concurrently and repeatedly: each game is retired with an
    UPDATE conditional on it still being open, so overlapping sweeps (or a
    sweep racing an explicit end) retire a game at most once.
    """
    policy = policy or get_lifecycle_policy()
    horizon = horizon if horizon is not None else policy.stale_horizon
    now = now_fn()
    cutoff = lifecycle.stale_cutoff(now, horizon)

    result = await db.execute(
        select(GameEvent).where(
            GameEvent.status.in_(OPEN_STATUSES),
            GameEvent.scheduled_time < cutoff,
        )
    )
    candidates = [game for game in result.scalars().all() if lifecycle.is_stale(game, now, horizon)]
    if not candidates:
        return []

    retired = []
    for game in candidates:
        update_result = await db.execute(
            update(GameEvent)
            .where(GameEvent.id == game.id, GameEvent.status.in_(OPEN_STATUSES))
            .values(status=GameStatus.COMPLETED.value, version=GameEvent.version + 1)
        )
        if update_result.rowcount:
            retired.append(game.id)
    await db.commit()

    for game_id in retired:
        record_transition(GameStatus.COMPLETED.value, "sweep")
        game = await get_game_or_404(db, game_id)
        await db.refresh(game)
        await publish_game_update(game, await count_players(db, game_id), "game_retired")
    if retired:
        await invalidate_game_cache()

    logger.info("stale_games_retired", count=len(retired), game_ids=retired, cutoff=cutoff.isoformat())
    return retired


async def list_active_games(
    db: AsyncSession,
    game_filter: Optional[GameFilter] = None,
    page: int = 1,
    page_size: int = 20,
    now: Optional[datetime] = None,
    policy: Optional[LifecyclePolicy] = None,
) -> tuple[list[tuple[GameEvent, int]], int]:
    """
    Open, not-yet-stale games, soonest first, with their current player count.
    Uses the ix_game_events_status_time index for the status/time filter.
    """
    game_filter = game_filter or GameFilter()
    policy = policy or get_lifecycle_policy()
    cutoff = lifecycle.stale_cutoff(now or utcnow(), policy.stale_horizon)

    counts = _player_counts()
    player_count = func.coalesce(counts.c.player_count, 0)
    query = (
        select(GameEvent, player_count.label("current_players"))
        .outerjoin(counts, counts.c.game_id == GameEvent.id)
        .where(
            GameEvent.status.in_(OPEN_STATUSES),
            GameEvent.scheduled_time >= cutoff,
        )
    )

    if game_filter.sport_id is not None:
        query = query.where(GameEvent.sport_id == game_filter.sport_id)

    if game_filter.skill_level is not None:
        # An open bound matches every level
        query = query.where(
            or_(GameEvent.skill_min.is_(None), GameEvent.skill_min.in_(policy.skills_at_or_below(game_filter.skill_level))),
            or_(GameEvent.skill_max.is_(None), GameEvent.skill_max.in_(policy.skills_at_or_above(game_filter.skill_level))),
        )

    if game_filter.open_slots_only:
        query = query.where(player_count < GameEvent.max_players)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    result = await db.execute(
        query
        .order_by(GameEvent.scheduled_time.asc(), GameEvent.id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return [(game, count) for game, count in result.all()], total


async def list_player_games(db: AsyncSession, player_id: int) -> list[tuple[GameEvent, int]]:
    """Every game the player is on the roster of, soonest first."""
    counts = _player_counts()
    result = await db.execute(
        select(GameEvent, func.coalesce(counts.c.player_count, 0))
        .join(GameParticipant, GameParticipant.game_id == GameEvent.id)
        .outerjoin(counts, counts.c.game_id == GameEvent.id)
        .where(GameParticipant.player_id == player_id)
        .order_by(GameEvent.scheduled_time.asc(), GameEvent.id.asc())
    )
    return [(game, count) for game, count in result.all()]


async def get_game_detail(
    db: AsyncSession,
    game_id: int,
    viewer_id: Optional[int] = None,
) -> GameDetailResponse:
    game = await get_game_or_404(db, game_id)
    result = await db.execute(
        select(GameParticipant.player_id, Player.username, GameParticipant.joined_at)
        .join(Player, Player.id == GameParticipant.player_id)
        .where(GameParticipant.game_id == game_id)
        .order_by(GameParticipant.joined_at.asc(), GameParticipant.id.asc())
    )
    participants = [
        ParticipantResponse(player_id=player_id, username=username, joined_at=joined_at)
        for player_id, username, joined_at in result.all()
    ]
    base = game_to_response(game, len(participants))
    return GameDetailResponse(
        **base.model_dump(),
        participants=participants,
        is_joined=viewer_id is not None and any(p.player_id == viewer_id for p in participants),
    )


async def list_sports(db: AsyncSession) -> list[Sport]:
    result = await db.execute(select(Sport).order_by(Sport.name.asc()))
    return list(result.scalars().all())
