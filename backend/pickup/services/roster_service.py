"""
Roster service: concurrency-safe join and leave.

CONCURRENCY STRATEGY: Optimistic Locking with Retry
====================================================

Problem:
  Two players try to take the last slot simultaneously.
  Both read a roster of max_players - 1, both insert.
  Result: an overfilled game.

Solution:
  Every join claims the game row with a version-checked UPDATE before it
  inserts its roster row, in the same transaction.

  1. Read the game (status, version) and its roster
  2. Ask the lifecycle engine: closed? already joined? full? new status?
  3. UPDATE game_events SET status = :new, version = version + 1
     WHERE id = :game_id AND version = :read_version AND status IN ('waiting', 'confirmed')
  4. If rows_affected == 0, someone else joined/ended first -> rollback, retry
  5. INSERT the roster row, queue notifications, commit

  Any two joins that read the same roster contend on the same version, so at
  most one of them commits per version: the capacity check is always made
  against the roster that is actually persisted. The (game_id, player_id)
  unique constraint is the final safety net against double joins.

Leave bumps the version too, without a status change. Removing a row can
never overfill a game, but a join that read the roster before the leave
would otherwise confirm against a player who is gone.
"""

import time
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pickup.core.exceptions import (
    AlreadyJoined, CapacityExceeded, EventClosed, GameNotFound, LifecycleError, StoreConflict,
)
from pickup.core.logging import get_logger
from pickup.core.metrics import join_latency, record_join_attempt, record_transition, roster_retries
from pickup.models.game import GameEvent, GameParticipant
from pickup.services import game_service, lifecycle
from pickup.services.lifecycle import LifecyclePolicy, OPEN_STATUSES, Transition, get_lifecycle_policy
from pickup.services.notification_service import (
    cancel_pending_reminders,
    notify_player_joined,
    schedule_game_reminders,
)

logger = get_logger(__name__)

MAX_RETRY_ATTEMPTS = 3

_REJECTION_RESULTS = {
    CapacityExceeded: "capacity_exceeded",
    AlreadyJoined: "already_joined",
    EventClosed: "closed",
    StoreConflict: "conflict",
}


@dataclass
class RosterChange:
    game: GameEvent
    player_id: int
    transition: Transition
    current_players: int


async def _load_game(db: AsyncSession, game_id: int) -> GameEvent:
    # Overwrite whatever this session cached; the version must be the stored one
    result = await db.execute(
        select(GameEvent).where(GameEvent.id == game_id).execution_options(populate_existing=True)
    )
    game = result.scalar_one_or_none()
    if game is None:
        raise GameNotFound(game_id)
    return game


async def _load_roster(db: AsyncSession, game_id: int) -> list[int]:
    return await game_service.get_roster_ids(db, game_id)


async def join_game(
    db: AsyncSession,
    game_id: int,
    player_id: int,
    policy: Optional[LifecyclePolicy] = None,
) -> RosterChange:
    """
    Add `player_id` to the game's roster, confirming the game when the roster
    reaches min_players. Retries up to MAX_RETRY_ATTEMPTS on version conflicts.

    Raises GameNotFound, EventClosed, AlreadyJoined, CapacityExceeded, or
    StoreConflict when every attempt lost the race.
    """
    policy = policy or get_lifecycle_policy()
    start = time.perf_counter()
    try:
        change = await _join(db, game_id, player_id, policy)
    except LifecycleError as e:
        result = _REJECTION_RESULTS.get(type(e))
        if result:
            record_join_attempt(result)
        raise
    finally:
        join_latency.observe(time.perf_counter() - start)

    record_join_attempt("joined")
    if change.transition.changed:
        record_transition(change.transition.current, "join")
    await game_service.announce_game_change(change.game, change.current_players, "player_joined")
    return change


async def _join(db: AsyncSession, game_id: int, player_id: int, policy: LifecyclePolicy) -> RosterChange:
    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        # Step 1: Read current game state and roster
        game = await _load_game(db, game_id)
        roster = await _load_roster(db, game_id)
        current_version = game.version

        # Step 2: Decide; rejections propagate to the caller unchanged
        try:
            transition = lifecycle.admit_join(game, roster, player_id)
        except LifecycleError as e:
            logger.info(
                "join_rejected",
                game_id=game_id,
                player_id=player_id,
                reason=type(e).__name__,
                players=len(roster),
                max_players=game.max_players,
            )
            raise

        # Step 3: Optimistic lock - claim the game row only if nobody changed it
        update_result = await db.execute(
            update(GameEvent)
            .where(
                GameEvent.id == game_id,
                GameEvent.version == current_version,
                GameEvent.status.in_(OPEN_STATUSES),
            )
            .values(
                status=transition.current,
                version=GameEvent.version + 1,
            )
        )

        if update_result.rowcount == 0:
            roster_retries.inc()
            logger.info(
                "join_retry",
                game_id=game_id,
                attempt=attempt,
                reason="version_conflict",
            )
            # Expire cached state so next read gets fresh data
            await db.rollback()
            if attempt == MAX_RETRY_ATTEMPTS:
                raise StoreConflict()
            continue

        # Step 4: Insert the roster row
        db.add(GameParticipant(game_id=game_id, player_id=player_id))
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise AlreadyJoined()

        # Step 5: Queue pushes in the same transaction
        await notify_player_joined(db, game, player_id, roster)
        await schedule_game_reminders(db, game, player_id, policy=policy)

        await db.commit()
        await db.refresh(game)

        logger.info(
            "player_joined",
            game_id=game_id,
            player_id=player_id,
            players=len(roster) + 1,
            status=transition.current,
            previous_status=transition.previous,
            attempt=attempt,
        )
        return RosterChange(
            game=game,
            player_id=player_id,
            transition=transition,
            current_players=len(roster) + 1,
        )

    # Should not reach here, but just in case
    raise StoreConflict()


async def leave_game(
    db: AsyncSession,
    game_id: int,
    player_id: int,
    policy: Optional[LifecyclePolicy] = None,
) -> RosterChange:
    """
    Remove `player_id` from the roster. Leaving a game you are not on is a
    no-op; the status never moves backwards.
    """
    policy = policy or get_lifecycle_policy()
    game = await _load_game(db, game_id)
    roster = await _load_roster(db, game_id)
    transition = lifecycle.admit_leave(game, roster, player_id)

    if not transition.removed:
        logger.info("leave_noop", game_id=game_id, player_id=player_id)
        return RosterChange(game=game, player_id=player_id, transition=transition, current_players=len(roster))

    await db.execute(
        delete(GameParticipant).where(
            GameParticipant.game_id == game_id,
            GameParticipant.player_id == player_id,
        )
    )
    # Invalidate any in-flight join that counted this player
    await db.execute(
        update(GameEvent).where(GameEvent.id == game_id).values(version=GameEvent.version + 1)
    )
    dropped = await cancel_pending_reminders(db, game_id, player_id, policy=policy)
    await db.commit()
    await db.refresh(game)

    current_players = await game_service.count_players(db, game_id)
    logger.info(
        "player_left",
        game_id=game_id,
        player_id=player_id,
        players=current_players,
        status=game.status,
        reminders_dropped=dropped,
    )
    await game_service.announce_game_change(game, current_players, "player_left")
    return RosterChange(game=game, player_id=player_id, transition=transition, current_players=current_players)
