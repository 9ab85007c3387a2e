"""
Tests for join/leave, including deterministic interleavings of two joins.

The race tests patch the roster loader so that, between the first join's read
and its write, a second session commits a competing join. That is exactly the
window a real concurrent request would hit.
"""

import asyncio

import pytest
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from pickup.core.exceptions import (
    AlreadyJoined, CapacityExceeded, EventClosed, GameNotFound, StoreConflict,
)
from pickup.models import GameEvent, GameParticipant, NotificationQueueItem
from pickup.services import roster_service
from pickup.services.notifier import game_topic


async def settle():
    """Give subscriber pump tasks a chance to run."""
    for _ in range(10):
        await asyncio.sleep(0)


async def roster_count(session_factory, game_id: int) -> int:
    async with session_factory() as session:
        result = await session.execute(
            select(func.count()).select_from(GameParticipant).where(GameParticipant.game_id == game_id)
        )
        return result.scalar()


def interleave(monkeypatch, competitor, times: int = 1):
    """Run `competitor()` right after the first `times` roster reads."""
    original = roster_service._load_roster
    calls = {"n": 0}

    async def racing_load_roster(db, game_id):
        roster = await original(db, game_id)
        calls["n"] += 1
        if calls["n"] <= times:
            await competitor()
        return roster

    monkeypatch.setattr(roster_service, "_load_roster", racing_load_roster)
    return calls


@pytest.mark.asyncio
async def test_join_confirms_at_minimum(db_session: AsyncSession, make_game, make_player):
    """min=4, max=6: the fourth player confirms the game."""
    p2, p3, p4 = [await make_player(name) for name in ("p2", "p3", "p4")]
    game = await make_game(min_players=4, max_players=6, roster=(p2, p3))

    change = await roster_service.join_game(db_session, game.id, p4.id)

    assert change.transition.previous == "waiting"
    assert change.transition.current == "confirmed"
    assert change.current_players == 4
    assert change.game.status == "confirmed"
    assert change.game.version == 2


@pytest.mark.asyncio
async def test_two_player_game_confirms_on_first_join(db_session, make_game, make_player):
    game = await make_game(min_players=2, max_players=2)
    joiner = await make_player("joiner")

    change = await roster_service.join_game(db_session, game.id, joiner.id)

    assert change.game.status == "confirmed"
    assert change.current_players == 2


@pytest.mark.asyncio
async def test_join_full_game_rejected(db_session, make_game, make_player):
    p2 = await make_player("p2")
    late = await make_player("late")
    game = await make_game(min_players=2, max_players=2, status="confirmed", roster=(p2,))

    with pytest.raises(CapacityExceeded):
        await roster_service.join_game(db_session, game.id, late.id)


@pytest.mark.asyncio
async def test_join_twice_rejected(db_session, make_game, creator):
    game = await make_game()
    with pytest.raises(AlreadyJoined) as exc:
        await roster_service.join_game(db_session, game.id, creator.id)
    assert exc.value.status_code == 409


@pytest.mark.asyncio
async def test_join_closed_game_rejected(db_session, make_game, make_player):
    game = await make_game(status="cancelled")
    player = await make_player("p")
    with pytest.raises(EventClosed):
        await roster_service.join_game(db_session, game.id, player.id)


@pytest.mark.asyncio
async def test_join_missing_game(db_session, make_player):
    player = await make_player("p")
    with pytest.raises(GameNotFound) as exc:
        await roster_service.join_game(db_session, 999, player.id)
    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_race_for_last_slot_admits_exactly_one(
    db_session, session_factory, make_game, make_player, monkeypatch,
):
    """Both joins read a roster with one free slot; only one may commit."""
    # A lost race rolls back db_session, which expires every instance in it
    alice_id = (await make_player("alice")).id
    bob_id = (await make_player("bob")).id
    game_id = (await make_game(min_players=2, max_players=2)).id

    original = roster_service._load_roster
    fired = []

    async def racing_load_roster(db, target_id):
        roster = await original(db, target_id)
        if db is db_session and not fired:
            fired.append(True)
            async with session_factory() as other:
                await roster_service.join_game(other, game_id, bob_id)
        return roster

    monkeypatch.setattr(roster_service, "_load_roster", racing_load_roster)

    with pytest.raises(CapacityExceeded):
        await roster_service.join_game(db_session, game_id, alice_id)

    assert await roster_count(session_factory, game_id) == 2
    async with session_factory() as session:
        members = (await session.execute(
            select(GameParticipant.player_id).where(GameParticipant.game_id == game_id)
        )).scalars().all()
    assert bob_id in members
    assert alice_id not in members


@pytest.mark.asyncio
async def test_lost_race_retries_and_succeeds_when_room_remains(
    db_session, session_factory, make_game, make_player, monkeypatch,
):
    alice_id = (await make_player("alice")).id
    bob_id = (await make_player("bob")).id
    game_id = (await make_game(min_players=3, max_players=4)).id

    async def bob_joins():
        async with session_factory() as other:
            await other.execute(
                update(GameEvent).where(GameEvent.id == game_id).values(version=GameEvent.version + 1)
            )
            other.add(GameParticipant(game_id=game_id, player_id=bob_id))
            await other.commit()

    calls = interleave(monkeypatch, bob_joins)

    change = await roster_service.join_game(db_session, game_id, alice_id)

    assert calls["n"] == 2
    assert change.current_players == 3
    assert change.game.status == "confirmed"
    assert await roster_count(session_factory, game_id) == 3


@pytest.mark.asyncio
async def test_persistent_conflicts_give_up(
    db_session, session_factory, make_game, make_player, monkeypatch,
):
    alice_id = (await make_player("alice")).id
    game_id = (await make_game(min_players=2, max_players=6)).id

    async def bump_version():
        async with session_factory() as other:
            await other.execute(
                update(GameEvent).where(GameEvent.id == game_id).values(version=GameEvent.version + 1)
            )
            await other.commit()

    interleave(monkeypatch, bump_version, times=roster_service.MAX_RETRY_ATTEMPTS)

    with pytest.raises(StoreConflict):
        await roster_service.join_game(db_session, game_id, alice_id)
    assert await roster_count(session_factory, game_id) == 1


@pytest.mark.asyncio
async def test_leave_during_join_forces_a_fresh_read(
    db_session, session_factory, make_game, make_player, monkeypatch,
):
    """min=3: Alice reads {creator, x} and would confirm, but x leaves before she commits."""
    alice_id = (await make_player("alice")).id
    x = await make_player("x")
    x_id = x.id
    game_id = (await make_game(min_players=3, max_players=4, roster=(x,))).id

    async def x_leaves():
        async with session_factory() as other:
            await roster_service.leave_game(other, game_id, x_id)

    calls = interleave(monkeypatch, x_leaves)

    change = await roster_service.join_game(db_session, game_id, alice_id)

    assert calls["n"] == 2
    assert change.current_players == 2
    assert change.transition.current == "waiting"
    assert change.game.status == "waiting"
    assert await roster_count(session_factory, game_id) == 2


@pytest.mark.asyncio
async def test_leave_keeps_confirmed_status(db_session, make_game, make_player):
    p2 = await make_player("p2")
    game = await make_game(min_players=2, max_players=4, status="confirmed", roster=(p2,))

    change = await roster_service.leave_game(db_session, game.id, p2.id)

    assert change.transition.removed
    assert change.current_players == 1
    assert change.game.status == "confirmed"
    assert change.game.version == 2


@pytest.mark.asyncio
async def test_leave_when_not_joined_is_noop(db_session, make_game, make_player):
    game = await make_game()
    stranger = await make_player("stranger")

    change = await roster_service.leave_game(db_session, game.id, stranger.id)

    assert not change.transition.removed
    assert change.current_players == 1


@pytest.mark.asyncio
async def test_leave_drops_pending_reminders(db_session, make_game, make_player):
    player = await make_player("p")
    game = await make_game()
    await roster_service.join_game(db_session, game.id, player.id)

    reminders = await db_session.execute(
        select(func.count()).select_from(NotificationQueueItem).where(
            NotificationQueueItem.user_id == player.id,
            NotificationQueueItem.notification_type.like("game_%min_reminder"),
        )
    )
    assert reminders.scalar() == 2

    await roster_service.leave_game(db_session, game.id, player.id)

    reminders = await db_session.execute(
        select(func.count()).select_from(NotificationQueueItem).where(
            NotificationQueueItem.user_id == player.id,
            NotificationQueueItem.notification_type.like("game_%min_reminder"),
        )
    )
    assert reminders.scalar() == 0


@pytest.mark.asyncio
async def test_join_publishes_game_update(db_session, make_game, make_player, change_notifier):
    game = await make_game(min_players=2, max_players=4)
    player = await make_player("p")
    received = []
    subscription = await change_notifier.subscribe(game_topic(game.id), received.append)

    await roster_service.join_game(db_session, game.id, player.id)
    await settle()

    await change_notifier.unsubscribe(subscription)
    assert received
    assert received[-1]["type"] == "game_updated"
    assert received[-1]["status"] == "confirmed"
    assert received[-1]["current_players"] == 2


@pytest.mark.asyncio
async def test_fill_game_to_capacity(db_session, make_game, make_player):
    """min=4, max=6: confirms on the 4th player, takes a 5th and 6th, refuses a 7th."""
    game_id = (await make_game(min_players=4, max_players=6)).id
    players = [(await make_player(f"p{i}")).id for i in range(2, 8)]

    statuses = []
    for player_id in players[:5]:
        change = await roster_service.join_game(db_session, game_id, player_id)
        statuses.append((change.current_players, change.game.status))

    assert statuses == [
        (2, "waiting"), (3, "waiting"), (4, "confirmed"), (5, "confirmed"), (6, "confirmed"),
    ]
    with pytest.raises(CapacityExceeded):
        await roster_service.join_game(db_session, game_id, players[5])
