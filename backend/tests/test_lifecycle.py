"""
Tests for the pure lifecycle engine: status derivation, admission, termination,
staleness and schedule resolution.
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from pickup.core.exceptions import AlreadyJoined, CapacityExceeded, EventClosed
from pickup.services import lifecycle
from pickup.services.lifecycle import STALE_GAME_HORIZON, LifecyclePolicy

NOW = datetime(2026, 10, 19, 15, 0, tzinfo=timezone.utc)


def game(status="waiting", min_players=4, max_players=6, scheduled_time=NOW):
    return SimpleNamespace(
        status=status,
        min_players=min_players,
        max_players=max_players,
        scheduled_time=scheduled_time,
    )


def test_join_below_minimum_stays_waiting():
    transition = lifecycle.admit_join(game(), [1, 2], player_id=3)
    assert transition.previous == "waiting"
    assert transition.current == "waiting"
    assert not transition.changed


def test_join_reaching_minimum_confirms():
    transition = lifecycle.admit_join(game(), [1, 2, 3], player_id=4)
    assert transition.current == "confirmed"
    assert transition.changed


def test_two_player_game_confirms_on_first_join():
    transition = lifecycle.admit_join(game(min_players=2, max_players=2), [1], player_id=2)
    assert transition.current == "confirmed"


def test_join_full_game_rejected():
    with pytest.raises(CapacityExceeded):
        lifecycle.admit_join(game(status="confirmed"), [1, 2, 3, 4, 5, 6], player_id=7)


def test_join_twice_rejected():
    with pytest.raises(AlreadyJoined):
        lifecycle.admit_join(game(), [1, 2], player_id=2)


@pytest.mark.parametrize("status,size,expected", [
    ("waiting", 3, "waiting"),
    ("waiting", 4, "confirmed"),
    ("confirmed", 2, "confirmed"),
    ("confirmed", 5, "confirmed"),
])
def test_derive_status_twice_at_same_size_is_stable(status, size, expected):
    event = game(status=status)

    first = lifecycle.derive_status(event, size)
    assert lifecycle.derive_status(event, size) == first == expected

    event.status = first
    assert lifecycle.derive_status(event, size) == first


@pytest.mark.parametrize("status", ["completed", "cancelled"])
def test_join_terminal_game_rejected(status):
    with pytest.raises(EventClosed):
        lifecycle.admit_join(game(status=status), [1], player_id=2)


def test_closed_is_checked_before_membership_and_capacity():
    full_and_member = game(status="completed", max_players=2)
    with pytest.raises(EventClosed):
        lifecycle.admit_join(full_and_member, [1, 2], player_id=2)


def test_already_joined_is_checked_before_capacity():
    with pytest.raises(AlreadyJoined):
        lifecycle.admit_join(game(max_players=2), [1, 2], player_id=1)


def test_leave_never_unconfirms():
    transition = lifecycle.admit_leave(game(status="confirmed"), [1, 2, 3, 4], player_id=4)
    assert transition.removed
    assert transition.current == "confirmed"


def test_leave_non_member_is_noop():
    transition = lifecycle.admit_leave(game(), [1, 2], player_id=9)
    assert not transition.removed
    assert not transition.changed


def test_terminate_open_game():
    assert lifecycle.terminate(game(status="confirmed"), "completed").current == "completed"
    assert lifecycle.terminate(game(), "cancelled").current == "cancelled"


def test_terminate_is_idempotent_on_terminal_games():
    transition = lifecycle.terminate(game(status="cancelled"), "completed")
    assert transition.current == "cancelled"
    assert not transition.changed


def test_terminate_rejects_non_terminal_kind():
    with pytest.raises(ValueError):
        lifecycle.terminate(game(), "confirmed")


def test_stale_only_after_horizon():
    scheduled = NOW - STALE_GAME_HORIZON
    assert not lifecycle.is_stale(game(scheduled_time=scheduled), NOW)
    assert lifecycle.is_stale(game(scheduled_time=scheduled - timedelta(seconds=1)), NOW)


def test_terminal_games_are_never_stale():
    old = NOW - timedelta(days=2)
    assert not lifecycle.is_stale(game(status="completed", scheduled_time=old), NOW)


def test_stale_accepts_naive_database_timestamps():
    naive = (NOW - timedelta(hours=4)).replace(tzinfo=None)
    assert lifecycle.is_stale(game(scheduled_time=naive), NOW)


def test_skill_range_helpers():
    policy = LifecyclePolicy()
    assert policy.skills_at_or_below("beginner") == ["never_played", "beginner"]
    assert policy.skills_at_or_above("pro") == ["pro", "expert"]
    assert policy.skill_range_valid("beginner", "pro")
    assert not policy.skill_range_valid("expert", "average")
    assert policy.skill_range_valid(None, "average")


def test_resolve_now():
    scheduled, label = LifecyclePolicy().resolve_schedule("now", NOW)
    assert scheduled == NOW
    assert label == "Now"


def test_resolve_time_of_day_uses_poster_clock():
    poster_now = NOW.astimezone(timezone(timedelta(hours=-5)))  # 10:00 local
    scheduled, label = LifecyclePolicy().resolve_schedule("time_of_day", poster_now, time_of_day="after_lunch")
    assert label == "After Lunch"
    # 14:00 at UTC-5
    assert scheduled == datetime(2026, 10, 19, 19, 0, tzinfo=timezone.utc)


def test_resolve_tomorrow_morning():
    scheduled, label = LifecyclePolicy().resolve_schedule("time_of_day", NOW, time_of_day="tomorrow_morning")
    assert scheduled == datetime(2026, 10, 20, 9, 0, tzinfo=timezone.utc)
    assert label == "Tomorrow Morning"


def test_resolve_precise_and_errors():
    policy = LifecyclePolicy()
    at = NOW + timedelta(hours=3)
    assert policy.resolve_schedule("precise", NOW, scheduled_time=at) == (at, None)
    with pytest.raises(ValueError):
        policy.resolve_schedule("precise", NOW)
    with pytest.raises(ValueError):
        policy.resolve_schedule("time_of_day", NOW, time_of_day="midnight")
