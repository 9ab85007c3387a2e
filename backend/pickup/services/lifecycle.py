"""
Game lifecycle engine: pure decision logic, no I/O.

STATE MACHINE
=============

    waiting ──(roster reaches min_players)──> confirmed
    waiting | confirmed ──(end / stale sweep)──> completed
    waiting | confirmed ──(cancel)──> cancelled

completed and cancelled are terminal. Confirmation is a ratchet: a confirmed
game stays confirmed when players leave, so a near-term game is never
"un-confirmed" under the people who already planned around it.

The functions here only decide. Persisting the decision (and making the
capacity check and roster insert one atomic unit) is the job of
roster_service / game_service, which apply the returned Transition with a
version-checked UPDATE.

Anything with `status`, `min_players`, `max_players` and `scheduled_time`
attributes can be passed as an event: the ORM model or a plain snapshot.
"""

from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from enum import Enum
from functools import lru_cache
from typing import Collection, Optional

from pydantic import BaseModel, ConfigDict

from pickup.core.exceptions import AlreadyJoined, CapacityExceeded, EventClosed
from pickup.utils.datetime_utils import as_utc


class GameStatus(str, Enum):
    WAITING = "waiting"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TimeType(str, Enum):
    NOW = "now"
    TIME_OF_DAY = "time_of_day"
    PRECISE = "precise"


OPEN_STATUSES = (GameStatus.WAITING.value, GameStatus.CONFIRMED.value)
TERMINAL_STATUSES = (GameStatus.COMPLETED.value, GameStatus.CANCELLED.value)

# Grace window after scheduled_time before an open game is retired.
# Long enough that a game that started late is not retired while still being played.
STALE_GAME_HORIZON = timedelta(hours=3)

SKILL_LEVELS = ("never_played", "beginner", "average", "pro", "expert")


class TimeOfDayOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    label: str
    hour: int
    next_day: bool = False


DEFAULT_TIME_OF_DAY_OPTIONS = (
    TimeOfDayOption(key="before_lunch", label="Before Lunch", hour=11),
    TimeOfDayOption(key="after_lunch", label="After Lunch", hour=14),
    TimeOfDayOption(key="before_dinner", label="Before Dinner", hour=17),
    TimeOfDayOption(key="after_dinner", label="After Dinner", hour=20),
    TimeOfDayOption(key="tomorrow_morning", label="Tomorrow Morning", hour=9, next_day=True),
)


class LifecyclePolicy(BaseModel):
    """Immutable lifecycle configuration, injected into services."""

    model_config = ConfigDict(frozen=True)

    stale_horizon: timedelta = STALE_GAME_HORIZON
    skill_levels: tuple[str, ...] = SKILL_LEVELS
    time_of_day_options: tuple[TimeOfDayOption, ...] = DEFAULT_TIME_OF_DAY_OPTIONS
    reminder_offsets_minutes: tuple[int, ...] = (30, 5)

    def skill_index(self, level: str) -> int:
        try:
            return self.skill_levels.index(level)
        except ValueError:
            raise ValueError(f"Unknown skill level: {level!r}")

    def skills_at_or_below(self, level: str) -> list[str]:
        return list(self.skill_levels[: self.skill_index(level) + 1])

    def skills_at_or_above(self, level: str) -> list[str]:
        return list(self.skill_levels[self.skill_index(level):])

    def skill_range_valid(self, skill_min: Optional[str], skill_max: Optional[str]) -> bool:
        if skill_min is None or skill_max is None:
            return True
        return self.skill_index(skill_min) <= self.skill_index(skill_max)

    def time_of_day(self, key: str) -> TimeOfDayOption:
        for option in self.time_of_day_options:
            if option.key == key:
                return option
        raise ValueError(f"Unknown time of day option: {key!r}")

    def resolve_schedule(
        self,
        time_type: str,
        now: datetime,
        time_of_day: Optional[str] = None,
        scheduled_time: Optional[datetime] = None,
    ) -> tuple[datetime, Optional[str]]:
        """
        Turn the poster's time choice into (scheduled_time in UTC, label).

        `now` should carry the poster's local offset: time-of-day options
        resolve against the poster's wall clock.
        """
        if time_type == TimeType.NOW.value:
            return as_utc(now), "Now"

        if time_type == TimeType.TIME_OF_DAY.value:
            if not time_of_day:
                raise ValueError("time_of_day is required for time_type 'time_of_day'")
            option = self.time_of_day(time_of_day)
            day = now.date() + timedelta(days=1 if option.next_day else 0)
            local = datetime.combine(day, time(hour=option.hour), tzinfo=now.tzinfo or timezone.utc)
            return as_utc(local), option.label

        if time_type == TimeType.PRECISE.value:
            if scheduled_time is None:
                raise ValueError("scheduled_time is required for time_type 'precise'")
            return as_utc(scheduled_time), None

        raise ValueError(f"Unknown time type: {time_type!r}")


@lru_cache()
def get_lifecycle_policy() -> LifecyclePolicy:
    return LifecyclePolicy()


@dataclass(frozen=True)
class Transition:
    previous: str
    current: str
    removed: bool = False

    @property
    def changed(self) -> bool:
        return self.previous != self.current


def derive_status(event, roster_size: int) -> str:
    """The single automatic rule: waiting -> confirmed once min_players is reached."""
    if event.status == GameStatus.WAITING.value and roster_size >= event.min_players:
        return GameStatus.CONFIRMED.value
    return event.status


def admit_join(event, roster: Collection[int], player_id: int) -> Transition:
    """
    Decide whether `player_id` may join, and the status after the insert.

    Raises EventClosed, AlreadyJoined or CapacityExceeded; checked in that order.
    """
    if event.status not in OPEN_STATUSES:
        raise EventClosed()
    if player_id in roster:
        raise AlreadyJoined()
    if len(roster) >= event.max_players:
        raise CapacityExceeded()
    return Transition(previous=event.status, current=derive_status(event, len(roster) + 1))


def admit_leave(event, roster: Collection[int], player_id: int) -> Transition:
    """Leaving is always allowed and never moves the status backwards."""
    if player_id not in roster:
        return Transition(previous=event.status, current=event.status, removed=False)
    return Transition(
        previous=event.status,
        current=derive_status(event, len(roster) - 1),
        removed=True,
    )


def terminate(event, kind: str) -> Transition:
    """End or cancel an open game. Already-terminal games are left as they are."""
    if kind not in TERMINAL_STATUSES:
        raise ValueError(f"Cannot terminate a game as {kind!r}")
    if event.status in TERMINAL_STATUSES:
        return Transition(previous=event.status, current=event.status)
    return Transition(previous=event.status, current=kind)


def stale_cutoff(now: datetime, horizon: timedelta = STALE_GAME_HORIZON) -> datetime:
    """Open games scheduled strictly before this instant are stale."""
    return as_utc(now) - horizon


def is_stale(event, now: datetime, horizon: timedelta = STALE_GAME_HORIZON) -> bool:
    if event.status not in OPEN_STATUSES:
        return False
    return as_utc(event.scheduled_time) + horizon < as_utc(now)
