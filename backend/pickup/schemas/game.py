"""
Pydantic schemas for game-related request/response validation.
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field, model_validator

SkillLevel = Literal["never_played", "beginner", "average", "pro", "expert"]
TimeType = Literal["now", "time_of_day", "precise"]
TimeOfDay = Literal["before_lunch", "after_lunch", "before_dinner", "after_dinner", "tomorrow_morning"]
GameStatus = Literal["waiting", "confirmed", "completed", "cancelled"]


class GameCreate(BaseModel):
    sport_id: int
    min_players: int = Field(..., ge=2, le=50)
    max_players: int = Field(..., ge=2, le=50)
    skill_min: Optional[SkillLevel] = None
    skill_max: Optional[SkillLevel] = None
    time_type: TimeType = "now"
    time_of_day: Optional[TimeOfDay] = None
    scheduled_time: Optional[datetime] = None
    # Poster's UTC offset; time-of-day options resolve against their wall clock
    utc_offset_minutes: int = Field(default=0, ge=-14 * 60, le=14 * 60)

    @model_validator(mode="after")
    def check_player_range(self):
        if self.max_players < self.min_players:
            raise ValueError("max_players must be greater than or equal to min_players")
        if self.time_type == "time_of_day" and self.time_of_day is None:
            raise ValueError("time_of_day is required when time_type is 'time_of_day'")
        if self.time_type == "precise" and self.scheduled_time is None:
            raise ValueError("scheduled_time is required when time_type is 'precise'")
        return self


class GameFilter(BaseModel):
    sport_id: Optional[int] = None
    skill_level: Optional[SkillLevel] = None
    open_slots_only: bool = False

    def cache_key(self) -> str:
        return f"sport={self.sport_id}&skill={self.skill_level}&open={self.open_slots_only}"


class GameResponse(BaseModel):
    id: int
    sport_id: int
    creator_id: int
    min_players: int
    max_players: int
    skill_min: Optional[str]
    skill_max: Optional[str]
    scheduled_time: datetime
    time_type: str
    time_label: Optional[str]
    status: str
    current_players: int = 0
    created_at: datetime

    model_config = {"from_attributes": True}


class ParticipantResponse(BaseModel):
    player_id: int
    username: str
    joined_at: datetime


class GameDetailResponse(GameResponse):
    participants: list[ParticipantResponse] = []
    is_joined: bool = False


class GameListResponse(BaseModel):
    games: list[GameResponse]
    total: int
    page: int
    page_size: int
    cached: bool = False


class RosterChangeResponse(BaseModel):
    game: GameResponse
    previous_status: str
    status: str
    status_changed: bool


class SweepResponse(BaseModel):
    retired_game_ids: list[int]
    count: int


class SportResponse(BaseModel):
    id: int
    name: str
    slug: str
    icon: Optional[str]

    model_config = {"from_attributes": True}
