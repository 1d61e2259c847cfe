"""Organizer edits to a game, one field at a time.

Each editable field is its own variant with its own validation, tagged by
``field``. Anything outside this set cannot be edited.
"""

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from app.models.common import UNLIMITED, UtcDateTime
from app.models.game import Game


def _limit(value: int, minimum: int, label: str) -> int:
    if value != UNLIMITED and value < minimum:
        raise ValueError(f"{label} must be {UNLIMITED} (unlimited) or at least {minimum}")
    return value


class NameUpdate(BaseModel):
    field: Literal["name"] = "name"
    value: str = Field(..., min_length=1, max_length=100)

    @field_validator("value")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name cannot be empty")
        return v


class DescriptionUpdate(BaseModel):
    field: Literal["description"] = "description"
    value: Optional[str] = Field(default=None, max_length=1000)


class LocationUpdate(BaseModel):
    field: Literal["location"] = "location"
    value: Optional[str] = Field(default=None, max_length=200)


class StartsAtUpdate(BaseModel):
    field: Literal["starts_at"] = "starts_at"
    value: UtcDateTime


class DurationUpdate(BaseModel):
    field: Literal["duration_minutes"] = "duration_minutes"
    value: int = Field(..., gt=0)


class MaxPlayersUpdate(BaseModel):
    field: Literal["max_players"] = "max_players"
    value: int

    @field_validator("value")
    @classmethod
    def valid_limit(cls, v: int) -> int:
        return _limit(v, 1, "max_players")


class MaxWaitlistSizeUpdate(BaseModel):
    field: Literal["max_waitlist_size"] = "max_waitlist_size"
    value: int

    @field_validator("value")
    @classmethod
    def valid_limit(cls, v: int) -> int:
        return _limit(v, 0, "max_waitlist_size")


class MaxGuestsPerPlayerUpdate(BaseModel):
    field: Literal["max_guests_per_player"] = "max_guests_per_player"
    value: int

    @field_validator("value")
    @classmethod
    def valid_limit(cls, v: int) -> int:
        return _limit(v, 0, "max_guests_per_player")


class TotalPriceUpdate(BaseModel):
    field: Literal["total_price_cents"] = "total_price_cents"
    value: int = Field(..., ge=0)


GameFieldUpdate = Annotated[
    Union[
        NameUpdate,
        DescriptionUpdate,
        LocationUpdate,
        StartsAtUpdate,
        DurationUpdate,
        MaxPlayersUpdate,
        MaxWaitlistSizeUpdate,
        MaxGuestsPerPlayerUpdate,
        TotalPriceUpdate,
    ],
    Field(discriminator="field"),
]


def apply_field_update(game: Game, update: GameFieldUpdate, now: datetime) -> Game:
    """Return a copy of ``game`` with one field changed."""
    value = update.value
    if isinstance(value, str):
        value = value.strip() or None
    return game.model_copy(update={update.field: value, "updated_at": now})


def capacity_grew(before: Game, after: Game) -> bool:
    """True when an edit made the roster or the waitlist larger."""

    def grew(old: Optional[int], new: Optional[int]) -> bool:
        if new == old:
            return False
        if new == UNLIMITED:
            return True
        if old == UNLIMITED:
            return False
        return (new or 0) > (old or 0)

    return grew(before.max_players, after.max_players) or grew(
        before.max_waitlist_size, after.max_waitlist_size
    )
