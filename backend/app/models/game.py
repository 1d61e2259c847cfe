"""Game domain model for Headcount.

One document per activity instance in the games collection. The same model
is the input of the capacity and publication engine.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_serializer

from app.models.common import UNLIMITED, PyObjectId, UtcDateTime, utc_now


class Game(BaseModel):
    """A group activity with a bounded roster, waitlist and guest allowance.

    Limits use ``UNLIMITED`` (-1) for "no limit". ``max_waitlist_size`` and
    ``max_guests_per_player`` may be left unset while the game is a draft;
    an unset waitlist behaves as disabled and an unset guest allowance as 0.
    ``published_at`` is None for drafts, in the future for scheduled games.
    """

    model_config = {"populate_by_name": True, "arbitrary_types_allowed": True}

    id: Optional[PyObjectId] = Field(default=None, alias="_id")
    code: str
    name: str
    description: Optional[str] = None
    organizer_token: str
    organizer_name: str

    location: Optional[str] = None
    starts_at: Optional[UtcDateTime] = None
    duration_minutes: Optional[int] = None
    max_players: int = 100
    max_waitlist_size: Optional[int] = None
    max_guests_per_player: Optional[int] = 0
    total_price_cents: Optional[int] = None

    published_at: Optional[UtcDateTime] = None
    created_at: UtcDateTime = Field(default_factory=utc_now)
    updated_at: UtcDateTime = Field(default_factory=utc_now)

    @field_serializer("id")
    def serialize_id(self, value: Optional[str], _info) -> Optional[str]:
        if value is not None:
            return str(value)
        return value

    @property
    def has_unlimited_roster(self) -> bool:
        return self.max_players == UNLIMITED

    def is_organizer(self, user_token: Optional[str]) -> bool:
        return user_token is not None and user_token == self.organizer_token

    def to_mongo_dict(self) -> dict:
        """Convert model to a MongoDB-insertable dict, excluding None id."""
        data = self.model_dump(by_alias=True, mode="python")
        # Remove _id if None so MongoDB generates one
        if data.get("_id") is None:
            data.pop("_id", None)
        return data
