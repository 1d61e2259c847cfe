"""Participation domain model for Headcount.

One document per (game, user) pair in the participations collection.
Records are never deleted: leaving a game is a status change.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_serializer

from app.models.common import (
    ParticipationStatus,
    PyObjectId,
    UtcDateTime,
    utc_now,
)


class Participation(BaseModel):
    """A user's standing in one game.

    ``joined_at`` is the queue time: it is set when the user enters a pool
    from ``not_going`` (or for the first time) and is kept across guest
    changes. ``bumped`` marks a waitlisted participant who was displaced by
    the organizer and therefore sits at the head of the waitlist.
    """

    model_config = {"populate_by_name": True, "arbitrary_types_allowed": True}

    id: Optional[PyObjectId] = Field(default=None, alias="_id")
    game_id: str
    user_token: str
    display_name: str = ""
    status: ParticipationStatus = ParticipationStatus.NOT_GOING
    guests: int = Field(default=0, ge=0)
    bumped: bool = False
    joined_at: UtcDateTime = Field(default_factory=utc_now)
    updated_at: UtcDateTime = Field(default_factory=utc_now)

    @field_serializer("id")
    def serialize_id(self, value: Optional[str], _info) -> Optional[str]:
        if value is not None:
            return str(value)
        return value

    @property
    def party_size(self) -> int:
        """Slots this participant occupies: themselves plus their guests."""
        return 1 + self.guests

    @property
    def is_live(self) -> bool:
        return self.status != ParticipationStatus.NOT_GOING

    def to_mongo_dict(self) -> dict:
        """Convert model to a MongoDB-insertable dict, excluding None id."""
        data = self.model_dump(by_alias=True, mode="python")
        if data.get("_id") is None:
            data.pop("_id", None)
        return data
