"""Common enums, shared types, and utilities for Headcount models."""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Annotated, Any

from bson import ObjectId
from pydantic import AfterValidator, BeforeValidator, PlainSerializer

# Sentinel for "no limit" on max_players, max_waitlist_size and
# max_guests_per_player.
UNLIMITED = -1


def _validate_object_id(value: Any) -> str:
    """Validate and convert ObjectId or string to string representation."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, str):
        return value
    raise ValueError(f"Invalid ObjectId value: {value}")


# Annotated type for MongoDB ObjectId fields.
# Accepts ObjectId or string on input, always serializes as string.
PyObjectId = Annotated[
    str,
    BeforeValidator(_validate_object_id),
    PlainSerializer(lambda v: str(v), return_type=str),
]


class ParticipationStatus(StrEnum):
    """Where a participant currently sits for a game."""
    GOING = "going"
    WAITLISTED = "waitlisted"
    NOT_GOING = "not_going"


class PublicationState(StrEnum):
    """Publication lifecycle states, derived from published_at and now."""
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    PUBLISHED = "published"


class NotificationType(StrEnum):
    """Types of notifications sent to participants."""
    PROMOTED_FROM_WAITLIST = "PROMOTED_FROM_WAITLIST"
    DISPLACED_TO_WAITLIST = "DISPLACED_TO_WAITLIST"
    DISPLACED_TO_NOT_GOING = "DISPLACED_TO_NOT_GOING"
    GAME_PUBLISHED = "GAME_PUBLISHED"


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by MongoDB) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# Timezone-aware UTC datetime. MongoDB drops tzinfo on the way back out, so
# every stored timestamp goes through this on load.
UtcDateTime = Annotated[datetime, AfterValidator(_as_utc)]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
