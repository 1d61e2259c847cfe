"""Notification domain model for Headcount.

Poll-based notices telling a participant that the engine moved them
(promotion, displacement) or that a game they follow was published.
Auto-deleted via a TTL index.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_serializer

from app.models.common import NotificationType, PyObjectId, UtcDateTime, utc_now


class Notification(BaseModel):
    """Poll-based notification for a user in a game."""

    model_config = {"populate_by_name": True, "arbitrary_types_allowed": True}

    id: Optional[PyObjectId] = Field(default=None, alias="_id")
    game_id: str
    user_token: str
    notification_type: NotificationType
    message: str
    is_read: bool = False
    created_at: UtcDateTime = Field(default_factory=utc_now)

    @field_serializer("id")
    def serialize_id(self, value: Optional[str], _info) -> Optional[str]:
        if value is not None:
            return str(value)
        return value

    def to_mongo_dict(self) -> dict:
        """Convert model to a MongoDB-insertable dict, excluding None id."""
        data = self.model_dump(by_alias=True, mode="python")
        if data.get("_id") is None:
            data.pop("_id", None)
        return data
