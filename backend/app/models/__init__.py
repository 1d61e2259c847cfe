"""Pydantic models for Headcount."""

from app.models.common import (
    UNLIMITED,
    NotificationType,
    ParticipationStatus,
    PublicationState,
    PyObjectId,
    UtcDateTime,
)
from app.models.game import Game
from app.models.participation import Participation
from app.models.notification import Notification

__all__ = [
    # Enums and types
    "UNLIMITED",
    "NotificationType",
    "ParticipationStatus",
    "PublicationState",
    "PyObjectId",
    "UtcDateTime",
    # Game models
    "Game",
    # Participation models
    "Participation",
    # Notification models
    "Notification",
]
