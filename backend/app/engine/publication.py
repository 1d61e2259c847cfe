"""Publication state machine: draft -> scheduled -> published.

The state is never stored. It is derived from ``published_at`` and an
explicit ``now`` supplied by the caller, so the same inputs always give the
same answer.
"""

import logging
from datetime import datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel

from app.engine.errors import AlreadyPublished, CapabilityDisabled, RequirementsNotMet
from app.models.common import UNLIMITED, PublicationState
from app.models.game import Game

logger = logging.getLogger("headcount.engine.publication")


class RequirementLabel(StrEnum):
    """Checklist items that must all hold before a game can go out."""
    LOCATION = "Location set"
    STARTS_AT = "Start time set"
    DURATION = "Duration set"
    MAX_PLAYERS = "Max players set"
    WAITLIST_SIZE = "Waitlist size set"
    GUESTS_PER_PLAYER = "Guests per player set"
    PRICING = "Pricing set"


class PublishReadiness(BaseModel):
    """Result of the publish checklist."""

    model_config = {"frozen": True}

    ready: bool
    unmet: list[RequirementLabel]


class PublishCapabilities(BaseModel):
    """Which publish-time edits the deployment allows."""

    model_config = {"frozen": True}

    allow_schedule: bool = True
    allow_clear: bool = True


def derive_publication_state(
    published_at: Optional[datetime], now: datetime
) -> PublicationState:
    """Map a publish timestamp to its state at ``now`` (boundary inclusive)."""
    if published_at is None:
        return PublicationState.DRAFT
    if published_at > now:
        return PublicationState.SCHEDULED
    return PublicationState.PUBLISHED


def check_publish_readiness(game: Game) -> PublishReadiness:
    """Evaluate every checklist item and report all the unmet ones."""
    checks = [
        (RequirementLabel.LOCATION, bool(game.location and game.location.strip())),
        (RequirementLabel.STARTS_AT, game.starts_at is not None),
        (
            RequirementLabel.DURATION,
            game.duration_minutes is not None and game.duration_minutes > 0,
        ),
        (
            RequirementLabel.MAX_PLAYERS,
            game.max_players > 0 or game.max_players == UNLIMITED,
        ),
        (RequirementLabel.WAITLIST_SIZE, game.max_waitlist_size is not None),
        (RequirementLabel.GUESTS_PER_PLAYER, game.max_guests_per_player is not None),
        (
            RequirementLabel.PRICING,
            game.total_price_cents is not None and game.total_price_cents >= 0,
        ),
    ]
    unmet = [label for label, met in checks if not met]
    return PublishReadiness(ready=not unmet, unmet=unmet)


def set_publish_time(
    game: Game,
    published_at: datetime,
    now: datetime,
    capabilities: PublishCapabilities = PublishCapabilities(),
) -> datetime:
    """Validate a new publish time for ``game`` and return the value to store.

    A time at or before ``now`` publishes immediately and is stored as
    ``now``. A later time schedules the game and may be moved again until
    it arrives.

    Raises:
        AlreadyPublished: The game is already live.
        RequirementsNotMet: The checklist is incomplete.
        CapabilityDisabled: Scheduling is off and ``published_at`` is later
            than ``now``.
    """
    state = derive_publication_state(game.published_at, now)
    if state == PublicationState.PUBLISHED:
        raise AlreadyPublished()

    readiness = check_publish_readiness(game)
    if not readiness.ready:
        logger.warning(
            "Publish rejected for game %s: unmet=%s",
            game.id, [str(label) for label in readiness.unmet],
        )
        raise RequirementsNotMet(readiness.unmet)

    if published_at <= now:
        return now

    if not capabilities.allow_schedule:
        raise CapabilityDisabled("Scheduled publishing")
    return published_at


def clear_publish_time(
    game: Game,
    now: datetime,
    capabilities: PublishCapabilities = PublishCapabilities(),
) -> None:
    """Check that a scheduled game may be moved back to draft.

    Clearing a draft is a no-op. Returns None, the value to store.

    Raises:
        CapabilityDisabled: Clearing is turned off.
        AlreadyPublished: The game is already live.
    """
    if not capabilities.allow_clear:
        raise CapabilityDisabled("Clearing the publish time")
    if derive_publication_state(game.published_at, now) == PublicationState.PUBLISHED:
        raise AlreadyPublished()
    return None
