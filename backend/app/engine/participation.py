"""Join / leave decisions for a single user in a single game.

Every operation takes the full participation snapshot and returns either a
complete updated snapshot or a decision that changes nothing. Nothing is
applied halfway.
"""

import logging
from datetime import datetime
from enum import StrEnum
from typing import Annotated, Literal, Optional, Sequence, Union

from pydantic import BaseModel, Field

from app.engine.capacity import compute_capacity
from app.engine.resolver import displace_for_organizer, plan_displacement, promote_waitlisted
from app.models.common import UNLIMITED, ParticipationStatus
from app.models.game import Game
from app.models.participation import Participation

logger = logging.getLogger("headcount.engine.participation")


class RejectionReason(StrEnum):
    INVALID_GUEST_COUNT = "INVALID_GUEST_COUNT"
    GAME_FULL = "GAME_FULL"


class ConfirmationReason(StrEnum):
    ORGANIZER_WOULD_DISPLACE = "ORGANIZER_WOULD_DISPLACE"


class Admitted(BaseModel):
    """The requester was placed in a pool.

    ``participations`` is the complete updated snapshot to persist;
    ``promoted`` and ``displaced`` are the other users it moved.
    """

    kind: Literal["admitted"] = "admitted"
    status: ParticipationStatus
    participant: Participation
    promoted: list[Participation] = Field(default_factory=list)
    displaced: list[Participation] = Field(default_factory=list)
    participations: list[Participation]


class Rejected(BaseModel):
    """Nothing changed; ``reason`` says why."""

    kind: Literal["rejected"] = "rejected"
    reason: RejectionReason
    message: str


class NeedsConfirmation(BaseModel):
    """The organizer's join would push other users out of the roster.

    Nothing changed. Repeating the request with confirmation applies it and
    moves the users listed in ``would_displace``.
    """

    kind: Literal["needs_confirmation"] = "needs_confirmation"
    reason: ConfirmationReason = ConfirmationReason.ORGANIZER_WOULD_DISPLACE
    would_displace: list[Participation]


JoinDecision = Annotated[
    Union[Admitted, Rejected, NeedsConfirmation],
    Field(discriminator="kind"),
]


class LeaveResult(BaseModel):
    """Outcome of a leave request. ``changed`` is False for a no-op."""

    changed: bool
    participant: Optional[Participation] = None
    promoted: list[Participation] = Field(default_factory=list)
    participations: list[Participation]


def validate_guest_count(game: Game, guests: int) -> Optional[str]:
    """Return an error message when ``guests`` is not allowed, else None."""
    if guests < 0:
        return "Guest count cannot be negative"
    limit = game.max_guests_per_player
    if limit is None:
        limit = 0
    if limit != UNLIMITED and guests > limit:
        return f"At most {limit} guest(s) per player allowed"
    return None


def find_participation(
    participations: Sequence[Participation], user_token: str
) -> Optional[Participation]:
    for p in participations:
        if p.user_token == user_token:
            return p
    return None


def _upsert(
    participations: Sequence[Participation], record: Participation
) -> list[Participation]:
    result = list(participations)
    for i, p in enumerate(result):
        if p.user_token == record.user_token:
            result[i] = record
            return result
    result.append(record)
    return result


def request_join(
    game: Game,
    participations: Sequence[Participation],
    user_token: str,
    guests: int,
    is_organizer: bool,
    now: datetime,
    confirm_displacement: bool = False,
    display_name: Optional[str] = None,
) -> JoinDecision:
    """Decide where ``user_token`` lands when asking to join with ``guests``.

    Also covers guest-count changes for users already going or waitlisted:
    capacity is always computed without the requester's own record.

    Args:
        game: The game being joined.
        participations: Current snapshot of the game's participations.
        user_token: The requesting user.
        guests: Guests the user brings (the party is ``1 + guests``).
        is_organizer: Whether the requester organizes this game.
        now: Current time, used for ``joined_at`` / ``updated_at``.
        confirm_displacement: The organizer accepts displacing others.
        display_name: Name to store on the record, if given.

    Returns:
        Admitted, Rejected or NeedsConfirmation.
    """
    guest_error = validate_guest_count(game, guests)
    if guest_error is not None:
        return Rejected(reason=RejectionReason.INVALID_GUEST_COUNT, message=guest_error)

    party_size = 1 + guests
    capacity = compute_capacity(game, participations, exclude_user=user_token)
    existing = find_participation(participations, user_token)
    working = list(participations)
    displaced: list[Participation] = []

    if capacity.fits_going(party_size):
        status = ParticipationStatus.GOING
    elif is_organizer and party_size <= game.max_players:
        plan = plan_displacement(game, working, user_token, party_size)
        if not confirm_displacement:
            logger.info(
                "Organizer join in game %s needs confirmation: would displace %d",
                game.id, len(plan),
            )
            return NeedsConfirmation(would_displace=[p for p, _ in plan])
        working, displaced = displace_for_organizer(
            game, working, user_token, party_size, now
        )
        status = ParticipationStatus.GOING
    elif capacity.fits_waitlist(party_size):
        status = ParticipationStatus.WAITLISTED
    else:
        logger.info(
            "Join rejected in game %s: party of %d does not fit", game.id, party_size,
        )
        return Rejected(
            reason=RejectionReason.GAME_FULL,
            message=f"No room for a party of {party_size}",
        )

    if existing is not None and existing.is_live:
        record = existing.model_copy(
            update={
                "status": status,
                "guests": guests,
                "bumped": existing.bumped and status == ParticipationStatus.WAITLISTED,
                "updated_at": now,
            }
        )
    elif existing is not None:
        record = existing.model_copy(
            update={
                "status": status,
                "guests": guests,
                "bumped": False,
                "joined_at": now,
                "updated_at": now,
            }
        )
    else:
        record = Participation(
            game_id=str(game.id) if game.id is not None else "",
            user_token=user_token,
            status=status,
            guests=guests,
            joined_at=now,
            updated_at=now,
        )
    if display_name:
        record = record.model_copy(update={"display_name": display_name})

    working = _upsert(working, record)
    working, promoted = promote_waitlisted(game, working, now)

    # A displaced party that fits the leftover slots ends up going again.
    returned = {p.user_token for p in promoted} & {p.user_token for p in displaced}
    if returned:
        promoted = [p for p in promoted if p.user_token not in returned]
        displaced = [p for p in displaced if p.user_token not in returned]

    logger.info(
        "Admitted %s to game %s as %s (guests=%d, promoted=%d, displaced=%d)",
        user_token, game.id, status, guests, len(promoted), len(displaced),
    )
    return Admitted(
        status=status,
        participant=record,
        promoted=promoted,
        displaced=displaced,
        participations=working,
    )


def request_leave(
    game: Game,
    participations: Sequence[Participation],
    user_token: str,
    now: datetime,
) -> LeaveResult:
    """Set the user to ``not_going`` and promote into any freed slots.

    A user with no record, or already not going, is a no-op.
    """
    existing = find_participation(participations, user_token)
    if existing is None or not existing.is_live:
        return LeaveResult(
            changed=False,
            participant=existing,
            participations=list(participations),
        )

    record = existing.model_copy(
        update={
            "status": ParticipationStatus.NOT_GOING,
            "bumped": False,
            "updated_at": now,
        }
    )
    working = _upsert(participations, record)
    working, promoted = promote_waitlisted(game, working, now)

    logger.info(
        "User %s left game %s (was %s, promoted=%d)",
        user_token, game.id, existing.status, len(promoted),
    )
    return LeaveResult(
        changed=True,
        participant=record,
        promoted=promoted,
        participations=working,
    )
