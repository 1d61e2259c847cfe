"""Promotion and displacement between the going pool and the waitlist.

Queue order is fully determined by the input: bumped waitlist entries
first, then ascending ``joined_at``, then position in the input list.
Functions return new lists and never mutate the records they are given.
"""

import logging
from datetime import datetime
from typing import Optional, Sequence

from app.engine.capacity import compute_capacity
from app.models.common import ParticipationStatus
from app.models.game import Game
from app.models.participation import Participation

logger = logging.getLogger("headcount.engine.resolver")


def _indexed(
    participations: Sequence[Participation], status: ParticipationStatus
) -> list[tuple[int, Participation]]:
    return [(i, p) for i, p in enumerate(participations) if p.status == status]


def waitlist_queue(participations: Sequence[Participation]) -> list[Participation]:
    """Waitlisted participations in promotion order."""
    entries = _indexed(participations, ParticipationStatus.WAITLISTED)
    entries.sort(key=lambda e: (not e[1].bumped, e[1].joined_at, e[0]))
    return [p for _, p in entries]


def going_queue(participations: Sequence[Participation]) -> list[Participation]:
    """Going participations, earliest joiner first."""
    entries = _indexed(participations, ParticipationStatus.GOING)
    entries.sort(key=lambda e: (e[1].joined_at, e[0]))
    return [p for _, p in entries]


def queue_order(participations: Sequence[Participation]) -> list[Participation]:
    """Going, then waitlisted, then not going; each group in queue order."""
    not_going = [
        p for p in participations if p.status == ParticipationStatus.NOT_GOING
    ]
    return going_queue(participations) + waitlist_queue(participations) + not_going


def promote_waitlisted(
    game: Game,
    participations: Sequence[Participation],
    now: datetime,
) -> tuple[list[Participation], list[Participation]]:
    """Move waitlisted parties into free going slots.

    Entries are tried in queue order. A party moves only when all of its
    ``1 + guests`` slots fit; an entry that does not fit is skipped and the
    next one is tried. Running this on its own output promotes nobody.

    Returns:
        (updated participations, promoted participations)
    """
    result = list(participations)
    position = {p.user_token: i for i, p in enumerate(result)}
    capacity = compute_capacity(game, result)
    free = capacity.game_spots_left

    promoted: list[Participation] = []
    for entry in waitlist_queue(result):
        if free is not None and entry.party_size > free:
            continue
        moved = entry.model_copy(
            update={
                "status": ParticipationStatus.GOING,
                "bumped": False,
                "updated_at": now,
            }
        )
        result[position[entry.user_token]] = moved
        promoted.append(moved)
        if free is not None:
            free -= entry.party_size
        logger.info(
            "Promoted %s (party of %d) from waitlist in game %s",
            entry.user_token, entry.party_size, game.id,
        )

    return result, promoted


def plan_displacement(
    game: Game,
    participations: Sequence[Participation],
    organizer_token: str,
    needed: int,
) -> Optional[list[tuple[Participation, ParticipationStatus]]]:
    """Work out who the organizer would push out to get ``needed`` slots.

    The most recently joined non-organizer going parties are picked first
    until enough slots are free. Each one goes to the waitlist when it has
    room for the whole party, otherwise to ``not_going``.

    Returns:
        A list of (participant, destination status) in demotion order, an
        empty list when no one has to move, or None when even demoting every
        other participant would not free enough slots.
    """
    capacity = compute_capacity(game, participations, exclude_user=organizer_token)
    if capacity.game_spots_left is None:
        return []
    # Unclamped: a roster shrunk below its occupancy starts out negative.
    free = game.max_players - capacity.occupied_going
    if free >= needed:
        return []
    if needed > game.max_players:
        return None

    waitlist_free = capacity.waitlist_spots_left
    candidates = [
        p for p in going_queue(participations) if p.user_token != organizer_token
    ]

    plan: list[tuple[Participation, ParticipationStatus]] = []
    for p in reversed(candidates):
        if free >= needed:
            break
        if waitlist_free is None or waitlist_free >= p.party_size:
            destination = ParticipationStatus.WAITLISTED
            if waitlist_free is not None:
                waitlist_free -= p.party_size
        else:
            destination = ParticipationStatus.NOT_GOING
        plan.append((p, destination))
        free += p.party_size

    if free < needed:
        return None
    return plan


def displace_for_organizer(
    game: Game,
    participations: Sequence[Participation],
    organizer_token: str,
    needed: int,
    now: datetime,
) -> tuple[list[Participation], list[Participation]]:
    """Demote going parties so the organizer can take ``needed`` slots.

    Demoted parties land at the head of the waitlist (``bumped``) or on
    ``not_going``; they are returned so the caller can tell them.

    Returns:
        (updated participations, displaced participations)

    Raises:
        ValueError: The roster is too small for ``needed`` slots.
    """
    plan = plan_displacement(game, participations, organizer_token, needed)
    if plan is None:
        raise ValueError(
            f"Cannot free {needed} slots in a roster of {game.max_players}"
        )

    result = list(participations)
    position = {p.user_token: i for i, p in enumerate(result)}
    displaced: list[Participation] = []
    for p, destination in plan:
        moved = p.model_copy(
            update={
                "status": destination,
                "bumped": destination == ParticipationStatus.WAITLISTED,
                "updated_at": now,
            }
        )
        result[position[p.user_token]] = moved
        displaced.append(moved)
        logger.info(
            "Displaced %s (party of %d) to %s in game %s for the organizer",
            p.user_token, p.party_size, destination, game.id,
        )

    return result, displaced
