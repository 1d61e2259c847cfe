"""Pure capacity calculations for the going pool and the waitlist.

No database access, no async. Inputs are a Game and a participation
snapshot; the result depends on nothing else.
"""

from typing import Iterable, Optional

from pydantic import BaseModel

from app.models.common import UNLIMITED, ParticipationStatus
from app.models.game import Game
from app.models.participation import Participation


class CapacitySummary(BaseModel):
    """Derived headcounts for a game.

    ``game_spots_left`` / ``waitlist_spots_left`` are None when the
    corresponding pool is unlimited. Both are clamped at 0 so a roster
    that was shrunk below its occupancy reports "no spots" rather than a
    negative count.
    """

    model_config = {"frozen": True}

    occupied_going: int
    occupied_waitlist: int
    going_count: int
    waitlisted_count: int
    not_going_count: int
    game_spots_left: Optional[int]
    waitlist_spots_left: Optional[int]
    is_full: bool

    def fits_going(self, party_size: int) -> bool:
        return self.game_spots_left is None or self.game_spots_left >= party_size

    def fits_waitlist(self, party_size: int) -> bool:
        return (
            self.waitlist_spots_left is None
            or self.waitlist_spots_left >= party_size
        )


def _spots_left(limit: Optional[int], occupied: int) -> Optional[int]:
    if limit == UNLIMITED:
        return None
    if limit is None:
        # Unset limits count as a disabled pool.
        return 0
    return max(0, limit - occupied)


def compute_capacity(
    game: Game,
    participations: Iterable[Participation],
    exclude_user: Optional[str] = None,
) -> CapacitySummary:
    """Compute occupied and available slots for both pools.

    Args:
        game: The game whose limits apply.
        participations: Current snapshot of the game's participations.
        exclude_user: A user token whose record is left out of every sum,
            so a user re-requesting is never counted twice.

    Returns:
        A CapacitySummary. ``is_full`` is True only when neither pool has
        a spot left; an unlimited pool never contributes to fullness.
    """
    occupied_going = 0
    occupied_waitlist = 0
    going_count = 0
    waitlisted_count = 0
    not_going_count = 0

    for p in participations:
        if exclude_user is not None and p.user_token == exclude_user:
            continue
        if p.status == ParticipationStatus.GOING:
            occupied_going += p.party_size
            going_count += 1
        elif p.status == ParticipationStatus.WAITLISTED:
            occupied_waitlist += p.party_size
            waitlisted_count += 1
        else:
            not_going_count += 1

    game_spots_left = _spots_left(game.max_players, occupied_going)
    waitlist_spots_left = _spots_left(game.max_waitlist_size, occupied_waitlist)

    is_full = (
        game_spots_left is not None
        and game_spots_left <= 0
        and waitlist_spots_left is not None
        and waitlist_spots_left <= 0
    )

    return CapacitySummary(
        occupied_going=occupied_going,
        occupied_waitlist=occupied_waitlist,
        going_count=going_count,
        waitlisted_count=waitlisted_count,
        not_going_count=not_going_count,
        game_spots_left=game_spots_left,
        waitlist_spots_left=waitlist_spots_left,
        is_full=is_full,
    )


def per_player_price_cents(game: Game) -> Optional[int]:
    """Split the total price evenly over the roster, rounding half up.

    Returns None when the price or roster size is unknown or the roster is
    unlimited. A free game costs 0 per player regardless of roster size.
    """
    total = game.total_price_cents
    if total is None:
        return None
    if total == 0:
        return 0
    if game.max_players <= 0:
        return None
    return (2 * total + game.max_players) // (2 * game.max_players)
