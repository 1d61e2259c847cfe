"""Participation business logic service.

Loads the game snapshot, asks the engine for a join/leave decision, and
persists the outcome, all under the game's lock. Users the engine moved as
a side effect are notified.
"""

import logging
from typing import Any, Optional

from fastapi import HTTPException, status

from app.auth.user_token import generate_user_token
from app.clock import Clock
from app.dal.participations_dal import ParticipationDAL
from app.engine import (
    NeedsConfirmation,
    Rejected,
    RejectionReason,
    compute_capacity,
    queue_order,
    request_join,
    request_leave,
)
from app.models.common import ParticipationStatus
from app.models.participation import Participation
from app.services.game_locks import GameLockRegistry, game_locks
from app.services.game_service import GameService
from app.services.notification_service import NotificationService

logger = logging.getLogger("headcount.services.participation")

_REJECTION_STATUS = {
    RejectionReason.INVALID_GUEST_COUNT: status.HTTP_400_BAD_REQUEST,
    RejectionReason.GAME_FULL: status.HTTP_409_CONFLICT,
}


def participant_summary(p: Participation, organizer_token: str) -> dict[str, Any]:
    return {
        "user_token": p.user_token,
        "display_name": p.display_name,
        "status": p.status,
        "guests": p.guests,
        "is_organizer": p.user_token == organizer_token,
        "joined_at": p.joined_at,
        "updated_at": p.updated_at,
    }


class ParticipationService:
    """Service layer for joining and leaving games."""

    def __init__(
        self,
        game_service: GameService,
        participation_dal: ParticipationDAL,
        notification_service: NotificationService,
        clock: Optional[Clock] = None,
        locks: Optional[GameLockRegistry] = None,
    ) -> None:
        self._games = game_service
        self._participation_dal = participation_dal
        self._notifications = notification_service
        self._clock = clock or Clock()
        self._locks = locks or game_locks

    # ------------------------------------------------------------------
    # Participants list
    # ------------------------------------------------------------------

    async def list_participants(
        self, game_id: str, user_token: Optional[str]
    ) -> dict[str, Any]:
        """Return the roster in queue order with current counts.

        Raises:
            HTTPException 404: Game not found or not visible to the caller.
        """
        game = await self._games.get_visible_game(game_id, user_token)
        participations = await self._participation_dal.get_by_game(game_id)
        capacity = compute_capacity(game, participations)
        return {
            "participants": [
                participant_summary(p, game.organizer_token)
                for p in queue_order(participations)
            ],
            "capacity": capacity.model_dump(),
        }

    # ------------------------------------------------------------------
    # Join / change guests
    # ------------------------------------------------------------------

    async def join(
        self,
        game_id: str,
        user_token: Optional[str],
        guests: int = 0,
        display_name: Optional[str] = None,
        confirm_displacement: bool = False,
    ) -> dict[str, Any]:
        """Join a game, or change the guest count of an existing entry.

        A caller without a token gets a fresh one, returned in the result.

        Returns:
            A dict with user_token, status, guests, promoted and displaced.

        Raises:
            HTTPException 404: Game not found or not visible to the caller.
            HTTPException 400: Guest count not allowed.
            HTTPException 409: Game full, or the organizer must confirm
                displacing other participants.
        """
        token = user_token or generate_user_token()

        async with self._locks.hold(game_id):
            game = await self._games.get_visible_game(game_id, token)
            participations = await self._participation_dal.get_by_game(game_id)

            decision = request_join(
                game,
                participations,
                token,
                guests,
                is_organizer=game.is_organizer(token),
                now=self._clock.now(),
                confirm_displacement=confirm_displacement,
                display_name=display_name,
            )

            if isinstance(decision, Rejected):
                logger.info(
                    "Join rejected: game_id=%s reason=%s", game_id, decision.reason
                )
                raise HTTPException(
                    status_code=_REJECTION_STATUS[decision.reason],
                    detail={"reason": str(decision.reason), "message": decision.message},
                )

            if isinstance(decision, NeedsConfirmation):
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail={
                        "reason": str(decision.reason),
                        "message": (
                            "Joining now would move other participants out of "
                            "the roster. Confirm to continue."
                        ),
                        "would_displace": [
                            participant_summary(p, game.organizer_token)
                            for p in decision.would_displace
                        ],
                    },
                )

            await self._persist(decision.participations, participations)
            await self._notifications.notify_moves(
                game, decision.promoted, decision.displaced
            )

        logger.info(
            "Participation updated: game_id=%s user=%s status=%s guests=%d",
            game_id, token, decision.status, decision.participant.guests,
        )
        return {
            "user_token": token,
            "status": decision.status,
            "guests": decision.participant.guests,
            "promoted": [
                participant_summary(p, game.organizer_token) for p in decision.promoted
            ],
            "displaced": [
                participant_summary(p, game.organizer_token) for p in decision.displaced
            ],
        }

    # ------------------------------------------------------------------
    # Leave
    # ------------------------------------------------------------------

    async def leave(self, game_id: str, user_token: str) -> dict[str, Any]:
        """Set the caller to not going and promote into freed slots.

        Leaving a game the caller never joined is a no-op.

        Raises:
            HTTPException 404: Game not found or not visible to the caller.
        """
        async with self._locks.hold(game_id):
            game = await self._games.get_visible_game(game_id, user_token)
            participations = await self._participation_dal.get_by_game(game_id)

            result = request_leave(game, participations, user_token, self._clock.now())
            if result.changed:
                await self._persist(result.participations, participations)
                await self._notifications.notify_moves(game, result.promoted, [])

        guests = result.participant.guests if result.participant else 0
        return {
            "user_token": user_token,
            "status": ParticipationStatus.NOT_GOING,
            "guests": guests,
            "promoted": [
                participant_summary(p, game.organizer_token) for p in result.promoted
            ],
            "displaced": [],
        }

    async def _persist(
        self, after: list[Participation], before: list[Participation]
    ) -> None:
        """Write only the records the engine changed."""
        previous = {p.user_token: p for p in before}
        changed = [p for p in after if previous.get(p.user_token) is not p]
        await self._participation_dal.upsert_many(changed)
