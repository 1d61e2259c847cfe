"""Participation route handlers.

Endpoints:
    GET  /api/games/{game_id}/participants   -- Roster in queue order.
    POST /api/games/{game_id}/participation  -- Join, change guests, or leave.
"""

import logging
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, status
from pydantic import BaseModel, Field

from app.auth.dependencies import get_current_user_token, get_optional_user_token
from app.dal.database import get_database
from app.dal.games_dal import GameDAL
from app.dal.notifications_dal import NotificationDAL
from app.dal.participations_dal import ParticipationDAL
from app.models.common import ParticipationStatus
from app.services.game_service import GameService
from app.services.notification_service import NotificationService
from app.services.participation_service import ParticipationService

logger = logging.getLogger("headcount.routes.participants")

router = APIRouter(prefix="/games/{game_id}", tags=["Participants"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _get_service() -> ParticipationService:
    """Build a ParticipationService wired to the current database."""
    db = get_database()
    participation_dal = ParticipationDAL(db)
    notifications = NotificationService(NotificationDAL(db))
    games = GameService(GameDAL(db), participation_dal, notifications)
    return ParticipationService(games, participation_dal, notifications)


# ---------------------------------------------------------------------------
# Pydantic request / response schemas
# ---------------------------------------------------------------------------

class ParticipationRequest(BaseModel):
    """Request body for POST /api/games/{game_id}/participation.

    ``going`` joins (or changes the guest count of an existing entry);
    the engine decides whether that lands on the roster or the waitlist.
    ``not_going`` leaves.
    """
    status: Literal["going", "not_going"]
    guests: int = Field(default=0, ge=0)
    display_name: Optional[str] = Field(default=None, max_length=50)
    confirm_displacement: bool = False


class ParticipantOut(BaseModel):
    user_token: str
    display_name: str
    status: ParticipationStatus
    guests: int
    is_organizer: bool
    joined_at: Optional[datetime] = None
    updated_at: datetime


class CapacityOut(BaseModel):
    occupied_going: int
    occupied_waitlist: int
    going_count: int
    waitlisted_count: int
    not_going_count: int
    game_spots_left: Optional[int]
    waitlist_spots_left: Optional[int]
    is_full: bool


class ParticipantsResponse(BaseModel):
    """Response for GET /api/games/{game_id}/participants."""
    participants: list[ParticipantOut]
    capacity: CapacityOut


class ParticipationResponse(BaseModel):
    """Response for POST /api/games/{game_id}/participation."""
    user_token: str
    status: ParticipationStatus
    guests: int
    promoted: list[ParticipantOut]
    displaced: list[ParticipantOut]


# ---------------------------------------------------------------------------
# GET /api/games/{game_id}/participants
# ---------------------------------------------------------------------------

@router.get(
    "/participants",
    response_model=ParticipantsResponse,
    summary="List participants in queue order",
)
async def list_participants(
    game_id: str = Path(...),
    user_token: Optional[str] = Depends(get_optional_user_token),
) -> ParticipantsResponse:
    service = _get_service()
    result = await service.list_participants(game_id, user_token)
    return ParticipantsResponse(**result)


# ---------------------------------------------------------------------------
# POST /api/games/{game_id}/participation
# ---------------------------------------------------------------------------

@router.post(
    "/participation",
    response_model=ParticipationResponse,
    summary="Join, change guest count, or leave",
)
async def set_participation(
    body: ParticipationRequest,
    game_id: str = Path(...),
    user_token: Optional[str] = Depends(get_optional_user_token),
) -> ParticipationResponse:
    """Record the caller's participation.

    Callers without an ``X-User-Token`` may join and receive a new token in
    the response. Leaving requires a token.

    Raises:
        HTTPException 400: Guest count not allowed for this game.
        HTTPException 409: Game full, or the organizer must resend with
            ``confirm_displacement`` set.
    """
    service = _get_service()
    if body.status == "not_going":
        if user_token is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Missing X-User-Token header",
            )
        result = await service.leave(game_id, user_token)
    else:
        result = await service.join(
            game_id,
            user_token,
            guests=body.guests,
            display_name=body.display_name,
            confirm_displacement=body.confirm_displacement,
        )
    return ParticipationResponse(**result)


# ---------------------------------------------------------------------------
# DELETE /api/games/{game_id}/participation
# ---------------------------------------------------------------------------

@router.delete(
    "/participation",
    response_model=ParticipationResponse,
    summary="Leave the game",
)
async def leave_game(
    game_id: str = Path(...),
    user_token: str = Depends(get_current_user_token),
) -> ParticipationResponse:
    service = _get_service()
    result = await service.leave(game_id, user_token)
    return ParticipationResponse(**result)
