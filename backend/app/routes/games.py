"""Game route handlers.

Endpoints:
    POST   /api/games                       -- Create a draft game.
    GET    /api/games                       -- List the caller's games.
    GET    /api/games/{game_id}             -- Game detail with counts.
    GET    /api/games/{game_id}/public      -- Public teaser (no auth).
    PATCH  /api/games/{game_id}             -- Organizer edits one field.
    GET    /api/games/{game_id}/readiness   -- Publish checklist.
    PUT    /api/games/{game_id}/publish     -- Publish now or schedule.
    DELETE /api/games/{game_id}/publish     -- Back to draft.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from pydantic import BaseModel, Field, RootModel, field_validator

from app.auth.dependencies import get_current_user_token, get_optional_user_token
from app.dal.database import get_database
from app.dal.games_dal import GameDAL
from app.dal.notifications_dal import NotificationDAL
from app.dal.participations_dal import ParticipationDAL
from app.engine import GameFieldUpdate
from app.models.common import UNLIMITED, PublicationState
from app.services.game_service import MAX_PAGE_SIZE, GameService
from app.services.notification_service import NotificationService

logger = logging.getLogger("headcount.routes.games")

router = APIRouter(prefix="/games", tags=["Games"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _get_service() -> GameService:
    """Build a GameService wired to the current database."""
    db = get_database()
    return GameService(
        GameDAL(db),
        ParticipationDAL(db),
        NotificationService(NotificationDAL(db)),
    )


def _check_limit(value: Optional[int], minimum: int, label: str) -> Optional[int]:
    if value is not None and value != UNLIMITED and value < minimum:
        raise ValueError(f"{label} must be {UNLIMITED} (unlimited) or at least {minimum}")
    return value


# ---------------------------------------------------------------------------
# Pydantic request / response schemas
# ---------------------------------------------------------------------------

class CreateGameRequest(BaseModel):
    """Request body for POST /api/games."""
    name: str = Field(..., min_length=1, max_length=100)
    organizer_name: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = Field(default=None, max_length=1000)
    location: Optional[str] = Field(default=None, max_length=200)
    starts_at: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(default=None, gt=0)
    max_players: Optional[int] = None
    max_waitlist_size: Optional[int] = None
    max_guests_per_player: Optional[int] = None
    total_price_cents: Optional[int] = Field(default=None, ge=0)

    @field_validator("max_players")
    @classmethod
    def valid_max_players(cls, v: Optional[int]) -> Optional[int]:
        return _check_limit(v, 1, "max_players")

    @field_validator("max_waitlist_size", "max_guests_per_player")
    @classmethod
    def valid_pool_limit(cls, v: Optional[int], info) -> Optional[int]:
        return _check_limit(v, 0, info.field_name)


class GameFieldUpdateRequest(RootModel[GameFieldUpdate]):
    """Request body for PATCH /api/games/{game_id}: ``{"field", "value"}``."""


class PublishRequest(BaseModel):
    """Request body for PUT /api/games/{game_id}/publish.

    Omit ``published_at`` (or send a past time) to publish immediately.
    """
    published_at: Optional[datetime] = None


class CapacityOut(BaseModel):
    occupied_going: int
    occupied_waitlist: int
    going_count: int
    waitlisted_count: int
    not_going_count: int
    game_spots_left: Optional[int]
    waitlist_spots_left: Optional[int]
    is_full: bool


class ReadinessOut(BaseModel):
    ready: bool
    unmet: list[str]


class GameDetailResponse(BaseModel):
    """Response for GET /api/games/{game_id}."""
    game_id: str
    game_code: str
    name: str
    description: Optional[str] = None
    organizer_name: str
    is_organizer: bool
    location: Optional[str] = None
    starts_at: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    max_players: int
    max_waitlist_size: Optional[int] = None
    max_guests_per_player: Optional[int] = None
    total_price_cents: Optional[int] = None
    price_per_player_cents: Optional[int] = None
    published_at: Optional[datetime] = None
    publication_state: PublicationState
    capacity: CapacityOut
    readiness: Optional[ReadinessOut] = None
    created_at: datetime
    updated_at: datetime


class CreateGameResponse(BaseModel):
    """Response for POST /api/games."""
    game_id: str
    game_code: str
    user_token: str
    game: GameDetailResponse


class GameListItem(BaseModel):
    game_id: str
    name: str
    organizer_name: str
    is_organizer: bool
    location: Optional[str] = None
    starts_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    publication_state: PublicationState
    updated_at: datetime


class GameListResponse(BaseModel):
    """Response for GET /api/games."""
    items: list[GameListItem]
    total: int
    page: int
    page_size: int


class PublicGameResponse(BaseModel):
    """Response for GET /api/games/{game_id}/public."""
    game_id: str
    name: str
    organizer_name: str
    publication_state: PublicationState
    game_spots_left: Optional[int] = None
    starts_at: Optional[datetime] = None
    published_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# POST /api/games -- Create a new game
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=CreateGameResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a draft game",
)
async def create_game(
    body: CreateGameRequest,
    user_token: Optional[str] = Depends(get_optional_user_token),
) -> CreateGameResponse:
    """Create a draft game. The caller becomes its organizer.

    Callers without an ``X-User-Token`` receive a new token in the response.
    """
    service = _get_service()
    result = await service.create_game(
        organizer_token=user_token,
        **body.model_dump(),
    )
    return CreateGameResponse(**result)


# ---------------------------------------------------------------------------
# GET /api/games -- List the caller's games
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=GameListResponse,
    summary="List games the caller organizes or joined",
)
async def list_games(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
    user_token: str = Depends(get_current_user_token),
) -> GameListResponse:
    service = _get_service()
    result = await service.list_games(user_token, page=page, page_size=page_size)
    return GameListResponse(**result)


# ---------------------------------------------------------------------------
# GET /api/games/{game_id}/public -- Public teaser
# ---------------------------------------------------------------------------

@router.get(
    "/{game_id}/public",
    response_model=PublicGameResponse,
    summary="Public game teaser (no auth)",
)
async def get_public_game(game_id: str = Path(...)) -> PublicGameResponse:
    """Show what anyone with the link may see, before and after publishing."""
    service = _get_service()
    result = await service.get_public_info(game_id)
    return PublicGameResponse(**result)


# ---------------------------------------------------------------------------
# GET /api/games/{game_id} -- Game detail
# ---------------------------------------------------------------------------

@router.get(
    "/{game_id}",
    response_model=GameDetailResponse,
    summary="Get game details",
)
async def get_game(
    game_id: str = Path(...),
    user_token: Optional[str] = Depends(get_optional_user_token),
) -> GameDetailResponse:
    """Game detail with headcounts. Unpublished games are organizer-only."""
    service = _get_service()
    result = await service.get_game_detail(game_id, user_token)
    return GameDetailResponse(**result)


# ---------------------------------------------------------------------------
# PATCH /api/games/{game_id} -- Edit one field
# ---------------------------------------------------------------------------

@router.patch(
    "/{game_id}",
    response_model=GameDetailResponse,
    summary="Edit one game field (organizer only)",
)
async def update_game_field(
    body: GameFieldUpdateRequest,
    game_id: str = Path(...),
    user_token: str = Depends(get_current_user_token),
) -> GameDetailResponse:
    service = _get_service()
    result = await service.update_field(game_id, user_token, body.root)
    return GameDetailResponse(**result)


# ---------------------------------------------------------------------------
# GET /api/games/{game_id}/readiness -- Publish checklist
# ---------------------------------------------------------------------------

@router.get(
    "/{game_id}/readiness",
    response_model=ReadinessOut,
    summary="Publish checklist (organizer only)",
)
async def get_readiness(
    game_id: str = Path(...),
    user_token: str = Depends(get_current_user_token),
) -> ReadinessOut:
    service = _get_service()
    result = await service.get_readiness(game_id, user_token)
    return ReadinessOut(**result)


# ---------------------------------------------------------------------------
# PUT / DELETE /api/games/{game_id}/publish -- Publish time
# ---------------------------------------------------------------------------

@router.put(
    "/{game_id}/publish",
    response_model=GameDetailResponse,
    summary="Publish now or schedule publishing",
)
async def publish_game(
    body: PublishRequest,
    game_id: str = Path(...),
    user_token: str = Depends(get_current_user_token),
) -> GameDetailResponse:
    """Set the publish time. Every checklist item must be met."""
    service = _get_service()
    result = await service.publish(game_id, user_token, body.published_at)
    return GameDetailResponse(**result)


@router.delete(
    "/{game_id}/publish",
    response_model=GameDetailResponse,
    summary="Clear a scheduled publish time",
)
async def clear_publish_time(
    game_id: str = Path(...),
    user_token: str = Depends(get_current_user_token),
) -> GameDetailResponse:
    service = _get_service()
    result = await service.clear_publish(game_id, user_token)
    return GameDetailResponse(**result)
