"""Game business logic service.

Handles game creation, share codes, visibility, organizer field edits and
publishing. Sits between route handlers and the DAL; capacity and
publication rules come from ``app.engine``.
"""

import logging
import random
from datetime import datetime
from typing import Any, Optional

from fastapi import HTTPException, status

from app.auth.user_token import generate_user_token
from app.clock import Clock
from app.config import settings
from app.dal.games_dal import GameDAL
from app.dal.participations_dal import ParticipationDAL
from app.engine import (
    AlreadyPublished,
    CapabilityDisabled,
    GameFieldUpdate,
    PublishCapabilities,
    RequirementsNotMet,
    apply_field_update,
    capacity_grew,
    check_publish_readiness,
    clear_publish_time,
    compute_capacity,
    derive_publication_state,
    per_player_price_cents,
    promote_waitlisted,
    set_publish_time,
)
from app.models.common import PublicationState
from app.models.game import Game
from app.models.participation import Participation
from app.services.game_locks import GameLockRegistry, game_locks
from app.services.notification_service import NotificationService

logger = logging.getLogger("headcount.services.game")

# Characters for share code generation.
# Excludes ambiguous characters: I, O, 0, 1
_CODE_CHARS = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
_MAX_CODE_RETRIES = 10

MAX_PAGE_SIZE = 25


def default_capabilities() -> PublishCapabilities:
    return PublishCapabilities(
        allow_schedule=settings.PUBLISH_SCHEDULING_ENABLED,
        allow_clear=settings.PUBLISH_CLEAR_ENABLED,
    )


class GameService:
    """Service layer for game-related operations."""

    def __init__(
        self,
        game_dal: GameDAL,
        participation_dal: ParticipationDAL,
        notification_service: NotificationService,
        clock: Optional[Clock] = None,
        capabilities: Optional[PublishCapabilities] = None,
        locks: Optional[GameLockRegistry] = None,
    ) -> None:
        self._game_dal = game_dal
        self._participation_dal = participation_dal
        self._notifications = notification_service
        self._clock = clock or Clock()
        self._capabilities = capabilities or default_capabilities()
        self._locks = locks or game_locks

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require_organizer(game: Game, user_token: Optional[str]) -> None:
        if not game.is_organizer(user_token):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="forbidden: you are not the organizer of this game",
            )

    def is_visible_to(self, game: Game, user_token: Optional[str]) -> bool:
        """Drafts and scheduled games are only visible to their organizer."""
        if game.is_organizer(user_token):
            return True
        state = derive_publication_state(game.published_at, self._clock.now())
        return state == PublicationState.PUBLISHED

    # ------------------------------------------------------------------
    # Share code generation
    # ------------------------------------------------------------------

    async def generate_game_code(self) -> str:
        """Generate a unique alphanumeric share code.

        Uses unambiguous characters (no I, O, 0, 1). Checks the database
        for uniqueness and retries up to 10 times.

        Raises:
            HTTPException 500: If unable to generate a unique code after
                               maximum retries.
        """
        length = settings.GAME_CODE_LENGTH
        for attempt in range(_MAX_CODE_RETRIES):
            code = "".join(random.choices(_CODE_CHARS, k=length))
            existing = await self._game_dal.get_by_code(code)
            if existing is None:
                return code
            logger.warning(
                "Game code collision on attempt %d: %s", attempt + 1, code
            )

        logger.error("Failed to generate unique game code after %d attempts", _MAX_CODE_RETRIES)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unable to generate a unique game code. Please try again.",
        )

    # ------------------------------------------------------------------
    # Create game
    # ------------------------------------------------------------------

    async def create_game(
        self,
        name: str,
        organizer_name: str,
        organizer_token: Optional[str] = None,
        **details: Any,
    ) -> dict[str, Any]:
        """Create a draft game owned by the caller.

        Args:
            name: Game name.
            organizer_name: Display name of the organizer.
            organizer_token: The caller's token; a new one is issued if None.
            **details: Optional game fields (location, starts_at, limits,
                price...). ``None`` values fall back to model defaults.

        Returns:
            A dict with game_id, game_code, user_token and the game detail.
        """
        code = await self.generate_game_code()
        token = organizer_token or generate_user_token()
        now = self._clock.now()

        fields = {k: v for k, v in details.items() if v is not None}
        fields.setdefault("max_players", settings.DEFAULT_MAX_PLAYERS)
        game = Game(
            code=code,
            name=name,
            organizer_token=token,
            organizer_name=organizer_name,
            created_at=now,
            updated_at=now,
            **fields,
        )
        game = await self._game_dal.create(game)

        logger.info(
            "Game created: id=%s code=%s organizer=%s",
            game.id, code, organizer_name,
        )

        return {
            "game_id": str(game.id),
            "game_code": game.code,
            "user_token": token,
            "game": self.build_game_detail(game, [], token),
        }

    # ------------------------------------------------------------------
    # Get game
    # ------------------------------------------------------------------

    async def get_game(self, game_id: str) -> Game:
        """Get a game by its MongoDB ID.

        Raises:
            HTTPException 404: Game not found.
        """
        game = await self._game_dal.get_by_id(game_id)
        if game is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="game not found",
            )
        return game

    async def get_visible_game(self, game_id: str, user_token: Optional[str]) -> Game:
        """Get a game the caller is allowed to see.

        Raises:
            HTTPException 404: Game not found, or not yet published and the
                caller is not its organizer.
        """
        game = await self.get_game(game_id)
        if not self.is_visible_to(game, user_token):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="game not found",
            )
        return game

    def build_game_detail(
        self,
        game: Game,
        participations: list[Participation],
        user_token: Optional[str],
    ) -> dict[str, Any]:
        """Assemble the game detail payload with derived counts and state."""
        is_organizer = game.is_organizer(user_token)
        capacity = compute_capacity(game, participations)
        detail: dict[str, Any] = {
            "game_id": str(game.id),
            "game_code": game.code,
            "name": game.name,
            "description": game.description,
            "organizer_name": game.organizer_name,
            "is_organizer": is_organizer,
            "location": game.location,
            "starts_at": game.starts_at,
            "duration_minutes": game.duration_minutes,
            "max_players": game.max_players,
            "max_waitlist_size": game.max_waitlist_size,
            "max_guests_per_player": game.max_guests_per_player,
            "total_price_cents": game.total_price_cents,
            "price_per_player_cents": per_player_price_cents(game),
            "published_at": game.published_at,
            "publication_state": derive_publication_state(
                game.published_at, self._clock.now()
            ),
            "capacity": capacity.model_dump(),
            "created_at": game.created_at,
            "updated_at": game.updated_at,
        }
        if is_organizer:
            detail["readiness"] = check_publish_readiness(game).model_dump()
        return detail

    async def get_game_detail(
        self, game_id: str, user_token: Optional[str]
    ) -> dict[str, Any]:
        game = await self.get_visible_game(game_id, user_token)
        participations = await self._participation_dal.get_by_game(game_id)
        return self.build_game_detail(game, participations, user_token)

    async def get_public_info(self, game_id: str) -> dict[str, Any]:
        """Teaser for anyone holding the link.

        Spots left and start time are shown once the game is published;
        while it is scheduled only the publish time is shown.
        """
        game = await self.get_game(game_id)
        now = self._clock.now()
        state = derive_publication_state(game.published_at, now)

        info: dict[str, Any] = {
            "game_id": str(game.id),
            "name": game.name,
            "organizer_name": game.organizer_name,
            "publication_state": state,
            "game_spots_left": None,
            "starts_at": None,
            "published_at": None,
        }
        if state == PublicationState.PUBLISHED:
            participations = await self._participation_dal.get_by_game(game_id)
            capacity = compute_capacity(game, participations)
            info["game_spots_left"] = capacity.game_spots_left
            info["starts_at"] = game.starts_at
        elif state == PublicationState.SCHEDULED:
            info["published_at"] = game.published_at
        return info

    async def list_games(
        self, user_token: str, page: int = 1, page_size: int = 10
    ) -> dict[str, Any]:
        """Page through games the caller organizes or has joined."""
        page = max(page, 1)
        page_size = min(max(page_size, 1), MAX_PAGE_SIZE)

        game_ids = await self._participation_dal.get_game_ids_for_user(user_token)
        games = await self._game_dal.list_for_user(
            user_token, game_ids, limit=page_size, skip=(page - 1) * page_size
        )
        total = await self._game_dal.count_for_user(user_token, game_ids)

        now = self._clock.now()
        items = [
            {
                "game_id": str(g.id),
                "name": g.name,
                "organizer_name": g.organizer_name,
                "is_organizer": g.is_organizer(user_token),
                "location": g.location,
                "starts_at": g.starts_at,
                "published_at": g.published_at,
                "publication_state": derive_publication_state(g.published_at, now),
                "updated_at": g.updated_at,
            }
            for g in games
            if self.is_visible_to(g, user_token)
        ]
        return {"items": items, "total": total, "page": page, "page_size": page_size}

    # ------------------------------------------------------------------
    # Readiness / edits
    # ------------------------------------------------------------------

    async def get_readiness(self, game_id: str, user_token: Optional[str]) -> dict[str, Any]:
        game = await self.get_game(game_id)
        self._require_organizer(game, user_token)
        return check_publish_readiness(game).model_dump()

    async def update_field(
        self, game_id: str, user_token: Optional[str], update: GameFieldUpdate
    ) -> dict[str, Any]:
        """Apply one organizer edit.

        Growing the roster or waitlist promotes waitlisted parties that now
        fit. Shrinking never demotes anybody.

        Raises:
            HTTPException 404: Game not found.
            HTTPException 403: Caller is not the organizer.
        """
        async with self._locks.hold(game_id):
            game = await self.get_game(game_id)
            self._require_organizer(game, user_token)

            now = self._clock.now()
            updated = apply_field_update(game, update, now)
            await self._game_dal.update_fields(
                game_id,
                {update.field: getattr(updated, update.field), "updated_at": now},
            )

            participations = await self._participation_dal.get_by_game(game_id)
            if capacity_grew(game, updated):
                participations, promoted = promote_waitlisted(updated, participations, now)
                if promoted:
                    await self._participation_dal.upsert_many(promoted)
                    await self._notifications.notify_moves(updated, promoted, [])

        logger.info("Game %s field %s updated", game_id, update.field)
        return self.build_game_detail(updated, participations, user_token)

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    async def publish(
        self,
        game_id: str,
        user_token: Optional[str],
        published_at: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """Publish now (``published_at`` None or past) or schedule for later.

        Raises:
            HTTPException 404 / 403: Game missing / caller not organizer.
            HTTPException 422: Readiness checklist incomplete.
            HTTPException 400: Game already published.
            HTTPException 403: Scheduling is disabled.
        """
        async with self._locks.hold(game_id):
            game = await self.get_game(game_id)
            self._require_organizer(game, user_token)

            now = self._clock.now()
            try:
                effective = set_publish_time(
                    game, published_at or now, now, self._capabilities
                )
            except RequirementsNotMet as exc:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail={
                        "message": "Complete all required fields before publishing.",
                        "unmet": [str(label) for label in exc.unmet],
                    },
                )
            except AlreadyPublished as exc:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
                )
            except CapabilityDisabled as exc:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)
                )

            await self._game_dal.update_fields(
                game_id, {"published_at": effective, "updated_at": now}
            )
            game = game.model_copy(update={"published_at": effective, "updated_at": now})
            participations = await self._participation_dal.get_by_game(game_id)

            if effective <= now:
                await self._notifications.notify_published(game, participations)

        logger.info(
            "Game %s %s at %s",
            game_id,
            "published" if effective <= now else "scheduled",
            effective.isoformat(),
        )
        return self.build_game_detail(game, participations, user_token)

    async def clear_publish(self, game_id: str, user_token: Optional[str]) -> dict[str, Any]:
        """Move a scheduled game back to draft.

        Raises:
            HTTPException 404 / 403: Game missing / caller not organizer.
            HTTPException 400: Game already published.
            HTTPException 403: Clearing is disabled.
        """
        async with self._locks.hold(game_id):
            game = await self.get_game(game_id)
            self._require_organizer(game, user_token)

            now = self._clock.now()
            try:
                cleared = clear_publish_time(game, now, self._capabilities)
            except AlreadyPublished:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="game is already published and cannot be unpublished",
                )
            except CapabilityDisabled as exc:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)
                )

            await self._game_dal.update_fields(
                game_id, {"published_at": cleared, "updated_at": now}
            )
            game = game.model_copy(update={"published_at": cleared, "updated_at": now})
            participations = await self._participation_dal.get_by_game(game_id)

        logger.info("Game %s publish time cleared", game_id)
        return self.build_game_detail(game, participations, user_token)
