"""Unit tests for the GameService business logic layer.

Tests cover:
    - Game code generation (format, retries)
    - Game creation and defaults
    - Visibility of drafts and scheduled games
    - Listing the caller's games
    - Organizer field edits (including promotion on capacity growth)
    - Publishing, scheduling and clearing
"""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from fastapi import HTTPException

from app.clock import FixedClock
from app.dal.games_dal import GameDAL
from app.dal.notifications_dal import NotificationDAL
from app.dal.participations_dal import ParticipationDAL
from app.engine import PublishCapabilities
from app.engine.fields import LocationUpdate, MaxPlayersUpdate, TotalPriceUpdate
from app.models.common import NotificationType, ParticipationStatus, PublicationState
from app.models.participation import Participation
from app.services.game_locks import GameLockRegistry
from app.services.game_service import GameService, _CODE_CHARS
from app.services.notification_service import NotificationService
from builders import NOW

ORGANIZER = "11111111-1111-4111-8111-111111111111"
PLAYER = "22222222-2222-4222-8222-222222222222"

READY_DETAILS = {
    "location": "Riverside Park",
    "starts_at": NOW + timedelta(days=2),
    "duration_minutes": 90,
    "max_players": 2,
    "max_waitlist_size": 2,
    "max_guests_per_player": 1,
    "total_price_cents": 3000,
}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest_asyncio.fixture
async def service(test_db, clock) -> GameService:
    """Provide a GameService instance backed by the mock database."""
    return GameService(
        GameDAL(test_db),
        ParticipationDAL(test_db),
        NotificationService(NotificationDAL(test_db)),
        clock=clock,
        capabilities=PublishCapabilities(),
        locks=GameLockRegistry(),
    )


@pytest_asyncio.fixture
async def participation_dal(test_db) -> ParticipationDAL:
    return ParticipationDAL(test_db)


async def _create(service: GameService, **details) -> str:
    result = await service.create_game(
        name="Sunday Football",
        organizer_name="Olga",
        organizer_token=ORGANIZER,
        **details,
    )
    return result["game_id"]


async def _add(dal: ParticipationDAL, game_id: str, token: str, status, minutes=0, guests=0):
    joined = NOW - timedelta(hours=1) + timedelta(minutes=minutes)
    await dal.upsert(
        Participation(
            game_id=game_id,
            user_token=token,
            status=status,
            guests=guests,
            joined_at=joined,
            updated_at=joined,
        )
    )


# ---------------------------------------------------------------------------
# Game code generation
# ---------------------------------------------------------------------------

class TestGenerateGameCode:
    """Tests for GameService.generate_game_code."""

    @pytest.mark.asyncio
    async def test_code_uses_unambiguous_characters(self, service: GameService):
        for _ in range(20):
            code = await service.generate_game_code()
            assert len(code) == 6
            for char in code:
                assert char in _CODE_CHARS, f"Character '{char}' not in allowed set"

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, service: GameService):
        service._game_dal.get_by_code = AsyncMock(return_value=object())
        with pytest.raises(HTTPException) as exc_info:
            await service.generate_game_code()
        assert exc_info.value.status_code == 500


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

class TestCreateGame:

    @pytest.mark.asyncio
    async def test_create_returns_draft_detail(self, service: GameService):
        result = await service.create_game(
            name="Sunday Football", organizer_name="Olga", organizer_token=ORGANIZER
        )
        assert result["user_token"] == ORGANIZER
        game = result["game"]
        assert game["publication_state"] == PublicationState.DRAFT
        assert game["is_organizer"] is True
        assert game["max_players"] == 100
        assert game["readiness"]["ready"] is False

    @pytest.mark.asyncio
    async def test_create_without_token_issues_one(self, service: GameService):
        result = await service.create_game(name="Pickup", organizer_name="Olga")
        assert len(result["user_token"]) == 36
        game = await service.get_game(result["game_id"])
        assert game.organizer_token == result["user_token"]

    @pytest.mark.asyncio
    async def test_create_with_details(self, service: GameService):
        game_id = await _create(service, **READY_DETAILS)
        readiness = await service.get_readiness(game_id, ORGANIZER)
        assert readiness == {"ready": True, "unmet": []}

    @pytest.mark.asyncio
    async def test_new_game_starts_with_guest_limit_set(self, service: GameService):
        """Only the waitlist size waits for the organizer to set it."""
        result = await service.create_game(
            name="Pickup", organizer_name="Olga", organizer_token=ORGANIZER,
            max_guests_per_player=None,
        )
        game = await service.get_game(result["game_id"])
        assert game.max_guests_per_player == 0

        unmet = (await service.get_readiness(result["game_id"], ORGANIZER))["unmet"]
        assert "Waitlist size set" in unmet
        assert "Guests per player set" not in unmet


# ---------------------------------------------------------------------------
# Visibility
# ---------------------------------------------------------------------------

class TestVisibility:

    @pytest.mark.asyncio
    async def test_draft_hidden_from_others(self, service: GameService):
        game_id = await _create(service)
        with pytest.raises(HTTPException) as exc_info:
            await service.get_game_detail(game_id, PLAYER)
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_draft_visible_to_organizer(self, service: GameService):
        game_id = await _create(service)
        detail = await service.get_game_detail(game_id, ORGANIZER)
        assert detail["game_id"] == game_id

    @pytest.mark.asyncio
    async def test_scheduled_becomes_visible_when_time_arrives(
        self, service: GameService, clock: FixedClock
    ):
        game_id = await _create(service, **READY_DETAILS)
        await service.publish(game_id, ORGANIZER, NOW + timedelta(hours=3))

        with pytest.raises(HTTPException):
            await service.get_game_detail(game_id, PLAYER)

        clock.set(NOW + timedelta(hours=3))
        detail = await service.get_game_detail(game_id, PLAYER)
        assert detail["publication_state"] == PublicationState.PUBLISHED
        assert "readiness" not in detail

    @pytest.mark.asyncio
    async def test_unknown_game(self, service: GameService):
        with pytest.raises(HTTPException) as exc_info:
            await service.get_game("not-an-id")
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_public_info_of_scheduled_game(self, service: GameService):
        game_id = await _create(service, **READY_DETAILS)
        later = NOW + timedelta(hours=3)
        await service.publish(game_id, ORGANIZER, later)
        info = await service.get_public_info(game_id)
        assert info["publication_state"] == PublicationState.SCHEDULED
        assert info["published_at"] == later
        assert info["game_spots_left"] is None

    @pytest.mark.asyncio
    async def test_public_info_of_published_game(self, service: GameService):
        game_id = await _create(service, **READY_DETAILS)
        await service.publish(game_id, ORGANIZER)
        info = await service.get_public_info(game_id)
        assert info["game_spots_left"] == 2
        assert info["starts_at"] == READY_DETAILS["starts_at"]


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

class TestListGames:

    @pytest.mark.asyncio
    async def test_lists_organized_and_joined(
        self, service: GameService, participation_dal: ParticipationDAL
    ):
        own = await _create(service)
        other = await service.create_game(
            name="Other", organizer_name="Pat", organizer_token=PLAYER, **READY_DETAILS
        )
        await service.publish(other["game_id"], PLAYER)
        await _add(participation_dal, other["game_id"], ORGANIZER, ParticipationStatus.GOING)

        result = await service.list_games(ORGANIZER)
        assert result["total"] == 2
        ids = {item["game_id"] for item in result["items"]}
        assert ids == {own, other["game_id"]}

    @pytest.mark.asyncio
    async def test_page_size_capped(self, service: GameService):
        result = await service.list_games(ORGANIZER, page=1, page_size=500)
        assert result["page_size"] == 25


# ---------------------------------------------------------------------------
# Field edits
# ---------------------------------------------------------------------------

class TestUpdateField:

    @pytest.mark.asyncio
    async def test_only_organizer_may_edit(self, service: GameService):
        game_id = await _create(service)
        with pytest.raises(HTTPException) as exc_info:
            await service.update_field(game_id, PLAYER, LocationUpdate(value="Gym"))
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_edit_persists(self, service: GameService, clock: FixedClock):
        game_id = await _create(service)
        clock.set(NOW + timedelta(minutes=5))
        detail = await service.update_field(game_id, ORGANIZER, TotalPriceUpdate(value=4000))
        assert detail["total_price_cents"] == 4000
        game = await service.get_game(game_id)
        assert game.total_price_cents == 4000
        assert game.updated_at == NOW + timedelta(minutes=5)

    @pytest.mark.asyncio
    async def test_growing_roster_promotes_and_notifies(
        self, service: GameService, participation_dal: ParticipationDAL, test_db
    ):
        game_id = await _create(service, **READY_DETAILS)
        await service.publish(game_id, ORGANIZER)
        await _add(participation_dal, game_id, "a", ParticipationStatus.GOING, minutes=0)
        await _add(participation_dal, game_id, "b", ParticipationStatus.GOING, minutes=1)
        await _add(participation_dal, game_id, "w", ParticipationStatus.WAITLISTED, minutes=2)

        detail = await service.update_field(game_id, ORGANIZER, MaxPlayersUpdate(value=3))
        assert detail["capacity"]["going_count"] == 3
        assert detail["capacity"]["waitlisted_count"] == 0

        w = await participation_dal.get_by_user(game_id, "w")
        assert w.status == ParticipationStatus.GOING
        notes = await NotificationDAL(test_db).get_for_user("w", game_id)
        assert [n.notification_type for n in notes] == [NotificationType.PROMOTED_FROM_WAITLIST]

    @pytest.mark.asyncio
    async def test_shrinking_roster_demotes_nobody(
        self, service: GameService, participation_dal: ParticipationDAL
    ):
        game_id = await _create(service, **READY_DETAILS)
        await _add(participation_dal, game_id, "a", ParticipationStatus.GOING, minutes=0)
        await _add(participation_dal, game_id, "b", ParticipationStatus.GOING, minutes=1)

        detail = await service.update_field(game_id, ORGANIZER, MaxPlayersUpdate(value=1))
        assert detail["capacity"]["going_count"] == 2
        assert detail["capacity"]["game_spots_left"] == 0


# ---------------------------------------------------------------------------
# Publishing
# ---------------------------------------------------------------------------

class TestPublish:

    @pytest.mark.asyncio
    async def test_publish_incomplete_game(self, service: GameService):
        game_id = await _create(service)
        with pytest.raises(HTTPException) as exc_info:
            await service.publish(game_id, ORGANIZER)
        assert exc_info.value.status_code == 422
        assert "Location set" in exc_info.value.detail["unmet"]

    @pytest.mark.asyncio
    async def test_publish_now(self, service: GameService):
        game_id = await _create(service, **READY_DETAILS)
        detail = await service.publish(game_id, ORGANIZER)
        assert detail["publication_state"] == PublicationState.PUBLISHED
        assert detail["published_at"] == NOW

    @pytest.mark.asyncio
    async def test_past_time_publishes_now(self, service: GameService):
        game_id = await _create(service, **READY_DETAILS)
        detail = await service.publish(game_id, ORGANIZER, NOW - timedelta(days=1))
        assert detail["published_at"] == NOW

    @pytest.mark.asyncio
    async def test_republish_rejected(self, service: GameService):
        game_id = await _create(service, **READY_DETAILS)
        await service.publish(game_id, ORGANIZER)
        with pytest.raises(HTTPException) as exc_info:
            await service.publish(game_id, ORGANIZER, NOW + timedelta(days=1))
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_only_organizer_may_publish(self, service: GameService):
        game_id = await _create(service, **READY_DETAILS)
        with pytest.raises(HTTPException) as exc_info:
            await service.publish(game_id, PLAYER)
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_scheduling_disabled(self, test_db, clock):
        service = GameService(
            GameDAL(test_db),
            ParticipationDAL(test_db),
            NotificationService(NotificationDAL(test_db)),
            clock=clock,
            capabilities=PublishCapabilities(allow_schedule=False),
            locks=GameLockRegistry(),
        )
        game_id = await _create(service, **READY_DETAILS)
        with pytest.raises(HTTPException) as exc_info:
            await service.publish(game_id, ORGANIZER, NOW + timedelta(days=1))
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_clear_scheduled(self, service: GameService):
        game_id = await _create(service, **READY_DETAILS)
        await service.publish(game_id, ORGANIZER, NOW + timedelta(days=1))
        detail = await service.clear_publish(game_id, ORGANIZER)
        assert detail["publication_state"] == PublicationState.DRAFT
        game = await service.get_game(game_id)
        assert game.published_at is None

    @pytest.mark.asyncio
    async def test_clear_published_rejected(self, service: GameService):
        game_id = await _create(service, **READY_DETAILS)
        await service.publish(game_id, ORGANIZER)
        with pytest.raises(HTTPException) as exc_info:
            await service.clear_publish(game_id, ORGANIZER)
        assert exc_info.value.status_code == 400
