"""Tests for join / leave decisions.

Covers the ordinary participant path, guest validation, guest-count
changes, the organizer priority path and leaving with promotion.
"""

from datetime import timedelta

from app.engine.capacity import compute_capacity
from app.engine.participation import (
    Admitted,
    ConfirmationReason,
    NeedsConfirmation,
    Rejected,
    RejectionReason,
    request_join,
    request_leave,
)
from app.models.common import UNLIMITED, ParticipationStatus
from builders import NOW, by_token, make_game, make_participation

GOING = ParticipationStatus.GOING
WAITLISTED = ParticipationStatus.WAITLISTED
NOT_GOING = ParticipationStatus.NOT_GOING


def _join(game, participations, user, guests=0, organizer=False, confirm=False):
    return request_join(
        game,
        participations,
        user,
        guests,
        is_organizer=organizer,
        now=NOW,
        confirm_displacement=confirm,
    )


# ---------------------------------------------------------------------------
# Ordinary participants
# ---------------------------------------------------------------------------

class TestOrdinaryJoin:

    def test_join_empty_game_goes(self):
        decision = _join(make_game(), [], "a")
        assert isinstance(decision, Admitted)
        assert decision.status == GOING
        assert decision.participant.joined_at == NOW
        assert decision.participations == [decision.participant]

    def test_guests_that_exactly_fill_roster_allowed(self):
        game = make_game(max_players=3)
        decision = _join(game, [], "a", guests=2)
        assert isinstance(decision, Admitted)
        assert decision.status == GOING

    def test_full_roster_goes_to_waitlist(self):
        game = make_game(max_players=1)
        decision = _join(game, [make_participation("a")], "b")
        assert isinstance(decision, Admitted)
        assert decision.status == WAITLISTED

    def test_party_too_big_for_either_pool(self):
        """Two slots, a waitlist of one: a party of two after one joiner is rejected."""
        game = make_game(max_players=2, max_waitlist_size=1, max_guests_per_player=1)
        first = _join(game, [], "a")
        assert isinstance(first, Admitted)
        assert first.status == GOING

        second = _join(game, first.participations, "b", guests=1)
        assert isinstance(second, Rejected)
        assert second.reason == RejectionReason.GAME_FULL

    def test_unset_waitlist_rejects_when_roster_full(self):
        game = make_game(max_players=1, max_waitlist_size=None)
        decision = _join(game, [make_participation("a")], "b")
        assert isinstance(decision, Rejected)
        assert decision.reason == RejectionReason.GAME_FULL

    def test_unlimited_roster_always_goes(self):
        game = make_game(max_players=UNLIMITED, max_guests_per_player=UNLIMITED)
        participations = [make_participation(str(i), guests=5) for i in range(50)]
        decision = _join(game, participations, "z", guests=40)
        assert isinstance(decision, Admitted)
        assert decision.status == GOING

    def test_display_name_stored(self):
        decision = request_join(
            make_game(), [], "a", 0, is_organizer=False, now=NOW, display_name="Ana"
        )
        assert decision.participant.display_name == "Ana"

    def test_input_not_mutated(self):
        participations = [make_participation("a", WAITLISTED)]
        _join(make_game(), participations, "a")
        assert participations[0].status == WAITLISTED


class TestGuestValidation:

    def test_too_many_guests(self):
        decision = _join(make_game(max_guests_per_player=1), [], "a", guests=2)
        assert isinstance(decision, Rejected)
        assert decision.reason == RejectionReason.INVALID_GUEST_COUNT

    def test_negative_guests(self):
        decision = _join(make_game(), [], "a", guests=-1)
        assert isinstance(decision, Rejected)
        assert decision.reason == RejectionReason.INVALID_GUEST_COUNT

    def test_unset_guest_limit_allows_none(self):
        decision = _join(make_game(max_guests_per_player=None), [], "a", guests=1)
        assert isinstance(decision, Rejected)
        assert decision.reason == RejectionReason.INVALID_GUEST_COUNT

    def test_unlimited_guests(self):
        decision = _join(make_game(max_guests_per_player=UNLIMITED), [], "a", guests=8)
        assert isinstance(decision, Admitted)


class TestRejoinAndGuestChanges:

    def test_rejoin_from_not_going_is_a_fresh_join(self):
        game = make_game(max_players=1)
        participations = [make_participation("a", NOT_GOING, guests=2)]
        decision = _join(game, participations, "a")
        assert isinstance(decision, Admitted)
        assert decision.status == GOING
        assert decision.participant.joined_at == NOW
        assert len(decision.participations) == 1

    def test_guest_change_excludes_own_contribution(self):
        """A going party of 2 in a roster of 3 may grow to 3."""
        game = make_game(max_players=3)
        participations = [make_participation("a", GOING, guests=1)]
        decision = _join(game, participations, "a", guests=2)
        assert isinstance(decision, Admitted)
        assert decision.status == GOING
        assert decision.participant.guests == 2

    def test_guest_change_keeps_queue_position(self):
        participations = [make_participation("a", GOING, minutes=5)]
        decision = _join(make_game(), participations, "a", guests=1)
        assert decision.participant.joined_at == participations[0].joined_at

    def test_guest_increase_that_no_longer_fits_moves_to_waitlist(self):
        game = make_game(max_players=3)
        participations = [
            make_participation("a", GOING, minutes=0),
            make_participation("b", GOING, minutes=1),
        ]
        decision = _join(game, participations, "b", guests=2)
        assert isinstance(decision, Admitted)
        assert decision.status == WAITLISTED

    def test_guest_decrease_promotes_waitlist(self):
        game = make_game(max_players=3)
        participations = [
            make_participation("a", GOING, guests=2, minutes=0),
            make_participation("w", WAITLISTED, minutes=1),
        ]
        decision = _join(game, participations, "a", guests=1)
        assert isinstance(decision, Admitted)
        assert [p.user_token for p in decision.promoted] == ["w"]
        assert by_token(decision.participations)["w"].status == GOING

    def test_rejected_guest_change_keeps_record(self):
        game = make_game(max_players=2, max_waitlist_size=0, max_guests_per_player=2)
        participations = [
            make_participation("a", GOING),
            make_participation("b", GOING, minutes=1),
        ]
        decision = _join(game, participations, "b", guests=1)
        assert isinstance(decision, Rejected)
        assert participations[1].guests == 0


# ---------------------------------------------------------------------------
# Organizer priority
# ---------------------------------------------------------------------------

class TestOrganizerJoin:

    def test_organizer_joins_normally_when_room(self):
        decision = _join(make_game(), [], "organizer", organizer=True)
        assert isinstance(decision, Admitted)
        assert decision.status == GOING
        assert decision.displaced == []

    def test_needs_confirmation_when_roster_full(self):
        game = make_game(max_players=1, max_waitlist_size=0)
        participations = [make_participation("a")]
        decision = _join(game, participations, "organizer", organizer=True)
        assert isinstance(decision, NeedsConfirmation)
        assert decision.reason == ConfirmationReason.ORGANIZER_WOULD_DISPLACE
        assert [p.user_token for p in decision.would_displace] == ["a"]

    def test_confirmed_displaces_to_not_going_when_waitlist_disabled(self):
        game = make_game(max_players=1, max_waitlist_size=0)
        participations = [make_participation("a")]
        decision = _join(game, participations, "organizer", organizer=True, confirm=True)
        assert isinstance(decision, Admitted)
        assert decision.status == GOING
        assert [p.user_token for p in decision.displaced] == ["a"]
        after = by_token(decision.participations)
        assert after["a"].status == NOT_GOING
        assert after["organizer"].status == GOING

    def test_displaced_party_goes_to_head_of_waitlist(self):
        game = make_game(max_players=2, max_waitlist_size=5)
        participations = [
            make_participation("a", GOING, minutes=0),
            make_participation("b", GOING, minutes=1),
            make_participation("w", WAITLISTED, minutes=2),
        ]
        decision = _join(game, participations, "organizer", organizer=True, confirm=True)
        assert isinstance(decision, Admitted)
        after = by_token(decision.participations)
        assert after["b"].status == WAITLISTED
        assert after["b"].bumped is True
        assert after["a"].status == GOING

        # The bumped entry is first in line when a slot frees up.
        left = request_leave(game, decision.participations, "a", NOW + timedelta(minutes=5))
        assert [p.user_token for p in left.promoted] == ["b"]

    def test_most_recent_joiners_displaced_first(self):
        game = make_game(max_players=3, max_waitlist_size=0, max_guests_per_player=2)
        participations = [
            make_participation("a", GOING, minutes=0),
            make_participation("b", GOING, minutes=1),
            make_participation("c", GOING, minutes=2),
        ]
        decision = _join(game, participations, "organizer", guests=1, organizer=True, confirm=True)
        assert [p.user_token for p in decision.displaced] == ["c", "b"]
        assert by_token(decision.participations)["a"].status == GOING

    def test_displaced_party_bounced_back_is_not_reported(self):
        """Small parties demoted along the way return if the leftover fits them."""
        game = make_game(max_players=6, max_waitlist_size=10, max_guests_per_player=3)
        participations = [
            make_participation("a", GOING, guests=3, minutes=0),
            make_participation("b", GOING, minutes=1),
            make_participation("c", GOING, minutes=2),
        ]
        decision = _join(game, participations, "organizer", guests=2, organizer=True, confirm=True)
        assert isinstance(decision, Admitted)
        after = by_token(decision.participations)
        assert after["organizer"].status == GOING
        assert after["a"].status == WAITLISTED
        assert after["b"].status == GOING
        assert after["c"].status == GOING
        assert [p.user_token for p in decision.displaced] == ["a"]
        assert decision.promoted == []

    def test_organizer_party_larger_than_roster_goes_to_waitlist(self):
        game = make_game(max_players=2, max_waitlist_size=5)
        participations = [make_participation("a"), make_participation("b", minutes=1)]
        decision = _join(game, participations, "organizer", guests=2, organizer=True)
        assert isinstance(decision, Admitted)
        assert decision.status == WAITLISTED

    def test_organizer_never_displaced_by_own_guest_change(self):
        game = make_game(max_players=2, max_waitlist_size=0)
        participations = [
            make_participation("organizer", GOING, minutes=0),
            make_participation("a", GOING, minutes=1),
        ]
        decision = _join(game, participations, "organizer", guests=1, organizer=True, confirm=True)
        assert isinstance(decision, Admitted)
        after = by_token(decision.participations)
        assert after["organizer"].status == GOING
        assert after["a"].status == NOT_GOING

    def test_unconfirmed_changes_nothing(self):
        game = make_game(max_players=1, max_waitlist_size=0)
        participations = [make_participation("a")]
        _join(game, participations, "organizer", organizer=True)
        assert participations[0].status == GOING

    def test_shrunk_roster_displaces_until_within_limit(self):
        """A roster shrunk below its occupancy is not left overbooked."""
        game = make_game(max_players=2, max_waitlist_size=0)
        participations = [make_participation(t, GOING, minutes=i) for i, t in enumerate("abcd")]

        pending = _join(game, participations, "organizer", organizer=True)
        assert isinstance(pending, NeedsConfirmation)
        assert [p.user_token for p in pending.would_displace] == ["d", "c", "b"]

        decision = _join(game, participations, "organizer", organizer=True, confirm=True)
        assert isinstance(decision, Admitted)
        assert [p.user_token for p in decision.displaced] == ["d", "c", "b"]
        after = by_token(decision.participations)
        assert after["a"].status == GOING
        assert after["organizer"].status == GOING
        assert compute_capacity(game, decision.participations).occupied_going == 2


# ---------------------------------------------------------------------------
# Leave
# ---------------------------------------------------------------------------

class TestLeave:

    def test_leave_promotes_party_that_fits(self):
        """One freed slot skips a waiting pair in favour of a single."""
        game = make_game(max_players=3)
        participations = [
            make_participation("a", GOING, minutes=0),
            make_participation("b", GOING, minutes=1),
            make_participation("c", GOING, minutes=2),
            make_participation("w1", WAITLISTED, guests=1, minutes=3),
            make_participation("w2", WAITLISTED, minutes=4),
        ]
        result = request_leave(game, participations, "b", NOW)
        assert result.changed is True
        assert [p.user_token for p in result.promoted] == ["w2"]
        after = by_token(result.participations)
        assert after["b"].status == NOT_GOING
        assert after["w1"].status == WAITLISTED

    def test_leave_from_waitlist(self):
        participations = [make_participation("w", WAITLISTED)]
        result = request_leave(make_game(), participations, "w", NOW)
        assert result.changed is True
        assert result.participant.status == NOT_GOING
        assert result.promoted == []

    def test_leave_without_record_is_noop(self):
        result = request_leave(make_game(), [], "ghost", NOW)
        assert result.changed is False
        assert result.participant is None

    def test_leave_when_not_going_is_noop(self):
        participations = [make_participation("a", NOT_GOING)]
        result = request_leave(make_game(), participations, "a", NOW)
        assert result.changed is False
        assert result.participations == participations

    def test_leave_keeps_guest_count(self):
        participations = [make_participation("a", GOING, guests=2)]
        result = request_leave(make_game(), participations, "a", NOW)
        assert result.participant.guests == 2


# ---------------------------------------------------------------------------
# Leave, then join again
# ---------------------------------------------------------------------------

class TestLeaveAndRejoin:

    def test_rejoin_restores_going(self):
        game = make_game(max_players=3)
        participations = [
            make_participation("a", GOING, minutes=0),
            make_participation("b", GOING, guests=1, minutes=1),
        ]
        left = request_leave(game, participations, "b", NOW)
        decision = _join(game, left.participations, "b", guests=1)
        assert isinstance(decision, Admitted)
        assert decision.status == GOING

    def test_rejoin_restores_waitlisted(self):
        game = make_game(max_players=1)
        participations = [
            make_participation("a", GOING, minutes=0),
            make_participation("b", WAITLISTED, minutes=1),
        ]
        left = request_leave(game, participations, "b", NOW)
        decision = _join(game, left.participations, "b")
        assert isinstance(decision, Admitted)
        assert decision.status == WAITLISTED

    def test_freed_slot_taken_before_rejoin(self):
        game = make_game(max_players=3)
        participations = [
            make_participation("a", GOING, minutes=0),
            make_participation("b", GOING, guests=1, minutes=1),
        ]
        left = request_leave(game, participations, "b", NOW)
        taken = _join(game, left.participations, "c")
        assert taken.status == GOING

        decision = _join(game, taken.participations, "b", guests=1)
        assert isinstance(decision, Admitted)
        assert decision.status == WAITLISTED


# ---------------------------------------------------------------------------
# Capacity limits across a run of operations
# ---------------------------------------------------------------------------

class TestLimitsHoldAcrossOperations:

    def test_never_overbooked(self):
        game = make_game(max_players=4, max_waitlist_size=3, max_guests_per_player=2)
        steps = [
            ("join", "a", 0),
            ("join", "b", 2),
            ("join", "c", 1),
            ("join", "d", 0),
            ("join", "e", 0),
            ("leave", "a", None),
            ("join", "b", 0),
            ("organizer", "organizer", 1),
            ("leave", "c", None),
            ("join", "a", 2),
            ("leave", "b", None),
            ("join", "e", 0),
        ]

        participations = []
        for action, user, guests in steps:
            if action == "leave":
                participations = request_leave(game, participations, user, NOW).participations
            else:
                decision = _join(
                    game,
                    participations,
                    user,
                    guests=guests,
                    organizer=action == "organizer",
                    confirm=True,
                )
                if isinstance(decision, Admitted):
                    participations = decision.participations

            capacity = compute_capacity(game, participations)
            assert capacity.occupied_going <= game.max_players, (action, user)
            assert capacity.occupied_waitlist <= game.max_waitlist_size, (action, user)

        after = by_token(participations)
        assert {t for t, p in after.items() if p.status == GOING} == {"organizer", "d", "e"}
        assert after["a"].status == WAITLISTED
        assert after["b"].status == NOT_GOING
