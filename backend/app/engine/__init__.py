"""Capacity and publication engine.

Synchronous, side-effect free functions over a Game and its participation
snapshot. Callers load state, ask the engine for a decision, and persist
the result; the engine itself never touches the database.
"""

from app.engine.capacity import CapacitySummary, compute_capacity, per_player_price_cents
from app.engine.errors import (
    AlreadyPublished,
    CapabilityDisabled,
    EngineError,
    RequirementsNotMet,
)
from app.engine.fields import GameFieldUpdate, apply_field_update, capacity_grew
from app.engine.participation import (
    Admitted,
    ConfirmationReason,
    JoinDecision,
    LeaveResult,
    NeedsConfirmation,
    Rejected,
    RejectionReason,
    request_join,
    request_leave,
)
from app.engine.publication import (
    PublishCapabilities,
    PublishReadiness,
    RequirementLabel,
    check_publish_readiness,
    clear_publish_time,
    derive_publication_state,
    set_publish_time,
)
from app.engine.resolver import (
    displace_for_organizer,
    plan_displacement,
    promote_waitlisted,
    queue_order,
)

__all__ = [
    # Capacity
    "CapacitySummary",
    "compute_capacity",
    "per_player_price_cents",
    # Errors
    "EngineError",
    "RequirementsNotMet",
    "AlreadyPublished",
    "CapabilityDisabled",
    # Fields
    "GameFieldUpdate",
    "apply_field_update",
    "capacity_grew",
    # Participation
    "Admitted",
    "Rejected",
    "NeedsConfirmation",
    "JoinDecision",
    "LeaveResult",
    "RejectionReason",
    "ConfirmationReason",
    "request_join",
    "request_leave",
    # Publication
    "PublishCapabilities",
    "PublishReadiness",
    "RequirementLabel",
    "check_publish_readiness",
    "derive_publication_state",
    "set_publish_time",
    "clear_publish_time",
    # Resolver
    "promote_waitlisted",
    "plan_displacement",
    "displace_for_organizer",
    "queue_order",
]
