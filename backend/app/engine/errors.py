"""Engine exception taxonomy.

All of these are expected, user-facing outcomes. The service layer turns
them into HTTP responses; nothing here is fatal to the process.
"""

from typing import Sequence


class EngineError(Exception):
    """Base class for capacity and publication engine errors."""


class RequirementsNotMet(EngineError):
    """Publishing was attempted while the readiness checklist is incomplete."""

    def __init__(self, unmet: Sequence[str]) -> None:
        self.unmet = list(unmet)
        super().__init__(
            "Publish requirements not met: " + ", ".join(self.unmet)
        )


class AlreadyPublished(EngineError):
    """The game is live; its publish time can no longer be changed."""

    def __init__(self) -> None:
        super().__init__("Game has already been published")


class CapabilityDisabled(EngineError):
    """A publishing capability (scheduling, clearing) is turned off."""

    def __init__(self, capability: str) -> None:
        self.capability = capability
        super().__init__(f"{capability} is disabled")
