"""Transition result returned to callers of the coordination core."""

from dataclasses import dataclass
from typing import Optional

from desist.domain.enums.modes import Mode, TransitionEvent, TransitionOutcome
from desist.domain.exceptions import TransitionRejected


@dataclass(frozen=True)
class TransitionResult:
    """
    Outcome of one transition request.

    A rejected result carries the reason and leaves mode unchanged.
    """

    event: TransitionEvent
    outcome: TransitionOutcome
    previous_mode: Mode
    mode: Mode
    reason: str = ""
    trigger: Optional[str] = None

    @property
    def committed(self) -> bool:
        return self.outcome == TransitionOutcome.COMMITTED

    @property
    def rejected(self) -> bool:
        return self.outcome == TransitionOutcome.REJECTED

    @property
    def accepted(self) -> bool:
        """Committed or idempotent no-op."""
        return not self.rejected

    def raise_for_rejection(self) -> "TransitionResult":
        if self.rejected:
            raise TransitionRejected(self.reason, self.previous_mode.value, self.event.value)
        return self

    def to_dict(self) -> dict:
        return {
            "event": self.event.value,
            "outcome": self.outcome.value,
            "previous_mode": self.previous_mode.value,
            "mode": self.mode.value,
            "reason": self.reason,
        }
