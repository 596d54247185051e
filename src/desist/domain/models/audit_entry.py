"""
Audit Entry

Immutable record of one committed transition.

LEGAL_REVIEW_REQUIRED: Audit records may be used as evidence timelines.
Retention and deletion belong to the external settings-history
collaborator; the core only appends.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import UUID

from desist.domain.enums.modes import Mode, TransitionOutcome


@dataclass(frozen=True)
class AuditEntry:
    """
    Record of a committed transition.

    Attributes:
        timestamp: When the transition was committed
        from_mode: Mode before the transition
        to_mode: Mode after the transition
        trigger: What requested it (e.g. "stealth.activate:gesture")
        outcome: Committed outcome, with detail for pipeline events
        run_id: Emergency run involved, if any
    """

    from_mode: Mode
    to_mode: Mode
    trigger: str
    outcome: str = TransitionOutcome.COMMITTED.value
    run_id: Optional[UUID] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "from_mode": self.from_mode.value,
            "to_mode": self.to_mode.value,
            "trigger": self.trigger,
            "outcome": self.outcome,
            "run_id": str(self.run_id) if self.run_id else None,
        }

    def to_json_line(self) -> str:
        return json.dumps(self.to_dict())
