"""
Emergency Pipeline Run

One instance per triggered emergency. Tracks the run through
ARMED -> COUNTDOWN -> CAPTURING -> ENCRYPTING -> UPLOADING -> NOTIFYING
-> WIPING -> COMPLETED, or to CANCELLED / FAILED.

SAFETY-CRITICAL: Stage order is enforced here. Wiping can only follow
a successful upload, so local evidence is never destroyed before it
is durably stored remotely.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from desist.domain.enums.modes import PipelineStage, TriggerSource
from desist.domain.exceptions import InvalidStageTransition
from desist.domain.models.evidence import MediaHandle, UploadReceipt


@dataclass(frozen=True)
class RunStatus:
    """
    Read-only snapshot of a run for UI polling.

    Attributes:
        run_id: Run identifier
        stage: Current lifecycle stage
        failed_stage: Stage that exhausted its retries (FAILED runs only)
        source: What triggered the run
        concealed: Run is in flight behind the stealth disguise
        attempts: Adapter attempts per stage name
        remote_ref: Remote evidence reference once uploaded
        contacts_notified: Contacts the alert was dispatched to
        evidence_retained: Local evidence still exists on the device
        last_error: Last adapter error message, if any
        stage_history: Stage names the run has passed through, in order
    """

    run_id: UUID
    stage: PipelineStage
    failed_stage: Optional[PipelineStage]
    source: TriggerSource
    concealed: bool
    created_at: datetime
    updated_at: datetime
    attempts: dict[str, int] = field(default_factory=dict)
    remote_ref: Optional[str] = None
    contacts_notified: int = 0
    evidence_retained: bool = False
    last_error: Optional[str] = None
    stage_history: tuple[str, ...] = ()

    @property
    def is_active(self) -> bool:
        return not self.stage.is_terminal

    @property
    def escalation_failed(self) -> bool:
        """The user must be told evidence was not escalated."""
        return self.stage == PipelineStage.FAILED

    def to_dict(self) -> dict:
        return {
            "run_id": str(self.run_id),
            "stage": self.stage.name,
            "failed_stage": self.failed_stage.name if self.failed_stage else None,
            "source": self.source.value,
            "concealed": self.concealed,
            "is_active": self.is_active,
            "escalation_failed": self.escalation_failed,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "attempts": dict(self.attempts),
            "remote_ref": self.remote_ref,
            "contacts_notified": self.contacts_notified,
            "evidence_retained": self.evidence_retained,
            "last_error": self.last_error,
            "stage_history": list(self.stage_history),
        }


@dataclass
class EmergencyPipelineRun:
    """
    Mutable state of one emergency run.

    Only the emergency session manager mutates a run; the coordination
    core sets the concealed flag.
    """

    source: TriggerSource
    run_id: UUID = field(default_factory=uuid4)
    stage: PipelineStage = PipelineStage.ARMED
    failed_stage: Optional[PipelineStage] = None
    concealed: bool = False
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    # Evidence ownership
    media_handle: Optional[MediaHandle] = None
    receipt: Optional[UploadReceipt] = None
    evidence_wiped: bool = False
    contacts_notified: int = 0

    # Diagnostics
    attempts: dict[PipelineStage, int] = field(default_factory=dict)
    last_error: Optional[str] = None
    history: list[tuple[PipelineStage, datetime]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.history:
            self.history.append((self.stage, self.created_at))

    @property
    def is_active(self) -> bool:
        return not self.stage.is_terminal

    @property
    def evidence_retained(self) -> bool:
        return self.media_handle is not None and not self.evidence_wiped

    def advance(self, to: PipelineStage) -> PipelineStage:
        """
        Move to the next stage.

        Args:
            to: Expected successor stage

        Returns:
            The previous stage

        Raises:
            InvalidStageTransition: If `to` is not the immediate successor
        """
        if self.stage.is_terminal or to != self.stage.next_stage():
            raise InvalidStageTransition(
                f"Run {self.run_id} cannot move from {self.stage.name} to {to.name}"
            )
        return self._set_stage(to)

    def cancel(self) -> PipelineStage:
        if not self.stage.is_cancelable:
            raise InvalidStageTransition(
                f"Run {self.run_id} cannot be cancelled in {self.stage.name}"
            )
        return self._set_stage(PipelineStage.CANCELLED)

    def fail(self, error: str) -> PipelineStage:
        """Mark the current stage as permanently failed."""
        if self.stage.is_terminal:
            raise InvalidStageTransition(
                f"Run {self.run_id} already finished as {self.stage.name}"
            )
        self.failed_stage = self.stage
        self.last_error = error
        return self._set_stage(PipelineStage.FAILED)

    def record_attempt(self, stage: PipelineStage) -> int:
        self.attempts[stage] = self.attempts.get(stage, 0) + 1
        return self.attempts[stage]

    def _set_stage(self, stage: PipelineStage) -> PipelineStage:
        previous = self.stage
        self.stage = stage
        self.updated_at = datetime.utcnow()
        self.history.append((stage, self.updated_at))
        return previous

    def snapshot(self) -> RunStatus:
        return RunStatus(
            run_id=self.run_id,
            stage=self.stage,
            failed_stage=self.failed_stage,
            source=self.source,
            concealed=self.concealed,
            created_at=self.created_at,
            updated_at=self.updated_at,
            attempts={s.name: n for s, n in self.attempts.items()},
            remote_ref=self.receipt.remote_ref if self.receipt else None,
            contacts_notified=self.contacts_notified,
            evidence_retained=self.evidence_retained,
            last_error=self.last_error,
            stage_history=tuple(stage.name for stage, _ in self.history),
        )
