"""
Mode and Pipeline Enumerations

Defines the externally visible operating mode, the events that move it,
and the lifecycle stages of an emergency pipeline run.

SAFETY-CRITICAL: Mode is the single source of truth for what the UI
renders. Stage ordering encodes the evidence-preservation guarantees.
"""

from enum import IntEnum, StrEnum


class Mode(StrEnum):
    """
    Externally visible operating mode.

    Exactly one mode is active at any instant.
    """

    NORMAL = "normal"
    """Real application UI, no emergency in progress."""

    STEALTH = "stealth"
    """
    Disguise UI shown. An emergency run may still be in flight
    behind the disguise (a concealed run).
    """

    EMERGENCY_PENDING = "emergency_pending"
    """Run armed, countdown running; the user can still cancel."""

    EMERGENCY_ACTIVE = "emergency_active"
    """Capture, encryption, upload or notification in progress."""

    EMERGENCY_WINDING = "emergency_winding"
    """Evidence escalated; local copy being wiped."""

    @property
    def is_emergency(self) -> bool:
        return self in (
            Mode.EMERGENCY_PENDING,
            Mode.EMERGENCY_ACTIVE,
            Mode.EMERGENCY_WINDING,
        )


class CoverStory(StrEnum):
    """Disguise applications available in stealth mode."""

    NOTES = "notes"
    CALCULATOR = "calculator"
    BROWSER = "browser"
    CALENDAR = "calendar"


class ActivationMethod(StrEnum):
    """How stealth mode was entered."""

    MANUAL = "manual"
    GESTURE = "gesture"
    SECRET_SEQUENCE = "secret_sequence"
    AUTO_BACKGROUND = "auto_background"


class DeactivationMethod(StrEnum):
    """How stealth mode was exited."""

    MANUAL = "manual"
    GESTURE = "gesture"
    SECRET_SEQUENCE = "secret_sequence"
    TIMEOUT = "timeout"


class TriggerSource(StrEnum):
    """What fired the panic trigger."""

    BUTTON = "button"
    GESTURE = "gesture"
    SMS_CODE = "sms_code"


class TransitionEvent(StrEnum):
    """Events submitted to the coordination core."""

    STEALTH_ACTIVATE = "stealth_activate"
    STEALTH_DEACTIVATE = "stealth_deactivate"
    EMERGENCY_TRIGGER = "emergency_trigger"
    EMERGENCY_CANCEL = "emergency_cancel"
    STAGE_ADVANCED = "stage_advanced"
    RUN_FINISHED = "run_finished"


class TransitionOutcome(StrEnum):
    """How the coordination core resolved a transition request."""

    COMMITTED = "committed"
    NOOP = "noop"
    REJECTED = "rejected"


class PipelineStage(IntEnum):
    """
    Lifecycle stages of an emergency pipeline run.

    Values are ordered: a run only ever moves to the next value, or to
    one of the terminal stages.
    """

    ARMED = 1
    COUNTDOWN = 2
    CAPTURING = 3
    ENCRYPTING = 4
    UPLOADING = 5
    NOTIFYING = 6
    WIPING = 7
    COMPLETED = 8
    CANCELLED = 9
    FAILED = 10

    @property
    def is_terminal(self) -> bool:
        return self >= PipelineStage.COMPLETED

    @property
    def is_cancelable(self) -> bool:
        """Only the arming window can be aborted by the user."""
        return self in (PipelineStage.ARMED, PipelineStage.COUNTDOWN)

    @property
    def requires_visible_ui(self) -> bool:
        """Stages during which stealth may not be entered."""
        return PipelineStage.CAPTURING <= self <= PipelineStage.NOTIFYING

    def next_stage(self) -> "PipelineStage":
        """
        Get the successor in the happy path.

        Raises:
            ValueError: If the stage is terminal
        """
        if self.is_terminal:
            raise ValueError(f"{self.name} has no successor")
        # WIPING + 1 is COMPLETED
        return PipelineStage(self.value + 1)

    def visible_mode(self) -> Mode:
        """Mode shown when a run in this stage is not concealed."""
        if self.is_terminal:
            return Mode.NORMAL
        if self.is_cancelable:
            return Mode.EMERGENCY_PENDING
        if self.requires_visible_ui:
            return Mode.EMERGENCY_ACTIVE
        return Mode.EMERGENCY_WINDING
