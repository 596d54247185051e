"""
Mode Transition Table

Total resolution of (mode, event, active run) to exactly one of
COMMIT(next mode), NOOP or REJECT(reason).

SAFETY-CRITICAL: This table is the legality predicate for every mode
change. It is pure (no side effects) so callers can resolve first and
apply effects only on commit.

Asymmetric rule: an emergency may be entered without leaving stealth,
but stealth cannot be entered while a visible run is capturing,
encrypting, uploading or notifying.
"""

from dataclasses import dataclass
from typing import Optional

from desist.domain.enums.modes import Mode, PipelineStage, TransitionEvent, TransitionOutcome
from desist.domain.models.pipeline_run import EmergencyPipelineRun


@dataclass(frozen=True)
class Resolution:
    """Result of resolving one event against the current state."""

    outcome: TransitionOutcome
    next_mode: Mode
    reason: str = ""
    conceal_run: Optional[bool] = None

    @classmethod
    def commit(cls, mode: Mode, conceal_run: Optional[bool] = None) -> "Resolution":
        return cls(TransitionOutcome.COMMITTED, mode, conceal_run=conceal_run)

    @classmethod
    def noop(cls, mode: Mode, reason: str) -> "Resolution":
        return cls(TransitionOutcome.NOOP, mode, reason)

    @classmethod
    def reject(cls, mode: Mode, reason: str) -> "Resolution":
        return cls(TransitionOutcome.REJECTED, mode, reason)


def resolve_transition(
    mode: Mode,
    event: TransitionEvent,
    run: Optional[EmergencyPipelineRun] = None,
) -> Resolution:
    """
    Resolve an event against the current mode.

    Args:
        mode: Current mode
        event: Requested event
        run: Active run (or, for pipeline events, the run that changed)

    Returns:
        Resolution with outcome, next mode, and whether the run becomes
        concealed (True), revealed (False) or unchanged (None)
    """
    active = run if run is not None and run.is_active else None

    if event == TransitionEvent.STEALTH_ACTIVATE:
        return _resolve_stealth_activate(mode, active)
    if event == TransitionEvent.STEALTH_DEACTIVATE:
        return _resolve_stealth_deactivate(mode, active)
    if event == TransitionEvent.EMERGENCY_TRIGGER:
        return _resolve_trigger(mode, active)
    if event == TransitionEvent.EMERGENCY_CANCEL:
        return _resolve_cancel(mode, active)
    if event == TransitionEvent.STAGE_ADVANCED:
        return _resolve_stage_advanced(mode, run)
    if event == TransitionEvent.RUN_FINISHED:
        return _resolve_run_finished(mode, run)

    raise ValueError(f"Unknown transition event: {event}")


def _resolve_stealth_activate(mode: Mode, run: Optional[EmergencyPipelineRun]) -> Resolution:
    if mode == Mode.STEALTH:
        return Resolution.noop(mode, "stealth already active")

    if run is not None:
        if run.stage.requires_visible_ui:
            return Resolution.reject(
                mode,
                f"emergency pipeline is {run.stage.name.lower()}; real UI must stay visible",
            )
        return Resolution.commit(Mode.STEALTH, conceal_run=True)

    return Resolution.commit(Mode.STEALTH)


def _resolve_stealth_deactivate(mode: Mode, run: Optional[EmergencyPipelineRun]) -> Resolution:
    if mode != Mode.STEALTH:
        return Resolution.noop(mode, "stealth not active")

    if run is None:
        return Resolution.commit(Mode.NORMAL)

    if run.stage.requires_visible_ui:
        return Resolution.reject(
            mode,
            f"concealed emergency pipeline is {run.stage.name.lower()}",
        )

    return Resolution.commit(run.stage.visible_mode(), conceal_run=False)


def _resolve_trigger(mode: Mode, run: Optional[EmergencyPipelineRun]) -> Resolution:
    if run is not None:
        return Resolution.noop(mode, "emergency already in progress")

    if mode == Mode.STEALTH:
        return Resolution.commit(Mode.STEALTH, conceal_run=True)

    return Resolution.commit(Mode.EMERGENCY_PENDING, conceal_run=False)


def _resolve_cancel(mode: Mode, run: Optional[EmergencyPipelineRun]) -> Resolution:
    if run is None:
        return Resolution.reject(mode, "no emergency in progress")

    if not run.stage.is_cancelable:
        return Resolution.reject(
            mode,
            f"capture already started ({run.stage.name.lower()}); pipeline runs to completion",
        )

    return Resolution.commit(Mode.STEALTH if run.concealed else Mode.NORMAL)


def _resolve_stage_advanced(mode: Mode, run: Optional[EmergencyPipelineRun]) -> Resolution:
    if run is None:
        return Resolution.reject(mode, "no run to advance")

    if run.concealed:
        return Resolution.commit(Mode.STEALTH)

    return Resolution.commit(run.stage.visible_mode())


def _resolve_run_finished(mode: Mode, run: Optional[EmergencyPipelineRun]) -> Resolution:
    if run is None or not run.stage.is_terminal:
        return Resolution.reject(mode, "run has not reached a terminal stage")

    if run.concealed or mode == Mode.STEALTH:
        return Resolution.commit(Mode.STEALTH)
    return Resolution.commit(Mode.NORMAL)


def is_pipeline_stage_event(event: TransitionEvent) -> bool:
    return event in (TransitionEvent.STAGE_ADVANCED, TransitionEvent.RUN_FINISHED)


VISIBLE_UI_STAGES: frozenset[PipelineStage] = frozenset(
    stage for stage in PipelineStage if stage.requires_visible_ui
)
