"""
Unit Tests for the Mode Transition Table

Tests every (mode, event, run stage) combination the coordination core
relies on, plus a replay check that random event sequences never leave
the table's legal states.

SAFETY-CRITICAL: These tests guard the rule that stealth cannot hide
a run that is capturing, encrypting, uploading or notifying.
"""

import random
from typing import Optional

import pytest

from desist.domain.enums.modes import (
    Mode,
    PipelineStage,
    TransitionEvent,
    TransitionOutcome,
    TriggerSource,
)
from desist.domain.models.pipeline_run import EmergencyPipelineRun
from desist.services.coordination.transitions import (
    VISIBLE_UI_STAGES,
    is_pipeline_stage_event,
    resolve_transition,
)


def make_run(stage: PipelineStage, concealed: bool = False) -> EmergencyPipelineRun:
    run = EmergencyPipelineRun(source=TriggerSource.BUTTON, concealed=concealed)
    run.stage = stage
    return run


ACTIVE_STAGES = [s for s in PipelineStage if not s.is_terminal]
HIDEABLE_STAGES = [PipelineStage.ARMED, PipelineStage.COUNTDOWN, PipelineStage.WIPING]


class TestStealthActivate:
    """Tests for entering stealth."""

    def test_normal_to_stealth(self):
        resolution = resolve_transition(Mode.NORMAL, TransitionEvent.STEALTH_ACTIVATE)

        assert resolution.outcome == TransitionOutcome.COMMITTED
        assert resolution.next_mode == Mode.STEALTH
        assert resolution.conceal_run is None

    def test_already_stealth_is_noop(self):
        resolution = resolve_transition(Mode.STEALTH, TransitionEvent.STEALTH_ACTIVATE)

        assert resolution.outcome == TransitionOutcome.NOOP
        assert resolution.next_mode == Mode.STEALTH

    @pytest.mark.parametrize("stage", sorted(VISIBLE_UI_STAGES))
    def test_rejected_while_run_needs_visible_ui(self, stage):
        run = make_run(stage)

        resolution = resolve_transition(
            stage.visible_mode(), TransitionEvent.STEALTH_ACTIVATE, run
        )

        assert resolution.outcome == TransitionOutcome.REJECTED
        assert resolution.next_mode == Mode.EMERGENCY_ACTIVE
        assert stage.name.lower() in resolution.reason

    @pytest.mark.parametrize("stage", HIDEABLE_STAGES)
    def test_pending_or_winding_run_becomes_concealed(self, stage):
        run = make_run(stage)

        resolution = resolve_transition(
            stage.visible_mode(), TransitionEvent.STEALTH_ACTIVATE, run
        )

        assert resolution.outcome == TransitionOutcome.COMMITTED
        assert resolution.next_mode == Mode.STEALTH
        assert resolution.conceal_run is True

    def test_finished_run_is_ignored(self):
        run = make_run(PipelineStage.FAILED)

        resolution = resolve_transition(Mode.NORMAL, TransitionEvent.STEALTH_ACTIVATE, run)

        assert resolution.outcome == TransitionOutcome.COMMITTED
        assert resolution.conceal_run is None


class TestStealthDeactivate:
    """Tests for leaving stealth."""

    def test_stealth_to_normal(self):
        resolution = resolve_transition(Mode.STEALTH, TransitionEvent.STEALTH_DEACTIVATE)

        assert resolution.outcome == TransitionOutcome.COMMITTED
        assert resolution.next_mode == Mode.NORMAL

    def test_not_in_stealth_is_noop(self):
        resolution = resolve_transition(Mode.NORMAL, TransitionEvent.STEALTH_DEACTIVATE)
        assert resolution.outcome == TransitionOutcome.NOOP

    @pytest.mark.parametrize("stage", sorted(VISIBLE_UI_STAGES))
    def test_rejected_while_concealed_run_is_capturing(self, stage):
        run = make_run(stage, concealed=True)

        resolution = resolve_transition(Mode.STEALTH, TransitionEvent.STEALTH_DEACTIVATE, run)

        assert resolution.outcome == TransitionOutcome.REJECTED
        assert resolution.next_mode == Mode.STEALTH

    @pytest.mark.parametrize("stage,expected", [
        (PipelineStage.ARMED, Mode.EMERGENCY_PENDING),
        (PipelineStage.COUNTDOWN, Mode.EMERGENCY_PENDING),
        (PipelineStage.WIPING, Mode.EMERGENCY_WINDING),
    ])
    def test_reveals_concealed_run(self, stage, expected):
        run = make_run(stage, concealed=True)

        resolution = resolve_transition(Mode.STEALTH, TransitionEvent.STEALTH_DEACTIVATE, run)

        assert resolution.outcome == TransitionOutcome.COMMITTED
        assert resolution.next_mode == expected
        assert resolution.conceal_run is False


class TestEmergencyTrigger:
    """Tests for the panic trigger."""

    def test_normal_to_pending(self):
        resolution = resolve_transition(Mode.NORMAL, TransitionEvent.EMERGENCY_TRIGGER)

        assert resolution.outcome == TransitionOutcome.COMMITTED
        assert resolution.next_mode == Mode.EMERGENCY_PENDING
        assert resolution.conceal_run is False

    def test_trigger_from_stealth_stays_stealth(self):
        """Entering an emergency never reveals the real UI."""
        resolution = resolve_transition(Mode.STEALTH, TransitionEvent.EMERGENCY_TRIGGER)

        assert resolution.outcome == TransitionOutcome.COMMITTED
        assert resolution.next_mode == Mode.STEALTH
        assert resolution.conceal_run is True

    @pytest.mark.parametrize("stage", ACTIVE_STAGES)
    def test_second_trigger_coalesces(self, stage):
        run = make_run(stage)

        resolution = resolve_transition(
            stage.visible_mode(), TransitionEvent.EMERGENCY_TRIGGER, run
        )

        assert resolution.outcome == TransitionOutcome.NOOP

    def test_trigger_after_failed_run_starts_new(self):
        run = make_run(PipelineStage.FAILED)

        resolution = resolve_transition(Mode.NORMAL, TransitionEvent.EMERGENCY_TRIGGER, run)

        assert resolution.outcome == TransitionOutcome.COMMITTED


class TestEmergencyCancel:
    """Tests for cancelling an armed run."""

    def test_cancel_without_run_rejected(self):
        resolution = resolve_transition(Mode.NORMAL, TransitionEvent.EMERGENCY_CANCEL)
        assert resolution.outcome == TransitionOutcome.REJECTED

    def test_cancel_in_countdown_returns_to_normal(self):
        run = make_run(PipelineStage.COUNTDOWN)

        resolution = resolve_transition(
            Mode.EMERGENCY_PENDING, TransitionEvent.EMERGENCY_CANCEL, run
        )

        assert resolution.outcome == TransitionOutcome.COMMITTED
        assert resolution.next_mode == Mode.NORMAL

    def test_cancel_concealed_run_stays_stealth(self):
        run = make_run(PipelineStage.COUNTDOWN, concealed=True)

        resolution = resolve_transition(Mode.STEALTH, TransitionEvent.EMERGENCY_CANCEL, run)

        assert resolution.next_mode == Mode.STEALTH

    @pytest.mark.parametrize("stage", [
        PipelineStage.CAPTURING,
        PipelineStage.UPLOADING,
        PipelineStage.WIPING,
    ])
    def test_cancel_after_capture_rejected(self, stage):
        run = make_run(stage)

        resolution = resolve_transition(stage.visible_mode(), TransitionEvent.EMERGENCY_CANCEL, run)

        assert resolution.outcome == TransitionOutcome.REJECTED
        assert "capture already started" in resolution.reason


class TestPipelineEvents:
    """Tests for stage progress and run completion."""

    @pytest.mark.parametrize("stage", ACTIVE_STAGES)
    def test_visible_run_drives_mode(self, stage):
        run = make_run(stage)

        resolution = resolve_transition(Mode.EMERGENCY_PENDING, TransitionEvent.STAGE_ADVANCED, run)

        assert resolution.next_mode == stage.visible_mode()

    @pytest.mark.parametrize("stage", ACTIVE_STAGES)
    def test_concealed_run_keeps_stealth(self, stage):
        run = make_run(stage, concealed=True)

        resolution = resolve_transition(Mode.STEALTH, TransitionEvent.STAGE_ADVANCED, run)

        assert resolution.next_mode == Mode.STEALTH

    @pytest.mark.parametrize("stage", [
        PipelineStage.COMPLETED,
        PipelineStage.CANCELLED,
        PipelineStage.FAILED,
    ])
    def test_finished_visible_run_returns_to_normal(self, stage):
        run = make_run(stage)

        resolution = resolve_transition(Mode.EMERGENCY_WINDING, TransitionEvent.RUN_FINISHED, run)

        assert resolution.outcome == TransitionOutcome.COMMITTED
        assert resolution.next_mode == Mode.NORMAL

    def test_finished_concealed_run_stays_stealth(self):
        run = make_run(PipelineStage.COMPLETED, concealed=True)

        resolution = resolve_transition(Mode.STEALTH, TransitionEvent.RUN_FINISHED, run)

        assert resolution.next_mode == Mode.STEALTH

    def test_finish_of_active_run_rejected(self):
        run = make_run(PipelineStage.UPLOADING)

        resolution = resolve_transition(Mode.EMERGENCY_ACTIVE, TransitionEvent.RUN_FINISHED, run)

        assert resolution.outcome == TransitionOutcome.REJECTED

    def test_pipeline_event_classification(self):
        assert is_pipeline_stage_event(TransitionEvent.STAGE_ADVANCED)
        assert is_pipeline_stage_event(TransitionEvent.RUN_FINISHED)
        assert not is_pipeline_stage_event(TransitionEvent.STEALTH_ACTIVATE)


class TestReplay:
    """Random event sequences applied through the table."""

    USER_EVENTS = [
        TransitionEvent.STEALTH_ACTIVATE,
        TransitionEvent.STEALTH_DEACTIVATE,
        TransitionEvent.EMERGENCY_TRIGGER,
        TransitionEvent.EMERGENCY_CANCEL,
        "advance",
    ]

    @staticmethod
    def _apply(mode: Mode, run: Optional[EmergencyPipelineRun], event) -> tuple:
        if event == "advance":
            if run is None or not run.is_active:
                return mode, run
            run.advance(run.stage.next_stage())
            event = (
                TransitionEvent.RUN_FINISHED if run.stage.is_terminal
                else TransitionEvent.STAGE_ADVANCED
            )

        if event == TransitionEvent.EMERGENCY_TRIGGER and (run is None or not run.is_active):
            resolution = resolve_transition(mode, event, None)
            if resolution.outcome == TransitionOutcome.COMMITTED:
                run = EmergencyPipelineRun(source=TriggerSource.BUTTON)
                run.concealed = bool(resolution.conceal_run)
            return resolution.next_mode, run

        resolution = resolve_transition(mode, event, run)
        if resolution.outcome != TransitionOutcome.COMMITTED:
            assert resolution.next_mode == mode
            return mode, run

        if resolution.conceal_run is not None and run is not None:
            run.concealed = resolution.conceal_run
        if event == TransitionEvent.EMERGENCY_CANCEL:
            run.cancel()
        return resolution.next_mode, run

    @pytest.mark.parametrize("seed", range(25))
    def test_random_sequences_keep_invariants(self, seed):
        rng = random.Random(seed)
        mode, run = Mode.NORMAL, None

        for _ in range(60):
            mode, run = self._apply(mode, run, rng.choice(self.USER_EVENTS))

            active = run if run is not None and run.is_active else None
            if active is None:
                assert not mode.is_emergency
            elif active.concealed:
                assert mode == Mode.STEALTH
            else:
                assert mode == active.stage.visible_mode()
            if active is not None and active.stage.requires_visible_ui and not active.concealed:
                assert mode != Mode.STEALTH
