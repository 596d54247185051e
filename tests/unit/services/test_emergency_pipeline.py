"""
Unit Tests for the Emergency Pipeline

Tests the full run lifecycle against simulated adapters: countdown,
cancellation window, per-stage retries and timeouts, and the rule that
evidence is wiped only after a successful upload.

SAFETY-CRITICAL: A failed run must keep its local evidence.
"""

import asyncio

import pytest

from desist.domain.enums.modes import Mode, PipelineStage, TriggerSource
from desist.domain.models.evidence import Coords


PIPELINE_TIMEOUT = 3.0


@pytest.fixture
async def strict_core(make_core):
    """Core with a single retry per stage."""
    instance = make_core(max_retries=1)
    await instance.load()
    instance.add_contact("Alex", "+15550100")
    yield instance
    await instance.shutdown()


class TestHappyPath:
    """Tests for a run that completes."""

    async def test_run_completes_and_wipes_after_upload(self, core, simulated):
        status = core.trigger_emergency(TriggerSource.BUTTON)

        assert status.stage == PipelineStage.COUNTDOWN
        assert core.get_mode() == Mode.EMERGENCY_PENDING

        final = await core.emergency.wait_for_run(timeout=PIPELINE_TIMEOUT)

        assert final.stage == PipelineStage.COMPLETED
        assert final.remote_ref is not None
        assert final.contacts_notified == 1
        assert not final.evidence_retained
        assert core.get_mode() == Mode.NORMAL
        assert simulated.device.operations() == [
            "capture.start",
            "capture.stop",
            "encrypt",
            "upload.begin",
            "upload.done",
            "notify",
            "wipe",
        ]

    async def test_second_trigger_coalesces(self, core):
        first = core.trigger_emergency(TriggerSource.BUTTON)

        second = core.trigger_emergency(TriggerSource.GESTURE)

        assert second.run_id == first.run_id
        assert second.source == TriggerSource.BUTTON

    async def test_status_reports_last_run_after_completion(self, core):
        assert core.get_emergency_status() is None

        run_id = core.trigger_emergency().run_id
        await core.emergency.wait_for_run(timeout=PIPELINE_TIMEOUT)

        status = core.get_emergency_status()
        assert status.run_id == run_id
        assert status.stage == PipelineStage.COMPLETED
        assert not core.is_emergency_in_flight()

    async def test_panic_taps_trigger_gesture_run(self, core):
        results = [core.register_panic_tap() for _ in range(5)]

        assert results[:4] == [None] * 4
        assert results[4] is not None
        assert results[4].source == TriggerSource.GESTURE


class TestCancellation:
    """Tests for the cancel window."""

    async def test_cancel_during_countdown(self, core, simulated):
        core.trigger_emergency()

        result = core.cancel_emergency()
        await asyncio.sleep(0.1)

        assert result.committed
        assert core.get_mode() == Mode.NORMAL
        assert core.get_emergency_status().stage == PipelineStage.CANCELLED
        assert simulated.device.operations() == []

    async def test_cancel_after_capture_rejected_and_run_continues(self, core, simulated):
        simulated.upload.behavior.latency_seconds = 0.3
        core.trigger_emergency()
        await asyncio.sleep(0.15)

        result = core.cancel_emergency()

        assert result.rejected
        assert "capture already started" in result.reason
        assert core.get_mode() == Mode.EMERGENCY_ACTIVE

        final = await core.emergency.wait_for_run(timeout=PIPELINE_TIMEOUT)
        assert final.stage == PipelineStage.COMPLETED

    async def test_cancel_without_run_rejected(self, core):
        result = core.cancel_emergency()

        assert result.rejected
        assert core.get_mode() == Mode.NORMAL


class TestRetriesAndFailures:
    """Tests for stage retries, timeouts and evidence retention."""

    async def test_transient_upload_failures_are_retried(self, core, simulated):
        simulated.upload.behavior.fail_times = 2

        core.trigger_emergency()
        final = await core.emergency.wait_for_run(timeout=PIPELINE_TIMEOUT)

        operations = simulated.device.operations()
        assert final.stage == PipelineStage.COMPLETED
        assert final.attempts["UPLOADING"] == 3
        assert operations.count("upload.error") == 2
        assert operations.index("wipe") > operations.index("upload.done")

    async def test_exhausted_upload_retries_fail_and_keep_evidence(self, strict_core, simulated):
        simulated.upload.behavior.fail_times = 2

        strict_core.trigger_emergency()
        final = await strict_core.emergency.wait_for_run(timeout=PIPELINE_TIMEOUT)

        assert final.stage == PipelineStage.FAILED
        assert final.failed_stage == PipelineStage.UPLOADING
        assert final.escalation_failed
        assert final.evidence_retained
        assert final.attempts["UPLOADING"] == 2
        assert "wipe" not in simulated.device.operations()
        assert "notify" not in simulated.device.operations()
        assert strict_core.get_mode() == Mode.NORMAL

    async def test_non_retryable_error_fails_immediately(self, core, simulated):
        simulated.encryption.behavior.fail_times = 1
        simulated.encryption.behavior.retryable = False

        core.trigger_emergency()
        final = await core.emergency.wait_for_run(timeout=PIPELINE_TIMEOUT)

        assert final.stage == PipelineStage.FAILED
        assert final.failed_stage == PipelineStage.ENCRYPTING
        assert final.attempts["ENCRYPTING"] == 1

    async def test_capture_failure_has_no_evidence(self, strict_core, simulated):
        simulated.capture.behavior.fail_times = 2

        strict_core.trigger_emergency()
        final = await strict_core.emergency.wait_for_run(timeout=PIPELINE_TIMEOUT)

        assert final.failed_stage == PipelineStage.CAPTURING
        assert not final.evidence_retained

    async def test_slow_adapter_times_out(self, make_core, simulated):
        core = make_core(max_retries=0, upload_timeout_seconds=0.05)
        await core.load()
        simulated.upload.behavior.latency_seconds = 0.5

        try:
            core.trigger_emergency()
            final = await core.emergency.wait_for_run(timeout=PIPELINE_TIMEOUT)
        finally:
            await core.shutdown()

        assert final.stage == PipelineStage.FAILED
        assert final.failed_stage == PipelineStage.UPLOADING
        assert "timed out" in final.last_error

    async def test_new_run_allowed_after_failure(self, strict_core, simulated):
        simulated.upload.behavior.fail_times = 2
        failed_id = strict_core.trigger_emergency().run_id
        await strict_core.emergency.wait_for_run(timeout=PIPELINE_TIMEOUT)

        status = strict_core.trigger_emergency()

        assert status.run_id != failed_id
        assert status.stage == PipelineStage.COUNTDOWN
        final = await strict_core.emergency.wait_for_run(timeout=PIPELINE_TIMEOUT)
        assert final.stage == PipelineStage.COMPLETED


class TestNotification:
    """Tests for the notifying stage."""

    async def test_no_contacts_still_completes(self, core, simulated):
        for contact in core.list_contacts():
            core.remove_contact(contact.id)

        core.trigger_emergency()
        final = await core.emergency.wait_for_run(timeout=PIPELINE_TIMEOUT)

        assert final.stage == PipelineStage.COMPLETED
        assert final.contacts_notified == 0
        assert "notify" not in simulated.device.operations()

    async def test_recipients_limited_primary_first(self, core, simulated):
        core.add_contact("Sam", "+15550101")
        partner = core.add_contact("Jo", "+15550102", is_primary=True)
        core.update_alert_config(max_notified_contacts=2)

        core.trigger_emergency()
        await core.emergency.wait_for_run(timeout=PIPELINE_TIMEOUT)

        recipient_ids, message, location = simulated.notification.sent[0]
        assert len(recipient_ids) == 2
        assert recipient_ids[0] == partner.id
        assert message == core.get_alert_config().message
        assert location is None

    async def test_location_attached_when_sharing_enabled(self, core, simulated):
        simulated.location.coords = Coords(latitude=52.52, longitude=13.405)
        core.update_alert_config(location_sharing_enabled=True, message="Need help")

        core.trigger_emergency()
        await core.emergency.wait_for_run(timeout=PIPELINE_TIMEOUT)

        _, message, location = simulated.notification.sent[0]
        assert message == "Need help"
        assert location == Coords(latitude=52.52, longitude=13.405)

    @pytest.mark.parametrize("changes", [
        {"max_notified_contacts": 0},
        {"subject": "Alert"},
    ])
    async def test_invalid_alert_config_rejected(self, core, changes):
        with pytest.raises(ValueError):
            core.update_alert_config(**changes)
