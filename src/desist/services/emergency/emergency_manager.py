"""
Emergency Session Manager

Runs the emergency pipeline:
ARMED -> COUNTDOWN -> CAPTURING -> ENCRYPTING -> UPLOADING -> NOTIFYING
-> WIPING -> COMPLETED

SAFETY-CRITICAL:
- At most one run is active; further triggers are coalesced into it.
- Only the arming window (ARMED/COUNTDOWN) can be cancelled.
- Local evidence is wiped only after a successful upload. A run that
  fails before that keeps its evidence on the device.
- Every stage change is reported to the coordination core, which
  derives the visible mode and writes the audit trail.

Each adapter call is bounded by a per-stage timeout and retried with
exponential backoff (tenacity) before the run is failed at that stage.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from desist.config.logging_config import bind_run_context, get_logger
from desist.config.settings import EmergencySettings
from desist.domain.enums.modes import Mode, PipelineStage, TransitionEvent, TriggerSource
from desist.domain.exceptions import (
    AdapterError,
    AdapterTimeout,
    CorruptState,
    InvalidStageTransition,
    MediaAlreadyGone,
    PersistenceError,
)
from desist.domain.models.emergency_contact import (
    CONTACTS_KEY,
    EMERGENCY_CONFIG_KEY,
    EmergencyAlertConfig,
    EmergencyContact,
    contacts_from_json,
    contacts_to_json,
)
from desist.domain.models.pipeline_run import EmergencyPipelineRun, RunStatus
from desist.domain.models.transition import TransitionResult
from desist.infrastructure.adapters.base import EmergencyAdapters
from desist.infrastructure.metrics import (
    observe_stage_duration,
    track_coalesced_trigger,
    track_pipeline_outcome,
    track_stage_attempt,
)
from desist.infrastructure.monitoring import capture_exception_with_context, capture_safety_event
from desist.infrastructure.storage.persistence import ResilientSettingsWriter
from desist.services.coordination.scheduler import TaskScheduler
from desist.services.emergency.contact_book import ContactBook
from desist.services.emergency.panic_gesture import PanicGestureDetector

if TYPE_CHECKING:
    from desist.services.coordination.coordination_core import CoordinationCore

logger = get_logger(__name__)


@dataclass(frozen=True)
class PipelinePolicy:
    """
    Timing and retry policy for pipeline runs.

    Attributes:
        countdown_seconds: Cancelable window before capture starts
        capture_duration_seconds: Recording length before capture stops
        max_retries: Retries per stage after the first attempt
        backoff_multiplier: Exponential backoff multiplier (0 disables waits)
        backoff_max_seconds: Upper bound on a single backoff wait
        *_timeout_seconds: Timeout per adapter call, by stage
    """

    countdown_seconds: float = 5.0
    capture_duration_seconds: float = 30.0
    max_retries: int = 2
    backoff_multiplier: float = 1.0
    backoff_max_seconds: float = 8.0
    capture_timeout_seconds: float = 10.0
    encrypt_timeout_seconds: float = 30.0
    upload_timeout_seconds: float = 120.0
    notify_timeout_seconds: float = 30.0
    wipe_timeout_seconds: float = 30.0

    @classmethod
    def from_settings(cls, settings: EmergencySettings) -> "PipelinePolicy":
        return cls(
            countdown_seconds=settings.countdown_seconds,
            capture_duration_seconds=settings.capture_duration_seconds,
            max_retries=settings.max_retries,
            backoff_multiplier=settings.backoff_multiplier,
            backoff_max_seconds=settings.backoff_max_seconds,
            capture_timeout_seconds=settings.capture_timeout_seconds,
            encrypt_timeout_seconds=settings.encrypt_timeout_seconds,
            upload_timeout_seconds=settings.upload_timeout_seconds,
            notify_timeout_seconds=settings.notify_timeout_seconds,
            wipe_timeout_seconds=settings.wipe_timeout_seconds,
        )

    def timeout_for(self, stage: PipelineStage) -> float:
        return {
            PipelineStage.CAPTURING: self.capture_timeout_seconds,
            PipelineStage.ENCRYPTING: self.encrypt_timeout_seconds,
            PipelineStage.UPLOADING: self.upload_timeout_seconds,
            PipelineStage.NOTIFYING: self.notify_timeout_seconds,
            PipelineStage.WIPING: self.wipe_timeout_seconds,
        }[stage]


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, AdapterError) and error.is_retryable


class EmergencySessionManager:
    """
    Emergency trigger, cancellation and pipeline execution.

    Usage:
        manager = EmergencySessionManager(adapters, writer, scheduler, policy, alert_config)
        core = CoordinationCore(emergency=manager, ...)  # attaches itself
        status = manager.trigger(TriggerSource.BUTTON)
        await manager.wait_for_run()
    """

    def __init__(
        self,
        adapters: EmergencyAdapters,
        writer: ResilientSettingsWriter,
        scheduler: TaskScheduler,
        policy: Optional[PipelinePolicy] = None,
        alert_config: Optional[EmergencyAlertConfig] = None,
        contact_book: Optional[ContactBook] = None,
        panic_detector: Optional[PanicGestureDetector] = None,
    ) -> None:
        """
        Initialize emergency manager.

        Args:
            adapters: Capture, encryption, upload, notification, wipe and location adapters
            writer: Persistence writer for contacts and alert config
            scheduler: Shared keyed timer and task scheduler
            policy: Timing and retry policy
            alert_config: Default alert configuration
            contact_book: Emergency contacts
            panic_detector: Rapid-tap gesture detector
        """
        self._adapters = adapters
        self._writer = writer
        self._scheduler = scheduler
        self._policy = policy or PipelinePolicy()
        self._default_alert_config = alert_config or EmergencyAlertConfig(
            message="This is an emergency alert from DESIST app. I may need assistance."
        )
        self._alert_config = self._default_alert_config
        self._contacts = contact_book if contact_book is not None else ContactBook()
        self._panic_detector = panic_detector or PanicGestureDetector()
        self._core: Optional["CoordinationCore"] = None

        self._active: Optional[EmergencyPipelineRun] = None
        self._last: Optional[EmergencyPipelineRun] = None
        self._finished: dict[str, asyncio.Event] = {}

    def attach(self, core: "CoordinationCore") -> None:
        self._core = core

    @property
    def core(self) -> "CoordinationCore":
        if self._core is None:
            raise RuntimeError("EmergencySessionManager is not attached to a coordination core")
        return self._core

    @property
    def policy(self) -> PipelinePolicy:
        return self._policy

    @property
    def active_run(self) -> Optional[EmergencyPipelineRun]:
        if self._active is not None and self._active.is_active:
            return self._active
        return None

    @property
    def last_run(self) -> Optional[EmergencyPipelineRun]:
        return self._last

    def is_in_flight(self) -> bool:
        return self.active_run is not None

    def get_status(self) -> Optional[RunStatus]:
        """
        Snapshot for UI polling.

        Returns the active run, else the most recent finished run (so a
        failure stays visible), else None.
        """
        run = self.active_run or self._last
        return run.snapshot() if run else None

    # =========================================================================
    # Persisted settings
    # =========================================================================

    async def load(self) -> None:
        """Load contacts and alert config; corrupt values resolve to defaults."""
        store = self._writer.store

        try:
            raw = await store.get(CONTACTS_KEY)
            self._contacts.replace_all(contacts_from_json(raw) if raw else [])
        except CorruptState as e:
            logger.warning("Stored contacts corrupt, starting empty", detail=e.detail)
            self._contacts.clear()
        except PersistenceError as e:
            logger.warning("Contacts unavailable, starting empty", error=str(e))
            self._contacts.clear()

        try:
            raw = await store.get(EMERGENCY_CONFIG_KEY)
            self._alert_config = (
                EmergencyAlertConfig.from_json(raw, default=self._default_alert_config)
                if raw
                else self._default_alert_config
            )
        except CorruptState as e:
            logger.warning("Stored alert config corrupt, using defaults", detail=e.detail)
            self._alert_config = self._default_alert_config
        except PersistenceError as e:
            logger.warning("Alert config unavailable, using defaults", error=str(e))
            self._alert_config = self._default_alert_config

        logger.info("Emergency settings loaded", contacts=len(self._contacts))

    def reset(self) -> None:
        """Drop contacts and alert config back to defaults."""
        self._contacts.clear()
        self._alert_config = self._default_alert_config
        self._panic_detector.reset()
        self._persist_contacts()
        self._writer.write(EMERGENCY_CONFIG_KEY, self._alert_config.to_json())

    def get_alert_config(self) -> EmergencyAlertConfig:
        return self._alert_config

    def update_alert_config(self, **changes) -> EmergencyAlertConfig:
        unknown = set(changes) - {"message", "location_sharing_enabled", "max_notified_contacts"}
        if unknown:
            raise ValueError(f"Unknown alert config fields: {', '.join(sorted(unknown))}")
        if changes.get("max_notified_contacts", 1) < 1:
            raise ValueError("max_notified_contacts must be >= 1")

        self._alert_config = self._alert_config.with_changes(**changes)
        self._writer.write(EMERGENCY_CONFIG_KEY, self._alert_config.to_json())
        logger.info("Alert config updated", fields=sorted(changes))
        return self._alert_config

    # =========================================================================
    # Contacts
    # =========================================================================

    def list_contacts(self) -> list[EmergencyContact]:
        return self._contacts.contacts()

    def add_contact(
        self,
        name: str,
        phone: str,
        relationship: str = "",
        is_primary: bool = False,
    ) -> EmergencyContact:
        contact = self._contacts.add(name, phone, relationship, is_primary)
        self._persist_contacts()
        logger.info("Emergency contact added", contact_id=contact.id, is_primary=contact.is_primary)
        return contact

    def update_contact(self, contact_id: str, **changes) -> EmergencyContact:
        contact = self._contacts.update(contact_id, **changes)
        self._persist_contacts()
        logger.info("Emergency contact updated", contact_id=contact_id, fields=sorted(changes))
        return contact

    def remove_contact(self, contact_id: str) -> EmergencyContact:
        removed = self._contacts.remove(contact_id)
        self._persist_contacts()
        primary = self._contacts.primary()
        logger.info(
            "Emergency contact removed",
            contact_id=contact_id,
            primary_id=primary.id if primary else None,
        )
        return removed

    def _persist_contacts(self) -> None:
        self._writer.write(CONTACTS_KEY, contacts_to_json(self._contacts.contacts()))

    # =========================================================================
    # Trigger / cancel
    # =========================================================================

    def trigger(self, source: TriggerSource | str = TriggerSource.BUTTON) -> RunStatus:
        """
        Start an emergency run, or coalesce into the active one.

        The run is concealed when triggered from stealth.

        Returns:
            Status of the new or existing run
        """
        source = TriggerSource(source)
        core = self.core
        with core.lock:
            active = self.active_run
            if active is not None:
                track_coalesced_trigger()
                logger.info(
                    "Emergency trigger coalesced",
                    run_id=str(active.run_id),
                    source=source.value,
                )
                return active.snapshot()

            run = EmergencyPipelineRun(source=source)
            result = core.request_transition(
                TransitionEvent.EMERGENCY_TRIGGER,
                trigger=f"emergency.trigger:{source.value}",
                run_id=run.run_id,
            )
            if not result.committed:
                # Only reachable if another run slipped in under the lock
                return self.get_status()

            run.concealed = result.mode == Mode.STEALTH
            self._active = run
            self._last = run
            self._finished[str(run.run_id)] = asyncio.Event()

            logger.warning(
                "Emergency triggered",
                run_id=str(run.run_id),
                source=source.value,
                concealed=run.concealed,
            )

            self._advance(run, PipelineStage.COUNTDOWN)
            self._scheduler.schedule(
                self._countdown_key(run),
                self._policy.countdown_seconds,
                lambda: self._on_countdown_elapsed(run),
            )
            return run.snapshot()

    def cancel(self) -> TransitionResult:
        """
        Abort the active run during the arming window.

        Rejected (and the run continues) once capture has started.
        """
        core = self.core
        with core.lock:
            run = self.active_run
            result = core.request_transition(
                TransitionEvent.EMERGENCY_CANCEL,
                trigger="emergency.cancel",
                run=run,
            )
            if not result.committed:
                logger.info("Emergency cancel rejected", reason=result.reason)
                return result

            self._scheduler.cancel(self._countdown_key(run))
            run.cancel()
            self._active = None
            self._last = run
            track_pipeline_outcome("cancelled", run.source.value)

            if run.media_handle is not None:
                self._scheduler.spawn(
                    self._stop_capture_quietly(run),
                    name=f"stop-capture:{run.run_id}",
                )
            self._mark_finished(run)

            logger.info("Emergency cancelled", run_id=str(run.run_id))
            return result

    def register_panic_tap(self) -> Optional[RunStatus]:
        """
        Feed one tap to the panic gesture detector.

        Returns:
            Run status when the tap completed the gesture, else None
        """
        if self._panic_detector.register_tap():
            return self.trigger(TriggerSource.GESTURE)
        return None

    async def wait_for_run(self, timeout: Optional[float] = None) -> Optional[RunStatus]:
        """Wait until the current (or last) run reaches a terminal stage."""
        run = self.active_run or self._last
        if run is None:
            return None
        event = self._finished.get(str(run.run_id))
        if event is not None:
            await asyncio.wait_for(event.wait(), timeout)
        return run.snapshot()

    @staticmethod
    def _countdown_key(run: EmergencyPipelineRun) -> str:
        return f"countdown:{run.run_id}"

    def _on_countdown_elapsed(self, run: EmergencyPipelineRun) -> None:
        with self.core.lock:
            if run is not self._active or run.stage != PipelineStage.COUNTDOWN:
                return
            self._advance(run, PipelineStage.CAPTURING)
            self._scheduler.spawn(self._run_pipeline(run), name=f"pipeline:{run.run_id}")

    # =========================================================================
    # Pipeline
    # =========================================================================

    def _advance(self, run: EmergencyPipelineRun, stage: PipelineStage) -> None:
        with self.core.lock:
            previous = run.advance(stage)
            self.core.request_transition(
                TransitionEvent.STAGE_ADVANCED,
                trigger=f"pipeline.{stage.name.lower()}",
                run=run,
            )
        logger.info(
            "Pipeline stage advanced",
            run_id=str(run.run_id),
            from_stage=previous.name,
            to_stage=stage.name,
        )

    def _finish(self, run: EmergencyPipelineRun) -> None:
        with self.core.lock:
            if self._active is run:
                self._active = None
            self._last = run
            self.core.request_transition(
                TransitionEvent.RUN_FINISHED,
                trigger=f"pipeline.{run.stage.name.lower()}",
                run=run,
            )
            self._mark_finished(run)
        track_pipeline_outcome(run.stage.name.lower(), run.source.value)

    def _mark_finished(self, run: EmergencyPipelineRun) -> None:
        event = self._finished.pop(str(run.run_id), None)
        if event is not None:
            event.set()

    async def _run_pipeline(self, run: EmergencyPipelineRun) -> None:
        bind_run_context(str(run.run_id))
        try:
            await self._capture(run)
            self._advance(run, PipelineStage.ENCRYPTING)
            await self._execute(run, self._encrypt)
            self._advance(run, PipelineStage.UPLOADING)
            await self._execute(run, self._upload)
            self._advance(run, PipelineStage.NOTIFYING)
            await self._execute(run, self._notify)
            self._advance(run, PipelineStage.WIPING)
            await self._execute(run, self._wipe)
            with self.core.lock:
                run.advance(PipelineStage.COMPLETED)
        except AdapterError as e:
            self._fail(run, e)
        except Exception as e:
            logger.error(
                "Pipeline crashed",
                run_id=str(run.run_id),
                stage=run.stage.name,
                error_type=type(e).__name__,
            )
            capture_exception_with_context(e, run_id=str(run.run_id))
            self._fail(run, e)

        self._finish(run)
        logger.info(
            "Pipeline finished",
            run_id=str(run.run_id),
            outcome=run.stage.name,
            evidence_retained=run.evidence_retained,
        )

    def _fail(self, run: EmergencyPipelineRun, error: Exception) -> None:
        with self.core.lock:
            if run.stage.is_terminal:
                return
            run.fail(str(error))
        logger.error(
            "Pipeline failed",
            run_id=str(run.run_id),
            failed_stage=run.failed_stage.name,
            evidence_retained=run.evidence_retained,
            error=str(error),
        )
        capture_safety_event(
            "Emergency pipeline failed",
            level="error",
            extra={
                "run_id": str(run.run_id),
                "failed_stage": run.failed_stage.name,
                "evidence_retained": run.evidence_retained,
                "attempts": run.attempts.get(run.failed_stage, 0),
            },
        )

    async def _execute(
        self,
        run: EmergencyPipelineRun,
        operation: Callable[[EmergencyPipelineRun], Awaitable[Any]],
    ) -> Any:
        """
        Run one adapter operation for the current stage with timeout and retries.

        Raises:
            AdapterError: When retries are exhausted or the error is not retryable
        """
        stage = run.stage
        timeout = self._policy.timeout_for(stage)
        started = time.monotonic()
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._policy.max_retries + 1),
                wait=wait_exponential(
                    multiplier=self._policy.backoff_multiplier,
                    max=self._policy.backoff_max_seconds,
                ),
                retry=retry_if_exception(_is_retryable),
                reraise=True,
            ):
                with attempt:
                    number = run.record_attempt(stage)
                    try:
                        result = await self._call(stage, operation(run), timeout)
                    except AdapterError as e:
                        run.last_error = str(e)
                        track_stage_attempt(stage.name, "error")
                        logger.warning(
                            "Stage attempt failed",
                            run_id=str(run.run_id),
                            stage=stage.name,
                            attempt=number,
                            error=str(e),
                        )
                        raise
                    track_stage_attempt(stage.name, "success")
            return result
        finally:
            observe_stage_duration(stage.name, time.monotonic() - started)

    @staticmethod
    async def _call(stage: PipelineStage, call: Awaitable[Any], timeout: float) -> Any:
        try:
            return await asyncio.wait_for(call, timeout)
        except asyncio.TimeoutError:
            raise AdapterTimeout(stage.name.lower(), timeout)
        except (AdapterError, InvalidStageTransition, asyncio.CancelledError):
            raise
        except Exception as e:
            raise AdapterError(
                f"{stage.name.lower()} adapter error: {e}",
                stage=stage.name.lower(),
                original_error=e,
            ) from e

    async def _capture(self, run: EmergencyPipelineRun) -> None:
        await self._execute(run, self._start_capture)
        if self._policy.capture_duration_seconds > 0:
            await asyncio.sleep(self._policy.capture_duration_seconds)
        await self._execute(run, self._stop_capture)

    async def _start_capture(self, run: EmergencyPipelineRun) -> None:
        # A retry after a failed stop keeps the handle already recording
        if run.media_handle is None:
            run.media_handle = await self._adapters.capture.start_capture()

    async def _stop_capture(self, run: EmergencyPipelineRun) -> None:
        await self._adapters.capture.stop_capture(run.media_handle)

    async def _stop_capture_quietly(self, run: EmergencyPipelineRun) -> None:
        try:
            await self._call(
                PipelineStage.CAPTURING,
                self._adapters.capture.stop_capture(run.media_handle),
                self._policy.capture_timeout_seconds,
            )
        except AdapterError as e:
            logger.warning("Stopping cancelled capture failed", run_id=str(run.run_id), error=str(e))

    async def _encrypt(self, run: EmergencyPipelineRun) -> None:
        run.media_handle = await self._adapters.encryption.encrypt(run.media_handle)

    async def _upload(self, run: EmergencyPipelineRun) -> None:
        run.receipt = await self._adapters.upload.upload(run.media_handle)

    async def _notify(self, run: EmergencyPipelineRun) -> None:
        config = self._alert_config
        recipients = self._contacts.alert_recipients(config.max_notified_contacts)
        if not recipients:
            logger.warning("No emergency contacts configured, skipping notification", run_id=str(run.run_id))
            return

        location = None
        if config.location_sharing_enabled and self._adapters.location is not None:
            try:
                location = await self._adapters.location.current_location()
            except AdapterError as e:
                logger.warning("Location unavailable for alert", error=str(e))

        await self._adapters.notification.notify(recipients, config.message, location)
        run.contacts_notified = len(recipients)

    async def _wipe(self, run: EmergencyPipelineRun) -> None:
        if run.receipt is None:
            raise InvalidStageTransition(f"Run {run.run_id} cannot wipe evidence before upload")
        try:
            await self._adapters.wipe.wipe(run.media_handle)
        except MediaAlreadyGone:
            logger.info("Evidence already removed", run_id=str(run.run_id))
        run.evidence_wiped = True
