"""
Coordination Core

Single authority for the operating mode. The stealth and emergency
managers request every mode change here; the core resolves it through
the transition table and either commits it or rejects it.

On commit:
1. The mode is updated (and a run concealed or revealed if needed).
2. The mode is persisted fire-and-forget.
3. An audit entry is appended.
4. The transition metric is incremented.

A rejection has no side effects beyond a log line and a metric.

SAFETY-CRITICAL: All transitions are serialized by a re-entrant lock
and run on one event loop. Concurrent requests resolve first-wins;
later ones are evaluated against the new state.
"""

import threading
from typing import Optional
from uuid import UUID

from desist.config.logging_config import get_logger
from desist.domain.enums.modes import (
    ActivationMethod,
    DeactivationMethod,
    Mode,
    TransitionEvent,
    TransitionOutcome,
    TriggerSource,
)
from desist.domain.exceptions import PersistenceError, TransitionRejected
from desist.domain.models.audit_entry import AuditEntry
from desist.domain.models.emergency_contact import EmergencyAlertConfig, EmergencyContact
from desist.domain.models.pipeline_run import EmergencyPipelineRun, RunStatus
from desist.domain.models.stealth_config import StealthConfig
from desist.domain.models.transition import TransitionResult
from desist.infrastructure.metrics import set_current_mode, track_rejection, track_transition
from desist.infrastructure.storage.audit_sink import AuditTrail
from desist.infrastructure.storage.persistence import ResilientSettingsWriter
from desist.services.coordination.scheduler import TaskScheduler
from desist.services.coordination.transitions import is_pipeline_stage_event, resolve_transition
from desist.services.emergency.emergency_manager import EmergencySessionManager
from desist.services.stealth.stealth_manager import StealthSessionManager

logger = get_logger(__name__)


MODE_KEY = "mode"


class CoordinationCore:
    """
    Owns the mode and the two session managers.

    Usage:
        core = build_coordination_core(settings)
        await core.load()
        core.activate_stealth(ActivationMethod.GESTURE)
        core.trigger_emergency(TriggerSource.BUTTON)
        status = core.get_emergency_status()
        await core.shutdown()
    """

    def __init__(
        self,
        *,
        stealth: StealthSessionManager,
        emergency: EmergencySessionManager,
        writer: ResilientSettingsWriter,
        audit: AuditTrail,
        scheduler: TaskScheduler,
    ) -> None:
        """
        Initialize the core and attach both managers to it.

        Args:
            stealth: Stealth session manager
            emergency: Emergency session manager
            writer: Persistence writer (mode key)
            audit: Audit trail for committed transitions
            scheduler: Shared timer and task scheduler
        """
        self.lock = threading.RLock()
        self._mode = Mode.NORMAL
        self._stealth = stealth
        self._emergency = emergency
        self._writer = writer
        self._audit = audit
        self._scheduler = scheduler

        stealth.attach(self)
        emergency.attach(self)
        set_current_mode(self._mode.value)

    @property
    def stealth(self) -> StealthSessionManager:
        return self._stealth

    @property
    def emergency(self) -> EmergencySessionManager:
        return self._emergency

    @property
    def writer(self) -> ResilientSettingsWriter:
        return self._writer

    @property
    def audit(self) -> AuditTrail:
        return self._audit

    @property
    def scheduler(self) -> TaskScheduler:
        return self._scheduler

    # =========================================================================
    # Transitions
    # =========================================================================

    def request_transition(
        self,
        event: TransitionEvent,
        *,
        trigger: str,
        run: Optional[EmergencyPipelineRun] = None,
        run_id: Optional[UUID] = None,
    ) -> TransitionResult:
        """
        Resolve and apply one transition.

        Args:
            event: Requested event
            trigger: Audit label for the requester (e.g. "stealth.activate:gesture")
            run: Run the event concerns; defaults to the active run
            run_id: Run ID to audit when the run does not exist yet

        Returns:
            TransitionResult; a rejection carries the reason and changes nothing
        """
        with self.lock:
            previous = self._mode
            subject = run if run is not None else self._emergency.active_run
            resolution = resolve_transition(previous, event, subject)

            if resolution.outcome == TransitionOutcome.REJECTED:
                track_rejection(event.value, previous.value)
                logger.info(
                    "Transition rejected",
                    transition=event.value,
                    mode=previous.value,
                    reason=resolution.reason,
                    trigger=trigger,
                )
                return TransitionResult(
                    event=event,
                    outcome=TransitionOutcome.REJECTED,
                    previous_mode=previous,
                    mode=previous,
                    reason=resolution.reason,
                    trigger=trigger,
                )

            if resolution.outcome == TransitionOutcome.NOOP:
                logger.debug(
                    "Transition no-op",
                    transition=event.value,
                    mode=previous.value,
                    reason=resolution.reason,
                )
                return TransitionResult(
                    event=event,
                    outcome=TransitionOutcome.NOOP,
                    previous_mode=previous,
                    mode=previous,
                    reason=resolution.reason,
                    trigger=trigger,
                )

            if resolution.conceal_run is not None and subject is not None:
                subject.concealed = resolution.conceal_run

            self._mode = resolution.next_mode
            if self._mode != previous:
                self._writer.write(MODE_KEY, self._mode.value)
                set_current_mode(self._mode.value)

            outcome = TransitionOutcome.COMMITTED.value
            if subject is not None and is_pipeline_stage_event(event):
                outcome = f"{outcome}:{subject.stage.name.lower()}"

            self._audit.record(
                AuditEntry(
                    from_mode=previous,
                    to_mode=self._mode,
                    trigger=trigger,
                    outcome=outcome,
                    run_id=run_id or (subject.run_id if subject else None),
                )
            )
            track_transition(event.value, previous.value, self._mode.value)

            logger.info(
                "Mode transition committed",
                transition=event.value,
                from_mode=previous.value,
                to_mode=self._mode.value,
                trigger=trigger,
            )
            return TransitionResult(
                event=event,
                outcome=TransitionOutcome.COMMITTED,
                previous_mode=previous,
                mode=self._mode,
                trigger=trigger,
            )

    def get_mode(self) -> Mode:
        return self._mode

    def is_emergency_in_flight(self) -> bool:
        return self._emergency.is_in_flight()

    def requires_visible_ui(self) -> bool:
        """True while a visible run is capturing through notifying."""
        run = self._emergency.active_run
        return run is not None and not run.concealed and run.stage.requires_visible_ui

    # =========================================================================
    # Stealth
    # =========================================================================

    def activate_stealth(self, method: ActivationMethod | str = ActivationMethod.MANUAL) -> TransitionResult:
        return self._stealth.activate(method)

    def deactivate_stealth(self, method: DeactivationMethod | str = DeactivationMethod.MANUAL) -> TransitionResult:
        return self._stealth.deactivate(method)

    def feed_unlock_input(self, token: str) -> Optional[TransitionResult]:
        return self._stealth.feed_input(token)

    def press_unlock_key(self, key: str) -> Optional[TransitionResult]:
        return self._stealth.press_key(key)

    def get_stealth_config(self) -> StealthConfig:
        return self._stealth.get_config()

    def update_stealth_config(self, **changes) -> StealthConfig:
        return self._stealth.update_config(**changes)

    def on_app_backgrounded(self) -> Optional[TransitionResult]:
        return self._stealth.on_app_backgrounded()

    def on_app_foregrounded(self) -> None:
        self._stealth.on_app_foregrounded()

    # =========================================================================
    # Emergency
    # =========================================================================

    def trigger_emergency(self, source: TriggerSource | str = TriggerSource.BUTTON) -> RunStatus:
        return self._emergency.trigger(source)

    def enter_emergency_from_stealth(self, source: TriggerSource | str = TriggerSource.BUTTON) -> RunStatus:
        """
        Arm a concealed run without leaving stealth.

        Raises:
            TransitionRejected: If stealth is not active
        """
        with self.lock:
            if self._mode != Mode.STEALTH:
                raise TransitionRejected(
                    "stealth not active",
                    self._mode.value,
                    TransitionEvent.EMERGENCY_TRIGGER.value,
                )
            return self._emergency.trigger(source)

    def cancel_emergency(self) -> TransitionResult:
        return self._emergency.cancel()

    def get_emergency_status(self) -> Optional[RunStatus]:
        return self._emergency.get_status()

    def register_panic_tap(self) -> Optional[RunStatus]:
        return self._emergency.register_panic_tap()

    def get_alert_config(self) -> EmergencyAlertConfig:
        return self._emergency.get_alert_config()

    def update_alert_config(self, **changes) -> EmergencyAlertConfig:
        return self._emergency.update_alert_config(**changes)

    # =========================================================================
    # Contacts
    # =========================================================================

    def list_contacts(self) -> list[EmergencyContact]:
        return self._emergency.list_contacts()

    def add_contact(
        self,
        name: str,
        phone: str,
        relationship: str = "",
        is_primary: bool = False,
    ) -> EmergencyContact:
        return self._emergency.add_contact(name, phone, relationship, is_primary)

    def update_contact(self, contact_id: str, **changes) -> EmergencyContact:
        return self._emergency.update_contact(contact_id, **changes)

    def remove_contact(self, contact_id: str) -> EmergencyContact:
        return self._emergency.remove_contact(contact_id)

    # =========================================================================
    # Audit / lifecycle
    # =========================================================================

    def get_audit_log(self, limit: Optional[int] = None) -> list[AuditEntry]:
        """Committed transitions, oldest first (the most recent `limit` if given)."""
        entries = list(self._audit.entries())
        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        return entries

    async def load(self) -> Mode:
        """
        Restore persisted state.

        A persisted emergency mode cannot be resumed (runs do not
        survive a restart) and loads as NORMAL.
        """
        await self._stealth.load()
        await self._emergency.load()

        mode = Mode.NORMAL
        try:
            raw = await self._writer.store.get(MODE_KEY)
            if raw:
                mode = Mode(raw)
        except ValueError:
            logger.warning("Stored mode corrupt, defaulting to normal")
        except PersistenceError as e:
            logger.warning("Stored mode unavailable, defaulting to normal", error=str(e))

        if mode.is_emergency:
            logger.warning("Discarding persisted emergency mode", stored_mode=mode.value)
            mode = Mode.NORMAL

        with self.lock:
            self._mode = mode
            set_current_mode(mode.value)
            if mode == Mode.STEALTH:
                self._stealth.resume_session()

        logger.info("Coordination core loaded", mode=mode.value)
        return mode

    def clear_local_state(self) -> Mode:
        """
        Reset stealth config, contacts and mode to safe defaults.

        The audit log is kept.

        Raises:
            TransitionRejected: While an emergency run is in flight
        """
        with self.lock:
            if self.is_emergency_in_flight():
                raise TransitionRejected(
                    "emergency in progress",
                    self._mode.value,
                    "clear_local_state",
                )

            if self._mode == Mode.STEALTH:
                self._stealth.deactivate(DeactivationMethod.MANUAL)

            self._stealth.reset()
            self._emergency.reset()
            self._mode = Mode.NORMAL
            self._writer.write(MODE_KEY, self._mode.value)
            set_current_mode(self._mode.value)

        logger.warning("Local state cleared")
        return self._mode

    async def shutdown(self, flush_timeout: float = 5.0) -> None:
        """Stop timers and pipelines, then flush persistence and audit."""
        self._stealth.shutdown()
        await self._scheduler.shutdown()
        flushed = await self._writer.flush(timeout=flush_timeout)
        if not flushed:
            logger.warning("Settings not fully flushed on shutdown")
        await self._audit.close()
        await self._writer.close()
        logger.info("Coordination core shut down")
