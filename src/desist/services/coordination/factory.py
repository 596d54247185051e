"""
Coordination Core Factory

Wires settings, storage, adapters and both session managers into a
CoordinationCore. There are no module-level singletons; the HTTP app
keeps the instance it builds on `app.state`.

CONFIGURATION:
    DESIST_PERSISTENCE_BACKEND=json    # or: memory
    DESIST_DATA_DIR=.desist
"""

from pathlib import Path
from typing import Optional

from desist.config import Settings, get_settings
from desist.config.logging_config import get_logger
from desist.domain.enums.modes import CoverStory
from desist.domain.models.emergency_contact import EmergencyAlertConfig
from desist.domain.models.stealth_config import StealthConfig
from desist.infrastructure.adapters import EmergencyAdapters, build_simulated_adapters
from desist.infrastructure.storage import (
    AuditSink,
    AuditTrail,
    InMemoryAuditSink,
    InMemorySettingsStore,
    JsonFileSettingsStore,
    JsonLinesAuditSink,
    ResilientSettingsWriter,
    SettingsStore,
)
from desist.services.coordination.coordination_core import CoordinationCore
from desist.services.coordination.scheduler import TaskScheduler
from desist.services.emergency.emergency_manager import EmergencySessionManager, PipelinePolicy
from desist.services.emergency.panic_gesture import PanicGestureDetector
from desist.services.stealth.stealth_manager import StealthSessionManager
from desist.services.stealth.unlock import UnlockKeypad

logger = get_logger(__name__)


SETTINGS_FILENAME = "settings.json"
AUDIT_FILENAME = "audit.jsonl"


def build_coordination_core(
    settings: Optional[Settings] = None,
    adapters: Optional[EmergencyAdapters] = None,
    store: Optional[SettingsStore] = None,
    audit_sink: Optional[AuditSink] = None,
) -> CoordinationCore:
    """
    Build a coordination core.

    Args:
        settings: Application settings (defaults to environment)
        adapters: Emergency adapters (defaults to simulated adapters)
        store: Settings store override
        audit_sink: Audit sink override

    Returns:
        Unloaded CoordinationCore; call `await core.load()` next

    Example:
        core = build_coordination_core(adapters=host_adapters)
        await core.load()
    """
    settings = settings or get_settings()
    store = store or _build_store(settings)
    audit_sink = audit_sink or _build_audit_sink(settings)

    if adapters is None:
        logger.warning("No emergency adapters supplied, using simulated adapters")
        adapters = build_simulated_adapters().bundle()

    writer = ResilientSettingsWriter(
        store,
        background_multiplier=settings.persistence.background_retry_multiplier,
        background_max_seconds=settings.persistence.background_retry_max_seconds,
    )
    scheduler = TaskScheduler()

    stealth = StealthSessionManager(
        writer,
        scheduler,
        default_config=StealthConfig(
            cover_story=CoverStory(settings.stealth.default_cover_story),
            idle_timeout_seconds=settings.stealth.default_idle_timeout_seconds,
        ),
        keypad=UnlockKeypad(
            max_length=settings.stealth.keypad_max_length,
            submit_key=settings.stealth.keypad_submit_key,
            clear_key=settings.stealth.keypad_clear_key,
        ),
    )

    emergency_settings = settings.emergency
    emergency = EmergencySessionManager(
        adapters,
        writer,
        scheduler,
        policy=PipelinePolicy.from_settings(emergency_settings),
        alert_config=EmergencyAlertConfig(
            message=emergency_settings.alert_message,
            location_sharing_enabled=emergency_settings.location_sharing_enabled,
            max_notified_contacts=emergency_settings.max_notified_contacts,
        ),
        panic_detector=PanicGestureDetector(
            tap_count=emergency_settings.panic_tap_count,
            window_seconds=emergency_settings.panic_tap_window_seconds,
        ),
    )

    logger.info(
        "Coordination core built",
        persistence_backend=settings.persistence.backend,
        countdown_seconds=emergency_settings.countdown_seconds,
        max_retries=emergency_settings.max_retries,
    )

    return CoordinationCore(
        stealth=stealth,
        emergency=emergency,
        writer=writer,
        audit=AuditTrail(audit_sink),
        scheduler=scheduler,
    )


def _build_store(settings: Settings) -> SettingsStore:
    if settings.persistence.backend == "memory":
        return InMemorySettingsStore()
    return JsonFileSettingsStore(Path(settings.data_dir) / SETTINGS_FILENAME)


def _build_audit_sink(settings: Settings) -> AuditSink:
    if settings.persistence.backend == "memory":
        return InMemoryAuditSink()
    return JsonLinesAuditSink(Path(settings.data_dir) / AUDIT_FILENAME)
