"""
Stealth Session Manager

Owns the disguise configuration, the unlock input and the idle timer.
Every mode change is requested from the coordination core; this
manager only applies its own side effects once a change is committed.

SECURITY: The unlock sequence is never logged, and a match requires
the full token (see services.stealth.unlock).

SAFETY-CRITICAL: The idle timer never reveals the real UI while an
emergency run is in flight. It defers and re-arms instead.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional
from uuid import uuid4

from desist.config.logging_config import get_logger
from desist.domain.enums.modes import (
    ActivationMethod,
    CoverStory,
    DeactivationMethod,
    Mode,
    TransitionEvent,
    TransitionOutcome,
)
from desist.domain.exceptions import CorruptState, PersistenceError
from desist.domain.models.stealth_config import STEALTH_CONFIG_KEY, StealthConfig
from desist.domain.models.transition import TransitionResult
from desist.infrastructure.metrics import track_deferred_timeout
from desist.infrastructure.storage.persistence import ResilientSettingsWriter
from desist.services.coordination.scheduler import TaskScheduler
from desist.services.stealth.unlock import UnlockKeypad, matches_secret

if TYPE_CHECKING:
    from desist.services.coordination.coordination_core import CoordinationCore

logger = get_logger(__name__)


# Fields a caller may change through update_config()
EDITABLE_FIELDS = frozenset({
    "cover_story",
    "auto_activate_on_background",
    "unlock_sequence",
    "idle_timeout_seconds",
})


class StealthSessionManager:
    """
    Stealth activation, unlock and idle-timeout handling.

    Usage:
        manager = StealthSessionManager(writer, scheduler)
        core = CoordinationCore(stealth=manager, ...)  # attaches itself
        manager.activate(ActivationMethod.MANUAL)
        manager.feed_input("5555")
    """

    def __init__(
        self,
        writer: ResilientSettingsWriter,
        scheduler: TaskScheduler,
        default_config: Optional[StealthConfig] = None,
        keypad: Optional[UnlockKeypad] = None,
    ) -> None:
        """
        Initialize stealth manager.

        Args:
            writer: Persistence writer for the stealth config
            scheduler: Shared keyed timer scheduler
            default_config: Config used when nothing valid is stored
            keypad: Disguise keypad accumulator
        """
        self._writer = writer
        self._scheduler = scheduler
        self._default_config = default_config or StealthConfig()
        self._config = self._default_config
        self._keypad = keypad or UnlockKeypad()
        self._core: Optional["CoordinationCore"] = None
        self._session_id: Optional[str] = None
        self._paused = False

    def attach(self, core: "CoordinationCore") -> None:
        self._core = core

    @property
    def core(self) -> "CoordinationCore":
        if self._core is None:
            raise RuntimeError("StealthSessionManager is not attached to a coordination core")
        return self._core

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def idle_timer_key(self) -> Optional[str]:
        if self._session_id is None:
            return None
        return f"stealth-idle:{self._session_id}"

    @property
    def idle_timer_pending(self) -> bool:
        key = self.idle_timer_key
        return key is not None and self._scheduler.is_pending(key)

    # =========================================================================
    # Configuration
    # =========================================================================

    async def load(self) -> StealthConfig:
        """
        Load the persisted config.

        A missing, unreadable or corrupt value resolves to the default
        config; the app must still be able to leave stealth.
        """
        try:
            raw = await self._writer.store.get(STEALTH_CONFIG_KEY)
            self._config = StealthConfig.from_json(raw) if raw else self._default_config
        except CorruptState as e:
            logger.warning("Stored stealth config corrupt, using defaults", detail=e.detail)
            self._config = self._default_config
        except PersistenceError as e:
            logger.warning("Stealth config unavailable, using defaults", error=str(e))
            self._config = self._default_config
        return self._config

    def get_config(self) -> StealthConfig:
        return self._config

    def update_config(self, **changes) -> StealthConfig:
        """
        Change editable config fields and persist the result.

        Raises:
            ValueError: On unknown fields or invalid values
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown stealth config fields: {', '.join(sorted(unknown))}")

        secret = changes.get("unlock_sequence")
        if secret and not self._keypad.can_type(secret):
            raise ValueError(
                f"unlock_sequence must be 1-{self._keypad.max_length} digits"
            )

        previous_timeout = self._config.idle_timeout_seconds
        self._config = self._config.with_changes(**changes)
        self._persist_config()

        logger.info(
            "Stealth config updated",
            fields=sorted(changes),
            cover_story=self._config.cover_story.value,
        )

        if (
            self._config.idle_timeout_seconds != previous_timeout
            and self.core.get_mode() == Mode.STEALTH
            and not self._paused
        ):
            self._arm_idle_timer()
        return self._config

    def set_cover_story(self, story: CoverStory | str) -> StealthConfig:
        return self.update_config(cover_story=CoverStory(story))

    def reset(self) -> StealthConfig:
        """Restore the default config, keeping nothing from the old one."""
        self._config = self._default_config
        self._keypad.clear()
        self._persist_config()
        return self._config

    def _persist_config(self) -> None:
        self._writer.write(STEALTH_CONFIG_KEY, self._config.to_json())

    # =========================================================================
    # Activation
    # =========================================================================

    def activate(self, method: ActivationMethod | str = ActivationMethod.MANUAL) -> TransitionResult:
        """
        Enter stealth mode.

        Idempotent when already in stealth; rejected while a visible
        emergency run needs the real UI.
        """
        method = ActivationMethod(method)
        core = self.core
        with core.lock:
            result = core.request_transition(
                TransitionEvent.STEALTH_ACTIVATE,
                trigger=f"stealth.activate:{method.value}",
            )
            if result.committed:
                self._session_id = uuid4().hex
                self._paused = False
                self._keypad.clear()
                self._record_toggle()
                self._arm_idle_timer()
                logger.info("Stealth activated", method=method.value)
            elif result.outcome == TransitionOutcome.NOOP:
                self.touch()
        return result

    def deactivate(self, method: DeactivationMethod | str = DeactivationMethod.MANUAL) -> TransitionResult:
        """
        Leave stealth mode.

        Reveals the real UI, or the visible mode of an in-flight run.
        Rejected while a concealed run is capturing through notifying.
        """
        method = DeactivationMethod(method)
        core = self.core
        with core.lock:
            result = core.request_transition(
                TransitionEvent.STEALTH_DEACTIVATE,
                trigger=f"stealth.deactivate:{method.value}",
            )
            if result.committed:
                self._cancel_idle_timer()
                self._session_id = None
                self._paused = False
                self._keypad.clear()
                self._record_toggle()
                logger.info("Stealth deactivated", method=method.value, mode=result.mode.value)
        return result

    def _record_toggle(self) -> None:
        self._config = self._config.record_toggle(datetime.utcnow())
        self._persist_config()

    # =========================================================================
    # Unlock input
    # =========================================================================

    def feed_input(self, token: str) -> Optional[TransitionResult]:
        """
        Offer a complete token typed into the disguise.

        Returns:
            The deactivation result on a match, else None
        """
        if self.core.get_mode() != Mode.STEALTH:
            return None

        self.touch()
        if not matches_secret(token, self._config.unlock_sequence):
            return None

        return self.deactivate(DeactivationMethod.SECRET_SEQUENCE)

    def press_key(self, key: str) -> Optional[TransitionResult]:
        """
        Register one disguise keypad press.

        Returns:
            The deactivation result when a submitted token matches
        """
        if self.core.get_mode() != Mode.STEALTH:
            return None

        self.touch()
        token = self._keypad.press(key)
        if token is None:
            return None
        return self.feed_input(token)

    # =========================================================================
    # Idle timeout
    # =========================================================================

    def touch(self) -> None:
        """Record user interaction; restarts the idle timer."""
        if self._session_id is not None and not self._paused:
            self._arm_idle_timer()

    def _arm_idle_timer(self) -> None:
        key = self.idle_timer_key
        if key is None:
            return
        timeout = self._config.idle_timeout_seconds
        if timeout == 0:
            self._scheduler.cancel(key)
            return
        self._scheduler.schedule(key, timeout, self._on_idle_timeout)

    def _cancel_idle_timer(self) -> None:
        key = self.idle_timer_key
        if key is not None:
            self._scheduler.cancel(key)

    def _on_idle_timeout(self) -> None:
        core = self.core
        with core.lock:
            if core.get_mode() != Mode.STEALTH:
                return

            if core.is_emergency_in_flight():
                track_deferred_timeout()
                logger.info("Stealth idle timeout deferred", reason="emergency in flight")
                self._arm_idle_timer()
                return

            result = self.deactivate(DeactivationMethod.TIMEOUT)
            if result.rejected:
                track_deferred_timeout()
                logger.info("Stealth idle timeout deferred", reason=result.reason)
                self._arm_idle_timer()

    # =========================================================================
    # App lifecycle
    # =========================================================================

    def on_app_backgrounded(self) -> Optional[TransitionResult]:
        """
        The app moved to the background.

        Enters stealth when auto-activation is configured; otherwise an
        active stealth session's idle timer is paused.
        """
        core = self.core
        with core.lock:
            if core.get_mode() == Mode.STEALTH:
                self._paused = True
                self._cancel_idle_timer()
                return None

            if self._config.auto_activate_on_background:
                return self.activate(ActivationMethod.AUTO_BACKGROUND)
        return None

    def on_app_foregrounded(self) -> None:
        core = self.core
        with core.lock:
            self._paused = False
            if core.get_mode() == Mode.STEALTH:
                self._arm_idle_timer()

    def resume_session(self) -> None:
        """Start a session for stealth restored from persisted state."""
        if self._session_id is None:
            self._session_id = uuid4().hex
        self._paused = False
        self._arm_idle_timer()

    def shutdown(self) -> None:
        self._cancel_idle_timer()
