"""
Unit Tests for the Stealth Session Manager

Tests activation, unlock input, idle timeout handling and app
lifecycle hooks through a loaded coordination core.
"""

import asyncio

import pytest

from desist.domain.enums.modes import (
    ActivationMethod,
    CoverStory,
    DeactivationMethod,
    Mode,
    TransitionOutcome,
)
from desist.domain.models.stealth_config import STEALTH_CONFIG_KEY, StealthConfig


UNLOCK_CODE = "5555"


class TestActivation:
    """Tests for entering and leaving stealth."""

    async def test_activate_commits_and_starts_session(self, core):
        result = core.activate_stealth(ActivationMethod.GESTURE)

        assert result.committed
        assert core.get_mode() == Mode.STEALTH
        assert core.stealth.session_id is not None
        assert core.stealth.idle_timer_pending

    async def test_activate_twice_is_noop(self, core):
        core.activate_stealth()
        session = core.stealth.session_id

        result = core.activate_stealth()

        assert result.outcome == TransitionOutcome.NOOP
        assert core.stealth.session_id == session

    async def test_deactivate_returns_to_normal(self, core):
        core.activate_stealth()

        result = core.deactivate_stealth(DeactivationMethod.GESTURE)

        assert result.committed
        assert core.get_mode() == Mode.NORMAL
        assert core.stealth.session_id is None
        assert not core.stealth.idle_timer_pending

    async def test_deactivate_when_normal_is_noop(self, core):
        result = core.deactivate_stealth()
        assert result.outcome == TransitionOutcome.NOOP

    async def test_toggles_are_counted(self, core):
        core.activate_stealth()
        core.deactivate_stealth()

        config = core.get_stealth_config()

        assert config.toggle_count == 2
        assert config.last_toggle_at is not None

    async def test_invalid_method_rejected(self, core):
        with pytest.raises(ValueError):
            core.activate_stealth("shake")


class TestUnlockInput:
    """Tests for the secret unlock sequence."""

    async def test_exact_sequence_unlocks(self, core):
        core.activate_stealth()

        result = core.feed_unlock_input(UNLOCK_CODE)

        assert result is not None and result.committed
        assert core.get_mode() == Mode.NORMAL
        assert core.audit.entries()[-1].trigger == "stealth.deactivate:secret_sequence"

    @pytest.mark.parametrize("token", ["555", "55555", "05555"])
    async def test_partial_or_padded_sequence_keeps_stealth(self, core, token):
        core.activate_stealth()

        assert core.feed_unlock_input(token) is None
        assert core.get_mode() == Mode.STEALTH

    async def test_input_ignored_outside_stealth(self, core):
        assert core.feed_unlock_input(UNLOCK_CODE) is None
        assert core.get_mode() == Mode.NORMAL

    async def test_keypad_submission_unlocks(self, core):
        core.activate_stealth()
        result = None

        for key in ["1", "+", *UNLOCK_CODE, "="]:
            result = core.press_unlock_key(key)

        assert result is not None and result.committed
        assert core.get_mode() == Mode.NORMAL

    async def test_keypad_without_submit_keeps_stealth(self, core):
        core.activate_stealth()

        for key in UNLOCK_CODE:
            assert core.press_unlock_key(key) is None

        assert core.get_mode() == Mode.STEALTH

    async def test_keypad_input_longer_than_cap_length_secret_keeps_stealth(self, core):
        secret = "1234567890123456"
        core.update_stealth_config(unlock_sequence=secret)
        core.activate_stealth()

        results = [core.press_unlock_key(key) for key in [*secret, "9", "="]]

        assert all(result is None for result in results)
        assert core.get_mode() == Mode.STEALTH

        result = None
        for key in [*secret, "="]:
            result = core.press_unlock_key(key)
        assert result is not None and result.committed

    async def test_no_secret_configured_never_unlocks(self, core):
        core.update_stealth_config(unlock_sequence="")
        core.activate_stealth()

        assert core.feed_unlock_input("") is None
        assert core.get_mode() == Mode.STEALTH


class TestIdleTimeout:
    """Tests for the stealth idle timer."""

    async def test_idle_timeout_reverts_to_normal(self, core):
        core.update_stealth_config(idle_timeout_seconds=1)
        core.activate_stealth()

        await asyncio.sleep(1.2)

        assert core.get_mode() == Mode.NORMAL
        assert core.audit.entries()[-1].trigger == "stealth.deactivate:timeout"

    async def test_zero_timeout_disables_timer(self, core):
        core.update_stealth_config(idle_timeout_seconds=0)
        core.activate_stealth()

        assert not core.stealth.idle_timer_pending

    async def test_input_restarts_timer(self, core):
        core.activate_stealth()
        key = core.stealth.idle_timer_key
        first_deadline = core.scheduler.deadline(key)

        await asyncio.sleep(0.02)
        core.feed_unlock_input("0000")

        assert core.scheduler.deadline(key) > first_deadline

    async def test_timeout_change_rearms_running_timer(self, core):
        core.activate_stealth()
        key = core.stealth.idle_timer_key
        loop = asyncio.get_running_loop()

        core.update_stealth_config(idle_timeout_seconds=10)

        assert core.scheduler.deadline(key) <= loop.time() + 10

    async def test_timeout_deferred_while_emergency_in_flight(self, core):
        """The idle timer never reveals a concealed run."""
        core.activate_stealth()
        core.enter_emergency_from_stealth()

        core.stealth._on_idle_timeout()

        assert core.get_mode() == Mode.STEALTH
        assert core.stealth.idle_timer_pending


class TestAppLifecycle:
    """Tests for background/foreground hooks."""

    async def test_background_auto_activates_when_configured(self, core):
        core.update_stealth_config(auto_activate_on_background=True)

        result = core.on_app_backgrounded()

        assert result is not None and result.committed
        assert core.get_mode() == Mode.STEALTH
        assert core.audit.entries()[-1].trigger == "stealth.activate:auto_background"

    async def test_background_without_auto_activation_does_nothing(self, core):
        assert core.on_app_backgrounded() is None
        assert core.get_mode() == Mode.NORMAL

    async def test_background_pauses_and_foreground_resumes_timer(self, core):
        core.activate_stealth()

        core.on_app_backgrounded()
        assert not core.stealth.idle_timer_pending

        core.on_app_foregrounded()
        assert core.stealth.idle_timer_pending


class TestConfiguration:
    """Tests for stealth config persistence."""

    async def test_update_persists_config(self, core, store):
        core.update_stealth_config(cover_story="notes")
        await core.writer.flush()

        stored = StealthConfig.from_json(await store.get(STEALTH_CONFIG_KEY))

        assert stored.cover_story == CoverStory.NOTES
        assert stored.unlock_sequence == UNLOCK_CODE

    async def test_unknown_field_rejected(self, core):
        with pytest.raises(ValueError):
            core.update_stealth_config(toggle_count=10)

    @pytest.mark.parametrize("secret", ["12345678901234567890", "55a5", "５５５５"])
    async def test_secret_the_keypad_cannot_type_rejected(self, core, secret):
        with pytest.raises(ValueError):
            core.update_stealth_config(unlock_sequence=secret)

        assert core.get_stealth_config().unlock_sequence == UNLOCK_CODE

    async def test_corrupt_stored_config_loads_defaults(self, make_core, store):
        await store.set(STEALTH_CONFIG_KEY, "{broken")
        fresh = make_core()

        await fresh.load()

        assert fresh.get_stealth_config().cover_story == CoverStory.CALCULATOR
        assert not fresh.get_stealth_config().has_unlock_sequence
        await fresh.shutdown()

    async def test_stealth_restored_after_restart(self, core, make_core):
        core.activate_stealth()
        await core.writer.flush()
        restarted = make_core()

        mode = await restarted.load()

        assert mode == Mode.STEALTH
        assert restarted.stealth.idle_timer_pending
        assert restarted.feed_unlock_input(UNLOCK_CODE).committed
        await restarted.shutdown()
