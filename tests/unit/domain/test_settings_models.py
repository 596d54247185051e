"""
Unit Tests for Persisted Models

Tests JSON round-trips of stored values, secret handling and corrupt
value detection.
"""

import json
from datetime import datetime

import pytest

from desist.domain.enums.modes import CoverStory, Mode
from desist.domain.exceptions import CorruptState
from desist.domain.models.audit_entry import AuditEntry
from desist.domain.models.emergency_contact import (
    EmergencyAlertConfig,
    EmergencyContact,
    contacts_from_json,
    contacts_to_json,
)
from desist.domain.models.stealth_config import StealthConfig


class TestStealthConfig:
    """Tests for the stealth configuration model."""

    def test_public_view_hides_secret(self):
        config = StealthConfig(unlock_sequence="5555")

        public = config.to_dict()

        assert "unlock_sequence" not in public
        assert public["has_unlock_sequence"] is True
        assert "5555" not in repr(config)

    def test_stored_form_keeps_secret_and_stats(self):
        toggled_at = datetime(2025, 1, 1, 12, 0, 0)
        config = StealthConfig(
            cover_story=CoverStory.NOTES,
            unlock_sequence="5555",
            idle_timeout_seconds=60,
        ).record_toggle(toggled_at)

        restored = StealthConfig.from_json(config.to_json())

        assert restored == config
        assert restored.toggle_count == 1
        assert restored.last_toggle_at == toggled_at

    def test_with_changes_coerces_cover_story(self):
        config = StealthConfig().with_changes(cover_story="browser")
        assert config.cover_story == CoverStory.BROWSER

    def test_negative_timeout_rejected(self):
        with pytest.raises(ValueError):
            StealthConfig(idle_timeout_seconds=-1)

    @pytest.mark.parametrize("secret", ["55a5", "5 55", "５５５５"])
    def test_non_digit_secret_rejected(self, secret):
        with pytest.raises(ValueError):
            StealthConfig(unlock_sequence=secret)

    def test_stored_non_digit_secret_is_corrupt(self):
        raw = json.dumps({"cover_story": "calculator", "unlock_sequence": "abcd"})

        with pytest.raises(CorruptState):
            StealthConfig.from_json(raw)

    @pytest.mark.parametrize("raw", [
        "not json",
        json.dumps({"cover_story": "spreadsheet"}),
        json.dumps({"auto_activate_on_background": True}),
        json.dumps(["calculator"]),
    ])
    def test_corrupt_values_raise_corrupt_state(self, raw):
        with pytest.raises(CorruptState) as exc_info:
            StealthConfig.from_json(raw)
        assert exc_info.value.key == "stealth_config"


class TestContactsSerialization:
    """Tests for the stored contact list."""

    def test_contacts_round_trip(self):
        contacts = [
            EmergencyContact(name="Alex", phone="+15550100", is_primary=True),
            EmergencyContact(name="Sam", phone="+15550101", relationship="sister"),
        ]

        assert contacts_from_json(contacts_to_json(contacts)) == contacts

    def test_phone_not_in_repr(self):
        contact = EmergencyContact(name="Alex", phone="+15550100")
        assert "+15550100" not in repr(contact)

    @pytest.mark.parametrize("raw", ["{", json.dumps({"id": "x"}), json.dumps([{"name": "A"}])])
    def test_corrupt_contacts_raise(self, raw):
        with pytest.raises(CorruptState):
            contacts_from_json(raw)

    def test_alert_config_defaults_missing_fields(self):
        default = EmergencyAlertConfig(message="help", max_notified_contacts=5)

        config = EmergencyAlertConfig.from_json(json.dumps({"message": "hi"}), default=default)

        assert config.message == "hi"
        assert config.max_notified_contacts == 5
        assert config.location_sharing_enabled is False


class TestAuditEntry:
    """Tests for audit records."""

    def test_json_line_contains_transition(self):
        entry = AuditEntry(
            from_mode=Mode.NORMAL,
            to_mode=Mode.STEALTH,
            trigger="stealth.activate:gesture",
        )

        data = json.loads(entry.to_json_line())

        assert data["from_mode"] == "normal"
        assert data["to_mode"] == "stealth"
        assert data["trigger"] == "stealth.activate:gesture"
        assert data["outcome"] == "committed"
        assert data["run_id"] is None
