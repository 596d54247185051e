"""
Unit Tests for Configuration and Logging

Tests environment loading of nested settings, bounds validation and
log redaction of secrets.
"""

import pytest
from pydantic import ValidationError

from desist.config import Settings
from desist.config.logging_config import _redact_sensitive_data
from desist.config.settings import EmergencySettings


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.emergency.countdown_seconds == 5.0
        assert settings.emergency.max_retries == 2
        assert settings.stealth.default_cover_story == "calculator"
        assert not settings.is_production()

    def test_nested_groups_read_their_own_prefix(self, monkeypatch):
        monkeypatch.setenv("DESIST_EMERGENCY_COUNTDOWN_SECONDS", "10")
        monkeypatch.setenv("DESIST_STEALTH_DEFAULT_COVER_STORY", "notes")
        monkeypatch.setenv("DESIST_PERSISTENCE_BACKEND", "memory")

        settings = Settings(_env_file=None)

        assert settings.emergency.countdown_seconds == 10.0
        assert settings.stealth.default_cover_story == "notes"
        assert settings.persistence.backend == "memory"

    def test_sentry_dsn_is_secret(self, monkeypatch):
        monkeypatch.setenv("DESIST_SENTRY_DSN", "https://key@example.invalid/1")

        settings = Settings(_env_file=None)

        assert "key@" not in repr(settings)
        assert settings.sentry_dsn.get_secret_value().startswith("https://")

    @pytest.mark.parametrize("field,value", [
        ("countdown_seconds", -1),
        ("max_retries", 11),
        ("upload_timeout_seconds", 0),
        ("panic_tap_count", 1),
    ])
    def test_out_of_range_values_rejected(self, field, value):
        with pytest.raises(ValidationError):
            EmergencySettings(**{field: value})


class TestLogRedaction:
    """SECURITY: secrets never reach log output."""

    def test_sensitive_keys_redacted(self):
        event = _redact_sensitive_data(None, "info", {
            "event": "Stealth config updated",
            "unlock_sequence": "5555",
            "phone": "+15550100",
            "fields": ["cover_story"],
        })

        assert event["unlock_sequence"] == "[REDACTED]"
        assert event["phone"] == "[REDACTED]"
        assert event["fields"] == ["cover_story"]

    def test_nested_values_redacted(self):
        event = _redact_sensitive_data(None, "info", {"contact": {"phone": "+15550100", "name": "Alex"}})

        assert event["contact"] == {"phone": "[REDACTED]", "name": "Alex"}
