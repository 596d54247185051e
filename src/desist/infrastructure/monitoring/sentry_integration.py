"""
Sentry Error Tracking Integration

Error tracking with sensitive data scrubbing.
Correlates failed emergency runs with run IDs for debugging.

SECURITY: Unlock secrets, phone numbers and contact names are stripped
before anything is sent to Sentry.
"""

import re
from typing import Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from desist.config.logging_config import get_logger

logger = get_logger(__name__)

# Patterns for sensitive data scrubbing
SENSITIVE_PATTERNS = [
    r"password[\"']?\s*[:=]\s*[\"']?[^\"'\s,}]+",
    r"token[\"']?\s*[:=]\s*[\"']?[^\"'\s,}]+",
    r"secret[\"']?\s*[:=]\s*[\"']?[^\"'\s,}]+",
    r"unlock_sequence[\"']?\s*[:=]\s*[\"']?[^\"'\s,}]+",
    # Phone numbers: international (+...) or 3-3-4 grouped; dates and times are left alone
    r"\+\d[\d\s\-()]{6,}\d",
    r"(?<![\d\-:])\(?\d{3}\)?[\s.\-]?\d{3}[\s.\-]\d{4}(?![\d\-:])",
]

SENSITIVE_KEYS = frozenset({
    "password",
    "token",
    "secret",
    "authorization",
    "credential",
    "unlock_sequence",
    "pin_code",
    "phone",
    "contact_name",
    "contacts",
})


def _scrub_string(value: str) -> str:
    """Scrub sensitive patterns from string."""
    result = value
    for pattern in SENSITIVE_PATTERNS:
        result = re.sub(pattern, "[REDACTED]", result, flags=re.IGNORECASE)
    return result


def _scrub_dict(data: dict) -> dict:
    """Recursively scrub sensitive data from dictionary."""
    result = {}
    for key, value in data.items():
        key_lower = str(key).lower().replace("-", "_")

        if any(sensitive in key_lower for sensitive in SENSITIVE_KEYS):
            result[key] = "[REDACTED]"
        elif isinstance(value, dict):
            result[key] = _scrub_dict(value)
        elif isinstance(value, list):
            result[key] = [
                _scrub_dict(item) if isinstance(item, dict)
                else _scrub_string(item) if isinstance(item, str)
                else item
                for item in value
            ]
        elif isinstance(value, str):
            result[key] = _scrub_string(value)
        else:
            result[key] = value

    return result


def before_send(event: dict, hint: dict) -> Optional[dict]:
    """
    Process event before sending to Sentry.

    - Scrubs request bodies and headers
    - Scrubs breadcrumbs and extra context
    """
    if "request" in event:
        if isinstance(event["request"].get("data"), dict):
            event["request"]["data"] = _scrub_dict(event["request"]["data"])
        if isinstance(event["request"].get("headers"), dict):
            event["request"]["headers"] = _scrub_dict(event["request"]["headers"])

    if "breadcrumbs" in event:
        for breadcrumb in event.get("breadcrumbs", {}).get("values", []):
            if "data" in breadcrumb and isinstance(breadcrumb["data"], dict):
                breadcrumb["data"] = _scrub_dict(breadcrumb["data"])
            if "message" in breadcrumb and isinstance(breadcrumb["message"], str):
                breadcrumb["message"] = _scrub_string(breadcrumb["message"])

    if "extra" in event:
        event["extra"] = _scrub_dict(event["extra"])

    return event


def init_sentry(
    dsn: str,
    environment: str = "development",
    release: str = "desist@0.1.0",
    sample_rate: float = 1.0,
    traces_sample_rate: float = 0.0,
) -> bool:
    """
    Initialize Sentry error tracking.

    Args:
        dsn: Sentry DSN (empty disables tracking)
        environment: Environment name
        release: Release version
        sample_rate: Error sample rate (1.0 = all errors)
        traces_sample_rate: Performance tracing rate

    Returns:
        True if Sentry was initialized
    """
    if not dsn:
        logger.warning("Sentry DSN not configured, error tracking disabled")
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        release=release,
        sample_rate=sample_rate,
        traces_sample_rate=traces_sample_rate,
        before_send=before_send,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            AsyncioIntegration(),
            LoggingIntegration(
                level=None,
                event_level=None,
            ),
        ],
        send_default_pii=False,
        attach_stacktrace=True,
        max_breadcrumbs=50,
    )

    logger.info(
        "Sentry initialized",
        environment=environment,
        release=release,
    )
    return True


def capture_safety_event(
    message: str,
    level: str = "warning",
    extra: Optional[dict] = None,
) -> None:
    """
    Capture safety-related event for monitoring.

    Used for emergency runs that failed to escalate evidence.
    A no-op when Sentry is not initialized.
    """
    with sentry_sdk.new_scope() as scope:
        scope.set_tag("category", "safety")
        if extra:
            for key, value in _scrub_dict(extra).items():
                scope.set_extra(key, value)

        sentry_sdk.capture_message(message, level="error" if level == "error" else "warning")


def capture_exception_with_context(
    exception: Exception,
    run_id: Optional[str] = None,
    extra: Optional[dict] = None,
) -> Optional[str]:
    """
    Capture exception with additional context.

    Returns: Sentry event ID
    """
    with sentry_sdk.new_scope() as scope:
        if run_id:
            scope.set_tag("run_id", run_id)
        if extra:
            for key, value in _scrub_dict(extra).items():
                scope.set_extra(key, value)

        return sentry_sdk.capture_exception(exception)
