"""
Domain Exceptions

Error taxonomy for the coordination core.

- TransitionRejected: illegal mode change, not a bug
- AdapterError / AdapterTimeout: capture, encrypt, upload, notify or wipe failure
- MediaAlreadyGone: wipe target no longer exists (distinct from failure)
- PersistenceError: settings store unavailable
- CorruptState: stored value fails to parse
- ContactNotFound: unknown emergency contact ID
"""

from typing import Optional


class DesistError(Exception):
    """Base exception for the coordination core."""


class TransitionRejected(DesistError):
    """
    A requested mode transition is illegal in the current state.

    Raised before any side effect is applied.
    """

    def __init__(self, reason: str, mode: str, event: str) -> None:
        super().__init__(f"{event} rejected in {mode}: {reason}")
        self.reason = reason
        self.mode = mode
        self.event = event


class InvalidStageTransition(DesistError):
    """A pipeline run was asked to skip a stage or move backwards."""


class AdapterError(DesistError):
    """Base exception for external collaborator failures."""

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        is_retryable: bool = True,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.stage = stage
        self.is_retryable = is_retryable
        self.original_error = original_error


class AdapterTimeout(AdapterError):
    """An adapter call exceeded its stage timeout."""

    def __init__(self, stage: str, timeout_seconds: float) -> None:
        super().__init__(
            f"{stage} adapter call timed out after {timeout_seconds}s",
            stage=stage,
            is_retryable=True,
        )
        self.timeout_seconds = timeout_seconds


class MediaAlreadyGone(DesistError):
    """The media handle to wipe no longer exists on the device."""

    def __init__(self, handle_id: str) -> None:
        super().__init__(f"Media {handle_id} already removed")
        self.handle_id = handle_id


class PersistenceError(DesistError):
    """The settings store could not be read or written."""

    def __init__(self, message: str, key: Optional[str] = None) -> None:
        super().__init__(message)
        self.key = key


class CorruptState(DesistError):
    """A persisted value could not be parsed."""

    def __init__(self, key: str, detail: str = "") -> None:
        super().__init__(f"Corrupt value for {key}: {detail}")
        self.key = key
        self.detail = detail


class ContactNotFound(DesistError):
    """No emergency contact with the given ID."""

    def __init__(self, contact_id: str) -> None:
        super().__init__(f"Emergency contact {contact_id} not found")
        self.contact_id = contact_id
