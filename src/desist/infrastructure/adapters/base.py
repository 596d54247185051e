"""
Emergency Adapter Interfaces

Contracts for the external collaborators the emergency pipeline drives:
evidence capture, encryption, upload, contact notification, secure wipe
and device location.

ARCHITECTURE: The pipeline only ever talks to these interfaces. The
mobile host provides real implementations (camera, storage bucket,
SMS); simulated ones live in `simulated.py`.

All calls are async and may suspend the pipeline. Failures are raised
as AdapterError; the pipeline owns timeouts and retries.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from desist.domain.models.emergency_contact import EmergencyContact
from desist.domain.models.evidence import Coords, MediaHandle, UploadReceipt


class EvidenceCaptureAdapter(ABC):
    """Starts and stops audio/video recording."""

    @abstractmethod
    async def start_capture(self) -> MediaHandle:
        """
        Begin recording.

        Returns:
            Handle to the local recording

        Raises:
            AdapterError: If recording cannot start
        """
        pass

    @abstractmethod
    async def stop_capture(self, handle: MediaHandle) -> None:
        """
        Finalize a recording so it can be encrypted.

        Raises:
            AdapterError: If the recording cannot be finalized
        """
        pass


class EncryptionAdapter(ABC):
    """
    Encrypts a finalized recording.

    The returned handle replaces the input; the adapter is responsible
    for removing any plaintext copy.
    """

    @abstractmethod
    async def encrypt(self, handle: MediaHandle) -> MediaHandle:
        pass


class EvidenceUploadAdapter(ABC):
    """Stores encrypted evidence remotely."""

    @abstractmethod
    async def upload(self, handle: MediaHandle) -> UploadReceipt:
        """
        Upload evidence.

        Returns:
            Receipt with the durable remote reference

        Raises:
            AdapterError: If the upload did not complete
        """
        pass


class NotificationDispatchAdapter(ABC):
    """Sends SMS/push/location alerts to emergency contacts."""

    @abstractmethod
    async def notify(
        self,
        contacts: Sequence[EmergencyContact],
        message: str,
        location: Optional[Coords] = None,
    ) -> None:
        """
        Dispatch an alert.

        Raises:
            AdapterError: If no alert could be dispatched
        """
        pass


class SecureWipeAdapter(ABC):
    """Destroys local evidence after it has been escalated."""

    @abstractmethod
    async def wipe(self, handle: MediaHandle) -> None:
        """
        Destroy a local recording.

        Raises:
            MediaAlreadyGone: If the media no longer exists
            AdapterError: If the media exists but could not be destroyed
        """
        pass


class LocationProvider(ABC):
    """Best-effort device location."""

    @abstractmethod
    async def current_location(self) -> Optional[Coords]:
        """Return the current position, or None if unavailable."""
        pass


class EmergencyAdapters:
    """
    Bundle of the collaborators one pipeline needs.

    Usage:
        adapters = EmergencyAdapters(capture=..., encryption=..., upload=...,
                                     notification=..., wipe=...)
    """

    def __init__(
        self,
        *,
        capture: EvidenceCaptureAdapter,
        encryption: EncryptionAdapter,
        upload: EvidenceUploadAdapter,
        notification: NotificationDispatchAdapter,
        wipe: SecureWipeAdapter,
        location: Optional[LocationProvider] = None,
    ) -> None:
        self.capture = capture
        self.encryption = encryption
        self.upload = upload
        self.notification = notification
        self.wipe = wipe
        self.location = location
