"""
Simulated Emergency Adapters

In-process adapter implementations for development and tests.
Each adapter can be scripted to fail a number of times or to respond
slowly, and every call is written to a shared journal so call order
can be inspected.

NOTE: Nothing here records, encrypts, uploads or sends anything real.
"""

import asyncio
from dataclasses import dataclass, field, replace
from typing import Optional, Sequence
from uuid import uuid4

from desist.domain.exceptions import AdapterError, MediaAlreadyGone
from desist.domain.models.emergency_contact import EmergencyContact
from desist.domain.models.evidence import Coords, MediaHandle, UploadReceipt
from desist.infrastructure.adapters.base import (
    EmergencyAdapters,
    EncryptionAdapter,
    EvidenceCaptureAdapter,
    EvidenceUploadAdapter,
    LocationProvider,
    NotificationDispatchAdapter,
    SecureWipeAdapter,
)


@dataclass
class SimulatedBehavior:
    """
    Scripted behaviour for one adapter operation.

    Attributes:
        fail_times: Number of upcoming calls that raise AdapterError
        latency_seconds: Delay before every call completes
        retryable: Whether injected errors are marked retryable
    """

    fail_times: int = 0
    latency_seconds: float = 0.0
    retryable: bool = True
    calls: int = 0

    async def perform(self, operation: str) -> None:
        self.calls += 1
        if self.latency_seconds:
            await asyncio.sleep(self.latency_seconds)
        if self.fail_times > 0:
            self.fail_times -= 1
            raise AdapterError(
                f"simulated {operation} failure",
                stage=operation,
                is_retryable=self.retryable,
            )


@dataclass
class SimulatedDevice:
    """Shared device state: local files plus an ordered call journal."""

    files: set[str] = field(default_factory=set)
    remote: dict[str, str] = field(default_factory=dict)
    journal: list[tuple[str, str]] = field(default_factory=list)

    def log(self, operation: str, subject: str = "") -> None:
        self.journal.append((operation, subject))

    def operations(self) -> list[str]:
        return [op for op, _ in self.journal]


class SimulatedCaptureAdapter(EvidenceCaptureAdapter):
    def __init__(self, device: SimulatedDevice, behavior: Optional[SimulatedBehavior] = None) -> None:
        self._device = device
        self.behavior = behavior or SimulatedBehavior()
        self.stop_behavior = SimulatedBehavior()

    async def start_capture(self) -> MediaHandle:
        await self.behavior.perform("capture")
        handle_id = uuid4().hex
        handle = MediaHandle(handle_id=handle_id, uri=f"file:///evidence/{handle_id}.mp4")
        self._device.files.add(handle.uri)
        self._device.log("capture.start", handle_id)
        return handle

    async def stop_capture(self, handle: MediaHandle) -> None:
        await self.stop_behavior.perform("capture")
        self._device.log("capture.stop", handle.handle_id)


class SimulatedEncryptionAdapter(EncryptionAdapter):
    def __init__(self, device: SimulatedDevice, behavior: Optional[SimulatedBehavior] = None) -> None:
        self._device = device
        self.behavior = behavior or SimulatedBehavior()

    async def encrypt(self, handle: MediaHandle) -> MediaHandle:
        await self.behavior.perform("encrypt")
        encrypted = replace(handle, uri=f"{handle.uri}.enc", encrypted=True)
        self._device.files.discard(handle.uri)
        self._device.files.add(encrypted.uri)
        self._device.log("encrypt", handle.handle_id)
        return encrypted


class SimulatedUploadAdapter(EvidenceUploadAdapter):
    def __init__(self, device: SimulatedDevice, behavior: Optional[SimulatedBehavior] = None) -> None:
        self._device = device
        self.behavior = behavior or SimulatedBehavior()

    async def upload(self, handle: MediaHandle) -> UploadReceipt:
        self._device.log("upload.begin", handle.handle_id)
        try:
            await self.behavior.perform("upload")
        except AdapterError:
            self._device.log("upload.error", handle.handle_id)
            raise
        remote_ref = f"recordings/panic-{handle.handle_id}.mp4"
        self._device.remote[remote_ref] = handle.uri
        self._device.log("upload.done", handle.handle_id)
        return UploadReceipt(remote_ref=remote_ref)


class SimulatedNotificationAdapter(NotificationDispatchAdapter):
    def __init__(self, device: SimulatedDevice, behavior: Optional[SimulatedBehavior] = None) -> None:
        self._device = device
        self.behavior = behavior or SimulatedBehavior()
        self.sent: list[tuple[list[str], str, Optional[Coords]]] = []

    async def notify(
        self,
        contacts: Sequence[EmergencyContact],
        message: str,
        location: Optional[Coords] = None,
    ) -> None:
        await self.behavior.perform("notify")
        self.sent.append(([c.id for c in contacts], message, location))
        self._device.log("notify", ",".join(c.id for c in contacts))


class SimulatedWipeAdapter(SecureWipeAdapter):
    def __init__(self, device: SimulatedDevice, behavior: Optional[SimulatedBehavior] = None) -> None:
        self._device = device
        self.behavior = behavior or SimulatedBehavior()

    async def wipe(self, handle: MediaHandle) -> None:
        await self.behavior.perform("wipe")
        if handle.uri not in self._device.files:
            self._device.log("wipe.gone", handle.handle_id)
            raise MediaAlreadyGone(handle.handle_id)
        self._device.files.discard(handle.uri)
        self._device.log("wipe", handle.handle_id)


class SimulatedLocationProvider(LocationProvider):
    def __init__(self, coords: Optional[Coords] = None) -> None:
        self.coords = coords

    async def current_location(self) -> Optional[Coords]:
        return self.coords


@dataclass
class SimulatedAdapterSet:
    """Simulated adapters plus the device they share."""

    device: SimulatedDevice
    capture: SimulatedCaptureAdapter
    encryption: SimulatedEncryptionAdapter
    upload: SimulatedUploadAdapter
    notification: SimulatedNotificationAdapter
    wipe: SimulatedWipeAdapter
    location: SimulatedLocationProvider

    def bundle(self) -> EmergencyAdapters:
        return EmergencyAdapters(
            capture=self.capture,
            encryption=self.encryption,
            upload=self.upload,
            notification=self.notification,
            wipe=self.wipe,
            location=self.location,
        )


def build_simulated_adapters(coords: Optional[Coords] = None) -> SimulatedAdapterSet:
    """Create a fresh set of simulated adapters sharing one device."""
    device = SimulatedDevice()
    return SimulatedAdapterSet(
        device=device,
        capture=SimulatedCaptureAdapter(device),
        encryption=SimulatedEncryptionAdapter(device),
        upload=SimulatedUploadAdapter(device),
        notification=SimulatedNotificationAdapter(device),
        wipe=SimulatedWipeAdapter(device),
        location=SimulatedLocationProvider(coords),
    )
