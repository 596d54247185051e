"""
Emergency adapter package.

Provides the collaborator interfaces and simulated implementations.
"""

from desist.infrastructure.adapters.base import (
    EvidenceCaptureAdapter,
    EncryptionAdapter,
    EvidenceUploadAdapter,
    NotificationDispatchAdapter,
    SecureWipeAdapter,
    LocationProvider,
    EmergencyAdapters,
)
from desist.infrastructure.adapters.simulated import (
    SimulatedBehavior,
    SimulatedDevice,
    SimulatedAdapterSet,
    build_simulated_adapters,
)

__all__ = [
    # Interfaces
    "EvidenceCaptureAdapter",
    "EncryptionAdapter",
    "EvidenceUploadAdapter",
    "NotificationDispatchAdapter",
    "SecureWipeAdapter",
    "LocationProvider",
    "EmergencyAdapters",
    # Simulation
    "SimulatedBehavior",
    "SimulatedDevice",
    "SimulatedAdapterSet",
    "build_simulated_adapters",
]
