"""
Evidence Value Objects

Handles exchanged between the emergency pipeline and its adapters.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class MediaHandle:
    """
    Reference to a local evidence recording.

    Ownership moves capture -> pipeline run -> encryption -> upload -> wipe;
    at most one holder at a time.
    """

    handle_id: str
    uri: str
    encrypted: bool = False
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True)
class UploadReceipt:
    """Durable remote copy of the evidence."""

    remote_ref: str
    uploaded_at: datetime = field(default_factory=datetime.utcnow)
    size_bytes: Optional[int] = None


@dataclass(frozen=True)
class Coords:
    """Device location attached to alerts."""

    latitude: float
    longitude: float
    accuracy_m: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "accuracy_m": self.accuracy_m,
        }
