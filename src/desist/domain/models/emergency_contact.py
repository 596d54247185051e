"""
Emergency Contact Models

People notified when an emergency pipeline reaches the notifying stage,
and the user-editable alert configuration.

PRIVACY: Phone numbers are personal data of third parties. They are
serialized for the settings store only and never logged.
"""

import json
from dataclasses import dataclass, field, replace
from typing import Optional
from uuid import uuid4

from desist.domain.exceptions import CorruptState


CONTACTS_KEY = "emergency_contacts"
EMERGENCY_CONFIG_KEY = "emergency_config"


def _new_contact_id() -> str:
    return f"contact_{uuid4().hex[:12]}"


@dataclass(frozen=True)
class EmergencyContact:
    """
    A person to alert during an emergency.

    Attributes:
        id: Stable contact identifier
        name: Display name
        phone: Phone number used for SMS/call
        relationship: Free-text relationship (e.g. "sister")
        is_primary: Primary contact is notified first
    """

    name: str
    phone: str = field(repr=False)
    relationship: str = ""
    is_primary: bool = False
    id: str = field(default_factory=_new_contact_id)

    def with_primary(self, is_primary: bool) -> "EmergencyContact":
        return replace(self, is_primary=is_primary)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "relationship": self.relationship,
            "is_primary": self.is_primary,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EmergencyContact":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            phone=str(data["phone"]),
            relationship=str(data.get("relationship", "")),
            is_primary=bool(data.get("is_primary", False)),
        )


def contacts_to_json(contacts: list[EmergencyContact]) -> str:
    return json.dumps([c.to_dict() for c in contacts])


def contacts_from_json(raw: str) -> list[EmergencyContact]:
    """
    Parse a stored contact list.

    Raises:
        CorruptState: If the value is not a list of contacts
    """
    try:
        data = json.loads(raw)
        if not isinstance(data, list):
            raise TypeError("expected a list")
        return [EmergencyContact.from_dict(item) for item in data]
    except (ValueError, KeyError, TypeError) as e:
        raise CorruptState(CONTACTS_KEY, str(e)) from e


@dataclass(frozen=True)
class EmergencyAlertConfig:
    """
    What is sent to contacts when a pipeline notifies.

    Attributes:
        message: Alert text sent to every contact
        location_sharing_enabled: Attach current coordinates
        max_notified_contacts: Upper bound on contacts messaged (primary first)
    """

    message: str
    location_sharing_enabled: bool = False
    max_notified_contacts: int = 3

    def with_changes(self, **changes) -> "EmergencyAlertConfig":
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "location_sharing_enabled": self.location_sharing_enabled,
            "max_notified_contacts": self.max_notified_contacts,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, raw: str, default: Optional["EmergencyAlertConfig"] = None) -> "EmergencyAlertConfig":
        try:
            data = json.loads(raw)
            return cls(
                message=str(data["message"]),
                location_sharing_enabled=bool(data.get("location_sharing_enabled", False)),
                max_notified_contacts=int(
                    data.get(
                        "max_notified_contacts",
                        default.max_notified_contacts if default else 3,
                    )
                ),
            )
        except (ValueError, KeyError, TypeError) as e:
            raise CorruptState(EMERGENCY_CONFIG_KEY, str(e)) from e
