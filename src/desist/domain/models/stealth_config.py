"""
Stealth Configuration

Disguise settings owned by the stealth session manager.

SECURITY: unlock_sequence is the secret that reveals the real app.
It is excluded from to_dict() and must never be logged.
"""

import json
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional

from desist.domain.enums.modes import CoverStory
from desist.domain.exceptions import CorruptState


STEALTH_CONFIG_KEY = "stealth_config"


@dataclass(frozen=True)
class StealthConfig:
    """
    Disguise configuration.

    Attributes:
        cover_story: Disguise UI shown in stealth mode
        auto_activate_on_background: Enter stealth when the app is backgrounded
        unlock_sequence: Secret token typed into the disguise to exit
        idle_timeout_seconds: Idle time before stealth reverts (0 disables)
        toggle_count: Number of committed stealth toggles
        last_toggle_at: When stealth was last toggled
    """

    cover_story: CoverStory = CoverStory.CALCULATOR
    auto_activate_on_background: bool = False
    unlock_sequence: str = field(default="", repr=False)
    idle_timeout_seconds: int = 300
    toggle_count: int = 0
    last_toggle_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.idle_timeout_seconds < 0:
            raise ValueError("idle_timeout_seconds must be >= 0")
        if not all(ch in "0123456789" for ch in self.unlock_sequence):
            raise ValueError("unlock_sequence must contain digits only")

    @property
    def has_unlock_sequence(self) -> bool:
        return bool(self.unlock_sequence)

    def with_changes(self, **changes) -> "StealthConfig":
        """Return a copy with the given fields replaced."""
        if "cover_story" in changes:
            changes["cover_story"] = CoverStory(changes["cover_story"])
        return replace(self, **changes)

    def record_toggle(self, at: datetime) -> "StealthConfig":
        return replace(self, toggle_count=self.toggle_count + 1, last_toggle_at=at)

    def to_dict(self) -> dict:
        """Public view (no secret)."""
        return {
            "cover_story": self.cover_story.value,
            "auto_activate_on_background": self.auto_activate_on_background,
            "has_unlock_sequence": self.has_unlock_sequence,
            "idle_timeout_seconds": self.idle_timeout_seconds,
            "toggle_count": self.toggle_count,
            "last_toggle_at": self.last_toggle_at.isoformat() if self.last_toggle_at else None,
        }

    def to_json(self) -> str:
        """Serialize for the settings store (includes secret)."""
        return json.dumps({
            "cover_story": self.cover_story.value,
            "auto_activate_on_background": self.auto_activate_on_background,
            "unlock_sequence": self.unlock_sequence,
            "idle_timeout_seconds": self.idle_timeout_seconds,
            "toggle_count": self.toggle_count,
            "last_toggle_at": self.last_toggle_at.isoformat() if self.last_toggle_at else None,
        })

    @classmethod
    def from_json(cls, raw: str) -> "StealthConfig":
        """
        Parse a stored config.

        Raises:
            CorruptState: If the value is not a valid config
        """
        try:
            data = json.loads(raw)
            last_toggle = data.get("last_toggle_at")
            return cls(
                cover_story=CoverStory(data["cover_story"]),
                auto_activate_on_background=bool(data.get("auto_activate_on_background", False)),
                unlock_sequence=str(data.get("unlock_sequence", "")),
                idle_timeout_seconds=int(data.get("idle_timeout_seconds", 300)),
                toggle_count=int(data.get("toggle_count", 0)),
                last_toggle_at=datetime.fromisoformat(last_toggle) if last_toggle else None,
            )
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise CorruptState(STEALTH_CONFIG_KEY, str(e)) from e
