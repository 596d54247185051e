"""Stealth services package - disguise, unlock and idle timeout."""

from desist.services.stealth.stealth_manager import StealthSessionManager
from desist.services.stealth.unlock import UnlockKeypad, matches_secret
from desist.services.stealth.cover_stories import (
    CoverStoryProfile,
    get_cover_story,
    list_cover_stories,
)

__all__ = [
    "StealthSessionManager",
    # Unlock
    "UnlockKeypad",
    "matches_secret",
    # Cover stories
    "CoverStoryProfile",
    "get_cover_story",
    "list_cover_stories",
]
