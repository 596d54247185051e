"""Emergency services package - pipeline runs, contacts and panic gesture."""

from desist.services.emergency.emergency_manager import EmergencySessionManager, PipelinePolicy
from desist.services.emergency.contact_book import ContactBook
from desist.services.emergency.panic_gesture import PanicGestureDetector

__all__ = [
    "EmergencySessionManager",
    "PipelinePolicy",
    "ContactBook",
    "PanicGestureDetector",
]
