"""
Coordination services package.

The core and its factory are imported from their modules
(`coordination_core`, `factory`) since they depend on both managers.
"""

from desist.services.coordination.scheduler import TaskScheduler
from desist.services.coordination.transitions import Resolution, resolve_transition

__all__ = [
    "TaskScheduler",
    "Resolution",
    "resolve_transition",
]
