"""
DESIST Domain Layer

Modes, pipeline runs, contacts and audit records.
These models represent the domain logic independent of infrastructure.
"""

from desist.domain.enums.modes import (
    Mode,
    CoverStory,
    ActivationMethod,
    DeactivationMethod,
    TriggerSource,
    PipelineStage,
)
from desist.domain.models.stealth_config import StealthConfig
from desist.domain.models.emergency_contact import EmergencyContact, EmergencyAlertConfig
from desist.domain.models.pipeline_run import EmergencyPipelineRun, RunStatus
from desist.domain.models.audit_entry import AuditEntry
from desist.domain.models.transition import TransitionResult

__all__ = [
    # Enums
    "Mode",
    "CoverStory",
    "ActivationMethod",
    "DeactivationMethod",
    "TriggerSource",
    "PipelineStage",
    # Models
    "StealthConfig",
    "EmergencyContact",
    "EmergencyAlertConfig",
    "EmergencyPipelineRun",
    "RunStatus",
    "AuditEntry",
    "TransitionResult",
]
