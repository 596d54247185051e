"""Domain models package."""

from desist.domain.models.stealth_config import StealthConfig, STEALTH_CONFIG_KEY
from desist.domain.models.emergency_contact import (
    EmergencyContact,
    EmergencyAlertConfig,
    CONTACTS_KEY,
    EMERGENCY_CONFIG_KEY,
    contacts_to_json,
    contacts_from_json,
)
from desist.domain.models.evidence import MediaHandle, UploadReceipt, Coords
from desist.domain.models.pipeline_run import EmergencyPipelineRun, RunStatus
from desist.domain.models.audit_entry import AuditEntry
from desist.domain.models.transition import TransitionResult

__all__ = [
    # Stealth
    "StealthConfig",
    "STEALTH_CONFIG_KEY",
    # Contacts and alerts
    "EmergencyContact",
    "EmergencyAlertConfig",
    "CONTACTS_KEY",
    "EMERGENCY_CONFIG_KEY",
    "contacts_to_json",
    "contacts_from_json",
    # Evidence
    "MediaHandle",
    "UploadReceipt",
    "Coords",
    # Pipeline
    "EmergencyPipelineRun",
    "RunStatus",
    # Audit
    "AuditEntry",
    "TransitionResult",
]
