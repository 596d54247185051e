"""Storage infrastructure package."""

from desist.infrastructure.storage.settings_store import (
    SettingsStore,
    InMemorySettingsStore,
    JsonFileSettingsStore,
)
from desist.infrastructure.storage.persistence import ResilientSettingsWriter
from desist.infrastructure.storage.audit_sink import (
    AuditSink,
    InMemoryAuditSink,
    JsonLinesAuditSink,
    AuditTrail,
)

__all__ = [
    "SettingsStore",
    "InMemorySettingsStore",
    "JsonFileSettingsStore",
    "ResilientSettingsWriter",
    "AuditSink",
    "InMemoryAuditSink",
    "JsonLinesAuditSink",
    "AuditTrail",
]
