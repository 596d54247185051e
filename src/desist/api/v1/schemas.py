"""
Shared API v1 response models.

Endpoint-specific request/response models live with their endpoints.
"""

from typing import Optional

from pydantic import BaseModel

from desist.domain.models.pipeline_run import RunStatus
from desist.domain.models.transition import TransitionResult


class TransitionResponse(BaseModel):
    """Outcome of a mode transition request."""

    event: str
    outcome: str
    previous_mode: str
    mode: str
    reason: str = ""

    @classmethod
    def from_result(cls, result: TransitionResult) -> "TransitionResponse":
        return cls(**result.to_dict())


class RunStatusResponse(BaseModel):
    """Snapshot of an emergency pipeline run."""

    run_id: str
    stage: str
    failed_stage: Optional[str] = None
    source: str
    concealed: bool
    is_active: bool
    escalation_failed: bool
    created_at: str
    updated_at: str
    attempts: dict[str, int]
    remote_ref: Optional[str] = None
    contacts_notified: int = 0
    evidence_retained: bool = False
    last_error: Optional[str] = None
    stage_history: list[str] = []

    class Config:
        json_schema_extra = {
            "example": {
                "run_id": "123e4567-e89b-12d3-a456-426614174000",
                "stage": "UPLOADING",
                "failed_stage": None,
                "source": "button",
                "concealed": False,
                "is_active": True,
                "escalation_failed": False,
                "created_at": "2025-01-01T12:00:00",
                "updated_at": "2025-01-01T12:00:41",
                "attempts": {"CAPTURING": 2, "ENCRYPTING": 1, "UPLOADING": 1},
                "remote_ref": None,
                "contacts_notified": 0,
                "evidence_retained": True,
                "last_error": None,
            }
        }

    @classmethod
    def from_status(cls, status: RunStatus) -> "RunStatusResponse":
        return cls(**status.to_dict())
