"""
Mode and Audit Endpoints

Current mode for the UI, the audit trail of committed transitions,
and the local data-clear action.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from desist.api.dependencies import get_core
from desist.domain.enums.modes import Mode
from desist.services.coordination.coordination_core import CoordinationCore

router = APIRouter()


class ModeResponse(BaseModel):
    """What the UI must render."""

    mode: str
    emergency_in_flight: bool
    requires_visible_ui: bool
    cover_story: Optional[str] = None


class AuditEntryResponse(BaseModel):
    timestamp: str
    from_mode: str
    to_mode: str
    trigger: str
    outcome: str
    run_id: Optional[str] = None


class AuditLogResponse(BaseModel):
    entries: list[AuditEntryResponse]
    count: int


def _mode_response(core: CoordinationCore) -> ModeResponse:
    mode = core.get_mode()
    return ModeResponse(
        mode=mode.value,
        emergency_in_flight=core.is_emergency_in_flight(),
        requires_visible_ui=core.requires_visible_ui(),
        cover_story=core.get_stealth_config().cover_story.value if mode == Mode.STEALTH else None,
    )


@router.get(
    "/mode",
    response_model=ModeResponse,
    summary="Get the current mode",
)
async def get_mode(
    core: CoordinationCore = Depends(get_core),
) -> ModeResponse:
    return _mode_response(core)


@router.get(
    "/audit",
    response_model=AuditLogResponse,
    summary="Read the transition audit log",
)
async def get_audit_log(
    limit: Optional[int] = Query(default=None, ge=1, le=1000),
    core: CoordinationCore = Depends(get_core),
) -> AuditLogResponse:
    entries = core.get_audit_log(limit)
    return AuditLogResponse(
        entries=[AuditEntryResponse(**e.to_dict()) for e in entries],
        count=len(entries),
    )


@router.post(
    "/data/clear",
    response_model=ModeResponse,
    summary="Clear local stealth settings and contacts",
    responses={409: {"description": "Emergency in progress"}},
)
async def clear_local_state(
    core: CoordinationCore = Depends(get_core),
) -> ModeResponse:
    """Reset local settings to defaults. The audit log is kept."""
    core.clear_local_state()
    return _mode_response(core)
