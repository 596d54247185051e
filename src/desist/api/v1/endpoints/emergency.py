"""
Emergency Endpoints

Trigger, cancel and poll the emergency pipeline; panic gesture taps;
alert configuration.

SAFETY-CRITICAL: Triggering never fails because a run is already in
progress; the request is coalesced into the active run.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from desist.api.dependencies import get_core
from desist.api.v1.schemas import RunStatusResponse, TransitionResponse
from desist.config.logging_config import get_logger
from desist.domain.enums.modes import TriggerSource
from desist.services.coordination.coordination_core import CoordinationCore

logger = get_logger(__name__)
router = APIRouter()


# Request/Response Models

class TriggerRequest(BaseModel):
    """Request to start an emergency."""

    source: TriggerSource = Field(default=TriggerSource.BUTTON)


class EmergencyStatusResponse(BaseModel):
    """Current mode plus the active or most recent run."""

    mode: str
    in_flight: bool
    run: Optional[RunStatusResponse] = None


class PanicTapResponse(BaseModel):
    triggered: bool
    run: Optional[RunStatusResponse] = None


class AlertConfigResponse(BaseModel):
    message: str
    location_sharing_enabled: bool
    max_notified_contacts: int


class AlertConfigUpdate(BaseModel):
    message: Optional[str] = Field(default=None, min_length=1, max_length=500)
    location_sharing_enabled: Optional[bool] = None
    max_notified_contacts: Optional[int] = Field(default=None, ge=1, le=20)


@router.get(
    "/status",
    response_model=EmergencyStatusResponse,
    summary="Poll emergency status",
)
async def get_status(
    core: CoordinationCore = Depends(get_core),
) -> EmergencyStatusResponse:
    run = core.get_emergency_status()
    return EmergencyStatusResponse(
        mode=core.get_mode().value,
        in_flight=core.is_emergency_in_flight(),
        run=RunStatusResponse.from_status(run) if run else None,
    )


@router.post(
    "/trigger",
    response_model=RunStatusResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Trigger an emergency",
)
async def trigger(
    request: TriggerRequest,
    core: CoordinationCore = Depends(get_core),
) -> RunStatusResponse:
    """
    Start the emergency pipeline.

    From stealth the run is concealed and the disguise stays up.
    """
    logger.info("Emergency trigger requested", source=request.source.value)
    run = core.trigger_emergency(request.source)
    return RunStatusResponse.from_status(run)


@router.post(
    "/cancel",
    response_model=TransitionResponse,
    summary="Cancel during the countdown",
    responses={409: {"description": "No run, or capture already started"}},
)
async def cancel(
    core: CoordinationCore = Depends(get_core),
) -> TransitionResponse:
    result = core.cancel_emergency().raise_for_rejection()
    return TransitionResponse.from_result(result)


@router.post(
    "/panic-tap",
    response_model=PanicTapResponse,
    summary="Register one panic-gesture tap",
)
async def panic_tap(
    core: CoordinationCore = Depends(get_core),
) -> PanicTapResponse:
    run = core.register_panic_tap()
    return PanicTapResponse(
        triggered=run is not None,
        run=RunStatusResponse.from_status(run) if run else None,
    )


@router.get(
    "/alert-config",
    response_model=AlertConfigResponse,
    summary="Get alert configuration",
)
async def get_alert_config(
    core: CoordinationCore = Depends(get_core),
) -> AlertConfigResponse:
    return AlertConfigResponse(**core.get_alert_config().to_dict())


@router.patch(
    "/alert-config",
    response_model=AlertConfigResponse,
    summary="Update alert configuration",
)
async def update_alert_config(
    request: AlertConfigUpdate,
    core: CoordinationCore = Depends(get_core),
) -> AlertConfigResponse:
    changes = request.model_dump(exclude_unset=True, exclude_none=True)
    try:
        config = core.update_alert_config(**changes)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )
    return AlertConfigResponse(**config.to_dict())
