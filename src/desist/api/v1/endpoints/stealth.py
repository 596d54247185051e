"""
Stealth Endpoints

Disguise activation, unlock input, app lifecycle hooks and stealth
configuration.

SECURITY: Unlock tokens and the configured unlock sequence are never
echoed back or logged.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from desist.api.dependencies import get_core
from desist.api.v1.schemas import TransitionResponse
from desist.domain.enums.modes import ActivationMethod, CoverStory, DeactivationMethod
from desist.domain.models.stealth_config import StealthConfig
from desist.domain.models.transition import TransitionResult
from desist.services.coordination.coordination_core import CoordinationCore
from desist.services.stealth.cover_stories import get_cover_story, list_cover_stories

router = APIRouter()


# Request/Response Models

class ActivateRequest(BaseModel):
    """Request to enter stealth mode."""

    method: ActivationMethod = Field(default=ActivationMethod.MANUAL)


class DeactivateRequest(BaseModel):
    """Request to leave stealth mode."""

    method: DeactivationMethod = Field(default=DeactivationMethod.MANUAL)


class UnlockRequest(BaseModel):
    """A complete token typed into the disguise."""

    token: str = Field(..., max_length=64)


class KeypadRequest(BaseModel):
    """One disguise keypad press."""

    key: str = Field(..., min_length=1, max_length=1)


class UnlockResponse(BaseModel):
    """Result of unlock input; `transition` is set only on a match."""

    matched: bool
    mode: str
    transition: Optional[TransitionResponse] = None


class LifecycleResponse(BaseModel):
    mode: str
    transition: Optional[TransitionResponse] = None


class CoverStoryResponse(BaseModel):
    id: str
    name: str
    icon: str
    description: str


class StealthConfigResponse(BaseModel):
    """Stealth config without the unlock secret."""

    cover_story: str
    auto_activate_on_background: bool
    has_unlock_sequence: bool
    idle_timeout_seconds: int
    toggle_count: int
    last_toggle_at: Optional[str] = None
    cover_story_profile: CoverStoryResponse

    @classmethod
    def from_config(cls, config: StealthConfig) -> "StealthConfigResponse":
        return cls(
            **config.to_dict(),
            cover_story_profile=CoverStoryResponse(**get_cover_story(config.cover_story).to_dict()),
        )


class StealthConfigUpdate(BaseModel):
    """Partial stealth config update."""

    cover_story: Optional[CoverStory] = None
    auto_activate_on_background: Optional[bool] = None
    unlock_sequence: Optional[str] = Field(default=None, max_length=64, pattern=r"^[0-9]*$")
    idle_timeout_seconds: Optional[int] = Field(default=None, ge=0, le=86400)


def _transition_or_409(result: TransitionResult) -> TransitionResponse:
    result.raise_for_rejection()
    return TransitionResponse.from_result(result)


@router.post(
    "/activate",
    response_model=TransitionResponse,
    summary="Enter stealth mode",
    responses={409: {"description": "A visible emergency needs the real UI"}},
)
async def activate_stealth(
    request: ActivateRequest,
    core: CoordinationCore = Depends(get_core),
) -> TransitionResponse:
    return _transition_or_409(core.activate_stealth(request.method))


@router.post(
    "/deactivate",
    response_model=TransitionResponse,
    summary="Leave stealth mode",
    responses={409: {"description": "A concealed emergency is capturing evidence"}},
)
async def deactivate_stealth(
    request: DeactivateRequest,
    core: CoordinationCore = Depends(get_core),
) -> TransitionResponse:
    return _transition_or_409(core.deactivate_stealth(request.method))


@router.post(
    "/unlock",
    response_model=UnlockResponse,
    summary="Submit a complete unlock token",
)
async def unlock(
    request: UnlockRequest,
    core: CoordinationCore = Depends(get_core),
) -> UnlockResponse:
    """
    Offer a token typed into the disguise.

    A non-matching token is not an error; the disguise keeps behaving
    like the cover app.
    """
    result = core.feed_unlock_input(request.token)
    return _unlock_response(core, result)


@router.post(
    "/keypad",
    response_model=UnlockResponse,
    summary="Press one disguise keypad key",
)
async def press_key(
    request: KeypadRequest,
    core: CoordinationCore = Depends(get_core),
) -> UnlockResponse:
    result = core.press_unlock_key(request.key)
    return _unlock_response(core, result)


def _unlock_response(core: CoordinationCore, result: Optional[TransitionResult]) -> UnlockResponse:
    if result is None:
        return UnlockResponse(matched=False, mode=core.get_mode().value)
    result.raise_for_rejection()
    return UnlockResponse(
        matched=True,
        mode=result.mode.value,
        transition=TransitionResponse.from_result(result),
    )


@router.post(
    "/background",
    response_model=LifecycleResponse,
    summary="Report the app moved to the background",
)
async def app_backgrounded(
    core: CoordinationCore = Depends(get_core),
) -> LifecycleResponse:
    result = core.on_app_backgrounded()
    return LifecycleResponse(
        mode=core.get_mode().value,
        transition=TransitionResponse.from_result(result) if result else None,
    )


@router.post(
    "/foreground",
    response_model=LifecycleResponse,
    summary="Report the app returned to the foreground",
)
async def app_foregrounded(
    core: CoordinationCore = Depends(get_core),
) -> LifecycleResponse:
    core.on_app_foregrounded()
    return LifecycleResponse(mode=core.get_mode().value)


@router.get(
    "/config",
    response_model=StealthConfigResponse,
    summary="Get stealth configuration",
)
async def get_config(
    core: CoordinationCore = Depends(get_core),
) -> StealthConfigResponse:
    return StealthConfigResponse.from_config(core.get_stealth_config())


@router.patch(
    "/config",
    response_model=StealthConfigResponse,
    summary="Update stealth configuration",
)
async def update_config(
    request: StealthConfigUpdate,
    core: CoordinationCore = Depends(get_core),
) -> StealthConfigResponse:
    changes = request.model_dump(exclude_unset=True, exclude_none=True)
    try:
        config = core.update_stealth_config(**changes)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )
    return StealthConfigResponse.from_config(config)


@router.get(
    "/cover-stories",
    response_model=list[CoverStoryResponse],
    summary="List available cover stories",
)
async def cover_stories() -> list[CoverStoryResponse]:
    return [CoverStoryResponse(**profile.to_dict()) for profile in list_cover_stories()]
