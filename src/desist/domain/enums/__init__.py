"""Domain enumerations."""

from desist.domain.enums.modes import (
    Mode,
    CoverStory,
    ActivationMethod,
    DeactivationMethod,
    TriggerSource,
    TransitionEvent,
    TransitionOutcome,
    PipelineStage,
)

__all__ = [
    "Mode",
    "CoverStory",
    "ActivationMethod",
    "DeactivationMethod",
    "TriggerSource",
    "TransitionEvent",
    "TransitionOutcome",
    "PipelineStage",
]
