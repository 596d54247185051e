"""Metrics infrastructure package."""

from desist.infrastructure.metrics.prometheus_metrics import (
    # Mode metrics
    MODE_TRANSITIONS_TOTAL,
    TRANSITIONS_REJECTED_TOTAL,
    CURRENT_MODE,
    STEALTH_TIMEOUTS_DEFERRED,
    # Pipeline metrics
    PIPELINE_RUNS_TOTAL,
    PIPELINE_TRIGGERS_COALESCED,
    PIPELINE_STAGE_ATTEMPTS,
    PIPELINE_STAGE_DURATION,
    # Persistence metrics
    PERSISTENCE_FAILURES_TOTAL,
    # Helpers
    track_transition,
    track_rejection,
    set_current_mode,
    track_pipeline_outcome,
    track_stage_attempt,
    observe_stage_duration,
    track_coalesced_trigger,
    track_deferred_timeout,
    track_persistence_failure,
    update_system_info,
    # Router
    metrics_router,
)

__all__ = [
    "MODE_TRANSITIONS_TOTAL",
    "TRANSITIONS_REJECTED_TOTAL",
    "CURRENT_MODE",
    "STEALTH_TIMEOUTS_DEFERRED",
    "PIPELINE_RUNS_TOTAL",
    "PIPELINE_TRIGGERS_COALESCED",
    "PIPELINE_STAGE_ATTEMPTS",
    "PIPELINE_STAGE_DURATION",
    "PERSISTENCE_FAILURES_TOTAL",
    "track_transition",
    "track_rejection",
    "set_current_mode",
    "track_pipeline_outcome",
    "track_stage_attempt",
    "observe_stage_duration",
    "track_coalesced_trigger",
    "track_deferred_timeout",
    "track_persistence_failure",
    "update_system_info",
    "metrics_router",
]
