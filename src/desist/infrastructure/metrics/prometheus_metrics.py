"""
Prometheus Metrics

Operational metrics for the coordination core.
Exposes metrics at /metrics endpoint for Prometheus scraping.

ARCHITECTURE: Metrics are decoupled from business logic.
Only increment/observe; never block on metrics operations.

PRIVACY: Labels carry enum values only, never identifiers.
"""

from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    Info,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY,
)
from fastapi import APIRouter, Response

from desist.config.logging_config import get_logger
from desist.domain.enums.modes import Mode

logger = get_logger(__name__)

# =============================================================================
# MODE METRICS
# =============================================================================

MODE_TRANSITIONS_TOTAL = Counter(
    "desist_mode_transitions_total",
    "Committed mode transitions",
    ["event", "from_mode", "to_mode"],
)

TRANSITIONS_REJECTED_TOTAL = Counter(
    "desist_transitions_rejected_total",
    "Rejected transition requests",
    ["event", "mode"],
)

CURRENT_MODE = Gauge(
    "desist_current_mode",
    "1 for the currently active mode, 0 otherwise",
    ["mode"],
)

STEALTH_TIMEOUTS_DEFERRED = Counter(
    "desist_stealth_timeouts_deferred_total",
    "Stealth idle timeouts deferred because an emergency was in flight",
)

# =============================================================================
# EMERGENCY PIPELINE METRICS
# =============================================================================

PIPELINE_RUNS_TOTAL = Counter(
    "desist_pipeline_runs_total",
    "Emergency pipeline runs by terminal outcome",
    ["outcome", "source"],  # completed, cancelled, failed
)

PIPELINE_TRIGGERS_COALESCED = Counter(
    "desist_pipeline_triggers_coalesced_total",
    "Panic triggers merged into an already active run",
)

PIPELINE_STAGE_ATTEMPTS = Counter(
    "desist_pipeline_stage_attempts_total",
    "Adapter attempts per pipeline stage",
    ["stage", "result"],  # success, error, timeout
)

PIPELINE_STAGE_DURATION = Histogram(
    "desist_pipeline_stage_duration_seconds",
    "Wall time spent per pipeline stage including retries",
    ["stage"],
    buckets=[0.1, 0.5, 1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0],
)

# =============================================================================
# PERSISTENCE METRICS
# =============================================================================

PERSISTENCE_FAILURES_TOTAL = Counter(
    "desist_persistence_failures_total",
    "Writes that fell back to background retry",
    ["key"],
)

# =============================================================================
# SYSTEM INFO
# =============================================================================

SYSTEM_INFO = Info(
    "desist_system",
    "DESIST core information",
)

SYSTEM_INFO.info({
    "version": "0.1.0",
    "environment": "development",  # Updated at runtime
})


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def track_transition(event: str, from_mode: str, to_mode: str) -> None:
    """Record a committed transition and update the mode gauge."""
    MODE_TRANSITIONS_TOTAL.labels(event=event, from_mode=from_mode, to_mode=to_mode).inc()
    set_current_mode(to_mode)


def track_rejection(event: str, mode: str) -> None:
    TRANSITIONS_REJECTED_TOTAL.labels(event=event, mode=mode).inc()


def set_current_mode(mode: str) -> None:
    for candidate in Mode:
        CURRENT_MODE.labels(mode=candidate.value).set(1 if candidate.value == mode else 0)


def track_pipeline_outcome(outcome: str, source: str) -> None:
    """Record a run reaching a terminal stage."""
    PIPELINE_RUNS_TOTAL.labels(outcome=outcome, source=source).inc()


def track_stage_attempt(stage: str, result: str) -> None:
    PIPELINE_STAGE_ATTEMPTS.labels(stage=stage, result=result).inc()


def observe_stage_duration(stage: str, duration_seconds: float) -> None:
    PIPELINE_STAGE_DURATION.labels(stage=stage).observe(duration_seconds)


def track_coalesced_trigger() -> None:
    PIPELINE_TRIGGERS_COALESCED.inc()


def track_deferred_timeout() -> None:
    STEALTH_TIMEOUTS_DEFERRED.inc()


def track_persistence_failure(key: str) -> None:
    PERSISTENCE_FAILURES_TOTAL.labels(key=key).inc()


# =============================================================================
# METRICS ENDPOINT
# =============================================================================

metrics_router = APIRouter(tags=["metrics"])


@metrics_router.get("/metrics")
async def metrics() -> Response:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format for scraping.
    """
    return Response(
        content=generate_latest(REGISTRY),
        media_type=CONTENT_TYPE_LATEST,
    )


def update_system_info(environment: str, version: str = "0.1.0") -> None:
    """Update system info metric with current environment."""
    SYSTEM_INFO.info({
        "version": version,
        "environment": environment,
    })
