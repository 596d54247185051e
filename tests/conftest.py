"""Tests configuration and fixtures."""

import asyncio
from typing import AsyncGenerator, Callable, Optional

import pytest

from desist.config import Settings
from desist.config.settings import EmergencySettings, PersistenceSettings, StealthSettings
from desist.domain.exceptions import PersistenceError
from desist.infrastructure.adapters import SimulatedAdapterSet, build_simulated_adapters
from desist.infrastructure.storage import InMemoryAuditSink, InMemorySettingsStore
from desist.services.coordination.coordination_core import CoordinationCore
from desist.services.coordination.factory import build_coordination_core


UNLOCK_CODE = "5555"


class FlakySettingsStore(InMemorySettingsStore):
    """In-memory store whose writes fail a scripted number of times."""

    def __init__(self, fail_writes: int = 0) -> None:
        super().__init__()
        self.fail_writes = fail_writes
        self.write_attempts = 0

    async def set(self, key: str, value: str) -> None:
        await asyncio.sleep(0)
        self.write_attempts += 1
        if self.fail_writes > 0:
            self.fail_writes -= 1
            raise PersistenceError("store unavailable", key=key)
        await super().set(key, value)


@pytest.fixture
def test_settings() -> Settings:
    """Settings with fast timings and in-memory persistence."""
    return Settings(
        env="development",
        debug=True,
        stealth=StealthSettings(default_idle_timeout_seconds=300),
        emergency=EmergencySettings(
            countdown_seconds=0.05,
            capture_duration_seconds=0.0,
            max_retries=2,
            backoff_multiplier=0.0,
            backoff_max_seconds=0.0,
            capture_timeout_seconds=1.0,
            encrypt_timeout_seconds=1.0,
            upload_timeout_seconds=1.0,
            notify_timeout_seconds=1.0,
            wipe_timeout_seconds=1.0,
        ),
        persistence=PersistenceSettings(
            backend="memory",
            background_retry_multiplier=0.001,
            background_retry_max_seconds=0.01,
        ),
    )


@pytest.fixture
def store() -> FlakySettingsStore:
    """Shared settings store; set fail_writes to script store outages."""
    return FlakySettingsStore()


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def simulated() -> SimulatedAdapterSet:
    """Simulated adapters sharing one device journal."""
    return build_simulated_adapters()


@pytest.fixture
def make_core(
    test_settings: Settings,
    store: FlakySettingsStore,
    audit_sink: InMemoryAuditSink,
    simulated: SimulatedAdapterSet,
) -> Callable[..., CoordinationCore]:
    """
    Build a core over the shared store, sink and simulated adapters.

    Keyword arguments override emergency settings, e.g.
    make_core(max_retries=1).
    """

    def _make(settings: Optional[Settings] = None, **emergency_overrides) -> CoordinationCore:
        settings = settings or test_settings
        if emergency_overrides:
            settings = settings.model_copy(
                update={"emergency": settings.emergency.model_copy(update=emergency_overrides)}
            )
        return build_coordination_core(
            settings,
            adapters=simulated.bundle(),
            store=store,
            audit_sink=audit_sink,
        )

    return _make


@pytest.fixture
async def core(make_core) -> AsyncGenerator[CoordinationCore, None]:
    """Loaded core with an unlock sequence and one contact configured."""
    instance = make_core()
    await instance.load()
    instance.update_stealth_config(unlock_sequence=UNLOCK_CODE)
    instance.add_contact("Alex", "+15550100", relationship="friend")
    yield instance
    await instance.shutdown()
