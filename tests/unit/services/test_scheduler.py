"""
Unit Tests for the Keyed Task Scheduler

Tests timer replacement, cancellation and background task supervision.
"""

import asyncio

import pytest

from desist.services.coordination.scheduler import TaskScheduler


@pytest.fixture
async def scheduler():
    instance = TaskScheduler()
    yield instance
    await instance.shutdown()


class TestTimers:
    """Tests for keyed single-shot timers."""

    async def test_timer_fires_once(self, scheduler):
        fired = []

        scheduler.schedule("countdown:1", 0.01, lambda: fired.append("countdown"))
        await asyncio.sleep(0.05)

        assert fired == ["countdown"]
        assert not scheduler.is_pending("countdown:1")

    async def test_rescheduling_replaces_pending_timer(self, scheduler):
        """A superseded timer never fires."""
        fired = []

        scheduler.schedule("idle", 0.01, lambda: fired.append("first"))
        scheduler.schedule("idle", 0.02, lambda: fired.append("second"))
        await asyncio.sleep(0.06)

        assert fired == ["second"]

    async def test_cancel(self, scheduler):
        fired = []
        scheduler.schedule("countdown:1", 0.01, lambda: fired.append(1))

        assert scheduler.cancel("countdown:1") is True
        assert scheduler.cancel("countdown:1") is False
        await asyncio.sleep(0.03)

        assert fired == []

    async def test_cancel_prefix(self, scheduler):
        scheduler.schedule("countdown:a", 10, lambda: None)
        scheduler.schedule("countdown:b", 10, lambda: None)
        scheduler.schedule("stealth-idle:s", 10, lambda: None)

        assert scheduler.cancel_prefix("countdown:") == 2
        assert scheduler.is_pending("stealth-idle:s")

    async def test_deadline_reported_on_loop_clock(self, scheduler):
        loop = asyncio.get_running_loop()
        before = loop.time()

        scheduler.schedule("idle", 5.0, lambda: None)

        assert scheduler.deadline("idle") >= before + 5.0
        assert scheduler.deadline("missing") is None

    async def test_failing_callback_does_not_break_other_timers(self, scheduler):
        fired = []

        def boom():
            raise RuntimeError("callback failed")

        scheduler.schedule("a", 0.0, boom)
        scheduler.schedule("b", 0.01, lambda: fired.append("b"))
        await asyncio.sleep(0.05)

        assert fired == ["b"]


class TestTasks:
    """Tests for supervised background tasks."""

    async def test_spawn_tracks_active_tasks(self, scheduler):
        release = asyncio.Event()

        task = scheduler.spawn(release.wait(), name="pipeline")
        await asyncio.sleep(0)
        assert scheduler.active_tasks == 1

        release.set()
        await task
        assert scheduler.active_tasks == 0

    async def test_shutdown_cancels_tasks_and_timers(self):
        scheduler = TaskScheduler()
        fired = []
        task = scheduler.spawn(asyncio.sleep(60))
        scheduler.schedule("countdown:1", 0.01, lambda: fired.append(1))

        await scheduler.shutdown()
        await asyncio.sleep(0.03)

        assert task.cancelled()
        assert fired == []
        assert scheduler.active_tasks == 0
