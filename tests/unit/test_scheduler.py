# tests/unit/test_scheduler.py
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from dropstock import scheduler as scheduler_module
from dropstock.core.exceptions import TransientDbError


@pytest.fixture(autouse=True)
def fresh_scheduler(monkeypatch):
    monkeypatch.setattr(scheduler_module, "scheduler", None)
    monkeypatch.setattr(scheduler_module, "_sweeper", None)


def test_sweep_job_configuration(settings):
    sched = scheduler_module.create_scheduler(settings)

    job = sched.get_job(scheduler_module.SWEEP_JOB_ID)
    assert job is not None
    assert job.trigger.interval == timedelta(seconds=settings.SWEEP_INTERVAL_SECONDS)
    assert job.max_instances == 1
    assert job.coalesce is True


def test_create_scheduler_is_idempotent(settings):
    assert scheduler_module.create_scheduler(settings) is scheduler_module.create_scheduler(settings)


async def test_status_before_start():
    assert await scheduler_module.get_scheduler_status() == {"status": "not_initialized", "jobs": []}


async def test_start_and_stop(settings):
    await scheduler_module.start_scheduler(settings)
    try:
        status = await scheduler_module.get_scheduler_status()
        assert status["status"] == "running"
        assert [job["id"] for job in status["jobs"]] == ["expire_reservations"]
        assert status["jobs"][0]["next_run"] is not None
    finally:
        await scheduler_module.stop_scheduler()

    assert scheduler_module.scheduler is None


async def test_task_swallows_tick_failures(monkeypatch):
    sweeper = AsyncMock()
    sweeper.sweep.side_effect = TransientDbError("locked")
    monkeypatch.setattr(scheduler_module, "_sweeper", sweeper)

    await scheduler_module.expire_reservations_task()

    sweeper.sweep.assert_awaited_once()


async def test_manual_trigger_propagates_failures(monkeypatch):
    sweeper = AsyncMock()
    sweeper.sweep.side_effect = TransientDbError("locked")
    monkeypatch.setattr(scheduler_module, "_sweeper", sweeper)

    with pytest.raises(TransientDbError):
        await scheduler_module.trigger_sweep_manually()
