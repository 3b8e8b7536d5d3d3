from __future__ import annotations

import asyncio

import pytest

from entity_sync.exceptions import ConfigurationError
from entity_sync.models.config import HumanDuration, TaskSchedule
from entity_sync.services.task_runner import LocalTaskRunner


def test_rejects_cron_schedules() -> None:
    with pytest.raises(ConfigurationError):
        LocalTaskRunner(TaskSchedule(cron="0 * * * *"))


def test_rejects_zero_frequency() -> None:
    with pytest.raises(ConfigurationError):
        LocalTaskRunner(TaskSchedule(frequency=HumanDuration()))


def test_runs_after_initial_delay_and_then_every_frequency() -> None:
    schedule = TaskSchedule(
        frequency=HumanDuration(minutes=30),
        initial_delay=HumanDuration(seconds=15),
    )
    delays: list[float] = []
    calls: list[str] = []

    async def scenario():
        stop = asyncio.Event()

        async def sleep(delay):
            delays.append(delay)
            if len(calls) >= 2:
                stop.set()
                await asyncio.Event().wait()

        runner = LocalTaskRunner(schedule, sleep=sleep)

        async def tick():
            calls.append("tick")

        runner.run("catalog-sync", tick)
        await stop.wait()
        await runner.stop()
        return runner

    runner = asyncio.run(scenario())

    assert calls == ["tick", "tick"]
    assert delays[0] == 15
    assert 1799 < delays[1] <= 1800
    assert runner.task_ids == []


def test_duplicate_task_id_is_rejected() -> None:
    async def scenario():
        runner = LocalTaskRunner(TaskSchedule(frequency=HumanDuration(hours=1)))
        runner.run("catalog-sync", lambda: None)
        try:
            with pytest.raises(ConfigurationError):
                runner.run("catalog-sync", lambda: None)
        finally:
            await runner.stop()

    asyncio.run(scenario())


def test_invoke_awaits_returned_task() -> None:
    runner = LocalTaskRunner(TaskSchedule(frequency=HumanDuration(minutes=5)))

    async def scenario():
        async def work():
            return "done"

        return await runner.invoke("catalog-sync", lambda: asyncio.ensure_future(work()))

    assert asyncio.run(scenario()) == "done"


def test_invoke_logs_failures_instead_of_raising(caplog) -> None:
    runner = LocalTaskRunner(TaskSchedule(frequency=HumanDuration(minutes=5)))

    def explode():
        raise RuntimeError("catalog unreachable")

    assert asyncio.run(runner.invoke("catalog-sync", explode)) is None
    assert "catalog unreachable" in caplog.text


def test_invoke_times_out_long_runs(caplog) -> None:
    schedule = TaskSchedule(frequency=HumanDuration(minutes=5), timeout=HumanDuration(milliseconds=10))
    runner = LocalTaskRunner(schedule)

    async def slow():
        await asyncio.sleep(5)

    assert asyncio.run(runner.invoke("catalog-sync", slow)) is None
    assert "timed out" in caplog.text
