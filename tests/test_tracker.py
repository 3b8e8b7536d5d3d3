from __future__ import annotations

import asyncio
import logging

from entity_sync.engine.tracker import ContextLoggerAdapter, SyncTracker
from entity_sync.models.sync import SyncItemResult, SyncItemStatus, SyncRunResult, SyncRunStatus


def make_run() -> SyncRunResult:
    return SyncRunResult(run_id="run-1", sync_id="catalog-sync", live=False)


def test_log_records_carry_run_and_entity_context(caplog) -> None:
    base = ContextLoggerAdapter(logging.getLogger("entity_sync.test"), {"sync_enabled": False})
    tracker = SyncTracker(make_run(), log=base)

    with caplog.at_level(logging.INFO, logger="entity_sync.test"):
        tracker.child(entity_ref="component:default/billing").info("synced")

    record = caplog.records[-1]
    assert record.sync_id == "catalog-sync"
    assert record.run_id == "run-1"
    assert record.sync_enabled is False
    assert record.entity_ref == "component:default/billing"


def test_finish_marks_run_completed_and_counts_items(history) -> None:
    run = make_run()
    run.items = [
        SyncItemResult(entity_ref="component:default/a", status=SyncItemStatus.SUCCESS),
        SyncItemResult(entity_ref="component:default/b", status=SyncItemStatus.SKIPPED),
        SyncItemResult(entity_ref="component:default/c", status=SyncItemStatus.FAILED),
    ]
    tracker = SyncTracker(run, sink=history)

    asyncio.run(tracker.finish())

    assert tracker.status == SyncRunStatus.COMPLETED
    summary = tracker.summary()
    assert (summary["success_count"], summary["skipped_count"], summary["failed_count"]) == (1, 1, 1)
    assert summary["execution_time_seconds"] >= 0
    assert history.runs == [summary]


def test_fail_keeps_error_message() -> None:
    tracker = SyncTracker(make_run())

    run = asyncio.run(tracker.fail(RuntimeError("catalog unreachable")))

    assert run.status == SyncRunStatus.FAILED
    assert run.error_message == "catalog unreachable"
