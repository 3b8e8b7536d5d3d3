"""
Run-scoped progress tracking for entity syncs.
"""

import asyncio
import logging
from typing import Any, Dict, MutableMapping, Optional, Protocol, Tuple

from ..models.sync import SyncRunResult, SyncRunStatus

logger = logging.getLogger(__name__)


class RunHistorySink(Protocol):
    """Anything that can persist finished runs, e.g. the Firestore service."""

    def record_sync_run(self, result: SyncRunResult) -> Any:
        ...


class ContextLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges its context into every record's ``extra``."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs

    def child(self, **extra: Any) -> "ContextLoggerAdapter":
        return ContextLoggerAdapter(self.logger, {**self.extra, **extra})


class SyncTracker:
    """
    Tracks a single sync run.

    A tracker is created for every run and discarded with it, so concurrent
    runs of the same sync never share one.
    """

    def __init__(
        self,
        run: SyncRunResult,
        log: Optional[logging.LoggerAdapter] = None,
        sink: Optional[RunHistorySink] = None,
    ):
        base = log or ContextLoggerAdapter(logger, {})
        context = {**(base.extra or {}), "sync_id": run.sync_id, "run_id": run.run_id}
        self.run = run
        self.log = ContextLoggerAdapter(base.logger, context)
        self._sink = sink

    @property
    def status(self) -> SyncRunStatus:
        return self.run.status

    def child(self, **extra: Any) -> ContextLoggerAdapter:
        """Logger for one unit of work within the run, e.g. a single entity."""
        return self.log.child(**extra)

    def start(self, message: str) -> None:
        self.log.info(message)

    async def finish(self) -> SyncRunResult:
        self.run.mark_completed()
        self.log.info(
            f"Sync run {self.run.run_id} completed: {self.run.success_count} success, "
            f"{self.run.failed_count} failed, {self.run.skipped_count} skipped"
        )
        await self._record()
        return self.run

    async def fail(self, error: BaseException) -> SyncRunResult:
        self.run.mark_failed(str(error))
        self.log.error(f"Sync run {self.run.run_id} failed: {error}")
        await self._record()
        return self.run

    async def _record(self) -> None:
        if self._sink is None:
            return
        try:
            await asyncio.to_thread(self._sink.record_sync_run, self.run)
        except Exception as e:
            # Run history is informational; losing it must not fail the run
            self.log.error(f"Failed to record sync run {self.run.run_id}: {e}")

    def summary(self) -> Dict[str, Any]:
        return self.run.get_summary()
