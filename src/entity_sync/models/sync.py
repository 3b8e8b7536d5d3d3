"""
Models for sync run results and status tracking.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Any, Optional
from pydantic import BaseModel, Field


class SyncItemStatus(str, Enum):
    """Outcome of syncing a single entity."""
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


class SyncRunStatus(str, Enum):
    """Status of a sync run."""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class SyncItemResult(BaseModel):
    """Result for one fetched entity, in fetch order."""
    entity_ref: str
    status: SyncItemStatus
    payload: Optional[Dict[str, Any]] = Field(None, description="Serialized entity definition")
    response: Any = Field(None, description="Datadog response for live runs")
    message: Optional[str] = None

    @property
    def value(self) -> Any:
        """The remote response for live runs, the payload otherwise."""
        return self.response if self.response is not None else self.payload


class SyncRunResult(BaseModel):
    """Represents one sync run."""
    run_id: str
    sync_id: str
    live: bool
    triggered_by: str = "manual"
    status: SyncRunStatus = SyncRunStatus.RUNNING
    started_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
    execution_time_seconds: Optional[float] = None
    entity_filter: List[Dict[str, Any]] = Field(default_factory=list)
    items: List[SyncItemResult] = Field(default_factory=list)
    error_message: Optional[str] = None

    @property
    def total_items(self) -> int:
        return len(self.items)

    @property
    def success_count(self) -> int:
        return self._count(SyncItemStatus.SUCCESS)

    @property
    def skipped_count(self) -> int:
        return self._count(SyncItemStatus.SKIPPED)

    @property
    def failed_count(self) -> int:
        return self._count(SyncItemStatus.FAILED)

    def _count(self, status: SyncItemStatus) -> int:
        return len([item for item in self.items if item.status == status])

    def payloads(self) -> List[Any]:
        """Payloads (or remote responses) of every successful item, in order."""
        return [item.value for item in self.items if item.status == SyncItemStatus.SUCCESS]

    def mark_completed(self) -> None:
        self.status = SyncRunStatus.COMPLETED
        self._finish()

    def mark_failed(self, error_message: str) -> None:
        self.status = SyncRunStatus.FAILED
        self.error_message = error_message
        self._finish()

    def _finish(self) -> None:
        self.completed_at = datetime.utcnow()
        self.execution_time_seconds = (self.completed_at - self.started_at).total_seconds()

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of the run."""
        return {
            "run_id": self.run_id,
            "sync_id": self.sync_id,
            "status": self.status.value,
            "live": self.live,
            "triggered_by": self.triggered_by,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "total_items": self.total_items,
            "success_count": self.success_count,
            "skipped_count": self.skipped_count,
            "failed_count": self.failed_count,
            "execution_time_seconds": self.execution_time_seconds,
            "error_message": self.error_message,
        }
