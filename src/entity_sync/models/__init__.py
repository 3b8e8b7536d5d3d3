"""
Models for the entity sync system.
"""

from .config import (
    SyncConfig, RateLimit, HumanDuration, TaskSchedule,
    CATALOG_FILTER_EXISTS, FilterSentinel,
)
from .entity import Link, CompoundEntityRef
from .sync import SyncItemResult, SyncItemStatus, SyncRunResult, SyncRunStatus

__all__ = [
    "SyncConfig",
    "RateLimit",
    "HumanDuration",
    "TaskSchedule",
    "CATALOG_FILTER_EXISTS",
    "FilterSentinel",
    "Link",
    "CompoundEntityRef",
    "SyncItemResult",
    "SyncItemStatus",
    "SyncRunResult",
    "SyncRunStatus",
]
