"""
Configuration models for entity sync operations.
"""

from datetime import timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class FilterSentinel(str, Enum):
    """Filter values with a meaning other than literal equality."""
    EXISTS = "CATALOG_FILTER_EXISTS"


# A filter value that only requires the field to be present
CATALOG_FILTER_EXISTS = FilterSentinel.EXISTS

FilterValue = Union[str, List[str], FilterSentinel]
EntityFilterClause = Dict[str, Any]
EntityFilterQuery = Union[EntityFilterClause, List[EntityFilterClause]]


class HumanDuration(BaseModel):
    """A duration expressed in human units, e.g. ``{"hours": 1}``."""
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    milliseconds: float = 0
    seconds: float = 0
    minutes: float = 0
    hours: float = 0
    days: float = 0

    def to_timedelta(self) -> timedelta:
        return timedelta(
            days=self.days,
            hours=self.hours,
            minutes=self.minutes,
            seconds=self.seconds,
            milliseconds=self.milliseconds,
        )

    def total_seconds(self) -> float:
        return self.to_timedelta().total_seconds()

    def __bool__(self) -> bool:
        return self.total_seconds() > 0


class RateLimit(BaseModel):
    """How many entities are sent per batch and how long to wait between batches."""
    model_config = ConfigDict(populate_by_name=True)

    count: int = Field(300, description="Maximum number of entities per batch")
    interval: Optional[HumanDuration] = Field(None, description="Pause between batches; no pause when absent")

    @field_validator("count")
    @classmethod
    def validate_count(cls, v):
        if v < 1:
            raise ValueError(f"rate limit count must be at least 1, got {v}")
        return v


class TaskSchedule(BaseModel):
    """Cadence for scheduled syncs."""
    model_config = ConfigDict(populate_by_name=True)

    frequency: Optional[HumanDuration] = Field(None, description="Run every <frequency> (in-process runner)")
    cron: Optional[str] = Field(None, description="Cron expression (Cloud Scheduler)")
    timeout: Optional[HumanDuration] = Field(None, description="Abort a scheduled run after this long")
    initial_delay: Optional[HumanDuration] = Field(None, alias="initialDelay")

    @model_validator(mode="after")
    def validate_cadence(self):
        if (self.frequency is None) == (self.cron is None):
            raise ValueError("schedule requires exactly one of 'frequency' or 'cron'")
        if self.cron is not None and len(self.cron.split()) != 5:
            raise ValueError("Schedule must be a valid cron expression (5 parts)")
        return self


class SyncConfig(BaseModel):
    """
    Configuration for one entity sync.
    Everything except ``enabled`` is fixed once the sync is registered.
    """
    model_config = ConfigDict(populate_by_name=True)

    sync_id: str = Field(..., alias="syncId", min_length=1, description="Unique identifier for this sync")
    entity_filter: EntityFilterQuery = Field(
        default_factory=lambda: {"kind": "Component"},
        alias="entityFilter",
        description="Default catalog filter; a list means alternative clauses",
    )
    rate_limit: RateLimit = Field(
        default_factory=lambda: RateLimit(count=300, interval=HumanDuration(hours=1)),
        alias="rateLimit",
    )
    schedule: Optional[TaskSchedule] = Field(None, description="When to run scheduled syncs")
    enabled: bool = Field(False, description="Whether entities are actually sent to Datadog")
    app_base_url: Optional[str] = Field(None, alias="appBaseUrl", description="Base URL of the Backstage app")

    @field_validator("entity_filter")
    @classmethod
    def validate_entity_filter(cls, v):
        clauses = v if isinstance(v, list) else [v]
        for clause in clauses:
            if not isinstance(clause, dict):
                raise ValueError("entity filter clauses must be objects")
        return v
