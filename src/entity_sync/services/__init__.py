"""
Services for entity sync.

The Google Cloud backed services (Firestore, Cloud Scheduler, Secret
Manager) are imported from their modules directly.
"""

from .events import EventParams, EventsService, InMemoryEventsService
from .task_runner import LocalTaskRunner, TaskRunner

__all__ = [
    "EventParams",
    "EventsService",
    "InMemoryEventsService",
    "LocalTaskRunner",
    "TaskRunner",
]
