"""
Sync engine: rate-limited dispatch, serialization and run orchestration.
"""

from .chunking import by_chunk, by_chunk_async
from .filters import merge_entity_filters, validate_event_payload
from .registry import DEFAULT_SYNC_ID, SyncRegistry, build_syncs, register_configured_syncs
from .sync import EntitySync, SyncClients, sync_topic
from .tracker import SyncTracker
from .transforms import ExtraSerializationInfo, default_entity_serializer

__all__ = [
    "by_chunk",
    "by_chunk_async",
    "merge_entity_filters",
    "validate_event_payload",
    "DEFAULT_SYNC_ID",
    "SyncRegistry",
    "build_syncs",
    "register_configured_syncs",
    "EntitySync",
    "SyncClients",
    "sync_topic",
    "SyncTracker",
    "ExtraSerializationInfo",
    "default_entity_serializer",
]
