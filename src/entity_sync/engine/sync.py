"""
Entity sync that keeps Datadog's Software Catalog in step with the Backstage catalog.

A run always goes fetch -> (preload) -> dispatch -> report. Runs can be
started by the task runner, by an event on the sync's topic, or directly
through :meth:`EntitySync.run_sync`. Nothing here prevents a scheduled run
and an event-triggered run of the same sync from overlapping; each run
fetches its own snapshot and reports independently.
"""

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Set

from ..connectors.base import CatalogReader, CatalogWriter, CredentialProvider
from ..exceptions import ConfigurationError, ExecutionError, FetchError, InvalidEventPayload, PreloadError, TransformationError
from ..models.config import EntityFilterClause, SyncConfig
from ..models.entity import Entity, stringify_entity_ref
from ..models.sync import SyncItemResult, SyncItemStatus, SyncRunResult
from ..services.events import EventParams, EventsService
from ..services.task_runner import TaskRunner
from .chunking import by_chunk_async
from .filters import merge_entity_filters, validate_event_payload
from .tracker import ContextLoggerAdapter, RunHistorySink, SyncTracker
from .transforms import ExtraSerializationInfo, Preloader, Serializer, default_entity_serializer

logger = logging.getLogger(__name__)

TOPIC_PREFIX = "datadog-entity-sync"


def sync_topic(sync_id: str) -> str:
    """Event topic that triggers the sync with the given id."""
    return f"{TOPIC_PREFIX}.{sync_id}"


@dataclass
class SyncClients:
    """Shared collaborators, injected once per sync."""
    datadog: CatalogWriter
    catalog: CatalogReader
    auth: CredentialProvider
    events: Optional[EventsService] = None


class EntitySync:
    """
    One registered sync between the Backstage catalog and Datadog.

    Serialization is pluggable: ``serialize(entity, preload)`` maps an entity
    to a Datadog definition and ``preload(clients, entities)`` builds shared
    context once per run.
    """

    def __init__(
        self,
        clients: SyncClients,
        config: SyncConfig,
        serialize: Optional[Serializer] = None,
        preload: Optional[Preloader] = None,
        task_runner: Optional[TaskRunner] = None,
        history: Optional[RunHistorySink] = None,
        log: Optional[logging.LoggerAdapter] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if config.rate_limit.count < 1:
            raise ConfigurationError(
                f"Sync {config.sync_id} has an invalid rate limit count: {config.rate_limit.count}"
            )

        self.clients = clients
        self.config = config
        self.sync_id = config.sync_id
        self.topic = sync_topic(config.sync_id)
        self.task_runner = task_runner
        self.last_run: Optional[SyncRunResult] = None

        self._enabled = config.enabled
        self._serialize = serialize or self._default_serialize
        self._preload = preload
        self._history = history
        self._sleep = sleep
        self._background: Set[asyncio.Task] = set()

        base = log or ContextLoggerAdapter(logger, {})
        self.log = ContextLoggerAdapter(base.logger, {**(base.extra or {}), "sync_id": self.sync_id})

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self._enabled = bool(value)
        self.log.info(f"Sync {self.sync_id} {'enabled' if self._enabled else 'disabled'}")

    def is_live(self, dry_run: bool = False) -> bool:
        """A run only writes to Datadog when the sync is enabled and no dry run was requested."""
        return self._enabled and not dry_run

    def _default_serialize(self, entity: Entity, _preload: Any = None) -> Dict[str, Any]:
        return default_entity_serializer(entity, ExtraSerializationInfo(app_base_url=self.config.app_base_url))

    # Lifecycle

    async def start(self) -> None:
        """Subscribe to the sync's topic and hand the scheduled callback to the task runner."""
        if self.clients.events is not None:
            await self.clients.events.subscribe(id=self.sync_id, topics=[self.topic], on_event=self.event_sync)
        if self.task_runner is not None:
            self.task_runner.run(self.sync_id, self.scheduled_sync)
        self.log.info(f"Sync {self.sync_id} started (enabled={self._enabled}, topic={self.topic})")

    async def stop(self) -> None:
        """Unsubscribe, stop scheduling and wait for runs already in flight."""
        if self.clients.events is not None:
            await self.clients.events.unsubscribe(self.sync_id)
        if self.task_runner is not None:
            await self.task_runner.stop()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        self.log.info(f"Sync {self.sync_id} stopped")

    # Triggers

    def scheduled_sync(self) -> asyncio.Task:
        """Start a full, non-dry run in the background."""
        return self._spawn(self.sync(triggered_by="scheduler"))

    async def event_sync(self, params: EventParams) -> Optional[asyncio.Task]:
        """
        Start a run from an event payload ``{"entityFilter": {...}, "dryRun": bool}``.

        Invalid payloads are logged and dropped without starting a run.
        """
        try:
            payload = validate_event_payload(params.event_payload)
        except InvalidEventPayload as e:
            self.log.warning(f"Ignoring invalid sync event on topic {params.topic}: {e}")
            return None

        return self._spawn(self.sync(payload.entity_filter, payload.dry_run, triggered_by="event"))

    async def run_sync(self, filter: Optional[EntityFilterClause] = None, dry_run: bool = False,
                       triggered_by: str = "manual") -> SyncRunResult:
        """Run a sync and wait for its result."""
        return await self.sync(filter, dry_run, triggered_by=triggered_by)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            self.log.warning(f"Background run of sync {self.sync_id} was cancelled")
        elif task.exception() is not None:
            # Already reported by the run's tracker
            self.log.debug(f"Background run of sync {self.sync_id} ended with: {task.exception()}")

    # Run

    async def sync(self, filter: Optional[EntityFilterClause] = None, dry_run: bool = False,
                   triggered_by: str = "manual") -> SyncRunResult:
        """
        Execute one sync run.

        Args:
            filter: Filter overlaid on the configured entity filter
            dry_run: Serialize without calling Datadog
            triggered_by: What started this run (scheduler, event, manual, api)

        Returns:
            One item per fetched entity, in fetch order

        Raises:
            FetchError: If the catalog could not be read
            PreloadError: If the preload hook failed
            ConfigurationError: If the rate limit is invalid
        """
        live = self.is_live(dry_run)
        skip_reason = None if live else ("this is a dry run" if self._enabled else "the sync being disabled")
        entity_filter = merge_entity_filters(filter, self.config.entity_filter)
        run = SyncRunResult(
            run_id=str(uuid.uuid4()),
            sync_id=self.sync_id,
            live=live,
            triggered_by=triggered_by,
            entity_filter=entity_filter,
        )
        tracker = SyncTracker(run, log=self.log.child(sync_enabled=self._enabled), sink=self._history)
        tracker.start(f"A {'live' if live else 'dry run'} sync to datadog has started.")

        try:
            entities = await self._fetch(entity_filter)
            preload = await self._run_preload(entities)

            tracker.log.info(f"Syncing {len(entities)} entities to datadog.")
            run.items = await by_chunk_async(
                entities,
                self.config.rate_limit,
                lambda chunk: self._sync_entities(chunk, preload, skip_reason, tracker),
                sleep=self._sleep,
            )
        except asyncio.CancelledError:
            self.last_run = await tracker.fail(ExecutionError(f"Sync run {run.run_id} was cancelled"))
            raise
        except Exception as e:
            self.last_run = await tracker.fail(e)
            raise

        tracker.log.info(f"Finished syncing {len(run.items)} services to datadog.")
        self.last_run = await tracker.finish()
        return run

    async def _fetch(self, entity_filter: List[EntityFilterClause]) -> List[Entity]:
        try:
            credentials = await self.clients.auth.get_own_service_credentials()
            entities = await self.clients.catalog.get_entities(filter=entity_filter, credentials=credentials)
        except Exception as e:
            raise FetchError(f"Failed to fetch entities for sync {self.sync_id}: {e}") from e
        return list(entities)

    async def _run_preload(self, entities: List[Entity]) -> Any:
        if self._preload is None:
            return None
        try:
            return await self._preload(self.clients, entities)
        except Exception as e:
            raise PreloadError(f"Preload failed for sync {self.sync_id}: {e}") from e

    async def _sync_entities(self, entities: List[Entity], preload: Any, skip_reason: Optional[str],
                             tracker: SyncTracker) -> AsyncIterator[SyncItemResult]:
        for entity in entities:
            yield await self._sync_entity(entity, preload, skip_reason, tracker)

    async def _sync_entity(self, entity: Entity, preload: Any, skip_reason: Optional[str],
                           tracker: SyncTracker) -> SyncItemResult:
        entity_ref = stringify_entity_ref(entity) if isinstance(entity, dict) else repr(entity)
        log = tracker.child(entity_ref=entity_ref)

        try:
            metadata = entity.get("metadata") or {}
            entity_title = metadata.get("title") or metadata.get("name")

            payload = self._serialize(entity, preload)
            if hasattr(payload, "model_dump"):
                payload = payload.model_dump(by_alias=True, exclude_none=True)
            if not payload:
                log.warning(f"The entity {entity_title} produced no definition and was skipped.")
                return SyncItemResult(
                    entity_ref=entity_ref,
                    status=SyncItemStatus.SKIPPED,
                    message="Serializer produced no definition",
                )
            if not isinstance(payload, dict):
                raise TransformationError(f"Serializer returned {type(payload).__name__}, expected an object")

            if skip_reason:
                log.info(f"The entity {entity_title} was not synced due to {skip_reason}.")
                return SyncItemResult(entity_ref=entity_ref, status=SyncItemStatus.SUCCESS, payload=payload)

            response = await self.clients.datadog.upsert_catalog_entity(json.dumps(payload))
            return SyncItemResult(
                entity_ref=entity_ref,
                status=SyncItemStatus.SUCCESS,
                payload=payload,
                response=response,
            )

        except Exception as e:
            log.error(f"An issue occurred with creating a datadog service definition: {e}", exc_info=True)
            return SyncItemResult(entity_ref=entity_ref, status=SyncItemStatus.FAILED, message=str(e))
