"""
Registration of entity syncs.

Modules call :meth:`SyncRegistry.define_serializer` to describe a sync;
:func:`build_syncs` turns the definitions into running :class:`EntitySync`
instances once the shared clients exist.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ..exceptions import ConfigurationError
from ..models.config import SyncConfig
from ..services.task_runner import LocalTaskRunner, TaskRunner
from .sync import EntitySync, SyncClients
from .tracker import ContextLoggerAdapter, RunHistorySink
from .transforms import Preloader, Serializer

logger = logging.getLogger(__name__)

DEFAULT_SYNC_ID = "datadog-entities-from-catalog"

TaskRunnerFactory = Callable[[SyncConfig], Optional[TaskRunner]]


@dataclass
class SyncDefinition:
    config: SyncConfig
    serialize: Optional[Serializer] = None
    preload: Optional[Preloader] = None


class SyncRegistry:
    """Collects sync definitions before the syncs are built."""

    def __init__(self):
        self._definitions: Dict[str, SyncDefinition] = {}

    def define_serializer(self, config: SyncConfig, serialize: Optional[Serializer] = None,
                          preload: Optional[Preloader] = None) -> SyncDefinition:
        if config.sync_id in self._definitions:
            raise ConfigurationError(f"A sync with id {config.sync_id} is already defined")
        definition = SyncDefinition(config=config, serialize=serialize, preload=preload)
        self._definitions[config.sync_id] = definition
        logger.info(f"Defined sync {config.sync_id}")
        return definition

    @property
    def definitions(self) -> List[SyncDefinition]:
        return list(self._definitions.values())

    def __contains__(self, sync_id: str) -> bool:
        return sync_id in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)


def create_task_runner(config: SyncConfig) -> Optional[TaskRunner]:
    """In-process runner for frequency schedules; cron schedules are left to Cloud Scheduler."""
    if config.schedule is None or config.schedule.frequency is None:
        return None
    return LocalTaskRunner(config.schedule)


def register_configured_syncs(registry: SyncRegistry, configs: Dict[str, SyncConfig]) -> List[str]:
    """Define every configured sync not already defined, using the default serializer."""
    registered = []
    for sync_id, config in configs.items():
        if sync_id in registry:
            continue
        registry.define_serializer(config)
        registered.append(sync_id)
    if DEFAULT_SYNC_ID not in registry:
        logger.warning(f"No configuration found for the default sync {DEFAULT_SYNC_ID}")
    return registered


def build_syncs(
    registry: SyncRegistry,
    clients: SyncClients,
    history: Optional[RunHistorySink] = None,
    task_runner_factory: TaskRunnerFactory = create_task_runner,
) -> Dict[str, EntitySync]:
    """Build one EntitySync per definition, each with its own logging scope."""
    syncs = {}
    for definition in registry.definitions:
        config = definition.config
        syncs[config.sync_id] = EntitySync(
            clients,
            config,
            serialize=definition.serialize,
            preload=definition.preload,
            task_runner=task_runner_factory(config),
            history=history,
            log=ContextLoggerAdapter(logger, {"sync_id": config.sync_id, "sync_enabled": config.enabled}),
        )
    return syncs
