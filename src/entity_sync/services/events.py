"""
In-process event bus used for push-triggered syncs.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Sequence

logger = logging.getLogger(__name__)


@dataclass
class EventParams:
    """A message delivered to a subscriber."""
    topic: str
    event_payload: Any = None
    metadata: Dict[str, Any] = field(default_factory=dict)


EventHandler = Callable[[EventParams], Awaitable[Any]]


@dataclass
class Subscription:
    id: str
    topics: List[str]
    on_event: EventHandler


class EventsService(ABC):
    """Publish/subscribe contract the syncs rely on."""

    @abstractmethod
    async def subscribe(self, id: str, topics: Sequence[str], on_event: EventHandler) -> None:
        pass

    @abstractmethod
    async def unsubscribe(self, id: str) -> None:
        pass

    @abstractmethod
    async def publish(self, topic: str, payload: Any, metadata: Dict[str, Any] = None) -> int:
        pass


class InMemoryEventsService(EventsService):
    """
    Delivers published events to subscribers in the same process.

    Handlers are awaited in subscription order. A failing handler is logged
    and does not stop delivery to the others.
    """

    def __init__(self):
        self._subscriptions: Dict[str, Subscription] = {}

    @property
    def subscriptions(self) -> List[Subscription]:
        return list(self._subscriptions.values())

    async def subscribe(self, id: str, topics: Sequence[str], on_event: EventHandler) -> None:
        if id in self._subscriptions:
            logger.warning(f"Replacing existing subscription {id}")
        self._subscriptions[id] = Subscription(id=id, topics=list(topics), on_event=on_event)
        logger.info(f"Subscription {id} registered for topics: {', '.join(topics)}")

    async def unsubscribe(self, id: str) -> None:
        if self._subscriptions.pop(id, None) is not None:
            logger.info(f"Subscription {id} removed")

    async def publish(self, topic: str, payload: Any, metadata: Dict[str, Any] = None) -> int:
        """Deliver an event; returns how many subscribers received it."""
        params = EventParams(topic=topic, event_payload=payload, metadata=metadata or {})
        delivered = 0
        for subscription in self.subscriptions:
            if topic not in subscription.topics:
                continue
            try:
                await subscription.on_event(params)
                delivered += 1
            except Exception as e:
                logger.error(f"Subscriber {subscription.id} failed to handle event on {topic}: {e}", exc_info=True)
        if not delivered:
            logger.debug(f"No subscribers handled event on topic {topic}")
        return delivered
