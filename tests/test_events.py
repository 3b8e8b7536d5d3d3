from __future__ import annotations

import asyncio

from entity_sync.services.events import EventParams, InMemoryEventsService


def test_publish_delivers_only_to_matching_topics() -> None:
    service = InMemoryEventsService()
    received: list[tuple[str, EventParams]] = []

    async def scenario():
        async def handler_a(params):
            received.append(("a", params))

        async def handler_b(params):
            received.append(("b", params))

        await service.subscribe("a", ["topic.a"], handler_a)
        await service.subscribe("b", ["topic.b"], handler_b)
        return await service.publish("topic.a", {"entityFilter": {}}, {"source": "test"})

    delivered = asyncio.run(scenario())

    assert delivered == 1
    assert received[0][0] == "a"
    assert received[0][1].event_payload == {"entityFilter": {}}
    assert received[0][1].metadata == {"source": "test"}


def test_failing_handler_does_not_block_others(caplog) -> None:
    service = InMemoryEventsService()
    received: list[str] = []

    async def scenario():
        async def broken(_params):
            raise RuntimeError("handler exploded")

        async def healthy(params):
            received.append(params.topic)

        await service.subscribe("broken", ["sync"], broken)
        await service.subscribe("healthy", ["sync"], healthy)
        return await service.publish("sync", None)

    assert asyncio.run(scenario()) == 1
    assert received == ["sync"]
    assert "handler exploded" in caplog.text


def test_unsubscribe_stops_delivery() -> None:
    service = InMemoryEventsService()
    received: list[str] = []

    async def scenario():
        async def handler(params):
            received.append(params.topic)

        await service.subscribe("sync", ["sync"], handler)
        await service.unsubscribe("sync")
        return await service.publish("sync", {})

    assert asyncio.run(scenario()) == 0
    assert received == []
    assert service.subscriptions == []
