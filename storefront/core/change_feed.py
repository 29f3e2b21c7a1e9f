"""In-process change feed with one channel per entity type.

The storefront UI subscribes (over server-sent events) to refresh
settings, code stock or order lists. Checkout and fulfillment never
read from the feed; they only publish to it.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any, Literal

logger = logging.getLogger(__name__)

Entity = Literal["settings", "codes", "orders"]
ENTITIES: tuple[str, ...] = ("settings", "codes", "orders")


class ChangeFeed:
    """Fan-out of change events to per-subscriber queues."""

    def __init__(self, max_queue_size: int = 100) -> None:
        self._subscribers: dict[str, set[asyncio.Queue]] = {entity: set() for entity in ENTITIES}
        self._max_queue_size = max_queue_size

    def publish(self, entity: Entity, change: dict[str, Any]) -> None:
        """Push a change to every subscriber of the entity channel.

        Slow subscribers whose queue is full drop the event.
        """
        event = {"entity": entity, **change}
        for queue in list(self._subscribers.get(entity, ())):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.debug("Dropping %s change for slow subscriber", entity)

    async def subscribe(self, entity: Entity) -> AsyncIterator[dict[str, Any]]:
        """Yield changes for one entity until the consumer stops iterating."""
        if entity not in self._subscribers:
            raise ValueError(f"Unknown entity: {entity}")
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
        self._subscribers[entity].add(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._subscribers[entity].discard(queue)

    def subscriber_count(self, entity: Entity) -> int:
        return len(self._subscribers.get(entity, ()))
