"""Unit tests for the in-process change feed."""

import asyncio

import pytest

from storefront.core.change_feed import ChangeFeed


class TestChangeFeed:
    @pytest.mark.asyncio
    async def test_subscriber_receives_its_entity_only(self) -> None:
        feed = ChangeFeed()
        stream = feed.subscribe("codes")
        first = asyncio.ensure_future(stream.__anext__())
        await asyncio.sleep(0)

        feed.publish("orders", {"order_id": "o1"})
        feed.publish("codes", {"product_id": "p1", "added": 5})

        assert await asyncio.wait_for(first, timeout=1) == {"entity": "codes", "product_id": "p1", "added": 5}
        await stream.aclose()

    @pytest.mark.asyncio
    async def test_unsubscribes_when_consumer_stops(self) -> None:
        feed = ChangeFeed()
        stream = feed.subscribe("settings")
        pending = asyncio.ensure_future(stream.__anext__())
        await asyncio.sleep(0)
        assert feed.subscriber_count("settings") == 1

        feed.publish("settings", {"key": "tax_rate"})
        await pending
        await stream.aclose()

        assert feed.subscriber_count("settings") == 0

    @pytest.mark.asyncio
    async def test_full_queue_drops_events(self) -> None:
        feed = ChangeFeed(max_queue_size=1)
        stream = feed.subscribe("orders")
        pending = asyncio.ensure_future(stream.__anext__())
        await asyncio.sleep(0)

        feed.publish("orders", {"n": 1})
        assert (await pending)["n"] == 1

        feed.publish("orders", {"n": 2})
        feed.publish("orders", {"n": 3})

        assert (await asyncio.wait_for(stream.__anext__(), timeout=1))["n"] == 2
        assert feed.subscriber_count("orders") == 1
        await stream.aclose()

    def test_publish_without_subscribers_is_noop(self) -> None:
        ChangeFeed().publish("orders", {"order_id": "o1"})

    @pytest.mark.asyncio
    async def test_unknown_entity(self) -> None:
        with pytest.raises(ValueError):
            await ChangeFeed().subscribe("products").__anext__()  # type: ignore[arg-type]
