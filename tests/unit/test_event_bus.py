"""
Unit Tests for EventBus

Run with:
    pytest tests/unit/test_event_bus.py -v
"""

import pytest

from services.event_bus import FETCH_TOPIC, PIPELINE_TOPIC, EventBus, drain


class TestEventBus:
    """Tests for topic pub/sub"""

    @pytest.mark.asyncio
    async def test_subscriber_receives_published_event(self):
        bus = EventBus()
        queue = await bus.subscribe(FETCH_TOPIC)

        delivered = await bus.publish(FETCH_TOPIC, {"event": "source_fetched", "exchange": "binance"})

        assert delivered == 1
        assert queue.get_nowait() == {"event": "source_fetched", "exchange": "binance"}

    @pytest.mark.asyncio
    async def test_topics_are_isolated(self):
        bus = EventBus()
        fetch_queue = await bus.subscribe(FETCH_TOPIC)
        pipeline_queue = await bus.subscribe(PIPELINE_TOPIC)

        await bus.publish(PIPELINE_TOPIC, {"event": "pipeline_completed"})

        assert fetch_queue.empty()
        assert drain(pipeline_queue) == [{"event": "pipeline_completed"}]

    @pytest.mark.asyncio
    async def test_publish_without_subscribers_is_noop(self):
        bus = EventBus()
        assert await bus.publish("nobody", {"event": "x"}) == 0

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_delivery_and_drains(self):
        bus = EventBus()
        queue = await bus.subscribe(FETCH_TOPIC)
        await bus.publish(FETCH_TOPIC, {"n": 1})

        await bus.unsubscribe(FETCH_TOPIC, queue)
        await bus.publish(FETCH_TOPIC, {"n": 2})

        assert queue.empty()
        assert bus.subscriber_count(FETCH_TOPIC) == 0

    @pytest.mark.asyncio
    async def test_unsubscribe_unknown_topic_is_noop(self):
        bus = EventBus()
        queue = await bus.subscribe(FETCH_TOPIC)

        await bus.unsubscribe("other", queue)

        assert bus.subscriber_count(FETCH_TOPIC) == 1

    @pytest.mark.asyncio
    async def test_full_queue_drops_and_counts_events(self):
        bus = EventBus(max_queue_size=1)
        queue = await bus.subscribe(FETCH_TOPIC)

        await bus.publish(FETCH_TOPIC, {"n": 1})
        delivered = await bus.publish(FETCH_TOPIC, {"n": 2})

        assert delivered == 0
        assert bus.dropped(FETCH_TOPIC) == 1
        assert drain(queue) == [{"n": 1}]
