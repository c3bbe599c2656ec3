"""
Unit Tests for EventChannel

Tests typed event fan-out to subscribers.
"""

import pytest

from feedgate.core.events import EventChannel, GatewayEventType


@pytest.mark.unit
class TestEventChannel:
    """Test suite for EventChannel."""

    @pytest.mark.asyncio
    async def test_publish_reaches_every_subscriber(self):
        """Test that each subscriber receives its own copy of an event."""
        channel = EventChannel()
        first = channel.subscribe()
        second = channel.subscribe()

        channel.publish(GatewayEventType.READY, user_id="100", username="feedgate")

        for queue in (first, second):
            event = await queue.get()
            assert event.type == GatewayEventType.READY
            assert event.payload == {"user_id": "100", "username": "feedgate"}

    def test_publish_without_subscribers(self):
        """Test that publishing with nobody listening is a no-op."""
        channel = EventChannel()
        event = channel.publish(GatewayEventType.RATE_LIMITED, cooldown_seconds=61)

        assert event.payload["cooldown_seconds"] == 61
        assert channel.subscriber_count == 0

    def test_unsubscribe_stops_delivery(self):
        """Test that an unsubscribed queue receives nothing."""
        channel = EventChannel()
        queue = channel.subscribe()
        channel.unsubscribe(queue)
        channel.unsubscribe(queue)

        channel.publish(GatewayEventType.TOKEN_REFRESHED, generation=1)

        assert queue.empty()
        assert channel.subscriber_count == 0

    def test_slow_subscriber_loses_oldest_event(self):
        """Test that a full subscriber queue drops its oldest event."""
        channel = EventChannel(max_queue_size=2)
        queue = channel.subscribe()

        for generation in (1, 2, 3):
            channel.publish(GatewayEventType.TOKEN_REFRESHED, generation=generation)

        received = [queue.get_nowait().payload["generation"] for _ in range(queue.qsize())]
        assert received == [2, 3]
