# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""
Test module for event bus.

This module contains focused tests for the EventBus class,
testing subscription, publishing, and callback functionality.
"""

from unittest.mock import Mock

import pytest

from p2p_exchange.core.event_bus import Event, EventBus


class TestEventBus:
    """Test cases for EventBus"""

    def test_init(self) -> None:
        """Test EventBus initialization"""
        event_bus = EventBus()
        assert event_bus._subscribers == {}

    def test_subscribe_multiple_callbacks_same_event(self) -> None:
        """Test subscribing multiple callbacks to the same event type"""
        event_bus = EventBus()
        callback1 = Mock()
        callback2 = Mock()

        event_bus.subscribe("order_listed", callback1)
        event_bus.subscribe("order_listed", callback2)

        assert event_bus._subscribers["order_listed"] == [callback1, callback2]

    def test_publish_wraps_data_in_event(self) -> None:
        """Test that subscribers receive an Event with type and data"""
        event_bus = EventBus()
        callback = Mock()
        data = {"order_id": "order-1"}

        event_bus.subscribe("order_settled", callback)
        event_bus.publish("order_settled", data)

        callback.assert_called_once_with(Event(type="order_settled", data=data))
        assert callback.call_args[0][0].data is data

    def test_publish_without_data(self) -> None:
        """Test that missing data becomes an empty dict"""
        event_bus = EventBus()
        callback = Mock()

        event_bus.subscribe("market_updated", callback)
        event_bus.publish("market_updated")

        assert callback.call_args[0][0].data == {}

    def test_publish_to_nonexistent_event_type(self) -> None:
        """Test publishing to event type with no subscribers"""
        event_bus = EventBus()

        event_bus.publish("nonexistent_event", {"message": "nobody listening"})

        assert "nonexistent_event" not in event_bus._subscribers

    def test_publish_different_event_types(self) -> None:
        """Test that publishing only affects relevant subscribers"""
        event_bus = EventBus()
        callback1 = Mock()
        callback2 = Mock()

        event_bus.subscribe("event_a", callback1)
        event_bus.subscribe("event_b", callback2)
        event_bus.publish("event_a", {"data": "for_a"})

        callback1.assert_called_once()
        callback2.assert_not_called()

    def test_unsubscribe(self) -> None:
        """Test that an unsubscribed callback is no longer called"""
        event_bus = EventBus()
        callback = Mock()

        event_bus.subscribe("notification", callback)
        event_bus.unsubscribe("notification", callback)
        event_bus.unsubscribe("notification", callback)
        event_bus.publish("notification", {"message": "hello"})

        callback.assert_not_called()

    def test_unsubscribe_while_publishing(self) -> None:
        """Test that callbacks may unsubscribe themselves while notified"""
        event_bus = EventBus()
        second = Mock()

        def once(event: Event) -> None:  # noqa: ARG001
            event_bus.unsubscribe("notification", once)

        event_bus.subscribe("notification", once)
        event_bus.subscribe("notification", second)
        event_bus.publish("notification")
        event_bus.publish("notification")

        assert second.call_count == 2
        assert event_bus._subscribers["notification"] == [second]

    def test_callback_exception_propagates(self) -> None:
        """Test that exceptions of callbacks are not swallowed"""
        event_bus = EventBus()

        def failing_callback(event: Event) -> None:  # noqa: ARG001
            raise ValueError("Test exception")

        event_bus.subscribe("test_event", failing_callback)

        with pytest.raises(ValueError, match="Test exception"):
            event_bus.publish("test_event", {"data": "test"})
