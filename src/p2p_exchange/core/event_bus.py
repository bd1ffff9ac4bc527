# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

from dataclasses import dataclass, field
from typing import Any, Callable, Self


@dataclass(frozen=True)
class Event:
    """An event published on the event bus"""

    type: str
    data: dict[str, Any] = field(default_factory=dict)


class EventBus:
    """Central event bus for communication between components"""

    def __init__(self: Self) -> None:
        self._subscribers: dict[str, list[Callable[[Event], None]]] = {}

    def subscribe(
        self: Self,
        event_type: str,
        callback: Callable[[Event], None],
    ) -> None:
        """Subscribe to an event type"""
        if event_type not in self._subscribers:
            self._subscribers[event_type] = []
        self._subscribers[event_type].append(callback)

    def unsubscribe(
        self: Self,
        event_type: str,
        callback: Callable[[Event], None],
    ) -> None:
        """Remove a previously registered callback"""
        if callback in (callbacks := self._subscribers.get(event_type, [])):
            callbacks.remove(callback)

    def publish(self: Self, event_type: str, data: dict[str, Any] | None = None) -> None:
        """Publish an event to all subscribers"""
        if event_type not in self._subscribers:
            return

        event = Event(type=event_type, data=data or {})
        # Copy, since callbacks may (un)subscribe while being notified.
        for callback in list(self._subscribers[event_type]):
            callback(event)
