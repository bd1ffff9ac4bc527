# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

from collections import deque
from datetime import datetime
from decimal import Decimal
from logging import getLogger
from threading import Lock
from typing import Iterator, Self

from p2p_exchange.models.domain import Activity

LOG = getLogger(__name__)


class ActivityLedger:
    """
    Append-only log of executed trades and cancellations.

    Iteration yields the most recent activity first. Consumers rely on that
    order and must not re-sort to get it.
    """

    def __init__(self: Self) -> None:
        self._lock = Lock()
        self._activities: deque[Activity] = deque()

    def append(self: Self, activity: Activity) -> None:
        """Add an activity in front of all others."""
        with self._lock:
            self._activities.appendleft(activity)
        LOG.info(
            "Activity: %s of order '%s' (total %s, ref %s)",
            activity.kind.value,
            activity.order.id,
            activity.order.total,
            activity.settlement_reference,
        )

    def volume_since(self: Self, cutoff: datetime) -> Decimal:
        """Sum of the order totals of all activities at or after ``cutoff``."""
        with self._lock:
            return sum(
                (a.order.total for a in self._activities if a.timestamp >= cutoff),
                Decimal(0),
            )

    def last_price(self: Self) -> Decimal | None:
        """Price of the most recent activity, None if there is none."""
        with self._lock:
            if not self._activities:
                return None
            return self._activities[0].order.price

    def for_address(self: Self, address: str) -> list[Activity]:
        """
        Returns the activities an address took part in, either as owner of the
        order or as counterparty of the settlement, newest first.
        """
        address = address.lower()
        with self._lock:
            return [
                activity
                for activity in self._activities
                if activity.order.owner_address.lower() == address
                or (activity.counterparty_address or "").lower() == address
            ]

    def __iter__(self: Self) -> Iterator[Activity]:
        with self._lock:
            snapshot = list(self._activities)
        return iter(snapshot)

    def __len__(self: Self) -> int:
        with self._lock:
            return len(self._activities)
