# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

from itertools import count
from logging import getLogger
from threading import Lock
from typing import Any, Self

from p2p_exchange.exceptions import (
    ConflictError,
    DuplicateOrderError,
    OrderNotFoundError,
)
from p2p_exchange.models.domain import Order, OrderSide, SortDirection, SortField

LOG = getLogger(__name__)

DEFAULT_DIRECTION: dict[OrderSide, SortDirection] = {
    OrderSide.BUY: SortDirection.DESC,
    OrderSide.SELL: SortDirection.ASC,
}


class OrderBook:
    """
    Holds the open buy and sell orders of the bulletin board.

    The book is the only owner of listed orders. Orders are frozen models, so
    everything handed out is a read-only view. Every method that reads and
    writes the book does so under one lock, which makes ``remove`` an atomic
    check-and-take: of two concurrent removals of the same id exactly one
    succeeds.

    The book never matches orders on its own, matching is a manual action of
    the user that starts a settlement.
    """

    def __init__(self: Self) -> None:
        self._lock = Lock()
        self._orders: dict[OrderSide, dict[str, Order]] = {
            OrderSide.BUY: {},
            OrderSide.SELL: {},
        }
        # order id -> insertion sequence, last resort tie-breaker for sorting
        self._sequence: dict[str, int] = {}
        self._counter = count()
        # order id -> ids of the settlement attempts currently executing it
        self._executing: dict[str, set[str]] = {}

    # == Mutations =============================================================

    def insert(self: Self, order: Order, side: OrderSide) -> None:
        """Store a new order on the given side."""
        with self._lock:
            if self._find_side(order.id) is not None:
                raise DuplicateOrderError(f"Order '{order.id}' is already listed!")
            self._orders[side][order.id] = order
            self._sequence[order.id] = next(self._counter)
        LOG.info(
            "Listed %s order '%s': %s @ %s (total %s)",
            side.value,
            order.id,
            order.quantity,
            order.price,
            order.total,
        )

    def remove(
        self: Self,
        order_id: str,
        side: OrderSide,
        *,
        allow_executing: bool = True,
    ) -> Order:
        """
        Detach an order from the book and return it.

        With ``allow_executing=False`` the removal is rejected with a
        ConflictError while a settlement is executing the order, which is what
        a cancellation needs.
        """
        with self._lock:
            if order_id not in self._orders[side]:
                raise OrderNotFoundError(
                    f"Order '{order_id}' not found on the {side.value} side!",
                )
            if not allow_executing and self._executing.get(order_id):
                raise ConflictError(
                    f"Order '{order_id}' is being executed and cannot be removed!",
                )
            order = self._orders[side].pop(order_id)
            self._sequence.pop(order_id, None)
            self._executing.pop(order_id, None)
        LOG.info("Removed %s order '%s' from the book.", side.value, order_id)
        return order

    def mark_executing(self: Self, order_id: str, attempt_id: str) -> None:
        """Flag that a settlement attempt started executing the order."""
        with self._lock:
            if self._find_side(order_id) is None:
                raise OrderNotFoundError(f"Order '{order_id}' is no longer listed!")
            self._executing.setdefault(order_id, set()).add(attempt_id)

    def clear_executing(self: Self, order_id: str, attempt_id: str) -> None:
        """Drop the execution flag of a settlement attempt."""
        with self._lock:
            if attempts := self._executing.get(order_id):
                attempts.discard(attempt_id)
                if not attempts:
                    del self._executing[order_id]

    def clear(self: Self) -> None:
        with self._lock:
            for orders in self._orders.values():
                orders.clear()
            self._sequence.clear()
            self._executing.clear()

    # == Queries ===============================================================

    def is_executing(self: Self, order_id: str) -> bool:
        with self._lock:
            return bool(self._executing.get(order_id))

    def get(self: Self, order_id: str) -> Order | None:
        with self._lock:
            if (side := self._find_side(order_id)) is None:
                return None
            return self._orders[side][order_id]

    def side_of(self: Self, order_id: str) -> OrderSide | None:
        with self._lock:
            return self._find_side(order_id)

    def orders_of(self: Self, address: str) -> list[Order]:
        """Returns the orders owned by ``address``, oldest first."""
        with self._lock:
            orders = [
                order
                for side in OrderSide
                for order in self._orders[side].values()
                if order.owner_address.lower() == address.lower()
            ]
            return sorted(orders, key=lambda o: (o.listed_at, self._sequence[o.id]))

    def list_sorted(
        self: Self,
        side: OrderSide,
        field: SortField = SortField.PRICE,
        direction: SortDirection | None = None,
    ) -> list[Order]:
        """
        Returns a fresh list of the orders of one side.

        If no direction is given the side's default is used, so that the best
        price comes first (highest bid, lowest ask). Equal values are ordered
        by listing time, earliest first, and then by insertion order.
        """
        direction = direction or DEFAULT_DIRECTION[side]
        descending = direction is SortDirection.DESC

        def sort_key(order: Order) -> tuple[Any, ...]:
            if field is SortField.LISTED_AT:
                value: Any = order.listed_at.timestamp()
            else:
                value = getattr(order, field.value)
            return (
                -value if descending else value,
                order.listed_at,
                self._sequence[order.id],
            )

        with self._lock:
            return sorted(self._orders[side].values(), key=sort_key)

    def best_order(self: Self, side: OrderSide) -> Order | None:
        """Returns the first order of the default sorted view."""
        if orders := self.list_sorted(side):
            return orders[0]
        return None

    def __contains__(self: Self, order_id: object) -> bool:
        with self._lock:
            return isinstance(order_id, str) and self._find_side(order_id) is not None

    def __len__(self: Self) -> int:
        with self._lock:
            return sum(len(orders) for orders in self._orders.values())

    # == Helpers (lock required) ===============================================

    def _find_side(self: Self, order_id: str) -> OrderSide | None:
        for side, orders in self._orders.items():
            if order_id in orders:
                return side
        return None
