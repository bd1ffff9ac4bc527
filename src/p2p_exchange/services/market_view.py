# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Self

from p2p_exchange.models.domain import Order, OrderSide, utc_now
from p2p_exchange.models.schemas import MarketSnapshot
from p2p_exchange.services.activity import ActivityLedger
from p2p_exchange.services.orderbook import OrderBook


class MarketView:
    """
    Read-only projection of the order book and the activity ledger. Nothing
    is cached, every query is computed from the current state.
    """

    def __init__(
        self: Self,
        orderbook: OrderBook,
        activities: ActivityLedger,
        window: timedelta = timedelta(hours=24),
    ) -> None:
        self._orderbook = orderbook
        self._activities = activities
        self._window = window

    @property
    def best_bid(self: Self) -> Order | None:
        return self._orderbook.best_order(OrderSide.BUY)

    @property
    def best_ask(self: Self) -> Order | None:
        return self._orderbook.best_order(OrderSide.SELL)

    @property
    def last_price(self: Self) -> Decimal | None:
        return self._activities.last_price()

    def volume(
        self: Self,
        window: timedelta | None = None,
        now: datetime | None = None,
    ) -> Decimal:
        """Traded volume (sum of totals) within the rolling window."""
        return self._activities.volume_since(
            (now or utc_now()) - (window or self._window),
        )

    def snapshot(
        self: Self,
        window: timedelta | None = None,
        now: datetime | None = None,
    ) -> MarketSnapshot:
        window_start = (now or utc_now()) - (window or self._window)
        return MarketSnapshot(
            best_bid=self.best_bid,
            best_ask=self.best_ask,
            last_price=self.last_price,
            volume=self._activities.volume_since(window_start),
            window_start=window_start,
        )
