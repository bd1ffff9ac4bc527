# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""Unit tests for the activity ledger and the market view."""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from p2p_exchange.models.domain import Activity, ActivityKind, Order, OrderSide
from p2p_exchange.services.activity import ActivityLedger
from p2p_exchange.services.market_view import MarketView
from p2p_exchange.services.orderbook import OrderBook

NOW = datetime(2025, 1, 2, 12, 0, tzinfo=timezone.utc)
BUYER = "0x" + "b2" * 20

MakeOrder = Callable[..., Order]


def activity(order: Order, age: timedelta, kind: ActivityKind = ActivityKind.BUY) -> Activity:
    return Activity(
        kind=kind,
        order=order,
        timestamp=NOW - age,
        settlement_reference=f"0x{len(order.id):064x}",
        counterparty_address=BUYER,
    )


class TestActivityLedger:
    """Test cases for ActivityLedger"""

    def test_empty(self, activities: ActivityLedger) -> None:
        """Test the statistics of an empty ledger"""
        assert len(activities) == 0
        assert list(activities) == []
        assert activities.last_price() is None
        assert activities.volume_since(NOW - timedelta(days=1)) == Decimal(0)

    def test_newest_first(self, activities: ActivityLedger, make_order: MakeOrder) -> None:
        """Test that appended activities are iterated newest first"""
        first = activity(make_order(price="1"), timedelta(hours=2))
        second = activity(make_order(price="2"), timedelta(hours=1))
        activities.append(first)
        activities.append(second)

        assert list(activities) == [second, first]
        assert activities.last_price() == Decimal(2)

    def test_volume_since(self, activities: ActivityLedger, make_order: MakeOrder) -> None:
        """Test that only activities within the window are summed up"""
        activities.append(activity(make_order(price="3", quantity="10"), timedelta(hours=30)))
        activities.append(activity(make_order(price="2", quantity="10"), timedelta(hours=24)))
        activities.append(activity(make_order(price="1.5", quantity="3"), timedelta(hours=1)))

        # the cutoff is inclusive
        assert activities.volume_since(NOW - timedelta(hours=24)) == Decimal("24.50")
        assert activities.volume_since(NOW) == Decimal(0)

    def test_for_address(self, activities: ActivityLedger, make_order: MakeOrder) -> None:
        """Test that owner and counterparty both see the activity"""
        trade = activity(make_order(owner="0x" + "a1" * 20), timedelta(hours=1))
        other = activity(make_order(owner="0x" + "c3" * 20), timedelta(hours=1)).model_copy(
            update={"counterparty_address": None},
        )
        activities.append(trade)
        activities.append(other)

        assert activities.for_address("0x" + "A1" * 20) == [trade]
        assert activities.for_address(BUYER) == [trade]
        assert activities.for_address("0x" + "c3" * 20) == [other]

    def test_iteration_is_a_snapshot(
        self,
        activities: ActivityLedger,
        make_order: MakeOrder,
    ) -> None:
        """Test that appending while iterating does not break the iteration"""
        activities.append(activity(make_order(), timedelta(hours=1)))
        for entry in activities:
            activities.append(entry)

        assert len(activities) == 2


class TestMarketView:
    """Test cases for MarketView"""

    @pytest.fixture
    def view(self, orderbook: OrderBook, activities: ActivityLedger) -> MarketView:
        return MarketView(orderbook, activities)

    def test_empty_market(self, view: MarketView) -> None:
        """Test the snapshot of an empty market"""
        snapshot = view.snapshot(now=NOW)

        assert snapshot.best_bid is None
        assert snapshot.best_ask is None
        assert snapshot.last_price is None
        assert snapshot.volume == Decimal(0)
        assert snapshot.window_start == NOW - timedelta(hours=24)

    def test_best_prices(
        self,
        view: MarketView,
        orderbook: OrderBook,
        make_order: MakeOrder,
    ) -> None:
        """Test that the best bid and ask follow the book"""
        orderbook.insert(make_order(price="4"), OrderSide.BUY)
        orderbook.insert(make_order(price="4.5"), OrderSide.BUY)
        ask = make_order(price="5")
        orderbook.insert(ask, OrderSide.SELL)
        orderbook.insert(make_order(price="6"), OrderSide.SELL)

        assert view.best_bid.price == Decimal("4.5")  # type: ignore[union-attr]
        assert view.best_ask == ask

        orderbook.remove(ask.id, OrderSide.SELL)
        assert view.best_ask.price == Decimal(6)  # type: ignore[union-attr]

    def test_volume_and_last_price(
        self,
        view: MarketView,
        activities: ActivityLedger,
        make_order: MakeOrder,
    ) -> None:
        """Test that the statistics are recomputed on every query"""
        activities.append(activity(make_order(price="2", quantity="10"), timedelta(days=3)))
        assert view.volume(now=NOW) == Decimal(0)
        assert view.volume(window=timedelta(days=7), now=NOW) == Decimal("20.00")

        activities.append(activity(make_order(price="5", quantity="100"), timedelta(hours=1)))
        snapshot = view.snapshot(now=NOW)

        assert snapshot.last_price == Decimal(5)
        assert snapshot.volume == Decimal("500.00")
