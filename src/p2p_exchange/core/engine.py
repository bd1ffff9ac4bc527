# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

import asyncio
import random
from collections import defaultdict
from datetime import timedelta
from decimal import Decimal
from logging import getLogger
from typing import Self
from uuid import uuid4

from pydantic import ValidationError

from p2p_exchange.core.event_bus import Event, EventBus
from p2p_exchange.core.state_machine import SettlementState
from p2p_exchange.core.units import to_base_units
from p2p_exchange.exceptions import (
    ConflictError,
    NetworkMismatchError,
    NotOrderOwnerError,
    OrderNotFoundError,
    OrderValidationError,
    WalletNotConnectedError,
)
from p2p_exchange.interfaces.ledger import ITokenLedgerClient
from p2p_exchange.interfaces.wallet import IWalletProvider
from p2p_exchange.models.configuration import ExchangeConfigDTO, NotificationConfigDTO
from p2p_exchange.models.domain import (
    Activity,
    ActivityKind,
    Order,
    OrderSide,
    SortDirection,
    SortField,
)
from p2p_exchange.models.schemas import MarketSnapshot
from p2p_exchange.services.activity import ActivityLedger
from p2p_exchange.services.market_view import MarketView
from p2p_exchange.services.notification_service import NotificationService
from p2p_exchange.services.orderbook import OrderBook
from p2p_exchange.services.settlement import SettlementWorkflow

LOG = getLogger(__name__)


class ExchangeEngine:
    """
    Orchestrates the order book, the activity log and the settlements on
    behalf of the user behind the connected wallet.

    All mutations of the book go through the engine, which publishes the
    corresponding events on the event bus afterwards.
    """

    def __init__(  # noqa: PLR0913
        self: Self,
        config: ExchangeConfigDTO,
        wallet: IWalletProvider,
        traded_ledger: ITokenLedgerClient,
        stable_ledger: ITokenLedgerClient,
        notification_config: NotificationConfigDTO | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        LOG.debug("Config: %s", config)
        if traded_ledger.token.address.lower() != config.traded_token.address.lower():
            raise ValueError(
                f"Ledger of {traded_ledger.token.symbol} does not match the "
                f"traded token {config.traded_token.symbol}",
            )
        if stable_ledger.token.address.lower() != config.stable_token.address.lower():
            raise ValueError(
                f"Ledger of {stable_ledger.token.symbol} does not match the "
                f"stable token {config.stable_token.symbol}",
            )

        self.__config = config
        self.__wallet = wallet
        self.__ledgers = {
            # Settling a sell order is paid in the stable token, settling a
            # buy order is paid in the traded token.
            OrderSide.SELL: stable_ledger,
            OrderSide.BUY: traded_ledger,
        }
        self.__event_bus = event_bus or EventBus()

        # == Application services ==============================================
        ##
        self.__orderbook = OrderBook()
        self.__activities = ActivityLedger()
        self.__market_view = MarketView(
            self.__orderbook,
            self.__activities,
            window=timedelta(hours=config.volume_window_hours),
        )
        self.__notification_service = NotificationService(
            notification_config or NotificationConfigDTO(),
        )

        # order id -> lock serializing the transfers of that order
        self.__execution_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        # order id -> settlement attempts that are not finished yet
        self.__workflows: defaultdict[str, list[SettlementWorkflow]] = defaultdict(list)

        self.__setup_event_handlers()

    def __setup_event_handlers(self: Self) -> None:
        self.__event_bus.subscribe(
            "notification",
            self.__notification_service.on_notification,
        )
        self.__event_bus.subscribe(
            "order_settled",
            self.__notification_service.on_order_settled,
        )
        self.__event_bus.subscribe(
            "settlement_state",
            self.__notification_service.on_settlement_state,
        )
        self.__event_bus.subscribe("order_settled", self.__on_order_settled)
        self.__event_bus.subscribe("settlement_state", self.__on_settlement_state)

    # == Properties ============================================================

    @property
    def config(self: Self) -> ExchangeConfigDTO:
        return self.__config

    @property
    def event_bus(self: Self) -> EventBus:
        return self.__event_bus

    @property
    def orderbook(self: Self) -> OrderBook:
        return self.__orderbook

    @property
    def activity_ledger(self: Self) -> ActivityLedger:
        return self.__activities

    @property
    def market_view(self: Self) -> MarketView:
        return self.__market_view

    @property
    def notification_service(self: Self) -> NotificationService:
        return self.__notification_service

    def ledger_for(self: Self, side: OrderSide) -> ITokenLedgerClient:
        """Returns the ledger of the token that pays for an order of ``side``."""
        return self.__ledgers[OrderSide(side)]

    # == User actions ==========================================================

    def list_order(
        self: Self,
        side: OrderSide | str,
        price: Decimal | str | float,
        quantity: Decimal | str | float,
    ) -> Order:
        """List a new order owned by the connected wallet."""
        owner = self.__require_wallet()
        try:
            side = OrderSide(side)
        except ValueError as exc:
            raise OrderValidationError(f"Invalid order side: {side!r}") from exc
        try:
            order = Order(price=price, quantity=quantity, owner_address=owner)
        except ValidationError as exc:
            raise OrderValidationError(f"Invalid order: {exc}") from exc
        self.__check_settleable(order)

        self.__orderbook.insert(order, side)
        self.__event_bus.publish("order_listed", {"order": order, "side": side})
        self.__event_bus.publish(
            "notification",
            {"message": "New order added successfully!"},
        )
        self.__publish_market()
        return order

    def cancel_order(self: Self, order_id: str) -> Activity:
        """
        Cancel an order of the connected wallet. Orders held by a settlement
        in EXECUTING cannot be cancelled, even while that attempt waits for
        its transfer to be submitted. The hold ends once that attempt fails,
        for example when its counterparty aborts it.
        """
        address = self.__require_wallet()
        order, side = self.__lookup(order_id)
        if order.owner_address.lower() != address.lower():
            raise NotOrderOwnerError(
                f"Order '{order_id}' is not owned by {address}!",
            )

        order = self.__orderbook.remove(order_id, side, allow_executing=False)
        activity = Activity(
            kind=ActivityKind.CANCEL,
            order=order,
            settlement_reference=f"cancel-{uuid4().hex}",
        )
        self.__activities.append(activity)
        self.__release_order(order_id)

        self.__event_bus.publish("order_cancelled", {"order": order, "side": side})
        self.__event_bus.publish(
            "notification",
            {"message": "Order cancelled successfully!"},
        )
        self.__publish_market()
        return activity

    async def start_settlement(self: Self, order_id: str) -> SettlementWorkflow:
        """
        Start settling an order with the connected wallet as counterparty and
        run the initial funds check.
        """
        counterparty = self.__require_wallet()
        order, side = self.__lookup(order_id)
        if order.owner_address.lower() == counterparty.lower():
            raise ConflictError(
                f"Order '{order_id}' is your own order and can only be cancelled!",
            )

        workflow = SettlementWorkflow(
            order=order,
            side=side,
            counterparty_address=counterparty,
            orderbook=self.__orderbook,
            activities=self.__activities,
            ledger=self.__ledgers[side],
            spender=self.__config.exchange_address,
            timeout=self.__config.ledger_timeout,
            event_bus=self.__event_bus,
            execution_lock=self.__execution_locks[order_id],
        )
        self.__workflows[order_id].append(workflow)
        await workflow.start()
        return workflow

    def settlements_of(self: Self, order_id: str) -> list[SettlementWorkflow]:
        """Returns the unfinished settlement attempts of an order."""
        return [wf for wf in self.__workflows.get(order_id, []) if not wf.finished]

    # == Queries ===============================================================

    def orders(
        self: Self,
        side: OrderSide | str,
        field: SortField | str = SortField.PRICE,
        direction: SortDirection | str | None = None,
    ) -> list[Order]:
        return self.__orderbook.list_sorted(
            OrderSide(side),
            SortField(field),
            None if direction is None else SortDirection(direction),
        )

    def market(self: Self, window: timedelta | None = None) -> MarketSnapshot:
        return self.__market_view.snapshot(window=window)

    def activities(self: Self) -> list[Activity]:
        """All activities, newest first."""
        return list(self.__activities)

    def user_activity(self: Self, address: str | None = None) -> list[Activity]:
        """Activities of ``address``, defaults to the connected wallet."""
        return self.__activities.for_address(address or self.__require_address())

    def user_orders(self: Self, address: str | None = None) -> list[Order]:
        """Open orders of ``address``, defaults to the connected wallet."""
        return self.__orderbook.orders_of(address or self.__require_address())

    def is_own_order(self: Self, order: Order) -> bool:
        """True if the order belongs to the connected wallet."""
        address = self.__wallet.current_address()
        return address is not None and order.owner_address.lower() == address.lower()

    # == Sample data ===========================================================

    def seed(
        self: Self,
        n_orders: int = 10,
        n_activities: int = 20,
        rng: random.Random | None = None,
    ) -> None:
        """Populate the book and the activity log with random sample data."""
        from p2p_exchange.adapters.sample_data import (  # noqa: PLC0415
            generate_activities,
            generate_orders,
        )

        rng = rng or random.Random()  # noqa: S311
        for order in generate_orders(n_orders, rng=rng):
            self.__orderbook.insert(order, rng.choice(list(OrderSide)))
        # The ledger prepends, so the oldest activity goes first.
        for activity in reversed(generate_activities(n_activities, rng=rng)):
            self.__activities.append(activity)
        LOG.info(
            "Seeded %d orders and %d activities.",
            n_orders,
            n_activities,
        )
        self.__publish_market()

    # == Event handlers ========================================================

    def __on_order_settled(self: Self, event: Event) -> None:
        order_id = event.data["order_id"]
        for workflow in self.__workflows.pop(order_id, []):
            if workflow.attempt_id != event.data["attempt_id"]:
                workflow.invalidate()
        self.__execution_locks.pop(order_id, None)
        self.__publish_market()

    def __on_settlement_state(self: Self, event: Event) -> None:
        if event.data["state"] != SettlementState.FAILED:
            return
        order_id = event.data["order_id"]
        if order_id in self.__workflows:
            self.__workflows[order_id] = [
                wf for wf in self.__workflows[order_id] if not wf.finished
            ]

    # == Helpers ===============================================================

    def __release_order(self: Self, order_id: str) -> None:
        for workflow in self.__workflows.pop(order_id, []):
            workflow.invalidate()
        self.__execution_locks.pop(order_id, None)

    def __lookup(self: Self, order_id: str) -> tuple[Order, OrderSide]:
        side = self.__orderbook.side_of(order_id)
        order = self.__orderbook.get(order_id)
        if side is None or order is None:
            raise OrderNotFoundError(f"Order '{order_id}' not found!")
        return order, side

    def __require_address(self: Self) -> str:
        if not self.__wallet.is_connected() or not (
            address := self.__wallet.current_address()
        ):
            raise WalletNotConnectedError("Please connect your wallet first!")
        return address

    def __check_settleable(self: Self, order: Order) -> None:
        """
        Reject orders that could not be paid on the ledgers, either because an
        amount exceeds the token precision or because nothing would be paid.
        """
        to_base_units(order.quantity, self.__config.traded_token.decimals)
        if to_base_units(order.total, self.__config.stable_token.decimals) == 0:
            raise OrderValidationError(
                f"Invalid order: total of {order.price} * {order.quantity} rounds to zero",
            )

    def __require_wallet(self: Self) -> str:
        address = self.__require_address()
        if (chain_id := self.__wallet.chain_id()) != self.__config.chain_id:
            raise NetworkMismatchError(
                f"Wallet is connected to chain {chain_id}, "
                f"please switch to chain {self.__config.chain_id}!",
            )
        return address

    def __publish_market(self: Self) -> None:
        self.__event_bus.publish(
            "market_updated",
            {"snapshot": self.__market_view.snapshot()},
        )
