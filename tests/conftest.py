# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

from collections.abc import Callable
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from p2p_exchange.adapters.ledger import InMemoryTokenLedgerAdapter
from p2p_exchange.adapters.wallet import StaticWalletAdapter
from p2p_exchange.core.engine import ExchangeEngine
from p2p_exchange.core.event_bus import EventBus
from p2p_exchange.models.configuration import ExchangeConfigDTO
from p2p_exchange.models.domain import Order
from p2p_exchange.services.activity import ActivityLedger
from p2p_exchange.services.orderbook import OrderBook

SELLER = "0x" + "a1" * 20

T0 = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_order() -> Callable[..., Order]:
    """Factory of orders listed at a fixed point in time."""

    def factory(
        price: str = "5.00",
        quantity: str = "100",
        owner: str = SELLER,
        listed_at: datetime | None = None,
        **kwargs: object,
    ) -> Order:
        return Order(
            price=Decimal(price),
            quantity=Decimal(quantity),
            owner_address=owner,
            listed_at=listed_at or T0,
            **kwargs,
        )

    return factory


@pytest.fixture
def config() -> ExchangeConfigDTO:
    return ExchangeConfigDTO(ledger_timeout=0.05)


@pytest.fixture
def orderbook() -> OrderBook:
    return OrderBook()


@pytest.fixture
def activities() -> ActivityLedger:
    return ActivityLedger()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def usdc_ledger(config: ExchangeConfigDTO) -> InMemoryTokenLedgerAdapter:
    return InMemoryTokenLedgerAdapter(config.stable_token, spender=config.exchange_address)


@pytest.fixture
def glw_ledger(config: ExchangeConfigDTO) -> InMemoryTokenLedgerAdapter:
    return InMemoryTokenLedgerAdapter(config.traded_token, spender=config.exchange_address)


@pytest.fixture
def wallet() -> StaticWalletAdapter:
    return StaticWalletAdapter(SELLER)


@pytest.fixture
def engine(
    config: ExchangeConfigDTO,
    wallet: StaticWalletAdapter,
    glw_ledger: InMemoryTokenLedgerAdapter,
    usdc_ledger: InMemoryTokenLedgerAdapter,
    event_bus: EventBus,
) -> ExchangeEngine:
    return ExchangeEngine(
        config=config,
        wallet=wallet,
        traded_ledger=glw_ledger,
        stable_ledger=usdc_ledger,
        event_bus=event_bus,
    )

