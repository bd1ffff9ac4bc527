# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

from p2p_exchange.models.configuration import (
    ExchangeConfigDTO,
    NotificationConfigDTO,
    TelegramConfigDTO,
    TokenConfigDTO,
)
from p2p_exchange.models.domain import (
    Activity,
    ActivityKind,
    Order,
    OrderSide,
    SortDirection,
    SortField,
)
from p2p_exchange.models.schemas import LedgerReceiptSchema, MarketSnapshot

__all__ = [
    "Activity",
    "ActivityKind",
    "ExchangeConfigDTO",
    "LedgerReceiptSchema",
    "MarketSnapshot",
    "NotificationConfigDTO",
    "Order",
    "OrderSide",
    "SortDirection",
    "SortField",
    "TelegramConfigDTO",
    "TokenConfigDTO",
]
