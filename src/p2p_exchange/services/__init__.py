# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

from p2p_exchange.services.orderbook import OrderBook
from p2p_exchange.services.activity import ActivityLedger
from p2p_exchange.services.market_view import MarketView
from p2p_exchange.services.notification_service import NotificationService
from p2p_exchange.services.settlement import (
    FailureReason,
    SettlementFailure,
    SettlementWorkflow,
)

__all__ = [
    "ActivityLedger",
    "FailureReason",
    "MarketView",
    "NotificationService",
    "OrderBook",
    "SettlementFailure",
    "SettlementWorkflow",
]
