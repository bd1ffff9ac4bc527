# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""
Schemas exchanged with the ledger and handed out to the presentation layer.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from p2p_exchange.models.domain import Order


class LedgerReceiptSchema(BaseModel):
    """Confirmation of an approval or a transfer submitted to the ledger"""

    model_config = ConfigDict(frozen=True)

    reference: str = Field(..., min_length=1, description="Transaction hash")
    amount: int = Field(..., ge=0, description="Amount in the smallest unit")


class MarketSnapshot(BaseModel):
    """The four market statistics shown above the order book"""

    model_config = ConfigDict(frozen=True)

    best_bid: Order | None = None  # highest buy order
    best_ask: Order | None = None  # lowest sell order
    last_price: Decimal | None = None
    volume: Decimal = Decimal(0)
    window_start: datetime
