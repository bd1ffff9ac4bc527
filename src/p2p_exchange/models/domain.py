# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#
# Domain models

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Self
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

CENT = Decimal("0.01")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def compute_total(price: Decimal, quantity: Decimal) -> Decimal:
    """Returns ``price * quantity`` rounded half-up to two decimals."""
    return (Decimal(price) * Decimal(quantity)).quantize(CENT, rounding=ROUND_HALF_UP)


class OrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"

    @property
    def opposite(self: Self) -> "OrderSide":
        return OrderSide.SELL if self is OrderSide.BUY else OrderSide.BUY


class SortField(str, Enum):
    LISTED_AT = "listed_at"
    PRICE = "price"
    QUANTITY = "quantity"
    TOTAL = "total"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class ActivityKind(str, Enum):
    BUY = "Buy"
    SELL = "Sell"
    EXECUTE = "Execute"
    CANCEL = "Cancel"


class Order(BaseModel):
    """
    Domain model representing a standing offer to buy or sell a fixed quantity
    of the traded token at a fixed price.

    The ``total`` is a snapshot taken at listing time. It is computed from
    ``price`` and ``quantity`` if not passed, an explicit total must match
    that value. It is never recomputed afterwards.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"order-{uuid4().hex}", min_length=1)
    price: Decimal = Field(..., gt=0, description="Price per token in USDC")
    quantity: Decimal = Field(..., gt=0, description="Quantity of GLW")
    total: Decimal = Field(..., ge=0, description="price * quantity at listing")
    owner_address: str = Field(..., min_length=1)
    listed_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="before")
    @classmethod
    def snapshot_total(cls, data: Any) -> Any:  # noqa: ANN401
        """Fill in the total if it was not provided."""
        if (
            isinstance(data, dict)
            and data.get("total") is None
            and data.get("price") is not None
            and data.get("quantity") is not None
        ):
            try:
                total = compute_total(Decimal(str(data["price"])), Decimal(str(data["quantity"])))
            except ArithmeticError:
                # Leave it to the field validation to report the bad input.
                return data
            data = {**data, "total": total}
        return data

    @model_validator(mode="after")
    def check_total(self: Self) -> Self:
        """Reject totals that do not match price and quantity."""
        expected = compute_total(self.price, self.quantity)
        if self.total != expected:
            raise ValueError(
                f"Total {self.total} does not match price * quantity ({expected})",
            )
        return self


class Activity(BaseModel):
    """Immutable record of a completed trade or a cancellation."""

    model_config = ConfigDict(frozen=True)

    kind: ActivityKind
    order: Order
    timestamp: datetime = Field(default_factory=utc_now)
    settlement_reference: str
    counterparty_address: str | None = None
