# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""Conversion between human readable token amounts and ledger amounts."""

from decimal import Decimal

from p2p_exchange.exceptions import OrderValidationError


def to_base_units(amount: Decimal, decimals: int) -> int:
    """
    Scale ``amount`` to the smallest unit of a token with ``decimals``
    decimals, e.g. ``to_base_units(Decimal("1.5"), 6) == 1_500_000``.

    Raises OrderValidationError if the amount has more fractional digits than
    the token supports, since truncating would silently change the trade.
    """
    scaled = Decimal(amount).scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise OrderValidationError(
            f"Amount {amount} exceeds the token precision of {decimals} decimals",
        )
    return int(scaled)


def from_base_units(amount: int, decimals: int) -> Decimal:
    """Inverse of ``to_base_units``."""
    return Decimal(amount).scaleb(-decimals)
