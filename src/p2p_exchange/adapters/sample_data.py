# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""Random sample orders and activities to populate an empty exchange."""

import random
from datetime import datetime, timedelta
from decimal import Decimal

from p2p_exchange.adapters.ledger import new_reference
from p2p_exchange.models.domain import Activity, ActivityKind, Order, utc_now


def random_address(rng: random.Random) -> str:
    return f"0x{rng.getrandbits(160):040x}"


def generate_orders(
    count: int,
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> list[Order]:
    """
    Orders priced between 0.50 and 10.50 USDC with 1 to 100 GLW, listed
    within the 24 hours before ``now``.
    """
    rng = rng or random.Random()  # noqa: S311
    now = now or utc_now()
    return [
        Order(
            price=Decimal(rng.randint(50, 1050)) / 100,
            quantity=Decimal(rng.randint(1, 100)),
            owner_address=random_address(rng),
            listed_at=now - timedelta(seconds=rng.uniform(0, 86_400)),
        )
        for _ in range(count)
    ]


def generate_activities(
    count: int,
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> list[Activity]:
    """Activities of the last seven days, newest first."""
    rng = rng or random.Random()  # noqa: S311
    now = now or utc_now()
    activities = [
        Activity(
            kind=rng.choice(list(ActivityKind)),
            order=order,
            timestamp=now - timedelta(seconds=rng.uniform(0, 7 * 86_400)),
            settlement_reference=new_reference(),
            counterparty_address=random_address(rng),
        )
        for order in generate_orders(count, rng=rng, now=now)
    ]
    return sorted(activities, key=lambda a: a.timestamp, reverse=True)
