# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

import sys
from logging import DEBUG, INFO, WARNING, basicConfig, getLogger
from typing import Any

from click import FLOAT, INT, STRING, Context, echo, pass_context
from cloup import Choice, HelpFormatter, HelpTheme, Style, group, option
from prettytable import PrettyTable

from p2p_exchange.models.domain import Activity, Order

HELP_FORMATTER_SETTINGS = HelpFormatter.settings(
    theme=HelpTheme(
        invoked_command=Style(fg="bright_yellow"),
        heading=Style(fg="bright_white", bold=True),
        constraint=Style(fg="magenta"),
        col1=Style(fg="bright_yellow"),
    ),
)

MAKER_ADDRESS = "0x00000000000000000000000000000000000000a1"
TAKER_ADDRESS = "0x00000000000000000000000000000000000000b2"


def print_version(ctx: Context, param: Any, value: Any) -> None:  # noqa: ANN401, ARG001
    """Prints the version of the package"""
    if not value or ctx.resilient_parsing:
        return
    from importlib.metadata import version  # noqa: PLC0415

    echo(version("p2p-exchange"))
    ctx.exit()


def ensure_larger_than_zero(
    ctx: Context,
    param: Any,  # noqa: ANN401
    value: Any,  # noqa: ANN401
) -> Any:  # noqa: ANN401
    """Ensure the value is larger than 0"""
    if value is not None and value <= 0:
        ctx.fail(f"Value for option '{param.name}' must be larger than 0")
    return value


# == Table rendering ===========================================================


def orders_table(orders: list[Order], own_address: str | None = None) -> PrettyTable:
    table = PrettyTable()
    table.field_names = ["Id", "Price (USDC)", "Quantity (GLW)", "Total (USDC)", "Owner", "Listed"]
    for order in orders:
        owner = order.owner_address
        if own_address and owner.lower() == own_address.lower():
            owner = f"{owner} (you)"
        table.add_row(
            [
                order.id,
                f"{order.price:.2f}",
                order.quantity,
                f"{order.total:.2f}",
                owner,
                order.listed_at.strftime("%Y/%m/%d %H:%M:%S"),
            ],
        )
    return table


def activities_table(activities: list[Activity]) -> PrettyTable:
    table = PrettyTable()
    table.field_names = ["Time", "Kind", "Price (USDC)", "Quantity (GLW)", "Total (USDC)", "Reference"]
    for activity in activities:
        table.add_row(
            [
                activity.timestamp.strftime("%Y/%m/%d %H:%M:%S"),
                activity.kind.value,
                f"{activity.order.price:.2f}",
                activity.order.quantity,
                f"{activity.order.total:.2f}",
                activity.settlement_reference,
            ],
        )
    return table


def market_table(engine: Any) -> PrettyTable:  # noqa: ANN401
    snapshot = engine.market()
    table = PrettyTable()
    table.field_names = ["Best bid", "Best ask", "Last price", "Volume (24h)"]
    table.add_row(
        [
            "-" if snapshot.best_bid is None else f"{snapshot.best_bid.price:.2f}",
            "-" if snapshot.best_ask is None else f"{snapshot.best_ask.price:.2f}",
            "-" if snapshot.last_price is None else f"{snapshot.last_price:.2f}",
            f"{snapshot.volume:.2f}",
        ],
    )
    return table


def build_engine(
    ctx: Context,
    wallet: Any = None,  # noqa: ANN401
    ledger_timeout: float = 30.0,
) -> Any:  # noqa: ANN401
    """Create an engine on in-memory ledgers, without a wallet by default."""
    # pylint: disable=import-outside-toplevel
    from p2p_exchange.adapters.ledger import InMemoryTokenLedgerAdapter  # noqa: PLC0415
    from p2p_exchange.adapters.wallet import StaticWalletAdapter  # noqa: PLC0415
    from p2p_exchange.core.engine import ExchangeEngine  # noqa: PLC0415
    from p2p_exchange.models.configuration import (  # noqa: PLC0415
        ExchangeConfigDTO,
        NotificationConfigDTO,
    )

    config = ExchangeConfigDTO(ledger_timeout=ledger_timeout)
    return ExchangeEngine(
        config=config,
        wallet=wallet or StaticWalletAdapter(),
        traded_ledger=InMemoryTokenLedgerAdapter(
            config.traded_token,
            spender=config.exchange_address,
        ),
        stable_ledger=InMemoryTokenLedgerAdapter(
            config.stable_token,
            spender=config.exchange_address,
        ),
        notification_config=NotificationConfigDTO(
            telegram={
                "token": ctx.obj.get("telegram_token"),
                "chat_id": ctx.obj.get("telegram_chat_id"),
            },
        ),
    )


# == Commands ==================================================================


@group(
    context_settings={
        "auto_envvar_prefix": "P2P_EXCHANGE",
        "help_option_names": ["-h", "--help"],
    },
    formatter_settings=HELP_FORMATTER_SETTINGS,
    no_args_is_help=True,
)
@option(
    "--version",
    is_flag=True,
    callback=print_version,
    expose_value=False,
    is_eager=True,
)
@option(
    "-v",
    "--verbose",
    count=True,
    help="Increase the verbosity of output. Use -vv for even more verbosity.",
)
@option(
    "--telegram-token",
    required=False,
    type=STRING,
    help="The telegram token to use.",
)
@option(
    "--telegram-chat-id",
    required=False,
    type=STRING,
    help="The telegram chat ID to use.",
)
@pass_context
def cli(ctx: Context, **kwargs: dict) -> None:
    """
    Command-line interface entry point
    """
    ctx.ensure_object(dict)
    ctx.obj |= kwargs

    verbosity = kwargs.get("verbose", 0)

    basicConfig(
        format="%(asctime)s %(levelname)8s | %(message)s",
        datefmt="%Y/%m/%d %H:%M:%S",
        level=INFO if verbosity == 0 else DEBUG,
    )

    if verbosity > 1:  # type: ignore[operator]
        getLogger("requests").setLevel(DEBUG)
        getLogger("urllib3").setLevel(DEBUG)
    else:
        getLogger("requests").setLevel(WARNING)
        getLogger("urllib3").setLevel(WARNING)


@cli.command(
    context_settings={
        "auto_envvar_prefix": "P2P_EXCHANGE_DEMO",
        "help_option_names": ["-h", "--help"],
    },
    formatter_settings=HELP_FORMATTER_SETTINGS,
)
@option(
    "--orders",
    type=INT,
    default=10,
    show_default=True,
    callback=ensure_larger_than_zero,
    help="The number of sample orders to list.",
)
@option(
    "--activities",
    type=INT,
    default=20,
    show_default=True,
    callback=ensure_larger_than_zero,
    help="The number of sample activities.",
)
@option(
    "--seed",
    type=INT,
    required=False,
    help="Seed of the random sample data.",
)
@pass_context
def demo(ctx: Context, **kwargs: dict) -> None:
    """Show a randomly populated order book"""
    import random  # noqa: PLC0415

    from p2p_exchange.models.domain import OrderSide  # noqa: PLC0415

    ctx.obj |= kwargs
    engine = build_engine(ctx)
    engine.seed(
        n_orders=kwargs["orders"],
        n_activities=kwargs["activities"],
        rng=random.Random(kwargs["seed"]),  # noqa: S311
    )

    echo("\nBuy orders (best bid first):")
    echo(orders_table(engine.orders(OrderSide.BUY)).get_string())
    echo("\nSell orders (best ask first):")
    echo(orders_table(engine.orders(OrderSide.SELL)).get_string())
    echo("\nMarket:")
    echo(market_table(engine).get_string())
    echo("\nRecent activity:")
    echo(activities_table(engine.activities()).get_string())


@cli.command(
    context_settings={
        "auto_envvar_prefix": "P2P_EXCHANGE_SETTLE",
        "help_option_names": ["-h", "--help"],
    },
    formatter_settings=HELP_FORMATTER_SETTINGS,
)
@option(
    "--side",
    type=Choice(choices=("buy", "sell"), case_sensitive=False),
    default="sell",
    show_default=True,
    help="The side of the order to settle.",
)
@option(
    "--price",
    type=STRING,
    default="5.00",
    show_default=True,
    help="The price per GLW in USDC.",
)
@option(
    "--quantity",
    type=STRING,
    default="100",
    show_default=True,
    help="The quantity of GLW.",
)
@option(
    "--funds",
    type=STRING,
    required=False,
    help="Funds of the counterparty, defaults to exactly the required amount.",
)
@option(
    "--ledger-timeout",
    type=FLOAT,
    default=30.0,
    show_default=True,
    callback=ensure_larger_than_zero,
    help="Seconds a single ledger call may take.",
)
@pass_context
def settle(ctx: Context, **kwargs: dict) -> None:
    """List an order and settle it against a funded counterparty"""
    # pylint: disable=import-outside-toplevel
    import asyncio  # noqa: PLC0415
    from decimal import Decimal, InvalidOperation  # noqa: PLC0415

    from p2p_exchange.adapters.wallet import StaticWalletAdapter  # noqa: PLC0415
    from p2p_exchange.core.state_machine import SettlementState  # noqa: PLC0415
    from p2p_exchange.core.units import from_base_units, to_base_units  # noqa: PLC0415
    from p2p_exchange.exceptions import ExchangeError  # noqa: PLC0415
    from p2p_exchange.models.domain import OrderSide  # noqa: PLC0415
    from p2p_exchange.services.settlement import required_amount  # noqa: PLC0415

    ctx.obj |= kwargs
    wallet = StaticWalletAdapter(MAKER_ADDRESS)
    engine = build_engine(ctx, wallet, kwargs["ledger_timeout"])  # type: ignore[arg-type]
    side = OrderSide(kwargs["side"].lower())  # type: ignore[attr-defined]
    ledger = engine.ledger_for(side)
    token = ledger.token

    try:
        order = engine.list_order(side, kwargs["price"], kwargs["quantity"])
        amount = required_amount(order, side, token)
        if kwargs["funds"] is not None:
            amount = to_base_units(Decimal(kwargs["funds"]), token.decimals)  # type: ignore[arg-type]
    except (InvalidOperation, ExchangeError) as exc:
        ctx.fail(str(exc))

    echo(f"Listed {side.value} order {order.id}: {order.quantity} GLW @ {order.price} USDC")
    wallet.switch(TAKER_ADDRESS)
    ledger.mint(TAKER_ADDRESS, amount)
    echo(
        f"Settling against {TAKER_ADDRESS} with "
        f"{from_base_units(amount, token.decimals)} {token.symbol}",
    )

    def on_state(event: Any) -> None:  # noqa: ANN401
        failure = event.data["failure"]
        echo(
            f"  -> {event.data['state'].name}"
            + (f" ({failure.reason.value}: {failure.message})" if failure else ""),
        )

    engine.event_bus.subscribe("settlement_state", on_state)

    async def main() -> int:
        workflow = await engine.start_settlement(order.id)
        if workflow.state == SettlementState.AWAITING_APPROVAL:
            await workflow.approve()
        if workflow.state == SettlementState.EXECUTING:
            await workflow.execute()

        if workflow.state != SettlementState.COMPLETED:
            echo(f"Settlement failed: {workflow.last_error.message}")  # type: ignore[union-attr]
            return 1

        echo(f"Settlement completed: {workflow.facts['settlement_reference']}")
        return 0

    if exit_code := asyncio.run(main()):
        sys.exit(exit_code)

    echo("\nMarket:")
    echo(market_table(engine).get_string())
    echo("\nRecent activity:")
    echo(activities_table(engine.activities()).get_string())
