# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

from logging import getLogger
from typing import Any, Self

from p2p_exchange.core.event_bus import Event
from p2p_exchange.core.state_machine import SettlementState
from p2p_exchange.interfaces import INotificationChannel
from p2p_exchange.models.configuration import NotificationConfigDTO
from p2p_exchange.models.domain import OrderSide

LOG = getLogger(__name__)


def settlement_summary(data: dict[str, Any]) -> str:
    """
    Render the data of an ``order_settled`` event as Markdown message, e.g.::

        ✅ *Order executed successfully!*
        ├ Filled sell order » `order-1f2e...`
        ├ Price » 5.00
        ├ Quantity » 100
        ├ Total » 500.00
        ├ Paid » 500 USDC by 0xb2b2...
        └ Reference » `0x9a41...`
    """
    order = data["order"]
    side = OrderSide(data["side"])
    return (
        "✅ *Order executed successfully!*\n"
        f"├ Filled {side.value} order » `{order.id}`\n"
        f"├ Price » {order.price}\n"
        f"├ Quantity » {order.quantity}\n"
        f"├ Total » {order.total}\n"
        f"├ Paid » {data['amount']} {data['token']} by {data['counterparty']}\n"
        f"└ Reference » `{data['reference']}`"
    )


def failure_summary(data: dict[str, Any]) -> str:
    """Render a failed ``settlement_state`` event as Markdown message."""
    failure = data["failure"]
    return (
        "❌ *Order execution failed!*\n"
        f"├ Order » `{data['order_id']}`\n"
        f"├ Reason » {failure.reason.value}\n"
        f"├ Details » `{failure.message}`\n"
        f"└ Retry » {'possible' if failure.recoverable else 'not possible'}"
    )


class NotificationService:
    """Service for sending notifications through configured channels."""

    def __init__(self: Self, config: NotificationConfigDTO) -> None:
        self.__channels: list[INotificationChannel] = []
        self.__config = config
        self._setup_channels_from_config()

    def _setup_channels_from_config(self: Self) -> None:
        """Set up notification channels from the loaded config."""
        if self.__config.telegram.enabled:
            self.add_telegram_channel(
                bot_token=self.__config.telegram.token,  # type: ignore[arg-type]
                chat_id=self.__config.telegram.chat_id,  # type: ignore[arg-type]
            )

    def add_channel(self: Self, channel: INotificationChannel) -> None:
        """Add a notification channel to the service."""
        self.__channels.append(channel)

    def add_telegram_channel(self: Self, bot_token: str, chat_id: str) -> None:
        """Convenience method to add a Telegram notification channel."""
        from p2p_exchange.adapters.notification import (  # noqa: PLC0415
            TelegramNotificationChannelAdapter,
        )

        self.add_channel(TelegramNotificationChannelAdapter(bot_token, chat_id))

    def notify(self: Self, message: str) -> bool:
        """Send a notification through all configured channels.

        Args:
            message: The message to send

        Returns:
            bool: True if the message was sent through at least one channel
        """
        LOG.info("Sending notification: %s", message)
        if not self.__channels:
            return False

        success = False
        for channel in self.__channels:
            if channel.send(message):
                success = True

        return success

    # == Event handlers ========================================================

    def on_notification(self: Self, event: Event) -> None:
        """Handle a plain notification event."""
        self.notify(event.data["message"])

    def on_order_settled(self: Self, event: Event) -> None:
        """Send the summary of a completed settlement."""
        self.notify(settlement_summary(event.data))

    def on_settlement_state(self: Self, event: Event) -> None:
        """Report failed settlement attempts, other states are not announced."""
        if event.data["state"] != SettlementState.FAILED or event.data["failure"] is None:
            return
        self.notify(failure_summary(event.data))
