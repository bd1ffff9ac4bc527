# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""Unit tests for the configuration and domain models."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from p2p_exchange.models.configuration import (
    ExchangeConfigDTO,
    NotificationConfigDTO,
    TelegramConfigDTO,
    TokenConfigDTO,
)
from p2p_exchange.models.domain import Order, OrderSide

TOKEN = "123456789:ABC-DEF1234ghIkl-zyx57W2v1u123ew11"  # noqa: S105
CHAT_ID = "1234567890"
OWNER = "0x" + "a1" * 20


class TestTelegramConfigDTO:
    def test_telegram_config_enabled_both_values(self) -> None:
        """Test TelegramConfigDTO enabled when both token and chat_id are provided."""
        config = TelegramConfigDTO(token=TOKEN, chat_id=CHAT_ID)

        assert config.enabled is True

    def test_telegram_config_disabled_missing_chat_id(self) -> None:
        """Test TelegramConfigDTO disabled when chat_id is missing."""
        config = TelegramConfigDTO(token=TOKEN)

        assert config.enabled is False

    def test_telegram_config_disabled_empty_values(self) -> None:
        """Test TelegramConfigDTO disabled when values are empty strings."""
        config = TelegramConfigDTO(token="", chat_id="")

        assert config.enabled is False

    def test_telegram_config_invalid_token(self) -> None:
        """Test TelegramConfigDTO with invalid token format."""
        with pytest.raises(ValidationError) as exc_info:
            TelegramConfigDTO(token="invalid_token")

        assert "Invalid Telegram bot token format" in str(exc_info.value)

    def test_notification_config_default(self) -> None:
        """Test that notifications are disabled by default."""
        assert NotificationConfigDTO().telegram.enabled is False


class TestExchangeConfigDTO:
    def test_defaults(self) -> None:
        """Test the default tokens and timeouts."""
        config = ExchangeConfigDTO()

        assert config.chain_id == 1
        assert (config.traded_token.symbol, config.traded_token.decimals) == ("GLW", 18)
        assert (config.stable_token.symbol, config.stable_token.decimals) == ("USDC", 6)
        assert config.ledger_timeout == 30.0
        assert config.volume_window_hours == 24.0

    @pytest.mark.parametrize(
        "address",
        ["", "0x123", "1234567890123456789012345678901234567890", "0x" + "g" * 40],
    )
    def test_invalid_exchange_address(self, address: str) -> None:
        """Test that malformed addresses are rejected."""
        with pytest.raises(ValidationError, match=r"Invalid address"):
            ExchangeConfigDTO(exchange_address=address)

    def test_invalid_token_address(self) -> None:
        """Test that token addresses are validated."""
        with pytest.raises(ValidationError, match=r"Invalid address"):
            TokenConfigDTO(symbol="GLW", address="0xabc", decimals=18)

    def test_same_token_twice(self) -> None:
        """Test that the traded token and the stablecoin must differ."""
        token = TokenConfigDTO(symbol="USDC", address="0x" + "1" * 40, decimals=6)

        with pytest.raises(ValidationError, match=r"must differ"):
            ExchangeConfigDTO(traded_token=token, stable_token=token)

    def test_same_token_address(self) -> None:
        """Test that both tokens need their own address."""
        with pytest.raises(ValidationError, match=r"different addresses"):
            ExchangeConfigDTO(
                traded_token=TokenConfigDTO(symbol="A", address="0x" + "1" * 40, decimals=6),
                stable_token=TokenConfigDTO(symbol="B", address="0x" + "1" * 40, decimals=6),
            )

    @pytest.mark.parametrize("timeout", [0, -1])
    def test_invalid_timeout(self, timeout: float) -> None:
        """Test that the ledger timeout must be positive."""
        with pytest.raises(ValidationError):
            ExchangeConfigDTO(ledger_timeout=timeout)


class TestOrder:
    def test_total_computed(self) -> None:
        """Test that the total is computed from price and quantity."""
        order = Order(price="5.00", quantity="100", owner_address=OWNER)

        assert order.total == Decimal("500.00")
        assert order.id.startswith("order-")

    def test_inconsistent_total_rejected(self) -> None:
        """Test that an explicit total must match price and quantity."""
        with pytest.raises(ValidationError, match=r"does not match price * quantity"):
            Order(price="5", quantity="10", total="1", owner_address=OWNER)

    def test_matching_total_accepted(self) -> None:
        """Test that an explicit total equal to the rounded product is kept."""
        order = Order(price="0.333", quantity="3", total="1.00", owner_address=OWNER)

        assert order.total == Decimal("1.00")

    def test_immutable(self) -> None:
        """Test that listed orders can not be modified."""
        order = Order(price="5", quantity="3", owner_address=OWNER)

        with pytest.raises(ValidationError):
            order.price = Decimal(1)  # type: ignore[misc]

    @pytest.mark.parametrize(
        ("price", "quantity"),
        [("0", "1"), ("-1", "1"), ("1", "0"), ("1", "-5"), ("abc", "1"), ("NaN", "1")],
    )
    def test_invalid_values(self, price: str, quantity: str) -> None:
        """Test that non-positive or malformed values are rejected."""
        with pytest.raises(ValidationError):
            Order(price=price, quantity=quantity, owner_address=OWNER)

    def test_side_opposite(self) -> None:
        """Test the opposite side helper."""
        assert OrderSide.BUY.opposite is OrderSide.SELL
        assert OrderSide.SELL.opposite is OrderSide.BUY
