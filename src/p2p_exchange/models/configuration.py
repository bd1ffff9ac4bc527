# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

import re
from typing import Self

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator

ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")


def validate_address(value: str) -> str:
    if not ADDRESS_PATTERN.match(value):
        raise ValueError(f"Invalid address: {value!r}")
    return value


class TokenConfigDTO(BaseModel):
    """Token that is traded or used for payment on the exchange."""

    symbol: str = Field(..., min_length=1)
    address: str
    decimals: int = Field(..., ge=0, le=36)

    @field_validator("address")
    @classmethod
    def check_address(cls, value: str) -> str:
        return validate_address(value)


class ExchangeConfigDTO(BaseModel):
    """
    Data transfer object for the general exchange configuration. These values
    are passed via CLI or environment variables.
    """

    exchange_address: str = "0x1234567890123456789012345678901234567890"
    chain_id: int = Field(1, ge=1)
    traded_token: TokenConfigDTO = TokenConfigDTO(
        symbol="GLW",
        address="0xf4fbc617a5733eaaf9af08e1ab816b103388d8b6",
        decimals=18,
    )
    stable_token: TokenConfigDTO = TokenConfigDTO(
        symbol="USDC",
        address="0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        decimals=6,
    )
    # Seconds a single ledger call may take before it surfaces as a timeout.
    ledger_timeout: float = Field(30.0, gt=0)
    volume_window_hours: float = Field(24.0, gt=0)

    @field_validator("exchange_address")
    @classmethod
    def check_exchange_address(cls, value: str) -> str:
        return validate_address(value)

    @model_validator(mode="after")
    def validate_distinct_tokens(self: Self) -> Self:
        """The traded token and the stablecoin must not be the same."""
        if self.traded_token.symbol == self.stable_token.symbol:
            raise ValueError(
                f"Traded token and stablecoin must differ, got {self.traded_token.symbol!r} twice",
            )
        if self.traded_token.address.lower() == self.stable_token.address.lower():
            raise ValueError("Traded token and stablecoin must have different addresses")
        return self


class TelegramConfigDTO(BaseModel):
    """Pydantic model for Telegram notification configuration."""

    token: str | None = None
    chat_id: str | None = None

    @field_validator("token")
    @classmethod
    def validate_token(cls, value: str | None) -> str | None:
        """Validate the Telegram bot token format (``<id>:<secret>``)."""
        if value and not re.match(r"^\d+:[\w-]{20,}$", value):
            raise ValueError("Invalid Telegram bot token format")
        return value

    @computed_field  # type: ignore[prop-decorator]
    @property
    def enabled(self) -> bool:
        """Return True if both token and chat_id are truthy values."""
        return bool(self.token and self.chat_id)


class NotificationConfigDTO(BaseModel):
    """Pydantic model for notification service configuration."""

    telegram: TelegramConfigDTO = TelegramConfigDTO()
