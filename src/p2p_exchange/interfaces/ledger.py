# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""
Interface of the external token ledger.

One client is bound to one token. All amounts are integers expressed in the
token's smallest unit, i.e. already scaled by ``decimals``.
"""

from abc import ABC, abstractmethod
from typing import Self

from p2p_exchange.models.configuration import TokenConfigDTO
from p2p_exchange.models.schemas import LedgerReceiptSchema


class ITokenLedgerClient(ABC):
    """Interface for balance queries and value moving operations of a token."""

    @property
    @abstractmethod
    def token(self: Self) -> TokenConfigDTO:
        """The token this client operates on."""

    # == Queries ===============================================================
    @abstractmethod
    async def balance_of(self: Self, address: str) -> int:
        """Return the balance of ``address``."""
        raise NotImplementedError(
            "This method should be implemented in the concrete ledger class.",
        )

    @abstractmethod
    async def allowance_of(self: Self, owner: str, spender: str) -> int:
        """Return how much ``spender`` may move on behalf of ``owner``."""
        raise NotImplementedError(
            "This method should be implemented in the concrete ledger class.",
        )

    # == Operations ============================================================
    @abstractmethod
    async def approve(
        self: Self,
        owner: str,
        spender: str,
        amount: int,
    ) -> LedgerReceiptSchema:
        """
        Allow ``spender`` to move up to ``amount`` on behalf of ``owner``.

        Returns the receipt once the ledger confirmed the approval. Raises
        LedgerRejectedError if the ledger rejected it.
        """
        raise NotImplementedError(
            "This method should be implemented in the concrete ledger class.",
        )

    @abstractmethod
    async def transfer(
        self: Self,
        sender: str,
        recipient: str,
        amount: int,
    ) -> LedgerReceiptSchema:
        """
        Move ``amount`` from ``sender`` to ``recipient`` using the allowance
        granted to the exchange.

        Returns the receipt once the ledger confirmed the transfer. Raises
        LedgerRejectedError if the ledger rejected it.
        """
        raise NotImplementedError(
            "This method should be implemented in the concrete ledger class.",
        )
