# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""
In-memory token ledger.

Behaves like an ERC-20 token from the point of view of the exchange:
``approve`` overwrites the allowance and ``transfer`` moves value on behalf of
the sender using the allowance granted to the exchange (``transferFrom``).
Failures and hanging calls can be scripted to exercise the settlement.
"""

import asyncio
import secrets
from collections import defaultdict, deque
from logging import getLogger
from typing import Self

from p2p_exchange.exceptions import LedgerError, LedgerRejectedError
from p2p_exchange.interfaces.ledger import ITokenLedgerClient
from p2p_exchange.models.configuration import TokenConfigDTO
from p2p_exchange.models.schemas import LedgerReceiptSchema

LOG = getLogger(__name__)

OPERATIONS = ("balance_of", "allowance_of", "approve", "transfer")


def new_reference() -> str:
    return f"0x{secrets.token_hex(32)}"


class InMemoryTokenLedgerAdapter(ITokenLedgerClient):
    """In-memory implementation of the token ledger."""

    def __init__(
        self: Self,
        token: TokenConfigDTO,
        spender: str,
        latency: float = 0.0,
    ) -> None:
        self.__token = token
        self.__spender = spender
        self.__latency = latency
        self.__balances: defaultdict[str, int] = defaultdict(int)
        self.__allowances: defaultdict[tuple[str, str], int] = defaultdict(int)
        # operation -> scripted outcomes of the next calls
        self.__script: dict[str, deque[LedgerError | None]] = {
            operation: deque() for operation in OPERATIONS
        }
        self.__approval_shortfall: int = 0
        self.n_approvals = 0
        self.n_transfers = 0

    @property
    def token(self: Self) -> TokenConfigDTO:
        return self.__token

    # == Test and demo helpers =================================================

    def mint(self: Self, address: str, amount: int) -> None:
        """Credit ``amount`` to ``address``."""
        self.__balances[address.lower()] += amount

    def revoke(self: Self, owner: str, spender: str) -> None:
        """Reset an allowance, like a user would do from another application."""
        self.__allowances[(owner.lower(), spender.lower())] = 0

    def fail_next(self: Self, operation: str, error: LedgerError | None = None) -> None:
        """Let the next call of ``operation`` fail with ``error``."""
        self.__check_operation(operation)
        self.__script[operation].append(
            error or LedgerRejectedError(f"{operation} rejected by the ledger"),
        )

    def hang_next(self: Self, operation: str) -> None:
        """Let the next call of ``operation`` never return."""
        self.__check_operation(operation)
        self.__script[operation].append(None)

    def short_approve_next(self: Self, shortfall: int) -> None:
        """The next approval grants ``shortfall`` units less than requested."""
        self.__approval_shortfall = shortfall

    # == Implemented abstract methods from ITokenLedgerClient ==================

    async def balance_of(self: Self, address: str) -> int:
        await self.__simulate("balance_of")
        return self.__balances[address.lower()]

    async def allowance_of(self: Self, owner: str, spender: str) -> int:
        await self.__simulate("allowance_of")
        return self.__allowances[(owner.lower(), spender.lower())]

    async def approve(
        self: Self,
        owner: str,
        spender: str,
        amount: int,
    ) -> LedgerReceiptSchema:
        await self.__simulate("approve")
        granted = max(amount - self.__approval_shortfall, 0)
        self.__approval_shortfall = 0
        self.__allowances[(owner.lower(), spender.lower())] = granted
        self.n_approvals += 1
        LOG.debug("%s: %s approved %s for %d", self.__token.symbol, owner, spender, granted)
        return LedgerReceiptSchema(reference=new_reference(), amount=granted)

    async def transfer(
        self: Self,
        sender: str,
        recipient: str,
        amount: int,
    ) -> LedgerReceiptSchema:
        await self.__simulate("transfer")
        key = (sender.lower(), self.__spender.lower())
        if self.__allowances[key] < amount:
            raise LedgerRejectedError(
                f"{self.__token.symbol}: transfer amount exceeds allowance",
            )
        if self.__balances[sender.lower()] < amount:
            raise LedgerRejectedError(
                f"{self.__token.symbol}: transfer amount exceeds balance",
            )
        self.__allowances[key] -= amount
        self.__balances[sender.lower()] -= amount
        self.__balances[recipient.lower()] += amount
        self.n_transfers += 1
        LOG.debug(
            "%s: moved %d from %s to %s",
            self.__token.symbol,
            amount,
            sender,
            recipient,
        )
        return LedgerReceiptSchema(reference=new_reference(), amount=amount)

    # == Helpers ===============================================================

    def __check_operation(self: Self, operation: str) -> None:
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown ledger operation: {operation}")

    async def __simulate(self: Self, operation: str) -> None:
        if self.__latency:
            await asyncio.sleep(self.__latency)
        if not self.__script[operation]:
            return
        if (error := self.__script[operation].popleft()) is None:
            # Never confirms nor rejects, the caller's timeout has to kick in.
            await asyncio.Event().wait()
        raise error  # type: ignore[misc]
