# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

from logging import getLogger
from typing import Self

from p2p_exchange.exceptions import WalletNotConnectedError
from p2p_exchange.interfaces.wallet import IWalletProvider

LOG = getLogger(__name__)


class StaticWalletAdapter(IWalletProvider):
    """Wallet provider with an explicitly set account."""

    def __init__(
        self: Self,
        address: str | None = None,
        chain_id: int | None = 1,
    ) -> None:
        self.__address = address
        self.__chain_id = chain_id if address else None

    def connect(self: Self, address: str, chain_id: int = 1) -> None:
        LOG.info("Wallet connected: %s (chain %d)", address, chain_id)
        self.__address = address
        self.__chain_id = chain_id

    def switch(self: Self, address: str) -> None:
        """Switch to another account on the same chain."""
        if not self.is_connected():
            raise WalletNotConnectedError("No wallet connected, connect one first.")
        LOG.info("Wallet switched: %s -> %s", self.__address, address)
        self.__address = address

    def disconnect(self: Self) -> None:
        LOG.info("Wallet disconnected: %s", self.__address)
        self.__address = None
        self.__chain_id = None

    # == Implemented abstract methods from IWalletProvider =====================

    def current_address(self: Self) -> str | None:
        return self.__address

    def is_connected(self: Self) -> bool:
        return self.__address is not None

    def chain_id(self: Self) -> int | None:
        return self.__chain_id
