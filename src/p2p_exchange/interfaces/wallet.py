# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

from abc import ABC, abstractmethod
from typing import Self


class IWalletProvider(ABC):
    """Interface for the wallet of the current user."""

    @abstractmethod
    def current_address(self: Self) -> str | None:
        """Return the address of the connected account, if any."""

    @abstractmethod
    def is_connected(self: Self) -> bool:
        """Return True if a wallet is connected."""

    @abstractmethod
    def chain_id(self: Self) -> int | None:
        """Return the chain the wallet is connected to."""
