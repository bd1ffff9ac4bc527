# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

from p2p_exchange.adapters.ledger import InMemoryTokenLedgerAdapter
from p2p_exchange.adapters.wallet import StaticWalletAdapter

__all__ = ["InMemoryTokenLedgerAdapter", "StaticWalletAdapter"]
