# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

from p2p_exchange.interfaces.ledger import ITokenLedgerClient
from p2p_exchange.interfaces.notification import INotificationChannel
from p2p_exchange.interfaces.wallet import IWalletProvider

__all__ = [
    "INotificationChannel",
    "ITokenLedgerClient",
    "IWalletProvider",
]
