# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""Exceptions raised by the order book, the settlement and the ledger adapters."""


class ExchangeError(Exception):
    """Base class for all exchange related errors."""


# == Order book errors =========================================================


class OrderValidationError(ExchangeError, ValueError):
    """Raised when an order is rejected before any state was mutated."""


class DuplicateOrderError(OrderValidationError):
    """Raised when an order id is already listed on either side of the book."""


class OrderNotFoundError(ExchangeError, LookupError):
    """Raised when an order id is not (or no longer) present in the book."""


class ConflictError(ExchangeError):
    """
    Raised when an action conflicts with the current state, e.g. cancelling an
    order that is being executed. The caller must re-fetch the state instead of
    retrying the same action.
    """


class NotOrderOwnerError(ConflictError):
    """Raised when someone else than the owner tries to cancel an order."""


# == Wallet errors =============================================================


class WalletNotConnectedError(ExchangeError):
    """Raised when an action requires a connected wallet."""


class NetworkMismatchError(ExchangeError):
    """Raised when the wallet is connected to another chain than configured."""


# == Settlement errors =========================================================


class InvalidTransitionError(ExchangeError, ValueError):
    """Raised when a settlement action is not permitted in the current state."""


# == Ledger errors =============================================================


class LedgerError(ExchangeError):
    """Raised by ledger adapters on unexpected failures."""


class LedgerRejectedError(LedgerError):
    """Raised when the ledger rejected an approval or transfer."""
