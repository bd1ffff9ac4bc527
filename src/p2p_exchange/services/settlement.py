# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""
Settlement of a single order.

A settlement moves the payment of the counterparty to the owner of an order
in two separate ledger operations: the approval grants the exchange the right
to spend the payment, the transfer then moves it. Both can fail on their own,
so every confirmation is an explicit step of the state machine::

    CHECKING_FUNDS -> AWAITING_APPROVAL -> APPROVING -> EXECUTING -> COMPLETED
          |                 |                 |             |
          +-----------------+---- FAILED -----+-------------+

The order only leaves the book once the transfer is confirmed. Nothing is
retried automatically, every retry is an explicit call of ``approve``,
``execute``, ``retry`` or ``recheck``.
"""

import asyncio
from collections.abc import Awaitable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from logging import getLogger
from typing import Any, Self, TypeVar
from uuid import uuid4

from p2p_exchange.core.event_bus import EventBus
from p2p_exchange.core.state_machine import SettlementState, SettlementStateMachine
from p2p_exchange.core.units import from_base_units, to_base_units
from p2p_exchange.exceptions import (
    ConflictError,
    InvalidTransitionError,
    LedgerError,
    LedgerRejectedError,
    OrderNotFoundError,
)
from p2p_exchange.interfaces.ledger import ITokenLedgerClient
from p2p_exchange.models.configuration import TokenConfigDTO
from p2p_exchange.models.domain import Activity, ActivityKind, Order, OrderSide
from p2p_exchange.services.activity import ActivityLedger
from p2p_exchange.services.orderbook import OrderBook

LOG = getLogger(__name__)

T = TypeVar("T")


class FailureReason(str, Enum):
    INSUFFICIENT_BALANCE = "InsufficientBalance"
    APPROVAL_REJECTED = "ApprovalRejected"
    APPROVAL_INSUFFICIENT = "ApprovalInsufficient"
    TRANSFER_REJECTED = "TransferRejected"
    TIMEOUT = "Timeout"
    LEDGER_ERROR = "LedgerError"
    ORDER_NO_LONGER_AVAILABLE = "OrderNoLongerAvailable"
    ABORTED = "Aborted"


RECOVERABLE_REASONS = frozenset(
    {
        FailureReason.APPROVAL_REJECTED,
        FailureReason.APPROVAL_INSUFFICIENT,
        FailureReason.TRANSFER_REJECTED,
        FailureReason.TIMEOUT,
        FailureReason.LEDGER_ERROR,
    },
)


@dataclass(frozen=True)
class SettlementFailure:
    """Why the last step of a settlement failed and where a retry re-enters."""

    reason: FailureReason
    message: str
    # State whose ledger call failed, None for terminal failures.
    retry_state: SettlementState | None = None

    @property
    def recoverable(self: Self) -> bool:
        return self.reason in RECOVERABLE_REASONS


def required_amount(order: Order, side: OrderSide, token: TokenConfigDTO) -> int:
    """
    Amount the counterparty has to pay for ``order``, scaled to the smallest
    unit of ``token``. A sell order costs its total, a buy order is filled with
    its quantity.
    """
    amount = order.total if side is OrderSide.SELL else order.quantity
    return to_base_units(amount, token.decimals)


class SettlementWorkflow:
    """
    Drives one settlement attempt of ``order`` by ``counterparty_address``.

    At most one ledger call is outstanding at a time. Calling another action
    while a call is in flight raises a ConflictError, calling an action that is
    not allowed in the current state raises an InvalidTransitionError.
    Failures of ledger calls are never raised, they end in the FAILED state and
    are described by ``last_error``.
    """

    def __init__(  # noqa: PLR0913
        self: Self,
        order: Order,
        side: OrderSide,
        counterparty_address: str,
        orderbook: OrderBook,
        activities: ActivityLedger,
        ledger: ITokenLedgerClient,
        spender: str,
        timeout: float = 30.0,
        event_bus: EventBus | None = None,
        execution_lock: asyncio.Lock | None = None,
        attempt_id: str | None = None,
    ) -> None:
        self.__order = order
        self.__side = side
        self.__counterparty = counterparty_address
        self.__orderbook = orderbook
        self.__activities = activities
        self.__ledger = ledger
        self.__spender = spender
        self.__timeout = timeout
        self.__event_bus = event_bus
        # Serializes the transfers of all attempts bound to the same order.
        self.__execution_lock = execution_lock or asyncio.Lock()
        self.__attempt_id = attempt_id or f"settlement-{uuid4().hex[:12]}"

        self.__required_amount = required_amount(order, side, ledger.token)
        self.__last_error: SettlementFailure | None = None
        self.__started = False
        self.__busy = False
        self.__order_gone = False

        self.__machine = SettlementStateMachine()
        self.__machine.register_callback(
            SettlementState.FAILED,
            self.__release_execution,
        )
        self.__machine.register_callback(
            SettlementState.COMPLETED,
            self.__release_execution,
        )

    # == Properties ============================================================

    @property
    def attempt_id(self: Self) -> str:
        return self.__attempt_id

    @property
    def order(self: Self) -> Order:
        return self.__order

    @property
    def side(self: Self) -> OrderSide:
        return self.__side

    @property
    def counterparty_address(self: Self) -> str:
        return self.__counterparty

    @property
    def token(self: Self) -> TokenConfigDTO:
        return self.__ledger.token

    @property
    def required_amount(self: Self) -> int:
        return self.__required_amount

    @property
    def state(self: Self) -> SettlementState:
        return self.__machine.state

    @property
    def last_error(self: Self) -> SettlementFailure | None:
        return self.__last_error

    @property
    def facts(self: Self) -> dict[str, Any]:
        return dict(self.__machine.facts)

    @property
    def busy(self: Self) -> bool:
        """True while a ledger call is outstanding."""
        return self.__busy

    @property
    def finished(self: Self) -> bool:
        """True once the attempt completed or failed without a way back."""
        return self.__machine.finished

    async def wait_until_finished(self: Self) -> None:
        await self.__machine.wait_until_finished()

    # == User actions ==========================================================

    async def start(self: Self) -> SettlementState:
        """Run the initial funds check."""
        with self.__action():
            if self.__started:
                raise InvalidTransitionError(
                    f"Settlement {self.__attempt_id} was already started",
                )
            LOG.info(
                "Starting settlement %s of %s order '%s' by %s (%d %s units)",
                self.__attempt_id,
                self.__side.value,
                self.__order.id,
                self.__counterparty,
                self.__required_amount,
                self.token.symbol,
            )
            self.__started = True
            await self.__check_funds()
        return self.state

    async def recheck(self: Self) -> SettlementState:
        """Run a fresh funds check, e.g. after the allowance was revoked."""
        with self.__action():
            if not (
                self.state == SettlementState.AWAITING_APPROVAL
                or self.__recoverable_failure()
            ):
                raise InvalidTransitionError(
                    f"Invalid state transition from {self.state} to "
                    f"{SettlementState.CHECKING_FUNDS}",
                )
            await self.__check_funds()
        return self.state

    async def approve(self: Self) -> SettlementState:
        """Submit the approval of exactly the required amount."""
        with self.__action():
            if not (
                self.state == SettlementState.AWAITING_APPROVAL
                or self.__recoverable_failure(SettlementState.APPROVING)
            ):
                raise InvalidTransitionError(
                    f"Invalid state transition from {self.state} to "
                    f"{SettlementState.APPROVING}",
                )
            await self.__approve()
        return self.state

    async def execute(self: Self) -> SettlementState:
        """Submit the transfer of exactly the required amount."""
        with self.__action():
            if self.state == SettlementState.FAILED and self.__recoverable_failure(
                SettlementState.EXECUTING,
            ):
                if not self.__enter_executing():
                    return self.state
            elif self.state != SettlementState.EXECUTING:
                raise InvalidTransitionError(
                    f"Cannot execute settlement {self.__attempt_id} in state {self.state}",
                )
            await self.__execute()
        return self.state

    async def retry(self: Self) -> SettlementState:
        """Repeat the step that failed recoverably."""
        if not self.__recoverable_failure() and not (
            self.__last_error is not None
            and self.__last_error.reason is FailureReason.APPROVAL_INSUFFICIENT
        ):
            raise InvalidTransitionError(
                f"Settlement {self.__attempt_id} has nothing to retry",
            )
        retry_state = self.__last_error.retry_state  # type: ignore[union-attr]
        if retry_state == SettlementState.APPROVING:
            return await self.approve()
        if retry_state == SettlementState.EXECUTING:
            return await self.execute()
        return await self.recheck()

    def abort(self: Self) -> None:
        """Abandon the attempt. The order stays listed."""
        if self.__busy:
            raise ConflictError(
                f"Settlement {self.__attempt_id} has an outstanding ledger call",
            )
        if self.finished or self.state == SettlementState.COMPLETED:
            raise InvalidTransitionError(
                f"Settlement {self.__attempt_id} is already finished",
            )
        self.__fail(FailureReason.ABORTED, "Settlement aborted by the user")

    def invalidate(self: Self) -> None:
        """
        Called when the bound order left the book through another path. The
        attempt fails right away, or as soon as its outstanding call returned.
        """
        if self.finished:
            return
        self.__order_gone = True
        if not self.__busy:
            self.__fail_order_gone()

    # == Steps =================================================================

    async def __check_funds(self: Self) -> None:
        self.__transition(SettlementState.CHECKING_FUNDS)
        if self.__stale():
            return

        try:
            balance = await self.__call(self.__ledger.balance_of(self.__counterparty))
            self.__machine.facts = {"balance": balance}
            allowance = await self.__call(
                self.__ledger.allowance_of(self.__counterparty, self.__spender),
            )
            self.__machine.facts = {"allowance": allowance}
        except (TimeoutError, LedgerError) as exc:
            self.__fail_call(exc, SettlementState.CHECKING_FUNDS, "funds check")
            return

        if self.__stale():
            return

        if balance < self.__required_amount:
            self.__fail(
                FailureReason.INSUFFICIENT_BALANCE,
                f"Insufficient {self.token.symbol} balance: "
                f"{balance} < {self.__required_amount}",
            )
            return

        self.__last_error = None
        if allowance < self.__required_amount:
            LOG.info(
                "Allowance of %s too low (%d < %d), approval required.",
                self.__counterparty,
                allowance,
                self.__required_amount,
            )
            self.__transition(SettlementState.AWAITING_APPROVAL)
        else:
            self.__enter_executing()

    async def __approve(self: Self) -> None:
        self.__transition(SettlementState.APPROVING)
        try:
            receipt = await self.__call(
                self.__ledger.approve(
                    self.__counterparty,
                    self.__spender,
                    self.__required_amount,
                ),
            )
        except LedgerRejectedError as exc:
            self.__fail(
                FailureReason.APPROVAL_REJECTED,
                f"Approval rejected: {exc}",
                SettlementState.APPROVING,
            )
            return
        except (TimeoutError, LedgerError) as exc:
            self.__fail_call(exc, SettlementState.APPROVING, "approval")
            return

        LOG.info("Approval confirmed (%s).", receipt.reference)
        self.__machine.facts = {"approval_reference": receipt.reference}

        try:
            allowance = await self.__call(
                self.__ledger.allowance_of(self.__counterparty, self.__spender),
            )
        except (TimeoutError, LedgerError) as exc:
            # The approval itself went through, a fresh funds check suffices.
            self.__fail_call(exc, SettlementState.CHECKING_FUNDS, "allowance query")
            return
        self.__machine.facts = {"allowance": allowance}

        if self.__stale():
            return

        if allowance < self.__required_amount:
            self.__transition(SettlementState.AWAITING_APPROVAL)
            self.__warn(
                SettlementFailure(
                    reason=FailureReason.APPROVAL_INSUFFICIENT,
                    message=f"Allowance still too low after approval: "
                    f"{allowance} < {self.__required_amount}",
                    retry_state=SettlementState.APPROVING,
                ),
            )
            return

        self.__last_error = None
        self.__enter_executing()

    async def __execute(self: Self) -> None:
        async with self.__execution_lock:
            if self.__stale() or self.__order_gone_from_book():
                return

            LOG.info(
                "Submitting transfer of %d %s units from %s to %s ...",
                self.__required_amount,
                self.token.symbol,
                self.__counterparty,
                self.__order.owner_address,
            )
            try:
                receipt = await self.__call(
                    self.__ledger.transfer(
                        self.__counterparty,
                        self.__order.owner_address,
                        self.__required_amount,
                    ),
                )
            except LedgerRejectedError as exc:
                self.__fail(
                    FailureReason.TRANSFER_REJECTED,
                    f"Transfer rejected: {exc}",
                    SettlementState.EXECUTING,
                )
                return
            except (TimeoutError, LedgerError) as exc:
                self.__fail_call(exc, SettlementState.EXECUTING, "transfer")
                return

            try:
                order = self.__orderbook.remove(self.__order.id, self.__side)
            except OrderNotFoundError:
                LOG.error(
                    "Transfer %s confirmed but order '%s' was already removed!",
                    receipt.reference,
                    self.__order.id,
                )
                self.__fail_order_gone()
                return

            self.__machine.facts = {"settlement_reference": receipt.reference}
            self.__activities.append(
                Activity(
                    kind=(
                        ActivityKind.BUY
                        if self.__side is OrderSide.SELL
                        else ActivityKind.SELL
                    ),
                    order=order,
                    settlement_reference=receipt.reference,
                    counterparty_address=self.__counterparty,
                ),
            )
            self.__last_error = None
            self.__transition(SettlementState.COMPLETED)
            self.__machine.finish()
            LOG.info(
                "Settlement %s of order '%s' completed (%s).",
                self.__attempt_id,
                self.__order.id,
                receipt.reference,
            )
            self.__publish(
                "order_settled",
                {
                    "attempt_id": self.__attempt_id,
                    "order_id": self.__order.id,
                    "side": self.__side,
                    "order": order,
                    "counterparty": self.__counterparty,
                    "amount": from_base_units(
                        self.__required_amount,
                        self.token.decimals,
                    ),
                    "token": self.token.symbol,
                    "reference": receipt.reference,
                },
            )

    # == Helpers ===============================================================

    @contextmanager
    def __action(self: Self) -> Iterator[None]:
        if self.__busy:
            raise ConflictError(
                f"Settlement {self.__attempt_id} has an outstanding ledger call",
            )
        if self.finished:
            raise InvalidTransitionError(
                f"Settlement {self.__attempt_id} is finished ({self.state.name})",
            )
        self.__busy = True
        try:
            yield
        finally:
            self.__busy = False
            if self.__order_gone and not self.finished:
                self.__fail_order_gone()

    async def __call(self: Self, coro: Awaitable[T]) -> T:
        return await asyncio.wait_for(coro, timeout=self.__timeout)

    def __recoverable_failure(self: Self, retry_state: SettlementState | None = None) -> bool:
        if self.state != SettlementState.FAILED or self.__last_error is None:
            return False
        if not self.__last_error.recoverable:
            return False
        return retry_state is None or self.__last_error.retry_state == retry_state

    def __enter_executing(self: Self) -> bool:
        """Flag the order as executing, fails the attempt if it is gone."""
        try:
            self.__orderbook.mark_executing(self.__order.id, self.__attempt_id)
        except OrderNotFoundError:
            self.__fail_order_gone()
            return False
        self.__transition(SettlementState.EXECUTING)
        return True

    def __release_execution(self: Self) -> None:
        self.__orderbook.clear_executing(self.__order.id, self.__attempt_id)

    def __stale(self: Self) -> bool:
        if self.__order_gone:
            self.__fail_order_gone()
            return True
        return False

    def __order_gone_from_book(self: Self) -> bool:
        if self.__order.id not in self.__orderbook:
            self.__fail_order_gone()
            return True
        return False

    def __fail_order_gone(self: Self) -> None:
        self.__order_gone = True
        self.__fail(
            FailureReason.ORDER_NO_LONGER_AVAILABLE,
            f"Order '{self.__order.id}' is no longer available",
        )

    def __fail_call(
        self: Self,
        exc: BaseException,
        retry_state: SettlementState,
        step: str,
    ) -> None:
        if isinstance(exc, TimeoutError):
            self.__fail(
                FailureReason.TIMEOUT,
                f"The {step} did not complete within {self.__timeout}s",
                retry_state,
            )
        else:
            self.__fail(
                FailureReason.LEDGER_ERROR,
                f"The {step} failed: {exc}",
                retry_state,
            )

    def __fail(
        self: Self,
        reason: FailureReason,
        message: str,
        retry_state: SettlementState | None = None,
    ) -> None:
        failure = SettlementFailure(reason=reason, message=message, retry_state=retry_state)
        self.__last_error = failure
        self.__transition(SettlementState.FAILED)
        if failure.recoverable:
            LOG.warning("Settlement %s failed: %s", self.__attempt_id, message)
        else:
            LOG.error("Settlement %s failed terminally: %s", self.__attempt_id, message)
            self.__machine.finish()
        self.__publish_state()

    def __warn(self: Self, failure: SettlementFailure) -> None:
        self.__last_error = failure
        LOG.warning("Settlement %s: %s", self.__attempt_id, failure.message)
        self.__publish_state()

    def __transition(self: Self, new_state: SettlementState) -> None:
        try:
            self.__machine.transition_to(new_state)
        except ValueError as exc:
            raise InvalidTransitionError(str(exc)) from exc
        LOG.info("Settlement %s: %s", self.__attempt_id, new_state.name)
        if new_state != SettlementState.FAILED:
            self.__publish_state()

    def __publish_state(self: Self) -> None:
        self.__publish(
            "settlement_state",
            {
                "attempt_id": self.__attempt_id,
                "order_id": self.__order.id,
                "state": self.state,
                "failure": self.__last_error,
            },
        )

    def __publish(self: Self, event_type: str, data: dict[str, Any]) -> None:
        if self.__event_bus is not None:
            self.__event_bus.publish(event_type, data)
