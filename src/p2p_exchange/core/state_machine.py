# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""State machine of a single settlement attempt."""

import asyncio
from enum import Enum, auto
from logging import getLogger
from typing import Any, Callable, Self

LOG = getLogger(__name__)


class SettlementState(Enum):
    CHECKING_FUNDS = auto()
    AWAITING_APPROVAL = auto()
    APPROVING = auto()
    EXECUTING = auto()
    COMPLETED = auto()
    FAILED = auto()


class SettlementStateMachine:
    """
    Holds the state of a settlement attempt and only allows the transitions
    defined in ``_transitions``. FAILED may be left again, since most failures
    are recoverable by an explicit user action. Whether a failure is terminal
    is decided by the workflow which owns this machine.
    """

    def __init__(
        self: Self,
        initial_state: SettlementState = SettlementState.CHECKING_FUNDS,
    ) -> None:
        self._state: SettlementState = initial_state
        self._transitions = self._define_transitions()
        self._callbacks: dict[SettlementState, list[Callable[[], None]]] = {}
        self._facts: dict[str, Any] = {
            "balance": None,
            "allowance": None,
            "approval_reference": None,
            "settlement_reference": None,
        }
        self._finished_event: asyncio.Event | None = None

    def _define_transitions(self: Self) -> dict[SettlementState, list[SettlementState]]:
        return {
            SettlementState.CHECKING_FUNDS: [
                SettlementState.AWAITING_APPROVAL,
                SettlementState.EXECUTING,
                SettlementState.FAILED,
            ],
            SettlementState.AWAITING_APPROVAL: [
                SettlementState.APPROVING,
                SettlementState.CHECKING_FUNDS,
                SettlementState.FAILED,
            ],
            SettlementState.APPROVING: [
                SettlementState.AWAITING_APPROVAL,
                SettlementState.EXECUTING,
                SettlementState.FAILED,
            ],
            SettlementState.EXECUTING: [
                SettlementState.COMPLETED,
                SettlementState.FAILED,
            ],
            SettlementState.FAILED: [
                SettlementState.CHECKING_FUNDS,
                SettlementState.APPROVING,
                SettlementState.EXECUTING,
            ],
            SettlementState.COMPLETED: [],
        }

    def transition_to(self: Self, new_state: SettlementState) -> None:
        """Transition to a new state if allowed."""
        if new_state == self._state:
            return

        if new_state not in self._transitions[self._state]:
            raise ValueError(
                f"Invalid state transition from {self._state} to {new_state}",
            )

        LOG.debug("Settlement state: %s -> %s", self._state.name, new_state.name)
        self._state = new_state

        for callback in self._callbacks.get(new_state, []):
            callback()

    def finish(self: Self) -> None:
        """Mark the attempt as finished and wake up everyone waiting for it."""
        if self._finished_event is None:
            self._finished_event = asyncio.Event()
        self._finished_event.set()

    @property
    def finished(self: Self) -> bool:
        return self._finished_event is not None and self._finished_event.is_set()

    @property
    def state(self: Self) -> SettlementState:
        return self._state

    @property
    def facts(self: Self) -> dict[str, Any]:
        return self._facts

    @facts.setter
    def facts(self: Self, new_facts: dict[str, Any]) -> None:
        for key, value in new_facts.items():
            if key not in self._facts:
                raise KeyError(f"Fact '{key}' does not exist!")
            self._facts[key] = value

    def register_callback(
        self: Self,
        state: SettlementState,
        callback: Callable[[], None],
    ) -> None:
        """Register a callback that runs whenever ``state`` is entered."""
        if state not in self._callbacks:
            self._callbacks[state] = []
        self._callbacks[state].append(callback)

    async def wait_until_finished(self: Self) -> None:
        """Wait until the attempt completed or failed terminally."""
        if self._finished_event is None:
            self._finished_event = asyncio.Event()
        await self._finished_event.wait()
