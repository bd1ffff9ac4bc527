# -*- mode: python; coding: utf-8 -*-
#
# Copyright (C) 2025 Benjamin Thomas Schwertfeger
# All rights reserved.
# https://github.com/btschwertfeger
#

"""Unit tests for the SettlementStateMachine class."""

import asyncio
from unittest.mock import Mock

import pytest

from p2p_exchange.core.state_machine import SettlementState, SettlementStateMachine


@pytest.fixture
def state_machine() -> SettlementStateMachine:
    """Create a fresh SettlementStateMachine instance for each test"""
    return SettlementStateMachine()


class TestSettlementStateMachineBasic:
    def test_initialization_default(self, state_machine: SettlementStateMachine) -> None:
        """Test default initialization"""
        assert state_machine.state == SettlementState.CHECKING_FUNDS
        assert state_machine.finished is False

    def test_initialization_custom(self) -> None:
        """Test custom initialization with specific state"""
        sm = SettlementStateMachine(initial_state=SettlementState.EXECUTING)
        assert sm.state == SettlementState.EXECUTING

    def test_happy_path(self, state_machine: SettlementStateMachine) -> None:
        """Test the transitions of a settlement that needs an approval"""
        for state in (
            SettlementState.AWAITING_APPROVAL,
            SettlementState.APPROVING,
            SettlementState.EXECUTING,
            SettlementState.COMPLETED,
        ):
            state_machine.transition_to(state)
            assert state_machine.state == state

    @pytest.mark.parametrize(
        ("source", "target"),
        [
            (SettlementState.CHECKING_FUNDS, SettlementState.APPROVING),
            (SettlementState.CHECKING_FUNDS, SettlementState.COMPLETED),
            (SettlementState.AWAITING_APPROVAL, SettlementState.EXECUTING),
            (SettlementState.EXECUTING, SettlementState.APPROVING),
            (SettlementState.FAILED, SettlementState.COMPLETED),
            (SettlementState.COMPLETED, SettlementState.FAILED),
            (SettlementState.COMPLETED, SettlementState.CHECKING_FUNDS),
        ],
    )
    def test_invalid_transition(
        self,
        source: SettlementState,
        target: SettlementState,
    ) -> None:
        """Test that transitions outside of the table are rejected"""
        sm = SettlementStateMachine(initial_state=source)
        with pytest.raises(ValueError, match=r"Invalid state transition.*"):
            sm.transition_to(target)
        assert sm.state == source

    def test_every_open_state_can_fail(self) -> None:
        """Test that FAILED is reachable from every non-terminal state"""
        for state in SettlementState:
            if state in {SettlementState.COMPLETED, SettlementState.FAILED}:
                continue
            sm = SettlementStateMachine(initial_state=state)
            sm.transition_to(SettlementState.FAILED)
            assert sm.state == SettlementState.FAILED

    def test_same_state_is_noop(self, state_machine: SettlementStateMachine) -> None:
        """Test that a transition into the current state does nothing"""
        callback = Mock()
        state_machine.register_callback(SettlementState.CHECKING_FUNDS, callback)

        state_machine.transition_to(SettlementState.CHECKING_FUNDS)

        callback.assert_not_called()

    def test_register_and_execute_callback(
        self,
        state_machine: SettlementStateMachine,
    ) -> None:
        """Test registering and executing a callback"""
        mock_callback = Mock()
        state_machine.register_callback(SettlementState.FAILED, mock_callback)

        state_machine.transition_to(SettlementState.EXECUTING)
        mock_callback.assert_not_called()

        state_machine.transition_to(SettlementState.FAILED)
        mock_callback.assert_called_once()


class TestSettlementStateMachineFacts:
    def test_facts_update(self, state_machine: SettlementStateMachine) -> None:
        """Test that facts are merged"""
        state_machine.facts = {"balance": 10}
        state_machine.facts = {"allowance": 5}

        assert state_machine.facts["balance"] == 10
        assert state_machine.facts["allowance"] == 5
        assert state_machine.facts["settlement_reference"] is None

    def test_unknown_fact(self, state_machine: SettlementStateMachine) -> None:
        """Test that unknown facts are rejected"""
        with pytest.raises(KeyError, match=r"Fact 'price' does not exist!"):
            state_machine.facts = {"price": 1}


class TestSettlementStateMachineAsync:
    @pytest.mark.asyncio
    async def test_wait_until_finished(self, state_machine: SettlementStateMachine) -> None:
        """Test that waiters are woken up by finish"""
        waiter = asyncio.create_task(state_machine.wait_until_finished())
        await asyncio.sleep(0)
        assert not waiter.done()

        state_machine.finish()
        await asyncio.wait_for(waiter, timeout=1)
        assert state_machine.finished is True

    @pytest.mark.asyncio
    async def test_wait_when_already_finished(self) -> None:
        """Test that waiting returns immediately once finished"""
        sm = SettlementStateMachine(initial_state=SettlementState.COMPLETED)
        sm.finish()

        await asyncio.wait_for(sm.wait_until_finished(), timeout=1)
