"""
Reflex execution layer.

This module contains the execution layer components:
- state_machine: route execution states and transitions
- reentrancy: graceful reentrancy guard
- executor: multi-hop swap executor and callback dispatcher
- router: backrun controller (trigger, admin surface)
"""

from execution.state_machine import (
    ExecutionContext,
    ExecutionState,
    InvalidTransitionError,
    StateTransition,
    VALID_TRANSITIONS,
)
from execution.reentrancy import GracefulReentrancyGuard
from execution.executor import MultiHopExecutor, SELECTOR_KINDS
from execution.router import BackrunRouter

__all__ = [
    # State machine
    "ExecutionContext",
    "ExecutionState",
    "InvalidTransitionError",
    "StateTransition",
    "VALID_TRANSITIONS",
    # Guard
    "GracefulReentrancyGuard",
    # Executor
    "MultiHopExecutor",
    "SELECTOR_KINDS",
    "BackrunRouter",
]
