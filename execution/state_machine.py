"""
Route execution state machine.

EXECUTION STATE CONTRACT:
=========================

States (ExecutionState):
  IDLE     -> no route in flight
  HOP      -> hop `current_hop` is executing (its pool has been called)
  SETTLED  -> every hop paid, final output landed on the router
  FAILED   -> a hop reverted

Transitions:
  IDLE  -> HOP(0)      (begin)
  HOP(i) -> HOP(i+1)   (advance, from a pool callback)
  HOP(N-1) -> SETTLED  (settle)
  *     -> FAILED      (fail, from any non-terminal state)

Hop indices are positions in execution order, not in the quoted route.
=========================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from core.exceptions import ErrorCode, ReflexError


class ExecutionState(str, Enum):
    """Route execution states."""
    IDLE = "IDLE"
    HOP = "HOP"
    SETTLED = "SETTLED"
    FAILED = "FAILED"


VALID_TRANSITIONS: Dict[ExecutionState, List[ExecutionState]] = {
    ExecutionState.IDLE: [ExecutionState.HOP, ExecutionState.FAILED],
    ExecutionState.HOP: [ExecutionState.HOP, ExecutionState.SETTLED, ExecutionState.FAILED],
    ExecutionState.SETTLED: [],  # Terminal state
    ExecutionState.FAILED: [],  # Terminal state
}


@dataclass
class StateTransition:
    """Record of a state transition."""
    from_state: ExecutionState
    to_state: ExecutionState
    hop: Optional[int] = None
    reason: str = ""


class InvalidTransitionError(ReflexError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCode.EXEC_INVALID_TRANSITION, message, details)


@dataclass
class ExecutionContext:
    """
    Progress of one route execution.

    Lives in router storage for the duration of a trigger only.
    """
    route_digest: str
    hop_count: int
    state: ExecutionState = ExecutionState.IDLE
    current_hop: Optional[int] = None
    history: List[StateTransition] = field(default_factory=list)

    def can_transition_to(self, new_state: ExecutionState) -> bool:
        return new_state in VALID_TRANSITIONS.get(self.state, [])

    def _transition(
        self,
        new_state: ExecutionState,
        hop: Optional[int] = None,
        reason: str = "",
    ) -> StateTransition:
        if not self.can_transition_to(new_state):
            raise InvalidTransitionError(
                f"Cannot transition from {self.state.value} to {new_state.value}. "
                f"Valid transitions: {[s.value for s in VALID_TRANSITIONS.get(self.state, [])]}",
                details={"state": self.state.value, "current_hop": self.current_hop},
            )
        transition = StateTransition(
            from_state=self.state,
            to_state=new_state,
            hop=hop,
            reason=reason,
        )
        self.history.append(transition)
        self.state = new_state
        self.current_hop = hop
        return transition

    def begin(self) -> StateTransition:
        """IDLE -> HOP(0)."""
        if self.hop_count == 0:
            raise InvalidTransitionError("Cannot begin an empty route")
        return self._transition(ExecutionState.HOP, hop=0)

    def advance(self, hop: int) -> StateTransition:
        """HOP(i) -> HOP(i+1). `hop` must be exactly the next index."""
        if self.state != ExecutionState.HOP or self.current_hop is None:
            raise InvalidTransitionError(
                f"Cannot advance from {self.state.value}",
                details={"state": self.state.value},
            )
        if hop != self.current_hop + 1 or hop >= self.hop_count:
            raise InvalidTransitionError(
                f"Cannot advance from hop {self.current_hop} to hop {hop}",
                details={"current_hop": self.current_hop, "hop": hop, "hop_count": self.hop_count},
            )
        return self._transition(ExecutionState.HOP, hop=hop)

    def settle(self) -> StateTransition:
        """HOP(N-1) -> SETTLED."""
        if self.current_hop != self.hop_count - 1:
            raise InvalidTransitionError(
                f"Cannot settle at hop {self.current_hop} of {self.hop_count}",
                details={"current_hop": self.current_hop, "hop_count": self.hop_count},
            )
        return self._transition(ExecutionState.SETTLED, hop=self.current_hop)

    def fail(self, reason: str = "") -> StateTransition:
        if self.is_terminal:
            raise InvalidTransitionError(
                f"Cannot fail execution in terminal state {self.state.value}"
            )
        return self._transition(ExecutionState.FAILED, hop=self.current_hop, reason=reason)

    @property
    def is_terminal(self) -> bool:
        return len(VALID_TRANSITIONS.get(self.state, [])) == 0

    @property
    def is_active(self) -> bool:
        return self.state == ExecutionState.HOP

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "route_digest": self.route_digest,
            "hop_count": self.hop_count,
            "state": self.state.value,
            "current_hop": self.current_hop,
            "is_terminal": self.is_terminal,
            "history": [
                {
                    "from_state": t.from_state.value,
                    "to_state": t.to_state.value,
                    "hop": t.hop,
                    "reason": t.reason,
                }
                for t in self.history
            ],
        }
