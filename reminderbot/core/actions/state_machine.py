"""States and allowed transitions of a single ``/notify`` request.

Every request traverses the machine once, strictly forward:

    idle -> routing -> pending -> confirmed | cancelled | expired
                    -> todo_created
                    -> unknown
"""

from __future__ import annotations

from enum import Enum

from reminderbot.shared.errors import InvalidTransition


class FlowState(str, Enum):
    IDLE = "idle"
    ROUTING = "routing"
    PENDING = "pending"
    TODO_CREATED = "todo_created"
    UNKNOWN = "unknown"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


TRANSITIONS: dict[FlowState, frozenset[FlowState]] = {
    FlowState.IDLE: frozenset({FlowState.ROUTING}),
    FlowState.ROUTING: frozenset(
        {FlowState.PENDING, FlowState.TODO_CREATED, FlowState.UNKNOWN}
    ),
    FlowState.PENDING: frozenset(
        {FlowState.CONFIRMED, FlowState.CANCELLED, FlowState.EXPIRED}
    ),
    FlowState.TODO_CREATED: frozenset(),
    FlowState.UNKNOWN: frozenset(),
    FlowState.CONFIRMED: frozenset(),
    FlowState.CANCELLED: frozenset(),
    FlowState.EXPIRED: frozenset(),
}

TERMINAL_STATES = frozenset(state for state, targets in TRANSITIONS.items() if not targets)


def can_transition(current: FlowState, target: FlowState) -> bool:
    return target in TRANSITIONS[current]


def is_terminal(state: FlowState) -> bool:
    return state in TERMINAL_STATES


class NotifyFlowMachine:
    """Tracks one request's traversal and rejects anything off the table."""

    def __init__(self, request_id: str, state: FlowState = FlowState.IDLE):
        self.request_id = request_id
        self.state = state
        self.history: list[FlowState] = [state]

    def advance(self, target: FlowState) -> FlowState:
        if not can_transition(self.state, target):
            raise InvalidTransition(self.state.value, target.value)
        self.state = target
        self.history.append(target)
        return target

    @property
    def finished(self) -> bool:
        return is_terminal(self.state)
