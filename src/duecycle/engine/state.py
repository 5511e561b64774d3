"""
Processing state machine — decides whether an obligation still produces occurrences.

    PENDING ──complete()──▶ COMPLETED   (terminal)
    PENDING ──cancel()────▶ CANCELLED
    CANCELLED ─reactivate()▶ PENDING

Only PENDING obligations are eligible for materialization.
"""

from __future__ import annotations

from enum import Enum

from duecycle.exceptions import InvalidStateError


class ProcessingState(str, Enum):
    """Lifecycle state of an obligation."""

    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


_TRANSITIONS: dict[ProcessingState, frozenset[ProcessingState]] = {
    ProcessingState.PENDING: frozenset({ProcessingState.COMPLETED, ProcessingState.CANCELLED}),
    ProcessingState.CANCELLED: frozenset({ProcessingState.PENDING}),
    ProcessingState.COMPLETED: frozenset(),
}


class ProcessingStateMachine:
    """Transition table for :class:`ProcessingState`."""

    @staticmethod
    def can_transition(current: ProcessingState, target: ProcessingState) -> bool:
        return target in _TRANSITIONS[current]

    @staticmethod
    def transition(current: ProcessingState, target: ProcessingState) -> ProcessingState:
        """Return ``target`` if the move is allowed.

        Raises:
            InvalidStateError: if ``current`` does not permit moving to ``target``.
        """
        if not ProcessingStateMachine.can_transition(current, target):
            raise InvalidStateError(current.value, target.value)
        return target

    @staticmethod
    def is_materializable(state: ProcessingState) -> bool:
        return state == ProcessingState.PENDING

    @staticmethod
    def is_terminal(state: ProcessingState) -> bool:
        return not _TRANSITIONS[state]
