"""Pipeline state enumeration and the state machine that guards transitions."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, FrozenSet, List

from .exceptions import PipelineStateError

logger = logging.getLogger(__name__)


class PipelineState(Enum):
    """Lifecycle of an inference pipeline."""
    INITIAL = "initial"
    WARMING_UP = "warming_up"
    READY_FOR_DETECTION = "ready_for_detection"
    DETECTING = "detecting"
    CLASSIFYING = "classifying"
    COMPLETE = "complete"
    FAILED = "failed"


TERMINAL_STATES: FrozenSet[PipelineState] = frozenset({
    PipelineState.COMPLETE,
    PipelineState.FAILED,
})

ALLOWED_TRANSITIONS: Dict[PipelineState, FrozenSet[PipelineState]] = {
    PipelineState.INITIAL: frozenset({PipelineState.WARMING_UP}),
    PipelineState.WARMING_UP: frozenset({PipelineState.READY_FOR_DETECTION}),
    PipelineState.READY_FOR_DETECTION: frozenset({PipelineState.DETECTING}),
    PipelineState.DETECTING: frozenset({
        PipelineState.CLASSIFYING,
        PipelineState.COMPLETE,
        PipelineState.FAILED,
    }),
    PipelineState.CLASSIFYING: frozenset({
        PipelineState.COMPLETE,
        PipelineState.FAILED,
    }),
    PipelineState.COMPLETE: frozenset({PipelineState.READY_FOR_DETECTION}),
    PipelineState.FAILED: frozenset({PipelineState.READY_FOR_DETECTION}),
}

StateListener = Callable[[PipelineState], None]


class PipelineStateMachine:
    """Holds the single live pipeline state.

    Transitions are validated against ``ALLOWED_TRANSITIONS``; every accepted
    transition is pushed to the registered listeners in registration order.
    A listener that raises is logged and skipped so that observers can never
    break a run.
    """

    def __init__(self, initial: PipelineState = PipelineState.INITIAL):
        self._state = initial
        self._listeners: List[StateListener] = []

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    def can_transition(self, target: PipelineState) -> bool:
        """Check whether ``target`` is reachable from the current state."""
        return target in ALLOWED_TRANSITIONS[self._state]

    def transition(self, target: PipelineState) -> None:
        """Move to ``target`` or raise PipelineStateError."""
        if not self.can_transition(target):
            raise PipelineStateError(
                f"Invalid pipeline transition {self._state.name} -> {target.name}"
            )
        previous = self._state
        self._state = target
        logger.debug(f"Pipeline state {previous.name} -> {target.name}")
        self._notify(target)

    def add_listener(self, callback: StateListener) -> None:
        """Add a listener for state transitions."""
        self._listeners.append(callback)

    def remove_listener(self, callback: StateListener) -> None:
        """Remove a state transition listener."""
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self, state: PipelineState) -> None:
        for callback in list(self._listeners):
            try:
                callback(state)
            except Exception as e:
                logger.error(f"Error in pipeline state listener: {e}", exc_info=True)
