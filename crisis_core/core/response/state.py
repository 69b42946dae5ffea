"""Per-turn response composition state machine."""

from enum import Enum
from typing import Set


class CompositionState(str, Enum):
    """States a crisis turn passes through while its response is composed."""

    NEED_TYPE = "need_type"
    HAVE_TYPE = "have_type"

    # Location branch
    HAVE_LOCATION = "have_location"
    NEED_LOCATION = "need_location"

    # Terminal
    COMPOSED = "composed"


# Valid state transitions
VALID_TRANSITIONS: dict[CompositionState, Set[CompositionState]] = {
    CompositionState.NEED_TYPE: {
        CompositionState.HAVE_TYPE,
    },
    CompositionState.HAVE_TYPE: {
        CompositionState.HAVE_LOCATION,
        CompositionState.NEED_LOCATION,
    },
    CompositionState.HAVE_LOCATION: {
        CompositionState.COMPOSED,
    },
    CompositionState.NEED_LOCATION: {
        CompositionState.COMPOSED,
    },
    CompositionState.COMPOSED: set(),  # Terminal state
}


def can_transition(from_state: CompositionState, to_state: CompositionState) -> bool:
    """Check if a state transition is valid."""
    return to_state in VALID_TRANSITIONS.get(from_state, set())


def is_terminal_state(state: CompositionState) -> bool:
    """Check if state is terminal (no further transitions)."""
    return not VALID_TRANSITIONS.get(state)
