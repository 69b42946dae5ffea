"""
Crisis response composition.

Usage:
    from crisis_core.core.response import ResponseCoordinator

    coordinator = ResponseCoordinator()
    composed = coordinator.compose(arbitration, session, location)
    print(composed.text)
"""

from .state import CompositionState, can_transition, is_terminal_state
from .coordinator import ComposedResponse, ResponseCoordinator

__all__ = [
    # State machine
    "CompositionState",
    "can_transition",
    "is_terminal_state",
    # Coordinator
    "ComposedResponse",
    "ResponseCoordinator",
]
