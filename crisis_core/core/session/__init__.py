"""
Per-session crisis state.

State is loaded at the start of a turn, mutated by the turn's single
writer, and saved at the end of the turn.
"""

from .models import SessionState, PhoneRequestState, RefusalHistory
from .manager import SessionStore, get_session_store

__all__ = [
    # Models
    "SessionState",
    "PhoneRequestState",
    "RefusalHistory",
    # Store
    "SessionStore",
    "get_session_store",
]
