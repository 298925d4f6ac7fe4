"""
Session Module - Shared game sessions on top of the document store.

A session is one lobby plus its rounds:
- Created by a host, joined by code
- Stored as one tree at sessions/{code}
- Mutated through the turn engine by the repository
- Deleted when the last player leaves or the host ends it

Each client watches its session through a ClientSessionController.
"""

from .codec import decode_session, encode_session, decode_user, encode_user
from .connectivity import ConnectivityMonitor
from .repository import SessionRepository, UserRepository, generate_game_code, normalize_code
from .view import SessionView
from .controller import (
    ClientSessionController,
    RemovedFromSession,
    SessionEnded,
    SessionErrorEvent,
    SessionEvent,
    SessionUpdated,
    TimerTick,
)

__all__ = [
    "decode_session",
    "encode_session",
    "decode_user",
    "encode_user",
    "ConnectivityMonitor",
    "SessionRepository",
    "UserRepository",
    "generate_game_code",
    "normalize_code",
    "SessionView",
    "ClientSessionController",
    "RemovedFromSession",
    "SessionEnded",
    "SessionErrorEvent",
    "SessionEvent",
    "SessionUpdated",
    "TimerTick",
]
