"""
Engine Core - Session model and the turn/phase state machine.

The engine:
1. Holds the Session / GameState model
2. Validates actions against phase, turn and role
3. Applies actions via the reducer, returning new state
4. Never performs I/O
"""

from .state import (
    Session,
    GameState,
    GamePlayer,
    GamePhase,
    PlayerRole,
    Question,
    EmojiReaction,
    User,
)
from .action import Action, ActionType, ActionPayload, ActionResult
from .reducer import Reducer, apply_action
from .categories import GameCategory, PREDEFINED_CATEGORIES, get_category

__all__ = [
    "Session",
    "GameState",
    "GamePlayer",
    "GamePhase",
    "PlayerRole",
    "Question",
    "EmojiReaction",
    "User",
    "Action",
    "ActionType",
    "ActionPayload",
    "ActionResult",
    "Reducer",
    "apply_action",
    "GameCategory",
    "PREDEFINED_CATEGORIES",
    "get_category",
]
