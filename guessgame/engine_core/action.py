"""
Action System - Actions, payloads, and results.

Every session mutation is an Action carrying the acting player and a
timestamp. The reducer reads "now" from the action, never from the
clock, so transitions stay pure and replayable.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
import time
import uuid

from ..errors import ErrorCode


class ActionType(Enum):
    """Types of actions in the system."""
    # Host actions
    START_GAME = "start_game"
    PLAY_AGAIN = "play_again"
    RESET_TO_LOBBY = "reset_to_lobby"

    # Answerer actions
    SET_SECRET_WORD = "set_secret_word"
    ANSWER_QUESTION = "answer_question"

    # Guesser actions
    ASK_QUESTION = "ask_question"
    MAKE_GUESS = "make_guess"
    SKIP_TURN = "skip_turn"

    # Any player
    ADD_REACTION = "add_reaction"
    LEAVE = "leave"


@dataclass
class ActionPayload:
    """
    Payload for an action.

    A generic container; which fields matter depends on the action
    type and is checked by the reducer.
    """
    player_id: str
    text: str | None = None  # question, answer, guess, emoji or secret word
    category: str | None = None
    question_id: str | None = None


@dataclass
class Action:
    """
    A complete action to be applied to a session.

    action_id doubles as the id of the entity the action creates
    (question or reaction).
    """
    action_type: ActionType
    payload: ActionPayload
    timestamp: float = field(default_factory=time.time)
    action_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def player_id(self) -> str:
        return self.payload.player_id

    @classmethod
    def start_game(cls, player_id: str) -> Action:
        return cls(ActionType.START_GAME, ActionPayload(player_id=player_id))

    @classmethod
    def set_secret_word(cls, player_id: str, category: str, word: str) -> Action:
        return cls(
            ActionType.SET_SECRET_WORD,
            ActionPayload(player_id=player_id, category=category, text=word),
        )

    @classmethod
    def ask_question(cls, player_id: str, text: str) -> Action:
        return cls(ActionType.ASK_QUESTION, ActionPayload(player_id=player_id, text=text))

    @classmethod
    def answer_question(cls, player_id: str, question_id: str, answer: str) -> Action:
        return cls(
            ActionType.ANSWER_QUESTION,
            ActionPayload(player_id=player_id, question_id=question_id, text=answer),
        )

    @classmethod
    def make_guess(cls, player_id: str, guess: str) -> Action:
        return cls(ActionType.MAKE_GUESS, ActionPayload(player_id=player_id, text=guess))

    @classmethod
    def skip_turn(cls, player_id: str) -> Action:
        return cls(ActionType.SKIP_TURN, ActionPayload(player_id=player_id))

    @classmethod
    def add_reaction(cls, player_id: str, emoji: str) -> Action:
        return cls(ActionType.ADD_REACTION, ActionPayload(player_id=player_id, text=emoji))

    @classmethod
    def play_again(cls, player_id: str) -> Action:
        return cls(ActionType.PLAY_AGAIN, ActionPayload(player_id=player_id))

    @classmethod
    def reset_to_lobby(cls, player_id: str) -> Action:
        return cls(ActionType.RESET_TO_LOBBY, ActionPayload(player_id=player_id))

    @classmethod
    def leave(cls, player_id: str) -> Action:
        return cls(ActionType.LEAVE, ActionPayload(player_id=player_id))


@dataclass
class ActionResult:
    """
    Result of applying an action.

    On success new_state holds the next Session, or None when the
    action deleted the session (last player left).
    """
    success: bool
    new_state: Any | None = None  # Session
    error: str | None = None
    error_code: ErrorCode | None = None
    session_deleted: bool = False

    # Human-readable changes, for logs and UI
    state_changes: list[str] = field(default_factory=list)

    @classmethod
    def failure(cls, error: str, error_code: ErrorCode) -> ActionResult:
        """Create a failure result."""
        return cls(success=False, error=error, error_code=error_code)

    @classmethod
    def success_with_state(
        cls,
        state: Any,
        changes: list[str] | None = None,
    ) -> ActionResult:
        """Create a success result with new state."""
        return cls(success=True, new_state=state, state_changes=changes or [])

    @classmethod
    def deleted(cls, changes: list[str] | None = None) -> ActionResult:
        """Create a success result for an action that removed the session."""
        return cls(success=True, session_deleted=True, state_changes=changes or [])
