"""
Game State - Session aggregate and per-round state.

Design principles:
- Immutable-friendly: engine transitions return new objects
- Serializable: see session.codec for the stored tree format
- Storage-agnostic: nothing here touches the document store
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
import math
import string


GAME_CODE_LENGTH = 6
GAME_CODE_ALPHABET = string.ascii_uppercase + string.digits
DEFAULT_TURN_TIME_LIMIT = 30  # seconds
REACTION_DISPLAY_WINDOW = 10  # seconds
MAX_PLAYERS = 8
MIN_PLAYERS = 2
DEFAULT_AVATAR = "😀"


class GamePhase(Enum):
    """Phases of one round."""
    SETUP = "setup"  # Answerer picks category and word
    QUESTIONING = "questioning"  # Guessers take turns
    GAME_OVER = "gameOver"


class PlayerRole(Enum):
    ANSWERER = "answerer"
    GUESSER = "guesser"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


def normalize_guess(text: str) -> str:
    """Lowercase and trim outer whitespace. Inner whitespace is kept."""
    return text.strip().lower()


@dataclass
class User:
    """A signed-in user's profile."""
    user_id: str
    display_name: str
    email: str | None = None
    avatar: str = DEFAULT_AVATAR
    created_at: float = 0.0

    def with_avatar(self, avatar: str) -> User:
        return replace(self, avatar=avatar)

    def as_player(self, joined_at: float) -> GamePlayer:
        """Project the profile into a per-session player entry."""
        return GamePlayer(
            player_id=self.user_id,
            display_name=self.display_name,
            avatar=self.avatar,
            joined_at=joined_at,
        )


@dataclass
class GamePlayer:
    """A player inside one session."""
    player_id: str
    display_name: str
    avatar: str
    joined_at: float


@dataclass
class Question:
    """A yes/no question asked by a guesser."""
    question_id: str
    asker_id: str
    asker_name: str  # Snapshot at ask time
    question: str
    answer: str = ""
    is_answered: bool = False
    timestamp: float = 0.0

    def answered(self, answer: str) -> Question:
        return replace(self, answer=answer, is_answered=True)


@dataclass
class EmojiReaction:
    """A transient reaction. Never mutated."""
    reaction_id: str
    player_id: str
    player_name: str  # Snapshot at reaction time
    emoji: str
    timestamp: float


@dataclass
class GameState:
    """
    State of one round.

    turn_order holds guesser ids only. During setup the answerer is
    the one expected to act; afterwards current_turn_player_id walks
    turn_order cyclically.
    """
    answerer_id: str
    current_turn_player_id: str
    turn_order: list[str] = field(default_factory=list)
    phase: GamePhase = GamePhase.SETUP
    category: str = ""
    secret_word: str = ""
    questions: list[Question] = field(default_factory=list)
    reactions: list[EmojiReaction] = field(default_factory=list)
    winner_id: str | None = None
    round_number: int = 1
    turn_start_time: float | None = None
    turn_time_limit: int = DEFAULT_TURN_TIME_LIMIT

    @property
    def is_answerer_turn(self) -> bool:
        return self.phase == GamePhase.SETUP

    @property
    def is_over(self) -> bool:
        return self.phase == GamePhase.GAME_OVER

    @property
    def is_active(self) -> bool:
        """Setup or questioning."""
        return self.phase != GamePhase.GAME_OVER

    @property
    def acting_player_id(self) -> str:
        """Who the round is waiting on: answerer in setup, else the current guesser."""
        if self.is_answerer_turn:
            return self.answerer_id
        return self.current_turn_player_id

    @property
    def latest_question(self) -> Question | None:
        return self.questions[-1] if self.questions else None

    @property
    def unanswered_questions(self) -> list[Question]:
        return [q for q in self.questions if not q.is_answered]

    def get_question(self, question_id: str) -> Question | None:
        for q in self.questions:
            if q.question_id == question_id:
                return q
        return None

    def is_guesser(self, player_id: str) -> bool:
        return player_id in self.turn_order

    def is_correct_guess(self, guess: str) -> bool:
        return normalize_guess(guess) == normalize_guess(self.secret_word)

    def next_turn_player_id(self) -> str:
        """
        The guesser after the current one, wrapping to the start.

        A current id missing from turn_order restarts at turn_order[0].
        An empty turn_order keeps the current id.
        """
        if not self.turn_order:
            return self.current_turn_player_id
        try:
            idx = self.turn_order.index(self.current_turn_player_id)
        except ValueError:
            return self.turn_order[0]
        return self.turn_order[(idx + 1) % len(self.turn_order)]

    def remaining_seconds(self, now: float) -> int:
        """Seconds left on the current turn, never negative."""
        if self.turn_start_time is None:
            return self.turn_time_limit
        elapsed = now - self.turn_start_time
        return max(0, math.ceil(self.turn_time_limit - elapsed))

    def is_turn_expired(self, now: float) -> bool:
        return (
            self.phase == GamePhase.QUESTIONING
            and self.turn_start_time is not None
            and self.remaining_seconds(now) == 0
        )

    def visible_reactions(
        self, now: float, window: float = REACTION_DISPLAY_WINDOW
    ) -> list[EmojiReaction]:
        """Reactions young enough to display. Storage keeps all of them."""
        return [r for r in self.reactions if now - r.timestamp < window]

    def _copy_with(self, **kwargs) -> GameState:
        """Create a copy with some fields replaced."""
        kwargs.setdefault("turn_order", list(self.turn_order))
        kwargs.setdefault("questions", list(self.questions))
        kwargs.setdefault("reactions", list(self.reactions))
        return replace(self, **kwargs)


@dataclass
class Session:
    """
    The shared session document (aggregate root).

    players is keyed by player id; use players_list for join order.
    """
    session_id: str
    host_id: str
    players: dict[str, GamePlayer] = field(default_factory=dict)
    game_started: bool = False
    game_state: GameState | None = None
    player_roles: dict[str, PlayerRole] = field(default_factory=dict)
    created_at: float = 0.0

    @classmethod
    def create(cls, session_id: str, host: GamePlayer, created_at: float) -> Session:
        return cls(
            session_id=session_id,
            host_id=host.player_id,
            players={host.player_id: host},
            created_at=created_at,
        )

    @property
    def players_list(self) -> list[GamePlayer]:
        return sorted(self.players.values(), key=lambda p: p.joined_at)

    @property
    def player_count(self) -> int:
        return len(self.players)

    @property
    def is_empty(self) -> bool:
        return not self.players

    def has_player(self, player_id: str) -> bool:
        return player_id in self.players

    def get_player(self, player_id: str | None) -> GamePlayer | None:
        if player_id is None:
            return None
        return self.players.get(player_id)

    def is_host(self, player_id: str) -> bool:
        return self.host_id == player_id

    def role_of(self, player_id: str) -> PlayerRole | None:
        return self.player_roles.get(player_id)

    def _copy_with(self, **kwargs) -> Session:
        """Create a copy with some fields replaced."""
        kwargs.setdefault("players", dict(self.players))
        kwargs.setdefault("player_roles", dict(self.player_roles))
        return replace(self, **kwargs)
