"""
Pydantic Schemas for API - Request/response models for OpenAPI.

These models define the contract between the game clients and the
session service. Every error body is an ErrorResponse whose
error_code is one of guessgame.errors.ErrorCode:

- SESSION_NOT_FOUND / USER_NOT_FOUND: 404
- UNAUTHORIZED: 403
- NOT_YOUR_TURN, GAME_ALREADY_STARTED, ALREADY_IN_SESSION, SESSION_FULL: 409
- INSUFFICIENT_PLAYERS, INVALID_INPUT: 400
- NETWORK_ERROR: 503
- INVALID_SESSION_DATA: 500
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field


# =============================================================================
# Enums
# =============================================================================

class PhaseName(str, Enum):
    """Round phases as they appear on the wire."""
    SETUP = "setup"
    QUESTIONING = "questioning"
    GAME_OVER = "gameOver"


class RoleName(str, Enum):
    ANSWERER = "answerer"
    GUESSER = "guesser"


class MessageType(str, Enum):
    """WebSocket message types sent by the server."""
    SESSION_UPDATE = "session_update"
    SESSION_ENDED = "session_ended"
    ERROR = "error"
    PONG = "pong"


# =============================================================================
# Request Models
# =============================================================================

class SaveUserRequest(BaseModel):
    """Create or replace a user profile."""
    display_name: str = Field(..., min_length=1, max_length=40)
    email: Optional[str] = None
    avatar: Optional[str] = Field(None, description="Single emoji glyph")


class AvatarRequest(BaseModel):
    avatar: str = Field(..., min_length=1)


class ActorRequest(BaseModel):
    """Body for actions that only need to know who is acting."""
    user_id: str = Field(..., min_length=1)


class SecretWordRequest(ActorRequest):
    category: str = Field(..., description="Category shown to guessers")
    word: str


class QuestionRequest(ActorRequest):
    question: str


class AnswerRequest(ActorRequest):
    answer: str = Field(..., description="Yes, No, Maybe or free text")


class GuessRequest(ActorRequest):
    guess: str


class ReactionRequest(ActorRequest):
    emoji: str


# =============================================================================
# Shared Models
# =============================================================================

class UserResponse(BaseModel):
    """A user profile."""
    user_id: str
    display_name: str
    email: Optional[str] = None
    avatar: str
    created_at: float


class PlayerInfo(BaseModel):
    """A player in a session, in join order."""
    player_id: str
    display_name: str
    avatar: str
    joined_at: float
    is_host: bool = False
    role: Optional[RoleName] = None


class QuestionInfo(BaseModel):
    question_id: str
    asker_id: str
    asker_name: str
    question: str
    answer: str = ""
    is_answered: bool = False
    timestamp: float


class ReactionInfo(BaseModel):
    reaction_id: str
    player_id: str
    player_name: str
    emoji: str
    timestamp: float


class GameStateInfo(BaseModel):
    """
    State of the current round.

    secret_word is blanked for guessers while the round is still running
    when the request names a viewer.
    """
    answerer_id: str
    current_turn_player_id: str
    turn_order: list[str] = Field(default_factory=list)
    phase: PhaseName
    category: str = ""
    secret_word: str = ""
    questions: list[QuestionInfo] = Field(default_factory=list)
    reactions: list[ReactionInfo] = Field(
        default_factory=list, description="Reactions still inside the display window"
    )
    winner_id: Optional[str] = None
    round_number: int = 1
    turn_start_time: Optional[float] = None
    turn_time_limit: int
    remaining_seconds: Optional[int] = Field(
        None, description="Seconds left on the current turn while questioning"
    )


# =============================================================================
# Response Models
# =============================================================================

class SessionResponse(BaseModel):
    """Full session as seen by one viewer."""
    session_id: str
    host_id: str
    players: list[PlayerInfo]
    game_started: bool
    game_state: Optional[GameStateInfo] = None
    created_at: float
    api_version: str = "v1"


class LeaveResponse(BaseModel):
    session_id: str
    success: bool
    session_deleted: bool = False


class EndSessionResponse(BaseModel):
    """Response after the host ends a session."""
    success: bool
    session_id: str


class CategoryInfo(BaseModel):
    name: str
    suggested_words: list[str]


class CategoriesResponse(BaseModel):
    categories: list[CategoryInfo]


class ErrorResponse(BaseModel):
    """Standard error body."""
    error: str
    error_code: str
    details: Optional[dict[str, Any]] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str
    env: str
    store: str
