"""
API Module - Client interface for the game service.

Exposes the session core via REST and WebSocket:
1. Save a profile
2. Create or join a game by code
3. Run round actions (word, questions, answers, guesses, reactions)
4. Watch the session live over a WebSocket

Errors are returned as ErrorResponse with a typed error_code.
"""

from .schemas import (
    # Requests
    ActorRequest,
    AnswerRequest,
    AvatarRequest,
    GuessRequest,
    QuestionRequest,
    ReactionRequest,
    SaveUserRequest,
    SecretWordRequest,
    # Responses
    CategoriesResponse,
    EndSessionResponse,
    ErrorResponse,
    HealthResponse,
    LeaveResponse,
    SessionResponse,
    UserResponse,
    # Shared
    GameStateInfo,
    PlayerInfo,
    QuestionInfo,
    ReactionInfo,
)
from .service import APIService
from .app import create_app

__all__ = [
    # Requests
    "ActorRequest",
    "AnswerRequest",
    "AvatarRequest",
    "GuessRequest",
    "QuestionRequest",
    "ReactionRequest",
    "SaveUserRequest",
    "SecretWordRequest",
    # Responses
    "CategoriesResponse",
    "EndSessionResponse",
    "ErrorResponse",
    "HealthResponse",
    "LeaveResponse",
    "SessionResponse",
    "UserResponse",
    # Shared
    "GameStateInfo",
    "PlayerInfo",
    "QuestionInfo",
    "ReactionInfo",
    # Service
    "APIService",
    "create_app",
]
