"""
Errors - Typed error codes and exceptions for the game service.

The engine never raises for rule violations: it returns an
ActionResult carrying one of these codes. The repository and the
client controller turn failed results into GameError exceptions so
callers above the engine see a single hierarchy.
"""

from __future__ import annotations
from enum import Enum


class ErrorCode(str, Enum):
    """Machine-readable error codes."""
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    SESSION_FULL = "SESSION_FULL"
    ALREADY_IN_SESSION = "ALREADY_IN_SESSION"
    GAME_ALREADY_STARTED = "GAME_ALREADY_STARTED"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_YOUR_TURN = "NOT_YOUR_TURN"
    INSUFFICIENT_PLAYERS = "INSUFFICIENT_PLAYERS"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_SESSION_DATA = "INVALID_SESSION_DATA"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    INVALID_INPUT = "INVALID_INPUT"


class GameError(Exception):
    """Base class for all domain errors."""
    code: ErrorCode = ErrorCode.INVALID_INPUT
    default_message = "Invalid request."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class SessionNotFoundError(GameError):
    code = ErrorCode.SESSION_NOT_FOUND
    default_message = "Game session not found. Please check the code and try again."


class SessionFullError(GameError):
    code = ErrorCode.SESSION_FULL
    default_message = "This game session is full."


class AlreadyInSessionError(GameError):
    code = ErrorCode.ALREADY_IN_SESSION
    default_message = "You're already in this game session."


class GameAlreadyStartedError(GameError):
    code = ErrorCode.GAME_ALREADY_STARTED
    default_message = "This game has already started."


class UnauthorizedError(GameError):
    code = ErrorCode.UNAUTHORIZED
    default_message = "You are not allowed to do that."


class NotYourTurnError(GameError):
    code = ErrorCode.NOT_YOUR_TURN
    default_message = "It's not your turn."


class InsufficientPlayersError(GameError):
    code = ErrorCode.INSUFFICIENT_PLAYERS
    default_message = "At least two players are needed."


class NetworkError(GameError):
    """Store-layer failure. The underlying exception is chained as __cause__."""
    code = ErrorCode.NETWORK_ERROR
    default_message = "Network error."


class InvalidSessionDataError(GameError):
    code = ErrorCode.INVALID_SESSION_DATA
    default_message = "Invalid session data."


class UserNotFoundError(GameError):
    code = ErrorCode.USER_NOT_FOUND
    default_message = "User profile not found."


class InvalidInputError(GameError):
    code = ErrorCode.INVALID_INPUT


_ERRORS_BY_CODE: dict[ErrorCode, type[GameError]] = {
    cls.code: cls
    for cls in (
        SessionNotFoundError,
        SessionFullError,
        AlreadyInSessionError,
        GameAlreadyStartedError,
        UnauthorizedError,
        NotYourTurnError,
        InsufficientPlayersError,
        NetworkError,
        InvalidSessionDataError,
        UserNotFoundError,
        InvalidInputError,
    )
}


def error_for_code(code: ErrorCode | str | None, message: str | None = None) -> GameError:
    """Build the exception matching an error code."""
    try:
        error_cls = _ERRORS_BY_CODE[ErrorCode(code)]
    except (KeyError, ValueError):
        error_cls = InvalidInputError
    return error_cls(message)
