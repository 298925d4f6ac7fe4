"""
FastAPI Application - REST and WebSocket API for game clients.

Endpoints:
    PUT    /api/v1/users/{id}                          Save profile
    PATCH  /api/v1/users/{id}/avatar                   Change avatar
    GET    /api/v1/users/{id}                          Get profile
    POST   /api/v1/games                               Create game
    GET    /api/v1/games/{code}                        Get session
    DELETE /api/v1/games/{code}?user_id=               End game (host)
    POST   /api/v1/games/{code}/join                   Join by code
    POST   /api/v1/games/{code}/start                  Start round 1
    POST   /api/v1/games/{code}/secret-word            Answerer picks the word
    POST   /api/v1/games/{code}/questions              Ask a question
    POST   /api/v1/games/{code}/questions/{qid}/answer Answer a question
    POST   /api/v1/games/{code}/guess                  Guess the word
    POST   /api/v1/games/{code}/skip                   Skip the turn
    POST   /api/v1/games/{code}/reactions              Send an emoji
    POST   /api/v1/games/{code}/leave                  Leave the game
    POST   /api/v1/games/{code}/play-again             Next round (host)
    POST   /api/v1/games/{code}/reset                  Back to lobby (host)
    WS     /api/v1/games/{code}/ws                     Live session updates
    GET    /api/v1/categories                          Word categories

All responses are JSON with explicit Pydantic schemas.
"""

from contextlib import asynccontextmanager
from typing import Annotated, Optional
import json
import logging

from fastapi import FastAPI, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import Settings, configure_logging, load_settings
from ..errors import ErrorCode, GameError
from ..session import normalize_code
from .schemas import (
    ActorRequest,
    AnswerRequest,
    AvatarRequest,
    CategoriesResponse,
    EndSessionResponse,
    ErrorResponse,
    GuessRequest,
    HealthResponse,
    LeaveResponse,
    MessageType,
    QuestionRequest,
    ReactionRequest,
    SaveUserRequest,
    SecretWordRequest,
    SessionResponse,
    UserResponse,
)
from .service import APIService

log = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

STATUS_FOR_CODE = {
    ErrorCode.SESSION_NOT_FOUND: 404,
    ErrorCode.USER_NOT_FOUND: 404,
    ErrorCode.UNAUTHORIZED: 403,
    ErrorCode.NOT_YOUR_TURN: 409,
    ErrorCode.GAME_ALREADY_STARTED: 409,
    ErrorCode.ALREADY_IN_SESSION: 409,
    ErrorCode.SESSION_FULL: 409,
    ErrorCode.INSUFFICIENT_PLAYERS: 400,
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.NETWORK_ERROR: 503,
    ErrorCode.INVALID_SESSION_DATA: 500,
}

ERROR_RESPONSES = {
    status: {"model": ErrorResponse} for status in sorted(set(STATUS_FOR_CODE.values()))
}


def create_app(service: Optional[APIService] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        service: Optional APIService instance (creates new if not provided)
        settings: Optional Settings (read from the environment if not provided)

    Returns:
        FastAPI application instance
    """
    settings = settings or (service.settings if service else load_settings())
    configure_logging(settings)

    api_service = service or APIService(settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await api_service.close()

    app = FastAPI(
        title="Guess Game API",
        description="""
Realtime party game: one player picks a secret word, the others take
timed turns asking yes/no questions and guessing.

## Error Codes

| Code | Status |
|------|--------|
| `SESSION_NOT_FOUND`, `USER_NOT_FOUND` | 404 |
| `UNAUTHORIZED` | 403 |
| `NOT_YOUR_TURN`, `GAME_ALREADY_STARTED`, `ALREADY_IN_SESSION`, `SESSION_FULL` | 409 |
| `INSUFFICIENT_PLAYERS`, `INVALID_INPUT` | 400 |
| `NETWORK_ERROR` | 503 |
| `INVALID_SESSION_DATA` | 500 |
        """,
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.service = api_service

    # =========================================================================
    # Error helpers
    # =========================================================================

    def make_error_response(
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Optional[dict] = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=message,
                error_code=error_code.value,
                details=details,
            ).model_dump(),
        )

    @app.exception_handler(GameError)
    async def handle_game_error(request, exc: GameError) -> JSONResponse:
        status_code = STATUS_FOR_CODE.get(exc.code, 400)
        if status_code >= 500:
            log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return make_error_response(exc.code, exc.message, status_code=status_code)

    # =========================================================================
    # User Endpoints
    # =========================================================================

    @app.put(
        f"{API_PREFIX}/users/{{user_id}}",
        response_model=UserResponse,
        responses=ERROR_RESPONSES,
        tags=["Users"],
        summary="Create or replace a user profile",
    )
    async def save_user(user_id: str, request: SaveUserRequest) -> UserResponse:
        return await api_service.save_user(user_id, request)

    @app.patch(
        f"{API_PREFIX}/users/{{user_id}}/avatar",
        response_model=UserResponse,
        responses=ERROR_RESPONSES,
        tags=["Users"],
        summary="Change a user's avatar",
    )
    async def update_avatar(user_id: str, request: AvatarRequest) -> UserResponse:
        return await api_service.update_avatar(user_id, request.avatar)

    @app.get(
        f"{API_PREFIX}/users/{{user_id}}",
        response_model=UserResponse,
        responses=ERROR_RESPONSES,
        tags=["Users"],
        summary="Get a user profile",
    )
    async def get_user(user_id: str) -> UserResponse:
        return await api_service.get_user(user_id)

    # =========================================================================
    # Lobby Endpoints
    # =========================================================================

    @app.post(
        f"{API_PREFIX}/games",
        response_model=SessionResponse,
        status_code=201,
        responses=ERROR_RESPONSES,
        tags=["Lobby"],
        summary="Create a game session hosted by the caller",
    )
    async def create_game(request: ActorRequest) -> SessionResponse:
        """Create a session under a fresh 6-character code. The caller is host."""
        return await api_service.create_game(request.user_id)

    @app.get(
        f"{API_PREFIX}/games/{{code}}",
        response_model=SessionResponse,
        responses=ERROR_RESPONSES,
        tags=["Lobby"],
        summary="Get a game session",
    )
    async def get_game(
        code: str,
        user_id: Annotated[Optional[str], Query(description="Viewer; only the answerer sees the word mid-round")] = None,
    ) -> SessionResponse:
        return await api_service.get_session(code, viewer_id=user_id)

    @app.delete(
        f"{API_PREFIX}/games/{{code}}",
        response_model=EndSessionResponse,
        responses=ERROR_RESPONSES,
        tags=["Lobby"],
        summary="End a game session (host only)",
    )
    async def end_game(
        code: str,
        user_id: Annotated[str, Query(description="Must be the host")],
    ) -> EndSessionResponse:
        await api_service.end_session(code, user_id)
        return EndSessionResponse(success=True, session_id=normalize_code(code))

    @app.post(
        f"{API_PREFIX}/games/{{code}}/join",
        response_model=SessionResponse,
        responses=ERROR_RESPONSES,
        tags=["Lobby"],
        summary="Join a game by code",
    )
    async def join_game(code: str, request: ActorRequest) -> SessionResponse:
        return await api_service.join_game(code, request.user_id)

    @app.post(
        f"{API_PREFIX}/games/{{code}}/leave",
        response_model=LeaveResponse,
        responses=ERROR_RESPONSES,
        tags=["Lobby"],
        summary="Leave a game",
    )
    async def leave_game(code: str, request: ActorRequest) -> LeaveResponse:
        """
        Leave a game. The host role moves to another player; the round
        ends if the answerer or the last guesser leaves; the session is
        deleted when nobody is left.
        """
        return await api_service.leave_game(code, request.user_id)

    # =========================================================================
    # Round Endpoints
    # =========================================================================

    @app.post(
        f"{API_PREFIX}/games/{{code}}/start",
        response_model=SessionResponse,
        responses=ERROR_RESPONSES,
        tags=["Round"],
        summary="Start the game (host only)",
    )
    async def start_game(code: str, request: ActorRequest) -> SessionResponse:
        return await api_service.start_game(code, request.user_id)

    @app.post(
        f"{API_PREFIX}/games/{{code}}/secret-word",
        response_model=SessionResponse,
        responses=ERROR_RESPONSES,
        tags=["Round"],
        summary="Set the category and secret word (answerer only)",
    )
    async def set_secret_word(code: str, request: SecretWordRequest) -> SessionResponse:
        return await api_service.set_secret_word(
            code, request.user_id, request.category, request.word
        )

    @app.post(
        f"{API_PREFIX}/games/{{code}}/questions",
        response_model=SessionResponse,
        responses=ERROR_RESPONSES,
        tags=["Round"],
        summary="Ask a yes/no question (current guesser)",
    )
    async def ask_question(code: str, request: QuestionRequest) -> SessionResponse:
        return await api_service.ask_question(code, request.user_id, request.question)

    @app.post(
        f"{API_PREFIX}/games/{{code}}/questions/{{question_id}}/answer",
        response_model=SessionResponse,
        responses=ERROR_RESPONSES,
        tags=["Round"],
        summary="Answer a question (answerer only)",
    )
    async def answer_question(code: str, question_id: str, request: AnswerRequest) -> SessionResponse:
        """Answering passes the turn to the next guesser."""
        return await api_service.answer_question(
            code, request.user_id, question_id, request.answer
        )

    @app.post(
        f"{API_PREFIX}/games/{{code}}/guess",
        response_model=SessionResponse,
        responses=ERROR_RESPONSES,
        tags=["Round"],
        summary="Guess the secret word (current guesser)",
    )
    async def make_guess(code: str, request: GuessRequest) -> SessionResponse:
        return await api_service.make_guess(code, request.user_id, request.guess)

    @app.post(
        f"{API_PREFIX}/games/{{code}}/skip",
        response_model=SessionResponse,
        responses=ERROR_RESPONSES,
        tags=["Round"],
        summary="Skip the turn (current guesser, also used on timeout)",
    )
    async def skip_turn(code: str, request: ActorRequest) -> SessionResponse:
        return await api_service.skip_turn(code, request.user_id)

    @app.post(
        f"{API_PREFIX}/games/{{code}}/reactions",
        response_model=SessionResponse,
        responses=ERROR_RESPONSES,
        tags=["Round"],
        summary="Send an emoji reaction",
    )
    async def add_reaction(code: str, request: ReactionRequest) -> SessionResponse:
        return await api_service.add_reaction(code, request.user_id, request.emoji)

    @app.post(
        f"{API_PREFIX}/games/{{code}}/play-again",
        response_model=SessionResponse,
        responses=ERROR_RESPONSES,
        tags=["Round"],
        summary="Deal a new round (host only)",
    )
    async def play_again(code: str, request: ActorRequest) -> SessionResponse:
        return await api_service.play_again(code, request.user_id)

    @app.post(
        f"{API_PREFIX}/games/{{code}}/reset",
        response_model=SessionResponse,
        responses=ERROR_RESPONSES,
        tags=["Round"],
        summary="Return to the lobby (host only)",
    )
    async def reset_to_lobby(code: str, request: ActorRequest) -> SessionResponse:
        return await api_service.reset_to_lobby(code, request.user_id)

    # =========================================================================
    # WebSocket Endpoint
    # =========================================================================

    @app.websocket(f"{API_PREFIX}/games/{{code}}/ws")
    async def websocket_endpoint(websocket: WebSocket, code: str, user_id: Optional[str] = None):
        """
        WebSocket for live session updates.

        Messages from server:
        - session_update: Session changed (payload: SessionResponse)
        - session_ended: Session was deleted
        - error: Snapshot could not be read, or a bad client message
        - pong: Reply to ping

        Messages from client:
        - ping: Keep-alive
        """
        await websocket.accept()

        async def send(message: dict) -> None:
            await websocket.send_json(message)

        try:
            subscription = await api_service.watch_session(code, send, viewer_id=user_id)
        except GameError as e:
            await websocket.send_json({
                "type": MessageType.ERROR.value,
                "payload": {"error": e.message, "error_code": e.code.value},
            })
            await websocket.close()
            return

        try:
            while True:
                data = await websocket.receive_text()
                try:
                    message = json.loads(data)
                except json.JSONDecodeError:
                    await websocket.send_json({
                        "type": MessageType.ERROR.value,
                        "payload": {"error": "Invalid JSON", "error_code": ErrorCode.INVALID_INPUT.value},
                    })
                    continue
                if isinstance(message, dict) and message.get("type") == "ping":
                    await websocket.send_json({"type": MessageType.PONG.value})
        except WebSocketDisconnect:
            log.debug("WebSocket for %s closed", code)
        finally:
            await subscription.cancel()

    # =========================================================================
    # Reference Data and Health
    # =========================================================================

    @app.get(
        f"{API_PREFIX}/categories",
        response_model=CategoriesResponse,
        tags=["Reference"],
        summary="Predefined categories with suggested words",
    )
    async def list_categories() -> CategoriesResponse:
        return api_service.list_categories()

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        """Health check endpoint for load balancers."""
        return HealthResponse(
            status="healthy",
            service="guessgame",
            version=__version__,
            env=api_service.settings.env,
            store=api_service.settings.store_backend,
        )

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "Guess Game API",
            "version": __version__,
            "docs": "/api/docs",
            "health": "/health",
        }

    return app


# For running directly: uvicorn guessgame.api.app:app
app = create_app()
