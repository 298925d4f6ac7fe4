"""
API Service - Business logic layer between the HTTP API and the game core.

The service:
1. Resolves user profiles for incoming requests
2. Runs lobby operations and turn actions through the repositories
3. Formats sessions for a given viewer

This layer is framework-agnostic (can be used with FastAPI, Flask, etc.)
and raises GameError subclasses for the caller to map.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable
import logging
import random
import time

from .schemas import (
    CategoriesResponse,
    CategoryInfo,
    GameStateInfo,
    LeaveResponse,
    PhaseName,
    PlayerInfo,
    QuestionInfo,
    ReactionInfo,
    RoleName,
    SaveUserRequest,
    SessionResponse,
    UserResponse,
)
from ..config import Settings, load_settings
from ..errors import InvalidSessionDataError
from ..engine_core.categories import PREDEFINED_CATEGORIES
from ..engine_core.reducer import Reducer
from ..engine_core.state import DEFAULT_AVATAR, GamePhase, GameState, Session, User
from ..session import SessionRepository, UserRepository, decode_session, normalize_code
from ..store import DocumentStore, Subscription, create_store

log = logging.getLogger(__name__)


@dataclass
class APIService:
    """
    Game service used by the HTTP layer.

    Usage:
        service = APIService()

        await service.save_user("u1", SaveUserRequest(display_name="Ana"))
        session = await service.create_game("u1")
        await service.join_game(session.session_id, "u2")
    """
    settings: Settings = field(default_factory=load_settings)
    store: DocumentStore | None = None
    rng: random.Random = field(default_factory=random.Random)
    clock: Callable[[], float] = time.time

    users: UserRepository = field(init=False)
    sessions: SessionRepository = field(init=False)

    def __post_init__(self):
        if self.store is None:
            self.store = create_store(self.settings)
        self.users = UserRepository(self.store, clock=self.clock)
        self.sessions = SessionRepository(
            self.store,
            reducer=Reducer(rng=self.rng, turn_time_limit=self.settings.turn_time_limit),
            rng=self.rng,
            clock=self.clock,
            max_players=self.settings.max_players,
        )

    # =========================================================================
    # Users
    # =========================================================================

    async def save_user(self, user_id: str, request: SaveUserRequest) -> UserResponse:
        user = User(
            user_id=user_id,
            display_name=request.display_name.strip(),
            email=request.email or None,
            avatar=request.avatar or DEFAULT_AVATAR,
        )
        return self._user_to_response(await self.users.save_user(user))

    async def update_avatar(self, user_id: str, avatar: str) -> UserResponse:
        return self._user_to_response(await self.users.update_avatar(user_id, avatar))

    async def get_user(self, user_id: str) -> UserResponse:
        return self._user_to_response(await self.users.require_user(user_id))

    # =========================================================================
    # Lobby
    # =========================================================================

    async def create_game(self, user_id: str) -> SessionResponse:
        host = await self.users.require_user(user_id)
        session = await self.sessions.create_game(host)
        return self.session_to_response(session, viewer_id=user_id)

    async def join_game(self, code: str, user_id: str) -> SessionResponse:
        user = await self.users.require_user(user_id)
        session = await self.sessions.join_game(code, user)
        return self.session_to_response(session, viewer_id=user_id)

    async def get_session(self, code: str, viewer_id: str | None = None) -> SessionResponse:
        session = await self.sessions.get_session(code)
        return self.session_to_response(session, viewer_id=viewer_id)

    async def leave_game(self, code: str, user_id: str) -> LeaveResponse:
        remaining = await self.sessions.leave_game(code, user_id)
        return LeaveResponse(
            session_id=normalize_code(code),
            success=True,
            session_deleted=remaining is None,
        )

    async def end_session(self, code: str, user_id: str) -> None:
        await self.sessions.end_session(code, user_id)

    # =========================================================================
    # Turn actions
    # =========================================================================

    async def start_game(self, code: str, user_id: str) -> SessionResponse:
        return self._respond(await self.sessions.start_game(code, user_id), user_id)

    async def set_secret_word(self, code: str, user_id: str, category: str, word: str) -> SessionResponse:
        return self._respond(
            await self.sessions.set_secret_word(code, user_id, category, word), user_id
        )

    async def ask_question(self, code: str, user_id: str, question: str) -> SessionResponse:
        return self._respond(await self.sessions.ask_question(code, user_id, question), user_id)

    async def answer_question(
        self, code: str, user_id: str, question_id: str, answer: str
    ) -> SessionResponse:
        return self._respond(
            await self.sessions.answer_question(code, user_id, question_id, answer), user_id
        )

    async def make_guess(self, code: str, user_id: str, guess: str) -> SessionResponse:
        return self._respond(await self.sessions.make_guess(code, user_id, guess), user_id)

    async def skip_turn(self, code: str, user_id: str) -> SessionResponse:
        return self._respond(await self.sessions.skip_turn(code, user_id), user_id)

    async def add_reaction(self, code: str, user_id: str, emoji: str) -> SessionResponse:
        return self._respond(await self.sessions.add_reaction(code, user_id, emoji), user_id)

    async def play_again(self, code: str, user_id: str) -> SessionResponse:
        return self._respond(await self.sessions.play_again(code, user_id), user_id)

    async def reset_to_lobby(self, code: str, user_id: str) -> SessionResponse:
        return self._respond(await self.sessions.reset_to_lobby(code, user_id), user_id)

    # =========================================================================
    # Live updates
    # =========================================================================

    async def watch_session(
        self,
        code: str,
        on_message: Callable[[dict[str, Any]], Awaitable[None]],
        viewer_id: str | None = None,
    ) -> Subscription:
        """
        Subscribe to a session and forward each snapshot as a message dict.

        Messages: session_update (payload: SessionResponse), session_ended,
        error (payload: error and error_code).
        """
        code = normalize_code(code)

        async def forward(tree: Any) -> None:
            if tree is None:
                await on_message({"type": "session_ended", "payload": {"session_id": code}})
                return
            try:
                session = decode_session(tree)
            except InvalidSessionDataError as e:
                log.warning("Undecodable snapshot for %s: %s", code, e)
                await on_message({
                    "type": "error",
                    "payload": {"error": e.message, "error_code": e.code.value},
                })
                return
            response = self.session_to_response(session, viewer_id=viewer_id)
            await on_message({"type": "session_update", "payload": response.model_dump(mode="json")})

        return await self.sessions.watch_session(code, forward)

    # =========================================================================
    # Categories
    # =========================================================================

    def list_categories(self) -> CategoriesResponse:
        return CategoriesResponse(
            categories=[
                CategoryInfo(name=c.name, suggested_words=list(c.suggested_words))
                for c in PREDEFINED_CATEGORIES
            ]
        )

    # =========================================================================
    # Conversion helpers
    # =========================================================================

    def _respond(self, session: Session, viewer_id: str) -> SessionResponse:
        return self.session_to_response(session, viewer_id=viewer_id)

    def _user_to_response(self, user: User) -> UserResponse:
        return UserResponse(
            user_id=user.user_id,
            display_name=user.display_name,
            email=user.email,
            avatar=user.avatar,
            created_at=user.created_at,
        )

    def session_to_response(self, session: Session, viewer_id: str | None = None) -> SessionResponse:
        players = [
            PlayerInfo(
                player_id=p.player_id,
                display_name=p.display_name,
                avatar=p.avatar,
                joined_at=p.joined_at,
                is_host=session.is_host(p.player_id),
                role=RoleName(session.role_of(p.player_id).value)
                if session.role_of(p.player_id) else None,
            )
            for p in session.players_list
        ]
        game_state = None
        if session.game_state is not None:
            game_state = self._game_state_info(session.game_state, viewer_id)
        return SessionResponse(
            session_id=session.session_id,
            host_id=session.host_id,
            players=players,
            game_started=session.game_started,
            game_state=game_state,
            created_at=session.created_at,
        )

    def _game_state_info(self, gs: GameState, viewer_id: str | None) -> GameStateInfo:
        now = self.clock()
        # Anonymous viewers see the word only once the round is over.
        hide_word = gs.is_active and viewer_id != gs.answerer_id
        return GameStateInfo(
            answerer_id=gs.answerer_id,
            current_turn_player_id=gs.current_turn_player_id,
            turn_order=list(gs.turn_order),
            phase=PhaseName(gs.phase.value),
            category=gs.category,
            secret_word="" if hide_word else gs.secret_word,
            questions=[
                QuestionInfo(
                    question_id=q.question_id,
                    asker_id=q.asker_id,
                    asker_name=q.asker_name,
                    question=q.question,
                    answer=q.answer,
                    is_answered=q.is_answered,
                    timestamp=q.timestamp,
                )
                for q in gs.questions
            ],
            reactions=[
                ReactionInfo(
                    reaction_id=r.reaction_id,
                    player_id=r.player_id,
                    player_name=r.player_name,
                    emoji=r.emoji,
                    timestamp=r.timestamp,
                )
                for r in gs.visible_reactions(now, self.settings.reaction_window)
            ],
            winner_id=gs.winner_id,
            round_number=gs.round_number,
            turn_start_time=gs.turn_start_time,
            turn_time_limit=gs.turn_time_limit,
            remaining_seconds=(
                gs.remaining_seconds(now) if gs.phase == GamePhase.QUESTIONING else None
            ),
        )

    async def close(self) -> None:
        await self.store.close()
