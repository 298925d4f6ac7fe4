"""
Session Repository - Domain operations against the document store.

The repository loads a session, runs the turn engine, and writes back
only the paths the action changed:

- join writes sessions/{code}/players/{id}
- leave patches players/{id}, playerRoles/{id}, hostId and gameState
  in one atomic update, or deletes the session when it empties
- turn actions replace the whole gameState subtree (no field merge,
  so two clients racing a turn advance still resolve last-writer-wins)

Store failures surface as NetworkError. Writes are never retried.
"""

from __future__ import annotations
from contextlib import asynccontextmanager
from typing import Any, Callable
import logging
import random
import time

from ..errors import (
    AlreadyInSessionError,
    GameAlreadyStartedError,
    NetworkError,
    SessionFullError,
    SessionNotFoundError,
    UnauthorizedError,
    UserNotFoundError,
    error_for_code,
)
from ..engine_core.action import Action
from ..engine_core.reducer import Reducer
from ..engine_core.state import (
    GAME_CODE_ALPHABET,
    GAME_CODE_LENGTH,
    MAX_PLAYERS,
    GameState,
    Session,
    User,
)
from ..store import DocumentStore, StoreError, Subscription, join_path
from ..store.base import SnapshotCallback
from .codec import (
    decode_session,
    decode_user,
    encode_game_state,
    encode_player,
    encode_roles,
    encode_session,
    encode_user,
)

log = logging.getLogger(__name__)

SESSIONS_ROOT = "sessions"
USERS_ROOT = "users"


def normalize_code(code: str) -> str:
    """Game codes are case-insensitive on input."""
    return code.strip().upper()


def session_path(code: str, *parts: str) -> str:
    return join_path(SESSIONS_ROOT, normalize_code(code), *parts)


def user_path(user_id: str, *parts: str) -> str:
    return join_path(USERS_ROOT, user_id, *parts)


def generate_game_code(rng: random.Random | None = None) -> str:
    rng = rng or random.Random()
    return "".join(rng.choice(GAME_CODE_ALPHABET) for _ in range(GAME_CODE_LENGTH))


@asynccontextmanager
async def store_errors(operation: str):
    """Translate store failures into NetworkError."""
    try:
        yield
    except StoreError as e:
        log.error("Store failure during %s: %s", operation, e)
        raise NetworkError(f"Failed to {operation}: {e}") from e


def diff_session(old: Session, new: Session) -> dict[str, Any]:
    """
    Compute the minimal patch (relative to sessions/{code}) from old to new.

    Removed players and roles become per-key deletes. A role map that
    gained or changed entries is rewritten whole, as is gameState.
    """
    patch: dict[str, Any] = {}

    if new.host_id != old.host_id:
        patch["hostId"] = new.host_id

    for pid in old.players:
        if pid not in new.players:
            patch[f"players/{pid}"] = None
    for pid, player in new.players.items():
        if old.players.get(pid) != player:
            patch[f"players/{pid}"] = encode_player(player)

    if new.game_started != old.game_started:
        patch["gameStarted"] = new.game_started

    removed_roles = [pid for pid in old.player_roles if pid not in new.player_roles]
    changed_roles = any(
        old.player_roles.get(pid) != role for pid, role in new.player_roles.items()
    )
    if changed_roles or (removed_roles and not new.player_roles):
        patch["playerRoles"] = encode_roles(new.player_roles) or None
    else:
        for pid in removed_roles:
            patch[f"playerRoles/{pid}"] = None

    if new.game_state != old.game_state:
        patch["gameState"] = (
            encode_game_state(new.game_state) if new.game_state is not None else None
        )

    return patch


class UserRepository:
    """User profiles stored at users/{id}."""

    def __init__(self, store: DocumentStore, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock

    async def get_user(self, user_id: str) -> User | None:
        async with store_errors("load profile"):
            tree = await self.store.get(user_path(user_id))
        return decode_user(tree) if tree is not None else None

    async def require_user(self, user_id: str) -> User:
        user = await self.get_user(user_id)
        if user is None:
            raise UserNotFoundError(f"No profile for user {user_id}")
        return user

    async def save_user(self, user: User) -> User:
        """Create or replace a profile. created_at is kept from an existing profile."""
        existing = await self.get_user(user.user_id)
        if existing is not None:
            user.created_at = existing.created_at
        elif not user.created_at:
            user.created_at = self.clock()
        async with store_errors("save profile"):
            await self.store.set(user_path(user.user_id), encode_user(user))
        return user

    async def update_avatar(self, user_id: str, avatar: str) -> User:
        user = await self.require_user(user_id)
        async with store_errors("save avatar"):
            await self.store.set(user_path(user_id, "avatar"), avatar)
        return user.with_avatar(avatar)


class SessionRepository:
    """
    Session lifecycle and turn actions over a DocumentStore.

    Usage:
        repo = SessionRepository(store)
        session = await repo.create_game(host_user)
        await repo.join_game(session.session_id, other_user)
        await repo.start_game(session.session_id, host_user.user_id)
    """

    def __init__(
        self,
        store: DocumentStore,
        reducer: Reducer | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
        max_players: int = MAX_PLAYERS,
        max_code_attempts: int = 10,
    ):
        self.store = store
        self.rng = rng or random.Random()
        self.reducer = reducer or Reducer(rng=self.rng)
        self.clock = clock
        self.max_players = max_players
        self.max_code_attempts = max_code_attempts

    # =========================================================================
    # Reads
    # =========================================================================

    async def find_session(self, code: str) -> Session | None:
        async with store_errors("load session"):
            tree = await self.store.get(session_path(code))
        if tree is None:
            return None
        return decode_session(tree)

    async def get_session(self, code: str) -> Session:
        session = await self.find_session(code)
        if session is None:
            raise SessionNotFoundError()
        return session

    async def watch_session(self, code: str, callback: SnapshotCallback) -> Subscription:
        """Subscribe to the raw session tree. None means the session is gone."""
        async with store_errors("subscribe"):
            return await self.store.subscribe(session_path(code), callback)

    # =========================================================================
    # Lobby
    # =========================================================================

    async def create_game(self, host: User) -> Session:
        """Create a session under a fresh code, skipping codes already in use."""
        for _ in range(self.max_code_attempts):
            code = generate_game_code(self.rng)
            async with store_errors("create game"):
                if await self.store.exists(session_path(code)):
                    log.warning("Game code %s already in use, drawing another", code)
                    continue
                now = self.clock()
                session = Session.create(code, host.as_player(joined_at=now), created_at=now)
                await self.store.set(session_path(code), encode_session(session))
            log.info("Created game %s for host %s", code, host.user_id)
            return session
        raise RuntimeError(f"No free game code after {self.max_code_attempts} attempts")

    async def join_game(self, code: str, user: User) -> Session:
        code = normalize_code(code)
        session = await self.get_session(code)
        if session.game_started:
            raise GameAlreadyStartedError()
        if session.has_player(user.user_id):
            raise AlreadyInSessionError()
        if session.player_count >= self.max_players:
            raise SessionFullError()

        player = user.as_player(joined_at=self.clock())
        async with store_errors("join game"):
            await self.store.set(
                session_path(code, "players", user.user_id), encode_player(player)
            )
        log.info("%s joined game %s", user.user_id, code)

        players = dict(session.players)
        players[player.player_id] = player
        return session._copy_with(players=players)

    async def end_session(self, code: str, player_id: str) -> None:
        """Explicitly close a session. Host only."""
        session = await self.get_session(code)
        if not session.is_host(player_id):
            raise UnauthorizedError("Only the host can end the game")
        async with store_errors("end game"):
            await self.store.delete(session_path(code))
        log.info("Game %s ended by host %s", session.session_id, player_id)

    # =========================================================================
    # Turn engine actions
    # =========================================================================

    async def perform(self, code: str, action: Action) -> Session | None:
        """
        Run an action through the engine and persist the result.

        Returns the new session, or None when the action deleted it.
        Raises the GameError matching the engine's error code.
        """
        session = await self.get_session(code)
        result = self.reducer.apply(session, action)
        if not result.success:
            log.warning(
                "Rejected %s by %s in %s: %s",
                action.action_type.value, action.player_id, session.session_id, result.error,
            )
            raise error_for_code(result.error_code, result.error)

        if result.session_deleted:
            async with store_errors("leave game"):
                await self.store.delete(session_path(code))
            log.info("Game %s closed: %s", session.session_id, "; ".join(result.state_changes))
            return None

        new_session = result.new_state
        patch = diff_session(session, new_session)
        if list(patch) == ["gameState"] and new_session.game_state is not None:
            await self.update_game_state(code, new_session.game_state)
        elif patch:
            async with store_errors(action.action_type.value.replace("_", " ")):
                await self.store.update(session_path(code), patch)
        log.info("Game %s: %s", session.session_id, "; ".join(result.state_changes) or action.action_type.value)
        return new_session

    async def update_game_state(self, code: str, game_state: GameState) -> None:
        """Replace the whole gameState subtree."""
        async with store_errors("update game"):
            await self.store.set(session_path(code, "gameState"), encode_game_state(game_state))

    def _stamp(self, action: Action) -> Action:
        action.timestamp = self.clock()
        return action

    async def start_game(self, code: str, player_id: str) -> Session:
        return await self.perform(code, self._stamp(Action.start_game(player_id)))

    async def set_secret_word(self, code: str, player_id: str, category: str, word: str) -> Session:
        return await self.perform(code, self._stamp(Action.set_secret_word(player_id, category, word)))

    async def ask_question(self, code: str, player_id: str, text: str) -> Session:
        return await self.perform(code, self._stamp(Action.ask_question(player_id, text)))

    async def answer_question(self, code: str, player_id: str, question_id: str, answer: str) -> Session:
        return await self.perform(
            code, self._stamp(Action.answer_question(player_id, question_id, answer))
        )

    async def make_guess(self, code: str, player_id: str, guess: str) -> Session:
        return await self.perform(code, self._stamp(Action.make_guess(player_id, guess)))

    async def skip_turn(self, code: str, player_id: str) -> Session:
        return await self.perform(code, self._stamp(Action.skip_turn(player_id)))

    async def add_reaction(self, code: str, player_id: str, emoji: str) -> Session:
        return await self.perform(code, self._stamp(Action.add_reaction(player_id, emoji)))

    async def play_again(self, code: str, player_id: str) -> Session:
        return await self.perform(code, self._stamp(Action.play_again(player_id)))

    async def reset_to_lobby(self, code: str, player_id: str) -> Session:
        return await self.perform(code, self._stamp(Action.reset_to_lobby(player_id)))

    async def leave_game(self, code: str, player_id: str) -> Session | None:
        return await self.perform(code, self._stamp(Action.leave(player_id)))
