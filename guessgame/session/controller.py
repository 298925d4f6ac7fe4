"""
Client Session Controller - One device's live view of a session.

The controller owns the single subscription for the session its user
belongs to, replaces its local copy wholesale on every snapshot, and
runs the turn countdown. Remote state is authoritative; the only write
the controller makes on its own is the timeout skip for its own user.

Usage:
    async with ClientSessionController(repo, user, on_event=handle) as ctl:
        await ctl.join_game("ABC123")
        await ctl.ask_question("Is it alive?")
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Awaitable, Callable
import asyncio
import logging
import time

from ..errors import GameError, InvalidSessionDataError, NetworkError, SessionNotFoundError
from ..engine_core.state import REACTION_DISPLAY_WINDOW, GamePhase, Session, User
from .codec import decode_session
from .connectivity import ConnectivityMonitor
from .repository import SessionRepository, normalize_code
from .view import SessionView

log = logging.getLogger(__name__)


# =============================================================================
# Events
# =============================================================================

@dataclass
class SessionUpdated:
    session: Session


@dataclass
class SessionEnded:
    code: str


@dataclass
class RemovedFromSession:
    code: str


@dataclass
class TimerTick:
    remaining_seconds: int


@dataclass
class SessionErrorEvent:
    error: GameError


SessionEvent = SessionUpdated | SessionEnded | RemovedFromSession | TimerTick | SessionErrorEvent
EventHandler = Callable[[SessionEvent], Awaitable[None]]


class ClientSessionController:
    """Per-client session state, turn timer and intents."""

    def __init__(
        self,
        repository: SessionRepository,
        user: User,
        connectivity: ConnectivityMonitor | None = None,
        on_event: EventHandler | None = None,
        clock: Callable[[], float] = time.time,
        tick_interval: float = 1.0,
        reaction_window: float = REACTION_DISPLAY_WINDOW,
    ):
        self.repository = repository
        self.user = user
        self.connectivity = connectivity or ConnectivityMonitor()
        self.on_event = on_event
        self.clock = clock
        self.tick_interval = tick_interval
        self.reaction_window = reaction_window

        self.code: str | None = None
        self.session: Session | None = None
        self._subscription = None
        self._timer_task: asyncio.Task | None = None
        self._timer_key: tuple | None = None
        self._skipped_key: tuple | None = None
        self._leaving = False
        self._disposed = False

    async def __aenter__(self) -> ClientSessionController:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.dispose()

    # =========================================================================
    # Derived view
    # =========================================================================

    @property
    def user_id(self) -> str:
        return self.user.user_id

    @property
    def view(self) -> SessionView | None:
        if self.session is None:
            return None
        return SessionView(self.session, self.user_id)

    @property
    def is_attached(self) -> bool:
        return self._subscription is not None

    @property
    def is_host(self) -> bool:
        return bool(self.view and self.view.is_host)

    @property
    def is_my_turn(self) -> bool:
        return bool(self.view and self.view.is_my_turn)

    @property
    def remaining_seconds(self) -> int | None:
        return self.view.remaining_seconds(self.clock()) if self.view else None

    @property
    def visible_reactions(self):
        return self.view.visible_reactions(self.clock(), self.reaction_window) if self.view else []

    # =========================================================================
    # Membership
    # =========================================================================

    async def create_game(self) -> Session:
        self._require_online()
        session = await self.repository.create_game(self.user)
        await self.attach(session.session_id)
        return session

    async def join_game(self, code: str) -> Session:
        self._require_online()
        session = await self.repository.join_game(code, self.user)
        await self.attach(session.session_id)
        return session

    async def attach(self, code: str) -> None:
        """Open the live subscription for a session this user is in."""
        if self._disposed:
            raise RuntimeError("Controller has been disposed")
        await self._teardown()
        self.code = normalize_code(code)
        subscription = await self.repository.watch_session(self.code, self._on_snapshot)
        # The first snapshot arrives inside watch_session and may already
        # have torn the membership down (session gone, user not in it).
        if self.code is None:
            await subscription.cancel()
            return
        self._subscription = subscription
        log.debug("%s attached to %s", self.user_id, self.code)

    async def leave(self) -> None:
        code = self._require_session()
        self._require_online()
        self._leaving = True
        try:
            await self.repository.leave_game(code, self.user_id)
        finally:
            self._leaving = False
        await self._teardown()

    async def dispose(self) -> None:
        """Cancel the subscription and the timer. Safe to call twice."""
        if self._disposed:
            return
        await self._teardown()
        self._disposed = True

    # =========================================================================
    # Intents
    # =========================================================================

    async def start_game(self) -> None:
        await self.repository.start_game(self._check_intent(), self.user_id)

    async def set_secret_word(self, category: str, word: str) -> None:
        await self.repository.set_secret_word(self._check_intent(), self.user_id, category, word)

    async def ask_question(self, text: str) -> None:
        await self.repository.ask_question(self._check_intent(), self.user_id, text)

    async def answer_question(self, question_id: str, answer: str) -> None:
        await self.repository.answer_question(self._check_intent(), self.user_id, question_id, answer)

    async def make_guess(self, guess: str) -> None:
        await self.repository.make_guess(self._check_intent(), self.user_id, guess)

    async def skip_turn(self) -> None:
        await self.repository.skip_turn(self._check_intent(), self.user_id)

    async def add_reaction(self, emoji: str) -> None:
        await self.repository.add_reaction(self._check_intent(), self.user_id, emoji)

    async def play_again(self) -> None:
        await self.repository.play_again(self._check_intent(), self.user_id)

    async def reset_to_lobby(self) -> None:
        await self.repository.reset_to_lobby(self._check_intent(), self.user_id)

    def _check_intent(self) -> str:
        code = self._require_session()
        self._require_online()
        return code

    def _require_session(self) -> str:
        if self.code is None:
            raise SessionNotFoundError("Not in a game session")
        return self.code

    def _require_online(self) -> None:
        if not self.connectivity.is_online:
            raise NetworkError("You're offline. Check your connection and try again.")

    # =========================================================================
    # Snapshots
    # =========================================================================

    async def _on_snapshot(self, tree) -> None:
        code = self.code
        if code is None:
            return

        if tree is None:
            await self._teardown()
            if not self._leaving:
                log.info("Session %s ended", code)
                await self._emit(SessionEnded(code))
            return

        try:
            session = decode_session(tree)
        except InvalidSessionDataError as e:
            log.warning("Undecodable snapshot for %s: %s", code, e)
            await self._emit(SessionErrorEvent(e))
            return

        if not session.has_player(self.user_id):
            await self._teardown()
            if not self._leaving:
                log.info("%s was removed from %s", self.user_id, code)
                await self._emit(RemovedFromSession(code))
            return

        self.session = session
        self._sync_timer()
        await self._emit(SessionUpdated(session))

    async def _emit(self, event: SessionEvent) -> None:
        if self.on_event is not None:
            await self.on_event(event)

    async def _teardown(self) -> None:
        subscription, self._subscription = self._subscription, None
        timer = self._stop_timer()
        self.session = None
        self.code = None
        if subscription is not None:
            await subscription.cancel()
        if timer is not None and timer is not asyncio.current_task():
            await asyncio.gather(timer, return_exceptions=True)

    # =========================================================================
    # Turn timer
    # =========================================================================

    def _sync_timer(self) -> None:
        gs = self.session.game_state if self.session else None
        if gs is None or gs.phase != GamePhase.QUESTIONING:
            self._stop_timer()
            return
        key = (gs.round_number, gs.current_turn_player_id, gs.turn_start_time)
        if key == self._timer_key:
            return
        self._stop_timer()
        self._timer_key = key
        self._timer_task = asyncio.create_task(self._run_timer(key))
        self._timer_task.add_done_callback(self._timer_done)

    def _stop_timer(self) -> asyncio.Task | None:
        task, self._timer_task = self._timer_task, None
        self._timer_key = None
        # The running timer notices the key change and exits on its own.
        if task is not None and task is not asyncio.current_task():
            task.cancel()
        return task

    def _timer_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            log.error("Turn timer for %s stopped", self.user_id, exc_info=error)

    async def _run_timer(self, key: tuple) -> None:
        while self._timer_key == key:
            await self._tick(key)
            if self._timer_key != key:
                return
            await asyncio.sleep(self.tick_interval)

    async def _tick(self, key: tuple) -> None:
        view = self.view
        remaining = view.remaining_seconds(self.clock()) if view else None
        if remaining is None:
            return
        await self._emit(TimerTick(remaining))
        if remaining > 0 or not view.is_my_turn or self._skipped_key == key:
            return

        # One timeout skip per turn, even if the write is slow to echo back.
        self._skipped_key = key
        log.info("Turn timed out for %s in %s", self.user_id, self.code)
        try:
            await self.skip_turn()
        except GameError as e:
            log.warning("Timeout skip failed: %s", e)
            await self._emit(SessionErrorEvent(e))
