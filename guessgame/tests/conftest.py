"""
Pytest fixtures for guessgame tests.
"""

import random

import pytest

from ..engine_core.reducer import Reducer
from ..engine_core.state import GamePhase, GamePlayer, GameState, PlayerRole, Session, User
from ..session.repository import SessionRepository, UserRepository
from ..store import InMemoryDocumentStore


class FakeClock:
    """Manually advanced clock, in seconds since the epoch."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def reducer(rng) -> Reducer:
    return Reducer(rng=rng)


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def repo(store, rng, clock) -> SessionRepository:
    return SessionRepository(store, rng=rng, clock=clock)


@pytest.fixture
def users_repo(store, clock) -> UserRepository:
    return UserRepository(store, clock=clock)


@pytest.fixture
def alice() -> User:
    return User(user_id="alice", display_name="Alice", email="alice@example.com", avatar="🦊", created_at=1.0)


@pytest.fixture
def bob() -> User:
    return User(user_id="bob", display_name="Bob", avatar="🐻", created_at=2.0)


@pytest.fixture
def carol() -> User:
    return User(user_id="carol", display_name="Carol", avatar="🐼", created_at=3.0)


def make_lobby(*users: User, code: str = "ABC123", start: float = 100.0) -> Session:
    """A not-started session; the first user is host."""
    players = {
        u.user_id: u.as_player(joined_at=start + i) for i, u in enumerate(users)
    }
    return Session(
        session_id=code,
        host_id=users[0].user_id,
        players=players,
        created_at=start,
    )


@pytest.fixture
def lobby(alice, bob, carol) -> Session:
    """Three players waiting, alice hosting."""
    return make_lobby(alice, bob, carol)


@pytest.fixture
def questioning_session(lobby) -> Session:
    """
    Round 1 in progress: alice answers, bob then carol guess.

    bob is on turn, started at t=1000, word "Elephant".
    """
    gs = GameState(
        answerer_id="alice",
        current_turn_player_id="bob",
        turn_order=["bob", "carol"],
        phase=GamePhase.QUESTIONING,
        category="Animals",
        secret_word="Elephant",
        round_number=1,
        turn_start_time=1000.0,
        turn_time_limit=30,
    )
    return lobby._copy_with(
        game_started=True,
        game_state=gs,
        player_roles={
            "alice": PlayerRole.ANSWERER,
            "bob": PlayerRole.GUESSER,
            "carol": PlayerRole.GUESSER,
        },
    )


@pytest.fixture
def setup_session(questioning_session) -> Session:
    """Same deal as questioning_session, before the word is set."""
    gs = questioning_session.game_state._copy_with(
        phase=GamePhase.SETUP,
        category="",
        secret_word="",
        turn_start_time=None,
    )
    return questioning_session._copy_with(game_state=gs)


def player(player_id: str, joined_at: float = 0.0) -> GamePlayer:
    return GamePlayer(
        player_id=player_id,
        display_name=player_id.title(),
        avatar="😀",
        joined_at=joined_at,
    )
