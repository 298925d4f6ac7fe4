"""
Tests for the API layer.

Tests:
- Profiles and categories
- A full round over HTTP
- Error code to status mapping
- WebSocket session updates
"""

import random

import pytest
from fastapi.testclient import TestClient

from ..api.app import create_app
from ..api.service import APIService
from ..config import Settings
from ..store import InMemoryDocumentStore

BASE = "/api/v1"


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def client(store):
    service = APIService(settings=Settings(), store=store, rng=random.Random(5))
    return TestClient(create_app(service=service))


def save_profile(client, user_id, name):
    response = client.put(f"{BASE}/users/{user_id}", json={"display_name": name})
    assert response.status_code == 200
    return response.json()


def new_game(client, *user_ids):
    """Host is the first user; the rest join. Returns the code."""
    for uid in user_ids:
        save_profile(client, uid, uid.title())
    code = client.post(f"{BASE}/games", json={"user_id": user_ids[0]}).json()["session_id"]
    for uid in user_ids[1:]:
        assert client.post(f"{BASE}/games/{code}/join", json={"user_id": uid}).status_code == 200
    return code


def started_round(client, *user_ids):
    """Start and set the word. Returns (code, game_state dict)."""
    code = new_game(client, *user_ids)
    gs = client.post(f"{BASE}/games/{code}/start", json={"user_id": user_ids[0]}).json()["game_state"]
    response = client.post(
        f"{BASE}/games/{code}/secret-word",
        json={"user_id": gs["answerer_id"], "category": "Animals", "word": "Elephant"},
    )
    assert response.status_code == 200
    return code, response.json()["game_state"]


class TestSystem:
    """Tests for health and reference data."""

    def test_health(self, client):
        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["env"] == "development"
        assert body["store"] == "memory"

    def test_categories(self, client):
        body = client.get(f"{BASE}/categories").json()

        names = [c["name"] for c in body["categories"]]
        assert names == ["People", "Places", "Animals", "Movies", "Food", "Objects"]
        assert "Elephant" in body["categories"][2]["suggested_words"]


class TestUsers:
    """Tests for profile endpoints."""

    def test_save_and_get(self, client):
        save_profile(client, "alice", "Alice")

        body = client.get(f"{BASE}/users/alice").json()
        assert body["display_name"] == "Alice"
        assert body["avatar"] == "😀"
        assert body["email"] is None

    def test_update_avatar(self, client):
        save_profile(client, "alice", "Alice")

        response = client.patch(f"{BASE}/users/alice/avatar", json={"avatar": "🦄"})

        assert response.json()["avatar"] == "🦄"
        assert client.get(f"{BASE}/users/alice").json()["avatar"] == "🦄"

    def test_unknown_user(self, client):
        response = client.get(f"{BASE}/users/ghost")

        assert response.status_code == 404
        assert response.json()["error_code"] == "USER_NOT_FOUND"

    def test_create_game_needs_profile(self, client):
        response = client.post(f"{BASE}/games", json={"user_id": "ghost"})

        assert response.status_code == 404
        assert response.json()["error_code"] == "USER_NOT_FOUND"


class TestRoundOverHTTP:
    """A round played through the REST endpoints."""

    def test_create_game(self, client):
        save_profile(client, "alice", "Alice")

        response = client.post(f"{BASE}/games", json={"user_id": "alice"})

        assert response.status_code == 201
        body = response.json()
        assert len(body["session_id"]) == 6
        assert body["host_id"] == "alice"
        assert body["players"][0]["is_host"]
        assert body["game_state"] is None

    def test_full_round(self, client):
        code, gs = started_round(client, "alice", "bob", "carol")
        answerer = gs["answerer_id"]
        first, second = gs["turn_order"]
        assert gs["phase"] == "questioning"
        assert gs["remaining_seconds"] == 30

        body = client.post(
            f"{BASE}/games/{code}/questions", json={"user_id": first, "question": "Is it alive?"}
        ).json()
        qid = body["game_state"]["questions"][0]["question_id"]

        body = client.post(
            f"{BASE}/games/{code}/questions/{qid}/answer",
            json={"user_id": answerer, "answer": "Yes"},
        ).json()
        assert body["game_state"]["current_turn_player_id"] == second
        assert body["game_state"]["questions"][0]["is_answered"]

        body = client.post(
            f"{BASE}/games/{code}/guess", json={"user_id": second, "guess": "elephant"}
        ).json()
        assert body["game_state"]["phase"] == "gameOver"
        assert body["game_state"]["winner_id"] == second

        body = client.post(f"{BASE}/games/{code}/play-again", json={"user_id": "alice"}).json()
        assert body["game_state"]["round_number"] == 2
        assert body["game_state"]["phase"] == "setup"

    def test_word_hidden_from_guessers(self, client):
        code, gs = started_round(client, "alice", "bob")
        guesser = gs["turn_order"][0]

        as_guesser = client.get(f"{BASE}/games/{code}", params={"user_id": guesser}).json()
        as_answerer = client.get(f"{BASE}/games/{code}", params={"user_id": gs["answerer_id"]}).json()

        assert as_guesser["game_state"]["secret_word"] == ""
        assert as_answerer["game_state"]["secret_word"] == "Elephant"

    def test_word_hidden_from_anonymous_viewers(self, client):
        code, gs = started_round(client, "alice", "bob")

        during = client.get(f"{BASE}/games/{code}").json()
        assert during["game_state"]["secret_word"] == ""

        client.post(
            f"{BASE}/games/{code}/guess",
            json={"user_id": gs["current_turn_player_id"], "guess": "Elephant"},
        )
        after = client.get(f"{BASE}/games/{code}").json()
        assert after["game_state"]["secret_word"] == "Elephant"

    def test_word_hidden_on_anonymous_socket(self, client):
        code, _ = started_round(client, "alice", "bob")

        with client:
            with client.websocket_connect(f"{BASE}/games/{code}/ws") as ws:
                first = ws.receive_json()

        assert first["payload"]["game_state"]["secret_word"] == ""

    def test_skip_and_reactions(self, client):
        code, gs = started_round(client, "alice", "bob", "carol")
        first, second = gs["turn_order"]

        body = client.post(f"{BASE}/games/{code}/skip", json={"user_id": first}).json()
        assert body["game_state"]["current_turn_player_id"] == second

        body = client.post(
            f"{BASE}/games/{code}/reactions", json={"user_id": first, "emoji": "😂"}
        ).json()
        assert body["game_state"]["reactions"][0]["emoji"] == "😂"

    def test_reset_to_lobby(self, client):
        code, _ = started_round(client, "alice", "bob")

        body = client.post(f"{BASE}/games/{code}/reset", json={"user_id": "alice"}).json()

        assert body["game_started"] is False
        assert body["game_state"] is None
        assert all(p["role"] is None for p in body["players"])

    def test_leave_and_end(self, client):
        code = new_game(client, "alice", "bob")

        body = client.post(f"{BASE}/games/{code}/leave", json={"user_id": "alice"}).json()
        assert body == {"session_id": code, "success": True, "session_deleted": False}
        assert client.get(f"{BASE}/games/{code}").json()["host_id"] == "bob"

        assert client.delete(f"{BASE}/games/{code}", params={"user_id": "bob"}).status_code == 200
        assert client.get(f"{BASE}/games/{code}").status_code == 404


class TestErrorMapping:
    """Tests for error code to HTTP status mapping."""

    def test_session_not_found(self, client):
        save_profile(client, "bob", "Bob")

        response = client.post(f"{BASE}/games/NOPE00/join", json={"user_id": "bob"})

        assert response.status_code == 404
        assert response.json()["error_code"] == "SESSION_NOT_FOUND"

    def test_unauthorized(self, client):
        code = new_game(client, "alice", "bob")

        response = client.post(f"{BASE}/games/{code}/start", json={"user_id": "bob"})

        assert response.status_code == 403
        assert response.json()["error_code"] == "UNAUTHORIZED"

    def test_guest_cannot_end(self, client):
        code = new_game(client, "alice", "bob")

        response = client.delete(f"{BASE}/games/{code}", params={"user_id": "bob"})

        assert response.status_code == 403

    def test_conflicts(self, client):
        code = new_game(client, "alice", "bob")

        again = client.post(f"{BASE}/games/{code}/join", json={"user_id": "bob"})
        assert again.status_code == 409
        assert again.json()["error_code"] == "ALREADY_IN_SESSION"

        client.post(f"{BASE}/games/{code}/start", json={"user_id": "alice"})
        save_profile(client, "carol", "Carol")
        late = client.post(f"{BASE}/games/{code}/join", json={"user_id": "carol"})
        assert late.status_code == 409
        assert late.json()["error_code"] == "GAME_ALREADY_STARTED"

    def test_not_your_turn(self, client):
        code, gs = started_round(client, "alice", "bob", "carol")
        waiting = gs["turn_order"][1]

        response = client.post(
            f"{BASE}/games/{code}/guess", json={"user_id": waiting, "guess": "Elephant"}
        )

        assert response.status_code == 409
        assert response.json()["error_code"] == "NOT_YOUR_TURN"

    def test_insufficient_players(self, client):
        code = new_game(client, "alice")

        response = client.post(f"{BASE}/games/{code}/start", json={"user_id": "alice"})

        assert response.status_code == 400
        assert response.json()["error_code"] == "INSUFFICIENT_PLAYERS"

    def test_invalid_input(self, client):
        code, gs = started_round(client, "alice", "bob")

        response = client.post(
            f"{BASE}/games/{code}/questions",
            json={"user_id": gs["current_turn_player_id"], "question": "   "},
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_INPUT"

    def test_network_error(self, client, store):
        save_profile(client, "alice", "Alice")
        store.online = False

        response = client.post(f"{BASE}/games", json={"user_id": "alice"})

        assert response.status_code == 503
        assert response.json()["error_code"] == "NETWORK_ERROR"

    def test_invalid_session_data(self):
        store = InMemoryDocumentStore({"sessions": {"BROKEN": {"id": "BROKEN"}}})
        client = TestClient(create_app(service=APIService(settings=Settings(), store=store)))

        response = client.get(f"{BASE}/games/BROKEN")

        assert response.status_code == 500
        assert response.json()["error_code"] == "INVALID_SESSION_DATA"


class TestWebSocket:
    """Tests for live updates."""

    def test_updates_stream(self, client):
        code = new_game(client, "alice")
        save_profile(client, "bob", "Bob")

        with client:
            with client.websocket_connect(f"{BASE}/games/{code}/ws") as ws:
                first = ws.receive_json()
                assert first["type"] == "session_update"
                assert [p["player_id"] for p in first["payload"]["players"]] == ["alice"]

                client.post(f"{BASE}/games/{code}/join", json={"user_id": "bob"})
                update = ws.receive_json()
                assert update["type"] == "session_update"
                assert len(update["payload"]["players"]) == 2

                ws.send_text('{"type": "ping"}')
                assert ws.receive_json() == {"type": "pong"}

    def test_ended_session(self, client):
        code = new_game(client, "alice")

        with client:
            with client.websocket_connect(f"{BASE}/games/{code}/ws") as ws:
                ws.receive_json()
                client.delete(f"{BASE}/games/{code}", params={"user_id": "alice"})
                message = ws.receive_json()

        assert message == {"type": "session_ended", "payload": {"session_id": code}}

    def test_unknown_session(self, client):
        with client:
            with client.websocket_connect(f"{BASE}/games/NOPE00/ws") as ws:
                message = ws.receive_json()

        assert message["type"] == "session_ended"
