"""
Tests for the session codec.

Tests:
- Minimal and fully populated round trips
- Stored key names and sentinel values
- Tolerance for dropped empty collections
- Rejection of malformed trees
"""

import pytest

from ..errors import InvalidSessionDataError
from ..engine_core.state import EmojiReaction, GamePhase, PlayerRole, Question, User
from ..session.codec import (
    decode_game_state,
    decode_session,
    decode_user,
    encode_game_state,
    encode_session,
    encode_user,
)
from .conftest import make_lobby


class TestRoundTrip:
    """Decode(encode(x)) gives x back."""

    def test_minimal_session(self, alice):
        session = make_lobby(alice)

        assert decode_session(encode_session(session)) == session

    def test_full_session(self, questioning_session):
        gs = questioning_session.game_state._copy_with(
            questions=[
                Question("q1", "bob", "Bob", "Is it alive?", "Yes", True, 1001.0),
                Question("q2", "carol", "Carol", "Is it grey?", timestamp=1002.0),
            ],
            reactions=[EmojiReaction("r1", "alice", "Alice", "😂", 1003.0)],
            winner_id="carol",
            phase=GamePhase.GAME_OVER,
            round_number=3,
        )
        session = questioning_session._copy_with(game_state=gs)

        assert decode_session(encode_session(session)) == session

    def test_user(self, alice, bob):
        assert decode_user(encode_user(alice)) == alice
        assert decode_user(encode_user(bob)) == bob


class TestStoredLayout:
    """The tree uses the shared camelCase layout."""

    def test_session_keys(self, questioning_session):
        tree = encode_session(questioning_session)

        assert set(tree) == {"id", "hostId", "players", "gameStarted", "playerRoles", "createdAt", "gameState"}
        assert tree["playerRoles"] == {"alice": "answerer", "bob": "guesser", "carol": "guesser"}
        assert tree["players"]["bob"]["displayName"] == "Bob"

    def test_game_state_keys(self, questioning_session):
        tree = encode_game_state(questioning_session.game_state)

        assert tree["answererID"] == "alice"
        assert tree["currentTurnPlayerID"] == "bob"
        assert tree["phase"] == "questioning"
        assert tree["turnOrder"] == ["bob", "carol"]
        assert tree["turnTimeLimit"] == 30

    def test_unset_values_use_sentinels(self, setup_session):
        tree = encode_game_state(setup_session.game_state)

        assert tree["winnerID"] == ""
        assert tree["turnStartTime"] == 0

        gs = decode_game_state(tree)
        assert gs.winner_id is None
        assert gs.turn_start_time is None

    def test_no_game_state_key_in_lobby(self, lobby):
        assert "gameState" not in encode_session(lobby)

    def test_missing_email_written_empty(self, bob):
        assert encode_user(bob)["email"] == ""
        assert decode_user(encode_user(bob)).email is None


class TestLenientDecode:
    """Stores drop empty nodes; decoding fills them back in."""

    def test_dropped_collections(self, setup_session):
        tree = encode_session(setup_session)
        del tree["gameState"]["questions"]
        del tree["gameState"]["reactions"]

        gs = decode_session(tree).game_state
        assert gs.questions == []
        assert gs.reactions == []

    def test_dropped_roles(self, alice):
        tree = encode_session(make_lobby(alice))
        del tree["playerRoles"]

        assert decode_session(tree).player_roles == {}

    def test_index_keyed_lists(self, questioning_session):
        tree = encode_session(questioning_session)
        tree["gameState"]["turnOrder"] = {"1": "carol", "0": "bob"}

        assert decode_session(tree).game_state.turn_order == ["bob", "carol"]

    def test_roles_decode_to_enum(self, questioning_session):
        session = decode_session(encode_session(questioning_session))

        assert session.role_of("alice") == PlayerRole.ANSWERER


class TestMalformed:
    """Malformed trees raise InvalidSessionDataError."""

    def test_not_a_mapping(self):
        with pytest.raises(InvalidSessionDataError):
            decode_session(["not", "a", "session"])

    def test_missing_host(self, lobby):
        tree = encode_session(lobby)
        del tree["hostId"]

        with pytest.raises(InvalidSessionDataError):
            decode_session(tree)

    def test_unknown_phase(self, questioning_session):
        tree = encode_session(questioning_session)
        tree["gameState"]["phase"] = "overtime"

        with pytest.raises(InvalidSessionDataError):
            decode_session(tree)

    def test_unknown_role(self, questioning_session):
        tree = encode_session(questioning_session)
        tree["playerRoles"]["bob"] = "referee"

        with pytest.raises(InvalidSessionDataError):
            decode_session(tree)

    def test_wrong_type(self, questioning_session):
        tree = encode_session(questioning_session)
        tree["gameState"]["roundNumber"] = "two"

        with pytest.raises(InvalidSessionDataError):
            decode_session(tree)

    def test_bool_is_not_a_number(self, lobby):
        tree = encode_session(lobby)
        tree["createdAt"] = True

        with pytest.raises(InvalidSessionDataError):
            decode_session(tree)

    def test_user_without_name(self, alice):
        tree = encode_user(alice)
        del tree["displayName"]

        with pytest.raises(InvalidSessionDataError):
            decode_user(tree)

    def test_error_carries_code(self):
        with pytest.raises(InvalidSessionDataError) as exc_info:
            decode_session({})

        assert exc_info.value.code.value == "INVALID_SESSION_DATA"

    def test_user_round_trip_keeps_avatar(self):
        user = User(user_id="u", display_name="U", avatar="🐙", created_at=5.0)

        assert decode_user(encode_user(user)).avatar == "🐙"
