"""
Session Codec - Session aggregate <-> stored key-value tree.

Keys are camelCase to match the shared store layout. Absent optional
values are written the way existing clients expect: winnerID as "",
turnStartTime as 0 and a missing email as "". Timestamps are seconds
since the epoch.

Decoding tolerates missing collections (stores drop empty nodes) but
rejects wrong types with InvalidSessionDataError.
"""

from __future__ import annotations
from typing import Any

from ..errors import InvalidSessionDataError
from ..engine_core.state import (
    DEFAULT_AVATAR,
    DEFAULT_TURN_TIME_LIMIT,
    EmojiReaction,
    GamePhase,
    GamePlayer,
    GameState,
    PlayerRole,
    Question,
    Session,
    User,
)


# =============================================================================
# Field readers
# =============================================================================

def _require(tree: dict, key: str, kind: type | tuple[type, ...], entity: str) -> Any:
    if key not in tree:
        raise InvalidSessionDataError(f"{entity}: missing '{key}'")
    return _check(tree[key], kind, f"{entity}.{key}")


def _optional(tree: dict, key: str, kind: type | tuple[type, ...], entity: str, default: Any) -> Any:
    if tree.get(key) is None:
        return default
    return _check(tree[key], kind, f"{entity}.{key}")


def _check(value: Any, kind: type | tuple[type, ...], where: str) -> Any:
    # bool is an int subclass; never accept it as a number
    if isinstance(value, bool) and bool not in _as_tuple(kind):
        raise InvalidSessionDataError(f"{where}: expected {kind}, got bool")
    if not isinstance(value, kind):
        raise InvalidSessionDataError(f"{where}: expected {kind}, got {type(value).__name__}")
    return value


def _as_tuple(kind: type | tuple[type, ...]) -> tuple[type, ...]:
    return kind if isinstance(kind, tuple) else (kind,)


def _as_dict(tree: Any, entity: str) -> dict:
    if not isinstance(tree, dict):
        raise InvalidSessionDataError(f"{entity}: expected a mapping")
    return tree


def _as_list(value: Any, entity: str) -> list:
    # Stores that key arrays by index may hand back {"0": ..., "1": ...}
    if isinstance(value, dict):
        try:
            return [value[k] for k in sorted(value, key=int)]
        except ValueError:
            raise InvalidSessionDataError(f"{entity}: expected a list")
    if not isinstance(value, list):
        raise InvalidSessionDataError(f"{entity}: expected a list")
    return value


_NUMBER = (int, float)


# =============================================================================
# Users and players
# =============================================================================

def encode_user(user: User) -> dict[str, Any]:
    return {
        "id": user.user_id,
        "displayName": user.display_name,
        "email": user.email or "",
        "avatar": user.avatar,
        "createdAt": user.created_at,
    }


def decode_user(tree: Any) -> User:
    tree = _as_dict(tree, "User")
    email = _optional(tree, "email", str, "User", "")
    return User(
        user_id=_require(tree, "id", str, "User"),
        display_name=_require(tree, "displayName", str, "User"),
        email=email or None,
        avatar=_optional(tree, "avatar", str, "User", DEFAULT_AVATAR),
        created_at=float(_require(tree, "createdAt", _NUMBER, "User")),
    )


def encode_player(player: GamePlayer) -> dict[str, Any]:
    return {
        "id": player.player_id,
        "displayName": player.display_name,
        "avatar": player.avatar,
        "joinedAt": player.joined_at,
    }


def decode_player(tree: Any) -> GamePlayer:
    tree = _as_dict(tree, "GamePlayer")
    return GamePlayer(
        player_id=_require(tree, "id", str, "GamePlayer"),
        display_name=_require(tree, "displayName", str, "GamePlayer"),
        avatar=_require(tree, "avatar", str, "GamePlayer"),
        joined_at=float(_require(tree, "joinedAt", _NUMBER, "GamePlayer")),
    )


# =============================================================================
# Questions and reactions
# =============================================================================

def encode_question(question: Question) -> dict[str, Any]:
    return {
        "id": question.question_id,
        "askerID": question.asker_id,
        "askerName": question.asker_name,
        "question": question.question,
        "answer": question.answer,
        "isAnswered": question.is_answered,
        "timestamp": question.timestamp,
    }


def decode_question(tree: Any) -> Question:
    tree = _as_dict(tree, "Question")
    return Question(
        question_id=_require(tree, "id", str, "Question"),
        asker_id=_require(tree, "askerID", str, "Question"),
        asker_name=_require(tree, "askerName", str, "Question"),
        question=_require(tree, "question", str, "Question"),
        answer=_optional(tree, "answer", str, "Question", ""),
        is_answered=_optional(tree, "isAnswered", bool, "Question", False),
        timestamp=float(_require(tree, "timestamp", _NUMBER, "Question")),
    )


def encode_reaction(reaction: EmojiReaction) -> dict[str, Any]:
    return {
        "id": reaction.reaction_id,
        "playerID": reaction.player_id,
        "playerName": reaction.player_name,
        "emoji": reaction.emoji,
        "timestamp": reaction.timestamp,
    }


def decode_reaction(tree: Any) -> EmojiReaction:
    tree = _as_dict(tree, "EmojiReaction")
    return EmojiReaction(
        reaction_id=_require(tree, "id", str, "EmojiReaction"),
        player_id=_require(tree, "playerID", str, "EmojiReaction"),
        player_name=_require(tree, "playerName", str, "EmojiReaction"),
        emoji=_require(tree, "emoji", str, "EmojiReaction"),
        timestamp=float(_require(tree, "timestamp", _NUMBER, "EmojiReaction")),
    )


# =============================================================================
# Game state
# =============================================================================

def encode_game_state(gs: GameState) -> dict[str, Any]:
    return {
        "answererID": gs.answerer_id,
        "category": gs.category,
        "secretWord": gs.secret_word,
        "currentTurnPlayerID": gs.current_turn_player_id,
        "phase": gs.phase.value,
        "turnOrder": list(gs.turn_order),
        "questions": [encode_question(q) for q in gs.questions],
        "reactions": [encode_reaction(r) for r in gs.reactions],
        "winnerID": gs.winner_id or "",
        "roundNumber": gs.round_number,
        "turnStartTime": gs.turn_start_time if gs.turn_start_time is not None else 0,
        "turnTimeLimit": gs.turn_time_limit,
    }


def decode_game_state(tree: Any) -> GameState:
    tree = _as_dict(tree, "GameState")
    phase_raw = _require(tree, "phase", str, "GameState")
    try:
        phase = GamePhase(phase_raw)
    except ValueError:
        raise InvalidSessionDataError(f"GameState.phase: unknown phase {phase_raw!r}")

    turn_order = [
        _check(pid, str, "GameState.turnOrder")
        for pid in _as_list(tree.get("turnOrder") or [], "GameState.turnOrder")
    ]
    questions = [
        decode_question(q)
        for q in _as_list(tree.get("questions") or [], "GameState.questions")
    ]
    reactions = [
        decode_reaction(r)
        for r in _as_list(tree.get("reactions") or [], "GameState.reactions")
    ]
    winner_id = _optional(tree, "winnerID", str, "GameState", "")
    turn_start = _optional(tree, "turnStartTime", _NUMBER, "GameState", 0)

    return GameState(
        answerer_id=_require(tree, "answererID", str, "GameState"),
        current_turn_player_id=_require(tree, "currentTurnPlayerID", str, "GameState"),
        turn_order=turn_order,
        phase=phase,
        category=_optional(tree, "category", str, "GameState", ""),
        secret_word=_optional(tree, "secretWord", str, "GameState", ""),
        questions=questions,
        reactions=reactions,
        winner_id=winner_id or None,
        round_number=_require(tree, "roundNumber", int, "GameState"),
        turn_start_time=float(turn_start) if turn_start > 0 else None,
        turn_time_limit=_optional(tree, "turnTimeLimit", int, "GameState", DEFAULT_TURN_TIME_LIMIT),
    )


# =============================================================================
# Session
# =============================================================================

def encode_roles(roles: dict[str, PlayerRole]) -> dict[str, str]:
    return {pid: role.value for pid, role in roles.items()}


def encode_session(session: Session) -> dict[str, Any]:
    tree: dict[str, Any] = {
        "id": session.session_id,
        "hostId": session.host_id,
        "players": {pid: encode_player(p) for pid, p in session.players.items()},
        "gameStarted": session.game_started,
        "playerRoles": encode_roles(session.player_roles),
        "createdAt": session.created_at,
    }
    if session.game_state is not None:
        tree["gameState"] = encode_game_state(session.game_state)
    return tree


def decode_session(tree: Any) -> Session:
    tree = _as_dict(tree, "Session")
    players_tree = _as_dict(tree.get("players") or {}, "Session.players")
    players = {pid: decode_player(p) for pid, p in players_tree.items()}

    roles: dict[str, PlayerRole] = {}
    for pid, raw in _as_dict(tree.get("playerRoles") or {}, "Session.playerRoles").items():
        try:
            roles[pid] = PlayerRole(raw)
        except ValueError:
            raise InvalidSessionDataError(f"Session.playerRoles: unknown role {raw!r}")

    game_state_tree = tree.get("gameState")
    return Session(
        session_id=_require(tree, "id", str, "Session"),
        host_id=_require(tree, "hostId", str, "Session"),
        players=players,
        game_started=_optional(tree, "gameStarted", bool, "Session", False),
        game_state=decode_game_state(game_state_tree) if game_state_tree else None,
        player_roles=roles,
        created_at=float(_require(tree, "createdAt", _NUMBER, "Session")),
    )
