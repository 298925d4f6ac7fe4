"""
Reducer - Applies actions to a session.

The reducer is the turn engine: the single place where phase and turn
rules live. All session changes go through apply().

Design principles:
- Pure function: (session, action) -> ActionResult
- Validates the actor against phase, turn and role before changing anything
- Rule violations come back as failed results, never as exceptions
- Randomness comes from an injected random.Random
"""

from __future__ import annotations
from dataclasses import dataclass, field
import random

from ..errors import ErrorCode
from .action import Action, ActionType, ActionResult
from .state import (
    DEFAULT_TURN_TIME_LIMIT,
    MIN_PLAYERS,
    EmojiReaction,
    GamePhase,
    GameState,
    PlayerRole,
    Question,
    Session,
)


@dataclass
class Reducer:
    """
    Reducer applies actions to sessions.

    Stateless apart from the random source used for role draws,
    turn-order shuffles and host transfer.
    """
    rng: random.Random = field(default_factory=random.Random)
    turn_time_limit: int = DEFAULT_TURN_TIME_LIMIT
    min_players: int = MIN_PLAYERS

    def apply(self, session: Session, action: Action) -> ActionResult:
        """
        Apply an action to the session.

        Returns ActionResult with the new session or a typed error.
        The input session is never modified.
        """
        handler = self._get_handler(action.action_type)
        if not handler:
            return ActionResult.failure(
                f"No handler for action type: {action.action_type}",
                error_code=ErrorCode.INVALID_INPUT,
            )
        return handler(session, action)

    def _get_handler(self, action_type: ActionType):
        """Get the handler function for an action type."""
        handlers = {
            ActionType.START_GAME: self._handle_start_game,
            ActionType.SET_SECRET_WORD: self._handle_set_secret_word,
            ActionType.ASK_QUESTION: self._handle_ask_question,
            ActionType.ANSWER_QUESTION: self._handle_answer_question,
            ActionType.MAKE_GUESS: self._handle_make_guess,
            ActionType.SKIP_TURN: self._handle_skip_turn,
            ActionType.ADD_REACTION: self._handle_add_reaction,
            ActionType.PLAY_AGAIN: self._handle_play_again,
            ActionType.RESET_TO_LOBBY: self._handle_reset_to_lobby,
            ActionType.LEAVE: self._handle_leave,
        }
        return handlers.get(action_type)

    # =========================================================================
    # Round setup
    # =========================================================================

    def deal_round(self, session: Session, round_number: int) -> tuple[GameState, dict[str, PlayerRole]]:
        """
        Draw a random answerer and shuffle the rest into the turn order.

        Player ids are sorted first so a seeded rng gives the same deal
        regardless of dict ordering.
        """
        player_ids = sorted(session.players)
        answerer_id = self.rng.choice(player_ids)
        turn_order = [pid for pid in player_ids if pid != answerer_id]
        self.rng.shuffle(turn_order)

        game_state = GameState(
            answerer_id=answerer_id,
            current_turn_player_id=turn_order[0],
            turn_order=turn_order,
            phase=GamePhase.SETUP,
            round_number=round_number,
            turn_time_limit=self.turn_time_limit,
        )
        roles = {
            pid: PlayerRole.ANSWERER if pid == answerer_id else PlayerRole.GUESSER
            for pid in player_ids
        }
        return game_state, roles

    def _check_can_deal(self, session: Session, actor: str) -> ActionResult | None:
        if not session.is_host(actor):
            return ActionResult.failure(
                "Only the host can start a round", ErrorCode.UNAUTHORIZED
            )
        if session.player_count < self.min_players:
            return ActionResult.failure(
                f"Need at least {self.min_players} players", ErrorCode.INSUFFICIENT_PLAYERS
            )
        return None

    def _handle_start_game(self, session: Session, action: Action) -> ActionResult:
        error = self._check_can_deal(session, action.player_id)
        if error:
            return error
        if session.game_started:
            return ActionResult.failure(
                "Game has already started", ErrorCode.GAME_ALREADY_STARTED
            )

        game_state, roles = self.deal_round(session, round_number=1)
        new_session = session._copy_with(
            game_started=True,
            game_state=game_state,
            player_roles=roles,
        )
        return ActionResult.success_with_state(
            new_session,
            changes=[f"Round 1 started, {game_state.answerer_id} is answering"],
        )

    def _handle_play_again(self, session: Session, action: Action) -> ActionResult:
        error = self._check_can_deal(session, action.player_id)
        if error:
            return error

        previous = session.game_state
        round_number = previous.round_number + 1 if previous else 1
        game_state, roles = self.deal_round(session, round_number=round_number)
        new_session = session._copy_with(
            game_started=True,
            game_state=game_state,
            player_roles=roles,
        )
        return ActionResult.success_with_state(
            new_session,
            changes=[f"Round {round_number} started, {game_state.answerer_id} is answering"],
        )

    def _handle_reset_to_lobby(self, session: Session, action: Action) -> ActionResult:
        if not session.is_host(action.player_id):
            return ActionResult.failure(
                "Only the host can return to the lobby", ErrorCode.UNAUTHORIZED
            )
        new_session = session._copy_with(
            game_started=False,
            game_state=None,
            player_roles={},
        )
        return ActionResult.success_with_state(new_session, changes=["Returned to lobby"])

    # =========================================================================
    # Answerer actions
    # =========================================================================

    def _handle_set_secret_word(self, session: Session, action: Action) -> ActionResult:
        gs = session.game_state
        if (
            gs is None
            or gs.answerer_id != action.player_id
            or gs.phase != GamePhase.SETUP
        ):
            return ActionResult.failure(
                "Only the answerer can set the secret word", ErrorCode.UNAUTHORIZED
            )

        word = (action.payload.text or "").strip()
        if not word:
            return ActionResult.failure("Secret word is empty", ErrorCode.INVALID_INPUT)

        new_gs = gs._copy_with(
            category=(action.payload.category or "").strip(),
            secret_word=word,
            phase=GamePhase.QUESTIONING,
            turn_start_time=action.timestamp,
        )
        return ActionResult.success_with_state(
            session._copy_with(game_state=new_gs),
            changes=["Secret word set, questioning started"],
        )

    def _handle_answer_question(self, session: Session, action: Action) -> ActionResult:
        gs = session.game_state
        if (
            gs is None
            or gs.answerer_id != action.player_id
            or gs.phase != GamePhase.QUESTIONING
        ):
            return ActionResult.failure(
                "Only the answerer can answer questions", ErrorCode.UNAUTHORIZED
            )

        question_id = action.payload.question_id
        answer = action.payload.text or ""
        # Unknown ids are ignored; the turn still advances.
        questions = [
            q.answered(answer) if q.question_id == question_id else q
            for q in gs.questions
        ]
        new_gs = gs._copy_with(
            questions=questions,
            current_turn_player_id=gs.next_turn_player_id(),
            turn_start_time=action.timestamp,
        )
        return ActionResult.success_with_state(
            session._copy_with(game_state=new_gs),
            changes=[f"Question {question_id} answered: {answer}"],
        )

    # =========================================================================
    # Guesser actions
    # =========================================================================

    def _check_guesser_turn(self, gs: GameState | None, actor: str) -> ActionResult | None:
        if (
            gs is None
            or gs.phase != GamePhase.QUESTIONING
            or gs.current_turn_player_id != actor
            or not gs.is_guesser(actor)
        ):
            return ActionResult.failure("It's not your turn", ErrorCode.NOT_YOUR_TURN)
        return None

    def _handle_ask_question(self, session: Session, action: Action) -> ActionResult:
        gs = session.game_state
        error = self._check_guesser_turn(gs, action.player_id)
        if error:
            return error

        text = (action.payload.text or "").strip()
        if not text:
            return ActionResult.failure("Question is empty", ErrorCode.INVALID_INPUT)

        question = Question(
            question_id=action.action_id,
            asker_id=action.player_id,
            asker_name=self._display_name(session, action.player_id),
            question=text,
            timestamp=action.timestamp,
        )
        new_gs = gs._copy_with(questions=gs.questions + [question])
        return ActionResult.success_with_state(
            session._copy_with(game_state=new_gs),
            changes=[f"{question.asker_name} asked: {text}"],
        )

    def _handle_make_guess(self, session: Session, action: Action) -> ActionResult:
        gs = session.game_state
        error = self._check_guesser_turn(gs, action.player_id)
        if error:
            return error

        guess = action.payload.text or ""
        if gs.is_correct_guess(guess):
            new_gs = gs._copy_with(
                winner_id=action.player_id,
                phase=GamePhase.GAME_OVER,
            )
            changes = [f"{action.player_id} guessed the word"]
        else:
            new_gs = self._advance_turn(gs, action.timestamp)
            changes = [f"{action.player_id} guessed wrong"]
        return ActionResult.success_with_state(
            session._copy_with(game_state=new_gs), changes=changes
        )

    def _handle_skip_turn(self, session: Session, action: Action) -> ActionResult:
        gs = session.game_state
        error = self._check_guesser_turn(gs, action.player_id)
        if error:
            return error

        new_gs = self._advance_turn(gs, action.timestamp)
        return ActionResult.success_with_state(
            session._copy_with(game_state=new_gs),
            changes=[f"{action.player_id} skipped, {new_gs.current_turn_player_id} is up"],
        )

    # =========================================================================
    # Any player
    # =========================================================================

    def _handle_add_reaction(self, session: Session, action: Action) -> ActionResult:
        gs = session.game_state
        if gs is None or not session.has_player(action.player_id):
            return ActionResult.failure(
                "Reactions need an active round", ErrorCode.UNAUTHORIZED
            )

        emoji = (action.payload.text or "").strip()
        if not emoji:
            return ActionResult.failure("Reaction is empty", ErrorCode.INVALID_INPUT)

        reaction = EmojiReaction(
            reaction_id=action.action_id,
            player_id=action.player_id,
            player_name=self._display_name(session, action.player_id),
            emoji=emoji,
            timestamp=action.timestamp,
        )
        new_gs = gs._copy_with(reactions=gs.reactions + [reaction])
        return ActionResult.success_with_state(session._copy_with(game_state=new_gs))

    def _handle_leave(self, session: Session, action: Action) -> ActionResult:
        """
        Remove a player and repair host, turn order and phase.

        The last player leaving deletes the session.
        """
        leaver = action.player_id
        if not session.has_player(leaver):
            return ActionResult.failure(
                f"{leaver} is not in this session", ErrorCode.UNAUTHORIZED
            )

        players = {pid: p for pid, p in session.players.items() if pid != leaver}
        if not players:
            return ActionResult.deleted(changes=[f"{leaver} left, session closed"])

        changes = [f"{leaver} left"]
        roles = {pid: r for pid, r in session.player_roles.items() if pid != leaver}

        host_id = session.host_id
        if leaver == host_id:
            host_id = self.rng.choice(sorted(players))
            changes.append(f"{host_id} is now host")

        game_state = session.game_state
        if game_state is not None and game_state.is_active:
            game_state = self._remove_from_round(game_state, leaver, action.timestamp)
            if game_state.is_over:
                changes.append("Round over")

        new_session = session._copy_with(
            host_id=host_id,
            players=players,
            player_roles=roles,
            game_state=game_state,
        )
        return ActionResult.success_with_state(new_session, changes=changes)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _remove_from_round(self, gs: GameState, leaver: str, now: float) -> GameState:
        if leaver == gs.answerer_id:
            # Nobody can answer any more: no winner.
            return gs._copy_with(phase=GamePhase.GAME_OVER, winner_id=None)

        if leaver not in gs.turn_order:
            return gs

        turn_order = [pid for pid in gs.turn_order if pid != leaver]
        if not turn_order:
            # Answerer wins by default.
            return gs._copy_with(
                turn_order=turn_order,
                phase=GamePhase.GAME_OVER,
                winner_id=gs.answerer_id,
            )

        if gs.current_turn_player_id != leaver:
            return gs._copy_with(turn_order=turn_order)

        return gs._copy_with(
            turn_order=turn_order,
            current_turn_player_id=turn_order[0],
            turn_start_time=now if gs.phase == GamePhase.QUESTIONING else gs.turn_start_time,
        )

    def _advance_turn(self, gs: GameState, now: float) -> GameState:
        return gs._copy_with(
            current_turn_player_id=gs.next_turn_player_id(),
            turn_start_time=now,
        )

    def _display_name(self, session: Session, player_id: str) -> str:
        player = session.get_player(player_id)
        return player.display_name if player else player_id


def apply_action(session: Session, action: Action, rng: random.Random | None = None) -> ActionResult:
    """
    Convenience function to apply an action.

    Creates a Reducer and applies the action.
    """
    reducer = Reducer(rng=rng or random.Random())
    return reducer.apply(session, action)
