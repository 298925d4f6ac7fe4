"""
Session View - What one player sees of a session.

Every value is derived from (session, user id); nothing is cached, so
a fresh snapshot always gives a consistent view.
"""

from __future__ import annotations
from dataclasses import dataclass

from ..engine_core.state import (
    REACTION_DISPLAY_WINDOW,
    EmojiReaction,
    GamePhase,
    GamePlayer,
    PlayerRole,
    Question,
    Session,
)


@dataclass(frozen=True)
class SessionView:
    session: Session
    user_id: str

    @property
    def is_host(self) -> bool:
        return self.session.is_host(self.user_id)

    @property
    def role(self) -> PlayerRole | None:
        return self.session.role_of(self.user_id)

    @property
    def is_answerer(self) -> bool:
        gs = self.session.game_state
        return gs is not None and gs.answerer_id == self.user_id

    @property
    def is_guesser(self) -> bool:
        gs = self.session.game_state
        return gs is not None and gs.is_guesser(self.user_id)

    @property
    def phase(self) -> GamePhase | None:
        gs = self.session.game_state
        return gs.phase if gs else None

    @property
    def is_answerer_turn(self) -> bool:
        gs = self.session.game_state
        return gs is not None and gs.is_answerer_turn

    @property
    def is_my_turn(self) -> bool:
        """The answerer during setup, the current guesser while questioning."""
        gs = self.session.game_state
        return gs is not None and gs.is_active and gs.acting_player_id == self.user_id

    @property
    def current_turn_player(self) -> GamePlayer | None:
        gs = self.session.game_state
        if gs is None:
            return None
        return self.session.get_player(gs.current_turn_player_id)

    @property
    def winner(self) -> GamePlayer | None:
        gs = self.session.game_state
        if gs is None:
            return None
        return self.session.get_player(gs.winner_id)

    @property
    def questions(self) -> list[Question]:
        gs = self.session.game_state
        return list(gs.questions) if gs else []

    @property
    def latest_unanswered_question(self) -> Question | None:
        gs = self.session.game_state
        if gs is None:
            return None
        unanswered = gs.unanswered_questions
        return unanswered[-1] if unanswered else None

    @property
    def round_number(self) -> int:
        gs = self.session.game_state
        return gs.round_number if gs else 0

    def remaining_seconds(self, now: float) -> int | None:
        """None outside the questioning phase."""
        gs = self.session.game_state
        if gs is None or gs.phase != GamePhase.QUESTIONING:
            return None
        return gs.remaining_seconds(now)

    def visible_reactions(
        self, now: float, window: float = REACTION_DISPLAY_WINDOW
    ) -> list[EmojiReaction]:
        gs = self.session.game_state
        return gs.visible_reactions(now, window) if gs else []
