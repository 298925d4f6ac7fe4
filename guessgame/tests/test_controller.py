"""
Tests for the client session controller.

Tests:
- Snapshot projection and teardown
- Derived view
- Connectivity gating
- Turn timer and timeout skip
"""

import asyncio
import logging

import pytest

from ..errors import NetworkError, SessionNotFoundError
from ..engine_core.state import GamePhase
from ..session import (
    ClientSessionController,
    ConnectivityMonitor,
    RemovedFromSession,
    SessionEnded,
    SessionErrorEvent,
    SessionUpdated,
    SessionView,
    TimerTick,
)

TICK = 0.01


class EventLog:
    """Collects controller events."""

    def __init__(self):
        self.events = []

    async def __call__(self, event):
        self.events.append(event)

    def of(self, kind):
        return [e for e in self.events if isinstance(e, kind)]


def controller_for(repo, user, clock, connectivity=None):
    log = EventLog()
    ctl = ClientSessionController(
        repo, user, connectivity=connectivity, on_event=log, clock=clock, tick_interval=TICK
    )
    return ctl, log


async def settle():
    await asyncio.sleep(TICK * 5)


class TestProjection:
    """Tests for snapshot handling."""

    @pytest.mark.asyncio
    async def test_create_attaches(self, repo, store, alice, clock):
        ctl, log = controller_for(repo, alice, clock)

        session = await ctl.create_game()

        assert ctl.is_attached
        assert ctl.code == session.session_id
        assert ctl.session == session
        assert ctl.is_host
        assert len(log.of(SessionUpdated)) == 1
        assert store.subscription_count == 1
        await ctl.dispose()

    @pytest.mark.asyncio
    async def test_remote_changes_replace_session(self, repo, alice, bob, clock):
        host, _ = controller_for(repo, alice, clock)
        await host.create_game()

        await repo.join_game(host.code, bob)

        assert set(host.session.players) == {"alice", "bob"}
        await host.dispose()

    @pytest.mark.asyncio
    async def test_session_deleted(self, repo, store, alice, bob, clock):
        host, _ = controller_for(repo, alice, clock)
        guest, guest_log = controller_for(repo, bob, clock)
        await host.create_game()
        await guest.join_game(host.code)
        code = host.code

        await host.repository.end_session(code, "alice")

        assert guest_log.of(SessionEnded) == [SessionEnded(code)]
        assert not guest.is_attached
        assert guest.session is None
        assert store.subscription_count == 0

    @pytest.mark.asyncio
    async def test_removed_from_session(self, repo, store, alice, bob, clock):
        host, _ = controller_for(repo, alice, clock)
        guest, guest_log = controller_for(repo, bob, clock)
        await host.create_game()
        await guest.join_game(host.code)
        code = host.code

        await store.delete(f"sessions/{code}/players/bob")

        assert guest_log.of(RemovedFromSession) == [RemovedFromSession(code)]
        assert not guest.is_attached
        assert host.is_attached
        await host.dispose()

    @pytest.mark.asyncio
    async def test_attach_to_missing_session_releases(self, repo, store, alice, clock):
        ctl, log = controller_for(repo, alice, clock)

        await ctl.attach("nope99")

        assert log.of(SessionEnded) == [SessionEnded("NOPE99")]
        assert not ctl.is_attached
        assert ctl.code is None
        assert store.subscription_count == 0

    @pytest.mark.asyncio
    async def test_attach_as_outsider_releases(self, repo, store, alice, bob, clock):
        session = await repo.create_game(alice)
        ctl, log = controller_for(repo, bob, clock)

        await ctl.attach(session.session_id)

        assert log.of(RemovedFromSession) == [RemovedFromSession(session.session_id)]
        assert not ctl.is_attached
        assert store.subscription_count == 0

    @pytest.mark.asyncio
    async def test_bad_snapshot_keeps_subscription(self, repo, store, alice, clock):
        ctl, log = controller_for(repo, alice, clock)
        session = await ctl.create_game()

        await store.set(f"sessions/{session.session_id}/gameState", {"phase": "weird"})

        assert len(log.of(SessionErrorEvent)) == 1
        assert ctl.is_attached
        assert ctl.session == session
        await ctl.dispose()

    @pytest.mark.asyncio
    async def test_redelivery_is_idempotent(self, repo, store, alice, clock):
        ctl, _ = controller_for(repo, alice, clock)
        session = await ctl.create_game()
        tree = await store.get(f"sessions/{session.session_id}")

        await store.set(f"sessions/{session.session_id}", tree)

        assert ctl.session == session
        await ctl.dispose()


class TestLeaveAndDispose:
    """Tests for releasing the subscription."""

    @pytest.mark.asyncio
    async def test_leave_detaches_quietly(self, repo, store, alice, bob, clock):
        host, _ = controller_for(repo, alice, clock)
        guest, guest_log = controller_for(repo, bob, clock)
        await host.create_game()
        await guest.join_game(host.code)

        await guest.leave()

        assert not guest.is_attached
        assert guest_log.of(RemovedFromSession) == []
        assert store.subscription_count == 1
        await host.dispose()

    @pytest.mark.asyncio
    async def test_last_leave_deletes_session(self, repo, store, alice, clock):
        ctl, log = controller_for(repo, alice, clock)
        session = await ctl.create_game()

        await ctl.leave()

        assert await store.get(f"sessions/{session.session_id}") is None
        assert log.of(SessionEnded) == []
        assert store.subscription_count == 0

    @pytest.mark.asyncio
    async def test_context_manager_disposes(self, repo, store, alice, clock):
        async with ClientSessionController(repo, alice, clock=clock) as ctl:
            await ctl.create_game()
            assert store.subscription_count == 1

        assert store.subscription_count == 0
        assert not ctl.is_attached

    @pytest.mark.asyncio
    async def test_intent_without_session(self, repo, alice, clock):
        ctl, _ = controller_for(repo, alice, clock)

        with pytest.raises(SessionNotFoundError):
            await ctl.start_game()


class TestConnectivity:
    """Tests for offline gating."""

    @pytest.mark.asyncio
    async def test_offline_intents_fail_without_writes(self, repo, store, alice, bob, clock):
        monitor = ConnectivityMonitor()
        ctl, _ = controller_for(repo, alice, clock, connectivity=monitor)
        await ctl.create_game()
        await repo.join_game(ctl.code, bob)
        store.write_log.clear()

        monitor.set_online(False)
        with pytest.raises(NetworkError):
            await ctl.start_game()
        with pytest.raises(NetworkError):
            await ctl.add_reaction("🎉")

        assert store.write_log == []
        await ctl.dispose()

    def test_listeners_notified_on_change(self):
        monitor = ConnectivityMonitor()
        seen = []
        remove = monitor.add_listener(seen.append)

        monitor.set_online(False)
        monitor.set_online(False)
        monitor.set_online(True)
        remove()
        monitor.set_online(False)

        assert seen == [False, True]


class TestView:
    """Tests for the derived per-player view."""

    def test_guesser_view(self, questioning_session):
        view = SessionView(questioning_session, "bob")

        assert view.is_guesser
        assert not view.is_answerer
        assert not view.is_answerer_turn
        assert view.is_my_turn
        assert not view.is_host
        assert view.current_turn_player.display_name == "Bob"
        assert view.remaining_seconds(1010.0) == 20

    def test_answerer_view_in_setup(self, setup_session):
        view = SessionView(setup_session, "alice")

        assert view.is_answerer
        assert view.is_host
        assert view.is_answerer_turn
        assert view.is_my_turn
        assert view.remaining_seconds(5000.0) is None

    def test_latest_unanswered(self, questioning_session):
        from ..engine_core.state import Question

        gs = questioning_session.game_state._copy_with(questions=[
            Question("q1", "bob", "Bob", "Alive?", "Yes", True, 1.0),
            Question("q2", "carol", "Carol", "Grey?", timestamp=2.0),
        ])
        view = SessionView(questioning_session._copy_with(game_state=gs), "alice")

        assert view.latest_unanswered_question.question_id == "q2"

    def test_lobby_view(self, lobby):
        view = SessionView(lobby, "carol")

        assert view.phase is None
        assert view.winner is None
        assert not view.is_answerer_turn
        assert not view.is_my_turn
        assert view.round_number == 0


class TestTurnTimer:
    """Tests for the countdown and the timeout skip."""

    async def _round(self, repo, clock, *users):
        """Start a round with the word set; returns the code and the deal."""
        session = await repo.create_game(users[0])
        for user in users[1:]:
            await repo.join_game(session.session_id, user)
        code = session.session_id
        session = await repo.start_game(code, users[0].user_id)
        session = await repo.set_secret_word(
            code, session.game_state.answerer_id, "Animals", "Elephant"
        )
        return code, session.game_state

    @pytest.mark.asyncio
    async def test_ticks_while_questioning(self, repo, clock, alice, bob):
        code, gs = await self._round(repo, clock, alice, bob)
        me = alice if gs.answerer_id == "alice" else bob
        ctl, log = controller_for(repo, me, clock)
        await ctl.attach(code)

        await settle()

        ticks = log.of(TimerTick)
        assert ticks
        assert ticks[-1].remaining_seconds == 30
        await ctl.dispose()

    @pytest.mark.asyncio
    async def test_timeout_skips_once(self, repo, store, clock, alice, bob):
        code, gs = await self._round(repo, clock, alice, bob)
        guesser = alice if gs.current_turn_player_id == "alice" else bob
        ctl, _ = controller_for(repo, guesser, clock)
        await ctl.attach(code)
        store.write_log.clear()

        clock.advance(31)
        await settle()
        await settle()

        assert store.write_log == [("set", f"sessions/{code}/gameState")]
        assert ctl.session.game_state.turn_start_time == clock.now
        assert ctl.remaining_seconds == 30
        await ctl.dispose()

    @pytest.mark.asyncio
    async def test_other_clients_do_not_skip(self, repo, store, clock, alice, bob):
        code, gs = await self._round(repo, clock, alice, bob)
        answerer = alice if gs.answerer_id == "alice" else bob
        ctl, _ = controller_for(repo, answerer, clock)
        await ctl.attach(code)
        store.write_log.clear()

        clock.advance(45)
        await settle()

        assert store.write_log == []
        assert ctl.remaining_seconds == 0
        await ctl.dispose()

    @pytest.mark.asyncio
    async def test_timer_stops_at_game_over(self, repo, clock, alice, bob):
        code, gs = await self._round(repo, clock, alice, bob)
        guesser = alice if gs.current_turn_player_id == "alice" else bob
        ctl, log = controller_for(repo, guesser, clock)
        await ctl.attach(code)

        await ctl.make_guess("elephant")
        await settle()
        ticks_after = len(log.of(TimerTick))
        await settle()

        assert ctl.session.game_state.phase == GamePhase.GAME_OVER
        assert len(log.of(TimerTick)) == ticks_after
        assert ctl.remaining_seconds is None
        await ctl.dispose()
    @pytest.mark.asyncio
    async def test_failing_timer_is_logged(self, repo, clock, alice, bob, caplog):
        code, _ = await self._round(repo, clock, alice, bob)

        async def on_event(event):
            if isinstance(event, TimerTick):
                raise RuntimeError("display gone")

        ctl = ClientSessionController(repo, alice, on_event=on_event, clock=clock, tick_interval=TICK)
        with caplog.at_level(logging.ERROR, logger="guessgame.session.controller"):
            await ctl.attach(code)
            await settle()

        assert any("Turn timer" in r.getMessage() for r in caplog.records)
        await ctl.dispose()

    @pytest.mark.asyncio
    async def test_dispose_waits_for_timer(self, repo, clock, alice, bob):
        code, _ = await self._round(repo, clock, alice, bob)
        ctl, _ = controller_for(repo, alice, clock)
        await ctl.attach(code)
        await settle()
        timer = ctl._timer_task

        await ctl.dispose()

        assert timer is not None
        assert timer.done()
