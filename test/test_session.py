"""
Tests for the game session boundary, its listeners and the game log.
"""

from critocracy.engine.events import CARD_APPLIED, PLAYER_MOVED, ROLES_ASSIGNED, TURN_ENDED, TURN_STARTED
from critocracy.engine.game_log import GameLog, format_changes
from critocracy.engine.reducer import replay_from_actions
from critocracy.engine.session import GameSession
from critocracy.engine.utils import make_game_config

from conftest import SEATS, start_session, take_turn


class TestGameSession:
    """Entry points return results instead of raising."""

    def test_no_game(self, definitions):
        session = GameSession(definitions=definitions)
        result = session.roll(3)
        assert not result.ok
        assert result.error_kind == "illegal_action"
        assert session.get_game_state() is None
        assert session.available_actions() is None
        assert session.rankings() == []
        assert not session.is_over

    def test_empty_seat_list(self, definitions):
        result = GameSession(definitions=definitions).new_game([])
        assert not result.ok
        assert result.error_kind == "illegal_action"

    def test_loads_default_setup(self):
        session = GameSession()
        assert session.definitions.manifest["id"] == "classic"
        assert session.board.start == (152, 512)

    def test_new_game_uses_manifest_options(self, definitions):
        session = GameSession(definitions=definitions)
        session.new_game(SEATS, seed=1)
        assert session.state.config.die_sides == 6
        assert session.state.config.max_turns == 200

    def test_rejected_action_result(self, definitions):
        session = start_session(definitions)
        result = session.end_turn()
        assert not result.ok
        assert result.action.type == "end_turn"
        assert result.events == []
        assert result.to_dict()["error_kind"] == "illegal_action"

    def test_roll_result_carries_the_outcome(self, definitions):
        session = start_session(definitions)
        session.choose_path("purple")
        result = session.roll(3)
        assert result.ok
        assert result.outcome["position"] == [189, 408]
        assert result.outcome["stop_reason"] == "budget_exhausted"
        assert PLAYER_MOVED in [e.type for e in result.events]

    def test_game_state_snapshot(self, definitions):
        session = start_session(definitions)
        snapshot = session.get_game_state()
        assert snapshot["active_player"] == "p1"
        assert snapshot["available_actions"]["actions"] == ["choose_path"]
        assert sorted(snapshot["rankings"]) == ["p1", "p2", "p3", "p4"]

    def test_actions_are_recorded(self, definitions):
        session = start_session(definitions)
        take_turn(session, 2)
        types = [a.type for a in session.actions]
        assert types == [
            "select_roles", "determine_turn_order", "begin_play",
            "choose_path", "roll", "end_turn",
        ]


class TestListeners:
    """Subscribers see every accepted action."""

    def test_subscribe_and_unsubscribe(self, definitions):
        session = GameSession(definitions=definitions)
        seen = []
        unsubscribe = session.subscribe(lambda events, state: seen.append([e.type for e in events]))
        session.new_game(SEATS, seed=1)
        session.select_roles()
        assert seen and seen[0][0] == ROLES_ASSIGNED

        unsubscribe()
        session.determine_turn_order("seated")
        assert len(seen) == 1

    def test_rejected_actions_are_not_broadcast(self, definitions):
        session = start_session(definitions)
        seen = []
        session.subscribe(lambda events, state: seen.append(events))
        session.roll(3)
        assert seen == []

    def test_listeners_get_copies(self, definitions):
        session = start_session(definitions)

        def vandal(events, state):
            state.players.clear()
            for e in events:
                e.payload.clear()

        session.subscribe(vandal)
        result = session.choose_path("purple")
        assert len(session.state.players) == 4
        assert result.events[0].payload["color"] == "purple"

    def test_failing_listener_does_not_break_the_session(self, definitions):
        session = start_session(definitions)
        seen = []

        def broken(events, state):
            raise RuntimeError("animator crashed")

        session.subscribe(broken)
        session.subscribe(lambda events, state: seen.append(events))
        result = session.choose_path("purple")

        assert result.ok
        assert result.listener_errors == ["broken: RuntimeError('animator crashed')"]
        assert result.to_dict()["listener_errors"] == result.listener_errors
        assert session.state.player("p1").path_color == "purple"
        assert len(seen) == 1
        assert session.roll(3).ok


class TestGameLog:
    """Readable history and resource tracking."""

    def test_format_changes(self):
        assert format_changes({"money": 3, "influence": -2}) == "money: +3, influence: -2"

    def test_records_every_event(self, definitions):
        session = GameSession(definitions=definitions)
        log = GameLog()
        session.subscribe(log)
        session.new_game(SEATS, seed=1)
        session.setup_game("seated")
        take_turn(session, 2)
        assert [e.sequence for e in log.entries] == list(range(1, len(log.entries) + 1))
        assert log.filter(event_type=PLAYER_MOVED)[0].player_id == "p1"
        assert "rolls 2" in log.formatted(player_id="p1")

    def test_formatted_is_newest_first(self, definitions):
        session = GameSession(definitions=definitions)
        log = GameLog()
        session.subscribe(log)
        session.new_game(SEATS, seed=1)
        session.setup_game("seated")
        take_turn(session, 1)
        lines = log.formatted(limit=3).splitlines()
        assert len(lines) == 3
        assert lines[0] == f"[T2] {log.entries[-1].message}"

    def test_resource_history(self, definitions):
        session = GameSession(definitions=definitions)
        log = GameLog()
        session.subscribe(log)
        config = make_game_config(
            setup_id="classic",
            manifest=definitions.manifest,
            turn_order_policy="seated",
            draw_end_of_turn_cards=True,
        )
        session.new_game(SEATS, seed=1, config=config)
        session.setup_game()

        history = log.player_resource_history("p1")
        assert history == [{"turn": 0, "money": 8, "knowledge": 14, "influence": 0, "source": "start"}]

        take_turn(session, 1)
        applied = log.filter(player_id="p1", event_type=CARD_APPLIED)
        assert len(applied) == 1
        history = log.player_resource_history("p1")
        assert len(history) == 2
        assert history[1]["source"] == applied[0].payload["card_name"]
        assert {k: history[1][k] for k in ("money", "knowledge", "influence")} == session.state.player("p1").resources

    def test_filter_by_turn(self, definitions):
        session = GameSession(definitions=definitions)
        log = GameLog()
        session.subscribe(log)
        session.new_game(SEATS, seed=1)
        session.setup_game("seated")
        take_turn(session, 1)
        take_turn(session, 1)

        ended = log.filter(event_type=TURN_ENDED)
        assert [(e.turn, e.player_id) for e in ended] == [(1, "p1"), (2, "p2")]
        assert all(e.turn == e.payload["turn_number"] for e in ended)

        second_turn = log.filter(turn=2)
        assert {e.player_id for e in second_turn if e.player_id} == {"p2"}
        assert second_turn[0].event_type == TURN_STARTED
        assert second_turn[-1].event_type == TURN_ENDED
        assert log.filter(from_turn=2, to_turn=2) == second_turn

    def test_end_of_turn_card_is_logged_in_its_own_turn(self, definitions):
        session = GameSession(definitions=definitions)
        log = GameLog()
        session.subscribe(log)
        config = make_game_config(
            setup_id="classic",
            manifest=definitions.manifest,
            turn_order_policy="seated",
            draw_end_of_turn_cards=True,
        )
        session.new_game(SEATS, seed=1, config=config)
        session.setup_game()
        take_turn(session, 1)

        applied = log.filter(event_type=CARD_APPLIED)
        assert [(e.turn, e.player_id) for e in applied] == [(1, "p1")]
        assert log.player_resource_history("p1")[-1]["turn"] == 1

    def test_cleared_log_carries_on_from_the_given_state(self, definitions):
        session = start_session(definitions)
        take_turn(session, 1)
        log = GameLog()
        log.clear(session.state)
        session.subscribe(log)

        take_turn(session, 1)
        ended = log.filter(event_type=TURN_ENDED)
        assert [(e.turn, e.player_id) for e in ended] == [(2, "p2")]

    def test_clear(self, definitions):
        log = GameLog()
        session = GameSession(definitions=definitions)
        session.subscribe(log)
        session.new_game(SEATS, seed=1)
        session.setup_game("seated")
        log.clear()
        assert log.to_dict() == {"entries": [], "resource_history": {}}


class TestComputerPlayers:
    """Bots play legal moves through to the end of the game."""

    def test_bots_finish_a_game_and_the_log_replays(self, definitions):
        seats = [{"name": name, "is_human": False} for name in ("Ada", "Bo", "Cy", "Di")]
        session = GameSession(definitions=definitions)
        session.new_game(seats, seed=2024)
        assert session.setup_game().ok

        results = session.play_non_human()
        assert all(r.ok for r in results)
        assert session.is_over
        assert sorted(session.state.rankings) == ["p1", "p2", "p3", "p4"]

        initial = GameSession(definitions=definitions)
        initial.new_game(seats, seed=2024)
        replayed, _ = replay_from_actions(
            initial.state, session.actions, definitions.board, definitions.library, definitions.roles
        )
        assert replayed.to_dict() == session.state.to_dict()

    def test_bots_stop_for_a_human(self, definitions):
        seats = [{"name": "Ada", "is_human": False}, {"name": "Bo"}]
        session = GameSession(definitions=definitions)
        session.new_game(seats, seed=8)
        session.setup_game("seated")

        session.play_non_human()
        assert session.active_player_id == "p2"
        assert session.state.turn_phase == "awaiting_path_choice"
        assert session.play_non_human() == []
