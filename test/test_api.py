"""
Tests for the REST API, against an in-memory database.
"""

import pytest
from fastapi.testclient import TestClient

from critocracy.api import main
from critocracy.api.database import SessionLocal
from critocracy.api.models import GameRecord


@pytest.fixture(scope="module")
def client():
    with TestClient(main.app) as c:
        yield c


def new_game(client, **overrides):
    body = {
        "players": [
            {"name": "Ada", "role": "Historian"},
            {"name": "Bo", "is_human": False},
        ],
        "seed": 5,
        "turn_order_policy": "seated",
        "draw_end_of_turn_cards": False,
    }
    body.update(overrides)
    return client.post("/game", json=body)


class TestDefinitions:
    """Static content endpoints."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["message"] == "Critocracy API"

    def test_setups(self, client):
        setups = client.get("/setups").json()["setups"]
        assert {"id": "classic", "display_name": "Critocracy (classic board)"} in setups

    def test_definitions(self, client):
        data = client.get("/definitions").json()
        assert data["setup"]["id"] == "classic"
        assert data["board"]["start"] == [152, 512]
        assert set(data["roles"]) == {
            "Historian", "Revolutionary", "Colonialist", "Entrepreneur", "Politician", "Artist",
        }
        assert len(data["cards"]["end_of_turn"]) == 25


class TestGamePlay:
    """A game driven through the endpoints."""

    def test_create_game(self, client):
        response = new_game(client)
        assert response.status_code == 200
        data = response.json()
        assert data["game_id"]
        state = data["state"]
        assert state["phase"] == "turn_in_progress"
        assert state["turn_phase"] == "awaiting_path_choice"
        assert state["active_player"] == "p1"
        assert state["players"][0]["role"] == "Historian"

    def test_create_game_without_setup(self, client):
        data = new_game(client, auto_setup=False).json()
        assert data["state"]["phase"] == "setup"
        assert data["state"]["available_actions"]["actions"] == ["select_roles"]

        data = client.post("/game/setup").json()
        assert data["state"]["phase"] == "turn_in_progress"

    def test_full_turn(self, client):
        new_game(client)

        available = client.get("/game/available-actions").json()
        assert available["actions"] == ["choose_path"]
        assert "purple" in available["path_colors"]

        assert client.post("/game/path", json={"color": "purple"}).status_code == 200
        available = client.get("/game/available-actions").json()
        assert available["actions"] == ["roll"]
        assert available["preview"]["3"] == [[189, 408]]

        data = client.post("/game/roll", json={"value": 3}).json()
        assert data["outcome"]["position"] == [189, 408]
        assert data["outcome"]["stop_reason"] == "budget_exhausted"
        assert data["state"]["phase"] == "turn_complete"

        data = client.post("/game/end-turn", json={}).json()
        assert data["state"]["active_player"] == "p2"

        data = client.post("/game/autoplay", json={}).json()
        assert data["error"] is None
        assert data["actions_taken"] > 0
        assert data["state"]["active_player"] == "p1"

        game = client.get("/game").json()
        assert [r["place"] for r in game["rankings"]] == [1, 2]
        assert {r["player_id"] for r in game["rankings"]} == {"p1", "p2"}

    def test_rejected_action(self, client):
        new_game(client)
        response = client.post("/game/roll", json={"value": 3})
        assert response.status_code == 400
        assert response.json()["error"] == "illegal_action"

    def test_choice_without_a_crossroads(self, client):
        new_game(client)
        client.post("/game/path", json={"color": "purple"})
        client.post("/game/roll", json={"value": 3})
        response = client.post("/game/choice", json={"coordinates": [566, 273]})
        assert response.status_code == 400
        assert response.json()["error"] == "illegal_action"

    def test_malformed_choice_body(self, client):
        new_game(client)
        response = client.post("/game/choice", json={"coordinates": "north"})
        assert response.status_code == 422

    def test_wrong_player(self, client):
        new_game(client)
        response = client.post("/game/path", json={"color": "purple", "player_id": "p2"})
        assert response.status_code == 400
        assert response.json()["error"] == "illegal_action"

    def test_too_many_players(self, client):
        response = new_game(client, players=[{"name": f"P{i}"} for i in range(7)])
        assert response.status_code == 400
        assert response.json()["error"] == "not_enough_roles"

    def test_unknown_setup(self, client):
        response = new_game(client, setup_id="does-not-exist")
        assert response.status_code == 400
        assert response.json()["error"] == "configuration_error"

    def test_log(self, client):
        new_game(client)
        client.post("/game/path", json={"color": "blue"})
        data = client.get("/game/log", params={"player_id": "p1"}).json()
        assert any(e["event_type"] == "path_chosen" for e in data["entries"])
        assert "blue path" in data["formatted"]
        assert data["resource_history"]["p1"][0]["source"] == "start"


class TestPersistence:
    """Games are saved after each action and resumed at startup."""

    def test_game_is_saved(self, client):
        game_id = new_game(client).json()["game_id"]
        client.post("/game/path", json={"color": "pink"})

        db = SessionLocal()
        try:
            row = db.query(GameRecord).filter(GameRecord.id == game_id).first()
            assert row.status == "active"
            assert row.seed == 5
            assert '"path_color": "pink"' in row.game_state
        finally:
            db.close()

    def test_previous_game_is_abandoned(self, client):
        first = new_game(client).json()["game_id"]
        new_game(client)

        db = SessionLocal()
        try:
            row = db.query(GameRecord).filter(GameRecord.id == first).first()
            assert row.status == "abandoned"
        finally:
            db.close()

    def test_resume_active_game(self, client):
        game_id = new_game(client).json()["game_id"]
        client.post("/game/path", json={"color": "cyan"})
        before = client.get("/game").json()["state"]

        db = SessionLocal()
        try:
            assert main.load_active_game(db)
        finally:
            db.close()
        assert main.active_game_id == game_id
        assert client.get("/game").json()["state"] == before
