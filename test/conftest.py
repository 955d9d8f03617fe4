"""
Shared fixtures for the Critocracy tests.

Movement and card tests use the classic setup with explicit die values, so
nothing here depends on the seeded random streams.
"""

import os

# The API module binds its database engine at import time
os.environ["DATABASE_URL"] = "sqlite://"

import pytest

from critocracy.engine.session import GameSession
from critocracy.engine.state import Player
from critocracy.engine.utils import load_game_definitions, make_game_config


START = (152, 512)
FINISH = (1384, 512)

SEATS = [
    {"name": "Ada", "role": "Historian"},
    {"name": "Bo", "role": "Revolutionary"},
    {"name": "Cy", "role": "Colonialist"},
    {"name": "Di", "role": "Entrepreneur"},
]


@pytest.fixture(scope="session")
def definitions():
    return load_game_definitions("classic")


@pytest.fixture(scope="session")
def board(definitions):
    return definitions.board


@pytest.fixture(scope="session")
def library(definitions):
    return definitions.library


@pytest.fixture(scope="session")
def roles(definitions):
    return definitions.roles


def make_player(position=START, path_color=None, role="Colonialist", **kwargs) -> Player:
    """A standalone player record for resolver and card tests."""
    resources = kwargs.pop("resources", {"money": 14, "knowledge": 0, "influence": 8})
    return Player(
        id=kwargs.pop("id", "p1"),
        name=kwargs.pop("name", "Ada"),
        is_human=kwargs.pop("is_human", True),
        role=role,
        position=tuple(position),
        path_color=path_color,
        resources=dict(resources),
        **kwargs,
    )


def start_session(definitions, seats=None, seed=11, **overrides) -> GameSession:
    """
    A game that has been set up with seated turn order and is waiting on the
    first player. End-of-turn cards are off unless an override turns them on.
    """
    overrides.setdefault("draw_end_of_turn_cards", False)
    config = make_game_config(
        setup_id="classic",
        manifest=definitions.manifest,
        turn_order_policy="seated",
        **overrides,
    )
    session = GameSession(definitions=definitions)
    result = session.new_game(seats or SEATS, seed=seed, config=config)
    assert result.ok, result.error
    result = session.setup_game()
    assert result.ok, result.error
    return session


def take_turn(session: GameSession, value: int, color: str = "purple"):
    """Choose a path if needed, roll, apply any path card and end the turn."""
    if session.state.turn_phase == "awaiting_path_choice":
        assert session.choose_path(color).ok
    result = session.roll(value)
    assert result.ok, result.error
    if session.state.turn_phase == "awaiting_card_ack":
        assert session.acknowledge_card().ok
    if session.state.phase == "turn_complete":
        result = session.end_turn()
        assert result.ok, result.error
    return result


def place(session: GameSession, player_id: str, position, color: str = "purple") -> None:
    """Move a player directly; fixes up the sub-phase when it is their turn."""
    player = session.state.player(player_id)
    player.position = tuple(position)
    player.path_color = color
    if session.active_player_id == player_id and session.state.turn_phase == "awaiting_path_choice":
        session.state.turn_phase = "awaiting_roll"
