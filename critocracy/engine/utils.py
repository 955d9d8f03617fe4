"""
Utility functions for the game engine.
"""

import random
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from critocracy import config as defaults
from critocracy.engine import DRAW, END_OF_TURN_DECK
from critocracy.engine.state import GameState, GameConfig
from critocracy.engine.board import Board, load_board
from critocracy.engine.definitions import (
    CardLibrary,
    RoleDefinition,
    load_cards,
    load_manifest,
    load_roles,
)
from critocracy.engine.errors import ConfigurationError, IllegalAction


@dataclass
class GameDefinitions:
    """Everything static a game needs: board, decks, roles and the setup manifest."""
    board: Board
    library: CardLibrary
    roles: dict[str, RoleDefinition]
    manifest: dict[str, Any]


def load_game_definitions(setup_id: str | None = None, data_dir: Path | str | None = None) -> GameDefinitions:
    """
    Load and cross-check all content of a setup. Raises ConfigurationError.
    Every path with Draw spaces needs a deck of the same color.
    """
    setup_id = setup_id or defaults.DEFAULT_SETUP_ID
    board = load_board(setup_id, data_dir)
    roles = load_roles(setup_id, data_dir)
    library = load_cards(roles, setup_id, data_dir)
    manifest = load_manifest(setup_id, data_dir)

    needed = {s.path_color for s in board.spaces() if s.kind == DRAW}
    missing = needed - set(library.deck_ids())
    if missing:
        raise ConfigurationError(f"No card deck for Draw spaces on paths: {sorted(missing)}")
    if END_OF_TURN_DECK not in library.decks:
        raise ConfigurationError(f"No '{END_OF_TURN_DECK}' deck")
    return GameDefinitions(board=board, library=library, roles=roles, manifest=manifest)


def make_game_config(setup_id: str | None = None, manifest: dict | None = None, **overrides: Any) -> GameConfig:
    """
    Build a GameConfig: critocracy.config defaults, then the setup manifest,
    then explicit overrides (None values are ignored).
    """
    setup_id = setup_id or defaults.DEFAULT_SETUP_ID
    manifest = manifest if manifest is not None else load_manifest(setup_id)
    values: dict[str, Any] = {
        "setup_id": setup_id,
        "die_sides": defaults.DEFAULT_DIE_SIDES,
        "max_turns": defaults.DEFAULT_MAX_TURNS,
        "skip_finished_players": defaults.SKIP_FINISHED_PLAYERS,
        "reshuffle_exhausted_decks": defaults.RESHUFFLE_EXHAUSTED_DECKS,
        "draw_end_of_turn_cards": defaults.DRAW_END_OF_TURN_CARDS,
        "turn_order_policy": defaults.DEFAULT_TURN_ORDER_POLICY,
    }
    for key in ("die_sides", "max_turns"):
        if manifest.get(key) is not None:
            values[key] = int(manifest[key])
    for key, value in overrides.items():
        if key not in values:
            raise TypeError(f"Unknown game option: {key}")
        if value is not None:
            values[key] = value
    return GameConfig(**values)


def _normalize_seats(players: list[Any]) -> list[dict[str, Any]]:
    """
    Accepts names ("Ada") or dicts ({"id", "name", "is_human", "role"}).
    Ids default to p1, p2, ... and must be unique.
    """
    seats = []
    for i, raw in enumerate(players, start=1):
        if isinstance(raw, str):
            raw = {"name": raw}
        if not isinstance(raw, dict):
            raise IllegalAction(f"Malformed player entry: {raw!r}")
        seat_id = str(raw.get("id") or f"p{i}")
        seats.append({
            "id": seat_id,
            "name": str(raw.get("name") or seat_id),
            "is_human": bool(raw.get("is_human", True)),
            "role": raw.get("role") or None,
        })
    ids = [s["id"] for s in seats]
    if len(set(ids)) != len(ids):
        raise IllegalAction("Player ids must be unique")
    return seats


def initialize_game_state(
    players: list[Any],
    seed: int | None = None,
    game_config: GameConfig | None = None,
) -> GameState:
    """
    Create a new game in the setup phase.

    Args:
        players: Seat entries, names or {"id", "name", "is_human", "role"} dicts
        seed: Seed for every random decision of the game (dice, shuffles, roles);
            a fresh one is picked when omitted
        game_config: Rule options; defaults from critocracy.config and the manifest
    """
    if not players:
        raise IllegalAction("At least one player is required")
    if seed is None:
        seed = random.randrange(2**31)
    return GameState(
        phase="setup",
        config=game_config or make_game_config(),
        seed=int(seed),
        seats=_normalize_seats(players),
    )


def print_game_state(state: GameState, board: Board, verbose: bool = False):
    """
    Pretty-print the current game state.

    Args:
        state: Current game state
        board: Board graph (for distance to FINISH)
        verbose: If True, show deck piles and the pending choice/card
    """
    active = state.active_player
    print(f"\n{'='*60}")
    print(
        f"Turn {state.turn_number} | Round {state.round_number} | "
        f"Player: {active.name if active else '-'} | Phase: {state.phase}"
        + (f" ({state.turn_phase})" if state.turn_phase else ""))
    print(f"{'='*60}")

    for p in state.players:
        marker = "*" if active is not None and p.id == active.id else " "
        if p.finished:
            where = f"FINISHED #{p.finish_position}"
        else:
            where = f"{list(p.position)} on {p.path_color or 'START'}, {board.steps_to_finish(p.position)} to go"
        extra = f", skips {p.skip_turns}" if p.skip_turns else ""
        print(f"{marker} {p.name} ({p.role}): {where}{extra}")
        resource_str = ", ".join(f"{k}: {v}" for k, v in p.resources.items())
        print(f"    {resource_str}")

    if verbose:
        print(f"\n{'Decks':.<40}")
        for deck_id, deck in state.decks.items():
            print(f"  {deck_id}: {len(deck.remaining)} left, {len(deck.discard)} discarded")
        if state.pending_choice:
            opts = ", ".join(f"{list(o.coordinates)} ({o.path_color})" for o in state.pending_choice.options)
            print(f"  Pending choice: {opts}; {state.pending_choice.remaining_budget} steps left")
        if state.pending_card:
            print(f"  Pending card: {state.pending_card.card_id}")
    if state.rankings:
        print(f"\n{'Rankings':.<40}")
        for place, pid in enumerate(state.rankings, start=1):
            p = state.player(pid)
            print(f"  {place}. {p.name if p else pid}")
    print()
