"""
Decision making for non-human players.
Bots only pick a legal action; there is no strategy beyond that.
"""

import random

from critocracy.engine.state import GameState
from critocracy.engine.board import Board
from critocracy.engine.actions import (
    Action,
    acknowledge_card,
    choose_path,
    end_turn,
    resolve_choice,
    roll,
)


def _rng(state: GameState, player_id: str) -> random.Random:
    return random.Random(f"{state.seed}:bot:{state.turn_number}:{player_id}")


def is_bot_turn(state: GameState) -> bool:
    active = state.active_player
    return (
        active is not None
        and not active.is_human
        and state.phase in ("turn_in_progress", "turn_complete")
    )


def choose_action(state: GameState, board: Board) -> Action | None:
    """Legal action for the active non-human player, or None when it is not a bot's move."""
    if not is_bot_turn(state):
        return None
    player = state.active_player

    if state.phase == "turn_complete":
        return end_turn(player.id)

    if state.turn_phase == "awaiting_path_choice":
        return choose_path(player.id, _rng(state, player.id).choice(board.colors))
    if state.turn_phase == "awaiting_roll":
        return roll(player.id)
    if state.turn_phase == "awaiting_choice" and state.pending_choice is not None:
        option = _rng(state, player.id).choice(state.pending_choice.options)
        return resolve_choice(player.id, option.coordinates)
    if state.turn_phase == "awaiting_card_ack":
        return acknowledge_card(player.id)
    return None
