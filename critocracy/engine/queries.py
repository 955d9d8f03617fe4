"""
Query functions for UI integration.
These functions help the UI understand what actions are available
without mutating game state.
"""

from dataclasses import dataclass
from typing import Any

from critocracy.engine.state import GameState
from critocracy.engine.actions import Action
from critocracy.engine.board import Board
from critocracy.engine.definitions import CardLibrary, RoleDefinition
from critocracy.engine.errors import GameError
from critocracy.engine.movement import preview_destinations
from critocracy.engine.reducer import (
    PHASE_ALLOWED_ACTIONS,
    SETUP_ACTIONS,
    TURN_PHASE_ALLOWED_ACTIONS,
    apply_action,
    rank_players,
)


@dataclass
class ValidationResult:
    """Result of action validation."""
    valid: bool
    error: str | None = None
    error_kind: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "error": self.error, "error_kind": self.error_kind}


# ===== Action Validation =====

def validate_action(
    state: GameState,
    action: Action,
    board: Board,
    library: CardLibrary,
    role_defs: dict[str, RoleDefinition],
) -> ValidationResult:
    """
    Validate an action without applying it.
    The reducer works on a copy, so a trial application is side-effect free.
    """
    try:
        apply_action(state, action, board, library, role_defs)
    except GameError as e:
        return ValidationResult(False, str(e), e.kind)
    return ValidationResult(True)


def get_available_action_types(state: GameState) -> list[str]:
    """Get action types available in the current phase and sub-phase."""
    if state.phase == "game_over":
        return []
    allowed = list(PHASE_ALLOWED_ACTIONS.get(state.phase, []))
    if state.phase == "turn_in_progress":
        allowed = [a for a in allowed if a in TURN_PHASE_ALLOWED_ACTIONS.get(state.turn_phase or "", [])]
    return allowed


def get_available_actions(state: GameState, board: Board) -> dict[str, Any]:
    """
    What the UI can offer right now: action types, who may take them,
    and the arguments they accept (path colors, branch options).
    """
    types = get_available_action_types(state)
    active = state.active_player
    out: dict[str, Any] = {
        "phase": state.phase,
        "turn_phase": state.turn_phase,
        "player_id": None if all(t in SETUP_ACTIONS for t in types) or active is None else active.id,
        "actions": types,
    }
    if "choose_path" in types:
        out["path_colors"] = board.colors
    if "roll" in types:
        out["die_sides"] = state.config.die_sides
    if "resolve_choice" in types and state.pending_choice is not None:
        out["options"] = [o.to_dict() for o in state.pending_choice.options]
        out["remaining_budget"] = state.pending_choice.remaining_budget
    if "acknowledge_card" in types and state.pending_card is not None:
        out["pending_card"] = state.pending_card.to_dict()
    return out


def get_player_ranking(state: GameState, board: Board) -> list[dict[str, Any]]:
    """Current standings (final rankings once the game is over)."""
    order = state.rankings if state.phase == "game_over" and state.rankings else rank_players(state, board)
    ranking = []
    for place, player_id in enumerate(order, start=1):
        p = state.player(player_id)
        if p is None:
            continue
        try:
            steps_left = board.steps_to_finish(p.position)
        except KeyError:
            steps_left = None
        ranking.append({
            "place": place,
            "player_id": p.id,
            "name": p.name,
            "role": p.role,
            "finished": p.finished,
            "finish_position": p.finish_position,
            "steps_to_finish": steps_left,
            "resources": dict(p.resources),
        })
    return ranking


def get_move_preview(state: GameState, board: Board, steps: int | None = None) -> dict[str, Any]:
    """
    Spaces the active player could land on with a roll, for highlighting.
    steps=None previews every face of the die.
    """
    player = state.active_player
    if player is None or player.finished:
        return {"player_id": player.id if player else None, "destinations": {}}
    faces = [steps] if steps is not None else list(range(1, state.config.die_sides + 1))
    return {
        "player_id": player.id,
        "destinations": {
            str(n): [list(c) for c in preview_destinations(board, player.position, player.path_color, n)]
            for n in faces
        },
    }


def get_game_summary(state: GameState, board: Board) -> dict[str, Any]:
    """
    Get a summary of the current game state for UI display.
    """
    active = state.active_player
    return {
        "phase": state.phase,
        "turn_phase": state.turn_phase,
        "turn_number": state.turn_number,
        "round_number": state.round_number,
        "active_player": active.id if active else None,
        "last_roll": state.last_roll,
        "finish_order": list(state.finish_order),
        "available_actions": get_available_action_types(state),
        "rankings": [r["player_id"] for r in get_player_ranking(state, board)],
    }
