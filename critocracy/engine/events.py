"""
Game events for UI hooks and logging.
Events describe what happened during action processing.
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class GameEvent:
    """Base event class. All events have a type and payload."""
    type: str
    payload: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "payload": self.payload}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameEvent":
        return cls(type=data["type"], payload=data["payload"])


# ===== Event Type Constants =====

# Setup events
ROLES_ASSIGNED = "roles_assigned"
TURN_ORDER_DETERMINED = "turn_order_determined"

# Phase/Turn events
PHASE_CHANGED = "phase_changed"
TURN_STARTED = "turn_started"
TURN_SKIPPED = "turn_skipped"
TURN_ENDED = "turn_ended"

# Movement events
PATH_CHOSEN = "path_chosen"
DICE_ROLLED = "dice_rolled"
PLAYER_MOVED = "player_moved"
CHOICE_REQUIRED = "choice_required"
BRANCH_CHOSEN = "branch_chosen"

# Card events
CARD_DRAWN = "card_drawn"
DECK_RESHUFFLED = "deck_reshuffled"
CARD_APPLIED = "card_applied"
RESOURCES_CHANGED = "resources_changed"

# Progress events
PLAYER_FINISHED = "player_finished"
GAME_OVER = "game_over"


# ===== Event Factory Functions =====

def roles_assigned(assignments: dict[str, str]) -> GameEvent:
    return GameEvent(ROLES_ASSIGNED, {
        "assignments": assignments,  # player_id -> role id
    })


def turn_order_determined(order: list[str], policy: str) -> GameEvent:
    return GameEvent(TURN_ORDER_DETERMINED, {
        "order": order,
        "policy": policy,
    })


def phase_changed(old_phase: str, new_phase: str, player_id: str | None) -> GameEvent:
    return GameEvent(PHASE_CHANGED, {
        "old_phase": old_phase,
        "new_phase": new_phase,
        "player_id": player_id,
    })


def turn_started(turn_number: int, round_number: int, player_id: str) -> GameEvent:
    return GameEvent(TURN_STARTED, {
        "turn_number": turn_number,
        "round_number": round_number,
        "player_id": player_id,
    })


def turn_skipped(player_id: str, skip_turns_left: int) -> GameEvent:
    """Emitted when a player loses a turn to a skip-turn effect."""
    return GameEvent(TURN_SKIPPED, {
        "player_id": player_id,
        "skip_turns_left": skip_turns_left,
    })


def turn_ended(turn_number: int, player_id: str) -> GameEvent:
    return GameEvent(TURN_ENDED, {
        "turn_number": turn_number,
        "player_id": player_id,
    })


def path_chosen(player_id: str, color: str) -> GameEvent:
    return GameEvent(PATH_CHOSEN, {
        "player_id": player_id,
        "color": color,
    })


def dice_rolled(player_id: str, value: int, die_sides: int) -> GameEvent:
    return GameEvent(DICE_ROLLED, {
        "player_id": player_id,
        "value": value,
        "die_sides": die_sides,
    })


def player_moved(player_id: str, outcome: dict[str, Any]) -> GameEvent:
    """outcome is MoveOutcome.to_dict(): start, position, trail, stop_reason, ..."""
    return GameEvent(PLAYER_MOVED, {
        "player_id": player_id,
        "from": outcome["start"],
        "to": outcome["position"],
        "trail": outcome["trail"],
        "steps_taken": outcome["steps_taken"],
        "path_color": outcome["path_color"],
        "stop_reason": outcome["stop_reason"],
    })


def choice_required(
    player_id: str,
    position: list[int],
    options: list[dict[str, Any]],
    remaining_budget: int,
) -> GameEvent:
    return GameEvent(CHOICE_REQUIRED, {
        "player_id": player_id,
        "position": position,
        "options": options,  # [{"coordinates": [x, y], "path_color": str}, ...]
        "remaining_budget": remaining_budget,
    })


def branch_chosen(player_id: str, coordinates: list[int], path_color: str) -> GameEvent:
    return GameEvent(BRANCH_CHOSEN, {
        "player_id": player_id,
        "coordinates": coordinates,
        "path_color": path_color,
    })


def card_drawn(player_id: str, deck: str, card_id: str, card_name: str, description: str) -> GameEvent:
    return GameEvent(CARD_DRAWN, {
        "player_id": player_id,
        "deck": deck,
        "card_id": card_id,
        "card_name": card_name,
        "description": description,
    })


def deck_reshuffled(deck: str, shuffle_count: int) -> GameEvent:
    return GameEvent(DECK_RESHUFFLED, {
        "deck": deck,
        "shuffle_count": shuffle_count,
    })


def card_applied(delta: dict[str, Any]) -> GameEvent:
    """delta is ResourceDelta.to_dict()."""
    return GameEvent(CARD_APPLIED, dict(delta))


def resources_changed(
    player_id: str,
    resource: str,
    old_value: int,
    new_value: int,
    reason: str,
) -> GameEvent:
    return GameEvent(RESOURCES_CHANGED, {
        "player_id": player_id,
        "resource": resource,
        "old_value": old_value,
        "new_value": new_value,
        "change": new_value - old_value,
        "reason": reason,
    })


def player_finished(player_id: str, finish_position: int) -> GameEvent:
    return GameEvent(PLAYER_FINISHED, {
        "player_id": player_id,
        "finish_position": finish_position,
    })


def game_over(rankings: list[str], reason: str) -> GameEvent:
    """reason: "all_finished" or "turn_limit"."""
    return GameEvent(GAME_OVER, {
        "rankings": rankings,
        "reason": reason,
    })
