"""
Action definitions for the game.
Actions are immutable, deterministic instructions; randomness (dice, shuffles)
is derived from the game seed by the reducer, or supplied in the payload.
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class Action:
    """Base action class. All actions have a type, player, and payload."""
    type: str  # e.g., "roll", "resolve_choice", "end_turn"
    player_id: str | None  # acting player; None for game-level setup actions
    payload: dict  # Action-specific data

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "player_id": self.player_id, "payload": self.payload}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Action":
        return cls(
            type=str(data.get("type") or ""),
            player_id=data.get("player_id"),
            payload=dict(data.get("payload") or {}),
        )


# Setup actions (no acting player)

def select_roles() -> Action:
    """
    Create players from the seats: requested roles are kept, the rest are dealt
    from the unused roles in seeded order.
    """
    return Action(type="select_roles", player_id=None, payload={})


def determine_turn_order(policy: str | None = None) -> Action:
    """
    Fix the order of play. policy: "random" (seeded shuffle) or "seated"
    (order of the seats). None uses the game config.
    """
    payload = {"policy": policy} if policy else {}
    return Action(type="determine_turn_order", player_id=None, payload=payload)


def begin_play() -> Action:
    """Start the first turn."""
    return Action(type="begin_play", player_id=None, payload={})


# Turn actions

def choose_path(player_id: str, color: str) -> Action:
    """
    Commit to a starting path while standing on START.
    Example: choose_path("p1", "purple")
    """
    return Action(type="choose_path", player_id=player_id, payload={"color": color})


def roll(player_id: str, value: int | None = None) -> Action:
    """
    Roll the die and move. value is the rolled number (1..die_sides); when
    omitted the reducer derives it from the game seed.
    """
    payload = {"value": value} if value is not None else {}
    return Action(type="roll", player_id=player_id, payload=payload)


def resolve_choice(player_id: str, coordinates: tuple[int, int] | list[int]) -> Action:
    """
    Pick a branch at a choicepoint.
    Example: resolve_choice("p1", (566, 273))
    """
    coords = list(coordinates) if isinstance(coordinates, (list, tuple)) else coordinates
    return Action(type="resolve_choice", player_id=player_id, payload={"coordinates": coords})


def acknowledge_card(player_id: str) -> Action:
    """Apply the drawn path card and finish the move."""
    return Action(type="acknowledge_card", player_id=player_id, payload={})


def end_turn(player_id: str) -> Action:
    """End the active player's turn: draw the end-of-turn card, then pass play on."""
    return Action(type="end_turn", player_id=player_id, payload={})
