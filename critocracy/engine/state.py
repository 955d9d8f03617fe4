"""
Game state representation.
The reducer works on deep copies; a rejected action never touches the state it was given.
Includes JSON serialization for save/load functionality.
"""

import json
from dataclasses import dataclass, field
from copy import deepcopy
from typing import Any

from critocracy.engine import RESOURCE_KINDS
from critocracy.engine.definitions import Coordinate
from critocracy.engine.movement import ChoiceOption


def _int(v: Any, default: int) -> int:
    try:
        return int(v) if v is not None else default
    except (TypeError, ValueError):
        return default


def _coord(value: Any, default: Coordinate) -> Coordinate:
    """Parse a stored [x, y] pair; fall back to default for anything malformed."""
    if isinstance(value, (list, tuple)) and len(value) == 2:
        try:
            return (int(value[0]), int(value[1]))
        except (TypeError, ValueError):
            return default
    return default


def _ensure_str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(x) for x in value]


@dataclass
class Player:
    """A seat in the game: role, position on the board, resources and progress."""
    id: str
    name: str
    is_human: bool
    role: str | None  # role id, e.g. "Colonialist"; None before role selection
    position: Coordinate
    path_color: str | None = None  # committed path; None while still at START
    resources: dict[str, int] = field(default_factory=dict)  # resource kind -> amount (may go negative)
    finished: bool = False
    finish_position: int | None = None  # 1 for first to finish
    skip_turns: int = 0  # turns to lose before this player moves again

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "is_human": self.is_human,
            "role": self.role,
            "position": list(self.position),
            "path_color": self.path_color,
            "resources": dict(self.resources),
            "finished": self.finished,
            "finish_position": self.finish_position,
            "skip_turns": self.skip_turns,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Player":
        if not isinstance(data, dict):
            data = {}
        res = data.get("resources")
        if not isinstance(res, dict):
            res = {}
        fp = data.get("finish_position")
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or data.get("id") or ""),
            is_human=bool(data.get("is_human", True)),
            role=data.get("role") if isinstance(data.get("role"), str) else None,
            position=_coord(data.get("position"), (0, 0)),
            path_color=data.get("path_color") if isinstance(data.get("path_color"), str) else None,
            resources={kind: _int(res.get(kind), 0) for kind in RESOURCE_KINDS},
            finished=bool(data.get("finished", False)),
            finish_position=_int(fp, 0) if fp is not None else None,
            skip_turns=max(0, _int(data.get("skip_turns"), 0)),
        )


@dataclass
class DeckState:
    """Draw pile and discard pile of one deck, as card ids."""
    deck_id: str
    remaining: list[str] = field(default_factory=list)  # top of the deck is index 0
    discard: list[str] = field(default_factory=list)
    last_drawn: str | None = None
    shuffle_count: int = 0  # number of shuffles so far, feeds the shuffle seed

    def to_dict(self) -> dict[str, Any]:
        return {
            "deck_id": self.deck_id,
            "remaining": list(self.remaining),
            "discard": list(self.discard),
            "last_drawn": self.last_drawn,
            "shuffle_count": self.shuffle_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeckState":
        if not isinstance(data, dict):
            data = {}
        return cls(
            deck_id=str(data.get("deck_id") or ""),
            remaining=_ensure_str_list(data.get("remaining")),
            discard=_ensure_str_list(data.get("discard")),
            last_drawn=data.get("last_drawn") if isinstance(data.get("last_drawn"), str) else None,
            shuffle_count=_int(data.get("shuffle_count"), 0),
        )


@dataclass
class PendingChoice:
    """A move halted at a choicepoint, waiting for the player to pick a branch."""
    player_id: str
    position: Coordinate
    options: list[ChoiceOption]
    remaining_budget: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_id": self.player_id,
            "position": list(self.position),
            "options": [o.to_dict() for o in self.options],
            "remaining_budget": self.remaining_budget,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PendingChoice":
        if not isinstance(data, dict):
            data = {}
        opts = data.get("options")
        if not isinstance(opts, list):
            opts = []
        return cls(
            player_id=str(data.get("player_id") or ""),
            position=_coord(data.get("position"), (0, 0)),
            options=[ChoiceOption.from_dict(o) for o in opts if isinstance(o, dict)],
            remaining_budget=max(0, _int(data.get("remaining_budget"), 0)),
        )


@dataclass
class PendingCard:
    """A path card drawn on a Draw space, applied when the player acknowledges it."""
    player_id: str
    card_id: str
    deck: str

    def to_dict(self) -> dict[str, Any]:
        return {"player_id": self.player_id, "card_id": self.card_id, "deck": self.deck}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PendingCard":
        if not isinstance(data, dict):
            data = {}
        return cls(
            player_id=str(data.get("player_id") or ""),
            card_id=str(data.get("card_id") or ""),
            deck=str(data.get("deck") or ""),
        )


@dataclass
class GameConfig:
    """Per-game rule options. Defaults come from critocracy.config and the setup manifest."""
    setup_id: str
    die_sides: int = 6
    max_turns: int | None = None  # None = play until everyone finishes
    skip_finished_players: bool = True
    reshuffle_exhausted_decks: bool = True
    draw_end_of_turn_cards: bool = True
    turn_order_policy: str = "random"  # "random" or "seated"

    def to_dict(self) -> dict[str, Any]:
        return {
            "setup_id": self.setup_id,
            "die_sides": self.die_sides,
            "max_turns": self.max_turns,
            "skip_finished_players": self.skip_finished_players,
            "reshuffle_exhausted_decks": self.reshuffle_exhausted_decks,
            "draw_end_of_turn_cards": self.draw_end_of_turn_cards,
            "turn_order_policy": self.turn_order_policy,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameConfig":
        if not isinstance(data, dict):
            data = {}
        mt = data.get("max_turns")
        return cls(
            setup_id=str(data.get("setup_id") or "classic"),
            die_sides=max(1, _int(data.get("die_sides"), 6)),
            max_turns=_int(mt, 0) if mt is not None else None,
            skip_finished_players=bool(data.get("skip_finished_players", True)),
            reshuffle_exhausted_decks=bool(data.get("reshuffle_exhausted_decks", True)),
            draw_end_of_turn_cards=bool(data.get("draw_end_of_turn_cards", True)),
            turn_order_policy=str(data.get("turn_order_policy") or "random"),
        )


@dataclass
class GameState:
    """Complete game state."""
    phase: str  # "setup", "role_selection", "turn_order", "turn_in_progress", "turn_complete", "game_over"
    config: GameConfig
    seed: int
    # Seats requested before role selection: [{"id", "name", "is_human", "role"}]
    seats: list[dict[str, Any]] = field(default_factory=list)
    # Players in turn order (after determine_turn_order)
    players: list[Player] = field(default_factory=list)
    # Sub-phase within turn_in_progress: "awaiting_path_choice", "awaiting_roll",
    # "awaiting_choice", "awaiting_card_ack"; None otherwise
    turn_phase: str | None = None
    active_index: int = 0
    turn_number: int = 0  # turns started so far (skipped turns excluded)
    round_number: int = 0
    roll_count: int = 0  # dice rolls so far, feeds the roll seed
    last_roll: int | None = None
    # deck_id -> DeckState
    decks: dict[str, DeckState] = field(default_factory=dict)
    pending_choice: PendingChoice | None = None
    pending_card: PendingCard | None = None
    # Player ids in the order they reached FINISH
    finish_order: list[str] = field(default_factory=list)
    # Final standings (player ids), filled at game over
    rankings: list[str] = field(default_factory=list)
    # Last movement outcome (MoveOutcome.to_dict()), for UI highlighting
    last_outcome: dict[str, Any] | None = None

    def copy(self) -> "GameState":
        """Return a deep copy of this game state."""
        return deepcopy(self)

    @property
    def active_player(self) -> Player | None:
        if not self.players or not (0 <= self.active_index < len(self.players)):
            return None
        return self.players[self.active_index]

    def player(self, player_id: str) -> Player | None:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    # ===== Serialization Methods =====

    def to_dict(self) -> dict[str, Any]:
        """Convert GameState to a dictionary for JSON serialization."""
        active = self.active_player
        return {
            "phase": self.phase,
            "turn_phase": self.turn_phase,
            "config": self.config.to_dict(),
            "seed": self.seed,
            "seats": [dict(s) for s in self.seats],
            "players": [p.to_dict() for p in self.players],
            "active_index": self.active_index,
            "active_player": active.id if active else None,
            "turn_number": self.turn_number,
            "round_number": self.round_number,
            "roll_count": self.roll_count,
            "last_roll": self.last_roll,
            "decks": {did: d.to_dict() for did, d in self.decks.items()},
            "pending_choice": self.pending_choice.to_dict() if self.pending_choice else None,
            "pending_card": self.pending_card.to_dict() if self.pending_card else None,
            "finish_order": list(self.finish_order),
            "rankings": list(self.rankings),
            "last_outcome": self.last_outcome,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameState":
        """Create GameState from a dictionary (missing fields fall back to defaults)."""
        players = data.get("players") or []
        if not isinstance(players, list):
            players = []
        seats = data.get("seats") or []
        if not isinstance(seats, list):
            seats = []
        decks = data.get("decks") or {}
        if not isinstance(decks, dict):
            decks = {}
        lr = data.get("last_roll")
        return cls(
            phase=str(data.get("phase") or "setup"),
            config=GameConfig.from_dict(data.get("config") or {}),
            seed=_int(data.get("seed"), 0),
            seats=[dict(s) for s in seats if isinstance(s, dict)],
            players=[Player.from_dict(p) for p in players if isinstance(p, dict)],
            turn_phase=data.get("turn_phase") if isinstance(data.get("turn_phase"), str) else None,
            active_index=_int(data.get("active_index"), 0),
            turn_number=_int(data.get("turn_number"), 0),
            round_number=_int(data.get("round_number"), 0),
            roll_count=_int(data.get("roll_count"), 0),
            last_roll=_int(lr, 0) if lr is not None else None,
            decks={
                str(did): DeckState.from_dict(d)
                for did, d in decks.items()
                if isinstance(d, dict)
            },
            pending_choice=PendingChoice.from_dict(data["pending_choice"])
            if data.get("pending_choice") else None,
            pending_card=PendingCard.from_dict(data["pending_card"])
            if data.get("pending_card") else None,
            finish_order=_ensure_str_list(data.get("finish_order")),
            rankings=_ensure_str_list(data.get("rankings")),
            last_outcome=data.get("last_outcome") if isinstance(data.get("last_outcome"), dict) else None,
        )

    def to_json(self, indent: int = 2) -> str:
        """Serialize GameState to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> "GameState":
        """Deserialize GameState from a JSON string."""
        return cls.from_dict(json.loads(json_str))

    def save(self, filepath: str) -> None:
        """Save GameState to a JSON file."""
        with open(filepath, "w") as f:
            f.write(self.to_json())

    @classmethod
    def load(cls, filepath: str) -> "GameState":
        """Load GameState from a JSON file."""
        with open(filepath, "r") as f:
            return cls.from_json(f.read())
