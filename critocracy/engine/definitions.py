"""
Static definitions for spaces, paths, roles and cards.
All setup data lives under data/setups/<setup_id>/: board.json, roles.json, cards.json,
and optional manifest.json (display_name, die_sides, max_turns).
Content is validated when it is loaded; malformed content raises ConfigurationError.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from critocracy.engine import RESOURCE_KINDS, END_OF_TURN_DECK
from critocracy.engine.errors import ConfigurationError

DATA_DIR = Path(__file__).parent.parent / "data"
SETUPS_DIR = DATA_DIR / "setups"

Coordinate = tuple[int, int]


def _default_setup_id() -> str:
    """Single place for default: critocracy.config.DEFAULT_SETUP_ID."""
    from critocracy.config import DEFAULT_SETUP_ID
    return DEFAULT_SETUP_ID


def _setup_dir(setup_id: str) -> Path:
    return SETUPS_DIR / setup_id


def _resolve_dir(data_dir: Path | str | None, setup_id: str | None) -> Path:
    if data_dir is not None:
        return Path(data_dir)
    return _setup_dir(setup_id or _default_setup_id())


def _read_json(path: Path) -> Any:
    if not path.exists():
        raise ConfigurationError(f"Content file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Malformed JSON in {path}: {e}") from e


def list_setups() -> list[dict]:
    """Return [{ id, display_name }, ...] for all setups (subdirs of data/setups/ with board.json)."""
    out = []
    if not SETUPS_DIR.exists():
        return out
    for d in sorted(SETUPS_DIR.iterdir()):
        if not d.is_dir() or not (d / "board.json").exists():
            continue
        manifest = load_manifest(data_dir=d)
        out.append({
            "id": manifest.get("id", d.name),
            "display_name": manifest.get("display_name", d.name),
        })
    return out


def load_manifest(setup_id: str | None = None, data_dir: Path | str | None = None) -> dict:
    """Load manifest.json for a setup. Missing manifest -> {"id": <dir name>}."""
    d = _resolve_dir(data_dir, setup_id)
    path = d / "manifest.json"
    if not path.exists():
        return {"id": d.name}
    manifest = _read_json(path)
    if not isinstance(manifest, dict):
        raise ConfigurationError(f"manifest.json in {d} must be an object")
    manifest.setdefault("id", d.name)
    return manifest


def parse_coordinate(value: Any, context: str = "") -> Coordinate:
    """Turn [x, y] (list or tuple) into a hashable (x, y) tuple."""
    if (
        isinstance(value, (list, tuple))
        and len(value) == 2
        and all(isinstance(v, int) and not isinstance(v, bool) for v in value)
    ):
        return (value[0], value[1])
    raise ConfigurationError(f"Invalid coordinate {value!r}{' in ' + context if context else ''}")


# ===== Board records =====

@dataclass(frozen=True)
class Space:
    """A node of the board graph. Coordinates are an identity key only."""
    coordinates: Coordinate
    kind: str  # "Regular", "Draw", "Choicepoint", "Start", "Finish"
    path_color: str | None  # None for START and FINISH
    successors: tuple[Coordinate, ...] = ()
    # START only: path color -> first space of that path
    start_options: dict[str, Coordinate] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out = {
            "coordinates": list(self.coordinates),
            "kind": self.kind,
            "path_color": self.path_color,
            "successors": [list(c) for c in self.successors],
        }
        if self.start_options:
            out["start_options"] = {color: list(c) for color, c in self.start_options.items()}
        return out


@dataclass(frozen=True)
class PathDefinition:
    """One colored path: ordered coordinate references into the board's space arena."""
    color: str
    name: str
    start: Coordinate
    spaces: tuple[Coordinate, ...]
    end: Coordinate

    def contains(self, coordinates: Coordinate) -> bool:
        return coordinates in self.spaces

    def to_dict(self) -> dict[str, Any]:
        return {
            "color": self.color,
            "name": self.name,
            "start": list(self.start),
            "spaces": [list(c) for c in self.spaces],
            "end": list(self.end),
        }


# ===== Role and card records =====

@dataclass(frozen=True)
class RoleDefinition:
    """Defines immutable properties of a role."""
    id: str  # e.g. "Colonialist"
    display_name: str
    description: str
    starting_resources: dict[str, int]
    opposing_role: Optional[str] = None
    # Effect kinds this role ignores, e.g. ["skip_turn"]
    immunities: tuple[str, ...] = ()


@dataclass(frozen=True)
class RoleEffect:
    """What a card does to a player holding one particular role."""
    changes: dict[str, int]
    explanation: str = ""
    skip_turns: int = 0

    def to_dict(self) -> dict[str, Any]:
        out = {"changes": dict(self.changes), "explanation": self.explanation}
        if self.skip_turns:
            out["skip_turns"] = self.skip_turns
        return out


@dataclass(frozen=True)
class Card:
    """Immutable card record. `effects` has exactly one entry per role."""
    id: str
    deck: str  # category tag: a path color or "end_of_turn"
    name: str
    description: str
    effects: dict[str, RoleEffect]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "deck": self.deck,
            "name": self.name,
            "description": self.description,
            "effects": {role: e.to_dict() for role, e in self.effects.items()},
        }


@dataclass(frozen=True)
class CardLibrary:
    """All decks of a setup, keyed by deck id."""
    decks: dict[str, tuple[Card, ...]]

    def card(self, card_id: str) -> Card:
        deck_id = card_id.rsplit("-", 1)[0]
        for card in self.decks.get(deck_id, ()):
            if card.id == card_id:
                return card
        raise KeyError(card_id)

    def deck_ids(self) -> list[str]:
        return list(self.decks.keys())

    def find_by_name(self, name: str, deck_id: str | None = None) -> Card:
        for did, cards in self.decks.items():
            if deck_id is not None and did != deck_id:
                continue
            for card in cards:
                if card.name == name:
                    return card
        raise KeyError(name)


# ===== Loading =====

def roles_from_dict(data: Any) -> dict[str, RoleDefinition]:
    """Build role definitions from the roles.json structure."""
    if not isinstance(data, dict) or not data:
        raise ConfigurationError("roles.json must be a non-empty object")
    roles = {}
    for role_id, raw in data.items():
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Role {role_id} must be an object")
        starting = raw.get("starting_resources") or {}
        unknown = set(starting) - set(RESOURCE_KINDS)
        if unknown:
            raise ConfigurationError(f"Role {role_id} has unknown resources: {sorted(unknown)}")
        roles[role_id] = RoleDefinition(
            id=raw.get("id", role_id),
            display_name=raw.get("display_name", role_id),
            description=raw.get("description", ""),
            starting_resources={kind: int(starting.get(kind, 0)) for kind in RESOURCE_KINDS},
            opposing_role=raw.get("opposing_role"),
            immunities=tuple(raw.get("immunities") or ()),
        )
    return roles


def load_roles(setup_id: str | None = None, data_dir: Path | str | None = None) -> dict[str, RoleDefinition]:
    return roles_from_dict(_read_json(_resolve_dir(data_dir, setup_id) / "roles.json"))


def _parse_effect(raw: Any, where: str) -> RoleEffect:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Effect for {where} must be an object")
    changes = raw.get("changes") or {}
    if not isinstance(changes, dict):
        raise ConfigurationError(f"Effect changes for {where} must be an object")
    unknown = set(changes) - set(RESOURCE_KINDS)
    if unknown:
        raise ConfigurationError(f"Effect for {where} names unknown resources: {sorted(unknown)}")
    try:
        parsed = {kind: int(amount) for kind, amount in changes.items()}
        skip_turns = int(raw.get("skip_turns", 0))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Non-integer amount in effect for {where}") from e
    return RoleEffect(changes=parsed, explanation=str(raw.get("explanation") or ""), skip_turns=skip_turns)


def cards_from_dict(data: Any, role_ids: list[str] | tuple[str, ...]) -> CardLibrary:
    """
    Build a CardLibrary from the cards.json structure ({deck_id: [card, ...]}).
    A card gives either "effects" keyed by role, or one "all_roles" effect that every role receives.
    Every card must end up with an effect for every role.
    """
    if not isinstance(data, dict) or not data:
        raise ConfigurationError("cards.json must be a non-empty object")
    role_set = set(role_ids)
    decks: dict[str, tuple[Card, ...]] = {}
    for deck_id, raw_cards in data.items():
        if not isinstance(raw_cards, list) or not raw_cards:
            raise ConfigurationError(f"Deck {deck_id} must be a non-empty list")
        cards = []
        for index, raw in enumerate(raw_cards):
            if not isinstance(raw, dict) or not raw.get("name"):
                raise ConfigurationError(f"Card {index} in deck {deck_id} needs a name")
            name = raw["name"]
            where = f"'{name}' ({deck_id})"
            if "all_roles" in raw:
                shared = _parse_effect(raw["all_roles"], where)
                effects = {role: shared for role in role_ids}
            else:
                raw_effects = raw.get("effects")
                if not isinstance(raw_effects, dict):
                    raise ConfigurationError(f"Card {where} has no effects")
                unknown = set(raw_effects) - role_set
                if unknown:
                    raise ConfigurationError(f"Card {where} names unknown roles: {sorted(unknown)}")
                missing = role_set - set(raw_effects)
                if missing:
                    raise ConfigurationError(f"Card {where} has no effect for roles: {sorted(missing)}")
                effects = {
                    role: _parse_effect(raw_effects[role], f"{where} / {role}")
                    for role in role_ids
                }
            cards.append(Card(
                id=f"{deck_id}-{index:02d}",
                deck=deck_id,
                name=name,
                description=str(raw.get("description") or ""),
                effects=effects,
            ))
        decks[deck_id] = tuple(cards)
    return CardLibrary(decks=decks)


def load_cards(
    roles: dict[str, RoleDefinition],
    setup_id: str | None = None,
    data_dir: Path | str | None = None,
) -> CardLibrary:
    library = cards_from_dict(_read_json(_resolve_dir(data_dir, setup_id) / "cards.json"), list(roles))
    if END_OF_TURN_DECK not in library.decks:
        raise ConfigurationError(f"cards.json has no '{END_OF_TURN_DECK}' deck")
    return library


def load_board_data(setup_id: str | None = None, data_dir: Path | str | None = None) -> dict:
    """Raw board.json content; see board.build_board for the structure."""
    data = _read_json(_resolve_dir(data_dir, setup_id) / "board.json")
    if not isinstance(data, dict):
        raise ConfigurationError("board.json must be an object")
    return data
