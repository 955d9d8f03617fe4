"""
Game log: a session listener that keeps a readable, filterable record of play
and the resource history of every player.
"""

from dataclasses import dataclass, field
from typing import Any

from critocracy.engine import RESOURCE_KINDS
from critocracy.engine.events import (
    GameEvent,
    ROLES_ASSIGNED,
    TURN_ORDER_DETERMINED,
    PHASE_CHANGED,
    TURN_STARTED,
    TURN_SKIPPED,
    TURN_ENDED,
    PATH_CHOSEN,
    DICE_ROLLED,
    PLAYER_MOVED,
    CHOICE_REQUIRED,
    BRANCH_CHOSEN,
    CARD_DRAWN,
    DECK_RESHUFFLED,
    CARD_APPLIED,
    RESOURCES_CHANGED,
    PLAYER_FINISHED,
    GAME_OVER,
)
from critocracy.engine.state import GameState


def format_changes(changes: dict[str, int]) -> str:
    """{"money": 3, "influence": -2} -> "money: +3, influence: -2"."""
    return ", ".join(f"{kind}: {'+' if value > 0 else ''}{value}" for kind, value in changes.items())


def format_event(event: GameEvent) -> str:
    """One line of human-readable text for an event."""
    p = event.payload
    who = p.get("player_id")
    t = event.type
    if t == ROLES_ASSIGNED:
        return "Roles: " + ", ".join(f"{pid} is the {role}" for pid, role in p["assignments"].items())
    if t == TURN_ORDER_DETERMINED:
        return f"Turn order ({p['policy']}): {', '.join(p['order'])}"
    if t == PHASE_CHANGED:
        return f"Phase {p['old_phase']} -> {p['new_phase']}"
    if t == TURN_STARTED:
        return f"Turn {p['turn_number']} (round {p['round_number']}) for {who}"
    if t == TURN_SKIPPED:
        return f"{who} loses a turn ({p['skip_turns_left']} more to skip)"
    if t == TURN_ENDED:
        return f"{who} ends turn {p['turn_number']}"
    if t == PATH_CHOSEN:
        return f"{who} sets out on the {p['color']} path"
    if t == DICE_ROLLED:
        return f"{who} rolls {p['value']}"
    if t == PLAYER_MOVED:
        return (
            f"{who} moves {p['steps_taken']} space{'s' if p['steps_taken'] != 1 else ''} "
            f"from {tuple(p['from'])} to {tuple(p['to'])} ({p['stop_reason']})"
        )
    if t == CHOICE_REQUIRED:
        options = ", ".join(f"{tuple(o['coordinates'])} {o['path_color']}" for o in p["options"])
        return f"{who} reaches a crossroads: {options}"
    if t == BRANCH_CHOSEN:
        return f"{who} takes the {p['path_color']} branch"
    if t == CARD_DRAWN:
        return f"{who} draws '{p['card_name']}' from the {p['deck']} deck"
    if t == DECK_RESHUFFLED:
        return f"The {p['deck']} deck is reshuffled"
    if t == CARD_APPLIED:
        delta = {kind: c["change"] for kind, c in p["changes"].items()}
        line = f"{who}: {format_changes(delta) or 'no change'} ({p['card_name']})"
        if p.get("skip_turns"):
            line += f", skips {p['skip_turns']} turn(s)"
        return line
    if t == RESOURCES_CHANGED:
        return f"{who} {p['resource']}: {p['old_value']} -> {p['new_value']}"
    if t == PLAYER_FINISHED:
        return f"{who} reaches FINISH in place {p['finish_position']}"
    if t == GAME_OVER:
        return f"Game over ({p['reason']}): {', '.join(p['rankings'])}"
    return f"{t}: {p}"


@dataclass
class LogEntry:
    sequence: int
    turn: int
    round: int
    event_type: str
    player_id: str | None
    message: str
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sequence": self.sequence,
            "turn": self.turn,
            "round": self.round,
            "event_type": self.event_type,
            "player_id": self.player_id,
            "message": self.message,
            "payload": self.payload,
        }


class GameLog:
    """
    Listener for GameSession.subscribe. Call with (events, state) after each
    accepted action. echo=True prints each line as it is logged.

    The state handed over is the one after the action, so an end_turn batch
    already shows the next turn. Entries are stamped with the turn the log is
    tracking instead, which only moves on at a turn_started event.
    """

    def __init__(self, echo: bool = False):
        self.echo = echo
        self.entries: list[LogEntry] = []
        # player_id -> [{"turn", "money", "knowledge", "influence", "source"}, ...]
        self.resource_history: dict[str, list[dict[str, Any]]] = {}
        self.turn: int | None = None
        self.round: int | None = None

    def __call__(self, events: list[GameEvent], state: GameState) -> None:
        if self.turn is None:
            self.sync(state)
        for event in events:
            self.record(event, state)

    def sync(self, state: GameState) -> None:
        """Start tracking from a state taken between actions (a new or resumed game)."""
        self.turn = state.turn_number
        self.round = state.round_number

    def record(self, event: GameEvent, state: GameState) -> LogEntry:
        payload = event.payload
        if event.type == TURN_STARTED:
            self.turn = payload["turn_number"]
            self.round = payload["round_number"]
        elif self.turn is None:
            self.sync(state)
        entry = LogEntry(
            sequence=len(self.entries) + 1,
            turn=self.turn,
            round=self.round,
            event_type=event.type,
            player_id=payload.get("player_id"),
            message=format_event(event),
            payload=dict(payload),
        )
        self.entries.append(entry)

        if event.type == ROLES_ASSIGNED:
            for player in state.players:
                self.resource_history[player.id] = [
                    {"turn": 0, **{k: player.resources.get(k, 0) for k in RESOURCE_KINDS}, "source": "start"}
                ]
        elif event.type == CARD_APPLIED:
            history = self.resource_history.setdefault(entry.player_id, [])
            current = dict(history[-1]) if history else {k: 0 for k in RESOURCE_KINDS}
            for kind, change in payload["changes"].items():
                current[kind] = change["new"]
            current["turn"] = entry.turn
            current["source"] = payload["card_name"]
            history.append(current)

        if self.echo:
            print(f"[T{entry.turn}] {entry.message}")
        return entry

    def filter(
        self,
        player_id: str | None = None,
        event_type: str | None = None,
        turn: int | None = None,
        from_turn: int | None = None,
        to_turn: int | None = None,
    ) -> list[LogEntry]:
        out = self.entries
        if player_id is not None:
            out = [e for e in out if e.player_id == player_id]
        if event_type is not None:
            out = [e for e in out if e.event_type == event_type]
        if turn is not None:
            out = [e for e in out if e.turn == turn]
        if from_turn is not None:
            out = [e for e in out if e.turn >= from_turn]
        if to_turn is not None:
            out = [e for e in out if e.turn <= to_turn]
        return list(out)

    def formatted(self, limit: int = 20, player_id: str | None = None, event_type: str | None = None) -> str:
        """Newest entries first, one per line."""
        entries = self.filter(player_id=player_id, event_type=event_type)
        newest = sorted(entries, key=lambda e: e.sequence, reverse=True)[:limit]
        return "\n".join(f"[T{e.turn}] {e.message}" for e in newest)

    def player_resource_history(self, player_id: str) -> list[dict[str, Any]]:
        return [dict(h) for h in self.resource_history.get(player_id, [])]

    def clear(self, state: GameState | None = None) -> None:
        """Forget everything; with a state, carry on from its turn."""
        self.entries = []
        self.resource_history = {}
        self.turn = None
        self.round = None
        if state is not None:
            self.sync(state)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entries": [e.to_dict() for e in self.entries],
            "resource_history": {pid: self.player_resource_history(pid) for pid in self.resource_history},
        }
