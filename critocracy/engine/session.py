"""
Game session: the boundary between the engine and a UI or API.

A session owns the single active GameState. Every entry point returns an
ActionResult; GameError never escapes, so a bad click cannot crash the UI.
Listeners (log, animator, ...) get copies of the events of each accepted action;
an exception raised by a listener is reported in ActionResult.listener_errors.
"""

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Callable

from critocracy.engine import actions as act
from critocracy.engine.actions import Action
from critocracy.engine.bots import choose_action
from critocracy.engine.errors import GameError, IllegalAction
from critocracy.engine.events import GameEvent
from critocracy.engine.queries import get_available_actions, get_player_ranking
from critocracy.engine.reducer import apply_action
from critocracy.engine.state import GameConfig, GameState
from critocracy.engine.utils import GameDefinitions, initialize_game_state, load_game_definitions, make_game_config

Listener = Callable[[list[GameEvent], GameState], Any]


@dataclass
class ActionResult:
    """Typed result of one session call."""
    ok: bool
    action: Action | None = None
    events: list[GameEvent] = field(default_factory=list)
    error: str | None = None
    error_kind: str | None = None
    outcome: dict[str, Any] | None = None  # MoveOutcome.to_dict() after roll / resolve_choice
    listener_errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "action": self.action.to_dict() if self.action else None,
            "events": [e.to_dict() for e in self.events],
            "error": self.error,
            "error_kind": self.error_kind,
            "outcome": self.outcome,
            "listener_errors": list(self.listener_errors),
        }


class GameSession:
    def __init__(self, setup_id: str | None = None, definitions: GameDefinitions | None = None):
        self.definitions = definitions or load_game_definitions(setup_id)
        self.state: GameState | None = None
        self.actions: list[Action] = []
        self._listeners: list[Listener] = []

    @property
    def board(self):
        return self.definitions.board

    # ===== Lifecycle =====

    def new_game(
        self,
        players: list[Any],
        seed: int | None = None,
        config: GameConfig | None = None,
    ) -> ActionResult:
        """Start a new game in the setup phase, discarding any game in progress."""
        if config is None:
            config = make_game_config(
                setup_id=self.definitions.manifest.get("id"),
                manifest=self.definitions.manifest,
            )
        try:
            state = initialize_game_state(players, seed=seed, game_config=config)
        except GameError as e:
            return ActionResult(ok=False, error=str(e), error_kind=e.kind)
        self.state = state
        self.actions = []
        return ActionResult(ok=True)

    def load_state(self, state: GameState, actions: list[Action] | None = None) -> None:
        """Resume a saved game. actions is the history that led to state, if known."""
        self.state = state
        self.actions = list(actions or [])

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    # ===== Reads =====

    def get_game_state(self) -> dict[str, Any] | None:
        """Read-only snapshot of the active game, or None when there is none."""
        if self.state is None:
            return None
        snapshot = self.state.to_dict()
        snapshot["available_actions"] = get_available_actions(self.state, self.board)
        snapshot["rankings"] = [r["player_id"] for r in get_player_ranking(self.state, self.board)]
        return snapshot

    def available_actions(self) -> dict[str, Any] | None:
        if self.state is None:
            return None
        return get_available_actions(self.state, self.board)

    def rankings(self) -> list[dict[str, Any]]:
        if self.state is None:
            return []
        return get_player_ranking(self.state, self.board)

    @property
    def active_player_id(self) -> str | None:
        if self.state is None or self.state.active_player is None:
            return None
        return self.state.active_player.id

    @property
    def is_over(self) -> bool:
        return self.state is not None and self.state.phase == "game_over"

    # ===== Entry points =====

    def dispatch(self, action: Action) -> ActionResult:
        """Apply an action to the active game."""
        if self.state is None:
            err = IllegalAction("No game in progress")
            return ActionResult(ok=False, action=action, error=str(err), error_kind=err.kind)
        try:
            new_state, events = apply_action(
                self.state,
                action,
                self.definitions.board,
                self.definitions.library,
                self.definitions.roles,
            )
        except GameError as e:
            return ActionResult(ok=False, action=action, error=str(e), error_kind=e.kind)

        self.state = new_state
        self.actions.append(action)
        listener_errors: list[str] = []
        for listener in list(self._listeners):
            try:
                listener(deepcopy(events), new_state.copy())
            except Exception as e:
                # The action is already committed; a broken listener only loses its own update
                message = f"{getattr(listener, '__name__', type(listener).__name__)}: {e!r}"
                print(f"Listener failed after {action.type}: {message}", flush=True)
                listener_errors.append(message)
        outcome = new_state.last_outcome if action.type in ("roll", "resolve_choice") else None
        return ActionResult(
            ok=True,
            action=action,
            events=events,
            outcome=outcome,
            listener_errors=listener_errors,
        )

    def select_roles(self) -> ActionResult:
        return self.dispatch(act.select_roles())

    def determine_turn_order(self, policy: str | None = None) -> ActionResult:
        return self.dispatch(act.determine_turn_order(policy))

    def begin_play(self) -> ActionResult:
        return self.dispatch(act.begin_play())

    def setup_game(self, policy: str | None = None) -> ActionResult:
        """Run role selection, turn order and the first turn; stops at the first failure."""
        result = self.select_roles()
        if not result.ok:
            return result
        result = self.determine_turn_order(policy)
        if not result.ok:
            return result
        return self.begin_play()

    def _player_id(self, player_id: str | None) -> str | None:
        return player_id if player_id is not None else self.active_player_id

    def choose_path(self, color: str, player_id: str | None = None) -> ActionResult:
        return self.dispatch(act.choose_path(self._player_id(player_id), color))

    def roll(self, value: int | None = None, player_id: str | None = None) -> ActionResult:
        return self.dispatch(act.roll(self._player_id(player_id), value))

    def resolve_choice(self, coordinates: tuple[int, int] | list[int], player_id: str | None = None) -> ActionResult:
        return self.dispatch(act.resolve_choice(self._player_id(player_id), coordinates))

    def acknowledge_card(self, player_id: str | None = None) -> ActionResult:
        return self.dispatch(act.acknowledge_card(self._player_id(player_id)))

    def end_turn(self, player_id: str | None = None) -> ActionResult:
        return self.dispatch(act.end_turn(self._player_id(player_id)))

    def play_non_human(self, max_actions: int = 10_000) -> list[ActionResult]:
        """
        Take actions for non-human players until a human is to move or the game ends.
        Stops early on a rejected action.
        """
        results: list[ActionResult] = []
        while self.state is not None and len(results) < max_actions:
            action = choose_action(self.state, self.definitions.board)
            if action is None:
                break
            result = self.dispatch(action)
            results.append(result)
            if not result.ok:
                break
        return results
