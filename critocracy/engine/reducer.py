"""
Main game reducer.
Applies actions to state, enforcing rules and producing new state.
Returns (new_state, events) where events describe what happened.
"""

import random

from critocracy.engine import END_OF_TURN_DECK
from critocracy.engine.state import GameState, Player, PendingChoice, PendingCard
from critocracy.engine.actions import Action
from critocracy.engine.board import Board
from critocracy.engine.definitions import Card, CardLibrary, RoleDefinition
from critocracy.engine.cards import apply_card, draw, new_deck_state
from critocracy.engine.movement import MoveOutcome, StopReason, advance, resolve_choice
from critocracy.engine.errors import AlreadyFinished, IllegalAction, NotEnoughRoles
from critocracy.engine.events import (
    GameEvent,
    roles_assigned,
    turn_order_determined,
    phase_changed,
    turn_started,
    turn_skipped,
    turn_ended,
    path_chosen,
    dice_rolled,
    player_moved,
    choice_required,
    branch_chosen,
    card_drawn,
    deck_reshuffled,
    card_applied,
    resources_changed,
    player_finished,
    game_over,
)


# Phase rules: which action types are allowed in which phases
PHASE_ALLOWED_ACTIONS = {
    "setup": ["select_roles"],
    "role_selection": ["determine_turn_order"],
    "turn_order": ["begin_play"],
    "turn_in_progress": ["choose_path", "roll", "resolve_choice", "acknowledge_card"],
    "turn_complete": ["end_turn"],
    "game_over": [],
}

# Within turn_in_progress exactly one action is expected per sub-phase
TURN_PHASE_ALLOWED_ACTIONS = {
    "awaiting_path_choice": ["choose_path"],
    "awaiting_roll": ["roll"],
    "awaiting_choice": ["resolve_choice"],
    "awaiting_card_ack": ["acknowledge_card"],
}

SETUP_ACTIONS = ("select_roles", "determine_turn_order", "begin_play")
TURN_ORDER_POLICIES = ("random", "seated")


def _validate_action_for_phase(action: Action, state: GameState) -> None:
    """Validate that an action is allowed in the current phase and sub-phase."""
    phase = state.phase
    allowed_actions = PHASE_ALLOWED_ACTIONS.get(phase, [])

    if action.type not in allowed_actions:
        raise IllegalAction(
            f"Action '{action.type}' is not allowed in phase '{phase}'. "
            f"Allowed actions: {', '.join(allowed_actions) or 'none'}"
        )

    if phase == "turn_in_progress":
        expected = TURN_PHASE_ALLOWED_ACTIONS.get(state.turn_phase or "", [])
        if action.type not in expected:
            raise IllegalAction(
                f"Action '{action.type}' is not allowed while {state.turn_phase}. "
                f"Expected: {', '.join(expected) or 'none'}"
            )


def _validate_actor(action: Action, state: GameState) -> Player:
    """The acting player must be the active player."""
    active = state.active_player
    if active is None:
        raise IllegalAction("No active player")
    if action.player_id != active.id:
        raise IllegalAction(f"Not {action.player_id}'s turn. Active player: {active.id}")
    return active


def apply_action(
    state: GameState,
    action: Action,
    board: Board,
    library: CardLibrary,
    role_defs: dict[str, RoleDefinition],
) -> tuple[GameState, list[GameEvent]]:
    """
    Apply a single action to the current state, returning new state and events.

    Validates:
    - Game is not over
    - Action is valid for current phase and sub-phase
    - Turn actions come from the active player, who has not finished

    Works on a copy: when a GameError is raised the given state is unchanged.

    Args:
        state: Current game state
        action: Action to apply
        board: Board graph
        library: Card decks
        role_defs: Role definitions

    Returns:
        Tuple of (new_state, events) where events describe what happened
    """
    if state.phase == "game_over":
        raise IllegalAction("Game is over")

    if action.type not in SETUP_ACTIONS:
        player = _validate_actor(action, state)
        if player.finished and action.type != "end_turn":
            raise AlreadyFinished(f"Player {player.id} has already finished")

    _validate_action_for_phase(action, state)

    new_state = state.copy()
    events: list[GameEvent] = []

    if action.type == "select_roles":
        new_state, evts = _handle_select_roles(new_state, board, role_defs)
        events.extend(evts)

    elif action.type == "determine_turn_order":
        new_state, evts = _handle_determine_turn_order(new_state, action)
        events.extend(evts)

    elif action.type == "begin_play":
        new_state, evts = _handle_begin_play(new_state, library)
        events.extend(evts)

    elif action.type == "choose_path":
        new_state, evts = _handle_choose_path(new_state, action, board)
        events.extend(evts)

    elif action.type == "roll":
        new_state, evts = _handle_roll(new_state, action, board, library, role_defs)
        events.extend(evts)

    elif action.type == "resolve_choice":
        new_state, evts = _handle_resolve_choice(new_state, action, board, library, role_defs)
        events.extend(evts)

    elif action.type == "acknowledge_card":
        new_state, evts = _handle_acknowledge_card(new_state, library, role_defs)
        events.extend(evts)

    elif action.type == "end_turn":
        new_state, evts = _handle_end_turn(new_state, board, library, role_defs)
        events.extend(evts)

    else:
        raise IllegalAction(f"Unknown action type: {action.type}")

    return new_state, events


# ===== Phase helpers =====

def _set_phase(state: GameState, phase: str, turn_phase: str | None, events: list[GameEvent]) -> None:
    old = state.phase
    state.phase = phase
    state.turn_phase = turn_phase
    if old != phase:
        active = state.active_player
        events.append(phase_changed(old, phase, active.id if active else None))


def _start_turn(state: GameState, index: int, events: list[GameEvent]) -> None:
    """Open the turn of players[index]."""
    state.active_index = index
    state.turn_number += 1
    state.pending_choice = None
    state.pending_card = None
    player = state.players[index]
    events.append(turn_started(state.turn_number, state.round_number, player.id))

    if player.finished:
        # Only reachable with skip_finished_players off: the turn can only be passed on
        _set_phase(state, "turn_complete", None, events)
    elif player.path_color is None:
        _set_phase(state, "turn_in_progress", "awaiting_path_choice", events)
    else:
        _set_phase(state, "turn_in_progress", "awaiting_roll", events)


def rank_players(state: GameState, board: Board) -> list[str]:
    """
    Standings: finished players by finishing position, then the rest by
    distance left to FINISH (fewest steps first), ties broken by name.
    """
    finished = sorted(
        (p for p in state.players if p.finished),
        key=lambda p: p.finish_position or 0,
    )

    def _distance(p: Player) -> int:
        try:
            return board.steps_to_finish(p.position)
        except KeyError:
            return 0

    unfinished = sorted(
        (p for p in state.players if not p.finished),
        key=lambda p: (_distance(p), p.name, p.id),
    )
    return [p.id for p in finished + unfinished]


def _declare_game_over(state: GameState, board: Board, reason: str, events: list[GameEvent]) -> None:
    state.rankings = rank_players(state, board)
    state.pending_choice = None
    state.pending_card = None
    _set_phase(state, "game_over", None, events)
    events.append(game_over(list(state.rankings), reason))


def _draw_card(
    state: GameState,
    deck_id: str,
    player: Player,
    library: CardLibrary,
    events: list[GameEvent],
) -> Card:
    deck = state.decks.get(deck_id)
    if deck is None:
        deck = new_deck_state(library, deck_id, state.seed)
        state.decks[deck_id] = deck
    shuffles_before = deck.shuffle_count
    card = draw(deck, library, state.seed, state.config.reshuffle_exhausted_decks)
    if deck.shuffle_count != shuffles_before:
        events.append(deck_reshuffled(deck_id, deck.shuffle_count))
    events.append(card_drawn(player.id, deck_id, card.id, card.name, card.description))
    return card


def _apply_card(
    player: Player,
    card: Card,
    role_defs: dict[str, RoleDefinition],
    events: list[GameEvent],
) -> None:
    delta = apply_card(player, card, role_defs)
    events.append(card_applied(delta.to_dict()))
    for kind, (old, new) in delta.changes.items():
        if old != new:
            events.append(resources_changed(player.id, kind, old, new, f"card: {card.name}"))


# ===== Setup handlers =====

def _handle_select_roles(
    state: GameState,
    board: Board,
    role_defs: dict[str, RoleDefinition],
) -> tuple[GameState, list[GameEvent]]:
    """
    Create players from seats.
    Validates:
    - There are at least as many roles as seats
    - Requested roles exist and are requested at most once
    """
    events: list[GameEvent] = []
    seats = state.seats
    if not seats:
        raise IllegalAction("At least one player is required")
    if len(seats) > len(role_defs):
        raise NotEnoughRoles(f"{len(seats)} players but only {len(role_defs)} roles")

    requested = [s.get("role") for s in seats if s.get("role")]
    for role in requested:
        if role not in role_defs:
            raise IllegalAction(f"Unknown role: {role}")
    if len(set(requested)) != len(requested):
        raise IllegalAction("Each role can be taken by one player only")

    free_roles = [r for r in role_defs if r not in requested]
    random.Random(f"{state.seed}:roles").shuffle(free_roles)

    players: list[Player] = []
    assignments: dict[str, str] = {}
    for seat in seats:
        role = seat.get("role") or free_roles.pop(0)
        role_def = role_defs[role]
        players.append(Player(
            id=str(seat["id"]),
            name=str(seat.get("name") or seat["id"]),
            is_human=bool(seat.get("is_human", True)),
            role=role,
            position=board.start,
            path_color=None,
            resources=dict(role_def.starting_resources),
        ))
        assignments[str(seat["id"])] = role

    state.players = players
    events.append(roles_assigned(assignments))
    _set_phase(state, "role_selection", None, events)
    return state, events


def _handle_determine_turn_order(state: GameState, action: Action) -> tuple[GameState, list[GameEvent]]:
    events: list[GameEvent] = []
    policy = action.payload.get("policy") or state.config.turn_order_policy
    if policy not in TURN_ORDER_POLICIES:
        raise IllegalAction(f"Unknown turn order policy: {policy}")

    if policy == "random":
        order = list(state.players)
        random.Random(f"{state.seed}:turn_order").shuffle(order)
        state.players = order

    events.append(turn_order_determined([p.id for p in state.players], policy))
    _set_phase(state, "turn_order", None, events)
    return state, events


def _handle_begin_play(state: GameState, library: CardLibrary) -> tuple[GameState, list[GameEvent]]:
    events: list[GameEvent] = []
    for deck_id in library.deck_ids():
        if deck_id not in state.decks:
            state.decks[deck_id] = new_deck_state(library, deck_id, state.seed)
    state.round_number = 1
    _start_turn(state, 0, events)
    return state, events


# ===== Turn handlers =====

def _handle_choose_path(state: GameState, action: Action, board: Board) -> tuple[GameState, list[GameEvent]]:
    events: list[GameEvent] = []
    player = state.active_player
    color = action.payload.get("color")
    if color not in board.colors:
        raise IllegalAction(f"Unknown path color: {color}. Choose one of: {', '.join(board.colors)}")
    player.path_color = color
    events.append(path_chosen(player.id, color))
    state.turn_phase = "awaiting_roll"
    return state, events


def _handle_roll(
    state: GameState,
    action: Action,
    board: Board,
    library: CardLibrary,
    role_defs: dict[str, RoleDefinition],
) -> tuple[GameState, list[GameEvent]]:
    """
    Roll and move.
    The die value comes from the payload, or is derived from (seed, roll count)
    so the reducer stays deterministic.
    """
    events: list[GameEvent] = []
    player = state.active_player
    sides = state.config.die_sides
    value = action.payload.get("value")
    if value is None:
        value = random.Random(f"{state.seed}:roll:{state.roll_count}").randint(1, sides)
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= sides:
        raise IllegalAction(f"Roll must be a whole number from 1 to {sides} (got {value!r})")

    # last_outcome outlives the turn change when the move ends at FINISH
    state.last_outcome = None
    state.roll_count += 1
    state.last_roll = value
    events.append(dice_rolled(player.id, value, sides))

    outcome = advance(board, player, player.path_color, value)
    events.extend(_apply_outcome(state, player, outcome, board, library, role_defs))
    return state, events


def _handle_resolve_choice(
    state: GameState,
    action: Action,
    board: Board,
    library: CardLibrary,
    role_defs: dict[str, RoleDefinition],
) -> tuple[GameState, list[GameEvent]]:
    events: list[GameEvent] = []
    player = state.active_player
    pending = state.pending_choice
    if pending is None or pending.player_id != player.id:
        raise IllegalAction("No choice is pending for this player")

    outcome = resolve_choice(board, player, pending, action.payload.get("coordinates"))
    state.pending_choice = None
    chosen = outcome.trail[0] if outcome.trail else tuple(action.payload["coordinates"])
    events.append(branch_chosen(player.id, list(chosen), outcome.path_color))
    events.extend(_apply_outcome(state, player, outcome, board, library, role_defs))
    return state, events


def _apply_outcome(
    state: GameState,
    player: Player,
    outcome: MoveOutcome,
    board: Board,
    library: CardLibrary,
    role_defs: dict[str, RoleDefinition],
) -> list[GameEvent]:
    """Move the player and route the turn according to the stop reason."""
    events: list[GameEvent] = []
    player.position = outcome.position
    player.path_color = outcome.path_color
    state.last_outcome = outcome.to_dict()
    events.append(player_moved(player.id, state.last_outcome))

    if outcome.stop_reason == StopReason.FINISH_REACHED:
        state.finish_order.append(player.id)
        player.finished = True
        player.finish_position = len(state.finish_order)
        events.append(player_finished(player.id, player.finish_position))
        # Reaching FINISH ends the turn at once, without an end-of-turn card
        events.extend(_finish_turn(state, board))

    elif outcome.stop_reason == StopReason.CHOICEPOINT_REACHED:
        state.pending_choice = PendingChoice(
            player_id=player.id,
            position=outcome.position,
            options=list(outcome.options),
            remaining_budget=outcome.remaining_budget,
        )
        events.append(choice_required(
            player.id,
            list(outcome.position),
            [o.to_dict() for o in outcome.options],
            outcome.remaining_budget,
        ))
        state.turn_phase = "awaiting_choice"

    elif outcome.stop_reason == StopReason.DRAW_TRIGGERED:
        card = _draw_card(state, outcome.deck, player, library, events)
        state.pending_card = PendingCard(player_id=player.id, card_id=card.id, deck=outcome.deck)
        state.turn_phase = "awaiting_card_ack"

    else:
        _set_phase(state, "turn_complete", None, events)

    return events


def _handle_acknowledge_card(
    state: GameState,
    library: CardLibrary,
    role_defs: dict[str, RoleDefinition],
) -> tuple[GameState, list[GameEvent]]:
    events: list[GameEvent] = []
    player = state.active_player
    pending = state.pending_card
    if pending is None or pending.player_id != player.id:
        raise IllegalAction("No card is waiting to be acknowledged")

    _apply_card(player, library.card(pending.card_id), role_defs, events)
    state.pending_card = None
    _set_phase(state, "turn_complete", None, events)
    return state, events


def _handle_end_turn(
    state: GameState,
    board: Board,
    library: CardLibrary,
    role_defs: dict[str, RoleDefinition],
) -> tuple[GameState, list[GameEvent]]:
    """
    End the active player's turn.

    - Draws and applies an end-of-turn card (unless disabled or the player has finished)
    - Ends the game when everyone has finished or the turn limit is reached
    - Otherwise passes play to the next player in rotation
    """
    events: list[GameEvent] = []
    player = state.active_player
    if state.config.draw_end_of_turn_cards and not player.finished:
        card = _draw_card(state, END_OF_TURN_DECK, player, library, events)
        _apply_card(player, card, role_defs, events)

    events.extend(_finish_turn(state, board))
    return state, events


def _finish_turn(state: GameState, board: Board) -> list[GameEvent]:
    events: list[GameEvent] = []
    player = state.active_player
    events.append(turn_ended(state.turn_number, player.id))
    state.pending_choice = None
    state.pending_card = None

    if all(p.finished for p in state.players):
        _declare_game_over(state, board, "all_finished", events)
        return events
    max_turns = state.config.max_turns
    if max_turns is not None and state.turn_number >= max_turns:
        _declare_game_over(state, board, "turn_limit", events)
        return events

    _advance_rotation(state, events)
    return events


def _advance_rotation(state: GameState, events: list[GameEvent]) -> None:
    """
    Next player after the active one, wrapping around (a wrap starts a new round).
    Finished players are passed over when skip_finished_players is on; a player
    with skip_turns loses this turn and the counter drops by one.
    """
    count = len(state.players)
    index = state.active_index
    while True:
        index = (index + 1) % count
        if index == 0:
            state.round_number += 1
        player = state.players[index]
        if player.finished:
            if state.config.skip_finished_players:
                continue
        elif player.skip_turns > 0:
            player.skip_turns -= 1
            events.append(turn_skipped(player.id, player.skip_turns))
            continue
        _start_turn(state, index, events)
        return


def replay_from_actions(
    initial_state: GameState,
    actions: list[Action],
    board: Board,
    library: CardLibrary,
    role_defs: dict[str, RoleDefinition],
) -> tuple[GameState, list[GameEvent]]:
    """
    Replay a series of actions from an initial state.
    Event sourcing: state is derived from action log.

    Returns:
        Tuple of (final_state, all_events) after all actions applied
    """
    current_state = initial_state.copy()
    all_events: list[GameEvent] = []

    for action in actions:
        current_state, events = apply_action(current_state, action, board, library, role_defs)
        all_events.extend(events)

    return current_state, all_events
