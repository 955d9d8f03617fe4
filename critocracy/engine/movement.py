"""
Movement resolution along the board graph.
A step budget is walked one space at a time; movement stops at boundaries
(choicepoints, draw spaces, finish) or when the budget runs out.

The resolver never touches GameState: it reads the player's position and path
color and returns a MoveOutcome for the reducer to apply.
"""

from dataclasses import dataclass, field
from typing import Any

from critocracy.engine import CHOICEPOINT, DRAW, FINISH, START
from critocracy.engine.board import Board
from critocracy.engine.definitions import Coordinate, Space, parse_coordinate
from critocracy.engine.errors import AlreadyFinished, IllegalAction, InvalidChoice


class StopReason:
    BUDGET_EXHAUSTED = "budget_exhausted"
    DRAW_TRIGGERED = "draw_triggered"
    CHOICEPOINT_REACHED = "choicepoint_reached"
    FINISH_REACHED = "finish_reached"


@dataclass
class ChoiceOption:
    """One branch out of a choicepoint, tagged with the path it leads onto."""
    coordinates: Coordinate
    path_color: str

    def to_dict(self) -> dict[str, Any]:
        return {"coordinates": list(self.coordinates), "path_color": self.path_color}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChoiceOption":
        return cls(
            coordinates=parse_coordinate(data.get("coordinates"), "choice option"),
            path_color=str(data.get("path_color") or ""),
        )


@dataclass
class MoveOutcome:
    """Result of a single advance / resolve_choice call."""
    start: Coordinate
    position: Coordinate
    path_color: str | None
    stop_reason: str
    steps_taken: int = 0
    trail: list[Coordinate] = field(default_factory=list)  # spaces entered, in order
    options: list[ChoiceOption] = field(default_factory=list)  # choicepoint_reached only
    remaining_budget: int = 0  # carried into resolve_choice
    discarded_budget: int = 0  # lost at a draw or finish stop
    deck: str | None = None  # draw_triggered only

    def to_dict(self) -> dict[str, Any]:
        return {
            "start": list(self.start),
            "position": list(self.position),
            "path_color": self.path_color,
            "stop_reason": self.stop_reason,
            "steps_taken": self.steps_taken,
            "trail": [list(c) for c in self.trail],
            "options": [o.to_dict() for o in self.options],
            "remaining_budget": self.remaining_budget,
            "discarded_budget": self.discarded_budget,
            "deck": self.deck,
        }


def _choice_options(board: Board, space: Space) -> list[ChoiceOption]:
    return [ChoiceOption(coordinates=coord, path_color=color) for coord, color in board.successor_colors(space)]


def _next_space(board: Board, space: Space, path_color: str) -> Coordinate | None:
    """
    Successor to step onto when leaving a space.
    Returns None when a departing choicepoint has no branch for path_color.
    """
    if space.kind == START:
        return space.start_options.get(path_color)
    if space.kind == CHOICEPOINT:
        for coord, color in board.successor_colors(space):
            if color == path_color:
                return coord
        return None
    return space.successors[0]


def _can_depart(board: Board, position: Coordinate, path_color: str) -> bool:
    """START, any space of the path, or a choicepoint with a branch onto the path."""
    if position == board.start or board.is_on_path(position, path_color):
        return True
    space = board.space_at(position)
    return space.kind == CHOICEPOINT and any(
        color == path_color for _, color in board.successor_colors(space)
    )


def _walk(
    board: Board,
    start: Coordinate,
    position: Coordinate,
    path_color: str,
    budget: int,
    first_step: Coordinate | None = None,
) -> MoveOutcome:
    """Walk from position with budget units, applying stop-on-arrival rules."""
    trail: list[Coordinate] = []
    steps = 0
    while budget > 0:
        space = board.space_at(position)
        if first_step is not None:
            target, first_step = first_step, None
        else:
            target = _next_space(board, space, path_color)
        if target is None:
            return MoveOutcome(
                start=start,
                position=position,
                path_color=path_color,
                stop_reason=StopReason.CHOICEPOINT_REACHED,
                steps_taken=steps,
                trail=trail,
                options=_choice_options(board, space),
                remaining_budget=budget,
            )
        position = target
        budget -= 1
        steps += 1
        trail.append(position)
        arrived = board.space_at(position)

        if arrived.kind == FINISH:
            return MoveOutcome(
                start=start,
                position=position,
                path_color=path_color,
                stop_reason=StopReason.FINISH_REACHED,
                steps_taken=steps,
                trail=trail,
                discarded_budget=budget,
            )
        if arrived.kind == CHOICEPOINT:
            return MoveOutcome(
                start=start,
                position=position,
                path_color=path_color,
                stop_reason=StopReason.CHOICEPOINT_REACHED,
                steps_taken=steps,
                trail=trail,
                options=_choice_options(board, arrived),
                remaining_budget=budget,
            )
        if arrived.kind == DRAW:
            return MoveOutcome(
                start=start,
                position=position,
                path_color=path_color,
                stop_reason=StopReason.DRAW_TRIGGERED,
                steps_taken=steps,
                trail=trail,
                discarded_budget=budget,
                deck=arrived.path_color,
            )

    return MoveOutcome(
        start=start,
        position=position,
        path_color=path_color,
        stop_reason=StopReason.BUDGET_EXHAUSTED,
        steps_taken=steps,
        trail=trail,
    )


def advance(board: Board, player: Any, path_color: str | None, step_budget: int) -> MoveOutcome:
    """
    Walk a player forward by step_budget spaces along path_color.

    player needs `position`, `finished` and `id` attributes (state.Player).
    Raises AlreadyFinished for a finished player; IllegalAction for a negative
    budget, an off-board position, or a position not on path_color's path.
    """
    position = tuple(player.position)
    if player.finished or position == board.finish:
        raise AlreadyFinished(f"Player {player.id} has already finished")
    if step_budget < 0:
        raise IllegalAction(f"Step budget must not be negative (got {step_budget})")
    if board.space_at(position) is None:
        raise IllegalAction(f"Player {player.id} is not on the board ({position})")
    if not path_color or path_color not in board.colors:
        raise IllegalAction(f"Player {player.id} has no valid path color ({path_color!r})")
    if not _can_depart(board, position, path_color):
        raise IllegalAction(f"Space {position} is not on the {path_color} path")

    if step_budget == 0:
        return MoveOutcome(
            start=position,
            position=position,
            path_color=path_color,
            stop_reason=StopReason.BUDGET_EXHAUSTED,
        )
    return _walk(board, position, position, path_color, step_budget)


def resolve_choice(
    board: Board,
    player: Any,
    pending_choice: Any,
    chosen_coordinate: Coordinate | list[int],
) -> MoveOutcome:
    """
    Continue a move that stopped at a choicepoint.

    pending_choice needs `options` (list[ChoiceOption]) and `remaining_budget`.
    The chosen branch's color becomes the committed path. With budget left the
    player enters the chosen space and keeps walking; with none left the player
    stays on the choicepoint and departs along that branch next turn.
    Raises InvalidChoice when chosen_coordinate is not one of the options.
    """
    if player.finished:
        raise AlreadyFinished(f"Player {player.id} has already finished")
    try:
        chosen = parse_coordinate(list(chosen_coordinate), "choice")
    except (TypeError, ValueError) as e:
        raise InvalidChoice(f"Malformed choice {chosen_coordinate!r}") from e

    option = next((o for o in pending_choice.options if tuple(o.coordinates) == chosen), None)
    if option is None:
        valid = [list(o.coordinates) for o in pending_choice.options]
        raise InvalidChoice(f"{list(chosen)} is not a valid branch; options are {valid}")

    position = tuple(player.position)
    budget = pending_choice.remaining_budget
    if budget <= 0:
        return MoveOutcome(
            start=position,
            position=position,
            path_color=option.path_color,
            stop_reason=StopReason.BUDGET_EXHAUSTED,
        )
    return _walk(board, position, position, option.path_color, budget, first_step=option.coordinates)


def preview_destinations(
    board: Board,
    coordinates: Coordinate | list[int],
    path_color: str | None,
    steps: int,
) -> list[Coordinate]:
    """
    Spaces reachable in exactly `steps` moves, ignoring stops, for highlighting.
    From START only path_color's option is taken (every option when path_color is None).
    A player standing on a choicepoint with a branch onto path_color has already
    chosen it, so only that branch is followed; choicepoints met further along
    have every branch explored.
    """
    frontier = [tuple(coordinates)]
    for step in range(max(0, steps)):
        nxt: list[Coordinate] = []
        for coord in frontier:
            space = board.space_at(coord)
            if space is None or space.kind == FINISH:
                if coord not in nxt:
                    nxt.append(coord)
                continue
            committed = _next_space(board, space, path_color) if path_color else None
            if space.kind == START and committed is not None:
                successors = [committed]
            elif step == 0 and space.kind == CHOICEPOINT and committed is not None:
                successors = [committed]
            else:
                successors = list(space.successors)
            for succ in successors:
                if succ not in nxt:
                    nxt.append(succ)
        frontier = nxt
    return frontier
