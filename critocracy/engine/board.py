"""
Board graph: an arena of Space records keyed by coordinate.
Paths hold ordered coordinate references, so junction spaces shared by several
paths (START, FINISH, shared choicepoints) exist exactly once.

board.json structure:
    {
        "id": "classic",
        "start": {"coordinates": [x, y], "next": {"<color>": [x, y], ...}},
        "finish": {"coordinates": [x, y]},
        "paths": {
            "<color>": {
                "name": str,
                "start": [x, y],
                "spaces": [{"coordinates": [x, y], "type": "Regular", "next": [[x, y], ...]}, ...]
            },
            ...
        }
    }
"""

from pathlib import Path
from typing import Any

from critocracy.engine import REGULAR, DRAW, CHOICEPOINT, START, FINISH, SPACE_KINDS
from critocracy.engine.definitions import (
    Coordinate,
    PathDefinition,
    Space,
    load_board_data,
    parse_coordinate,
)
from critocracy.engine.errors import ConfigurationError


class Board:
    """Static, read-only board graph. Construction validates the whole graph."""

    def __init__(
        self,
        spaces: dict[Coordinate, Space],
        paths: dict[str, PathDefinition],
        start: Coordinate,
        finish: Coordinate,
        board_id: str = "",
    ):
        self.id = board_id
        self._spaces = dict(spaces)
        self._paths = dict(paths)
        self.start = start
        self.finish = finish
        self._steps_to_finish: dict[Coordinate, int] = {}
        _validate_board(self)

    # ===== Lookups =====

    def space_at(self, coordinates: Coordinate | list[int]) -> Space | None:
        """Space at a coordinate, or None when the coordinate is not on the board."""
        return self._spaces.get(tuple(coordinates))

    def path_for(self, color: str) -> PathDefinition:
        """Path of a color. Unknown color -> KeyError."""
        return self._paths[color]

    @property
    def colors(self) -> list[str]:
        return list(self._paths.keys())

    @property
    def start_space(self) -> Space:
        return self._spaces[self.start]

    @property
    def finish_space(self) -> Space:
        return self._spaces[self.finish]

    def spaces(self) -> list[Space]:
        return list(self._spaces.values())

    def paths(self) -> list[PathDefinition]:
        return list(self._paths.values())

    def paths_through(self, coordinates: Coordinate) -> list[str]:
        """Colors of every path that declares this coordinate (START/FINISH belong to all)."""
        coordinates = tuple(coordinates)
        if coordinates in (self.start, self.finish):
            return self.colors
        return [color for color, path in self._paths.items() if path.contains(coordinates)]

    def is_on_path(self, coordinates: Coordinate, color: str) -> bool:
        return color in self.paths_through(coordinates)

    def successor_colors(self, space: Space) -> list[tuple[Coordinate, str | None]]:
        """Each successor of a space tagged with the path color it leads onto."""
        if space.kind == START:
            return [(coord, color) for color, coord in space.start_options.items()]
        return [(coord, self._spaces[coord].path_color) for coord in space.successors]

    def steps_to_finish(self, coordinates: Coordinate) -> int:
        """Longest number of steps from a space to FINISH over any branch."""
        return self._steps_to_finish[tuple(coordinates)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "start": list(self.start),
            "finish": list(self.finish),
            "spaces": [s.to_dict() for s in self._spaces.values()],
            "paths": {color: p.to_dict() for color, p in self._paths.items()},
        }


# ===== Construction =====

def build_board(data: dict[str, Any]) -> Board:
    """Build and validate a Board from board.json content. Raises ConfigurationError."""
    start_raw = data.get("start")
    finish_raw = data.get("finish")
    paths_raw = data.get("paths")
    if not isinstance(start_raw, dict) or not isinstance(finish_raw, dict):
        raise ConfigurationError("Board needs 'start' and 'finish' spaces")
    if not isinstance(paths_raw, dict) or not paths_raw:
        raise ConfigurationError("Board needs at least one path")

    start = parse_coordinate(start_raw.get("coordinates"), "start")
    finish = parse_coordinate(finish_raw.get("coordinates"), "finish")
    if start == finish:
        raise ConfigurationError("START and FINISH must be different spaces")
    next_raw = start_raw.get("next")
    if not isinstance(next_raw, dict) or not next_raw:
        raise ConfigurationError("START needs one successor per path color")
    start_options = {
        color: parse_coordinate(coord, f"start option {color}")
        for color, coord in next_raw.items()
    }

    spaces: dict[Coordinate, Space] = {}
    paths: dict[str, PathDefinition] = {}

    for color, raw_path in paths_raw.items():
        if not isinstance(raw_path, dict) or not isinstance(raw_path.get("spaces"), list):
            raise ConfigurationError(f"Path {color} needs a list of spaces")
        ordered: list[Coordinate] = []
        for raw_space in raw_path["spaces"]:
            if not isinstance(raw_space, dict):
                raise ConfigurationError(f"Malformed space in path {color}: {raw_space!r}")
            coord = parse_coordinate(raw_space.get("coordinates"), f"path {color}")
            kind = raw_space.get("type")
            if kind not in SPACE_KINDS:
                raise ConfigurationError(f"Space {coord} in path {color} has unknown type {kind!r}")
            successors = tuple(
                parse_coordinate(n, f"successors of {coord}") for n in (raw_space.get("next") or [])
            )
            if coord in ordered:
                raise ConfigurationError(f"Space {coord} appears twice in path {color}")
            ordered.append(coord)

            if coord == finish:
                if kind != FINISH or successors:
                    raise ConfigurationError(f"Path {color} declares FINISH {coord} as {kind} with successors")
                continue
            if coord == start or kind in (START, FINISH):
                raise ConfigurationError(f"Path {color} redeclares a START/FINISH space at {coord}")

            existing = spaces.get(coord)
            if existing is not None:
                # Junction declared by more than one path: declarations must agree
                if existing.kind != kind or existing.successors != successors:
                    raise ConfigurationError(
                        f"Space {coord} is declared differently by paths {existing.path_color} and {color}"
                    )
                continue
            spaces[coord] = Space(coordinates=coord, kind=kind, path_color=color, successors=successors)

        path_start = parse_coordinate(raw_path.get("start", ordered[0] if ordered else None), f"start of {color}")
        paths[color] = PathDefinition(
            color=color,
            name=str(raw_path.get("name") or color),
            start=path_start,
            spaces=tuple(ordered),
            end=finish,
        )

    spaces[start] = Space(
        coordinates=start,
        kind=START,
        path_color=None,
        successors=tuple(start_options.values()),
        start_options=start_options,
    )
    spaces[finish] = Space(coordinates=finish, kind=FINISH, path_color=None)

    return Board(spaces, paths, start, finish, board_id=str(data.get("id") or ""))


def load_board(setup_id: str | None = None, data_dir: Path | str | None = None) -> Board:
    """Load and validate board.json for a setup."""
    return build_board(load_board_data(setup_id=setup_id, data_dir=data_dir))


# ===== Validation =====

def _validate_board(board: Board) -> None:
    """
    Fail fast on any structural problem:
    - dangling successor references
    - successor counts that do not match the space kind
    - choicepoints whose branches do not lead onto distinct paths
    - START options that do not match the declared paths
    - paths that do not reach FINISH
    - cycles anywhere reachable from START
    """
    start_space = board.start_space
    if set(start_space.start_options) != set(board.colors):
        raise ConfigurationError(
            f"START options {sorted(start_space.start_options)} do not match paths {sorted(board.colors)}"
        )

    for space in board.spaces():
        for succ in space.successors:
            if board.space_at(succ) is None:
                raise ConfigurationError(f"Space {space.coordinates} points at missing space {succ}")
        if space.kind in (REGULAR, DRAW) and len(space.successors) != 1:
            raise ConfigurationError(
                f"{space.kind} space {space.coordinates} must have exactly one successor"
            )
        if space.kind == CHOICEPOINT:
            if len(space.successors) < 2:
                raise ConfigurationError(f"Choicepoint {space.coordinates} needs at least two successors")
            branch_colors = {color for _, color in board.successor_colors(space)}
            if len(branch_colors) < 2:
                raise ConfigurationError(
                    f"Choicepoint {space.coordinates} branches do not lead onto distinct paths"
                )
        if space.kind == FINISH and space.successors:
            raise ConfigurationError("FINISH cannot have successors")

    for path in board.paths():
        if path.start != start_space.start_options[path.color]:
            raise ConfigurationError(f"Path {path.color} start {path.start} is not START's {path.color} option")
        for coord in path.spaces:
            if board.space_at(coord) is None:
                raise ConfigurationError(f"Path {path.color} references missing space {coord}")
        _walk_path_to_finish(board, path)

    board._steps_to_finish = _longest_steps_to_finish(board)


def _walk_path_to_finish(board: Board, path: PathDefinition) -> None:
    """Follow a path from its start, taking its own branch at choicepoints."""
    current = board.space_at(path.start)
    limit = len(path.spaces)
    steps = 0
    while current.kind != FINISH:
        if steps > limit:
            raise ConfigurationError(f"Path {path.color} does not reach FINISH within {limit} steps")
        if current.kind == CHOICEPOINT:
            own = [coord for coord, color in board.successor_colors(current) if color == path.color]
            if not own:
                raise ConfigurationError(
                    f"Choicepoint {current.coordinates} on path {path.color} has no {path.color} branch"
                )
            current = board.space_at(own[0])
        else:
            current = board.space_at(current.successors[0])
        steps += 1


def _longest_steps_to_finish(board: Board) -> dict[Coordinate, int]:
    """Depth-first search from START; detects cycles and computes longest distance to FINISH."""
    done: dict[Coordinate, int] = {}
    in_progress: set[Coordinate] = set()
    # Iterative DFS: (coordinate, children_pushed)
    stack: list[tuple[Coordinate, bool]] = [(board.start, False)]
    while stack:
        coord, expanded = stack.pop()
        if coord in done:
            continue
        space = board.space_at(coord)
        if expanded:
            in_progress.discard(coord)
            if space.kind == FINISH:
                done[coord] = 0
            else:
                done[coord] = 1 + max(done[s] for s in space.successors)
            continue
        if coord in in_progress:
            raise ConfigurationError(f"Cycle detected through space {coord}")
        if space.kind != FINISH and not space.successors:
            raise ConfigurationError(f"Dead end at space {coord}")
        in_progress.add(coord)
        stack.append((coord, True))
        for succ in space.successors:
            if succ in in_progress:
                raise ConfigurationError(f"Cycle detected through space {succ}")
            if succ not in done:
                stack.append((succ, False))
    return done
