import random
from typing import Dict, Iterable, List, Optional, Tuple

Position = Tuple[int, int]  # (x, y), 0-indexed

# Fixed action order; Q-value vectors are indexed the same way.
ACTIONS = ("up", "down", "left", "right")
ACTION_DELTAS: Dict[str, Position] = {
    "up": (0, -1),
    "down": (0, 1),
    "left": (-1, 0),
    "right": (1, 0),
}


# --- geometry ---
def manhattan(a: Position, b: Position) -> int:
    return abs(a[0] - b[0]) + abs(a[1] - b[1])


class Environment:
    """Board geometry shared read-only by every entity of a run."""

    def __init__(self, board_size: int, rng: Optional[random.Random] = None):
        if board_size < 1:
            raise ValueError(f"board_size must be positive, got {board_size}")
        self.board_size = board_size
        self.rng = rng if rng is not None else random.Random()

    def random_pos(self) -> Position:
        span = self.board_size - 1
        return (round(self.rng.random() * span), round(self.rng.random() * span))

    def is_valid(self, pos: Position) -> bool:
        x, y = pos
        return 0 <= x < self.board_size and 0 <= y < self.board_size


class Agent:
    """Entity backed by its move history; the last entry is the current position."""

    symbol = "o"

    def __init__(self, env: Environment, start: Optional[Position] = None):
        self.env = env
        start = tuple(start) if start is not None else env.random_pos()
        if not env.is_valid(start):
            raise ValueError(f"start position {start} is outside a {env.board_size}x{env.board_size} board")
        self._history: List[Position] = [start]

    @property
    def move_history(self) -> Tuple[Position, ...]:
        return tuple(self._history)

    @property
    def position(self) -> Position:
        return self._history[-1]

    @property
    def x(self) -> int:
        return self.position[0]

    @property
    def y(self) -> int:
        return self.position[1]

    def distance(self, pos: Position) -> int:
        return manhattan(self.position, pos)

    def get_past_position(self, steps_back: int) -> Optional[Position]:
        index = len(self._history) - 1 - steps_back
        if index < 0:
            return None
        return self._history[index]

    def move(self, action: str) -> None:
        """Apply one move. Blocked moves re-append the current cell so is_idle() can see them."""
        dx, dy = ACTION_DELTAS[action]
        x, y = self.position
        candidate = (x + dx, y + dy)
        self._history.append(candidate if self.env.is_valid(candidate) else self.position)

    def undo_move(self) -> None:
        if len(self._history) < 2:
            raise RuntimeError("undo_move() called with no move to undo")
        self._history.pop()

    def is_idle(self) -> bool:
        past = self.get_past_position(1)
        return past is not None and past == self.position

    def has_reached_goal(self, goal: "Goal") -> bool:
        return self.position == goal.position


class Goal:
    symbol = "E"

    def __init__(self, position: Position):
        self._position = tuple(position)

    @property
    def position(self) -> Position:
        return self._position

    @property
    def x(self) -> int:
        return self._position[0]

    @property
    def y(self) -> int:
        return self._position[1]

    def distance(self, pos: Position) -> int:
        return manhattan(self._position, pos)


def render_board(board_size: int, entities: Iterable) -> str:
    """Text snapshot of the board, one row per y coordinate. Later entities draw over earlier ones."""
    cells = [["| |"] * board_size for _ in range(board_size)]
    for entity in entities:
        cells[entity.y][entity.x] = f"|{entity.symbol}|"
    return "\n".join("".join(row) for row in cells)
