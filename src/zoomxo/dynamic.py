"""Growth and visibility (zoom) rules for the unbounded board mode."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from .board import Board, Cell
from .errors import IllegalMove, IndexOutOfBounds, InvalidDimension

LOGGER = logging.getLogger(__name__)


class Direction(str, Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"


@dataclass(frozen=True)
class Window:
    row_offset: int
    col_offset: int
    rows: int
    cols: int

    def contains(self, row: int, col: int) -> bool:
        return (
            self.row_offset <= row < self.row_offset + self.rows
            and self.col_offset <= col < self.col_offset + self.cols
        )

    def on_edge(self, row: int, col: int) -> bool:
        if not self.contains(row, col):
            return False
        return (
            row == self.row_offset
            or row == self.row_offset + self.rows - 1
            or col == self.col_offset
            or col == self.col_offset + self.cols - 1
        )

    def center(self) -> Tuple[int, int]:
        return self.row_offset + self.rows // 2, self.col_offset + self.cols // 2

    def corners(self) -> Tuple[Tuple[int, int], ...]:
        top, left = self.row_offset, self.col_offset
        bottom, right = top + self.rows - 1, left + self.cols - 1
        return ((top, left), (top, right), (bottom, left), (bottom, right))

    @classmethod
    def of(cls, board: Board) -> "Window":
        return cls(0, 0, board.rows, board.cols)


def max_hidden_layers(rows: int, cols: int, win_length: int) -> int:
    return max(0, (min(rows, cols) - win_length) // 2)


class DynamicBoardController:
    """Tracks the board shape and how many outer rings are concealed.

    With ``fog`` enabled the board grows by a whole ring whenever a move lands
    on the edge of the visible window, and the window can be zoomed in and out
    by hiding outer rings. Without fog the board only grows on the side(s)
    a move touches and everything is always visible.
    """

    def __init__(
        self,
        rows: int,
        cols: int,
        win_length: int,
        hidden_layers: int = 0,
        fog: bool = True,
        max_side: Optional[int] = None,
    ):
        if rows < 1 or cols < 1:
            raise InvalidDimension(f"Board must be at least 1x1, got {rows}x{cols}")
        if win_length < 1 or win_length > min(rows, cols):
            raise InvalidDimension(
                f"Win length {win_length} does not fit a {rows}x{cols} board"
            )
        if not fog and hidden_layers:
            raise InvalidDimension("Hidden layers require fog mode")
        limit = max_hidden_layers(rows, cols, win_length)
        if not 0 <= hidden_layers <= limit:
            raise InvalidDimension(
                f"Hidden layers must be within [0, {limit}], got {hidden_layers}"
            )
        if max_side is not None and max_side < max(rows, cols):
            raise InvalidDimension(
                f"Growth limit {max_side} is smaller than a {rows}x{cols} board"
            )
        self.rows = rows
        self.cols = cols
        self.win_length = win_length
        self.hidden_layers = hidden_layers
        self.fog = fog
        self.max_side = max_side

    # ---- visibility ----

    @property
    def max_hidden_layers(self) -> int:
        if not self.fog:
            return 0
        return max_hidden_layers(self.rows, self.cols, self.win_length)

    def visible_window(self) -> Window:
        h = self.hidden_layers
        return Window(h, h, self.rows - 2 * h, self.cols - 2 * h)

    def is_visible(self, index: int) -> bool:
        return self.visible_window().contains(*self._coords(index))

    def is_outer_ring_of_visible(self, index: int) -> bool:
        return self.visible_window().on_edge(*self._coords(index))

    def legal_indices(self, board: Board) -> List[int]:
        """Empty cells inside the visible window, ascending."""
        self._check_shape(board)
        window = self.visible_window()
        return [
            i
            for i, c in enumerate(board.cells)
            if c is Cell.EMPTY and window.contains(*divmod(i, self.cols))
        ]

    def adjust_zoom(self, delta: int) -> bool:
        """Hide (+1) or reveal (-1) one outer ring; returns whether anything changed."""
        if delta not in (1, -1):
            raise ValueError(f"Zoom delta must be +1 or -1, got {delta}")
        if not self.fog:
            raise IllegalMove("Zoom is only available in fog mode")
        target = min(max(self.hidden_layers + delta, 0), self.max_hidden_layers)
        if target == self.hidden_layers:
            return False
        self.hidden_layers = target
        LOGGER.debug("Zoom set to %d hidden layers", target)
        return True

    def reveal(self, index: int) -> bool:
        """Retreat the zoom just far enough for ``index`` to become visible."""
        row, col = self._coords(index)
        # distance from the nearest board edge equals the ring the cell sits on
        ring = min(row, col, self.rows - 1 - row, self.cols - 1 - col)
        if ring >= self.hidden_layers:
            return False
        LOGGER.debug("Revealing ring %d for cell %d", ring, index)
        self.hidden_layers = ring
        return True

    # ---- growth ----

    def touched_edges(self, index: int) -> Tuple[Direction, ...]:
        row, col = self._coords(index)
        edges = []
        if row == 0:
            edges.append(Direction.UP)
        if row == self.rows - 1:
            edges.append(Direction.DOWN)
        if col == 0:
            edges.append(Direction.LEFT)
        if col == self.cols - 1:
            edges.append(Direction.RIGHT)
        return tuple(edges)

    def can_grow(self, extra_rows: int, extra_cols: int) -> bool:
        if self.max_side is None:
            return True
        return (
            self.rows + extra_rows <= self.max_side
            and self.cols + extra_cols <= self.max_side
        )

    def grow_by_ring(self, board: Board) -> Board:
        self._check_shape(board)
        grown = board.resize(self.rows + 2, self.cols + 2, 1, 1)
        self.rows, self.cols = grown.rows, grown.cols
        LOGGER.info("Board grew by a ring to %dx%d", self.rows, self.cols)
        return grown

    def grow_directional(self, board: Board, direction: Direction) -> Board:
        self._check_shape(board)
        direction = Direction(direction)
        if direction is Direction.UP:
            grown = board.resize(self.rows + 1, self.cols, 1, 0)
        elif direction is Direction.DOWN:
            grown = board.resize(self.rows + 1, self.cols, 0, 0)
        elif direction is Direction.LEFT:
            grown = board.resize(self.rows, self.cols + 1, 0, 1)
        else:
            grown = board.resize(self.rows, self.cols + 1, 0, 0)
        self.rows, self.cols = grown.rows, grown.cols
        LOGGER.info("Board grew %s to %dx%d", direction.value, self.rows, self.cols)
        return grown

    def grow_after_move(
        self, board: Board, index: int
    ) -> Tuple[Board, Optional[Tuple[int, int]]]:
        """Apply the growth trigger for a move at ``index``.

        Returns the (possibly new) board and the (row, col) shift applied to
        existing contents, or None when the board did not grow.
        """
        if self.fog:
            if not self.is_outer_ring_of_visible(index):
                return board, None
            if not self.can_grow(2, 2):
                LOGGER.debug("Board at growth limit %d, ring not added", self.max_side)
                return board, None
            return self.grow_by_ring(board), (1, 1)
        edges = tuple(
            d
            for d in self.touched_edges(index)
            if self.can_grow(*((1, 0) if d in (Direction.UP, Direction.DOWN) else (0, 1)))
        )
        if not edges:
            return board, None
        for direction in edges:
            board = self.grow_directional(board, direction)
        shift = (int(Direction.UP in edges), int(Direction.LEFT in edges))
        return board, shift

    # ---- helpers ----

    def _coords(self, index: int) -> Tuple[int, int]:
        if not 0 <= index < self.rows * self.cols:
            raise IndexOutOfBounds(
                f"Index {index} is outside a {self.rows}x{self.cols} board"
            )
        return divmod(index, self.cols)

    def _check_shape(self, board: Board) -> None:
        if (board.rows, board.cols) != (self.rows, self.cols):
            raise InvalidDimension(
                f"Board is {board.rows}x{board.cols} but controller tracks "
                f"{self.rows}x{self.cols}"
            )
