"""Board storage, win-line generation and outcome detection."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from .errors import IndexOutOfBounds, InvalidDimension


class Cell(str, Enum):
    EMPTY = " "
    PLAYER = "X"
    AI = "O"

    def opponent(self) -> "Cell":
        if self is Cell.PLAYER:
            return Cell.AI
        if self is Cell.AI:
            return Cell.PLAYER
        raise ValueError("Empty cell has no opponent")


WinLine = Tuple[int, ...]

# (d_row, d_col) for right, down, down-right, down-left
DIRECTIONS: Tuple[Tuple[int, int], ...] = ((0, 1), (1, 0), (1, 1), (1, -1))


# ---------- Board ----------


@dataclass
class Board:
    rows: int
    cols: int
    # Row-major, index = row * cols + col
    cells: List[Cell] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.rows < 1 or self.cols < 1:
            raise InvalidDimension(
                f"Board must be at least 1x1, got {self.rows}x{self.cols}"
            )
        size = self.rows * self.cols
        if not self.cells:
            self.cells = [Cell.EMPTY] * size
        elif len(self.cells) != size:
            raise InvalidDimension(
                f"Expected {size} cells for a {self.rows}x{self.cols} board, "
                f"got {len(self.cells)}"
            )

    @classmethod
    def create(cls, rows: int, cols: int) -> "Board":
        return cls(rows=rows, cols=cols)

    def __len__(self) -> int:
        return len(self.cells)

    # ---- access ----

    def in_bounds(self, row: int, col: int) -> bool:
        return 0 <= row < self.rows and 0 <= col < self.cols

    def index_of(self, row: int, col: int) -> int:
        if not self.in_bounds(row, col):
            raise IndexOutOfBounds(
                f"({row}, {col}) is outside a {self.rows}x{self.cols} board"
            )
        return row * self.cols + col

    def coords(self, index: int) -> Tuple[int, int]:
        self._check_index(index)
        return divmod(index, self.cols)

    def get(self, index: int) -> Cell:
        self._check_index(index)
        return self.cells[index]

    def set(self, index: int, cell: Cell) -> None:
        self._check_index(index)
        self.cells[index] = cell

    def is_full(self) -> bool:
        return all(c is not Cell.EMPTY for c in self.cells)

    def empty_indices(self) -> List[int]:
        return [i for i, c in enumerate(self.cells) if c is Cell.EMPTY]

    def mark_count(self, cell: Cell) -> int:
        return sum(1 for c in self.cells if c is cell)

    def clone(self) -> "Board":
        return Board(rows=self.rows, cols=self.cols, cells=self.cells.copy())

    def resize(
        self, new_rows: int, new_cols: int, row_offset: int = 0, col_offset: int = 0
    ) -> "Board":
        """Copy this board into a new shape, shifting contents by the offsets.

        Empty cells that fall outside the new shape are dropped; an occupied
        one is an error since growth never clips marks.
        """
        resized = Board(rows=new_rows, cols=new_cols)
        for index, cell in enumerate(self.cells):
            row, col = divmod(index, self.cols)
            target_row, target_col = row + row_offset, col + col_offset
            if not resized.in_bounds(target_row, target_col):
                if cell is not Cell.EMPTY:
                    raise IndexOutOfBounds(
                        f"Resize would clip mark {cell.value!r} at ({row}, {col})"
                    )
                continue
            resized.cells[target_row * new_cols + target_col] = cell
        return resized

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self.cells):
            raise IndexOutOfBounds(
                f"Index {index} is outside a {self.rows}x{self.cols} board"
            )


# ---------- Win lines ----------


def build_win_lines(rows: int, cols: int, win_length: int) -> Tuple[WinLine, ...]:
    """Every straight run of ``win_length`` cells, one per start cell and direction."""
    if rows < 1 or cols < 1:
        raise InvalidDimension(f"Board must be at least 1x1, got {rows}x{cols}")
    if win_length < 1:
        raise InvalidDimension(f"Win length must be positive, got {win_length}")

    lines: List[WinLine] = []
    for r in range(rows):
        for c in range(cols):
            for dr, dc in DIRECTIONS:
                if win_length == 1 and (dr, dc) != DIRECTIONS[0]:
                    # a single cell is the same line in every direction
                    continue
                end_r = r + dr * (win_length - 1)
                end_c = c + dc * (win_length - 1)
                if not (0 <= end_r < rows and 0 <= end_c < cols):
                    continue
                lines.append(
                    tuple(
                        (r + dr * k) * cols + (c + dc * k) for k in range(win_length)
                    )
                )
    return tuple(lines)


@dataclass(frozen=True)
class WinLineIndex:
    rows: int
    cols: int
    win_length: int
    lines: Tuple[WinLine, ...]

    @classmethod
    def build(cls, rows: int, cols: int, win_length: int) -> "WinLineIndex":
        return cls(
            rows=rows,
            cols=cols,
            win_length=win_length,
            lines=build_win_lines(rows, cols, win_length),
        )

    def __iter__(self):
        return iter(self.lines)

    def __len__(self) -> int:
        return len(self.lines)


# ---------- Outcome ----------


class OutcomeKind(str, Enum):
    IN_PROGRESS = "in_progress"
    WIN = "win"
    DRAW = "draw"


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    mark: Optional[Cell] = None
    line: Optional[WinLine] = None

    @property
    def is_terminal(self) -> bool:
        return self.kind is not OutcomeKind.IN_PROGRESS


IN_PROGRESS = Outcome(OutcomeKind.IN_PROGRESS)
DRAW = Outcome(OutcomeKind.DRAW)


def winning_line(board: Board, lines: Iterable[WinLine]) -> Optional[WinLine]:
    cells = board.cells
    for line in lines:
        first = cells[line[0]]
        if first is Cell.EMPTY:
            continue
        if all(cells[i] is first for i in line):
            return line
    return None


def evaluate(board: Board, lines: Iterable[WinLine]) -> Outcome:
    """First uniformly marked line wins; otherwise draw when full."""
    line = winning_line(board, lines)
    if line is not None:
        return Outcome(OutcomeKind.WIN, mark=board.cells[line[0]], line=line)
    if board.is_full():
        return DRAW
    return IN_PROGRESS
