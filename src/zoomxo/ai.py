"""Move selection for the four difficulty tiers."""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from .board import Board, Cell, OutcomeKind, WinLine, evaluate
from .dynamic import Window
from .errors import PreconditionViolation


class Difficulty(str, Enum):
    RANDOM = "random"
    BLOCKING = "blocking"
    HEURISTIC = "heuristic"
    EXACT = "exact"


class MoveStrategy(Protocol):
    mark: Cell

    def select_move(
        self,
        board: Board,
        lines: Sequence[WinLine],
        win_length: int,
        legal: Sequence[int],
        region: Optional[Window] = None,
    ) -> int:
        ...


def completing_cell(
    board: Board, line: WinLine, mark: Cell, legal: Iterable[int]
) -> Optional[int]:
    """The single empty cell that would complete ``line`` for ``mark``, if legal."""
    cells = [board.cells[i] for i in line]
    if cells.count(mark) != len(line) - 1 or cells.count(Cell.EMPTY) != 1:
        return None
    target = line[cells.index(Cell.EMPTY)]
    return target if target in legal else None


def _require_moves(legal: Sequence[int]) -> None:
    if not legal:
        raise PreconditionViolation("No legal moves available")


# ---------- Random ----------


@dataclass
class RandomStrategy:
    mark: Cell = Cell.AI
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def select_move(
        self,
        board: Board,
        lines: Sequence[WinLine],
        win_length: int,
        legal: Sequence[int],
        region: Optional[Window] = None,
    ) -> int:
        _require_moves(legal)
        return self.rng.choice(list(legal))


# ---------- Blocking ----------


@dataclass
class BlockingStrategy(RandomStrategy):
    """Stops any line the opponent is one mark away from; random otherwise."""

    def select_move(
        self,
        board: Board,
        lines: Sequence[WinLine],
        win_length: int,
        legal: Sequence[int],
        region: Optional[Window] = None,
    ) -> int:
        _require_moves(legal)
        allowed = set(legal)
        opponent = self.mark.opponent()
        for line in lines:
            target = completing_cell(board, line, opponent, allowed)
            if target is not None:
                return target
        return super().select_move(board, lines, win_length, legal, region)


# ---------- Heuristic ----------


@dataclass
class HeuristicStrategy(RandomStrategy):
    """Win, block, center, corner, then anything (in that order)."""

    def select_move(
        self,
        board: Board,
        lines: Sequence[WinLine],
        win_length: int,
        legal: Sequence[int],
        region: Optional[Window] = None,
    ) -> int:
        _require_moves(legal)
        allowed = set(legal)
        region = region or Window.of(board)

        # 1) Win now, 2) block
        for mark in (self.mark, self.mark.opponent()):
            for line in lines:
                target = completing_cell(board, line, mark, allowed)
                if target is not None:
                    return target

        # 3) Center of the region
        center = board.index_of(*region.center())
        if center in allowed:
            return center

        # 4) Corners of the region
        corners = sorted(
            {board.index_of(r, c) for r, c in region.corners()} & allowed
        )
        if corners:
            return self.rng.choice(corners)

        # 5) Anything
        return super().select_move(board, lines, win_length, legal, region)


# ---------- Exact ----------


@dataclass
class ExactStrategy(RandomStrategy):
    """Full-depth minimax for the classic board, heuristic play elsewhere.

    Public surface matches the other tiers:
      - ExactStrategy(mark=Cell.AI)
      - select_move(board, lines, win_length, legal) -> index
    """

    _tt: Dict[Tuple[Tuple[Cell, ...], bool], int] = field(
        default_factory=dict, repr=False
    )

    @staticmethod
    def applies(board: Board, win_length: int) -> bool:
        return board.rows == 3 and board.cols == 3 and win_length == 3

    def select_move(
        self,
        board: Board,
        lines: Sequence[WinLine],
        win_length: int,
        legal: Sequence[int],
        region: Optional[Window] = None,
    ) -> int:
        _require_moves(legal)
        if not self.applies(board, win_length):
            return HeuristicStrategy(mark=self.mark, rng=self.rng).select_move(
                board, lines, win_length, legal, region
            )

        # Search on a private copy with undo-after-recurse
        scratch = board.clone()
        self._tt.clear()
        best_score = -math.inf
        best_move: Optional[int] = None
        for index in legal:
            scratch.cells[index] = self.mark
            score = self._minimax(scratch, lines, 0, False)
            scratch.cells[index] = Cell.EMPTY
            if score > best_score:
                best_score, best_move = score, index
        if best_move is None:
            raise PreconditionViolation("No valid moves available")
        return best_move

    # ---- core search ----

    def _minimax(
        self, board: Board, lines: Sequence[WinLine], depth: int, maximizing: bool
    ) -> int:
        outcome = evaluate(board, lines)
        if outcome.kind is OutcomeKind.WIN:
            return 10 - depth if outcome.mark is self.mark else -10 + depth
        if outcome.kind is OutcomeKind.DRAW:
            return 0

        # Ply count from the root is fixed by the position, so the key is enough
        key = (tuple(board.cells), maximizing)
        cached = self._tt.get(key)
        if cached is not None:
            return cached

        mark = self.mark if maximizing else self.mark.opponent()
        scores: List[int] = []
        for index in board.empty_indices():
            board.cells[index] = mark
            scores.append(self._minimax(board, lines, depth + 1, not maximizing))
            board.cells[index] = Cell.EMPTY

        value = max(scores) if maximizing else min(scores)
        self._tt[key] = value
        return value


STRATEGIES = {
    Difficulty.RANDOM: RandomStrategy,
    Difficulty.BLOCKING: BlockingStrategy,
    Difficulty.HEURISTIC: HeuristicStrategy,
    Difficulty.EXACT: ExactStrategy,
}


def make_strategy(
    difficulty: Difficulty, mark: Cell = Cell.AI, rng: Optional[random.Random] = None
) -> MoveStrategy:
    cls = STRATEGIES[Difficulty(difficulty)]
    return cls(mark=mark, rng=rng or random.Random())
