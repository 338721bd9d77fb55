"""Game session: turn order, strategy dispatch, growth and scoring."""

from __future__ import annotations

import logging
import random
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Callable, Iterable, List, Optional, Tuple

from .ai import Difficulty, ExactStrategy, MoveStrategy, make_strategy
from .board import (
    IN_PROGRESS,
    Board,
    Cell,
    Outcome,
    OutcomeKind,
    WinLineIndex,
    evaluate,
)
from .dynamic import DynamicBoardController, Window, max_hidden_layers
from .errors import IllegalMove, InvalidDimension

LOGGER = logging.getLogger(__name__)


class BoardMode(str, Enum):
    STATIC = "static"
    DYNAMIC = "dynamic"


class Phase(str, Enum):
    AWAITING_PLAYER = "awaiting_player"
    AWAITING_AI = "awaiting_ai"
    TERMINAL = "terminal"


# ---------- Configuration ----------


def default_win_length(size: int) -> int:
    # Classic rules on small boards, five in a row on anything larger
    return min(5, size)


@dataclass
class GameConfig:
    mode: BoardMode = BoardMode.STATIC
    # Side of the (starting) square board
    size: int = 3
    win_length: Optional[int] = None
    difficulty: Difficulty = Difficulty.RANDOM
    start_hidden_layers: int = 0
    # Dynamic mode only: ring growth with zoom, or directional growth without
    fog: bool = True
    # Largest side growth may reach; None grows without limit
    max_size: Optional[int] = None

    def __post_init__(self) -> None:
        self.mode = BoardMode(self.mode)
        self.difficulty = Difficulty(self.difficulty)
        if self.size < 1:
            raise InvalidDimension(f"Board size must be positive, got {self.size}")
        if self.win_length is None:
            self.win_length = default_win_length(self.size)
        if not 1 <= self.win_length <= self.size:
            raise InvalidDimension(
                f"Win length must be within [1, {self.size}], got {self.win_length}"
            )
        if self.mode is BoardMode.STATIC or not self.fog:
            limit = 0
        else:
            limit = max_hidden_layers(self.size, self.size, self.win_length)
        if not 0 <= self.start_hidden_layers <= limit:
            raise InvalidDimension(
                f"Hidden layers must be within [0, {limit}], "
                f"got {self.start_hidden_layers}"
            )
        if self.max_size is not None and self.max_size < self.size:
            raise InvalidDimension(
                f"Growth limit {self.max_size} is below the board size {self.size}"
            )


# ---------- Scores ----------


@dataclass
class Scores:
    player_wins: int = 0
    ai_wins: int = 0
    draws: int = 0

    def record(self, outcome: Outcome) -> None:
        if outcome.kind is OutcomeKind.DRAW:
            self.draws += 1
        elif outcome.kind is OutcomeKind.WIN:
            if outcome.mark is Cell.PLAYER:
                self.player_wins += 1
            else:
                self.ai_wins += 1

    def reset(self) -> None:
        self.player_wins = self.ai_wins = self.draws = 0

    def snapshot(self) -> "Scores":
        return replace(self)

    def as_dict(self) -> dict:
        return asdict(self)


# ---------- Collaborator hooks ----------


class GameListener:
    """Display hooks; every method is a no-op so subclasses override what they need."""

    def on_cell_changed(self, index: int, cell: Cell) -> None:
        pass

    def on_outcome(self, outcome: Outcome) -> None:
        pass

    def on_shape_changed(self, rows: int, cols: int) -> None:
        pass

    def on_visibility_changed(self, window: Window) -> None:
        pass


ScoreSink = Callable[[Scores], None]


@dataclass(frozen=True)
class GameState:
    board: Board
    current_player: Cell
    is_active: bool
    win_length: int
    mode: BoardMode
    hidden_layers: int
    phase: Phase
    outcome: Outcome
    visible_window: Window
    last_move: Optional[int] = None


# ---------- Session ----------


class GameSession:
    """Owns one game: board, win lines, the AI strategy and the score tally.

    The player always moves first. ``place_at`` handles the player's turn and
    ``tick`` the AI's; both run to completion synchronously.
    """

    def __init__(
        self,
        config: Optional[GameConfig] = None,
        *,
        rng: Optional[random.Random] = None,
        listeners: Iterable[GameListener] = (),
        score_sink: Optional[ScoreSink] = None,
    ):
        self.config = config or GameConfig()
        self.rng = rng or random.Random()
        self.listeners: List[GameListener] = list(listeners)
        self.score_sink = score_sink
        self.scores = Scores()
        self.reset()

    # ---- state ----

    @property
    def win_length(self) -> int:
        return self.config.win_length

    @property
    def mode(self) -> BoardMode:
        return self.config.mode

    @property
    def hidden_layers(self) -> int:
        return self.controller.hidden_layers if self.controller else 0

    @property
    def is_active(self) -> bool:
        return self.phase is not Phase.TERMINAL

    @property
    def current_player(self) -> Cell:
        return Cell.AI if self.phase is Phase.AWAITING_AI else Cell.PLAYER

    def visible_window(self) -> Window:
        if self.controller:
            return self.controller.visible_window()
        return Window.of(self.board)

    def is_visible(self, index: int) -> bool:
        if self.controller:
            return self.controller.is_visible(index)
        self.board.get(index)
        return True

    def legal_moves(self) -> List[int]:
        """Cells the player may currently choose."""
        if self.controller:
            return self.controller.legal_indices(self.board)
        return self.board.empty_indices()

    def snapshot(self) -> GameState:
        return GameState(
            board=self.board.clone(),
            current_player=self.current_player,
            is_active=self.is_active,
            win_length=self.win_length,
            mode=self.mode,
            hidden_layers=self.hidden_layers,
            phase=self.phase,
            outcome=self.outcome,
            visible_window=self.visible_window(),
            last_move=self.last_move,
        )

    # ---- lifecycle ----

    def reset(self) -> None:
        cfg = self.config
        self.board = Board.create(cfg.size, cfg.size)
        self.controller: Optional[DynamicBoardController] = None
        if cfg.mode is BoardMode.DYNAMIC:
            self.controller = DynamicBoardController(
                cfg.size,
                cfg.size,
                cfg.win_length,
                hidden_layers=cfg.start_hidden_layers,
                fog=cfg.fog,
                max_side=cfg.max_size,
            )
        self.strategy: MoveStrategy = make_strategy(cfg.difficulty, Cell.AI, self.rng)
        self.lines = WinLineIndex.build(self.board.rows, self.board.cols, cfg.win_length)
        self.phase = Phase.AWAITING_PLAYER
        self.outcome: Outcome = IN_PROGRESS
        self.last_move: Optional[int] = None
        LOGGER.debug(
            "New %s game %dx%d (win %d, %s)",
            cfg.mode.value,
            cfg.size,
            cfg.size,
            cfg.win_length,
            cfg.difficulty.value,
        )
        self._emit_shape()

    def configure(self, config: GameConfig) -> None:
        """Switch configuration and start over; scores carry across."""
        self.config = config
        self.reset()

    def set_difficulty(self, difficulty: Difficulty) -> None:
        self.configure(replace(self.config, difficulty=Difficulty(difficulty)))

    def reset_scores(self) -> None:
        self.scores.reset()
        self._publish_scores()

    # ---- turns ----

    def place_at(self, index: int) -> bool:
        """Apply the player's move; returns False when the move is rejected."""
        self.board.get(index)
        try:
            self._check_player_move(index)
        except IllegalMove as exc:
            LOGGER.debug("Rejected move at %d: %s", index, exc)
            return False
        self._apply(index, Cell.PLAYER)
        return True

    def tick(self) -> Optional[int]:
        """Play the AI's move if it is the AI's turn; returns where it landed."""
        if self.phase is not Phase.AWAITING_AI:
            return None
        legal, region = self._ai_moves()
        index = self.strategy.select_move(
            self.board, self.lines.lines, self.win_length, legal, region
        )
        # Reveal before growth so the ring test sees the widened window
        if self.controller and self.controller.reveal(index):
            self._emit_visibility()
        self._apply(index, Cell.AI)
        return self.last_move

    def adjust_zoom(self, delta: int) -> bool:
        if self.phase is Phase.TERMINAL or self.controller is None:
            return False
        try:
            changed = self.controller.adjust_zoom(delta)
        except IllegalMove as exc:
            LOGGER.debug("Rejected zoom: %s", exc)
            return False
        if changed:
            self._emit_visibility()
        return changed

    # ---- helpers ----

    def _check_player_move(self, index: int) -> None:
        if self.phase is not Phase.AWAITING_PLAYER:
            raise IllegalMove(f"Not the player's turn ({self.phase.value})")
        if self.board.get(index) is not Cell.EMPTY:
            raise IllegalMove("Cell already occupied")
        if not self.is_visible(index):
            raise IllegalMove("Cell is not visible")

    def _ai_moves(self) -> Tuple[List[int], Window]:
        whole = Window.of(self.board)
        if self.controller is None:
            return self.board.empty_indices(), whole
        if self.config.difficulty is Difficulty.EXACT and ExactStrategy.applies(
            self.board, self.win_length
        ):
            return self.board.empty_indices(), whole
        legal = self.controller.legal_indices(self.board)
        if legal:
            return legal, self.controller.visible_window()
        LOGGER.info("No visible empty cell left; AI looks past the fog")
        return self.board.empty_indices(), whole

    def _apply(self, index: int, mark: Cell) -> None:
        self.board.set(index, mark)
        self._emit_cell(index, mark)

        if self.controller:
            row, col = divmod(index, self.board.cols)
            self.board, shift = self.controller.grow_after_move(self.board, index)
            if shift is not None:
                index = self.board.index_of(row + shift[0], col + shift[1])
                self.lines = WinLineIndex.build(
                    self.board.rows, self.board.cols, self.win_length
                )
                self._emit_shape()

        self.last_move = index
        outcome = evaluate(self.board, self.lines)
        if outcome.is_terminal:
            self._finish(outcome)
        else:
            self.phase = (
                Phase.AWAITING_AI if mark is Cell.PLAYER else Phase.AWAITING_PLAYER
            )

    def _finish(self, outcome: Outcome) -> None:
        self.phase = Phase.TERMINAL
        self.outcome = outcome
        self.scores.record(outcome)
        if outcome.kind is OutcomeKind.WIN:
            LOGGER.info("Game won by %s on line %s", outcome.mark.value, outcome.line)
        else:
            LOGGER.info("Game drawn on a %dx%d board", self.board.rows, self.board.cols)
        for listener in self.listeners:
            listener.on_outcome(outcome)
        self._publish_scores()

    def _publish_scores(self) -> None:
        if self.score_sink is not None:
            self.score_sink(self.scores.snapshot())

    def _emit_cell(self, index: int, cell: Cell) -> None:
        for listener in self.listeners:
            listener.on_cell_changed(index, cell)

    def _emit_shape(self) -> None:
        for listener in self.listeners:
            listener.on_shape_changed(self.board.rows, self.board.cols)
        self._emit_visibility()

    def _emit_visibility(self) -> None:
        window = self.visible_window()
        for listener in self.listeners:
            listener.on_visibility_changed(window)
