"""Tests for the four move-selection strategies."""

import random

import pytest

from zoomxo.ai import (
    STRATEGIES,
    BlockingStrategy,
    Difficulty,
    ExactStrategy,
    HeuristicStrategy,
    RandomStrategy,
    make_strategy,
)
from zoomxo.board import Board, Cell, OutcomeKind, WinLineIndex, evaluate
from zoomxo.dynamic import Window
from zoomxo.errors import PreconditionViolation

X, O, _ = Cell.PLAYER, Cell.AI, Cell.EMPTY
LINES_3 = WinLineIndex.build(3, 3, 3).lines


def board_3x3(cells):
    return Board(rows=3, cols=3, cells=list(cells))


def choose(strategy, board, win_length=3, legal=None, region=None):
    lines = WinLineIndex.build(board.rows, board.cols, win_length).lines
    if legal is None:
        legal = board.empty_indices()
    return strategy.select_move(board, lines, win_length, legal, region)


@pytest.mark.parametrize("difficulty", list(Difficulty))
def test_every_tier_refuses_empty_legal_moves(difficulty):
    strategy = make_strategy(difficulty, rng=random.Random(0))
    with pytest.raises(PreconditionViolation):
        choose(strategy, board_3x3([_] * 9), legal=[])


def test_lookup_table_covers_every_difficulty():
    assert set(STRATEGIES) == set(Difficulty)
    assert isinstance(make_strategy("exact"), ExactStrategy)
    assert isinstance(make_strategy(Difficulty.BLOCKING), BlockingStrategy)


def test_random_is_reproducible_with_injected_source():
    board = Board.create(4, 4)
    a, b = RandomStrategy(rng=random.Random(3)), RandomStrategy(rng=random.Random(3))
    first = [choose(a, board) for _ in range(5)]
    second = [choose(b, board) for _ in range(5)]
    assert first == second
    assert all(0 <= move < 16 for move in first)


def test_random_only_picks_from_legal_subset():
    strategy = RandomStrategy(rng=random.Random(1))
    board = Board.create(3, 3)
    for _ in range(20):
        assert choose(strategy, board, legal=[2, 7]) in (2, 7)


def test_blocking_stops_open_two():
    board = board_3x3([X, X, _, _, _, _, _, _, _])
    assert choose(BlockingStrategy(rng=random.Random(0)), board) == 2


def test_blocking_finds_the_single_threat_on_larger_board():
    board = Board.create(5, 5)
    for r in (0, 1, 2):
        board.set(board.index_of(r, 4), X)
    board.set(board.index_of(4, 0), O)
    strategy = BlockingStrategy(rng=random.Random(5))
    assert choose(strategy, board, win_length=4) == board.index_of(3, 4)


def test_blocking_ignores_threat_outside_legal_cells():
    board = board_3x3([X, X, _, _, _, _, _, _, _])
    move = choose(BlockingStrategy(rng=random.Random(0)), board, legal=[5, 8])
    assert move in (5, 8)


def test_heuristic_prefers_winning_over_blocking():
    board = board_3x3([X, X, _, O, O, _, X, _, _])
    assert choose(HeuristicStrategy(rng=random.Random(0)), board) == 5


def test_heuristic_blocks_when_it_cannot_win():
    board = board_3x3([X, _, _, _, O, _, _, _, X])
    board.set(3, X)
    # X threatens column 0 (0, 3, 6)
    assert choose(HeuristicStrategy(rng=random.Random(0)), board) == 6


def test_heuristic_takes_center_then_corner():
    strategy = HeuristicStrategy(rng=random.Random(2))
    assert choose(strategy, board_3x3([_] * 9)) == 4
    assert choose(strategy, board_3x3([_, _, _, _, X, _, _, _, _])) in (0, 2, 6, 8)


def test_heuristic_falls_back_to_any_legal_cell():
    board = board_3x3([X, _, _, _, _, _, _, _, _])
    # center and corners are not on offer, nothing is one move from a line
    move = choose(HeuristicStrategy(rng=random.Random(0)), board, legal=[5, 7])
    assert move in (5, 7)


def test_heuristic_center_follows_the_visible_region():
    board = Board.create(7, 7)
    region = Window(2, 2, 3, 3)
    legal = [i for i in board.empty_indices() if region.contains(*board.coords(i))]
    move = choose(HeuristicStrategy(rng=random.Random(0)), board, legal=legal, region=region)
    assert move == board.index_of(3, 3)

    board.set(board.index_of(3, 3), X)
    legal.remove(board.index_of(3, 3))
    move = choose(HeuristicStrategy(rng=random.Random(0)), board, legal=legal, region=region)
    assert move in {board.index_of(r, c) for r, c in region.corners()}


def test_exact_answers_center_with_a_corner():
    board = board_3x3([_, _, _, _, X, _, _, _, _])
    move = choose(ExactStrategy(), board)
    assert move in (0, 2, 6, 8)
    # ties keep the lowest index
    assert move == 0


def test_exact_takes_quickest_win():
    board = board_3x3([O, O, _, X, X, _, X, _, _])
    assert choose(ExactStrategy(), board) == 2


def test_exact_does_not_mutate_board():
    board = board_3x3([X, _, _, _, _, _, _, _, _])
    before = list(board.cells)
    choose(ExactStrategy(), board)
    assert board.cells == before


def test_exact_defers_to_heuristic_off_the_classic_board():
    board = Board.create(4, 4)
    assert choose(ExactStrategy(rng=random.Random(0)), board) == board.index_of(2, 2)


def _player_can_beat_exact(board, ai):
    """Try every player continuation; True if any of them ends in a player win."""
    for index in board.empty_indices():
        board.cells[index] = X
        outcome = evaluate(board, LINES_3)
        if outcome.kind is OutcomeKind.WIN:
            board.cells[index] = _
            return True
        if outcome.kind is OutcomeKind.IN_PROGRESS:
            reply = ai.select_move(board, LINES_3, 3, board.empty_indices())
            board.cells[reply] = O
            after = evaluate(board, LINES_3)
            lost = after.kind is OutcomeKind.IN_PROGRESS and _player_can_beat_exact(
                board, ai
            )
            board.cells[reply] = _
            if lost:
                board.cells[index] = _
                return True
        board.cells[index] = _
    return False


def test_exact_never_loses_on_the_classic_board():
    assert not _player_can_beat_exact(board_3x3([_] * 9), ExactStrategy())


def test_optimal_play_from_center_opening_is_a_draw():
    board = board_3x3([_, _, _, _, X, _, _, _, _])
    ai, player = ExactStrategy(mark=O), ExactStrategy(mark=X)
    mover = ai
    outcome = evaluate(board, LINES_3)
    while not outcome.is_terminal:
        move = mover.select_move(board, LINES_3, 3, board.empty_indices())
        board.cells[move] = mover.mark
        outcome = evaluate(board, LINES_3)
        mover = player if mover is ai else ai
    assert outcome.kind is OutcomeKind.DRAW
