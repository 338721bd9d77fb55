"""ZoomXO package exposing the game engine, AI strategies, and the web API."""

from .ai import Difficulty, make_strategy
from .board import Board, Cell, Outcome, WinLineIndex, evaluate
from .dynamic import DynamicBoardController
from .game import BoardMode, GameConfig, GameSession

__all__ = [
    "Board",
    "BoardMode",
    "Cell",
    "Difficulty",
    "DynamicBoardController",
    "GameConfig",
    "GameSession",
    "Outcome",
    "WinLineIndex",
    "evaluate",
    "make_strategy",
]
