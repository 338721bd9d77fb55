"""Error taxonomy shared by the engine, the strategies and the web layer."""

from __future__ import annotations


class ZoomXOError(Exception):
    """Base class for every error raised by the engine."""


class InvalidDimension(ZoomXOError, ValueError):
    """A board shape or run-length is not positive (or does not fit)."""


class IndexOutOfBounds(ZoomXOError, IndexError):
    """A cell index or coordinate lies outside the current board."""


class IllegalMove(ZoomXOError, ValueError):
    """Placement on an occupied or concealed cell, or out of turn."""


class PreconditionViolation(ZoomXOError, RuntimeError):
    """A strategy was asked for a move while no legal move exists."""


class ScoreFileError(ZoomXOError, OSError):
    """The score file exists but cannot be parsed, so it is left untouched."""
