"""FastAPI application exposing ZoomXO game sessions over JSON."""

from __future__ import annotations

import logging
import os
import random
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from fastapi import BackgroundTasks, FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .ai import Difficulty
from .board import Cell, Outcome, OutcomeKind
from .errors import ZoomXOError
from .game import BoardMode, GameConfig, GameListener, GameSession, Phase, Scores
from .storage import JsonScoreStore, MemoryScoreStore, ScoreStore, leaderboard

LOGGER = logging.getLogger(__name__)


@dataclass
class ActiveGame:
    """Container for a running session and the account it reports to."""

    session: GameSession
    username: Optional[str] = None
    ai_pending: bool = False
    # Bumped whenever the board is replaced so a queued AI turn can tell it is stale
    generation: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


def _make_store() -> ScoreStore:
    path = os.environ.get("ZOOMXO_SCORES_PATH")
    if path:
        return JsonScoreStore(path)
    return MemoryScoreStore()


SESSIONS: Dict[str, ActiveGame] = {}
STORE: ScoreStore = _make_store()
app = FastAPI(title="ZoomXO", description="Tic-tac-toe on a board that keeps growing")


MAX_BOARD_SIZE = 15
# Side a dynamic board stops growing at
MAX_GROWN_SIZE = 31
AI_THINK_DELAY: Tuple[float, float] = (0.3, 0.6)


class NewGameRequest(BaseModel):
    """Request payload for starting a new game."""

    model_config = ConfigDict(populate_by_name=True)

    mode: BoardMode = BoardMode.STATIC
    size: int = Field(default=3, ge=1, le=MAX_BOARD_SIZE)
    win_length: Optional[int] = Field(default=None, alias="winLength", ge=1)
    difficulty: Difficulty = Difficulty.RANDOM
    hidden_layers: int = Field(default=0, alias="hiddenLayers", ge=0)
    fog: bool = True
    username: Optional[str] = Field(default=None, max_length=32)

    @field_validator("username")
    @classmethod
    def normalize_username(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @model_validator(mode="after")
    def ensure_valid_config(self) -> "NewGameRequest":
        # Surfaces dimension problems as 422 instead of a failed session
        self.to_config()
        return self

    def to_config(self) -> GameConfig:
        return GameConfig(
            mode=self.mode,
            size=self.size,
            win_length=self.win_length,
            difficulty=self.difficulty,
            start_hidden_layers=self.hidden_layers,
            fog=self.fog,
            max_size=MAX_GROWN_SIZE,
        )


class MoveRequest(BaseModel):
    """Request payload for submitting a move on an existing game."""

    index: int = Field(ge=0)


class ZoomRequest(BaseModel):
    delta: int

    @field_validator("delta")
    @classmethod
    def ensure_unit_step(cls, value: int) -> int:
        if value not in (1, -1):
            raise ValueError("Zoom delta must be 1 or -1")
        return value


class DifficultyRequest(BaseModel):
    difficulty: Difficulty


class AccountRecorder(GameListener):
    """Adds each finished game to the stored account and mirrors the tally."""

    def __init__(self, username: str):
        self.username = username
        self.session: Optional[GameSession] = None

    def on_outcome(self, outcome: Outcome) -> None:
        try:
            account = STORE.record(self.username, outcome)
        except ZoomXOError:
            LOGGER.exception("Could not record %s for %s", outcome.kind.value, self.username)
            return
        if self.session is not None:
            self.session.scores = account.scores


def _create_game(request: NewGameRequest) -> Tuple[str, ActiveGame]:
    """Create a new game session and register it for later access."""

    username = request.username
    if username:
        recorder = AccountRecorder(username)
        session = GameSession(request.to_config(), listeners=[recorder])
        recorder.session = session
        session.scores = STORE.load(username).scores
    else:
        session = GameSession(request.to_config())
    game_id = uuid.uuid4().hex
    active = ActiveGame(session=session, username=username)
    SESSIONS[game_id] = active
    LOGGER.info(
        "Created %s game %s (%s) for %s",
        request.mode.value,
        game_id,
        request.difficulty.value,
        username or "guest",
    )
    return game_id, active


def _get_game(game_id: str) -> ActiveGame:
    try:
        return SESSIONS[game_id]
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Game not found") from exc


def _run_ai_turn(game_id: str, generation: int) -> None:
    active = SESSIONS.get(game_id)
    if not active:
        return

    time.sleep(max(0.0, random.uniform(*AI_THINK_DELAY)))

    with active.lock:
        if active.generation != generation:
            LOGGER.debug("Dropping AI turn for replaced board in game %s", game_id)
            return
        try:
            active.session.tick()
        finally:
            active.ai_pending = False


def _restart(active: ActiveGame) -> None:
    """Start a fresh board and orphan any AI turn queued for the old one."""
    active.session.reset()
    active.generation += 1
    active.ai_pending = False


def _cell_text(cell: Cell) -> str:
    return cell.value if cell is not Cell.EMPTY else ""


def _scores_dict(scores: Scores) -> Dict[str, int]:
    return {
        "playerWins": scores.player_wins,
        "aiWins": scores.ai_wins,
        "draws": scores.draws,
    }


def _serialize_game(game_id: str, active: ActiveGame) -> Dict[str, object]:
    with active.lock:
        session = active.session
        state = session.snapshot()
        window = state.visible_window
        outcome = state.outcome
        legal: List[int] = (
            session.legal_moves() if state.phase is Phase.AWAITING_PLAYER else []
        )
        return {
            "id": game_id,
            "username": active.username,
            "mode": state.mode.value,
            "difficulty": session.config.difficulty.value,
            "fog": session.config.fog,
            "rows": state.board.rows,
            "cols": state.board.cols,
            "winLength": state.win_length,
            "hiddenLayers": state.hidden_layers,
            "visibleWindow": {
                "rowOffset": window.row_offset,
                "colOffset": window.col_offset,
                "rows": window.rows,
                "cols": window.cols,
            },
            "cells": [_cell_text(c) for c in state.board.cells],
            "legalMoves": legal,
            "phase": state.phase.value,
            "currentPlayer": state.current_player.value,
            "isActive": state.is_active,
            "outcome": outcome.kind.value,
            "winner": outcome.mark.value if outcome.kind is OutcomeKind.WIN else None,
            "winningLine": list(outcome.line) if outcome.line else None,
            "lastMove": state.last_move,
            "scores": _scores_dict(session.scores),
            "aiPending": active.ai_pending,
        }


def _apply_player_move(
    game_id: str,
    active: ActiveGame,
    index: int,
    background_tasks: Optional[BackgroundTasks] = None,
) -> None:
    should_schedule_ai = False
    generation = active.generation
    with active.lock:
        session = active.session
        if not session.is_active:
            raise HTTPException(status_code=400, detail="Game already finished")

        if active.ai_pending:
            raise HTTPException(status_code=400, detail="AI is completing its move")

        try:
            accepted = session.place_at(index)
        except ZoomXOError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        if not accepted:
            raise HTTPException(
                status_code=400, detail="Move is not allowed on this turn"
            )

        should_schedule_ai = session.phase is Phase.AWAITING_AI
        if should_schedule_ai:
            active.ai_pending = True

    if should_schedule_ai and background_tasks is not None:
        background_tasks.add_task(_run_ai_turn, game_id, generation)


@app.post("/api/game")
def create_game(request: NewGameRequest) -> Dict[str, object]:
    game_id, active = _create_game(request)
    return _serialize_game(game_id, active)


@app.get("/api/game/{game_id}")
def get_game(game_id: str) -> Dict[str, object]:
    active = _get_game(game_id)
    return _serialize_game(game_id, active)


@app.post("/api/game/{game_id}/move")
def make_move(
    game_id: str, request: MoveRequest, background_tasks: BackgroundTasks
) -> Dict[str, object]:
    active = _get_game(game_id)
    _apply_player_move(game_id, active, request.index, background_tasks)
    return _serialize_game(game_id, active)


@app.post("/api/game/{game_id}/reset")
def reset_game(game_id: str) -> Dict[str, object]:
    active = _get_game(game_id)
    with active.lock:
        _restart(active)
    return _serialize_game(game_id, active)


@app.post("/api/game/{game_id}/zoom")
def zoom_game(game_id: str, request: ZoomRequest) -> Dict[str, object]:
    active = _get_game(game_id)
    with active.lock:
        if active.session.mode is not BoardMode.DYNAMIC or not active.session.config.fog:
            raise HTTPException(status_code=400, detail="Zoom needs a fog board")
        active.session.adjust_zoom(request.delta)
    return _serialize_game(game_id, active)


@app.put("/api/game/{game_id}/difficulty")
def change_difficulty(game_id: str, request: DifficultyRequest) -> Dict[str, object]:
    active = _get_game(game_id)
    with active.lock:
        active.session.set_difficulty(request.difficulty)
        active.generation += 1
        active.ai_pending = False
    return _serialize_game(game_id, active)


@app.post("/api/game/{game_id}/scores/reset")
def reset_scores(game_id: str) -> Dict[str, object]:
    active = _get_game(game_id)
    with active.lock:
        active.session.reset_scores()
        if active.username:
            try:
                STORE.save(active.username, Scores())
            except ZoomXOError as exc:
                raise HTTPException(status_code=503, detail=str(exc)) from exc
        _restart(active)
    return _serialize_game(game_id, active)


@app.get("/api/scores/{username}")
def get_scores(username: str) -> Dict[str, object]:
    account = STORE.load(username)
    return {
        "username": account.username,
        "scores": _scores_dict(account.scores),
        "lastUpdated": account.last_updated,
    }


@app.get("/api/leaderboard")
def get_leaderboard() -> List[Dict[str, object]]:
    return [
        {
            "rank": rank,
            "username": account.username,
            "scores": _scores_dict(account.scores),
            "lastUpdated": account.last_updated,
        }
        for rank, account in enumerate(leaderboard(STORE.accounts()), start=1)
    ]
