"""Tests for the FastAPI ZoomXO interface."""

from __future__ import annotations

import time

import pytest
from fastapi.testclient import TestClient

from zoomxo import api
from zoomxo.api import app
from zoomxo.game import Scores
from zoomxo.storage import JsonScoreStore, MemoryScoreStore


client = TestClient(app)
api.AI_THINK_DELAY = (0.0, 0.0)


@pytest.fixture(autouse=True)
def fresh_store(monkeypatch):
    store = MemoryScoreStore()
    monkeypatch.setattr(api, "STORE", store)
    return store


def test_create_game_and_first_move():
    response = client.post("/api/game", json={"difficulty": "exact"})
    assert response.status_code == 200
    payload = response.json()
    assert payload["currentPlayer"] == "X"
    assert payload["cells"] == [""] * 9
    assert payload["legalMoves"] == list(range(9))
    assert payload["outcome"] == "in_progress"

    game_id = payload["id"]
    move_response = client.post(f"/api/game/{game_id}/move", json={"index": 4})
    assert move_response.status_code == 200
    state = move_response.json()
    assert state["cells"][4] == "X"
    assert state["currentPlayer"] == "O"
    assert state["aiPending"] is True

    time.sleep(0.01)
    follow_up = client.get(f"/api/game/{game_id}")
    assert follow_up.status_code == 200
    final_state = follow_up.json()
    assert final_state["currentPlayer"] == "X"
    assert final_state["aiPending"] is False
    assert final_state["cells"][0] == "O"
    assert final_state["lastMove"] == 0


def test_invalid_move_rejected():
    game_id = client.post("/api/game", json={}).json()["id"]
    assert client.post(f"/api/game/{game_id}/move", json={"index": 0}).status_code == 200

    duplicate_move = client.post(f"/api/game/{game_id}/move", json={"index": 0})
    assert duplicate_move.status_code == 400
    assert duplicate_move.json()["detail"]

    outside = client.post(f"/api/game/{game_id}/move", json={"index": 42})
    assert outside.status_code == 400


@pytest.mark.parametrize(
    "body",
    [
        {"size": 3, "winLength": 4},
        {"size": 0},
        {"size": 99},
        {"difficulty": "godlike"},
        {"mode": "dynamic", "size": 5, "winLength": 3, "hiddenLayers": 2},
    ],
)
def test_rejects_unsupported_config(body):
    assert client.post("/api/game", json=body).status_code == 422


def test_missing_game_returns_404():
    assert client.get("/api/game/nope").status_code == 404


def test_single_cell_game_finishes_and_saves_scores(fresh_store):
    payload = client.post("/api/game", json={"size": 1, "username": " bob "}).json()
    assert payload["username"] == "bob"

    state = client.post(f"/api/game/{payload['id']}/move", json={"index": 0}).json()
    assert state["outcome"] == "win"
    assert state["winner"] == "X"
    assert state["winningLine"] == [0]
    assert state["isActive"] is False
    assert state["scores"]["playerWins"] == 1
    assert fresh_store.load("bob").scores.player_wins == 1

    scores = client.get("/api/scores/bob").json()
    assert scores["scores"] == {"playerWins": 1, "aiWins": 0, "draws": 0}

    again = client.post(f"/api/game/{payload['id']}/move", json={"index": 0})
    assert again.status_code == 400

    reset = client.post(f"/api/game/{payload['id']}/reset").json()
    assert reset["isActive"] is True
    assert reset["cells"] == [""]
    assert reset["scores"]["playerWins"] == 1


def test_existing_account_scores_are_loaded(fresh_store):
    fresh_store.save("cara", Scores(ai_wins=4))
    payload = client.post("/api/game", json={"username": "cara"}).json()
    assert payload["scores"]["aiWins"] == 4

    cleared = client.post(f"/api/game/{payload['id']}/scores/reset").json()
    assert cleared["scores"]["aiWins"] == 0
    assert fresh_store.load("cara").scores.ai_wins == 0


def test_parallel_games_for_one_account_both_count(fresh_store):
    first = client.post("/api/game", json={"size": 1, "username": "dora"}).json()
    second = client.post("/api/game", json={"size": 1, "username": "dora"}).json()

    client.post(f"/api/game/{first['id']}/move", json={"index": 0})
    state = client.post(f"/api/game/{second['id']}/move", json={"index": 0}).json()

    assert state["scores"]["playerWins"] == 2
    scores = client.get("/api/scores/dora").json()
    assert scores["scores"] == {"playerWins": 2, "aiWins": 0, "draws": 0}


def test_unwritable_score_file_does_not_break_the_game(tmp_path, monkeypatch):
    path = tmp_path / "scores.json"
    path.write_text("[broken", encoding="utf-8")
    monkeypatch.setattr(api, "STORE", JsonScoreStore(str(path)))

    payload = client.post("/api/game", json={"size": 1, "username": "eve"}).json()
    state = client.post(f"/api/game/{payload['id']}/move", json={"index": 0}).json()
    assert state["outcome"] == "win"
    assert path.read_text(encoding="utf-8") == "[broken"

    cleared = client.post(f"/api/game/{payload['id']}/scores/reset")
    assert cleared.status_code == 503


def test_reset_drops_queued_ai_turn():
    game_id = client.post("/api/game", json={}).json()["id"]
    active = api.SESSIONS[game_id]
    # No background tasks: the AI turn stays queued
    api._apply_player_move(game_id, active, 0)
    stale = active.generation
    assert client.get(f"/api/game/{game_id}").json()["aiPending"] is True

    state = client.post(f"/api/game/{game_id}/reset").json()
    assert state["aiPending"] is False
    assert state["cells"] == [""] * 9

    moved = client.post(f"/api/game/{game_id}/move", json={"index": 4})
    assert moved.status_code == 200
    api._run_ai_turn(game_id, stale)
    after = client.get(f"/api/game/{game_id}").json()
    assert after["cells"].count("O") == 1
    assert after["aiPending"] is False


def test_difficulty_change_clears_pending_ai_turn():
    game_id = client.post("/api/game", json={}).json()["id"]
    active = api.SESSIONS[game_id]
    api._apply_player_move(game_id, active, 0)
    stale = active.generation

    state = client.put(
        f"/api/game/{game_id}/difficulty", json={"difficulty": "blocking"}
    ).json()
    assert state["aiPending"] is False
    api._run_ai_turn(game_id, stale)
    assert client.get(f"/api/game/{game_id}").json()["cells"] == [""] * 9


def test_dynamic_games_carry_growth_limit():
    game_id = client.post(
        "/api/game", json={"mode": "dynamic", "size": 5, "winLength": 3}
    ).json()["id"]
    session = api.SESSIONS[game_id].session
    assert session.config.max_size == api.MAX_GROWN_SIZE
    assert session.controller.max_side == api.MAX_GROWN_SIZE


def test_zoom_only_on_fog_boards():
    static_id = client.post("/api/game", json={}).json()["id"]
    assert client.post(f"/api/game/{static_id}/zoom", json={"delta": 1}).status_code == 400

    payload = client.post(
        "/api/game", json={"mode": "dynamic", "size": 7, "winLength": 3}
    ).json()
    assert payload["hiddenLayers"] == 0
    zoomed = client.post(f"/api/game/{payload['id']}/zoom", json={"delta": 1}).json()
    assert zoomed["hiddenLayers"] == 1
    assert zoomed["visibleWindow"] == {"rowOffset": 1, "colOffset": 1, "rows": 5, "cols": 5}
    assert 0 not in zoomed["legalMoves"]

    bad = client.post(f"/api/game/{payload['id']}/zoom", json={"delta": 3})
    assert bad.status_code == 422


def test_edge_move_grows_fog_board():
    payload = client.post(
        "/api/game",
        json={"mode": "dynamic", "size": 5, "winLength": 3, "hiddenLayers": 1},
    ).json()
    state = client.post(f"/api/game/{payload['id']}/move", json={"index": 6}).json()
    assert (state["rows"], state["cols"]) == (7, 7)
    assert state["cells"][16] == "X"


def test_change_difficulty_resets_board():
    game_id = client.post("/api/game", json={}).json()["id"]
    client.post(f"/api/game/{game_id}/move", json={"index": 0})
    time.sleep(0.01)
    state = client.put(
        f"/api/game/{game_id}/difficulty", json={"difficulty": "heuristic"}
    ).json()
    assert state["difficulty"] == "heuristic"
    assert state["cells"] == [""] * 9


def test_leaderboard_ranks_accounts(fresh_store):
    fresh_store.save("ana", Scores(player_wins=1))
    fresh_store.save("ben", Scores(player_wins=5))
    board = client.get("/api/leaderboard").json()
    assert [entry["username"] for entry in board] == ["ben", "ana"]
    assert board[0]["rank"] == 1
