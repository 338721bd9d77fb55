"""Account score persistence: in-memory and JSON-file stores plus leaderboard order."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Protocol

from .board import Outcome
from .errors import ScoreFileError
from .game import Scores

LOGGER = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Account:
    username: str
    scores: Scores = field(default_factory=Scores)
    last_updated: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "scores": self.scores.as_dict(),
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, username: str, data: Dict[str, Any]) -> "Account":
        raw = data.get("scores") or {}
        scores = Scores(
            player_wins=int(raw.get("player_wins", 0)),
            ai_wins=int(raw.get("ai_wins", 0)),
            draws=int(raw.get("draws", 0)),
        )
        return cls(username=username, scores=scores, last_updated=data.get("lastUpdated"))


class ScoreStore(Protocol):
    def load(self, username: str) -> Account:
        ...

    def save(self, username: str, scores: Scores) -> Account:
        ...

    def record(self, username: str, outcome: Outcome) -> Account:
        ...

    def accounts(self) -> List[Account]:
        ...


class MemoryScoreStore:
    def __init__(self) -> None:
        self._accounts: Dict[str, Account] = {}
        self._lock = threading.Lock()

    def load(self, username: str) -> Account:
        with self._lock:
            account = self._accounts.get(username)
            if account is None:
                return Account(username=username)
            return Account(username, account.scores.snapshot(), account.last_updated)

    def save(self, username: str, scores: Scores) -> Account:
        account = Account(username=username, scores=scores.snapshot(), last_updated=_now())
        with self._lock:
            self._accounts[username] = account
        return account

    def record(self, username: str, outcome: Outcome) -> Account:
        """Add one finished game to the stored tally."""
        with self._lock:
            current = self._accounts.get(username)
            scores = current.scores.snapshot() if current else Scores()
            scores.record(outcome)
            account = Account(username=username, scores=scores, last_updated=_now())
            self._accounts[username] = account
        return Account(username, scores.snapshot(), account.last_updated)

    def accounts(self) -> List[Account]:
        with self._lock:
            return list(self._accounts.values())


class JsonScoreStore:
    """All accounts in one JSON document keyed by username.

    Reads for display tolerate a damaged file; writes refuse to replace one
    they cannot parse and raise ``ScoreFileError`` instead. Each write goes to
    a temporary file in the same directory that is then renamed over the old
    one, so a crash mid-write never leaves a truncated document behind.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def _read_strict(self) -> Dict[str, Any]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            raise ScoreFileError(f"Cannot read score file {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ScoreFileError(f"Score file {self.path} does not hold an object")
        return data

    def _read(self) -> Dict[str, Any]:
        try:
            return self._read_strict()
        except ScoreFileError as exc:
            LOGGER.warning("Ignoring unreadable score file: %s", exc)
            return {}

    def _write(self, data: Dict[str, Any]) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            prefix=".scores-", suffix=".tmp", dir=directory or "."
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            os.unlink(tmp_path)
            raise

    def load(self, username: str) -> Account:
        with self._lock:
            entry = self._read().get(username)
        if not isinstance(entry, dict):
            return Account(username=username)
        return Account.from_dict(username, entry)

    def save(self, username: str, scores: Scores) -> Account:
        account = Account(username=username, scores=scores.snapshot(), last_updated=_now())
        with self._lock:
            data = self._read_strict()
            data[username] = account.to_dict()
            self._write(data)
        LOGGER.debug("Saved scores for %s", username)
        return account

    def record(self, username: str, outcome: Outcome) -> Account:
        """Add one finished game to the stored tally."""
        with self._lock:
            data = self._read_strict()
            entry = data.get(username)
            if isinstance(entry, dict):
                scores = Account.from_dict(username, entry).scores
            else:
                scores = Scores()
            scores.record(outcome)
            account = Account(username=username, scores=scores, last_updated=_now())
            data[username] = account.to_dict()
            self._write(data)
        LOGGER.debug("Recorded %s for %s", outcome.kind.value, username)
        return account

    def accounts(self) -> List[Account]:
        with self._lock:
            data = self._read()
        return [
            Account.from_dict(name, entry)
            for name, entry in data.items()
            if isinstance(entry, dict)
        ]


def leaderboard(accounts: Iterable[Account]) -> List[Account]:
    """Most player wins first, then most draws, then by name."""
    return sorted(
        accounts,
        key=lambda a: (-a.scores.player_wins, -a.scores.draws, a.username),
    )
