"""
Session analytics: rolling statistics over finished matches and a
difficulty recommendation for the next one.

History is a most-recent-first list of SessionSnapshot, capped at
SESSION_HISTORY_LIMIT. Averages use only the RECENT_SESSION_WINDOW newest
snapshots so the recommendation follows current form, while best score and
best wave scan everything retained.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .config import RECENT_SESSION_WINDOW, SESSION_HISTORY_LIMIT, DifficultyLevel
from .game_state import GameState, accuracy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionSnapshot:
    """
    Immutable record of one finished match.

    Attributes:
        id: Unique snapshot id
        ended_at: Epoch milliseconds the match ended
        score: Final score
        accuracy: Hit percentage, 0..100
        kills: Enemies defeated
        highest_wave: Highest wave reached
        duration_ms: Match length in milliseconds
        difficulty: Difficulty the match was played on
    """
    id: int
    ended_at: float
    score: int
    accuracy: float
    kills: int
    highest_wave: int
    duration_ms: int
    difficulty: DifficultyLevel

    def to_dict(self) -> dict:
        data = asdict(self)
        data["difficulty"] = self.difficulty.value
        return data


@dataclass(frozen=True)
class SessionInsights:
    total_sessions: int = 0
    average_accuracy: float = 0.0
    average_duration_ms: int = 0
    best_score: int = 0
    best_wave: int = 0
    recent_sessions: List[SessionSnapshot] = field(default_factory=list)
    recommended_difficulty: DifficultyLevel = DifficultyLevel.EASY


def recommend_difficulty(total_sessions: int, average_accuracy: float, best_wave: int) -> DifficultyLevel:
    """
    Pick a tier from recent form. Rules are checked in order, first match wins.

    Args:
        total_sessions: Number of retained sessions
        average_accuracy: Mean accuracy of the recent window
        best_wave: All-time best wave in the retained history

    Returns:
        Recommended DifficultyLevel
    """
    if total_sessions < 3:
        return DifficultyLevel.EASY
    if average_accuracy >= 86 and best_wave >= 9:
        return DifficultyLevel.INSANE
    if average_accuracy >= 68 and best_wave >= 5:
        return DifficultyLevel.TACTICAL
    if average_accuracy < 42:
        return DifficultyLevel.EASY
    return DifficultyLevel.CASUAL


def _newest_first(history: Iterable[SessionSnapshot]) -> List[SessionSnapshot]:
    return sorted(history, key=lambda s: s.ended_at, reverse=True)


def derive_session_insights(history: List[SessionSnapshot]) -> SessionInsights:
    """
    Summarize a session history.

    Args:
        history: Retained snapshots in any order

    Returns:
        SessionInsights; the zero value for an empty history
    """
    if not history:
        return SessionInsights()

    recent = _newest_first(history)[:RECENT_SESSION_WINDOW]
    average_accuracy = round(sum(s.accuracy for s in recent) / len(recent), 1)
    average_duration_ms = int(round(sum(s.duration_ms for s in recent) / len(recent)))
    best_score = max(s.score for s in history)
    best_wave = max(s.highest_wave for s in history)

    return SessionInsights(
        total_sessions=len(history),
        average_accuracy=average_accuracy,
        average_duration_ms=average_duration_ms,
        best_score=best_score,
        best_wave=best_wave,
        recent_sessions=recent,
        recommended_difficulty=recommend_difficulty(len(history), average_accuracy, best_wave),
    )


def append_session_history(
    history: List[SessionSnapshot],
    new_snapshot: SessionSnapshot,
    max_items: int = SESSION_HISTORY_LIMIT,
) -> List[SessionSnapshot]:
    """
    Add a snapshot and keep the newest ``max_items``.

    Args:
        history: Existing history (not modified)
        new_snapshot: Snapshot to add
        max_items: Cap on the returned length

    Returns:
        New list sorted by ended_at, newest first
    """
    return _newest_first([new_snapshot, *history])[:max(0, max_items)]


def snapshot_from_state(state: GameState, snapshot_id: int, ended_at: Optional[float] = None) -> SessionSnapshot:
    """
    Build a snapshot from a finished match.

    Args:
        state: GameState at the end of the match
        snapshot_id: Id to give the snapshot
        ended_at: Epoch seconds; defaults to stats.session_ended_at

    Returns:
        SessionSnapshot with times converted to milliseconds
    """
    stats = state.stats
    end_s = ended_at if ended_at is not None else stats.session_ended_at
    if end_s is None:
        end_s = stats.session_started_at or 0.0
    start_s = stats.session_started_at if stats.session_started_at is not None else end_s
    return SessionSnapshot(
        id=snapshot_id,
        ended_at=end_s * 1000.0,
        score=state.score,
        accuracy=round(accuracy(stats), 1),
        kills=stats.enemies_defeated,
        highest_wave=stats.highest_wave,
        duration_ms=max(0, int(round((end_s - start_s) * 1000.0))),
        difficulty=state.difficulty,
    )


# --------- Persistence boundary ---------

class _SnapshotRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, allow_inf_nan=False)

    id: int
    ended_at: float = Field(ge=0)
    score: int = Field(ge=0)
    accuracy: float = Field(ge=0, le=100)
    kills: int = Field(ge=0)
    highest_wave: int = Field(ge=1)
    duration_ms: int = Field(ge=0)
    difficulty: DifficultyLevel

    def to_snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(**self.model_dump())


_HISTORY_ADAPTER = TypeAdapter(List[_SnapshotRecord])


def parse_session_history(raw: Any) -> List[SessionSnapshot]:
    """
    Validate persisted history.

    Any malformed entry rejects the whole payload: the result is either a
    fully validated history or an empty one.
    """
    try:
        records = _HISTORY_ADAPTER.validate_python(raw)
    except ValidationError as exc:
        logger.warning("Discarding malformed session history (%d errors)", exc.error_count())
        return []
    return _newest_first(r.to_snapshot() for r in records)[:SESSION_HISTORY_LIMIT]


class SessionHistoryStore:
    """JSON file holding the most recent sessions."""

    def __init__(self, path: str = "session_history.json", max_items: int = SESSION_HISTORY_LIMIT):
        self.path = path
        self.max_items = max_items

    def load(self) -> List[SessionSnapshot]:
        if not os.path.exists(self.path):
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Could not read session history %s: %s", self.path, exc)
            return []
        return parse_session_history(raw)

    def save(self, history: List[SessionSnapshot]) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump([s.to_dict() for s in history], f, indent=2)

    def append(self, snapshot: SessionSnapshot) -> List[SessionSnapshot]:
        history = append_session_history(self.load(), snapshot, self.max_items)
        self.save(history)
        logger.info("Recorded session %s (score %d, accuracy %.1f%%)", snapshot.id, snapshot.score, snapshot.accuracy)
        return history
