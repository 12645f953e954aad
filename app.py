"""
GestureStrike backend: match history, leaderboard and calibration profiles.

    GESTURESTRIKE_DB=gesturestrike.db python app.py

Players identify themselves with the X-Player-Id header (and optionally
X-Player-Name); the first request from an unknown id registers the player.
Authentication is left to whatever sits in front of this service.
"""

import json
import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from flask import Flask, current_app, g, jsonify, request
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from werkzeug.exceptions import HTTPException

from gesturestrike.calibration import DEFAULT_PROFILE, CalibrationError, merge_calibration, parse_calibration
from gesturestrike.config import DifficultyLevel, Settings, configure_logging, load_settings

logger = logging.getLogger("gesturestrike.backend")

SERVICE_NAME = "gesturestrike-backend"
MAX_PLAYER_ID_LENGTH = 64


class APIError(Exception):
    """Error returned to the client as {"error": {code, message, details}}."""

    def __init__(self, message: str, status_code: int = 400, code: str = "BAD_REQUEST", details: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return {"error": body}


# --------- Request schemas ---------

class MatchSubmission(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    score: int = Field(ge=0, le=5_000_000, strict=True)
    accuracy: float = Field(ge=0, le=100, strict=True)
    difficulty: DifficultyLevel
    duration_ms: int = Field(ge=1_000, le=3_600_000, strict=True, alias="durationMs")
    kills: int = Field(ge=0, le=10_000, strict=True)
    highest_wave: int = Field(ge=1, le=10_000, strict=True, alias="highestWave")


class PaginationQuery(BaseModel):
    limit: int = Field(20, ge=1, le=100)


class LeaderboardQuery(PaginationQuery):
    difficulty: Optional[DifficultyLevel] = None
    days: Optional[int] = Field(None, ge=1, le=365)


class SummaryQuery(BaseModel):
    days: int = Field(30, ge=1, le=365)


# --------- Database ---------

def database_connection(db_path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


def initialize_db(conn: sqlite3.Connection) -> None:
    c = conn.cursor()
    c.execute('''
        CREATE TABLE IF NOT EXISTS players (
            id TEXT PRIMARY KEY,
            display_name TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
    ''')
    c.execute('''
        CREATE TABLE IF NOT EXISTS matches (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            player_id TEXT NOT NULL REFERENCES players(id),
            score INTEGER NOT NULL,
            accuracy REAL NOT NULL,
            difficulty TEXT NOT NULL,
            duration_ms INTEGER NOT NULL,
            kills INTEGER NOT NULL,
            highest_wave INTEGER NOT NULL,
            created_at TEXT NOT NULL
        )
    ''')
    c.execute('CREATE INDEX IF NOT EXISTS idx_matches_player ON matches (player_id, created_at)')
    c.execute('''
        CREATE TABLE IF NOT EXISTS calibrations (
            player_id TEXT PRIMARY KEY REFERENCES players(id),
            profile TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    ''')
    conn.commit()


def get_db() -> sqlite3.Connection:
    if "db" not in g:
        g.db = database_connection(current_app.config["DATABASE"])
    return g.db


def close_db(_exc: Optional[BaseException] = None) -> None:
    conn = g.pop("db", None)
    if conn is not None:
        conn.close()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds")


def _cutoff(days: int) -> str:
    return _iso(_now() - timedelta(days=days))


# --------- Helpers ---------

def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise APIError("Request body must be a JSON object")
    return data


def _current_player() -> str:
    """Return the caller's player id, registering it on first sight."""
    player_id = (request.headers.get("X-Player-Id") or "").strip()
    if not player_id:
        raise APIError("Missing X-Player-Id header")
    if len(player_id) > MAX_PLAYER_ID_LENGTH:
        raise APIError("X-Player-Id is too long")
    display_name = (request.headers.get("X-Player-Name") or "").strip() or player_id

    conn = get_db()
    row = conn.execute('SELECT id FROM players WHERE id = ?', (player_id,)).fetchone()
    if row is None:
        conn.execute(
            'INSERT INTO players (id, display_name, created_at) VALUES (?, ?, ?)',
            (player_id, display_name[:MAX_PLAYER_ID_LENGTH], _iso(_now())),
        )
        conn.commit()
        logger.info("Registered player %s", player_id)
    return player_id


def _match_dict(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "player_id": row["player_id"],
        "score": row["score"],
        "accuracy": row["accuracy"],
        "difficulty": row["difficulty"],
        "duration_ms": row["duration_ms"],
        "kills": row["kills"],
        "highest_wave": row["highest_wave"],
        "created_at": row["created_at"],
    }


def summarize_matches(rows: List[sqlite3.Row]) -> Dict[str, Any]:
    if not rows:
        return {
            "total_matches": 0,
            "total_kills": 0,
            "best_score": 0,
            "average_score": 0,
            "average_accuracy": 0,
            "average_duration_ms": 0,
        }
    n = len(rows)
    return {
        "total_matches": n,
        "total_kills": sum(r["kills"] for r in rows),
        "best_score": max(r["score"] for r in rows),
        "average_score": round(sum(r["score"] for r in rows) / n, 2),
        "average_accuracy": round(sum(r["accuracy"] for r in rows) / n, 2),
        "average_duration_ms": int(round(sum(r["duration_ms"] for r in rows) / n)),
    }


def build_leaderboard(rows: List[sqlite3.Row], limit: int) -> List[Dict[str, Any]]:
    """
    Best match per player, highest score first, ties broken by accuracy.

    The accuracy shown for a player is the accuracy of their best-scoring
    match (the earliest one if they hit that score more than once).
    """
    by_player: Dict[str, Dict[str, Any]] = {}
    for r in rows:
        entry = by_player.get(r["player_id"])
        if entry is None:
            by_player[r["player_id"]] = {
                "player_id": r["player_id"],
                "display_name": r["display_name"],
                "best_score": r["score"],
                "best_accuracy": r["accuracy"],
                "total_matches": 1,
            }
            continue
        entry["total_matches"] += 1
        if r["score"] > entry["best_score"]:
            entry["best_score"] = r["score"]
            entry["best_accuracy"] = r["accuracy"]

    ranked = sorted(by_player.values(), key=lambda e: (-e["best_score"], -e["best_accuracy"]))[:limit]
    for i, entry in enumerate(ranked, start=1):
        entry["rank"] = i
    return ranked


# --------- App factory ---------

def create_app(settings: Optional[Settings] = None) -> Flask:
    settings = settings or load_settings()
    app = Flask(__name__)
    app.config["DATABASE"] = settings.db_path
    app.config["SETTINGS"] = settings

    conn = database_connection(settings.db_path)
    try:
        initialize_db(conn)
    finally:
        conn.close()
    app.teardown_appcontext(close_db)

    ### ERRORS ###

    @app.errorhandler(APIError)
    def handle_api_error(exc: APIError):
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        details = json.loads(exc.json(include_url=False))
        return jsonify(APIError("Invalid request", 400, "VALIDATION_ERROR", details).to_dict()), 400

    @app.errorhandler(CalibrationError)
    def handle_calibration_error(exc: CalibrationError):
        details = json.loads(json.dumps(exc.errors, default=str))
        return jsonify(APIError(str(exc), 400, "VALIDATION_ERROR", details).to_dict()), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        code = (exc.name or "error").upper().replace(" ", "_")
        return jsonify(APIError(exc.description or exc.name, exc.code or 500, code).to_dict()), exc.code or 500

    ### API ENDPOINTS ###

    @app.route('/api/health', methods=['GET'])
    def health():
        return jsonify({"status": "ok", "service": SERVICE_NAME, "now": _iso(_now())})

    @app.route('/api/matches', methods=['POST'])
    def submit_match():
        player_id = _current_player()
        payload = MatchSubmission.model_validate(_json_body())
        conn = get_db()
        c = conn.cursor()
        c.execute(
            'INSERT INTO matches (player_id, score, accuracy, difficulty, duration_ms, kills, highest_wave, created_at) '
            'VALUES (?, ?, ?, ?, ?, ?, ?, ?)',
            (
                player_id,
                payload.score,
                round(payload.accuracy, 2),
                payload.difficulty.value,
                payload.duration_ms,
                payload.kills,
                payload.highest_wave,
                _iso(_now()),
            ),
        )
        conn.commit()
        row = conn.execute('SELECT * FROM matches WHERE id = ?', (c.lastrowid,)).fetchone()
        logger.info("Player %s submitted match %d (score %d)", player_id, row["id"], row["score"])
        return jsonify({"match": _match_dict(row)}), 201

    @app.route('/api/matches/me', methods=['GET'])
    def my_matches():
        player_id = _current_player()
        query = PaginationQuery.model_validate(request.args.to_dict())
        rows = get_db().execute(
            'SELECT * FROM matches WHERE player_id = ? ORDER BY created_at DESC, id DESC LIMIT ?',
            (player_id, query.limit),
        ).fetchall()
        return jsonify({"matches": [_match_dict(r) for r in rows]})

    @app.route('/api/matches/summary', methods=['GET'])
    def match_summary():
        player_id = _current_player()
        query = SummaryQuery.model_validate(request.args.to_dict())
        rows = get_db().execute(
            'SELECT * FROM matches WHERE player_id = ? AND created_at >= ?',
            (player_id, _cutoff(query.days)),
        ).fetchall()
        return jsonify({"summary": summarize_matches(rows)})

    @app.route('/api/leaderboard', methods=['GET'])
    def leaderboard():
        query = LeaderboardQuery.model_validate(request.args.to_dict())
        sql = (
            'SELECT m.player_id, m.score, m.accuracy, p.display_name FROM matches m '
            'JOIN players p ON p.id = m.player_id WHERE 1 = 1'
        )
        params: List[Any] = []
        if query.difficulty is not None:
            sql += ' AND m.difficulty = ?'
            params.append(query.difficulty.value)
        if query.days is not None:
            sql += ' AND m.created_at >= ?'
            params.append(_cutoff(query.days))
        sql += ' ORDER BY m.created_at ASC, m.id ASC'
        rows = get_db().execute(sql, params).fetchall()
        return jsonify({"leaderboard": build_leaderboard(rows, query.limit)})

    @app.route('/api/profile/calibration', methods=['GET'])
    def get_calibration():
        player_id = _current_player()
        row = get_db().execute('SELECT profile FROM calibrations WHERE player_id = ?', (player_id,)).fetchone()
        if row is None:
            return jsonify({"calibration": None})
        return jsonify({"calibration": parse_calibration(json.loads(row["profile"])).to_dict()})

    @app.route('/api/profile/calibration', methods=['PUT'])
    def put_calibration():
        player_id = _current_player()
        changes = _json_body()
        conn = get_db()
        row = conn.execute('SELECT profile FROM calibrations WHERE player_id = ?', (player_id,)).fetchone()
        current = parse_calibration(json.loads(row["profile"])) if row is not None else DEFAULT_PROFILE
        profile = merge_calibration(current, changes)
        conn.execute(
            'INSERT INTO calibrations (player_id, profile, updated_at) VALUES (?, ?, ?) '
            'ON CONFLICT(player_id) DO UPDATE SET profile = excluded.profile, updated_at = excluded.updated_at',
            (player_id, json.dumps(profile.to_dict()), _iso(_now())),
        )
        conn.commit()
        logger.info("Saved calibration for player %s", player_id)
        return jsonify({"calibration": profile.to_dict()})

    return app


if __name__ == '__main__':
    settings = load_settings()
    configure_logging(settings.log_level)
    create_app(settings).run(host=settings.host, port=settings.port)
