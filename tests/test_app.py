import pytest

from app import build_leaderboard, create_app, summarize_matches
from gesturestrike.config import Settings

PLAYER = {"X-Player-Id": "p1", "X-Player-Name": "Ada"}


def match(**overrides):
    body = {
        "score": 1200,
        "accuracy": 72.456,
        "difficulty": "CASUAL",
        "duration_ms": 90_000,
        "kills": 12,
        "highest_wave": 3,
    }
    body.update(overrides)
    return body


@pytest.fixture
def client(tmp_path):
    app = create_app(Settings(db_path=str(tmp_path / "test.db")))
    app.config["TESTING"] = True
    return app.test_client()


def test_health(client):
    res = client.get("/api/health")
    assert res.status_code == 200
    body = res.get_json()
    assert body["status"] == "ok"
    assert body["service"] == "gesturestrike-backend"
    assert body["now"]


def test_submit_match(client):
    res = client.post("/api/matches", json=match(), headers=PLAYER)
    assert res.status_code == 201
    m = res.get_json()["match"]
    assert m["player_id"] == "p1"
    assert m["accuracy"] == 72.46
    assert m["difficulty"] == "CASUAL"
    assert m["id"] >= 1


def test_submit_accepts_camel_case(client):
    res = client.post("/api/matches", json={**match(), "durationMs": 5_000, "highestWave": 2}, headers=PLAYER)
    assert res.status_code == 201


@pytest.mark.parametrize(
    "overrides",
    [
        {"score": -1},
        {"score": 5_000_001},
        {"accuracy": 100.5},
        {"duration_ms": 999},
        {"kills": 1.5},
        {"highest_wave": 0},
        {"difficulty": "GODLIKE"},
        {"score": "100"},
    ],
)
def test_submit_validation(client, overrides):
    res = client.post("/api/matches", json=match(**overrides), headers=PLAYER)
    assert res.status_code == 400
    error = res.get_json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["details"]


def test_missing_player_header(client):
    res = client.post("/api/matches", json=match())
    assert res.status_code == 400
    assert res.get_json()["error"]["code"] == "BAD_REQUEST"
    assert client.get("/api/matches/me").status_code == 400


def test_non_json_body(client):
    res = client.post("/api/matches", data="nope", headers=PLAYER)
    assert res.status_code == 400
    assert res.get_json()["error"]["code"] == "BAD_REQUEST"


def test_my_matches_newest_first_with_limit(client):
    for score in (100, 200, 300):
        client.post("/api/matches", json=match(score=score), headers=PLAYER)
    client.post("/api/matches", json=match(score=999), headers={"X-Player-Id": "p2"})

    res = client.get("/api/matches/me?limit=2", headers=PLAYER)
    scores = [m["score"] for m in res.get_json()["matches"]]
    assert scores == [300, 200]

    assert client.get("/api/matches/me?limit=0", headers=PLAYER).status_code == 400


def test_summary(client):
    empty = client.get("/api/matches/summary", headers=PLAYER).get_json()["summary"]
    assert empty["total_matches"] == 0
    assert empty["average_accuracy"] == 0

    client.post("/api/matches", json=match(score=100, accuracy=50, kills=2, duration_ms=10_000), headers=PLAYER)
    client.post("/api/matches", json=match(score=301, accuracy=75, kills=3, duration_ms=20_001), headers=PLAYER)
    summary = client.get("/api/matches/summary?days=7", headers=PLAYER).get_json()["summary"]
    assert summary == {
        "total_matches": 2,
        "total_kills": 5,
        "best_score": 301,
        "average_score": 200.5,
        "average_accuracy": 62.5,
        "average_duration_ms": 15_000,
    }


def test_leaderboard_best_per_player(client):
    client.post("/api/matches", json=match(score=500, accuracy=40), headers={"X-Player-Id": "a"})
    client.post("/api/matches", json=match(score=900, accuracy=60), headers={"X-Player-Id": "a"})
    client.post("/api/matches", json=match(score=900, accuracy=80), headers={"X-Player-Id": "b"})
    client.post("/api/matches", json=match(score=100, difficulty="INSANE"), headers={"X-Player-Id": "c"})

    board = client.get("/api/leaderboard").get_json()["leaderboard"]
    assert [(e["player_id"], e["best_score"], e["rank"]) for e in board] == [
        ("b", 900, 1),
        ("a", 900, 2),
        ("c", 100, 3),
    ]
    assert board[1]["total_matches"] == 2

    insane = client.get("/api/leaderboard?difficulty=INSANE").get_json()["leaderboard"]
    assert [e["player_id"] for e in insane] == ["c"]

    assert len(client.get("/api/leaderboard?limit=1&days=30").get_json()["leaderboard"]) == 1
    assert client.get("/api/leaderboard?days=400").status_code == 400


def test_calibration_get_put(client):
    assert client.get("/api/profile/calibration", headers=PLAYER).get_json() == {"calibration": None}

    res = client.put("/api/profile/calibration", json={"movementCenterX": 0.3, "smoothingFrames": 4}, headers=PLAYER)
    assert res.status_code == 200
    cal = res.get_json()["calibration"]
    assert cal["movement_center_x"] == 0.3
    assert cal["smoothing_frames"] == 4
    assert cal["movement_deadzone"] == 0.08

    res = client.put("/api/profile/calibration", json={"movement_deadzone": 0.1}, headers=PLAYER)
    assert res.get_json()["calibration"]["movement_center_x"] == 0.3

    bad = client.put("/api/profile/calibration", json={"smoothingFrames": 20}, headers=PLAYER)
    assert bad.status_code == 400
    assert bad.get_json()["error"]["code"] == "VALIDATION_ERROR"

    typo = client.put("/api/profile/calibration", json={"fistStopThreshhold": 0.9}, headers=PLAYER)
    assert typo.status_code == 400
    assert typo.get_json()["error"]["code"] == "VALIDATION_ERROR"
    stored = client.get("/api/profile/calibration", headers=PLAYER).get_json()["calibration"]
    assert stored["smoothing_frames"] == 4
    assert stored["movement_deadzone"] == 0.1


def test_unknown_route_is_json(client):
    res = client.get("/api/nope")
    assert res.status_code == 404
    assert res.get_json()["error"]["code"] == "NOT_FOUND"


def test_pure_helpers():
    assert summarize_matches([])["best_score"] == 0
    rows = [
        {"player_id": "x", "display_name": "X", "score": 10, "accuracy": 90.0},
        {"player_id": "y", "display_name": "Y", "score": 20, "accuracy": 10.0},
    ]
    assert [e["player_id"] for e in build_leaderboard(rows, 5)] == ["y", "x"]
