from datetime import datetime, timedelta, timezone

import jwt
from pymongo.errors import OperationFailure

from conftest import make_frame, make_payload


def test_health(client):
    rv = client.get("/health")
    assert rv.status_code == 200
    assert rv.get_json() == {"ok": True}


def test_register_login_and_profile(client, registered):
    rv = client.post("/api/users/login", json={"email": "alice@example.com", "password": "secret123"})
    assert rv.status_code == 200
    token = rv.get_json()["data"]["token"]

    rv = client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})
    assert rv.status_code == 200
    profile = rv.get_json()["data"]
    assert profile["email"] == "alice@example.com"
    assert profile["session_count"] == 0
    assert "password" not in profile


def test_register_errors(client, registered):
    rv = client.post("/api/users/register", json={"email": "bad"})
    assert rv.status_code == 400
    assert rv.get_json()["kind"] == "validation"

    rv = client.post("/api/users/register", json={
        "email": "alice@example.com", "name": "Alice", "password": "secret123",
        "age": 29, "gender": "female", "occupation": "developer",
    })
    assert rv.status_code == 409


def test_login_failure(client, registered):
    rv = client.post("/api/users/login", json={"email": "alice@example.com", "password": "nope"})
    assert rv.status_code == 401
    assert rv.get_json()["kind"] == "auth"


def test_auth_required(client):
    rv = client.post("/api/interviews/submit", json=make_payload())
    assert rv.status_code == 401
    assert rv.get_json()["code"] == "AUTH_MISSING_TOKEN"

    rv = client.get("/api/results/1", headers={"Authorization": "Bearer not.a.token"})
    assert rv.status_code == 401
    assert rv.get_json()["code"] == "AUTH_INVALID_TOKEN"


def test_expired_and_expiring_tokens(client, registered):
    user = registered["user"]
    expired = jwt.encode(
        {"user_id": user["id"], "email": user["email"], "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        "test-secret", algorithm="HS256",
    )
    rv = client.get("/api/users/me", headers={"Authorization": f"Bearer {expired}"})
    assert rv.status_code == 401
    assert rv.get_json()["code"] == "AUTH_TOKEN_EXPIRED"

    expiring = jwt.encode(
        {"user_id": user["id"], "email": user["email"], "exp": datetime.now(timezone.utc) + timedelta(minutes=2)},
        "test-secret", algorithm="HS256",
    )
    rv = client.get("/api/users/me", headers={"Authorization": f"Bearer {expiring}"})
    assert rv.status_code == 200
    assert rv.headers["X-Token-Expire-Soon"] == "true"


def test_submit_and_fetch_result(client, registered):
    headers = registered["headers"]
    rv = client.post("/api/interviews/submit", json=make_payload(mean_score=74.7), headers=headers)
    assert rv.status_code == 201
    data = rv.get_json()["data"]
    assert data["session_count"] == 1
    assert data["mean_score"] == 74.7
    assert len(data["analysis_ids"]) == 6
    assert set(data) >= {"interview_id", "result_id"}

    rv = client.get("/api/results/1", headers=headers)
    assert rv.status_code == 200
    view = rv.get_json()["data"]
    assert view["status"] == "completed"
    assert view["interview"]["_id"] == data["interview_id"]
    assert view["result"]["_id"] == data["result_id"]
    assert isinstance(view["analyses"][0]["timestamp"], str)

    rv = client.get("/api/users/me", headers=headers)
    assert rv.get_json()["data"]["session_count"] == 1


def test_submit_validation_errors(client, registered):
    headers = registered["headers"]

    rv = client.post("/api/interviews/submit", json=make_payload(mean_score=75.0), headers=headers)
    assert rv.status_code == 400
    body = rv.get_json()
    assert body["kind"] == "validation"
    assert body["details"] == {"provided": 75.0, "calculated": 74.7}

    rv = client.post("/api/interviews/submit", json=make_payload(orders=(1, 1, 2)), headers=headers)
    assert rv.status_code == 400

    rv = client.post("/api/interviews/submit", data="not json", headers=headers)
    assert rv.status_code == 400

    rv = client.get("/api/users/me", headers=headers)
    assert rv.get_json()["data"]["session_count"] == 0


def test_store_failure_is_a_consistency_error(client, registered, store, monkeypatch):
    def _fail(doc, session=None):
        raise OperationFailure("WriteConflict", code=112)

    monkeypatch.setattr(store, "insert_interview", _fail)
    rv = client.post("/api/interviews/submit", json=make_payload(), headers=registered["headers"])
    assert rv.status_code == 500
    assert rv.get_json()["kind"] == "consistency"
    assert client.get("/api/results/1", headers=registered["headers"]).status_code == 404


def test_result_not_found(client, registered):
    rv = client.get("/api/results/3", headers=registered["headers"])
    assert rv.status_code == 404
    assert rv.get_json()["kind"] == "not_found"
    assert rv.get_json()["details"] == {"session_count": 3}


def test_append_analyses_route(client, registered):
    headers = registered["headers"]
    client.post("/api/interviews/submit", json=make_payload(frames=3), headers=headers)
    assert client.get("/api/results/1", headers=headers).get_json()["data"]["status"] == "in_progress"

    rv = client.post(
        "/api/interviews/1/analyses",
        json={"analysis_results": [make_frame(10 + i) for i in range(3)]},
        headers=headers,
    )
    assert rv.status_code == 201
    assert rv.get_json()["data"]["status"] == "completed"

    rv = client.post("/api/interviews/7/analyses", json={"analysis_results": [make_frame(0)]}, headers=headers)
    assert rv.status_code == 404


def test_period_history_and_cache_header(client, registered):
    headers = registered["headers"]
    for _ in range(3):
        client.post("/api/interviews/submit", json=make_payload(), headers=headers)

    rv = client.get("/api/results/period/all/all?page=1&limit=2", headers=headers)
    assert rv.status_code == 200
    assert rv.headers["Cache-Control"] == "private, max-age=300"
    body = rv.get_json()
    assert [i["session_count"] for i in body["data"]] == [3, 2]
    assert body["meta"] == {"total": 3, "page": 1, "limit": 2, "total_pages": 2}

    rv = client.get("/api/results/period/2000-01-01/2000-12-31", headers=headers)
    assert rv.get_json()["data"] == []

    rv = client.get("/api/results/period/all/all?limit=500", headers=headers)
    assert rv.status_code == 400


def test_stats_route(client, registered):
    headers = registered["headers"]
    client.post("/api/interviews/submit", json=make_payload(), headers=headers)
    rv = client.get("/api/results/stats", headers=headers)
    assert rv.status_code == 200
    assert rv.get_json()["data"]["total_sessions"] == 1
    assert rv.get_json()["data"]["average_mean_score"] == 74.7


def test_delete_account(client, registered):
    headers = registered["headers"]
    client.post("/api/interviews/submit", json=make_payload(), headers=headers)

    rv = client.delete("/api/users/me", headers=headers)
    assert rv.status_code == 200
    assert rv.get_json()["data"]["removed"]["analyses"] == 6

    rv = client.get("/api/users/me", headers=headers)
    assert rv.status_code == 404
    assert rv.get_json() == {"success": False, "error": "User not found", "kind": "not_found", "details": None}
    rv = client.post("/api/users/login", json={"email": "alice@example.com", "password": "secret123"})
    assert rv.status_code == 401


def test_unknown_route_is_json(client):
    rv = client.get("/api/nowhere")
    assert rv.status_code == 404
    assert rv.get_json()["success"] is False


def test_non_finite_numbers_are_validation_errors(client, registered):
    headers = registered["headers"]

    payload = make_payload()
    payload["questions_answers"][0]["score"] = float("inf")
    rv = client.post("/api/interviews/submit", json=payload, headers=headers)
    assert rv.status_code == 400
    assert rv.get_json()["kind"] == "validation"

    payload = make_payload()
    payload["analysis_results"][0]["result"][0]["face_confidence"] = float("inf")
    rv = client.post("/api/interviews/submit", json=payload, headers=headers)
    assert rv.status_code == 400

    payload = make_payload()
    payload["analysis_results"][0]["result"][0]["emotion"]["fear"] = float("nan")
    rv = client.post("/api/interviews/submit", json=payload, headers=headers)
    assert rv.status_code == 400
    assert rv.get_json()["kind"] == "validation"

    assert client.get("/api/users/me", headers=headers).get_json()["data"]["session_count"] == 0


def test_confidence_above_one_rejected(client, registered):
    rv = client.post(
        "/api/interviews/submit", json=make_payload(confidences=[5.0] * 6), headers=registered["headers"],
    )
    assert rv.status_code == 400
    assert rv.get_json()["details"][0]["field"] == "analysis_results.0.result.0.face_confidence"
    assert client.get("/api/results/1", headers=registered["headers"]).status_code == 404
