import os
import sys
import threading

import mongomock
import pytest

# Ensure repo root is on sys.path so tests can import top-level modules (e.g., app.py)
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from config import Config  # noqa: E402
from database.creation import ensure_indexes  # noqa: E402
from database.models import ALL_COLLECTIONS  # noqa: E402
from database.store import MongoStore  # noqa: E402


class SnapshotStore(MongoStore):
    """
    mongomock has no client sessions, so transactions are emulated:
    one transaction at a time (like writers contending on the user's
    counter) and a failed callback restores every collection.
    """

    def __init__(self, db):
        super().__init__(db, client=None, use_transactions=False)
        self._lock = threading.RLock()
        self.transactions = 0

    def run_in_transaction(self, callback):
        with self._lock:
            snapshot = {name: list(self.db[name].find()) for name in ALL_COLLECTIONS}
            try:
                out = callback(None)
            except Exception:
                for name, docs in snapshot.items():
                    self.db[name].delete_many({})
                    if docs:
                        self.db[name].insert_many(docs)
                raise
            self.transactions += 1
            return out


class AppTestConfig(Config):
    TESTING = True
    DEBUG = False
    JWT_SECRET = "test-secret"
    JWT_EXPIRES_HOURS = 1
    EXPECTED_SAMPLES = 6
    STRICT_SAMPLE_COUNT = False
    MEAN_SCORE_TOLERANCE = 0.1
    RESULTS_CACHE_SECONDS = 300
    CORS_ORIGINS = ["*"]


SAMPLE_EMOTION = {
    "angry": 0.01,
    "disgust": 0.01,
    "fear": 0.02,
    "happy": 0.45,
    "neutral": 0.48,
    "sad": 0.02,
    "surprise": 0.01,
}


def make_frame(minute=0, confidence=0.98, emotion=None, dominant="neutral"):
    return {
        "timestamp": f"2024-03-12T14:{30 + minute:02d}:00.000Z",
        "result": [{
            "age": 28,
            "dominant_emotion": dominant,
            "dominant_gender": "Man",
            "emotion": dict(emotion or SAMPLE_EMOTION),
            "face_confidence": confidence,
            "region": {"x": 120, "y": 80, "w": 200, "h": 200},
        }],
    }


def make_payload(scores=(74, 82, 68), orders=(1, 2, 3), mean_score=None, frames=6, confidences=None):
    confidences = confidences or [0.98] * frames
    payload = {
        "questions_answers": [
            {"question": f"Question {o}", "answer": f"Answer {o}", "order": o, "score": s}
            for o, s in zip(orders, scores)
        ],
        "analysis_results": [make_frame(i, c) for i, c in enumerate(confidences)],
    }
    if mean_score is not None:
        payload["mean_score"] = mean_score
    return payload


@pytest.fixture()
def mongo_db():
    db = mongomock.MongoClient()["interview_test"]
    ensure_indexes(db)
    return db


@pytest.fixture()
def store(mongo_db):
    return SnapshotStore(mongo_db)


@pytest.fixture()
def user_id(store):
    from database.models import new_user_document

    doc = new_user_document("jane@example.com", "x", "Jane", 28, "female", "engineer")
    return store.insert_user(doc)


@pytest.fixture()
def app(store):
    from app import create_app

    application = create_app(AppTestConfig, store=store)
    application.config.update(TESTING=True)
    return application


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def registered(client):
    rv = client.post("/api/users/register", json={
        "email": "alice@example.com",
        "name": "Alice",
        "password": "secret123",
        "age": 29,
        "gender": "female",
        "occupation": "developer",
    })
    assert rv.status_code == 201
    data = rv.get_json()["data"]
    return {
        "user": data["user"],
        "headers": {"Authorization": f"Bearer {data['token']}"},
    }
