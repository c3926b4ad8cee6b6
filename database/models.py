# database/models.py
"""
=====================================================
🧠 models.py
-----------------------------------------------------
Collection names and document shapes for users.
Session-scoped documents (samples, averages, interviews,
results) are assembled by the session builder.
=====================================================
"""

from datetime import datetime, timezone

USERS = "users"
ANALYSES = "analyses"
EMOTION_AVERAGES = "emotion_averages"
INTERVIEWS = "interviews"
RESULTS = "results"

SESSION_COLLECTIONS = (ANALYSES, EMOTION_AVERAGES, INTERVIEWS, RESULTS)
ALL_COLLECTIONS = (USERS,) + SESSION_COLLECTIONS


def new_user_document(email, password_hash, name, age, gender, occupation, kakao_id=None):
    doc = {
        "email": email,
        "password": password_hash,
        "name": name,
        "age": age,
        "gender": gender,
        "occupation": occupation,
        "session_count": 0,
        "created_at": datetime.now(timezone.utc),
    }
    # left out entirely so the sparse unique index ignores password users
    if kakao_id is not None:
        doc["kakao_id"] = str(kakao_id)
    return doc


def public_user(doc):
    """User document without the credential hash."""
    return {
        "id": str(doc["_id"]),
        "email": doc.get("email"),
        "name": doc.get("name"),
        "age": doc.get("age"),
        "gender": doc.get("gender"),
        "occupation": doc.get("occupation"),
        "session_count": doc.get("session_count", 0),
        "created_at": doc.get("created_at"),
    }
