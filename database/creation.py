# database/creation.py
from pymongo import ASCENDING, DESCENDING

from database.models import ANALYSES, EMOTION_AVERAGES, INTERVIEWS, RESULTS, USERS

SESSION_KEY = [("user_id", ASCENDING), ("session_count", ASCENDING)]


def ensure_indexes(db):
    """Creates the indexes the pipeline relies on. Safe to run repeatedly."""
    db[USERS].create_index("email", unique=True)
    db[USERS].create_index("kakao_id", unique=True, sparse=True)

    # one row per (user, session); also stops two submissions sharing a count
    for name in (INTERVIEWS, RESULTS, EMOTION_AVERAGES):
        db[name].create_index(SESSION_KEY, unique=True)

    db[RESULTS].create_index([("user_id", ASCENDING), ("date", ASCENDING)])
    db[ANALYSES].create_index(SESSION_KEY + [("timestamp", DESCENDING)])


if __name__ == "__main__":
    from database.db_connection import get_db

    ensure_indexes(get_db())
    print("✅ Database indexes created successfully!")
