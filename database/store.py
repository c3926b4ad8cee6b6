# database/store.py
"""
=====================================================
🗄️ store.py
-----------------------------------------------------
MongoStore: the persistence collaborator behind the
session pipeline. Every write takes the transaction's
client session so a submission commits or aborts as one.
=====================================================
"""

import logging

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING, ReturnDocument

from database.models import (
    ANALYSES,
    EMOTION_AVERAGES,
    INTERVIEWS,
    RESULTS,
    SESSION_COLLECTIONS,
    USERS,
)
from utils.errors import UserNotFoundError

logger = logging.getLogger(__name__)

SAMPLE_SORT = [("session_count", DESCENDING), ("timestamp", DESCENDING)]


def as_object_id(value):
    if isinstance(value, ObjectId):
        return value
    if value is None:
        raise UserNotFoundError("Missing user id")
    try:
        return ObjectId(value)
    except (InvalidId, TypeError) as e:
        raise UserNotFoundError(f"Unknown user id: {value!r}") from e


def _opts(session):
    # only pass session= when there is one; test doubles may not accept it
    return {"session": session} if session is not None else {}


class MongoStore:
    def __init__(self, db, client=None, use_transactions=True):
        self.db = db
        self.client = client
        self.use_transactions = use_transactions and client is not None

    def collection(self, name):
        return self.db[name]

    # ==============================
    # Transactions
    # ==============================
    def run_in_transaction(self, callback):
        """
        Runs callback(session) inside one multi-document transaction.
        Commits when it returns, aborts when it raises. Transient
        transaction errors (write conflicts) re-run the callback from scratch.
        """
        if not self.use_transactions:
            return callback(None)
        with self.client.start_session() as session:
            return session.with_transaction(callback)

    # ==============================
    # Users
    # ==============================
    def find_user(self, user_id, session=None):
        return self.collection(USERS).find_one({"_id": as_object_id(user_id)}, **_opts(session))

    def find_user_by_email(self, email):
        return self.collection(USERS).find_one({"email": email})

    def find_user_by_kakao_id(self, kakao_id):
        return self.collection(USERS).find_one({"kakao_id": str(kakao_id)})

    def insert_user(self, doc):
        return self.collection(USERS).insert_one(doc).inserted_id

    def increment_session_count(self, user_id, session=None):
        """Atomic $inc on the user's counter; returns the new value or None."""
        doc = self.collection(USERS).find_one_and_update(
            {"_id": as_object_id(user_id)},
            {"$inc": {"session_count": 1}},
            return_document=ReturnDocument.AFTER,
            **_opts(session),
        )
        return doc["session_count"] if doc else None

    def delete_user_cascade(self, user_id, session=None):
        oid = as_object_id(user_id)
        removed = {}
        for name in SESSION_COLLECTIONS:
            removed[name] = self.collection(name).delete_many({"user_id": oid}, **_opts(session)).deleted_count
        removed[USERS] = self.collection(USERS).delete_one({"_id": oid}, **_opts(session)).deleted_count
        return removed

    # ==============================
    # Session writes
    # ==============================
    def insert_samples(self, docs, session=None):
        if not docs:
            return []
        return list(self.collection(ANALYSES).insert_many(docs, **_opts(session)).inserted_ids)

    def insert_interview(self, doc, session=None):
        return self.collection(INTERVIEWS).insert_one(doc, **_opts(session)).inserted_id

    def insert_result(self, doc, session=None):
        return self.collection(RESULTS).insert_one(doc, **_opts(session)).inserted_id

    def upsert_emotion_average(self, key, doc, session=None):
        """Create-or-replace the average for one (user, session_count)."""
        self.collection(EMOTION_AVERAGES).replace_one(key, doc, upsert=True, **_opts(session))

    # ==============================
    # Session reads
    # ==============================
    def _session_key(self, user_id, session_count):
        return {"user_id": as_object_id(user_id), "session_count": session_count}

    def find_interview(self, user_id, session_count, session=None):
        return self.collection(INTERVIEWS).find_one(self._session_key(user_id, session_count), **_opts(session))

    def find_result(self, user_id, session_count):
        return self.collection(RESULTS).find_one(self._session_key(user_id, session_count))

    def find_emotion_average(self, user_id, session_count, session=None):
        return self.collection(EMOTION_AVERAGES).find_one(self._session_key(user_id, session_count), **_opts(session))

    def find_samples(self, user_id, session_count, session=None):
        cursor = self.collection(ANALYSES).find(self._session_key(user_id, session_count), **_opts(session))
        return list(cursor.sort(SAMPLE_SORT))

    def find_samples_for_counts(self, user_id, session_counts):
        query = {"user_id": as_object_id(user_id), "session_count": {"$in": list(session_counts)}}
        return list(self.collection(ANALYSES).find(query).sort(SAMPLE_SORT))

    def find_emotion_averages(self, user_id, session_counts):
        query = {"user_id": as_object_id(user_id), "session_count": {"$in": list(session_counts)}}
        return list(self.collection(EMOTION_AVERAGES).find(query).sort("session_count", DESCENDING))

    def find_results(self, query, skip=0, limit=0):
        cursor = self.collection(RESULTS).find(query).sort("session_count", DESCENDING)
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    def count_results(self, query):
        return self.collection(RESULTS).count_documents(query)
