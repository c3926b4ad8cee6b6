# modules/results/query_assembler.py
"""
Session Query Assembler
- Joins interview, samples and emotion average rows for one session
- Paginated session history over a date range
- Summary statistics across a user's sessions
Read-only; a session with no rows is reported as absent, not as an error.
"""

import logging
import math
from collections import defaultdict
from typing import Any, Dict, Optional

import numpy as np

from database.store import as_object_id
from modules.analysis.aggregator import aggregate_samples
from modules.interview.session_builder import DEFAULT_EXPECTED_SAMPLES, derive_status
from utils.errors import ValidationError
from utils.scoring_utils import round_half_up

logger = logging.getLogger(__name__)

ALL = "all"
DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def date_query(user_id, start_date=ALL, end_date=ALL) -> Dict[str, Any]:
    query = {"user_id": as_object_id(user_id)}
    if start_date != ALL and end_date != ALL:
        query["date"] = {"$gte": start_date, "$lte": end_date}
    return query


def _page_args(page, limit):
    try:
        page = int(page)
        limit = int(limit)
    except (TypeError, ValueError) as e:
        raise ValidationError("page and limit must be integers") from e
    if page < 1 or not 1 <= limit <= MAX_LIMIT:
        raise ValidationError(
            f"page must be >= 1 and limit between 1 and {MAX_LIMIT}",
            {"page": page, "limit": limit},
        )
    return page, limit


class SessionQueryAssembler:
    def __init__(self, store, expected_samples=DEFAULT_EXPECTED_SAMPLES):
        self.store = store
        self.expected_samples = expected_samples

    def get_session(self, user_id, session_count: int) -> Optional[Dict[str, Any]]:
        interview = self.store.find_interview(user_id, session_count)
        samples = self.store.find_samples(user_id, session_count)
        average = self.store.find_emotion_average(user_id, session_count)
        result = self.store.find_result(user_id, session_count)

        if interview is None and not samples and average is None and result is None:
            return None

        return {
            "session_count": session_count,
            "status": derive_status(len(samples), self.expected_samples),
            "sample_count": len(samples),
            "interview": interview,
            "analyses": samples,
            "emotion_average": average,
            "result": result,
        }

    def get_history(self, user_id, start_date=ALL, end_date=ALL, page=1, limit=DEFAULT_LIMIT) -> Dict[str, Any]:
        page, limit = _page_args(page, limit)
        query = date_query(user_id, start_date, end_date)

        total = self.store.count_results(query)
        logger.debug("History for %s: %d sessions, page %d", user_id, total, page)
        results = self.store.find_results(query, skip=(page - 1) * limit, limit=limit)

        grouped = defaultdict(list)
        if results:
            counts = [r["session_count"] for r in results]
            # sorted by session_count desc then timestamp desc
            for sample in self.store.find_samples_for_counts(user_id, counts):
                grouped[sample["session_count"]].append(sample)

        items = []
        for r in results:
            samples = grouped.get(r["session_count"], [])
            items.append({
                **r,
                "status": derive_status(len(samples), self.expected_samples),
                "sample_count": len(samples),
                "analyses": samples,
            })

        return {
            "items": items,
            "meta": {
                "total": total,
                "page": page,
                "limit": limit,
                "total_pages": math.ceil(total / limit) if total else 0,
            },
        }

    def get_statistics(self, user_id, start_date=ALL, end_date=ALL) -> Dict[str, Any]:
        results = self.store.find_results(date_query(user_id, start_date, end_date))
        if not results:
            return {
                "total_sessions": 0,
                "average_mean_score": None,
                "best_mean_score": None,
                "latest_mean_score": None,
                "emotion_average": None,
            }

        scores = np.asarray([r["interview_data"]["mean_score"] for r in results], dtype=float)
        # per-session averages include samples appended after the result snapshot
        averages = self.store.find_emotion_averages(user_id, [r["session_count"] for r in results])
        emotion = aggregate_samples(averages) if averages else None

        return {
            "total_sessions": len(results),
            "average_mean_score": round_half_up(scores.mean(), 1),
            "best_mean_score": float(scores.max()),
            # results are sorted newest session first
            "latest_mean_score": float(scores[0]),
            "emotion_average": None if emotion is None else {
                "face_confidence": emotion.avg_confidence,
                "emotion": emotion.avg_emotion,
                "sessions": emotion.sample_count,
            },
        }
