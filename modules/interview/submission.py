# modules/interview/submission.py
"""
Submission Coordinator
- Validates the payload before any write
- Claims the next session_count with an atomic $inc
- Writes samples, emotion average, interview and result in one transaction
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

import pydantic
from pymongo.errors import PyMongoError

from database.store import as_object_id
from modules.analysis.aggregator import aggregate_samples
from modules.interview.schemas import AnalysisAppendIn, SubmissionIn
from modules.interview.session_builder import (
    DEFAULT_EXPECTED_SAMPLES,
    derive_status,
    sample_fields,
    session_date,
    validate_submission,
)
from utils.errors import (
    ConsistencyError,
    InvalidPayloadError,
    SampleCountError,
    SessionNotFoundError,
    UserNotFoundError,
)

logger = logging.getLogger(__name__)


def parse_payload(model, payload):
    if not isinstance(payload, dict):
        raise InvalidPayloadError("Request body must be a JSON object")
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as e:
        raise InvalidPayloadError.from_pydantic(e) from e


class SubmissionCoordinator:
    def __init__(self, store, strict=False, expected_samples=DEFAULT_EXPECTED_SAMPLES, tolerance=0.1):
        self.store = store
        self.strict = strict
        self.expected_samples = expected_samples
        self.tolerance = tolerance

    @classmethod
    def from_config(cls, store, config):
        return cls(
            store,
            strict=config.STRICT_SAMPLE_COUNT,
            expected_samples=config.EXPECTED_SAMPLES,
            tolerance=config.MEAN_SCORE_TOLERANCE,
        )

    def _run(self, label, callback):
        try:
            return self.store.run_in_transaction(callback)
        except PyMongoError as e:
            logger.exception("%s aborted by the store", label)
            raise ConsistencyError(
                "Failed to save interview session; nothing was written, the request may be retried"
            ) from e

    # =============================
    # Full session submission
    # =============================
    def submit(self, user_id, payload) -> Dict[str, Any]:
        submission = parse_payload(SubmissionIn, payload)
        validated = validate_submission(
            submission,
            strict=self.strict,
            expected_samples=self.expected_samples,
            tolerance=self.tolerance,
        )

        def _write(session):
            count = self.store.increment_session_count(user_id, session=session)
            if count is None:
                raise UserNotFoundError("User not found")

            records = validated.assemble(as_object_id(user_id), count)
            analysis_ids = self.store.insert_samples(records.samples, session=session)
            self.store.upsert_emotion_average(records.average_filter, records.average, session=session)
            interview_id = self.store.insert_interview(records.interview, session=session)
            result_id = self.store.insert_result(records.result, session=session)

            return {
                "session_count": count,
                "interview_id": str(interview_id),
                "result_id": str(result_id),
                "mean_score": validated.mean_score,
                "analysis_ids": [str(i) for i in analysis_ids],
                "status": validated.status,
            }

        out = self._run("Interview submission", _write)
        logger.debug("User %s submitted session %d (%s)", user_id, out["session_count"], out["status"])
        return out

    # =============================
    # Late samples for an in-progress session
    # =============================
    def append_samples(self, user_id, session_count: int, payload) -> Dict[str, Any]:
        body = parse_payload(AnalysisAppendIn, payload)
        frames = body.analysis_results
        new_samples = [
            {"face_confidence": f.face.face_confidence, "emotion": f.face.emotion} for f in frames
        ]
        # reject malformed frames before opening the transaction
        aggregate_samples(new_samples)

        def _write(session):
            interview = self.store.find_interview(user_id, session_count, session=session)
            if interview is None:
                raise SessionNotFoundError(f"No interview session {session_count} for this user")

            existing = self.store.find_samples(user_id, session_count, session=session)
            total = len(existing) + len(frames)
            if total > self.expected_samples:
                raise SampleCountError(
                    f"Session {session_count} already has {len(existing)} of {self.expected_samples} samples",
                    {"existing": len(existing), "received": len(frames), "expected": self.expected_samples},
                )

            now = datetime.now(timezone.utc)
            key = {"user_id": interview["user_id"], "session_count": session_count}
            docs = [{**key, **sample_fields(f), "created_at": now} for f in frames]
            analysis_ids = self.store.insert_samples(docs, session=session)

            aggregate = aggregate_samples(existing + docs)
            status = derive_status(aggregate.sample_count, self.expected_samples)
            previous = self.store.find_emotion_average(user_id, session_count, session=session) or {}
            average = {
                **key,
                "date": previous.get("date", session_date(now)),
                **aggregate.to_dict(),
                "status": status,
                "updated_at": now,
            }
            if "final_score" in previous:
                average["final_score"] = previous["final_score"]
            self.store.upsert_emotion_average(key, average, session=session)

            return {
                "session_count": session_count,
                "analysis_ids": [str(i) for i in analysis_ids],
                "sample_count": aggregate.sample_count,
                "status": status,
            }

        out = self._run("Sample append", _write)
        logger.debug("User %s session %d now has %d samples", user_id, session_count, out["sample_count"])
        return out
