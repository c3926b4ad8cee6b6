# modules/interview/session_builder.py
"""
Session Record Builder
- Validates a typed submission (Q&A order/scores, mean agreement, sample count)
- Aggregates the analysis samples
- Assembles the interview / samples / emotion average / result documents
  for one session_count without touching the database
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from modules.analysis.aggregator import EMOTION_KEYS, EmotionAggregate, aggregate_samples
from modules.interview.schemas import AnalysisFrameIn, QuestionAnswerIn, SubmissionIn
from utils.errors import (
    InvalidOrderError,
    InvalidScoreError,
    MeanScoreMismatchError,
    SampleCountError,
)
from utils.scoring_utils import mean_score, within_tolerance

logger = logging.getLogger(__name__)

QUESTION_ORDERS = (1, 2, 3)
DEFAULT_EXPECTED_SAMPLES = 6
STATUS_COMPLETED = "completed"
STATUS_IN_PROGRESS = "in_progress"


def derive_status(sample_count: int, expected: int = DEFAULT_EXPECTED_SAMPLES) -> str:
    return STATUS_COMPLETED if sample_count >= expected else STATUS_IN_PROGRESS


def session_date(now: datetime) -> str:
    return now.astimezone(timezone.utc).strftime("%Y-%m-%d")


# -------------------------------
# Validation helpers
# -------------------------------

def _sorted_questions(questions_answers: List[QuestionAnswerIn]) -> List[Dict[str, Any]]:
    ordered = sorted(questions_answers, key=lambda qa: qa.order)
    orders = [qa.order for qa in ordered]

    if len(ordered) != len(QUESTION_ORDERS):
        raise InvalidOrderError(
            f"Exactly {len(QUESTION_ORDERS)} questions and answers are required, got {len(ordered)}",
            {"orders": orders},
        )
    if tuple(orders) != QUESTION_ORDERS:
        raise InvalidOrderError("Invalid question order sequence", {"orders": orders})

    out = []
    for qa in ordered:
        if qa.score != int(qa.score) or not 0 <= qa.score <= 100:
            raise InvalidScoreError(
                f"Score for question {qa.order} must be an integer between 0 and 100",
                {"order": qa.order, "score": qa.score},
            )
        out.append({
            "question": qa.question,
            "answer": qa.answer,
            "score": int(qa.score),
            "order": qa.order,
        })
    return out


def check_sample_count(count: int, expected: int, strict: bool) -> None:
    if strict and count != expected:
        raise SampleCountError(
            f"Exactly {expected} analysis results are required, got {count}",
            {"expected": expected, "received": count},
        )
    if count < 1:
        raise SampleCountError("At least one analysis result is required", {"received": count})
    if count > expected:
        raise SampleCountError(
            f"At most {expected} analysis results are allowed per session, got {count}",
            {"expected": expected, "received": count},
        )


def sample_fields(frame: AnalysisFrameIn) -> Dict[str, Any]:
    """Flattens one analyzer frame into the stored sample shape."""
    face = frame.face.model_dump()
    emotion = dict(face.pop("emotion"))
    for k in EMOTION_KEYS:
        emotion[k] = float(emotion[k])
    return {
        **face,
        "timestamp": frame.timestamp,
        "face_confidence": float(frame.face.face_confidence),
        "emotion": emotion,
    }


# -------------------------------
# Records
# -------------------------------

@dataclass
class SessionRecords:
    session_count: int
    interview: Dict[str, Any]
    samples: List[Dict[str, Any]]
    average_filter: Dict[str, Any]
    average: Dict[str, Any]
    result: Dict[str, Any]


@dataclass
class ValidatedSubmission:
    questions_answers: List[Dict[str, Any]]
    mean_score: float
    aggregate: EmotionAggregate
    samples: List[Dict[str, Any]]
    status: str
    final_score: Optional[float] = None

    def assemble(self, user_id, session_count: int, now: Optional[datetime] = None) -> SessionRecords:
        now = now or datetime.now(timezone.utc)
        date = session_date(now)
        key = {"user_id": user_id, "session_count": session_count}

        samples = [{**key, **s, "created_at": now} for s in self.samples]

        average = {
            **key,
            "date": date,
            **self.aggregate.to_dict(),
            "status": self.status,
            "updated_at": now,
        }
        if self.final_score is not None:
            average["final_score"] = self.final_score

        interview = {
            **key,
            "questions_answers": [dict(qa) for qa in self.questions_answers],
            "mean_score": self.mean_score,
            "created_at": now,
        }

        result = {
            **key,
            "date": date,
            "interview_data": {
                "questions_answers": [dict(qa) for qa in self.questions_answers],
                "mean_score": self.mean_score,
            },
            "analysis_average": self.aggregate.to_dict(),
            "created_at": now,
        }

        return SessionRecords(
            session_count=session_count,
            interview=interview,
            samples=samples,
            average_filter=dict(key),
            average=average,
            result=result,
        )


def validate_submission(
    submission: SubmissionIn,
    strict: bool = False,
    expected_samples: int = DEFAULT_EXPECTED_SAMPLES,
    tolerance: float = 0.1,
) -> ValidatedSubmission:
    """
    Runs every check a submission must pass before anything is written.

    Args:
        submission: parsed request body
        strict: require exactly `expected_samples` analyses
        expected_samples: samples that complete a session (2 per question)
        tolerance: allowed gap between client and server mean score

    Returns:
        ValidatedSubmission, ready to be assembled under a session_count.
    """
    questions = _sorted_questions(submission.questions_answers)
    server_mean = mean_score([qa["score"] for qa in questions])

    if submission.mean_score is not None and not within_tolerance(
        submission.mean_score, server_mean, tolerance
    ):
        raise MeanScoreMismatchError(
            "Provided mean score does not match calculated mean",
            {"provided": submission.mean_score, "calculated": server_mean},
        )

    count = len(submission.analysis_results)
    check_sample_count(count, expected_samples, strict)

    samples = [
        {"timestamp": f.timestamp, "face_confidence": f.face.face_confidence, "emotion": f.face.emotion}
        for f in submission.analysis_results
    ]
    aggregate = aggregate_samples(samples)
    status = derive_status(count, expected_samples)
    if status == STATUS_IN_PROGRESS:
        logger.debug("Partial submission: %d of %d samples", count, expected_samples)

    return ValidatedSubmission(
        questions_answers=questions,
        mean_score=server_mean,
        aggregate=aggregate,
        samples=[sample_fields(f) for f in submission.analysis_results],
        status=status,
        final_score=submission.final_score,
    )
