# modules/interview/schemas.py
"""
Typed request bodies for the interview pipeline.

Only shape, types, finite numbers and the confidence range are checked
here. Domain rules (order set, score range, mean agreement, emotion keys)
belong to the session builder so they raise the pipeline's own error types.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class QuestionAnswerIn(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    question: str = Field(min_length=1)
    answer: str = Field(min_length=1)
    order: int
    score: float


class FaceResultIn(BaseModel):
    model_config = ConfigDict(extra="allow", allow_inf_nan=False)

    face_confidence: float = Field(ge=0, le=1)
    dominant_emotion: Optional[str] = None
    dominant_gender: Optional[str] = None
    age: Optional[float] = None
    emotion: Dict[str, Any]
    region: Optional[Dict[str, Any]] = None


class AnalysisFrameIn(BaseModel):
    timestamp: datetime
    result: List[FaceResultIn] = Field(min_length=1, max_length=1)

    @property
    def face(self) -> FaceResultIn:
        return self.result[0]


class SubmissionIn(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    questions_answers: List[QuestionAnswerIn]
    mean_score: Optional[float] = None
    final_score: Optional[float] = Field(default=None, ge=0, le=100)
    analysis_results: List[AnalysisFrameIn]


class AnalysisAppendIn(BaseModel):
    analysis_results: List[AnalysisFrameIn] = Field(min_length=1)
