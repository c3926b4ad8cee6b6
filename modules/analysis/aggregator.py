# modules/analysis/aggregator.py
"""
Numeric Aggregator
- Reduces per-frame face analysis samples into one session average
- Each sample is a mapping with `face_confidence` and a 7-key `emotion` dict
- Pure: no I/O, no mutation of the input
"""

import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping

import numpy as np

from utils.errors import EmptyInputError, MalformedSampleError
from utils.scoring_utils import round_half_up

EMOTION_KEYS = ("angry", "disgust", "fear", "happy", "neutral", "sad", "surprise")
PLACES = 3


@dataclass(frozen=True)
class EmotionAggregate:
    avg_confidence: float
    avg_emotion: Dict[str, float] = field(default_factory=dict)
    sample_count: int = 0

    def to_dict(self):
        return {
            "face_confidence": self.avg_confidence,
            "emotion": dict(self.avg_emotion),
            "total_analyses": self.sample_count,
        }


def _sample_row(index: int, sample: Mapping) -> list:
    if not isinstance(sample, Mapping):
        raise MalformedSampleError(f"Sample {index} is not an object")

    emotion = sample.get("emotion")
    if not isinstance(emotion, Mapping):
        raise MalformedSampleError(f"Sample {index} has no emotion distribution")

    missing = [k for k in EMOTION_KEYS if k not in emotion]
    if missing:
        raise MalformedSampleError(
            f"Sample {index} is missing emotion keys: {', '.join(missing)}",
            {"sample": index, "missing": missing},
        )

    values = [sample.get("face_confidence")] + [emotion[k] for k in EMOTION_KEYS]
    row = []
    for v in values:
        # bool is an int subclass; a True confidence is a data bug
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise MalformedSampleError(f"Sample {index} has a non-numeric score: {v!r}")
        if not math.isfinite(v):
            raise MalformedSampleError(f"Sample {index} has a non-finite score: {v!r}", {"sample": index})
        row.append(float(v))

    if not 0 <= row[0] <= 1:
        raise MalformedSampleError(
            f"Sample {index} face_confidence must be between 0 and 1",
            {"sample": index, "face_confidence": row[0]},
        )
    return row


def aggregate_samples(samples: Iterable[Mapping]) -> EmotionAggregate:
    """
    Average confidence and emotion vector over all samples.

    Raises:
        EmptyInputError: no samples (the mean is undefined)
        MalformedSampleError: a sample lacks a confidence or an emotion key,
            holds a non-finite value, or has a confidence outside [0, 1]
    """
    rows = [_sample_row(i, s) for i, s in enumerate(samples)]
    if not rows:
        raise EmptyInputError("Cannot aggregate an empty list of analysis samples")

    means = np.asarray(rows, dtype=float).mean(axis=0)

    return EmotionAggregate(
        avg_confidence=round_half_up(means[0], PLACES),
        avg_emotion={k: round_half_up(means[i + 1], PLACES) for i, k in enumerate(EMOTION_KEYS)},
        sample_count=len(rows),
    )
