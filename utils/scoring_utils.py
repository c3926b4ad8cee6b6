# utils/scoring_utils.py
from decimal import Decimal, ROUND_HALF_UP

import numpy as np


def round_half_up(value, places=3):
    """
    Rounds half away from zero at the given number of decimals.
    Python's round() and numpy's round() use banker's rounding,
    so 0.0625 -> 0.062 there but 0.063 here.
    """
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP))


def mean_score(scores, places=1):
    """
    Average of the per-question interview scores.
    Example:
        mean_score([74, 82, 68]) -> 74.7
    """
    return round_half_up(np.mean(np.asarray(scores, dtype=float)), places)


def within_tolerance(declared, computed, tolerance=0.1, places=1):
    """
    True when a client-declared value matches the server value.
    Both sides are compared at the stored precision so 74.8 vs 74.7
    with a 0.1 tolerance is accepted despite float noise.
    """
    diff = abs(round_half_up(declared, places) - round_half_up(computed, places))
    return round_half_up(diff, places) <= tolerance
