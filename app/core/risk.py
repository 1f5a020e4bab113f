"""Threshold policy for detection scores."""
from __future__ import annotations

import math
from enum import Enum

DEFAULT_THRESHOLD = 180.0
THRESHOLD_MIN = 140.0
THRESHOLD_MAX = 220.0


class RiskClass(str, Enum):
    SAFE = "safe"
    UNSAFE = "unsafe"


def classify(score: float, threshold: float) -> RiskClass:
    """
    Classify a detection score against a threshold.

    A score at or above the threshold is unsafe. There is no hysteresis or
    smoothing; the threshold is always supplied by the caller.
    """
    if score >= threshold:
        return RiskClass.UNSAFE
    return RiskClass.SAFE


def clamp_threshold(value: float) -> float:
    """Sanitize a configured threshold into the supported 140-220 range."""
    if value is None or not math.isfinite(value):
        return DEFAULT_THRESHOLD
    return max(THRESHOLD_MIN, min(THRESHOLD_MAX, float(value)))
