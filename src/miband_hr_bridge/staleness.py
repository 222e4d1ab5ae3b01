from __future__ import annotations
from enum import Enum

DEFAULT_STALE_AFTER_S = 10.0

class Freshness(str, Enum):
    FRESH = "fresh"
    STALE = "stale"

def classify(elapsed_s: float, threshold_s: float = DEFAULT_STALE_AFTER_S) -> Freshness:
    """FRESH while the last reading is younger than `threshold_s`, STALE from then on."""
    if elapsed_s < threshold_s:
        return Freshness.FRESH
    return Freshness.STALE
