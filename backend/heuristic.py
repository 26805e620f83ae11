from typing import Optional

import numpy as np

MAX_DURATION_RATIO = 1.2
FULL_STABILITY_MB = 25.0
MIN_STABILITY = 0.3
UNKNOWN_STABILITY = 0.5
MIN_SCORE = 30.0
MAX_SCORE = 95.0


def stability_factor(file_size_bytes: Optional[int]) -> float:
    """Crude recording-quality proxy from file size, in [0.3, 1.0].

    Bigger files usually mean higher bitrate or resolution. A missing file
    gets a neutral 0.5.
    """
    if file_size_bytes is None:
        return UNKNOWN_STABILITY
    size_mb = file_size_bytes / 1_000_000.0
    return float(np.clip(size_mb / FULL_STABILITY_MB, MIN_STABILITY, 1.0))


def heuristic_score(
    recorded_duration_ms: int,
    reference_duration_ms: int,
    recorded_file_size_bytes: Optional[int],
) -> float:
    """Score a recording from its duration and size alone, in [30, 95]."""
    ratio = max(1, recorded_duration_ms) / max(1, reference_duration_ms)
    base = 70.0 * min(MAX_DURATION_RATIO, ratio) + 20.0 * stability_factor(recorded_file_size_bytes)
    return float(np.clip(base, MIN_SCORE, MAX_SCORE))
