import logging

import numpy as np
from dtw import dtw

from errors import DescriptorMismatchError

logger = logging.getLogger(__name__)

_EPS = 1e-9


def _check_dims(seq_a: np.ndarray, seq_b: np.ndarray):
    if len(seq_a) and len(seq_b) and seq_a.shape[1] != seq_b.shape[1]:
        raise DescriptorMismatchError(
            f"Descriptor size mismatch: {seq_a.shape[1]} vs {seq_b.shape[1]}"
        )


def resample(seq: np.ndarray, length: int) -> np.ndarray:
    """Linearly resample ``seq`` (n x d) to exactly ``length`` rows.

    Output row i sits at position i*(n-1)/(length-1) of the input and blends
    its two nearest samples by the fractional part.
    """
    if length < 1:
        raise ValueError(f"Resample length must be >= 1, got {length}")
    seq = np.asarray(seq, dtype=np.float64)
    n = len(seq)
    if n == 0:
        raise ValueError("Cannot resample an empty sequence")
    if n == 1 or length == 1:
        return np.repeat(seq[:1], length, axis=0)

    positions = np.arange(length) * (n - 1) / (length - 1)
    lower = np.floor(positions).astype(int)
    upper = np.minimum(lower + 1, n - 1)
    frac = (positions - lower)[:, None]
    return seq[lower] * (1.0 - frac) + seq[upper] * frac


def target_length(len_a: int, len_b: int, min_valid_frames: int, target_frame_count: int) -> int:
    return int(np.clip(min(len_a, len_b), min_valid_frames, target_frame_count))


def align(
    seq_a: np.ndarray,
    seq_b: np.ndarray,
    min_valid_frames: int,
    target_frame_count: int,
) -> tuple[np.ndarray, np.ndarray]:
    """Make two descriptor sequences comparable index by index.

    Equal lengths pair 1:1 untouched; otherwise both are resampled to a
    common length clamped to [min_valid_frames, target_frame_count].
    """
    seq_a = np.asarray(seq_a, dtype=np.float64)
    seq_b = np.asarray(seq_b, dtype=np.float64)
    _check_dims(seq_a, seq_b)

    if len(seq_a) == len(seq_b):
        return seq_a.copy(), seq_b.copy()

    length = target_length(len(seq_a), len(seq_b), min_valid_frames, target_frame_count)
    logger.debug("Resampling %d and %d frames to %d", len(seq_a), len(seq_b), length)
    return resample(seq_a, length), resample(seq_b, length)


def cosine_cost_matrix(seq_a: np.ndarray, seq_b: np.ndarray) -> np.ndarray:
    """1 - cosine similarity for every pair of rows; zero-norm rows cost 1."""
    norms_a = np.linalg.norm(seq_a, axis=1)
    norms_b = np.linalg.norm(seq_b, axis=1)
    denom = np.outer(norms_a, norms_b)
    with np.errstate(divide="ignore", invalid="ignore"):
        sims = np.where(denom > _EPS, (seq_a @ seq_b.T) / denom, 0.0)
    return 1.0 - np.clip(sims, -1.0, 1.0)


def warp_align(seq_a: np.ndarray, seq_b: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """DTW alignment; both outputs follow the warping path and share its length."""
    seq_a = np.asarray(seq_a, dtype=np.float64)
    seq_b = np.asarray(seq_b, dtype=np.float64)
    _check_dims(seq_a, seq_b)
    if len(seq_a) == 0 or len(seq_b) == 0:
        raise ValueError("Cannot warp-align an empty sequence")

    alignment = dtw(cosine_cost_matrix(seq_a, seq_b))
    logger.debug(
        "DTW path of %d steps, normalized distance %.4f",
        len(alignment.index1), alignment.normalizedDistance,
    )
    return seq_a[alignment.index1], seq_b[alignment.index2]
