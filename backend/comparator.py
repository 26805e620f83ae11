import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from aligner import align, warp_align
from config import ScoringConfig
from errors import DescriptorMismatchError
from features import landmark_weights

logger = logging.getLogger(__name__)

_EPS = 1e-9


@dataclass
class SimilarityResult:
    score: float
    aligned_frames: int = 0
    coverage: float = 0.0
    penalty: float = 0.0
    mean_similarity: Optional[float] = None
    gated: bool = False


def _check_pair(a: np.ndarray, b: np.ndarray):
    if a.shape != b.shape:
        raise DescriptorMismatchError(f"Descriptor size mismatch: {a.shape} vs {b.shape}")


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> Optional[float]:
    """Cosine similarity clamped to [-1, 1]; None when either vector has no direction."""
    _check_pair(a, b)
    norm = np.linalg.norm(a) * np.linalg.norm(b)
    if norm < _EPS:
        return None
    return float(np.clip(np.dot(a, b) / norm, -1, 1))


def landmark_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Weighted mean of 1 / (1 + distance) over corresponding landmarks, in (0, 1]."""
    _check_pair(a, b)
    pa = a.reshape(-1, 3)
    pb = b.reshape(-1, 3)
    distances = np.linalg.norm(pa - pb, axis=1)
    weights = landmark_weights(len(pa))
    return float(np.sum(weights / (1.0 + distances)) / np.sum(weights))


def coverage_penalty(
    valid_a: int, valid_b: int, target_frame_count: int, ceiling: float
) -> tuple[float, float]:
    """Return (coverage, penalty) for the fraction of samples that were usable."""
    coverage = (valid_a + valid_b) / (2 * target_frame_count)
    penalty = (1.0 - float(np.clip(coverage, 0.0, 1.0))) * ceiling
    return coverage, penalty


def map_similarity(mean_similarity: float, feature_mode: str) -> float:
    """Map a mean pair similarity to the 0-100 scale."""
    if feature_mode == "landmarks":
        return mean_similarity * 100
    return (mean_similarity + 1) / 2 * 100  # map [-1,1] → [0,100]


def compare_sequences(
    recorded: np.ndarray,
    reference: np.ndarray,
    config: ScoringConfig,
) -> SimilarityResult:
    """Score a recorded descriptor sequence against a reference, 0-100.

    Sequences shorter than ``min_valid_frames`` and alignments without a
    single comparable pair return ``config.fallback_score`` unchanged.
    """
    recorded = np.asarray(recorded, dtype=np.float64)
    reference = np.asarray(reference, dtype=np.float64)

    if len(recorded) < config.min_valid_frames or len(reference) < config.min_valid_frames:
        logger.info(
            "Too few valid frames (recorded=%d, reference=%d, need %d); using fallback score",
            len(recorded), len(reference), config.min_valid_frames,
        )
        return SimilarityResult(score=config.fallback_score, gated=True)

    if config.alignment_mode == "dtw":
        aligned_rec, aligned_ref = warp_align(recorded, reference)
    else:
        aligned_rec, aligned_ref = align(
            recorded, reference, config.min_valid_frames, config.target_frame_count
        )

    # Per-aligned-pair similarity
    pair_scores = []
    for rec, ref in zip(aligned_rec, aligned_ref):
        if config.feature_mode == "landmarks":
            sim = landmark_similarity(rec, ref)
        else:
            sim = cosine_similarity(rec, ref)
        if sim is not None:
            pair_scores.append(sim)

    if not pair_scores:
        logger.info("No comparable frame pairs among %d aligned; using fallback score", len(aligned_rec))
        return SimilarityResult(
            score=config.fallback_score, aligned_frames=len(aligned_rec), gated=True
        )

    mean_similarity = float(np.mean(pair_scores))
    base_score = float(np.clip(
        map_similarity(mean_similarity, config.feature_mode) * config.similarity_weight, 0, 100
    ))

    coverage, penalty = coverage_penalty(
        len(recorded), len(reference), config.target_frame_count, config.coverage_penalty_ceiling
    )
    final_score = float(np.clip(base_score - penalty, 0, 100))
    logger.info(
        "Similarity %.4f over %d pairs -> base %.1f, coverage %.2f, penalty %.2f, final %.1f",
        mean_similarity, len(pair_scores), base_score, coverage, penalty, final_score,
    )

    return SimilarityResult(
        score=final_score,
        aligned_frames=len(aligned_rec),
        coverage=coverage,
        penalty=penalty,
        mean_similarity=mean_similarity,
    )
