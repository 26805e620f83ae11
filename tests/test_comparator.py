import numpy as np
import pytest

from comparator import (
    compare_sequences,
    cosine_similarity,
    coverage_penalty,
    landmark_similarity,
)
from config import ScoringConfig
from errors import DescriptorMismatchError


@pytest.fixture
def config():
    return ScoringConfig(target_frame_count=64, min_valid_frames=12)


def _constant(rows, vector):
    return np.tile(np.asarray(vector, dtype=float), (rows, 1))


class TestCosineSimilarity:
    def test_self_similarity_is_one(self):
        v = np.array([0.3, 1.2, 2.9, 0.1])
        assert cosine_similarity(v, v) == pytest.approx(1.0)

    def test_orthogonal_is_zero(self):
        assert cosine_similarity(np.array([1.0, 0.0]), np.array([0.0, 3.0])) == 0.0

    def test_opposite_is_minus_one(self):
        assert cosine_similarity(np.array([1.0, 2.0]), np.array([-2.0, -4.0])) == pytest.approx(-1.0)

    def test_bounded(self):
        rng = np.random.default_rng(4)
        for _ in range(50):
            sim = cosine_similarity(rng.normal(size=8), rng.normal(size=8))
            assert -1.0 <= sim <= 1.0

    def test_zero_vector_is_undefined(self):
        assert cosine_similarity(np.zeros(4), np.ones(4)) is None

    def test_dimension_mismatch(self):
        with pytest.raises(DescriptorMismatchError):
            cosine_similarity(np.ones(8), np.ones(6))


class TestLandmarkSimilarity:
    def test_identical_is_one(self):
        v = np.random.default_rng(5).normal(size=99)
        assert landmark_similarity(v, v) == pytest.approx(1.0)

    def test_unit_displacement_halves_similarity(self):
        a = np.zeros((33, 3))
        b = a.copy()
        b[:, 0] += 1.0
        assert landmark_similarity(a.reshape(-1), b.reshape(-1)) == pytest.approx(0.5)


def test_coverage_penalty_scenario():
    coverage, penalty = coverage_penalty(32, 64, 64, 10.0)
    assert coverage == 0.75
    assert penalty == pytest.approx(2.5)


def test_full_coverage_has_no_penalty():
    assert coverage_penalty(64, 64, 64, 10.0) == (1.0, 0.0)


class TestCompareSequences:
    def test_identical_sequences_score_full_marks(self, config):
        seq = np.random.default_rng(6).uniform(0.1, 3.0, size=(64, 8))
        result = compare_sequences(seq, seq, config)
        assert result.score == pytest.approx(100.0)
        assert result.penalty == 0.0
        assert not result.gated

    def test_orthogonal_descriptors_score_fifty(self, config):
        result = compare_sequences(_constant(64, [1, 0]), _constant(64, [0, 1]), config)
        assert result.mean_similarity == 0.0
        assert result.score == pytest.approx(50.0)

    def test_short_sequences_return_fallback(self, config):
        seq = _constant(5, [1.0, 2.0, 3.0])
        result = compare_sequences(seq, seq, config)
        assert result.score == 35.0
        assert result.gated

    def test_one_short_sequence_returns_fallback(self, config):
        result = compare_sequences(_constant(11, [1, 2]), _constant(64, [1, 2]), config)
        assert result.score == 35.0

    def test_empty_sequences_return_fallback(self, config):
        result = compare_sequences(np.empty((0, 0)), np.empty((0, 0)), config)
        assert result.score == 35.0

    def test_all_zero_descriptors_return_fallback(self, config):
        result = compare_sequences(np.zeros((64, 8)), np.zeros((64, 8)), config)
        assert result.score == 35.0
        assert result.gated
        assert result.aligned_frames == 64

    def test_zero_pairs_are_excluded_not_penalized(self, config):
        seq = _constant(64, [1.0, 2.0])
        degraded = seq.copy()
        degraded[::2] = 0.0
        result = compare_sequences(degraded, seq, config)
        assert result.score == pytest.approx(100.0)

    def test_sparse_coverage_penalty(self, config):
        result = compare_sequences(_constant(32, [1, 2, 3]), _constant(64, [1, 2, 3]), config)
        assert result.aligned_frames == 32
        assert result.coverage == 0.75
        assert result.penalty == pytest.approx(2.5)
        assert result.score == pytest.approx(97.5)

    def test_similarity_weight_stretches_mapped_score(self):
        config = ScoringConfig(similarity_weight=0.5)
        seq = _constant(64, [1, 2, 3])
        assert compare_sequences(seq, seq, config).score == pytest.approx(50.0)

    def test_custom_fallback_and_penalty(self):
        config = ScoringConfig(fallback_score=20.0, coverage_penalty_ceiling=20.0)
        assert compare_sequences(_constant(3, [1]), _constant(3, [1]), config).score == 20.0
        result = compare_sequences(_constant(32, [1, 2]), _constant(64, [1, 2]), config)
        assert result.score == pytest.approx(95.0)

    def test_score_bounded_for_mismatched_random_sequences(self, config):
        rng = np.random.default_rng(7)
        for len_a, len_b in [(12, 64), (20, 45), (64, 13), (90, 30)]:
            result = compare_sequences(
                rng.normal(size=(len_a, 8)), rng.normal(size=(len_b, 8)), config
            )
            assert 0.0 <= result.score <= 100.0

    def test_landmark_mode(self):
        config = ScoringConfig(feature_mode="landmarks")
        seq = np.random.default_rng(8).normal(size=(64, 99))
        assert compare_sequences(seq, seq, config).score == pytest.approx(100.0)

    def test_dtw_mode(self):
        config = ScoringConfig(alignment_mode="dtw")
        theta = np.linspace(0.1, 1.4, 64)
        seq = np.stack([np.cos(theta), np.sin(theta)], axis=1)
        result = compare_sequences(seq, seq, config)
        assert result.score == pytest.approx(100.0)
        assert result.aligned_frames == 64

    def test_closer_motion_scores_higher(self, config):
        reference = _constant(64, [3.0, 3.0, 1.0])
        near = _constant(64, [3.0, 2.5, 1.0])
        far = _constant(64, [0.5, 3.0, 3.0])
        assert compare_sequences(near, reference, config).score > compare_sequences(far, reference, config).score
