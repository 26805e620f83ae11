import logging
from typing import Callable, Optional

from comparator import compare_sequences
from config import ScoringConfig
from errors import DetectorUnavailableError, VideoReadError
from features import FeatureExtractor
from heuristic import heuristic_score
from models import ScoreReport, ScoringStrategy
from sequence import LandmarkSource, Sequence, build_sequence
from video import open_video, probe_video

logger = logging.getLogger(__name__)


def select_strategy(detector_available: bool) -> ScoringStrategy:
    if detector_available:
        return ScoringStrategy.FEATURE_BASED
    return ScoringStrategy.HEURISTIC


def default_source_factory(config: ScoringConfig) -> LandmarkSource:
    """Create the MediaPipe landmark source described by ``config``."""
    try:
        from pose_extractor import PoseLandmarkSource
    except ImportError as e:
        raise DetectorUnavailableError(f"mediapipe is not available: {e}") from e
    return PoseLandmarkSource(
        config.model_path,
        min_detection_confidence=config.min_detection_confidence,
        min_presence_confidence=config.min_presence_confidence,
    )


class MotionScorer:
    """Scores a recorded movement video against a reference video.

    The landmark detector is created on first use and kept until
    :meth:`close`. If it cannot be created, every call is answered by the
    duration/size heuristic instead. One instance must not score two pairs
    of videos concurrently.
    """

    def __init__(
        self,
        config: Optional[ScoringConfig] = None,
        source_factory: Optional[Callable[[ScoringConfig], LandmarkSource]] = None,
        video_opener=open_video,
        video_probe=probe_video,
    ):
        self.config = config or ScoringConfig()
        self._source_factory = source_factory or default_source_factory
        self._open_video = video_opener
        self._probe_video = video_probe
        self._extractor = FeatureExtractor(
            mode=self.config.feature_mode, min_visibility=self.config.min_visibility
        )

        self._source: Optional[LandmarkSource] = None
        self._initialized = False
        self._initialization_error: Optional[DetectorUnavailableError] = None

    @property
    def initialization_error(self) -> Optional[DetectorUnavailableError]:
        return self._initialization_error

    def _ensure_source(self) -> Optional[LandmarkSource]:
        if self._initialized:
            return self._source
        self._initialized = True
        try:
            self._source = self._source_factory(self.config)
        except Exception as e:
            error = e
            if not isinstance(e, DetectorUnavailableError):
                error = DetectorUnavailableError(f"Pose detector failed to initialize: {e!r}")
                error.__cause__ = e
            logger.warning("Pose detector unavailable, using heuristic scoring: %s", error)
            self._initialization_error = error
            self._source = None
        return self._source

    def score(self, recorded_path: str, reference_path: str) -> float:
        return self.evaluate(recorded_path, reference_path).score

    def evaluate(self, recorded_path: str, reference_path: str) -> ScoreReport:
        """Score ``recorded_path`` against ``reference_path``.

        Raises:
            VideoReadError: if either video cannot be opened or decoded.
        """
        source = self._ensure_source()
        strategy = select_strategy(source is not None)
        logger.info("Scoring %s against %s (%s)", recorded_path, reference_path, strategy.value)

        if strategy is ScoringStrategy.HEURISTIC:
            return self._evaluate_heuristic(recorded_path, reference_path)

        try:
            return self._evaluate_features(source, recorded_path, reference_path)
        except VideoReadError:
            raise
        except Exception:
            logger.exception("Feature scoring failed, falling back to heuristic scoring")
            return self._evaluate_heuristic(recorded_path, reference_path)

    def _build(self, source: LandmarkSource, video_path: str) -> Sequence:
        with self._open_video(video_path) as reader:
            return build_sequence(
                reader, source, self._extractor, self.config.target_frame_count
            )

    def _evaluate_features(
        self, source: LandmarkSource, recorded_path: str, reference_path: str
    ) -> ScoreReport:
        recorded = self._build(source, recorded_path)
        reference = self._build(source, reference_path)

        result = compare_sequences(recorded.as_array(), reference.as_array(), self.config)
        return ScoreReport(
            score=result.score,
            strategy=ScoringStrategy.FEATURE_BASED,
            recorded_frames=len(recorded),
            reference_frames=len(reference),
            aligned_frames=result.aligned_frames,
            coverage=result.coverage,
            penalty=result.penalty,
            mean_similarity=result.mean_similarity,
            gated=result.gated,
        )

    def _evaluate_heuristic(self, recorded_path: str, reference_path: str) -> ScoreReport:
        recorded = self._probe_video(recorded_path)
        reference = self._probe_video(reference_path)
        score = heuristic_score(
            recorded.duration_ms, reference.duration_ms, recorded.file_size_bytes
        )
        logger.info(
            "Heuristic score %.1f (recorded=%dms, reference=%dms, size=%s bytes)",
            score, recorded.duration_ms, reference.duration_ms, recorded.file_size_bytes,
        )
        return ScoreReport(score=score, strategy=ScoringStrategy.HEURISTIC)

    def close(self):
        """Release the detector. Safe to call repeatedly or before first use."""
        source, self._source = self._source, None
        self._initialized = False
        if source is not None:
            source.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
