import logging
import os
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

logger = logging.getLogger(__name__)

MODEL_PATH = os.path.join(os.path.dirname(__file__), "pose_landmarker_full.task")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", name, raw)
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", name, raw)
        return default


def _choice_env(name: str, default: str, choices: tuple[str, ...]) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value not in choices:
        logger.warning("Ignoring unknown %s=%r (expected one of %s)", name, raw, ", ".join(choices))
        return default
    return value


class ScoringConfig(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    target_frame_count: int = Field(64, ge=1)
    min_valid_frames: int = Field(12, ge=1)
    similarity_weight: float = Field(1.0, ge=0.0)
    fallback_score: float = Field(35.0, ge=0.0, le=100.0)
    coverage_penalty_ceiling: float = Field(10.0, ge=0.0)
    feature_mode: Literal["angles", "landmarks"] = "angles"
    alignment_mode: Literal["resample", "dtw"] = "resample"

    model_path: str = MODEL_PATH
    min_detection_confidence: float = Field(0.5, ge=0.0, le=1.0)
    min_presence_confidence: float = Field(0.5, ge=0.0, le=1.0)
    min_visibility: float = Field(0.0, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_frame_counts(self):
        if self.min_valid_frames > self.target_frame_count:
            raise ValueError(
                f"min_valid_frames ({self.min_valid_frames}) exceeds "
                f"target_frame_count ({self.target_frame_count})"
            )
        return self

    @classmethod
    def from_env(cls) -> "ScoringConfig":
        """Build a config from SCORING_* and POSE_* environment variables."""
        defaults = cls()
        return cls(
            target_frame_count=_int_env("SCORING_TARGET_FRAME_COUNT", defaults.target_frame_count),
            min_valid_frames=_int_env("SCORING_MIN_VALID_FRAMES", defaults.min_valid_frames),
            similarity_weight=_float_env("SCORING_SIMILARITY_WEIGHT", defaults.similarity_weight),
            fallback_score=_float_env("SCORING_FALLBACK_SCORE", defaults.fallback_score),
            coverage_penalty_ceiling=_float_env(
                "SCORING_COVERAGE_PENALTY", defaults.coverage_penalty_ceiling
            ),
            feature_mode=_choice_env(
                "SCORING_FEATURE_MODE", defaults.feature_mode, ("angles", "landmarks")
            ),
            alignment_mode=_choice_env(
                "SCORING_ALIGNMENT_MODE", defaults.alignment_mode, ("resample", "dtw")
            ),
            model_path=os.getenv("POSE_MODEL_PATH", defaults.model_path),
            min_detection_confidence=_float_env(
                "POSE_MIN_DETECTION_CONFIDENCE", defaults.min_detection_confidence
            ),
            min_presence_confidence=_float_env(
                "POSE_MIN_PRESENCE_CONFIDENCE", defaults.min_presence_confidence
            ),
            min_visibility=_float_env("POSE_MIN_VISIBILITY", defaults.min_visibility),
        )
