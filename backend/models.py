from enum import Enum
from typing import Optional

from pydantic import BaseModel


class Landmark(BaseModel):
    x: float
    y: float
    z: float
    visibility: Optional[float] = None


# One detected body: a fixed-size ordered list of landmarks (33 for MediaPipe).
Skeleton = list[Landmark]


class ScoringStrategy(str, Enum):
    FEATURE_BASED = "feature_based"
    HEURISTIC = "heuristic"


class VideoInfo(BaseModel):
    duration_ms: int = 0
    file_size_bytes: Optional[int] = None


class ScoreReport(BaseModel):
    score: float
    strategy: ScoringStrategy
    recorded_frames: int = 0
    reference_frames: int = 0
    aligned_frames: int = 0
    coverage: float = 0.0
    penalty: float = 0.0
    mean_similarity: Optional[float] = None
    gated: bool = False


class JobStatus(BaseModel):
    job_id: str
    status: str  # pending, processing, complete, error
    message: str = ""
