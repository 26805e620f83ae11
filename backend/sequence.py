import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

import numpy as np

from features import FeatureExtractor
from models import Skeleton

logger = logging.getLogger(__name__)


class LandmarkSource(Protocol):
    def detect(self, frame: np.ndarray) -> Optional[Skeleton]: ...

    def close(self) -> None: ...


class FrameReader(Protocol):
    duration_ms: int

    def frame_at(self, timestamp_ms: float) -> Optional[np.ndarray]: ...


@dataclass
class Sequence:
    """Descriptors of one video, in increasing timestamp order."""

    descriptors: list[np.ndarray] = field(default_factory=list)
    attempted: int = 0

    def __len__(self) -> int:
        return len(self.descriptors)

    @property
    def dropped(self) -> int:
        return self.attempted - len(self.descriptors)

    def as_array(self) -> np.ndarray:
        if not self.descriptors:
            return np.empty((0, 0))
        return np.vstack(self.descriptors)


def sample_timestamps(duration_ms: float, target_frame_count: int) -> list[float]:
    """Evenly spaced sample times (ms) covering the whole video.

    An unknown or non-positive duration collapses every sample onto t=0.
    """
    duration = duration_ms if duration_ms and duration_ms > 0 else 1
    step = duration / max(1, target_frame_count - 1)
    return [i * step for i in range(target_frame_count)]


def build_sequence(
    reader: FrameReader,
    source: LandmarkSource,
    extractor: FeatureExtractor,
    target_frame_count: int,
) -> Sequence:
    """Sample ``target_frame_count`` frames and keep those yielding a descriptor.

    Missing frames, failed detections and unusable skeletons are dropped;
    a short sequence is left for the quality gate to judge.
    """
    sequence = Sequence()
    for i, timestamp in enumerate(sample_timestamps(reader.duration_ms, target_frame_count)):
        sequence.attempted += 1

        frame = reader.frame_at(timestamp)
        if frame is None:
            logger.debug("No frame at %.0fms (sample %d)", timestamp, i)
            continue

        try:
            skeleton = source.detect(frame)
        except (RuntimeError, ValueError) as e:
            logger.warning("Pose detection failed at %.0fms (sample %d): %s", timestamp, i, e)
            continue
        if skeleton is None:
            logger.debug("No pose detected at %.0fms (sample %d)", timestamp, i)
            continue

        descriptor = extractor.extract(skeleton)
        if descriptor is None:
            logger.debug("Unusable skeleton at %.0fms (sample %d)", timestamp, i)
            continue
        sequence.descriptors.append(descriptor)

    logger.info(
        "Built sequence: %d/%d frames usable, %d dropped",
        len(sequence), sequence.attempted, sequence.dropped,
    )
    return sequence
