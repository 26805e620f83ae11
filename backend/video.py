import logging
import os
from contextlib import contextmanager
from typing import Iterator, Optional

import cv2
import numpy as np

from errors import VideoReadError
from models import VideoInfo

logger = logging.getLogger(__name__)


def _frame_props(cap: "cv2.VideoCapture") -> tuple[float, int]:
    fps = cap.get(cv2.CAP_PROP_FPS) or 0.0
    frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0)
    return fps, frame_count


def _duration_ms(cap: "cv2.VideoCapture") -> int:
    fps, frame_count = _frame_props(cap)
    if fps <= 0 or frame_count <= 0:
        return 0
    return int(frame_count * 1000 / fps)


class VideoReader:
    """Random access to the frames of one opened video, by timestamp."""

    def __init__(self, cap: "cv2.VideoCapture", path: str):
        self._cap = cap
        self.path = path
        self.fps, self.frame_count = _frame_props(cap)
        self.duration_ms = _duration_ms(cap)

    def frame_at(self, timestamp_ms: float) -> Optional[np.ndarray]:
        """Return the BGR frame nearest to ``timestamp_ms``, or None.

        Seeks by frame index, clamped to the last frame: ``duration_ms``
        lies one frame period past the last decodable frame.
        """
        if self.fps > 0 and self.frame_count > 0:
            index = min(max(round(timestamp_ms * self.fps / 1000), 0), self.frame_count - 1)
            self._cap.set(cv2.CAP_PROP_POS_FRAMES, index)
        else:
            self._cap.set(cv2.CAP_PROP_POS_MSEC, float(timestamp_ms))
        ret, frame = self._cap.read()
        if not ret or frame is None:
            return None
        return frame


@contextmanager
def open_video(video_path: str) -> Iterator[VideoReader]:
    """Open a video for sampling; the capture is released on every exit path."""
    cap = cv2.VideoCapture(video_path)
    try:
        if not cap.isOpened():
            raise VideoReadError(f"Cannot open video: {video_path}")
        reader = VideoReader(cap, video_path)
        if reader.frame_at(0) is None:
            raise VideoReadError(f"Cannot decode first frame of video: {video_path}")
        logger.info("Opened %s (duration=%dms)", video_path, reader.duration_ms)
        yield reader
    finally:
        cap.release()


def probe_video(video_path: str) -> VideoInfo:
    """Read duration and file size without decoding frames.

    Unknown values are reported as 0 / None rather than raised.
    """
    size = os.path.getsize(video_path) if os.path.isfile(video_path) else None
    cap = cv2.VideoCapture(video_path)
    try:
        duration = _duration_ms(cap) if cap.isOpened() else 0
    finally:
        cap.release()
    if duration <= 0:
        logger.warning("Could not determine duration of %s", video_path)
    return VideoInfo(duration_ms=duration, file_size_bytes=size)
