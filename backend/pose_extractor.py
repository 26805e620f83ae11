import logging
import os
from typing import Optional

import cv2
import mediapipe as mp
import numpy as np

from errors import DetectorUnavailableError
from models import Landmark, Skeleton

logger = logging.getLogger(__name__)

PoseLandmarker = mp.tasks.vision.PoseLandmarker
PoseLandmarkerOptions = mp.tasks.vision.PoseLandmarkerOptions
RunningMode = mp.tasks.vision.RunningMode
BaseOptions = mp.tasks.BaseOptions


class PoseLandmarkSource:
    """Single-person landmark detector over decoded BGR frames.

    Wraps a MediaPipe ``PoseLandmarker`` in IMAGE mode, so frames may be
    sampled at arbitrary timestamps from any number of videos. One instance
    must not be used from several threads at once.
    """

    def __init__(
        self,
        model_path: str,
        min_detection_confidence: float = 0.5,
        min_presence_confidence: float = 0.5,
    ):
        if not os.path.isfile(model_path):
            raise DetectorUnavailableError(f"Pose model not found: {model_path}")

        options = PoseLandmarkerOptions(
            base_options=BaseOptions(model_asset_path=model_path),
            running_mode=RunningMode.IMAGE,
            num_poses=1,
            min_pose_detection_confidence=min_detection_confidence,
            min_pose_presence_confidence=min_presence_confidence,
        )
        try:
            self._landmarker = PoseLandmarker.create_from_options(options)
        except (RuntimeError, ValueError) as e:
            raise DetectorUnavailableError(f"Failed to initialize PoseLandmarker: {e}") from e
        logger.info("PoseLandmarker initialized from %s", model_path)

    def detect(self, frame: np.ndarray) -> Optional[Skeleton]:
        if self._landmarker is None:
            raise RuntimeError("PoseLandmarkSource is closed")

        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb)
        result = self._landmarker.detect(mp_image)

        if not result.pose_landmarks:
            return None
        return _to_skeleton(result.pose_landmarks[0])  # first person

    def close(self):
        if self._landmarker is None:
            return
        try:
            self._landmarker.close()
        finally:
            self._landmarker = None
            logger.info("PoseLandmarker closed")


def _to_skeleton(raw_landmarks) -> Skeleton:
    # MediaPipe Tasks API: landmarks are NormalizedLandmark with x, y, z, visibility
    return [
        Landmark(
            x=lm.x,
            y=lm.y,
            z=lm.z,
            visibility=getattr(lm, "visibility", None),
        )
        for lm in raw_landmarks
    ]
