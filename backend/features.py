from typing import Optional

import numpy as np

from models import Skeleton

# MediaPipe Pose landmark indices
LANDMARK_NAMES = [
    "NOSE", "LEFT_EYE_INNER", "LEFT_EYE", "LEFT_EYE_OUTER",
    "RIGHT_EYE_INNER", "RIGHT_EYE", "RIGHT_EYE_OUTER",
    "LEFT_EAR", "RIGHT_EAR", "MOUTH_LEFT", "MOUTH_RIGHT",
    "LEFT_SHOULDER", "RIGHT_SHOULDER", "LEFT_ELBOW", "RIGHT_ELBOW",
    "LEFT_WRIST", "RIGHT_WRIST", "LEFT_PINKY", "RIGHT_PINKY",
    "LEFT_INDEX", "RIGHT_INDEX", "LEFT_THUMB", "RIGHT_THUMB",
    "LEFT_HIP", "RIGHT_HIP", "LEFT_KNEE", "RIGHT_KNEE",
    "LEFT_ANKLE", "RIGHT_ANKLE", "LEFT_HEEL", "RIGHT_HEEL",
    "LEFT_FOOT_INDEX", "RIGHT_FOOT_INDEX",
]

_NAME_TO_IDX = {name: i for i, name in enumerate(LANDMARK_NAMES)}

REQUIRED_LANDMARKS = [
    _NAME_TO_IDX[name]
    for name in (
        "LEFT_SHOULDER", "RIGHT_SHOULDER", "LEFT_ELBOW", "RIGHT_ELBOW",
        "LEFT_WRIST", "RIGHT_WRIST", "LEFT_HIP", "RIGHT_HIP",
        "LEFT_KNEE", "RIGHT_KNEE", "LEFT_ANKLE", "RIGHT_ANKLE",
    )
]

# Joint triplets for angle computation: (parent, joint, child)
ANGLE_JOINTS = [
    ("LEFT_SHOULDER", "LEFT_ELBOW", "LEFT_WRIST"),
    ("RIGHT_SHOULDER", "RIGHT_ELBOW", "RIGHT_WRIST"),
    ("LEFT_HIP", "LEFT_SHOULDER", "LEFT_ELBOW"),
    ("RIGHT_HIP", "RIGHT_SHOULDER", "RIGHT_ELBOW"),
    ("LEFT_HIP", "LEFT_KNEE", "LEFT_ANKLE"),
    ("RIGHT_HIP", "RIGHT_KNEE", "RIGHT_ANKLE"),
    ("LEFT_SHOULDER", "LEFT_HIP", "LEFT_KNEE"),
    ("RIGHT_SHOULDER", "RIGHT_HIP", "RIGHT_KNEE"),
]

# Per-landmark weights for the landmark-distance metric; unlisted indices weigh 1.0.
LANDMARK_WEIGHTS = {
    0: 0.5,
    1: 0.3, 2: 0.3, 3: 0.3, 4: 0.3,
    7: 0.3, 8: 0.3,
    9: 0.3, 10: 0.3,
    11: 1.5, 12: 1.5,
    13: 1.5, 14: 1.5,
    15: 1.3, 16: 1.3,
    17: 0.8, 18: 0.8, 19: 0.8, 20: 0.8, 21: 0.8, 22: 0.8,
    23: 1.5, 24: 1.5,
    25: 1.5, 26: 1.5,
    27: 1.3, 28: 1.3,
    29: 0.8, 30: 0.8, 31: 0.8, 32: 0.8,
}

_EPS = 1e-9
_MIN_TORSO_HEIGHT = 0.01


def joint_angle(a: np.ndarray, b: np.ndarray, c: np.ndarray) -> float:
    """Angle in radians at ``b`` between the segments ``b->a`` and ``b->c``.

    A zero-length segment has no direction, so the angle is reported as 0.
    """
    u = a - b
    v = c - b
    norm_u = np.linalg.norm(u)
    norm_v = np.linalg.norm(v)
    if norm_u < _EPS or norm_v < _EPS:
        return 0.0
    cos_angle = np.clip(np.dot(u, v) / (norm_u * norm_v), -1.0, 1.0)
    return float(np.arccos(cos_angle))


def landmark_weights(count: int) -> np.ndarray:
    return np.array([LANDMARK_WEIGHTS.get(i, 1.0) for i in range(count)])


def _skeleton_points(skeleton: Skeleton, min_visibility: float) -> Optional[np.ndarray]:
    """Validate a skeleton and return its coordinates as an (N, 3) array."""
    if skeleton is None or len(skeleton) <= max(REQUIRED_LANDMARKS):
        return None
    try:
        points = np.array([[lm.x, lm.y, lm.z] for lm in skeleton], dtype=np.float64)
    except (AttributeError, TypeError, ValueError):
        return None
    required = points[REQUIRED_LANDMARKS]
    if not np.all(np.isfinite(required)):
        return None
    if min_visibility > 0.0:
        for idx in REQUIRED_LANDMARKS:
            visibility = getattr(skeleton[idx], "visibility", None)
            if visibility is not None and visibility < min_visibility:
                return None
    return points


class FeatureExtractor:
    """Turns one skeleton into a fixed-length descriptor.

    ``mode="angles"`` yields the joint angles of ``ANGLE_JOINTS`` (radians),
    which ignore where the subject stands and how large it appears.
    ``mode="landmarks"`` yields every landmark re-centred on the torso and
    scaled by torso height, flattened to ``3 * N`` values.
    """

    def __init__(self, mode: str = "angles", min_visibility: float = 0.0):
        if mode not in ("angles", "landmarks"):
            raise ValueError(f"Unknown feature mode: {mode}")
        self.mode = mode
        self.min_visibility = min_visibility

    def extract(self, skeleton: Skeleton) -> Optional[np.ndarray]:
        points = _skeleton_points(skeleton, self.min_visibility)
        if points is None:
            return None
        if self.mode == "angles":
            return angle_descriptor(points)
        return landmark_descriptor(points)


def angle_descriptor(points: np.ndarray) -> np.ndarray:
    angles = []
    for parent, joint, child in ANGLE_JOINTS:
        angles.append(joint_angle(
            points[_NAME_TO_IDX[parent]],
            points[_NAME_TO_IDX[joint]],
            points[_NAME_TO_IDX[child]],
        ))
    return np.array(angles, dtype=np.float64)


def landmark_descriptor(points: np.ndarray) -> Optional[np.ndarray]:
    """Normalize all landmarks relative to the torso centre and height."""
    if not np.all(np.isfinite(points)):
        return None
    torso = points[[
        _NAME_TO_IDX["LEFT_SHOULDER"], _NAME_TO_IDX["RIGHT_SHOULDER"],
        _NAME_TO_IDX["LEFT_HIP"], _NAME_TO_IDX["RIGHT_HIP"],
    ]]
    center_x, center_y = torso[:, 0].mean(), torso[:, 1].mean()

    shoulder_mid_y = torso[:2, 1].mean()
    hip_mid_y = torso[2:, 1].mean()
    torso_height = abs(shoulder_mid_y - hip_mid_y)
    scale = torso_height if torso_height > _MIN_TORSO_HEIGHT else 1.0

    normalized = np.empty_like(points)
    normalized[:, 0] = (points[:, 0] - center_x) / scale
    normalized[:, 1] = (points[:, 1] - center_y) / scale
    normalized[:, 2] = points[:, 2] / scale
    return normalized.reshape(-1)

