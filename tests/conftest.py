"""Shared fixtures: synthetic skeletons, fake video readers and detectors."""
from contextlib import contextmanager

import pytest

from errors import VideoReadError
from models import Landmark, VideoInfo

NUM_LANDMARKS = 33

# Upright pose, arms hanging straight, legs straight (normalized image coords).
STANDING = {
    11: (0.40, 0.30, 0.0), 12: (0.60, 0.30, 0.0),
    13: (0.40, 0.45, 0.0), 14: (0.60, 0.45, 0.0),
    15: (0.40, 0.60, 0.0), 16: (0.60, 0.60, 0.0),
    23: (0.45, 0.60, 0.0), 24: (0.55, 0.60, 0.0),
    25: (0.45, 0.75, 0.0), 26: (0.55, 0.75, 0.0),
    27: (0.45, 0.90, 0.0), 28: (0.55, 0.90, 0.0),
}

# Both elbows bent to 90 degrees, forearms pointing inwards.
ELBOWS_BENT = {
    15: (0.55, 0.45, 0.0),
    16: (0.45, 0.45, 0.0),
}


def make_skeleton(overrides=None, scale=1.0, offset=(0.0, 0.0, 0.0), visibility=0.9):
    points = dict(STANDING)
    points.update(overrides or {})
    skeleton = []
    for i in range(NUM_LANDMARKS):
        x, y, z = points.get(i, (0.5, 0.5, 0.0))
        skeleton.append(Landmark(
            x=x * scale + offset[0],
            y=y * scale + offset[1],
            z=z * scale + offset[2],
            visibility=visibility,
        ))
    return skeleton


class FakeReader:
    """Serves pre-built 'frames' (skeletons or None) by timestamp."""

    def __init__(self, frames, duration_ms=6300):
        self.frames = frames
        self.duration_ms = duration_ms
        self.requested = []

    def frame_at(self, timestamp_ms):
        self.requested.append(timestamp_ms)
        if not self.frames:
            return None
        span = max(self.duration_ms, 1)
        idx = round(min(timestamp_ms, span) / span * (len(self.frames) - 1))
        return self.frames[idx]


class FakeSource:
    """Detector whose 'frames' already are skeletons."""

    def __init__(self, fail_on=()):
        self.fail_on = fail_on
        self.calls = 0
        self.closed = 0

    def detect(self, frame):
        self.calls += 1
        if any(frame is f for f in self.fail_on):
            raise RuntimeError("inference failed")
        return frame

    def close(self):
        self.closed += 1


def fake_opener(videos, duration_ms=6300):
    """Build an ``open_video`` replacement over {path: [frame, ...]}."""
    opened = []

    @contextmanager
    def _open(path):
        if path not in videos:
            raise VideoReadError(f"Cannot open video: {path}")
        reader = FakeReader(videos[path], duration_ms)
        opened.append(path)
        yield reader

    _open.opened = opened
    return _open


def fake_probe(infos):
    def _probe(path):
        return infos.get(path, VideoInfo())
    return _probe


@pytest.fixture
def standing():
    return make_skeleton()


@pytest.fixture
def elbows_bent():
    return make_skeleton(ELBOWS_BENT)
