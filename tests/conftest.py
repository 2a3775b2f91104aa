from datetime import date

import pytest

from onemore.common.types import ExerciseType, Keypoint, PoseFrame, KEYPOINT_NAMES
from onemore.counter.frames import build_pose
from onemore.data.db import ChallengeDB


def make_frame(exercise, measure: float = 0.0, confidence: float = 0.9, **overrides) -> PoseFrame:
    """Noise-free frame whose driving joint reads `measure`; overrides replace single points."""
    pts = build_pose(ExerciseType.coerce(exercise), measure)
    pts.update(overrides)
    kps = {name: Keypoint(pts[name][0], pts[name][1], 0.9) for name in KEYPOINT_NAMES}
    return PoseFrame(confidence=confidence, **kps)


def flat_frame(confidence: float = 0.9) -> PoseFrame:
    """Every landmark on the same pixel: no usable geometry at all."""
    kp = Keypoint(50.0, 50.0, 0.9)
    return PoseFrame(confidence=confidence, **{name: kp for name in KEYPOINT_NAMES})


class FakeClock:
    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def db():
    d = ChallengeDB(":memory:")
    yield d
    d.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def day1():
    return date(2024, 3, 1)
