import math

import pytest

from onemore.common.types import ExerciseType, Keypoint
from onemore.counter.pose_core import (
    angle_3pt,
    elbow_angle,
    frame_torso_angle,
    knee_angle,
    torso_angle,
    vertical_alignment,
)
from conftest import make_frame


def test_right_angle():
    assert angle_3pt((1, 0), (0, 0), (0, 1)) == pytest.approx(90.0)


def test_straight_and_folded():
    assert angle_3pt((-1, 0), (0, 0), (1, 0)) == pytest.approx(180.0)
    assert angle_3pt((2, 0), (0, 0), (1, 0)) == pytest.approx(0.0)


def test_accepts_keypoints():
    a, b, c = Keypoint(1, 0, 0.3), Keypoint(0, 0, 0.9), Keypoint(0, 2, 0.1)
    assert angle_3pt(a, b, c) == pytest.approx(90.0)


@pytest.mark.parametrize("a,b,c", [
    ((120, 150), (100, 200), (80, 250)),
    ((3.5, -2.0), (0.1, 0.2), (-7.0, 4.4)),
    ((0, 10), (0, 0), (10, 10)),
])
def test_symmetry(a, b, c):
    assert angle_3pt(a, b, c) == pytest.approx(angle_3pt(c, b, a))


def test_degenerate_arm_is_zero():
    assert angle_3pt((5, 5), (5, 5), (9, 1)) == 0.0
    assert angle_3pt((9, 1), (5, 5), (5, 5)) == 0.0


def test_collinear_rounding_never_nan():
    ang = angle_3pt((0.1, 0.2), (0.3, 0.6), (0.5, 1.0))
    assert not math.isnan(ang)
    assert ang == pytest.approx(0.0, abs=1e-5) or ang == pytest.approx(180.0, abs=1e-5)


def test_torso_angle_folds_image_coordinates():
    # shoulder straight above the hip (smaller y) reads as upright, not 180
    assert torso_angle((100, 50), (100, 200)) == pytest.approx(0.0)
    assert torso_angle((250, 200), (100, 200)) == pytest.approx(90.0)
    assert torso_angle((150, 150), (100, 200)) == pytest.approx(45.0)
    assert torso_angle((100, 200), (100, 200)) == 0.0


def test_frame_measures_match_built_pose():
    assert elbow_angle(make_frame(ExerciseType.PUSHUPS, 100)) == pytest.approx(100.0)
    assert knee_angle(make_frame(ExerciseType.SQUATS, 130)) == pytest.approx(130.0)
    assert frame_torso_angle(make_frame(ExerciseType.SITUPS, 40)) == pytest.approx(40.0)


def test_plank_alignment():
    assert vertical_alignment(make_frame(ExerciseType.PLANKS)) == pytest.approx(0.0)
    sag = make_frame(ExerciseType.PLANKS, left_hip=(160, 330), right_hip=(164, 330))
    assert vertical_alignment(sag) == pytest.approx(60.0)
