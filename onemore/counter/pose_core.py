from __future__ import annotations
import math
from typing import Tuple

from onemore.common.types import Keypoint, PoseFrame

Point = Tuple[float, float]

# Utility math

def _xy(p) -> Point:
    if isinstance(p, Keypoint):
        return p.xy
    return (float(p[0]), float(p[1]))


def angle_3pt(a, b, c) -> float:
    """Return angle ABC in degrees with B as vertex, in [0, 180].

    A zero-length arm (a == b or c == b) has no direction, so the angle is 0.
    """
    ax, ay = _xy(a)
    bx, by = _xy(b)
    cx, cy = _xy(c)
    v1 = (ax - bx, ay - by)
    v2 = (cx - bx, cy - by)
    mag1 = math.hypot(*v1)
    mag2 = math.hypot(*v2)
    if mag1 == 0.0 or mag2 == 0.0:
        return 0.0
    cos_val = (v1[0] * v2[0] + v1[1] * v2[1]) / (mag1 * mag2)
    cos_val = max(-1.0, min(1.0, cos_val))
    return math.degrees(math.acos(cos_val))


def midpoint(a, b) -> Point:
    ax, ay = _xy(a)
    bx, by = _xy(b)
    return ((ax + bx) / 2.0, (ay + by) / 2.0)


def torso_angle(shoulder_mid, hip_mid) -> float:
    """Angle of the hip→shoulder line against the image vertical, folded into [0, 90]."""
    sx, sy = _xy(shoulder_mid)
    hx, hy = _xy(hip_mid)
    return math.degrees(math.atan2(abs(sx - hx), abs(sy - hy)))


# Per-frame measurements

def elbow_angle(frame: PoseFrame) -> float:
    left = angle_3pt(frame.left_shoulder, frame.left_elbow, frame.left_wrist)
    right = angle_3pt(frame.right_shoulder, frame.right_elbow, frame.right_wrist)
    return (left + right) / 2.0


def knee_angle(frame: PoseFrame) -> float:
    left = angle_3pt(frame.left_hip, frame.left_knee, frame.left_ankle)
    right = angle_3pt(frame.right_hip, frame.right_knee, frame.right_ankle)
    return (left + right) / 2.0


def frame_torso_angle(frame: PoseFrame) -> float:
    return torso_angle(
        midpoint(frame.left_shoulder, frame.right_shoulder),
        midpoint(frame.left_hip, frame.right_hip),
    )


def vertical_alignment(frame: PoseFrame) -> float:
    """Plank straightness error in pixels: |shoulderY - hipY| + |hipY - ankleY|."""
    shoulder_y = (frame.left_shoulder.y + frame.right_shoulder.y) / 2.0
    hip_y = (frame.left_hip.y + frame.right_hip.y) / 2.0
    ankle_y = (frame.left_ankle.y + frame.right_ankle.y) / 2.0
    return abs(shoulder_y - hip_y) + abs(hip_y - ankle_y)
