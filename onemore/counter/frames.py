from __future__ import annotations
import math
import time
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Tuple

import numpy as np

from onemore.common.types import ExerciseType, Keypoint, PoseFrame, KEYPOINT_NAMES


class PoseFrameSource(Protocol):
    """Anything that can hand over one pose frame per detection tick."""

    def next_frame(self) -> PoseFrame:
        ...


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class ScriptedPoseSource:
    """
    Replays a fixed list of frames in order. Once the script runs out it keeps
    returning the last frame and flags `exhausted`.
    """
    def __init__(self, frames: Iterable[PoseFrame]):
        self._frames: List[PoseFrame] = list(frames)
        if not self._frames:
            raise ValueError("scripted source needs at least one frame")
        self._i = 0
        self.exhausted = False

    def next_frame(self) -> PoseFrame:
        if self._i >= len(self._frames):
            self.exhausted = True
            return self._frames[-1]
        f = self._frames[self._i]
        self._i += 1
        return f


# Standing/neutral skeleton in a 320x560 image (pixels)
BASE_POSE: Dict[str, Tuple[float, float]] = {
    "nose": (160.0, 100.0),
    "left_shoulder": (120.0, 150.0),
    "right_shoulder": (200.0, 150.0),
    "left_elbow": (100.0, 200.0),
    "right_elbow": (220.0, 200.0),
    "left_wrist": (80.0, 250.0),
    "right_wrist": (240.0, 250.0),
    "left_hip": (130.0, 300.0),
    "right_hip": (190.0, 300.0),
    "left_knee": (125.0, 400.0),
    "right_knee": (195.0, 400.0),
    "left_ankle": (120.0, 500.0),
    "right_ankle": (200.0, 500.0),
}

# cycle length (ms), joint measure at rest, joint measure at full depth
_CYCLES: Dict[ExerciseType, Tuple[int, float, float]] = {
    ExerciseType.PUSHUPS: (3000, 170.0, 90.0),
    ExerciseType.SQUATS: (4000, 172.0, 95.0),
    ExerciseType.SITUPS: (3500, 5.0, 60.0),
    ExerciseType.PLANKS: (3000, 0.0, 0.0),
}

_LIMB = 55.0


def _limb_end(joint, theta_deg: float, mirror: bool) -> Tuple[float, float]:
    """Endpoint of a limb making `theta_deg` with the segment pointing straight up from `joint`."""
    t = math.radians(theta_deg)
    sx = -1.0 if mirror else 1.0
    return (joint[0] + sx * _LIMB * math.sin(t), joint[1] - _LIMB * math.cos(t))


def build_pose(exercise: ExerciseType, measure: float) -> Dict[str, Tuple[float, float]]:
    """Noise-free skeleton whose driving joint reads exactly `measure`."""
    pts = dict(BASE_POSE)
    if exercise is ExerciseType.PUSHUPS:
        for side, mirror in (("left", True), ("right", False)):
            elbow = pts[f"{side}_elbow"]
            pts[f"{side}_shoulder"] = (elbow[0], elbow[1] - _LIMB)
            pts[f"{side}_wrist"] = _limb_end(elbow, measure, mirror)
    elif exercise is ExerciseType.SQUATS:
        for side, mirror in (("left", True), ("right", False)):
            knee = pts[f"{side}_knee"]
            pts[f"{side}_hip"] = (knee[0], knee[1] - _LIMB)
            pts[f"{side}_ankle"] = _limb_end(knee, measure, mirror)
    elif exercise is ExerciseType.SITUPS:
        hip_mid = (160.0, 300.0)
        t = math.radians(measure)
        mid = (hip_mid[0] + 150.0 * math.sin(t), hip_mid[1] - 150.0 * math.cos(t))
        pts["left_hip"], pts["right_hip"] = (hip_mid[0] - 30.0, hip_mid[1]), (hip_mid[0] + 30.0, hip_mid[1])
        pts["left_shoulder"], pts["right_shoulder"] = (mid[0] - 40.0, mid[1]), (mid[0] + 40.0, mid[1])
        pts["nose"] = (mid[0], mid[1] - 50.0)
    elif exercise is ExerciseType.PLANKS:
        # side view, body held flat at one height
        for i, name in enumerate(("shoulder", "hip", "ankle")):
            pts[f"left_{name}"] = (60.0 + 100.0 * i, 300.0)
            pts[f"right_{name}"] = (64.0 + 100.0 * i, 300.0)
    return pts


class SyntheticPoseSource:
    """
    Deterministic stand-in for a camera model. Drives the exercise's key joint
    through a smooth rest → depth → rest cycle tied to the injected clock and
    adds seeded gaussian jitter to positions and confidences.
    """
    def __init__(
        self,
        exercise,
        clock: Optional[Callable[[], float]] = None,
        seed: Optional[int] = None,
        noise_px: float = 2.0,
        base_confidence: float = 0.85,
    ):
        self.exercise = ExerciseType.coerce(exercise)
        self.clock = clock or monotonic_ms
        self.rng = np.random.default_rng(seed)
        self.noise_px = noise_px
        self.base_confidence = base_confidence
        self._t0 = self.clock()

    def measure_at(self, ts_ms: float) -> float:
        period, rest, depth = _CYCLES[self.exercise]
        phase = ((ts_ms - self._t0) % period) / period
        amount = 0.5 - 0.5 * math.cos(2.0 * math.pi * phase)
        return rest + (depth - rest) * amount

    def next_frame(self) -> PoseFrame:
        pts = build_pose(self.exercise, self.measure_at(self.clock()))
        jitter = self.rng.normal(0.0, self.noise_px, size=(len(KEYPOINT_NAMES), 2))
        conf = np.clip(
            self.base_confidence + self.rng.uniform(-0.05, 0.05, size=len(KEYPOINT_NAMES) + 1),
            0.0,
            1.0,
        )
        kps = {}
        for i, name in enumerate(KEYPOINT_NAMES):
            x, y = pts[name]
            kps[name] = Keypoint(float(x + jitter[i, 0]), float(y + jitter[i, 1]), float(conf[i]))
        return PoseFrame(confidence=float(conf[-1]), **kps)
