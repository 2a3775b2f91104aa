from __future__ import annotations
from dataclasses import dataclass, fields
from enum import Enum
from typing import Dict, Mapping


class ExerciseType(str, Enum):
    PUSHUPS = "pushups"
    SQUATS = "squats"
    SITUPS = "situps"
    PLANKS = "planks"

    @property
    def unit(self) -> str:
        # planks are held, everything else is counted
        return "seconds" if self is ExerciseType.PLANKS else "reps"

    @classmethod
    def coerce(cls, value) -> "ExerciseType":
        """Accept an ExerciseType or its string name; raise ValueError otherwise."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"unknown exercise: {value!r}") from None


class ExercisePhase(str, Enum):
    NEUTRAL = "neutral"
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class Keypoint:
    x: float
    y: float
    confidence: float = 1.0

    @property
    def xy(self):
        return (self.x, self.y)


@dataclass(frozen=True)
class PoseFrame:
    """One detection tick: 13 named landmarks plus the detector's overall confidence."""
    nose: Keypoint
    left_shoulder: Keypoint
    right_shoulder: Keypoint
    left_elbow: Keypoint
    right_elbow: Keypoint
    left_wrist: Keypoint
    right_wrist: Keypoint
    left_hip: Keypoint
    right_hip: Keypoint
    left_knee: Keypoint
    right_knee: Keypoint
    left_ankle: Keypoint
    right_ankle: Keypoint
    confidence: float = 0.0

    @classmethod
    def from_dict(cls, data: Mapping) -> "PoseFrame":
        """
        Build a frame from a JSON-ish payload. Keypoints may sit at the top level
        or under "keypoints"; names may be snake_case or camelCase.
        """
        points = data.get("keypoints", data)
        kw: Dict[str, object] = {}
        for f in fields(cls):
            if f.name == "confidence":
                continue
            raw = points.get(f.name)
            if raw is None:
                raw = points.get(_camel(f.name))
            if raw is None:
                raise ValueError(f"missing keypoint: {f.name}")
            kw[f.name] = Keypoint(
                x=float(raw["x"]),
                y=float(raw["y"]),
                confidence=float(raw.get("confidence", 1.0)),
            )
        return cls(confidence=float(data.get("confidence", 0.0)), **kw)

    def to_dict(self) -> dict:
        out = {}
        for f in fields(self):
            if f.name == "confidence":
                continue
            kp: Keypoint = getattr(self, f.name)
            out[f.name] = {"x": kp.x, "y": kp.y, "confidence": kp.confidence}
        return {"keypoints": out, "confidence": self.confidence}


KEYPOINT_NAMES = tuple(f.name for f in fields(PoseFrame) if f.name != "confidence")


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p.title() for p in rest)
