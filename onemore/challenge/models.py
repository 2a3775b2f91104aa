from __future__ import annotations
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, Optional

from onemore.common.types import ExerciseType

CHALLENGE_DAYS = 75
PLANK_SECONDS_PER_DAY = 5


class ChallengeStatus(str, Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass
class Baselines:
    """Day-1 targets. Planks are in seconds."""
    pushups: int = 10
    squats: int = 15
    situps: int = 10
    planks: int = 30

    def of(self, exercise: ExerciseType) -> int:
        return getattr(self, ExerciseType.coerce(exercise).value)

    @classmethod
    def from_dict(cls, data: dict) -> "Baselines":
        return cls(**{ex.value: int(data[ex.value]) for ex in ExerciseType if ex.value in data})


@dataclass
class ExerciseProgress:
    target: int
    completed: bool = False
    actual_count: Optional[int] = None  # reps, or seconds for planks


@dataclass
class DailyProgress:
    date: str  # YYYY-MM-DD
    day: int
    exercises: Dict[ExerciseType, ExerciseProgress]
    all_completed: bool = False

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "day": self.day,
            "exercises": {ex.value: asdict(p) for ex, p in self.exercises.items()},
            "all_completed": self.all_completed,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DailyProgress":
        return cls(
            date=data["date"],
            day=int(data["day"]),
            exercises={
                ExerciseType.coerce(k): ExerciseProgress(**v)
                for k, v in data["exercises"].items()
            },
            all_completed=bool(data.get("all_completed", False)),
        )


@dataclass
class ChallengeState:
    is_active: bool = False
    start_date: Optional[str] = None
    current_day: int = 1
    baselines: Baselines = field(default_factory=Baselines)
    current_streak: int = 0
    best_streak: int = 0
    total_days_completed: int = 0
    daily_progress: Dict[str, DailyProgress] = field(default_factory=dict)
    last_completed_date: Optional[str] = None
    challenge_completed: bool = False

    def to_dict(self) -> dict:
        return {
            "is_active": self.is_active,
            "start_date": self.start_date,
            "current_day": self.current_day,
            "baselines": asdict(self.baselines),
            "current_streak": self.current_streak,
            "best_streak": self.best_streak,
            "total_days_completed": self.total_days_completed,
            "daily_progress": {d: p.to_dict() for d, p in sorted(self.daily_progress.items())},
            "last_completed_date": self.last_completed_date,
            "challenge_completed": self.challenge_completed,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChallengeState":
        return cls(
            is_active=bool(data.get("is_active", False)),
            start_date=data.get("start_date"),
            current_day=int(data.get("current_day", 1)),
            baselines=Baselines.from_dict(data.get("baselines", {})),
            current_streak=int(data.get("current_streak", 0)),
            best_streak=int(data.get("best_streak", 0)),
            total_days_completed=int(data.get("total_days_completed", 0)),
            daily_progress={
                d: DailyProgress.from_dict(p) for d, p in data.get("daily_progress", {}).items()
            },
            last_completed_date=data.get("last_completed_date"),
            challenge_completed=bool(data.get("challenge_completed", False)),
        )
