"""
Long-running statistics derived from challenge activity: per-exercise totals,
weekly roll-ups, personal records, milestones and a few insights.
"""
from __future__ import annotations
import copy
import math
from collections import Counter
from dataclasses import dataclass, field, asdict
from datetime import date, timedelta
from typing import Dict, List, Literal, Optional

from onemore.challenge.engine import DateLike, iso_day, target_for
from onemore.challenge.models import CHALLENGE_DAYS, Baselines, ChallengeState
from onemore.common.types import ExerciseType

MilestoneType = Literal["streak", "completion", "exercise", "special"]
WEEKS = math.ceil(CHALLENGE_DAYS / 7)


@dataclass
class ExerciseStats:
    total_reps: int = 0
    average_reps: float = 0.0
    best_day: int = 0
    improvement_rate: float = 0.0  # percent, first logged day vs latest
    days_logged: int = 0
    first_count: int = 0
    last_count: int = 0


@dataclass
class WeeklyStats:
    week: int
    start_date: str
    end_date: str
    completed_days: int
    total_exercises: int
    average_completion: float  # percent


@dataclass
class Milestone:
    id: str
    type: MilestoneType
    title: str
    description: str
    unlocked_date: str


@dataclass
class PersonalRecords:
    longest_streak: int = 0
    most_reps_in_day: Dict[ExerciseType, int] = field(
        default_factory=lambda: {ex: 0 for ex in ExerciseType}
    )
    fastest_completion: float = 0.0  # minutes, 0 = none yet


@dataclass
class Insights:
    strongest_exercise: Optional[ExerciseType] = None
    most_consistent_day: Optional[str] = None  # weekday name
    average_completion_time: float = 0.0


@dataclass
class ProgressState:
    exercise_stats: Dict[ExerciseType, ExerciseStats] = field(
        default_factory=lambda: {ex: ExerciseStats() for ex in ExerciseType}
    )
    weekly_stats: List[WeeklyStats] = field(default_factory=list)
    milestones: List[Milestone] = field(default_factory=list)
    personal_records: PersonalRecords = field(default_factory=PersonalRecords)
    insights: Insights = field(default_factory=Insights)

    def to_dict(self) -> dict:
        return {
            "exercise_stats": {ex.value: asdict(s) for ex, s in self.exercise_stats.items()},
            "weekly_stats": [asdict(w) for w in self.weekly_stats],
            "milestones": [asdict(m) for m in self.milestones],
            "personal_records": {
                "longest_streak": self.personal_records.longest_streak,
                "most_reps_in_day": {
                    ex.value: n for ex, n in self.personal_records.most_reps_in_day.items()
                },
                "fastest_completion": self.personal_records.fastest_completion,
            },
            "insights": {
                "strongest_exercise": (
                    self.insights.strongest_exercise.value if self.insights.strongest_exercise else None
                ),
                "most_consistent_day": self.insights.most_consistent_day,
                "average_completion_time": self.insights.average_completion_time,
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProgressState":
        out = cls()
        for k, v in data.get("exercise_stats", {}).items():
            out.exercise_stats[ExerciseType.coerce(k)] = ExerciseStats(**v)
        out.weekly_stats = [WeeklyStats(**w) for w in data.get("weekly_stats", [])]
        out.milestones = [Milestone(**m) for m in data.get("milestones", [])]
        pr = data.get("personal_records", {})
        out.personal_records.longest_streak = int(pr.get("longest_streak", 0))
        for k, n in pr.get("most_reps_in_day", {}).items():
            out.personal_records.most_reps_in_day[ExerciseType.coerce(k)] = int(n)
        out.personal_records.fastest_completion = float(pr.get("fastest_completion", 0.0))
        ins = data.get("insights", {})
        strongest = ins.get("strongest_exercise")
        out.insights = Insights(
            strongest_exercise=ExerciseType.coerce(strongest) if strongest else None,
            most_consistent_day=ins.get("most_consistent_day"),
            average_completion_time=float(ins.get("average_completion_time", 0.0)),
        )
        return out


def reset_progress() -> ProgressState:
    return ProgressState()


def update_exercise_stats(progress: ProgressState, exercise, count: int, day: int) -> ProgressState:
    ex = ExerciseType.coerce(exercise)
    new = copy.deepcopy(progress)
    stats = new.exercise_stats[ex]
    stats.total_reps += count
    stats.best_day = max(stats.best_day, count)
    stats.days_logged += 1
    if stats.days_logged == 1:
        stats.first_count = count
    stats.last_count = count
    stats.average_reps = stats.total_reps / stats.days_logged
    if stats.first_count > 0:
        stats.improvement_rate = (stats.last_count - stats.first_count) / stats.first_count * 100.0
    records = new.personal_records.most_reps_in_day
    records[ex] = max(records[ex], count)
    return new


def add_milestone(progress: ProgressState, milestone: Milestone) -> ProgressState:
    if any(m.id == milestone.id for m in progress.milestones):
        return progress
    new = copy.deepcopy(progress)
    new.milestones.append(milestone)
    return new


def update_weekly_stats(progress: ProgressState, week: WeeklyStats) -> ProgressState:
    new = copy.deepcopy(progress)
    for i, w in enumerate(new.weekly_stats):
        if w.week == week.week:
            new.weekly_stats[i] = week
            break
    else:
        new.weekly_stats.append(week)
    return new


def update_personal_record(progress: ProgressState, kind: Literal["streak", "completion"], value: float) -> ProgressState:
    new = copy.deepcopy(progress)
    pr = new.personal_records
    if kind == "streak":
        pr.longest_streak = max(pr.longest_streak, int(value))
    elif kind == "completion":
        pr.fastest_completion = value if pr.fastest_completion == 0 else min(pr.fastest_completion, value)
    else:
        raise ValueError(f"unknown record kind: {kind!r}")
    return new


def calculate_insights(progress: ProgressState, state: Optional[ChallengeState] = None) -> ProgressState:
    new = copy.deepcopy(progress)
    strongest, best_avg = None, 0.0
    for ex, stats in new.exercise_stats.items():
        if stats.average_reps > best_avg:
            strongest, best_avg = ex, stats.average_reps
    new.insights.strongest_exercise = strongest

    if new.weekly_stats:
        # completion percentage scaled to a 30 minute session
        total = sum(w.average_completion * 30 for w in new.weekly_stats)
        new.insights.average_completion_time = total / len(new.weekly_stats)

    if state is not None:
        weekdays = Counter(
            date.fromisoformat(d).strftime("%A")
            for d, p in state.daily_progress.items()
            if p.all_completed
        )
        if weekdays:
            new.insights.most_consistent_day = weekdays.most_common(1)[0][0]
    return new


# Derived views over the challenge itself

def progress_percentage(state: ChallengeState) -> float:
    return state.current_day / CHALLENGE_DAYS * 100.0


def completion_rate(state: ChallengeState) -> float:
    if state.total_days_completed <= 0:
        return 0.0
    return state.total_days_completed / state.current_day * 100.0


def target_curve(baselines: Baselines, days: int) -> Dict[ExerciseType, List[int]]:
    days = max(0, min(days, CHALLENGE_DAYS))
    return {ex: [target_for(ex, d, baselines) for d in range(1, days + 1)] for ex in ExerciseType}


def weekly_stats(state: ChallengeState) -> List[WeeklyStats]:
    """Roll daily records up into 7-day challenge weeks (the last week is short)."""
    if not state.start_date:
        return []
    start = date.fromisoformat(state.start_date)
    out: List[WeeklyStats] = []
    for week in range(1, WEEKS + 1):
        first_day = (week - 1) * 7 + 1
        if first_day > state.current_day:
            break
        last_day = min(first_day + 6, CHALLENGE_DAYS)
        w_start = start + timedelta(days=first_day - 1)
        w_end = start + timedelta(days=last_day - 1)
        records = [
            p for d, p in state.daily_progress.items()
            if w_start <= date.fromisoformat(d) <= w_end
        ]
        done = sum(1 for p in records if p.all_completed)
        exercises = sum(1 for p in records for e in p.exercises.values() if e.completed)
        elapsed = min(last_day, state.current_day) - first_day + 1
        out.append(WeeklyStats(
            week=week,
            start_date=w_start.isoformat(),
            end_date=w_end.isoformat(),
            completed_days=done,
            total_exercises=exercises,
            average_completion=exercises / (elapsed * len(ExerciseType)) * 100.0,
        ))
    return out


MILESTONE_CATALOG = (
    ("first-day", "completion", "Day One", "Finished every exercise on your first day", lambda s: s.total_days_completed >= 1),
    ("streak-7", "streak", "One Week Strong", "Seven days in a row", lambda s: s.best_streak >= 7),
    ("streak-30", "streak", "Unstoppable", "Thirty days in a row", lambda s: s.best_streak >= 30),
    ("halfway", "special", "Halfway There", "Reached day 38 of 75", lambda s: s.current_day >= 38),
    ("challenge-complete", "completion", "75 Days Done", "Completed the full challenge", lambda s: s.challenge_completed),
)


def check_milestones(progress: ProgressState, state: ChallengeState, today: DateLike) -> ProgressState:
    """Unlock every catalog milestone the challenge state now satisfies."""
    key = iso_day(today)
    for mid, kind, title, desc, reached in MILESTONE_CATALOG:
        if reached(state):
            progress = add_milestone(progress, Milestone(mid, kind, title, desc, key))
    return progress
