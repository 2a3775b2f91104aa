"""
Daily challenge progression.

Every operation takes the current ChallengeState plus whatever "now" it needs
and returns a new state; the input is never mutated. Callers own loading and
persisting the state (see onemore.challenge.service).
"""
from __future__ import annotations
import copy
import logging
from datetime import date, datetime, timedelta
from typing import Optional, Union

from onemore.challenge.models import (
    CHALLENGE_DAYS,
    PLANK_SECONDS_PER_DAY,
    Baselines,
    ChallengeState,
    ChallengeStatus,
    DailyProgress,
    ExerciseProgress,
)
from onemore.common.types import ExerciseType

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime, str]


def iso_day(d: DateLike) -> str:
    """Normalize a date, datetime or ISO string to YYYY-MM-DD."""
    if isinstance(d, datetime):
        return d.date().isoformat()
    if isinstance(d, date):
        return d.isoformat()
    return date.fromisoformat(str(d)[:10]).isoformat()


def _clamp_day(day: int) -> int:
    return max(1, min(CHALLENGE_DAYS, day))


def target_for(exercise, day: int, baselines: Baselines) -> int:
    ex = ExerciseType.coerce(exercise)
    step = PLANK_SECONDS_PER_DAY if ex is ExerciseType.PLANKS else 1
    return baselines.of(ex) + (day - 1) * step


def create_daily_progress(d: DateLike, day: int, baselines: Baselines) -> DailyProgress:
    return DailyProgress(
        date=iso_day(d),
        day=day,
        exercises={ex: ExerciseProgress(target=target_for(ex, day, baselines)) for ex in ExerciseType},
    )


def initial_state() -> ChallengeState:
    return ChallengeState()


def reset_challenge() -> ChallengeState:
    logger.info("challenge reset")
    return initial_state()


def challenge_status(state: ChallengeState) -> ChallengeStatus:
    if state.challenge_completed:
        return ChallengeStatus.COMPLETED
    if state.is_active:
        return ChallengeStatus.ACTIVE
    return ChallengeStatus.INACTIVE


def start_challenge(baselines: Baselines, today: DateLike) -> ChallengeState:
    day0 = iso_day(today)
    state = ChallengeState(
        is_active=True,
        start_date=day0,
        current_day=1,
        baselines=copy.deepcopy(baselines),
    )
    state.daily_progress[day0] = create_daily_progress(day0, 1, state.baselines)
    logger.info("challenge started on %s with baselines %s", day0, baselines)
    return state


def today_progress(state: ChallengeState, today: DateLike) -> Optional[DailyProgress]:
    return state.daily_progress.get(iso_day(today))


def complete_exercise(state: ChallengeState, d: DateLike, exercise, actual_count: int) -> ChallengeState:
    """
    Mark one exercise done for date `d`. Day-level bookkeeping (totals, streak,
    terminal completion) runs only when the day goes from incomplete to
    complete. Ignored while no challenge is running.
    """
    ex = ExerciseType.coerce(exercise)
    key = iso_day(d)
    if not state.is_active:
        return state
    new = copy.deepcopy(state)

    progress = new.daily_progress.get(key)
    if progress is None:
        progress = create_daily_progress(key, new.current_day, new.baselines)
        new.daily_progress[key] = progress
    was_complete = progress.all_completed

    entry = progress.exercises[ex]
    entry.completed = True
    entry.actual_count = int(actual_count)
    progress.all_completed = all(p.completed for p in progress.exercises.values())

    if was_complete or not progress.all_completed or new.last_completed_date == key:
        return new

    previous = new.last_completed_date
    new.total_days_completed += 1
    day_before = (date.fromisoformat(key) - timedelta(days=1)).isoformat()
    if previous == day_before or new.current_streak == 0:
        new.current_streak += 1
    else:
        new.current_streak = 1
    new.best_streak = max(new.best_streak, new.current_streak)
    new.last_completed_date = key

    if new.current_day >= CHALLENGE_DAYS and not new.challenge_completed:
        new.challenge_completed = True
        logger.info("challenge completed on %s", key)

    logger.info(
        "day %d (%s) complete: streak=%d best=%d total=%d",
        progress.day, key, new.current_streak, new.best_streak, new.total_days_completed,
    )
    return new


def advance_day(state: ChallengeState) -> ChallengeState:
    """Move to the next challenge day. No-op once day 75 is reached or the challenge is not running."""
    if challenge_status(state) is not ChallengeStatus.ACTIVE or not state.start_date:
        return state
    if state.current_day >= CHALLENGE_DAYS:
        return state
    new = copy.deepcopy(state)
    new.current_day += 1
    start = date.fromisoformat(new.start_date)
    key = (start + timedelta(days=new.current_day - 1)).isoformat()
    if key not in new.daily_progress:
        new.daily_progress[key] = create_daily_progress(key, new.current_day, new.baselines)
    return new


def update_baselines(state: ChallengeState, baselines: Baselines, today: DateLike) -> ChallengeState:
    """Swap baselines; today's record (if any) is rebuilt and loses partial completion."""
    new = copy.deepcopy(state)
    new.baselines = copy.deepcopy(baselines)
    key = iso_day(today)
    if new.is_active and key in new.daily_progress:
        new.daily_progress[key] = create_daily_progress(key, new.current_day, new.baselines)
    return new


def sync_current_day(state: ChallengeState, today: DateLike) -> ChallengeState:
    """Catch current_day up with the calendar after time spent away."""
    if not state.start_date or not state.is_active:
        return state
    key = iso_day(today)
    new = copy.deepcopy(state)
    elapsed = (date.fromisoformat(key) - date.fromisoformat(new.start_date)).days
    new.current_day = _clamp_day(elapsed + 1)
    if key not in new.daily_progress:
        new.daily_progress[key] = create_daily_progress(key, new.current_day, new.baselines)
    return new
