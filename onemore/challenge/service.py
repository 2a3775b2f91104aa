from __future__ import annotations
import logging
from datetime import date
from typing import Callable, Dict, Optional

from onemore.challenge import engine
from onemore.challenge import progress as stats
from onemore.challenge.models import Baselines, ChallengeState, ChallengeStatus, DailyProgress
from onemore.challenge.progress import ProgressState
from onemore.common.types import ExerciseType
from onemore.data.db import ChallengeDB

logger = logging.getLogger(__name__)


class ChallengeService:
    """
    Single writer around the pure engine: holds the current ChallengeState and
    ProgressState, applies one operation at a time with the injected date and
    persists the result. One instance per user.
    """
    def __init__(self, db: ChallengeDB, today: Optional[Callable[[], date]] = None):
        self.db = db
        self.today = today or date.today
        self.state: ChallengeState = db.load_challenge() or engine.initial_state()
        self.progress: ProgressState = db.load_progress() or stats.reset_progress()
        self._minutes: Dict[str, Dict[ExerciseType, float]] = {}  # timed exercises per date, in memory only

    def _commit(self, state: ChallengeState) -> ChallengeState:
        self.state = state
        self.db.save_challenge(state)
        return state

    @property
    def status(self) -> ChallengeStatus:
        return engine.challenge_status(self.state)

    def start(self, baselines: Baselines) -> ChallengeState:
        self.progress = stats.reset_progress()
        self._minutes.clear()
        self.db.save_progress(self.progress)
        return self._commit(engine.start_challenge(baselines, self.today()))

    def complete_exercise(
        self,
        exercise,
        actual_count: int,
        on: Optional[date] = None,
        minutes: Optional[float] = None,
    ) -> ChallengeState:
        """
        Record one exercise. `minutes` is the time spent counting it; when every
        exercise of a day was timed, the day's total feeds the fastest-completion record.
        """
        day = on or self.today()
        before = self.state
        after = engine.complete_exercise(before, day, exercise, actual_count)
        if after is before:
            logger.warning("no active challenge, %s not recorded", exercise)
            return before

        ex = ExerciseType.coerce(exercise)
        key = engine.iso_day(day)
        prior = before.daily_progress.get(key)
        p = self.progress
        # stats count each exercise once per date
        if prior is None or not prior.exercises[ex].completed:
            p = stats.update_exercise_stats(p, ex, int(actual_count), after.daily_progress[key].day)
            if minutes is not None:
                self._minutes.setdefault(key, {})[ex] = float(minutes)
        if after.total_days_completed > before.total_days_completed:
            p = stats.update_personal_record(p, "streak", after.current_streak)
            timed = self._minutes.pop(key, {})
            if len(timed) == len(ExerciseType):
                p = stats.update_personal_record(p, "completion", sum(timed.values()))
            for week in stats.weekly_stats(after):
                p = stats.update_weekly_stats(p, week)
        p = stats.check_milestones(p, after, day)
        p = stats.calculate_insights(p, after)
        self.progress = p
        self.db.save_progress(p)

        if after.challenge_completed and not before.challenge_completed:
            logger.info("75-day challenge finished on %s", engine.iso_day(day))
        return self._commit(after)

    def advance_day(self) -> ChallengeState:
        return self._commit(engine.advance_day(self.state))

    def update_baselines(self, baselines: Baselines) -> ChallengeState:
        return self._commit(engine.update_baselines(self.state, baselines, self.today()))

    def sync(self) -> ChallengeState:
        return self._commit(engine.sync_current_day(self.state, self.today()))

    def reset(self) -> ChallengeState:
        self.progress = stats.reset_progress()
        self._minutes.clear()
        self.db.save_progress(self.progress)
        return self._commit(engine.reset_challenge())

    def today_progress(self) -> Optional[DailyProgress]:
        return engine.today_progress(self.state, self.today())

    def target(self, exercise) -> int:
        """Today's target, falling back to the formula when no record exists yet."""
        rec = self.today_progress()
        if rec is not None:
            return rec.exercises[ExerciseType.coerce(exercise)].target
        return engine.target_for(exercise, self.state.current_day, self.state.baselines)
