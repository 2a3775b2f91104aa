import copy
from datetime import date, timedelta

import pytest

from onemore.challenge import engine
from onemore.challenge.models import Baselines, ChallengeStatus
from onemore.common.types import ExerciseType


def finish_day(state, d, count=50):
    for ex in ExerciseType:
        state = engine.complete_exercise(state, d, ex, count)
    return state


def test_target_formula():
    b = Baselines(pushups=10, planks=30)
    assert engine.target_for("pushups", 1, b) == 10
    assert engine.target_for("pushups", 15, b) == 24
    assert engine.target_for("pushups", 75, b) == 84
    assert engine.target_for("planks", 75, b) == 400
    assert engine.target_for(ExerciseType.SQUATS, 3, b) == 17


def test_start_challenge(day1):
    st = engine.start_challenge(Baselines(pushups=12), day1)
    assert st.is_active
    assert st.start_date == "2024-03-01"
    assert st.current_day == 1
    assert engine.challenge_status(st) is ChallengeStatus.ACTIVE
    rec = st.daily_progress["2024-03-01"]
    assert rec.day == 1
    assert rec.exercises[ExerciseType.PUSHUPS].target == 12
    assert rec.exercises[ExerciseType.PLANKS].target == 30
    assert not rec.all_completed


def test_partial_day_does_not_count(day1):
    st = engine.start_challenge(Baselines(), day1)
    st = engine.complete_exercise(st, day1, "pushups", 11)
    rec = st.daily_progress[day1.isoformat()]
    assert rec.exercises[ExerciseType.PUSHUPS].completed
    assert rec.exercises[ExerciseType.PUSHUPS].actual_count == 11
    assert not rec.all_completed
    assert st.total_days_completed == 0
    assert st.current_streak == 0


def test_full_day_updates_counters(day1):
    st = finish_day(engine.start_challenge(Baselines(), day1), day1)
    assert st.daily_progress[day1.isoformat()].all_completed
    assert st.total_days_completed == 1
    assert st.current_streak == 1
    assert st.best_streak == 1
    assert st.last_completed_date == "2024-03-01"
    assert not st.challenge_completed


def test_operations_do_not_mutate_input(day1):
    st = engine.start_challenge(Baselines(), day1)
    snapshot = copy.deepcopy(st)
    finish_day(st, day1)
    engine.advance_day(st)
    engine.update_baselines(st, Baselines(pushups=99), day1)
    assert st == snapshot


def test_completion_is_idempotent(day1):
    st = finish_day(engine.start_challenge(Baselines(), day1), day1)
    again = engine.complete_exercise(st, day1, "squats", 80)
    again = finish_day(again, day1)
    assert again.total_days_completed == st.total_days_completed
    assert again.current_streak == st.current_streak
    assert again.best_streak == st.best_streak


def test_recompleting_an_older_day_keeps_counters(day1):
    day2 = day1 + timedelta(days=1)
    st = finish_day(engine.start_challenge(Baselines(), day1), day1)
    st = finish_day(engine.advance_day(st), day2)
    again = engine.complete_exercise(st, day1, "pushups", 60)
    assert again.total_days_completed == 2
    assert again.current_streak == 2
    assert again.best_streak == 2
    assert again.last_completed_date == day2.isoformat()
    assert again.daily_progress[day1.isoformat()].exercises[ExerciseType.PUSHUPS].actual_count == 60


def test_complete_ignored_when_inactive(day1):
    st = engine.initial_state()
    assert engine.complete_exercise(st, day1, "pushups", 10) is st
    with pytest.raises(ValueError):
        engine.complete_exercise(st, day1, "burpees", 3)


def test_streak_continues_on_consecutive_dates(day1):
    st = engine.start_challenge(Baselines(), day1)
    for i in range(3):
        st = finish_day(st, day1 + timedelta(days=i))
        assert st.current_streak == i + 1
        st = engine.advance_day(st)
    assert st.best_streak == 3


def test_gap_resets_streak(day1):
    st = engine.start_challenge(Baselines(), day1)
    st = finish_day(st, day1)
    st = finish_day(st, day1 + timedelta(days=1))
    assert st.current_streak == 2
    st = finish_day(st, day1 + timedelta(days=3))
    assert st.current_streak == 1
    assert st.best_streak == 2
    assert st.total_days_completed == 3
    assert st.current_streak <= st.best_streak


def test_streak_judged_against_completed_date_not_wall_clock(day1):
    # completing an old record right after its successor still breaks the run
    st = engine.start_challenge(Baselines(), day1)
    st = finish_day(st, day1 + timedelta(days=1))
    st = finish_day(st, day1)
    assert st.current_streak == 1


def test_missing_record_is_created_lazily(day1):
    st = engine.start_challenge(Baselines(pushups=10), day1)
    st = engine.advance_day(st)
    st = engine.advance_day(st)
    later = day1 + timedelta(days=10)
    st = engine.complete_exercise(st, later, "pushups", 5)
    rec = st.daily_progress[later.isoformat()]
    assert rec.day == 3
    assert rec.exercises[ExerciseType.PUSHUPS].target == 12


def test_advance_day_creates_next_record(day1):
    st = engine.advance_day(engine.start_challenge(Baselines(squats=15), day1))
    assert st.current_day == 2
    rec = st.daily_progress["2024-03-02"]
    assert rec.day == 2
    assert rec.exercises[ExerciseType.SQUATS].target == 16


def test_advance_day_caps_at_75(day1):
    st = engine.start_challenge(Baselines(), day1)
    for _ in range(100):
        st = engine.advance_day(st)
    assert st.current_day == 75
    assert len(st.daily_progress) == 75


def test_advance_day_needs_active_challenge():
    st = engine.initial_state()
    assert engine.advance_day(st) is st


def test_update_baselines_regenerates_today(day1):
    st = engine.start_challenge(Baselines(), day1)
    st = engine.complete_exercise(st, day1, "pushups", 10)
    st = engine.update_baselines(st, Baselines(pushups=20, planks=60), day1)
    rec = st.daily_progress[day1.isoformat()]
    assert st.baselines.pushups == 20
    assert rec.exercises[ExerciseType.PUSHUPS].target == 20
    assert rec.exercises[ExerciseType.PLANKS].target == 60
    assert not rec.exercises[ExerciseType.PUSHUPS].completed


def test_update_baselines_leaves_other_days(day1):
    st = engine.start_challenge(Baselines(), day1)
    st = engine.update_baselines(st, Baselines(pushups=20), day1 + timedelta(days=1))
    assert st.daily_progress[day1.isoformat()].exercises[ExerciseType.PUSHUPS].target == 10
    assert "2024-03-02" not in st.daily_progress


def test_sync_current_day(day1):
    st = engine.start_challenge(Baselines(), day1)
    st = engine.sync_current_day(st, day1 + timedelta(days=9))
    assert st.current_day == 10
    assert st.daily_progress["2024-03-10"].day == 10
    st = engine.sync_current_day(st, day1 + timedelta(days=200))
    assert st.current_day == 75
    st = engine.sync_current_day(st, day1 - timedelta(days=3))
    assert st.current_day == 1


def test_sync_keeps_existing_record(day1):
    st = engine.start_challenge(Baselines(), day1)
    st = engine.complete_exercise(st, day1, "situps", 10)
    st = engine.sync_current_day(st, day1)
    assert st.daily_progress[day1.isoformat()].exercises[ExerciseType.SITUPS].completed


def test_sync_ignored_when_inactive(day1):
    st = engine.initial_state()
    assert engine.sync_current_day(st, day1) is st


def test_challenge_completes_once_on_day_75(day1):
    st = engine.start_challenge(Baselines(), day1)
    day74 = day1 + timedelta(days=73)
    st = engine.sync_current_day(st, day74)
    st = finish_day(st, day74)
    assert not st.challenge_completed

    day75 = day74 + timedelta(days=1)
    st = engine.sync_current_day(st, day75)
    assert st.current_day == 75
    for ex in list(ExerciseType)[:-1]:
        st = engine.complete_exercise(st, day75, ex, 99)
        assert not st.challenge_completed
    st = engine.complete_exercise(st, day75, ExerciseType.PLANKS, 400)
    assert st.challenge_completed
    assert engine.challenge_status(st) is ChallengeStatus.COMPLETED

    st = finish_day(st, day75)
    st = engine.advance_day(st)
    assert st.challenge_completed
    assert st.current_day == 75


def test_reset_returns_to_inactive(day1):
    st = finish_day(engine.start_challenge(Baselines(), day1), day1)
    st = engine.reset_challenge()
    assert engine.challenge_status(st) is ChallengeStatus.INACTIVE
    assert st.daily_progress == {}
    assert st.current_streak == st.best_streak == st.total_days_completed == 0


def test_iso_day_accepts_strings_and_dates():
    assert engine.iso_day("2024-03-01") == "2024-03-01"
    assert engine.iso_day("2024-03-01T23:59:00") == "2024-03-01"
    assert engine.iso_day(date(2024, 3, 1)) == "2024-03-01"
    with pytest.raises(ValueError):
        engine.iso_day("yesterday")


def test_unknown_exercise(day1):
    st = engine.start_challenge(Baselines(), day1)
    with pytest.raises(ValueError):
        engine.complete_exercise(st, day1, "burpees", 3)
