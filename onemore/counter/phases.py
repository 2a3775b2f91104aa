from __future__ import annotations
import logging
from dataclasses import dataclass, replace
from typing import Callable, Dict, Optional, Tuple

from onemore.common.types import ExercisePhase, ExerciseType, PoseFrame
from onemore.counter.pose_core import (
    elbow_angle,
    frame_torso_angle,
    knee_angle,
    vertical_alignment,
)

logger = logging.getLogger(__name__)

START_FEEDBACK = "Position yourself and start exercising!"


@dataclass(frozen=True)
class ExerciseSessionState:
    rep_count: int = 0
    current_phase: ExercisePhase = ExercisePhase.NEUTRAL
    last_phase_change_at: float = 0.0  # ms
    is_valid: bool = False
    feedback: str = START_FEEDBACK


@dataclass(frozen=True)
class PhaseConfig:
    exercise: ExerciseType
    measure: Callable[[PoseFrame], float]
    counts_reps: bool = True
    # Rep cycle: enter `enter_phase` when the measure crosses `enter_at`,
    # credit a rep when it crosses back over `complete_at`.
    enter_phase: ExercisePhase = ExercisePhase.DOWN
    complete_phase: ExercisePhase = ExercisePhase.UP
    enter_below: bool = True   # True: enter when value < enter_at; False: value > enter_at
    enter_at: float = 0.0
    complete_at: float = 0.0
    debounce_ms: int = 0
    # Form validity
    min_confidence: float = 0.7
    valid_range: Tuple[float, float] = (0.0, 180.0)
    inclusive: bool = False
    max_alignment: float = 0.0  # planks only (px)
    enter_feedback: str = ""
    rep_feedback: str = "Rep #{count}!"
    hold_feedback: str = ""
    fix_feedback: str = ""

    def entered(self, value: float) -> bool:
        return value < self.enter_at if self.enter_below else value > self.enter_at

    def completed(self, value: float) -> bool:
        return value > self.complete_at if self.enter_below else value < self.complete_at

    def in_range(self, value: float) -> bool:
        lo, hi = self.valid_range
        if self.inclusive:
            return lo <= value <= hi
        return lo < value < hi


EXERCISE_CONFIG: Dict[ExerciseType, PhaseConfig] = {
    ExerciseType.PUSHUPS: PhaseConfig(
        exercise=ExerciseType.PUSHUPS,
        measure=elbow_angle,
        enter_phase=ExercisePhase.DOWN,
        complete_phase=ExercisePhase.UP,
        enter_below=True,
        enter_at=110.0,
        complete_at=150.0,
        debounce_ms=800,
        valid_range=(60.0, 180.0),
        enter_feedback="Good! Now push up!",
        rep_feedback="Perfect push-up #{count}!",
    ),
    ExerciseType.SQUATS: PhaseConfig(
        exercise=ExerciseType.SQUATS,
        measure=knee_angle,
        enter_phase=ExercisePhase.DOWN,
        complete_phase=ExercisePhase.UP,
        enter_below=True,
        enter_at=120.0,
        complete_at=160.0,
        debounce_ms=1000,
        valid_range=(80.0, 180.0),
        enter_feedback="Great squat! Now stand up!",
        rep_feedback="Excellent squat #{count}!",
    ),
    ExerciseType.SITUPS: PhaseConfig(
        exercise=ExerciseType.SITUPS,
        measure=frame_torso_angle,
        # sit-ups run the cycle the other way round: up first, rep on the way down
        enter_phase=ExercisePhase.UP,
        complete_phase=ExercisePhase.DOWN,
        enter_below=False,
        enter_at=35.0,
        complete_at=15.0,
        debounce_ms=900,
        valid_range=(0.0, 90.0),
        inclusive=True,
        enter_feedback="Perfect! Now lower down slowly!",
        rep_feedback="Amazing sit-up #{count}!",
    ),
    ExerciseType.PLANKS: PhaseConfig(
        exercise=ExerciseType.PLANKS,
        measure=vertical_alignment,
        counts_reps=False,
        max_alignment=40.0,
        hold_feedback="Perfect plank form! Hold it!",
        fix_feedback="Keep your body straight!",
    ),
}


def new_state(now_ms: float) -> ExerciseSessionState:
    return ExerciseSessionState(last_phase_change_at=float(now_ms))


def step(cfg: PhaseConfig, state: ExerciseSessionState, frame: PoseFrame, now_ms: float) -> ExerciseSessionState:
    """Advance one session by one frame. Never raises on degenerate geometry."""
    value = cfg.measure(frame)

    if not cfg.counts_reps:
        aligned = value < cfg.max_alignment
        return replace(
            state,
            is_valid=aligned and frame.confidence > cfg.min_confidence,
            feedback=cfg.hold_feedback if aligned else cfg.fix_feedback,
        )

    # debounce: ignore the frame entirely
    if now_ms - state.last_phase_change_at < cfg.debounce_ms:
        return state

    phase = state.current_phase
    reps = state.rep_count
    changed_at = state.last_phase_change_at
    feedback = state.feedback

    if cfg.entered(value) and phase != cfg.enter_phase:
        phase = cfg.enter_phase
        changed_at = float(now_ms)
        feedback = cfg.enter_feedback
        logger.debug("%s: %s phase at %.1f", cfg.exercise.value, phase.value, value)
    elif cfg.completed(value) and phase == cfg.enter_phase:
        phase = cfg.complete_phase
        reps += 1
        changed_at = float(now_ms)
        feedback = cfg.rep_feedback.format(count=reps)
        logger.debug("%s: rep #%d counted at %.1f", cfg.exercise.value, reps, value)

    return ExerciseSessionState(
        rep_count=reps,
        current_phase=phase,
        last_phase_change_at=changed_at,
        is_valid=frame.confidence > cfg.min_confidence and cfg.in_range(value),
        feedback=feedback,
    )


class PhaseTracker:
    """Holds at most one live session per exercise type."""

    def __init__(self, config: Optional[Dict[ExerciseType, PhaseConfig]] = None):
        self.config = dict(config or EXERCISE_CONFIG)
        self._sessions: Dict[ExerciseType, ExerciseSessionState] = {}

    def start(self, exercise, now_ms: float) -> ExerciseSessionState:
        ex = ExerciseType.coerce(exercise)
        st = new_state(now_ms)
        if ex in self._sessions:
            logger.info("restarting %s session", ex.value)
        self._sessions[ex] = st
        return st

    def stop(self, exercise) -> Optional[ExerciseSessionState]:
        return self._sessions.pop(ExerciseType.coerce(exercise), None)

    def process(self, exercise, frame: PoseFrame, now_ms: float) -> Optional[ExerciseSessionState]:
        """Feed one frame. Returns None when the exercise was not started."""
        ex = ExerciseType.coerce(exercise)
        st = self._sessions.get(ex)
        if st is None:
            return None
        updated = step(self.config[ex], st, frame, now_ms)
        self._sessions[ex] = updated
        return updated

    def state(self, exercise) -> Optional[ExerciseSessionState]:
        return self._sessions.get(ExerciseType.coerce(exercise))

    def active(self):
        return list(self._sessions)
