from __future__ import annotations
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from onemore.common.events import EventType, RepEvent, SessionEvent
from onemore.common.types import ExerciseType, PoseFrame
from onemore.counter.frames import PoseFrameSource, monotonic_ms
from onemore.counter.phases import ExerciseSessionState, PhaseTracker
from onemore.data.db import ChallengeDB

logger = logging.getLogger(__name__)


@dataclass
class SessionStatus:
    session_id: str
    exercise: str
    state: str
    count: int
    unit: str
    target: Optional[int]
    phase: str
    is_valid: bool
    feedback: str


@dataclass
class FinalSummary:
    session_id: str
    exercise: str
    total: int
    target: Optional[int]
    target_reached: bool


@dataclass
class _Live:
    session_id: str
    exercise: ExerciseType
    started_ms: float
    target: Optional[int] = None
    source: Optional[PoseFrameSource] = None
    count: int = 0  # reps, or whole hold seconds for planks
    last_ms: float = 0.0


class RepSessionManager:
    """
    Runs one counting session per exercise type on top of PhaseTracker.
    Frames come either from the session's own PoseFrameSource (tick) or from
    outside (push_frame, e.g. a browser over WebSocket).
    """
    def __init__(
        self,
        db: Optional[ChallengeDB] = None,
        clock: Optional[Callable[[], float]] = None,
        on_rep: Optional[Callable[[int, str], None]] = None,
    ):
        self.db = db
        self.clock = clock or monotonic_ms
        self.on_rep = on_rep
        self.tracker = PhaseTracker()
        self._live: Dict[ExerciseType, _Live] = {}
        self._event_sink: Optional[Callable[[dict], None]] = None

    def set_event_sink(self, sink: Callable[[dict], None]):
        self._event_sink = sink

    def _emit(self, payload: dict):
        if self._event_sink is None:
            return
        try:
            self._event_sink(payload)
        except Exception:
            logger.exception("event sink failed for %s", payload.get("type"))

    def start(
        self,
        exercise,
        target: Optional[int] = None,
        source: Optional[PoseFrameSource] = None,
    ) -> Tuple[str, str]:
        ex = ExerciseType.coerce(exercise)
        if ex in self._live:
            self.stop(ex)

        now = self.clock()
        sid = str(uuid.uuid4())
        self._live[ex] = _Live(session_id=sid, exercise=ex, started_ms=now, target=target, source=source, last_ms=now)
        self.tracker.start(ex, now)

        if self.db is not None:
            self.db.insert_session(sid, ex.value, time.time(), target)
        self._emit(SessionEvent(EventType.SESSION_STARTED, sid, ex.value, time.time(), 0, target).to_dict())
        logger.info("session %s started: %s (target=%s)", sid, ex.value, target)
        return sid, f"started {ex.value}"

    def tick(self, exercise) -> Optional[ExerciseSessionState]:
        """Pull one frame from the session's source and process it."""
        ex = ExerciseType.coerce(exercise)
        live = self._live.get(ex)
        if live is None or live.source is None:
            return None
        return self.push_frame(ex, live.source.next_frame())

    def push_frame(self, exercise, frame: PoseFrame, ts_ms: Optional[float] = None) -> Optional[ExerciseSessionState]:
        """Feed one frame; None means the exercise is not started (frame dropped)."""
        ex = ExerciseType.coerce(exercise)
        live = self._live.get(ex)
        if live is None:
            return None
        now = self.clock() if ts_ms is None else float(ts_ms)
        live.last_ms = now
        st = self.tracker.process(ex, frame, now)
        if st is None:
            return None

        if ex is ExerciseType.PLANKS:
            count = max(0, int((now - live.started_ms) // 1000))
        else:
            count = st.rep_count
        if count > live.count:
            delta = count - live.count
            live.count = count
            self._on_rep(live, delta, st)
        return st

    def _on_rep(self, live: _Live, delta: int, st: ExerciseSessionState):
        ts = time.time()
        if self.db is not None:
            self.db.insert_event(live.session_id, ts, live.count, delta, st.is_valid, st.feedback)
        if self.on_rep is not None:
            self.on_rep(live.count, st.feedback)
        kind = EventType.HOLD if live.exercise is ExerciseType.PLANKS else EventType.REP
        self._emit(RepEvent(kind, live.session_id, live.exercise.value, ts, live.count, st.feedback, st.is_valid).to_dict())

    def stop(self, exercise) -> Optional[FinalSummary]:
        ex = ExerciseType.coerce(exercise)
        live = self._live.pop(ex, None)
        self.tracker.stop(ex)
        if live is None:
            return None
        if self.db is not None:
            self.db.stop_session(live.session_id, time.time(), live.count)
        self._emit(SessionEvent(EventType.SESSION_STOPPED, live.session_id, ex.value, time.time(), live.count, live.target).to_dict())
        logger.info("session %s stopped: %s total=%d", live.session_id, ex.value, live.count)
        return FinalSummary(
            session_id=live.session_id,
            exercise=ex.value,
            total=live.count,
            target=live.target,
            target_reached=live.target is not None and live.count >= live.target,
        )

    def target_reached(self, exercise) -> bool:
        live = self._live.get(ExerciseType.coerce(exercise))
        return live is not None and live.target is not None and live.count >= live.target

    def elapsed_minutes(self, exercise) -> float:
        """Time from session start to the latest frame; 0 when not running."""
        live = self._live.get(ExerciseType.coerce(exercise))
        if live is None:
            return 0.0
        return max(0.0, live.last_ms - live.started_ms) / 60000.0

    def is_running(self, exercise) -> bool:
        return ExerciseType.coerce(exercise) in self._live

    def status(self, exercise) -> SessionStatus:
        ex = ExerciseType.coerce(exercise)
        live = self._live.get(ex)
        st = self.tracker.state(ex)
        if live is None or st is None:
            return SessionStatus("", ex.value, "stopped", 0, ex.unit, None, "neutral", False, "")
        return SessionStatus(
            session_id=live.session_id,
            exercise=ex.value,
            state="running",
            count=live.count,
            unit=ex.unit,
            target=live.target,
            phase=st.current_phase.value,
            is_valid=st.is_valid,
            feedback=st.feedback,
        )

    def active(self):
        return [self.status(ex) for ex in list(self._live)]
