from __future__ import annotations
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Optional

class EventType(str, Enum):
    SESSION_STARTED = "session_started"
    SESSION_STOPPED = "session_stopped"
    REP = "rep"
    HOLD = "hold"
    TRACE = "trace"
    DAY_COMPLETED = "day_completed"
    CHALLENGE_COMPLETED = "challenge_completed"

@dataclass
class SessionEvent:
    type: EventType
    session_id: str
    exercise: str
    ts: float
    count: int = 0
    target: Optional[int] = None

    def to_dict(self) -> dict:
        d = asdict(self)
        d["type"] = self.type.value
        return d

@dataclass
class RepEvent:
    type: EventType
    session_id: str
    exercise: str
    ts: float
    count: int
    feedback: str
    is_valid: bool = False

    def to_dict(self) -> dict:
        d = asdict(self)
        d["type"] = self.type.value
        return d

@dataclass
class DayEvent:
    type: EventType
    date: str
    day: int
    current_streak: int
    best_streak: int

    def to_dict(self) -> dict:
        d = asdict(self)
        d["type"] = self.type.value
        return d
