from __future__ import annotations
import asyncio
import json
import logging
import datetime as dt
from dataclasses import asdict
from typing import Callable, Optional, Set

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from onemore.challenge import progress as stats
from onemore.challenge.models import CHALLENGE_DAYS, Baselines
from onemore.challenge.service import ChallengeService
from onemore.common.events import DayEvent, EventType
from onemore.common.types import ExerciseType, PoseFrame
from onemore.counter.session import RepSessionManager
from onemore.data.db import ChallengeDB
from onemore.runtime import config

logger = logging.getLogger(__name__)


class BaselinesIn(BaseModel):
    pushups: int = Field(10, ge=1, description="Day-1 push-ups")
    squats: int = Field(15, ge=1, description="Day-1 squats")
    situps: int = Field(10, ge=1, description="Day-1 sit-ups")
    planks: int = Field(30, ge=1, description="Day-1 plank hold, seconds")

    def to_baselines(self) -> Baselines:
        return Baselines(pushups=self.pushups, squats=self.squats, situps=self.situps, planks=self.planks)


class CompleteIn(BaseModel):
    exercise: ExerciseType
    actual_count: int = Field(..., ge=0, description="Reps done, or seconds held for planks")
    date: Optional[dt.date] = Field(None, description="Defaults to today")


def _challenge_payload(svc: ChallengeService) -> dict:
    out = svc.state.to_dict()
    out["status"] = svc.status.value
    return out


def create_app(
    db: Optional[ChallengeDB] = None,
    today: Optional[Callable[[], dt.date]] = None,
    clock: Optional[Callable[[], float]] = None,
) -> FastAPI:
    """Build the API. Run with `uvicorn onemore.runtime.server:create_app --factory`."""
    app = FastAPI(title="OneMore 75")
    service = ChallengeService(db or ChallengeDB(config.DB_PATH), today=today)
    manager = RepSessionManager(db=service.db, clock=clock)
    ws_clients: Set[WebSocket] = set()
    recorded: Set[str] = set()  # session ids already credited to the challenge

    app.state.service = service
    app.state.manager = manager

    async def broadcast(obj: dict):
        dead = []
        for ws in list(ws_clients):
            try:
                await ws.send_text(json.dumps(obj))
            except Exception:
                dead.append(ws)
        for d in dead:
            ws_clients.discard(d)

    # let the manager emit events to all WS clients
    def _sink(ev: dict):
        asyncio.get_running_loop().create_task(broadcast(ev))

    manager.set_event_sink(_sink)

    async def _credit_if_done(ex: ExerciseType):
        st = manager.status(ex)
        if not manager.target_reached(ex) or st.session_id in recorded:
            return
        recorded.add(st.session_id)
        before = service.state.total_days_completed
        after = service.complete_exercise(ex, st.count, minutes=manager.elapsed_minutes(ex))
        if after.total_days_completed > before:
            key = after.last_completed_date or ""
            day = after.daily_progress[key].day if key in after.daily_progress else after.current_day
            await broadcast(DayEvent(EventType.DAY_COMPLETED, key, day, after.current_streak, after.best_streak).to_dict())
            if after.challenge_completed:
                await broadcast({"type": EventType.CHALLENGE_COMPLETED.value, "date": key})

    # Challenge

    @app.get("/challenge")
    async def get_challenge():
        return _challenge_payload(service)

    @app.get("/challenge/today")
    async def get_today():
        rec = service.today_progress()
        if rec is None:
            raise HTTPException(status_code=404, detail="no progress recorded for today")
        return rec.to_dict()

    @app.post("/challenge/start")
    async def start_challenge(body: BaselinesIn):
        service.start(body.to_baselines())
        return _challenge_payload(service)

    @app.post("/challenge/complete")
    async def complete(body: CompleteIn):
        service.complete_exercise(body.exercise, body.actual_count, on=body.date)
        return _challenge_payload(service)

    @app.post("/challenge/advance")
    async def advance():
        service.advance_day()
        return _challenge_payload(service)

    @app.post("/challenge/baselines")
    async def baselines(body: BaselinesIn):
        service.update_baselines(body.to_baselines())
        return _challenge_payload(service)

    @app.post("/challenge/sync")
    async def sync():
        service.sync()
        return _challenge_payload(service)

    @app.post("/challenge/reset")
    async def reset():
        service.reset()
        return _challenge_payload(service)

    @app.get("/progress")
    async def get_progress():
        st = service.state
        out = service.progress.to_dict()
        out["progress_percentage"] = stats.progress_percentage(st)
        out["completion_rate"] = stats.completion_rate(st)
        out["weeks"] = [asdict(w) for w in stats.weekly_stats(st)]
        curve = stats.target_curve(st.baselines, CHALLENGE_DAYS)
        out["target_curve"] = {ex.value: targets for ex, targets in curve.items()}
        return out

    # Counter

    @app.post("/counter/start")
    async def counter_start(exercise: ExerciseType, target: Optional[int] = None):
        if target is None:
            target = service.target(exercise)
        sid, status = manager.start(exercise, target=target)
        await broadcast({"type": EventType.TRACE.value, "msg": f"counter: {status} (target={target})"})
        return {"session_id": sid, "status": status, "target": target}

    @app.post("/counter/stop")
    async def counter_stop(exercise: ExerciseType):
        final = manager.stop(exercise)
        if final is None:
            raise HTTPException(status_code=409, detail=f"{exercise.value} not started")
        return asdict(final)

    @app.get("/sessions/current")
    async def current():
        return JSONResponse({"sessions": [asdict(s) for s in manager.active()]})

    @app.websocket("/ws/frames")
    async def ws_frames(ws: WebSocket):
        await ws.accept()
        ws_clients.add(ws)
        await broadcast({"type": EventType.TRACE.value, "msg": "ws: client connected"})
        try:
            while True:
                try:
                    data = json.loads(await ws.receive_text())
                except json.JSONDecodeError:
                    await ws.send_text(json.dumps({"type": "error", "msg": "invalid json"}))
                    continue
                if not isinstance(data, dict):
                    await ws.send_text(json.dumps({"type": "error", "msg": "expected a JSON object"}))
                    continue
                if data.get("type") != "frame":
                    continue
                try:
                    ex = ExerciseType.coerce(data.get("exercise"))
                    frame = PoseFrame.from_dict(data.get("frame") or {})
                    ts = data.get("ts")
                    ts = float(ts) if ts is not None else None
                except (ValueError, KeyError, TypeError, AttributeError) as e:
                    await ws.send_text(json.dumps({"type": "error", "msg": str(e)}))
                    continue
                st = manager.push_frame(ex, frame, ts)
                if st is None:
                    await ws.send_text(json.dumps({"type": "error", "msg": f"{ex.value} not started"}))
                    continue
                await ws.send_text(json.dumps({"type": "state", **asdict(manager.status(ex))}))
                await _credit_if_done(ex)
        except WebSocketDisconnect:
            pass
        finally:
            ws_clients.discard(ws)
            await broadcast({"type": EventType.TRACE.value, "msg": "ws closed"})

    return app
