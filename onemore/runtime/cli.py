from __future__ import annotations
import argparse
import sys
from typing import List, Optional

from onemore.challenge import progress as stats
from onemore.challenge.models import Baselines
from onemore.challenge.service import ChallengeService
from onemore.common.types import ExerciseType
from onemore.counter.frames import SyntheticPoseSource
from onemore.counter.session import RepSessionManager
from onemore.data.db import ChallengeDB
from onemore.runtime import config


class TickClock:
    """Virtual millisecond clock so a simulated session runs as fast as the CPU allows."""
    def __init__(self, step_ms: float):
        self.step_ms = step_ms
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self):
        self.now += self.step_ms


def cmd_simulate(svc: ChallengeService, args) -> int:
    ex = ExerciseType.coerce(args.exercise)
    target = args.target if args.target is not None else svc.target(ex)
    clock = TickClock(config.TICK_MS)
    mgr = RepSessionManager(db=svc.db, clock=clock,
                            on_rep=lambda n, fb: print(f"{ex.value}: {n} {ex.unit}  {fb}", flush=True))
    src = SyntheticPoseSource(ex, clock=clock, seed=args.seed)
    mgr.start(ex, target=target, source=src)
    print(f"simulating {ex.value}, target {target} {ex.unit}", flush=True)

    for _ in range(args.ticks):
        clock.advance()
        mgr.tick(ex)
        if mgr.target_reached(ex):
            break

    final = mgr.stop(ex)
    print(f"done: {final.total}/{target} {ex.unit}", flush=True)
    if args.complete and final.target_reached:
        state = svc.complete_exercise(ex, final.total, minutes=clock() / 60000.0)
        print(f"recorded {ex.value} for day {state.current_day}; streak={state.current_streak}", flush=True)
    return 0 if final.target_reached else 1


def cmd_status(svc: ChallengeService, args) -> int:
    st = svc.state
    print(f"status: {svc.status.value}", flush=True)
    if not st.is_active:
        return 0
    print(f"day {st.current_day}/75 ({stats.progress_percentage(st):.0f}%), started {st.start_date}")
    print(f"streak {st.current_streak} (best {st.best_streak}), days completed {st.total_days_completed}")
    rec = svc.today_progress()
    if rec is not None:
        for ex, p in rec.exercises.items():
            mark = "x" if p.completed else " "
            print(f"  [{mark}] {ex.value:8s} {p.target} {ex.unit}")
    return 0


def cmd_start(svc: ChallengeService, args) -> int:
    svc.start(Baselines(pushups=args.pushups, squats=args.squats, situps=args.situps, planks=args.planks))
    return cmd_status(svc, args)


def cmd_complete(svc: ChallengeService, args) -> int:
    svc.complete_exercise(args.exercise, args.count)
    return cmd_status(svc, args)


def cmd_advance(svc: ChallengeService, args) -> int:
    svc.advance_day()
    return cmd_status(svc, args)


def cmd_sync(svc: ChallengeService, args) -> int:
    svc.sync()
    return cmd_status(svc, args)


def cmd_reset(svc: ChallengeService, args) -> int:
    svc.reset()
    print("challenge reset", flush=True)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="onemore", description="75-day challenge tracker")
    p.add_argument("--db", default=config.DB_PATH, help="SQLite file")
    sub = p.add_subparsers(dest="command", required=True)

    sim = sub.add_parser("simulate", help="count a synthetic session")
    sim.add_argument("exercise", choices=[e.value for e in ExerciseType])
    sim.add_argument("--ticks", type=int, default=3000)
    sim.add_argument("--target", type=int, default=None)
    sim.add_argument("--seed", type=int, default=None)
    sim.add_argument("--complete", action="store_true", help="record the exercise when the target is hit")
    sim.set_defaults(func=cmd_simulate)

    sub.add_parser("status").set_defaults(func=cmd_status)

    start = sub.add_parser("start", help="start a new challenge")
    defaults = Baselines()
    for ex in ExerciseType:
        start.add_argument(f"--{ex.value}", type=int, default=defaults.of(ex))
    start.set_defaults(func=cmd_start)

    comp = sub.add_parser("complete", help="record an exercise for today")
    comp.add_argument("exercise", choices=[e.value for e in ExerciseType])
    comp.add_argument("count", type=int)
    comp.set_defaults(func=cmd_complete)

    sub.add_parser("advance").set_defaults(func=cmd_advance)
    sub.add_parser("sync").set_defaults(func=cmd_sync)
    sub.add_parser("reset").set_defaults(func=cmd_reset)
    return p


def main(argv: Optional[List[str]] = None) -> int:
    config.setup_logging()
    args = build_parser().parse_args(argv)
    db = ChallengeDB(args.db)
    try:
        return args.func(ChallengeService(db), args)
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
