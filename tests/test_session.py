import logging

from onemore.common.types import ExerciseType
from onemore.counter.frames import ScriptedPoseSource
from onemore.counter.session import RepSessionManager
from conftest import make_frame

PU = ExerciseType.PUSHUPS


def test_rep_callback_fires_on_increase(db, clock):
    reps = []
    mgr = RepSessionManager(db=db, clock=clock, on_rep=lambda n, fb: reps.append((n, fb)))
    sid, status = mgr.start(PU, target=2)
    assert status == "started pushups"

    for ts, angle in [(1000, 100), (1900, 155), (2800, 100), (3700, 160)]:
        mgr.push_frame(PU, make_frame(PU, angle), ts)

    assert reps == [(1, "Perfect push-up #1!"), (2, "Perfect push-up #2!")]
    assert mgr.target_reached(PU)
    assert [e["count"] for e in db.session_events(sid)] == [1, 2]


def test_tick_pulls_from_source(clock):
    frames = [make_frame(PU, a) for a in (100, 155)]
    mgr = RepSessionManager(clock=clock)
    mgr.start(PU, source=ScriptedPoseSource(frames))
    clock.now = 1000
    assert mgr.tick(PU).current_phase.value == "down"
    clock.now = 1900
    assert mgr.tick(PU).rep_count == 1
    assert mgr.status(PU).count == 1


def test_tick_without_source_or_session(clock):
    mgr = RepSessionManager(clock=clock)
    assert mgr.tick(PU) is None
    mgr.start(PU)
    assert mgr.tick(PU) is None


def test_stop_drops_later_frames(db, clock):
    mgr = RepSessionManager(db=db, clock=clock)
    sid, _ = mgr.start(PU, target=1)
    mgr.push_frame(PU, make_frame(PU, 100), 1000)
    mgr.push_frame(PU, make_frame(PU, 155), 1900)
    final = mgr.stop(PU)
    assert final.total == 1
    assert final.target_reached
    assert mgr.push_frame(PU, make_frame(PU, 100), 3000) is None
    assert mgr.status(PU).state == "stopped"
    assert db.session(sid)["total"] == 1
    assert mgr.stop(PU) is None


def test_plank_counts_held_seconds(clock):
    pl = ExerciseType.PLANKS
    seen = []
    mgr = RepSessionManager(clock=clock, on_rep=lambda n, fb: seen.append(n))
    mgr.start(pl, target=3)
    for ts in range(200, 3400, 200):
        mgr.push_frame(pl, make_frame(pl), ts)
    assert seen == [1, 2, 3]
    st = mgr.status(pl)
    assert st.unit == "seconds"
    assert st.count == 3
    assert st.is_valid
    assert mgr.target_reached(pl)


def test_restart_replaces_session(clock):
    mgr = RepSessionManager(clock=clock)
    first, _ = mgr.start(PU)
    mgr.push_frame(PU, make_frame(PU, 100), 1000)
    mgr.push_frame(PU, make_frame(PU, 155), 1900)
    clock.now = 5000
    second, _ = mgr.start(PU)
    assert first != second
    assert mgr.status(PU).count == 0
    assert mgr.status(PU).session_id == second


def test_event_sink_gets_events(clock):
    events = []
    mgr = RepSessionManager(clock=clock)
    mgr.set_event_sink(events.append)
    mgr.start(PU)
    mgr.push_frame(PU, make_frame(PU, 100), 1000)
    mgr.push_frame(PU, make_frame(PU, 155), 1900)
    mgr.stop(PU)
    assert [e["type"] for e in events] == ["session_started", "rep", "session_stopped"]
    assert events[1]["count"] == 1


def test_broken_sink_is_logged_not_raised(clock, caplog):
    def sink(_):
        raise RuntimeError("socket gone")

    mgr = RepSessionManager(clock=clock)
    mgr.set_event_sink(sink)
    with caplog.at_level(logging.ERROR, logger="onemore.counter.session"):
        mgr.start(PU)
    assert "event sink failed" in caplog.text
    assert mgr.is_running(PU)


def test_elapsed_minutes_follow_frames(clock):
    mgr = RepSessionManager(clock=clock)
    assert mgr.elapsed_minutes(PU) == 0.0
    mgr.start(PU)
    mgr.push_frame(PU, make_frame(PU, 170), 30000)
    assert mgr.elapsed_minutes(PU) == 0.5
