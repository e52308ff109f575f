import asyncio
import pytest
from noesiskit.io.camera import CaptureError
from noesiskit.runtime.events import Region
from noesiskit.sim.config import SimulatorConfig
from noesiskit.sim.tracker import AttentionSimulator

SLOW = SimulatorConfig(interval_s=3600)
TARGET = Region(left=400, top=200, width=480, height=320)

class FakeCapture:
    def __init__(self, fail=False):
        self.fail=fail; self.acquired=[]; self.released=[]
    def acquire(self, options):
        if self.fail: raise CaptureError("permission denied")
        h = object(); self.acquired.append((h, options)); return h
    def release(self, h):
        self.released.append(h)

def make(cfg=SLOW, **kw):
    kw.setdefault("capture", FakeCapture())
    kw.setdefault("seed", 7)
    return AttentionSimulator(cfg, **kw)

def test_status_lifecycle():
    async def main():
        sim = make()
        assert sim.status == "inactive" and sim.current_sample().status == "inactive"
        await sim.start(TARGET)
        assert sim.status == "tracking"
        assert sim.tick().status == "tracking"
        sim.stop()
        assert sim.status == "inactive"
        sim.stop()
        assert sim.status == "inactive"
        await sim.start(TARGET)
        assert sim.status == "tracking"
        await sim.aclose()
        assert sim.status == "inactive"
    asyncio.run(main())

def test_bounded_fields_over_many_ticks():
    async def main():
        async with make(seed=11) as sim:
            await sim.start(TARGET)
            for _ in range(300):
                s = sim.tick()
                for v in (s.score, s.focus_stability, s.cognitive_load):
                    assert 0.0 <= v <= 1.0
    asyncio.run(main())

def test_history_is_fifo_and_capped():
    async def main():
        sim = make(SimulatorConfig(interval_s=3600, history_size=5))
        scores = []
        sim.subscribe(lambda s: scores.append(s.score))
        await sim.start(TARGET)
        for i in range(8):
            sim.tick()
            assert len(sim.history) == min(i+1, 5)
        assert sim.history == tuple(scores[-5:])
        await sim.aclose()
    asyncio.run(main())

def test_constant_scores_give_full_stability():
    cfg = SimulatorConfig(interval_s=3600, decay=0.0, decay_jitter=0.0)
    async def main():
        sim = make(cfg)
        await sim.start(None, initial_score=0.5)
        for _ in range(5):
            s = sim.tick()
        assert s.score == 0.5 and s.focus_stability == 1.0
        await sim.aclose()
    asyncio.run(main())

def test_second_start_is_noop():
    async def main():
        sim = make()
        await sim.start(TARGET)
        task = sim._task
        sim.tick(); sim.tick()
        before = sim.history
        await sim.start(TARGET)
        assert sim._task is task
        assert sim.history == before
        await sim.aclose()
    asyncio.run(main())

def test_restart_starts_fresh_history_and_keeps_score():
    async def main():
        sim = make()
        await sim.start(TARGET)
        for _ in range(4): sim.tick()
        last = sim.current_sample().score
        sim.stop()
        await sim.start(TARGET)
        assert sim.history == ()
        assert sim.current_sample().score == last
        sim.stop()
        await sim.start(TARGET, initial_score=0.9)
        assert sim.current_sample().score == 0.9
        await sim.aclose()
    asyncio.run(main())

def test_unbound_target_decays_to_zero():
    async def main():
        sim = make()
        await sim.start(None, initial_score=1.0)
        prev = 1.0
        for _ in range(20):
            s = sim.tick()
            assert s.score <= prev
            assert (s.gaze_point.x, s.gaze_point.y) == (640, 360)
            prev = s.score
        assert prev == 0.0
        await sim.aclose()
    asyncio.run(main())

def test_failing_observer_does_not_starve_others(caplog):
    got = []
    def bad(sample): raise ValueError("boom")
    async def main():
        sim = make()
        sim.subscribe(bad)
        sim.subscribe(got.append)
        await sim.start(TARGET)
        for _ in range(5): sim.tick()
        await sim.aclose()
    asyncio.run(main())
    assert len(got) == 5
    assert "observer" in caplog.text

def test_unsubscribe():
    got = []
    async def main():
        sim = make()
        sub = sim.subscribe(got.append)
        await sim.start(TARGET)
        sim.tick()
        sub.unsubscribe()
        assert not sub.active
        sim.tick()
        await sim.aclose()
    asyncio.run(main())
    assert len(got) == 1

def test_same_seed_same_sequence():
    async def series(seed):
        sim = make(seed=seed)
        await sim.start(TARGET)
        out = [sim.tick() for _ in range(30)]
        await sim.aclose()
        return [(s.score, s.cognitive_load, s.gaze_point) for s in out]
    assert asyncio.run(series(5)) == asyncio.run(series(5))
    assert asyncio.run(series(5)) != asyncio.run(series(6))

def test_timestamps_strictly_increase():
    async def main():
        sim = make(clock=lambda: 1000.0)
        await sim.start(TARGET)
        ts = [sim.tick().timestamp for _ in range(10)]
        await sim.aclose()
        return ts
    ts = asyncio.run(main())
    assert all(b > a for a, b in zip(ts, ts[1:]))

def test_capture_failure_leaves_inactive():
    cap = FakeCapture(fail=True)
    async def main():
        sim = make(SimulatorConfig(interval_s=3600, camera=0), capture=cap)
        with pytest.raises(CaptureError):
            await sim.start(TARGET)
        assert sim.status == "inactive" and not sim.is_tracking
        assert sim._task is None
    asyncio.run(main())

def test_capture_released_on_stop():
    cap = FakeCapture()
    async def main():
        sim = make(SimulatorConfig(interval_s=3600, camera=2, camera_width=320), capture=cap)
        await sim.start(TARGET)
        assert len(cap.acquired) == 1
        assert cap.acquired[0][1].camera == 2 and cap.acquired[0][1].width == 320
        sim.stop(); sim.stop()
        assert cap.released == [cap.acquired[0][0]]
    asyncio.run(main())

def test_no_capture_without_camera():
    cap = FakeCapture()
    async def main():
        sim = make(capture=cap)
        await sim.start(TARGET)
        await sim.aclose()
    asyncio.run(main())
    assert cap.acquired == [] and cap.released == []

def test_loop_ticks_until_stopped():
    got = []
    async def main():
        sim = make(SimulatorConfig(interval_s=0.01))
        sim.subscribe(got.append)
        await sim.start(TARGET)
        await asyncio.sleep(0.2)
        sim.stop()
        n = len(got)
        await asyncio.sleep(0.05)
        assert len(got) == n
        await sim.aclose()
    asyncio.run(main())
    assert len(got) >= 3

def test_stop_from_inside_observer():
    got = []
    async def main():
        sim = make(SimulatorConfig(interval_s=0.01))
        def once(sample):
            got.append(sample); sim.stop()
        sim.subscribe(once)
        sim.subscribe(got.append)
        await sim.start(TARGET)
        await asyncio.sleep(0.1)
        assert sim.status == "inactive"
        await sim.aclose()
    asyncio.run(main())
    assert len(got) == 2

def test_disengage_fires_once_per_crossing():
    fired = []
    async def main():
        sim = make(SimulatorConfig(interval_s=3600, disengage_threshold=0.5))
        sim.on_disengage(fired.append)
        await sim.start(None, initial_score=1.0)
        for _ in range(30): sim.tick()
        await sim.aclose()
    asyncio.run(main())
    assert len(fired) == 1
    assert fired[0].score < 0.5

def test_target_callable_is_reevaluated():
    calls = []
    def target():
        calls.append(1); return TARGET
    async def main():
        sim = make()
        await sim.start(target)
        for _ in range(3): sim.tick()
        await sim.aclose()
    asyncio.run(main())
    assert len(calls) == 3
