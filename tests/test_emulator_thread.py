import threading
import time

import pytest

from agbkit.emulator_thread import CYCLES_PER_SUBFRAME, EmulatorThread
from agbkit.frame_limiter import FrameLimiter


class FakeCore:
    def __init__(self):
        self.runs = []
        self.resets = 0
        self.keys = []
        self.lock = threading.Lock()

    def run(self, cycles):
        with self.lock:
            self.runs.append(cycles)

    def reset(self):
        with self.lock:
            self.resets += 1

    def set_key_status(self, key, pressed):
        with self.lock:
            self.keys.append((key, pressed))


def wait_for(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.002)
    return predicate()


def fake_limiter():
    state = {"now": 0}
    lock = threading.Lock()

    def clock():
        with lock:
            state["now"] += 500_000_000
            return state["now"]

    return FrameLimiter(clock=clock, sleep=lambda seconds: None)


def test_stop_without_start_returns_none():
    thread = EmulatorThread()
    assert thread.running is False
    assert thread.stop() is None


def test_start_runs_core_and_stop_returns_it():
    core = FakeCore()
    thread = EmulatorThread()
    thread.start(core)
    assert thread.running is True
    assert wait_for(lambda: len(core.runs) > 0)
    returned = thread.stop()
    assert returned is core
    assert thread.running is False
    assert set(core.runs) == {CYCLES_PER_SUBFRAME}


def test_start_twice_raises():
    core = FakeCore()
    with EmulatorThread() as thread:
        thread.start(core)
        with pytest.raises(RuntimeError):
            thread.start(FakeCore())
    assert thread.running is False


def test_reset_message_reaches_core():
    core = FakeCore()
    thread = EmulatorThread()
    thread.start(core)
    thread.reset()
    wait_for(lambda: core.resets == 1)
    assert thread.stop() is core
    assert core.resets == 1


def test_key_status_message_reaches_core():
    core = FakeCore()
    with EmulatorThread() as thread:
        thread.start(core)
        thread.set_key_status("A", True)
        thread.set_key_status("A", False)
        assert wait_for(lambda: len(core.keys) == 2)
    assert core.keys == [("A", True), ("A", False)]


def test_messages_before_start_are_dropped():
    core = FakeCore()
    thread = EmulatorThread()
    thread.reset()
    thread.set_key_status("B", True)
    thread.start(core)
    assert wait_for(lambda: len(core.runs) > 0)
    thread.stop()
    assert core.resets == 0
    assert core.keys == []


def test_paused_thread_does_not_run_core():
    core = FakeCore()
    frames = []
    thread = EmulatorThread()
    thread.paused = True
    thread.per_frame_callback = lambda: frames.append(1)
    thread.start(core)
    time.sleep(0.05)
    thread.stop()
    assert core.runs == []
    assert frames == []


def test_message_from_callback_is_handled_immediately():
    core = FakeCore()
    thread = EmulatorThread()
    sent = []

    def per_frame():
        if not sent:
            sent.append(core.resets)
            thread.reset()
            sent.append(core.resets)

    thread.per_frame_callback = per_frame
    thread.start(core)
    wait_for(lambda: len(sent) == 2)
    assert thread.stop() is core
    assert len(sent) == 2
    assert sent[1] == sent[0] + 1
    assert core.resets == 1


def test_frame_rate_reported_while_running():
    core = FakeCore()
    reports = []
    thread = EmulatorThread(fake_limiter())
    thread.frame_rate_callback = reports.append
    thread.start(core)
    wait_for(lambda: len(reports) > 2)
    assert thread.stop() is core
    assert len(reports) > 2
    assert min(reports) > 0


def test_frame_rate_zero_while_paused():
    core = FakeCore()
    reports = []
    thread = EmulatorThread(fake_limiter())
    thread.paused = True
    thread.frame_rate_callback = reports.append
    thread.start(core)
    wait_for(lambda: len(reports) > 2)
    assert thread.stop() is core
    assert len(reports) > 2
    assert set(reports) == {0.0}
    assert core.runs == []


def test_fast_forward_passes_through():
    thread = EmulatorThread()
    assert thread.fast_forward is False
    thread.fast_forward = True
    assert thread.fast_forward is True