"""Host-polled session timers, driven by a fake monotonic clock."""
from datetime import timedelta

from examkit.timers import Debouncer, PeriodicTask, SessionTimers


def test_periodic_task_fires_once_per_elapsed_interval(monotonic):
    ticks = []
    task = PeriodicTask(1.0, lambda: ticks.append(monotonic()), monotonic=monotonic)

    assert not task.poll()
    task.start()
    assert task.running
    monotonic.advance(0.5)
    assert not task.poll()
    monotonic.advance(0.5)
    assert task.poll()
    assert not task.poll()

    monotonic.advance(5.0)
    assert task.poll()
    assert len(ticks) == 2

    task.cancel()
    assert not task.running
    monotonic.advance(10.0)
    assert not task.poll()
    assert len(ticks) == 2


def test_failing_tick_keeps_the_task_running(monotonic):
    calls = []

    def flaky():
        calls.append(1)
        raise RuntimeError("boom")

    task = PeriodicTask(1.0, flaky, monotonic=monotonic)
    task.start()
    for _ in range(3):
        monotonic.advance(1.0)
        assert task.poll()
    assert task.running
    assert len(calls) == 3


def test_session_timers_drive_clock_and_conditional_autosave(monotonic):
    clock_values = []
    saves = []
    allow_save = {"value": False}
    timers = SessionTimers(
        elapsed=lambda: timedelta(seconds=42),
        on_clock=clock_values.append,
        autosave=lambda: saves.append(1),
        should_autosave=lambda: allow_save["value"],
        clock_interval=1.0,
        autosave_interval=30.0,
        monotonic=monotonic,
    )
    timers.start()
    for _ in range(30):
        monotonic.advance(1.0)
        timers.poll()
    assert len(clock_values) == 30
    assert all(v == timedelta(seconds=42) for v in clock_values)
    assert saves == []

    allow_save["value"] = True
    for _ in range(30):
        monotonic.advance(1.0)
        timers.poll()
    assert saves == [1]

    timers.cancel()
    assert not timers.running
    monotonic.advance(60.0)
    timers.poll()
    assert len(clock_values) == 60


def test_debouncer_coalesces_rapid_calls(monotonic):
    received = []
    debouncer = Debouncer(lambda qid, text: received.append((qid, text)), delay=0.4, monotonic=monotonic)
    for text in ("P", "Pa", "Par", "Paris"):
        debouncer.call(2, text)
        monotonic.advance(0.1)
        assert not debouncer.poll()
    assert debouncer.pending

    monotonic.advance(0.5)
    assert debouncer.poll()
    assert not debouncer.pending
    assert received == [(2, "Paris")]


def test_debouncer_flush_and_cancel(monotonic):
    received = []
    debouncer = Debouncer(received.append, delay=0.4, monotonic=monotonic)
    debouncer.call("now")
    assert debouncer.flush()
    assert received == ["now"]
    assert not debouncer.flush()

    debouncer.call("dropped")
    debouncer.cancel()
    monotonic.advance(1.0)
    assert not debouncer.poll()
    assert received == ["now"]
