"""Tests for the single-context timer scheduler."""
from __future__ import annotations

import pytest

from firecnc.supervisor.scheduler import ManualClock, Scheduler, SystemClock


def test_call_later_fires_at_deadline_not_before(scheduler):
    fired = []
    scheduler.call_later(5.0, fired.append, "boom")

    scheduler.advance(4.0)
    assert fired == []
    scheduler.advance(1.0)
    assert fired == ["boom"]
    assert scheduler.pending() == 0


def test_callbacks_observe_their_own_deadline(scheduler):
    seen = []
    scheduler.call_later(2.0, lambda: seen.append(scheduler.now()))
    scheduler.call_later(7.0, lambda: seen.append(scheduler.now()))

    scheduler.advance(10.0)
    assert seen == [2.0, 7.0]
    assert scheduler.now() == 10.0


def test_cancelled_handle_never_fires(scheduler):
    fired = []
    handle = scheduler.call_later(1.0, fired.append, "late")
    handle.cancel()

    scheduler.advance(5.0)
    assert fired == []
    assert not handle.active


def test_call_every_repeats_until_cancelled(scheduler):
    ticks = []
    handle = scheduler.call_every(1.0, lambda: ticks.append(scheduler.now()))

    scheduler.advance(3.0)
    assert ticks == [1.0, 2.0, 3.0]

    handle.cancel()
    scheduler.advance(3.0)
    assert ticks == [1.0, 2.0, 3.0]


def test_recurring_callback_may_cancel_itself(scheduler):
    ticks = []
    holder = {}

    def _tick():
        ticks.append(scheduler.now())
        if len(ticks) == 2:
            holder["handle"].cancel()

    holder["handle"] = scheduler.call_every(1.0, _tick)
    scheduler.advance(10.0)
    assert ticks == [1.0, 2.0]


def test_failing_callback_is_logged_and_schedule_continues(scheduler, caplog):
    ticks = []

    def _flaky():
        ticks.append(scheduler.now())
        if len(ticks) == 1:
            raise RuntimeError("probe exploded")

    scheduler.call_every(1.0, _flaky, name="flaky")
    with caplog.at_level("ERROR"):
        scheduler.advance(3.0)

    assert ticks == [1.0, 2.0, 3.0]
    assert "Timer callback flaky failed" in caplog.text


def test_timers_scheduled_during_dispatch_run_inside_window(scheduler):
    order = []

    def _first():
        order.append("first")
        scheduler.call_later(1.0, order.append, "second")

    scheduler.call_later(1.0, _first)
    scheduler.advance(2.0)
    assert order == ["first", "second"]


def test_call_soon_runs_on_next_dispatch(scheduler):
    ran = []
    scheduler.call_soon(ran.append, 1)
    assert ran == []
    assert scheduler.run_due() == 1
    assert ran == [1]


def test_advance_requires_manual_clock():
    with pytest.raises(TypeError):
        Scheduler(SystemClock()).advance(1.0)


def test_manual_clock_refuses_to_go_backwards():
    clock = ManualClock(10.0)
    with pytest.raises(ValueError):
        clock.advance_to(5.0)


def test_call_every_rejects_non_positive_interval(scheduler):
    with pytest.raises(ValueError):
        scheduler.call_every(0, lambda: None)
