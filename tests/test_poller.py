# tests/test_poller.py
import threading
import time

import pytest

import poller


def test_first_tick_is_forced_then_unforced():
    calls = []
    enough = threading.Event()

    def cb(forced):
        calls.append(forced)
        if len(calls) >= 3:
            enough.set()

    p = poller.start_poller(0.02, cb, name="t")
    try:
        assert enough.wait(2), "poller never ticked three times"
    finally:
        p.close()

    assert calls[0] is True
    assert all(f is False for f in calls[1:])


def test_close_waits_for_in_flight_callback_and_stops_ticks():
    started = threading.Event()
    release = threading.Event()
    calls = []

    def cb(forced):
        calls.append(forced)
        started.set()
        release.wait(2)

    p = poller.Poller(0.01, cb, name="slow").start()
    assert started.wait(2)

    closer = threading.Thread(target=p.close)
    closer.start()
    closer.join(0.1)
    assert closer.is_alive(), "close() returned while the callback was still running"

    release.set()
    closer.join(2)
    assert not closer.is_alive()

    n = len(calls)
    time.sleep(0.05)
    assert len(calls) == n


def test_close_is_idempotent_and_safe_before_start():
    p = poller.Poller(1, lambda forced: None)
    p.close()
    p.close()
    assert p.closed

    # A closed poller cannot be started again.
    p.start()
    assert p._thread is None


def test_close_from_inside_callback_does_not_deadlock():
    done = threading.Event()
    holder = {}

    def cb(forced):
        holder["p"].close()
        done.set()

    holder["p"] = poller.Poller(0.01, cb, name="self-close")
    holder["p"].start()
    assert done.wait(2)
    holder["p"]._thread.join(2)
    assert not holder["p"]._thread.is_alive()


def test_callback_errors_are_logged_and_polling_continues(capsys):
    calls = []
    enough = threading.Event()

    def cb(forced):
        calls.append(forced)
        if len(calls) >= 2:
            enough.set()
        raise RuntimeError("lookup exploded")

    p = poller.start_poller(0.02, cb, name="boom")
    try:
        assert enough.wait(2)
    finally:
        p.close()

    out = capsys.readouterr().out
    assert "[POLLER] ERROR: boom refresh failed: RuntimeError: lookup exploded" in out


@pytest.mark.parametrize("interval", [0, -1])
def test_non_positive_interval_is_rejected(interval):
    with pytest.raises(ValueError):
        poller.Poller(interval, lambda forced: None)
