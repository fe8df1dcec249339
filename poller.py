# poller.py
"""
FILE: poller.py
DESCRIPTION:
  Periodic sensor refresh.
  - Each Poller owns one daemon thread that calls callback(forced) on a fixed period.
  - The first tick runs immediately with forced=True, later ticks use forced=False.
  - Overrun ticks are dropped, not replayed.
  - close() stops the thread and waits for any in-flight callback to finish.
"""
import threading
import time


class Poller:
    def __init__(self, interval, callback, name="poller"):
        if interval <= 0:
            raise ValueError(f"poller interval must be positive, got {interval!r}")
        self.interval = float(interval)
        self.callback = callback
        self.name = name
        self._stop = threading.Event()
        self._thread = None
        self._lock = threading.Lock()

    def start(self):
        with self._lock:
            if self._thread is not None or self._stop.is_set():
                return self
            self._thread = threading.Thread(
                target=self._run, name=f"poller-{self.name}", daemon=True
            )
            self._thread.start()
        return self

    def close(self):
        """Stop polling. No callback runs once this returns (idempotent)."""
        self._stop.set()
        with self._lock:
            thread = self._thread
        if thread is None or thread is threading.current_thread():
            return
        thread.join()

    @property
    def closed(self):
        return self._stop.is_set()

    def _tick(self, forced):
        try:
            self.callback(forced)
        except Exception as e:
            print(f"[POLLER] ERROR: {self.name} refresh failed: {type(e).__name__}: {e}")

    def _run(self):
        self._tick(True)
        next_tick = time.monotonic() + self.interval
        while not self._stop.wait(max(0.0, next_tick - time.monotonic())):
            self._tick(False)
            next_tick += self.interval
            now = time.monotonic()
            if next_tick <= now:
                # Drop the ticks we overran and realign to the period.
                missed = int((now - next_tick) // self.interval) + 1
                next_tick += missed * self.interval


def start_poller(interval, callback, name="poller"):
    """Create and start a Poller calling `callback(forced)` every `interval` seconds."""
    return Poller(interval, callback, name=name).start()
