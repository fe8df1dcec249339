# orchestrator.py
"""
FILE: orchestrator.py
DESCRIPTION:
  Keeps Home Assistant in step with the bridge across (re)connects.
  - CoalescingSignal: pending-notification set; duplicates merge, nothing is lost.
  - SyncOrchestrator: single thread that, per connect, re-advertises discovery,
    rebinds every module to a fresh PubSub, resubscribes to the HA birth topic
    and republishes all state after the settle delay.
"""
import threading
import time

from pubsub import MQTTPubSub

CONNECT = "connect"
BIRTH = "birth"
STOP = "stop"


class CoalescingSignal:
    def __init__(self):
        self._cond = threading.Condition()
        # kind -> None; dict keeps arrival order
        self._pending = {}

    def notify(self, kind=CONNECT):
        with self._cond:
            self._pending[kind] = None
            self._cond.notify_all()

    def drain(self):
        with self._cond:
            kinds = list(self._pending)
            self._pending.clear()
        return kinds

    def wait(self, timeout=None):
        """Block until something is pending, then return and clear all of it."""
        with self._cond:
            self._cond.wait_for(lambda: self._pending, timeout)
            kinds = list(self._pending)
            self._pending.clear()
        return kinds


class SyncOrchestrator:
    def __init__(self, client, modules, discovery, base_topic, birth_topic,
                 status_delay, stop_event=None, resync_min_interval=0.0):
        self.client = client
        # module name -> Syncer, root module ("") included
        self.modules = modules
        self.discovery = discovery
        self.base_topic = base_topic
        self.birth_topic = birth_topic
        self.status_delay = status_delay
        self.resync_min_interval = resync_min_interval
        self.stop_event = stop_event or threading.Event()
        self.signal = CoalescingSignal()
        self._last_resync = None

    # --- event sources (any thread) ---

    def notify_connect(self):
        self.signal.notify(CONNECT)

    def _on_birth(self, payload):
        if payload == b"online" or payload == "online":
            self.signal.notify(BIRTH)

    def stop(self):
        self.stop_event.set()
        self.signal.notify(STOP)

    # --- orchestrator thread ---

    def run(self):
        while not self.stop_event.is_set():
            kinds = self.signal.wait()
            if self.stop_event.is_set() or STOP in kinds:
                break
            try:
                if CONNECT in kinds:
                    if not self._respect_rate_limit():
                        break
                    # A connect resync already covers a pending birth message.
                    self.handle_connect()
                elif BIRTH in kinds:
                    self.handle_birth()
            except Exception as e:
                print(f"[SYNC] ERROR: resync failed: {type(e).__name__}: {e}")

    def _respect_rate_limit(self):
        if self.resync_min_interval <= 0 or self._last_resync is None:
            return True
        remaining = self._last_resync + self.resync_min_interval - time.monotonic()
        if remaining <= 0:
            return True
        print(f"[SYNC] Deferring resync for {remaining:.1f}s")
        if self.stop_event.wait(remaining):
            return False
        # Anything that arrived while deferring is folded into this resync.
        if STOP in self.signal.drain():
            return False
        return True

    def module_topic(self, name):
        if name:
            return f"{self.base_topic}/{name}"
        return self.base_topic

    def _settle(self):
        """Wait the settle delay; False if shutdown was requested meanwhile."""
        if self.status_delay <= 0:
            return not self.stop_event.is_set()
        return not self.stop_event.wait(self.status_delay)

    def publish_all(self):
        for mod in self.modules.values():
            mod.publish()

    def handle_connect(self):
        print("[SYNC] mqtt connect")
        self._last_resync = time.monotonic()
        self.discovery.advertise(self.client)
        for name, mod in self.modules.items():
            mod.sync(MQTTPubSub(self.client, self.module_topic(name)))
        if self.birth_topic:
            MQTTPubSub(self.client, "").subscribe(self.birth_topic, self._on_birth)
        # HA may not have subscribed to freshly advertised entities yet.
        if not self._settle():
            return
        self.publish_all()

    def handle_birth(self):
        print("[SYNC] Home Assistant online, re-announcing")
        self.discovery.advertise(self.client)
        if not self._settle():
            return
        self.publish_all()
