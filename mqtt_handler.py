# mqtt_handler.py
"""
FILE: mqtt_handler.py
DESCRIPTION:
  Manages the connection to the MQTT Broker.
  - Registers the last will ('offline' on the base topic) before connecting.
  - initial_connect() blocks until the broker accepts the first connection (CONNACK),
    retrying every 5s on socket errors, refusals and CONNACK timeouts.
  - After that paho's network loop owns reconnection; every (re)connect calls on_ready().
"""
import threading
import time

import paho.mqtt.client as mqtt
from paho.mqtt.enums import CallbackAPIVersion

import config
from pubsub import MUST_QOS

CONNECT_RETRY_INTERVAL = 5.0
CONNACK_TIMEOUT = 10.0
CONNACK_POLL = 0.1
OFFLINE_PUBLISH_TIMEOUT = 2.0

DISCONNECTED = "disconnected"
CONNECTING = "connecting"
CONNECTED = "connected"


class DunnartMQTT:
    def __init__(self, base_topic, on_ready=None, settings=None):
        self.settings = settings if settings is not None else config.MQTT_SETTINGS
        self.base_topic = base_topic
        self.on_ready = on_ready
        self.state = DISCONNECTED
        self._state_lock = threading.Lock()

        # Set by _on_connect for every CONNACK; _connack_rc holds its code.
        self._connack = threading.Event()
        self._connack_rc = None

        self.client = mqtt.Client(
            callback_api_version=CallbackAPIVersion.VERSION2,
            client_id=self.settings.get("client_id") or "",
        )
        if self.settings.get("user"):
            self.client.username_pw_set(self.settings["user"], self.settings.get("pass") or None)
        self.client.will_set(self.base_topic, "offline", qos=MUST_QOS, retain=False)

        # Callbacks
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

    def _set_state(self, state):
        with self._state_lock:
            self.state = state

    def _on_connect(self, client, userdata, flags, rc, properties=None):
        if rc == 0:
            self._set_state(CONNECTED)
            print("[MQTT] Connected Successfully.")
            self._connack_rc = 0
            self._connack.set()
            if self.on_ready is not None:
                self.on_ready()
        else:
            self._set_state(CONNECTING)
            print(f"[MQTT] Connection Failed! Code: {rc}")
            self._connack_rc = rc
            self._connack.set()

    def _on_disconnect(self, client, userdata, flags, rc, properties=None):
        with self._state_lock:
            was_connected = self.state == CONNECTED
            self.state = DISCONNECTED
        if was_connected and rc != 0:
            print(f"[MQTT] WARNING: Disconnected unexpectedly (code {rc}), reconnecting...")

    def _wait_for_connack(self, stop_event):
        """Return the CONNACK code, or None on timeout or shutdown."""
        deadline = time.monotonic() + CONNACK_TIMEOUT
        while not self._connack.wait(CONNACK_POLL):
            if stop_event.is_set() or time.monotonic() >= deadline:
                return None
        return self._connack_rc

    def _abort_attempt(self):
        self.client.disconnect()
        self.client.loop_stop()
        self._set_state(DISCONNECTED)

    def initial_connect(self, stop_event):
        """Block until the broker accepts a connection or `stop_event` is set.

        Returns True once connected (the network loop is then running),
        False if shutdown was requested first.
        """
        host = self.settings["host"]
        port = self.settings["port"]
        keepalive = int(self.settings.get("keepalive") or 60)
        print(f"[STARTUP] Connecting to MQTT Broker at {host}:{port}...")

        while not stop_event.is_set():
            self._set_state(CONNECTING)
            self._connack.clear()
            self._connack_rc = None
            try:
                self.client.connect(host, port, keepalive)
            except OSError as e:
                self._set_state(DISCONNECTED)
                print(f"[MQTT] connect error: {e}")
                if stop_event.wait(CONNECT_RETRY_INTERVAL):
                    break
                continue

            self.client.loop_start()
            rc = self._wait_for_connack(stop_event)
            if rc == 0:
                return True
            self._abort_attempt()
            if stop_event.is_set():
                break
            if rc is None:
                print(f"[MQTT] connect error: no CONNACK within {CONNACK_TIMEOUT:g}s")
            else:
                print(f"[MQTT] connect error: broker refused connection (code {rc})")
            if stop_event.wait(CONNECT_RETRY_INTERVAL):
                break
        return False

    def disconnect(self):
        """Announce 'offline' and close the connection cleanly."""
        if self.state == CONNECTED:
            info = self.client.publish(self.base_topic, "offline", qos=MUST_QOS, retain=False)
            try:
                info.wait_for_publish(timeout=OFFLINE_PUBLISH_TIMEOUT)
            except (RuntimeError, ValueError) as e:
                print(f"[MQTT] WARNING: offline status not delivered: {e}")
        self.client.disconnect()
        self.client.loop_stop()
        self._set_state(DISCONNECTED)
