# status.py
"""
FILE: status.py
DESCRIPTION:
  The root module (module name ""): bridge availability and version.
  - {base}          -> 'online' (the last will flips it to 'offline')
  - {base}/version  -> running version
"""
from syncer import Discoverable, EntityConfig, Syncer


class SystemStatus(Syncer, Discoverable):
    def __init__(self, version="undefined"):
        super().__init__()
        self.version = version

    def publish(self):
        self.ps.publish("", "online")
        self.ps.publish("/version", self.version)

    def config(self):
        cfg = {
            "name": "status",
            "object_id": "{{.NodeId}}_status",
            "state_topic": "~",
            "device_class": "connectivity",
            "payload_on": "online",
            "payload_off": "offline",
        }
        return [EntityConfig("status", "binary_sensor", cfg)]
