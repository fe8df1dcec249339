# utils.py
"""
FILE: utils.py
DESCRIPTION:
  Shared helper functions used across the project.
  - parse_duration(): Converts Go-style durations ('15s', '1m', '1h30m') to seconds.
  - parse_broker(): Splits a broker address ('tcp://host:1883') into host and port.
  - get_system_mac(): Reads the bridge MAC from the first usable network interface.
  - clean_mac(): Strips the colons from a MAC for use in unique IDs.
"""
import os
import re
import socket
from urllib.parse import urlsplit

DEFAULT_MQTT_PORT = 1883

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(value):
    """Return a duration in seconds.

    Accepts numbers (already seconds) or Go-style strings made of one or more
    number+unit parts, e.g. '500ms', '15s', '1m', '1h30m'. A bare numeric
    string is read as seconds.
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ValueError(f"negative duration: {value!r}")
        return float(value)

    text = str(value or "").strip()
    if not text:
        raise ValueError("empty duration")
    if re.fullmatch(r"\d+(\.\d+)?", text):
        return float(text)

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text) or pos == 0:
        raise ValueError(f"invalid duration: {value!r}")
    return total


def parse_broker(address):
    """Return (host, port) for 'tcp://host:port', 'host:port' or 'host'."""
    addr = str(address or "").strip()
    if not addr:
        raise ValueError("no broker address configured")
    if "://" not in addr:
        addr = "tcp://" + addr
    parts = urlsplit(addr)
    if not parts.hostname:
        raise ValueError(f"invalid broker address: {address!r}")
    try:
        port = parts.port or DEFAULT_MQTT_PORT
    except ValueError as e:
        raise ValueError(f"invalid broker port in {address!r}") from e
    return parts.hostname, port


def get_hostname():
    try:
        host_id = socket.gethostname()
    except OSError:
        host_id = ""
    return host_id or "dunnart"


def get_system_mac(sources, sys_root="/sys/class/net"):
    """Return the MAC of the first interface in `sources` that can be read.

    Returns None when none of the candidates resolve.
    """
    for source in sources or []:
        path = os.path.join(sys_root, str(source), "address")
        try:
            with open(path, "r", encoding="utf-8") as f:
                mac = f.read().strip()
        except OSError:
            continue
        if mac:
            return mac
    return None


def clean_mac(mac):
    """Drops the colons from a MAC for use in unique IDs ('aa:bb:..' -> 'aabb..').

    Case is kept as read so existing unique IDs stay stable.
    """
    return str(mac).replace(":", "")
