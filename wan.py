# wan.py
"""
FILE: wan.py
DESCRIPTION:
  WAN connectivity module (registered as 'wan').
  - link: binary_sensor on {base}/wan, 'online' when a lookup via CloudFlare DNS succeeds.
  - ip:   sensor on {base}/wan/ip, public address as reported by OpenDNS.
  - Each entity is refreshed by its own Poller; periodic refreshes only publish changes.
"""
import socket

import dns.exception
import dns.resolver

from config import ConfigError
from poller import Poller
from syncer import Discoverable, EntityConfig, Syncer
from utils import parse_duration

PROBE_TIMEOUT = 10.0

CLOUDFLARE_DNS = "1.1.1.1"
LINK_PROBE_HOST = "www.google.com"
OPENDNS_RESOLVER_HOST = "resolver1.opendns.com"
MYIP_HOST = "myip.opendns.com"

WAN_ENTITIES = ("link", "ip")
DEFAULT_PERIODS = {
    "link": 60.0,
    "ip": 15 * 60.0,
}


def online_string(online):
    return "online" if online else "offline"


def _resolver(nameserver, timeout):
    r = dns.resolver.Resolver(configure=False)
    r.nameservers = [nameserver]
    r.lifetime = timeout
    return r


def get_link(timeout=PROBE_TIMEOUT):
    """True when the WAN can reach a public DNS server and resolve a name."""
    try:
        _resolver(CLOUDFLARE_DNS, timeout).resolve(LINK_PROBE_HOST, "A")
    except (dns.exception.DNSException, OSError):
        return False
    return True


def get_ip(timeout=PROBE_TIMEOUT):
    """Public IP address, or 'unknown' if it cannot be determined."""
    try:
        # Assumes the default resolver works; the lookup itself goes to OpenDNS.
        opendns = socket.gethostbyname(OPENDNS_RESOLVER_HOST)
        answer = _resolver(opendns, timeout).resolve(MYIP_HOST, "A")
    except (dns.exception.DNSException, OSError):
        return "unknown"
    for rr in answer:
        return rr.to_text()
    return "unknown"


def _period(settings, entity):
    section = settings.get(entity) or {}
    raw = section.get("period") if isinstance(section, dict) else None
    if raw in (None, ""):
        raw = settings.get("period")
    if raw in (None, ""):
        return DEFAULT_PERIODS[entity]
    try:
        return parse_duration(raw)
    except ValueError as e:
        raise ConfigError(f"wan.{entity}.period: {e}") from e


class WAN(Syncer, Discoverable):
    def __init__(self, settings=None, link_probe=get_link, ip_probe=get_ip, autostart=True):
        super().__init__()
        settings = settings or {}
        wanted = settings.get("entities") or list(WAN_ENTITIES)
        if isinstance(wanted, str):
            wanted = [e.strip() for e in wanted.split(",") if e.strip()]
        self.entities = set()
        for e in wanted:
            if e in WAN_ENTITIES:
                self.entities.add(e)
            else:
                print(f"[WAN] WARNING: ignoring unknown entity '{e}'")

        self._link_probe = link_probe
        self._ip_probe = ip_probe
        self.online = False
        self.ip = "unknown"

        self.link_poller = None
        self.ip_poller = None
        if "link" in self.entities:
            self.link_poller = Poller(_period(settings, "link"), self.refresh_link, name="wan-link")
        if "ip" in self.entities:
            self.ip_poller = Poller(_period(settings, "ip"), self.refresh_ip, name="wan-ip")
        if autostart:
            self.start()

    def start(self):
        for p in self._pollers():
            p.start()

    def _pollers(self):
        return [p for p in (self.link_poller, self.ip_poller) if p is not None]

    def refresh_link(self, forced=False):
        online = bool(self._link_probe())
        if online != self.online or forced:
            self.online = online
            self.ps.publish("", online_string(self.online))

    def refresh_ip(self, forced=False):
        ip = self._ip_probe()
        if ip != self.ip or forced:
            self.ip = ip
            self.ps.publish("/ip", self.ip)

    def publish(self):
        if "link" in self.entities:
            self.ps.publish("", online_string(self.online))
        if "ip" in self.entities:
            self.ps.publish("/ip", self.ip)

    def close(self):
        for p in self._pollers():
            p.close()

    def config(self):
        entities = []
        if "link" in self.entities:
            cfg = {
                "name": "WAN",
                "state_topic": "~/wan",
                "device_class": "connectivity",
                "payload_on": "online",
                "payload_off": "offline",
            }
            entities.append(EntityConfig("link", "binary_sensor", cfg))
        if "ip" in self.entities:
            cfg = {
                "name": "WAN IP",
                "state_topic": "~/wan/ip",
            }
            if "link" in self.entities:
                cfg["availability"] = [
                    {"topic": "~"},
                    {"topic": "~/wan"},
                ]
                cfg["availability_mode"] = "all"
            entities.append(EntityConfig("ip", "sensor", cfg))
        return entities


def new_wan(settings):
    return WAN(settings)
