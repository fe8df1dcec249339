# discovery.py
"""
FILE: discovery.py
DESCRIPTION:
  Home Assistant MQTT discovery.
  - Builds the topic -> JSON payload map once at startup (identity never changes at runtime).
  - advertise() republishes the cached map verbatim; it is safe to repeat.
  - normalise_config() merges the shared base fields into an entity config
    without overriding anything the module set itself.
"""
import copy
import json

from pubsub import MUST_QOS
from syncer import is_discoverable
from utils import clean_mac, get_system_mac

NODE_ID_TEMPLATE = "{{.NodeId}}"
UNIQUE_ID_PREFIX = "dnrt-"


class DiscoveryError(RuntimeError):
    """Discovery cannot be built (no MAC, or an unserialisable payload)."""


def substitute_node_id(value, node_id):
    """Replace the node id template in every string within `value`."""
    if isinstance(value, str):
        return value.replace(NODE_ID_TEMPLATE, node_id)
    if isinstance(value, dict):
        return {k: substitute_node_id(v, node_id) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [substitute_node_id(v, node_id) for v in value]
    return value


def normalise_config(cfg, base_cfg, node_id=""):
    """Return the canonical JSON payload for one entity."""
    merged = copy.deepcopy(dict(cfg))
    for key, value in base_cfg.items():
        if key not in merged:
            merged[key] = copy.deepcopy(value)

    if "availability_topic" not in merged and "availability" not in merged:
        merged["availability_topic"] = "~"
    # An entity whose state is the base topic would report its own availability.
    if merged.get("state_topic") == "~":
        merged.pop("availability_topic", None)

    merged = substitute_node_id(merged, node_id)
    try:
        return json.dumps(merged, sort_keys=True, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        raise DiscoveryError(f"failed to marshal JSON: {e}") from e


def entity_unique_id(uid, module_name, entity_name):
    parts = [uid]
    if module_name:
        parts.append(module_name)
    parts.append(entity_name)
    return "-".join(parts)


def build_entities(modules, base_topic, prefix, node_id, mac, unique_id=None):
    """Compute the discovery topic -> payload map.

    `modules` maps module name ("" for the root module) to module instance.
    Pure: identical inputs give byte-identical output.
    """
    ents = {}
    if not prefix:
        return ents
    uid = unique_id or UNIQUE_ID_PREFIX + clean_mac(mac)
    device = {
        "name": node_id,
        "connections": [["mac", mac]],
    }
    for mod_name, module in modules.items():
        if not is_discoverable(module):
            continue
        for entity in module.config():
            euid = entity_unique_id(uid, mod_name, entity.name)
            topic = "/".join([prefix, entity.cls, euid, "config"])
            base_cfg = {
                "~": base_topic,
                "device": device,
                "unique_id": euid,
                "object_id": "_".join([node_id, mod_name, entity.name]),
            }
            ents[topic] = normalise_config(entity.config, base_cfg, node_id)
    return ents


class Discovery:
    def __init__(self, ents=None):
        # topic -> JSON payload; read-only after construction
        self.ents = dict(ents or {})

    def __len__(self):
        return len(self.ents)

    def advertise(self, client):
        if not self.ents:
            return
        print("[DISCOVERY] advertise for ha discovery")
        for topic, payload in self.ents.items():
            client.publish(topic, payload, qos=MUST_QOS, retain=False)


def new_discovery(modules, base_topic, prefix, node_id, mac_source,
                  unique_id=None, sys_root="/sys/class/net"):
    """Build the Discovery for the active modules, or an empty one if disabled."""
    if not prefix:
        print("[DISCOVERY] Discovery disabled (no prefix configured).")
        return Discovery()
    mac = get_system_mac(mac_source, sys_root=sys_root)
    if mac is None:
        raise DiscoveryError(f"can't find mac (tried {', '.join(mac_source or []) or 'no interfaces'})")
    ents = build_entities(modules, base_topic, prefix, node_id, mac, unique_id=unique_id)
    print(f"[DISCOVERY] {len(ents)} entities for node '{node_id}' (mac {mac})")
    return Discovery(ents)
