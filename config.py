# config.py
"""
FILE: config.py
DESCRIPTION:
  Loads the bridge configuration into module-level constants.
  - Sources (lowest -> highest priority): defaults, dunnart.yaml, DUNNART_* env vars.
  - Durations are converted to seconds here so the rest of the code only sees typed values.
  - reload() recomputes every constant (used by main for the -c flag and by tests).
"""
import copy
import os

import yaml

from utils import get_hostname, parse_broker, parse_duration

DEFAULT_CONFIG_FILE = "dunnart.yaml"


class ConfigError(ValueError):
    """Raised for configuration values that cannot be used."""


def default_settings(hostname=None):
    host = hostname or get_hostname()
    return {
        "modules": [],
        "period": "",
        "verbose": True,
        "mqtt": {
            "broker": "",
            "username": "",
            "password": "",
            "client_id": "",
            "keepalive": 60,
            "base_topic": f"dunnart/{host}",
        },
        "homeassistant": {
            "birth_message_topic": "homeassistant/status",
            "discovery": {
                "prefix": "homeassistant",
                "status_delay": "15s",
                "resync_min_interval": "0s",
                "mac_source": ["eth0", "enp3s0", "wlan0"],
                "node_id": host,
                "unique_id": "",
            },
        },
    }


ENV_PREFIX = "DUNNART_"
# Selects the file itself, so it is not a setting.
ENV_CONFIG_FILE = "DUNNART_CONFIG_FILE"

# Leaf keys that are lists in the YAML but comma-separated strings in the environment.
_LIST_KEYS = {"modules", "mac_source", "entities"}


def merge_settings(base, override):
    """Deep-merge `override` into a copy of `base` (override wins)."""
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_settings(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _set_dotted(settings, dotted, value):
    node = settings
    parts = dotted.split(".")
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[parts[-1]] = value


def _get_dotted(settings, dotted, default=None):
    node = settings
    for part in dotted.split("."):
        if not isinstance(node, dict) or part not in node:
            return default
        node = node[part]
    return node


def read_config_file(path, required=False):
    if not os.path.exists(path):
        if required:
            raise ConfigError(f"config file not found: {path}")
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"failed to read config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return data


def env_key_path(name, settings):
    """Map an env var to a dotted key, e.g. DUNNART_MQTT_BASE_TOPIC -> mqtt.base_topic.

    Each level takes the longest key already present in `settings`; anything
    past the known keys (module sections) is split on '_'.
    """
    tokens = name[len(ENV_PREFIX):].lower().split("_")
    parts = []
    node = settings
    while tokens:
        match = 0
        if isinstance(node, dict):
            for n in range(len(tokens), 0, -1):
                if "_".join(tokens[:n]) in node:
                    match = n
                    break
        if not match:
            if not isinstance(node, dict):
                # Past a scalar leaf.
                return None
            parts.extend(tokens)
            break
        key = "_".join(tokens[:match])
        parts.append(key)
        node = node[key]
        tokens = tokens[match:]
    if not all(parts):
        return None
    return ".".join(parts)


def env_overrides(environ, settings=None):
    """Every DUNNART_* variable (except the config file selector) as an override."""
    if settings is None:
        settings = default_settings()
    overrides = {}
    for env_key in sorted(environ):
        if not env_key.startswith(ENV_PREFIX) or env_key == ENV_CONFIG_FILE:
            continue
        dotted = env_key_path(env_key, settings)
        if dotted is None:
            continue
        value = environ[env_key]
        if dotted.rsplit(".", 1)[-1] in _LIST_KEYS:
            value = [v.strip() for v in value.split(",") if v.strip()]
        _set_dotted(overrides, dotted, value)
    return overrides


def load_settings(path=None, environ=None, hostname=None):
    """Return the merged raw settings dict (defaults < file < env)."""
    environ = os.environ if environ is None else environ
    required = path is not None
    if path is None:
        path = environ.get(ENV_CONFIG_FILE, DEFAULT_CONFIG_FILE)
    settings = default_settings(hostname)
    settings = merge_settings(settings, read_config_file(path, required=required))
    settings = merge_settings(settings, env_overrides(environ, settings))
    return settings


def _as_bool(value):
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _as_list(value):
    if value is None or value == "":
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return [str(v) for v in value]


def _duration(settings, dotted):
    raw = _get_dotted(settings, dotted)
    try:
        return parse_duration(raw)
    except ValueError as e:
        raise ConfigError(f"{dotted}: {e}") from e


def apply_settings(settings):
    """Populate the module-level constants from a raw settings dict."""
    global MODULES, PERIOD, VERBOSE, MQTT_SETTINGS, BASE_TOPIC, HA_BIRTH_TOPIC
    global DISCOVERY_PREFIX, STATUS_DELAY, RESYNC_MIN_INTERVAL, MAC_SOURCE
    global NODE_ID, UNIQUE_ID, MODULE_SETTINGS, SETTINGS

    mqtt_cfg = settings.get("mqtt") or {}
    broker = str(mqtt_cfg.get("broker") or "").strip()
    host, port = None, None
    if broker:
        try:
            host, port = parse_broker(broker)
        except ValueError as e:
            raise ConfigError(f"mqtt.broker: {e}") from e

    try:
        keepalive = int(mqtt_cfg.get("keepalive") or 60)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"mqtt.keepalive: {e}") from e
    if keepalive <= 0:
        raise ConfigError(f"mqtt.keepalive: must be positive, got {keepalive}")

    period = settings.get("period")
    if period in (None, ""):
        PERIOD = None
    else:
        PERIOD = _duration(settings, "period")

    MODULES = _as_list(settings.get("modules"))
    VERBOSE = _as_bool(settings.get("verbose", True))
    MQTT_SETTINGS = {
        "host": host,
        "port": port,
        "user": str(mqtt_cfg.get("username") or ""),
        "pass": str(mqtt_cfg.get("password") or ""),
        "client_id": str(mqtt_cfg.get("client_id") or ""),
        "keepalive": keepalive,
    }
    BASE_TOPIC = str(mqtt_cfg.get("base_topic") or "")
    HA_BIRTH_TOPIC = str(_get_dotted(settings, "homeassistant.birth_message_topic") or "")
    DISCOVERY_PREFIX = str(_get_dotted(settings, "homeassistant.discovery.prefix") or "")
    STATUS_DELAY = _duration(settings, "homeassistant.discovery.status_delay")
    RESYNC_MIN_INTERVAL = _duration(settings, "homeassistant.discovery.resync_min_interval")
    MAC_SOURCE = _as_list(_get_dotted(settings, "homeassistant.discovery.mac_source"))
    NODE_ID = str(_get_dotted(settings, "homeassistant.discovery.node_id") or "")
    UNIQUE_ID = str(_get_dotted(settings, "homeassistant.discovery.unique_id") or "") or None

    # Every module section is keyed by its module name at the top level.
    module_settings = {}
    for name in MODULES:
        section = settings.get(name) or {}
        if not isinstance(section, dict):
            raise ConfigError(f"{name}: module settings must be a mapping")
        module_settings[name] = dict(section)
    MODULE_SETTINGS = module_settings
    SETTINGS = settings


def reload(path=None, environ=None):
    apply_settings(load_settings(path, environ))


MODULES = []
PERIOD = None
VERBOSE = True
MQTT_SETTINGS = {}
BASE_TOPIC = ""
HA_BIRTH_TOPIC = ""
DISCOVERY_PREFIX = ""
STATUS_DELAY = 0.0
RESYNC_MIN_INTERVAL = 0.0
MAC_SOURCE = []
NODE_ID = ""
UNIQUE_ID = None
MODULE_SETTINGS = {}
SETTINGS = {}

try:
    reload()
except ConfigError as e:
    # main() reloads and reports; keep importable with defaults.
    print(f"[CONFIG] WARNING: {e}")
    apply_settings(default_settings())
