# tests/test_config.py
import pytest

import config


@pytest.fixture(autouse=True)
def restore_config():
    saved = config.SETTINGS
    yield
    config.apply_settings(saved)


def _no_file_env(tmp_path, **extra):
    env = {"DUNNART_CONFIG_FILE": str(tmp_path / "missing.yaml")}
    env.update(extra)
    return env


def test_defaults_when_no_file_and_no_env(tmp_path):
    settings = config.load_settings(environ=_no_file_env(tmp_path), hostname="pi")

    config.apply_settings(settings)
    assert config.MODULES == []
    assert config.PERIOD is None
    assert config.BASE_TOPIC == "dunnart/pi"
    assert config.NODE_ID == "pi"
    assert config.HA_BIRTH_TOPIC == "homeassistant/status"
    assert config.DISCOVERY_PREFIX == "homeassistant"
    assert config.STATUS_DELAY == 15.0
    assert config.RESYNC_MIN_INTERVAL == 0.0
    assert config.MAC_SOURCE == ["eth0", "enp3s0", "wlan0"]
    assert config.UNIQUE_ID is None
    assert config.MQTT_SETTINGS["host"] is None


def test_yaml_file_overrides_defaults_and_keeps_the_rest(tmp_path):
    path = tmp_path / "dunnart.yaml"
    path.write_text(
        "modules: [wan]\n"
        "period: 2m\n"
        "mqtt:\n"
        "  broker: tcp://broker.lan:1884\n"
        "  username: bob\n"
        "homeassistant:\n"
        "  discovery:\n"
        "    status_delay: 500ms\n"
        "wan:\n"
        "  ip:\n"
        "    period: 1h\n"
    )

    settings = config.load_settings(str(path), environ={}, hostname="pi")
    config.apply_settings(settings)

    assert config.MODULES == ["wan"]
    assert config.PERIOD == 120.0
    assert config.MQTT_SETTINGS["host"] == "broker.lan"
    assert config.MQTT_SETTINGS["port"] == 1884
    assert config.MQTT_SETTINGS["user"] == "bob"
    assert config.STATUS_DELAY == 0.5
    # Untouched keys in the same section survive the merge.
    assert config.DISCOVERY_PREFIX == "homeassistant"
    assert config.MODULE_SETTINGS == {"wan": {"ip": {"period": "1h"}}}


def test_env_beats_file(tmp_path):
    path = tmp_path / "dunnart.yaml"
    path.write_text("modules: [wan]\nmqtt:\n  broker: file-broker\n")
    env = {
        "DUNNART_MQTT_BROKER": "env-broker:1999",
        "DUNNART_MODULES": "wan, other ,",
        "DUNNART_HOMEASSISTANT_DISCOVERY_NODE_ID": "garage",
        "DUNNART_VERBOSE": "false",
    }

    config.apply_settings(config.load_settings(str(path), environ=env, hostname="pi"))

    assert config.MQTT_SETTINGS["host"] == "env-broker"
    assert config.MQTT_SETTINGS["port"] == 1999
    assert config.MODULES == ["wan", "other"]
    assert config.NODE_ID == "garage"
    assert config.VERBOSE is False


def test_explicit_missing_file_is_an_error(tmp_path):
    with pytest.raises(config.ConfigError, match="not found"):
        config.load_settings(str(tmp_path / "nope.yaml"), environ={})


def test_non_mapping_file_is_an_error(tmp_path):
    path = tmp_path / "dunnart.yaml"
    path.write_text("- just\n- a list\n")

    with pytest.raises(config.ConfigError, match="mapping"):
        config.load_settings(str(path), environ={})


@pytest.mark.parametrize(
    "override",
    [
        {"period": "soon"},
        {"homeassistant": {"discovery": {"status_delay": "-5s"}}},
        {"mqtt": {"broker": "broker:notaport"}},
        {"modules": ["wan"], "wan": "fast"},
        {"mqtt": {"keepalive": "1m"}},
        {"mqtt": {"keepalive": [60]}},
        {"mqtt": {"keepalive": -5}},
    ],
)
def test_apply_settings_rejects_bad_values(override):
    settings = config.merge_settings(config.default_settings("pi"), override)

    with pytest.raises(config.ConfigError):
        config.apply_settings(settings)


def test_merge_settings_does_not_mutate_inputs():
    base = {"a": {"b": 1, "c": 2}}
    merged = config.merge_settings(base, {"a": {"b": 5}})

    assert merged == {"a": {"b": 5, "c": 2}}
    assert base == {"a": {"b": 1, "c": 2}}


def test_env_overrides_ignore_unprefixed_variables():
    overrides = config.env_overrides({"DUNNART_PERIOD": "30s", "HOME": "/root"})
    assert overrides == {"period": "30s"}


def test_env_reaches_every_key_including_module_sections(tmp_path):
    env = _no_file_env(
        tmp_path,
        DUNNART_MODULES="wan",
        DUNNART_MQTT_KEEPALIVE="30",
        DUNNART_HOMEASSISTANT_DISCOVERY_RESYNC_MIN_INTERVAL="1m",
        DUNNART_HOMEASSISTANT_DISCOVERY_MAC_SOURCE="eth1, wlan1",
        DUNNART_WAN_ENTITIES="link",
        DUNNART_WAN_IP_PERIOD="2h",
    )

    config.apply_settings(config.load_settings(environ=env, hostname="pi"))

    assert config.MQTT_SETTINGS["keepalive"] == 30
    assert config.RESYNC_MIN_INTERVAL == 60.0
    assert config.MAC_SOURCE == ["eth1", "wlan1"]
    assert config.MODULE_SETTINGS == {"wan": {"entities": ["link"], "ip": {"period": "2h"}}}


def test_env_overrides_nested_file_section(tmp_path):
    path = tmp_path / "dunnart.yaml"
    path.write_text("modules: [wan]\nwan:\n  link:\n    period: 1m\n  entities: [link, ip]\n")

    settings = config.load_settings(str(path), environ={"DUNNART_WAN_LINK_PERIOD": "10s"})
    config.apply_settings(settings)

    assert config.MODULE_SETTINGS["wan"] == {"link": {"period": "10s"}, "entities": ["link", "ip"]}


@pytest.mark.parametrize(
    "name, expected",
    [
        ("DUNNART_MQTT_BASE_TOPIC", "mqtt.base_topic"),
        ("DUNNART_HOMEASSISTANT_BIRTH_MESSAGE_TOPIC", "homeassistant.birth_message_topic"),
        ("DUNNART_HOMEASSISTANT_DISCOVERY_STATUS_DELAY", "homeassistant.discovery.status_delay"),
        ("DUNNART_WAN_LINK_PERIOD", "wan.link.period"),
        ("DUNNART_PERIOD_EXTRA", None),
        ("DUNNART_", None),
    ],
)
def test_env_key_path(name, expected):
    assert config.env_key_path(name, config.default_settings("pi")) == expected
