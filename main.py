#!/usr/bin/env python3
"""
FILE: main.py
DESCRIPTION:
  The main executable script.
  - Builds the module set, discovery and MQTT connection from config.
  - Runs the sync orchestrator until SIGINT/SIGTERM, then shuts everything down.
"""
import argparse
import builtins
import re
import signal
import sys
import threading
from datetime import datetime
from importlib.metadata import PackageNotFoundError, version

import config
from config import ConfigError
from discovery import DiscoveryError, new_discovery
from mqtt_handler import DunnartMQTT
from orchestrator import SyncOrchestrator
from registry import ModuleRegistry, UnknownModuleError
from status import SystemStatus
from wan import new_wan

# --- 1. GLOBAL LOGGING & COLOR SETUP ---
c_cyan    = "\033[1;36m"   # Bold Cyan (Module tags)
c_magenta = "\033[1;35m"   # Bold Magenta (System Tags / DEBUG Header)
c_blue    = "\033[1;34m"   # Bold Blue (Discovery)
c_green   = "\033[1;32m"   # Bold Green (INFO)
c_yellow  = "\033[1;33m"   # Bold Yellow (WARN Only)
c_red     = "\033[1;31m"   # Bold Red (ERROR)
c_white   = "\033[1;37m"   # Bold White (Brackets / Colons)
c_dim     = "\033[37m"     # Standard White (Timestamp)
c_reset   = "\033[0m"

_original_print = builtins.print

MODULE_FACTORIES = {
    "wan": new_wan,
}


def get_source_color(clean_text):
    clean = clean_text.lower()
    if "mqtt" in clean: return c_magenta
    if "startup" in clean: return c_magenta
    if "shutdown" in clean: return c_magenta
    if "sync" in clean: return c_magenta
    if "discovery" in clean: return c_blue
    return c_cyan


def timestamped_print(*args, **kwargs):
    now = datetime.now().strftime("%H:%M:%S")
    time_prefix = f"{c_dim}[{now}]{c_reset}"
    msg = " ".join(map(str, args))
    lower_msg = msg.lower()

    header = f"{c_green}INFO{c_reset}{c_white}:{c_reset}"
    if any(x in lower_msg for x in ["error", "critical", "failed"]):
        header = f"{c_red}ERROR{c_reset}{c_white}:{c_reset}"
        msg = msg.replace("CRITICAL:", "").replace("ERROR:", "").strip()
    elif "warning" in lower_msg:
        header = f"{c_yellow}WARN{c_reset}{c_white}:{c_reset}"
        msg = msg.replace("WARNING:", "").strip()
    elif "debug" in lower_msg:
        header = f"{c_magenta}DEBUG{c_reset}{c_white}:{c_reset}"
        msg = msg.replace("[DEBUG]", "").replace("[debug]", "").strip()

    match = re.match(r"^\[(.*?)\]\s*(.*)", msg)
    if match:
        src_text = match.group(1)
        rest_of_msg = match.group(2).strip()
        s_color = get_source_color(src_text)
        msg = f"{c_white}[{c_reset}{s_color}{src_text}{c_reset}{c_white}]:{c_reset} {rest_of_msg}"

    kwargs.setdefault("flush", True)
    _original_print(f"{time_prefix} {header} {msg}", **kwargs)


def install_print_hook():
    builtins.print = timestamped_print


def get_version():
    try:
        return version("dunnart")
    except PackageNotFoundError:
        return "undefined"


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="dunnart",
        description="Publish local sensor state to MQTT with Home Assistant discovery.",
    )
    parser.add_argument("-c", "--config-file", help="path to the YAML config file")
    return parser.parse_args(argv)


def fatal(msg):
    print(f"CRITICAL: {msg}")
    sys.exit(1)


def install_signal_handlers(stop_event):
    """Route SIGINT/SIGTERM into stop_event. Returns the previous handlers."""
    def _handler(signum, _frame):
        print(f"\n[SHUTDOWN] Received {signal.Signals(signum).name}")
        stop_event.set()

    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        previous[sig] = signal.signal(sig, _handler)
    return previous


def restore_signal_handlers(previous):
    for sig, handler in previous.items():
        signal.signal(sig, handler)


def module_overrides():
    if config.PERIOD is None:
        return {}
    return {"period": config.PERIOD}


def run(syncers, discovery, stop_event):
    """Connect, then keep modules in sync until stop_event is set."""
    mqtt_handler = DunnartMQTT(config.BASE_TOPIC)
    orchestrator = SyncOrchestrator(
        mqtt_handler.client,
        syncers,
        discovery,
        config.BASE_TOPIC,
        config.HA_BIRTH_TOPIC,
        config.STATUS_DELAY,
        stop_event=stop_event,
        resync_min_interval=config.RESYNC_MIN_INTERVAL,
    )
    mqtt_handler.on_ready = orchestrator.notify_connect

    if not mqtt_handler.initial_connect(stop_event):
        print("[SHUTDOWN] Stopped before the broker connection was established.")
        return

    worker = threading.Thread(target=orchestrator.run, name="sync", daemon=True)
    worker.start()
    try:
        stop_event.wait()
    finally:
        print("[SHUTDOWN] Stopping MQTT...")
        orchestrator.stop()
        worker.join(timeout=5)
        mqtt_handler.disconnect()


def main(argv=None):
    install_print_hook()
    args = parse_args(argv)
    if args.config_file:
        try:
            config.reload(args.config_file)
        except ConfigError as e:
            fatal(e)

    ver = get_version()
    print(f"[STARTUP] dunnart {ver}")
    if not config.MQTT_SETTINGS.get("host"):
        fatal("no MQTT broker configured (mqtt.broker)")

    stop_event = threading.Event()
    previous_handlers = install_signal_handlers(stop_event)
    modules = {}
    try:
        registry = ModuleRegistry(MODULE_FACTORIES)
        try:
            modules = registry.resolve(config.MODULES, config.MODULE_SETTINGS, module_overrides())
        except (UnknownModuleError, ConfigError) as e:
            fatal(e)

        syncers = {"": SystemStatus(ver)}
        syncers.update(modules)

        try:
            discovery = new_discovery(
                syncers,
                config.BASE_TOPIC,
                config.DISCOVERY_PREFIX,
                config.NODE_ID,
                config.MAC_SOURCE,
                unique_id=config.UNIQUE_ID,
            )
        except DiscoveryError as e:
            fatal(f"discovery: {e}")

        run(syncers, discovery, stop_event)
    finally:
        for mod in modules.values():
            mod.close()
        restore_signal_handlers(previous_handlers)
        print("[SHUTDOWN] Done.")


if __name__ == "__main__":
    main()
