# tests/test_main_logging_helpers.py
import builtins

import main


def test_get_source_color_branches():
    assert main.get_source_color("MQTT") == main.c_magenta
    assert main.get_source_color("STARTUP") == main.c_magenta
    assert main.get_source_color("SHUTDOWN") == main.c_magenta
    assert main.get_source_color("SYNC") == main.c_magenta
    assert main.get_source_color("DISCOVERY") == main.c_blue
    assert main.get_source_color("WAN") == main.c_cyan


def _capture(monkeypatch):
    captured = []

    class FakeNow:
        def strftime(self, _fmt):
            return "12:34:56"

    class FakeDateTime:
        @staticmethod
        def now():
            return FakeNow()

    monkeypatch.setattr(main, "datetime", FakeDateTime)
    monkeypatch.setattr(main, "_original_print", lambda msg, *a, **k: captured.append(msg))
    return captured


def test_timestamped_print_formats_info_and_tags(monkeypatch):
    captured = _capture(monkeypatch)

    main.timestamped_print("[STARTUP] Loaded module 'wan'")

    (line,) = captured
    assert line.startswith(f"{main.c_dim}[12:34:56]{main.c_reset}")
    assert "INFO" in line
    assert f"{main.c_magenta}STARTUP{main.c_reset}" in line
    assert "Loaded module 'wan'" in line


def test_timestamped_print_headers(monkeypatch):
    captured = _capture(monkeypatch)

    main.timestamped_print("CRITICAL: can't find mac")
    main.timestamped_print("[MQTT] WARNING: Disconnected unexpectedly")
    main.timestamped_print("[DEBUG] raw payload")

    error, warn, debug = captured
    assert "ERROR" in error and "CRITICAL:" not in error
    assert "WARN" in warn and "WARNING:" not in warn
    assert "DEBUG" in debug and "[DEBUG]" not in debug


def test_install_print_hook_replaces_builtin_print(monkeypatch):
    monkeypatch.setattr(builtins, "print", main._original_print)

    main.install_print_hook()

    assert builtins.print is main.timestamped_print
