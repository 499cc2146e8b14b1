"""Tests for log levels, colors and formatters."""
from __future__ import annotations

import json
import logging

import pytest

from voxai.core.logging import (
    ColoredConsoleFormatter,
    Colors,
    JsonlFormatter,
    LogLevel,
    coerce_level,
    get_request_id,
    get_tag_color,
    set_request_id,
)
from voxai.core.logging import colors
from voxai.core.logging.context import read_logging_config


def _record(msg: str = "deducted", **extra) -> logging.LogRecord:
    record = logging.LogRecord("voxai.test", logging.INFO, __file__, 1, msg, None, None)
    record.tag = "INFO"
    record.request_id = "abc123"
    record.event = None
    record.seconds = None
    record.numeric_level = 2
    record.extra_data = extra or None
    return record


class TestLevels:
    """coerce_level accepts numbers, names and Python levels."""

    @pytest.mark.parametrize("value,expected", [
        (1, LogLevel.MINIMAL),
        (3, LogLevel.VERBOSE),
        ("info", LogLevel.NORMAL),
        ("DEBUG", LogLevel.DEBUG),
        ("4", LogLevel.DEBUG),
        (logging.WARNING, LogLevel.MINIMAL),
        (logging.INFO, LogLevel.NORMAL),
        ("nonsense", LogLevel.NORMAL),
        (None, LogLevel.NORMAL),
    ])
    def test_coerce(self, value, expected):
        assert coerce_level(value) == expected


class TestRequestId:
    def test_set_and_get(self):
        set_request_id("rid-1")
        assert get_request_id() == "rid-1"


class TestJsonlFormatter:
    """One JSON object per line."""

    def test_fields(self):
        line = JsonlFormatter().format(_record(cost=500, balance=19500))
        payload = json.loads(line)
        assert payload["message"] == "deducted"
        assert payload["request_id"] == "abc123"
        assert payload["level"] == 2
        assert payload["extra"] == {"cost": 500, "balance": 19500}

    def test_non_serializable_values(self):
        line = JsonlFormatter().format(_record(obj=object()))
        assert "extra" in json.loads(line)


class TestConsoleFormatter:
    """Credit fields are highlighted when colors are on."""

    @pytest.fixture
    def with_colors(self, monkeypatch):
        monkeypatch.setattr(colors, "USE_COLORS", True)

    @pytest.mark.parametrize("value,color", [
        (0, Colors.RED),
        (500, Colors.YELLOW),
        (19500, Colors.GREEN),
        ("unlimited", Colors.CYAN),
        (None, Colors.CYAN),
    ])
    def test_balance_colors(self, value, color):
        assert ColoredConsoleFormatter()._field_color("balance", value) == color

    def test_cost_is_yellow(self):
        assert ColoredConsoleFormatter()._field_color("cost", 500) == Colors.YELLOW

    def test_colored_output(self, with_colors):
        line = ColoredConsoleFormatter().format(_record(balance=0))
        assert f"{Colors.RED}balance=0{Colors.RESET}" in line
        assert "(abc123)" in line

    def test_plain_output(self, monkeypatch):
        monkeypatch.setattr(colors, "USE_COLORS", False)
        line = ColoredConsoleFormatter().format(_record(cost=5))
        assert "\033[" not in line
        assert line.endswith("deducted cost=5")

    def test_tag_colors(self):
        assert get_tag_color("fail") == Colors.BRIGHT_RED
        assert get_tag_color("unknown") == Colors.WHITE


class TestSupportsColor:
    def test_no_color_env(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "1")
        assert colors.supports_color() is False

    def test_voxai_no_color(self, monkeypatch):
        monkeypatch.setenv("VOXAI_NO_COLOR", "1")
        assert colors.supports_color() is False


class TestReadLoggingConfig:
    """Logging options come from settings.yaml and the environment."""

    def test_reads_yaml_section(self, tmp_path, monkeypatch):
        path = tmp_path / "settings.yaml"
        path.write_text("logging:\n  level: 3\n  log_dir: logs\n", encoding="utf-8")
        monkeypatch.setenv("VOXAI_SETTINGS", str(path))
        cfg = read_logging_config()
        assert cfg["level"] == 3
        assert cfg["log_dir"] == "logs"

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("VOXAI_SETTINGS", str(tmp_path / "missing.yaml"))
        monkeypatch.setenv("VOXAI_LOG_LEVEL", "4")
        monkeypatch.setenv("VOXAI_LOG_ROTATE_BYTES", "1024")
        monkeypatch.setenv("VOXAI_LOG_ROTATE_BACKUP", "not-a-number")
        cfg = read_logging_config()
        assert cfg["level"] == "4"
        assert cfg["rotate_max_bytes"] == 1024
        assert "rotate_backup_count" not in cfg
