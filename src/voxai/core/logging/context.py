"""
Request context and shared logging state.

The request id lives in a ContextVar so that concurrent requests on the
same event loop keep their own correlation id. The remaining state
(level, resolved config, configured flag) is process-wide.

Environment Variables:
    - VOXAI_LOG_LEVEL: Log level (1-4 or name)
    - VOXAI_LOG_DIR: Directory for the JSONL log file
    - VOXAI_JSONL_FILE: JSONL log filename
    - VOXAI_LOG_ROTATE_BYTES: Max file size before rotation
    - VOXAI_LOG_ROTATE_BACKUP: Number of rotated files to keep
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

import yaml

from .levels import LEVEL_NAMES, LogLevel

_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    """Request id for the current context, "-" outside a request."""
    return _request_id.get()


def set_request_id(rid: str) -> None:
    """Bind a request id to the current context for log correlation."""
    _request_id.set(rid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def get_level_name() -> str:
    return LEVEL_NAMES.get(_current_level, "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def _env_int(name: str) -> int | None:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def read_logging_config() -> Dict[str, Any]:
    """
    Resolve logging options from settings.yaml and the environment.

    The settings file is read directly (not through load_settings) so
    that logging can come up before the rest of the configuration is
    validated. A missing or unreadable file leaves the defaults.

    Returns:
        Dictionary with level, log_dir, jsonl_file and rotation options.
    """
    cfg: Dict[str, Any] = {}

    settings_path = os.getenv("VOXAI_SETTINGS", "config/settings.yaml")
    try:
        with open(settings_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        cfg.update(raw.get("logging", {}) or {})
    except (OSError, yaml.YAMLError, AttributeError):
        pass

    if os.getenv("VOXAI_LOG_LEVEL"):
        cfg["level"] = os.environ["VOXAI_LOG_LEVEL"]
    if os.getenv("VOXAI_LOG_DIR"):
        cfg["log_dir"] = os.environ["VOXAI_LOG_DIR"]
    if os.getenv("VOXAI_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["VOXAI_JSONL_FILE"]

    rotate_bytes = _env_int("VOXAI_LOG_ROTATE_BYTES")
    if rotate_bytes is not None:
        cfg["rotate_max_bytes"] = rotate_bytes
    rotate_backup = _env_int("VOXAI_LOG_ROTATE_BACKUP")
    if rotate_backup is not None:
        cfg["rotate_backup_count"] = rotate_backup

    return cfg
