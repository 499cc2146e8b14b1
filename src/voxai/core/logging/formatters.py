"""
Log formatters for file and console output.

    JsonlFormatter: one JSON object per line, for the rotating log file.
    ColoredConsoleFormatter: human-readable line for the terminal.

Output Examples:
    JSONL:
        {"ts":"2026-01-15T14:30:05+00:00","level":2,"tag":"INFO","message":"deducted","request_id":"abc123","extra":{"cost":500,"balance":19500}}

    Console:
        14:30:05 [ INFO  ] (abc123) deducted cost=500 balance=19500

Console colors for credit fields:
    - cost: yellow
    - balance: green, yellow below 1000, red at 0, cyan for unlimited
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict

from . import colors
from .colors import Colors, get_tag_color

LOW_BALANCE_THRESHOLD = 1000


def _paint(text: str, color: str) -> str:
    # Read the flag at call time so configure_logging() and tests can toggle it.
    if not colors.USE_COLORS:
        return text
    return f"{color}{text}{Colors.RESET}"


class JsonlFormatter(logging.Formatter):
    """
    Format records as single-line JSON.

    Fields: ts, level (1-4), tag, message, request_id, and when present
    event, seconds and extra.
    """

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).astimezone().isoformat()

        payload: Dict[str, Any] = {
            "ts": ts,
            "level": getattr(record, "numeric_level", 2),
            "tag": getattr(record, "tag", record.levelname),
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }

        event = getattr(record, "event", None)
        if event:
            payload["event"] = event

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            payload["seconds"] = seconds

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            payload["extra"] = extra_data

        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """
    Format records as colored console lines.

    Format:
        HH:MM:SS [ TAG   ] (rid) message key=value 0.123s
    """

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tag = getattr(record, "tag", record.levelname)
        rid = getattr(record, "request_id", "-")
        msg = record.getMessage()

        parts = [_paint(ts, Colors.DIM), _paint(f"[{tag:^7}]", get_tag_color(tag))]
        if rid != "-":
            parts.append(_paint(f"({rid})", Colors.DIM + Colors.CYAN))
        parts.append(msg)

        event = getattr(record, "event", None)
        if event:
            parts.append(_paint(f"event={event}", Colors.BLUE))

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            if seconds < 0.1:
                time_color = Colors.GREEN
            elif seconds < 1.0:
                time_color = Colors.YELLOW
            else:
                time_color = Colors.RED
            parts.append(_paint(f"{seconds:.3f}s", time_color))

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            for k, v in extra_data.items():
                parts.append(_paint(f"{k}={v}", self._field_color(k, v)))

        return " ".join(parts)

    def _field_color(self, key: str, value: Any) -> str:
        """Color for a structured field; credit fields are highlighted."""
        if key in ("cost", "required", "amount"):
            return Colors.YELLOW

        if key in ("balance", "available"):
            if value is None or value == "unlimited":
                return Colors.CYAN
            if isinstance(value, (int, float)):
                if value <= 0:
                    return Colors.RED
                if value < LOW_BALANCE_THRESHOLD:
                    return Colors.YELLOW
                return Colors.GREEN

        if key == "state":
            if value == "completed":
                return Colors.GREEN
            if value in ("failed", "cancelled"):
                return Colors.RED
            return Colors.MAGENTA

        return Colors.DIM
