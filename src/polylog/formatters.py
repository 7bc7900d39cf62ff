"""
Console formatter and color utilities.
"""

from __future__ import annotations

from datetime import datetime, timezone

from structlog.typing import EventDict

# =============================================================================
# Console Formatter (Aligned Columns)
# =============================================================================

COLORS = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "timestamp": "\033[90m",
    "category": "\033[35m",
    "key": "\033[34m",
}


def colorize(text: str, color: str) -> str:
    """Apply ANSI color to text."""
    return f"{COLORS.get(color, '')}{text}{COLORS['reset']}"


class ConsoleFormatter:
    """Human-readable console rendering (fixed width, right-aligned columns)."""

    _RESET = "\x1b[0m"
    _LEVEL_COLORS = {
        "FAIL": "\x1b[1;31m",
        "ERROR": "\x1b[31m",
        "WARN": "\x1b[33m",
        "INFO": "\x1b[32m",
        "MORE": "\x1b[36m",
        "VERBOSE": "\x1b[34m",
        "HTTP": "\x1b[35m",
        "DEBUG": "\x1b[36m",
        "SILLY": "\x1b[90m",
    }

    EXCLUDED_KEYS = {"level", "message", "category", "timestamp", "tags", "stack", "log_stack"}
    TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
    TIMESTAMP_WIDTH = 19
    LEVEL_WIDTH = 7
    CATEGORY_WIDTH = 24
    SEPARATOR = " | "

    @staticmethod
    def _fit_right(text: str, width: int) -> str:
        if width <= 0:
            return text
        if len(text) > width:
            if width <= 3:
                text = text[-width:]
            else:
                text = "..." + text[-(width - 3) :]
        return f"{text:>{width}}"

    @classmethod
    def _format_timestamp(cls, raw_timestamp: str | None) -> str:
        if raw_timestamp:
            try:
                normalized = raw_timestamp.replace("Z", "+00:00")
                dt = datetime.fromisoformat(normalized)
                if dt.tzinfo is None:
                    dt = dt.replace(tzinfo=timezone.utc)
                return dt.astimezone().strftime(cls.TIMESTAMP_FORMAT)
            except (ValueError, TypeError):
                pass
        return datetime.now().strftime(cls.TIMESTAMP_FORMAT)

    @classmethod
    def _colorize_level(cls, text: str, level_upper: str, use_color: bool) -> str:
        if not use_color:
            return text
        color = cls._LEVEL_COLORS.get(level_upper)
        if not color:
            return text
        return f"{color}{text}{cls._RESET}"

    @staticmethod
    def _maybe_color(text: str, color: str, use_color: bool) -> str:
        if not use_color:
            return text
        return colorize(text, color)

    @classmethod
    def format(cls, event_dict: EventDict, *, use_color: bool = True, show_data: bool = False) -> str:
        """Format an event dict into an aligned string.

        With ``show_data`` every remaining key is appended as ``key=value``
        and stacks are printed on the following lines.
        """
        level_upper = str(event_dict.get("level", "info")).upper()
        message_text = str(event_dict.get("message") or "")
        category = str(event_dict.get("category", ""))

        if show_data:
            extras = []
            for k, v in event_dict.items():
                if k in cls.EXCLUDED_KEYS:
                    continue
                key_colored = cls._maybe_color(k, "key", use_color)
                value_colored = cls._maybe_color(str(v), "dim", use_color)
                extras.append(f"{key_colored}={value_colored}")
            tags = event_dict.get("tags") or []
            if len(tags) > 1:
                extras.insert(0, cls._maybe_color(f"[{' '.join(tags[1:])}]", "dim", use_color))
            if extras:
                message_text = f"{message_text} " + " ".join(extras)

        level_text = cls._colorize_level(cls._fit_right(level_upper, cls.LEVEL_WIDTH), level_upper, use_color)
        timestamp = cls._format_timestamp(event_dict.get("timestamp"))

        line = "".join(
            [
                cls._maybe_color(cls._fit_right(timestamp, cls.TIMESTAMP_WIDTH), "timestamp", use_color),
                cls.SEPARATOR,
                level_text,
                cls.SEPARATOR,
                cls._maybe_color(cls._fit_right(category, cls.CATEGORY_WIDTH), "category", use_color),
                cls.SEPARATOR,
                message_text,
            ]
        )

        if show_data:
            for key in ("stack", "log_stack"):
                stack = event_dict.get(key)
                if stack:
                    line = f"{line}\n{cls._maybe_color(str(stack), 'dim', use_color)}"
        return line
