# src/subtap/telemetry/logger/processors.py

"""
Custom structlog processors shared by every subtap log handler.
"""

from typing import Any

from structlog.typing import EventDict, WrappedLogger

LEVEL_EMOJIS = {
    "debug": "🐛",
    "info": "ℹ️",
    "warning": "⚠️",
    "error": "❌",
    "critical": "💥",
}

AREA_EMOJIS = {
    "worker": "👷",
    "ipc": "📨",
    "tap": "📜",
    "report": "🖨️",
    "time": "⏱️",
    "fail": "🚫",
    "general": "➡️",
}

# keys that only steer processors and never reach a renderer
_PROCESSOR_KEYS = ("emoji_key",)


def add_emoji_processor(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Prefixes the event with an emoji chosen by `emoji_key` or by level."""
    key: Any = event_dict.get("emoji_key")
    emoji = AREA_EMOJIS.get(key) if key else None
    if emoji is None:
        emoji = LEVEL_EMOJIS.get(str(event_dict.get("level", method_name)).lower(), "")
    event = event_dict.get("event")
    if emoji and isinstance(event, str):
        event_dict["event"] = f"{emoji} {event}"
    return event_dict


def remove_extra_keys_processor(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    for key in _PROCESSOR_KEYS:
        event_dict.pop(key, None)
    return event_dict


# 🔼⚙️
