"""Function calling 工具。"""

from relaybot_sdk.tools.registry import (
    ToolDef,
    ToolRegistry,
    default_registry,
    get_current_time,
    set_reminder,
)

__all__ = [
    "ToolDef",
    "ToolRegistry",
    "default_registry",
    "get_current_time",
    "set_reminder",
]
