"""
ToolRegistry — function calling 工具注册表。

工具以 JSON Schema 描述参数，通过 to_openai_schema() 导出给模型；
模型返回 tool_calls 后由 execute() 分发到对应 handler。
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime
from datetime import timezone as dt_timezone
from typing import Any, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger("relaybot_sdk.tools")


@dataclass
class ToolDef:
    """A registered tool.

    Attributes:
        name: Unique tool name.
        description: Shown to the model.
        parameters: JSON Schema object describing the arguments.
        handler: Sync or async callable receiving the arguments as kwargs.
    """

    name: str
    description: str
    parameters: Dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    handler: Optional[Callable[..., Any]] = None

    def to_openai_schema(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ToolRegistry:
    """Registry of callable tools.

    Usage::

        registry = ToolRegistry()
        registry.register(ToolDef(
            name="echo",
            description="Echo the input",
            parameters={"type": "object", "properties": {"text": {"type": "string"}}},
            handler=lambda text: text,
        ))
        result = await registry.execute("echo", {"text": "hi"})
    """

    def __init__(self) -> None:
        self._tools: Dict[str, ToolDef] = {}

    def register(self, tool_def: ToolDef) -> ToolDef:
        if tool_def.name in self._tools:
            logger.warning("Tool %r already registered, overwriting", tool_def.name)
        self._tools[tool_def.name] = tool_def
        return tool_def

    def get(self, name: str) -> Optional[ToolDef]:
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools.keys())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def to_openai_schema(self) -> List[Dict[str, Any]]:
        """Export all tools in the ``tools=`` format of chat completions."""
        return [t.to_openai_schema() for t in self._tools.values()]

    async def execute(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Any:
        """Run tool *name*. Raises KeyError for unknown tools."""
        tool_def = self._tools.get(name)
        if tool_def is None or tool_def.handler is None:
            raise KeyError(f"Tool not found: {name}")
        result = tool_def.handler(**(arguments or {}))
        if inspect.isawaitable(result):
            result = await result
        return result


# ──────────────────────────────────────────────
# 内置工具
# ──────────────────────────────────────────────


def get_current_time(timezone: str = "UTC") -> Dict[str, str]:
    """Current wall-clock time in an IANA timezone."""
    if timezone.upper() == "UTC":
        tz = dt_timezone.utc
    else:
        try:
            tz = ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError):
            return {"error": f"Unknown timezone: {timezone}"}
    now = datetime.now(tz)
    return {"time": now.strftime("%Y-%m-%d %H:%M:%S"), "timezone": timezone}


def set_reminder(message: str, time: str) -> Dict[str, Any]:
    # 仅记录，不真正调度
    logger.info("Reminder set: %s at %s", message, time)
    return {
        "success": True,
        "message": "Reminder set successfully",
        "reminder": message,
        "time": time,
    }


def default_registry() -> ToolRegistry:
    """Registry pre-loaded with ``get_current_time`` and ``set_reminder``."""
    registry = ToolRegistry()
    registry.register(ToolDef(
        name="get_current_time",
        description="Get the current time in a specific timezone",
        parameters={
            "type": "object",
            "properties": {
                "timezone": {
                    "type": "string",
                    "description": "IANA timezone (e.g., America/New_York, Europe/London)",
                    "default": "UTC",
                },
            },
        },
        handler=get_current_time,
    ))
    registry.register(ToolDef(
        name="set_reminder",
        description="Set a reminder for the user",
        parameters={
            "type": "object",
            "properties": {
                "message": {"type": "string", "description": "Reminder message"},
                "time": {
                    "type": "string",
                    "description": 'When to remind (e.g., "in 1 hour", "tomorrow at 3pm")',
                },
            },
            "required": ["message", "time"],
        },
        handler=set_reminder,
    ))
    return registry
