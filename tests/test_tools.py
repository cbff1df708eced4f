"""
ToolRegistry / 内置工具测试。
"""

import pytest

from relaybot_sdk.tools.registry import (
    ToolDef,
    ToolRegistry,
    default_registry,
    get_current_time,
    set_reminder,
)


class TestToolRegistry:
    def test_register_and_get(self):
        registry = ToolRegistry()
        registry.register(ToolDef(name="echo", description="Echo", handler=lambda text: text))
        assert "echo" in registry
        assert len(registry) == 1
        assert registry.get("echo").description == "Echo"
        assert registry.names() == ["echo"]

    def test_overwrite(self):
        registry = ToolRegistry()
        registry.register(ToolDef(name="t", description="one"))
        registry.register(ToolDef(name="t", description="two"))
        assert len(registry) == 1
        assert registry.get("t").description == "two"

    def test_schema(self):
        registry = ToolRegistry()
        registry.register(ToolDef(name="t", description="d"))
        schema = registry.to_openai_schema()
        assert schema == [{
            "type": "function",
            "function": {
                "name": "t",
                "description": "d",
                "parameters": {"type": "object", "properties": {}},
            },
        }]

    @pytest.mark.asyncio
    async def test_execute_sync(self):
        registry = ToolRegistry()
        registry.register(ToolDef(name="add", description="", handler=lambda a, b: a + b))
        assert await registry.execute("add", {"a": 1, "b": 2}) == 3

    @pytest.mark.asyncio
    async def test_execute_async(self):
        async def greet(name):
            return f"hi {name}"

        registry = ToolRegistry()
        registry.register(ToolDef(name="greet", description="", handler=greet))
        assert await registry.execute("greet", {"name": "bo"}) == "hi bo"

    @pytest.mark.asyncio
    async def test_execute_unknown(self):
        with pytest.raises(KeyError):
            await ToolRegistry().execute("missing")


class TestBuiltinTools:
    def test_default_registry(self):
        assert default_registry().names() == ["get_current_time", "set_reminder"]

    def test_current_time_utc(self):
        result = get_current_time()
        assert result["timezone"] == "UTC"
        assert len(result["time"]) == 19

    def test_current_time_unknown_zone(self):
        assert "error" in get_current_time("Not/AZone")

    def test_set_reminder(self):
        result = set_reminder("call mom", "in 1 hour")
        assert result["success"] is True
        assert result["reminder"] == "call mom"
        assert result["time"] == "in 1 hour"
