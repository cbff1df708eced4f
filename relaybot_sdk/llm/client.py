"""
ModelClient — 对接外部 LLM 的薄封装。

LLM 调用通过注入的异步函数完成，不绑定具体 provider:

    async def complete_fn(messages, tools=None, **options):
        response = await openai_client.chat.completions.create(
            messages=messages, tools=tools, **options,
        )
        return response.choices[0].message

    async def stream_fn(messages, **options):
        stream = await openai_client.chat.completions.create(
            messages=messages, stream=True, **options,
        )
        async for chunk in stream:
            yield chunk.choices[0].delta.content or ""

complete_fn 的返回值可以是对象或 dict，只需带 ``content`` / ``tool_calls``。
options（model / temperature / max_tokens 等）以关键字参数转发给两个函数。
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from dataclasses import dataclass, field
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Tuple,
)

from relaybot_sdk.context.prompt import build_summary_prompt
from relaybot_sdk.llm.retry import retry_with_backoff
from relaybot_sdk.tools.registry import ToolRegistry

logger = logging.getLogger("relaybot_sdk.llm")

# complete_fn(messages, tools, **options) / stream_fn(messages, **options)
CompleteFn = Callable[..., Awaitable[Any]]
StreamFn = Callable[..., AsyncIterator[str]]
# sink 可以是同步或异步函数
ChunkSink = Callable[[str], Any]

EMPTY_REPLY = "I apologize, but I couldn't generate a response."


@dataclass
class CompletionResult:
    """Final model output for one request.

    Attributes:
        text: Reply text.
        tool_calls: Names of the tools the model invoked.
        streamed: True if produced by the streaming path.
    """

    text: str
    tool_calls: List[str] = field(default_factory=list)
    streamed: bool = False


class ModelClient:
    """Calls the model with retry, streaming and tool handling.

    Parameters:
        complete_fn: ``async (messages, tools) -> message``.
        stream_fn: Optional ``(messages) -> async iterator of str``.
        tool_registry: Tools offered to the model; None disables tools.
        retry_attempts: Attempts for the first completion (default 3).
        retry_initial_delay: First backoff delay in seconds (default 1.0).
        stream_chunk_size: Characters buffered before the sink is called
            (default 50).
        options: Keyword arguments forwarded on every model call, e.g.
            ``model`` / ``temperature`` / ``max_tokens``.
        sleep: Backoff sleep; injectable for tests.
    """

    def __init__(
        self,
        complete_fn: CompleteFn,
        stream_fn: Optional[StreamFn] = None,
        tool_registry: Optional[ToolRegistry] = None,
        retry_attempts: int = 3,
        retry_initial_delay: float = 1.0,
        stream_chunk_size: int = 50,
        options: Optional[Dict[str, Any]] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.complete_fn = complete_fn
        self.stream_fn = stream_fn
        self.tool_registry = tool_registry
        self.retry_attempts = retry_attempts
        self.retry_initial_delay = retry_initial_delay
        self.stream_chunk_size = stream_chunk_size
        self.options: Dict[str, Any] = dict(options or {})
        self._sleep = sleep

    @property
    def supports_streaming(self) -> bool:
        return self.stream_fn is not None

    async def _call(self, messages: List[Dict], tools: Optional[List[Dict]], attempts: int) -> Any:
        return await retry_with_backoff(
            lambda: self.complete_fn(messages, tools, **self.options),
            max_attempts=attempts,
            initial_delay=self.retry_initial_delay,
            sleep=self._sleep,
        )

    # ─── 非流式 ───

    async def complete(self, messages: List[Dict], use_tools: bool = True) -> CompletionResult:
        """One completion; executes tool calls and asks again if needed."""
        tools = None
        if use_tools and self.tool_registry is not None and len(self.tool_registry) > 0:
            tools = self.tool_registry.to_openai_schema()

        response = await self._call(messages, tools, self.retry_attempts)
        content = _get_attr(response, "content")
        tool_calls = _get_attr(response, "tool_calls") or []

        if not tool_calls:
            return CompletionResult(text=content or EMPTY_REPLY)

        assistant_msg: Dict[str, Any] = {
            "role": "assistant",
            "content": content or "",
            "tool_calls": _serialize_tool_calls(tool_calls),
        }
        followup = list(messages) + [assistant_msg]
        names: List[str] = []
        for tc in tool_calls:
            name, result_msg = await self._run_tool_call(tc)
            names.append(name)
            followup.append(result_msg)

        second = await self._call(followup, None, max(1, self.retry_attempts - 1))
        text = _get_attr(second, "content")
        return CompletionResult(text=text or EMPTY_REPLY, tool_calls=names)

    async def _run_tool_call(self, tc: Any) -> Tuple[str, Dict[str, Any]]:
        call_id = _get_attr(tc, "id") or ""
        func = _get_attr(tc, "function") or tc
        name = _get_attr(func, "name") or ""
        raw_args = _get_attr(func, "arguments") or "{}"
        try:
            args = json.loads(raw_args) if isinstance(raw_args, str) else dict(raw_args)
        except (json.JSONDecodeError, TypeError, ValueError):
            args = {}

        logger.info("Executing function: %s %s", name, args)
        try:
            if self.tool_registry is None:
                raise KeyError(f"Tool not found: {name}")
            result = await self.tool_registry.execute(name, args)
        except Exception as e:
            logger.warning("Tool %s failed: %s", name, e)
            result = {"error": str(e)}

        content = result if isinstance(result, str) else json.dumps(result, ensure_ascii=False)
        return name, {"role": "tool", "tool_call_id": call_id, "name": name, "content": content}

    # ─── 流式 ───

    async def stream(self, messages: List[Dict], sink: Optional[ChunkSink] = None) -> CompletionResult:
        """Stream a completion, forwarding buffered chunks to *sink*.

        Falls back to :meth:`complete` if the stream fails or streaming is
        not configured.
        """
        if self.stream_fn is None:
            return await self.complete(messages)

        parts: List[str] = []
        buffer = ""
        try:
            async for fragment in self.stream_fn(messages, **self.options):
                if not fragment:
                    continue
                parts.append(fragment)
                buffer += fragment
                if len(buffer) >= self.stream_chunk_size:
                    await _emit(sink, buffer)
                    buffer = ""
            if buffer:
                await _emit(sink, buffer)
        except Exception as e:
            logger.error("Streaming error, falling back to completion: %s", e)
            return await self.complete(messages)

        return CompletionResult(text="".join(parts) or EMPTY_REPLY, streamed=True)

    # ─── 摘要 ───

    async def summarize(self, conversation_text: str) -> str:
        """Summarize older history; used by ``HistoryOptimizer.summarize``."""
        result = await self.complete(
            [{"role": "user", "content": build_summary_prompt(conversation_text)}],
            use_tools=False,
        )
        return result.text


# ──────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────


async def _emit(sink: Optional[ChunkSink], chunk: str) -> None:
    if sink is None:
        return
    result = sink(chunk)
    if inspect.isawaitable(result):
        await result


def _get_attr(obj: Any, key: str, default: Any = None) -> Any:
    """Get attribute or dict key."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _serialize_tool_calls(tool_calls: Any) -> List[Dict]:
    result = []
    for tc in tool_calls:
        func = _get_attr(tc, "function") or tc
        args = _get_attr(func, "arguments") or "{}"
        result.append({
            "id": _get_attr(tc, "id") or "",
            "type": "function",
            "function": {
                "name": _get_attr(func, "name") or "",
                "arguments": args if isinstance(args, str) else json.dumps(args),
            },
        })
    return result
