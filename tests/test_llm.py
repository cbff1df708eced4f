"""
ModelClient / retry_with_backoff 测试 — 重试、鉴权不重试、tool calls、流式分块。
"""

import json

import pytest

from relaybot_sdk.errors import AuthorizationError, UpstreamError, is_authorization_error
from relaybot_sdk.llm.client import EMPTY_REPLY, ModelClient
from relaybot_sdk.llm.retry import retry_with_backoff
from relaybot_sdk.tools.registry import default_registry


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class Flaky:
    """Fails *failures* times, then returns *result*."""

    def __init__(self, failures, result="ok", error=None):
        self.failures = failures
        self.result = result
        self.error = error or UpstreamError("busy", status=503)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.result


# ══════════════════════════════════════════════
# errors
# ══════════════════════════════════════════════

class StatusCodeError(Exception):
    def __init__(self, status_code):
        super().__init__(f"http {status_code}")
        self.status_code = status_code


class TestAuthorizationDetection:
    def test_own_error(self):
        assert is_authorization_error(AuthorizationError())

    def test_foreign_status_code(self):
        assert is_authorization_error(StatusCodeError(403))
        assert not is_authorization_error(StatusCodeError(500))

    def test_upstream_status(self):
        assert is_authorization_error(UpstreamError("x", status=401))
        assert not is_authorization_error(UpstreamError("x", status=429))

    def test_plain_error(self):
        assert not is_authorization_error(RuntimeError("x"))


# ══════════════════════════════════════════════
# retry_with_backoff
# ══════════════════════════════════════════════

class TestRetry:
    @pytest.mark.asyncio
    async def test_success_first_try(self):
        sleep = SleepRecorder()
        fn = Flaky(0)
        assert await retry_with_backoff(fn, sleep=sleep) == "ok"
        assert fn.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_recovers_with_backoff(self):
        sleep = SleepRecorder()
        fn = Flaky(2)
        assert await retry_with_backoff(fn, max_attempts=3, initial_delay=1.0, sleep=sleep) == "ok"
        assert fn.calls == 3
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhausted_raises_last_error(self):
        sleep = SleepRecorder()
        fn = Flaky(5)
        with pytest.raises(UpstreamError):
            await retry_with_backoff(fn, max_attempts=3, initial_delay=0.5, sleep=sleep)
        assert fn.calls == 3
        assert sleep.delays == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_exhausted_raises_final_instance(self):
        errors = [UpstreamError(f"fail {i}", status=503) for i in range(3)]
        calls = []

        async def fn():
            calls.append(1)
            raise errors[len(calls) - 1]

        with pytest.raises(UpstreamError) as exc_info:
            await retry_with_backoff(fn, max_attempts=3, sleep=SleepRecorder())
        assert exc_info.value is errors[2]

    @pytest.mark.asyncio
    async def test_zero_attempts_still_calls_once(self):
        sleep = SleepRecorder()
        fn = Flaky(5)
        with pytest.raises(UpstreamError):
            await retry_with_backoff(fn, max_attempts=0, sleep=sleep)
        assert fn.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_authorization_not_retried(self):
        sleep = SleepRecorder()
        fn = Flaky(5, error=AuthorizationError())
        with pytest.raises(AuthorizationError):
            await retry_with_backoff(fn, max_attempts=3, sleep=sleep)
        assert fn.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_foreign_forbidden_not_retried(self):
        fn = Flaky(5, error=StatusCodeError(403))
        with pytest.raises(StatusCodeError):
            await retry_with_backoff(fn, max_attempts=3, sleep=SleepRecorder())
        assert fn.calls == 1


# ══════════════════════════════════════════════
# ModelClient.complete
# ══════════════════════════════════════════════

class ScriptedModel:
    """Returns the queued responses in order and records each request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []
        self.options = []

    async def __call__(self, messages, tools=None, **options):
        self.requests.append((list(messages), tools))
        self.options.append(options)
        return self.responses.pop(0)


class TestComplete:
    @pytest.mark.asyncio
    async def test_plain_reply(self):
        model = ScriptedModel({"content": "hello"})
        client = ModelClient(model)
        result = await client.complete([{"role": "user", "content": "hi"}])
        assert result.text == "hello"
        assert result.tool_calls == []
        assert model.requests[0][1] is None

    @pytest.mark.asyncio
    async def test_options_forwarded_to_every_call(self):
        first = {
            "content": None,
            "tool_calls": [{"id": "c", "function": {"name": "set_reminder",
                                                    "arguments": '{"message": "m", "time": "t"}'}}],
        }
        model = ScriptedModel(first, {"content": "done"})
        client = ModelClient(
            model,
            tool_registry=default_registry(),
            options={"model": "my-model", "temperature": 0.3},
        )

        await client.complete([{"role": "user", "content": "remind me"}])

        assert model.options == [{"model": "my-model", "temperature": 0.3}] * 2

    @pytest.mark.asyncio
    async def test_empty_reply(self):
        client = ModelClient(ScriptedModel({"content": None}))
        result = await client.complete([{"role": "user", "content": "hi"}])
        assert result.text == EMPTY_REPLY

    @pytest.mark.asyncio
    async def test_tools_offered(self):
        model = ScriptedModel({"content": "ok"})
        client = ModelClient(model, tool_registry=default_registry())
        await client.complete([{"role": "user", "content": "hi"}])
        names = [t["function"]["name"] for t in model.requests[0][1]]
        assert names == ["get_current_time", "set_reminder"]

    @pytest.mark.asyncio
    async def test_tool_call_round_trip(self):
        first = {
            "content": None,
            "tool_calls": [{
                "id": "call_1",
                "function": {"name": "get_current_time", "arguments": '{"timezone": "UTC"}'},
            }],
        }
        model = ScriptedModel(first, {"content": "It is noon."})
        client = ModelClient(model, tool_registry=default_registry())

        result = await client.complete([{"role": "user", "content": "time?"}])

        assert result.text == "It is noon."
        assert result.tool_calls == ["get_current_time"]
        followup, tools = model.requests[1]
        assert tools is None
        assert followup[1]["role"] == "assistant"
        assert followup[1]["tool_calls"][0]["function"]["name"] == "get_current_time"
        tool_msg = followup[2]
        assert tool_msg["role"] == "tool"
        assert tool_msg["tool_call_id"] == "call_1"
        assert json.loads(tool_msg["content"])["timezone"] == "UTC"

    @pytest.mark.asyncio
    async def test_unknown_tool_reports_error(self):
        first = {
            "content": "",
            "tool_calls": [{"id": "c", "function": {"name": "nope", "arguments": "{}"}}],
        }
        model = ScriptedModel(first, {"content": "sorry"})
        client = ModelClient(model, tool_registry=default_registry())

        result = await client.complete([{"role": "user", "content": "x"}])

        assert result.text == "sorry"
        assert "error" in json.loads(model.requests[1][0][-1]["content"])

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        calls = []

        async def model(messages, tools=None):
            calls.append(1)
            if len(calls) < 2:
                raise UpstreamError("busy", status=503)
            return {"content": "done"}

        sleep = SleepRecorder()
        client = ModelClient(model, retry_attempts=3, retry_initial_delay=1.0, sleep=sleep)
        result = await client.complete([{"role": "user", "content": "x"}])
        assert result.text == "done"
        assert sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_object_response(self):
        class Reply:
            content = "from object"
            tool_calls = None

        client = ModelClient(ScriptedModel(Reply()))
        result = await client.complete([{"role": "user", "content": "x"}])
        assert result.text == "from object"

    @pytest.mark.asyncio
    async def test_summarize(self):
        model = ScriptedModel({"content": "short summary"})
        client = ModelClient(model, tool_registry=default_registry())
        assert await client.summarize("user: hi") == "short summary"
        messages, tools = model.requests[0]
        assert tools is None
        assert messages[0]["content"].endswith("user: hi")


# ══════════════════════════════════════════════
# ModelClient.stream
# ══════════════════════════════════════════════

def _stream_of(*fragments, fail_after=None, seen_options=None):
    async def stream_fn(messages, **options):
        if seen_options is not None:
            seen_options.append(options)
        for i, fragment in enumerate(fragments):
            if fail_after is not None and i == fail_after:
                raise UpstreamError("stream broke")
            yield fragment
    return stream_fn


class TestStream:
    @pytest.mark.asyncio
    async def test_chunks_buffered(self):
        chunks = []
        client = ModelClient(
            ScriptedModel(),
            stream_fn=_stream_of("a" * 30, "b" * 30, "", "c" * 10),
            stream_chunk_size=50,
        )

        result = await client.stream([{"role": "user", "content": "x"}], chunks.append)

        assert chunks == ["a" * 30 + "b" * 30, "c" * 10]
        assert result.text == "a" * 30 + "b" * 30 + "c" * 10
        assert result.streamed

    @pytest.mark.asyncio
    async def test_async_sink(self):
        chunks = []

        async def sink(chunk):
            chunks.append(chunk)

        client = ModelClient(ScriptedModel(), stream_fn=_stream_of("hi"), stream_chunk_size=50)
        await client.stream([], sink)
        assert chunks == ["hi"]

    @pytest.mark.asyncio
    async def test_failure_falls_back(self):
        model = ScriptedModel({"content": "fallback"})
        client = ModelClient(model, stream_fn=_stream_of("a", "b", fail_after=1))
        result = await client.stream([{"role": "user", "content": "x"}], None)
        assert result.text == "fallback"
        assert not result.streamed

    @pytest.mark.asyncio
    async def test_without_stream_fn(self):
        client = ModelClient(ScriptedModel({"content": "plain"}))
        assert not client.supports_streaming
        result = await client.stream([], None)
        assert result.text == "plain"

    @pytest.mark.asyncio
    async def test_options_forwarded_to_stream(self):
        seen = []
        client = ModelClient(
            ScriptedModel(),
            stream_fn=_stream_of("hi", seen_options=seen),
            options={"model": "my-model"},
        )
        await client.stream([], None)
        assert seen == [{"model": "my-model"}]

    @pytest.mark.asyncio
    async def test_empty_stream(self):
        client = ModelClient(ScriptedModel(), stream_fn=_stream_of())
        result = await client.stream([], None)
        assert result.text == EMPTY_REPLY
