"""Tests for the retrying completion adapter and its providers."""
import asyncio
import json

import httpx
import pytest

from api.shared.exceptions import UpstreamUnavailableError
from conftest import UPSTREAM_URL, http_resource
from llm.adapter import CompletionAdapter
from llm.providers import (
    CompletionMessage,
    CompletionProvider,
    EchoCompletionProvider,
    MockCompletionProvider,
    OllamaCompletionProvider,
)

HISTORY = [
    CompletionMessage(role="user", content="hello"),
    CompletionMessage(role="assistant", content="hi"),
    CompletionMessage(role="user", content="how are you?"),
]


def flaky_handler(failures: int, failure=None):
    """Fail the first `failures` POSTs, then answer with a completion."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) <= failures:
            if failure is not None:
                raise failure(request)
            return httpx.Response(500, text="upstream exploded")
        return httpx.Response(200, json={"completion": "fine, thanks"})

    handler.calls = calls
    return handler


async def build_adapter(handler, provider=None, **kwargs):
    delays = []

    async def fake_sleep(seconds: float) -> None:
        delays.append(seconds)

    http = http_resource(handler)
    await http.init()
    adapter = CompletionAdapter(
        provider or MockCompletionProvider(UPSTREAM_URL),
        http,
        sleep=fake_sleep,
        **kwargs,
    )
    return adapter, http, delays


@pytest.mark.asyncio
@pytest.mark.parametrize("failures", [0, 1, 2])
async def test_recovers_within_attempt_budget(failures):
    handler = flaky_handler(failures)
    adapter, http, delays = await build_adapter(handler)
    try:
        result = await adapter.complete(HISTORY)
    finally:
        await http.shutdown()

    assert result.completion == "fine, thanks"
    assert len(handler.calls) == failures + 1
    assert delays == [1.0, 2.0][:failures]


@pytest.mark.asyncio
async def test_gives_up_after_three_failures():
    handler = flaky_handler(3)
    adapter, http, delays = await build_adapter(handler)
    try:
        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await adapter.complete(HISTORY)
    finally:
        await http.shutdown()

    assert len(handler.calls) == 3
    # no sleep after the final attempt
    assert delays == [1.0, 2.0]
    assert exc_info.value.attempts == 3
    assert exc_info.value.provider == "mock"
    assert "500" in exc_info.value.message


@pytest.mark.asyncio
async def test_timeouts_count_as_failed_attempts():
    def timeout(request):
        return httpx.ReadTimeout("timed out", request=request)

    handler = flaky_handler(2, failure=timeout)
    adapter, http, delays = await build_adapter(handler)
    try:
        result = await adapter.complete(HISTORY)
    finally:
        await http.shutdown()

    assert result.completion == "fine, thanks"
    assert delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_connection_errors_exhaust_budget():
    def refused(request):
        return httpx.ConnectError("connection refused", request=request)

    handler = flaky_handler(10, failure=refused)
    adapter, http, _ = await build_adapter(handler, max_attempts=2, backoff_base_seconds=0.5)
    try:
        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await adapter.complete(HISTORY)
    finally:
        await http.shutdown()

    assert len(handler.calls) == 2
    assert "connection refused" in exc_info.value.message


@pytest.mark.asyncio
async def test_missing_completion_field_is_retried():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(200, json={"unexpected": True})
        return httpx.Response(200, json={"completion": "ok"})

    adapter, http, delays = await build_adapter(handler)
    try:
        result = await adapter.complete(HISTORY)
    finally:
        await http.shutdown()

    assert result.completion == "ok"
    assert delays == [1.0]


def test_backoff_doubles_per_attempt():
    adapter = CompletionAdapter(EchoCompletionProvider(), http=None, backoff_base_seconds=0.25)
    assert [adapter.backoff_delay(i) for i in range(4)] == [0.25, 0.5, 1.0, 2.0]


def test_rejects_empty_attempt_budget():
    with pytest.raises(ValueError):
        CompletionAdapter(EchoCompletionProvider(), http=None, max_attempts=0)


@pytest.mark.asyncio
async def test_mock_provider_flattens_history():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"completion": "sure"})

    adapter, http, _ = await build_adapter(handler)
    try:
        await adapter.complete(HISTORY)
    finally:
        await http.shutdown()

    assert seen["url"] == UPSTREAM_URL
    assert seen["body"] == {
        "content": "user: hello\nassistant: hi\nuser: how are you?"
    }


@pytest.mark.asyncio
async def test_ollama_provider_uses_chat_api():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"message": {"role": "assistant", "content": "from ollama"}, "done": True},
        )

    provider = OllamaCompletionProvider("http://ollama.test/", "llama3")
    adapter, http, _ = await build_adapter(handler, provider=provider)
    try:
        result = await adapter.complete(HISTORY)
    finally:
        await http.shutdown()

    assert result.completion == "from ollama"
    assert seen["url"] == "http://ollama.test/api/chat"
    assert seen["body"]["model"] == "llama3"
    assert seen["body"]["stream"] is False
    assert seen["body"]["messages"][-1] == {"role": "user", "content": "how are you?"}


@pytest.mark.asyncio
async def test_echo_provider_repeats_last_user_message():
    handler = flaky_handler(0)
    adapter, http, _ = await build_adapter(handler, provider=EchoCompletionProvider())
    try:
        result = await adapter.complete(HISTORY)
    finally:
        await http.shutdown()

    assert result.completion == "Echo: how are you?"
    assert handler.calls == []


@pytest.mark.asyncio
async def test_probe_is_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503)

    adapter, http, delays = await build_adapter(handler)
    try:
        with pytest.raises(UpstreamUnavailableError):
            await adapter.probe()
    finally:
        await http.shutdown()

    assert len(calls) == 1
    assert delays == []


class StallingProvider(CompletionProvider):
    """Hangs for the first `stalls` calls, like an upstream trickling bytes."""

    name = "stalling"

    def __init__(self, stalls: int):
        self.stalls = stalls
        self.calls = 0

    async def complete(self, client, history):
        self.calls += 1
        if self.calls <= self.stalls:
            await asyncio.sleep(10)
        return "finally"


@pytest.mark.asyncio
async def test_attempt_deadline_bounds_whole_call():
    provider = StallingProvider(stalls=1)
    adapter, http, delays = await build_adapter(
        flaky_handler(0), provider=provider, timeout_seconds=0.05
    )
    try:
        result = await adapter.complete(HISTORY)
    finally:
        await http.shutdown()

    assert result.completion == "finally"
    assert provider.calls == 2
    assert delays == [1.0]


@pytest.mark.asyncio
async def test_stalled_upstream_exhausts_budget():
    provider = StallingProvider(stalls=3)
    adapter, http, delays = await build_adapter(
        flaky_handler(0), provider=provider, timeout_seconds=0.05
    )
    try:
        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await adapter.complete(HISTORY)
    finally:
        await http.shutdown()

    assert provider.calls == 3
    assert delays == [1.0, 2.0]
    assert "TimeoutError" in exc_info.value.message
