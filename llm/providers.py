"""Completion providers.

Each provider turns an ordered conversation history into one upstream call
and extracts the completion text from that upstream's response shape. A
provider never retries; `llm.adapter.CompletionAdapter` owns that.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence

import httpx
from pydantic import BaseModel, Field


class CompletionMessage(BaseModel):
    """One history entry as sent upstream."""

    role: str = Field(description="Message role: user or assistant")
    content: str = Field(description="Message content")


class UpstreamResponseError(Exception):
    """The upstream answered, but not with a usable completion."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _check_status(response: httpx.Response) -> None:
    if response.status_code >= 500:
        raise UpstreamResponseError(
            f"upstream returned {response.status_code} error",
            status_code=response.status_code,
        )
    response.raise_for_status()


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise UpstreamResponseError("response body is not valid JSON") from e


class CompletionProvider(ABC):
    """Capability shared by every provider: history in, completion text out."""

    name: str = "provider"

    @abstractmethod
    async def complete(
        self, client: httpx.AsyncClient, history: Sequence[CompletionMessage]
    ) -> str:
        """Issue exactly one upstream call and return the completion text."""

    async def probe(self, client: httpx.AsyncClient) -> None:
        """Cheap reachability check used by readiness; raises on failure."""


class EchoCompletionProvider(CompletionProvider):
    """Deterministic provider that never leaves the process."""

    name = "echo"

    async def complete(
        self, client: httpx.AsyncClient, history: Sequence[CompletionMessage]
    ) -> str:
        last_user = next(
            (m.content for m in reversed(history) if m.role == "user"), ""
        )
        return f"Echo: {last_user}"


class MockCompletionProvider(CompletionProvider):
    """Mock LLM server: flattened transcript in, `{"completion": ...}` out."""

    name = "mock"

    def __init__(self, url: str):
        self.url = url

    @staticmethod
    def build_payload(history: Sequence[CompletionMessage]) -> Dict[str, Any]:
        content = "\n".join(f"{m.role}: {m.content}" for m in history)
        return {"content": content}

    async def complete(
        self, client: httpx.AsyncClient, history: Sequence[CompletionMessage]
    ) -> str:
        response = await client.post(self.url, json=self.build_payload(history))
        _check_status(response)
        data = _json_body(response) or {}
        completion = data.get("completion") if isinstance(data, dict) else None
        if not isinstance(completion, str):
            raise UpstreamResponseError("response has no 'completion' field")
        return completion

    async def probe(self, client: httpx.AsyncClient) -> None:
        response = await client.get(self.url)
        if response.status_code >= 500:
            raise UpstreamResponseError(
                f"upstream returned {response.status_code} error",
                status_code=response.status_code,
            )


class OllamaCompletionProvider(CompletionProvider):
    """Ollama chat API (`POST /api/chat`, non-streaming)."""

    name = "ollama"

    def __init__(self, base_url: str, model: str):
        self.base_url = base_url.rstrip("/")
        self.model = model

    def build_payload(self, history: Sequence[CompletionMessage]) -> Dict[str, Any]:
        messages: List[Dict[str, str]] = [m.model_dump() for m in history]
        return {"model": self.model, "messages": messages, "stream": False}

    async def complete(
        self, client: httpx.AsyncClient, history: Sequence[CompletionMessage]
    ) -> str:
        response = await client.post(
            f"{self.base_url}/api/chat", json=self.build_payload(history)
        )
        _check_status(response)
        data = _json_body(response) or {}
        try:
            completion = data["message"]["content"]
        except (KeyError, TypeError) as e:
            raise UpstreamResponseError("response has no 'message.content' field") from e
        if not isinstance(completion, str):
            raise UpstreamResponseError("'message.content' is not a string")
        return completion

    async def probe(self, client: httpx.AsyncClient) -> None:
        response = await client.get(f"{self.base_url}/api/tags")
        _check_status(response)
