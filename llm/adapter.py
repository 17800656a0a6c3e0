"""Retrying completion adapter.

Wraps a single `CompletionProvider` with a fixed attempt budget and
exponential backoff between attempts.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, Sequence

import httpx
import structlog
from pydantic import BaseModel, Field

from api.shared.exceptions import UpstreamUnavailableError
from infra.resources import HttpClientResource
from llm.providers import CompletionMessage, CompletionProvider, UpstreamResponseError

logger = structlog.get_logger("llm.adapter")

MAX_ATTEMPTS = 3
BACKOFF_BASE_SECONDS = 1.0

# Failures that consume an attempt; anything else is a programming error.
RETRYABLE_ERRORS = (httpx.HTTPError, UpstreamResponseError, asyncio.TimeoutError)


class CompletionResult(BaseModel):
    completion: str = Field(description="Generated reply text")


class CompletionAdapter:
    """Provider-agnostic completion client with retry and backoff."""

    def __init__(
        self,
        provider: CompletionProvider,
        http: HttpClientResource,
        *,
        max_attempts: int = MAX_ATTEMPTS,
        backoff_base_seconds: float = BACKOFF_BASE_SECONDS,
        timeout_seconds: Optional[float] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.provider = provider
        self.http = http
        self.max_attempts = max_attempts
        self.backoff_base_seconds = backoff_base_seconds
        # Whole-call deadline per attempt; httpx only bounds each phase.
        self.timeout_seconds = timeout_seconds
        self._sleep = sleep or asyncio.sleep

    @property
    def provider_name(self) -> str:
        return self.provider.name

    def backoff_delay(self, attempt: int) -> float:
        """Delay after the failed attempt with zero-based index `attempt`."""
        return self.backoff_base_seconds * (2**attempt)

    async def complete(self, history: Sequence[CompletionMessage]) -> CompletionResult:
        """Generate a reply for `history`.

        Raises:
            UpstreamUnavailableError: every attempt failed.
        """
        last_error: Optional[BaseException] = None
        for attempt in range(self.max_attempts):
            logger.info(
                "Completion attempt",
                provider=self.provider_name,
                attempt=attempt + 1,
                max_attempts=self.max_attempts,
            )
            try:
                text = await asyncio.wait_for(
                    self.provider.complete(self.http.client, history),
                    timeout=self.timeout_seconds,
                )
            except RETRYABLE_ERRORS as e:
                last_error = e
                if attempt == self.max_attempts - 1:
                    break
                delay = self.backoff_delay(attempt)
                logger.warning(
                    "Completion attempt failed, retrying",
                    provider=self.provider_name,
                    attempt=attempt + 1,
                    delay=delay,
                    error=str(e) or e.__class__.__name__,
                )
                await self._sleep(delay)
                continue

            logger.info(
                "Completion succeeded", provider=self.provider_name, attempt=attempt + 1
            )
            return CompletionResult(completion=text)

        logger.error(
            "Completion failed after all attempts",
            provider=self.provider_name,
            attempts=self.max_attempts,
            error=str(last_error) or last_error.__class__.__name__,
        )
        raise UpstreamUnavailableError(self.provider_name, self.max_attempts, last_error)

    async def probe(self) -> None:
        """Single, non-retried reachability check of the upstream."""
        try:
            await asyncio.wait_for(
                self.provider.probe(self.http.client), timeout=self.timeout_seconds
            )
        except RETRYABLE_ERRORS as e:
            raise UpstreamUnavailableError(self.provider_name, 1, e) from e
