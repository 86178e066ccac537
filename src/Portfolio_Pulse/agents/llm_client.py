"""Async chat client for a local Ollama server.

``ollama.Client`` is synchronous, so each request runs in a worker thread via
``asyncio.to_thread()`` under an ``asyncio.wait_for`` deadline. Reasoning
models wrap their scratchpad in ``<think>`` tags; those blocks are removed
before the text is returned.

Transient failures (connection refused, 5xx answers) are retried on the
``backoff_delays`` schedule. A missing model (404) or a rate-limit answer (429)
is raised on the first occurrence: retrying the first is pointless and the
second is the batch scheduler's job, which owns the cooldown.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Sequence
from typing import Literal

import httpx
import ollama
from pydantic import BaseModel, ConfigDict

from Portfolio_Pulse.config import (
    DEFAULT_CALL_TIMEOUT_SECONDS,
    DEFAULT_OLLAMA_HOST,
    DEFAULT_OLLAMA_MODEL,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

NUM_CTX: int = 8192
HTTP_NOT_FOUND: int = 404
HTTP_TOO_MANY_REQUESTS: int = 429

DEFAULT_BACKOFF_DELAYS: tuple[float, ...] = (1.0, 2.0, 4.0)

_THINK_BLOCK_RE: re.Pattern[str] = re.compile(r"<think>.*?</think>", re.DOTALL)
_CONNECTION_ERRORS: tuple[type[Exception], ...] = (httpx.ConnectError, ConnectionRefusedError)
_FATAL_STATUSES: frozenset[int] = frozenset({HTTP_NOT_FOUND, HTTP_TOO_MANY_REQUESTS})

Role = Literal["system", "user", "assistant"]


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class ChatMessage(BaseModel):
    """One turn of a chat request."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


class LLMResponse(BaseModel):
    """Completion text plus the usage figures Ollama reports."""

    model_config = ConfigDict(frozen=True)

    content: str
    model: str
    input_tokens: int
    output_tokens: int
    duration_ms: int

    @classmethod
    def from_chat_response(cls, response: ollama.ChatResponse, fallback_model: str) -> LLMResponse:
        """Strip ``<think>`` blocks and read token counts, defaulting missing ones to 0."""
        text = response.message.content or ""
        return cls(
            content=_THINK_BLOCK_RE.sub("", text).strip(),
            model=response.model or fallback_model,
            input_tokens=response.prompt_eval_count or 0,
            output_tokens=response.eval_count or 0,
            duration_ms=(response.total_duration or 0) // 1_000_000,
        )


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, ollama.ResponseError):
        return exc.status_code not in _FATAL_STATUSES
    return isinstance(exc, _CONNECTION_ERRORS)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class LLMClient:
    """Chat completions against one Ollama model.

    Parameters
    ----------
    host:
        Ollama server URL.
    model:
        Model tag sent with every request, e.g. ``"llama3.1:8b"``.
    client:
        Pre-built ``ollama.Client``; tests inject a mock.
    backoff_delays:
        Seconds to sleep before each retry. One attempt is made per entry,
        plus the first.
    """

    def __init__(
        self,
        host: str = DEFAULT_OLLAMA_HOST,
        model: str = DEFAULT_OLLAMA_MODEL,
        *,
        client: ollama.Client | None = None,
        backoff_delays: Sequence[float] = DEFAULT_BACKOFF_DELAYS,
    ) -> None:
        self._host = host
        self._model = model
        self._client: ollama.Client = client or ollama.Client(host=host)
        self._backoff_delays = tuple(backoff_delays)

    @property
    def model(self) -> str:
        return self._model

    async def chat(
        self,
        messages: Sequence[ChatMessage],
        *,
        timeout: float = DEFAULT_CALL_TIMEOUT_SECONDS,
    ) -> LLMResponse:
        """Run one completion and return its cleaned-up text.

        Parameters
        ----------
        messages:
            Full conversation, system prompt first.
        timeout:
            Deadline in seconds for each attempt.

        Raises
        ------
        TimeoutError
            An attempt ran past *timeout*. Not retried.
        ollama.ResponseError
            The server refused the request (404 and 429 immediately, other
            statuses once the retries are spent).
        httpx.ConnectError
            The server stayed unreachable through every retry.
        """
        payload = [message.model_dump() for message in messages]
        attempts = len(self._backoff_delays) + 1

        for attempt in range(1, attempts + 1):
            try:
                raw = await self._send(payload, timeout=timeout)
            except (ollama.ResponseError, *_CONNECTION_ERRORS) as exc:
                if not _is_retryable(exc) or attempt == attempts:
                    logger.error(
                        "Ollama call failed at %s (attempt %d/%d): %s",
                        self._host,
                        attempt,
                        attempts,
                        exc,
                    )
                    raise
                delay = self._backoff_delays[attempt - 1]
                logger.warning(
                    "Ollama call failed (attempt %d/%d), retrying in %.0fs: %s",
                    attempt,
                    attempts,
                    delay,
                    exc,
                )
                await asyncio.sleep(delay)
                continue

            response = LLMResponse.from_chat_response(raw, self._model)
            logger.info(
                "LLM response: model=%s in=%d out=%d took=%dms",
                response.model,
                response.input_tokens,
                response.output_tokens,
                response.duration_ms,
            )
            return response

        msg = "unreachable: the retry loop either returns or raises"
        raise AssertionError(msg)

    async def _send(
        self,
        payload: list[dict[str, str]],
        *,
        timeout: float,
    ) -> ollama.ChatResponse:
        def _blocking_chat() -> ollama.ChatResponse:
            return self._client.chat(
                model=self._model,
                messages=payload,
                format="",
                stream=False,
                options={"num_ctx": NUM_CTX},
            )

        return await asyncio.wait_for(asyncio.to_thread(_blocking_chat), timeout=timeout)
