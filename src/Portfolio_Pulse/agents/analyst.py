"""Ollama-backed analyst: one narrative call per instrument, one joint call per run.

Provider failures are translated onto the package's exception taxonomy so the
scheduler can treat every analysis backend the same way:

- ``ollama.ResponseError`` with status 429 -> :class:`RateLimitExceededError`
- any other ``ollama.ResponseError`` -> :class:`UpstreamError`
- ``httpx.ConnectError`` / ``ConnectionRefusedError`` -> :class:`UpstreamError`
- empty content after ``<think>`` stripping -> :class:`InvalidResponseError`

``TimeoutError`` propagates unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx
import ollama

from Portfolio_Pulse.agents.context_builder import build_context_text
from Portfolio_Pulse.agents.llm_client import (
    HTTP_TOO_MANY_REQUESTS,
    ChatMessage,
    LLMClient,
)
from Portfolio_Pulse.agents.prompts import (
    PromptMessage,
    build_joint_messages,
    build_narrative_messages,
)
from Portfolio_Pulse.config import PipelineSettings
from Portfolio_Pulse.models.enums import AnalysisKind
from Portfolio_Pulse.models.market_data import PriceSeries
from Portfolio_Pulse.models.pipeline import NarrativeReport
from Portfolio_Pulse.utils.exceptions import (
    InvalidResponseError,
    RateLimitExceededError,
    UpstreamError,
)

logger = logging.getLogger(__name__)

_SOURCE: str = "ollama"
_JOINT_TICKER: str = "*"


def prompt_to_chat(messages: list[PromptMessage]) -> list[ChatMessage]:
    """Convert prompt builder output to LLM client input."""
    return [ChatMessage(role=pm.role, content=pm.content) for pm in messages]


class OllamaAnalyst:
    """Narrative and joint analysis through a local Ollama server.

    Parameters
    ----------
    llm_client:
        Client used for every call.
    timeout:
        Per-call timeout in seconds.
    """

    def __init__(self, llm_client: LLMClient, *, timeout: float) -> None:
        self._llm = llm_client
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: PipelineSettings) -> OllamaAnalyst:
        client = LLMClient(host=settings.ollama_host, model=settings.ollama_model)
        return cls(client, timeout=settings.call_timeout_seconds)

    async def request_narrative_analysis(
        self,
        symbol: str,
        kind: AnalysisKind,
        series: PriceSeries,
    ) -> str:
        """Ask for one instrument's narrative report.

        Raises:
            RateLimitExceededError: The provider answered 429.
            UpstreamError: Any other provider or connection failure.
            InvalidResponseError: The provider returned no content.
        """
        messages = build_narrative_messages(symbol, build_context_text(series), kind)
        logger.info("Requesting %s analysis for %s", kind.value, symbol)
        return await self._complete(prompt_to_chat(messages), ticker=symbol)

    async def request_joint_analysis(self, reports: Sequence[NarrativeReport]) -> str:
        """Ask for one consolidated analysis over every completed report."""
        messages = build_joint_messages(reports)
        logger.info("Requesting joint analysis over %d reports", len(reports))
        return await self._complete(prompt_to_chat(messages), ticker=_JOINT_TICKER)

    async def _complete(self, messages: list[ChatMessage], *, ticker: str) -> str:
        try:
            response = await self._llm.chat(messages, timeout=self._timeout)
        except ollama.ResponseError as exc:
            if exc.status_code == HTTP_TOO_MANY_REQUESTS:
                msg = f"Analysis provider rate limited the request for {ticker}"
                raise RateLimitExceededError(
                    msg, ticker=ticker, source=_SOURCE, http_status=exc.status_code
                ) from exc
            msg = f"Analysis provider error for {ticker}: {exc.error}"
            raise UpstreamError(
                msg, ticker=ticker, source=_SOURCE, http_status=exc.status_code
            ) from exc
        except (httpx.ConnectError, ConnectionRefusedError) as exc:
            msg = f"Analysis provider unreachable for {ticker}: {exc}"
            raise UpstreamError(msg, ticker=ticker, source=_SOURCE) from exc

        if not response.content:
            msg = f"Analysis provider returned an empty response for {ticker}"
            raise InvalidResponseError(msg, ticker=ticker, source=_SOURCE)
        return response.content
