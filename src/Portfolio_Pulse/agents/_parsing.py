"""Parsing of the joint analysis response.

The joint prompt asks the model to end its narrative with a machine-readable
ranking between two sentinel lines::

    ### JSON_DATA_START
    [{"symbol": "AAA", "signal": "buy", "score": 8.5}, ...]
    ### JSON_DATA_END

The narrative is everything before the first sentinel. A missing sentinel,
undecodable JSON, or rows that fail validation all degrade to
:class:`NarrativeOnly`; nothing here raises.

This is a private module -- not exported from ``agents/__init__.py``.
"""

from __future__ import annotations

import json
import logging
import re

import pydantic
from pydantic import TypeAdapter

from Portfolio_Pulse.agents.prompts.joint_prompt import JSON_DATA_END, JSON_DATA_START
from Portfolio_Pulse.models.pipeline import (
    JointRankingItem,
    JointResult,
    NarrativeOnly,
    RankedNarrative,
)

logger = logging.getLogger(__name__)

# Regex to strip markdown JSON fences the LLM sometimes wraps around output.
_JSON_FENCE_RE: re.Pattern[str] = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.DOTALL)

_RANKING_ADAPTER: TypeAdapter[list[JointRankingItem]] = TypeAdapter(list[JointRankingItem])


def _extract_json(raw: str) -> str:
    """Strip markdown fences and leading/trailing noise from *raw*.

    If the LLM wraps its JSON in ```json ... ```, extract the inner text.
    Otherwise return the original string stripped.
    """
    match = _JSON_FENCE_RE.search(raw)
    if match:
        return match.group(1).strip()
    return raw.strip()


def _narrative_before_sentinels(text: str) -> str:
    positions = [pos for pos in (text.find(JSON_DATA_START), text.find(JSON_DATA_END)) if pos >= 0]
    if not positions:
        return text.strip()
    return text[: min(positions)].strip()


def _inner_block(text: str) -> str | None:
    start = text.find(JSON_DATA_START)
    if start < 0:
        return None
    body_start = start + len(JSON_DATA_START)
    end = text.find(JSON_DATA_END, body_start)
    if end < 0:
        return None
    return text[body_start:end]


def parse_joint_response(text: str) -> JointResult:
    """Split a joint analysis response into narrative and ranking.

    Args:
        text: Raw model output.

    Returns:
        :class:`RankedNarrative` when the sentinel block holds a valid list
        of ranking rows, otherwise :class:`NarrativeOnly`.
    """
    narrative = _narrative_before_sentinels(text)

    block = _inner_block(text)
    if block is None:
        logger.info("Joint response has no ranking block; keeping narrative only")
        return NarrativeOnly(narrative=narrative)

    try:
        parsed = json.loads(_extract_json(block))
        ranking = _RANKING_ADAPTER.validate_python(parsed)
    except (json.JSONDecodeError, pydantic.ValidationError) as exc:
        logger.warning("Could not parse joint ranking block: %s", exc)
        return NarrativeOnly(narrative=narrative)

    logger.info("Joint response parsed with %d ranking rows", len(ranking))
    return RankedNarrative(narrative=narrative, ranking=ranking)
