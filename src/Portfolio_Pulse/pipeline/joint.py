"""One joint analysis call over every completed narrative report."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from Portfolio_Pulse.agents._parsing import parse_joint_response
from Portfolio_Pulse.models.pipeline import JointResult, NarrativeReport

logger = logging.getLogger(__name__)


class JointAnalyst(Protocol):
    async def request_joint_analysis(self, reports: Sequence[NarrativeReport]) -> str: ...


class JointAnalysisAdapter:
    """Sends the reports in one call and splits the answer into narrative and ranking.

    Provider failures propagate to the caller. A response whose ranking block
    cannot be parsed still succeeds, as :class:`NarrativeOnly`.
    """

    def __init__(self, analyst: JointAnalyst) -> None:
        self._analyst = analyst

    async def run(self, reports: Sequence[NarrativeReport]) -> JointResult | None:
        """Return the parsed joint result, or ``None`` without calling out for no reports."""
        if not reports:
            logger.info("No completed reports; skipping joint analysis")
            return None

        text = await self._analyst.request_joint_analysis(list(reports))
        result = parse_joint_response(text)
        logger.info(
            "Joint analysis finished: kind=%s ranked=%d",
            result.kind,
            len(result.ranking),
        )
        return result
