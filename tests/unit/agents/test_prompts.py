"""Tests for the prompt builder functions (narrative, joint).

Verifies message counts, roles, version headers, input tags, report layouts,
the ranking sentinels, and PromptMessage immutability.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from Portfolio_Pulse.agents.prompts import (
    PromptMessage,
    build_joint_messages,
    build_narrative_messages,
)
from Portfolio_Pulse.agents.prompts.joint_prompt import JSON_DATA_END, JSON_DATA_START
from Portfolio_Pulse.agents.prompts.narrative_prompt import PROMPT_VERSION
from Portfolio_Pulse.models import AnalysisKind, NarrativeReport

SAMPLE_CONTEXT: str = "Ticker: AAA\nLast Close: 139.90 (2025-06-30)\nDividends Paid: none"


# ---------------------------------------------------------------------------
# Narrative prompt
# ---------------------------------------------------------------------------


class TestNarrativePrompt:
    """Tests for build_narrative_messages()."""

    def test_system_then_user(self) -> None:
        msgs = build_narrative_messages("AAA", SAMPLE_CONTEXT)
        assert [m.role for m in msgs] == ["system", "user"]

    def test_version_header(self) -> None:
        """System prompt starts with the version marker."""
        msgs = build_narrative_messages("AAA", SAMPLE_CONTEXT)
        assert msgs[0].content.startswith(f"# VERSION: {PROMPT_VERSION}")

    def test_context_wrapped_in_input_tags(self) -> None:
        user = build_narrative_messages("AAA", SAMPLE_CONTEXT)[1].content
        assert f"<user_input>\n{SAMPLE_CONTEXT}\n</user_input>" in user

    def test_default_kind_is_complete(self) -> None:
        user = build_narrative_messages("AAA", SAMPLE_CONTEXT)[1].content
        assert "# Strategic Analysis: AAA" in user

    @pytest.mark.parametrize(
        ("kind", "title"),
        [
            (AnalysisKind.TECHNICAL, "# Technical Analysis: BBB"),
            (AnalysisKind.FUNDAMENTAL, "# Fundamental Analysis: BBB"),
            (AnalysisKind.DIVIDENDS, "# Dividend Report: BBB"),
            (AnalysisKind.SENTIMENT, "# Market Thermometer: BBB"),
        ],
    )
    def test_layout_per_kind(self, kind: AnalysisKind, title: str) -> None:
        user = build_narrative_messages("BBB", SAMPLE_CONTEXT, kind)[1].content
        assert title in user

    def test_every_kind_has_a_layout(self) -> None:
        for kind in AnalysisKind:
            assert build_narrative_messages("AAA", SAMPLE_CONTEXT, kind)


# ---------------------------------------------------------------------------
# Joint prompt
# ---------------------------------------------------------------------------


class TestJointPrompt:
    """Tests for build_joint_messages()."""

    REPORTS = [
        NarrativeReport(symbol="AAA", content="Alpha report."),
        NarrativeReport(symbol="BBB", content="Beta report."),
    ]

    def test_system_prompt_names_sentinels(self) -> None:
        system = build_joint_messages(self.REPORTS)[0].content
        assert JSON_DATA_START in system
        assert JSON_DATA_END in system
        assert system.index(JSON_DATA_START) < system.rindex(JSON_DATA_END)

    def test_every_report_included_in_order(self) -> None:
        user = build_joint_messages(self.REPORTS)[1].content
        assert '<report symbol="AAA">\nAlpha report.\n</report>' in user
        assert user.index('symbol="AAA"') < user.index('symbol="BBB"')
        assert "Consolidate the 2 reports" in user


# ---------------------------------------------------------------------------
# PromptMessage
# ---------------------------------------------------------------------------


class TestPromptMessage:
    """Tests for PromptMessage immutability."""

    def test_frozen(self) -> None:
        msg = PromptMessage(role="user", content="hi")
        with pytest.raises(ValidationError):
            msg.content = "changed"  # type: ignore[misc]
