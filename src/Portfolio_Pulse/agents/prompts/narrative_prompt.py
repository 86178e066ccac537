"""Per-instrument narrative report prompt builder.

Constructs Ollama-compatible message lists for one instrument's report.
System messages are included inside the messages list with role="system",
following the Ollama convention. The report layout depends on the
:class:`AnalysisKind` requested.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict

from Portfolio_Pulse.models.enums import AnalysisKind

# ---------------------------------------------------------------------------
# Shared message model -- imported by joint_prompt
# ---------------------------------------------------------------------------

PROMPT_VERSION: str = "v1.0"


class PromptMessage(BaseModel):
    """Single message in an Ollama chat messages list.

    Frozen because messages are immutable once built.
    """

    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: str


# ---------------------------------------------------------------------------
# Narrative system prompt
# ---------------------------------------------------------------------------

_NARRATIVE_SYSTEM_PROMPT: str = f"""\
# VERSION: {PROMPT_VERSION}

## Role
You are a senior equity analyst and portfolio manager.  You write concise, \
data-driven reports on a single listed instrument.

## Constraints
- Base every statement on the price history and dividends provided.
- Do NOT fabricate data.  If a data point is not provided, say so instead \
of inventing numbers.
- Use rich Markdown with headings.  Start directly with the title.
- Do NOT add disclaimers; the application shows its own.
- 600 words maximum.
"""

_REPORT_LAYOUTS: dict[AnalysisKind, str] = {
    AnalysisKind.COMPLETE: """\
Write a COMPLETE STRATEGIC ANALYSIS with these sections:
- # Strategic Analysis: {symbol}
- ## Current Picture: executive summary of price and recent change.
- ## Trend: support, resistance and patterns over the period provided.
- ## Verdict: one of STRONG BUY, BUY, HOLD, SELL, STRONG SELL, with reasons.
- ## Risks: two or three points of attention.
""",
    AnalysisKind.TECHNICAL: """\
Write a DETAILED TECHNICAL ANALYSIS with these sections:
- # Technical Analysis: {symbol}
- ## Price Action: moves over the period provided.
- ## Support and Resistance: critical price levels.
- ## Trend: up, down or sideways.
- ## Entry Timing: best technical moment to act.
""",
    AnalysisKind.FUNDAMENTAL: """\
Write a FUNDAMENTAL ANALYSIS with these sections:
- # Fundamental Analysis: {symbol}
- ## Valuation: does the current price look fair against its history?
- ## Dividends: the distribution history present in the data.
- ## Long-Term Outlook: is the instrument resilient?
""",
    AnalysisKind.DIVIDENDS: """\
Write a DIVIDEND REPORT with these sections:
- # Dividend Report: {symbol}
- ## Payment History: regularity and amounts.
- ## Dividend Yield: estimate based on the last close.
- ## Sustainability: does the current price allow a good future yield?
- ## Conclusion: is it a reliable income holding?
""",
    AnalysisKind.SENTIMENT: """\
Write a MARKET SENTIMENT REPORT with these sections:
- # Market Thermometer: {symbol}
- ## Price Reaction: how the price behaved over the most recent sessions.
- ## Mood: panic, euphoria or caution?
- ## Short-Term Alert: what to expect over the next few days.
""",
}


def build_narrative_messages(
    symbol: str,
    context_text: str,
    kind: AnalysisKind = AnalysisKind.COMPLETE,
) -> list[PromptMessage]:
    """Build the Ollama message list for one instrument's report.

    Parameters
    ----------
    symbol:
        Instrument symbol, used in the report title.
    context_text:
        Pre-formatted flat key-value market context string.
    kind:
        Which report layout to request.

    Returns
    -------
    list[PromptMessage]
        Two-element message list: system prompt + user prompt.
    """
    layout = _REPORT_LAYOUTS[kind].format(symbol=symbol)
    user_content: str = (
        "<user_input>\n"
        f"{context_text}\n"
        "</user_input>\n"
        "\n"
        f"{layout}"
    )

    return [
        PromptMessage(role="system", content=_NARRATIVE_SYSTEM_PROMPT),
        PromptMessage(role="user", content=user_content),
    ]
