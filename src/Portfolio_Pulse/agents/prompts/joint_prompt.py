"""Joint analysis prompt builder.

Sends every completed narrative report to the model in one request and asks
for a consolidated view, followed by a sentinel-delimited JSON ranking that
``agents._parsing.parse_joint_response`` extracts.
"""

from collections.abc import Sequence

from Portfolio_Pulse.agents.prompts.narrative_prompt import PROMPT_VERSION, PromptMessage
from Portfolio_Pulse.models.pipeline import NarrativeReport

JSON_DATA_START: str = "### JSON_DATA_START"
JSON_DATA_END: str = "### JSON_DATA_END"

_JOINT_SYSTEM_PROMPT: str = f"""\
# VERSION: {PROMPT_VERSION}

## Role
You are the head of a research desk consolidating individual analyst reports \
into one portfolio view.

## Constraints
- Compare the instruments against each other; do not just summarize each one.
- Only use facts present in the reports.
- Use rich Markdown.  Do NOT add disclaimers.

## Output Format
1. A consolidated narrative: overall picture, strongest and weakest \
instruments, and suggested allocation priorities.
2. Then, on its own line, `{JSON_DATA_START}`, followed by a JSON array with \
one object per instrument, best first:
```json
[{{"symbol": "TICKER", "signal": "BUY|HOLD|SELL", "score": 0.0}}]
```
   `score` is a float from 0 (worst) to 10 (best).
3. Then `{JSON_DATA_END}` on its own line.  Nothing after it.
"""


def build_joint_messages(reports: Sequence[NarrativeReport]) -> list[PromptMessage]:
    """Build the message list for the joint analysis of *reports*."""
    sections = [
        f'<report symbol="{report.symbol}">\n{report.content}\n</report>' for report in reports
    ]
    user_content: str = (
        "<user_input>\n"
        + "\n\n".join(sections)
        + "\n</user_input>\n"
        "\n"
        f"Consolidate the {len(reports)} reports above and end with the ranking block."
    )

    return [
        PromptMessage(role="system", content=_JOINT_SYSTEM_PROMPT),
        PromptMessage(role="user", content=user_content),
    ]
