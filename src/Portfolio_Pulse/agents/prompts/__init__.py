"""Versioned prompt templates for the analysis calls.

Each module exports builder functions that construct message lists
for Ollama's chat API.
"""

from Portfolio_Pulse.agents.prompts.joint_prompt import build_joint_messages
from Portfolio_Pulse.agents.prompts.narrative_prompt import PromptMessage, build_narrative_messages

__all__ = [
    "PromptMessage",
    "build_joint_messages",
    "build_narrative_messages",
]
