"""LLM-backed narrative and joint analysis over Ollama."""

from Portfolio_Pulse.agents.analyst import OllamaAnalyst
from Portfolio_Pulse.agents.context_builder import build_context_text
from Portfolio_Pulse.agents.llm_client import ChatMessage, LLMClient, LLMResponse

__all__ = [
    "ChatMessage",
    "LLMClient",
    "LLMResponse",
    "OllamaAnalyst",
    "build_context_text",
]
