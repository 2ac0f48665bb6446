"""Model provider adapters.

Two concrete implementations of ILLMProvider (pm_assistant/interfaces/llm_provider.py):
    - AnthropicLLMProvider -- Claude via the Messages API (preferred)
    - OpenAILLMProvider    -- chat.completions, also for OpenAI-compatible APIs

main.py picks the first provider with a configured key, Anthropic first.
"""

from pm_assistant.providers.llm.anthropic_provider import AnthropicLLMProvider
from pm_assistant.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["AnthropicLLMProvider", "OpenAILLMProvider"]
