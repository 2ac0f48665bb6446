"""Abstract base class for hosted language-model providers.

Two entry points: :meth:`ILLMProvider.complete` for single-shot prompts
(financial statement extraction) and :meth:`ILLMProvider.converse` for the
tool-calling chat loop.  Concrete adapters translate the provider-neutral
turn and tool models into their SDK's wire format.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pm_assistant.models.conversation import ConversationTurn, FunctionDefinition, ModelTurn


# Concrete implementations: AnthropicLLMProvider, OpenAILLMProvider
# Located in: pm_assistant/providers/llm/
class ILLMProvider(ABC):
    """Contract for hosted model services."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.0,
        max_tokens: int = 4096,
    ) -> str:
        """Generate a text completion from the model.

        Parameters
        ----------
        system_prompt:
            The system/instruction message that sets the model's behaviour.
        user_prompt:
            The user-facing prompt containing the actual request or data.
        temperature:
            Sampling temperature.
        max_tokens:
            Upper bound on the number of tokens in the response.

        Returns
        -------
        str
            The model's text response.

        Raises
        ------
        pm_assistant.utils.errors.ModelError
            If the API call fails.
        """

    @abstractmethod
    async def converse(
        self,
        system_prompt: str,
        turns: list[ConversationTurn],
        tools: list[FunctionDefinition],
        max_tokens: int = 1024,
    ) -> ModelTurn:
        """Send one round of a tool-calling conversation.

        Parameters
        ----------
        system_prompt:
            Instructions and retrieved context.
        turns:
            Alternating user/assistant turns.  Assistant turns that
            requested tools are followed by a user turn of
            ``tool_result`` blocks.
        tools:
            The published function catalog.
        max_tokens:
            Upper bound on response tokens.

        Returns
        -------
        ModelTurn
            Text, requested tool calls (possibly empty) and token usage.

        Raises
        ------
        pm_assistant.utils.errors.ModelError
            With ``kind`` set to auth, rate_limit or generic.
        """

    @abstractmethod
    def get_model_name(self) -> str:
        """Return the model identifier sent to the API."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"anthropic"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider has credentials configured."""
