"""Abstract base class for LLM service providers.

Every prompt in the knowledge layer (entity extraction, claim extraction,
claim verification, contradiction detection, profile synthesis) goes
through this contract, so the stages never import an SDK directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: AnthropicLLMProvider, OpenAILLMProvider
# Located in: technodog/providers/llm/
class ILLMProvider(ABC):
    """Contract for text-completion LLM backends."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
        json_output: bool = False,
    ) -> str:
        """Generate a text completion from the model.

        Parameters
        ----------
        system_prompt:
            The system/instruction message that sets the model's behaviour.
        user_prompt:
            The user-facing prompt containing the actual request or data.
        temperature:
            Sampling temperature (0.0 = deterministic, 1.0 = creative).
        max_tokens:
            Upper bound on the number of tokens in the response.
        json_output:
            Ask the backend for a JSON object response where the API
            supports it.  Callers still run the reply through ``parse_json_object``.

        Returns
        -------
        str
            The model's text response.

        Raises
        ------
        technodog.utils.errors.LLMError
            If the API call fails or returns an empty response.
        technodog.utils.errors.RateLimitError
            If the provider rejected the call with a rate limit.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"anthropic"``."""

    @abstractmethod
    def get_model_name(self) -> str:
        """Return the model id recorded on claims and runs."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are configured (no network call)."""
