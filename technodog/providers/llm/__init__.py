"""LLM provider adapters.

Both adapters implement ILLMProvider.  ``build_llm_provider`` picks the
first configured one (Anthropic, then OpenAI) and returns ``None`` when no
API key is set; services raise ConfigurationError if they need an LLM and
none was built.
"""

from __future__ import annotations

from technodog.config.settings import Settings
from technodog.interfaces.llm_provider import ILLMProvider
from technodog.providers.llm.anthropic_provider import AnthropicLLMProvider
from technodog.providers.llm.openai_provider import OpenAILLMProvider


def build_llm_provider(settings: Settings) -> ILLMProvider | None:
    """Return the preferred configured LLM provider, or ``None``."""
    for name in settings.get_available_llm_providers():
        if name == "anthropic":
            return AnthropicLLMProvider(settings)
        if name == "openai":
            return OpenAILLMProvider(settings)
    return None


__all__ = ["AnthropicLLMProvider", "OpenAILLMProvider", "build_llm_provider"]
