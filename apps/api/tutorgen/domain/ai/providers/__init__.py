"""AI providers."""

from tutorgen.domain.ai.providers.gemini import GeminiProvider
from tutorgen.domain.ai.providers.openai import OpenAIProvider

__all__ = ["GeminiProvider", "OpenAIProvider"]
