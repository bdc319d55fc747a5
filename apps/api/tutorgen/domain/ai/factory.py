from tutorgen.core.config import Settings
from tutorgen.domain.ai.providers.gemini import GeminiProvider
from tutorgen.domain.ai.providers.openai import OpenAIProvider
from tutorgen.domain.ai.service import AIService


def build_ai_service(settings: Settings) -> AIService:
    primary = _build_provider(settings, settings.ai_provider)
    fallback = None
    fallback_model = None
    if settings.ai_fallback_provider:
        fallback = _build_provider(settings, settings.ai_fallback_provider)
        if settings.ai_fallback_provider == "openai":
            fallback_model = settings.openai_fallback_model
    return AIService(
        primary=primary,
        fallback=fallback,
        fallback_model=fallback_model,
        max_concurrency=settings.ai_max_concurrency,
        acquire_timeout_ms=settings.ai_backpressure_acquire_timeout_ms,
    )


def _build_provider(settings: Settings, name: str) -> GeminiProvider | OpenAIProvider:
    if name == "gemini":
        return GeminiProvider(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            timeout_sec=settings.ai_request_timeout_sec,
            temperature=settings.ai_temperature,
            max_output_tokens=settings.ai_max_output_tokens,
        )

    if name == "openai":
        return OpenAIProvider(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            timeout_sec=settings.ai_request_timeout_sec,
            temperature=settings.ai_temperature,
            max_output_tokens=settings.ai_max_output_tokens,
        )

    raise ValueError(f"unsupported_ai_provider:{name}")
