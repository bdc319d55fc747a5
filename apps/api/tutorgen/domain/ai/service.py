import logging
from typing import Any
from threading import BoundedSemaphore

from tutorgen.domain.ai.providers.base import TextGenerationProvider


logger = logging.getLogger(__name__)


class AIService:
    def __init__(
        self,
        *,
        primary: TextGenerationProvider,
        fallback: TextGenerationProvider | None = None,
        fallback_model: str | None = None,
        max_concurrency: int = 4,
        acquire_timeout_ms: int = 200,
    ) -> None:
        self.primary = primary
        self.fallback = fallback
        self.fallback_model = fallback_model
        self._semaphore = BoundedSemaphore(value=max(1, int(max_concurrency)))
        self._acquire_timeout_sec = max(0.01, int(acquire_timeout_ms) / 1000)

    def generate_text(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        model: str | None = None,
        response_schema: dict[str, Any] | None = None,
    ) -> str:
        acquired = self._semaphore.acquire(timeout=self._acquire_timeout_sec)
        if not acquired:
            raise RuntimeError("ai_backpressure_busy")
        try:
            try:
                return self.primary.generate_text(
                    system_prompt=system_prompt,
                    user_prompt=user_prompt,
                    model=model,
                    response_schema=response_schema,
                )
            except Exception as primary_exc:
                if self.fallback is None:
                    raise RuntimeError(f"ai_primary_failed:{primary_exc}") from primary_exc
                logger.warning("Primary provider failed, trying fallback: %s", primary_exc)
                try:
                    return self.fallback.generate_text(
                        system_prompt=system_prompt,
                        user_prompt=user_prompt,
                        model=self.fallback_model,
                        response_schema=response_schema,
                    )
                except Exception as fallback_exc:
                    raise RuntimeError(
                        f"ai_fallback_failed:{fallback_exc} (primary:{primary_exc})"
                    ) from fallback_exc
        finally:
            self._semaphore.release()
