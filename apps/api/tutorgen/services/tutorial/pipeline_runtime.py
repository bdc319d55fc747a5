from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from tutorgen.services.tutorial.errors import GenerationBackendError


logger = logging.getLogger(__name__)

DEFAULT_RETRYABLE_FAILURE_KINDS = {"rate_limited", "timeout"}


def ai_error_detail(exc: BaseException) -> str:
    message = str(exc).strip()
    if not message:
        if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
            return "timeout"
        return "ai_provider_failed"
    return message[:300]


def normalize_error_reason(value: str) -> str:
    return " ".join(str(value or "").split())[:260] or "ai_provider_failed"


def classify_ai_failure(detail: str) -> tuple[str, bool]:
    text = str(detail or "").lower()

    rate_limit_tokens = (
        "429",
        "too many requests",
        "rate limit",
        "rate_limit",
        "resource exhausted",
        "quota",
        "ai_backpressure_busy",
    )
    timeout_tokens = (
        "timed out",
        "timeout",
        "read operation timed out",
    )
    config_tokens = (
        "api_key_missing",
        "openai_base_url_missing",
        "unsupported_ai_provider",
        "ai_service_init_failed",
        "config_error",
    )
    empty_tokens = (
        "ai_empty_output",
        "empty_output",
        "openai_content_missing",
        "gemini_text_missing",
    )

    if any(token in text for token in rate_limit_tokens):
        return ("rate_limited", True)
    if any(token in text for token in timeout_tokens):
        return ("timeout", True)
    if any(token in text for token in config_tokens):
        return ("config_error", False)
    if any(token in text for token in empty_tokens):
        return ("empty_output", False)
    return ("provider_error", False)


async def run_ai_with_retry(
    call: Callable[[int], Awaitable[Any]],
    *,
    max_attempts: int = 2,
    retryable_kinds: set[str] | None = None,
) -> tuple[Any, int]:
    attempts = max(1, int(max_attempts))
    retryable_kinds = retryable_kinds or set(DEFAULT_RETRYABLE_FAILURE_KINDS)

    for attempt in range(1, attempts + 1):
        try:
            return await call(attempt), attempt
        except GenerationBackendError:
            raise
        except Exception as exc:
            reason = ai_error_detail(exc)
            kind, retryable = classify_ai_failure(reason)
            should_retry = (
                attempt < attempts
                and retryable
                and kind in retryable_kinds
            )
            if should_retry:
                logger.warning("generation attempt %d failed (%s), retrying: %s", attempt, kind, reason)
                continue
            raise GenerationBackendError(
                kind=kind,
                reason=normalize_error_reason(reason),
                retryable=retryable,
                attempt_count=attempt,
            ) from exc

    raise GenerationBackendError(
        kind="provider_error",
        reason="ai_retry_exhausted",
        retryable=False,
        attempt_count=attempts,
    )
