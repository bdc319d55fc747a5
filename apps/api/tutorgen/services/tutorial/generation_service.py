import asyncio
from dataclasses import dataclass, field
from functools import lru_cache
import logging
from typing import Any

from fastapi import HTTPException
from pydantic import BaseModel, ConfigDict, Field, field_validator

from tutorgen.core.config import get_settings
from tutorgen.domain.ai import build_ai_service
from tutorgen.domain.tutorial.schema import Tutorial, tutorial_json_schema
from tutorgen.services.tutorial.error_policy import build_structured_error_detail
from tutorgen.services.tutorial.errors import (
    GenerationBackendError,
    GenerationFailure,
    ParseError,
    ValidationInconsistency,
    truncate_excerpt,
)
from tutorgen.services.tutorial.json_repair import parse_json_with_repair
from tutorgen.services.tutorial.normalizer import build_fallback_tutorial, normalize_tutorial
from tutorgen.services.tutorial.pipeline_runtime import ai_error_detail, run_ai_with_retry
from tutorgen.services.tutorial.prompt_builder import (
    DEFAULT_LESSON_COUNT,
    MAX_LESSON_COUNT,
    build_system_prompt,
    build_tutorial_prompt,
)


logger = logging.getLogger(__name__)

settings = get_settings()


@lru_cache(maxsize=1)
def _get_ai_service():
    return build_ai_service(settings)


def _require_ai_service():
    try:
        return _get_ai_service()
    except Exception as exc:
        reason = ai_error_detail(exc)
        raise GenerationBackendError(
            kind="config_error",
            reason=f"ai_service_init_failed:{reason}",
            retryable=False,
        ) from exc


class PromptOverrides(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    core: str | None = None
    progression: str | None = None
    quality: str | None = None
    schema_: str | None = Field(default=None, alias="schema")

    def as_sections(self) -> dict[str, str | None]:
        return {
            "core": self.core,
            "progression": self.progression,
            "quality": self.quality,
            "schema": self.schema_,
        }


class TutorialGenerateRequest(BaseModel):
    topic: str = Field(min_length=1, max_length=300)
    language: str = Field(min_length=1, max_length=60)
    difficulty: int = Field(default=1, ge=1, le=3)
    lessonCount: int = Field(default=DEFAULT_LESSON_COUNT, ge=1, le=MAX_LESSON_COUNT)
    focusAreas: str | None = Field(default=None, max_length=4000)
    exclusions: str | None = Field(default=None, max_length=4000)
    selectedModel: str | None = None
    promptOverrides: PromptOverrides | None = None
    timeoutSec: int | None = Field(default=None, ge=1, le=600)

    @field_validator("topic", "language")
    @classmethod
    def _reject_blank(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped


class NormalizeRequest(BaseModel):
    rawText: str = Field(min_length=1)
    topic: str = ""
    language: str = ""
    difficulty: int = Field(default=1, ge=1, le=3)
    lessonCount: int | None = Field(default=None, ge=1, le=MAX_LESSON_COUNT)


@dataclass(frozen=True)
class TutorialResult:
    """Ok carries ``tutorial``; Err carries ``failure``. Never both."""

    tutorial: Tutorial | None = None
    failure: GenerationFailure | None = None
    issues: list[ValidationInconsistency] = field(default_factory=list)
    parse_stage: int | None = None
    attempt_count: int = 0

    @property
    def ok(self) -> bool:
        return self.failure is None


def _as_optional_str(value: Any) -> str | None:
    if isinstance(value, str):
        stripped = value.strip()
        if stripped:
            return stripped
    return None


def _build_tutorial_prompts(payload: TutorialGenerateRequest) -> tuple[str, str]:
    overrides = payload.promptOverrides.as_sections() if payload.promptOverrides else None
    user_prompt = build_tutorial_prompt(
        payload.topic,
        payload.language,
        difficulty=payload.difficulty,
        lesson_count=payload.lessonCount,
        focus_areas=payload.focusAreas,
        exclusions=payload.exclusions,
        overrides=overrides,
    )
    return build_system_prompt(payload.language), user_prompt


async def _call_generation_backend(
    payload: TutorialGenerateRequest,
    system_prompt: str,
    user_prompt: str,
) -> tuple[str, int]:
    ai_service = _require_ai_service()
    model = _as_optional_str(payload.selectedModel)
    response_schema = tutorial_json_schema() if settings.tutorial_send_schema_hint else None

    async def call(_attempt: int) -> str:
        text = await asyncio.to_thread(
            ai_service.generate_text,
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            model=model,
            response_schema=response_schema,
        )
        if not str(text or "").strip():
            raise RuntimeError("ai_empty_output")
        return text

    # 취소되면 CancelledError가 그대로 전파되고, 스레드의 늦은 응답은 버려진다.
    deadline = payload.timeoutSec or settings.tutorial_generation_timeout_sec
    try:
        return await asyncio.wait_for(
            run_ai_with_retry(call, max_attempts=settings.ai_max_attempts),
            timeout=deadline,
        )
    except asyncio.TimeoutError as exc:
        raise GenerationBackendError(
            kind="timeout",
            reason=f"deadline_exceeded:{deadline}s",
            retryable=False,
        ) from exc


async def run_tutorial_pipeline(payload: TutorialGenerateRequest) -> TutorialResult:
    system_prompt, user_prompt = _build_tutorial_prompts(payload)
    logger.info(
        "tutorial generation topic=%r language=%r difficulty=%d lessons=%d prompt_chars=%d model=%s",
        payload.topic,
        payload.language,
        payload.difficulty,
        payload.lessonCount,
        len(user_prompt),
        _as_optional_str(payload.selectedModel) or "default",
    )

    try:
        raw_text, attempt_count = await _call_generation_backend(payload, system_prompt, user_prompt)
    except GenerationBackendError as exc:
        logger.warning(
            "tutorial generation failed kind=%s attempts=%d reason=%s",
            exc.kind,
            exc.attempt_count,
            truncate_excerpt(exc.reason),
        )
        return TutorialResult(
            failure=GenerationFailure(kind="generation_failed", reason=str(exc), error=exc),
            attempt_count=exc.attempt_count,
        )

    try:
        parsed = parse_json_with_repair(raw_text)
    except ParseError as exc:
        logger.warning(
            "tutorial output unparseable stage=%s reason=%s excerpt=%r",
            exc.stage_name,
            exc.reason,
            exc.excerpt,
        )
        return TutorialResult(
            failure=GenerationFailure(kind="parse_failed", reason=str(exc), error=exc),
            attempt_count=attempt_count,
        )

    normalized = normalize_tutorial(
        parsed.value,
        topic=payload.topic,
        language=payload.language,
        difficulty=payload.difficulty,
        lesson_count=payload.lessonCount,
    )
    return TutorialResult(
        tutorial=normalized.tutorial,
        issues=normalized.issues,
        parse_stage=parsed.stage,
        attempt_count=attempt_count,
    )


async def generate_tutorial(payload: TutorialGenerateRequest) -> dict[str, Any]:
    try:
        result = await run_tutorial_pipeline(payload)
    except Exception as exc:
        logger.exception("tutorial pipeline raised unexpectedly: %s", exc)
        result = TutorialResult(
            failure=GenerationFailure(kind="generation_failed", reason=f"unexpected:{exc}", error=exc),
        )
    if result.tutorial is None:
        failure_kind = result.failure.kind if result.failure else "unknown"
        logger.warning("returning fallback tutorial after %s", failure_kind)
        return build_fallback_tutorial(payload.topic, payload.language, payload.difficulty).to_payload()
    return result.tutorial.to_payload()


def normalize_raw_output(payload: NormalizeRequest) -> dict[str, Any]:
    try:
        parsed = parse_json_with_repair(payload.rawText)
    except ParseError as exc:
        raise HTTPException(
            status_code=422,
            detail=build_structured_error_detail(
                error_code="parse_failed",
                message=f"No repair stage produced JSON (last stage: {exc.stage_name})",
                retryable=False,
                detail=exc.to_detail(),
            ),
        ) from exc

    normalized = normalize_tutorial(
        parsed.value,
        topic=payload.topic,
        language=payload.language,
        difficulty=payload.difficulty,
        lesson_count=payload.lessonCount,
    )
    return {
        "tutorial": normalized.tutorial.to_payload(),
        "parseStage": parsed.stage,
        "inconsistencies": [
            {"path": issue.path, "code": issue.code, "detail": issue.detail}
            for issue in normalized.issues
        ],
    }
