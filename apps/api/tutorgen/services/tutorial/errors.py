from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


EXCERPT_LIMIT = 200

PARSE_STAGE_NAMES = {
    1: "strict",
    2: "extract",
    3: "repair",
}


def truncate_excerpt(text: str, limit: int = EXCERPT_LIMIT) -> str:
    compact = " ".join(str(text or "").split())
    if len(compact) <= limit:
        return compact
    return compact[: limit - 3].rstrip() + "..."


class GenerationBackendError(RuntimeError):
    """The external generation call failed, timed out or returned nothing usable."""

    def __init__(self, *, kind: str, reason: str, retryable: bool, attempt_count: int = 1) -> None:
        self.kind = kind
        self.reason = reason
        self.retryable = retryable
        self.attempt_count = attempt_count
        super().__init__(f"generation_failed:{kind}:{reason}")


class ParseError(ValueError):
    """Raw model text could not be turned into JSON by any repair stage."""

    def __init__(self, *, stage: int, reason: str, excerpt: str) -> None:
        self.stage = stage
        self.stage_name = PARSE_STAGE_NAMES.get(stage, "unknown")
        self.reason = reason
        self.excerpt = truncate_excerpt(excerpt)
        super().__init__(f"parse_failed:{self.stage_name}:{reason}")

    def to_detail(self) -> dict[str, object]:
        return {
            "stage": self.stage,
            "stage_name": self.stage_name,
            "reason": self.reason,
            "excerpt": self.excerpt,
        }


@dataclass(frozen=True)
class ValidationInconsistency:
    """A generator mistake the normalizer corrected. Recorded, never raised."""

    path: str
    code: str
    detail: str = ""

    def __str__(self) -> str:
        if self.detail:
            return f"{self.path}:{self.code}:{self.detail}"
        return f"{self.path}:{self.code}"


@dataclass(frozen=True)
class GenerationFailure:
    kind: Literal["generation_failed", "parse_failed"]
    reason: str
    error: Exception
