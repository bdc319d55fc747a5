"""AI domain services and provider abstractions."""

from tutorgen.domain.ai.factory import build_ai_service
from tutorgen.domain.ai.service import AIService

__all__ = ["AIService", "build_ai_service"]
