import unittest

from tutorgen.core.config import Settings
from tutorgen.domain.ai import AIService, build_ai_service
from tutorgen.domain.ai.providers import GeminiProvider, OpenAIProvider


class _StubProvider:
    def __init__(self, response: str = "{}", error: Exception | None = None):
        self.response = response
        self.error = error
        self.models: list[str | None] = []

    def generate_text(self, *, system_prompt: str, user_prompt: str, model=None, response_schema=None) -> str:
        self.models.append(model)
        if self.error is not None:
            raise self.error
        return self.response


class AIServiceTests(unittest.TestCase):
    def test_primary_result_is_returned(self) -> None:
        primary = _StubProvider(response='{"ok": true}')
        service = AIService(primary=primary)

        text = service.generate_text(system_prompt="s", user_prompt="u", model="custom/model")

        self.assertEqual(text, '{"ok": true}')
        self.assertEqual(primary.models, ["custom/model"])

    def test_fallback_provider_is_tried_with_its_model(self) -> None:
        primary = _StubProvider(error=RuntimeError("http_502:bad gateway"))
        fallback = _StubProvider(response="fallback")
        service = AIService(primary=primary, fallback=fallback, fallback_model="google/gemini-2.0-flash-001")

        text = service.generate_text(system_prompt="s", user_prompt="u", model="openai/gpt-4o-mini")

        self.assertEqual(text, "fallback")
        self.assertEqual(fallback.models, ["google/gemini-2.0-flash-001"])

    def test_primary_failure_without_fallback(self) -> None:
        service = AIService(primary=_StubProvider(error=RuntimeError("http_500:boom")))

        with self.assertRaises(RuntimeError) as ctx:
            service.generate_text(system_prompt="s", user_prompt="u")

        self.assertTrue(str(ctx.exception).startswith("ai_primary_failed:http_500"))

    def test_both_providers_failing(self) -> None:
        service = AIService(
            primary=_StubProvider(error=RuntimeError("http_500:one")),
            fallback=_StubProvider(error=RuntimeError("http_429:two")),
        )

        with self.assertRaises(RuntimeError) as ctx:
            service.generate_text(system_prompt="s", user_prompt="u")

        self.assertIn("ai_fallback_failed:http_429:two", str(ctx.exception))
        self.assertIn("primary:http_500:one", str(ctx.exception))

    def test_backpressure_when_all_slots_are_taken(self) -> None:
        service = AIService(primary=_StubProvider(), max_concurrency=1, acquire_timeout_ms=10)
        service._semaphore.acquire()
        try:
            with self.assertRaises(RuntimeError) as ctx:
                service.generate_text(system_prompt="s", user_prompt="u")
        finally:
            service._semaphore.release()

        self.assertEqual(str(ctx.exception), "ai_backpressure_busy")


class AIServiceFactoryTests(unittest.TestCase):
    def test_openai_primary_with_gemini_fallback(self) -> None:
        settings = Settings(OPENAI_API_KEY="sk-test", GEMINI_API_KEY="g-test", ai_fallback_provider="gemini")

        service = build_ai_service(settings)

        self.assertIsInstance(service.primary, OpenAIProvider)
        self.assertIsInstance(service.fallback, GeminiProvider)
        self.assertIsNone(service.fallback_model)

    def test_openai_fallback_uses_fallback_model(self) -> None:
        settings = Settings(
            OPENAI_API_KEY="sk-test",
            GEMINI_API_KEY="g-test",
            ai_provider="gemini",
            ai_fallback_provider="openai",
        )

        service = build_ai_service(settings)

        self.assertIsInstance(service.primary, GeminiProvider)
        self.assertEqual(service.fallback_model, settings.openai_fallback_model)

    def test_missing_key_fails_fast(self) -> None:
        settings = Settings(OPENAI_API_KEY="", ai_provider="openai", ai_fallback_provider=None)

        with self.assertRaises(ValueError) as ctx:
            build_ai_service(settings)

        self.assertEqual(str(ctx.exception), "openai_api_key_missing")


class ProviderResponseTests(unittest.TestCase):
    def test_openai_text_extraction(self) -> None:
        text = OpenAIProvider._extract_text({"choices": [{"message": {"content": '{"a": 1}'}}]})

        self.assertEqual(text, '{"a": 1}')

    def test_openai_missing_content(self) -> None:
        with self.assertRaises(RuntimeError):
            OpenAIProvider._extract_text({"choices": [{"message": {"content": "  "}}]})

    def test_gemini_parts_are_joined(self) -> None:
        text = GeminiProvider._extract_text(
            {"candidates": [{"content": {"parts": [{"text": '{"a": '}, {"text": "1}"}]}}]}
        )

        self.assertEqual(text, '{"a": 1}')


if __name__ == "__main__":
    unittest.main()
