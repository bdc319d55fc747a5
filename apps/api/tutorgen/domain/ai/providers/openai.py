from typing import Any

from tutorgen.domain.ai.providers.common import post_json


class OpenAIProvider:
    """Chat-completions client for OpenAI-compatible endpoints (OpenAI, OpenRouter)."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        base_url: str,
        timeout_sec: int = 120,
        temperature: float = 0.7,
        max_output_tokens: int = 12000,
    ) -> None:
        if not api_key:
            raise ValueError("openai_api_key_missing")
        if not base_url:
            raise ValueError("openai_base_url_missing")

        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

    def generate_text(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        model: str | None = None,
        response_schema: dict[str, Any] | None = None,
    ) -> str:
        payload: dict[str, Any] = {
            "model": model or self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_output_tokens,
            "response_format": {"type": "json_object"},
        }
        if response_schema is not None:
            payload["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": "tutorial", "schema": response_schema},
            }

        try:
            decoded = post_json(
                f"{self.base_url}/chat/completions",
                payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout_sec=self.timeout_sec,
            )
        except Exception as exc:  # pragma: no cover - network boundary
            raise RuntimeError(f"openai_request_failed:{exc}") from exc

        return self._extract_text(decoded)

    @staticmethod
    def _extract_text(response_json: dict[str, Any]) -> str:
        choices = response_json.get("choices")
        if not isinstance(choices, list) or not choices:
            raise RuntimeError("openai_choices_missing")

        first = choices[0]
        message = first.get("message", {}) if isinstance(first, dict) else {}
        content = message.get("content")

        if isinstance(content, str) and content.strip():
            return content

        if isinstance(content, list):
            texts: list[str] = []
            for part in content:
                if isinstance(part, dict):
                    text = part.get("text")
                    if isinstance(text, str) and text.strip():
                        texts.append(text)
            if texts:
                return "\n".join(texts)

        raise RuntimeError("openai_content_missing")
