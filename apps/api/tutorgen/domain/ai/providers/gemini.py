from typing import Any
from urllib import parse

from tutorgen.domain.ai.providers.common import post_json


class GeminiProvider:
    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        timeout_sec: int = 120,
        temperature: float = 0.7,
        max_output_tokens: int = 12000,
    ) -> None:
        if not api_key:
            raise ValueError("gemini_api_key_missing")
        self.api_key = api_key
        self.model = model
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
        endpoint = (
            "https://generativelanguage.googleapis.com/v1beta/models/"
            f"{parse.quote(model or self.model)}:generateContent?key={parse.quote(self.api_key)}"
        )
        generation_config: dict[str, Any] = {
            "responseMimeType": "application/json",
            "temperature": self.temperature,
            "maxOutputTokens": self.max_output_tokens,
        }
        if response_schema is not None:
            generation_config["responseJsonSchema"] = response_schema

        payload = {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": [
                {
                    "role": "user",
                    "parts": [{"text": user_prompt}],
                }
            ],
            "generationConfig": generation_config,
        }

        try:
            decoded = post_json(endpoint, payload, headers={}, timeout_sec=self.timeout_sec)
        except Exception as exc:  # pragma: no cover - network boundary
            raise RuntimeError(f"gemini_request_failed:{exc}") from exc

        return self._extract_text(decoded)

    @staticmethod
    def _extract_text(response_json: dict[str, Any]) -> str:
        candidates = response_json.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            raise RuntimeError("gemini_candidates_missing")

        first = candidates[0]
        content = first.get("content", {}) if isinstance(first, dict) else {}
        parts = content.get("parts", [])
        if not isinstance(parts, list):
            raise RuntimeError("gemini_parts_missing")

        texts = [
            part["text"]
            for part in parts
            if isinstance(part, dict) and isinstance(part.get("text"), str) and part["text"].strip()
        ]
        if texts:
            return "".join(texts)

        raise RuntimeError("gemini_text_missing")
