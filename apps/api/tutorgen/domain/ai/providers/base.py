from typing import Any, Protocol


class TextGenerationProvider(Protocol):
    """LLM provider contract that returns the raw model text.

    Parsing is left to the caller: tutorial responses are frequently wrapped
    in prose or fences and go through the repair chain instead.
    """

    def generate_text(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        model: str | None = None,
        response_schema: dict[str, Any] | None = None,
    ) -> str:
        ...
