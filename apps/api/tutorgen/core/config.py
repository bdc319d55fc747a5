from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    env: str = "development"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: list[str] = ["http://localhost:3000"]
    log_level: str = "INFO"

    # openai 공급자는 OpenAI 호환 엔드포인트(OpenRouter 포함)를 모두 처리한다.
    ai_provider: Literal["openai", "gemini"] = "openai"
    ai_fallback_provider: Literal["openai", "gemini"] | None = None
    ai_request_timeout_sec: int = 120
    ai_max_concurrency: int = 4
    ai_backpressure_acquire_timeout_ms: int = 200
    ai_max_attempts: int = 2
    ai_temperature: float = 0.7
    ai_max_output_tokens: int = 12000

    tutorial_generation_timeout_sec: int = 180
    tutorial_send_schema_hint: bool = False

    openai_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("OPENAI_API_KEY", "AI_CHATBOT_API_KEY"),
    )
    openai_model: str = "openai/gpt-4o-mini"
    openai_fallback_model: str = "google/gemini-2.0-flash-001"
    openai_base_url: str = "https://openrouter.ai/api/v1"

    # 키 이름 하위호환: GEMINI_API_KEY 또는 GOOGLE_GENERATIVE_AI_API_KEY 둘 다 허용
    gemini_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("GEMINI_API_KEY", "GOOGLE_GENERATIVE_AI_API_KEY"),
    )
    gemini_model: str = "gemini-2.0-flash"

    model_config = SettingsConfigDict(env_file="../../.env", extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
