from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mimic_ai.errors import ConfigurationError


class Settings(BaseSettings):
    # Loads keys from process env, and also from a local .env file for convenience.
    model_config = SettingsConfigDict(env_prefix="", extra="ignore", env_file=".env", env_file_encoding="utf-8")

    # openrouter|gemini
    inference_provider: str = "openrouter"

    # OpenAI-compatible gateway
    openrouter_api_key: str | None = None
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_text_model: str = "openai/gpt-4o-mini"
    openrouter_image_model: str = "bytedance-seed/seedream-4.5"
    openrouter_referer: str = "http://localhost:8000"
    openrouter_title: str = "shopping-v2"

    # Vendor SDK
    gemini_api_key: str | None = None
    gemini_vision_model: str = "gemini-2.0-flash"
    gemini_image_model: str = "imagen-3.0-generate-002"

    analysis_temperature: float = 0.2
    # Ask the backend for a strict JSON schema on analyze; free parsing still applies.
    structured_output: bool = True

    log_level: str = "INFO"

    @field_validator("openrouter_base_url")
    @classmethod
    def _strip_trailing_slashes(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("inference_provider")
    @classmethod
    def _normalize_provider(cls, value: str) -> str:
        return value.strip().lower()

    def require_openrouter_key(self) -> str:
        if not self.openrouter_api_key:
            raise ConfigurationError(
                "Missing OpenRouter API key. Please set OPENROUTER_API_KEY in the environment or .env"
            )
        return self.openrouter_api_key

    def require_gemini_key(self) -> str:
        if not self.gemini_api_key:
            raise ConfigurationError("Missing Gemini API key. Please set GEMINI_API_KEY in the environment or .env")
        return self.gemini_api_key
