from __future__ import annotations

from mimic_ai.config import Settings
from mimic_ai.errors import ConfigurationError
from mimic_ai.providers.base import InferenceProvider


def build_provider(settings: Settings) -> InferenceProvider:
    """Pick the backend named by `inference_provider`. Keys are validated on first call, not here."""
    if settings.inference_provider == "openrouter":
        from mimic_ai.providers.openrouter_provider import OpenRouterProvider

        return OpenRouterProvider(settings)
    if settings.inference_provider == "gemini":
        from mimic_ai.providers.gemini_provider import GeminiProvider

        return GeminiProvider(settings)
    raise ConfigurationError(
        f"Unknown INFERENCE_PROVIDER '{settings.inference_provider}' (expected 'openrouter' or 'gemini')"
    )
