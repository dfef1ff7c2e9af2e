from __future__ import annotations

import logging
from typing import Any

import httpx

from mimic_ai.config import Settings
from mimic_ai.errors import ContentError, ProviderHTTPError
from mimic_ai.media import MediaFile
from mimic_ai.normalize import extract_error_message, extract_image_reference, first_message_text
from mimic_ai.providers.base import (
    ANALYSIS_JSON_SCHEMA,
    AnalysisResult,
    ProductDetails,
    analysis_from_text,
    build_analysis_prompt,
)

logger = logging.getLogger(__name__)

NO_IMAGE_MESSAGE = (
    "Image generation returned no usable image data. Please verify your selected OpenRouter "
    "image model supports image output on chat/completions."
)


class OpenRouterProvider:
    """
    OpenAI-compatible gateway (chat/completions) for both analysis and image output.

    The raw JSON body is handed to the normalizer instead of the SDK's typed
    models, since image payloads arrive in fields the typed models don't know.
    """

    name = "openrouter"
    label = "OpenRouter"

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None) -> None:
        # Imported lazily so the app can start without the dependency installed.
        import openai  # type: ignore

        self._openai = openai
        self.settings = settings
        self._http_client = http_client
        self._client: Any = None

    def _get_client(self) -> Any:
        api_key = self.settings.require_openrouter_key()
        if self._client is None:
            self._client = self._openai.AsyncOpenAI(
                api_key=api_key,
                base_url=self.settings.openrouter_base_url,
                default_headers={
                    "HTTP-Referer": self.settings.openrouter_referer,
                    "X-Title": self.settings.openrouter_title,
                },
                max_retries=0,
                http_client=self._http_client,
            )
        return self._client

    async def _chat(self, **payload: Any) -> dict[str, Any]:
        client = self._get_client()
        try:
            raw = await client.chat.completions.with_raw_response.create(**payload)
        except self._openai.APIStatusError as exc:
            try:
                body = exc.response.json()
            except ValueError:
                body = {}
            detail = extract_error_message(body, provider=self.label)
            logger.warning("%s call to %s failed with %s: %s", self.label, payload.get("model"), exc.status_code, detail)
            raise ProviderHTTPError(self.label, exc.status_code, detail) from exc
        except self._openai.APIConnectionError as exc:
            logger.warning("%s call to %s could not connect: %s", self.label, payload.get("model"), exc)
            raise ProviderHTTPError(self.label, 0, str(exc) or "connection error") from exc

        try:
            data = raw.http_response.json()
        except ValueError as exc:
            raise ContentError(f"{self.label} returned a response that is not JSON.") from exc
        return data if isinstance(data, dict) else {}

    def _response_format(self) -> dict[str, Any]:
        if not self.settings.structured_output:
            return {"type": "json_object"}
        return {
            "type": "json_schema",
            "json_schema": {"name": "analysis_result", "strict": True, "schema": ANALYSIS_JSON_SCHEMA},
        }

    async def analyze(self, media: MediaFile, product: ProductDetails) -> AnalysisResult:
        model = self.settings.openrouter_text_model
        logger.info("analyze: model=%s media=%s (%d bytes)", model, media.content_type, media.size)
        response = await self._chat(
            model=model,
            temperature=self.settings.analysis_temperature,
            response_format=self._response_format(),
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": build_analysis_prompt(product)},
                        {"type": "image_url", "image_url": {"url": media.to_data_uri()}},
                    ],
                }
            ],
        )
        return analysis_from_text(first_message_text(response), self.label)

    async def generate(self, prompt: str) -> str:
        model = self.settings.openrouter_image_model
        logger.info("generate: model=%s", model)
        response = await self._chat(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            extra_body={"modalities": ["image"]},
        )
        image_ref = extract_image_reference(response)
        if not image_ref:
            raise ContentError(NO_IMAGE_MESSAGE)
        return image_ref
