from __future__ import annotations

import base64
import logging
from typing import Any

from mimic_ai.config import Settings
from mimic_ai.errors import ContentError, ProviderHTTPError
from mimic_ai.media import MediaFile
from mimic_ai.normalize import find_image_in_text, resolve_image_like
from mimic_ai.providers.base import (
    ANALYSIS_FIELDS,
    AnalysisResult,
    ProductDetails,
    analysis_from_text,
    build_analysis_prompt,
)

logger = logging.getLogger(__name__)

NO_IMAGE_MESSAGE = (
    "Image generation returned no usable image data. Please verify your configured Gemini "
    "image model supports image output."
)

# Gemini's schema dialect: upper-case types, no additionalProperties.
GEMINI_ANALYSIS_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {key: {"type": "STRING"} for key in ANALYSIS_FIELDS},
    "required": list(ANALYSIS_FIELDS),
}


class GeminiProvider:
    name = "gemini"
    label = "Gemini"

    def __init__(self, settings: Settings) -> None:
        # Imported lazily so the app can start without the dependency installed.
        from google import genai  # type: ignore

        self._genai = genai
        self.settings = settings
        self._client: Any = None

    def _get_client(self) -> Any:
        api_key = self.settings.require_gemini_key()
        if self._client is None:
            self._client = self._genai.Client(api_key=api_key)
        return self._client

    async def _call(self, method: str, **kwargs: Any) -> Any:
        from google.genai import errors  # type: ignore

        client = self._get_client()
        try:
            return await getattr(client.aio.models, method)(**kwargs)
        except errors.APIError as exc:
            detail = exc.message or f"Unknown {self.label} error"
            logger.warning("%s %s on %s failed with %s: %s", self.label, method, kwargs.get("model"), exc.code, detail)
            raise ProviderHTTPError(self.label, exc.code or 0, detail) from exc

    async def analyze(self, media: MediaFile, product: ProductDetails) -> AnalysisResult:
        from google.genai import types  # type: ignore

        model = self.settings.gemini_vision_model
        logger.info("analyze: model=%s media=%s (%d bytes)", model, media.content_type, media.size)

        config_kwargs: dict[str, Any] = {
            "temperature": self.settings.analysis_temperature,
            "response_mime_type": "application/json",
        }
        if self.settings.structured_output:
            config_kwargs["response_schema"] = GEMINI_ANALYSIS_SCHEMA

        resp = await self._call(
            "generate_content",
            model=model,
            contents=[
                types.Part.from_bytes(data=media.data, mime_type=media.content_type),
                build_analysis_prompt(product),
            ],
            config=types.GenerateContentConfig(**config_kwargs),
        )
        return analysis_from_text(getattr(resp, "text", None) or "", self.label)

    async def generate(self, prompt: str) -> str:
        """
        Two paths depending on model family:
        - Imagen models: `models.generate_images(...)`
        - Gemini image models: `models.generate_content(...)` with image response modality
        """
        from google.genai import types  # type: ignore

        model = self.settings.gemini_image_model
        logger.info("generate: model=%s", model)

        if model.startswith("imagen-"):
            resp = await self._call(
                "generate_images",
                model=model,
                prompt=prompt,
                config=types.GenerateImagesConfig(number_of_images=1),
            )
            for gi in getattr(resp, "generated_images", None) or []:
                image = getattr(gi, "image", None)
                found = _image_bytes_to_ref(getattr(image, "image_bytes", None), getattr(image, "mime_type", None))
                if found:
                    return found
            raise ContentError(NO_IMAGE_MESSAGE)

        resp = await self._call(
            "generate_content",
            model=model,
            contents=[prompt],
            config=types.GenerateContentConfig(response_modalities=["IMAGE", "TEXT"]),
        )
        found = _extract_image_from_generate_content(resp)
        if not found:
            raise ContentError(NO_IMAGE_MESSAGE)
        return found


def _image_bytes_to_ref(data: bytes | None, mime_type: str | None) -> str | None:
    if not data:
        return None
    if mime_type and not mime_type.startswith("image/"):
        return None
    b64 = base64.b64encode(data).decode("ascii")
    return resolve_image_like({"imageBytes": b64, "mimeType": mime_type})


def _extract_image_from_generate_content(resp: Any) -> str | None:
    texts: list[str] = []
    for cand in getattr(resp, "candidates", None) or []:
        content = getattr(cand, "content", None)
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            if inline:
                found = _image_bytes_to_ref(getattr(inline, "data", None), getattr(inline, "mime_type", None))
                if found:
                    return found
            text = getattr(part, "text", None)
            if text:
                texts.append(text)
    # Some models answer with a link instead of inline bytes.
    return find_image_in_text("\n".join(texts))
