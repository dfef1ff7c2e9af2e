from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Protocol

from mimic_ai.errors import AnalysisParseError, ContentError
from mimic_ai.media import MediaFile
from mimic_ai.normalize import parse_json_object_from_text


@dataclass
class ProductDetails:
    name: str = ""
    description: str = ""
    target_audience: str = ""

    def is_complete(self) -> bool:
        return bool(self.name.strip() and self.description.strip())


# JSON key -> attribute name. The model is asked for the camelCase keys.
ANALYSIS_FIELDS: dict[str, str] = {
    "visualStyle": "visual_style",
    "sellingPoints": "selling_points",
    "composition": "composition",
    "lightingAndMood": "lighting_and_mood",
    "suggestedPrompt": "suggested_prompt",
    "adCopy": "ad_copy",
}


@dataclass(frozen=True)
class AnalysisResult:
    visual_style: str
    selling_points: str
    composition: str
    lighting_and_mood: str
    suggested_prompt: str
    ad_copy: str

    @classmethod
    def from_dict(cls, data: Any) -> "AnalysisResult":
        if not isinstance(data, dict):
            raise AnalysisParseError("Analysis response was not a JSON object.")
        missing = [key for key in ANALYSIS_FIELDS if data.get(key) is None]
        if missing:
            raise AnalysisParseError(f"Analysis response is missing fields: {', '.join(missing)}")
        return cls(**{attr: _as_text(data[key]) for key, attr in ANALYSIS_FIELDS.items()})

    def to_dict(self) -> dict[str, str]:
        return {key: getattr(self, attr) for key, attr in ANALYSIS_FIELDS.items()}


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    # Loose models sometimes nest objects or lists; keep them readable as JSON.
    return json.dumps(value, ensure_ascii=False)


ANALYSIS_JSON_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "visualStyle": {"type": "string", "description": "Description of the competitor's visual style."},
        "sellingPoints": {"type": "string", "description": "Key visual selling points and hooks identified."},
        "composition": {"type": "string", "description": "Analysis of the layout and composition."},
        "lightingAndMood": {"type": "string", "description": "Analysis of lighting and emotional mood."},
        "suggestedPrompt": {
            "type": "string",
            "description": "A detailed image generation prompt to recreate this style for the user's product.",
        },
        "adCopy": {"type": "string", "description": "Short, punchy English ad copy for the user's product."},
    },
    "required": list(ANALYSIS_FIELDS),
    "additionalProperties": False,
}


def build_analysis_prompt(product: ProductDetails) -> str:
    return (
        "You are a world-class e-commerce Creative Director specializing in cross-border trade.\n"
        "\n"
        "I have uploaded a competitor's asset (image or video).\n"
        "My goal is to replicate the SUCCESS of this asset but for MY PRODUCT.\n"
        "\n"
        "MY PRODUCT DETAILS:\n"
        f"Name: {product.name}\n"
        f"Description: {product.description}\n"
        f"Target Audience: {product.target_audience}\n"
        "\n"
        "Please perform the following:\n"
        "1. Deconstruct the competitor's visual strategy (lighting, angle, composition, mood).\n"
        "2. Identify the key visual hook (why does it sell?).\n"
        "3. Create a specialized image generation prompt that applies this successful style to MY PRODUCT.\n"
        "4. Write a short, punchy ad copy (English) for my product based on this visual.\n"
        "\n"
        "Return the result strictly as JSON with keys: "
        f"{', '.join(ANALYSIS_FIELDS)}.\n"
        "Return ONLY valid JSON. No markdown, no extra text."
    )


class InferenceProvider(Protocol):
    name: str

    async def analyze(self, media: MediaFile, product: ProductDetails) -> AnalysisResult: ...

    async def generate(self, prompt: str) -> str: ...


def analysis_from_text(text: str, provider: str) -> AnalysisResult:
    if not text or not text.strip():
        raise ContentError(f"No analysis content returned from {provider}.")
    try:
        data = parse_json_object_from_text(text)
    except ValueError as exc:
        raise AnalysisParseError(f"{provider} returned analysis text that is not valid JSON: {exc}") from exc
    return AnalysisResult.from_dict(data)
