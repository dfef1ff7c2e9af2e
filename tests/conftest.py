from __future__ import annotations

from typing import Any

import pytest

from mimic_ai.config import Settings
from mimic_ai.media import MediaFile
from mimic_ai.providers.base import AnalysisResult, ProductDetails

ANALYSIS_JSON: dict[str, str] = {
    "visualStyle": "Minimalist flat lay on warm oak",
    "sellingPoints": "Clean desk, upgraded posture",
    "composition": "Centered hero product, rule of thirds negative space",
    "lightingAndMood": "Soft window light, calm and premium",
    "suggestedPrompt": "studio product shot, warm lighting",
    "adCopy": "Lift your work. Literally.",
}


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, openrouter_api_key="test-key", inference_provider="openrouter")


@pytest.fixture
def media() -> MediaFile:
    return MediaFile(filename="competitor.png", content_type="image/png", data=b"\x89PNG\r\n\x1a\nfake")


@pytest.fixture
def product() -> ProductDetails:
    return ProductDetails(name="Bamboo Stand", description="Ergonomic laptop riser", target_audience="Remote workers")


class FakeProvider:
    """In-memory provider: records calls, returns canned results or raises."""

    name = "fake"

    def __init__(
        self,
        analysis: dict[str, Any] | None = None,
        image_url: str = "data:image/png;base64,aGVsbG8=",
        error: Exception | None = None,
    ) -> None:
        self.analysis = analysis if analysis is not None else dict(ANALYSIS_JSON)
        self.image_url = image_url
        self.error = error
        self.analyze_calls: list[tuple[MediaFile, ProductDetails]] = []
        self.generate_calls: list[str] = []

    async def analyze(self, media: MediaFile, product: ProductDetails) -> AnalysisResult:
        self.analyze_calls.append((media, product))
        if self.error:
            raise self.error
        return AnalysisResult.from_dict(self.analysis)

    async def generate(self, prompt: str) -> str:
        self.generate_calls.append(prompt)
        if self.error:
            raise self.error
        return self.image_url


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()
