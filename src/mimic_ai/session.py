from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from mimic_ai.errors import MimicError, PreconditionError
from mimic_ai.media import MediaFile
from mimic_ai.providers.base import AnalysisResult, InferenceProvider, ProductDetails

logger = logging.getLogger(__name__)

ANALYZE_FALLBACK_ERROR = "Failed to analyze asset. Please check your API key and try again."
GENERATE_FALLBACK_ERROR = "Failed to generate image."
BUSY_ERROR = "Please wait for the current action to finish."


@dataclass(frozen=True)
class GeneratedAsset:
    asset_id: str
    image_url: str
    prompt_used: str
    created_at: datetime

    @property
    def download_filename(self) -> str:
        return f"mimic-ai-horse-year-{self.asset_id}.png"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.asset_id,
            "imageUrl": self.image_url,
            "promptUsed": self.prompt_used,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class SessionState:
    selected_file: MediaFile | None = None
    product: ProductDetails = field(default_factory=ProductDetails)
    analysis: AnalysisResult | None = None
    assets: list[GeneratedAsset] = field(default_factory=list)
    error: str | None = None
    is_analyzing: bool = False
    is_generating: bool = False


class Session:
    """
    Drives the upload -> analyze -> generate -> gallery workflow for one user.

    Each action is guarded by its own busy flag and never commits partial state:
    on failure only `error` changes.
    """

    def __init__(self, provider: InferenceProvider) -> None:
        self.provider = provider
        self.state = SessionState()
        self._last_asset_ms = 0

    # --- inputs --------------------------------------------------------------

    @property
    def is_busy(self) -> bool:
        return self.state.is_analyzing or self.state.is_generating

    def _check_idle(self) -> bool:
        if self.is_busy:
            self.state.error = BUSY_ERROR
            return False
        return True

    def select_file(self, media: MediaFile) -> None:
        if self._check_idle():
            self.state.selected_file = media

    def clear_file(self) -> None:
        if not self._check_idle():
            return
        self.state.selected_file = None
        self.state.analysis = None

    def update_product(self, name: str, description: str, target_audience: str) -> None:
        self.state.product = ProductDetails(name=name, description=description, target_audience=target_audience)

    def dismiss_error(self) -> None:
        self.state.error = None

    def find_asset(self, asset_id: str) -> GeneratedAsset | None:
        return next((a for a in self.state.assets if a.asset_id == asset_id), None)

    # --- actions -------------------------------------------------------------

    def _check_can_analyze(self) -> None:
        if self.state.selected_file is None:
            raise PreconditionError("Please upload a competitor file.")
        if not self.state.product.is_complete():
            raise PreconditionError("Please fill in your product details.")

    def _check_can_generate(self) -> AnalysisResult:
        if self.state.analysis is None:
            raise PreconditionError("Analyze a competitor asset before generating.")
        return self.state.analysis

    def _fail(self, exc: Exception, fallback: str) -> None:
        if isinstance(exc, MimicError):
            message = exc.message
        else:
            message = str(exc)
        self.state.error = message or fallback

    async def analyze(self) -> AnalysisResult | None:
        state = self.state
        if state.is_analyzing:
            logger.info("analyze ignored: already running")
            return None
        try:
            self._check_can_analyze()
        except PreconditionError as exc:
            state.error = exc.message
            return None

        media = state.selected_file
        state.error = None
        state.analysis = None
        state.is_analyzing = True
        try:
            result = await self.provider.analyze(media, state.product)
        except Exception as exc:
            logger.warning("analyze failed: %s", exc)
            self._fail(exc, ANALYZE_FALLBACK_ERROR)
            return None
        finally:
            state.is_analyzing = False

        if state.selected_file is not media:
            # The source file changed while the call was in flight.
            logger.info("analyze result dropped: source file changed")
            return None
        state.analysis = result
        return result

    async def generate(self) -> GeneratedAsset | None:
        state = self.state
        if state.is_generating:
            logger.info("generate ignored: already running")
            return None
        try:
            analysis = self._check_can_generate()
        except PreconditionError as exc:
            state.error = exc.message
            return None

        prompt = analysis.suggested_prompt
        state.error = None
        state.is_generating = True
        try:
            image_url = await self.provider.generate(prompt)
        except Exception as exc:
            logger.warning("generate failed: %s", exc)
            self._fail(exc, GENERATE_FALLBACK_ERROR)
            return None
        finally:
            state.is_generating = False

        asset = GeneratedAsset(
            asset_id=self._next_asset_id(),
            image_url=image_url,
            prompt_used=prompt,
            created_at=datetime.now(timezone.utc),
        )
        state.assets.insert(0, asset)
        return asset

    def _next_asset_id(self) -> str:
        # Millisecond clock, bumped so two assets in the same tick stay distinct.
        now_ms = max(int(time.time() * 1000), self._last_asset_ms + 1)
        self._last_asset_ms = now_ms
        return str(now_ms)

    def to_dict(self) -> dict[str, Any]:
        state = self.state
        media = state.selected_file
        return {
            "selectedFile": (
                {"filename": media.filename, "contentType": media.content_type, "size": media.size} if media else None
            ),
            "product": {
                "name": state.product.name,
                "description": state.product.description,
                "targetAudience": state.product.target_audience,
            },
            "analysis": state.analysis.to_dict() if state.analysis else None,
            "assets": [a.to_dict() for a in state.assets],
            "error": state.error,
            "isAnalyzing": state.is_analyzing,
            "isGenerating": state.is_generating,
        }
