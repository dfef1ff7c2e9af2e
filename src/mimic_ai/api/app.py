from __future__ import annotations

import logging
from pathlib import Path

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates

from mimic_ai.config import Settings
from mimic_ai.logging_config import setup_logging
from mimic_ai.media import decode_data_uri, media_from_upload
from mimic_ai.providers.base import InferenceProvider
from mimic_ai.providers.factory import build_provider
from mimic_ai.session import Session

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))


def _session(request: Request) -> Session:
    return request.app.state.session


def _home() -> RedirectResponse:
    return RedirectResponse(url="/", status_code=303)


def _apply_product_form(session: Session, name: str | None, description: str | None, target_audience: str | None) -> None:
    # Only overwrite when the form actually carried product fields.
    if name is None and description is None and target_audience is None:
        return
    session.update_product(
        name=(name or "").strip(),
        description=(description or "").strip(),
        target_audience=(target_audience or "").strip(),
    )


def create_app(settings: Settings | None = None, provider: InferenceProvider | None = None) -> FastAPI:
    settings = settings or Settings()
    setup_logging(settings.log_level)

    app = FastAPI(title="E-Comm Mimic AI")
    app.state.settings = settings
    app.state.session = Session(provider or build_provider(settings))
    logger.info("Using inference provider %s", app.state.session.provider.name)

    @app.get("/", response_class=HTMLResponse)
    def index(request: Request):
        session = _session(request)
        return templates.TemplateResponse(
            request=request,
            name="index.html",
            context={"state": session.state, "provider_name": session.provider.name},
        )

    @app.post("/upload")
    async def upload_file(request: Request, file: UploadFile = File(...)):
        session = _session(request)
        content = await file.read()
        if not content:
            session.state.error = "The selected file is empty."
            return _home()
        session.select_file(media_from_upload(file.filename, content, file.content_type))
        return _home()

    @app.post("/upload/clear")
    def clear_file(request: Request):
        _session(request).clear_file()
        return _home()

    @app.post("/product")
    def update_product(
        request: Request,
        name: str = Form(""),
        description: str = Form(""),
        target_audience: str = Form(""),
    ):
        _apply_product_form(_session(request), name, description, target_audience)
        return _home()

    @app.post("/analyze")
    async def analyze(
        request: Request,
        name: str | None = Form(None),
        description: str | None = Form(None),
        target_audience: str | None = Form(None),
    ):
        session = _session(request)
        _apply_product_form(session, name, description, target_audience)
        await session.analyze()
        return _home()

    @app.post("/generate")
    async def generate(request: Request):
        await _session(request).generate()
        return _home()

    @app.post("/error/dismiss")
    def dismiss_error(request: Request):
        _session(request).dismiss_error()
        return _home()

    @app.get("/assets/{asset_id}/download")
    def download_asset(request: Request, asset_id: str):
        asset = _session(request).find_asset(asset_id)
        if asset is None:
            raise HTTPException(status_code=404, detail="asset not found")
        if not asset.image_url.startswith("data:"):
            return RedirectResponse(url=asset.image_url, status_code=307)
        try:
            mime, payload = decode_data_uri(asset.image_url)
        except ValueError:
            raise HTTPException(status_code=500, detail="stored image data is invalid")
        return Response(
            content=payload,
            media_type=mime,
            headers={"Content-Disposition": f'attachment; filename="{asset.download_filename}"'},
        )

    @app.get("/api/state")
    def api_state(request: Request):
        return JSONResponse(_session(request).to_dict())

    @app.post("/api/analyze")
    async def api_analyze(
        request: Request,
        name: str | None = Form(None),
        description: str | None = Form(None),
        target_audience: str | None = Form(None),
    ):
        session = _session(request)
        _apply_product_form(session, name, description, target_audience)
        await session.analyze()
        return JSONResponse(session.to_dict())

    @app.post("/api/generate")
    async def api_generate(request: Request):
        session = _session(request)
        await session.generate()
        return JSONResponse(session.to_dict())

    return app


app = create_app()
