"""Tests for OpenRouterProvider.

The remote endpoint is stubbed with httpx.MockTransport.
"""

from __future__ import annotations

import json

import httpx
import pytest

from mimic_ai.config import Settings
from mimic_ai.errors import AnalysisParseError, ConfigurationError, ContentError, ProviderHTTPError
from mimic_ai.providers.openrouter_provider import NO_IMAGE_MESSAGE, OpenRouterProvider

from .conftest import ANALYSIS_JSON


def _provider(settings: Settings, handler) -> OpenRouterProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenRouterProvider(settings, http_client=client)


def _chat(content) -> dict:
    return {"id": "gen-1", "object": "chat.completion", "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}


@pytest.mark.anyio
async def test_analyze_returns_parsed_json(settings, media, product) -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_chat(json.dumps(ANALYSIS_JSON)))

    result = await _provider(settings, handler).analyze(media, product)

    assert result.to_dict() == ANALYSIS_JSON
    assert seen["url"] == "https://openrouter.ai/api/v1/chat/completions"
    assert seen["headers"]["authorization"] == "Bearer test-key"
    assert seen["headers"]["http-referer"] == settings.openrouter_referer
    assert seen["headers"]["x-title"] == settings.openrouter_title

    body = seen["body"]
    assert body["model"] == settings.openrouter_text_model
    assert body["temperature"] == pytest.approx(0.2)
    assert body["response_format"]["type"] == "json_schema"
    parts = body["messages"][0]["content"]
    assert "Name: Bamboo Stand" in parts[0]["text"]
    assert "Description: Ergonomic laptop riser" in parts[0]["text"]
    assert parts[1]["image_url"]["url"].startswith("data:image/png;base64,")


@pytest.mark.anyio
async def test_analyze_strips_code_fence(settings, media, product) -> None:
    fenced = "```json\n" + json.dumps(ANALYSIS_JSON) + "\n```"

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_chat([{"type": "text", "text": fenced}]))

    result = await _provider(settings, handler).analyze(media, product)
    assert result.to_dict() == ANALYSIS_JSON


@pytest.mark.anyio
async def test_analyze_without_structured_output_asks_for_json_object(media, product) -> None:
    seen: dict = {}
    settings = Settings(_env_file=None, openrouter_api_key="k", structured_output=False)

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_chat(json.dumps(ANALYSIS_JSON)))

    await _provider(settings, handler).analyze(media, product)
    assert seen["body"]["response_format"] == {"type": "json_object"}


@pytest.mark.anyio
@pytest.mark.parametrize("response", [{"choices": []}, _chat(""), {}])
async def test_analyze_empty_content_is_content_error(settings, media, product, response) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=response)

    with pytest.raises(ContentError, match="No analysis content"):
        await _provider(settings, handler).analyze(media, product)


@pytest.mark.anyio
async def test_analyze_invalid_json_is_parse_error(settings, media, product) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_chat("I think the style is bold."))

    with pytest.raises(AnalysisParseError):
        await _provider(settings, handler).analyze(media, product)


@pytest.mark.anyio
async def test_analyze_missing_fields_is_parse_error(settings, media, product) -> None:
    partial = {k: v for k, v in ANALYSIS_JSON.items() if k != "adCopy"}

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_chat(json.dumps(partial)))

    with pytest.raises(AnalysisParseError, match="adCopy"):
        await _provider(settings, handler).analyze(media, product)


@pytest.mark.anyio
async def test_http_error_carries_status_and_remote_message(settings, media, product) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": {"message": "No auth credentials found", "code": 401}})

    with pytest.raises(ProviderHTTPError) as info:
        await _provider(settings, handler).analyze(media, product)

    assert info.value.status_code == 401
    assert str(info.value) == "OpenRouter request failed (401): No auth credentials found"


@pytest.mark.anyio
async def test_http_error_without_json_body_uses_fallback(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>bad gateway</html>")

    with pytest.raises(ProviderHTTPError, match=r"\(502\): Unknown OpenRouter error"):
        await _provider(settings, handler).generate("a prompt")


@pytest.mark.anyio
async def test_missing_key_fails_before_network(media, product) -> None:
    calls = {"n": 0}
    settings = Settings(_env_file=None, openrouter_api_key=None)

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(200, json={})

    with pytest.raises(ConfigurationError, match="OPENROUTER_API_KEY"):
        await _provider(settings, handler).analyze(media, product)
    assert calls["n"] == 0


@pytest.mark.anyio
async def test_generate_requests_image_modality(settings) -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"choices": [{"message": {"role": "assistant", "content": None, "images": [{"b64_json": "abcd", "mimeType": "image/jpeg"}]}}]},
        )

    image = await _provider(settings, handler).generate("studio product shot, warm lighting")

    assert image == "data:image/jpeg;base64,abcd"
    assert seen["body"]["model"] == settings.openrouter_image_model
    assert seen["body"]["modalities"] == ["image"]
    assert seen["body"]["messages"] == [{"role": "user", "content": "studio product shot, warm lighting"}]


@pytest.mark.anyio
async def test_generate_without_image_is_content_error(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_chat("Sorry, I can only describe the image in words."))

    with pytest.raises(ContentError) as info:
        await _provider(settings, handler).generate("a prompt")
    assert str(info.value) == NO_IMAGE_MESSAGE
    assert "no usable image data" in str(info.value)


@pytest.mark.anyio
async def test_analyze_keeps_nested_values_readable(settings, media, product) -> None:
    loose = dict(ANALYSIS_JSON, sellingPoints=["Adjustable", "Eco bamboo"], composition={"angle": "45deg"})

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_chat(json.dumps(loose)))

    result = await _provider(settings, handler).analyze(media, product)

    assert result.selling_points == '["Adjustable", "Eco bamboo"]'
    assert result.composition == '{"angle": "45deg"}'
    assert result.suggested_prompt == ANALYSIS_JSON["suggestedPrompt"]
