"""
Response normalization for chat-completion style payloads.

Gateways and models differ in where they put a generated image: a top-level
`data` list, `choices[].message.images`, typed content parts, or just text
that happens to contain a data URI or an image link. Each known shape is a
small pure function; `extract_image_reference` tries them in order and returns
the first hit. None of these functions mutate their input.
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable

DEFAULT_IMAGE_MIME = "image/png"
IMAGE_PART_TYPES = {"image_url", "output_image", "image"}

_DATA_URI_RE = re.compile(r"data:image/[a-zA-Z0-9.+-]+;base64,[A-Za-z0-9+/=]+")
_MARKDOWN_IMAGE_RE = re.compile(r"!\[[^\]]*]\((https?://[^)\s]+)\)")
_PLAIN_IMAGE_URL_RE = re.compile(r"https?://[^\s)]+(?:png|jpg|jpeg|webp|gif)(?:\?[^\s)]*)?", re.IGNORECASE)
_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)

ImageStrategy = Callable[[Any], "str | None"]


def to_data_uri(b64: str, mime_type: str | None = None) -> str:
    return f"data:{mime_type or DEFAULT_IMAGE_MIME};base64,{b64}"


def _non_empty_str(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def resolve_image_like(value: Any) -> str | None:
    """
    Turn one "image-like" value into a displayable reference.

    Priority: a plain string; a URL field (`url`, `image_url.url`, `image_url`);
    a base64 field (`b64_json`, `imageBytes`, `image.imageBytes`) wrapped as a
    data URI with the accompanying mime type (png when absent).
    """
    if not value:
        return None
    if isinstance(value, str):
        return value
    if not isinstance(value, dict):
        return None

    nested_url = value.get("image_url")
    candidates = [value.get("url")]
    if isinstance(nested_url, dict):
        candidates.append(nested_url.get("url"))
    else:
        candidates.append(nested_url)
    for candidate in candidates:
        url = _non_empty_str(candidate)
        if url:
            return url

    image = value.get("image") if isinstance(value.get("image"), dict) else {}
    for candidate in (value.get("b64_json"), value.get("imageBytes"), image.get("imageBytes")):
        b64 = _non_empty_str(candidate)
        if b64:
            mime = (
                _non_empty_str(value.get("mimeType"))
                or _non_empty_str(value.get("mime_type"))
                or _non_empty_str(image.get("mimeType"))
            )
            return to_data_uri(b64, mime)
    return None


def extract_text_content(content: Any) -> str:
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""

    texts: list[str] = []
    for part in content:
        if isinstance(part, str):
            text = part
        elif isinstance(part, dict) and isinstance(part.get("text"), str):
            text = part["text"]
        else:
            continue
        if text:
            texts.append(text)
    return "\n".join(texts)


def find_image_in_text(text: str) -> str | None:
    if not text:
        return None
    m = _DATA_URI_RE.search(text)
    if m:
        return m.group(0)
    m = _MARKDOWN_IMAGE_RE.search(text)
    if m:
        return m.group(1)
    m = _PLAIN_IMAGE_URL_RE.search(text)
    if m:
        return m.group(0)
    return None


def _list_field(response: Any, key: str) -> list[Any]:
    if not isinstance(response, dict):
        return []
    value = response.get(key)
    return value if isinstance(value, list) else []


def _messages(response: Any) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for choice in _list_field(response, "choices"):
        message = choice.get("message") if isinstance(choice, dict) else None
        out.append(message if isinstance(message, dict) else {})
    return out


# --- image strategies -------------------------------------------------------


def image_from_data_field(response: Any) -> str | None:
    data = _list_field(response, "data")
    if not data:
        return None
    return resolve_image_like(data[0])


def image_from_message_images(message: dict[str, Any]) -> str | None:
    images = message.get("images")
    if not isinstance(images, list):
        return None
    for image_like in images:
        found = resolve_image_like(image_like)
        if found:
            return found
    return None


def image_from_content_parts(message: dict[str, Any]) -> str | None:
    content = message.get("content")
    if not isinstance(content, list):
        return None
    for part in content:
        if isinstance(part, dict) and part.get("type") in IMAGE_PART_TYPES:
            found = resolve_image_like(part)
            if found:
                return found
    return None


def image_from_content_text(message: dict[str, Any]) -> str | None:
    return find_image_in_text(extract_text_content(message.get("content")))


MESSAGE_STRATEGIES: list[Callable[[dict[str, Any]], "str | None"]] = [
    image_from_message_images,
    image_from_content_parts,
    image_from_content_text,
]


def image_from_choices(response: Any) -> str | None:
    for message in _messages(response):
        for strategy in MESSAGE_STRATEGIES:
            found = strategy(message)
            if found:
                return found
    return None


def image_from_images_field(response: Any) -> str | None:
    for image_like in _list_field(response, "images"):
        found = resolve_image_like(image_like)
        if found:
            return found
    return None


IMAGE_STRATEGIES: list[ImageStrategy] = [
    image_from_data_field,
    image_from_choices,
    image_from_images_field,
]


def extract_image_reference(response: Any, strategies: list[ImageStrategy] | None = None) -> str | None:
    for strategy in strategies or IMAGE_STRATEGIES:
        found = strategy(response)
        if found:
            return found
    return None


# --- text -------------------------------------------------------------------


def first_message_text(response: Any) -> str:
    messages = _messages(response)
    if not messages:
        return ""
    return extract_text_content(messages[0].get("content"))


def strip_code_fence(text: str) -> str:
    s = text.strip()
    m = _FENCE_RE.search(s)
    if m:
        return m.group(1).strip()
    return s


def parse_json_object_from_text(text: str) -> Any:
    """Parse model-emitted JSON, tolerating a ```json fence. Raises ValueError on bad JSON."""
    return json.loads(strip_code_fence(text))


def extract_error_message(payload: Any, provider: str = "OpenRouter") -> str:
    fallback = f"Unknown {provider} error"
    if not isinstance(payload, dict):
        return fallback

    error = payload.get("error")
    if isinstance(error, dict) and _non_empty_str(error.get("message")):
        return error["message"]
    for key in ("message", "detail"):
        found = _non_empty_str(payload.get(key))
        if found:
            return found
    errors = payload.get("errors")
    if isinstance(errors, list) and errors and isinstance(errors[0], dict):
        found = _non_empty_str(errors[0].get("message"))
        if found:
            return found
    return fallback
