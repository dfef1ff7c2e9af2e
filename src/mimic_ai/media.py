from __future__ import annotations

import base64
import binascii
import mimetypes
import os
import re
from dataclasses import dataclass
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from mimic_ai.normalize import to_data_uri

_GENERIC_TYPES = {"", "application/octet-stream"}
_DATA_URI_RE = re.compile(r"^data:(?P<mime>[^;,]+)?(?:;[^,]*)?;base64,(?P<data>.*)$", re.DOTALL)


@dataclass(frozen=True)
class MediaFile:
    """A competitor asset held in memory for the lifetime of the session."""

    filename: str
    content_type: str
    data: bytes

    @property
    def is_video(self) -> bool:
        return self.content_type.startswith("video/")

    @property
    def size(self) -> int:
        return len(self.data)

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_uri(self) -> str:
        return to_data_uri(self.to_base64(), self.content_type)


def _sniff_image_mime(data: bytes) -> str | None:
    try:
        with Image.open(BytesIO(data)) as img:
            return Image.MIME.get(img.format or "")
    except (UnidentifiedImageError, OSError):
        return None


def guess_content_type(filename: str, data: bytes, declared: str | None = None) -> str:
    declared = (declared or "").strip().lower()
    if declared not in _GENERIC_TYPES:
        return declared
    guessed, _ = mimetypes.guess_type(filename)
    if guessed:
        return guessed
    return _sniff_image_mime(data) or "application/octet-stream"


def media_from_upload(filename: str | None, data: bytes, content_type: str | None = None) -> MediaFile:
    name = os.path.basename(filename or "") or "upload.bin"
    return MediaFile(filename=name, content_type=guess_content_type(name, data, content_type), data=data)


def decode_data_uri(uri: str) -> tuple[str, bytes]:
    """Split a base64 data URI into (mime, payload bytes). Raises ValueError otherwise."""
    m = _DATA_URI_RE.match(uri.strip())
    if not m:
        raise ValueError("not a base64 data URI")
    try:
        payload = base64.b64decode(m.group("data"), validate=False)
    except binascii.Error as exc:
        raise ValueError(f"invalid base64 payload: {exc}") from exc
    return m.group("mime") or "application/octet-stream", payload
