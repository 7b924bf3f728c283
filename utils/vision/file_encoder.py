"""Turn uploaded image files into base64 payloads for the generation service."""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger("imagestudio.vision.file_encoder")


@dataclass(frozen=True)
class EncodedImage:
    """A base64 image body plus the MIME type it was declared with.

    ``payload`` never carries a ``data:`` prefix.
    """

    payload: str
    mime_type: str

    @property
    def is_empty(self) -> bool:
        return not self.payload

    def to_data_url(self) -> str:
        return to_data_url(self.payload, self.mime_type)

    def to_bytes(self) -> bytes:
        return base64.b64decode(self.payload, validate=True)


def to_data_url(payload: str, mime_type: str) -> str:
    """Return a ``data:`` URL wrapping an already-encoded base64 body."""
    return f"data:{mime_type or 'application/octet-stream'};base64,{payload}"


def split_data_url(url: str, default_mime_type: str = "") -> EncodedImage:
    """Split a data URL into its MIME type and base64 body.

    Strings without a ``data:`` scheme are treated as a bare base64 body.
    """
    trimmed = url.strip()
    if trimmed[:5].lower() != "data:":
        return EncodedImage(payload=trimmed, mime_type=default_mime_type)

    header, _, body = trimmed.partition(",")
    mime_type = header[5:].split(";", 1)[0].strip() or default_mime_type
    return EncodedImage(payload=body.strip(), mime_type=mime_type)


def _declared_mime_type(file: Any) -> str:
    for attribute in ("mimetype", "content_type", "type"):
        value = getattr(file, attribute, None)
        if isinstance(value, str) and value:
            # werkzeug's content_type may carry parameters
            return value.split(";", 1)[0].strip()
    return ""


def _read_all(file: Any) -> Optional[bytes]:
    stream = getattr(file, "stream", None)
    reader = file if callable(getattr(file, "read", None)) else stream
    if reader is None:
        return None
    data = reader.read()
    if isinstance(data, str):
        data = data.encode("utf-8")
    return data or None


def encode_file(file: Any) -> EncodedImage:
    """Read ``file`` completely and return its base64 body and MIME type.

    The file is encoded as a data URL first and the prefix is then stripped,
    so the payload is exactly what an inline image attachment expects. No
    size or type checks happen here. A file that cannot be read, or that
    reads as empty, produces an empty payload instead of an error; callers
    are expected to reject it when they validate their inputs.
    """
    mime_type = _declared_mime_type(file)

    try:
        data = _read_all(file)
        if not data:
            return EncodedImage(payload="", mime_type=mime_type)
        data_url = to_data_url(base64.b64encode(data).decode("ascii"), mime_type)
    except Exception as exc:
        # interrupted uploads surface as werkzeug HTTP errors, not OSError
        logger.warning(
            "file_encoder.read_failed",
            extra={
                "upload_name": getattr(file, "filename", None),
                "error_type": type(exc).__name__,
                "error": str(exc),
            },
        )
        return EncodedImage(payload="", mime_type=mime_type)

    return EncodedImage(payload=data_url.split(",", 1)[1], mime_type=mime_type)


__all__ = ["EncodedImage", "encode_file", "split_data_url", "to_data_url"]
