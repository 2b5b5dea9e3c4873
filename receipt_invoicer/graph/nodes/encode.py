"""
Encode node: turns the uploaded receipt into base64 for the inline image part.

No size or type validation happens here. The upload form only advertises
image/* and callers must not assume anything more was checked.
"""

from __future__ import annotations

import base64
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from receipt_invoicer.errors import EncodeError
from receipt_invoicer.graph.state import ExtractionState

logger = logging.getLogger(__name__)

_DEFAULT_MIME = "image/png"
_MIME_JPEG = "image/jpeg"
_MIME_BY_SUFFIX = {
    ".jpg": _MIME_JPEG,
    ".jpeg": _MIME_JPEG,
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".heic": "image/heic",
}


def guess_mime_type(filename: Optional[str], content_type: Optional[str] = None) -> str:
    """Pick the mimeType for the inlineData part."""
    ct = (content_type or "").lower()
    if ct.startswith("image/"):
        return ct
    suffix = Path(filename or "").suffix.lower()
    return _MIME_BY_SUFFIX.get(suffix, _DEFAULT_MIME)


def _read(source: Any) -> bytes:
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)
    if isinstance(source, (str, Path)):
        return Path(source).read_bytes()
    read = getattr(source, "read", None)
    if not callable(read):
        raise TypeError(f"cannot read receipt image from {type(source).__name__}")
    raw = read()
    if isinstance(raw, str):
        raise TypeError("receipt image must be opened in binary mode")
    return raw


def encode(source: Union[bytes, str, Path, Any]) -> str:
    """Return the base64 payload of a receipt image.

    source may be raw bytes, a binary file object, a filesystem path or a
    data: URI. For a data URI the prefix is stripped and the payload returned
    as is.
    """
    if isinstance(source, str) and source.startswith("data:"):
        _, sep, payload = source.partition(",")
        if not sep:
            raise EncodeError("data URI has no payload")
        return payload

    try:
        raw = _read(source)
    except (OSError, ValueError, TypeError) as exc:
        raise EncodeError(f"could not read receipt image: {exc}") from exc

    return base64.standard_b64encode(raw).decode("ascii")


# ---------------------------------------------------------------------------
# Graph node
# ---------------------------------------------------------------------------

def encode_node(state: ExtractionState) -> Dict[str, Any]:
    """LangGraph node: base64-encode state.image for the extract node."""
    payload = encode(state.image.data)
    logger.debug("Encoded %s (%d bytes) for extraction", state.image.filename, len(state.image.data))
    return {"payload": payload}
