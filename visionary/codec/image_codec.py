"""
Purpose:
- Turn an uploaded file into a transport-ready ImageRecord (base64 payload + MIME type).
- Same path a browser takes: read fully -> data URL -> split header/payload -> match MIME.

Notes:
- No size or format allow-listing happens here; callers must not assume validation occurred.
- Pillow is only used to sniff the MIME type when neither the upload nor the filename carry one.
"""

from __future__ import annotations
import base64
import mimetypes
import re
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Optional, Union

from PIL import Image, UnidentifiedImageError

from ..core.errors import DecodeError

_MIME_ENVELOPE = re.compile(r":(.*?);")
FALLBACK_CONTENT_TYPE = "application/octet-stream"

@dataclass(frozen=True)
class ImageRecord:
    payload: str            # base64 text, data-URL prefix stripped
    content_type: str       # e.g. "image/png"
    preview_reference: str  # full data URL; for on-screen preview only, never sent upstream

def encode_data_url(raw: bytes, content_type: str) -> str:
    b64 = base64.b64encode(raw).decode("ascii")
    return f"data:{content_type};base64,{b64}"

def decode_data_url(data_url: str) -> ImageRecord:
    """
    Split `data:<mime>;base64,<data>` at the first comma and pull the MIME type out of
    the header's `:...;` envelope. Either both parts come out or DecodeError is raised.
    """
    if not isinstance(data_url, str):
        raise DecodeError("Failed to read file as a data URL.")
    header, sep, payload = data_url.partition(",")
    if not sep:
        raise DecodeError("Data URL has no payload segment.")
    m = _MIME_ENVELOPE.search(header)
    if not m or not m.group(1):
        raise DecodeError("Could not determine image MIME type.")
    return ImageRecord(payload=payload, content_type=m.group(1), preview_reference=data_url)

def sniff_content_type(raw: bytes, filename: Optional[str] = None) -> str:
    """Best-effort MIME type: filename extension, then Pillow's format detection."""
    if filename:
        guessed, _ = mimetypes.guess_type(filename)
        if guessed:
            return guessed
    try:
        with Image.open(BytesIO(raw)) as img:
            mime = Image.MIME.get(img.format or "")
    except (UnidentifiedImageError, OSError, ValueError):
        mime = None
    return mime or FALLBACK_CONTENT_TYPE

def record_from_bytes(raw: bytes, content_type: Optional[str] = None, filename: Optional[str] = None) -> ImageRecord:
    # multipart clients often send a bare octet-stream; treat that as "unknown"
    if not content_type or content_type == FALLBACK_CONTENT_TYPE:
        content_type = sniff_content_type(raw, filename)
    return decode_data_url(encode_data_url(raw, content_type))

def read_image(source: Union[str, Path, BinaryIO], content_type: Optional[str] = None,
               filename: Optional[str] = None) -> ImageRecord:
    """
    Read a path or binary file object fully into memory and build an ImageRecord.
    Read failures are re-raised as DecodeError with the original exception chained.
    """
    try:
        if isinstance(source, (str, Path)):
            path = Path(source)
            raw = path.read_bytes()
            filename = filename or path.name
        else:
            raw = source.read()
            filename = filename or getattr(source, "name", None)
    except OSError as e:
        raise DecodeError(f"Failed to read file: {e}") from e
    if not isinstance(raw, (bytes, bytearray)):
        raise DecodeError("Failed to read file as a data URL.")
    return record_from_bytes(bytes(raw), content_type=content_type,
                             filename=filename if isinstance(filename, str) else None)
