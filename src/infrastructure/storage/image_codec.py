from __future__ import annotations

import base64
import binascii
import re
from io import BytesIO

import numpy as np
from PIL import Image

from src.domain.errors import InvalidResponseFormat

_DATA_URI = re.compile(r"^data:(image/[^;,]+);base64,(.+)$", re.DOTALL)


def decode_to_numpy(data: bytes) -> np.ndarray:
    """Decode encoded image bytes into a float32 RGB array in [0, 1]."""
    img = Image.open(BytesIO(data)).convert("RGB")
    return np.asarray(img).astype(np.float32) / 255.0


def encode_numpy(array: np.ndarray, fmt: str = "JPEG") -> bytes:
    arr = np.clip(array, 0.0, 1.0).astype(np.float32)
    # uint8 (H, W) decodes as "L", (H, W, 3) as "RGB"
    if arr.ndim == 2:
        pil_arr = (arr * 255.0).round().astype("uint8")
    else:
        pil_arr = (arr[..., :3] * 255.0).round().astype("uint8")
    img = Image.fromarray(pil_arr)
    buf = BytesIO()
    if fmt.upper() == "PNG":
        img.save(buf, format="PNG")
    else:
        img.save(buf, format="JPEG", quality=95)
    return buf.getvalue()


def sniff_mime(data: bytes) -> str:
    try:
        with Image.open(BytesIO(data)) as img:
            return Image.MIME.get(img.format, "image/jpeg")
    except (OSError, ValueError):
        return "image/jpeg"


def to_data_uri(data: bytes, mime: str | None = None) -> str:
    mime = mime or sniff_mime(data)
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def parse_data_uri(uri: str) -> tuple[str, bytes]:
    """Split an image data URI into (mime, raw bytes)."""
    match = _DATA_URI.match(uri.strip()) if isinstance(uri, str) else None
    if not match:
        raise InvalidResponseFormat("Invalid data URL")
    try:
        return match.group(1), base64.b64decode(match.group(2), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidResponseFormat(f"Invalid base64 payload: {exc}") from exc
