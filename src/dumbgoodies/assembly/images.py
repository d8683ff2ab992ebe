from __future__ import annotations

import base64
import io

from PIL import Image, UnidentifiedImageError

from dumbgoodies.errors import ImageDecodeError


def decode_image(data: bytes) -> Image.Image:
    """
    Fully decode image bytes. Raises ImageDecodeError for anything Pillow cannot
    read (SVG, truncated files, non-images).
    """
    if not data:
        raise ImageDecodeError("empty image payload")
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise ImageDecodeError(f"cannot decode image: {exc}") from exc
    return img


def pil_to_png_bytes(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    if img.mode not in ("RGB", "RGBA", "L", "LA"):
        img = img.convert("RGBA")
    img.save(buf, format="PNG")
    return buf.getvalue()


def normalize_to_png(data: bytes) -> bytes:
    """Re-encode any decodable image as PNG. Callers decide what to do on ImageDecodeError."""
    return pil_to_png_bytes(decode_image(data))


def make_thumbnail(data: bytes, max_size: int = 512) -> bytes:
    """Fit inside max_size x max_size, aspect preserved, never enlarged."""
    img = decode_image(data)
    thumb = img.copy()
    thumb.thumbnail((max_size, max_size), Image.Resampling.LANCZOS)
    return pil_to_png_bytes(thumb)


def has_transparency(data: bytes) -> bool:
    img = decode_image(data)
    if img.mode == "P" and "transparency" in img.info:
        img = img.convert("RGBA")
    if "A" not in img.getbands():
        return False
    lo, _ = img.getchannel("A").getextrema()
    return lo < 255


def to_b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def from_b64(text: str) -> bytes:
    return base64.b64decode(text)
