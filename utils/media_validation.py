"""Validation and normalization of submitted images."""

import asyncio
import io
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from services.errors import RequestFailure

MAX_DIMENSIONS: Tuple[int, int] = (1600, 1600)


def normalize_image(raw: bytes, max_size: Tuple[int, int] = MAX_DIMENSIONS) -> bytes:
    """Return the image re-encoded as an RGB JPEG no larger than `max_size`.

    Raises:
        RequestFailure: If the bytes cannot be opened as an image.
    """
    if not raw:
        raise RequestFailure("Image bytes are empty.")
    try:
        src = Image.open(io.BytesIO(raw))
        src.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise RequestFailure("Downloaded bytes are not a supported image format") from exc

    # Flatten alpha against white before JPEG encoding
    if src.mode in ("RGBA", "LA", "P"):
        src = src.convert("RGBA")
        background = Image.new("RGB", src.size, (255, 255, 255))
        background.paste(src, mask=src.split()[3])
        src = background
    elif src.mode != "RGB":
        src = src.convert("RGB")

    src.thumbnail(max_size, Image.LANCZOS)

    out_io = io.BytesIO()
    src.save(out_io, format="JPEG", quality=90)
    return out_io.getvalue()


async def normalize_image_async(raw: bytes) -> bytes:
    """Run `normalize_image` off the event loop."""
    return await asyncio.to_thread(normalize_image, raw)
