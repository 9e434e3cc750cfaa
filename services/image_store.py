"""Helpers for saving and reading analysed image blobs on disk.

Images are written under the configured images directory as
`<job_id>.jpg`. Records reference them by path; nothing here deletes
files (see `utils.image_cleaner`).
"""

from __future__ import annotations

from pathlib import Path

import aiofiles

from services.errors import StoreIOFailure


class ImageStore:
    """Write and read raw image blobs."""

    def __init__(self, base_dir: Path | str) -> None:
        self.base_dir = Path(base_dir)

    def path_for(self, job_id: int, ext: str = "jpg") -> Path:
        return self.base_dir / f"{int(job_id)}.{ext}"

    async def save(self, job_id: int, image_bytes: bytes) -> str:
        """Save image bytes for a job and return the stored path.

        Raises:
            ValueError: If image bytes are missing.
            StoreIOFailure: If the file cannot be written.
        """
        if not image_bytes:
            raise ValueError("Image bytes are required for saving.")
        target = self.path_for(job_id)
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(target, "wb") as f:
                await f.write(image_bytes)
        except OSError as exc:
            raise StoreIOFailure(f"Failed to save image {target}: {exc}") from exc
        return str(target)

    async def read(self, path: Path | str) -> bytes:
        """Read a stored image blob.

        Raises:
            StoreIOFailure: If the file is missing or unreadable.
        """
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except OSError as exc:
            raise StoreIOFailure(f"Failed to read image {path}: {exc}") from exc
