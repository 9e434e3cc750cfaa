"""Helpers to remove image blobs no diagnosis record references any more."""

import asyncio
import logging
import time
from pathlib import Path

from dal.record_store import RecordStore

LOGGER = logging.getLogger(__name__)


class ImageCleaner:
    """Delete unreferenced image files older than the retention window."""

    def __init__(self, images_dir: Path | str, record_store: RecordStore, retention_seconds: int = 7 * 86_400) -> None:
        """
        Args:
            images_dir: Directory holding image blobs.
            record_store: Store whose records keep their images alive.
            retention_seconds: Age threshold in seconds; older orphans are removed.
        """
        self.images_dir = Path(images_dir)
        self._records = record_store
        self.retention_seconds = retention_seconds

    def _prune(self, referenced: set, cutoff: float) -> int:
        removed = 0
        if not self.images_dir.is_dir():
            return 0
        for path in self.images_dir.iterdir():
            if not path.is_file() or path.name in referenced:
                continue
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed += 1
            except FileNotFoundError:
                continue
        return removed

    async def prune_orphaned_images(self) -> int:
        """Delete orphaned images past the retention window and return count removed."""
        referenced = {Path(r.image_path).name for r in self._records.list_records() if r.image_path}
        cutoff = time.time() - self.retention_seconds
        removed = await asyncio.to_thread(self._prune, referenced, cutoff)
        if removed:
            LOGGER.info("Removed %d orphaned images from %s", removed, self.images_dir)
        return removed

    async def run_periodic_cleanup(self, interval_seconds: int = 3_600) -> None:
        """
        Repeatedly prune orphaned images at the given interval until cancelled.

        Args:
            interval_seconds: Seconds to sleep between cleanup runs.
        """
        while True:
            try:
                await self.prune_orphaned_images()
                await asyncio.sleep(interval_seconds)
            except asyncio.CancelledError:
                break
            except Exception:
                LOGGER.exception("Image cleanup failed; retrying next tick")
                await asyncio.sleep(interval_seconds)
