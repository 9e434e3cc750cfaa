"""Long-term archive of confirmed diagnoses for dataset curation.

A confirmed record is published as an image plus a JSON sidecar under
`<archive_dir>/<severity>/<record_id>.{jpg,json}`.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Protocol

import aiofiles

from models.diagnosis_record import DiagnosisRecord
from services.errors import ArchivePublishFailure, StoreIOFailure
from services.image_store import ImageStore

LOGGER = logging.getLogger(__name__)


class ArchivePublisher(Protocol):
    async def publish(self, record: DiagnosisRecord) -> None: ...


class DatasetArchive:
    """Publish confirmed records into a curated directory tree."""

    def __init__(self, archive_dir: Path | str, image_store: ImageStore) -> None:
        self.archive_dir = Path(archive_dir)
        self.image_store = image_store

    async def publish(self, record: DiagnosisRecord) -> None:
        """Copy the record's image and diagnosis into the archive.

        Raises:
            ArchivePublishFailure: If the image cannot be read or the archive cannot be written.
        """
        try:
            image_bytes = await self.image_store.read(record.image_path)
        except StoreIOFailure as exc:
            raise ArchivePublishFailure(f"Image for record {record.id} unavailable: {exc}") from exc

        severity = str(record.diagnosis.get("severity") or "UNKNOWN").lower()
        target_dir = self.archive_dir / severity
        sidecar = {
            "record_id": record.id,
            "diagnosis": record.diagnosis,
            "created_at": record.created_at,
            "confirmed_at": record.resolved_at,
            "archived_at": time.time(),
        }
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(target_dir / f"{record.id}.jpg", "wb") as f:
                await f.write(image_bytes)
            async with aiofiles.open(target_dir / f"{record.id}.json", "w", encoding="utf-8") as f:
                await f.write(json.dumps(sidecar, ensure_ascii=False, indent=2))
        except OSError as exc:
            raise ArchivePublishFailure(f"Archive write failed for record {record.id}: {exc}") from exc
        LOGGER.info("Archived confirmed record %s under %s", record.id, target_dir)
