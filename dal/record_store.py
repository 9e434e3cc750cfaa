"""File-backed store of diagnosis records.

Provides RecordStore with async create/get/update operations over a
single JSON file, capped at the most recent `capacity` records.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from dal.json_file import JsonFile
from models.diagnosis_record import DiagnosisRecord, FeedbackState
from services.errors import StoreIOFailure
from utils.id_generator import MonotonicIdGenerator

LOGGER = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100

# A mutation edits the record in place and returns True when it changed anything.
RecordMutation = Callable[[DiagnosisRecord], bool]


class RecordStore:
    """Single owner of the records file.

    Records are kept in id order, which is also creation order. Every
    mutation rewrites the whole file; a failed rewrite is logged and the
    in-memory collection stays authoritative until the process exits.
    Evicted records do not have their image blobs removed.
    """

    def __init__(
        self,
        path: Path | str,
        capacity: int = DEFAULT_CAPACITY,
        id_generator: Optional[MonotonicIdGenerator] = None,
    ) -> None:
        if capacity < 1:
            raise ValueError("Record store capacity must be at least 1.")
        self._file = JsonFile(path, default=list)
        self.capacity = capacity
        self.id_generator = id_generator or MonotonicIdGenerator()
        self._records: "OrderedDict[int, DiagnosisRecord]" = OrderedDict()
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._file.path

    def __len__(self) -> int:
        return len(self._records)

    async def load(self) -> int:
        """Read the records file into memory and return the number loaded.

        An unreadable or corrupt file is logged and the store starts empty.
        """
        try:
            raw = await self._file.read()
        except StoreIOFailure as exc:
            LOGGER.error("Record store unreadable, starting empty: %s", exc)
            raw = []

        records: List[DiagnosisRecord] = []
        for item in raw if isinstance(raw, list) else []:
            try:
                records.append(DiagnosisRecord.from_dict(item))
            except (KeyError, TypeError, ValueError) as exc:
                LOGGER.warning("Skipping malformed record entry %r: %s", item, exc)

        records.sort(key=lambda r: r.id)
        self._records = OrderedDict((r.id, r) for r in records)
        self._evict_overflow()
        self.id_generator.observe(self.max_id())
        LOGGER.info("Loaded %d diagnosis records from %s", len(self._records), self.path)
        return len(self._records)

    def max_id(self) -> Optional[int]:
        """Return the highest record id, or None when the store is empty."""
        if not self._records:
            return None
        return next(reversed(self._records))

    def list_records(self) -> List[DiagnosisRecord]:
        """Return records oldest first."""
        return list(self._records.values())

    async def create(
        self,
        *,
        chat_ref: str,
        image_path: str,
        diagnosis: Dict[str, Any],
        record_id: Optional[int] = None,
    ) -> int:
        """Insert a pending record and return its id.

        Args:
            chat_ref: Chat that submitted the image.
            image_path: Stored image blob for the record.
            diagnosis: Structured report payload.
            record_id: Id to use (the job id); generated when omitted.

        Raises:
            ValueError: If `record_id` is not above every id already stored.
        """
        async with self._lock:
            current_max = self.max_id()
            if record_id is None:
                record_id = self.id_generator.next_id()
            if current_max is not None and record_id <= current_max:
                raise ValueError(f"Record id {record_id} is not above the latest id {current_max}.")
            self.id_generator.observe(record_id)

            record = DiagnosisRecord(
                id=record_id,
                chat_ref=chat_ref,
                image_path=image_path,
                diagnosis=dict(diagnosis),
                feedback_state=FeedbackState.PENDING,
                created_at=time.time(),
            )
            self._records[record_id] = record
            self._evict_overflow()
            await self._flush()
            return record_id

    async def get(self, record_id: int) -> Optional[DiagnosisRecord]:
        """Return the record for `record_id`, or None if not found."""
        return self._records.get(record_id)

    async def update(self, record_id: int, mutation: RecordMutation) -> Optional[DiagnosisRecord]:
        """Apply `mutation` to a record and persist it when something changed.

        Returns:
            The record after the mutation, or None if the id is unknown.
        """
        async with self._lock:
            record = self._records.get(record_id)
            if record is None:
                return None
            if mutation(record):
                await self._flush()
            return record

    def _evict_overflow(self) -> None:
        while len(self._records) > self.capacity:
            evicted_id, _ = self._records.popitem(last=False)
            LOGGER.debug("Evicted diagnosis record %s", evicted_id)

    async def _flush(self) -> None:
        try:
            await self._file.write([r.to_dict() for r in self._records.values()])
        except StoreIOFailure as exc:
            LOGGER.error("Record store write failed; keeping changes in memory only: %s", exc)
