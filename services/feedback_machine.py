"""Feedback transitions of diagnosis records and the archival side-effect."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from dal.record_store import RecordStore
from models.diagnosis_record import DiagnosisRecord, FeedbackState
from services.dataset_archive import ArchivePublisher
from services.notifier import Notifier

LOGGER = logging.getLogger(__name__)


class FeedbackOutcome(str, Enum):
    APPLIED = "applied"
    ALREADY_RESOLVED = "already_resolved"
    NOT_FOUND = "not_found"


@dataclass
class FeedbackResult:
    outcome: FeedbackOutcome
    record: Optional[DiagnosisRecord] = None
    archived: bool = False


def parse_verdict(verdict: str) -> FeedbackState:
    """Map a transport verdict to a terminal state.

    Raises:
        ValueError: If the verdict is not `confirmed` or `rejected`.
    """
    state = FeedbackState(str(verdict).strip().lower())
    if not state.is_terminal:
        raise ValueError("Feedback verdict must be 'confirmed' or 'rejected'.")
    return state


class FeedbackStateMachine:
    """Move records from pending to confirmed or rejected, exactly once.

    Confirmation publishes the record to the archive. Archive failures are
    reported to the operator channel and never change the record state.
    """

    def __init__(self, record_store: RecordStore, archive: ArchivePublisher, notifier: Notifier) -> None:
        self.record_store = record_store
        self.archive = archive
        self.notifier = notifier

    async def transition(self, chat_ref: str, record_id: int, verdict: str) -> FeedbackResult:
        target = parse_verdict(verdict)
        found_for_chat = False
        applied = False

        def mutate(record: DiagnosisRecord) -> bool:
            nonlocal found_for_chat, applied
            if record.chat_ref != chat_ref:
                return False
            found_for_chat = True
            if record.feedback_state.is_terminal:
                return False
            record.feedback_state = target
            record.resolved_at = time.time()
            applied = True
            return True

        record = await self.record_store.update(record_id, mutate)
        if record is None or not found_for_chat:
            LOGGER.info("Feedback for unknown record %s from chat %s", record_id, chat_ref)
            return FeedbackResult(FeedbackOutcome.NOT_FOUND)
        if not applied:
            LOGGER.info("Record %s already resolved as %s", record_id, record.feedback_state.value)
            return FeedbackResult(FeedbackOutcome.ALREADY_RESOLVED, record)

        LOGGER.info("Record %s marked %s", record_id, target.value)
        archived = False
        if target is FeedbackState.CONFIRMED:
            archived = await self._archive(record)
        return FeedbackResult(FeedbackOutcome.APPLIED, record, archived)

    async def _archive(self, record: DiagnosisRecord) -> bool:
        try:
            await self.archive.publish(record)
            return True
        except Exception as exc:
            LOGGER.error("Archive publish failed for record %s: %s", record.id, exc)
            try:
                await self.notifier.notify_operator(f"Archive publish failed for record {record.id}: {exc}")
            except Exception:
                LOGGER.exception("Operator alert for record %s could not be delivered", record.id)
            return False
