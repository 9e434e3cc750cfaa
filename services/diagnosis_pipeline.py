"""Processing of one dequeued job, from download to delivered result."""

from __future__ import annotations

import logging
from typing import Optional

from dal.account_store import AccountStore
from dal.record_store import RecordStore
from models.diagnosis_report import DiagnosisReport
from models.job import Job
from models.outbound_message import OutboundMessage
from services import messages
from services.errors import PoolExhausted, RequestFailure, StoreIOFailure
from services.image_fetcher import ImageFetcher
from services.image_store import ImageStore
from services.notifier import Notifier
from services.openai.analysis_client import AnalysisClient
from services.openai.failover import RetryPolicy
from utils.media_validation import normalize_image_async

LOGGER = logging.getLogger(__name__)

FEEDBACK_VERDICTS = ("confirmed", "rejected")


class DiagnosisPipeline:
    """Run one job to completion and tell the submitter how it went.

    The submitter always receives exactly one of: the diagnosis, the
    no-subject text, the payment text, or the generic technical-error text.
    Failures are caught here; the queue only sees notifier failures.
    """

    def __init__(
        self,
        *,
        fetcher: ImageFetcher,
        image_store: ImageStore,
        analysis_client: AnalysisClient,
        retry_policy: RetryPolicy,
        record_store: RecordStore,
        notifier: Notifier,
        account_store: Optional[AccountStore] = None,
    ) -> None:
        self.fetcher = fetcher
        self.image_store = image_store
        self.analysis_client = analysis_client
        self.retry_policy = retry_policy
        self.record_store = record_store
        self.notifier = notifier
        self.account_store = account_store

    async def process(self, job: Job) -> None:
        try:
            await self._process(job)
        except PoolExhausted as exc:
            detail = "; ".join(str(f) for f in exc.failures)
            LOGGER.error("Job %s abandoned, credential pool exhausted: %s", job.job_id, detail)
            await self.notifier.notify_operator(
                f"Credential pool exhausted after {len(exc.failures)} attempts (job {job.job_id}). {detail}"
            )
            await self._notify_text(job, messages.TECHNICAL_ERROR)
        except RequestFailure as exc:
            LOGGER.warning("Job %s failed: %s", job.job_id, exc)
            await self._notify_text(job, messages.TECHNICAL_ERROR)
        except Exception:
            LOGGER.exception("Unexpected failure while processing job %s", job.job_id)
            await self._notify_text(job, messages.TECHNICAL_ERROR)

    async def _process(self, job: Job) -> None:
        if self.account_store is not None and not await self.account_store.can_scan(job.chat_ref):
            LOGGER.info("Skipping job %s: chat %s has no scans left", job.job_id, job.chat_ref)
            await self._notify_text(job, messages.PAYMENT_REQUIRED)
            return

        raw = await self.fetcher.fetch(job.image_ref)
        image_bytes = await normalize_image_async(raw)

        report: DiagnosisReport = await self.retry_policy.run(
            lambda credential: self.analysis_client.analyze(image_bytes, credential)
        )

        if not report.subject_detected:
            await self._notify_text(job, messages.NO_SUBJECT)
            return

        record_id = await self._persist(job, image_bytes, report)

        is_paid, free_scans = False, None
        if self.account_store is not None:
            account = await self.account_store.consume_scan(job.chat_ref)
            is_paid, free_scans = account.is_paid, account.free_scans

        payload = {
            "record_id": record_id,
            "report": report.model_dump(mode="json"),
            "feedback_options": list(FEEDBACK_VERDICTS) if record_id is not None else [],
        }
        text = messages.render_report(report, is_paid=is_paid, free_scans=free_scans)
        await self.notifier.notify(job.chat_ref, OutboundMessage(kind="diagnosis", text=text, payload=payload))

    async def _persist(self, job: Job, image_bytes: bytes, report: DiagnosisReport) -> Optional[int]:
        """Store image and record; returns None when the record could not be created."""
        try:
            image_path = await self.image_store.save(job.job_id, image_bytes)
        except StoreIOFailure as exc:
            LOGGER.error("Image for job %s not stored: %s", job.job_id, exc)
            image_path = ""
        try:
            return await self.record_store.create(
                chat_ref=job.chat_ref,
                image_path=image_path,
                diagnosis=report.model_dump(mode="json"),
                record_id=job.job_id,
            )
        except ValueError as exc:
            LOGGER.error("Record for job %s not created: %s", job.job_id, exc)
            return None

    async def _notify_text(self, job: Job, text: str) -> None:
        await self.notifier.notify(job.chat_ref, OutboundMessage(kind="text", text=text))
