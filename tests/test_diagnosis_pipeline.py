"""End-to-end processing of jobs with fake network collaborators."""

from unittest.mock import AsyncMock

import pytest

from conftest import permission_error, rate_limit_error, server_error
from dal.account_store import AccountStore
from dal.record_store import RecordStore
from models.diagnosis_record import FeedbackState
from models.diagnosis_report import DiagnosisReport
from models.job import Job
from services import messages
from services.diagnosis_pipeline import DiagnosisPipeline
from services.diagnosis_queue import DiagnosisQueue
from services.errors import RequestFailure
from services.image_store import ImageStore
from services.openai.credential_pool import CredentialPool
from services.openai.failover import RetryPolicy


class ScriptedAnalysisClient:
    """Analysis client returning scripted outcomes keyed by credential secret."""

    def __init__(self, outcomes):
        self.outcomes = outcomes
        self.calls = []
        self.active = 0
        self.peak = 0

    async def analyze(self, image_bytes, credential):
        self.calls.append(credential.secret)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            outcome = self.outcomes[credential.secret]
            if isinstance(outcome, BaseException):
                raise outcome
            return DiagnosisReport.model_validate(outcome)
        finally:
            self.active -= 1


def _build(tmp_path, notifier, jpeg_bytes, outcomes, keys=("k1", "k2"), accounts=None):
    pool = CredentialPool(list(keys))
    fetcher = AsyncMock()
    fetcher.fetch.return_value = jpeg_bytes
    client = ScriptedAnalysisClient(outcomes)
    store = RecordStore(tmp_path / "records.json")
    pipeline = DiagnosisPipeline(
        fetcher=fetcher,
        image_store=ImageStore(tmp_path / "images"),
        analysis_client=client,
        retry_policy=RetryPolicy(pool),
        record_store=store,
        notifier=notifier,
        account_store=accounts,
    )
    return pipeline, pool, client, store, fetcher


def _job(job_id=1_000, chat_ref="chat-1"):
    return Job(job_id=job_id, chat_ref=chat_ref, image_ref="https://example.com/bee.jpg")


class TestDiagnosisPipeline:
    @pytest.mark.asyncio
    async def test_success_creates_pending_record_and_notifies(self, tmp_path, notifier, jpeg_bytes, sample_report):
        pipeline, pool, client, store, _ = _build(tmp_path, notifier, jpeg_bytes, {"k1": sample_report})

        await pipeline.process(_job())

        record = await store.get(1_000)
        assert record is not None
        assert record.feedback_state is FeedbackState.PENDING
        assert record.diagnosis["condition_name"] == "Varroa mite infestation"
        assert (tmp_path / "images" / "1000.jpg").exists()

        chat, message = notifier.messages[-1]
        assert chat == "chat-1"
        assert message.kind == "diagnosis"
        assert message.payload["record_id"] == 1_000
        assert message.payload["feedback_options"] == ["confirmed", "rejected"]
        assert "Varroa" in message.text

    @pytest.mark.asyncio
    async def test_revoked_key_fails_over(self, tmp_path, notifier, jpeg_bytes, sample_report):
        """REVOKED on key 1 and success on key 2 creates the record."""
        pipeline, pool, client, store, _ = _build(
            tmp_path, notifier, jpeg_bytes, {"k1": permission_error(), "k2": sample_report}
        )

        await pipeline.process(_job())

        assert client.calls == ["k1", "k2"]
        assert pool.index == 1
        record = await store.get(1_000)
        assert record.diagnosis["severity"] == "MODERATE"

    @pytest.mark.asyncio
    async def test_pool_exhausted_sends_generic_error(self, tmp_path, notifier, jpeg_bytes):
        pipeline, pool, client, store, _ = _build(
            tmp_path, notifier, jpeg_bytes, {"k1": rate_limit_error(), "k2": rate_limit_error()}
        )

        await pipeline.process(_job())

        assert len(client.calls) == 4
        assert len(store) == 0
        assert notifier.texts_for("chat-1") == [messages.TECHNICAL_ERROR]
        assert notifier.operator and "exhausted" in notifier.operator[0]

    @pytest.mark.asyncio
    async def test_request_failure_is_not_retried(self, tmp_path, notifier, jpeg_bytes):
        pipeline, pool, client, store, _ = _build(tmp_path, notifier, jpeg_bytes, {"k1": server_error()})

        await pipeline.process(_job())

        assert client.calls == ["k1"]
        assert pool.index == 0
        assert notifier.texts_for("chat-1") == [messages.TECHNICAL_ERROR]

    @pytest.mark.asyncio
    async def test_download_failure(self, tmp_path, notifier, jpeg_bytes, sample_report):
        pipeline, _, client, _, fetcher = _build(tmp_path, notifier, jpeg_bytes, {"k1": sample_report})
        fetcher.fetch.side_effect = RequestFailure("404")

        await pipeline.process(_job())

        assert client.calls == []
        assert notifier.texts_for("chat-1") == [messages.TECHNICAL_ERROR]

    @pytest.mark.asyncio
    async def test_not_an_image(self, tmp_path, notifier, sample_report):
        pipeline, _, client, _, _ = _build(tmp_path, notifier, b"<html>nope</html>", {"k1": sample_report})

        await pipeline.process(_job())

        assert client.calls == []
        assert notifier.texts_for("chat-1") == [messages.TECHNICAL_ERROR]

    @pytest.mark.asyncio
    async def test_no_subject_detected(self, tmp_path, notifier, jpeg_bytes):
        pipeline, _, _, store, _ = _build(tmp_path, notifier, jpeg_bytes, {"k1": {"subject_detected": False}})

        await pipeline.process(_job())

        assert len(store) == 0
        assert notifier.texts_for("chat-1") == [messages.NO_SUBJECT]

    @pytest.mark.asyncio
    async def test_free_scan_consumed_and_paywall_enforced(self, tmp_path, notifier, jpeg_bytes, sample_report):
        accounts = AccountStore(tmp_path / "accounts.json", free_scans=1)
        pipeline, _, client, _, _ = _build(tmp_path, notifier, jpeg_bytes, {"k1": sample_report}, accounts=accounts)

        await pipeline.process(_job(job_id=1_000))
        await pipeline.process(_job(job_id=1_001))

        assert client.calls == ["k1"]
        assert accounts.get("chat-1").free_scans == 0
        assert notifier.texts_for("chat-1")[-1] == messages.PAYMENT_REQUIRED

    @pytest.mark.asyncio
    async def test_queue_never_overlaps_analysis_calls(self, tmp_path, notifier, jpeg_bytes, sample_report):
        """Jobs drained through the queue keep the client concurrency at one."""
        pipeline, _, client, store, _ = _build(tmp_path, notifier, jpeg_bytes, {"k1": sample_report})
        queue = DiagnosisQueue(pipeline.process, id_generator=store.id_generator)

        for n in range(5):
            queue.enqueue(queue.new_job(f"chat-{n}", "https://example.com/bee.jpg"))
        await queue.wait_idle()

        assert client.peak == 1
        assert len(store) == 5
        ids = [r.id for r in store.list_records()]
        assert ids == sorted(ids)
