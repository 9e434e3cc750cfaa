"""FeedbackStateMachine tests."""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from controllers.feedback_controller import FeedbackController
from dal.record_store import RecordStore
from models.diagnosis_record import FeedbackState
from services import messages
from services.errors import ArchivePublishFailure
from services.feedback_machine import FeedbackOutcome, FeedbackStateMachine


@pytest_asyncio.fixture
async def store(tmp_path):
    record_store = RecordStore(tmp_path / "records.json")
    await record_store.load()
    return record_store


async def _pending_record(store, chat_ref="chat-1"):
    return await store.create(chat_ref=chat_ref, image_path="/img/1.jpg", diagnosis={"severity": "LOW"})


class TestFeedbackStateMachine:
    @pytest.mark.asyncio
    async def test_confirm_archives_exactly_once(self, store, notifier):
        """A second confirmation neither mutates nor re-archives."""
        archive = AsyncMock()
        machine = FeedbackStateMachine(store, archive, notifier)
        record_id = await _pending_record(store)

        first = await machine.transition("chat-1", record_id, "confirmed")
        second = await machine.transition("chat-1", record_id, "confirmed")

        assert first.outcome is FeedbackOutcome.APPLIED
        assert first.archived is True
        assert second.outcome is FeedbackOutcome.ALREADY_RESOLVED
        assert archive.publish.await_count == 1
        assert (await store.get(record_id)).feedback_state is FeedbackState.CONFIRMED

    @pytest.mark.asyncio
    async def test_reject_does_not_archive(self, store, notifier):
        archive = AsyncMock()
        machine = FeedbackStateMachine(store, archive, notifier)
        record_id = await _pending_record(store)

        result = await machine.transition("chat-1", record_id, "rejected")

        assert result.outcome is FeedbackOutcome.APPLIED
        assert result.record.feedback_state is FeedbackState.REJECTED
        archive.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_terminal_state_is_final(self, store, notifier):
        machine = FeedbackStateMachine(store, AsyncMock(), notifier)
        record_id = await _pending_record(store)

        await machine.transition("chat-1", record_id, "rejected")
        result = await machine.transition("chat-1", record_id, "confirmed")

        assert result.outcome is FeedbackOutcome.ALREADY_RESOLVED
        assert result.record.feedback_state is FeedbackState.REJECTED

    @pytest.mark.asyncio
    async def test_unknown_record_is_not_found(self, store, notifier):
        archive = AsyncMock()
        machine = FeedbackStateMachine(store, archive, notifier)
        record_id = await _pending_record(store)

        result = await machine.transition("chat-1", record_id + 999, "confirmed")

        assert result.outcome is FeedbackOutcome.NOT_FOUND
        assert result.record is None
        assert (await store.get(record_id)).feedback_state is FeedbackState.PENDING
        archive.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_other_chat_cannot_resolve(self, store, notifier):
        machine = FeedbackStateMachine(store, AsyncMock(), notifier)
        record_id = await _pending_record(store, chat_ref="owner")

        result = await machine.transition("intruder", record_id, "confirmed")

        assert result.outcome is FeedbackOutcome.NOT_FOUND
        assert (await store.get(record_id)).feedback_state is FeedbackState.PENDING

    @pytest.mark.asyncio
    async def test_archive_failure_keeps_state_and_alerts_operator(self, store, notifier):
        archive = AsyncMock()
        archive.publish.side_effect = ArchivePublishFailure("archive offline")
        machine = FeedbackStateMachine(store, archive, notifier)
        record_id = await _pending_record(store)

        result = await machine.transition("chat-1", record_id, "confirmed")

        assert result.outcome is FeedbackOutcome.APPLIED
        assert result.archived is False
        assert (await store.get(record_id)).feedback_state is FeedbackState.CONFIRMED
        assert archive.publish.await_count == 1
        assert any("archive offline" in text for text in notifier.operator)
        assert notifier.texts_for("chat-1") == []

    @pytest.mark.asyncio
    async def test_unreachable_operator_channel_does_not_reach_submitter(self, store, notifier):
        """A failing operator alert after an archive failure still acknowledges the confirmation."""
        archive = AsyncMock()
        archive.publish.side_effect = ArchivePublishFailure("archive offline")
        notifier.notify_operator = AsyncMock(side_effect=ConnectionError("operator chat down"))
        machine = FeedbackStateMachine(store, archive, notifier)
        record_id = await _pending_record(store)

        result = await machine.transition("chat-1", record_id, "confirmed")
        assert result.outcome is FeedbackOutcome.APPLIED
        assert result.archived is False

        other_id = await _pending_record(store)
        reply = await FeedbackController(machine, notifier).submit_feedback("chat-1", other_id, "confirmed")

        assert reply == {"outcome": "applied", "feedback_state": "confirmed"}
        assert notifier.texts_for("chat-1") == [messages.FEEDBACK_THANKS]
        assert notifier.notify_operator.await_count == 2

    @pytest.mark.asyncio
    async def test_invalid_verdict(self, store, notifier):
        machine = FeedbackStateMachine(store, AsyncMock(), notifier)
        record_id = await _pending_record(store)
        with pytest.raises(ValueError):
            await machine.transition("chat-1", record_id, "pending")
        with pytest.raises(ValueError):
            await machine.transition("chat-1", record_id, "maybe")
