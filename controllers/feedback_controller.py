"""Controller for feedback events on delivered diagnoses."""

from __future__ import annotations

import logging
from typing import Any, Dict

from models.outbound_message import OutboundMessage
from services import messages
from services.feedback_machine import FeedbackOutcome, FeedbackStateMachine
from services.notifier import Notifier

LOGGER = logging.getLogger(__name__)

_ACK_TEXT = {
    FeedbackOutcome.APPLIED: messages.FEEDBACK_THANKS,
    FeedbackOutcome.ALREADY_RESOLVED: messages.FEEDBACK_ALREADY_RECORDED,
    FeedbackOutcome.NOT_FOUND: messages.FEEDBACK_UNKNOWN,
}


class FeedbackController:
    """Apply a verdict and acknowledge the sender.

    Any failure while handling the event is logged and acknowledged with the
    technical-error text; it never propagates to the transport.
    """

    def __init__(self, machine: FeedbackStateMachine, notifier: Notifier) -> None:
        self.machine = machine
        self.notifier = notifier

    async def submit_feedback(self, chat_ref: str, record_id: int, verdict: str) -> Dict[str, Any]:
        """Return `{outcome, feedback_state}` for the event.

        Raises:
            ValueError: If the verdict is not recognised.
        """
        try:
            result = await self.machine.transition(chat_ref, record_id, verdict)
        except ValueError:
            raise
        except Exception:
            LOGGER.exception("Feedback for record %s failed", record_id)
            await self.notifier.notify(chat_ref, OutboundMessage(kind="text", text=messages.TECHNICAL_ERROR))
            return {"outcome": "error", "feedback_state": None}

        await self.notifier.notify(chat_ref, OutboundMessage(kind="text", text=_ACK_TEXT[result.outcome]))
        return {
            "outcome": result.outcome.value,
            "feedback_state": result.record.feedback_state.value if result.record else None,
        }
