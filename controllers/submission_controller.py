"""Controller for inbound images and free-text chat messages."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from dal.account_store import AccountStore
from models.outbound_message import OutboundMessage
from services import messages
from services.diagnosis_queue import DiagnosisQueue
from services.notifier import Notifier

LOGGER = logging.getLogger(__name__)


class SubmissionController:
    """Turn transport events into queue and operator actions.

    Args:
        queue: The diagnosis queue.
        notifier: Outbound notification port.
        account_store: Optional quota store; when None every chat may submit.
    """

    def __init__(self, queue: DiagnosisQueue, notifier: Notifier, account_store: Optional[AccountStore] = None) -> None:
        self.queue = queue
        self.notifier = notifier
        self.account_store = account_store

    async def submit_image(self, chat_ref: str, image_ref: str) -> Dict[str, Any]:
        """Enqueue an image for analysis unless the chat's quota is exhausted.

        Returns:
            A dict with `accepted`, and `job_id`/`position` when accepted.
        """
        if not image_ref or not image_ref.strip():
            raise ValueError("An image reference is required.")
        if self.account_store is not None and not await self.account_store.can_scan(chat_ref):
            await self.notifier.notify(chat_ref, OutboundMessage(kind="text", text=messages.PAYMENT_REQUIRED))
            return {"accepted": False, "message": messages.PAYMENT_REQUIRED}

        job = self.queue.new_job(chat_ref, image_ref.strip())
        position = self.queue.enqueue(job)
        await self.notifier.notify_queue_position(chat_ref, position)
        return {"accepted": True, "job_id": job.job_id, "position": position}

    async def submit_text(self, chat_ref: str, text: str) -> Dict[str, Any]:
        """Handle a free-text message.

        `/start` is answered with the welcome text. Other text from exhausted
        accounts is forwarded to the operator as a possible payment.
        """
        cleaned = (text or "").strip()
        if cleaned.split(maxsplit=1)[:1] == ["/start"]:
            if self.account_store is not None:
                await self.account_store.get_or_create(chat_ref)
            await self.notifier.notify(chat_ref, OutboundMessage(kind="text", text=messages.WELCOME))
            return {"forwarded": False, "message": messages.WELCOME}
        if not cleaned or cleaned.startswith("/"):
            return {"forwarded": False}
        if self.account_store is None or await self.account_store.can_scan(chat_ref):
            return {"forwarded": False}

        await self.notifier.notify_operator(messages.payment_forward(chat_ref, cleaned))
        await self.notifier.notify(chat_ref, OutboundMessage(kind="text", text=messages.PAYMENT_RECEIVED))
        LOGGER.info("Forwarded possible payment message from chat %s", chat_ref)
        return {"forwarded": True, "message": messages.PAYMENT_RECEIVED}
