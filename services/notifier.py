"""Notification port towards the chat transport, plus an outbox adapter."""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from typing import Deque, Dict, List, Protocol

from models.outbound_message import OutboundMessage
from services import messages

LOGGER = logging.getLogger(__name__)
OPERATOR_LOGGER = logging.getLogger("operator")


class Notifier(Protocol):
    """What the core needs from the chat transport."""

    async def notify(self, chat_ref: str, message: OutboundMessage) -> None: ...

    async def notify_queue_position(self, chat_ref: str, position: int) -> None: ...

    async def notify_operator(self, text: str) -> None: ...


class OutboxNotifier:
    """Queue notifications per chat until the transport collects them.

    Operator notifications go to `operator_chat_ref` and are also logged on
    the `operator` logger.
    """

    def __init__(self, operator_chat_ref: str = "operator", max_per_chat: int = 200) -> None:
        self.operator_chat_ref = operator_chat_ref
        self._outboxes: Dict[str, Deque[OutboundMessage]] = defaultdict(lambda: deque(maxlen=max_per_chat))

    async def notify(self, chat_ref: str, message: OutboundMessage) -> None:
        self._outboxes[chat_ref].append(message)
        LOGGER.debug("Queued %s message for chat %s", message.kind, chat_ref)

    async def notify_queue_position(self, chat_ref: str, position: int) -> None:
        await self.notify(
            chat_ref,
            OutboundMessage(kind="queue_position", text=messages.queue_position(position), payload={"position": position}),
        )

    async def notify_operator(self, text: str) -> None:
        OPERATOR_LOGGER.warning(text)
        await self.notify(self.operator_chat_ref, OutboundMessage(kind="text", text=text))

    def drain(self, chat_ref: str) -> List[OutboundMessage]:
        """Remove and return every pending message for `chat_ref`."""
        outbox = self._outboxes.pop(chat_ref, None)
        return list(outbox) if outbox else []

    def pending(self, chat_ref: str) -> List[OutboundMessage]:
        """Return pending messages without removing them."""
        return list(self._outboxes.get(chat_ref, ()))
