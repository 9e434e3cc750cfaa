"""Messages handed to the transport layer."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class OutboundMessage:
	"""A notification for one chat.

	`kind` is one of `text`, `diagnosis`, or `queue_position`; `payload`
	carries the structured part (report, record id, feedback options).
	"""

	kind: str
	text: str
	payload: Optional[Dict[str, Any]] = None
	created_at: float = field(default_factory=lambda: time.time())

	def to_dict(self) -> Dict[str, Any]:
		return {"kind": self.kind, "text": self.text, "payload": self.payload, "created_at": self.created_at}
