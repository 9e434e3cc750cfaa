from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class FeedbackState(str, Enum):
    """Lifecycle of a diagnosis record; confirmed and rejected are terminal."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not FeedbackState.PENDING


@dataclass
class DiagnosisRecord:
    """In-memory representation of one entry of the records file.

    Attributes:
        id: Unique, strictly increasing identifier (the originating job id).
        chat_ref: Chat that submitted the image.
        image_path: Where the analysed image blob is stored.
        diagnosis: Structured report returned by the analysis service.
        feedback_state: Current feedback state.
        created_at: Unix timestamp (seconds) when the record was created.
        resolved_at: Unix timestamp of the feedback transition, if any.
    """

    id: int
    chat_ref: str
    image_path: str
    diagnosis: Dict[str, Any] = field(default_factory=dict)
    feedback_state: FeedbackState = FeedbackState.PENDING
    created_at: float = 0.0
    resolved_at: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "chat_ref": self.chat_ref,
            "image_path": self.image_path,
            "diagnosis": self.diagnosis,
            "feedback_state": self.feedback_state.value,
            "created_at": self.created_at,
            "resolved_at": self.resolved_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DiagnosisRecord":
        return cls(
            id=int(data["id"]),
            chat_ref=str(data.get("chat_ref", "")),
            image_path=str(data.get("image_path", "")),
            diagnosis=dict(data.get("diagnosis") or {}),
            feedback_state=FeedbackState(data.get("feedback_state", FeedbackState.PENDING.value)),
            created_at=float(data.get("created_at") or 0.0),
            resolved_at=data.get("resolved_at"),
        )
