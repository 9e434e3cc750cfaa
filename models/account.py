from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


@dataclass
class Account:
    """Per-chat usage bookkeeping for the free-scan quota."""

    chat_ref: str
    free_scans: int
    is_paid: bool = False
    joined_at: float = 0.0

    @property
    def can_scan(self) -> bool:
        return self.is_paid or self.free_scans > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chat_ref": self.chat_ref,
            "free_scans": self.free_scans,
            "is_paid": self.is_paid,
            "joined_at": self.joined_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Account":
        return cls(
            chat_ref=str(data["chat_ref"]),
            free_scans=int(data.get("free_scans", 0)),
            is_paid=bool(data.get("is_paid", False)),
            joined_at=float(data.get("joined_at") or 0.0),
        )
