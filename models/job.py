from __future__ import annotations

import time
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Job:
    """One image waiting to be analysed for one chat.

    Attributes:
        job_id: Monotonic identifier, reused as the record id on success.
        chat_ref: Chat that submitted the image.
        image_ref: Transport reference to the image (a downloadable URL).
        submitted_at: Unix timestamp of the submission.
    """

    job_id: int
    chat_ref: str
    image_ref: str
    submitted_at: float = field(default_factory=lambda: time.time())
