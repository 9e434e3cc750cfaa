"""Ordered pool of OpenAI API keys with a rotating selection pointer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List


@dataclass(frozen=True)
class Credential:
    """One API key and its position in the pool."""

    index: int
    secret: str

    @property
    def masked(self) -> str:
        """Return a log-safe rendering of the key."""
        tail = self.secret[-4:] if len(self.secret) > 8 else ""
        return f"#{self.index} …{tail}" if tail else f"#{self.index}"


class CredentialPool:
    """Hold credentials and the index of the one currently in use.

    The pool only does index bookkeeping; retry decisions live in
    `services.openai.failover.RetryPolicy`.
    """

    def __init__(self, secrets: Iterable[str]) -> None:
        self._credentials: List[Credential] = [
            Credential(index=i, secret=secret) for i, secret in enumerate(s for s in secrets if s)
        ]
        if not self._credentials:
            raise ValueError("At least one API credential is required.")
        self._index = 0

    @property
    def size(self) -> int:
        return len(self._credentials)

    @property
    def index(self) -> int:
        return self._index

    def __len__(self) -> int:
        return self.size

    def current(self) -> Credential:
        return self._credentials[self._index]

    def rotate(self) -> Credential:
        """Advance to the next credential, wrapping around, and return it."""
        self._index = (self._index + 1) % len(self._credentials)
        return self._credentials[self._index]
