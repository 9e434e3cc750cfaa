"""Failure taxonomy for the diagnosis pipeline."""

from __future__ import annotations

from typing import List, Sequence


class DiagnosisError(Exception):
    """Base class for failures raised by the diagnosis core."""


class TransientCredentialFailure(DiagnosisError):
    """A credential is currently unusable (quota exhausted or revoked)."""

    def __init__(self, kind: str, credential_index: int, masked_key: str, cause: BaseException) -> None:
        super().__init__(f"{kind} on credential #{credential_index} ({masked_key}): {cause}")
        self.kind = kind
        self.credential_index = credential_index
        self.masked_key = masked_key
        self.cause = cause


class PoolExhausted(DiagnosisError):
    """Every rotation in the retry budget failed with a credential problem."""

    def __init__(self, failures: Sequence[TransientCredentialFailure]) -> None:
        super().__init__(f"Credential pool exhausted after {len(failures)} failed attempts")
        self.failures: List[TransientCredentialFailure] = list(failures)


class RequestFailure(DiagnosisError):
    """The request itself failed (bad input, timeout, service or schema error)."""


class StoreIOFailure(DiagnosisError):
    """Reading or rewriting a JSON collection file failed."""


class ArchivePublishFailure(DiagnosisError):
    """The long-term archive could not accept a confirmed record."""
