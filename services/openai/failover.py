"""Failure classification and credential-rotating retry for analysis calls."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, List, Optional, TypeVar

import openai

from services.errors import PoolExhausted, RequestFailure, TransientCredentialFailure
from services.openai.credential_pool import Credential, CredentialPool
from services.openai.response_parser import MalformedResponse

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

RATE_LIMIT_SIGNATURES = (
    "rate limit",
    "rate_limit",
    "ratelimit",
    "quota",
    "too many requests",
    "resource_exhausted",
    "resource exhausted",
)
REVOKED_SIGNATURES = (
    "permission denied",
    "permission_denied",
    "api key not valid",
    "invalid api key",
    "incorrect api key",
    "account_deactivated",
)


class FailureKind(str, Enum):
    RATE_LIMITED = "RATE_LIMITED"
    REVOKED = "REVOKED"
    OTHER = "OTHER"


def classify_failure(exc: BaseException) -> FailureKind:
    """Map an exception raised by an analysis call to a failure kind.

    Quota and 429 errors are RATE_LIMITED; 401/403 and permission errors
    are REVOKED. Messages of API errors and timeouts are searched for quota
    or revocation signatures; everything else, malformed model output
    included, is OTHER.
    """
    if isinstance(exc, openai.RateLimitError):
        return FailureKind.RATE_LIMITED
    if isinstance(exc, (openai.PermissionDeniedError, openai.AuthenticationError)):
        return FailureKind.REVOKED
    if isinstance(exc, openai.APIStatusError):
        if exc.status_code == 429:
            return FailureKind.RATE_LIMITED
        if exc.status_code in (401, 403):
            return FailureKind.REVOKED

    if isinstance(exc, MalformedResponse):
        return FailureKind.OTHER
    is_timeout = isinstance(exc, (asyncio.TimeoutError, openai.APITimeoutError))
    if not (is_timeout or isinstance(exc, openai.APIError)):
        return FailureKind.OTHER

    message = str(exc).lower()
    if any(sig in message for sig in RATE_LIMIT_SIGNATURES):
        return FailureKind.RATE_LIMITED
    if is_timeout:
        return FailureKind.OTHER
    if any(sig in message for sig in REVOKED_SIGNATURES):
        return FailureKind.REVOKED
    return FailureKind.OTHER


class RetryPolicy:
    """Run a credential-parameterized call, rotating keys on credential failures.

    Args:
        pool: Credential pool whose pointer is rotated on failure.
        max_rotations: Rotation budget per call; defaults to twice the pool size.
    """

    def __init__(self, pool: CredentialPool, max_rotations: Optional[int] = None) -> None:
        self.pool = pool
        self._max_rotations = max_rotations

    @property
    def max_rotations(self) -> int:
        if self._max_rotations is not None:
            return self._max_rotations
        return 2 * self.pool.size

    async def run(self, call: Callable[[Credential], Awaitable[T]]) -> T:
        """Invoke `call` with the current credential until it succeeds.

        Raises:
            RequestFailure: On the first OTHER-class failure, without rotating.
            PoolExhausted: When the rotation budget is spent.
        """
        failures: List[TransientCredentialFailure] = []
        while True:
            credential = self.pool.current()
            try:
                return await call(credential)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                kind = classify_failure(exc)
                if kind is FailureKind.OTHER:
                    LOGGER.error("Analysis request failed on credential %s: %s", credential.masked, exc)
                    raise RequestFailure(str(exc) or type(exc).__name__) from exc

                failure = TransientCredentialFailure(kind.value, credential.index, credential.masked, exc)
                failures.append(failure)
                if kind is FailureKind.REVOKED:
                    LOGGER.error(
                        "Credential %s rejected as revoked (attempt %d); key needs replacement: %s",
                        credential.masked, len(failures), exc,
                    )
                else:
                    LOGGER.warning(
                        "Credential %s rate limited (attempt %d): %s",
                        credential.masked, len(failures), exc,
                    )

                self.pool.rotate()
                if len(failures) >= self.max_rotations:
                    raise PoolExhausted(failures) from exc
