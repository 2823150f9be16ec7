# src/apmtools/espoll/errors.py
"""Exceptions raised by the espoll engine.

Four kinds reach callers, and they are never converted into one another:

- QueryValidationError: bad input, raised before any network call
- TransportError: network or decode failure, raised immediately, never retried
- PollTimeoutError: the condition stayed false until the poll deadline
- PollCancelledError: the caller's context was cancelled or its deadline passed

Transport errors are deliberately not retried. A broken request must not be
disguised as "data not yet visible".
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from apmtools.espoll.result import SearchResult


def summarize_result(result: SearchResult | None) -> str:
    """Render a one-line summary of the last observed result for diagnostics."""
    if result is None:
        return "no result observed"
    total = result.hits.total
    relation = ">=" if not total.is_exact else "="
    return f"{len(result.hits.hits)} hits returned, total {relation} {total.value}"


class EspollError(Exception):
    """Base class for all espoll errors."""


class QueryValidationError(EspollError, ValueError):
    """Raised when a request or poll option is malformed.

    Always raised before the first network call.
    """


class TransportError(EspollError):
    """Raised when a refresh or search call fails.

    Attributes:
        status_code: HTTP status returned by the store, None for network errors
        reason: Human-readable failure description
    """

    def __init__(self, reason: str, *, status_code: int | None = None) -> None:
        self.reason = reason
        self.status_code = status_code
        if status_code is not None:
            super().__init__(f"{reason} (status {status_code})")
        else:
            super().__init__(reason)


class DecodeError(TransportError):
    """Raised when a search response cannot be decoded into a SearchResult."""


class PollTimeoutError(EspollError, TimeoutError):
    """Raised when the condition never became true before the poll deadline.

    Attributes:
        attempts: Number of search attempts made
        last_result: Most recent decoded result (None if no attempt completed)
        timeout: The configured poll timeout in seconds
    """

    def __init__(self, attempts: int, last_result: SearchResult | None, timeout: float) -> None:
        self.attempts = attempts
        self.last_result = last_result
        self.timeout = timeout
        super().__init__(
            f"condition not satisfied after {attempts} attempts in {timeout:g}s: {summarize_result(last_result)}"
        )


class PollCancelledError(EspollError):
    """Raised when the caller cancels the poll context.

    Distinct from PollTimeoutError: the caller aborted, the poll did not
    run out of time on its own.

    Attributes:
        cause: Why the context was cancelled (e.g. "deadline exceeded")
        attempts: Number of search attempts made before cancellation
        last_result: Most recent decoded result, if any
    """

    def __init__(self, cause: str, attempts: int, last_result: SearchResult | None) -> None:
        self.cause = cause
        self.attempts = attempts
        self.last_result = last_result
        super().__init__(f"poll cancelled after {attempts} attempts: {cause}")
