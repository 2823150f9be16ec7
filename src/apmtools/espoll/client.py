# src/apmtools/espoll/client.py
"""Polling search client.

Client.poll() refreshes the target indices, then searches repeatedly until a
condition holds, the poll deadline passes, or the caller cancels:

    Refreshing -> Querying -> Evaluating -> Succeeded
                                        -> Backoff -> Querying ...
                                        -> Failed (deadline or cancellation)

Only "condition not yet true" is retried. A refresh, network or decode
failure aborts the poll immediately with a TransportError, so a broken
request is never mistaken for data that is not visible yet.

The retry loop is driven by tenacity: result-based retry, a stop on the
poll deadline or cancellation, a backoff clamped to the time left, and
PollContext.wait as the sleep so cancellation interrupts backoff.

Each HTTP call runs on a worker thread that the caller waits on in short
slices. A cancelled context or an expired poll deadline abandons the call
immediately, so neither suspension point outlives the poll.
"""

from __future__ import annotations

import queue
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_result,
    stop_after_delay,
    stop_any,
)
from tenacity.stop import stop_base
from tenacity.wait import wait_base

from apmtools.espoll.conditions import Condition, all_of, matches_reported_total, min_hits
from apmtools.espoll.context import PollContext
from apmtools.espoll.errors import (
    PollCancelledError,
    PollTimeoutError,
    QueryValidationError,
    TransportError,
    summarize_result,
)
from apmtools.espoll.options import PollConfig, RequestOption, with_condition
from apmtools.espoll.request import DEFAULT_PAGE_SIZE, SearchRequest, split_target
from apmtools.espoll.result import SearchResult, decode_search_result

if TYPE_CHECKING:
    from apmtools.core.config import ElasticsearchSettings

logger = structlog.get_logger(__name__)

# Floor for per-request timeouts derived from a nearly expired context.
_MIN_REQUEST_TIMEOUT = 0.001


# Longest a blocked request goes without rechecking cancellation.
_CANCEL_CHECK_INTERVAL = 0.05


class _PollDeadlineReached(Exception):
    """An in-flight search was abandoned because the poll deadline passed."""


@dataclass
class _PollSession:
    """Per-call poll state. Owned by one poll() call and never shared."""

    started: float
    timeout: float
    attempts: int = 0
    last_result: SearchResult | None = None

    @property
    def deadline(self) -> float:
        return self.started + self.timeout


class _stop_when_cancelled(stop_base):
    """Stop once the caller's context is cancelled or past its deadline."""

    def __init__(self, context: PollContext) -> None:
        self._context = context

    def __call__(self, retry_state: RetryCallState) -> bool:
        return self._context.cancelled


class _wait_within_deadline(wait_base):
    """Fixed backoff, clamped so the loop never sleeps past either deadline."""

    def __init__(self, interval: float, timeout: float, context: PollContext) -> None:
        self._interval = interval
        self._timeout = timeout
        self._context = context

    def __call__(self, retry_state: RetryCallState) -> float:
        wait = self._interval
        elapsed = retry_state.seconds_since_start
        if elapsed is not None:
            wait = min(wait, self._timeout - elapsed)
        remaining = self._context.remaining()
        if remaining is not None:
            wait = min(wait, remaining)
        return max(0.0, wait)


def _not_satisfied(satisfied: bool) -> bool:
    return not satisfied


def _error_reason(response: httpx.Response) -> str:
    """Extract the store's error reason from a failed response."""
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and isinstance(error.get("reason"), str):
            return error["reason"]
        if isinstance(error, str):
            return error
    return response.reason_phrase


class Client:
    """Elasticsearch client that polls searches until a condition holds.

    Wraps an httpx.Client whose base_url points at the cluster. The client
    itself holds no per-poll state, so one Client may serve concurrent polls
    as long as each poll owns its SearchRequest.

    Example:
        with Client.from_settings(settings) as es:
            request = es.new_search_request("traces-*").with_query(
                {"term": {"service.name": "checkout"}}
            )
            result = es.poll(request, with_condition(min_hits(5)), with_timeout(30))
    """

    def __init__(self, http: httpx.Client) -> None:
        """Initialize client.

        Args:
            http: httpx client with base_url (and auth) configured
        """
        self._http = http

    @classmethod
    def from_settings(cls, settings: ElasticsearchSettings, **kwargs: Any) -> Client:
        """Create a client from connection settings.

        Extra keyword arguments are passed to httpx.Client.
        """
        return cls(httpx.Client(**settings.httpx_client_kwargs(), **kwargs))

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def new_search_request(self, target: str) -> SearchRequest:
        """Create a request for a comma-separated target."""
        return SearchRequest.for_target(target)

    def refresh(self, index: str | Sequence[str], *, context: PollContext | None = None) -> None:
        """Make recently written documents visible to search.

        Raises:
            QueryValidationError: If no index is given
            TransportError: If the refresh call fails
        """
        indices = split_target(index) if isinstance(index, str) else list(index)
        if not indices:
            raise QueryValidationError("refresh requires at least one index")
        path = f"/{','.join(indices)}/_refresh"
        self._send("POST", path, "refreshing indices", context, params={"expand_wildcards": "all"})
        logger.debug("Refreshed indices", index=path)

    def search(self, request: SearchRequest, *, context: PollContext | None = None) -> SearchResult:
        """Issue a single search, without refreshing or polling.

        Raises:
            QueryValidationError: If the request is malformed
            TransportError: If the call fails or the response cannot be decoded
            PollCancelledError: If the context is cancelled while the call is in flight
        """
        return self._search(request, context)

    def _search(self, request: SearchRequest, context: PollContext | None, deadline: float | None = None) -> SearchResult:
        request.validate()
        response = self._send(
            "POST",
            f"/{request.index_path}/_search",
            "searching",
            context,
            deadline=deadline,
            params=request.params(),
            json=request.body(),
        )
        return decode_search_result(response.content)

    def poll(
        self,
        request: SearchRequest,
        *options: RequestOption,
        context: PollContext | None = None,
    ) -> SearchResult:
        """Refresh, then search until the configured condition holds.

        Conditions may mutate `request` between attempts; those changes
        persist into later attempts of this call and remain on the request
        afterwards.

        Args:
            request: The request to poll with
            *options: with_condition / with_timeout / with_interval options
            context: Cancellation context, defaults to a background context

        Returns:
            The result that satisfied the condition (the first result when
            no condition is configured)

        Raises:
            QueryValidationError: Before any network call, on bad input
            TransportError: On the first refresh, network or decode failure
            PollTimeoutError: If the condition stayed false until the deadline
            PollCancelledError: If the context was cancelled
        """
        if context is None:
            context = PollContext.background()
        request.validate()
        config = PollConfig.build(options)
        log = logger.bind(index=request.index_path)

        if context.cancelled:
            raise PollCancelledError(context.cause or "cancelled", 0, None)

        try:
            self.refresh(request.index, context=context)
        except TransportError as e:
            if context.cancelled:
                raise PollCancelledError(context.cause or "cancelled", 0, None) from e
            raise

        session = _PollSession(started=time.monotonic(), timeout=config.timeout)
        retrying = Retrying(
            stop=stop_any(stop_after_delay(config.timeout), _stop_when_cancelled(context)),
            wait=_wait_within_deadline(config.interval, config.timeout, context),
            retry=retry_if_result(_not_satisfied),
            sleep=context.wait,
            reraise=False,
        )

        try:
            retrying(self._attempt, request, config.condition, session, context)
        except RetryError as e:
            if context.cancelled:
                log.info("Poll cancelled", attempts=session.attempts, cause=context.cause)
                raise PollCancelledError(context.cause or "cancelled", session.attempts, session.last_result) from e
            log.warning(
                "Poll timed out",
                attempts=session.attempts,
                timeout=config.timeout,
                last_result=summarize_result(session.last_result),
            )
            raise PollTimeoutError(session.attempts, session.last_result, config.timeout) from e

        # A successful attempt always records its result.
        assert session.last_result is not None
        log.debug(
            "Poll condition satisfied",
            attempts=session.attempts,
            elapsed=round(time.monotonic() - session.started, 3),
        )
        return session.last_result

    def search_index_min_docs(
        self,
        min_docs: int,
        target: str,
        query: Any | None = None,
        *options: RequestOption,
        context: PollContext | None = None,
    ) -> SearchResult:
        """Poll `target` until at least `min_docs` documents match `query`.

        Also keeps polling until every hit the store counted has been
        returned, growing the page size as needed. This condition is applied
        after `options`, so it replaces any condition passed there.
        """
        request = self.new_search_request(target)
        if min_docs > DEFAULT_PAGE_SIZE:
            # Ask for everything up front instead of growing the page later.
            request.with_size(min_docs)
        if query is not None:
            request.with_query(query)
        condition = all_of(min_hits(min_docs), matches_reported_total(request))
        return self.poll(request, *options, with_condition(condition), context=context)

    def _attempt(
        self,
        request: SearchRequest,
        condition: Condition | None,
        session: _PollSession,
        context: PollContext,
    ) -> bool:
        """Run one search and evaluate the condition against it."""
        if context.cancelled:
            raise PollCancelledError(context.cause or "cancelled", session.attempts, session.last_result)

        session.attempts += 1
        try:
            result = self._search(request, context, session.deadline)
        except _PollDeadlineReached:
            raise PollTimeoutError(session.attempts, session.last_result, session.timeout) from None
        except PollCancelledError as e:
            raise PollCancelledError(e.cause, session.attempts, session.last_result) from None
        except TransportError as e:
            if context.cancelled:
                raise PollCancelledError(context.cause or "cancelled", session.attempts, session.last_result) from e
            raise
        session.last_result = result

        if condition is None or condition.evaluate(result):
            return True

        condition.prepare_next(result)
        logger.debug(
            "Condition not yet satisfied",
            index=request.index_path,
            attempt=session.attempts,
            hits=len(result.hits.hits),
            total=result.hits.total.value,
            next_size=request.size,
        )
        return False

    def _request_timeout(self, context: PollContext | None, deadline: float | None) -> httpx.Timeout | Any:
        """Per-request timeout, bounded by the context's and the poll's remaining time."""
        bounds: list[float] = []
        remaining = context.remaining() if context is not None else None
        if remaining is not None:
            bounds.append(remaining)
        if deadline is not None:
            bounds.append(deadline - time.monotonic())
        if not bounds:
            return httpx.USE_CLIENT_DEFAULT
        if self._http.timeout.read is not None:
            bounds.append(self._http.timeout.read)
        return httpx.Timeout(max(min(bounds), _MIN_REQUEST_TIMEOUT))

    def _await_response(
        self,
        result_queue: queue.Queue[tuple[str, Any]],
        context: PollContext | None,
        deadline: float | None,
    ) -> tuple[str, Any]:
        """Wait for the worker's outcome, giving up on cancellation or at the poll deadline."""
        while True:
            wait = _CANCEL_CHECK_INTERVAL
            if deadline is not None:
                wait = min(wait, deadline - time.monotonic())
            remaining = context.remaining() if context is not None else None
            if remaining is not None:
                wait = min(wait, remaining)
            try:
                return result_queue.get(timeout=max(wait, 0.0))
            except queue.Empty:
                pass
            if context is not None and context.cancelled:
                raise PollCancelledError(context.cause or "cancelled", 0, None)
            if deadline is not None and time.monotonic() >= deadline:
                raise _PollDeadlineReached

    def _send(
        self,
        method: str,
        path: str,
        action: str,
        context: PollContext | None,
        *,
        deadline: float | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send one request, converting every failure into a TransportError.

        The request runs on a daemon thread so the caller can abandon it when
        the context is cancelled or the poll deadline passes. An abandoned
        request finishes in the background within its own httpx timeout.

        Raises:
            TransportError: On network errors and error status codes
            PollCancelledError: If the context was cancelled while waiting
            _PollDeadlineReached: If `deadline` passed while waiting
        """
        timeout = self._request_timeout(context, deadline)
        result_queue: queue.Queue[tuple[str, Any]] = queue.Queue()

        def _request_worker() -> None:
            try:
                result_queue.put(("ok", self._http.request(method, path, timeout=timeout, **kwargs)))
            except BaseException as exc:
                result_queue.put(("error", exc))

        thread = threading.Thread(target=_request_worker, daemon=True, name="espoll_request")
        thread.start()

        status, value = self._await_response(result_queue, context, deadline)
        if status == "error":
            # The httpx timeout was cut to the poll deadline and fired with it.
            if (
                isinstance(value, httpx.TimeoutException)
                and deadline is not None
                and time.monotonic() >= deadline - _CANCEL_CHECK_INTERVAL
            ):
                raise _PollDeadlineReached from value
            if isinstance(value, httpx.HTTPError):
                raise TransportError(f"failed {action}: {path}: {value}") from value
            raise value

        response: httpx.Response = value
        if response.is_error:
            raise TransportError(
                f"failed {action}: {path}: {_error_reason(response)}",
                status_code=response.status_code,
            )
        return response


def wrap_client(http: httpx.Client) -> Client:
    """Wrap an existing httpx client."""
    return Client(http)
