# src/apmtools/espoll/__init__.py
"""Poll a near-real-time search store until results satisfy a condition.

Recently written documents only become searchable after a refresh, and even
then a data pipeline may still be catching up. poll() hides that delay:

    from apmtools.espoll import Client, min_hits, with_condition, with_timeout

    with Client.from_settings(settings) as es:
        request = es.new_search_request("traces-apm*").with_query(query)
        result = es.poll(request, with_condition(min_hits(3)), with_timeout(30))
"""

from apmtools.espoll.client import Client, wrap_client
from apmtools.espoll.conditions import (
    AllOf,
    Condition,
    ConditionFunc,
    FuncCondition,
    MatchesReportedTotal,
    MinHits,
    all_of,
    as_condition,
    matches_reported_total,
    min_hits,
    non_empty,
)
from apmtools.espoll.context import PollContext
from apmtools.espoll.errors import (
    DecodeError,
    EspollError,
    PollCancelledError,
    PollTimeoutError,
    QueryValidationError,
    TransportError,
    summarize_result,
)
from apmtools.espoll.options import (
    DEFAULT_INTERVAL,
    DEFAULT_TIMEOUT,
    PollConfig,
    RequestOption,
    with_condition,
    with_interval,
    with_timeout,
)
from apmtools.espoll.request import SearchRequest
from apmtools.espoll.result import (
    SearchHit,
    SearchHits,
    SearchHitsTotal,
    SearchResult,
    TotalRelation,
    decode_search_result,
)

__all__ = [
    "DEFAULT_INTERVAL",
    "DEFAULT_TIMEOUT",
    "AllOf",
    "Client",
    "Condition",
    "ConditionFunc",
    "DecodeError",
    "EspollError",
    "FuncCondition",
    "MatchesReportedTotal",
    "MinHits",
    "PollCancelledError",
    "PollConfig",
    "PollContext",
    "PollTimeoutError",
    "QueryValidationError",
    "RequestOption",
    "SearchHit",
    "SearchHits",
    "SearchHitsTotal",
    "SearchRequest",
    "SearchResult",
    "TotalRelation",
    "TransportError",
    "all_of",
    "as_condition",
    "decode_search_result",
    "matches_reported_total",
    "min_hits",
    "non_empty",
    "summarize_result",
    "with_condition",
    "with_interval",
    "with_timeout",
    "wrap_client",
]
