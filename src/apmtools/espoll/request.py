# src/apmtools/espoll/request.py
"""Mutable search request descriptor.

A SearchRequest is the query payload of one poll session. Conditions may
mutate it between attempts (see MatchesReportedTotal), so one instance must
never be shared between polls running concurrently.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from apmtools.espoll.errors import QueryValidationError

# Data streams keep their backing indices hidden.
DEFAULT_EXPAND_WILDCARDS = "open,hidden"

# Page size the store uses when no size is requested.
DEFAULT_PAGE_SIZE = 10


def split_target(target: str) -> list[str]:
    """Split a comma-separated index/alias/pattern list, dropping blanks."""
    return [name.strip() for name in target.split(",") if name.strip()]


@dataclass
class SearchRequest:
    """Search request against one or more indices.

    Attributes:
        index: Index, alias or pattern names (no commas inside an entry)
        query: Query DSL body, any JSON-serializable value
        sort: Sort keys in "field:direction" form
        size: Result size override, None for the store default
        expand_wildcards: Which index kinds wildcard patterns match
    """

    index: list[str]
    query: Any | None = None
    sort: list[str] | None = None
    size: int | None = None
    expand_wildcards: str = DEFAULT_EXPAND_WILDCARDS
    fields: list[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def for_target(cls, target: str) -> SearchRequest:
        """Create a request from a comma-separated target string."""
        return cls(index=split_target(target))

    def with_query(self, query: Any) -> SearchRequest:
        self.query = query
        return self

    def with_sort(self, *field_direction: str) -> SearchRequest:
        self.sort = list(field_direction)
        return self

    def with_size(self, size: int) -> SearchRequest:
        self.size = size
        return self

    @property
    def index_path(self) -> str:
        """Index set joined into the URL path segment form."""
        return ",".join(self.index)

    def validate(self) -> None:
        """Check the request can be issued.

        Raises:
            QueryValidationError: If the index set is empty or malformed,
                or the size override is negative
        """
        if not self.index:
            raise QueryValidationError("search request requires at least one index")
        for name in self.index:
            if not name or not name.strip():
                raise QueryValidationError("index names must not be empty")
            if "," in name:
                raise QueryValidationError(f"index name {name!r} must not contain a comma, pass separate entries")
        if self.size is not None and self.size < 0:
            raise QueryValidationError(f"size must be >= 0, got {self.size}")

    def body(self) -> dict[str, Any]:
        """JSON body for the search call."""
        body: dict[str, Any] = {}
        if self.query is not None:
            body["query"] = self.query
        body["fields"] = list(self.fields)
        return body

    def params(self) -> dict[str, str]:
        """URL query parameters for the search call."""
        params = {"expand_wildcards": self.expand_wildcards}
        if self.size is not None:
            params["size"] = str(self.size)
        if self.sort:
            params["sort"] = ",".join(self.sort)
        return params
