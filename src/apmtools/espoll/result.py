# src/apmtools/espoll/result.py
"""Decoding of search responses into typed results.

The store always returns `fields` values as sequences, even for fields that
are inherently scalar (e.g. {"service.name": ["x"]}). Decoding preserves that
wrapping verbatim. Unwrapping to scalars is a decision for whoever compares
the documents, not for the decoder.

Responses are external data, so they are validated with Pydantic at this
boundary. Any shape violation becomes a DecodeError.
"""

from __future__ import annotations

import json
from enum import StrEnum
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from apmtools.espoll.errors import DecodeError

ModelT = TypeVar("ModelT", bound=BaseModel)


class TotalRelation(StrEnum):
    """Whether the reported total is exact or a lower bound."""

    EQ = "eq"
    GTE = "gte"


class SearchHitsTotal(BaseModel):
    """Total hit count reported by the store."""

    model_config = ConfigDict(frozen=True)

    value: int = Field(ge=0)
    relation: TotalRelation = TotalRelation.EQ

    @property
    def is_exact(self) -> bool:
        return self.relation is TotalRelation.EQ


class SearchHit(BaseModel):
    """A single document returned by a search.

    Attributes:
        index: Name of the index holding the document
        id: Document ID
        score: Relevance score, None when the search was sorted
        fields: Field path to its values, always a list
        source: The raw source document
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    index: str = Field(alias="_index")
    id: str = Field(alias="_id")
    score: float | None = Field(default=None, alias="_score")
    fields: dict[str, list[Any]] = Field(default_factory=dict)
    source: dict[str, Any] = Field(default_factory=dict, alias="_source")

    def source_as(self, model: type[ModelT]) -> ModelT:
        """Validate the source document into a caller-supplied model.

        Raises:
            DecodeError: If the source does not match the model
        """
        try:
            return model.model_validate(self.source)
        except ValidationError as e:
            raise DecodeError(f"error decoding _source of {self.index}/{self.id}: {e}") from e


class SearchHits(BaseModel):
    """The hits section of a search response."""

    model_config = ConfigDict(frozen=True)

    total: SearchHitsTotal
    hits: list[SearchHit]


class SearchResult(BaseModel):
    """Decoded search response."""

    model_config = ConfigDict(frozen=True)

    hits: SearchHits
    aggregations: dict[str, Any] = Field(default_factory=dict)


def decode_search_result(raw: bytes | str) -> SearchResult:
    """Decode a raw search response body.

    Args:
        raw: Response body as returned by the store

    Returns:
        The decoded SearchResult

    Raises:
        DecodeError: If the body is not JSON or lacks hits, hits.total
            or hits.hits, or a hit is malformed
    """
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError(f"malformed search response: {e}") from e

    if not isinstance(payload, dict):
        raise DecodeError(f"malformed search response: expected object, got {type(payload).__name__}")

    try:
        return SearchResult.model_validate(payload)
    except ValidationError as e:
        raise DecodeError(f"unexpected search response shape: {e}") from e
