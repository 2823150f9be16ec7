# tests/conftest.py
"""Shared test fixtures and helpers.

Search responses are simulated with respx, which intercepts httpx at the
transport layer, so the real Client code path (URL building, status
handling, decoding) runs in every test.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import os
from collections.abc import Iterator
from typing import Any

import httpx
import pytest
import respx
from hypothesis import Phase, Verbosity, settings

from apmtools.core.config import ElasticsearchSettings
from apmtools.espoll import Client

ES_URL = "http://es.test:9200"


def make_hit(
    doc_id: str = "1",
    *,
    index: str = ".ds-traces-apm-default-000001",
    score: float | None = 1.0,
    fields: dict[str, list[Any]] | None = None,
    source: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build one raw search hit as the store returns it."""
    return {
        "_index": index,
        "_id": doc_id,
        "_score": score,
        "_source": source if source is not None else {"service": {"name": "checkout"}},
        "fields": fields if fields is not None else {"service.name": ["checkout"]},
    }


def search_body(hit_count: int = 0, total: int | None = None, relation: str = "eq") -> dict[str, Any]:
    """Build a raw search response with `hit_count` hits.

    `total` defaults to `hit_count`.
    """
    return {
        "took": 1,
        "timed_out": False,
        "hits": {
            "total": {"value": hit_count if total is None else total, "relation": relation},
            "max_score": 1.0 if hit_count else None,
            "hits": [make_hit(str(i)) for i in range(hit_count)],
        },
    }


def search_response(hit_count: int = 0, total: int | None = None, relation: str = "eq") -> httpx.Response:
    return httpx.Response(200, json=search_body(hit_count, total, relation))


@pytest.fixture
def es_settings() -> ElasticsearchSettings:
    return ElasticsearchSettings(url=ES_URL)


@pytest.fixture
def es_client(es_settings: ElasticsearchSettings) -> Iterator[Client]:
    """Client pointed at the respx-mocked cluster."""
    client = Client.from_settings(es_settings)
    yield client
    client.close()


@pytest.fixture
def es_mock() -> Iterator[respx.MockRouter]:
    """respx router scoped to the mocked cluster URL."""
    with respx.mock(base_url=ES_URL, assert_all_called=False) as router:
        yield router


# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))
