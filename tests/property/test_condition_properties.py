# tests/property/test_condition_properties.py
"""Property-based tests for poll conditions.

Properties tested:
1. MinHits is a threshold: false below the minimum, true at or above it
2. MatchesReportedTotal sets the size to exactly the reported total when short
3. MatchesReportedTotal leaves the size untouched once every hit is returned
4. AllOf evaluates every child regardless of outcomes
"""

from __future__ import annotations

import json

from hypothesis import given, settings
from hypothesis import strategies as st

from apmtools.espoll import AllOf, MatchesReportedTotal, MinHits, SearchRequest, SearchResult, decode_search_result
from tests.conftest import search_body

hit_counts = st.integers(min_value=0, max_value=50)
sizes = st.none() | st.integers(min_value=0, max_value=10_000)


def result_with(hit_count: int, total: int) -> SearchResult:
    return decode_search_result(json.dumps(search_body(hit_count, total)))


class TestMinHitsProperties:
    @given(minimum=hit_counts, count=hit_counts)
    @settings(max_examples=200)
    def test_threshold(self, minimum: int, count: int) -> None:
        """Property: MinHits(n) holds iff count >= n, including n = 0."""
        assert MinHits(minimum).evaluate(result_with(count, count)) is (count >= minimum)


class TestMatchesReportedTotalProperties:
    @given(count=hit_counts, extra=st.integers(min_value=1, max_value=10_000), size=sizes)
    def test_short_page_sets_size_to_total(self, count: int, extra: int, size: int | None) -> None:
        """Property: fewer hits than the total sets size to exactly the total."""
        request = SearchRequest(index=["traces-*"], size=size)
        condition = MatchesReportedTotal(request)
        result = result_with(count, count + extra)

        assert not condition.evaluate(result)
        condition.prepare_next(result)

        assert request.size == count + extra

    @given(count=hit_counts, size=sizes)
    def test_complete_page_leaves_size(self, count: int, size: int | None) -> None:
        """Property: once hits match the total, the size override is untouched."""
        request = SearchRequest(index=["traces-*"], size=size)
        condition = MatchesReportedTotal(request)
        result = result_with(count, count)

        assert condition.evaluate(result)
        condition.prepare_next(result)

        assert request.size == size


class _Recorder:
    def __init__(self, outcome: bool) -> None:
        self.outcome = outcome
        self.calls = 0

    def evaluate(self, result: SearchResult) -> bool:
        self.calls += 1
        return self.outcome

    def prepare_next(self, result: SearchResult) -> None:
        pass


class TestAllOfProperties:
    @given(outcomes=st.lists(st.booleans(), min_size=1, max_size=8), attempts=st.integers(min_value=1, max_value=5))
    def test_every_child_evaluated_every_attempt(self, outcomes: list[bool], attempts: int) -> None:
        """Property: each child's evaluation count equals the attempt count."""
        children = [_Recorder(outcome) for outcome in outcomes]
        condition = AllOf(*children)
        result = result_with(0, 0)

        for _ in range(attempts):
            assert condition.evaluate(result) is all(outcomes)

        assert all(child.calls == attempts for child in children)
