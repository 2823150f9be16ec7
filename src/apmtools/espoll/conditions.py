# src/apmtools/espoll/conditions.py
"""Success conditions for polling searches.

A condition has two members:

- evaluate(result): is the latest result good enough?
- prepare_next(result): adjust the request for the next attempt

The poll loop calls prepare_next after a top-level evaluate returned False.
Composites such as AllOf then prepare every child, including children that
held for this result, so implementations must check the result themselves
and leave the request alone when they already hold. This is how
MatchesReportedTotal grows the page size once the true total is known,
instead of looping with a page that can never fit.

AllOf evaluates and prepares EVERY child on every attempt. It never
short-circuits on the first False, because a later child may carry a
required prepare_next side effect.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from apmtools.espoll.errors import QueryValidationError

if TYPE_CHECKING:
    from apmtools.espoll.request import SearchRequest
    from apmtools.espoll.result import SearchResult

# A bare predicate with no next-attempt adjustment.
ConditionFunc = Callable[["SearchResult"], bool]


@runtime_checkable
class Condition(Protocol):
    """Predicate over a decoded search result."""

    def evaluate(self, result: SearchResult) -> bool:
        """Return True if the result satisfies the condition."""
        ...

    def prepare_next(self, result: SearchResult) -> None:
        """Adjust the request for the next attempt after evaluate returned False."""
        ...


class FuncCondition:
    """Adapts a ConditionFunc into a Condition with no side effect."""

    def __init__(self, func: ConditionFunc) -> None:
        self._func = func

    def evaluate(self, result: SearchResult) -> bool:
        return bool(self._func(result))

    def prepare_next(self, result: SearchResult) -> None:
        pass

    def __repr__(self) -> str:
        return f"FuncCondition({self._func!r})"


def as_condition(condition: Condition | ConditionFunc) -> Condition:
    """Return condition as a Condition, wrapping plain callables."""
    if isinstance(condition, Condition):
        return condition
    if callable(condition):
        return FuncCondition(condition)
    raise QueryValidationError(f"expected a Condition or callable, got {type(condition).__name__}")


class MinHits:
    """True when at least `minimum` hits were returned."""

    def __init__(self, minimum: int) -> None:
        if minimum < 0:
            raise QueryValidationError(f"minimum hits must be >= 0, got {minimum}")
        self.minimum = minimum

    def evaluate(self, result: SearchResult) -> bool:
        return len(result.hits.hits) >= self.minimum

    def prepare_next(self, result: SearchResult) -> None:
        pass

    def __repr__(self) -> str:
        return f"MinHits({self.minimum})"


class MatchesReportedTotal:
    """True when every hit the store counted was returned.

    When fewer hits came back than the reported total, prepare_next sets the
    request size to the total so the next attempt fetches everything in one
    page.
    """

    def __init__(self, request: SearchRequest) -> None:
        self.request = request

    def evaluate(self, result: SearchResult) -> bool:
        return len(result.hits.hits) >= result.hits.total.value

    def prepare_next(self, result: SearchResult) -> None:
        if self.evaluate(result):
            return
        self.request.size = result.hits.total.value

    def __repr__(self) -> str:
        return f"MatchesReportedTotal(index={self.request.index!r})"


class AllOf:
    """True when every child condition is true.

    Every child is evaluated and prepared on every attempt, regardless of
    what earlier children returned.
    """

    def __init__(self, *conditions: Condition | ConditionFunc) -> None:
        if not conditions:
            raise QueryValidationError("AllOf requires at least one condition")
        self.conditions: tuple[Condition, ...] = tuple(as_condition(c) for c in conditions)

    def evaluate(self, result: SearchResult) -> bool:
        # List, not generator: all() would stop at the first False.
        outcomes = [condition.evaluate(result) for condition in self.conditions]
        return all(outcomes)

    def prepare_next(self, result: SearchResult) -> None:
        for condition in self.conditions:
            condition.prepare_next(result)

    def __repr__(self) -> str:
        return f"AllOf({', '.join(repr(c) for c in self.conditions)})"


def min_hits(minimum: int) -> MinHits:
    return MinHits(minimum)


def non_empty() -> MinHits:
    """Condition satisfied by any non-empty result."""
    return MinHits(1)


def matches_reported_total(request: SearchRequest) -> MatchesReportedTotal:
    return MatchesReportedTotal(request)


def all_of(*conditions: Condition | ConditionFunc) -> AllOf:
    return AllOf(*conditions)
