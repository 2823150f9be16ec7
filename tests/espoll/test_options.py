# tests/espoll/test_options.py
"""Tests for poll options and PollConfig."""

import pytest

from apmtools.espoll import (
    DEFAULT_INTERVAL,
    DEFAULT_TIMEOUT,
    FuncCondition,
    MinHits,
    PollConfig,
    QueryValidationError,
    with_condition,
    with_interval,
    with_timeout,
)


class TestPollConfig:
    def test_defaults(self) -> None:
        config = PollConfig.build([])

        assert config.condition is None
        assert config.timeout == DEFAULT_TIMEOUT == 10.0
        assert config.interval == DEFAULT_INTERVAL

    def test_options_applied(self) -> None:
        condition = MinHits(2)

        config = PollConfig.build([with_condition(condition), with_timeout(3.5), with_interval(0.25)])

        assert config.condition is condition
        assert config.timeout == 3.5
        assert config.interval == 0.25

    def test_later_option_wins(self) -> None:
        first, second = MinHits(1), MinHits(2)

        config = PollConfig.build([with_condition(first), with_timeout(1), with_condition(second), with_timeout(2)])

        assert config.condition is second
        assert config.timeout == 2

    def test_callable_condition_wrapped(self) -> None:
        config = PollConfig.build([with_condition(lambda result: True)])

        assert isinstance(config.condition, FuncCondition)

    @pytest.mark.parametrize("timeout", [0, -1.0])
    def test_non_positive_timeout_rejected(self, timeout: float) -> None:
        with pytest.raises(QueryValidationError, match="timeout"):
            PollConfig.build([with_timeout(timeout)])

    @pytest.mark.parametrize("interval", [0, -0.1])
    def test_non_positive_interval_rejected(self, interval: float) -> None:
        with pytest.raises(QueryValidationError, match="interval"):
            PollConfig.build([with_interval(interval)])
