# src/apmtools/espoll/options.py
"""Poll options.

Options are plain callables that mutate a PollConfig. They are applied in
order, so a later option overrides an earlier one, and the resulting config
is validated once before the poll starts.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from apmtools.espoll.conditions import Condition, ConditionFunc, as_condition
from apmtools.espoll.errors import QueryValidationError

# Long enough to dominate the store's refresh latency.
DEFAULT_TIMEOUT = 10.0  # seconds

DEFAULT_INTERVAL = 0.1  # seconds


@dataclass
class PollConfig:
    """Configuration for a single poll call.

    Attributes:
        condition: Success condition; None returns after the first search
        timeout: Poll deadline in seconds, measured from the first attempt
        interval: Backoff between unsuccessful attempts in seconds
    """

    condition: Condition | None = None
    timeout: float = DEFAULT_TIMEOUT
    interval: float = DEFAULT_INTERVAL

    @classmethod
    def build(cls, options: Iterable[RequestOption]) -> PollConfig:
        """Apply options to a default config and validate the result.

        Raises:
            QueryValidationError: If timeout or interval is not positive
        """
        config = cls()
        for option in options:
            option(config)
        config.validate()
        return config

    def validate(self) -> None:
        if self.timeout <= 0:
            raise QueryValidationError(f"timeout must be > 0, got {self.timeout}")
        if self.interval <= 0:
            raise QueryValidationError(f"interval must be > 0, got {self.interval}")


RequestOption = Callable[[PollConfig], None]


def with_condition(condition: Condition | ConditionFunc) -> RequestOption:
    """Poll until condition holds."""
    resolved = as_condition(condition)

    def apply(config: PollConfig) -> None:
        config.condition = resolved

    return apply


def with_timeout(seconds: float) -> RequestOption:
    """Override the default 10 second poll deadline."""

    def apply(config: PollConfig) -> None:
        config.timeout = seconds

    return apply


def with_interval(seconds: float) -> RequestOption:
    """Override the backoff between attempts."""

    def apply(config: PollConfig) -> None:
        config.interval = seconds

    return apply
