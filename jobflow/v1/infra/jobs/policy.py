"""
Retry policy resolution and backoff arithmetic.
"""

from datetime import timedelta

from jobflow.config.settings import BackoffType, QueueDefinition
from jobflow.v1.infra.jobs.schemas import Backoff, RetryPolicy


def default_policy(definition: QueueDefinition) -> RetryPolicy:
    """Retry policy a queue applies when a submission does not override it."""
    return RetryPolicy(
        max_attempts=definition.max_attempts,
        backoff=Backoff(type=definition.backoff_type, delay_ms=definition.backoff_delay_ms),
    )


def backoff_delay_ms(backoff_type: str | BackoffType, base_delay_ms: int, attempt: int) -> int:
    """
    Delay before the attempt that follows failed attempt number ``attempt``.

    Exponential backoff doubles per attempt: ``base * 2 ** (attempt - 1)``,
    so with a 1000 ms base the delays are 1000, 2000, 4000, ...
    Fixed backoff always waits ``base``.
    """
    if attempt < 1:
        raise ValueError("attempt numbers start at 1")

    if BackoffType(backoff_type) is BackoffType.FIXED:
        return base_delay_ms
    return base_delay_ms * (2 ** (attempt - 1))


def backoff_delay(backoff_type: str | BackoffType, base_delay_ms: int, attempt: int) -> timedelta:
    return timedelta(milliseconds=backoff_delay_ms(backoff_type, base_delay_ms, attempt))
