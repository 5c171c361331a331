"""Exponential backoff delay computation."""

from collections.abc import Iterator

from async_retry_handler.config import RetryPolicy


def compute_delay(policy: RetryPolicy, attempt: int, rand: float | None = None) -> float:
    """Return the delay in milliseconds before the retry that follows ``attempt``.

    ``attempt`` is the 1-based number of the attempt that just failed, so the
    first retry waits ``min_timeout`` (times the jitter multiplier, if any).
    ``rand`` is a uniform sample in [0, 1); when given and the policy
    randomizes, the exponential term is scaled by ``1 + rand``.
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")

    try:
        delay = policy.min_timeout * policy.factor ** (attempt - 1)
    except OverflowError:
        return 0.0 if policy.min_timeout == 0 else policy.max_timeout
    if policy.randomize and rand is not None:
        delay *= 1 + rand
    return max(policy.min_timeout, min(delay, policy.max_timeout))


def delay_schedule(policy: RetryPolicy) -> Iterator[float]:
    """Yield the non-randomized delay before each retry the policy allows."""
    for attempt in range(1, policy.max_retries + 1):
        yield compute_delay(policy, attempt)
