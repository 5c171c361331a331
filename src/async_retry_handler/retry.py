"""Async retry scheduler with exponential backoff and success criteria."""

import asyncio
import functools
import inspect
import logging
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Literal

from async_retry_handler.backoff import compute_delay
from async_retry_handler.config import RetryPolicy, get_default_policy

logger = logging.getLogger(__name__)

ANONYMOUS = "anonymous"

ExhaustionReason = Literal["max_retries", "max_retry_time"]


class RetryError(Exception):
    """Base class for errors produced by the retry scheduler."""


class CriteriaNotMet(RetryError):
    """An attempt completed, but its result was rejected by the success criteria."""

    def __init__(self, name: str, result: Any, attempt: int) -> None:
        self.name = name
        self.result = result
        self.attempt = attempt
        super().__init__(
            f"Operation {name} failed: result did not meet success criteria "
            f"(attempt {attempt})"
        )


class BudgetExhausted(RetryError):
    """Raised when an attempt fails and the budget permits no further attempt.

    ``last_error`` is either the exception raised by the final attempt or a
    CriteriaNotMet wrapping the final rejected result. It is also set as
    ``__cause__``.
    """

    def __init__(
        self,
        name: str,
        last_error: Exception,
        attempts: int,
        elapsed: float,
        reason: ExhaustionReason,
    ) -> None:
        self.name = name
        self.last_error = last_error
        self.attempts = attempts
        self.elapsed = elapsed
        self.reason = reason
        super().__init__(
            f"Operation {name} failed after {attempts} attempts ({reason}): {last_error}"
        )
        self.__cause__ = last_error

    @property
    def result(self) -> Any:
        """The last rejected result, if the final attempt completed."""
        if isinstance(self.last_error, CriteriaNotMet):
            return self.last_error.result
        return None


@dataclass(frozen=True)
class Success:
    value: Any


@dataclass(frozen=True)
class Failure:
    error: BudgetExhausted


Outcome = Success | Failure


@dataclass
class AttemptState:
    start_time: float
    current_attempt: int = 0
    last_error: Exception | None = None

    def elapsed_ms(self, now: float) -> float:
        return (now - self.start_time) * 1000


def operation_name(operation: Callable) -> str:
    """Return a printable name for an operation, or ``anonymous``."""
    while isinstance(operation, functools.partial):
        operation = operation.func
    name = getattr(operation, "__name__", "")
    if not name or name == "<lambda>":
        return ANONYMOUS
    return name


class RetryScheduler:
    """Drives an async operation through a bounded sequence of attempts.

    Attempts run strictly one after another. Exceptions raised by the
    operation and results rejected by ``success_criteria`` are both retried
    under the same budget. Each run delivers exactly one outcome.

    Errors raised by ``success_criteria``, ``parse_result``, ``on_success``
    or ``on_failure`` are not caught; they propagate out of the run and end it.
    A raising ``success_criteria`` is therefore not retried, unlike the
    callback-style handler this replaces, which retried it as a failure.

    ``operation`` must return an awaitable. Anything else raises TypeError on
    the first attempt instead of being retried.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self._policy = policy if policy is not None else get_default_policy()
        self._clock = clock
        self._sleep = sleep
        self._rand = rand

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def next_delay(self, attempt: int) -> float:
        """Delay in milliseconds before the retry following ``attempt``."""
        sample = self._rand() if self._policy.randomize else None
        return compute_delay(self._policy, attempt, sample)

    async def run(
        self,
        operation: Callable[[], Awaitable[Any]],
        success_criteria: Callable[[Any], bool],
        *,
        parse_result: Callable[[Any], Any] | None = None,
        on_success: Callable[[Any], Any] | None = None,
        on_failure: Callable[[BudgetExhausted], Any] | None = None,
        name: str | None = None,
        debug: bool = False,
    ) -> Any:
        """Run the operation until it succeeds or the budget is exhausted.

        Returns:
            The accepted result, passed through ``parse_result`` if given.

        Raises:
            BudgetExhausted: If no attempt succeeded within the budget.
        """
        outcome = await self.run_outcome(
            operation,
            success_criteria,
            parse_result=parse_result,
            on_success=on_success,
            on_failure=on_failure,
            name=name,
            debug=debug,
        )
        if isinstance(outcome, Failure):
            raise outcome.error
        return outcome.value

    async def run_outcome(
        self,
        operation: Callable[[], Awaitable[Any]],
        success_criteria: Callable[[Any], bool],
        *,
        parse_result: Callable[[Any], Any] | None = None,
        on_success: Callable[[Any], Any] | None = None,
        on_failure: Callable[[BudgetExhausted], Any] | None = None,
        name: str | None = None,
        debug: bool = False,
    ) -> Outcome:
        """Like run(), but return Success or Failure instead of raising."""
        op_name = name or operation_name(operation)
        state = AttemptState(start_time=self._clock())

        while True:
            state.current_attempt += 1
            try:
                pending = operation()
                awaitable = inspect.isawaitable(pending)
                if awaitable:
                    result = await pending
            except Exception as exc:
                state.last_error = exc
            else:
                if not awaitable:
                    raise TypeError(
                        f"Operation {op_name} returned {type(pending).__name__}, "
                        "expected an awaitable"
                    )
                if success_criteria(result):
                    if parse_result is not None:
                        result = parse_result(result)
                    if on_success is not None:
                        on_success(result)
                    return Success(result)
                state.last_error = CriteriaNotMet(op_name, result, state.current_attempt)

            elapsed = state.elapsed_ms(self._clock())
            reason, delay = self._check_budget(state.current_attempt, elapsed)
            if reason is None:
                logger.log(
                    logging.INFO if debug else logging.DEBUG,
                    "Retrying operation: %s (Attempt %d)",
                    op_name,
                    state.current_attempt,
                )
                await self._sleep(delay / 1000)
                continue

            error = BudgetExhausted(
                op_name, state.last_error, state.current_attempt, elapsed, reason
            )
            logger.warning(
                "Operation %s gave up after %d attempts (%s): %s",
                op_name,
                state.current_attempt,
                reason,
                type(state.last_error).__name__,
            )
            if on_failure is not None:
                on_failure(error)
            return Failure(error)

    def _check_budget(
        self, attempt: int, elapsed: float
    ) -> tuple[ExhaustionReason | None, float]:
        """Return (reason, delay); reason is None when a retry is permitted."""
        if attempt > self._policy.max_retries:
            return "max_retries", 0.0
        delay = self.next_delay(attempt)
        if elapsed + delay > self._policy.max_retry_time:
            return "max_retry_time", delay
        return None, delay


async def retry_with_backoff(
    operation: Callable[[], Awaitable[Any]],
    success_criteria: Callable[[Any], bool],
    policy: RetryPolicy | None = None,
    *,
    parse_result: Callable[[Any], Any] | None = None,
    on_success: Callable[[Any], Any] | None = None,
    on_failure: Callable[[BudgetExhausted], Any] | None = None,
    name: str | None = None,
    debug: bool = False,
    **overrides: Any,
) -> Any:
    """Retry an async operation with exponential backoff.

    Args:
        operation: Zero-argument callable returning an awaitable.
        success_criteria: Predicate deciding whether a result is acceptable.
        policy: Retry budget and backoff shape. Defaults to the policy
                loaded from RETRY_* environment variables.
        parse_result: Transform applied to the accepted result.
        on_success: Called once with the (parsed) accepted result.
        on_failure: Called once with the BudgetExhausted error.
        name: Name used in logs and errors; defaults to the callable's name.
        debug: Log each retry at INFO instead of DEBUG.
        **overrides: RetryPolicy fields replacing those of ``policy``.

    Returns:
        The accepted result, passed through ``parse_result`` if given.

    Raises:
        BudgetExhausted: If all attempts fail or the time budget runs out.
    """
    if policy is None:
        policy = get_default_policy()
    scheduler = RetryScheduler(policy.with_overrides(**overrides))
    return await scheduler.run(
        operation,
        success_criteria,
        parse_result=parse_result,
        on_success=on_success,
        on_failure=on_failure,
        name=name,
        debug=debug,
    )
