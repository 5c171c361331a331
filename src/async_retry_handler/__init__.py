"""Retry async operations with exponential backoff and success criteria."""

from async_retry_handler.backoff import compute_delay, delay_schedule
from async_retry_handler.config import RetryPolicy, get_default_policy, policy_from_env
from async_retry_handler.retry import (
    AttemptState,
    BudgetExhausted,
    CriteriaNotMet,
    Failure,
    Outcome,
    RetryError,
    RetryScheduler,
    Success,
    operation_name,
    retry_with_backoff,
)

__all__ = [
    "AttemptState",
    "BudgetExhausted",
    "CriteriaNotMet",
    "Failure",
    "Outcome",
    "RetryError",
    "RetryPolicy",
    "RetryScheduler",
    "Success",
    "compute_delay",
    "delay_schedule",
    "get_default_policy",
    "operation_name",
    "policy_from_env",
    "retry_with_backoff",
]
