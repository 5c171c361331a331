"""Retry policy model — validated, immutable, optionally loaded from env."""

import os
from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field, model_validator

ENV_PREFIX = "RETRY_"


class RetryPolicy(BaseModel):
    """Budget and backoff shape for one retry run.

    Timeouts are in milliseconds. ``max_retries`` counts retries after the
    first attempt, so a run makes at most ``max_retries + 1`` attempts.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_retries: int = Field(default=10, ge=0)
    min_timeout: float = Field(default=500, ge=0)
    max_timeout: float = Field(default=10_000, ge=0)
    max_retry_time: float = Field(default=60_000, ge=0)
    factor: float = Field(default=1, gt=0)
    randomize: bool = False

    @model_validator(mode="after")
    def validate_timeouts(self) -> "RetryPolicy":
        if self.max_timeout < self.min_timeout:
            raise ValueError("max_timeout must be >= min_timeout")
        return self

    def with_overrides(self, **fields: object) -> "RetryPolicy":
        """Return a validated copy with the given fields replaced."""
        if not fields:
            return self
        return RetryPolicy(**{**self.model_dump(), **fields})


def policy_from_env() -> RetryPolicy:
    """Build a RetryPolicy from RETRY_* environment variables."""
    env = {}
    for field_name in RetryPolicy.model_fields:
        val = os.environ.get(ENV_PREFIX + field_name.upper())
        if val is not None:
            env[field_name] = val
    return RetryPolicy(**env)


@lru_cache(maxsize=1)
def get_default_policy() -> RetryPolicy:
    """Return a cached singleton default policy."""
    return policy_from_env()
