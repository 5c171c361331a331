"""Tests for async_retry_handler.backoff module."""

import pytest

from async_retry_handler.backoff import compute_delay, delay_schedule
from async_retry_handler.config import RetryPolicy


def test_first_retry_waits_min_timeout():
    assert compute_delay(RetryPolicy(min_timeout=250, factor=3), 1) == 250


def test_constant_factor():
    policy = RetryPolicy()
    assert list(delay_schedule(policy)) == [500] * 10


def test_exponential_growth_capped():
    policy = RetryPolicy(max_retries=6, min_timeout=100, max_timeout=1000, factor=2)
    assert list(delay_schedule(policy)) == [100, 200, 400, 800, 1000, 1000]


def test_schedule_is_monotonic_and_bounded():
    policy = RetryPolicy(max_retries=30, min_timeout=7, max_timeout=5000, factor=1.7)
    delays = list(delay_schedule(policy))
    assert delays == sorted(delays)
    assert all(policy.min_timeout <= d <= policy.max_timeout for d in delays)


def test_factor_below_one_clamped_to_min_timeout():
    policy = RetryPolicy(max_retries=3, min_timeout=100, max_timeout=1000, factor=0.5)
    assert list(delay_schedule(policy)) == [100, 100, 100]


def test_randomize_scales_by_sample():
    policy = RetryPolicy(min_timeout=100, max_timeout=10_000, factor=2, randomize=True)
    assert compute_delay(policy, 1, 0.0) == 100
    assert compute_delay(policy, 2, 0.5) == pytest.approx(300)
    assert compute_delay(policy, 2, 0.999) < 400


def test_randomized_delay_stays_within_bounds():
    policy = RetryPolicy(min_timeout=100, max_timeout=150, randomize=True)
    assert compute_delay(policy, 1, 0.9) == 150


def test_sample_ignored_without_randomize():
    policy = RetryPolicy(min_timeout=100, factor=2)
    assert compute_delay(policy, 2, 0.5) == 200


def test_huge_attempt_returns_max_timeout():
    policy = RetryPolicy(min_timeout=1, max_timeout=30_000, factor=10)
    assert compute_delay(policy, 5000) == 30_000


def test_huge_attempt_with_zero_min_timeout():
    policy = RetryPolicy(min_timeout=0, factor=10)
    assert compute_delay(policy, 400) == 0


def test_invalid_attempt():
    with pytest.raises(ValueError, match="attempt must be >= 1"):
        compute_delay(RetryPolicy(), 0)


def test_zero_retries_has_empty_schedule():
    assert list(delay_schedule(RetryPolicy(max_retries=0))) == []
