"""Tests for retry configuration and the backoff sequence.

- max=N allows N retries (N+1 attempts)
- Delay table: linear delay*n, exponential delay*2**(n-1), constant delay
- max_delay caps, jitter spreads around the capped delay
"""

from __future__ import annotations

import asyncio
import random
import time

import pytest

from fetchguard.cancellation.signal import AbortController
from fetchguard.resilience.backoff import (
    BackoffPolicy,
    Continue,
    GiveUp,
    RetryConfig,
    parse_retry,
    sleep_unless_aborted,
)
from fetchguard.shared.errors import AbortError, ConfigurationError
from fetchguard.shared.types import AbortSource


class TestRetryConfig:
    def test_defaults(self) -> None:
        config = RetryConfig()
        assert config.max == 3
        assert config.delay == 1000.0
        assert config.strategy == "linear"
        assert config.jitter == 0.0
        assert config.max_delay is None

    @pytest.mark.parametrize(
        ("strategy", "expected"),
        [
            ("linear", [100, 200, 300, 400]),
            ("exponential", [100, 200, 400, 800]),
            ("constant", [100, 100, 100, 100]),
        ],
    )
    def test_delay_table(self, strategy: str, expected: list[float]) -> None:
        config = RetryConfig(max=4, delay=100, strategy=strategy)
        assert [config.delay_for_retry(n) for n in range(1, 5)] == expected

    def test_max_delay_caps(self) -> None:
        config = RetryConfig(delay=100, strategy="exponential", max_delay=250)
        assert [config.delay_for_retry(n) for n in range(1, 5)] == [100, 200, 250, 250]

    def test_frozen(self) -> None:
        config = RetryConfig()
        with pytest.raises(ValueError):
            config.max = 5  # type: ignore[misc]


class TestParseRetry:
    def test_none(self) -> None:
        assert parse_retry(None) is None

    def test_passthrough(self) -> None:
        config = RetryConfig(max=1)
        assert parse_retry(config) is config

    def test_mapping(self) -> None:
        config = parse_retry({"max": 2, "delay": 50, "strategy": "constant"})
        assert config == RetryConfig(max=2, delay=50, strategy="constant")

    @pytest.mark.parametrize(
        "value",
        [
            {"max": -1},
            {"delay": -5},
            {"strategy": "fibonacci"},
            {"jitter": 2},
            {"retries": 3},
            5,
        ],
    )
    def test_invalid(self, value: object) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            parse_retry(value)
        assert exc_info.value.option == "retry"


class TestBackoffPolicy:
    def test_no_config_gives_up_immediately(self) -> None:
        error = RuntimeError("x")
        step = BackoffPolicy(None).next(error)
        assert isinstance(step, GiveUp)
        assert step.error is error
        assert step.retries == 0

    def test_continues_until_budget_spent(self) -> None:
        policy = BackoffPolicy(RetryConfig(max=2, delay=100))
        first = policy.next(RuntimeError())
        second = policy.next(RuntimeError())
        last_error = RuntimeError("last")
        third = policy.next(last_error)
        assert first == Continue(delay=0.1, retry=1)
        assert second == Continue(delay=0.2, retry=2)
        assert isinstance(third, GiveUp)
        assert third.error is last_error
        assert policy.retries == 2
        assert policy.max_retries == 2

    def test_zero_max_never_retries(self) -> None:
        assert isinstance(BackoffPolicy(RetryConfig(max=0)).next(RuntimeError()), GiveUp)

    def test_jitter_stays_within_spread(self) -> None:
        policy = BackoffPolicy(RetryConfig(max=50, delay=100, strategy="constant", jitter=0.5), rng=random.Random(7))
        delays = []
        for _ in range(50):
            step = policy.next(RuntimeError())
            assert isinstance(step, Continue)
            delays.append(step.delay)
        assert all(0.05 <= d <= 0.15 for d in delays)
        assert len(set(delays)) > 1


class TestSleepUnlessAborted:
    @pytest.mark.asyncio
    async def test_sleeps_full_delay(self) -> None:
        start = time.monotonic()
        await sleep_unless_aborted(0.02, AbortController().signal)
        assert time.monotonic() - start >= 0.015

    @pytest.mark.asyncio
    async def test_abort_interrupts(self) -> None:
        controller = AbortController(AbortSource.CALLER)
        loop = asyncio.get_running_loop()
        loop.call_later(0.01, controller.abort)
        start = time.monotonic()
        with pytest.raises(AbortError) as exc_info:
            await sleep_unless_aborted(5.0, controller.signal)
        assert time.monotonic() - start < 1.0
        assert exc_info.value.source is AbortSource.CALLER

    @pytest.mark.asyncio
    async def test_already_aborted(self) -> None:
        controller = AbortController()
        controller.abort()
        with pytest.raises(AbortError):
            await sleep_unless_aborted(5.0, controller.signal)
