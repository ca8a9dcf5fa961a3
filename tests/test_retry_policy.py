import pytest

from src.askcode.errors import MaxRetriesExceededError, ProviderError, RateLimitError
from src.askcode.services.retry import RetryPolicy


def _policy(sleeps, **kwargs):
    async def fake_sleep(delay):
        sleeps.append(delay)

    return RetryPolicy(sleep=fake_sleep, **kwargs)


def _flaky(failures, exc_factory=RateLimitError, result="ok"):
    calls = {"n": 0}

    async def operation():
        calls["n"] += 1
        if calls["n"] <= failures:
            raise exc_factory()
        return result

    return operation, calls


def test_delays_double_from_initial():
    assert list(RetryPolicy().delays()) == [2.0, 4.0, 8.0, 16.0]


def test_rejects_zero_attempts():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)


@pytest.mark.asyncio
async def test_four_rate_limits_then_success():
    sleeps = []
    operation, calls = _flaky(4)
    assert await _policy(sleeps).call(operation) == "ok"
    assert calls["n"] == 5
    assert [int(d * 1000) for d in sleeps] == [2000, 4000, 8000, 16000]


@pytest.mark.asyncio
async def test_five_rate_limits_exhaust_budget():
    sleeps = []
    operation, calls = _flaky(10)
    with pytest.raises(MaxRetriesExceededError) as exc:
        await _policy(sleeps).call(operation)
    assert calls["n"] == 5
    assert exc.value.attempts == 5
    assert isinstance(exc.value.__cause__, RateLimitError)
    assert len(sleeps) == 4


@pytest.mark.asyncio
async def test_non_retryable_error_propagates_immediately():
    sleeps = []
    operation, calls = _flaky(3, exc_factory=lambda: ProviderError("boom", status_code=500))
    with pytest.raises(ProviderError) as exc:
        await _policy(sleeps).call(operation)
    assert not isinstance(exc.value, MaxRetriesExceededError)
    assert calls["n"] == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_on_retry_hook_sees_each_retry():
    seen = []
    operation, _ = _flaky(2)
    policy = _policy([], on_retry=lambda attempt, delay, exc: seen.append((attempt, delay)))
    await policy.call(operation)
    assert seen == [(1, 2.0), (2, 4.0)]
