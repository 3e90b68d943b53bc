"""
Retry Policy Tests
"""

import asyncio

import pytest

from edufund_api.exceptions import MintFailure, ProviderUnavailable
from edufund_api.services.retry import RetryPolicy, call_provider


class FlakyOperation:
    """Fails with the queued errors, then returns ``result``"""

    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


@pytest.fixture
def sleeps(monkeypatch):
    recorded = []

    async def fake_sleep(delay):
        recorded.append(delay)

    monkeypatch.setattr("edufund_api.services.retry.asyncio.sleep", fake_sleep)
    return recorded


@pytest.mark.unit
class TestRetryPolicy:
    def test_backoff_doubles_and_caps(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=30.0)

        assert [policy.backoff(n) for n in range(1, 7)] == [1.0, 2.0, 4.0, 8.0, 16.0, 30.0]

    def test_needs_at_least_one_attempt(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    @pytest.mark.asyncio
    async def test_transient_faults_are_retried(self, sleeps):
        operation = FlakyOperation([ProviderUnavailable("503"), ProviderUnavailable("429")])

        result = await RetryPolicy(max_attempts=3, base_delay=1.0).run(operation)

        assert result == "ok"
        assert operation.calls == 3
        assert sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, sleeps):
        operation = FlakyOperation([ProviderUnavailable("503")] * 5)

        with pytest.raises(ProviderUnavailable):
            await RetryPolicy(max_attempts=3).run(operation)

        assert operation.calls == 3
        assert len(sleeps) == 2

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self, sleeps):
        operation = FlakyOperation([MintFailure("rejected")])

        with pytest.raises(MintFailure):
            await RetryPolicy(max_attempts=3).run(operation)

        assert operation.calls == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_attempt_timeout_counts_as_unavailable(self):
        calls = 0

        async def hang():
            nonlocal calls
            calls += 1
            await asyncio.Event().wait()

        with pytest.raises(ProviderUnavailable):
            await RetryPolicy(max_attempts=2, base_delay=0, max_delay=0, timeout=0.01).run(hang)

        assert calls == 2


@pytest.mark.unit
class TestCallProvider:
    @pytest.mark.asyncio
    async def test_returns_result(self):
        async def answer():
            return 42

        assert await call_provider(answer(), timeout=1.0) == 42

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(self):
        with pytest.raises(ProviderUnavailable) as exc_info:
            await call_provider(asyncio.Event().wait(), timeout=0.01)

        assert "0.01s" in str(exc_info.value)
