from __future__ import annotations

import asyncio

import pytest

from querybridge.services.resilience import RetryPolicy, default_retry_policy, retry_async


@pytest.mark.asyncio
async def test_retry_async_retries_transient() -> None:
    calls = {"count": 0}

    async def flaky() -> str:
        calls["count"] += 1
        if calls["count"] < 2:
            raise TimeoutError("timeout")
        return "ok"

    result = await retry_async(
        flaky,
        policy=RetryPolicy(timeout_ms=100, max_attempts=2, backoff_ms=1),
    )
    assert result == "ok"
    assert calls["count"] == 2


@pytest.mark.asyncio
async def test_retry_async_does_not_retry_permanent_errors() -> None:
    calls = {"count": 0}

    async def broken() -> str:
        calls["count"] += 1
        raise ValueError("bad request")

    with pytest.raises(ValueError):
        await retry_async(broken, policy=RetryPolicy(timeout_ms=100, max_attempts=3, backoff_ms=1))
    assert calls["count"] == 1


@pytest.mark.asyncio
async def test_retry_async_bounds_each_attempt() -> None:
    async def stalled() -> str:
        await asyncio.sleep(5)
        return "late"

    with pytest.raises(asyncio.TimeoutError):
        await retry_async(stalled, policy=RetryPolicy(timeout_ms=20, max_attempts=2, backoff_ms=1))


def test_default_policy_reads_settings(monkeypatch) -> None:
    from querybridge.core.config import get_settings

    monkeypatch.setenv("EXT_RETRY_MAX_ATTEMPTS", "4")
    get_settings.cache_clear()
    assert default_retry_policy().max_attempts == 4
