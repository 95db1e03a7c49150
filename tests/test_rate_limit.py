import asyncio

import pytest

from mail_relay.rate_limit import SlidingWindowRateLimiter


@pytest.mark.asyncio
async def test_eleventh_request_in_window_is_rejected(clock):
    limiter = SlidingWindowRateLimiter(clock=clock)
    for _ in range(10):
        assert await limiter.check_and_record("10.0.0.1") is True
        clock.advance(1)
    assert await limiter.check_and_record("10.0.0.1") is False
    assert await limiter.request_count("10.0.0.1") == 10


@pytest.mark.asyncio
async def test_request_admitted_once_oldest_ages_out(clock):
    limiter = SlidingWindowRateLimiter(clock=clock)
    start = clock.now
    for _ in range(10):
        assert await limiter.check_and_record("client")
        clock.advance(1)
    assert not await limiter.check_and_record("client")

    # Oldest entry is exactly 60s old: it is no longer inside the window.
    clock.now = start + 60
    assert await limiter.check_and_record("client") is True
    assert not await limiter.check_and_record("client")


@pytest.mark.asyncio
async def test_rejected_requests_are_not_recorded(clock):
    limiter = SlidingWindowRateLimiter(capacity=2, clock=clock)
    assert await limiter.check_and_record("a")
    assert await limiter.check_and_record("a")
    for _ in range(5):
        clock.advance(5)
        assert not await limiter.check_and_record("a")
    assert await limiter.request_count("a") == 2

    clock.advance(60)
    assert await limiter.request_count("a") == 0


@pytest.mark.asyncio
async def test_identities_do_not_affect_each_other(clock):
    limiter = SlidingWindowRateLimiter(clock=clock)
    for _ in range(10):
        assert await limiter.check_and_record("noisy")
    assert not await limiter.check_and_record("noisy")

    assert await limiter.check_and_record("quiet") is True
    assert await limiter.request_count("quiet") == 1
    assert limiter.tracked_identities == 2


@pytest.mark.asyncio
async def test_clock_moving_backwards_keeps_entries(clock):
    limiter = SlidingWindowRateLimiter(capacity=2, window=60, clock=clock)
    assert await limiter.check_and_record("a")
    assert await limiter.check_and_record("a")

    clock.advance(-3600)
    assert await limiter.check_and_record("a") is False
    assert await limiter.request_count("a") == 2


@pytest.mark.asyncio
async def test_idle_identities_are_kept(clock):
    limiter = SlidingWindowRateLimiter(clock=clock)
    await limiter.check_and_record("gone")
    clock.advance(3600)
    assert await limiter.request_count("gone") == 0
    assert limiter.tracked_identities == 1


@pytest.mark.asyncio
async def test_concurrent_requests_never_exceed_capacity(clock):
    limiter = SlidingWindowRateLimiter(clock=clock)
    results = await asyncio.gather(*[limiter.check_and_record("burst") for _ in range(50)])
    assert results.count(True) == 10
    assert results.count(False) == 40


def test_invalid_parameters_rejected():
    with pytest.raises(ValueError):
        SlidingWindowRateLimiter(capacity=0)
    with pytest.raises(ValueError):
        SlidingWindowRateLimiter(window=0)
