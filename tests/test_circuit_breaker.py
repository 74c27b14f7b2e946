import asyncio

import pytest

from newsradar.services.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitState,
)


class FlakyDependency:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.fail:
            raise RuntimeError("upstream down")
        return {"value": self.calls}


@pytest.mark.asyncio
async def test_trips_after_max_failures_and_serves_fallback(clock):
    breaker = CircuitBreaker("quotes", clock=clock)
    dep = FlakyDependency(fail=True)

    assert await breaker.execute(dep, fallback=[]) == []
    assert breaker.state == CircuitState.CLOSED
    assert await breaker.execute(dep, fallback=[]) == []
    assert breaker.state == CircuitState.OPEN
    assert breaker.get_status() == "temporarily unavailable (retry in 300s)"

    # Open circuit never calls the dependency
    assert await breaker.execute(dep, fallback=[]) == []
    assert dep.calls == 2


@pytest.mark.asyncio
async def test_half_open_probe_success_closes(clock):
    breaker = CircuitBreaker("quotes", clock=clock)
    dep = FlakyDependency(fail=True)
    await breaker.execute(dep, fallback=None)
    await breaker.execute(dep, fallback=None)

    clock.advance(300)
    assert breaker.get_status() == "half-open"

    dep.fail = False
    result = await breaker.execute(dep, fallback=None)
    assert result == {"value": 3}
    assert breaker.state == CircuitState.CLOSED
    assert breaker.failure_count == 0
    assert breaker.get_status() == "ok"


@pytest.mark.asyncio
async def test_half_open_probe_failure_reopens_with_fresh_cooldown(clock):
    breaker = CircuitBreaker("quotes", clock=clock)
    dep = FlakyDependency(fail=True)
    await breaker.execute(dep, fallback=None)
    await breaker.execute(dep, fallback=None)

    clock.advance(301)
    await breaker.execute(dep, fallback=None)

    assert breaker.state == CircuitState.OPEN
    assert breaker.get_time_until_reset() == pytest.approx(300)


@pytest.mark.asyncio
async def test_only_one_probe_while_half_open(clock):
    breaker = CircuitBreaker("quotes", CircuitBreakerConfig(max_failures=1), clock=clock)
    await breaker.execute(FlakyDependency(fail=True), fallback=None)
    clock.advance(300)

    release = asyncio.Event()
    probe_calls = 0

    async def slow_probe():
        nonlocal probe_calls
        probe_calls += 1
        await release.wait()
        return "fresh"

    probe = asyncio.create_task(breaker.execute(slow_probe, fallback="fallback"))
    await asyncio.sleep(0)

    assert await breaker.execute(slow_probe, fallback="fallback") == "fallback"

    release.set()
    assert await probe == "fresh"
    assert probe_calls == 1
    assert breaker.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_fresh_cache_is_served_while_closed(clock):
    breaker = CircuitBreaker("quotes", clock=clock)
    dep = FlakyDependency()

    assert await breaker.execute(dep, fallback=None) == {"value": 1}
    assert await breaker.execute(dep, fallback=None) == {"value": 1}
    assert dep.calls == 1
    assert breaker.get_status() == "cached"

    clock.advance(601)
    assert await breaker.execute(dep, fallback=None) == {"value": 2}
    assert breaker.get_status() == "ok"


@pytest.mark.asyncio
async def test_stale_cache_is_served_when_open(clock):
    breaker = CircuitBreaker("quotes", clock=clock)
    dep = FlakyDependency()
    await breaker.execute(dep, fallback=None)

    clock.advance(601)
    dep.fail = True
    assert await breaker.execute(dep, fallback=None) == {"value": 1}
    assert await breaker.execute(dep, fallback=None) == {"value": 1}
    assert breaker.state == CircuitState.OPEN


@pytest.mark.asyncio
async def test_uncached_breaker_falls_back(clock):
    breaker = CircuitBreaker(
        "store", CircuitBreakerConfig(cache_results=False), clock=clock
    )
    dep = FlakyDependency()
    await breaker.execute(dep, fallback=None)
    await breaker.execute(dep, fallback=None)
    assert dep.calls == 2

    dep.fail = True
    assert await breaker.execute(dep, fallback="none") == "none"


@pytest.mark.asyncio
async def test_cancellation_propagates(clock):
    breaker = CircuitBreaker("quotes", clock=clock)

    async def cancelled():
        raise asyncio.CancelledError()

    with pytest.raises(asyncio.CancelledError):
        await breaker.execute(cancelled, fallback=None)
    assert breaker.failure_count == 0


@pytest.mark.asyncio
async def test_registry_tracks_breakers(clock):
    registry = CircuitBreakerRegistry(clock=clock)
    quotes = registry.get("quotes")
    assert registry.get("quotes") is quotes

    dep = FlakyDependency(fail=True)
    await quotes.execute(dep, fallback=None)
    await quotes.execute(dep, fallback=None)
    registry.get("predictions")

    assert registry.get_open_circuits() == ["quotes"]
    assert registry.get_all_status()["quotes"]["state"] == "OPEN"

    assert registry.reset("quotes") is True
    assert registry.reset("missing") is False
    assert registry.get_open_circuits() == []

    await quotes.execute(dep, fallback=None)
    await quotes.execute(dep, fallback=None)
    registry.reset_all()
    assert quotes.state == CircuitState.CLOSED
