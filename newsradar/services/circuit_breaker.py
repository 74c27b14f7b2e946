"""
CircuitBreaker - Stops calling a failing dependency and serves cached or
fallback data instead.

States:
- CLOSED: Normal operation, calls pass through
- OPEN: Dependency is failing, calls are answered from cache/fallback
- HALF_OPEN: Cooldown elapsed, a single probe call is allowed

Transitions:
- CLOSED → OPEN: After max_failures consecutive failures
- OPEN → HALF_OPEN: After cooldown expires
- HALF_OPEN → CLOSED: Probe succeeded
- HALF_OPEN → OPEN: Probe failed (cooldown restarts)
"""

import time
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, TypeVar

from loguru import logger

T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "CLOSED"  # Normal operation
    OPEN = "OPEN"  # Serving cache/fallback
    HALF_OPEN = "HALF_OPEN"  # Probing recovery


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker."""

    max_failures: int = 2  # Consecutive failures before opening
    cooldown: timedelta = timedelta(minutes=5)  # Time before half-open
    cache_ttl: timedelta = timedelta(minutes=10)  # Fresh-cache window
    cache_results: bool = True  # False for keyed calls that must not share a cache


class CircuitBreaker(Generic[T]):
    """
    Circuit breaker with a last-good-value cache for one dependency.

    Usage:
        breaker = CircuitBreaker("gdacs")
        events = await breaker.execute(fetch_events, fallback=[])

    ``execute`` never raises for a failing ``fn``: the failure is counted,
    logged and answered with the cached value (or ``fallback``).
    """

    def __init__(
        self,
        name: str,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: float | None = None
        self._probe_in_flight = False

        self._cached_value: T | None = None
        self._cached_at: float | None = None
        self._last_mode = "live"  # 'live' | 'cached' | 'unavailable'

    @property
    def state(self) -> CircuitState:
        """Get current state, checking for automatic transitions."""
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            elapsed = self._clock() - self._opened_at
            if elapsed >= self.config.cooldown.total_seconds():
                self._state = CircuitState.HALF_OPEN
                self._probe_in_flight = False
                logger.info(f"Circuit breaker '{self.name}' transitioned to HALF_OPEN")
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def cached_at(self) -> float | None:
        return self._cached_at

    def can_request(self) -> bool:
        """Check if a call to the dependency is allowed right now."""
        current_state = self.state

        if current_state == CircuitState.CLOSED:
            return True

        if current_state == CircuitState.HALF_OPEN:
            return not self._probe_in_flight

        return False

    async def execute(self, fn: Callable[[], Awaitable[T]], fallback: T) -> T:
        """
        Run ``fn`` through the breaker.

        Args:
            fn: Zero-argument coroutine function calling the dependency
            fallback: Value returned when nothing is cached and ``fn`` is
                blocked or fails

        Returns:
            Fresh result, cached result, or ``fallback``
        """
        current_state = self.state

        if not self.can_request():
            return self._serve_cached(fallback)

        if current_state == CircuitState.CLOSED and self._has_fresh_cache():
            self._last_mode = "cached"
            return self._cached_value  # type: ignore[return-value]

        probing = current_state == CircuitState.HALF_OPEN
        if probing:
            self._probe_in_flight = True

        try:
            result = await fn()
        except Exception as e:
            self.record_failure()
            logger.warning(
                f"[CircuitBreaker] '{self.name}' call failed "
                f"({self._failure_count}/{self.config.max_failures}): {e}"
            )
            return self._serve_cached(fallback)
        finally:
            if probing:
                self._probe_in_flight = False

        self.record_success()
        if self.config.cache_results:
            self._cached_value = result
            self._cached_at = self._clock()
        self._last_mode = "live"
        return result

    def record_success(self) -> None:
        """Record a successful call."""
        if self._state == CircuitState.HALF_OPEN:
            self._close()
        elif self._state == CircuitState.CLOSED:
            # Reset failure count on success
            self._failure_count = 0

    def record_failure(self) -> None:
        """Record a failed call."""
        self._failure_count += 1

        if self._state == CircuitState.HALF_OPEN:
            # Any failure in half-open reopens the circuit
            self._open()
        elif self._state == CircuitState.CLOSED:
            if self._failure_count >= self.config.max_failures:
                self._open()

    def _has_fresh_cache(self) -> bool:
        if self._cached_at is None:
            return False
        age = self._clock() - self._cached_at
        return age < self.config.cache_ttl.total_seconds()

    def _serve_cached(self, fallback: T) -> T:
        if self._cached_at is not None:
            self._last_mode = "cached"
            return self._cached_value  # type: ignore[return-value]
        self._last_mode = "unavailable"
        return fallback

    def _open(self) -> None:
        """Transition to OPEN state."""
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()
        logger.warning(
            f"Circuit breaker '{self.name}' OPENED after {self._failure_count} failures"
        )

    def _close(self) -> None:
        """Transition to CLOSED state."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at = None
        self._probe_in_flight = False
        logger.info(f"Circuit breaker '{self.name}' CLOSED (recovered)")

    def reset(self) -> None:
        """Manually reset the breaker and drop its cache."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at = None
        self._probe_in_flight = False
        self._cached_value = None
        self._cached_at = None
        self._last_mode = "live"
        logger.info(f"Circuit breaker '{self.name}' manually reset")

    def get_time_until_reset(self) -> float | None:
        """Get seconds until circuit transitions to half-open."""
        if self._state != CircuitState.OPEN or self._opened_at is None:
            return None

        remaining = self.config.cooldown.total_seconds() - (
            self._clock() - self._opened_at
        )
        return max(0.0, remaining)

    def get_status(self) -> str:
        """Human-readable availability of the dependency."""
        current_state = self.state
        if current_state == CircuitState.OPEN:
            remaining = self.get_time_until_reset() or 0.0
            return f"temporarily unavailable (retry in {remaining:.0f}s)"
        if current_state == CircuitState.HALF_OPEN:
            return "half-open"
        if self._last_mode == "cached":
            return "cached"
        return "ok"

    def to_dict(self) -> dict[str, Any]:
        """Get current status as dictionary."""
        return {
            "name": self.name,
            "state": self.state.value,
            "status": self.get_status(),
            "failure_count": self._failure_count,
            "has_cache": self._cached_at is not None,
            "time_until_reset": self.get_time_until_reset(),
        }


class CircuitBreakerRegistry:
    """
    Named breakers, one per logical external dependency.

    Usage:
        registry = CircuitBreakerRegistry()
        breaker = registry.get("market-quotes")
    """

    def __init__(
        self,
        default_config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._breakers: dict[str, CircuitBreaker[Any]] = {}
        self._default_config = default_config or CircuitBreakerConfig()
        self._clock = clock

    def get(
        self,
        name: str,
        config: CircuitBreakerConfig | None = None,
    ) -> CircuitBreaker[Any]:
        """Get or create the breaker for a dependency."""
        if name not in self._breakers:
            self._breakers[name] = CircuitBreaker(
                name,
                config or self._default_config,
                clock=self._clock,
            )
        return self._breakers[name]

    def get_all_status(self) -> dict[str, dict[str, Any]]:
        """Get status of all circuit breakers."""
        return {name: cb.to_dict() for name, cb in self._breakers.items()}

    def reset_all(self) -> None:
        """Reset all circuit breakers."""
        for cb in self._breakers.values():
            cb.reset()
        logger.info(f"Reset {len(self._breakers)} circuit breakers")

    def reset(self, name: str) -> bool:
        """Reset a specific circuit breaker."""
        if name in self._breakers:
            self._breakers[name].reset()
            return True
        return False

    def get_open_circuits(self) -> list[str]:
        """Get list of dependencies with open circuits."""
        return [
            name
            for name, cb in self._breakers.items()
            if cb.state == CircuitState.OPEN
        ]
