"""
Service layer infrastructure - resilience patterns for external calls.

Provides:
- CacheManager: In-memory JSON store with TTL
- CircuitBreaker: Stops calling failing dependencies, serves cached data
- ServiceClient: HTTP client routed through the breaker registry
"""

from newsradar.services.errors import (
    ServiceError,
    RequestTimeoutError,
    WorkerError,
    WorkerNotReadyError,
    WorkerTimeoutError,
    WorkerCrashedError,
    WorkerResetError,
    WorkerTerminatedError,
)
from newsradar.services.cache import CacheManager, CacheEntry, JsonStore
from newsradar.services.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitState,
)
from newsradar.services.client import ServiceClient

__all__ = [
    # Errors
    "ServiceError",
    "RequestTimeoutError",
    "WorkerError",
    "WorkerNotReadyError",
    "WorkerTimeoutError",
    "WorkerCrashedError",
    "WorkerResetError",
    "WorkerTerminatedError",
    # Cache
    "CacheManager",
    "CacheEntry",
    "JsonStore",
    # Circuit Breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerRegistry",
    "CircuitState",
    # Client
    "ServiceClient",
]
