"""Circuit breaker guarding quota-limited search API calls."""

import time
import asyncio
import logging
from enum import Enum
from typing import Optional, Callable, Any, Awaitable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"  # Calls pass through
    OPEN = "open"  # Calls are rejected without touching the service
    HALF_OPEN = "half_open"  # One probe call allowed


class CircuitBreakerError(Exception):
    """Raised when circuit breaker is open."""
    pass


class CircuitBreaker:
    """
    Stop hammering a third-party service after repeated failures.

    The search API answers quota exhaustion with 403/429 for the rest of the
    day, so after ``failure_threshold`` consecutive failures the breaker opens
    and callers go straight to their fallback until ``recovery_timeout`` passes.
    """

    def __init__(
        self,
        failure_threshold: int = 3,
        recovery_timeout: float = 300.0,
        name: str = "default"
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.name = name

        self._failure_count = 0
        self._opened_at: Optional[float] = None
        self._state = CircuitState.CLOSED
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        if self._state == CircuitState.OPEN and self._recovery_due():
            return CircuitState.HALF_OPEN
        return self._state

    def is_available(self) -> bool:
        """True when a call would currently be let through."""
        return self.state != CircuitState.OPEN

    def _recovery_due(self) -> bool:
        if self._opened_at is None:
            return True
        return (time.monotonic() - self._opened_at) >= self.recovery_timeout

    async def call(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """
        Execute ``func`` with circuit breaker protection.

        Raises:
            CircuitBreakerError: If circuit is open
        """
        async with self._lock:
            if self._state == CircuitState.OPEN:
                if not self._recovery_due():
                    remaining = self.recovery_timeout - (time.monotonic() - self._opened_at)
                    raise CircuitBreakerError(
                        f"Circuit breaker '{self.name}' is OPEN, retry in {remaining:.0f}s"
                    )
                self._state = CircuitState.HALF_OPEN
                logger.info(f"Circuit breaker '{self.name}' half-open, probing service")

        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            async with self._lock:
                self._failure_count += 1
                if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
                    self._state = CircuitState.OPEN
                    self._opened_at = time.monotonic()
                    logger.warning(
                        f"Circuit breaker '{self.name}' opened after {self._failure_count} failures: {e}"
                    )
                else:
                    logger.warning(
                        f"Circuit breaker '{self.name}' failure {self._failure_count}/{self.failure_threshold}: {e}"
                    )
            raise

        async with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                logger.info(f"Circuit breaker '{self.name}' closed, service recovered")
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._opened_at = None

        return result

    def reset(self):
        """Manually reset circuit breaker to CLOSED state."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at = None

    def get_stats(self) -> dict:
        """Get circuit breaker statistics."""
        return {
            'name': self.name,
            'state': self.state.value,
            'failure_count': self._failure_count,
            'failure_threshold': self.failure_threshold,
            'recovery_timeout': self.recovery_timeout,
        }


search_api_breaker = CircuitBreaker(
    failure_threshold=3,
    recovery_timeout=300.0,
    name="search_api"
)
