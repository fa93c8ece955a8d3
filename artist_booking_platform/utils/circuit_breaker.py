"""
Circuit breakers guarding the payment provider and the push service.

Every call made through a breaker is bounded by ``CircuitBreakerConfig.timeout``.
Errors leave the breaker as ``ExternalServiceError`` so callers handle one type.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional
from dataclasses import dataclass, field

from ..utils.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"        # Calls pass through
    OPEN = "open"            # Calls fail fast
    HALF_OPEN = "half_open"  # Trial calls after the recovery timeout


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker."""
    failure_threshold: int = 5          # Consecutive failures that open the circuit
    recovery_timeout: int = 60          # Seconds open before a trial call
    success_threshold: int = 1          # Trial successes needed to close again
    timeout: float = 30.0               # Per-call timeout in seconds


@dataclass
class CircuitBreakerStats:
    """Circuit breaker statistics."""
    state: CircuitState = CircuitState.CLOSED
    consecutive_failures: int = 0
    trial_successes: int = 0
    opened_at: Optional[float] = None
    last_failure_time: Optional[float] = None
    last_success_time: Optional[float] = None
    total_requests: int = 0
    total_failures: int = 0
    total_rejections: int = 0
    state_changes: Dict[str, int] = field(default_factory=dict)


class CircuitBreaker:
    """Fails fast while a dependency keeps failing, then lets a trial call through."""

    def __init__(self, name: str, config: Optional[CircuitBreakerConfig] = None):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self.stats = CircuitBreakerStats()
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self.stats.state

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """
        Await ``func(*args, **kwargs)`` unless the circuit is open.

        Raises:
            ExternalServiceError: The circuit is open, the call timed out, or it failed
        """
        async with self._lock:
            self.stats.total_requests += 1
            if self.stats.state == CircuitState.OPEN and self._recovery_due():
                self._transition(CircuitState.HALF_OPEN)

            if self.stats.state == CircuitState.OPEN:
                self.stats.total_rejections += 1
                raise ExternalServiceError(
                    self.name,
                    "circuit open, call rejected",
                    details={
                        "state": self.stats.state.value,
                        "consecutive_failures": self.stats.consecutive_failures,
                        "retry_in": self._seconds_until_recovery(),
                    },
                    retry_after=self._seconds_until_recovery(),
                )

        try:
            result = await asyncio.wait_for(func(*args, **kwargs), timeout=self.config.timeout)
        except asyncio.TimeoutError:
            await self._on_failure()
            raise ExternalServiceError(
                self.name,
                f"call timed out after {self.config.timeout}s",
                details={"timeout": self.config.timeout}
            )
        except ExternalServiceError:
            await self._on_failure()
            raise
        except Exception as e:
            await self._on_failure()
            raise ExternalServiceError(
                self.name,
                f"call failed: {e}",
                details={"error_type": type(e).__name__}
            ) from e

        await self._on_success()
        return result

    async def _on_success(self):
        async with self._lock:
            self.stats.last_success_time = time.time()
            self.stats.consecutive_failures = 0

            if self.stats.state == CircuitState.HALF_OPEN:
                self.stats.trial_successes += 1
                if self.stats.trial_successes >= self.config.success_threshold:
                    self._transition(CircuitState.CLOSED)

    async def _on_failure(self):
        async with self._lock:
            self.stats.consecutive_failures += 1
            self.stats.total_failures += 1
            self.stats.last_failure_time = time.time()

            if self.stats.state == CircuitState.HALF_OPEN:
                self._transition(CircuitState.OPEN)
            elif (self.stats.state == CircuitState.CLOSED and
                    self.stats.consecutive_failures >= self.config.failure_threshold):
                self._transition(CircuitState.OPEN)
            else:
                logger.debug(f"Circuit breaker {self.name}: failure {self.stats.consecutive_failures}")

    def _recovery_due(self) -> bool:
        return self._seconds_until_recovery() == 0

    def _seconds_until_recovery(self) -> int:
        if self.stats.opened_at is None:
            return 0
        remaining = self.config.recovery_timeout - (time.time() - self.stats.opened_at)
        return max(0, int(remaining + 0.999))

    def _transition(self, new_state: CircuitState):
        old_state = self.stats.state
        self.stats.state = new_state
        key = f"{old_state.value}_to_{new_state.value}"
        self.stats.state_changes[key] = self.stats.state_changes.get(key, 0) + 1

        if new_state == CircuitState.OPEN:
            self.stats.opened_at = time.time()
            logger.warning(
                f"Circuit breaker {self.name}: OPEN after {self.stats.consecutive_failures} failures",
                extra={"breaker": self.name, "from_state": old_state.value}
            )
        elif new_state == CircuitState.HALF_OPEN:
            self.stats.trial_successes = 0
            logger.info(f"Circuit breaker {self.name}: HALF-OPEN, allowing a trial call")
        else:
            self.stats.opened_at = None
            self.stats.trial_successes = 0
            logger.info(f"Circuit breaker {self.name}: CLOSED, service recovered")

    def get_stats(self) -> Dict[str, Any]:
        """Snapshot for the detailed health endpoint."""
        return {
            "name": self.name,
            "state": self.stats.state.value,
            "consecutive_failures": self.stats.consecutive_failures,
            "total_requests": self.stats.total_requests,
            "total_failures": self.stats.total_failures,
            "total_rejections": self.stats.total_rejections,
            "last_failure_time": self.stats.last_failure_time,
            "last_success_time": self.stats.last_success_time,
            "state_changes": dict(self.stats.state_changes),
        }


def payment_circuit_breaker(
    failure_threshold: int = 2,
    recovery_timeout: int = 120,
    timeout: float = 15.0
) -> CircuitBreaker:
    """Circuit breaker for the payment provider."""
    return CircuitBreaker(
        "payment_service",
        CircuitBreakerConfig(
            failure_threshold=failure_threshold,
            recovery_timeout=recovery_timeout,
            timeout=timeout
        )
    )


def push_circuit_breaker(
    failure_threshold: int = 5,
    recovery_timeout: int = 60,
    timeout: float = 10.0
) -> CircuitBreaker:
    """Circuit breaker for the push notification service."""
    return CircuitBreaker(
        "push_service",
        CircuitBreakerConfig(
            failure_threshold=failure_threshold,
            recovery_timeout=recovery_timeout,
            timeout=timeout,
            success_threshold=2,
        )
    )
