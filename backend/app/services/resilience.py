"""
Invoicerr Backend — Circuit Breakers for Outbound Calls
=========================================================

What:  A CircuitBreaker state machine and a per-host registry of breakers.
Why:   A dead webhook endpoint would otherwise cost every event
       `retry_max_attempts` timeouts. After enough consecutive failures the
       host is skipped outright until the recovery timeout passes.
How:   One breaker per URL host (or per named service like "smtp"), created
       lazily. Callers check `can_execute()` before a call and report the
       outcome with `record_success()` / `record_failure()`.

State Machine:
    CLOSED (normal operation)
        → On failure: increment failure_count
        → When failure_count >= threshold: transition to OPEN

    OPEN (rejecting all requests)
        → can_execute() raises CircuitBreakerOpenError immediately
        → After recovery_timeout seconds: transition to HALF_OPEN

    HALF_OPEN (testing recovery)
        → Allow ONE request through
        → On success: transition to CLOSED (reset failure_count)
        → On failure: transition back to OPEN (reset timer)

Thread Safety:
    Plain counters, no locks. uvicorn async workers run in a single thread,
    and a lost increment only delays opening the circuit by one call.
"""

import logging
import time
from typing import Dict, Optional
from urllib.parse import urlparse

from app.config import settings
from app.exceptions import CircuitBreakerOpenError

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """Circuit breaker guarding one downstream service."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(
        self,
        name: str = "external service",
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Check if a call is allowed through.

        Raises:
            CircuitBreakerOpenError if the circuit is OPEN and the recovery
            timeout hasn't elapsed.
        """
        if self.state == self.CLOSED:
            return True

        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Circuit breaker for %s transitioning to HALF_OPEN after %.1fs",
                    self.name,
                    elapsed,
                )
                self.state = self.HALF_OPEN
                return True
            remaining = int(self.recovery_timeout - elapsed)
            raise CircuitBreakerOpenError(recovery_time=remaining, service=self.name)

        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker for %s transitioning to CLOSED", self.name)
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker for %s returning to OPEN (test call failed)", self.name)
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker for %s OPENING after %d consecutive failures",
                self.name,
                self.failure_count,
            )
            self.state = self.OPEN


class CircuitBreakerRegistry:
    """Lazily created breakers keyed by host or service name."""

    def __init__(
        self,
        failure_threshold: Optional[int] = None,
        recovery_timeout: Optional[int] = None,
    ):
        self.failure_threshold = failure_threshold or settings.cb_failure_threshold
        self.recovery_timeout = recovery_timeout or settings.cb_recovery_timeout
        self._breakers: Dict[str, CircuitBreaker] = {}

    def get(self, name: str) -> CircuitBreaker:
        breaker = self._breakers.get(name)
        if breaker is None:
            breaker = CircuitBreaker(
                name=name,
                failure_threshold=self.failure_threshold,
                recovery_timeout=self.recovery_timeout,
            )
            self._breakers[name] = breaker
        return breaker

    def for_url(self, url: str) -> CircuitBreaker:
        host = urlparse(url).netloc or url
        return self.get(host)

    def states(self) -> Dict[str, str]:
        return {name: breaker.state for name, breaker in self._breakers.items()}

    def reset(self) -> None:
        self._breakers.clear()


# ── Singleton Instance ────────────────────────────────────────────────────
# Shared so breaker state survives across requests
circuit_breakers = CircuitBreakerRegistry()
