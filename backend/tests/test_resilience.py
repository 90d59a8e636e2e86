"""
Invoicerr Backend — Circuit Breaker Tests
===========================================

What:  Tests for the CircuitBreaker state machine and the per-host registry.
Why:   A breaker stuck OPEN silently drops every webhook for that host; one
       that never opens makes every event wait for all retries.

What we test:
    ✅ CLOSED → OPEN after threshold failures
    ✅ OPEN rejects with CircuitBreakerOpenError until the recovery timeout
    ✅ HALF_OPEN → CLOSED on success, → OPEN on failure
    ✅ Registry: one breaker per host
"""

from unittest.mock import patch

import pytest

from app.exceptions import CircuitBreakerOpenError
from app.services.resilience import CircuitBreaker, CircuitBreakerRegistry


class TestCircuitBreaker:

    def setup_method(self):
        self.breaker = CircuitBreaker(name="hooks.example.test", failure_threshold=3, recovery_timeout=30)

    def test_starts_closed(self):
        assert self.breaker.state == CircuitBreaker.CLOSED
        assert self.breaker.can_execute() is True

    def test_opens_after_threshold(self):
        for _ in range(3):
            self.breaker.record_failure()
        assert self.breaker.state == CircuitBreaker.OPEN

        with pytest.raises(CircuitBreakerOpenError) as exc_info:
            self.breaker.can_execute()
        assert "hooks.example.test" in exc_info.value.message
        assert 0 < exc_info.value.recovery_time <= 30

    def test_success_resets_count(self):
        self.breaker.record_failure()
        self.breaker.record_failure()
        self.breaker.record_success()
        self.breaker.record_failure()
        assert self.breaker.state == CircuitBreaker.CLOSED
        assert self.breaker.failure_count == 1

    def test_half_open_after_timeout(self):
        with patch("app.services.resilience.time.time", return_value=1000.0):
            for _ in range(3):
                self.breaker.record_failure()
        with patch("app.services.resilience.time.time", return_value=1031.0):
            assert self.breaker.can_execute() is True
        assert self.breaker.state == CircuitBreaker.HALF_OPEN

        self.breaker.record_success()
        assert self.breaker.state == CircuitBreaker.CLOSED

    def test_half_open_failure_reopens(self):
        with patch("app.services.resilience.time.time", return_value=1000.0):
            for _ in range(3):
                self.breaker.record_failure()
        with patch("app.services.resilience.time.time", return_value=1031.0):
            self.breaker.can_execute()
            self.breaker.record_failure()
        assert self.breaker.state == CircuitBreaker.OPEN


class TestRegistry:

    def test_one_breaker_per_host(self):
        registry = CircuitBreakerRegistry(failure_threshold=2, recovery_timeout=10)
        first = registry.for_url("https://hooks.example.test/a")
        second = registry.for_url("https://hooks.example.test/b")
        other = registry.for_url("https://discord.example.test/x")

        assert first is second
        assert first is not other
        assert first.failure_threshold == 2

    def test_reset(self):
        registry = CircuitBreakerRegistry()
        registry.get("smtp").record_failure()
        registry.reset()
        assert registry.states() == {}
