from typing import Any, Dict

import pybreaker
from loguru import logger

from unlock_core.config.settings import Settings
from unlock_core.monitoring.metrics import (
    circuit_breaker_failures,
    circuit_breaker_state,
)


class LoggingCircuitBreakerListener(pybreaker.CircuitBreakerListener):
    def state_change(self, cb, old_state, new_state) -> None:
        logger.warning(
            f"Circuit Breaker '{cb.name}' state changed: {old_state} -> {new_state}. "
            f"Failures: {cb.fail_counter}/{cb.fail_max}"
        )

        state_name = getattr(new_state, "name", new_state)
        state_value = {"closed": 0, "open": 1, "half-open": 2, "half_open": 2}.get(
            state_name, 0
        )
        circuit_breaker_state.labels(service="unlock-core", circuit_name=cb.name).set(
            state_value
        )

    def failure(self, cb, exc) -> None:  # noqa: ARG002
        circuit_breaker_failures.labels(
            service="unlock-core", circuit_name=cb.name
        ).inc()


class CircuitBreakerConfig:
    def __init__(self, settings: Settings):
        self.settings = settings
        self._breakers: Dict[str, pybreaker.CircuitBreaker] = {}
        self._listener = LoggingCircuitBreakerListener()

    def _make_breaker(
        self,
        name: str,
        fail_max: int,
        reset_timeout: int,
        exclude: tuple[type[BaseException], ...] = (),
        throw_new_error_on_trip: bool = True,
    ) -> pybreaker.CircuitBreaker:
        return pybreaker.CircuitBreaker(
            fail_max=fail_max,
            reset_timeout=reset_timeout,
            exclude=exclude,
            name=name,
            listeners=[self._listener],
            throw_new_error_on_trip=throw_new_error_on_trip,
        )

    def get_provider_breaker(self) -> pybreaker.CircuitBreaker:
        if "provider" not in self._breakers:
            self._breakers["provider"] = self._make_breaker(
                name="payment_provider",
                fail_max=self.settings.cb_provider_fail_max,
                reset_timeout=self.settings.cb_provider_reset_timeout,
                exclude=(KeyError, ValueError),
            )
        return self._breakers["provider"]

    def get_vendor_breaker(self) -> pybreaker.CircuitBreaker:
        if "vendor" not in self._breakers:
            self._breakers["vendor"] = self._make_breaker(
                name="vendor_unlock",
                fail_max=self.settings.cb_vendor_fail_max,
                reset_timeout=self.settings.cb_vendor_reset_timeout,
                # the tripping call was sent, keep its own error
                throw_new_error_on_trip=False,
            )
        return self._breakers["vendor"]

    def get_breaker_stats(self) -> Dict[str, Dict[str, Any]]:
        stats: Dict[str, Dict[str, Any]] = {}
        for name, breaker in self._breakers.items():
            stats[name] = {
                "state": breaker.current_state,
                "fail_counter": breaker.fail_counter,
                "fail_max": breaker.fail_max,
                "reset_timeout": breaker.reset_timeout,
            }
        return stats
