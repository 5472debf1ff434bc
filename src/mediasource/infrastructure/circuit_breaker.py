"""Per-adapter circuit breaker.

An adapter that fails ``failure_threshold`` times in a row (unexpected
exceptions or timeouts, never plain absence) is skipped for
``cooldown_seconds``.  After the cooldown one trial call is let through
(half-open); success closes the breaker, failure opens it again.
"""

from __future__ import annotations

import time
from enum import Enum

import structlog

log = structlog.get_logger(__name__)


class BreakerState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class AdapterCircuitBreaker:
    """Failure counts and breaker state keyed by adapter name.

    Not thread-safe; safe within one asyncio event loop since no method
    awaits.
    """

    def __init__(
        self,
        *,
        failure_threshold: int = 5,
        cooldown_seconds: float = 60.0,
    ) -> None:
        self._threshold = failure_threshold
        self._cooldown = cooldown_seconds
        self._failures: dict[str, int] = {}
        self._states: dict[str, BreakerState] = {}
        self._opened_at: dict[str, float] = {}

    @property
    def enabled(self) -> bool:
        return self._threshold > 0

    def allow(self, name: str) -> bool:
        """Whether *name* may be called now.

        OPEN turns into HALF_OPEN once the cooldown has elapsed; only the
        first caller after that gets the trial call.
        """
        if not self.enabled:
            return True

        state = self._states.get(name, BreakerState.CLOSED)
        if state is BreakerState.CLOSED:
            return True

        if state is BreakerState.OPEN:
            elapsed = time.monotonic() - self._opened_at.get(name, 0.0)
            if elapsed >= self._cooldown:
                self._states[name] = BreakerState.HALF_OPEN
                log.debug("circuit_half_open", adapter=name)
                return True
            return False

        # HALF_OPEN: a trial call is already in flight
        return False

    def record_success(self, name: str) -> None:
        if self._states.pop(name, None) is not None:
            log.info("circuit_closed", adapter=name)
        self._failures.pop(name, None)
        self._opened_at.pop(name, None)

    def record_failure(self, name: str) -> None:
        if not self.enabled:
            return

        state = self._states.get(name, BreakerState.CLOSED)
        if state is BreakerState.HALF_OPEN:
            self._open(name)
            return

        count = self._failures.get(name, 0) + 1
        self._failures[name] = count
        if count >= self._threshold:
            self._open(name)

    def release(self, name: str) -> None:
        """Give back a trial call that ended without a verdict (cancelled)."""
        if self._states.get(name) is BreakerState.HALF_OPEN:
            self._states[name] = BreakerState.OPEN
            self._opened_at[name] = time.monotonic() - self._cooldown

    def state(self, name: str) -> BreakerState:
        return self._states.get(name, BreakerState.CLOSED)

    def reset(self, name: str) -> None:
        self.record_success(name)

    def snapshot(self) -> dict[str, dict[str, object]]:
        """Diagnostic view of every adapter with a failure on record."""
        names = set(self._failures) | set(self._states)
        return {
            n: {"state": self.state(n).value, "failures": self._failures.get(n, 0)}
            for n in sorted(names)
        }

    def _open(self, name: str) -> None:
        self._states[name] = BreakerState.OPEN
        self._opened_at[name] = time.monotonic()
        log.warning(
            "circuit_opened",
            adapter=name,
            failures=self._failures.get(name, 0),
            cooldown_seconds=self._cooldown,
        )
