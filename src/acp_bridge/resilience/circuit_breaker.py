"""Circuit breaker guarding calls into the backend.

State machine:

    CLOSED --(threshold failures)--> OPEN --(cool-down elapsed)--> HALF_OPEN
    HALF_OPEN --success--> CLOSED
    HALF_OPEN --failure--> OPEN

A background monitor task shortens the cool-down once the circuit has been
open for ``reset_timeout`` and resets a circuit stuck in HALF_OPEN.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from acp_bridge.config import CircuitBreakerConfig
from acp_bridge.errors import CallTimeoutError, CircuitOpenError
from acp_bridge.logging import get_logger

T = TypeVar("T")


class CircuitState(str, Enum):
    """Circuit breaker state."""

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass(frozen=True)
class CircuitSnapshot:
    """Point-in-time view of a breaker, for diagnostics and tests."""

    state: CircuitState
    failure_count: int
    last_error: str | None
    last_state_change: float
    next_attempt: float


class CircuitBreaker(Generic[T]):
    """Wraps an async callable and stops calling it after repeated failures.

    Example:
        breaker = CircuitBreaker(backend.authenticate, name="auth")
        await breaker.call()
    """

    def __init__(
        self,
        func: Callable[..., Awaitable[T]],
        config: CircuitBreakerConfig | None = None,
        *,
        name: str = "circuit",
        clock: Callable[[], float] = time.monotonic,
        logger: logging.Logger | None = None,
    ) -> None:
        self._func = func
        self._config = config or CircuitBreakerConfig()
        self._name = name
        self._clock = clock
        self._log = logger or get_logger("circuit")

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_error: str | None = None
        self._trial_in_flight = False
        now = clock()
        self._last_state_change = now
        self._next_attempt = now

        self._monitor_task: asyncio.Task[None] | None = None
        self._disposed = False

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def name(self) -> str:
        return self._name

    async def call(self, *args: Any, **kwargs: Any) -> T:
        """Invoke the wrapped callable through the breaker.

        Raises:
            CircuitOpenError: The circuit is open, or this failure opened it.
            CallTimeoutError: The call exceeded ``request_timeout``.
            Exception: Any other failure from the callable while still closed.
        """
        self._ensure_monitor()

        if self._state is CircuitState.OPEN:
            if self._clock() < self._next_attempt:
                raise CircuitOpenError(self._last_error)
            self._transition(CircuitState.HALF_OPEN)

        is_trial = self._state is CircuitState.HALF_OPEN
        if is_trial:
            # One trial call at a time while half-open.
            if self._trial_in_flight:
                raise CircuitOpenError(self._last_error)
            self._trial_in_flight = True

        try:
            result = await self._invoke(*args, **kwargs)
        except Exception as e:
            if self._record_failure(e):
                raise CircuitOpenError(self._last_error) from e
            raise
        finally:
            if is_trial:
                self._trial_in_flight = False

        if is_trial and self._state is CircuitState.HALF_OPEN:
            self.reset()
        return result

    async def _invoke(self, *args: Any, **kwargs: Any) -> T:
        timeout = self._config.request_timeout
        if not timeout:
            return await self._func(*args, **kwargs)
        try:
            return await asyncio.wait_for(self._func(*args, **kwargs), timeout)
        except asyncio.TimeoutError:
            raise CallTimeoutError(timeout) from None

    def _record_failure(self, error: Exception) -> bool:
        """Count a failure. Returns True when the circuit opened."""
        self._failure_count += 1
        self._last_error = str(error) or type(error).__name__

        if (
            self._failure_count >= self._config.failure_threshold
            or self._state is CircuitState.HALF_OPEN
        ):
            self._transition(CircuitState.OPEN)
            self._next_attempt = self._clock() + self._config.open_state_timeout
            self._log.warning(
                "Circuit %s opened after %d failure(s): %s",
                self._name,
                self._failure_count,
                self._last_error,
            )
            return True

        self._log.debug(
            "Circuit %s failure %d/%d: %s",
            self._name,
            self._failure_count,
            self._config.failure_threshold,
            self._last_error,
        )
        return False

    def _transition(self, state: CircuitState) -> None:
        if state is not self._state:
            self._log.debug("Circuit %s: %s -> %s", self._name, self._state.value, state.value)
        self._state = state
        self._last_state_change = self._clock()

    def reset(self) -> None:
        """Return to CLOSED and forget past failures."""
        self._transition(CircuitState.CLOSED)
        self._failure_count = 0
        self._last_error = None
        self._trial_in_flight = False
        self._next_attempt = self._clock()

    def check_state(self) -> None:
        """One monitor tick: allow a retry or clear a stale half-open state."""
        now = self._clock()
        elapsed = now - self._last_state_change

        if self._state is CircuitState.OPEN and elapsed >= self._config.reset_timeout:
            self._next_attempt = now
        elif self._state is CircuitState.HALF_OPEN and elapsed >= self._config.reset_timeout:
            self._log.debug("Circuit %s half-open too long, resetting", self._name)
            self.reset()

    def snapshot(self) -> CircuitSnapshot:
        return CircuitSnapshot(
            state=self._state,
            failure_count=self._failure_count,
            last_error=self._last_error,
            last_state_change=self._last_state_change,
            next_attempt=self._next_attempt,
        )

    def _ensure_monitor(self) -> None:
        if self._disposed or (self._monitor_task and not self._monitor_task.done()):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._monitor_task = loop.create_task(self._monitor(), name=f"circuit-{self._name}")

    async def _monitor(self) -> None:
        while True:
            await asyncio.sleep(self._config.monitor_interval)
            self.check_state()

    def dispose(self) -> None:
        """Stop the monitor task. Further calls still work but are not monitored."""
        self._disposed = True
        if self._monitor_task and not self._monitor_task.done():
            self._monitor_task.cancel()
        self._monitor_task = None
