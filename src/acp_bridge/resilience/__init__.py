"""Resilience helpers for backend calls."""

from acp_bridge.resilience.circuit_breaker import CircuitBreaker, CircuitSnapshot, CircuitState

__all__ = ["CircuitBreaker", "CircuitSnapshot", "CircuitState"]
