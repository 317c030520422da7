"""Error types for the ACP bridge.

RequestError is the wire-level error returned to the peer with a fixed
JSON-RPC code. Everything else derives from BridgeError and stays local
unless the connection engine maps it to an internal error.
"""

from __future__ import annotations

from typing import Any

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
AUTH_REQUIRED = -32000


class RequestError(Exception):
    """JSON-RPC error carried back to the peer.

    Attributes:
        code: Fixed numeric error code.
        message: Human-readable message.
        data: Optional free-form detail (must be JSON serializable).
    """

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def to_error(self) -> dict[str, Any]:
        """Convert to a JSON-RPC error object."""
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error

    @classmethod
    def from_error(cls, error: dict[str, Any]) -> RequestError:
        """Build from a JSON-RPC error object received from the peer.

        A missing or non-integer code becomes INTERNAL_ERROR.
        """
        if not isinstance(error, dict):
            return cls(INTERNAL_ERROR, "Unknown error", error)
        code = error.get("code")
        if not isinstance(code, int) or isinstance(code, bool):
            code = INTERNAL_ERROR
        return cls(
            code=code,
            message=str(error.get("message", "Unknown error")),
            data=error.get("data"),
        )

    @staticmethod
    def _details(details: str | None) -> dict[str, str] | None:
        return {"details": details} if details else None

    @classmethod
    def parse_error(cls, details: str | None = None) -> RequestError:
        return cls(PARSE_ERROR, "Parse error", cls._details(details))

    @classmethod
    def invalid_request(cls, details: str | None = None) -> RequestError:
        return cls(INVALID_REQUEST, "Invalid request", cls._details(details))

    @classmethod
    def method_not_found(cls, method: str | None = None) -> RequestError:
        return cls(
            METHOD_NOT_FOUND,
            f"Method not found: {method or 'unknown'}",
            {"method": method} if method else None,
        )

    @classmethod
    def invalid_params(cls, details: Any = None) -> RequestError:
        if isinstance(details, str):
            details = cls._details(details)
        return cls(INVALID_PARAMS, "Invalid params", details)

    @classmethod
    def internal_error(cls, details: str | None = None) -> RequestError:
        return cls(INTERNAL_ERROR, "Internal error", cls._details(details))

    @classmethod
    def auth_required(cls, details: str | None = None) -> RequestError:
        return cls(AUTH_REQUIRED, "Authentication required", cls._details(details))

    def __repr__(self) -> str:
        return f"RequestError(code={self.code}, message={self.message!r})"


class BridgeError(Exception):
    """Base class for local (non-wire) bridge errors."""


class SessionNotFoundError(BridgeError):
    """Raised when a request names a session the bridge does not know."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class BackendError(BridgeError):
    """The backend process failed to start, accept input, or respond."""


class InvalidMessageError(BridgeError):
    """A decoded JSON value is not a request, response, or notification.

    Attributes:
        message_id: The id carried by the value, if any, so the engine can reply.
    """

    def __init__(self, reason: str, message_id: int | str | None = None) -> None:
        super().__init__(reason)
        self.message_id = message_id


class CircuitOpenError(BridgeError):
    """The circuit is open and the call was rejected without being attempted.

    Attributes:
        last_error: Message of the failure that tripped (or last kept open) the circuit.
    """

    def __init__(self, last_error: str | None = None) -> None:
        super().__init__(f"Circuit is OPEN: {last_error}" if last_error else "Circuit is OPEN")
        self.last_error = last_error


class CallTimeoutError(BridgeError, TimeoutError):
    """A guarded call did not finish within the breaker's request timeout."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Request timed out after {timeout:g}s")
        self.timeout = timeout


class PlanTransitionError(BridgeError):
    """A plan entry was asked to move backwards or skip a state."""


class ContextWindowNotFoundError(BridgeError, KeyError):
    """No context window is registered for the session."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"No context window found for session {session_id}")
        self.session_id = session_id

    def __str__(self) -> str:
        return str(self.args[0])
