"""Interface of the execution backend driven by each session."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol


class BackendEventKind(str, Enum):
    MESSAGE = "message"
    ERROR = "error"
    ENDED = "ended"


@dataclass(frozen=True)
class BackendEvent:
    """Something the backend produced on its own schedule."""

    kind: BackendEventKind
    text: str = ""
    error: str | None = None
    exit_code: int | None = None

    @classmethod
    def message(cls, text: str) -> BackendEvent:
        return cls(kind=BackendEventKind.MESSAGE, text=text)

    @classmethod
    def failure(cls, error: str) -> BackendEvent:
        return cls(kind=BackendEventKind.ERROR, error=error)

    @classmethod
    def ended(cls, exit_code: int | None) -> BackendEvent:
        return cls(kind=BackendEventKind.ENDED, exit_code=exit_code)


class Backend(Protocol):
    """An interactive assistant process scoped to one session."""

    @property
    def is_running(self) -> bool: ...

    async def start_interactive_session(self) -> None:
        """Start the interactive process. Raises BackendError on failure."""
        ...

    async def send(self, text: str) -> None:
        """Write one user turn. Raises BackendError if no session is running."""
        ...

    async def end(self) -> None:
        """Stop the running interactive process, if any."""
        ...

    async def check_available(self) -> bool: ...

    async def authenticate(self) -> None:
        """Log in, or verify the tool is usable. Raises BackendError."""
        ...

    async def terminate(self) -> None:
        """Stop everything and close the event stream."""
        ...

    def events(self) -> AsyncIterator[BackendEvent]: ...


# Builds a backend for a session working directory
BackendFactory = Callable[[str], Backend]
