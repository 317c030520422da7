"""Shared test helpers: in-memory streams, a fake backend and a recording client."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable
from typing import Any

from acp_bridge.backend import BackendEvent
from acp_bridge.errors import BackendError
from acp_bridge.types import SessionNotification


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll until predicate() is true or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Timed out waiting for condition")
        await asyncio.sleep(0.005)


def frame(message: dict[str, Any]) -> bytes:
    """One newline-terminated JSON frame."""
    return (json.dumps(message) + "\n").encode("utf-8")


class MemoryWriter:
    """Byte sink standing in for the stdout stream writer."""

    def __init__(self) -> None:
        self.buffer = bytearray()
        self.writes = 0

    def write(self, data: bytes) -> None:
        self.buffer.extend(data)
        self.writes += 1

    async def drain(self) -> None:
        await asyncio.sleep(0)

    @property
    def frames(self) -> list[dict[str, Any]]:
        text = self.buffer.decode("utf-8")
        return [json.loads(line) for line in text.split("\n") if line.strip()]

    def responses(self) -> dict[Any, dict[str, Any]]:
        """Response frames keyed by id."""
        return {
            f["id"]: f for f in self.frames if "method" not in f and ("result" in f or "error" in f)
        }

    def notifications(self, method: str) -> list[dict[str, Any]]:
        return [f for f in self.frames if f.get("method") == method and "id" not in f]


class ChunkReader:
    """Reader that returns pre-split chunks, then EOF."""

    def __init__(self, chunks: list[bytes]) -> None:
        self._chunks = list(chunks)

    async def read(self, n: int = -1) -> bytes:
        await asyncio.sleep(0)
        if not self._chunks:
            return b""
        return self._chunks.pop(0)


class FakeBackend:
    """In-process Backend double.

    ``log`` may be shared with a RecordingClient to check the relative order
    of backend writes and session updates.
    """

    def __init__(
        self,
        cwd: str = "/tmp/project",
        *,
        log: list[tuple[str, Any]] | None = None,
        available: bool = True,
        fail_start: bool = False,
        fail_send: str | None = None,
        auth_error: str | None = None,
    ) -> None:
        self.cwd = cwd
        self.log = log if log is not None else []
        self.available = available
        self.fail_start = fail_start
        self.fail_send = fail_send
        self.auth_error = auth_error

        self.sent: list[str] = []
        self.started = 0
        self.ended = 0
        self.checks = 0
        self.auth_calls = 0
        self.terminated = False
        self._running = False
        self._events: asyncio.Queue[BackendEvent | None] = asyncio.Queue()

    @property
    def is_running(self) -> bool:
        return self._running

    async def start_interactive_session(self) -> None:
        if self.fail_start:
            raise BackendError("Command not found: fake")
        self.started += 1
        self._running = True

    async def send(self, text: str) -> None:
        if self.fail_send:
            raise BackendError(self.fail_send)
        if not self._running:
            raise BackendError("No active chat session")
        self.sent.append(text)
        self.log.append(("send", text))

    async def end(self) -> None:
        self.ended += 1
        self._running = False

    async def check_available(self) -> bool:
        self.checks += 1
        return self.available

    async def authenticate(self) -> None:
        self.auth_calls += 1
        if self.auth_error:
            raise BackendError(self.auth_error)

    async def terminate(self) -> None:
        self.terminated = True
        self._running = False
        self._events.put_nowait(None)

    async def events(self) -> AsyncIterator[BackendEvent]:
        while True:
            event = await self._events.get()
            if event is None:
                return
            yield event

    def emit(self, text: str) -> None:
        self._events.put_nowait(BackendEvent.message(text))

    def emit_error(self, error: str) -> None:
        self._events.put_nowait(BackendEvent.failure(error))

    def emit_ended(self, exit_code: int = 0) -> None:
        self._events.put_nowait(BackendEvent.ended(exit_code))


class BackendPool:
    """Backend factory that remembers every backend it built."""

    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.created: list[FakeBackend] = []

    def __call__(self, cwd: str) -> FakeBackend:
        backend = FakeBackend(cwd, **self.kwargs)
        self.created.append(backend)
        return backend

    @property
    def last(self) -> FakeBackend:
        return self.created[-1]


class RecordingClient:
    """Client double that records session updates."""

    def __init__(self, log: list[tuple[str, Any]] | None = None) -> None:
        self.log = log if log is not None else []
        self.notifications: list[SessionNotification] = []

    async def session_update(self, params: SessionNotification) -> None:
        self.notifications.append(params)
        self.log.append(("update", params.update.session_update))

    async def request_permission(self, params: Any) -> Any:
        raise NotImplementedError

    async def read_text_file(self, params: Any) -> Any:
        raise NotImplementedError

    async def write_text_file(self, params: Any) -> Any:
        raise NotImplementedError

    @property
    def kinds(self) -> list[str]:
        return [n.update.session_update for n in self.notifications]

    def of_kind(self, kind: str) -> list[Any]:
        return [n.update for n in self.notifications if n.update.session_update == kind]
