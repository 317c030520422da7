"""Bidirectional JSON-RPC connection over a pair of byte streams.

Inbound bytes are decoded incrementally and split into lines. Responses are
matched to pending requests as soon as they are read; requests and
notifications go through a queue and run one at a time in arrival order, so
a handler may await ``send_request`` without blocking the responses it is
waiting for.

Outbound frames share one write lock, so they never interleave and reach
the wire in the order they were sent.
"""

from __future__ import annotations

import asyncio
import codecs
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from pydantic import ValidationError

from acp_bridge.errors import InvalidMessageError, RequestError
from acp_bridge.logging import TRACE, get_logger
from acp_bridge.transport.messages import (
    Message,
    MessageId,
    Notification,
    Request,
    Response,
    StreamDirection,
    StreamEvent,
    decode_message,
    encode_message,
)

RequestHandler = Callable[[str, Any], Awaitable[Any]]
NotificationHandler = Callable[[str, Any], Awaitable[None]]
StreamObserver = Callable[[StreamEvent], None]

DEFAULT_CHUNK_SIZE = 64 * 1024


class ByteReader(Protocol):
    async def read(self, n: int = -1) -> bytes: ...


class ByteWriter(Protocol):
    def write(self, data: bytes) -> None: ...

    async def drain(self) -> None: ...


class LineBuffer:
    """Accumulates decoded text and yields complete lines.

    The trailing partial line is kept until a later chunk completes it.
    """

    def __init__(self) -> None:
        self._partial = ""

    def feed(self, text: str) -> list[str]:
        if not text:
            return []
        data = self._partial + text
        *lines, self._partial = data.split("\n")
        return lines

    def flush(self) -> str | None:
        """Return the unterminated remainder, if any, and clear it."""
        rest, self._partial = self._partial, ""
        return rest if rest.strip() else None

    @property
    def pending(self) -> str:
        return self._partial


class Connection:
    """JSON-RPC peer: sends requests and notifications, dispatches inbound ones."""

    def __init__(
        self,
        request_handler: RequestHandler,
        notification_handler: NotificationHandler,
        reader: ByteReader,
        writer: ByteWriter,
        *,
        logger: logging.Logger | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._request_handler = request_handler
        self._notification_handler = notification_handler
        self._reader = reader
        self._writer = writer
        self._log = logger or get_logger("connection")
        self._chunk_size = chunk_size

        self._write_lock = asyncio.Lock()
        self._pending: dict[MessageId, asyncio.Future[Any]] = {}
        self._next_id = 0
        self._inbox: asyncio.Queue[Request | Notification | None] = asyncio.Queue()
        self._observers: list[StreamObserver] = []

        self._receiver: asyncio.Task[None] | None = None
        self._dispatcher: asyncio.Task[None] | None = None
        self._inbound_closed = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # === Observers ===

    def add_observer(self, observer: StreamObserver) -> None:
        """Register a callback that sees every frame in both directions."""
        self._observers.append(observer)

    def remove_observer(self, observer: StreamObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _notify(self, direction: StreamDirection, data: dict[str, Any]) -> None:
        if not self._observers:
            return
        event = StreamEvent(direction=direction, message=data)
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception:
                self._log.exception("Stream observer failed")

    # === Lifecycle ===

    def start(self) -> None:
        """Start the receive and dispatch tasks (idempotent)."""
        if self._receiver is not None:
            return
        self._receiver = asyncio.create_task(self._receive_loop(), name="acp-receive")
        self._dispatcher = asyncio.create_task(self._dispatch_loop(), name="acp-dispatch")

    async def listen(self) -> None:
        """Run until the inbound stream ends and queued messages are handled."""
        self.start()
        assert self._receiver is not None and self._dispatcher is not None
        try:
            await self._receiver
            await self._dispatcher
        finally:
            self._closed = True

    async def close(self) -> None:
        """Stop both tasks and fail every pending request."""
        if self._closed and self._receiver is None:
            return
        self._closed = True
        tasks = [t for t in (self._receiver, self._dispatcher) if t and not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._receiver = None
        self._dispatcher = None
        self._fail_pending(ConnectionError("Connection closed"))

    def _fail_pending(self, error: Exception) -> None:
        pending, self._pending = self._pending, {}
        for request_id, future in pending.items():
            if not future.done():
                self._log.debug("Failing pending request %s: %s", request_id, error)
                future.set_exception(error)

    # === Outbound ===

    async def send_request(self, method: str, params: Any = None) -> Any:
        """Send a request and wait for its result.

        Raises:
            RequestError: The peer answered with an error object.
            ConnectionError: The connection closed before a response arrived.
        """
        if self._closed or self._inbound_closed:
            raise ConnectionError("Connection closed")

        request_id = self._next_id
        self._next_id += 1
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        try:
            await self._write(Request(id=request_id, method=method, params=params))
            return await future
        finally:
            self._pending.pop(request_id, None)

    async def send_notification(self, method: str, params: Any = None) -> None:
        """Send a notification. Nothing is registered and nothing is awaited back."""
        await self._write(Notification(method=method, params=params))

    async def _write(self, message: Message) -> None:
        data = message.to_dict()
        async with self._write_lock:
            self._notify(StreamDirection.OUTGOING, data)
            self._writer.write(encode_message(data))
            await self._writer.drain()

    async def _send_response(self, response: Response) -> None:
        try:
            await self._write(response)
        except (ConnectionError, OSError) as e:
            self._log.warning("Failed to send response for id=%s: %s", response.id, e)

    # === Inbound ===

    async def _receive_loop(self) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        buffer = LineBuffer()
        try:
            while True:
                chunk = await self._reader.read(self._chunk_size)
                if not chunk:
                    break
                for line in buffer.feed(decoder.decode(chunk)):
                    await self._process_line_safely(line)

            buffer.feed(decoder.decode(b"", final=True))
            tail = buffer.flush()
            if tail is not None:
                await self._process_line_safely(tail)
            self._log.debug("Inbound stream reached EOF")
        except (ConnectionError, OSError) as e:
            self._log.warning("Inbound stream failed: %s", e)
        finally:
            self._inbound_closed = True
            self._fail_pending(ConnectionError("Connection closed"))
            self._inbox.put_nowait(None)

    async def _process_line_safely(self, line: str) -> None:
        try:
            await self._process_line(line)
        except Exception:
            self._log.exception("Failed to process inbound line")

    async def _process_line(self, line: str) -> None:
        line = line.strip()
        if not line:
            return

        try:
            data = json.loads(line)
        except (ValueError, RecursionError) as e:
            self._log.warning("Skipping malformed JSON line: %s", e)
            self._log.log(TRACE, "Malformed line: %r", line[:200])
            return

        if isinstance(data, dict):
            self._notify(StreamDirection.INCOMING, data)

        try:
            message = decode_message(data)
        except InvalidMessageError as e:
            self._log.warning("Invalid message: %s", e)
            if e.message_id is not None:
                error = RequestError.invalid_request(str(e))
                await self._send_response(Response(id=e.message_id, error=error.to_error()))
            return

        if isinstance(message, Response):
            self._resolve(message)
        else:
            self._inbox.put_nowait(message)

    def _resolve(self, response: Response) -> None:
        future = self._pending.pop(response.id, None) if response.id is not None else None
        if future is None:
            self._log.debug("Dropping response with unknown id=%s", response.id)
            return
        if future.done():
            return
        if response.error is not None:
            try:
                error = RequestError.from_error(response.error)
            except Exception as e:
                error = RequestError.internal_error(f"Malformed error response: {e}")
            future.set_exception(error)
        else:
            future.set_result(response.result)

    async def _dispatch_loop(self) -> None:
        while True:
            message = await self._inbox.get()
            if message is None:
                break
            if isinstance(message, Request):
                await self._handle_request(message)
            else:
                await self._handle_notification(message)

    async def _handle_request(self, request: Request) -> None:
        try:
            result = await self._request_handler(request.method, request.params)
        except RequestError as e:
            self._log.debug("Request %s (%s) failed: %s", request.id, request.method, e.message)
            error = e
        except ValidationError as e:
            self._log.debug("Invalid params for %s: %s", request.method, e)
            error = RequestError.invalid_params(json.loads(e.json(include_url=False)))
        except Exception as e:
            self._log.exception("Error handling %s", request.method)
            error = RequestError.internal_error(str(e))
        else:
            await self._send_response(Response(id=request.id, result=result))
            return

        await self._send_response(Response(id=request.id, error=error.to_error()))

    async def _handle_notification(self, notification: Notification) -> None:
        try:
            await self._notification_handler(notification.method, notification.params)
        except Exception:
            self._log.exception("Error handling notification %s", notification.method)
