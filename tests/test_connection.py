"""Tests for the JSON-RPC connection engine: framing, dispatch and the pending ledger."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest
from utils import ChunkReader, MemoryWriter, frame, wait_for

import acp_bridge.transport.connection as connection_module
from acp_bridge.errors import RequestError
from acp_bridge.transport import Connection, LineBuffer, StreamDirection, StreamEvent
from acp_bridge.types import PromptRequest

# =============================================================================
# Helpers
# =============================================================================


class Recorder:
    """Request and notification handlers that record what they were given."""

    def __init__(self, result: Any = None) -> None:
        self.result = result if result is not None else {"ok": True}
        self.requests: list[tuple[str, Any]] = []
        self.notifications: list[tuple[str, Any]] = []

    async def on_request(self, method: str, params: Any) -> Any:
        self.requests.append((method, params))
        return self.result

    async def on_notification(self, method: str, params: Any) -> None:
        self.notifications.append((method, params))


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def writer() -> MemoryWriter:
    return MemoryWriter()


def make_connection(
    reader: Any, writer: MemoryWriter, recorder: Recorder
) -> Connection:
    return Connection(recorder.on_request, recorder.on_notification, reader, writer)


# =============================================================================
# LineBuffer
# =============================================================================


class TestLineBuffer:
    """Tests for incremental line splitting."""

    def test_complete_lines(self) -> None:
        buf = LineBuffer()
        assert buf.feed("a\nb\n") == ["a", "b"]
        assert buf.pending == ""

    def test_partial_line_kept(self) -> None:
        buf = LineBuffer()
        assert buf.feed('{"a":') == []
        assert buf.pending == '{"a":'
        assert buf.feed("1}\n") == ['{"a":1}']

    def test_flush_returns_remainder_once(self) -> None:
        buf = LineBuffer()
        buf.feed("tail")
        assert buf.flush() == "tail"
        assert buf.flush() is None

    def test_flush_ignores_whitespace(self) -> None:
        buf = LineBuffer()
        buf.feed("  ")
        assert buf.flush() is None


# =============================================================================
# Inbound framing and dispatch
# =============================================================================


class TestInbound:
    """Tests for reading and dispatching inbound frames."""

    @pytest.mark.asyncio
    async def test_request_gets_one_response(
        self, writer: MemoryWriter, recorder: Recorder
    ) -> None:
        reader = ChunkReader([frame({"jsonrpc": "2.0", "id": 1, "method": "initialize"})])
        await make_connection(reader, writer, recorder).listen()

        assert recorder.requests == [("initialize", None)]
        assert writer.frames == [{"jsonrpc": "2.0", "id": 1, "result": {"ok": True}}]

    @pytest.mark.asyncio
    async def test_frame_split_inside_multibyte_char(
        self, writer: MemoryWriter, recorder: Recorder
    ) -> None:
        data = json.dumps(
            {"jsonrpc": "2.0", "method": "note", "params": {"text": "héllo"}},
            ensure_ascii=False,
        ).encode("utf-8") + b"\n"
        cut = data.index("é".encode()) + 1
        reader = ChunkReader([data[:cut], data[cut:]])

        await make_connection(reader, writer, recorder).listen()

        assert recorder.notifications == [("note", {"text": "héllo"})]

    @pytest.mark.asyncio
    async def test_several_frames_in_one_chunk(
        self, writer: MemoryWriter, recorder: Recorder
    ) -> None:
        chunk = frame({"jsonrpc": "2.0", "id": 1, "method": "a"}) + frame(
            {"jsonrpc": "2.0", "id": 2, "method": "b"}
        )
        await make_connection(ChunkReader([chunk]), writer, recorder).listen()

        assert [m for m, _ in recorder.requests] == ["a", "b"]
        assert [f["id"] for f in writer.frames] == [1, 2]

    @pytest.mark.asyncio
    async def test_trailing_line_without_newline(
        self, writer: MemoryWriter, recorder: Recorder
    ) -> None:
        reader = ChunkReader([b'{"jsonrpc":"2.0","id":5,"method":"last"}'])
        await make_connection(reader, writer, recorder).listen()

        assert writer.responses()[5]["result"] == {"ok": True}

    @pytest.mark.asyncio
    async def test_malformed_line_skipped(
        self, writer: MemoryWriter, recorder: Recorder
    ) -> None:
        reader = ChunkReader(
            [b"{not json\n", b"\n", frame({"jsonrpc": "2.0", "id": 2, "method": "x"})]
        )
        await make_connection(reader, writer, recorder).listen()

        assert writer.frames == [{"jsonrpc": "2.0", "id": 2, "result": {"ok": True}}]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "bad_line",
        [
            b'{"jsonrpc":"2.0","id":1,"method":"a","params":' + b"1" * 5000 + b"}\n",
            b"[" * 100_000 + b"\n",
        ],
        ids=["oversized-integer", "deep-nesting"],
    )
    async def test_unparseable_line_does_not_stop_stream(
        self, writer: MemoryWriter, recorder: Recorder, bad_line: bytes
    ) -> None:
        reader = ChunkReader([bad_line, frame({"jsonrpc": "2.0", "id": 2, "method": "b"})])
        await make_connection(reader, writer, recorder).listen()

        assert recorder.requests == [("b", None)]
        assert writer.frames == [{"jsonrpc": "2.0", "id": 2, "result": {"ok": True}}]

    @pytest.mark.asyncio
    async def test_unexpected_line_failure_does_not_stop_stream(
        self, writer: MemoryWriter, recorder: Recorder, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        real_decode = connection_module.decode_message

        def flaky_decode(data: Any) -> Any:
            if data.get("method") == "boom":
                raise RuntimeError("decoder bug")
            return real_decode(data)

        monkeypatch.setattr(connection_module, "decode_message", flaky_decode)
        reader = ChunkReader(
            [
                frame({"jsonrpc": "2.0", "id": 1, "method": "boom"}),
                frame({"jsonrpc": "2.0", "id": 2, "method": "b"}),
            ]
        )
        await make_connection(reader, writer, recorder).listen()

        assert recorder.requests == [("b", None)]

    @pytest.mark.asyncio
    async def test_invalid_object_with_id_answered(
        self, writer: MemoryWriter, recorder: Recorder
    ) -> None:
        reader = ChunkReader([frame({"jsonrpc": "2.0", "id": 7})])
        await make_connection(reader, writer, recorder).listen()

        [response] = writer.frames
        assert response["id"] == 7
        assert response["error"]["code"] == -32600

    @pytest.mark.asyncio
    async def test_notification_never_answered(
        self, writer: MemoryWriter, recorder: Recorder
    ) -> None:
        reader = ChunkReader([frame({"jsonrpc": "2.0", "method": "session/cancel"})])
        await make_connection(reader, writer, recorder).listen()

        assert recorder.notifications == [("session/cancel", None)]
        assert writer.frames == []

    @pytest.mark.asyncio
    async def test_unmatched_response_dropped(
        self, writer: MemoryWriter, recorder: Recorder
    ) -> None:
        reader = ChunkReader(
            [
                frame({"jsonrpc": "2.0", "id": 99, "result": {}}),
                frame({"jsonrpc": "2.0", "id": 1, "method": "x"}),
            ]
        )
        await make_connection(reader, writer, recorder).listen()

        assert [f["id"] for f in writer.frames] == [1]

    @pytest.mark.asyncio
    async def test_stream_error_ends_listen(
        self, writer: MemoryWriter, recorder: Recorder
    ) -> None:
        class BrokenReader:
            async def read(self, n: int = -1) -> bytes:
                raise ConnectionResetError("peer went away")

        conn = make_connection(BrokenReader(), writer, recorder)
        await conn.listen()
        assert conn.closed


# =============================================================================
# Handler error mapping
# =============================================================================


class TestErrorMapping:
    """Tests for turning handler failures into error responses."""

    async def _run(self, handler: Any, writer: MemoryWriter) -> dict[str, Any]:
        async def on_notification(method: str, params: Any) -> None:
            pass

        reader = ChunkReader([frame({"jsonrpc": "2.0", "id": 1, "method": "m"})])
        await Connection(handler, on_notification, reader, writer).listen()
        [response] = writer.frames
        assert response["id"] == 1
        assert "result" not in response
        return response["error"]

    @pytest.mark.asyncio
    async def test_request_error_passed_through(self, writer: MemoryWriter) -> None:
        async def handler(method: str, params: Any) -> Any:
            raise RequestError.method_not_found(method)

        error = await self._run(handler, writer)
        assert error["code"] == -32601
        assert "m" in error["message"]

    @pytest.mark.asyncio
    async def test_validation_error_is_invalid_params(self, writer: MemoryWriter) -> None:
        async def handler(method: str, params: Any) -> Any:
            return PromptRequest.model_validate({})

        error = await self._run(handler, writer)
        assert error["code"] == -32602
        assert isinstance(error["data"], list)

    @pytest.mark.asyncio
    async def test_unexpected_error_is_internal(self, writer: MemoryWriter) -> None:
        async def handler(method: str, params: Any) -> Any:
            raise RuntimeError("kaboom")

        error = await self._run(handler, writer)
        assert error["code"] == -32603
        assert error["data"] == {"details": "kaboom"}


class TestRequestError:
    """Tests for RequestError factories and parsing peer error objects."""

    def test_factory_codes(self) -> None:
        assert RequestError.parse_error("line 1").to_error() == {
            "code": -32700,
            "message": "Parse error",
            "data": {"details": "line 1"},
        }
        assert RequestError.invalid_request().code == -32600
        assert RequestError.method_not_found("x").code == -32601
        assert RequestError.invalid_params().code == -32602
        assert RequestError.internal_error().code == -32603
        assert RequestError.auth_required().code == -32000

    def test_from_error(self) -> None:
        error = RequestError.from_error({"code": -32602, "message": "bad", "data": [1]})
        assert (error.code, error.message, error.data) == (-32602, "bad", [1])

    @pytest.mark.parametrize("code", ["oops", None, 1.5, True])
    def test_from_error_non_integer_code(self, code: Any) -> None:
        error = RequestError.from_error({"code": code, "message": "m"})
        assert error.code == -32603
        assert error.message == "m"

    def test_from_error_missing_fields(self) -> None:
        error = RequestError.from_error({})
        assert error.code == -32603
        assert error.message == "Unknown error"


# =============================================================================
# Outbound requests and the pending ledger
# =============================================================================


class TestOutbound:
    """Tests for send_request, send_notification and write ordering."""

    @pytest.mark.asyncio
    async def test_request_resolved_by_response(
        self, writer: MemoryWriter, recorder: Recorder
    ) -> None:
        reader = asyncio.StreamReader()
        conn = make_connection(reader, writer, recorder)
        conn.start()

        first = asyncio.create_task(conn.send_request("fs/read_text_file", {"path": "a"}))
        await wait_for(lambda: len(writer.frames) == 1)
        assert writer.frames[0]["id"] == 0
        assert conn.pending_count == 1

        reader.feed_data(frame({"jsonrpc": "2.0", "id": 0, "result": {"content": "x"}}))
        assert await first == {"content": "x"}
        assert conn.pending_count == 0

        second = asyncio.create_task(conn.send_request("fs/read_text_file"))
        await wait_for(lambda: len(writer.frames) == 2)
        assert writer.frames[1]["id"] == 1

        reader.feed_data(
            frame({"jsonrpc": "2.0", "id": 1, "error": {"code": -32602, "message": "bad"}})
        )
        with pytest.raises(RequestError) as exc_info:
            await second
        assert exc_info.value.code == -32602

        reader.feed_eof()
        await conn.listen()

    @pytest.mark.asyncio
    async def test_malformed_error_object_settles_caller(
        self, writer: MemoryWriter, recorder: Recorder
    ) -> None:
        reader = asyncio.StreamReader()
        conn = make_connection(reader, writer, recorder)
        conn.start()

        task = asyncio.create_task(conn.send_request("session/request_permission", {}))
        await wait_for(lambda: len(writer.frames) == 1)

        reader.feed_data(frame({"jsonrpc": "2.0", "id": 0, "error": {"code": "oops"}}))
        reader.feed_data(frame({"jsonrpc": "2.0", "id": 9, "method": "after"}))

        with pytest.raises(RequestError) as exc_info:
            await asyncio.wait_for(task, timeout=2.0)
        assert exc_info.value.code == -32603
        assert conn.pending_count == 0

        await wait_for(lambda: 9 in writer.responses())
        assert recorder.requests == [("after", None)]

        reader.feed_eof()
        await conn.listen()

    @pytest.mark.asyncio
    async def test_pending_request_fails_on_eof(
        self, writer: MemoryWriter, recorder: Recorder
    ) -> None:
        reader = asyncio.StreamReader()
        conn = make_connection(reader, writer, recorder)
        conn.start()

        task = asyncio.create_task(conn.send_request("session/request_permission", {}))
        await wait_for(lambda: len(writer.frames) == 1)
        reader.feed_eof()

        with pytest.raises(ConnectionError):
            await task
        await conn.listen()
        assert conn.pending_count == 0

    @pytest.mark.asyncio
    async def test_send_after_close_rejected(
        self, writer: MemoryWriter, recorder: Recorder
    ) -> None:
        conn = make_connection(asyncio.StreamReader(), writer, recorder)
        conn.start()
        await conn.close()

        with pytest.raises(ConnectionError):
            await conn.send_request("x")

    @pytest.mark.asyncio
    async def test_close_fails_pending(
        self, writer: MemoryWriter, recorder: Recorder
    ) -> None:
        conn = make_connection(asyncio.StreamReader(), writer, recorder)
        conn.start()
        task = asyncio.create_task(conn.send_request("x"))
        await wait_for(lambda: len(writer.frames) == 1)

        await conn.close()
        with pytest.raises(ConnectionError):
            await task

    @pytest.mark.asyncio
    async def test_concurrent_writes_keep_call_order(
        self, writer: MemoryWriter, recorder: Recorder
    ) -> None:
        conn = make_connection(asyncio.StreamReader(), writer, recorder)

        await asyncio.gather(*(conn.send_notification(f"n{i}", {"i": i}) for i in range(20)))

        assert [f["method"] for f in writer.frames] == [f"n{i}" for i in range(20)]
        assert writer.writes == 20

    @pytest.mark.asyncio
    async def test_handler_can_await_outbound_request(self, writer: MemoryWriter) -> None:
        reader = asyncio.StreamReader()
        conn: Connection

        async def on_request(method: str, params: Any) -> Any:
            file = await conn.send_request("fs/read_text_file", {"path": "/a"})
            return {"echo": file["content"]}

        async def on_notification(method: str, params: Any) -> None:
            pass

        conn = Connection(on_request, on_notification, reader, writer)
        conn.start()

        reader.feed_data(frame({"jsonrpc": "2.0", "id": 10, "method": "session/prompt"}))
        await wait_for(lambda: any(f.get("method") == "fs/read_text_file" for f in writer.frames))
        outbound = next(f for f in writer.frames if f.get("method") == "fs/read_text_file")

        reader.feed_data(
            frame({"jsonrpc": "2.0", "id": outbound["id"], "result": {"content": "data"}})
        )
        await wait_for(lambda: 10 in writer.responses())
        assert writer.responses()[10]["result"] == {"echo": "data"}

        reader.feed_eof()
        await conn.listen()


# =============================================================================
# Observers
# =============================================================================


class TestObservers:
    """Tests for stream observers."""

    @pytest.mark.asyncio
    async def test_observer_sees_both_directions(
        self, writer: MemoryWriter, recorder: Recorder
    ) -> None:
        events: list[StreamEvent] = []
        reader = ChunkReader([frame({"jsonrpc": "2.0", "id": 1, "method": "initialize"})])
        conn = make_connection(reader, writer, recorder)
        conn.add_observer(events.append)

        await conn.listen()

        assert [e.direction for e in events] == [
            StreamDirection.INCOMING,
            StreamDirection.OUTGOING,
        ]
        assert events[0].message["method"] == "initialize"
        assert events[1].message["result"] == {"ok": True}

    @pytest.mark.asyncio
    async def test_failing_observer_does_not_break_connection(
        self, writer: MemoryWriter, recorder: Recorder
    ) -> None:
        def broken(event: StreamEvent) -> None:
            raise ValueError("observer bug")

        reader = ChunkReader([frame({"jsonrpc": "2.0", "id": 1, "method": "initialize"})])
        conn = make_connection(reader, writer, recorder)
        conn.add_observer(broken)
        conn.remove_observer(broken)
        conn.add_observer(broken)

        await conn.listen()
        assert writer.responses()[1]["result"] == {"ok": True}
