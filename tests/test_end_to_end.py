"""End-to-end: an ACP host talking to BridgeAgent over in-memory streams."""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

import pytest
import pytest_asyncio
from utils import BackendPool, FakeBackend, MemoryWriter, frame, wait_for

from acp_bridge.session import BridgeAgent
from acp_bridge.transport import AgentSideConnection


@dataclass
class Host:
    """The editor end of the wire."""

    reader: asyncio.StreamReader
    writer: MemoryWriter
    conn: AgentSideConnection
    agent: BridgeAgent
    pool: BackendPool
    next_id: int = 0

    async def call(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        request_id = self.next_id
        self.next_id += 1
        message: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
        if params is not None:
            message["params"] = params
        self.reader.feed_data(frame(message))
        await wait_for(lambda: request_id in self.writer.responses())
        return self.writer.responses()[request_id]

    def notify(self, method: str, params: dict[str, Any]) -> None:
        self.reader.feed_data(frame({"jsonrpc": "2.0", "method": method, "params": params}))

    def updates(self) -> list[dict[str, Any]]:
        return [f["params"]["update"] for f in self.writer.notifications("session/update")]


class PositionRecordingBackend(FakeBackend):
    """Remembers how many frames were on the wire when text reached the CLI."""

    def __init__(self, cwd: str, writer: MemoryWriter) -> None:
        super().__init__(cwd)
        self.writer = writer
        self.frames_at_send: list[int] = []

    async def send(self, text: str) -> None:
        self.frames_at_send.append(len(self.writer.frames))
        await super().send(text)


@pytest_asyncio.fixture
async def host() -> AsyncIterator[Host]:
    reader = asyncio.StreamReader()
    writer = MemoryWriter()
    pool = BackendPool()
    agent = BridgeAgent(backend_factory=pool)
    conn = AgentSideConnection(agent, writer, reader)
    conn.connection.start()

    yield Host(reader=reader, writer=writer, conn=conn, agent=agent, pool=pool)

    reader.feed_eof()
    await asyncio.wait_for(conn.listen(), timeout=5.0)
    await agent.destroy()
    await conn.close()


class TestHandshake:
    """Tests for initialize and authenticate over the wire."""

    @pytest.mark.asyncio
    async def test_initialize(self, host: Host) -> None:
        response = await host.call(
            "initialize",
            {
                "protocolVersion": 1,
                "clientCapabilities": {"fs": {"readTextFile": True, "writeTextFile": True}},
                "clientInfo": {"name": "zed", "version": "0.200.0"},
            },
        )

        result = response["result"]
        assert result["protocolVersion"] == 1
        assert result["agentCapabilities"]["loadSession"] is False
        assert result["agentCapabilities"]["promptCapabilities"] == {
            "image": False,
            "audio": False,
            "embeddedContext": True,
        }
        assert result["authMethods"][0]["id"] == "browser"

    @pytest.mark.asyncio
    async def test_authenticate(self, host: Host) -> None:
        response = await host.call("authenticate", {"methodId": "browser"})
        assert response["result"] == {}

    @pytest.mark.asyncio
    async def test_load_session_not_supported(self, host: Host) -> None:
        response = await host.call("session/load", {"sessionId": "x", "cwd": "/"})
        assert response["error"]["code"] == -32601


class TestPromptTurn:
    """Tests for a full prompt turn."""

    @pytest.mark.asyncio
    async def test_new_session_returns_uuid(self, host: Host) -> None:
        response = await host.call("session/new", {"cwd": "/work", "mcpServers": []})
        session_id = response["result"]["sessionId"]
        assert str(uuid.UUID(session_id)) == session_id

    @pytest.mark.asyncio
    async def test_complex_prompt_streams_plan_then_ends_turn(self, host: Host) -> None:
        recording: list[PositionRecordingBackend] = []

        def factory(cwd: str) -> PositionRecordingBackend:
            backend = PositionRecordingBackend(cwd, host.writer)
            recording.append(backend)
            return backend

        host.agent._backend_factory = factory
        session_id = (await host.call("session/new", {"cwd": "/work"}))["result"]["sessionId"]

        response = await host.call(
            "session/prompt",
            {
                "sessionId": session_id,
                "prompt": [{"type": "text", "text": "first implement X then optimize Y"}],
            },
        )

        assert response["result"] == {"stopReason": "end_turn"}
        updates = host.updates()
        assert [u["sessionUpdate"] for u in updates] == [
            "user_message_chunk",
            "agent_thought_chunk",
            "plan",
        ]
        plan = updates[2]
        assert [e["status"] for e in plan["entries"]] == ["in_progress", "pending", "pending"]
        assert all(e["priority"] == "medium" for e in plan["entries"])

        backend = recording[0]
        assert backend.sent == ["first implement X then optimize Y"]
        kinds = [
            (f.get("params") or {}).get("update", {}).get("sessionUpdate")
            for f in host.writer.frames
        ]
        assert kinds.index("plan") < backend.frames_at_send[0]

    @pytest.mark.asyncio
    async def test_backend_output_streams_as_message_chunks(self, host: Host) -> None:
        session_id = (await host.call("session/new", {"cwd": "/work"}))["result"]["sessionId"]
        await host.call(
            "session/prompt",
            {"sessionId": session_id, "prompt": [{"type": "text", "text": "hello"}]},
        )

        host.pool.last.emit("Hi! How can I help?")
        await wait_for(
            lambda: any(u["sessionUpdate"] == "agent_message_chunk" for u in host.updates())
        )
        chunk = host.updates()[-1]
        assert chunk["content"] == {"type": "text", "text": "Hi! How can I help?"}
        assert host.writer.notifications("session/update")[-1]["params"]["sessionId"] == session_id

    @pytest.mark.asyncio
    async def test_backend_failure_ends_turn_cancelled(self, host: Host) -> None:
        host.agent._backend_factory = BackendPool(fail_send="broken pipe")
        session_id = (await host.call("session/new", {"cwd": "/work"}))["result"]["sessionId"]

        response = await host.call(
            "session/prompt",
            {"sessionId": session_id, "prompt": [{"type": "text", "text": "hello"}]},
        )

        assert response["result"] == {"stopReason": "cancelled"}
        assert host.updates()[-1]["content"]["text"] == "[Error] broken pipe"

    @pytest.mark.asyncio
    async def test_cancel_then_prompt_again(self, host: Host) -> None:
        session_id = (await host.call("session/new", {"cwd": "/work"}))["result"]["sessionId"]
        host.notify("session/cancel", {"sessionId": session_id})
        await wait_for(lambda: host.pool.last.ended == 1)

        response = await host.call(
            "session/prompt",
            {"sessionId": session_id, "prompt": [{"type": "text", "text": "again"}]},
        )
        assert response["result"] == {"stopReason": "end_turn"}
        assert host.pool.last.started == 2

    @pytest.mark.asyncio
    async def test_unknown_session_is_internal_error(self, host: Host) -> None:
        response = await host.call(
            "session/prompt",
            {"sessionId": "missing", "prompt": [{"type": "text", "text": "hi"}]},
        )
        error = response["error"]
        assert error["code"] == -32603
        assert error["data"] == {"details": "Session not found: missing"}

    @pytest.mark.asyncio
    async def test_malformed_prompt_is_invalid_params(self, host: Host) -> None:
        response = await host.call(
            "session/prompt", {"sessionId": "s", "prompt": [{"type": "video"}]}
        )
        assert response["error"]["code"] == -32602
