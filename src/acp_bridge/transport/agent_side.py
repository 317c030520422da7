"""Agent side of an ACP connection.

Routes inbound host methods to an ``Agent`` after validating their params,
and exposes the host's methods to the agent as the ``Client`` interface.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel

from acp_bridge.errors import RequestError
from acp_bridge.interfaces import Agent
from acp_bridge.logging import get_logger
from acp_bridge.transport.connection import ByteReader, ByteWriter, Connection, StreamObserver
from acp_bridge.types import (
    AcpModel,
    AuthenticateRequest,
    CancelNotification,
    InitializeRequest,
    LoadSessionRequest,
    NewSessionRequest,
    PromptRequest,
    ReadTextFileRequest,
    ReadTextFileResponse,
    RequestPermissionRequest,
    RequestPermissionResponse,
    SessionNotification,
    WriteTextFileRequest,
    WriteTextFileResponse,
)

# Host → agent requests: method -> (agent attribute, params model)
AGENT_METHODS: dict[str, tuple[str, type[BaseModel]]] = {
    "initialize": ("initialize", InitializeRequest),
    "authenticate": ("authenticate", AuthenticateRequest),
    "session/new": ("new_session", NewSessionRequest),
    "session/load": ("load_session", LoadSessionRequest),
    "session/prompt": ("prompt", PromptRequest),
}

# Host → agent notifications
AGENT_NOTIFICATIONS: dict[str, tuple[str, type[BaseModel]]] = {
    "session/cancel": ("cancel", CancelNotification),
}

# Agent → host
CLIENT_METHODS = {
    "session_update": "session/update",
    "request_permission": "session/request_permission",
    "read_text_file": "fs/read_text_file",
    "write_text_file": "fs/write_text_file",
}


def _dump(result: Any) -> Any:
    if isinstance(result, AcpModel):
        return result.to_wire()
    if isinstance(result, BaseModel):
        return result.model_dump(by_alias=True, exclude_none=True, mode="json")
    return result


class AgentSideConnection:
    """Binds an Agent to a JSON-RPC connection.

    Args:
        agent: The agent, or a factory receiving this connection.
        writer: Stream towards the host.
        reader: Stream from the host.
    """

    def __init__(
        self,
        agent: Agent | Callable[[AgentSideConnection], Agent],
        writer: ByteWriter,
        reader: ByteReader,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._log = logger or get_logger("connection")
        self._conn = Connection(
            self._handle_request,
            self._handle_notification,
            reader,
            writer,
            logger=self._log,
        )
        if callable(agent) and not isinstance(agent, Agent):
            agent = agent(self)
        self._agent: Agent = agent

        on_connect = getattr(self._agent, "on_connect", None)
        if callable(on_connect):
            on_connect(self)

    @property
    def connection(self) -> Connection:
        return self._conn

    @property
    def agent(self) -> Agent:
        return self._agent

    def add_observer(self, observer: StreamObserver) -> None:
        self._conn.add_observer(observer)

    async def listen(self) -> None:
        await self._conn.listen()

    async def close(self) -> None:
        await self._conn.close()

    # === Inbound ===

    async def _handle_request(self, method: str, params: Any) -> Any:
        entry = AGENT_METHODS.get(method)
        if entry is None:
            raise RequestError.method_not_found(method)

        attr, model = entry
        handler = getattr(self._agent, attr, None)
        if handler is None:
            raise RequestError.method_not_found(method)

        request = model.model_validate(params if params is not None else {})
        result = await handler(request)
        # JSON-RPC requires a result member; an empty object stands in for "nothing"
        return _dump(result) if result is not None else {}

    async def _handle_notification(self, method: str, params: Any) -> None:
        entry = AGENT_NOTIFICATIONS.get(method)
        if entry is None:
            self._log.debug("Ignoring unknown notification %s", method)
            return

        attr, model = entry
        handler = getattr(self._agent, attr, None)
        if handler is None:
            return
        await handler(model.model_validate(params if params is not None else {}))

    # === Client interface (agent → host) ===

    async def session_update(self, params: SessionNotification) -> None:
        await self._conn.send_notification(CLIENT_METHODS["session_update"], _dump(params))

    async def request_permission(
        self, params: RequestPermissionRequest
    ) -> RequestPermissionResponse:
        result = await self._conn.send_request(CLIENT_METHODS["request_permission"], _dump(params))
        return RequestPermissionResponse.model_validate(result)

    async def read_text_file(self, params: ReadTextFileRequest) -> ReadTextFileResponse:
        result = await self._conn.send_request(CLIENT_METHODS["read_text_file"], _dump(params))
        return ReadTextFileResponse.model_validate(result)

    async def write_text_file(self, params: WriteTextFileRequest) -> WriteTextFileResponse:
        result = await self._conn.send_request(CLIENT_METHODS["write_text_file"], _dump(params))
        return WriteTextFileResponse.model_validate(result or {})
