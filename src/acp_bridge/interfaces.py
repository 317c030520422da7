"""Interfaces between the protocol binding and the agent implementation."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from acp_bridge.types import (
    AuthenticateRequest,
    CancelNotification,
    InitializeRequest,
    InitializeResponse,
    NewSessionRequest,
    NewSessionResponse,
    PromptRequest,
    PromptResponse,
    ReadTextFileRequest,
    ReadTextFileResponse,
    RequestPermissionRequest,
    RequestPermissionResponse,
    SessionNotification,
    WriteTextFileRequest,
    WriteTextFileResponse,
)


@runtime_checkable
class Client(Protocol):
    """What the agent can ask of the host editor."""

    async def session_update(self, params: SessionNotification) -> None: ...

    async def request_permission(
        self, params: RequestPermissionRequest
    ) -> RequestPermissionResponse: ...

    async def read_text_file(self, params: ReadTextFileRequest) -> ReadTextFileResponse: ...

    async def write_text_file(self, params: WriteTextFileRequest) -> WriteTextFileResponse: ...


@runtime_checkable
class Agent(Protocol):
    """Methods the host editor calls on the agent.

    ``load_session`` is optional; when absent the binding answers
    method-not-found.
    """

    async def initialize(self, params: InitializeRequest) -> InitializeResponse: ...

    async def authenticate(self, params: AuthenticateRequest) -> None: ...

    async def new_session(self, params: NewSessionRequest) -> NewSessionResponse: ...

    async def prompt(self, params: PromptRequest) -> PromptResponse: ...

    async def cancel(self, params: CancelNotification) -> None: ...
