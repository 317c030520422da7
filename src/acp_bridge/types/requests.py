"""ACP request types (Client → Agent and Agent → Client)."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from acp_bridge.types.common import (
    AcpModel,
    ClientCapabilities,
    ClientInfo,
    ContentBlock,
    PermissionOption,
    ToolCallUpdate,
)

# === Agent Methods (Client → Agent) ===


class InitializeRequest(AcpModel):
    """Initialize request from client to agent."""

    protocol_version: int = Field(alias="protocolVersion")
    client_capabilities: ClientCapabilities = Field(
        default_factory=ClientCapabilities, alias="clientCapabilities"
    )
    client_info: ClientInfo | None = Field(default=None, alias="clientInfo")


class AuthenticateRequest(AcpModel):
    """Authenticate with one of the advertised methods."""

    method_id: str = Field(alias="methodId")


class NewSessionRequest(AcpModel):
    """Create new session request."""

    cwd: str
    mcp_servers: list[dict[str, Any]] = Field(default_factory=list, alias="mcpServers")


class LoadSessionRequest(AcpModel):
    """Load existing session request."""

    session_id: str = Field(alias="sessionId")
    cwd: str
    mcp_servers: list[dict[str, Any]] = Field(default_factory=list, alias="mcpServers")


class PromptRequest(AcpModel):
    """Send prompt to agent."""

    session_id: str = Field(alias="sessionId")
    prompt: list[ContentBlock]


# === Client Methods (Agent → Client) ===


class RequestPermissionRequest(AcpModel):
    """Request permission from user."""

    session_id: str = Field(alias="sessionId")
    tool_call: ToolCallUpdate = Field(alias="toolCall")
    options: list[PermissionOption]


class ReadTextFileRequest(AcpModel):
    """Read file content request."""

    session_id: str = Field(alias="sessionId")
    path: str
    line: int | None = None
    limit: int | None = None


class WriteTextFileRequest(AcpModel):
    """Write file content request."""

    session_id: str = Field(alias="sessionId")
    path: str
    content: str
