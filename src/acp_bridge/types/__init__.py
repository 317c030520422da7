"""ACP protocol types."""

from acp_bridge.types.common import (
    PROTOCOL_VERSION,
    AcpModel,
    AgentCapabilities,
    AudioContent,
    AuthMethod,
    BlobResourceContents,
    ClientCapabilities,
    ClientInfo,
    ContentBlock,
    EmbeddedResource,
    FSCapabilities,
    ImageContent,
    PermissionOption,
    PermissionOptionKind,
    PlanEntry,
    PlanEntryPriority,
    PlanEntryStatus,
    PromptCapabilities,
    ResourceLink,
    TextContent,
    TextResourceContents,
    ToolCallLocation,
    ToolCallStatus,
    ToolCallUpdate,
    ToolKind,
)
from acp_bridge.types.notifications import (
    AgentMessageChunk,
    AgentPlanUpdate,
    AgentThoughtChunk,
    CancelNotification,
    SessionNotification,
    SessionUpdate,
    ToolCallProgress,
    ToolCallStart,
    UserMessageChunk,
)
from acp_bridge.types.requests import (
    AuthenticateRequest,
    InitializeRequest,
    LoadSessionRequest,
    NewSessionRequest,
    PromptRequest,
    ReadTextFileRequest,
    RequestPermissionRequest,
    WriteTextFileRequest,
)
from acp_bridge.types.responses import (
    CancelledOutcome,
    InitializeResponse,
    NewSessionResponse,
    PromptResponse,
    ReadTextFileResponse,
    RequestPermissionResponse,
    SelectedOutcome,
    StopReason,
    WriteTextFileResponse,
)

__all__ = [
    "PROTOCOL_VERSION",
    # Common
    "AcpModel",
    "AgentCapabilities",
    "AudioContent",
    "AuthMethod",
    "BlobResourceContents",
    "ClientCapabilities",
    "ClientInfo",
    "ContentBlock",
    "EmbeddedResource",
    "FSCapabilities",
    "ImageContent",
    "PermissionOption",
    "PermissionOptionKind",
    "PlanEntry",
    "PlanEntryPriority",
    "PlanEntryStatus",
    "PromptCapabilities",
    "ResourceLink",
    "TextContent",
    "TextResourceContents",
    "ToolCallLocation",
    "ToolCallStatus",
    "ToolCallUpdate",
    "ToolKind",
    # Requests
    "AuthenticateRequest",
    "InitializeRequest",
    "LoadSessionRequest",
    "NewSessionRequest",
    "PromptRequest",
    "ReadTextFileRequest",
    "RequestPermissionRequest",
    "WriteTextFileRequest",
    # Responses
    "CancelledOutcome",
    "InitializeResponse",
    "NewSessionResponse",
    "PromptResponse",
    "ReadTextFileResponse",
    "RequestPermissionResponse",
    "SelectedOutcome",
    "StopReason",
    "WriteTextFileResponse",
    # Notifications
    "AgentMessageChunk",
    "AgentPlanUpdate",
    "AgentThoughtChunk",
    "CancelNotification",
    "SessionNotification",
    "SessionUpdate",
    "ToolCallProgress",
    "ToolCallStart",
    "UserMessageChunk",
]
