"""Common ACP types shared across requests, responses and notifications."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

PROTOCOL_VERSION = 1


class AcpModel(BaseModel):
    """Base model for ACP types with populate_by_name enabled."""

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Dump with camelCase aliases and without unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# === Content blocks ===


class TextContent(AcpModel):
    """Text content block."""

    type: Literal["text"] = "text"
    text: str


class ImageContent(AcpModel):
    """Base64 image content block."""

    type: Literal["image"] = "image"
    data: str
    mime_type: str = Field(alias="mimeType")
    uri: str | None = None


class AudioContent(AcpModel):
    """Base64 audio content block."""

    type: Literal["audio"] = "audio"
    data: str
    mime_type: str = Field(alias="mimeType")


class ResourceLink(AcpModel):
    """Reference to a resource the client can resolve."""

    type: Literal["resource_link"] = "resource_link"
    uri: str
    name: str
    mime_type: str | None = Field(default=None, alias="mimeType")
    size: int | None = None


class TextResourceContents(AcpModel):
    """Inline text of an embedded resource."""

    uri: str
    text: str
    mime_type: str | None = Field(default=None, alias="mimeType")


class BlobResourceContents(AcpModel):
    """Inline base64 blob of an embedded resource."""

    uri: str
    blob: str
    mime_type: str | None = Field(default=None, alias="mimeType")


class EmbeddedResource(AcpModel):
    """Embedded context block (file contents pasted by the editor)."""

    type: Literal["resource"] = "resource"
    resource: TextResourceContents | BlobResourceContents


ContentBlock = Annotated[
    Union[TextContent, ImageContent, AudioContent, ResourceLink, EmbeddedResource],
    Field(discriminator="type"),
]


# === Capabilities ===


class FSCapabilities(AcpModel):
    """Filesystem capabilities."""

    read_text_file: bool = Field(default=False, alias="readTextFile")
    write_text_file: bool = Field(default=False, alias="writeTextFile")


class ClientCapabilities(AcpModel):
    """Client capabilities sent during initialization."""

    fs: FSCapabilities = Field(default_factory=FSCapabilities)
    terminal: bool = False


class ClientInfo(AcpModel):
    """Client identification."""

    name: str
    title: str | None = None
    version: str | None = None


class PromptCapabilities(AcpModel):
    """Prompt content capabilities."""

    image: bool = False
    audio: bool = False
    embedded_context: bool = Field(default=False, alias="embeddedContext")


class AgentCapabilities(AcpModel):
    """Agent capabilities advertised during initialization."""

    load_session: bool = Field(default=False, alias="loadSession")
    prompt_capabilities: PromptCapabilities = Field(
        default_factory=PromptCapabilities, alias="promptCapabilities"
    )


class AuthMethod(AcpModel):
    """Authentication method offered to the client."""

    id: str
    name: str
    description: str | None = None


# === Tool calls and permissions ===


class ToolCallStatus(str, Enum):
    """Status of a tool call."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class ToolKind(str, Enum):
    """Category of a tool call, used by the client to pick an icon."""

    READ = "read"
    EDIT = "edit"
    DELETE = "delete"
    MOVE = "move"
    SEARCH = "search"
    EXECUTE = "execute"
    THINK = "think"
    FETCH = "fetch"
    OTHER = "other"


class ToolCallLocation(AcpModel):
    """File location touched by a tool call."""

    path: str
    line: int | None = None


class ToolCallUpdate(AcpModel):
    """Tool call fields used in permission requests."""

    tool_call_id: str = Field(alias="toolCallId")
    title: str | None = None
    kind: ToolKind | None = None
    status: ToolCallStatus | None = None
    content: list[dict[str, Any]] | None = None
    locations: list[ToolCallLocation] | None = None


class PermissionOptionKind(str, Enum):
    """Permission option kinds."""

    ALLOW_ONCE = "allow_once"
    ALLOW_ALWAYS = "allow_always"
    REJECT_ONCE = "reject_once"
    REJECT_ALWAYS = "reject_always"


class PermissionOption(AcpModel):
    """Permission option presented to user."""

    option_id: str = Field(alias="optionId")
    kind: PermissionOptionKind
    name: str


# === Plans ===


class PlanEntryPriority(str, Enum):
    """Relative importance of a plan entry."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PlanEntryStatus(str, Enum):
    """Plan entry status as understood by the client."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class PlanEntry(AcpModel):
    """Entry in an execution plan."""

    content: str
    priority: PlanEntryPriority = PlanEntryPriority.MEDIUM
    status: PlanEntryStatus = PlanEntryStatus.PENDING
