"""ACP notification types."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import Field

from acp_bridge.types.common import (
    AcpModel,
    ContentBlock,
    PlanEntry,
    ToolCallLocation,
    ToolCallStatus,
    ToolKind,
)


class CancelNotification(AcpModel):
    """Cancel in-progress prompt notification."""

    session_id: str = Field(alias="sessionId")


# === session/update variants (discriminated on sessionUpdate) ===


class UserMessageChunk(AcpModel):
    """Echo of the user's prompt for the transcript."""

    session_update: Literal["user_message_chunk"] = Field(
        default="user_message_chunk", alias="sessionUpdate"
    )
    content: ContentBlock


class AgentMessageChunk(AcpModel):
    """A piece of the agent's reply."""

    session_update: Literal["agent_message_chunk"] = Field(
        default="agent_message_chunk", alias="sessionUpdate"
    )
    content: ContentBlock


class AgentThoughtChunk(AcpModel):
    """A piece of the agent's reasoning, shown as thinking."""

    session_update: Literal["agent_thought_chunk"] = Field(
        default="agent_thought_chunk", alias="sessionUpdate"
    )
    content: ContentBlock


class ToolCallStart(AcpModel):
    """A new tool call the agent is about to run."""

    session_update: Literal["tool_call"] = Field(default="tool_call", alias="sessionUpdate")
    tool_call_id: str = Field(alias="toolCallId")
    title: str
    kind: ToolKind = ToolKind.OTHER
    status: ToolCallStatus = ToolCallStatus.PENDING
    content: list[dict[str, Any]] | None = None
    locations: list[ToolCallLocation] | None = None


class ToolCallProgress(AcpModel):
    """Progress of an earlier tool call; only changed fields are set."""

    session_update: Literal["tool_call_update"] = Field(
        default="tool_call_update", alias="sessionUpdate"
    )
    tool_call_id: str = Field(alias="toolCallId")
    title: str | None = None
    kind: ToolKind | None = None
    status: ToolCallStatus | None = None
    content: list[dict[str, Any]] | None = None
    locations: list[ToolCallLocation] | None = None


class AgentPlanUpdate(AcpModel):
    """Full replacement of the current execution plan."""

    session_update: Literal["plan"] = Field(default="plan", alias="sessionUpdate")
    entries: list[PlanEntry]


SessionUpdate = Annotated[
    Union[
        UserMessageChunk,
        AgentMessageChunk,
        AgentThoughtChunk,
        ToolCallStart,
        ToolCallProgress,
        AgentPlanUpdate,
    ],
    Field(discriminator="session_update"),
]


class SessionNotification(AcpModel):
    """session/update notification payload."""

    session_id: str = Field(alias="sessionId")
    update: SessionUpdate
