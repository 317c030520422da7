"""ACP response types."""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import Field

from acp_bridge.types.common import AcpModel, AgentCapabilities, AuthMethod

# === Agent Method Responses ===


class InitializeResponse(AcpModel):
    """Initialize response from agent."""

    protocol_version: int = Field(alias="protocolVersion")
    agent_capabilities: AgentCapabilities = Field(alias="agentCapabilities")
    auth_methods: list[AuthMethod] = Field(default_factory=list, alias="authMethods")


class NewSessionResponse(AcpModel):
    """New session response."""

    session_id: str = Field(alias="sessionId")


class StopReason(str, Enum):
    """Prompt stop reasons."""

    END_TURN = "end_turn"
    MAX_TOKENS = "max_tokens"
    MAX_TURN_REQUESTS = "max_turn_requests"
    REFUSAL = "refusal"
    CANCELLED = "cancelled"


class PromptResponse(AcpModel):
    """Prompt response."""

    stop_reason: StopReason = Field(alias="stopReason")


# === Client Method Responses ===


class SelectedOutcome(AcpModel):
    """The user picked one of the offered options."""

    outcome: Literal["selected"] = "selected"
    option_id: str = Field(alias="optionId")


class CancelledOutcome(AcpModel):
    """The prompt turn was cancelled before the user answered."""

    outcome: Literal["cancelled"] = "cancelled"


class RequestPermissionResponse(AcpModel):
    """Permission response from client."""

    outcome: SelectedOutcome | CancelledOutcome = Field(discriminator="outcome")


class ReadTextFileResponse(AcpModel):
    """Read file response."""

    content: str


class WriteTextFileResponse(AcpModel):
    """Write file response (empty on success)."""
