"""JSON-RPC transport: framing, correlation and the agent-side binding."""

from acp_bridge.transport.agent_side import AgentSideConnection
from acp_bridge.transport.connection import Connection, LineBuffer
from acp_bridge.transport.messages import (
    Notification,
    Request,
    Response,
    StreamDirection,
    StreamEvent,
    decode_message,
    encode_message,
)
from acp_bridge.transport.stdio import stdio_streams

__all__ = [
    "AgentSideConnection",
    "Connection",
    "LineBuffer",
    "Notification",
    "Request",
    "Response",
    "StreamDirection",
    "StreamEvent",
    "decode_message",
    "encode_message",
    "stdio_streams",
]
