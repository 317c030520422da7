"""Context window accounting."""

from acp_bridge.context.monitor import (
    ContextEvent,
    ContextEventKind,
    ContextMessage,
    ContextMonitor,
    ContextWindow,
    ToolCallRecord,
)

__all__ = [
    "ContextEvent",
    "ContextEventKind",
    "ContextMessage",
    "ContextMonitor",
    "ContextWindow",
    "ToolCallRecord",
]
