"""Execution backends."""

from acp_bridge.backend.cleaner import clean_output, extract_content
from acp_bridge.backend.cli_process import CliBackend
from acp_bridge.backend.protocol import Backend, BackendEvent, BackendEventKind, BackendFactory

__all__ = [
    "Backend",
    "BackendEvent",
    "BackendEventKind",
    "BackendFactory",
    "CliBackend",
    "clean_output",
    "extract_content",
]
