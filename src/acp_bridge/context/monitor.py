"""Per-session context window accounting.

Token counts are a character-rate estimate, not a tokenizer: every message
costs ``ceil(len * tokens_per_char)`` for its content and each tool call
part, plus a fixed overhead. Listeners receive an UPDATE event after every
mutation, followed by WARNING or CRITICAL when a threshold is crossed.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from acp_bridge.config import ContextConfig
from acp_bridge.errors import ContextWindowNotFoundError
from acp_bridge.logging import get_logger

MESSAGE_OVERHEAD_TOKENS = 4


@dataclass
class ToolCallRecord:
    """A tool invocation carried by a message."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    result: str | None = None


@dataclass
class ContextMessage:
    """One conversation message in a context window."""

    role: str  # user, assistant, system
    content: str
    tool_calls: list[ToolCallRecord] = field(default_factory=list)


@dataclass
class ContextWindow:
    """Retained messages of a session and their running token estimate."""

    session_id: str
    max_tokens: int
    current_tokens: int = 0
    messages: list[ContextMessage] = field(default_factory=list)


class ContextEventKind(str, Enum):
    UPDATE = "update"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class ContextEvent:
    """Emitted to listeners whenever a window changes."""

    kind: ContextEventKind
    session_id: str
    current_tokens: int
    max_tokens: int
    message: str = ""

    @property
    def percentage(self) -> float:
        return self.current_tokens / self.max_tokens * 100 if self.max_tokens else 0.0


ContextListener = Callable[[ContextEvent], None]


class ContextMonitor:
    """Tracks context windows for all sessions."""

    def __init__(
        self,
        config: ContextConfig | None = None,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config or ContextConfig()
        self._log = logger or get_logger("context")
        self._windows: dict[str, ContextWindow] = {}
        self._listeners: list[ContextListener] = []

    @property
    def config(self) -> ContextConfig:
        return self._config

    def subscribe(self, listener: ContextListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: ContextListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def create_context_window(self, session_id: str) -> ContextWindow:
        window = ContextWindow(session_id=session_id, max_tokens=self._config.max_tokens)
        self._windows[session_id] = window
        return window

    def get_context_window(self, session_id: str) -> ContextWindow | None:
        return self._windows.get(session_id)

    def remove_context_window(self, session_id: str) -> None:
        self._windows.pop(session_id, None)

    def _require(self, session_id: str) -> ContextWindow:
        window = self._windows.get(session_id)
        if window is None:
            raise ContextWindowNotFoundError(session_id)
        return window

    def add_message(self, session_id: str, message: ContextMessage) -> None:
        """Append a message and re-check thresholds.

        Raises:
            ContextWindowNotFoundError: No window exists for the session.
        """
        window = self._require(session_id)
        window.messages.append(message)
        window.current_tokens += self.estimate_tokens(message)
        self._emit_update(window)
        self._check_thresholds(window)

    def update_context(self, session_id: str, messages: list[ContextMessage]) -> None:
        """Replace the whole history and recompute the total.

        Raises:
            ContextWindowNotFoundError: No window exists for the session.
        """
        window = self._require(session_id)
        window.messages = list(messages)
        window.current_tokens = sum(self.estimate_tokens(m) for m in window.messages)
        self._emit_update(window)
        self._check_thresholds(window)

    def get_token_percentage(self, session_id: str) -> float:
        """Percentage of the window in use; 0 for unknown sessions."""
        window = self._windows.get(session_id)
        if window is None or not window.max_tokens:
            return 0.0
        return window.current_tokens / window.max_tokens * 100

    def cleanup_context(self, session_id: str, target_percentage: float = 50) -> int:
        """Evict oldest messages until the total is at or below the target.

        Returns:
            Number of messages removed (0 for unknown sessions).
        """
        window = self._windows.get(session_id)
        if window is None:
            return 0

        target_tokens = math.floor(window.max_tokens * target_percentage / 100)
        removed = 0
        while window.current_tokens > target_tokens and window.messages:
            message = window.messages.pop(0)
            window.current_tokens -= self.estimate_tokens(message)
            removed += 1

        if removed:
            self._log.info(
                "Evicted %d message(s) from session %s, now %d/%d tokens",
                removed,
                session_id,
                window.current_tokens,
                window.max_tokens,
            )
        self._emit_update(window)
        return removed

    def estimate_tokens(self, message: ContextMessage) -> int:
        """Rough token estimate for one message, including overhead."""
        rate = self._config.tokens_per_char
        total = math.ceil(len(message.content) * rate)
        for call in message.tool_calls:
            total += math.ceil(len(call.name) * rate)
            total += math.ceil(len(json.dumps(call.arguments, separators=(",", ":"))) * rate)
            if call.result:
                total += math.ceil(len(call.result) * rate)
        return total + MESSAGE_OVERHEAD_TOKENS

    def _check_thresholds(self, window: ContextWindow) -> None:
        percentage = self.get_token_percentage(window.session_id)
        if percentage >= self._config.critical_at_percentage:
            self._emit(
                window,
                ContextEventKind.CRITICAL,
                "Context window critically full - cleanup required",
            )
        elif percentage >= self._config.warn_at_percentage:
            self._emit(
                window,
                ContextEventKind.WARNING,
                "Context window filling up - consider cleanup",
            )

    def _emit_update(self, window: ContextWindow) -> None:
        self._emit(window, ContextEventKind.UPDATE)

    def _emit(self, window: ContextWindow, kind: ContextEventKind, message: str = "") -> None:
        event = ContextEvent(
            kind=kind,
            session_id=window.session_id,
            current_tokens=window.current_tokens,
            max_tokens=window.max_tokens,
            message=message,
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                self._log.exception("Context listener failed for %s event", kind.value)
