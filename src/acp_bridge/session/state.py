"""Per-session state held by the agent."""

from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from dataclasses import dataclass, field

from acp_bridge.backend import Backend
from acp_bridge.config import PermissionMode
from acp_bridge.context import ContextWindow
from acp_bridge.session.plan import ExecutionPlan


class ActiveFiles:
    """Insertion-ordered set of file URIs; the oldest is evicted when full."""

    def __init__(self, limit: int = 100) -> None:
        self._limit = limit
        self._files: OrderedDict[str, None] = OrderedDict()

    def add(self, uri: str) -> None:
        if uri in self._files:
            self._files.move_to_end(uri)
            return
        self._files[uri] = None
        while len(self._files) > self._limit:
            self._files.popitem(last=False)

    def __contains__(self, uri: object) -> bool:
        return uri in self._files

    def __len__(self) -> int:
        return len(self._files)

    def __iter__(self):
        return iter(self._files)


@dataclass
class Session:
    """One conversation between the host and a backend process."""

    id: str
    cwd: str
    backend: Backend
    context: ContextWindow
    permission_mode: PermissionMode = PermissionMode.DEFAULT
    thought_streaming: bool = True
    plan: ExecutionPlan | None = None
    active_files: ActiveFiles = field(default_factory=ActiveFiles)
    created_at: float = field(default_factory=time.time)
    last_activity_at: float = field(default_factory=time.time)
    turn_count: int = 0
    pump: asyncio.Task[None] | None = None

    def touch(self) -> None:
        """Record activity for an accepted prompt."""
        self.last_activity_at = time.time()
        self.turn_count += 1
