"""ACP agent that bridges host editor sessions onto interactive CLI backends.

Each session owns one backend process. A pump task per session drains the
backend's event stream and relays output to the host as session updates,
while ``prompt`` only forwards the user's text and returns.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from acp_bridge.backend import Backend, BackendEventKind, BackendFactory, CliBackend
from acp_bridge.config import Config
from acp_bridge.context import ContextEvent, ContextEventKind, ContextMessage, ContextMonitor
from acp_bridge.errors import BackendError, BridgeError, RequestError, SessionNotFoundError
from acp_bridge.interfaces import Client
from acp_bridge.logging import TRACE, get_logger
from acp_bridge.resilience import CircuitBreaker
from acp_bridge.session.complexity import analyze_prompt
from acp_bridge.session.plan import build_plan
from acp_bridge.session.state import ActiveFiles, Session
from acp_bridge.types import (
    PROTOCOL_VERSION,
    AgentCapabilities,
    AgentMessageChunk,
    AgentPlanUpdate,
    AgentThoughtChunk,
    AuthenticateRequest,
    AuthMethod,
    CancelNotification,
    ContentBlock,
    EmbeddedResource,
    InitializeRequest,
    InitializeResponse,
    NewSessionRequest,
    NewSessionResponse,
    PromptCapabilities,
    PromptRequest,
    PromptResponse,
    ResourceLink,
    SessionNotification,
    SessionUpdate,
    StopReason,
    TextContent,
    UserMessageChunk,
)

log = get_logger("agent")

AUTH_METHOD = AuthMethod(
    id="browser",
    name="Authenticate with Browser",
    description="Uses browser-based authentication for Qwen CLI",
)

# Words in backend output that mean the current plan step is done
COMPLETION_PATTERN = re.compile(r"completed|finished|done|ready|implemented|fixed")


async def _invoke(func: Callable[[], Awaitable[Any]]) -> Any:
    return await func()


class BridgeAgent:
    """Agent implementation behind an AgentSideConnection.

    Args:
        config: Bridge configuration; defaults when None.
        backend_factory: Builds a backend for a working directory. Defaults
            to a CliBackend using ``config.backend``.
    """

    def __init__(
        self,
        config: Config | None = None,
        *,
        backend_factory: BackendFactory | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config or Config()
        self._backend_factory: BackendFactory = backend_factory or self._default_backend
        self._log = logger or log
        self._conn: Client | None = None
        self._sessions: dict[str, Session] = {}

        self._context = ContextMonitor(self._config.context)
        self._context.subscribe(self._on_context_event)

        self._probe: Backend | None = None
        self._auth_breaker: CircuitBreaker[Any] = CircuitBreaker(
            _invoke, self._config.circuit_breaker, name="auth"
        )

    def _default_backend(self, cwd: str) -> Backend:
        return CliBackend(self._config.backend, cwd)

    def on_connect(self, conn: Client) -> None:
        """Called when a client connects."""
        self._conn = conn

    @property
    def context_monitor(self) -> ContextMonitor:
        return self._context

    @property
    def auth_breaker(self) -> CircuitBreaker[Any]:
        return self._auth_breaker

    @property
    def sessions(self) -> dict[str, Session]:
        return dict(self._sessions)

    def get_session(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    # === Agent methods ===

    async def initialize(self, params: InitializeRequest) -> InitializeResponse:
        client = params.client_info.name if params.client_info else "unknown"
        self._log.info("Initializing (client=%s, protocol=%d)", client, params.protocol_version)

        try:
            await self._auth_breaker.call(self._check_backend)
        except BridgeError as e:
            self._log.warning("Backend check failed: %s", e)

        return InitializeResponse(
            protocol_version=PROTOCOL_VERSION,
            agent_capabilities=AgentCapabilities(
                load_session=False,
                prompt_capabilities=PromptCapabilities(
                    image=False,
                    audio=False,
                    embedded_context=True,
                ),
            ),
            auth_methods=[AUTH_METHOD],
        )

    async def authenticate(self, params: AuthenticateRequest) -> None:
        self._log.info("Authenticating with method %s", params.method_id)
        if params.method_id != AUTH_METHOD.id:
            raise RequestError.invalid_params("Only browser authentication is supported")

        try:
            await self._auth_breaker.call(self._probe_backend().authenticate)
        except BridgeError as e:
            self._log.warning("Authentication failed: %s", e)
            raise RequestError.auth_required(str(e)) from e

    async def new_session(self, params: NewSessionRequest) -> NewSessionResponse:
        session_id = str(uuid.uuid4())
        backend = self._backend_factory(params.cwd)
        try:
            await backend.start_interactive_session()
        except Exception:
            await backend.terminate()
            raise

        settings = self._config.session
        session = Session(
            id=session_id,
            cwd=params.cwd,
            backend=backend,
            context=self._context.create_context_window(session_id),
            permission_mode=settings.permission_mode,
            thought_streaming=settings.thought_streaming,
            active_files=ActiveFiles(settings.max_active_files),
        )
        self._sessions[session_id] = session
        session.pump = asyncio.create_task(
            self._pump_events(session), name=f"session-{session_id[:8]}"
        )

        self._log.info(
            "Created session %s (cwd=%s, mode=%s)",
            session_id,
            params.cwd,
            session.permission_mode.value,
        )
        return NewSessionResponse(session_id=session_id)

    async def prompt(self, params: PromptRequest) -> PromptResponse:
        session = self.get_session(params.session_id)

        max_turns = self._config.session.max_turns
        if max_turns and session.turn_count >= max_turns:
            self._log.warning("Session %s reached its limit of %d turns", session.id, max_turns)
            return PromptResponse(stop_reason=StopReason.MAX_TURN_REQUESTS)
        session.touch()

        text = self._collect_prompt(session, params.prompt)
        self._log.info(
            "Prompt for session %s (turn %d, %d chars)", session.id, session.turn_count, len(text)
        )
        self._context.add_message(session.id, ContextMessage(role="user", content=text))

        await self._send_update(session.id, UserMessageChunk(content=TextContent(text=text)))

        analysis = analyze_prompt(text)
        if session.thought_streaming and analysis.is_complex:
            await self._send_update(
                session.id,
                AgentThoughtChunk(
                    content=TextContent(text=f"Analyzing request: {analysis.summary}")
                ),
            )

        if analysis.needs_plan:
            session.plan = build_plan(analysis)
            await self._send_plan(session)

        try:
            if not session.backend.is_running:
                await session.backend.start_interactive_session()
            await session.backend.send(text)
        except BridgeError as e:
            self._log.error("Error processing prompt for session %s: %s", session.id, e)
            await self._handle_error(session, str(e))
            return PromptResponse(stop_reason=StopReason.CANCELLED)

        return PromptResponse(stop_reason=StopReason.END_TURN)

    async def cancel(self, params: CancelNotification) -> None:
        session = self.get_session(params.session_id)
        self._log.info("Cancelling session %s", session.id)
        await session.backend.end()

    # === Session lifecycle ===

    async def remove_session(self, session_id: str) -> None:
        """Stop a session's backend and forget it."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFoundError(session_id)

        await session.backend.terminate()
        if session.pump is not None and not session.pump.done():
            session.pump.cancel()
            await asyncio.gather(session.pump, return_exceptions=True)
        self._context.remove_context_window(session_id)
        self._log.info("Removed session %s", session_id)

    async def destroy(self) -> None:
        """Terminate every backend and drop all sessions. Safe to call twice."""
        for session_id in list(self._sessions):
            try:
                await self.remove_session(session_id)
            except BackendError as e:
                self._log.warning("Error stopping session %s: %s", session_id, e)
        if self._probe is not None:
            await self._probe.terminate()
            self._probe = None
        self._auth_breaker.dispose()

    # === Backend checks ===

    def _probe_backend(self) -> Backend:
        if self._probe is None:
            self._probe = self._backend_factory(os.getcwd())
        return self._probe

    async def _check_backend(self) -> None:
        if not await self._probe_backend().check_available():
            raise BackendError("Backend CLI not found or not properly set up")

    # === Relays ===

    async def _pump_events(self, session: Session) -> None:
        async for event in session.backend.events():
            if session.id not in self._sessions:
                break
            try:
                if event.kind is BackendEventKind.MESSAGE:
                    await self._handle_output(session, event.text)
                elif event.kind is BackendEventKind.ERROR:
                    await self._handle_error(session, event.error or "Unknown backend error")
                else:
                    self._log.info(
                        "Backend for session %s ended (exit_code=%s)", session.id, event.exit_code
                    )
            except (ConnectionError, OSError, RequestError) as e:
                self._log.warning("Failed to relay backend event for %s: %s", session.id, e)

    async def _handle_output(self, session: Session, text: str) -> None:
        self._context.add_message(session.id, ContextMessage(role="assistant", content=text))

        if session.plan is not None and COMPLETION_PATTERN.search(text.lower()):
            if session.plan.advance():
                await self._send_plan(session)

        await self._send_update(session.id, AgentMessageChunk(content=TextContent(text=text)))

    async def _handle_error(self, session: Session, error: str) -> None:
        if session.plan is not None and session.plan.fail_current(error):
            await self._send_plan(session)

        await self._send_update(
            session.id, AgentMessageChunk(content=TextContent(text=f"[Error] {error}"))
        )

    async def _send_plan(self, session: Session) -> None:
        if session.plan is None:
            return
        await self._send_update(session.id, AgentPlanUpdate(entries=session.plan.to_entries()))

    async def _send_update(self, session_id: str, update: SessionUpdate) -> None:
        if self._conn is None:
            self._log.debug("No client connected, dropping %s update", type(update).__name__)
            return
        await self._conn.session_update(SessionNotification(session_id=session_id, update=update))

    def _collect_prompt(self, session: Session, blocks: list[ContentBlock]) -> str:
        """Join text blocks; remember files referenced by resource blocks."""
        parts: list[str] = []
        for block in blocks:
            if isinstance(block, TextContent):
                parts.append(block.text)
            elif isinstance(block, ResourceLink):
                session.active_files.add(block.uri)
            elif isinstance(block, EmbeddedResource):
                session.active_files.add(block.resource.uri)
        return "\n".join(parts).strip()

    def _on_context_event(self, event: ContextEvent) -> None:
        if event.kind is ContextEventKind.UPDATE:
            self._log.log(
                TRACE,
                "Context %s: %d/%d tokens",
                event.session_id,
                event.current_tokens,
                event.max_tokens,
            )
        elif event.kind is ContextEventKind.WARNING:
            self._log.warning(
                "%s (session %s, %.1f%%)", event.message, event.session_id, event.percentage
            )
        elif event.kind is ContextEventKind.CRITICAL:
            self._log.error(
                "%s (session %s, %.1f%%)", event.message, event.session_id, event.percentage
            )
            self._context.cleanup_context(
                event.session_id, self._config.context.cleanup_target_percentage
            )
