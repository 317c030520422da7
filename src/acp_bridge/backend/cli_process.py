"""Backend that drives an interactive CLI assistant as a subprocess."""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
from collections.abc import AsyncIterator

from acp_bridge.backend.cleaner import extract_content
from acp_bridge.backend.protocol import BackendEvent
from acp_bridge.config import BackendConfig
from acp_bridge.errors import BackendError
from acp_bridge.logging import TRACE, get_logger

# Prompts the CLI shows when it finds an editor; answered with option 2 ("No")
_CONNECT_PROMPTS = ("Do you want to connect", "VS Code")
_CONNECT_ANSWER = b"2\n"

_READ_SIZE = 4096
_STOP_TIMEOUT = 5.0


class CliBackend:
    """One interactive CLI process per session.

    Output is read in raw chunks, cleaned, and published as BackendEvents on
    an internal queue that ``events()`` drains.
    """

    def __init__(
        self,
        config: BackendConfig,
        cwd: str,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._cwd = cwd
        self._log = logger or get_logger("backend")
        self._process: asyncio.subprocess.Process | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._events: asyncio.Queue[BackendEvent | None] = asyncio.Queue()
        self._terminated = False

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    def _env(self) -> dict[str, str]:
        env = os.environ.copy()
        env.update(self._config.env)
        env["PWD"] = self._cwd
        env["PYTHONUNBUFFERED"] = "1"
        env["NODE_NO_READLINE"] = "1"
        return env

    def _chat_args(self) -> list[str]:
        args: list[str] = []
        if self._config.default_model:
            args.extend(["--model", self._config.default_model])
        args.extend(self._config.args)
        return args

    async def start_interactive_session(self) -> None:
        if self._terminated:
            raise BackendError("Backend has been terminated")
        if self.is_running:
            raise BackendError("Chat session already in progress")

        cmd = [self._config.executable, *self._chat_args()]
        try:
            self._process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,  # Merge stderr into stdout
                cwd=self._cwd,
                env=self._env(),
            )
        except FileNotFoundError as e:
            raise BackendError(f"Command not found: {self._config.executable}") from e
        except OSError as e:
            raise BackendError(f"Failed to start {self._config.executable}: {e}") from e

        self._log.info(
            "Started %s (pid=%d) in %s", self._config.executable, self._process.pid, self._cwd
        )
        self._reader_task = asyncio.create_task(
            self._read_output(self._process), name=f"backend-{self._process.pid}"
        )

    async def _read_output(self, process: asyncio.subprocess.Process) -> None:
        assert process.stdout is not None
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            while True:
                chunk = await process.stdout.read(_READ_SIZE)
                if not chunk:
                    break
                raw = decoder.decode(chunk)
                self._log.log(TRACE, "Backend raw output (%d chars): %r", len(raw), raw[:200])

                if any(prompt in raw for prompt in _CONNECT_PROMPTS):
                    self._log.debug("Auto-responding to editor connection prompt")
                    await self._write(process, _CONNECT_ANSWER)
                    continue

                content = extract_content(raw)
                if content:
                    self._events.put_nowait(BackendEvent.message(content))
        except (ConnectionError, OSError, BackendError) as e:
            self._log.warning("Backend output failed: %s", e)
            self._events.put_nowait(BackendEvent.failure(str(e)))

        exit_code = await process.wait()
        self._log.info("Backend process %d ended (exit_code=%s)", process.pid, exit_code)
        if self._process is process:
            self._process = None
        self._events.put_nowait(BackendEvent.ended(exit_code))

    async def _write(self, process: asyncio.subprocess.Process, data: bytes) -> None:
        if process.stdin is None:
            raise BackendError("Backend stdin is not available")
        try:
            process.stdin.write(data)
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise BackendError(f"Backend stopped accepting input: {e}") from e

    async def send(self, text: str) -> None:
        process = self._process
        if process is None or process.returncode is not None:
            raise BackendError("No active chat session")
        self._log.debug("Sending %d chars to backend", len(text))
        await self._write(process, (text + "\n").encode("utf-8"))

    async def end(self) -> None:
        process = self._process
        if process is None:
            return
        self._process = None
        if process.returncode is None:
            try:
                process.terminate()
                try:
                    await asyncio.wait_for(process.wait(), timeout=_STOP_TIMEOUT)
                except asyncio.TimeoutError:
                    self._log.warning("Backend %d did not exit, killing", process.pid)
                    process.kill()
                    await process.wait()
            except ProcessLookupError:
                pass  # Already gone
        if self._reader_task is not None:
            await asyncio.gather(self._reader_task, return_exceptions=True)
            self._reader_task = None

    async def terminate(self) -> None:
        if self._terminated:
            return
        self._terminated = True
        await self.end()
        self._events.put_nowait(None)

    async def events(self) -> AsyncIterator[BackendEvent]:
        while True:
            event = await self._events.get()
            if event is None:
                return
            yield event

    async def _run(self, args: list[str]) -> tuple[int, str]:
        """Run a one-shot command and return (exit code, combined output)."""
        cmd = [self._config.executable, *args]
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=self._cwd,
                env=self._env(),
            )
        except FileNotFoundError as e:
            raise BackendError(f"Command not found: {self._config.executable}") from e
        except OSError as e:
            raise BackendError(f"Failed to run {self._config.executable}: {e}") from e

        try:
            stdout, _ = await asyncio.wait_for(
                process.communicate(), timeout=self._config.check_timeout
            )
        except asyncio.TimeoutError:
            try:
                process.kill()
                await process.wait()
            except ProcessLookupError:
                pass
            raise BackendError(
                f"Command timed out after {self._config.check_timeout:g}s: {' '.join(cmd)}"
            ) from None

        return process.returncode or 0, stdout.decode("utf-8", errors="replace")

    async def version(self) -> str | None:
        """Version string reported by ``--version``, or None if unavailable."""
        try:
            code, output = await self._run(["--version"])
        except BackendError as e:
            self._log.error("Failed to check CLI setup: %s", e)
            return None
        if code != 0:
            self._log.error("%s --version exited with %d", self._config.executable, code)
            return None
        return output.strip() or None

    async def check_available(self) -> bool:
        return await self.version() is not None

    async def authenticate(self) -> None:
        if not self._config.auth_args:
            if not await self.check_available():
                raise BackendError(f"{self._config.executable} not found or not properly set up")
            return

        code, output = await self._run(self._config.auth_args)
        if code != 0:
            raise BackendError(f"Authentication failed with code {code}: {output.strip()}")
