"""Entry point for running the bridge as an ACP agent.

Usage:
    python -m acp_bridge [--config PATH] [-v] [--debug]

    # For testing with a file:
    cat session.jsonl | python -m acp_bridge

This starts the agent listening on stdin/stdout for JSON-RPC messages from an
ACP client (Zed, Rider, etc.). Logs never go to stdout.
"""

from __future__ import annotations

import asyncio
import json
import signal
import sys
from typing import Any

from dotenv import load_dotenv

from acp_bridge.config import Config
from acp_bridge.logging import get_logger, setup_logging
from acp_bridge.transport import StreamDirection, StreamEvent

log = get_logger()


def _log_message(event: StreamEvent) -> None:
    """Log all ACP messages for debugging."""
    direction = "<<" if event.direction is StreamDirection.INCOMING else ">>"
    method = event.message.get("method", "response")
    msg_id = event.message.get("id", "-")
    msg_str = json.dumps(event.message, default=str)

    if method == "response":
        error = event.message.get("error")
        if error:
            log.debug("%s response (id=%s) ERROR: %s", direction, msg_id, error)
        else:
            result = event.message.get("result")
            stop_reason = result.get("stopReason", "-") if isinstance(result, dict) else "n/a"
            log.debug(
                "%s response (id=%s) stop_reason=%s len=%d",
                direction, msg_id, stop_reason, len(msg_str)
            )
    elif method == "session/update":
        update = (event.message.get("params") or {}).get("update", {})
        log.debug(
            "%s %s type=%s len=%d",
            direction, method, update.get("sessionUpdate", "unknown"), len(msg_str)
        )
    else:
        preview = msg_str[:200] + "..." if len(msg_str) > 200 else msg_str
        log.debug("%s %s (id=%s) %s", direction, method, msg_id, preview)


def _handle_loop_exception(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    """Log errors from tasks nobody awaited."""
    log.error(
        "Unhandled error in event loop: %s",
        context.get("message", "unknown"),
        exc_info=context.get("exception"),
    )


async def _serve(config: Config) -> None:
    """Async entry point with proper cleanup."""
    from acp_bridge.session import BridgeAgent
    from acp_bridge.transport import AgentSideConnection, stdio_streams

    loop = asyncio.get_running_loop()
    loop.set_exception_handler(_handle_loop_exception)

    agent = BridgeAgent(config)
    reader, writer = await stdio_streams()
    conn = AgentSideConnection(agent, writer, reader)
    conn.add_observer(_log_message)

    listen_task = asyncio.create_task(conn.listen(), name="acp-listen")
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, listen_task.cancel)
        except (NotImplementedError, RuntimeError):
            pass  # Not supported on Windows event loops

    log.info("Ready to accept ACP requests")

    try:
        await listen_task
    except asyncio.CancelledError:
        log.info("Received shutdown signal")
    except (BrokenPipeError, ConnectionResetError):
        log.info("Pipe closed, shutting down...")
    finally:
        log.info("Connection closed, cleaning up...")
        try:
            await asyncio.wait_for(agent.destroy(), timeout=5.0)
        except asyncio.TimeoutError:
            log.warning("Agent shutdown timed out")
        await conn.close()


def run_bridge(config: Config) -> int:
    """Serve ACP on stdio until EOF or a shutdown signal."""
    setup_logging(config.logging)
    log.info(
        "Starting acp-bridge (backend=%s, permission_mode=%s, config=%s)",
        config.backend.executable,
        config.session.permission_mode.value,
        config.source or "defaults",
    )

    try:
        asyncio.run(_serve(config))
    except KeyboardInterrupt:
        log.info("Interrupted")
    finally:
        log.info("Exiting...")
    return 0


def main() -> int:
    """Run the ACP bridge."""
    load_dotenv()

    from acp_bridge.cli import run_cli

    return run_cli(sys.argv[1:])


if __name__ == "__main__":
    sys.exit(main())
