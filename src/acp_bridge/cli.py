"""Command-line interface for acp-bridge."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from pathlib import Path

from acp_bridge import __version__


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="acp-bridge",
        description="ACP bridge - expose an interactive coding CLI to ACP editors over stdio",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be repeated)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (same as ACP_DEBUG=true)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Config file path (default: ./acp-bridge.yaml, then ~/.config/acp-bridge/config.yaml)",
    )
    parser.add_argument(
        "--diagnose",
        action="store_true",
        help="Check the backend CLI and environment, then exit",
    )
    parser.add_argument(
        "--setup",
        action="store_true",
        help="Show a system check and the recommended editor configuration, then exit",
    )
    parser.add_argument(
        "--test",
        action="store_true",
        help="Check that the backend CLI runs and passes its auth check, then exit",
    )
    return parser


def run_cli(args: Sequence[str]) -> int:
    """Run the CLI with the given arguments."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    from acp_bridge.config import load_config

    config = load_config(config_path=parsed.config)
    if parsed.debug:
        config.logging.level = "DEBUG"
        config.logging.verbose = None
    elif parsed.verbose:
        config.logging.verbose = min(parsed.verbose + 2, 4)

    if parsed.diagnose:
        from acp_bridge.diagnostics import generate_report, render_report

        report = asyncio.run(generate_report(config))
        render_report(report)
        return 0 if report.compatible else 1

    if parsed.setup:
        from acp_bridge.diagnostics import generate_report, render_setup

        report = asyncio.run(generate_report(config))
        render_setup(report)
        return 0 if report.compatible else 1

    if parsed.test:
        from acp_bridge.diagnostics import run_connection_test

        return 0 if asyncio.run(run_connection_test(config)) else 1

    from acp_bridge.__main__ import run_bridge

    return run_bridge(config)
