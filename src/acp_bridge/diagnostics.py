"""Setup diagnostics for ``acp-bridge --diagnose``, ``--setup`` and ``--test``."""

from __future__ import annotations

import json
import os
import platform
import sys
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

from acp_bridge.backend import CliBackend
from acp_bridge.config import Config, PermissionMode
from acp_bridge.errors import BackendError

MIN_PYTHON = (3, 11)


class IssueLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


_LEVEL_PENALTY = {IssueLevel.ERROR: 20, IssueLevel.WARNING: 10, IssueLevel.INFO: 5}
_LEVEL_STYLE = {IssueLevel.ERROR: "red", IssueLevel.WARNING: "yellow", IssueLevel.INFO: "cyan"}


@dataclass
class DiagnosticIssue:
    code: str
    level: IssueLevel
    message: str
    solution: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class DiagnosticReport:
    """Outcome of the setup checks."""

    executable: str
    available: bool
    version: str | None
    python_version: str
    platform: str
    config_source: Path | None
    permission_mode: PermissionMode
    issues: list[DiagnosticIssue] = field(default_factory=list)

    @property
    def compatible(self) -> bool:
        return not any(issue.level is IssueLevel.ERROR for issue in self.issues)

    @property
    def score(self) -> int:
        return max(0, 100 - sum(_LEVEL_PENALTY[issue.level] for issue in self.issues))


def _check_environment() -> list[DiagnosticIssue]:
    issues: list[DiagnosticIssue] = []
    mode = os.environ.get("ACP_PERMISSION_MODE")
    valid = [m.value for m in PermissionMode]
    if mode and mode not in valid:
        issues.append(
            DiagnosticIssue(
                code="ENVIRONMENT_VARS",
                level=IssueLevel.WARNING,
                message=f'Invalid ACP_PERMISSION_MODE: "{mode}"',
                solution=f"Use one of: {', '.join(valid)}",
            )
        )
    return issues


def _check_file_system() -> list[DiagnosticIssue]:
    try:
        with tempfile.TemporaryDirectory(prefix="acp-bridge-") as tmp:
            probe = Path(tmp) / "probe.txt"
            probe.write_text("probe", encoding="utf-8")
            probe.read_text(encoding="utf-8")
    except OSError as e:
        return [
            DiagnosticIssue(
                code="FILE_PERMISSIONS",
                level=IssueLevel.ERROR,
                message="Insufficient file system permissions",
                solution="Check permissions of the temporary directory",
                data={"error": str(e)},
            )
        ]
    return []


async def generate_report(config: Config, *, backend: CliBackend | None = None) -> DiagnosticReport:
    """Run all checks. ``backend`` overrides the CLI probe (tests)."""
    issues: list[DiagnosticIssue] = []

    if sys.version_info[:2] < MIN_PYTHON:
        issues.append(
            DiagnosticIssue(
                code="PYTHON_VERSION",
                level=IssueLevel.ERROR,
                message=f"Python {platform.python_version()} is too old",
                solution=f"Use Python {MIN_PYTHON[0]}.{MIN_PYTHON[1]} or newer",
            )
        )

    probe = backend or CliBackend(config.backend, os.getcwd())
    version = await probe.version()
    if version is None:
        issues.append(
            DiagnosticIssue(
                code="CLI_NOT_FOUND",
                level=IssueLevel.ERROR,
                message=f"{config.backend.executable} not found or not runnable",
                solution="Install the CLI and make sure it is on PATH, "
                "or set backend.executable / ACP_BACKEND_EXECUTABLE",
            )
        )

    issues.extend(_check_environment())
    issues.extend(_check_file_system())

    return DiagnosticReport(
        executable=config.backend.executable,
        available=version is not None,
        version=version,
        python_version=platform.python_version(),
        platform=f"{sys.platform} ({platform.machine()})",
        config_source=config.source,
        permission_mode=config.session.permission_mode,
        issues=issues,
    )


def render_report(report: DiagnosticReport, console: Console | None = None) -> None:
    """Print the report. Defaults to stderr so stdout stays clean."""
    console = console or Console(stderr=True)

    status = "[green]Compatible[/green]" if report.compatible else "[red]Not compatible[/red]"
    console.print(f"[bold]ACP bridge diagnostics[/bold]: {status} (score {report.score}/100)")

    table = Table(title="System")
    table.add_column("Check", style="bold")
    table.add_column("Value")
    table.add_row("Platform", report.platform)
    table.add_row("Python", report.python_version)
    table.add_row(
        "Backend CLI",
        f"[green]found[/green] {report.version}"
        if report.available
        else f"[red]missing[/red] ({report.executable})",
    )
    table.add_row("Permission mode", report.permission_mode.value)
    source = str(report.config_source) if report.config_source else "(defaults)"
    table.add_row("Config file", source)
    console.print(table)

    if not report.issues:
        console.print("[green]No issues detected[/green]")
        return

    issues = Table(title="Issues")
    issues.add_column("Level")
    issues.add_column("Code")
    issues.add_column("Message")
    issues.add_column("Solution")
    for issue in report.issues:
        style = _LEVEL_STYLE[issue.level]
        issues.add_row(
            f"[{style}]{issue.level.value}[/{style}]",
            issue.code,
            issue.message,
            issue.solution or "",
        )
    console.print(issues)


def recommended_editor_config() -> dict[str, Any]:
    """Zed ``agent_servers`` entry that launches the bridge."""
    return {
        "agent_servers": {
            "acp-bridge": {
                "command": "acp-bridge",
                "args": [],
                "env": {"ACP_PERMISSION_MODE": PermissionMode.ACCEPT_EDITS.value},
            }
        }
    }


def render_setup(report: DiagnosticReport, console: Console | None = None) -> None:
    """Print the system check plus the editor configuration to use."""
    console = console or Console(stderr=True)

    console.print("[bold]ACP bridge setup[/bold]")
    console.print(f"  Platform: {report.platform}")
    console.print(f"  Python: {report.python_version}")
    cli = "[green]found[/green]" if report.available else "[red]missing[/red]"
    console.print(f"  Backend CLI ({report.executable}): {cli}")
    console.print(f"  Score: {report.score}/100")

    if not report.available:
        console.print(
            f"\n[yellow]{report.executable} not found.[/yellow] "
            "Install it and make sure it is on PATH."
        )

    console.print("\nRecommended Zed configuration (settings.json):")
    console.print_json(json.dumps(recommended_editor_config()))


async def run_connection_test(
    config: Config,
    *,
    backend: CliBackend | None = None,
    console: Console | None = None,
) -> bool:
    """Check that the backend is installed and passes its auth check."""
    console = console or Console(stderr=True)
    cli = backend or CliBackend(config.backend, os.getcwd())
    report = await generate_report(config, backend=cli)

    authenticated = False
    if report.available:
        try:
            await cli.authenticate()
            authenticated = True
        except BackendError as e:
            console.print(f"[red]Authentication check failed:[/red] {e}")

    console.print(f"  Compatible: {'yes' if report.compatible else 'no'}")
    console.print(f"  Backend CLI: {'found' if report.available else 'missing'}")
    console.print(f"  Authenticated: {'yes' if authenticated else 'no'}")

    passed = report.available and authenticated
    if passed:
        console.print("[green]Connection test passed[/green]")
    else:
        console.print("[red]Connection test failed[/red]")
    return passed
