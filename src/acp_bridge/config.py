"""Configuration loading for the ACP bridge.

Handles:
- YAML file parsing (explicit path, working directory, then XDG config dir)
- Environment variable overrides (ACP_PERMISSION_MODE, ACP_DEBUG, ACP_LOG_FILE,
  ACP_BACKEND_EXECUTABLE)
- Conversion from dict to typed Config dataclasses
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("acp_bridge.config")

DEFAULT_CONFIG_NAMES = ["acp-bridge.yaml", ".acp-bridge.yaml", "acp-bridge.yml", ".acp-bridge.yml"]


class PermissionMode(str, Enum):
    """How the backend is allowed to act on the workspace."""

    DEFAULT = "default"
    ACCEPT_EDITS = "acceptEdits"
    BYPASS_PERMISSIONS = "bypassPermissions"
    PLAN = "plan"

    @classmethod
    def parse(cls, value: str | None) -> PermissionMode:
        """Parse a mode name, falling back to DEFAULT for unknown values."""
        if not value:
            return cls.DEFAULT
        try:
            return cls(value)
        except ValueError:
            _log.warning("Unknown permission mode %r, using default", value)
            return cls.DEFAULT


@dataclass
class BackendConfig:
    """Interactive CLI backend configuration."""

    executable: str = "qwen"
    args: list[str] = field(default_factory=list)
    auth_args: list[str] = field(default_factory=list)  # Empty: probe with --version
    env: dict[str, str] = field(default_factory=dict)
    check_timeout: float = 30.0  # Seconds for --version / auth commands
    default_model: str | None = None


@dataclass
class SessionConfig:
    """Per-session defaults."""

    permission_mode: PermissionMode = PermissionMode.DEFAULT
    max_turns: int = 0  # 0 disables the limit
    thought_streaming: bool = True
    max_active_files: int = 100


@dataclass
class ContextConfig:
    """Context window accounting."""

    max_tokens: int = 200_000
    warn_at_percentage: float = 80.0
    critical_at_percentage: float = 95.0
    tokens_per_char: float = 0.4  # Rough estimate for English text
    cleanup_target_percentage: float = 50.0


@dataclass
class CircuitBreakerConfig:
    """Circuit breaker options (seconds)."""

    failure_threshold: int = 5
    reset_timeout: float = 60.0
    request_timeout: float | None = 30.0
    open_state_timeout: float = 300.0
    monitor_interval: float = 5.0


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, takes precedence over level
    file: str | None = None


@dataclass
class Config:
    """Complete bridge configuration."""

    backend: BackendConfig = field(default_factory=BackendConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    context: ContextConfig = field(default_factory=ContextConfig)
    circuit_breaker: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    source: Path | None = None  # File the config was read from, if any


def default_config_path() -> Path:
    """Per-user config file location ($XDG_CONFIG_HOME/acp-bridge/config.yaml)."""
    config_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(config_home) / "acp-bridge" / "config.yaml"


def find_config_file(config_path: Path | None = None) -> Path | None:
    """Locate the config file to load, or None when there is none."""
    if config_path is not None:
        return config_path
    for name in DEFAULT_CONFIG_NAMES:
        if Path(name).exists():
            return Path(name)
    user_path = default_config_path()
    if user_path.exists():
        return user_path
    return None


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found or invalid."""
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def env_overrides() -> dict[str, Any]:
    """Build config dict from environment variables."""
    overrides: dict[str, Any] = {}

    mode = os.environ.get("ACP_PERMISSION_MODE")
    if mode:
        overrides.setdefault("session", {})["permission_mode"] = mode

    executable = os.environ.get("ACP_BACKEND_EXECUTABLE")
    if executable:
        overrides.setdefault("backend", {})["executable"] = executable

    log_path = os.environ.get("ACP_LOG_FILE")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    if os.environ.get("ACP_DEBUG", "").lower() == "true":
        overrides.setdefault("logging", {})["level"] = "DEBUG"

    return overrides


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge two section dicts, override wins per key."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert a merged dict to typed Config dataclasses."""
    backend_data = data.get("backend") or {}
    backend = BackendConfig(
        executable=backend_data.get("executable", "qwen"),
        args=[str(a) for a in backend_data.get("args", [])],
        auth_args=[str(a) for a in backend_data.get("auth_args", [])],
        env={str(k): str(v) for k, v in (backend_data.get("env") or {}).items()},
        check_timeout=float(backend_data.get("check_timeout", 30.0)),
        default_model=backend_data.get("default_model"),
    )

    session_data = data.get("session") or {}
    session = SessionConfig(
        permission_mode=PermissionMode.parse(session_data.get("permission_mode")),
        max_turns=int(session_data.get("max_turns", 0)),
        thought_streaming=bool(session_data.get("thought_streaming", True)),
        max_active_files=int(session_data.get("max_active_files", 100)),
    )

    context_data = data.get("context") or {}
    context = ContextConfig(
        max_tokens=int(context_data.get("max_tokens", 200_000)),
        warn_at_percentage=float(context_data.get("warn_at_percentage", 80.0)),
        critical_at_percentage=float(context_data.get("critical_at_percentage", 95.0)),
        tokens_per_char=float(context_data.get("tokens_per_char", 0.4)),
        cleanup_target_percentage=float(context_data.get("cleanup_target_percentage", 50.0)),
    )

    breaker_data = data.get("circuit_breaker") or {}
    request_timeout = breaker_data.get("request_timeout", 30.0)
    circuit_breaker = CircuitBreakerConfig(
        failure_threshold=int(breaker_data.get("failure_threshold", 5)),
        reset_timeout=float(breaker_data.get("reset_timeout", 60.0)),
        request_timeout=float(request_timeout) if request_timeout else None,
        open_state_timeout=float(breaker_data.get("open_state_timeout", 300.0)),
        monitor_interval=float(breaker_data.get("monitor_interval", 5.0)),
    )

    logging_data = data.get("logging") or {}
    verbose = logging_data.get("verbose")
    logging_config = LoggingConfig(
        level=logging_data.get("level"),
        verbose=int(verbose) if verbose is not None else None,
        file=logging_data.get("file"),
    )

    return Config(
        backend=backend,
        session=session,
        context=context,
        circuit_breaker=circuit_breaker,
        logging=logging_config,
    )


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from file and environment overrides.

    Args:
        config_path: Explicit config file. When None, the working directory
            and the per-user config directory are searched.

    Returns:
        Typed Config; defaults when no file exists.
    """
    path = find_config_file(config_path)
    data = load_yaml_file(path) if path else {}
    config = dict_to_config(_merge(data, env_overrides()))
    if path and path.exists():
        config.source = path
    return config
