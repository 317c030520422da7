"""Root pytest configuration for all tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Make the shared helpers in tests/utils.py importable as `utils`
sys.path.insert(0, str(Path(__file__).parent))


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's ACP_* environment out of the tests."""
    for name in (
        "ACP_DEBUG",
        "ACP_LOG_FILE",
        "ACP_PERMISSION_MODE",
        "ACP_BACKEND_EXECUTABLE",
    ):
        monkeypatch.delenv(name, raising=False)
