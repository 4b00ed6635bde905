"""
Pytest configuration and shared fixtures for agentgate tests.

Provides fixtures for:
- A temporary project directory
- Writing .claude/settings.local.json into it
- A checker with the interactive defaults
"""
import json
from pathlib import Path
from typing import Any, Callable, Generator

import pytest

from agentgate.core.permission_checker import PermissionChecker
from agentgate.core.permission_config import PermissionCheckerConfig


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "unit: marks tests as unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (touch the filesystem or run the CLI)"
    )


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A project directory without a settings file."""
    project = tmp_path / "project"
    project.mkdir()
    return project


@pytest.fixture
def write_settings(project_dir: Path) -> Callable[[dict[str, Any]], Path]:
    """Return a function that writes the project's settings.local.json."""

    def _write(data: dict[str, Any]) -> Path:
        settings_path = project_dir / ".claude" / "settings.local.json"
        settings_path.parent.mkdir(parents=True, exist_ok=True)
        settings_path.write_text(json.dumps(data), encoding="utf-8")
        return settings_path

    return _write


@pytest.fixture
def checker() -> Generator[PermissionChecker, None, None]:
    """Checker with the interactive defaults, disposed after the test."""
    with PermissionChecker(PermissionCheckerConfig.tui()) as instance:
        yield instance
