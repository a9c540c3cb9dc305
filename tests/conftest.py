"""Shared fixtures: a small on-disk workspace and a gateway config with short windows."""

import pytest

from toolgate.config import FileToolConfig, GatewayConfig, NetworkConfig, TerminalConfig
from toolgate.workspace import Workspace


@pytest.fixture
def project(tmp_path):
    """A workspace root named "proj" with a few source files."""
    root = tmp_path / "proj"
    (root / "src").mkdir(parents=True)
    (root / "docs").mkdir()
    (root / "src" / "app.py").write_text("import os\n\ndef main():\n    print('hello world')\n")
    (root / "src" / "util.py").write_text("def helper():\n    return 42\n")
    (root / "docs" / "guide.md").write_text("# Guide\n\nRun the app with python.\n")
    (root / "README.md").write_text("proj\n")
    return root


@pytest.fixture
def workspace(project):
    return Workspace([project])


@pytest.fixture
def fast_config():
    return GatewayConfig(
        terminal=TerminalConfig(inactive_seconds=1.0, background_check_seconds=0.5),
        network=NetworkConfig(retry_delay_seconds=0.0),
        files=FileToolConfig(edit_lint_delay_seconds=0.0, read_lint_delay_seconds=0.0),
    )
