from __future__ import annotations

import os
import subprocess
import sys
from collections.abc import Mapping
from pathlib import Path

import pytest

SRC_DIR = Path(__file__).resolve().parents[2] / "src"


def delivery_env(home: Path, **extra: str) -> dict[str, str]:
    """Return a minimal environment for a delivery subprocess."""

    env = {
        "HOME": str(home),
        "PATH": os.environ.get("PATH", ""),
        "PYTHONPATH": str(SRC_DIR),
    }
    env.update(extra)
    return env


def spawn_delivery(
    args: list[str],
    env: Mapping[str, str],
) -> subprocess.Popen[bytes]:
    """Start ``python -m maildeliver`` with piped standard streams."""

    return subprocess.Popen(
        [sys.executable, "-m", "maildeliver", *args],
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env=dict(env),
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Automatically mark tests in this package as integration."""

    package_root = Path(__file__).resolve().parent
    integration_mark = pytest.mark.integration
    for item in items:
        try:
            path = Path(item.fspath).resolve()
        except OSError:
            continue
        if package_root in path.parents:
            item.add_marker(integration_mark)
