"""Shared fixtures for the proof-pack tests.

Provides an isolated C4_* environment, a RunConfig factory backed by a
temporary dev database, free-port allocation and fake process handles.
"""

import os
import platform
import shutil
import socket
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Ensure project root is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from proofpack.config import RunConfig
from proofpack.core.log_buffer import LogBuffer


HAS_POSIX_SHELL = platform.system() != "Windows" and shutil.which("bash") is not None


def pytest_collection_modifyitems(config, items):
    """Skip tests marked ``posix`` where process groups or bash are missing."""
    if HAS_POSIX_SHELL:
        return
    skip = pytest.mark.skip(reason="needs POSIX process groups and bash")
    for item in items:
        if "posix" in item.keywords:
            item.add_marker(skip)


# ---------------------------------------------------------------------------
# Environment isolation
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def clean_c4_env(monkeypatch):
    """Strip every C4_* variable so settings only see what a test sets."""
    for name in list(os.environ):
        if name.startswith("C4_"):
            monkeypatch.delenv(name, raising=False)
    yield monkeypatch


# ---------------------------------------------------------------------------
# Ports
# ---------------------------------------------------------------------------

def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def free_port():
    """Factory returning a TCP port nothing is listening on."""
    return _free_port


# ---------------------------------------------------------------------------
# RunConfig factory
# ---------------------------------------------------------------------------

@pytest.fixture
def dev_db(tmp_path) -> Path:
    """A bootstrapped (non-empty) dev database file."""
    path = tmp_path / "dev.db"
    path.write_bytes(b"SQLite format 3\x00")
    return path


@pytest.fixture
def config_factory(dev_db):
    """Factory that creates RunConfig with small, test-friendly bounds.

    Usage:
        config = config_factory(frontend_port=5173, backend_health_timeout_ms=200)
    """
    def _factory(**overrides) -> RunConfig:
        values = {
            "db_path": str(dev_db),
            "backend_port": 8787,
            "health_endpoint": "/api/health",
            "bootstrap_command": "npm run bootstrap",
            "dev_command": "npm run dev",
            "backend_health_timeout_ms": 500,
            "auth_timeout_ms": 500,
            "dev_data_timeout_ms": 500,
            "frontend_ready_timeout_ms": 500,
            "port_probe_timeout_ms": 200,
            "settle_ms": 0,
            "terminate_grace_ms": 10,
        }
        values.update(overrides)
        return RunConfig(**values)
    return _factory


# ---------------------------------------------------------------------------
# Fake process supervisor
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_supervisor():
    """ProcessSupervisor stand-in whose spawn returns a fake handle.

    The handle exposes a real LogBuffer and an AsyncMock ``terminate``.
    """
    handle = MagicMock()
    handle.logs = LogBuffer()
    handle.pid = 4242
    handle.terminate = AsyncMock()

    supervisor = MagicMock()
    supervisor.spawn = AsyncMock(return_value=handle)
    supervisor.handle = handle
    return supervisor
