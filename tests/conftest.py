"""Root test configuration."""

import logging

import pytest
import structlog

from stackwise.provisioning.memory import InMemoryBackend
from stackwise.specs.models import ResourceGroupSpec
from stackwise.state.memory import InMemoryStateStore


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def store():
    return InMemoryStateStore()


@pytest.fixture
def backend():
    return InMemoryBackend()


@pytest.fixture
def network_and_database():
    """Two groups where database consumes network's id."""
    return [
        ResourceGroupSpec.create("network", {"cidr": "10.0.0.0/16"}),
        ResourceGroupSpec.create("database", {"vpc_id": "${network.id}", "size": "small"}),
    ]


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Isolated working directory with file-backed state and no stray config."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setenv("STACKWISE_STATE_BACKEND", "file")
    monkeypatch.setenv("STACKWISE_STATE_DIR", str(tmp_path / "state"))
    monkeypatch.setenv("STACKWISE_PROVISIONING_BACKEND", "memory")
    for var in ("CI", "GITHUB_ACTIONS", "STACKWISE_MAX_PARALLEL", "STACKWISE_LOG_FORMAT"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path
