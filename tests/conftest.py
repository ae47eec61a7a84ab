"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for d42_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from d42_mock import MockDevice42State, MockSession  # noqa: E402

from d42sync.client import Device42Client  # noqa: E402
from d42sync.config import ClientConfig  # noqa: E402


@pytest.fixture
def d42_state() -> MockDevice42State:
    """Fresh in-memory appliance."""
    return MockDevice42State()


@pytest.fixture
def d42_session(d42_state: MockDevice42State) -> MockSession:
    """Session routed to the in-memory appliance."""
    return MockSession(d42_state)


@pytest.fixture
def config() -> ClientConfig:
    """Valid client configuration with retries disabled."""
    return ClientConfig(host="d42.example.com", username="admin", password="secret")


@pytest.fixture
def client(config: ClientConfig, d42_session: MockSession) -> Device42Client:
    """Real client talking to the in-memory appliance."""
    return Device42Client(config, session=d42_session)
