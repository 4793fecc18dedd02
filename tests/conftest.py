"""
Pytest configuration and fixtures for the test suite.
"""
import pytest
import pytest_asyncio
import os
import sys
import httpx

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from village_client import ApiClient, ClientConfig, MemoryCredentialStore, Session
from tests.fixtures.backend_mocks import BASE_URL, DEFAULT_USER, FakeBackend


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an async test"
    )


@pytest.fixture(scope="session")
def anyio_backend():
    """Set the async backend for pytest-asyncio."""
    return "asyncio"


@pytest.fixture
def initial_session():
    """The session a logged-in user starts every test with."""
    return Session(access_token="A1", refresh_token="R1", user=dict(DEFAULT_USER))


@pytest.fixture
def store(initial_session):
    return MemoryCredentialStore(initial_session)


@pytest.fixture
def backend():
    """Backend that accepts A1 and will exchange R1 for A2/R2 once."""
    fake = FakeBackend(valid_tokens=("A1",))
    fake.allow_refresh("R1", "A2", "R2")
    return fake


@pytest.fixture
def config():
    return ClientConfig(base_url=BASE_URL)


@pytest_asyncio.fixture
async def client(config, store, backend):
    """ApiClient wired to the fake backend through httpx.MockTransport."""
    http_client = httpx.AsyncClient(transport=backend.transport())
    api = ApiClient(config, store=store, http_client=http_client)
    yield api
    await api.close()
    await http_client.aclose()
