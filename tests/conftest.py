import pytest

from factories import FakeBackend, RecordingNotifier, make_token
from mdm_console.api.client import AdminApiClient
from mdm_console.auth.tokens import TokenStore


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def token() -> str:
    return make_token()


@pytest.fixture
def client(backend, token) -> AdminApiClient:
    return AdminApiClient(
        tokens=TokenStore(access_token=token),
        base_url="http://backend.test",
        transport=backend.transport
    )


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
