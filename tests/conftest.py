"""Shared test fixtures."""
import pytest

from clinician_console.console import ConsoleContext
from tests.utils.backend import BASE_URL, FIXED_NOW, TOKEN, FakeBackend


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def context(tmp_path, backend) -> ConsoleContext:
    """Console wired to the fake backend, with a fixed clock and no UX delays."""
    return ConsoleContext(
        base_url=BASE_URL,
        storage_path=tmp_path / "storage.json",
        http_session=backend,
        clock=lambda: FIXED_NOW,
        auth_redirect_delay=0,
        unauthorized_redirect_delay=0,
        setup_complete_delay=0,
    )


@pytest.fixture
def signed_in(context) -> ConsoleContext:
    context.credentials.set(TOKEN)
    return context
