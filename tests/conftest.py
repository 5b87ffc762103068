import pytest

from helpers import FakeClock, FakeRefresher
from tunecircle.core.session_store import SessionStore


@pytest.fixture
def store(tmp_path):
    return SessionStore(tmp_path / "sessions.json")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def refresher():
    return FakeRefresher()
