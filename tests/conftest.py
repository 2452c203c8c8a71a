"""Shared pytest fixtures."""

import pytest
from unittest.mock import patch

from practice_dashboard.practice_records.database import connection


@pytest.fixture(autouse=True)
def test_database(tmp_path, monkeypatch):
    """Point every test at a fresh SQLite file."""
    db_path = tmp_path / "practice_test.db"
    monkeypatch.setattr(connection, "DB_PATH", db_path)
    connection.init_database()
    yield db_path


@pytest.fixture(autouse=True)
def no_llm(monkeypatch):
    """Keep the chat widget on canned responses unless a test supplies a client."""
    monkeypatch.setattr("practice_dashboard.chat_widget.OPENAI_API_KEY", None)


@pytest.fixture(autouse=True)
def mock_requests_get():
    """Block real NPI registry calls; tests configure the mock as needed."""
    with patch("practice_dashboard.npi_lookup.requests.get") as mock_get:
        mock_get.side_effect = AssertionError("Unexpected network call in tests")
        yield mock_get


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
