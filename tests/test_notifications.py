"""Tests for toasts and backend error messages."""

import sqlite3
from unittest.mock import MagicMock

import pytest

from practice_dashboard.notifications import Notifier, describe_backend_error, run_backend_call


@pytest.fixture
def notifier():
    return Notifier(console=MagicMock())


class TestDescribeBackendError:
    """Tests for friendly error text."""

    @pytest.mark.parametrize("raw,expected", [
        ("no such table: patients", "A required table is missing"),
        ('relation "claims" does not exist', "A required table is missing"),
        ("attempt to write a readonly database", "You do not have permission"),
        ("new row violates row-level security policy", "You do not have permission"),
        ("CHECK constraint failed: status IN ('active','inactive')", "One of the values is not allowed"),
        ("table patients has no column named nickname", "missing a column"),
    ])
    def test_known_patterns(self, raw, expected):
        assert expected in describe_backend_error(raw)

    def test_unknown_passes_through(self):
        assert describe_backend_error(RuntimeError("disk full")) == "disk full"

    def test_empty_message(self):
        assert describe_backend_error("") == "An unexpected error occurred."


class TestNotifier:
    """Tests for toast collection and printing."""

    def test_variants(self, notifier):
        notifier.success("Patient saved")
        notifier.error("Save failed", "Try again")
        assert [(t.title, t.variant) for t in notifier.toasts] == [
            ("Patient saved", "default"),
            ("Save failed", "destructive"),
        ]
        assert notifier.console.print.call_count == 2

    def test_run_backend_call_success(self, notifier):
        assert run_backend_call(notifier, "Add", lambda a, b=0: a + b, 1, b=2) == 3
        assert notifier.toasts == []

    def test_run_backend_call_failure(self, notifier):
        failing = MagicMock(side_effect=sqlite3.IntegrityError("CHECK constraint failed: risk_level"))
        assert run_backend_call(notifier, "Update patient", failing) is None
        toast = notifier.toasts[-1]
        assert toast.variant == "destructive"
        assert toast.title == "Update patient"
        assert "not allowed" in toast.description
