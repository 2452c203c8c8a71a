"""Tests for logging setup and the demo data seed."""

import logging

from rich.logging import RichHandler

from practice_dashboard.logging_config import setup_logging
from practice_dashboard.practice_records.database import (
    ClinicalRepository,
    PatientRepository,
    PracticeRepository,
    SessionRepository,
)
from practice_dashboard.practice_records.scripts.seed_database import MOCK_PATIENTS, seed_database


class TestSetupLogging:
    """Tests for the rich logging handler."""

    def test_installs_one_rich_handler(self):
        root = logging.getLogger()
        level = root.level
        try:
            setup_logging("debug")
            setup_logging("warning")
            rich_handlers = [h for h in root.handlers if isinstance(h, RichHandler)]
            assert len(rich_handlers) == 1
            assert root.level == logging.DEBUG
        finally:
            for handler in [h for h in root.handlers if isinstance(h, RichHandler)]:
                root.removeHandler(handler)
            root.setLevel(level)


class TestSeedDatabase:
    """Tests for the seed script."""

    def test_seed_is_idempotent(self):
        seed_database()
        seed_database()

        patients = PatientRepository().list_patients()
        assert len(patients) == len(MOCK_PATIENTS)
        assert all(p.patient_id.startswith("PAT-") for p in patients)
        assert PatientRepository().get_medical_history("p-001").allergies[0]["allergen"] == "Penicillin"
        assert ClinicalRepository().get_visit_stats("p-001").total_visits == 1
        assert len(PracticeRepository().list_practices("c-001")) == 1

    def test_seed_admin_can_open_reports(self):
        seed_database()
        repo = SessionRepository()
        admin = repo.get_user_by_email("admin@example.com")
        memberships = repo.get_companies_for_user(admin.id)
        assert [(m.company.id, m.role) for m in memberships] == [("c-001", "admin")]
        registered, granted = repo.get_route_access(admin.id, "c-001")
        assert "/reports" in registered
        assert "/reports" in granted
