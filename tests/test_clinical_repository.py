"""Tests for appointments, vitals, progress notes and treatment plans."""

from datetime import date

import pytest

from practice_dashboard.practice_records.database import ClinicalRepository, PatientRepository
from practice_dashboard.practice_records.database.clinical_repository import (
    Appointment,
    ProgressNote,
    TreatmentPlan,
    VitalSigns,
)
from practice_dashboard.practice_records.database.patient_repository import Patient

TODAY = date(2024, 6, 1)


@pytest.fixture
def repo():
    return ClinicalRepository()


@pytest.fixture
def patient():
    return PatientRepository().create(Patient(
        id="p-1", first_name="Jane", last_name="Doe", date_of_birth="1990-01-15",
    ))


def make_appointment(patient_id, day, status="scheduled", time="09:00"):
    return Appointment(
        id=None, patient_id=patient_id, date=day, time=time,
        type="Check-up", provider="Dr. Lee", status=status,
    )


class TestAppointments:
    """Tests for appointment storage and visit statistics."""

    def test_create_and_list_in_order(self, repo, patient):
        repo.create_appointment(make_appointment(patient.id, "2024-06-10", time="14:00"))
        repo.create_appointment(make_appointment(patient.id, "2024-06-10", time="08:30"))
        repo.create_appointment(make_appointment(patient.id, "2024-06-03"))

        listed = [(a.date, a.time) for a in repo.list_appointments(patient.id)]
        assert listed == [("2024-06-03", "09:00"), ("2024-06-10", "08:30"), ("2024-06-10", "14:00")]
        assert len(repo.list_appointments_on("2024-06-10")) == 2

    def test_update_status(self, repo, patient):
        appointment = repo.create_appointment(make_appointment(patient.id, "2024-06-10"))
        updated = repo.update_appointment_status(appointment.id, "confirmed")
        assert updated.status == "confirmed"
        assert repo.update_appointment_status("missing", "confirmed") is None

    def test_delete(self, repo, patient):
        appointment = repo.create_appointment(make_appointment(patient.id, "2024-06-10"))
        assert repo.delete_appointment(appointment.id) is True
        assert repo.get_appointment(appointment.id) is None

    def test_visit_stats(self, repo, patient):
        repo.create_appointment(make_appointment(patient.id, "2024-03-01", status="completed"))
        repo.create_appointment(make_appointment(patient.id, "2024-05-01", status="completed"))
        repo.create_appointment(make_appointment(patient.id, "2024-05-15", status="no_show"))
        repo.create_appointment(make_appointment(patient.id, "2024-07-01", status="scheduled"))
        repo.create_appointment(make_appointment(patient.id, "2024-06-20", status="confirmed"))
        repo.create_appointment(make_appointment(patient.id, "2024-06-05", status="cancelled"))

        stats = repo.get_visit_stats(patient.id, TODAY)
        assert stats.total_visits == 2
        assert stats.last_visit == "2024-05-01"
        assert stats.next_appointment == "2024-06-20"

    def test_visit_stats_without_appointments(self, repo, patient):
        stats = repo.get_visit_stats(patient.id, TODAY)
        assert stats.total_visits == 0
        assert stats.last_visit is None
        assert stats.next_appointment is None


class TestClinicalRecords:
    """Tests for vitals, notes and plans."""

    def test_record_vitals(self, repo, patient):
        vitals = repo.record_vitals(VitalSigns(
            id=None, patient_id=patient.id, blood_pressure_systolic=120,
            blood_pressure_diastolic=80, heart_rate=72, temperature=98.6,
            respiratory_rate=16, oxygen_saturation=98, weight=150, height=65, bmi=25.0,
        ))
        assert vitals.recorded_at is not None
        stored = repo.list_vitals(patient.id)
        assert len(stored) == 1
        assert stored[0].bmi == 25.0

    def test_progress_note_update(self, repo, patient):
        note = repo.create_progress_note(ProgressNote(
            id=None, patient_id=patient.id, note_type="SOAP", note_date="2024-06-01",
            provider="Dr. Lee", chief_complaint="Cough", assessment="URI", plan="Rest",
        ))
        updated = repo.update_progress_note(note.id, {"plan": "Rest and fluids", "patient_id": "other"})
        assert updated.plan == "Rest and fluids"
        assert updated.patient_id == patient.id
        assert repo.update_progress_note("missing", {"plan": "x"}) is None

    def test_treatment_plan_status(self, repo, patient):
        plan = repo.create_treatment_plan(TreatmentPlan(
            id=None, patient_id=patient.id, plan_date="2024-06-01", provider="Dr. Lee",
            diagnosis="Hypertension", treatment_goals="BP < 130/80",
        ))
        assert [p.status for p in repo.list_treatment_plans(patient.id)] == ["active"]
        assert repo.update_treatment_plan_status(plan.id, "completed").status == "completed"
