"""Clinical workflow repository: appointments, vitals, progress notes, treatment plans."""

import uuid
from dataclasses import asdict, dataclass, fields
from datetime import date, datetime

from .connection import get_connection

APPOINTMENT_STATUSES = ("scheduled", "confirmed", "completed", "cancelled", "no_show")


@dataclass
class Appointment:
    id: str | None
    patient_id: str
    date: str
    time: str
    type: str
    provider: str
    duration: int = 30
    location: str | None = None
    reason: str | None = None
    notes: str | None = None
    reminder_method: str | None = None
    status: str = "scheduled"
    created_at: str | None = None


@dataclass
class VitalSigns:
    id: str | None
    patient_id: str
    blood_pressure_systolic: int
    blood_pressure_diastolic: int
    heart_rate: int
    temperature: float
    respiratory_rate: int
    oxygen_saturation: int
    weight: float
    height: float
    bmi: float | None = None
    pain_level: int | None = None
    notes: str | None = None
    recorded_by: str | None = None
    recorded_at: str | None = None


@dataclass
class ProgressNote:
    id: str | None
    patient_id: str
    note_type: str
    note_date: str
    provider: str
    chief_complaint: str | None = None
    assessment: str | None = None
    plan: str | None = None
    note_time: str | None = None
    history_of_present_illness: str | None = None
    review_of_systems: str | None = None
    physical_examination: str | None = None
    medications: str | None = None
    follow_up: str | None = None
    additional_notes: str | None = None
    vital_signs: str | None = None
    allergies: str | None = None
    social_history: str | None = None
    family_history: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class TreatmentPlan:
    id: str | None
    patient_id: str
    plan_date: str
    provider: str
    diagnosis: str
    treatment_goals: str | None = None
    treatment_plan: str | None = None
    medications: str | None = None
    procedures: str | None = None
    lifestyle_modifications: str | None = None
    follow_up_schedule: str | None = None
    expected_outcome: str | None = None
    risk_factors: str | None = None
    contraindications: str | None = None
    patient_education: str | None = None
    additional_notes: str | None = None
    status: str = "active"
    created_at: str | None = None


@dataclass
class VisitStats:
    total_visits: int = 0
    last_visit: str | None = None
    next_appointment: str | None = None


class ClinicalRepository:
    """Repository for the clinical records attached to a patient."""

    # Appointments

    def create_appointment(self, appointment: Appointment) -> Appointment:
        return self._insert("appointments", appointment)

    def get_appointment(self, appointment_id: str) -> Appointment | None:
        row = self._fetch_one("SELECT * FROM appointments WHERE id = ?", (appointment_id,))
        return self._row_to(Appointment, row) if row else None

    def list_appointments(self, patient_id: str) -> list[Appointment]:
        rows = self._fetch_all(
            "SELECT * FROM appointments WHERE patient_id = ? ORDER BY date, time",
            (patient_id,),
        )
        return [self._row_to(Appointment, row) for row in rows]

    def list_appointments_on(self, day: str) -> list[Appointment]:
        """Appointments for every patient on one date."""
        rows = self._fetch_all(
            "SELECT * FROM appointments WHERE date = ? ORDER BY time",
            (day,),
        )
        return [self._row_to(Appointment, row) for row in rows]

    def update_appointment_status(self, appointment_id: str, status: str) -> Appointment | None:
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute("UPDATE appointments SET status = ? WHERE id = ?", (status, appointment_id))

        if cursor.rowcount == 0:
            conn.close()
            return None

        conn.commit()
        conn.close()
        return self.get_appointment(appointment_id)

    def delete_appointment(self, appointment_id: str) -> bool:
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute("DELETE FROM appointments WHERE id = ?", (appointment_id,))
        deleted = cursor.rowcount > 0
        conn.commit()
        conn.close()
        return deleted

    def get_visit_stats(self, patient_id: str, today: date | None = None) -> VisitStats:
        """Completed visit count, last visit date and next open appointment."""
        today_str = (today or date.today()).isoformat()
        conn = get_connection()
        cursor = conn.cursor()

        cursor.execute(
            """SELECT COUNT(*) AS total, MAX(date) AS last_visit FROM appointments
               WHERE patient_id = ? AND status = 'completed'""",
            (patient_id,),
        )
        completed = cursor.fetchone()

        cursor.execute(
            """SELECT MIN(date) AS next_date FROM appointments
               WHERE patient_id = ? AND date >= ? AND status IN ('scheduled', 'confirmed')""",
            (patient_id, today_str),
        )
        upcoming = cursor.fetchone()
        conn.close()

        return VisitStats(
            total_visits=completed["total"],
            last_visit=completed["last_visit"],
            next_appointment=upcoming["next_date"],
        )

    # Vital signs

    def record_vitals(self, vitals: VitalSigns) -> VitalSigns:
        return self._insert("vital_signs", vitals, stamp="recorded_at")

    def list_vitals(self, patient_id: str) -> list[VitalSigns]:
        rows = self._fetch_all(
            "SELECT * FROM vital_signs WHERE patient_id = ? ORDER BY recorded_at DESC",
            (patient_id,),
        )
        return [self._row_to(VitalSigns, row) for row in rows]

    # Progress notes

    def create_progress_note(self, note: ProgressNote) -> ProgressNote:
        return self._insert("progress_notes", note, stamp=("created_at", "updated_at"))

    def list_progress_notes(self, patient_id: str) -> list[ProgressNote]:
        rows = self._fetch_all(
            "SELECT * FROM progress_notes WHERE patient_id = ? ORDER BY note_date DESC, created_at DESC",
            (patient_id,),
        )
        return [self._row_to(ProgressNote, row) for row in rows]

    def update_progress_note(self, note_id: str, updates: dict) -> ProgressNote | None:
        editable = {f.name for f in fields(ProgressNote)} - {"id", "patient_id", "created_at", "updated_at"}
        valid_updates = {k: v for k, v in updates.items() if k in editable}

        conn = get_connection()
        cursor = conn.cursor()
        if valid_updates:
            set_clause = ", ".join(f"{name} = ?" for name in valid_updates) + ", updated_at = ?"
            values = list(valid_updates.values()) + [datetime.now().isoformat(), note_id]
            cursor.execute(f"UPDATE progress_notes SET {set_clause} WHERE id = ?", values)
            conn.commit()

        cursor.execute("SELECT * FROM progress_notes WHERE id = ?", (note_id,))
        row = cursor.fetchone()
        conn.close()
        return self._row_to(ProgressNote, row) if row else None

    # Treatment plans

    def create_treatment_plan(self, plan: TreatmentPlan) -> TreatmentPlan:
        return self._insert("treatment_plans", plan)

    def list_treatment_plans(self, patient_id: str) -> list[TreatmentPlan]:
        rows = self._fetch_all(
            "SELECT * FROM treatment_plans WHERE patient_id = ? ORDER BY plan_date DESC",
            (patient_id,),
        )
        return [self._row_to(TreatmentPlan, row) for row in rows]

    def update_treatment_plan_status(self, plan_id: str, status: str) -> TreatmentPlan | None:
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute("UPDATE treatment_plans SET status = ? WHERE id = ?", (status, plan_id))
        conn.commit()
        cursor.execute("SELECT * FROM treatment_plans WHERE id = ?", (plan_id,))
        row = cursor.fetchone()
        conn.close()
        return self._row_to(TreatmentPlan, row) if row else None

    # Private helpers

    def _insert(self, table: str, record, stamp: str | tuple = "created_at"):
        """Insert a dataclass record, assigning its id and timestamp columns."""
        record.id = record.id or str(uuid.uuid4())
        now = datetime.now().isoformat()
        for name in (stamp,) if isinstance(stamp, str) else stamp:
            setattr(record, name, now)

        data = asdict(record)
        columns = list(data)

        conn = get_connection()
        conn.execute(
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
            [data[c] for c in columns],
        )
        conn.commit()
        conn.close()
        return record

    def _fetch_one(self, query: str, params: tuple):
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute(query, params)
        row = cursor.fetchone()
        conn.close()
        return row

    def _fetch_all(self, query: str, params: tuple) -> list:
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute(query, params)
        rows = cursor.fetchall()
        conn.close()
        return rows

    def _row_to(self, cls, row):
        """Convert a database row to the given record type."""
        return cls(**{f.name: row[f.name] for f in fields(cls)})
