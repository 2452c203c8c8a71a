"""Patient repository with CRUD operations and audit logging."""

import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from .connection import get_connection

logger = logging.getLogger(__name__)

PATIENT_ID_PREFIX = "PAT-"


@dataclass
class Patient:
    id: str | None
    first_name: str
    last_name: str
    date_of_birth: str
    patient_id: str | None = None
    gender: str | None = None
    ssn: str | None = None
    marital_status: str | None = None
    race: str | None = None
    ethnicity: str | None = None
    language: str | None = None
    phone: str | None = None
    email: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None
    emergency_contact_relation: str | None = None
    insurance_company: str | None = None
    insurance_id: str | None = None
    group_number: str | None = None
    policy_holder_name: str | None = None
    policy_holder_relationship: str | None = None
    secondary_insurance: str | None = None
    secondary_insurance_id: str | None = None
    status: str = "active"
    risk_level: str = "low"
    preferred_provider: str | None = None
    outstanding_balance: float = 0.0
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def full_address(self) -> str:
        parts = [self.address_line1, self.address_line2, self.city, self.state, self.zip_code]
        return ", ".join(p for p in parts if p)


@dataclass
class MedicalHistory:
    patient_id: str
    allergies: list[dict] = field(default_factory=list)
    medications: list[dict] = field(default_factory=list)
    conditions: list[dict] = field(default_factory=list)
    surgeries: list[dict] = field(default_factory=list)
    family_history: list[dict] = field(default_factory=list)
    updated_at: str | None = None


HISTORY_LISTS = ["allergies", "medications", "conditions", "surgeries", "family_history"]


class PatientRepository:
    """Repository for patient CRUD operations with audit logging."""

    # Fields that can be written by forms and imports
    PATIENT_FIELDS = [
        "patient_id", "first_name", "last_name", "date_of_birth", "gender", "ssn",
        "marital_status", "race", "ethnicity", "language",
        "phone", "email", "address_line1", "address_line2", "city", "state", "zip_code",
        "emergency_contact_name", "emergency_contact_phone", "emergency_contact_relation",
        "insurance_company", "insurance_id", "group_number", "policy_holder_name",
        "policy_holder_relationship", "secondary_insurance", "secondary_insurance_id",
        "status", "risk_level", "preferred_provider", "outstanding_balance",
    ]

    # Tables holding rows that reference a patient
    DEPENDENT_TABLES = [
        "patient_change_log", "medical_history", "appointments", "vital_signs",
        "progress_notes", "treatment_plans", "documents", "messages",
    ]

    def find_existing_patient(
        self,
        phone: str | None = None,
        email: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
        date_of_birth: str | None = None
    ) -> Patient | None:
        """Find existing patient by phone, email, or name+DOB."""
        conn = get_connection()
        cursor = conn.cursor()

        lookups = []
        if phone:
            lookups.append(("SELECT * FROM patients WHERE phone = ?", (phone,)))
        if email:
            lookups.append(("SELECT * FROM patients WHERE LOWER(email) = LOWER(?)", (email,)))
        if first_name and last_name and date_of_birth:
            lookups.append((
                "SELECT * FROM patients WHERE LOWER(first_name) = LOWER(?) "
                "AND LOWER(last_name) = LOWER(?) AND date_of_birth = ?",
                (first_name, last_name, date_of_birth),
            ))

        for query, params in lookups:
            cursor.execute(query, params)
            row = cursor.fetchone()
            if row:
                conn.close()
                return self._row_to_patient(row)

        conn.close()
        return None

    def generate_patient_id(self, now: datetime | None = None) -> str:
        """Next external id for the month, e.g. PAT-20240300042."""
        now = now or datetime.now()
        prefix = f"{PATIENT_ID_PREFIX}{now:%Y%m}"

        try:
            conn = get_connection()
            cursor = conn.cursor()
            cursor.execute(
                "SELECT patient_id FROM patients WHERE patient_id LIKE ?",
                (f"{prefix}%",),
            )
            rows = cursor.fetchall()
            conn.close()
        except sqlite3.Error:
            # Fall back to the clock so registration can still proceed
            logger.warning("Could not read existing patient ids, using timestamp suffix", exc_info=True)
            return f"{prefix}{int(now.timestamp() * 1000) % 100000:05d}"

        highest = 0
        for row in rows:
            suffix = row["patient_id"][len(prefix):]
            if suffix.isdigit():
                highest = max(highest, int(suffix))

        patient_id = f"{prefix}{highest + 1:05d}"
        logger.info("Generated patient id %s", patient_id)
        return patient_id

    def create(self, patient: Patient, changed_by: str = "system") -> Patient:
        """Create a new patient with audit logging."""
        patient.id = patient.id or str(uuid.uuid4())
        patient.patient_id = patient.patient_id or self.generate_patient_id()
        now = datetime.now().isoformat()

        columns = ["id"] + self.PATIENT_FIELDS + ["created_at", "updated_at"]
        values = [patient.id] + [getattr(patient, f) for f in self.PATIENT_FIELDS] + [now, now]
        placeholders = ", ".join("?" for _ in columns)

        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute(
            f"INSERT INTO patients ({', '.join(columns)}) VALUES ({placeholders})",
            values,
        )

        # Log creation for each non-null field
        for name in self.PATIENT_FIELDS:
            value = getattr(patient, name)
            if value is not None:
                self._log_change(cursor, patient.id, name, None, str(value), "CREATE", changed_by)

        conn.commit()
        conn.close()

        patient.created_at = now
        patient.updated_at = now
        return patient

    def get_by_id(self, patient_id: str) -> Patient | None:
        """Get a patient by internal ID."""
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM patients WHERE id = ?", (patient_id,))
        row = cursor.fetchone()
        conn.close()
        return self._row_to_patient(row) if row else None

    def get_by_patient_id(self, external_id: str) -> Patient | None:
        """Get a patient by external PAT- id."""
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM patients WHERE patient_id = ?", (external_id,))
        row = cursor.fetchone()
        conn.close()
        return self._row_to_patient(row) if row else None

    def list_patients(self, status: str | None = None) -> list[Patient]:
        conn = get_connection()
        cursor = conn.cursor()
        query = "SELECT * FROM patients"
        params = []
        if status:
            query += " WHERE status = ?"
            params.append(status)
        query += " ORDER BY last_name, first_name"
        cursor.execute(query, params)
        rows = cursor.fetchall()
        conn.close()
        return [self._row_to_patient(row) for row in rows]

    def update(self, patient_id: str, updates: dict, changed_by: str = "system") -> Patient | None:
        """Update patient fields with audit logging."""
        conn = get_connection()
        cursor = conn.cursor()

        cursor.execute("SELECT * FROM patients WHERE id = ?", (patient_id,))
        row = cursor.fetchone()
        if not row:
            conn.close()
            return None

        current = dict(row)
        now = datetime.now().isoformat()

        # Filter valid fields and detect changes
        valid_updates = {}
        for name, new_value in updates.items():
            if name not in self.PATIENT_FIELDS:
                continue
            old_value = current.get(name)
            if old_value != new_value:
                valid_updates[name] = new_value
                self._log_change(
                    cursor, patient_id, name,
                    str(old_value) if old_value is not None else None,
                    str(new_value) if new_value is not None else None,
                    "UPDATE", changed_by
                )

        if valid_updates:
            set_clause = ", ".join(f"{name} = ?" for name in valid_updates)
            set_clause += ", updated_at = ?"
            values = list(valid_updates.values()) + [now, patient_id]
            cursor.execute(f"UPDATE patients SET {set_clause} WHERE id = ?", values)

        conn.commit()
        conn.close()
        return self.get_by_id(patient_id)

    def delete(self, patient_id: str) -> bool:
        """Delete a patient and every row that references it."""
        conn = get_connection()
        cursor = conn.cursor()
        for table in self.DEPENDENT_TABLES:
            cursor.execute(f"DELETE FROM {table} WHERE patient_id = ?", (patient_id,))
        cursor.execute("DELETE FROM patients WHERE id = ?", (patient_id,))
        deleted = cursor.rowcount > 0
        conn.commit()
        conn.close()
        return deleted

    def get_change_history(self, patient_id: str, limit: int = 50) -> list[dict]:
        """Get audit trail for a patient."""
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute("""
            SELECT * FROM patient_change_log
            WHERE patient_id = ?
            ORDER BY changed_at DESC
            LIMIT ?
        """, (patient_id, limit))
        rows = cursor.fetchall()
        conn.close()
        return [dict(row) for row in rows]

    # Medical history

    def get_medical_history(self, patient_id: str) -> MedicalHistory:
        """Return the stored history, or an empty one."""
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM medical_history WHERE patient_id = ?", (patient_id,))
        row = cursor.fetchone()
        conn.close()

        if not row:
            return MedicalHistory(patient_id=patient_id)

        return MedicalHistory(
            patient_id=patient_id,
            updated_at=row["updated_at"],
            **{name: json.loads(row[name]) if row[name] else [] for name in HISTORY_LISTS},
        )

    def save_medical_history(self, history: MedicalHistory) -> MedicalHistory:
        """Insert or replace the history lists for a patient."""
        now = datetime.now().isoformat()
        conn = get_connection()
        conn.execute(
            f"""INSERT OR REPLACE INTO medical_history
                (patient_id, {', '.join(HISTORY_LISTS)}, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)""",
            [history.patient_id]
            + [json.dumps(getattr(history, name)) for name in HISTORY_LISTS]
            + [now],
        )
        conn.commit()
        conn.close()
        history.updated_at = now
        return history

    # Private helpers

    def _log_change(
        self,
        cursor,
        patient_id: str,
        field_name: str,
        old_value: str | None,
        new_value: str | None,
        change_type: str,
        changed_by: str
    ) -> None:
        """Log a change to the audit table."""
        cursor.execute("""
            INSERT INTO patient_change_log (id, patient_id, field_name, old_value, new_value, change_type, changed_by)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (str(uuid.uuid4()), patient_id, field_name, old_value, new_value, change_type, changed_by))

    def _row_to_patient(self, row) -> Patient:
        """Convert a database row to a Patient object."""
        data = {name: row[name] for name in self.PATIENT_FIELDS}
        data["outstanding_balance"] = data["outstanding_balance"] or 0.0
        return Patient(
            id=row["id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            **data,
        )
