"""Practice repository with search operations."""

import uuid
from dataclasses import dataclass, fields
from datetime import datetime

from .connection import get_connection


@dataclass
class Practice:
    id: str | None
    name: str
    npi: str
    organization_type: str | None = None
    taxonomy_specialty: str | None = None
    reference_number: str | None = None
    tcn_prefix: str | None = None
    statement_tcn_prefix: str | None = None
    code: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    time_zone: str | None = None
    phone: str | None = None
    fax: str | None = None
    email: str | None = None
    pay_to_same_as_primary: bool = True
    pay_to_address_line1: str | None = None
    pay_to_address_line2: str | None = None
    pay_to_city: str | None = None
    pay_to_state: str | None = None
    pay_to_zip_code: str | None = None
    pay_to_phone: str | None = None
    pay_to_fax: str | None = None
    pay_to_email: str | None = None
    status: str = "active"
    company_id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


# Columns written on insert/update, everything but id and timestamps
PRACTICE_FIELDS = [
    f.name for f in fields(Practice) if f.name not in ("id", "created_at", "updated_at")
]


class PracticeRepository:
    """Repository for practice CRUD and search."""

    def create(self, practice: Practice) -> Practice:
        practice.id = practice.id or str(uuid.uuid4())
        now = datetime.now().isoformat()

        columns = ["id"] + PRACTICE_FIELDS + ["created_at", "updated_at"]
        values = [practice.id] + [self._to_column(practice, f) for f in PRACTICE_FIELDS] + [now, now]

        conn = get_connection()
        conn.execute(
            f"INSERT INTO practices ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
            values,
        )
        conn.commit()
        conn.close()

        practice.created_at = now
        practice.updated_at = now
        return practice

    def get_by_id(self, practice_id: str) -> Practice | None:
        """Get a practice by ID."""
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute("SELECT * FROM practices WHERE id = ?", (practice_id,))
        row = cursor.fetchone()
        conn.close()
        return self._row_to_practice(row) if row else None

    def list_practices(self, company_id: str | None = None) -> list[Practice]:
        conn = get_connection()
        cursor = conn.cursor()
        if company_id:
            cursor.execute("SELECT * FROM practices WHERE company_id = ? ORDER BY name", (company_id,))
        else:
            cursor.execute("SELECT * FROM practices ORDER BY name")
        rows = cursor.fetchall()
        conn.close()
        return [self._row_to_practice(row) for row in rows]

    def search(
        self,
        term: str | None = None,
        status: str | None = None,
        organization_type: str | None = None,
    ) -> list[Practice]:
        """Find practices matching name, NPI or city, with optional filters."""
        conn = get_connection()
        cursor = conn.cursor()

        query = "SELECT * FROM practices WHERE 1 = 1"
        params = []

        if term:
            query += " AND (name LIKE ? OR npi LIKE ? OR city LIKE ?)"
            params.extend([f"%{term}%"] * 3)

        if status and status != "all":
            query += " AND status = ?"
            params.append(status)

        if organization_type and organization_type != "all":
            query += " AND organization_type = ?"
            params.append(organization_type)

        query += " ORDER BY name"

        cursor.execute(query, params)
        rows = cursor.fetchall()
        conn.close()
        return [self._row_to_practice(row) for row in rows]

    def update(self, practice_id: str, updates: dict) -> Practice | None:
        valid_updates = {k: v for k, v in updates.items() if k in PRACTICE_FIELDS}
        if "pay_to_same_as_primary" in valid_updates:
            valid_updates["pay_to_same_as_primary"] = int(bool(valid_updates["pay_to_same_as_primary"]))

        conn = get_connection()
        cursor = conn.cursor()
        if valid_updates:
            set_clause = ", ".join(f"{name} = ?" for name in valid_updates) + ", updated_at = ?"
            values = list(valid_updates.values()) + [datetime.now().isoformat(), practice_id]
            cursor.execute(f"UPDATE practices SET {set_clause} WHERE id = ?", values)
            if cursor.rowcount == 0:
                conn.close()
                return None
            conn.commit()
        conn.close()
        return self.get_by_id(practice_id)

    def delete(self, practice_id: str) -> bool:
        conn = get_connection()
        cursor = conn.cursor()
        cursor.execute("DELETE FROM practices WHERE id = ?", (practice_id,))
        deleted = cursor.rowcount > 0
        conn.commit()
        conn.close()
        return deleted

    @staticmethod
    def _to_column(practice: Practice, name: str):
        value = getattr(practice, name)
        if name == "pay_to_same_as_primary":
            return int(bool(value))
        return value

    def _row_to_practice(self, row) -> Practice:
        """Convert a database row to a Practice object."""
        data = {name: row[name] for name in PRACTICE_FIELDS}
        data["pay_to_same_as_primary"] = bool(data["pay_to_same_as_primary"])
        return Practice(id=row["id"], created_at=row["created_at"], updated_at=row["updated_at"], **data)
