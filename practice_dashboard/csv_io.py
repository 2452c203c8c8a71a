"""CSV export and import for patient registration data and practices."""

import csv
import io
import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from pydantic import BaseModel, ValidationError, field_validator

from practice_dashboard.practice_records.database.patient_repository import Patient
from practice_dashboard.practice_records.database.practice_repository import Practice
from practice_dashboard.validation import normalize_date, normalize_state

logger = logging.getLogger(__name__)

# (header, Patient attribute) in export order
PATIENT_CSV_COLUMNS = [
    ("Patient ID", "patient_id"),
    ("First Name", "first_name"),
    ("Last Name", "last_name"),
    ("Date of Birth", "date_of_birth"),
    ("Gender", "gender"),
    ("SSN", "ssn"),
    ("Marital Status", "marital_status"),
    ("Race", "race"),
    ("Ethnicity", "ethnicity"),
    ("Language", "language"),
    ("Phone", "phone"),
    ("Email", "email"),
    ("Address", "address_line1"),
    ("Address Line 2", "address_line2"),
    ("City", "city"),
    ("State", "state"),
    ("ZIP Code", "zip_code"),
    ("Emergency Contact Name", "emergency_contact_name"),
    ("Emergency Contact Phone", "emergency_contact_phone"),
    ("Emergency Contact Relation", "emergency_contact_relation"),
    ("Insurance Company", "insurance_company"),
    ("Insurance ID", "insurance_id"),
    ("Group Number", "group_number"),
    ("Policy Holder Name", "policy_holder_name"),
    ("Policy Holder Relationship", "policy_holder_relationship"),
    ("Secondary Insurance", "secondary_insurance"),
    ("Secondary Insurance ID", "secondary_insurance_id"),
    ("Preferred Provider", "preferred_provider"),
    ("Status", "status"),
    ("Risk Level", "risk_level"),
]

PATIENT_CSV_HEADERS = [header for header, _ in PATIENT_CSV_COLUMNS]

PRACTICE_CSV_COLUMNS = [
    ("Name", "name"),
    ("NPI", "npi"),
    ("Organization Type", "organization_type"),
    ("Taxonomy Specialty", "taxonomy_specialty"),
    ("Address", "address_line1"),
    ("City", "city"),
    ("State", "state"),
    ("ZIP", "zip_code"),
    ("Phone", "phone"),
    ("Email", "email"),
    ("Status", "status"),
]


def _header_key(header: str) -> str:
    return " ".join(header.replace("_", " ").split()).lower()


# Lookup by display header or attribute name, trimmed and case-insensitive
_PATIENT_HEADER_LOOKUP = {
    **{_header_key(header): attr for header, attr in PATIENT_CSV_COLUMNS},
    **{_header_key(attr): attr for _, attr in PATIENT_CSV_COLUMNS},
}


class PatientImportRow(BaseModel):
    """One imported patient row, with lenient date and state parsing."""

    first_name: str
    last_name: str
    date_of_birth: str | None = None
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
    preferred_provider: str | None = None
    status: str | None = None
    risk_level: str | None = None

    @field_validator("date_of_birth", mode="before")
    @classmethod
    def normalize_dob(cls, v):
        return normalize_date(v)

    @field_validator("state", mode="before")
    @classmethod
    def normalize_state_code(cls, v):
        return normalize_state(v)

    def to_patient(self) -> Patient:
        data = self.model_dump()
        data["status"] = data["status"] or "active"
        data["risk_level"] = data["risk_level"] or "low"
        data["date_of_birth"] = data["date_of_birth"] or ""
        return Patient(id=None, **data)


@dataclass
class ImportResult:
    patients: list[Patient] = field(default_factory=list)
    # (row number counting the header as row 1, reason)
    skipped: list[tuple[int, str]] = field(default_factory=list)


def default_export_filename(today: date | None = None, kind: str = "patients") -> str:
    return f"{kind}_export_{(today or date.today()).isoformat()}.csv"


def _write_rows(columns: list[tuple[str, str]], records: list, stream) -> None:
    writer = csv.writer(stream)
    writer.writerow([header for header, _ in columns])
    for record in records:
        writer.writerow([
            "" if getattr(record, attr) is None else getattr(record, attr)
            for _, attr in columns
        ])


def patients_to_csv(patients: list[Patient]) -> str:
    """Render patients as CSV text with the fixed header order."""
    buffer = io.StringIO()
    _write_rows(PATIENT_CSV_COLUMNS, patients, buffer)
    return buffer.getvalue()


def practices_to_csv(practices: list[Practice]) -> str:
    buffer = io.StringIO()
    _write_rows(PRACTICE_CSV_COLUMNS, practices, buffer)
    return buffer.getvalue()


def export_patients(patients: list[Patient], path: str | Path) -> Path:
    path = Path(path)
    path.write_text(patients_to_csv(patients), encoding="utf-8", newline="")
    logger.info("Exported %d patients to %s", len(patients), path)
    return path


def export_practices(practices: list[Practice], path: str | Path) -> Path:
    path = Path(path)
    path.write_text(practices_to_csv(practices), encoding="utf-8", newline="")
    logger.info("Exported %d practices to %s", len(practices), path)
    return path


def read_patient_rows(text: str) -> list[tuple[int, dict]]:
    """
    Parse CSV text into (row number, dict keyed by Patient attribute) pairs.

    Columns are matched by header name, so their order does not matter.
    Unknown columns are ignored and empty cells become None. Blank rows are
    dropped but still counted, so row numbers match the file.
    """
    reader = csv.reader(io.StringIO(text))
    try:
        headers = next(reader)
    except StopIteration:
        return []

    columns = {
        index: _PATIENT_HEADER_LOOKUP[_header_key(header)]
        for index, header in enumerate(headers)
        if _header_key(header) in _PATIENT_HEADER_LOOKUP
    }

    rows = []
    for number, values in enumerate(reader, start=2):
        if not any(v.strip() for v in values):
            continue
        row = {}
        for index, attr in columns.items():
            value = values[index].strip() if index < len(values) else ""
            row[attr] = value or None
        rows.append((number, row))
    return rows


def rows_to_patients(rows: list[tuple[int, dict]]) -> ImportResult:
    """Build Patient records, skipping rows without a first and last name."""
    result = ImportResult()
    for number, row in rows:
        if not row.get("first_name") or not row.get("last_name"):
            result.skipped.append((number, "First and last name are required"))
            continue
        try:
            result.patients.append(PatientImportRow(**row).to_patient())
        except ValidationError as e:
            result.skipped.append((number, str(e.errors()[0]["msg"])))
    return result


def import_patients(path: str | Path) -> ImportResult:
    text = Path(path).read_text(encoding="utf-8-sig")
    result = rows_to_patients(read_patient_rows(text))
    logger.info("Read %d patients from %s (%d skipped)", len(result.patients), path, len(result.skipped))
    return result
