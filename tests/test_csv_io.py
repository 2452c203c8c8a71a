"""Tests for patient and practice CSV export and import."""

import csv
import io
from datetime import date

from practice_dashboard.csv_io import (
    PATIENT_CSV_HEADERS,
    default_export_filename,
    export_patients,
    export_practices,
    import_patients,
    patients_to_csv,
    practices_to_csv,
    read_patient_rows,
    rows_to_patients,
)
from practice_dashboard.practice_records.database.patient_repository import Patient
from practice_dashboard.practice_records.database.practice_repository import Practice


def sample_patient(**overrides):
    data = dict(
        id="p-1", patient_id="PAT-20240100001", first_name="Jane", last_name="O'Neil, Jr.",
        date_of_birth="1990-01-15", phone="(555) 123-4567", email="jane@example.com",
        address_line1="1 Main St", city="Springfield", state="IL", zip_code="62701",
        insurance_company="Aetna", insurance_id="AET123",
        ssn="123-45-6789", race="Asian", ethnicity="Not Hispanic or Latino",
        preferred_provider="Dr. Lee",
    )
    data.update(overrides)
    return Patient(**data)


class TestExport:
    """Tests for CSV export."""

    def test_header_order_and_blanks(self):
        text = patients_to_csv([sample_patient()])
        rows = list(csv.reader(io.StringIO(text)))
        assert rows[0] == PATIENT_CSV_HEADERS
        assert rows[0][:3] == ["Patient ID", "First Name", "Last Name"]
        record = dict(zip(rows[0], rows[1]))
        assert record["Last Name"] == "O'Neil, Jr."
        assert record["Address Line 2"] == ""
        assert record["Status"] == "active"

    def test_practices(self):
        text = practices_to_csv([Practice(id="pr-1", name="Bay Clinic", npi="1234567893", city="Oakland")])
        rows = list(csv.reader(io.StringIO(text)))
        assert rows[0][:3] == ["Name", "NPI", "Organization Type"]
        assert rows[1][0] == "Bay Clinic"

    def test_default_filename(self):
        assert default_export_filename(date(2024, 6, 1)) == "patients_export_2024-06-01.csv"
        assert default_export_filename(date(2024, 6, 1), "practices") == "practices_export_2024-06-01.csv"


class TestImport:
    """Tests for CSV import."""

    def test_round_trip_preserves_registration_fields(self, tmp_path):
        original = sample_patient()
        path = export_patients([original], tmp_path / "patients.csv")

        result = import_patients(path)
        assert result.skipped == []
        imported = result.patients[0]
        for attr in ["patient_id", "first_name", "last_name", "date_of_birth",
                     "phone", "email", "state", "insurance_id",
                     "ssn", "race", "ethnicity", "preferred_provider"]:
            assert getattr(imported, attr) == getattr(original, attr)
        assert imported.id is None
        assert imported.address_line2 is None

    def test_columns_matched_by_name(self):
        text = "last_name, First Name ,Favorite Color,DATE OF BIRTH,state\nDoe,John,blue,03/05/1985,texas\n"
        rows = read_patient_rows(text)
        assert rows == [(2, {"last_name": "Doe", "first_name": "John",
                             "date_of_birth": "03/05/1985", "state": "texas"})]

        patient = rows_to_patients(rows).patients[0]
        assert patient.date_of_birth == "1985-03-05"
        assert patient.state == "TX"
        assert patient.status == "active"
        assert patient.risk_level == "low"

    def test_blank_rows_skipped_and_missing_names_reported(self):
        text = "First Name,Last Name\nJohn,Doe\n,,\n,Smith\nAmy,\n"
        result = rows_to_patients(read_patient_rows(text))
        assert [p.first_name for p in result.patients] == ["John"]
        assert result.skipped == [
            (4, "First and last name are required"),
            (5, "First and last name are required"),
        ]

    def test_empty_file(self):
        assert read_patient_rows("") == []

    def test_byte_order_mark(self, tmp_path):
        path = tmp_path / "bom.csv"
        path.write_text("First Name,Last Name\nJohn,Doe\n", encoding="utf-8-sig")
        assert import_patients(path).patients[0].first_name == "John"

    def test_row_numbers_count_blank_lines(self):
        text = "First Name,Last Name\nJohn,Doe\n\n,,\n,Smith\n"
        result = rows_to_patients(read_patient_rows(text))
        assert result.skipped == [(5, "First and last name are required")]

    def test_quoted_newline_counts_as_one_row(self):
        text = 'First Name,Last Name,Address\nJohn,Doe,"1 Main St\nUnit 2"\n,Smith,\n'
        result = rows_to_patients(read_patient_rows(text))
        assert result.patients[0].address_line1 == "1 Main St\nUnit 2"
        assert result.skipped == [(3, "First and last name are required")]


def test_export_practices(tmp_path):
    path = export_practices([Practice(id="pr-1", name="Bay Clinic", npi="1234567893")], tmp_path / "practices.csv")
    rows = list(csv.reader(io.StringIO(path.read_text(encoding="utf-8"))))
    assert [row[:2] for row in rows] == [["Name", "NPI"], ["Bay Clinic", "1234567893"]]
