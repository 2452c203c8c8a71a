"""Seed the database with demo patients, clinical records, a practice and an admin user."""

from dataclasses import replace
from datetime import date, timedelta

from practice_dashboard.practice_records.database import (
    ClinicalRepository,
    PatientRepository,
    PracticeRepository,
    SessionRepository,
    init_database,
)
from practice_dashboard.practice_records.database.clinical_repository import Appointment
from practice_dashboard.practice_records.database.patient_repository import MedicalHistory, Patient
from practice_dashboard.practice_records.database.practice_repository import Practice
from practice_dashboard.practice_records.database.session_repository import Company, User


MOCK_PATIENTS = [
    Patient(
        id="p-001",
        first_name="John",
        last_name="Smith",
        date_of_birth="1985-03-15",
        gender="male",
        phone="(555) 010-1001",
        email="john.smith@email.com",
        address_line1="123 Main St",
        address_line2="Apt 4B",
        city="San Francisco",
        state="CA",
        zip_code="94102",
        insurance_company="Blue Cross Blue Shield",
        insurance_id="BCBS123456",
        group_number="GRP001",
        preferred_provider="Dr. Emily Carter",
        outstanding_balance=125.50,
    ),
    Patient(
        id="p-002",
        first_name="Sarah",
        last_name="Johnson",
        date_of_birth="1992-07-22",
        gender="female",
        phone="(555) 010-1002",
        email="sarah.j@email.com",
        address_line1="456 Oak Ave",
        city="Oakland",
        state="CA",
        zip_code="94612",
        insurance_company="Aetna",
        insurance_id="AET789012",
        risk_level="medium",
        preferred_provider="Dr. James Lee",
    ),
    Patient(
        id="p-003",
        first_name="Michael",
        last_name="Chen",
        date_of_birth="1958-11-08",
        gender="male",
        phone="(555) 010-1003",
        email="m.chen@email.com",
        address_line1="789 Pine Rd",
        city="Berkeley",
        state="CA",
        zip_code="94704",
        insurance_company="Medicare",
        insurance_id="1EG4TE5MK72",
        risk_level="high",
        preferred_provider="Dr. Emily Carter",
        outstanding_balance=980.00,
    ),
    Patient(
        id="p-004",
        first_name="Emma",
        last_name="Davis",
        date_of_birth="2012-02-10",
        gender="female",
        phone="(555) 010-1004",
        email="davis.family@email.com",
        address_line1="22 Elm St",
        city="San Jose",
        state="CA",
        zip_code="95112",
        insurance_company="Kaiser Permanente",
        insurance_id="KP445566",
        policy_holder_name="Laura Davis",
        policy_holder_relationship="parent",
        preferred_provider="Dr. James Lee",
    ),
]

MOCK_HISTORY = {
    "p-001": MedicalHistory(
        patient_id="p-001",
        allergies=[{"allergen": "Penicillin", "reaction": "Hives", "severity": "Moderate"}],
        medications=[{"name": "Lisinopril", "dosage": "10mg", "frequency": "Daily", "start_date": "2021-06-01"}],
        conditions=[{"condition": "Hypertension", "diagnosis_date": "2021-05-20", "status": "Active", "notes": None}],
    ),
    "p-003": MedicalHistory(
        patient_id="p-003",
        conditions=[
            {"condition": "Type 2 Diabetes", "diagnosis_date": "2015-09-14", "status": "Active", "notes": None},
            {"condition": "Hyperlipidemia", "diagnosis_date": "2017-03-02", "status": "Active", "notes": None},
        ],
        medications=[{"name": "Metformin", "dosage": "500mg", "frequency": "Twice daily", "start_date": "2015-09-20"}],
        family_history=[{"relation": "Father", "condition": "Heart disease", "age": "62"}],
    ),
}

MOCK_PRACTICE = Practice(
    id="pr-001",
    name="Bay Area Family Medicine",
    npi="1234567893",
    organization_type="Organization",
    taxonomy_specialty="207Q00000X - Family Medicine",
    address_line1="500 Market St",
    city="San Francisco",
    state="CA",
    zip_code="94105",
    time_zone="America/Los_Angeles",
    phone="(555) 020-2000",
    email="billing@bayareafm.example",
    company_id="c-001",
)


def generate_appointments(today: date) -> list[Appointment]:
    """A completed visit and an upcoming one for each patient."""
    appointments = []
    for index, patient in enumerate(MOCK_PATIENTS):
        appointments.append(Appointment(
            id=f"a-{patient.id}-past",
            patient_id=patient.id,
            date=(today - timedelta(days=30 + index * 7)).isoformat(),
            time="09:30",
            type="Follow-up",
            provider=patient.preferred_provider,
            reason="Routine follow-up",
            status="completed",
        ))
        if index % 2 == 0:
            appointments.append(Appointment(
                id=f"a-{patient.id}-next",
                patient_id=patient.id,
                date=(today + timedelta(days=3 + index)).isoformat(),
                time="14:00",
                type="Check-up",
                provider=patient.preferred_provider,
                reason="Annual physical",
            ))
    return appointments


def seed_database():
    """Seed the database with demo data, skipping records that already exist."""
    init_database()

    patients = PatientRepository()
    clinical = ClinicalRepository()
    practices = PracticeRepository()
    sessions = SessionRepository()

    print("Seeding patients...")
    for patient in MOCK_PATIENTS:
        if patients.get_by_id(patient.id):
            print(f"  Skipping {patient.full_name} (already exists)")
            continue
        created = patients.create(replace(patient), changed_by="seed")
        if patient.id in MOCK_HISTORY:
            patients.save_medical_history(replace(MOCK_HISTORY[patient.id]))
        print(f"  Created {created.full_name} ({created.patient_id})")

    print("\nSeeding appointments...")
    appointments = generate_appointments(date.today())
    for appointment in appointments:
        if clinical.get_appointment(appointment.id) is None:
            clinical.create_appointment(appointment)

    print("\nSeeding company, practice and admin user...")
    if sessions.get_user_by_email("admin@example.com") is None:
        admin = sessions.create_user(User(id="u-001", email="admin@example.com", full_name="Admin User"))
        company = sessions.create_company(Company(id="c-001", name="Bay Area Billing"))
        sessions.add_member(admin.id, company.id, role="admin")
        sessions.register_route("/reports", "Reports")
        sessions.grant_route(admin.id, company.id, "/reports")
    if practices.get_by_id(MOCK_PRACTICE.id) is None:
        practices.create(replace(MOCK_PRACTICE))

    print("\nDatabase seeded successfully!")
    print(f"  - {len(MOCK_PATIENTS)} patients")
    print(f"  - {len(appointments)} appointments")
    print("  - 1 practice")
    print("  - sign in as admin@example.com")


if __name__ == "__main__":
    seed_database()
