"""Dialog forms: local field state, validation and submit forwarding.

Every form follows the same lifecycle. ``open()`` resets and prefills the
fields, ``update()`` changes them, ``validate()`` builds a field-keyed error
map, and ``submit()`` forwards a plain dict to the handler supplied by the
caller. Validation errors never reach the handler.
"""

import copy
import mimetypes
from collections.abc import Callable
from datetime import date
from pathlib import Path
from typing import ClassVar

from practice_dashboard.validation import (
    calculate_age,
    clean_npi,
    is_blank,
    is_valid_date,
    is_valid_email,
    is_valid_npi,
    is_valid_phone,
    is_valid_ssn,
    is_valid_time,
    is_valid_zip,
    normalize_state,
    parse_date,
    split_list,
)

# Default that resolves to the form's current date when the form is reset
TODAY = object()

ALLOWED_DOCUMENT_EXTENSIONS = {".pdf", ".doc", ".docx", ".jpg", ".jpeg", ".png", ".gif", ".txt"}

PRACTICE_STATUSES = ("active", "inactive", "pending")


def calculate_bmi(weight_lb: float, height_in: float) -> float:
    """Body mass index from pounds and inches, one decimal place."""
    return round(weight_lb / (height_in * height_in) * 703, 1)


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("y", "yes", "true", "1", "on")
    return bool(value)


def _clean(value):
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class FormDialog:
    """Base class for every dialog form."""

    TITLE: ClassVar[str] = "Form"
    # Field name -> default value (TODAY resolves at reset time)
    FIELDS: ClassVar[dict] = {}
    # Required field name -> error message
    REQUIRED: ClassVar[dict[str, str]] = {}

    def __init__(self, on_submit: Callable[[dict], object], today: date | None = None):
        self.on_submit = on_submit
        self.today = today
        self.is_open = False
        self.is_submitting = False
        self.errors: dict[str, str] = {}
        self.values: dict = {}
        self.reset()

    def current_date(self) -> date:
        return self.today or date.today()

    def reset(self) -> None:
        self.values = {
            name: self.current_date().isoformat() if default is TODAY else copy.deepcopy(default)
            for name, default in self.FIELDS.items()
        }
        self.errors = {}

    def open(self, initial: dict | None = None) -> None:
        """Reset the fields, apply any prefill and show the form."""
        self.reset()
        if initial:
            for name, value in initial.items():
                if name in self.values:
                    self.values[name] = value
        self.is_open = True

    def close(self) -> None:
        self.is_open = False
        self.reset()

    def update(self, **values) -> list[str]:
        """Set field values, returning the names that actually changed."""
        changed = []
        for name, value in values.items():
            if name not in self.values:
                raise KeyError(f"{type(self).__name__} has no field {name!r}")
            if self.values[name] != value:
                self.values[name] = value
                changed.append(name)
                self.errors.pop(name, None)
        return changed

    def validate(self) -> dict[str, str]:
        errors = {
            name: message
            for name, message in self.REQUIRED.items()
            if is_blank(self.values.get(name))
        }
        self.check(errors)
        self.errors = errors
        return errors

    def check(self, errors: dict[str, str]) -> None:
        """Format and range rules beyond required fields."""

    def is_field_active(self, name: str) -> bool:
        """Whether a field is currently shown for input."""
        return True

    def build_payload(self) -> dict:
        return {name: _clean(value) for name, value in self.values.items()}

    def submit(self) -> dict | None:
        """
        Validate and forward the payload to the submit handler.

        Returns None while a submit is already running or when validation
        fails. A handler error propagates and leaves the form open with its
        fields intact.
        """
        if self.is_submitting:
            return None
        if self.validate():
            return None

        payload = self.build_payload()
        self.is_submitting = True
        try:
            self.on_submit(payload)
        finally:
            self.is_submitting = False

        self.close()
        return payload

    def _check_email(self, errors: dict, name: str = "email") -> None:
        value = self.values.get(name)
        if name not in errors and not is_blank(value) and not is_valid_email(value.strip()):
            errors[name] = "Please enter a valid email address"

    def _check_phone(self, errors: dict, name: str = "phone") -> None:
        value = self.values.get(name)
        if name not in errors and not is_blank(value) and not is_valid_phone(value.strip()):
            errors[name] = "Please enter a valid phone number"

    def _check_date(self, errors: dict, name: str) -> None:
        value = self.values.get(name)
        if name not in errors and not is_blank(value) and not is_valid_date(value):
            errors[name] = "Please enter a valid date (YYYY-MM-DD)"


# =============================================================================
# Patient data forms
# =============================================================================

class PatientRegistrationForm(FormDialog):
    TITLE = "Register New Patient"
    FIELDS = {
        "first_name": "", "last_name": "", "date_of_birth": "", "gender": "",
        "ssn": "", "marital_status": "", "race": "", "ethnicity": "", "language": "",
        "phone": "", "email": "", "address": "", "city": "", "state": "", "zip_code": "",
        "emergency_contact_name": "", "emergency_contact_phone": "",
        "emergency_contact_relation": "",
        "insurance_company": "", "insurance_id": "", "group_number": "",
        "policy_holder_name": "", "policy_holder_relationship": "",
        "secondary_insurance": "", "secondary_insurance_id": "",
        "allergies": "", "medications": "", "conditions": "",
        "previous_surgeries": "", "family_history": "", "preferred_provider": "",
    }
    REQUIRED = {
        "first_name": "First name is required",
        "last_name": "Last name is required",
        "date_of_birth": "Date of birth is required",
        "gender": "Gender is required",
        "phone": "Phone number is required",
        "email": "Email is required",
        "address": "Address is required",
        "city": "City is required",
        "state": "State is required",
        "zip_code": "ZIP code is required",
        "insurance_company": "Insurance company is required",
        "insurance_id": "Insurance ID is required",
    }

    def check(self, errors):
        self._check_email(errors)
        self._check_phone(errors)
        self._check_phone(errors, "emergency_contact_phone")
        self._check_date(errors, "date_of_birth")
        if "ssn" not in errors and not is_blank(self.values["ssn"]) and not is_valid_ssn(self.values["ssn"].strip()):
            errors["ssn"] = "SSN must be in XXX-XX-XXXX format"

    def build_payload(self) -> dict:
        data = super().build_payload()
        first_name, last_name = data["first_name"], data["last_name"]
        state = normalize_state(data["state"])

        # first_name and last_name travel separately as well as combined
        return {
            **data,
            "name": f"{first_name} {last_name}",
            "first_name": first_name,
            "last_name": last_name,
            "age": calculate_age(data["date_of_birth"], self.current_date()),
            "address": f"{data['address']}, {data['city']}, {state} {data['zip_code']}",
            "address_line1": data["address"],
            "state": state,
            "allergies": split_list(data["allergies"]),
            "medications": split_list(data["medications"]),
            "conditions": split_list(data["conditions"]),
            "status": "active",
            "risk_level": "low",
            "outstanding_balance": 0,
        }


class EditPatientForm(FormDialog):
    TITLE = "Edit Patient"
    FIELDS = {
        "id": None,
        "first_name": "", "last_name": "", "date_of_birth": "", "gender": "",
        "ssn": "", "marital_status": "", "race": "", "ethnicity": "", "language": "",
        "phone": "", "email": "",
        "status": "active", "risk_level": "low", "preferred_provider": "",
    }
    REQUIRED = {
        "first_name": "First name is required",
        "last_name": "Last name is required",
        "date_of_birth": "Date of birth is required",
    }

    def check(self, errors):
        self._check_date(errors, "date_of_birth")
        self._check_email(errors)
        self._check_phone(errors)
        ssn = self.values.get("ssn")
        if not is_blank(ssn) and not is_valid_ssn(ssn.strip()):
            errors["ssn"] = "SSN must be in XXX-XX-XXXX format"
        if self.values.get("status") not in ("active", "inactive"):
            errors["status"] = "Status must be active or inactive"
        if self.values.get("risk_level") not in ("low", "medium", "high"):
            errors["risk_level"] = "Risk level must be low, medium or high"


class EditContactForm(FormDialog):
    TITLE = "Edit Contact Information"
    FIELDS = {
        "id": None,
        "phone": "", "email": "",
        "address_line1": "", "address_line2": "", "city": "", "state": "", "zip_code": "",
        "emergency_contact_name": "", "emergency_contact_phone": "",
        "emergency_contact_relation": "",
    }
    REQUIRED = {
        "phone": "Phone number is required",
        "email": "Email is required",
        "address_line1": "Address is required",
    }

    def check(self, errors):
        self._check_email(errors)
        self._check_phone(errors)
        self._check_phone(errors, "emergency_contact_phone")
        zip_code = self.values.get("zip_code")
        if not is_blank(zip_code) and not is_valid_zip(zip_code.strip()):
            errors["zip_code"] = "Please enter a valid ZIP code"

    def build_payload(self):
        data = super().build_payload()
        data["state"] = normalize_state(data["state"])
        return data


class EditInsuranceForm(FormDialog):
    TITLE = "Edit Insurance"
    FIELDS = {
        "id": None,
        "insurance_company": "", "insurance_id": "", "group_number": "",
        "policy_holder_name": "", "policy_holder_relationship": "",
        "secondary_insurance": "", "secondary_insurance_id": "",
    }
    REQUIRED = {
        "insurance_company": "Insurance company is required",
        "insurance_id": "Insurance ID is required",
    }


class MedicalHistoryForm(FormDialog):
    """Editable lists of allergies, medications, conditions, surgeries and family history."""

    TITLE = "Medical History"
    FIELDS = {
        "patient_id": None,
        "allergies": [],
        "medications": [],
        "conditions": [],
        "surgeries": [],
        "family_history": [],
    }

    def add_allergy(self, allergen: str, reaction: str, severity: str | None = None) -> dict | None:
        if is_blank(allergen) or is_blank(reaction):
            return None
        return self._add("allergies", {
            "allergen": allergen.strip(),
            "reaction": reaction.strip(),
            "severity": _clean(severity) or "Unknown",
        })

    def add_medication(
        self,
        name: str,
        dosage: str,
        frequency: str | None = None,
        start_date: str | None = None,
    ) -> dict | None:
        if is_blank(name) or is_blank(dosage):
            return None
        return self._add("medications", {
            "name": name.strip(),
            "dosage": dosage.strip(),
            "frequency": _clean(frequency),
            "start_date": _clean(start_date) or self.current_date().isoformat(),
        })

    def add_condition(
        self,
        condition: str,
        diagnosis_date: str | None = None,
        status: str | None = None,
        notes: str | None = None,
    ) -> dict | None:
        if is_blank(condition):
            return None
        return self._add("conditions", {
            "condition": condition.strip(),
            "diagnosis_date": _clean(diagnosis_date) or self.current_date().isoformat(),
            "status": _clean(status) or "Active",
            "notes": _clean(notes),
        })

    def add_surgery(
        self,
        procedure: str,
        surgery_date: str | None = None,
        surgeon: str | None = None,
        hospital: str | None = None,
    ) -> dict | None:
        if is_blank(procedure):
            return None
        return self._add("surgeries", {
            "procedure": procedure.strip(),
            "date": _clean(surgery_date),
            "surgeon": _clean(surgeon),
            "hospital": _clean(hospital),
        })

    def add_family_history(self, relation: str, condition: str, age: str | None = None) -> dict | None:
        if is_blank(relation) or is_blank(condition):
            return None
        return self._add("family_history", {
            "relation": relation.strip(),
            "condition": condition.strip(),
            "age": _clean(age),
        })

    def remove_item(self, list_name: str, index: int) -> dict:
        return self.values[list_name].pop(index)

    def check(self, errors):
        if not (self.values["allergies"] or self.values["medications"] or self.values["conditions"]):
            errors["general"] = "Please add at least one allergy, medication, or condition"

    def build_payload(self):
        return copy.deepcopy(self.values)

    def _add(self, list_name: str, item: dict) -> dict:
        self.values[list_name].append(item)
        self.errors.pop("general", None)
        return item


# =============================================================================
# Clinical workflow forms
# =============================================================================

# name -> (label, minimum, maximum)
VITAL_RANGES = {
    "blood_pressure_systolic": ("Systolic pressure", 50, 300),
    "blood_pressure_diastolic": ("Diastolic pressure", 30, 200),
    "heart_rate": ("Heart rate", 30, 300),
    "temperature": ("Temperature", 90, 110),
    "respiratory_rate": ("Respiratory rate", 8, 40),
    "oxygen_saturation": ("Oxygen saturation", 70, 100),
    "weight": ("Weight", 50, 1000),
    "height": ("Height", 24, 96),
}

INTEGER_VITALS = {
    "blood_pressure_systolic", "blood_pressure_diastolic", "heart_rate",
    "respiratory_rate", "oxygen_saturation",
}


class VitalSignsForm(FormDialog):
    TITLE = "Record Vital Signs"
    FIELDS = {
        "patient_id": None,
        **{name: "" for name in VITAL_RANGES},
        "pain_level": "",
        "notes": "",
        "recorded_by": "",
    }
    REQUIRED = {name: f"{label} is required" for name, (label, _, _) in VITAL_RANGES.items()}

    def _number(self, name: str) -> float | None:
        value = self.values.get(name)
        if is_blank(value):
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    def check(self, errors):
        for name, (label, low, high) in VITAL_RANGES.items():
            if name in errors:
                continue
            number = self._number(name)
            if number is None:
                errors[name] = f"{label} must be a number"
            elif not low <= number <= high:
                errors[name] = f"{label} must be between {low} and {high}"

        systolic = self._number("blood_pressure_systolic")
        diastolic = self._number("blood_pressure_diastolic")
        if (
            "blood_pressure_systolic" not in errors
            and "blood_pressure_diastolic" not in errors
            and systolic <= diastolic
        ):
            errors["blood_pressure_systolic"] = "Systolic pressure must be higher than diastolic"

        if not is_blank(self.values.get("pain_level")):
            pain = self._number("pain_level")
            if pain is None or not 0 <= pain <= 10:
                errors["pain_level"] = "Pain level must be between 0 and 10"

    def build_payload(self):
        payload = {"patient_id": self.values["patient_id"]}
        for name in VITAL_RANGES:
            number = self._number(name)
            payload[name] = int(number) if name in INTEGER_VITALS else number
        payload["bmi"] = calculate_bmi(payload["weight"], payload["height"])
        pain = self._number("pain_level")
        payload["pain_level"] = int(pain) if pain is not None else None
        payload["notes"] = _clean(self.values["notes"])
        payload["recorded_by"] = _clean(self.values["recorded_by"])
        return payload


class ProgressNotesForm(FormDialog):
    TITLE = "Progress Note"
    FIELDS = {
        "patient_id": None,
        "note_type": "", "note_date": TODAY, "note_time": "", "provider": "",
        "chief_complaint": "", "history_of_present_illness": "", "review_of_systems": "",
        "physical_examination": "", "assessment": "", "plan": "", "medications": "",
        "follow_up": "", "additional_notes": "", "vital_signs": "", "allergies": "",
        "social_history": "", "family_history": "",
    }
    REQUIRED = {
        "note_type": "Note type is required",
        "note_date": "Note date is required",
        "provider": "Provider is required",
        "chief_complaint": "Chief complaint is required",
        "assessment": "Assessment is required",
        "plan": "Plan is required",
    }

    def check(self, errors):
        self._check_date(errors, "note_date")


class TreatmentPlanForm(FormDialog):
    TITLE = "Treatment Plan"
    FIELDS = {
        "patient_id": None,
        "plan_date": TODAY, "provider": "", "diagnosis": "", "treatment_goals": "",
        "treatment_plan": "", "medications": "", "procedures": "",
        "lifestyle_modifications": "", "follow_up_schedule": "", "expected_outcome": "",
        "risk_factors": "", "contraindications": "", "patient_education": "",
        "additional_notes": "",
    }
    REQUIRED = {
        "plan_date": "Plan date is required",
        "provider": "Provider is required",
        "diagnosis": "Diagnosis is required",
        "treatment_goals": "Treatment goals are required",
        "treatment_plan": "Treatment plan is required",
    }

    def check(self, errors):
        self._check_date(errors, "plan_date")

    def build_payload(self):
        return {**super().build_payload(), "status": "active"}


class ScheduleAppointmentForm(FormDialog):
    TITLE = "Schedule Appointment"
    FIELDS = {
        "patient_id": None,
        "date": "", "time": "", "duration": "30", "type": "", "provider": "",
        "location": "", "reason": "", "notes": "", "reminder_method": "",
    }
    REQUIRED = {
        "date": "Date is required",
        "time": "Time is required",
        "type": "Appointment type is required",
        "provider": "Provider is required",
        "reason": "Reason for visit is required",
    }

    def check(self, errors):
        if "date" not in errors:
            day = parse_date(self.values["date"])
            if day is None:
                errors["date"] = "Please enter a valid date (YYYY-MM-DD)"
            elif day < self.current_date():
                errors["date"] = "Appointment date cannot be in the past"
        if "time" not in errors and not is_valid_time(self.values["time"].strip()):
            errors["time"] = "Please enter a valid time (HH:MM)"
        duration = str(self.values.get("duration") or "").strip()
        if duration and not duration.isdigit():
            errors["duration"] = "Duration must be a whole number of minutes"

    def build_payload(self):
        data = super().build_payload()
        data["duration"] = int(data["duration"] or 30)
        data["status"] = "scheduled"
        return data


# =============================================================================
# Documents and messaging
# =============================================================================

class DocumentUploadForm(FormDialog):
    TITLE = "Upload Document"
    FIELDS = {
        "patient_id": None,
        "document_type": "", "document_name": "", "description": "",
        "file": "", "uploaded_by": "",
    }
    REQUIRED = {
        "document_type": "Document type is required",
        "document_name": "Document name is required",
        "file": "Please select a file",
        "uploaded_by": "Uploader name is required",
    }

    def check(self, errors):
        if "file" in errors:
            return
        path = Path(str(self.values["file"]).strip()).expanduser()
        if path.suffix.lower() not in ALLOWED_DOCUMENT_EXTENSIONS:
            allowed = ", ".join(sorted(ALLOWED_DOCUMENT_EXTENSIONS))
            errors["file"] = f"File type not supported. Allowed: {allowed}"
        elif not path.is_file():
            errors["file"] = "File not found"

    def build_payload(self):
        data = super().build_payload()
        path = Path(data.pop("file")).expanduser()
        data.update({
            "file_name": path.name,
            "file_size": path.stat().st_size,
            "mime_type": mimetypes.guess_type(path.name)[0] or "application/octet-stream",
            "storage_path": str(path.resolve()),
        })
        return data


class MessagingForm(FormDialog):
    TITLE = "Send Message"
    FIELDS = {
        "patient_id": None,
        "message_type": "", "subject": "", "message": "", "priority": "normal",
        "send_method": "", "scheduled_send": "", "sender": "", "attachments": [],
    }
    REQUIRED = {
        "message_type": "Message type is required",
        "subject": "Subject is required",
        "message": "Message is required",
        "send_method": "Send method is required",
        "sender": "Sender is required",
    }

    def check(self, errors):
        if self.values.get("priority") not in ("low", "normal", "high", "urgent"):
            errors["priority"] = "Priority must be low, normal, high or urgent"

    def build_payload(self):
        data = super().build_payload()
        data["attachments"] = list(self.values["attachments"]) or None
        data["status"] = "scheduled" if data["scheduled_send"] else "sent"
        return data


# =============================================================================
# Practice administration
# =============================================================================

PAY_TO_FIELDS = {
    "pay_to_address_line1": "address_line1",
    "pay_to_address_line2": "address_line2",
    "pay_to_city": "city",
    "pay_to_state": "state",
    "pay_to_zip_code": "zip_code",
    "pay_to_phone": "phone",
    "pay_to_fax": "fax",
    "pay_to_email": "email",
}


class PracticeForm(FormDialog):
    TITLE = "Practice"
    FIELDS = {
        "id": None,
        "name": "", "npi": "", "organization_type": "", "taxonomy_specialty": "",
        "reference_number": "", "tcn_prefix": "", "statement_tcn_prefix": "", "code": "",
        "address_line1": "", "address_line2": "", "city": "", "state": "", "zip_code": "",
        "time_zone": "", "phone": "", "fax": "", "email": "",
        "pay_to_same_as_primary": True,
        **{name: "" for name in PAY_TO_FIELDS},
        "status": "active",
    }

    REQUIRED = {
        "name": "Practice name is required",
        "npi": "NPI is required",
        "taxonomy_specialty": "Taxonomy specialty is required",
    }

    def uses_primary_for_pay_to(self) -> bool:
        return _as_bool(self.values["pay_to_same_as_primary"])

    def is_field_active(self, name):
        return not (name in PAY_TO_FIELDS and self.uses_primary_for_pay_to())

    def check(self, errors):
        if "npi" not in errors and not is_valid_npi(self.values["npi"]):
            errors["npi"] = "NPI must be exactly 10 digits"
        self._check_email(errors)
        self._check_phone(errors)
        if not self.uses_primary_for_pay_to():
            self._check_email(errors, "pay_to_email")
            self._check_phone(errors, "pay_to_phone")
        if self.values.get("status") not in PRACTICE_STATUSES:
            errors["status"] = "Status must be active, inactive or pending"

    def build_payload(self):
        data = super().build_payload()
        data["npi"] = clean_npi(data["npi"])
        data["state"] = normalize_state(data["state"])
        data["pay_to_same_as_primary"] = self.uses_primary_for_pay_to()
        if data["pay_to_same_as_primary"]:
            for pay_to, primary in PAY_TO_FIELDS.items():
                data[pay_to] = data[primary]
        return data
