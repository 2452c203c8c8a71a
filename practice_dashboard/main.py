"""Practice dashboard console with command handlers over the records database."""

import shlex
import sys
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import date
from pathlib import Path

from pydantic import ValidationError
from rich.console import Console
from rich.markdown import Markdown
from rich.status import Status
from rich.table import Table

from practice_dashboard.chat_widget import ChatWidget, MessageTooLongError
from practice_dashboard.csv_io import (
    default_export_filename,
    export_patients,
    export_practices,
    import_patients,
)
from practice_dashboard.forms import (
    DocumentUploadForm,
    EditContactForm,
    EditInsuranceForm,
    EditPatientForm,
    FormDialog,
    MedicalHistoryForm,
    MessagingForm,
    PatientRegistrationForm,
    PracticeForm,
    ProgressNotesForm,
    ScheduleAppointmentForm,
    TreatmentPlanForm,
    VitalSignsForm,
)
from practice_dashboard.inactivity import InactivityTimer, InactivityWarning
from practice_dashboard.logging_config import setup_logging
from practice_dashboard.navigation import Permission, Session, Sidebar
from practice_dashboard.notifications import Notifier, run_backend_call
from practice_dashboard.npi_lookup import (
    NPILookupError,
    practice_fields_from_npi,
    search_npi_by_name,
    search_npi_by_number,
    search_taxonomy_codes,
    summarize_npi_result,
)
from practice_dashboard.patient_search import PatientDirectory, Page
from practice_dashboard.practice_records.database.clinical_repository import (
    APPOINTMENT_STATUSES,
    Appointment,
    ClinicalRepository,
    ProgressNote,
    TreatmentPlan,
    VitalSigns,
)
from practice_dashboard.practice_records.database.communication_repository import (
    CommunicationRepository,
    Document,
    Message,
)
from practice_dashboard.practice_records.database.connection import init_database
from practice_dashboard.practice_records.database.patient_repository import (
    MedicalHistory,
    Patient,
    PatientRepository,
)
from practice_dashboard.practice_records.database.practice_repository import (
    Practice,
    PracticeRepository,
)
from practice_dashboard.practice_records.database.session_repository import SessionRepository

console = Console()
patient_repo = PatientRepository()
practice_repo = PracticeRepository()
clinical_repo = ClinicalRepository()
communication_repo = CommunicationRepository()
session_repo = SessionRepository()

# Form fields filled in by the dashboard rather than the user
HIDDEN_FIELDS = {"id", "patient_id"}


class FormCancelled(Exception):
    """Raised when the user abandons a form."""
    pass


@dataclass
class DashboardState:
    session: Session
    sidebar: Sidebar
    notifier: Notifier
    directory: PatientDirectory
    chat: ChatWidget
    ask: Callable[[str], str] = console.input
    timer: InactivityTimer | None = None
    warning: InactivityWarning | None = None
    selected_patient_id: str | None = None
    logged_out: bool = False
    today: date | None = None
    history: list[str] = field(default_factory=list)

    def record_activity(self, event: str = "keypress") -> None:
        if self.timer:
            self.timer.record_activity(event)
        if self.warning:
            self.warning.record_activity(event)

    def logout(self) -> None:
        if self.logged_out:
            return
        self.logged_out = True
        if self.warning:
            self.warning.close()
        self.notifier.toast("Logged out", "You have been signed out of the dashboard.")


def build_state(
    session: Session,
    ask: Callable[[str], str] = console.input,
    today: date | None = None,
    notifier: Notifier | None = None,
) -> DashboardState:
    """Wire the dashboard components for one signed-in session."""
    notifier = notifier or Notifier(console)
    state = DashboardState(
        session=session,
        sidebar=Sidebar(session),
        notifier=notifier,
        directory=PatientDirectory(patient_repo, clinical_repo, today),
        chat=ChatWidget(
            session.user.id,
            session.company_id,
            repo=communication_repo,
            context={
                "user": session.user.full_name or session.user.email,
                "company": session.current.company.name if session.current else None,
            },
        ),
        ask=ask,
        today=today,
    )
    state.warning = InactivityWarning(on_logout=state.logout, on_stay_active=lambda: state.timer.reset())
    state.timer = InactivityTimer(on_warning=state.warning.open, on_logout=state.logout)
    return state


# =============================================================================
# Form filling
# =============================================================================

def _label(name: str) -> str:
    return name.replace("_", " ").capitalize()


def _prompt_fields(state: DashboardState, form: FormDialog, names: list[str]) -> None:
    for name in names:
        if not form.is_field_active(name):
            continue
        current = form.values.get(name)
        hint = f" [{current}]" if current not in (None, "") else ""
        answer = state.ask(f"{_label(name)}{hint}: ").strip()
        state.record_activity("keypress")
        if answer == "!":
            raise FormCancelled()
        if answer:
            form.update(**{name: answer})


def fill_form(state: DashboardState, form: FormDialog, initial: dict | None = None) -> dict | None:
    """
    Prompt for every visible field and submit.

    Only the fields that failed validation are asked for again. Returns the
    submitted payload, or None when the form is cancelled.
    """
    if initial is not None or not form.is_open:
        form.open(initial)
    console.print(f"\n[bold blue]{form.TITLE}[/bold blue] [dim](blank keeps the current value, '!' cancels)[/dim]")

    names = [
        name for name, value in form.values.items()
        if name not in HIDDEN_FIELDS and not isinstance(value, list)
    ]
    try:
        _prompt_fields(state, form, names)
        while True:
            payload = form.submit()
            if payload is not None:
                return payload
            retry = [name for name in form.errors if name in names]
            if not retry:
                return None
            for name in retry:
                console.print(f"  [red]{_label(name)}:[/red] {form.errors[name]}")
            _prompt_fields(state, form, retry)
    except FormCancelled:
        form.close()
        console.print("[dim]Cancelled.[/dim]")
        return None


# =============================================================================
# Helpers
# =============================================================================

def _resolve_patient(state: DashboardState, args: list[str]) -> Patient | None:
    """Patient named by PAT- id or internal id, else the selected patient."""
    key = args[0] if args else state.selected_patient_id
    if not key:
        state.notifier.error("No patient selected", "Pass a patient id or use 'show <id>' first.")
        return None

    patient = run_backend_call(state.notifier, "Could not load patient", _find_patient, key)
    if patient is None:
        state.notifier.error("Patient not found", key)
        return None
    state.selected_patient_id = patient.id
    return patient


def _find_patient(key: str) -> Patient | None:
    if key.upper().startswith("PAT-"):
        return patient_repo.get_by_patient_id(key.upper())
    return patient_repo.get_by_id(key)


def _print_page(page: Page) -> None:
    table = Table(title=f"Patients (page {page.page} of {page.total_pages}, {page.total_count} total)")
    for column in ("Patient ID", "Name", "Age", "Phone", "Insurance", "Status", "Risk", "Balance", "Last Visit"):
        table.add_column(column)
    for p in page.items:
        table.add_row(
            p.patient_id or "", p.name, str(p.age), p.phone or "", p.insurance or "",
            p.status, p.risk_level, f"${p.outstanding_balance:,.2f}", p.last_visit or "-",
        )
    console.print(table)


def _find_practice(key: str) -> Practice | None:
    """Practice by internal id, else by exact NPI."""
    practice = practice_repo.get_by_id(key)
    if practice is None:
        practice = next((p for p in practice_repo.search(key) if p.npi == key), None)
    return practice


def _resolve_practice(state: DashboardState, args: list[str]) -> Practice | None:
    if not args:
        state.notifier.error("No practice given", "Pass a practice id or NPI.")
        return None
    practice = run_backend_call(state.notifier, "Could not load practice", _find_practice, args[0])
    if practice is None:
        state.notifier.error("Practice not found", args[0])
    return practice


def _patient_names(patient_ids: list[str]) -> dict[str, str]:
    names = {}
    for patient_id in set(patient_ids):
        patient = patient_repo.get_by_id(patient_id)
        if patient:
            names[patient_id] = patient.full_name
    return names


def _import_patient(patient: Patient, changed_by: str) -> Patient | None:
    """Create one imported patient; returns None when they are already on file."""
    existing = patient_repo.find_existing_patient(
        first_name=patient.first_name, last_name=patient.last_name,
        date_of_birth=patient.date_of_birth,
    )
    if existing:
        return None
    if patient.patient_id and patient_repo.get_by_patient_id(patient.patient_id):
        patient.patient_id = None
    return patient_repo.create(patient, changed_by=changed_by)


def _print_table(title: str, records: list, columns: tuple[str, ...]) -> None:
    table = Table(title=title)
    for name in columns:
        table.add_column(_label(name))
    for record in records:
        table.add_row(*("" if getattr(record, name) is None else str(getattr(record, name)) for name in columns))
    console.print(table)


def _print_record(title: str, data: dict) -> None:
    table = Table(title=title, show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for name, value in data.items():
        if value not in (None, "", []):
            table.add_row(_label(name), str(value))
    console.print(table)


def _save_history_from_registration(patient_id: str, payload: dict) -> None:
    history = MedicalHistory(
        patient_id=patient_id,
        allergies=[{"allergen": a, "reaction": None, "severity": "Unknown"} for a in payload["allergies"]],
        medications=[{"name": m, "dosage": None, "frequency": None, "start_date": None} for m in payload["medications"]],
        conditions=[{"condition": c, "diagnosis_date": None, "status": "Active", "notes": None} for c in payload["conditions"]],
    )
    if history.allergies or history.medications or history.conditions:
        patient_repo.save_medical_history(history)


# =============================================================================
# Command handlers
# =============================================================================

def handle_help(state: DashboardState, args: list[str]) -> None:
    """Show available commands."""
    table = Table(title="Commands")
    table.add_column("Command", style="bold cyan")
    table.add_column("Description")
    for name, handler in COMMAND_HANDLERS.items():
        if not can_run(state, name):
            continue
        table.add_row(name, (handler.__doc__ or "").strip())
    console.print(table)


def handle_pages(state: DashboardState, args: list[str]) -> None:
    """List the pages you can open."""
    for heading, items in (
        ("Main", state.sidebar.main_items()),
        ("Customer Setup", state.sidebar.customer_setup_items()),
    ):
        if not items:
            continue
        console.print(f"[bold]{heading}[/bold]")
        for item in items:
            marker = "*" if item.id == state.sidebar.active_page else " "
            console.print(f" {marker} {item.id:<26} {item.route}")


def handle_nav(state: DashboardState, args: list[str]) -> None:
    """nav <page-id|url>: open a page."""
    if not args:
        state.notifier.error("Missing page", "Usage: nav <page-id>")
        return
    target = args[0]
    route = state.sidebar.navigate_to_url(target) if target.startswith("/") else state.sidebar.select(target)
    if route is None:
        state.notifier.error("Page not available", target)
        return
    console.print(f"[bold]{state.sidebar.active_page}[/bold] -> {route}")


def handle_patients(state: DashboardState, args: list[str]) -> None:
    """patients [page]: list patients."""
    if run_backend_call(state.notifier, "Could not load patients", state.directory.refresh) is None:
        return
    page = int(args[0]) if args and args[0].isdigit() else state.directory.page
    _print_page(state.directory.go_to(page))


def handle_search(state: DashboardState, args: list[str]) -> None:
    """search [text] [filter=value ...]: filter the patient list (e.g. risk_level=high)."""
    changes = {}
    terms = []
    for arg in args:
        if "=" in arg:
            key, value = arg.split("=", 1)
            changes[key] = value
        else:
            terms.append(arg)
    if args == ["clear"]:
        state.directory.clear_filters()
    else:
        changes["search_term"] = " ".join(terms)
        try:
            state.directory.set_filters(**changes)
        except ValidationError as e:
            state.notifier.error("Invalid filter", "; ".join(err["msg"] for err in e.errors()))
            return
    if state.directory.is_stale:
        if run_backend_call(state.notifier, "Could not load patients", state.directory.refresh) is None:
            return
    _print_page(state.directory.current_page())


# (title, list query by patient id, columns shown)
PATIENT_RECORD_SECTIONS = [
    ("Appointments", clinical_repo.list_appointments, ("id", "date", "time", "type", "provider", "status")),
    ("Vital signs", clinical_repo.list_vitals,
     ("recorded_at", "blood_pressure_systolic", "blood_pressure_diastolic", "heart_rate",
      "temperature", "oxygen_saturation", "bmi")),
    ("Progress notes", clinical_repo.list_progress_notes, ("note_date", "note_type", "provider", "chief_complaint")),
    ("Treatment plans", clinical_repo.list_treatment_plans, ("plan_date", "provider", "diagnosis", "status")),
    ("Documents", communication_repo.list_documents, ("uploaded_at", "document_type", "document_name", "file_name")),
    ("Messages", communication_repo.list_messages, ("sent_at", "message_type", "subject", "send_method", "status")),
]


def handle_show(state: DashboardState, args: list[str]) -> None:
    """show <patient>: patient details, history and clinical records."""
    patient = _resolve_patient(state, args)
    if not patient:
        return
    _print_record(f"{patient.full_name} ({patient.patient_id})", asdict(patient))

    history = run_backend_call(state.notifier, "Could not load medical history", patient_repo.get_medical_history, patient.id)
    if history:
        for name in ("allergies", "medications", "conditions", "surgeries", "family_history"):
            items = getattr(history, name)
            if items:
                summary = "; ".join(", ".join(str(v) for v in item.values() if v) for item in items)
                console.print(f"[bold]{_label(name)}:[/bold] {summary}")

    for title, loader, columns in PATIENT_RECORD_SECTIONS:
        records = run_backend_call(state.notifier, f"Could not load {title.lower()}", loader, patient.id)
        if records:
            _print_table(title, records, columns)


def handle_register(state: DashboardState, args: list[str]) -> None:
    """Register a new patient."""
    def save(payload: dict) -> None:
        existing = run_backend_call(
            state.notifier, "Could not check for duplicates", patient_repo.find_existing_patient,
            first_name=payload["first_name"], last_name=payload["last_name"],
            date_of_birth=payload["date_of_birth"],
        )
        if existing:
            state.notifier.error("Patient already exists", f"{existing.full_name} ({existing.patient_id})")
            return

        values = {name: payload.get(name) for name in PatientRepository.PATIENT_FIELDS if name in payload}
        patient = run_backend_call(
            state.notifier, "Could not register patient", patient_repo.create,
            Patient(id=None, **values), changed_by=state.session.user.email,
        )
        if patient is None:
            return
        state.directory.invalidate()
        run_backend_call(state.notifier, "Could not save medical history", _save_history_from_registration, patient.id, payload)
        state.selected_patient_id = patient.id
        state.notifier.success("Patient registered", f"{payload['name']} ({patient.patient_id})")

    fill_form(state, PatientRegistrationForm(save, state.today))


def _edit_patient(state: DashboardState, args: list[str], form_cls: type[FormDialog], title: str) -> None:
    patient = _resolve_patient(state, args)
    if not patient:
        return

    def save(payload: dict) -> None:
        patient_id = payload.pop("id")
        updated = run_backend_call(
            state.notifier, f"Could not update {title.lower()}", patient_repo.update,
            patient_id, payload, changed_by=state.session.user.email,
        )
        if updated:
            state.directory.invalidate()
            state.notifier.success(f"{title} updated", updated.full_name)

    fill_form(state, form_cls(save, state.today), initial=asdict(patient))


def handle_edit(state: DashboardState, args: list[str]) -> None:
    """edit <patient>: edit demographics."""
    _edit_patient(state, args, EditPatientForm, "Patient")


def handle_contact(state: DashboardState, args: list[str]) -> None:
    """contact <patient>: edit contact information."""
    _edit_patient(state, args, EditContactForm, "Contact information")


def handle_insurance(state: DashboardState, args: list[str]) -> None:
    """insurance <patient>: edit insurance."""
    _edit_patient(state, args, EditInsuranceForm, "Insurance")


HISTORY_PROMPTS = {
    "allergy": ("add_allergy", ["allergen", "reaction", "severity"]),
    "medication": ("add_medication", ["name", "dosage", "frequency", "start_date"]),
    "condition": ("add_condition", ["condition", "diagnosis_date", "status", "notes"]),
    "surgery": ("add_surgery", ["procedure", "surgery_date", "surgeon", "hospital"]),
    "family": ("add_family_history", ["relation", "condition", "age"]),
}


def handle_history(state: DashboardState, args: list[str]) -> None:
    """history <patient>: edit medical history."""
    patient = _resolve_patient(state, args)
    if not patient:
        return
    history = run_backend_call(state.notifier, "Could not load medical history", patient_repo.get_medical_history, patient.id)
    if history is None:
        return

    def save(payload: dict) -> None:
        saved = run_backend_call(
            state.notifier, "Could not save medical history", patient_repo.save_medical_history,
            MedicalHistory(**payload),
        )
        if saved:
            state.notifier.success("Medical history saved", patient.full_name)

    form = MedicalHistoryForm(save, state.today)
    form.open(asdict(history))
    kinds = "/".join(HISTORY_PROMPTS)
    while True:
        kind = state.ask(f"Add {kinds}, remove <list> <n>, save or cancel: ").strip().lower()
        state.record_activity("keypress")
        if kind == "cancel":
            form.close()
            return
        if kind == "save":
            if form.submit() is not None:
                return
            for message in form.errors.values():
                console.print(f"  [red]{message}[/red]")
            continue
        if kind.startswith("remove "):
            parts = kind.split()
            if len(parts) == 3 and parts[1] in form.values and parts[2].isdigit():
                index = int(parts[2]) - 1
                if 0 <= index < len(form.values[parts[1]]):
                    form.remove_item(parts[1], index)
                    continue
            console.print("[red]Usage: remove <list name> <item number>[/red]")
            continue
        if kind not in HISTORY_PROMPTS:
            continue
        method, prompts = HISTORY_PROMPTS[kind]
        values = [state.ask(f"  {_label(p)}: ").strip() or None for p in prompts]
        if getattr(form, method)(*values) is None:
            console.print("[red]Required details missing, item not added[/red]")


def handle_delete(state: DashboardState, args: list[str]) -> None:
    """delete <patient>: delete a patient and their records."""
    patient = _resolve_patient(state, args)
    if not patient:
        return
    confirm = state.ask(f"Delete {patient.full_name} and all their records? [y/N] ").strip().lower()
    if confirm not in ("y", "yes"):
        return
    if run_backend_call(state.notifier, "Could not delete patient", patient_repo.delete, patient.id):
        state.directory.invalidate()
        state.selected_patient_id = None
        state.notifier.success("Patient deleted", patient.full_name)


def _patient_record_form(
    state: DashboardState,
    args: list[str],
    form_cls: type[FormDialog],
    record_cls: type,
    save_func: Callable,
    success: str,
) -> None:
    patient = _resolve_patient(state, args)
    if not patient:
        return

    def save(payload: dict) -> None:
        if run_backend_call(state.notifier, f"Could not save {success.lower()}", save_func, record_cls(id=None, **payload)):
            state.directory.invalidate()
            state.notifier.success(f"{success} saved", patient.full_name)

    fill_form(state, form_cls(save, state.today), initial={"patient_id": patient.id})


def handle_vitals(state: DashboardState, args: list[str]) -> None:
    """vitals <patient>: record vital signs."""
    _patient_record_form(state, args, VitalSignsForm, VitalSigns, clinical_repo.record_vitals, "Vital signs")


def handle_note(state: DashboardState, args: list[str]) -> None:
    """note <patient>: write a progress note."""
    _patient_record_form(state, args, ProgressNotesForm, ProgressNote, clinical_repo.create_progress_note, "Progress note")


def handle_plan(state: DashboardState, args: list[str]) -> None:
    """plan <patient>: create a treatment plan."""
    _patient_record_form(state, args, TreatmentPlanForm, TreatmentPlan, clinical_repo.create_treatment_plan, "Treatment plan")


def handle_schedule(state: DashboardState, args: list[str]) -> None:
    """schedule <patient>: schedule an appointment."""
    _patient_record_form(state, args, ScheduleAppointmentForm, Appointment, clinical_repo.create_appointment, "Appointment")


def handle_upload(state: DashboardState, args: list[str]) -> None:
    """upload <patient>: attach a document."""
    _patient_record_form(state, args, DocumentUploadForm, Document, communication_repo.create_document, "Document")


def handle_message(state: DashboardState, args: list[str]) -> None:
    """message <patient>: send a message to a patient."""
    _patient_record_form(state, args, MessagingForm, Message, communication_repo.create_message, "Message")


def handle_appointments(state: DashboardState, args: list[str]) -> None:
    """appointments [YYYY-MM-DD]: appointments for a day (default today)."""
    day = args[0] if args else (state.today or date.today()).isoformat()
    appointments = run_backend_call(state.notifier, "Could not load appointments", clinical_repo.list_appointments_on, day)
    if appointments is None:
        return
    table = Table(title=f"Appointments on {day}")
    for column in ("Time", "Patient", "Type", "Provider", "Reason", "Status", "ID"):
        table.add_column(column)
    names = run_backend_call(
        state.notifier, "Could not load patients", _patient_names, [a.patient_id for a in appointments],
    ) or {}
    for appt in appointments:
        table.add_row(appt.time, names.get(appt.patient_id, appt.patient_id), appt.type, appt.provider, appt.reason or "", appt.status, appt.id)
    console.print(table)


def handle_appointment_status(state: DashboardState, args: list[str]) -> None:
    """appointment-status <appointment-id> <status>: confirm, complete, cancel or mark a no-show."""
    if len(args) != 2 or args[1].lower() not in APPOINTMENT_STATUSES:
        state.notifier.error(
            "Invalid appointment status",
            f"Usage: appointment-status <appointment-id> <{'|'.join(APPOINTMENT_STATUSES)}>",
        )
        return
    appointment_id, status = args[0], args[1].lower()
    appointment = run_backend_call(
        state.notifier, "Could not update appointment", clinical_repo.update_appointment_status,
        appointment_id, status,
    )
    if appointment is None:
        state.notifier.error("Appointment not found", appointment_id)
        return
    state.directory.invalidate()
    state.notifier.success("Appointment updated", f"{appointment.date} {appointment.time} is now {appointment.status}")


def handle_export(state: DashboardState, args: list[str]) -> None:
    """export [path]: export patients to CSV."""
    path = Path(args[0]) if args else Path(default_export_filename(state.today))
    patients = run_backend_call(state.notifier, "Could not load patients", patient_repo.list_patients)
    if patients is None:
        return
    if run_backend_call(state.notifier, "Export failed", export_patients, patients, path):
        state.notifier.success("Export complete", f"{len(patients)} patients written to {path}")


def handle_import(state: DashboardState, args: list[str]) -> None:
    """import <path>: import patients from CSV."""
    if not args:
        state.notifier.error("Missing file", "Usage: import <path>")
        return
    result = run_backend_call(state.notifier, "Import failed", import_patients, args[0])
    if result is None:
        return

    created = 0
    for patient in result.patients:
        if run_backend_call(state.notifier, f"Could not import {patient.full_name}", _import_patient, patient, "csv_import"):
            created += 1
    if created:
        state.directory.invalidate()

    for row, reason in result.skipped:
        console.print(f"  [yellow]Row {row} skipped:[/yellow] {reason}")
    state.notifier.success("Import complete", f"{created} patients imported")


def handle_practices(state: DashboardState, args: list[str]) -> None:
    """practices [text] [status=...]: list practices."""
    status = next((a.split("=", 1)[1] for a in args if a.startswith("status=")), None)
    term = " ".join(a for a in args if "=" not in a) or None
    practices = run_backend_call(state.notifier, "Could not load practices", practice_repo.search, term, status)
    if practices is None:
        return
    table = Table(title="Practices")
    for column in ("Name", "NPI", "Taxonomy", "City", "State", "Status", "ID"):
        table.add_column(column)
    for p in practices:
        table.add_row(p.name, p.npi, p.taxonomy_specialty or "", p.city or "", p.state or "", p.status, p.id)
    console.print(table)


def handle_practice_add(state: DashboardState, args: list[str]) -> None:
    """practice-add [npi]: add a practice, prefilled from the NPI registry."""
    initial = {}
    if args:
        try:
            result = search_npi_by_number(args[0])
        except NPILookupError as e:
            state.notifier.error("NPI lookup failed", str(e))
            result = None
        else:
            if result is None:
                state.notifier.toast("NPI not found", "Enter the practice details manually.")
        if result:
            initial = practice_fields_from_npi(summarize_npi_result(result))

    def save(payload: dict) -> None:
        practice = run_backend_call(
            state.notifier, "Could not save practice", practice_repo.create,
            Practice(**payload, company_id=state.session.company_id),
        )
        if practice:
            state.notifier.success("Practice saved", practice.name)

    fill_form(state, PracticeForm(save, state.today), initial=initial)


def handle_practice_edit(state: DashboardState, args: list[str]) -> None:
    """practice-edit <id|npi>: edit a practice."""
    practice = _resolve_practice(state, args)
    if not practice:
        return

    def save(payload: dict) -> None:
        practice_id = payload.pop("id")
        updated = run_backend_call(state.notifier, "Could not update practice", practice_repo.update, practice_id, payload)
        if updated:
            state.notifier.success("Practice updated", updated.name)

    fill_form(state, PracticeForm(save, state.today), initial=asdict(practice))


def handle_practice_delete(state: DashboardState, args: list[str]) -> None:
    """practice-delete <id|npi>: delete a practice."""
    practice = _resolve_practice(state, args)
    if not practice:
        return
    confirm = state.ask(f"Delete practice {practice.name}? [y/N] ").strip().lower()
    if confirm not in ("y", "yes"):
        return
    if run_backend_call(state.notifier, "Could not delete practice", practice_repo.delete, practice.id):
        state.notifier.success("Practice deleted", practice.name)


def handle_practice_export(state: DashboardState, args: list[str]) -> None:
    """practice-export [path]: export practices to CSV."""
    path = Path(args[0]) if args else Path(default_export_filename(state.today, "practices"))
    practices = run_backend_call(state.notifier, "Could not load practices", practice_repo.list_practices)
    if practices is None:
        return
    if run_backend_call(state.notifier, "Export failed", export_practices, practices, path):
        state.notifier.success("Export complete", f"{len(practices)} practices written to {path}")


def handle_npi(state: DashboardState, args: list[str]) -> None:
    """npi <number> | npi name <last> [first] [state]: search the NPI registry."""
    if not args:
        state.notifier.error("Missing NPI", "Usage: npi <number>")
        return

    try:
        with Status("Searching NPI registry...", console=console, spinner="dots"):
            if args[0] == "name":
                last, first, st = (args[1:] + [None, None, None])[:3]
                results = search_npi_by_name(first_name=first, last_name=last, state=st)
            else:
                result = search_npi_by_number(args[0])
                results = [result] if result else []
    except NPILookupError as e:
        state.notifier.error("NPI lookup failed", str(e))
        return

    if not results:
        state.notifier.toast("No matches", "The registry returned no providers.")
        return
    for result in results:
        record = summarize_npi_result(result)
        console.print(
            f"[bold]{record.npi}[/bold] {record.name} - {record.taxonomy_description or 'no taxonomy'}"
            f" ({record.city or ''} {record.state or ''})"
        )


def handle_taxonomy(state: DashboardState, args: list[str]) -> None:
    """taxonomy <keyword>: search common taxonomy codes."""
    for code in search_taxonomy_codes(" ".join(args)):
        console.print(f"[bold]{code.code}[/bold] {code.description}")


def handle_chat(state: DashboardState, args: list[str]) -> None:
    """chat <message> | chat clear: ask the billing assistant."""
    if args == ["clear"]:
        state.chat.clear()
        console.print("[dim]Chat history cleared.[/dim]")
        return
    state.chat.context["page"] = state.sidebar.active_page
    try:
        with Status("Thinking...", console=console, spinner="dots"):
            reply = state.chat.send(" ".join(args))
    except MessageTooLongError as e:
        state.notifier.error("Message not sent", str(e))
        return
    if reply:
        console.print("[bold cyan]Assistant:[/bold cyan]", Markdown(reply), "\n")


def handle_company(state: DashboardState, args: list[str]) -> None:
    """company [id|name]: list or switch companies."""
    if not args:
        for m in state.session.memberships:
            marker = "*" if state.session.current and m.company.id == state.session.current.company.id else " "
            console.print(f" {marker} {m.company.name} ({m.role})")
        return
    wanted = " ".join(args).lower()
    for m in state.session.memberships:
        if wanted in (m.company.id.lower(), m.company.name.lower()):
            state.session.switch_company(m.company.id)
            state.chat = ChatWidget(state.session.user.id, m.company.id, repo=communication_repo, context=state.chat.context)
            state.notifier.success("Company switched", m.company.name)
            return
    state.notifier.error("Company not found", " ".join(args))


def handle_logout(state: DashboardState, args: list[str]) -> None:
    """Sign out."""
    state.logout()


COMMAND_HANDLERS = {
    "help": handle_help,
    "pages": handle_pages,
    "nav": handle_nav,
    "patients": handle_patients,
    "search": handle_search,
    "show": handle_show,
    "register": handle_register,
    "edit": handle_edit,
    "contact": handle_contact,
    "insurance": handle_insurance,
    "history": handle_history,
    "delete": handle_delete,
    "vitals": handle_vitals,
    "note": handle_note,
    "plan": handle_plan,
    "schedule": handle_schedule,
    "appointments": handle_appointments,
    "appointment-status": handle_appointment_status,
    "upload": handle_upload,
    "message": handle_message,
    "export": handle_export,
    "import": handle_import,
    "practices": handle_practices,
    "practice-add": handle_practice_add,
    "practice-edit": handle_practice_edit,
    "practice-delete": handle_practice_delete,
    "practice-export": handle_practice_export,
    "npi": handle_npi,
    "taxonomy": handle_taxonomy,
    "chat": handle_chat,
    "company": handle_company,
    "logout": handle_logout,
}

# Commands not listed here are open to every role
COMMAND_PERMISSIONS = {
    "patients": Permission.VIEW_PATIENTS,
    "search": Permission.VIEW_PATIENTS,
    "show": Permission.VIEW_PATIENTS,
    "appointments": Permission.VIEW_PATIENTS,
    "register": Permission.CREATE_PATIENTS,
    "import": Permission.CREATE_PATIENTS,
    "edit": Permission.UPDATE_PATIENTS,
    "contact": Permission.UPDATE_PATIENTS,
    "insurance": Permission.UPDATE_PATIENTS,
    "history": Permission.UPDATE_PATIENTS,
    "vitals": Permission.UPDATE_PATIENTS,
    "note": Permission.UPDATE_PATIENTS,
    "plan": Permission.UPDATE_PATIENTS,
    "schedule": Permission.UPDATE_PATIENTS,
    "appointment-status": Permission.UPDATE_PATIENTS,
    "upload": Permission.UPDATE_PATIENTS,
    "message": Permission.UPDATE_PATIENTS,
    "delete": Permission.DELETE_PATIENTS,
    "export": Permission.EXPORT_DATA,
    "practice-export": Permission.EXPORT_DATA,
    "practices": Permission.MANAGE_SETTINGS,
    "practice-add": Permission.MANAGE_SETTINGS,
    "practice-edit": Permission.MANAGE_SETTINGS,
    "practice-delete": Permission.MANAGE_SETTINGS,
}


def can_run(state: DashboardState, command: str) -> bool:
    permission = COMMAND_PERMISSIONS.get(command)
    return permission is None or state.session.has_permission(permission)


def process_command(state: DashboardState, line: str) -> bool:
    """Run one command line. Returns False when the session should end."""
    try:
        parts = shlex.split(line)
    except ValueError as e:
        state.notifier.error("Could not parse command", str(e))
        return True
    if not parts:
        return True

    command, args = parts[0].lower(), parts[1:]
    if command in ("quit", "exit"):
        return False

    state.history.append(line)
    handler = COMMAND_HANDLERS.get(command)
    if handler is None:
        state.notifier.error("Unknown command", f"{command} (type 'help' for a list)")
        return True

    if not can_run(state, command):
        state.notifier.error("Not permitted", f"Your role cannot run '{command}'")
        return True

    handler(state, args)
    return not state.logged_out


def check_session(state: DashboardState) -> bool:
    """Apply the inactivity timeout before running the next command."""
    state.timer.poll()
    if state.logged_out:
        return False

    if state.warning.is_open:
        state.warning.open(state.timer.warning_time_remaining())
        console.print(
            f"[bold yellow]Your session will expire in {state.warning.display_time()} due to inactivity.[/bold yellow]"
        )
        answer = state.ask("Stay logged in? [Y/n] ").strip().lower()
        state.timer.poll()
        if state.logged_out:
            return False
        if answer in ("n", "no"):
            state.warning.logout_now()
            return False
        state.warning.stay_active()
    return True


def sign_in(ask: Callable[[str], str] = console.input) -> Session | None:
    email = ask("Email: ").strip()
    user = session_repo.get_user_by_email(email) if email else None
    if user is None:
        console.print("[bold red]No user with that email.[/bold red] Seed the database with "
                      "'python -m practice_dashboard.practice_records.scripts.seed_database'.")
        return None
    return Session(user, session_repo.get_companies_for_user(user.id), session_repo)


def main():
    """Main dashboard loop."""
    setup_logging()
    init_database()

    console.print("[bold blue]Practice Dashboard[/bold blue]")
    try:
        session = sign_in()
    except (EOFError, KeyboardInterrupt):
        return
    if session is None:
        return

    state = build_state(session)
    company = session.current.company.name if session.current else "no company"
    console.print(f"Signed in as [bold]{session.user.email}[/bold] ({company}). Type 'help' for commands.\n")

    is_tty = sys.stdin.isatty()

    while True:
        try:
            line = console.input(f"[bold green]{state.sidebar.active_page}>[/bold green] ").strip()
            if not is_tty and line:
                console.print(f"[dim]{line}[/dim]")
        except (EOFError, KeyboardInterrupt):
            console.print("\n[bold blue]Goodbye![/bold blue]")
            break

        if not check_session(state):
            console.print("[bold blue]Session ended.[/bold blue]")
            break
        state.record_activity("keypress")

        if not line:
            continue

        try:
            if not process_command(state, line):
                console.print("[bold blue]Goodbye![/bold blue]")
                break
        except Exception as e:
            console.print(f"[bold red]Error:[/bold red] {e}\n")


if __name__ == "__main__":
    main()
