"""Patient list: free-text search, AND-combined filters, sorting and paging."""

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from practice_dashboard.practice_records.database.clinical_repository import (
    ClinicalRepository,
    VisitStats,
)
from practice_dashboard.practice_records.database.patient_repository import (
    Patient,
    PatientRepository,
)
from practice_dashboard.validation import calculate_age

logger = logging.getLogger(__name__)

ITEMS_PER_PAGE = 25

# Inclusive (low, high) bounds, None meaning open-ended
AGE_RANGES = {
    "0-18": (0, 18),
    "19-35": (19, 35),
    "36-55": (36, 55),
    "56+": (56, None),
}


@dataclass
class PatientListing:
    """One row of the patient list."""

    id: str
    patient_id: str | None
    first_name: str
    last_name: str
    age: int
    email: str | None = None
    phone: str | None = None
    address: str = ""
    insurance: str | None = None
    status: str = "active"
    risk_level: str = "low"
    preferred_provider: str | None = None
    outstanding_balance: float = 0.0
    last_visit: str | None = None
    total_visits: int = 0
    next_appointment: str | None = None

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @classmethod
    def from_patient(cls, patient: Patient, stats: VisitStats, today: date | None = None) -> "PatientListing":
        return cls(
            id=patient.id,
            patient_id=patient.patient_id,
            first_name=patient.first_name,
            last_name=patient.last_name,
            age=calculate_age(patient.date_of_birth, today),
            email=patient.email,
            phone=patient.phone,
            address=patient.full_address,
            insurance=patient.insurance_company,
            status=patient.status,
            risk_level=patient.risk_level,
            preferred_provider=patient.preferred_provider,
            outstanding_balance=patient.outstanding_balance or 0.0,
            last_visit=stats.last_visit,
            total_visits=stats.total_visits,
            next_appointment=stats.next_appointment,
        )


class SearchFilters(BaseModel):
    """Search and filter settings for the patient list."""

    search_term: str = ""
    status: str = Field("all", description="active, inactive or all")
    insurance: str = "all"
    age_range: Literal["all", "0-18", "19-35", "36-55", "56+"] = "all"
    risk_level: str = Field("all", description="low, medium, high or all")
    provider: str = "all"
    has_outstanding_balance: Literal["all", "yes", "no"] = "all"
    has_upcoming_appointment: Literal["all", "yes", "no"] = "all"
    sort_by: Literal["name", "age", "last_visit", "total_visits", "outstanding_balance"] = "name"
    sort_order: Literal["asc", "desc"] = "asc"

    @field_validator(
        "status", "insurance", "age_range", "risk_level", "provider",
        "has_outstanding_balance", "has_upcoming_appointment", "sort_by", "sort_order",
        mode="before",
    )
    @classmethod
    def blank_means_all(cls, v, info):
        """Treat empty selections as no filter, keeping sort defaults."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return cls.model_fields[info.field_name].default
        if not isinstance(v, str):
            return v
        v = v.strip()
        # Insurer and provider names keep their case, fixed choices match any case
        if info.field_name in ("insurance", "provider") and v.lower() != "all":
            return v
        return v.lower()


@dataclass
class Page:
    items: list[PatientListing] = field(default_factory=list)
    page: int = 1
    total_pages: int = 1
    total_count: int = 0


def matches_search(patient: PatientListing, term: str) -> bool:
    """Case-insensitive substring match over name, ids, email and address; raw match on phone."""
    term = term.strip()
    if not term:
        return True
    needle = term.lower()
    haystacks = [patient.name, patient.id, patient.patient_id, patient.email, patient.address]
    if any(value and needle in value.lower() for value in haystacks):
        return True
    return bool(patient.phone) and term in patient.phone


def _matches_filters(patient: PatientListing, filters: SearchFilters) -> bool:
    if filters.status != "all" and patient.status != filters.status:
        return False

    if filters.insurance != "all" and (patient.insurance or "").lower() != filters.insurance.lower():
        return False

    if filters.age_range != "all":
        low, high = AGE_RANGES[filters.age_range]
        if patient.age < low or (high is not None and patient.age > high):
            return False

    if filters.risk_level != "all" and patient.risk_level != filters.risk_level:
        return False

    if filters.provider != "all" and patient.preferred_provider != filters.provider:
        return False

    if filters.has_outstanding_balance != "all":
        has_balance = patient.outstanding_balance > 0
        if has_balance != (filters.has_outstanding_balance == "yes"):
            return False

    if filters.has_upcoming_appointment != "all":
        has_upcoming = patient.next_appointment is not None
        if has_upcoming != (filters.has_upcoming_appointment == "yes"):
            return False

    return True


SORT_KEYS = {
    "name": lambda p: p.name.casefold(),
    "age": lambda p: p.age,
    # Missing visits sort as the earliest date
    "last_visit": lambda p: p.last_visit or "",
    "total_visits": lambda p: p.total_visits,
    "outstanding_balance": lambda p: p.outstanding_balance,
}


def filter_patients(patients: list[PatientListing], filters: SearchFilters) -> list[PatientListing]:
    """Apply the search term and every active filter, then sort."""
    results = [
        p for p in patients
        if matches_search(p, filters.search_term) and _matches_filters(p, filters)
    ]
    results.sort(key=SORT_KEYS[filters.sort_by], reverse=filters.sort_order == "desc")
    return results


def paginate(items: list, page: int = 1, per_page: int = ITEMS_PER_PAGE) -> Page:
    """Slice one page out of items, clamping page into range."""
    total_pages = max(1, math.ceil(len(items) / per_page))
    page = min(max(page, 1), total_pages)
    start = (page - 1) * per_page
    return Page(
        items=items[start:start + per_page],
        page=page,
        total_pages=total_pages,
        total_count=len(items),
    )


class PatientDirectory:
    """Loads the patient list and serves filtered pages from it."""

    def __init__(
        self,
        patient_repo: PatientRepository | None = None,
        clinical_repo: ClinicalRepository | None = None,
        today: date | None = None,
    ):
        self.patient_repo = patient_repo or PatientRepository()
        self.clinical_repo = clinical_repo or ClinicalRepository()
        self.today = today
        self.listings: list[PatientListing] = []
        self.filters = SearchFilters()
        self.page = 1
        self.is_fetching = False
        self.is_stale = True

    def invalidate(self) -> None:
        """Mark the cached listings out of date after a patient write."""
        self.is_stale = True

    def refresh(self) -> list[PatientListing]:
        """Reload listings; an overlapping refresh returns the cached list."""
        if self.is_fetching:
            return self.listings

        self.is_fetching = True
        try:
            listings = []
            for patient in self.patient_repo.list_patients():
                stats = self.clinical_repo.get_visit_stats(patient.id, self.today)
                listings.append(PatientListing.from_patient(patient, stats, self.today))
            self.listings = listings
            self.is_stale = False
        finally:
            self.is_fetching = False

        logger.debug("Loaded %d patients", len(self.listings))
        return self.listings

    def set_filters(self, **changes) -> SearchFilters:
        """Change filter settings; any change sends the list back to page 1."""
        self.filters = SearchFilters(**{**self.filters.model_dump(), **changes})
        self.page = 1
        return self.filters

    def clear_filters(self) -> None:
        self.filters = SearchFilters()
        self.page = 1

    def go_to(self, page: int) -> Page:
        self.page = page
        return self.current_page()

    def current_page(self) -> Page:
        result = paginate(filter_patients(self.listings, self.filters), self.page)
        self.page = result.page
        return result
