"""Tests for patient list search, filters, sorting and paging."""

from datetime import date

import pytest
from pydantic import ValidationError

from practice_dashboard.patient_search import (
    PatientDirectory,
    PatientListing,
    SearchFilters,
    filter_patients,
    matches_search,
    paginate,
)
from practice_dashboard.practice_records.database import ClinicalRepository, PatientRepository
from practice_dashboard.practice_records.database.clinical_repository import Appointment
from practice_dashboard.practice_records.database.patient_repository import Patient

TODAY = date(2024, 6, 1)


def listing(**overrides):
    data = {
        "id": "p-1", "patient_id": "PAT-20240100001", "first_name": "John", "last_name": "Smith",
        "age": 40, "email": "john@example.com", "phone": "(555) 123-4567",
        "address": "1 Main St, Springfield, IL", "insurance": "Aetna",
    }
    data.update(overrides)
    return PatientListing(**data)


@pytest.fixture
def listings():
    return [
        listing(),
        listing(id="p-2", patient_id="PAT-20240100002", first_name="amy", last_name="Zed", age=12,
                email=None, phone="555-0002", insurance="Medicaid", risk_level="high",
                outstanding_balance=50.0, last_visit="2024-05-01", total_visits=3,
                next_appointment="2024-06-10", preferred_provider="Dr. Lee"),
        listing(id="p-3", patient_id="PAT-20240100003", first_name="Carl", last_name="Young", age=70,
                email="carl@example.com", phone="555-0003", insurance="Medicare",
                status="inactive", total_visits=1, last_visit="2023-12-01"),
    ]


class TestMatchesSearch:
    """Tests for free-text matching."""

    @pytest.mark.parametrize("term", ["john", "SMITH", "john smith", "pat-20240100001",
                                      "EXAMPLE.COM", "springfield", "p-1"])
    def test_case_insensitive_fields(self, term):
        assert matches_search(listing(), term)

    def test_phone_is_raw_substring(self):
        assert matches_search(listing(), "123-4567")
        assert not matches_search(listing(), "5551234567")

    def test_blank_term_matches_everything(self):
        assert matches_search(listing(), "  ")

    def test_no_match(self):
        assert not matches_search(listing(), "zebra")


class TestSearchFilters:
    """Tests for the filter model."""

    def test_blank_values_fall_back_to_defaults(self):
        filters = SearchFilters(status="", age_range=" ", sort_by=None)
        assert filters.status == "all"
        assert filters.age_range == "all"
        assert filters.sort_by == "name"

    def test_unknown_choice_rejected(self):
        with pytest.raises(ValidationError):
            SearchFilters(age_range="90-100")


class TestFilterPatients:
    """Tests for AND-combined filters and sorting."""

    def test_default_sort_is_case_insensitive_name(self, listings):
        results = filter_patients(listings, SearchFilters())
        assert [p.id for p in results] == ["p-2", "p-3", "p-1"]

    def test_filters_combine_with_and(self, listings):
        filters = SearchFilters(status="active", has_outstanding_balance="yes")
        assert [p.id for p in filter_patients(listings, filters)] == ["p-2"]

        filters = SearchFilters(status="inactive", has_outstanding_balance="yes")
        assert filter_patients(listings, filters) == []

    @pytest.mark.parametrize("age_range,expected", [
        ("0-18", ["p-2"]),
        ("36-55", ["p-1"]),
        ("56+", ["p-3"]),
        ("19-35", []),
    ])
    def test_age_ranges(self, listings, age_range, expected):
        assert [p.id for p in filter_patients(listings, SearchFilters(age_range=age_range))] == expected

    def test_insurance_is_case_insensitive(self, listings):
        assert [p.id for p in filter_patients(listings, SearchFilters(insurance="medicare"))] == ["p-3"]

    def test_status_and_risk_are_case_insensitive(self, listings):
        results = filter_patients(listings, SearchFilters(status="Active", risk_level="HIGH"))
        assert [p.id for p in results] == ["p-2"]
        assert SearchFilters(sort_by="Name", sort_order="DESC").sort_order == "desc"

    def test_provider_keeps_its_case(self):
        assert SearchFilters(provider="Dr. Lee").provider == "Dr. Lee"
        assert SearchFilters(provider="ALL").provider == "all"

    def test_upcoming_appointment_and_provider(self, listings):
        results = filter_patients(listings, SearchFilters(has_upcoming_appointment="no"))
        assert {p.id for p in results} == {"p-1", "p-3"}
        results = filter_patients(listings, SearchFilters(provider="Dr. Lee", risk_level="high"))
        assert [p.id for p in results] == ["p-2"]

    def test_sort_descending(self, listings):
        results = filter_patients(listings, SearchFilters(sort_by="total_visits", sort_order="desc"))
        assert [p.id for p in results] == ["p-2", "p-3", "p-1"]

    def test_missing_last_visit_sorts_first(self, listings):
        results = filter_patients(listings, SearchFilters(sort_by="last_visit"))
        assert [p.id for p in results] == ["p-1", "p-3", "p-2"]


class TestPaginate:
    """Tests for page slicing."""

    def test_page_sizes(self):
        page = paginate(list(range(60)), page=3)
        assert page.items == list(range(50, 60))
        assert page.total_pages == 3
        assert page.total_count == 60

    def test_page_is_clamped(self):
        assert paginate(list(range(10)), page=9).page == 1
        assert paginate(list(range(60)), page=0).page == 1

    def test_empty(self):
        page = paginate([])
        assert page.items == []
        assert page.total_pages == 1


class TestPatientDirectory:
    """Tests for loading listings from the database."""

    @pytest.fixture
    def directory(self):
        patients = PatientRepository()
        patients.create(Patient(id="p-1", first_name="John", last_name="Smith", date_of_birth="1984-01-01",
                                outstanding_balance=20.0))
        patients.create(Patient(id="p-2", first_name="Amy", last_name="Adams", date_of_birth="2010-07-01"))
        ClinicalRepository().create_appointment(Appointment(
            id=None, patient_id="p-2", date="2024-05-01", time="09:00", type="Visit",
            provider="Dr. Lee", status="completed",
        ))
        directory = PatientDirectory(today=TODAY)
        directory.refresh()
        return directory

    def test_refresh_builds_listings(self, directory):
        by_id = {p.id: p for p in directory.listings}
        assert by_id["p-1"].age == 40
        assert by_id["p-2"].age == 13
        assert by_id["p-2"].total_visits == 1
        assert by_id["p-2"].last_visit == "2024-05-01"

    def test_filter_change_resets_page(self, directory):
        directory.page = 3
        directory.set_filters(search_term="smith")
        assert directory.page == 1
        assert [p.id for p in directory.current_page().items] == ["p-1"]

    def test_clear_filters(self, directory):
        directory.set_filters(has_outstanding_balance="yes")
        directory.clear_filters()
        assert directory.current_page().total_count == 2

    def test_go_to_clamps(self, directory):
        assert directory.go_to(5).page == 1
        assert directory.page == 1

    def test_overlapping_refresh_returns_cached(self, directory):
        cached = directory.listings
        directory.is_fetching = True
        assert directory.refresh() is cached

    def test_invalidate_marks_listings_stale(self, directory):
        assert directory.is_stale is False
        PatientRepository().create(Patient(id="p-3", first_name="Zoe", last_name="Young", date_of_birth="2000-01-01"))
        directory.invalidate()
        assert directory.is_stale is True
        directory.refresh()
        assert directory.is_stale is False
        assert len(directory.listings) == 3
