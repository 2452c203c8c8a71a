"""NPPES NPI registry lookups and the local taxonomy code list."""

import os
from dataclasses import dataclass

import requests
from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

from practice_dashboard.validation import clean_npi, normalize_phone, normalize_state

load_dotenv(override=True)

API_URL = os.getenv("NPI_API_URL", "https://npiregistry.cms.hhs.gov/api/")
API_VERSION = "2.1"
NAME_SEARCH_LIMIT = 10


class NPILookupError(Exception):
    """Raised when an NPI registry lookup fails."""
    pass


class NPIRecord(BaseModel):
    """The parts of a registry result the practice forms use."""

    npi: str
    name: str
    enumeration_type: str | None = None
    status: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    phone: str | None = None
    fax: str | None = None
    taxonomy_code: str | None = None
    taxonomy_description: str | None = None

    @field_validator("state", mode="before")
    @classmethod
    def normalize_state_code(cls, v):
        return normalize_state(v)

    @field_validator("zip_code", mode="before")
    @classmethod
    def normalize_zip(cls, v):
        """Registry ZIPs may be nine digits with no dash."""
        if not v:
            return None
        digits = "".join(c for c in str(v) if c.isdigit())
        if len(digits) == 9:
            return f"{digits[:5]}-{digits[5:]}"
        return digits or None

    @field_validator("phone", "fax", mode="before")
    @classmethod
    def digits_only(cls, v):
        return normalize_phone(v)

    @property
    def is_organization(self) -> bool:
        return self.enumeration_type == "NPI-2"


def _get(params: dict) -> dict:
    """GET the registry and return the decoded body."""
    try:
        response = requests.get(API_URL, params={"version": API_VERSION, **params}, timeout=10)
    except requests.exceptions.Timeout:
        raise NPILookupError("NPI registry request timed out")
    except requests.exceptions.ConnectionError:
        raise NPILookupError("Failed to connect to NPI registry")

    if response.status_code == 400:
        raise NPILookupError("Invalid NPI registry request")
    elif response.status_code != 200:
        raise NPILookupError(f"NPI registry error: {response.status_code}")

    try:
        data = response.json()
    except ValueError:
        raise NPILookupError("Unexpected NPI registry response format")

    if data.get("Errors"):
        raise NPILookupError(data["Errors"][0].get("description", "NPI registry rejected the request"))

    return data


def search_npi_by_number(npi: str) -> dict | None:
    """
    Look up a single NPI.

    Returns the raw registry result, or None when no provider has that NPI.
    Raises NPILookupError for malformed input and transport failures.
    """
    number = clean_npi(npi)
    if len(number) != 10:
        raise NPILookupError("NPI must be exactly 10 digits")

    data = _get({"number": number})
    if not data.get("result_count"):
        return None
    return data["results"][0]


def search_npi_by_name(
    first_name: str | None = None,
    last_name: str | None = None,
    organization_name: str | None = None,
    state: str | None = None,
    limit: int = NAME_SEARCH_LIMIT,
) -> list[dict]:
    """Search the registry by individual or organization name."""
    if not (first_name or last_name or organization_name):
        raise NPILookupError("Provide a first name, last name or organization name")

    params = {"limit": limit}
    if first_name:
        params["first_name"] = first_name.strip()
    if last_name:
        params["last_name"] = last_name.strip()
    if organization_name:
        params["organization_name"] = organization_name.strip()
    if state:
        params["state"] = normalize_state(state)

    data = _get(params)
    return data.get("results", [])


def summarize_npi_result(result: dict) -> NPIRecord:
    """Flatten a registry result into an NPIRecord."""
    basic = result.get("basic", {})
    if basic.get("organization_name"):
        name = basic["organization_name"]
    else:
        name = " ".join(p for p in (basic.get("first_name"), basic.get("last_name")) if p)
        if basic.get("credential"):
            name += f", {basic['credential']}"

    addresses = result.get("addresses", [])
    location = next(
        (a for a in addresses if a.get("address_purpose") == "LOCATION"),
        addresses[0] if addresses else {},
    )

    taxonomies = result.get("taxonomies", [])
    taxonomy = next((t for t in taxonomies if t.get("primary")), taxonomies[0] if taxonomies else {})

    return NPIRecord(
        npi=str(result.get("number", "")),
        name=name,
        enumeration_type=result.get("enumeration_type"),
        status=basic.get("status"),
        address_line1=location.get("address_1"),
        address_line2=location.get("address_2") or None,
        city=location.get("city"),
        state=location.get("state"),
        zip_code=location.get("postal_code"),
        phone=location.get("telephone_number"),
        fax=location.get("fax_number"),
        taxonomy_code=taxonomy.get("code"),
        taxonomy_description=taxonomy.get("desc"),
    )


def practice_fields_from_npi(record: NPIRecord) -> dict:
    """Prefill values for a practice form."""
    fields = {
        "name": record.name,
        "npi": record.npi,
        "organization_type": "Organization" if record.is_organization else "Individual",
        "address_line1": record.address_line1,
        "address_line2": record.address_line2,
        "city": record.city,
        "state": record.state,
        "zip_code": record.zip_code,
        "phone": record.phone,
        "fax": record.fax,
    }
    if record.taxonomy_code:
        fields["taxonomy_specialty"] = f"{record.taxonomy_code} - {record.taxonomy_description or ''}".strip(" -")
    return {k: v for k, v in fields.items() if v}


# =============================================================================
# Taxonomy codes
# =============================================================================

@dataclass(frozen=True)
class TaxonomyCode:
    code: str
    description: str
    classification: str
    specialization: str | None = None


TAXONOMY_CODES = [
    TaxonomyCode("207Q00000X", "Family Medicine", "Family Medicine"),
    TaxonomyCode("207R00000X", "Internal Medicine", "Internal Medicine"),
    TaxonomyCode("207RI0001X", "Internal Medicine - Critical Care Medicine", "Internal Medicine", "Critical Care Medicine"),
    TaxonomyCode("208000000X", "Pediatrics", "Pediatrics"),
    TaxonomyCode("208D00000X", "General Practice", "General Practice"),
    TaxonomyCode("208G00000X", "Thoracic Surgery", "Thoracic Surgery (Cardiothoracic Vascular Surgery)"),
    TaxonomyCode("208M00000X", "Hospitalist", "Hospitalist"),
    TaxonomyCode("208U00000X", "Clinical Pharmacology", "Clinical Pharmacology"),
    TaxonomyCode("213E00000X", "Podiatrist", "Podiatrist"),
    TaxonomyCode("231H00000X", "Audiologist", "Audiologist"),
    TaxonomyCode("235Z00000X", "Speech-Language Pathologist", "Speech-Language Pathologist"),
    TaxonomyCode("246Q00000X", "Pathology", "Specialist/Technologist, Pathology"),
    TaxonomyCode("261Q00000X", "Clinic/Center", "Clinic/Center"),
    TaxonomyCode("261QM0801X", "Mental Health Clinic/Center", "Clinic/Center", "Mental Health"),
    TaxonomyCode("261QM1300X", "Multi-Specialty Clinic/Center", "Clinic/Center", "Multi-Specialty"),
    TaxonomyCode("282N00000X", "General Acute Care Hospital", "General Acute Care Hospital"),
    TaxonomyCode("363A00000X", "Physician Assistant", "Physician Assistant"),
    TaxonomyCode("363L00000X", "Nurse Practitioner", "Nurse Practitioner"),
    TaxonomyCode("364S00000X", "Clinical Nurse Specialist", "Clinical Nurse Specialist"),
    TaxonomyCode("367A00000X", "Anesthesiologist Assistant", "Anesthesiologist Assistant"),
]


def search_taxonomy_codes(keyword: str) -> list[TaxonomyCode]:
    """Case-insensitive match against code, description, classification and specialization."""
    needle = (keyword or "").strip().lower()
    if not needle:
        return list(TAXONOMY_CODES)
    return [
        t for t in TAXONOMY_CODES
        if any(needle in (value or "").lower() for value in (t.code, t.description, t.classification, t.specialization))
    ]
