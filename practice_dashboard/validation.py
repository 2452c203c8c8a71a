"""Field validators and normalizers shared by forms and imports."""

import re
from datetime import date, datetime

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^[\d\s\-\+\(\)]+$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
SSN_PATTERN = re.compile(r"^\d{3}-\d{2}-\d{4}$")
ZIP_PATTERN = re.compile(r"^\d{5}(-\d{4})?$")
TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):[0-5]\d$")

US_STATES = {
    "ALABAMA": "AL", "ALASKA": "AK", "ARIZONA": "AZ", "ARKANSAS": "AR",
    "CALIFORNIA": "CA", "COLORADO": "CO", "CONNECTICUT": "CT", "DELAWARE": "DE",
    "DISTRICT OF COLUMBIA": "DC", "FLORIDA": "FL", "GEORGIA": "GA", "HAWAII": "HI",
    "IDAHO": "ID", "ILLINOIS": "IL", "INDIANA": "IN", "IOWA": "IA", "KANSAS": "KS",
    "KENTUCKY": "KY", "LOUISIANA": "LA", "MAINE": "ME", "MARYLAND": "MD",
    "MASSACHUSETTS": "MA", "MICHIGAN": "MI", "MINNESOTA": "MN", "MISSISSIPPI": "MS",
    "MISSOURI": "MO", "MONTANA": "MT", "NEBRASKA": "NE", "NEVADA": "NV",
    "NEW HAMPSHIRE": "NH", "NEW JERSEY": "NJ", "NEW MEXICO": "NM", "NEW YORK": "NY",
    "NORTH CAROLINA": "NC", "NORTH DAKOTA": "ND", "OHIO": "OH", "OKLAHOMA": "OK",
    "OREGON": "OR", "PENNSYLVANIA": "PA", "RHODE ISLAND": "RI", "SOUTH CAROLINA": "SC",
    "SOUTH DAKOTA": "SD", "TENNESSEE": "TN", "TEXAS": "TX", "UTAH": "UT",
    "VERMONT": "VT", "VIRGINIA": "VA", "WASHINGTON": "WA", "WEST VIRGINIA": "WV",
    "WISCONSIN": "WI", "WYOMING": "WY",
}


def is_blank(value) -> bool:
    """True for None, empty and whitespace-only values."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def is_valid_email(value: str) -> bool:
    return bool(value) and bool(EMAIL_PATTERN.match(value))


def is_valid_phone(value: str) -> bool:
    return bool(value) and bool(PHONE_PATTERN.match(value))


def is_valid_ssn(value: str) -> bool:
    return bool(value) and bool(SSN_PATTERN.match(value))


def is_valid_zip(value: str) -> bool:
    return bool(value) and bool(ZIP_PATTERN.match(value))


def is_valid_time(value: str) -> bool:
    return bool(value) and bool(TIME_PATTERN.match(value))


def parse_date(value) -> date | None:
    """Parse a YYYY-MM-DD string, returning None when it is not a real date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value or not DATE_PATTERN.match(str(value).strip()):
        return None
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        return None


def is_valid_date(value) -> bool:
    return parse_date(value) is not None


def clean_npi(value: str | None) -> str:
    """Strip everything but digits from an NPI."""
    return re.sub(r"\D", "", value or "")


def is_valid_npi(value: str | None) -> bool:
    return len(clean_npi(value)) == 10


def calculate_age(date_of_birth, today: date | None = None) -> int:
    """
    Whole years elapsed since date_of_birth.

    Never negative: future, empty and unparseable dates all give 0.
    """
    born = parse_date(date_of_birth)
    if born is None:
        return 0
    today = today or date.today()

    age = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        age -= 1
    return max(age, 0)


def normalize_date(value: str | None) -> str | None:
    """Convert MM/DD/YYYY and MM-DD-YYYY to YYYY-MM-DD."""
    if not value:
        return None
    value = value.strip()
    if DATE_PATTERN.match(value):
        return value
    match = re.match(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$", value)
    if match:
        m, d, y = match.groups()
        return f"{y}-{m.zfill(2)}-{d.zfill(2)}"
    return value


def normalize_phone(value: str | None) -> str | None:
    """Digits only, dropping a leading US country code."""
    if not value:
        return None
    digits = re.sub(r"\D", "", value)
    if not digits:
        return None
    if len(digits) == 11 and digits.startswith("1"):
        return digits[1:]
    return digits


def format_phone(value: str | None) -> str | None:
    """Render ten digits as (555) 123-4567, leaving anything else untouched."""
    digits = normalize_phone(value)
    if digits and len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    return value


def normalize_state(value: str | None) -> str | None:
    """Two-letter USPS code for a state name or code."""
    if not value:
        return None
    value = value.strip().upper()
    if len(value) == 2:
        return value
    return US_STATES.get(value, value)


def split_list(value: str | None) -> list[str]:
    """Comma-separated text to a list of trimmed, non-empty items."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def sanitize_string(value: str | None) -> str:
    """Strip angle brackets, javascript: URLs and inline event handlers."""
    if not value:
        return ""
    value = re.sub(r"[<>]", "", value)
    value = re.sub(r"javascript:", "", value, flags=re.IGNORECASE)
    value = re.sub(r"on\w+=", "", value, flags=re.IGNORECASE)
    return value.strip()
