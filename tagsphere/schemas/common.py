import re


PHONE_RE = re.compile(r"^[6-9]\d{9}$")
NAME_RE = re.compile(r"^[a-zA-Z\s]+$")
VEHICLE_NUMBER_RE = re.compile(r"^[A-Z]{2}[0-9]{1,2}[A-Z]{0,3}[0-9]{4}$")
VEHICLE_NUMBER_PATTERN = VEHICLE_NUMBER_RE.pattern
SIX_DIGITS_RE = re.compile(r"^\d{6}$")


def clean_phone(value: str) -> str:
    value = (value or "").strip()
    if not PHONE_RE.match(value):
        raise ValueError("Invalid phone number. Use 10 digit Indian mobile number")
    return value


def clean_name(value: str) -> str:
    value = (value or "").strip()
    if not 2 <= len(value) <= 100:
        raise ValueError("Name must be between 2 and 100 characters")
    if not NAME_RE.match(value):
        raise ValueError("Name can only contain letters and spaces")
    return value


def clean_vehicle_number(value: str) -> str:
    value = (value or "").strip().upper()
    if not VEHICLE_NUMBER_RE.match(value):
        raise ValueError("Invalid vehicle number format (e.g., MH12AB1234)")
    return value


def clean_six_digits(value: str, label: str) -> str:
    value = (value or "").strip()
    if not SIX_DIGITS_RE.match(value):
        raise ValueError(f"{label} must be 6 digits")
    return value
