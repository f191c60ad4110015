"""Shared validation utilities"""

import re
from datetime import date, datetime, time
from typing import Optional

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)(:([0-5]\d))?$")


def parse_time(value: str) -> time:
    """
    Parse HH:MM or HH:MM:SS into a time.

    Raises:
        ValueError: If the value is not a valid 24h time
    """
    if not isinstance(value, str) or not TIME_PATTERN.match(value.strip()):
        raise ValueError(f"Invalid time '{value}', expected HH:MM or HH:MM:SS")
    parts = [int(p) for p in value.strip().split(":")]
    return time(*parts)


def parse_date(value: str) -> date:
    """Parse YYYY-MM-DD"""
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except (AttributeError, ValueError) as e:
        raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD") from e


def validate_br_phone(phone: Optional[str]) -> Optional[str]:
    """
    Normalize a Brazilian phone number to digits with country code (55DDNNNNNNNNN).

    Accepted inputs: with country code (12-13 digits), with area code (10-11
    digits; the old 8-digit mobile format gets the leading 9).

    Raises:
        ValueError: If the number cannot be normalized
    """
    if not phone:
        return phone

    digits = re.sub(r"\D", "", phone)

    if digits.startswith("55") and len(digits) in (12, 13):
        digits = digits[2:]

    if len(digits) == 10:
        digits = f"{digits[:2]}9{digits[2:]}"

    if len(digits) != 11:
        raise ValueError("Phone number must include area code (DDD) and 8 or 9 digits")

    return f"55{digits}"


def validate_email(email: Optional[str]) -> Optional[str]:
    if not email:
        return email

    email = email.strip().lower()
    if not re.match(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$", email):
        raise ValueError("Invalid email format")
    return email
