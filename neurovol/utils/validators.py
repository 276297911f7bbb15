"""Input validation and sanitisation utilities."""

from __future__ import annotations

import hashlib
import math
from typing import Any, Optional, Tuple

MAX_AGE_YEARS = 130
MAX_VOLUME = 5000.0

PHI_FIELDS_TO_REMOVE = {
    "address",
    "dob",
    "date_of_birth",
    "birthdate",
    "phone",
    "email",
}
NAME_FIELDS = {"name", "patient_name", "first_name", "last_name"}
ID_FIELDS = {"patient_id", "subject_id", "mrn", "medical_record_number"}


def validate_report_text(text: Any, max_chars: int) -> Tuple[bool, str]:
    """Validate that the report text can be handed to the parser."""

    if not isinstance(text, str):
        return False, "Report text must be a string."

    if len(text) > max_chars:
        return False, f"Report text exceeds the maximum length of {max_chars} characters."

    return True, ""


def validate_age(age: Any) -> bool:
    """Validate that an age is a plausible non-negative whole number of years."""

    if isinstance(age, bool) or not isinstance(age, int):
        return False
    return 0 <= age <= MAX_AGE_YEARS


def validate_volume(value: Optional[float]) -> bool:
    """Validate that a volume is absent or a finite non-negative number."""

    if value is None:
        return True
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(number) and 0 <= number < MAX_VOLUME


def sanitize_patient_data(data: dict[str, Any]) -> dict[str, Any]:
    """Remove or mask identifying attributes for safe logging."""

    if not isinstance(data, dict):
        return {}

    sanitized: dict[str, Any] = {}
    for key, value in data.items():
        lower_key = key.lower()

        if lower_key in PHI_FIELDS_TO_REMOVE:
            continue

        if lower_key in NAME_FIELDS and isinstance(value, str):
            sanitized[key] = _hash_value(value)
            continue

        if lower_key in ID_FIELDS and isinstance(value, str):
            sanitized[key] = _mask_identifier(value)
            continue

        if isinstance(value, dict):
            sanitized[key] = sanitize_patient_data(value)
            continue

        sanitized[key] = value

    return sanitized


def _hash_value(value: str) -> str:
    digest = hashlib.sha256(value.strip().lower().encode("utf-8")).hexdigest()[:12]
    return f"hash:{digest}"


def _mask_identifier(value: str) -> str:
    trimmed = value.strip()
    last_four = trimmed[-4:] if len(trimmed) >= 4 else trimmed
    masked = "*" * max(len(trimmed) - len(last_four), 0)
    return f"{masked}{last_four}"
