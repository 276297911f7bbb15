"""Best-effort extraction of labelled patient fields from report text."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal, Optional

Sex = Literal["male", "female"]

PATIENT_ID_PATTERN = re.compile(r"(?:Patient\s*ID|Subject\s*ID|\bID)\s*:\s*([A-Z0-9_-]+)", re.IGNORECASE)
AGE_PATTERN = re.compile(r"\b(?:Age|Years|yr)\s*:\s*(\d{1,3})\b", re.IGNORECASE)
SEX_PATTERN = re.compile(r"\b(?:Sex|Gender)\s*:\s*(male|female|m|f)\b", re.IGNORECASE)

DEFAULT_SEX: Sex = "male"


@dataclass
class PatientDemographics:
    """Patient fields found in the report; ``None`` when absent."""

    patient_id: Optional[str] = None
    age: Optional[int] = None
    sex: Optional[Sex] = None


def normalise_sex(value: Optional[str]) -> Optional[Sex]:
    """Map ``M``/``F``/``male``/``female`` (any case) to the canonical form."""

    if value is None:
        return None
    folded = value.strip().lower()
    if folded in {"f", "female"}:
        return "female"
    if folded in {"m", "male"}:
        return "male"
    return None


def extract_demographics(text: str) -> PatientDemographics:
    """Return the patient identifier, age and sex labelled in ``text``.

    Missing or malformed fields are left as ``None``; extraction never fails.
    """

    demographics = PatientDemographics()
    if not isinstance(text, str) or not text:
        return demographics

    match = PATIENT_ID_PATTERN.search(text)
    if match:
        demographics.patient_id = match.group(1)

    match = AGE_PATTERN.search(text)
    if match:
        demographics.age = int(match.group(1))

    match = SEX_PATTERN.search(text)
    if match:
        demographics.sex = normalise_sex(match.group(1))

    return demographics
