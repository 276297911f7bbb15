from __future__ import annotations

import json
import logging

import pytest

from neurovol.utils.config import Settings, get_settings
from neurovol.utils.logger import JsonFormatter, get_logger, set_correlation_id
from neurovol.utils.validators import (
    sanitize_patient_data,
    validate_age,
    validate_report_text,
    validate_volume,
)


def test_validate_report_text_limits() -> None:
    assert validate_report_text("Volumetry", 100) == (True, "")
    assert validate_report_text("x" * 11, 10)[0] is False
    assert validate_report_text(None, 10)[0] is False


@pytest.mark.parametrize(("age", "expected"), [(0, True), (130, True), (131, False), (-1, False), (True, False), ("40", False)])
def test_validate_age(age: object, expected: bool) -> None:
    assert validate_age(age) is expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [(None, True), (0.0, True), (4.4, True), (-0.1, False), (float("nan"), False), ("abc", False)],
)
def test_validate_volume(value: object, expected: bool) -> None:
    assert validate_volume(value) is expected


def test_sanitize_patient_data_masks_identifiers() -> None:
    sanitized = sanitize_patient_data(
        {"patient_id": "NQ-1001", "patient_name": "Jane Doe", "dob": "1957-01-01", "status": "success"}
    )

    assert sanitized["patient_id"] == "***1001"
    assert sanitized["patient_name"].startswith("hash:")
    assert "dob" not in sanitized
    assert sanitized["status"] == "success"


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("Z_SCORE_THRESHOLD", "1.5")
    monkeypatch.setenv("ASYMMETRY_THRESHOLD_PCT", "12")

    settings = Settings()
    assert settings.Z_SCORE_THRESHOLD == 1.5
    assert settings.ASYMMETRY_THRESHOLD_PCT == 12.0
    assert settings.NORMATIVE_TABLE_PATH is None


def test_get_settings_is_cached() -> None:
    assert get_settings() is get_settings()


def test_get_logger_nests_under_package() -> None:
    assert get_logger("neurovol.parsers").name == "neurovol.parsers"
    assert get_logger("custom").name == "neurovol.custom"


def test_json_formatter_includes_context_and_correlation() -> None:
    record = logging.LogRecord(
        name="neurovol.pipeline",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Pipeline step '%s' completed.",
        args=("process_report",),
        exc_info=None,
    )
    record.context = {"parsed": 8}
    record.correlation_id = "trace-1"

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "Pipeline step 'process_report' completed."
    assert payload["context"] == {"parsed": 8}
    assert payload["correlation_id"] == "trace-1"
    assert payload["level"] == "INFO"


def test_set_correlation_id_round_trip() -> None:
    from neurovol.utils.logger import get_correlation_id

    set_correlation_id("abc")
    assert get_correlation_id() == "abc"
    set_correlation_id(None)
    assert get_correlation_id() is None
