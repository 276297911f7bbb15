"""Report text parsing into measurement records."""

from .demographics import PatientDemographics, extract_demographics, normalise_sex
from .models import (
    AnalysisResult,
    Asymmetry,
    ExtractionIssue,
    IssueKind,
    MeasurementRecord,
    ScoredMeasurement,
    Status,
)
from .report_parser import ColumnLayout, ParseOutcome, ReportParser, extract_records

__all__ = [
    "AnalysisResult",
    "Asymmetry",
    "ColumnLayout",
    "ExtractionIssue",
    "IssueKind",
    "MeasurementRecord",
    "ParseOutcome",
    "PatientDemographics",
    "ReportParser",
    "ScoredMeasurement",
    "Status",
    "extract_demographics",
    "extract_records",
    "normalise_sex",
]
