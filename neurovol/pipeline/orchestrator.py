"""Composition of parsing, normalisation, normative lookup and scoring."""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Literal, Optional

from neurovol.analysis.deviation import AnalysisSummary, DeviationAnalyzer
from neurovol.normative.aliases import StructureAliasResolver
from neurovol.normative.loader import get_alias_resolver, get_reference_store
from neurovol.normative.reference_store import NormativeReferenceStore
from neurovol.parsers.demographics import DEFAULT_SEX, Sex, extract_demographics, normalise_sex
from neurovol.parsers.models import ExtractionIssue, IssueKind, MeasurementRecord, ScoredMeasurement
from neurovol.parsers.report_parser import ReportParser
from neurovol.pipeline.trace import ExtractionTrace
from neurovol.utils.config import get_settings
from neurovol.utils.logger import get_logger, log_pipeline_step
from neurovol.utils.validators import (
    sanitize_patient_data,
    validate_age,
    validate_report_text,
    validate_volume,
)

LOGGER = get_logger(__name__)

AnalysisStatus = Literal["success", "no_measurement_table"]

NO_TABLE_MESSAGE = "No measurement table found"

VOLUME_FIELDS = (
    "left_volume",
    "right_volume",
    "total_volume",
    "normative_value",
    "standard_deviation",
)


@dataclass
class PatientAnalysis:
    """Patient-level output of an extraction or manual analysis run."""

    patient_id: str = ""
    age: int = 0
    sex: Sex = DEFAULT_SEX
    measurements: List[ScoredMeasurement] = field(default_factory=list)
    summary: AnalysisSummary = field(default_factory=AnalysisSummary)
    status: AnalysisStatus = "success"
    message: Optional[str] = None
    issues: List[ExtractionIssue] = field(default_factory=list)
    trace: Optional[List[Dict[str, Any]]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "patient_id": self.patient_id,
            "age": self.age,
            "sex": self.sex,
            "status": self.status,
            "message": self.message,
            "measurements": [measurement.to_dict() for measurement in self.measurements],
            "summary": {
                "total_abnormalities": self.summary.total_abnormalities,
                "atrophied_regions": list(self.summary.atrophied_regions),
                "enlarged_regions": list(self.summary.enlarged_regions),
                "asymmetric_regions": list(self.summary.asymmetric_regions),
            },
            "issues": [
                {"kind": issue.kind.value, "message": issue.message, "structure": issue.structure}
                for issue in self.issues
            ],
            "trace": self.trace,
        }


class ExtractionOrchestrator:
    """Turn report text or entered records into scored measurements.

    When an age is known, reference values replace the normative data parsed
    from a report. Without an age, missing normative fields are filled from
    the control population and the record is not marked age adjusted.
    Observed totals are never overwritten; a total is derived from the
    lateral volumes only when it is missing.
    """

    def __init__(
        self,
        parser: Optional[ReportParser] = None,
        store: Optional[NormativeReferenceStore] = None,
        analyzer: Optional[DeviationAnalyzer] = None,
        resolver: Optional[StructureAliasResolver] = None,
    ) -> None:
        self._settings = get_settings()
        self._resolver = resolver or get_alias_resolver()
        self._parser = parser or ReportParser(self._resolver, self._settings.SECTION_HEADERS)
        self._store = store or get_reference_store()
        self._analyzer = analyzer or DeviationAnalyzer()

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def process(
        self,
        text: str,
        known_age: Optional[int] = None,
        sex: Optional[str] = None,
        patient_id: Optional[str] = None,
        verbose: bool = False,
    ) -> PatientAnalysis:
        """Extract, normalise and score the measurement table in ``text``.

        ``known_age`` takes precedence over an ``Age:`` field in the report.
        A report without a recognisable table yields an empty analysis with
        status ``no_measurement_table``.
        """

        is_valid, reason = validate_report_text(text, self._settings.MAX_REPORT_CHARS)
        if not is_valid:
            raise ValueError(reason)
        self._check_age(known_age)

        started = time.perf_counter()
        trace = ExtractionTrace() if verbose else None

        demographics = extract_demographics(text)
        age = known_age if known_age is not None else demographics.age
        if age is not None and not validate_age(age):
            age = None
        analysis = PatientAnalysis(
            patient_id=patient_id or demographics.patient_id or "",
            age=age or 0,
            sex=normalise_sex(sex) or demographics.sex or DEFAULT_SEX,
        )

        outcome = self._parser.parse(text, trace=trace)
        if not outcome.records:
            analysis.status = "no_measurement_table"
            analysis.message = NO_TABLE_MESSAGE
            analysis.issues.append(ExtractionIssue(IssueKind.NO_RECOGNIZABLE_DATA, NO_TABLE_MESSAGE))
        else:
            analysis.measurements = self._finalise(outcome.records, age, replace_norms=True, trace=trace)
            analysis.summary = self._analyzer.summarize(item.result for item in analysis.measurements)

        if trace is not None:
            analysis.trace = trace.to_list()

        log_pipeline_step(
            "process_report",
            sanitize_patient_data(
                {
                    "patient_id": analysis.patient_id,
                    "status": analysis.status,
                    "parsed": len(outcome.records),
                    "scored": len(analysis.measurements),
                    "gate": outcome.gate,
                }
            ),
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return analysis

    def analyze_records(
        self,
        records: Iterable[MeasurementRecord],
        age: Optional[int] = None,
        sex: Optional[str] = None,
        patient_id: Optional[str] = None,
        verbose: bool = False,
    ) -> PatientAnalysis:
        """Score directly entered records without parsing.

        Reference values only fill normative fields the caller left empty.
        The supplied records are not modified.
        """

        self._check_age(age)
        started = time.perf_counter()
        trace = ExtractionTrace() if verbose else None

        copies = [replace(record) for record in records]
        for record in copies:
            self._check_volumes(record)
        measurements = self._finalise(copies, age, replace_norms=False, trace=trace)
        analysis = PatientAnalysis(
            patient_id=patient_id or "",
            age=age or 0,
            sex=normalise_sex(sex) or DEFAULT_SEX,
            measurements=measurements,
            summary=self._analyzer.summarize(item.result for item in measurements),
            trace=trace.to_list() if trace is not None else None,
        )

        log_pipeline_step(
            "analyze_records",
            {"submitted": len(copies), "scored": len(measurements)},
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return analysis

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _finalise(
        self,
        records: List[MeasurementRecord],
        age: Optional[int],
        *,
        replace_norms: bool,
        trace: Optional[ExtractionTrace],
    ) -> List[ScoredMeasurement]:
        measurements: List[ScoredMeasurement] = []
        for record in records:
            issues: List[ExtractionIssue] = []

            if record.canonical_name is None:
                record.canonical_name = self._resolver.resolve(record.name)
            if record.canonical_name is not None:
                record.display_name = self._resolver.display_name(record.canonical_name)
            else:
                issues.append(
                    ExtractionIssue(
                        IssueKind.UNRESOLVED_STRUCTURE,
                        f"No canonical structure matches '{record.name}'.",
                        structure=record.name,
                    )
                )

            derive_total(record)
            if not record.is_scorable:
                if trace is not None:
                    trace.record("record_excluded", name=record.name, reason="no volume data")
                continue

            if record.canonical_name is not None:
                if age is not None:
                    self._attach_normative(record, age, replace_norms)
                else:
                    self._attach_baseline(record)

            result = self._analyzer.analyze(record)
            if result.z_score is None:
                issues.append(
                    ExtractionIssue(
                        IssueKind.SCORING_SKIPPED,
                        "Z-score not computed: total volume, normative value or SD unavailable.",
                        structure=record.name,
                    )
                )
            if trace is not None:
                trace.record(
                    "record_scored",
                    name=record.name,
                    canonical=record.canonical_name,
                    z_score=result.z_score,
                    status=result.status.value,
                    age_adjusted=record.age_adjusted,
                )
            measurements.append(ScoredMeasurement(record=record, result=result, issues=issues))
        return measurements

    def _attach_normative(self, record: MeasurementRecord, age: int, replace_norms: bool) -> None:
        value = self._store.lookup(record.canonical_name, age)
        if value is None:
            LOGGER.debug(
                "No normative value available.",
                extra={"context": {"structure": record.canonical_name, "age": age}},
            )
            return

        attach_mean = replace_norms or record.normative_value is None
        attach_sd = value.sd is not None and (replace_norms or record.standard_deviation is None)
        if attach_mean:
            record.normative_value = value.mean
        if attach_sd:
            record.standard_deviation = value.sd
        if attach_mean or attach_sd:
            record.age_adjusted = True
            record.needs_normative = False

    def _attach_baseline(self, record: MeasurementRecord) -> None:
        """Fill missing normative fields from the control population.

        Used only when no age is known; the record is not age adjusted.
        """

        value = self._store.baseline(record.canonical_name)
        if value is None:
            return
        if record.normative_value is None:
            record.normative_value = value.mean
        if record.standard_deviation is None and value.sd is not None:
            record.standard_deviation = value.sd
        record.needs_normative = False

    @staticmethod
    def _check_age(age: Optional[int]) -> None:
        if age is not None and not validate_age(age):
            raise ValueError(f"Age must be an integer between 0 and 130, received {age!r}.")

    @staticmethod
    def _check_volumes(record: MeasurementRecord) -> None:
        for field_name in VOLUME_FIELDS:
            value = getattr(record, field_name)
            if not validate_volume(value):
                raise ValueError(
                    f"{record.name}: {field_name} must be a finite non-negative number, received {value!r}."
                )


def derive_total(record: MeasurementRecord) -> None:
    """Fill a missing total from both lateral volumes."""

    if record.total_volume is None and record.has_laterals:
        record.total_volume = round(record.left_volume + record.right_volume, 2)
        record.total_derived = True
