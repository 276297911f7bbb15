"""Pydantic request and response models for the NeuroVol API layer."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from neurovol.parsers.models import MeasurementRecord
from neurovol.pipeline.orchestrator import PatientAnalysis
from neurovol.utils.validators import MAX_AGE_YEARS, MAX_VOLUME


SexValue = Literal["male", "female"]
AnalysisStatus = Literal["success", "no_measurement_table"]
StructureStatus = Literal["normal", "atrophied", "enlarged"]
IssueKindValue = Literal["no_recognizable_data", "unresolved_structure", "scoring_skipped"]


# --------------------------------------------------------------------------- #
# Request models
# --------------------------------------------------------------------------- #


class AnalyzeReportRequest(BaseModel):
    """Inbound payload carrying the text of a single volumetry report."""

    report_text: str = Field(
        ...,
        min_length=1,
        description="Concatenated report text, newline delimited.",
    )
    age: Optional[int] = Field(
        default=None,
        ge=0,
        le=MAX_AGE_YEARS,
        description="Patient age in years; overrides an Age field in the report.",
    )
    sex: Optional[SexValue] = Field(default=None, description="Patient sex (not used for scoring).")
    patient_id: Optional[str] = Field(default=None, description="Patient identifier override.")
    verbose: bool = Field(default=False, description="Return the extraction decision trace.")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "report_text": (
                    "NeuroQuant Morphometry Report\n"
                    "Patient ID: NQ1001\nAge: 67\nSex: Female\n"
                    "Hippocampi 0.25 0.26 0.51 0.54 0.05\n"
                ),
                "age": 67,
                "sex": "female",
                "verbose": False,
            }
        }
    )

    @field_validator("sex", mode="before")
    @classmethod
    def _normalise_sex(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class MeasurementInput(BaseModel):
    """A manually entered structure measurement."""

    name: str = Field(..., min_length=1, description="Structure name as displayed.")
    left_volume: Optional[float] = Field(default=None, ge=0, lt=MAX_VOLUME)
    right_volume: Optional[float] = Field(default=None, ge=0, lt=MAX_VOLUME)
    total_volume: Optional[float] = Field(default=None, ge=0, lt=MAX_VOLUME)
    normative_value: Optional[float] = Field(default=None, ge=0, lt=MAX_VOLUME)
    standard_deviation: Optional[float] = Field(default=None, ge=0, lt=MAX_VOLUME)

    def to_record(self) -> MeasurementRecord:
        return MeasurementRecord(
            name=self.name.strip(),
            left_volume=self.left_volume,
            right_volume=self.right_volume,
            total_volume=self.total_volume,
            normative_value=self.normative_value,
            standard_deviation=self.standard_deviation,
            strategy="manual",
        )


class AnalyzeRecordsRequest(BaseModel):
    """Inbound payload of directly entered measurements."""

    records: List[MeasurementInput] = Field(..., min_length=1, max_length=100)
    age: Optional[int] = Field(default=None, ge=0, le=MAX_AGE_YEARS)
    sex: Optional[SexValue] = None
    patient_id: Optional[str] = None
    verbose: bool = False

    @model_validator(mode="after")
    def _require_volume_data(self) -> "AnalyzeRecordsRequest":
        """At least one record must carry a total or both lateral volumes."""

        if not any(
            record.total_volume is not None
            or (record.left_volume is not None and record.right_volume is not None)
            for record in self.records
        ):
            raise ValueError("At least one record must include a total or both lateral volumes.")
        return self


# --------------------------------------------------------------------------- #
# Response models
# --------------------------------------------------------------------------- #


class AsymmetryResponse(BaseModel):
    difference_abs: float = Field(..., ge=0)
    difference_pct: float = Field(..., ge=0)
    significant: bool


class IssueResponse(BaseModel):
    kind: IssueKindValue
    message: str
    structure: Optional[str] = None


class MeasurementResponse(BaseModel):
    """A finalised measurement with its deviation analysis."""

    name: str
    canonical_name: Optional[str] = None
    display_name: Optional[str] = None
    left_volume: Optional[float] = None
    right_volume: Optional[float] = None
    total_volume: Optional[float] = None
    normative_value: Optional[float] = None
    standard_deviation: Optional[float] = None
    age_adjusted: bool = False
    total_derived: bool = False
    needs_normative: bool = False
    strategy: str = ""
    status: StructureStatus = "normal"
    z_score: Optional[float] = None
    asymmetry: Optional[AsymmetryResponse] = None
    issues: List[IssueResponse] = Field(default_factory=list)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Hippocampi",
                "canonical_name": "Hippocampus",
                "display_name": "Hippocampi",
                "left_volume": 0.25,
                "right_volume": 0.26,
                "total_volume": 0.51,
                "normative_value": 0.25,
                "standard_deviation": 0.03,
                "age_adjusted": True,
                "status": "enlarged",
                "z_score": 8.67,
                "asymmetry": {"difference_abs": 0.01, "difference_pct": 3.85, "significant": False},
            }
        }
    )


class SummaryResponse(BaseModel):
    total_abnormalities: int = Field(0, ge=0)
    atrophied_regions: List[str] = Field(default_factory=list)
    enlarged_regions: List[str] = Field(default_factory=list)
    asymmetric_regions: List[str] = Field(default_factory=list)


class AnalysisResponse(BaseModel):
    """Full response for an extraction or manual analysis run."""

    status: AnalysisStatus
    trace_id: str
    patient_id: str = ""
    age: int = Field(0, ge=0)
    sex: SexValue = "male"
    measurements: List[MeasurementResponse] = Field(default_factory=list)
    summary: SummaryResponse = Field(default_factory=SummaryResponse)
    issues: List[IssueResponse] = Field(default_factory=list)
    message: Optional[str] = None
    processing_time_ms: float = Field(..., ge=0.0)
    decision_trace: Optional[List[Dict[str, Any]]] = None

    @classmethod
    def from_analysis(
        cls, analysis: PatientAnalysis, trace_id: str, processing_time_ms: float
    ) -> "AnalysisResponse":
        payload = analysis.to_dict()
        measurements = [
            MeasurementResponse(
                **{key: value for key, value in item["record"].items() if key != "source_line"},
                status=item["result"]["status"],
                z_score=item["result"]["z_score"],
                asymmetry=item["result"]["asymmetry"],
                issues=item["issues"],
            )
            for item in payload["measurements"]
        ]
        return cls(
            status=payload["status"],
            trace_id=trace_id,
            patient_id=payload["patient_id"],
            age=payload["age"],
            sex=payload["sex"],
            measurements=measurements,
            summary=SummaryResponse(**payload["summary"]),
            issues=payload["issues"],
            message=payload["message"],
            processing_time_ms=processing_time_ms,
            decision_trace=payload["trace"],
        )


class NormativeLookupResponse(BaseModel):
    """Reference value resolved for a structure and age."""

    structure: str
    canonical_name: str
    age: int
    age_group: str
    bucket: str
    mean: float
    sd: Optional[float] = None
    fallback: bool = False


class ErrorResponse(BaseModel):
    """Standard error envelope for API failures."""

    error_code: str = Field(..., description="Machine-readable error identifier.")
    message: str = Field(..., description="Human-readable error description.")
    details: Optional[Dict[str, Any]] = Field(default=None)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error_code": "STRUCTURE_NOT_FOUND",
                "message": "No normative data for 'Ventricles'.",
                "details": {"structure": "Ventricles"},
                "timestamp": "2025-01-05T12:00:00Z",
            }
        }
    )


class HealthResponse(BaseModel):
    status: Literal["healthy", "unhealthy"]
    version: str
    structures: int = Field(..., ge=0)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
