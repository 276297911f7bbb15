"""API route definitions."""

from __future__ import annotations

import time
from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, File, Form, HTTPException, Query, Request, UploadFile

from neurovol.parsers.demographics import normalise_sex
from neurovol.pipeline.orchestrator import ExtractionOrchestrator
from neurovol.services.document_reader import DocumentReadError, DocumentReader
from neurovol.utils.logger import get_logger, log_error
from neurovol.utils.validators import MAX_AGE_YEARS

from .models import (
    AnalysisResponse,
    AnalyzeRecordsRequest,
    AnalyzeReportRequest,
    ErrorResponse,
    NormativeLookupResponse,
)

router = APIRouter(prefix="/v1", tags=["volumetry"])

logger = get_logger(__name__)


def _orchestrator(request: Request) -> ExtractionOrchestrator:
    return request.app.state.orchestrator


def _trace_id(request: Request) -> str:
    return getattr(request.state, "trace_id", None) or str(uuid4())


def _error(status_code: int, error_code: str, message: str, **details: object) -> HTTPException:
    body = ErrorResponse(error_code=error_code, message=message, details=details or None)
    return HTTPException(status_code=status_code, detail=body.model_dump(mode="json"))


@router.post("/analyze_report", response_model=AnalysisResponse)
def analyze_report(payload: AnalyzeReportRequest, request: Request) -> AnalysisResponse:
    """Extract the measurement table from report text and score it."""

    started = time.perf_counter()
    try:
        analysis = _orchestrator(request).process(
            payload.report_text,
            known_age=payload.age,
            sex=payload.sex,
            patient_id=payload.patient_id,
            verbose=payload.verbose,
        )
    except ValueError as exc:
        raise _error(422, "INVALID_REPORT", str(exc)) from exc

    return AnalysisResponse.from_analysis(
        analysis,
        trace_id=_trace_id(request),
        processing_time_ms=round((time.perf_counter() - started) * 1000, 2),
    )


@router.post("/analyze_records", response_model=AnalysisResponse)
def analyze_records(payload: AnalyzeRecordsRequest, request: Request) -> AnalysisResponse:
    """Score manually entered measurements."""

    started = time.perf_counter()
    try:
        analysis = _orchestrator(request).analyze_records(
            [record.to_record() for record in payload.records],
            age=payload.age,
            sex=payload.sex,
            patient_id=payload.patient_id,
            verbose=payload.verbose,
        )
    except ValueError as exc:
        raise _error(422, "INVALID_RECORDS", str(exc)) from exc

    return AnalysisResponse.from_analysis(
        analysis,
        trace_id=_trace_id(request),
        processing_time_ms=round((time.perf_counter() - started) * 1000, 2),
    )


@router.get("/normative/{structure}", response_model=NormativeLookupResponse)
def normative_lookup(
    structure: str,
    request: Request,
    age: int = Query(..., ge=0, le=130, description="Patient age in years."),
) -> NormativeLookupResponse:
    """Return the reference value used for a structure at a given age."""

    store = request.app.state.reference_store
    canonical = request.app.state.alias_resolver.resolve(structure)
    if canonical is None:
        raise _error(404, "STRUCTURE_NOT_FOUND", f"Unknown structure '{structure}'.", structure=structure)

    value = store.lookup(canonical, age)
    if value is None:
        raise _error(
            404,
            "NORMATIVE_VALUE_NOT_FOUND",
            f"No normative data for '{canonical}'.",
            structure=structure,
            canonical_name=canonical,
        )

    return NormativeLookupResponse(
        structure=structure,
        canonical_name=canonical,
        age=age,
        age_group=store.age_group(age),
        bucket=value.bucket,
        mean=value.mean,
        sd=value.sd,
        fallback=value.fallback,
    )


@router.post("/analyze_document", response_model=AnalysisResponse)
def analyze_document(
    request: Request,
    file: UploadFile = File(..., description="Report document (.txt or .pdf)."),
    age: Optional[int] = Form(default=None, ge=0, le=MAX_AGE_YEARS),
    sex: Optional[str] = Form(default=None),
    patient_id: Optional[str] = Form(default=None),
    verbose: bool = Form(default=False),
) -> AnalysisResponse:
    """Read an uploaded report document, extract its table and score it."""

    started = time.perf_counter()
    if sex is not None and normalise_sex(sex) is None:
        raise _error(422, "INVALID_SEX", f"Invalid sex '{sex}'; expected male or female.", sex=sex)

    filename = file.filename or "upload.txt"
    try:
        text = DocumentReader().read_payload(file.file.read(), filename)
    except DocumentReadError as exc:
        log_error(exc, context={"filename": filename}, correlation_id=_trace_id(request))
        raise _error(422, "DOCUMENT_UNREADABLE", str(exc), filename=filename) from exc

    try:
        analysis = _orchestrator(request).process(
            text,
            known_age=age,
            sex=sex,
            patient_id=patient_id,
            verbose=verbose,
        )
    except ValueError as exc:
        raise _error(422, "INVALID_REPORT", str(exc)) from exc

    return AnalysisResponse.from_analysis(
        analysis,
        trace_id=_trace_id(request),
        processing_time_ms=round((time.perf_counter() - started) * 1000, 2),
    )
