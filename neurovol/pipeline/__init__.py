"""End-to-end extraction and scoring pipeline."""

from .orchestrator import ExtractionOrchestrator, PatientAnalysis, derive_total
from .trace import ExtractionTrace

__all__ = ["ExtractionOrchestrator", "ExtractionTrace", "PatientAnalysis", "derive_total"]
