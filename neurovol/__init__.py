"""Report extraction and normative deviation scoring for brain volumetry."""

from .pipeline import ExtractionOrchestrator, PatientAnalysis

__all__ = ["ExtractionOrchestrator", "PatientAnalysis"]
