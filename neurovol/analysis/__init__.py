"""Deviation scoring against normative values."""

from .deviation import AnalysisSummary, DeviationAnalyzer

__all__ = ["AnalysisSummary", "DeviationAnalyzer"]
