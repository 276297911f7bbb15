"""Z-score and asymmetry scoring of measurement records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from neurovol.parsers.models import AnalysisResult, Asymmetry, MeasurementRecord, Status
from neurovol.utils.config import get_settings


@dataclass
class AnalysisSummary:
    total_abnormalities: int = 0
    atrophied_regions: List[str] = field(default_factory=list)
    enlarged_regions: List[str] = field(default_factory=list)
    asymmetric_regions: List[str] = field(default_factory=list)


class DeviationAnalyzer:
    """Score a record against its normative value and between hemispheres."""

    def __init__(
        self,
        z_threshold: Optional[float] = None,
        asymmetry_threshold_pct: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self.z_threshold = z_threshold if z_threshold is not None else settings.Z_SCORE_THRESHOLD
        self.asymmetry_threshold_pct = (
            asymmetry_threshold_pct
            if asymmetry_threshold_pct is not None
            else settings.ASYMMETRY_THRESHOLD_PCT
        )

    def analyze(self, record: MeasurementRecord) -> AnalysisResult:
        """Return the z-score, status and asymmetry for ``record``.

        The record's ``total_volume`` is used as given. Without a usable
        standard deviation the z-score is ``None`` and the status is normal.
        """

        result = AnalysisResult(structure_name=record.name)

        z_score = self.z_score(record.total_volume, record.normative_value, record.standard_deviation)
        if z_score is not None:
            result.z_score = z_score
            result.status = self.classify(z_score)

        if record.has_laterals:
            result.asymmetry = self.asymmetry(record.left_volume, record.right_volume)

        return result

    def z_score(
        self,
        total: Optional[float],
        normative: Optional[float],
        sd: Optional[float],
    ) -> Optional[float]:
        if total is None or normative is None or not sd:
            return None
        return round((total - normative) / sd, 2)

    def classify(self, z_score: float) -> Status:
        if z_score <= -self.z_threshold:
            return Status.ATROPHIED
        if z_score >= self.z_threshold:
            return Status.ENLARGED
        return Status.NORMAL

    def asymmetry(self, left: float, right: float) -> Asymmetry:
        difference = abs(left - right)
        larger = max(left, right)
        percent = (difference / larger) * 100 if larger > 0 else 0.0
        return Asymmetry(
            difference_abs=round(difference, 2),
            difference_pct=round(percent, 2),
            significant=percent > self.asymmetry_threshold_pct,
        )

    def summarize(self, results: Iterable[AnalysisResult]) -> AnalysisSummary:
        """Aggregate abnormal and asymmetric structures by name."""

        summary = AnalysisSummary()
        for result in results:
            if result.status is Status.ATROPHIED:
                summary.atrophied_regions.append(result.structure_name)
            elif result.status is Status.ENLARGED:
                summary.enlarged_regions.append(result.structure_name)
            if result.asymmetry is not None and result.asymmetry.significant:
                summary.asymmetric_regions.append(result.structure_name)
        summary.total_abnormalities = len(summary.atrophied_regions) + len(summary.enlarged_regions)
        return summary
