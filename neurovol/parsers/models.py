"""Data structures shared by the parser, analyzer and pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Status(str, Enum):
    NORMAL = "normal"
    ATROPHIED = "atrophied"
    ENLARGED = "enlarged"


class IssueKind(str, Enum):
    """Soft conditions reported alongside a result rather than raised."""

    NO_RECOGNIZABLE_DATA = "no_recognizable_data"
    UNRESOLVED_STRUCTURE = "unresolved_structure"
    SCORING_SKIPPED = "scoring_skipped"


@dataclass
class MeasurementRecord:
    """A single structure measurement as observed or entered.

    ``total_derived`` is set when ``total_volume`` was computed from the two
    lateral volumes rather than read from the source.
    """

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
    source_line: str = ""

    @property
    def has_laterals(self) -> bool:
        return self.left_volume is not None and self.right_volume is not None

    @property
    def is_scorable(self) -> bool:
        """True when the record can be scored along at least one axis."""

        return self.total_volume is not None or self.has_laterals


@dataclass
class Asymmetry:
    difference_abs: float
    difference_pct: float
    significant: bool


@dataclass
class AnalysisResult:
    structure_name: str
    status: Status = Status.NORMAL
    z_score: Optional[float] = None
    asymmetry: Optional[Asymmetry] = None


@dataclass
class ExtractionIssue:
    kind: IssueKind
    message: str
    structure: Optional[str] = None


@dataclass
class ScoredMeasurement:
    record: MeasurementRecord
    result: AnalysisResult
    issues: List[ExtractionIssue] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["result"]["status"] = self.result.status.value
        payload["issues"] = [
            {"kind": issue.kind.value, "message": issue.message, "structure": issue.structure}
            for issue in self.issues
        ]
        return payload
