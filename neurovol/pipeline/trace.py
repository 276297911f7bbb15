"""Opt-in diagnostic trace for a single extraction run."""

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class ExtractionTrace:
    """Ordered record of the decisions taken while processing a report."""

    steps: List[Dict[str, Any]] = field(default_factory=list)

    def record(self, step: str, **details: Any) -> None:
        self.steps.append({"step": step, **details})

    def to_list(self) -> List[Dict[str, Any]]:
        return [dict(step) for step in self.steps]
