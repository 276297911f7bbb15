"""Age-bucketed normative reference values for brain structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Sequence, Tuple

ALL_LABEL = "All"
CONTROL_LABEL = "Control"
FALLBACK_LABELS = (ALL_LABEL, CONTROL_LABEL)


@dataclass(frozen=True)
class AgeRange:
    """Closed age interval ``[min, max]``; ``max=None`` is open-ended."""

    label: str
    min: int
    max: Optional[int]
    mean: Optional[float] = None
    sd: Optional[float] = None

    def contains(self, age: int) -> bool:
        return age >= self.min and (self.max is None or age <= self.max)


@dataclass(frozen=True)
class NormativeEntry:
    canonical_structure: str
    age_ranges: Tuple[AgeRange, ...]
    aggregates: Mapping[str, Tuple[float, Optional[float]]] = field(default_factory=dict)
    default_sd: Optional[float] = None

    def bucket_for(self, age: int) -> Optional[AgeRange]:
        for age_range in self.age_ranges:
            if age_range.contains(age):
                return age_range
        return None


@dataclass(frozen=True)
class NormativeValue:
    """Result of a reference lookup."""

    mean: float
    sd: Optional[float]
    bucket: str
    fallback: bool = False


class NormativeReferenceStore:
    """Immutable lookup table of normative means and standard deviations."""

    def __init__(
        self,
        age_ranges: Sequence[AgeRange],
        entries: Mapping[str, NormativeEntry],
    ) -> None:
        self._age_ranges: Tuple[AgeRange, ...] = tuple(sorted(age_ranges, key=lambda item: item.min))
        self._entries: Mapping[str, NormativeEntry] = MappingProxyType(dict(entries))

    @property
    def age_ranges(self) -> Tuple[AgeRange, ...]:
        return self._age_ranges

    @property
    def structures(self) -> Tuple[str, ...]:
        return tuple(self._entries)

    def entry(self, canonical_structure: str) -> Optional[NormativeEntry]:
        return self._entries.get(canonical_structure)

    def age_group(self, age: int) -> str:
        """Return the label of the default bucket containing ``age``.

        Falls back to the ``"All"`` sentinel when no configured range matches.
        """

        _check_age(age)
        for age_range in self._age_ranges:
            if age_range.contains(age):
                return age_range.label
        return ALL_LABEL

    def lookup(self, canonical_structure: str, age: int) -> Optional[NormativeValue]:
        """Return the normative mean and SD for a structure at ``age``.

        Precedence is the structure's own age bucket, then the ``"All"``
        aggregate, then ``"Control"``. Values are never interpolated.
        """

        _check_age(age)
        entry = self._entries.get(canonical_structure)
        if entry is None:
            return None

        bucket = entry.bucket_for(age)
        if bucket is not None and bucket.mean is not None:
            return NormativeValue(
                mean=bucket.mean,
                sd=bucket.sd if bucket.sd is not None else entry.default_sd,
                bucket=bucket.label,
            )

        for label in FALLBACK_LABELS:
            aggregate = entry.aggregates.get(label)
            if aggregate is not None:
                mean, sd = aggregate
                return NormativeValue(
                    mean=mean,
                    sd=sd if sd is not None else entry.default_sd,
                    bucket=label,
                    fallback=True,
                )
        return None

    def baseline(self, canonical_structure: str) -> Optional[NormativeValue]:
        """Return the control-population value used when no age is known."""

        entry = self._entries.get(canonical_structure)
        if entry is None:
            return None
        aggregate = entry.aggregates.get(CONTROL_LABEL)
        if aggregate is None:
            return None
        mean, sd = aggregate
        return NormativeValue(
            mean=mean,
            sd=sd if sd is not None else entry.default_sd,
            bucket=CONTROL_LABEL,
            fallback=True,
        )


def _check_age(age: int) -> None:
    if isinstance(age, bool) or not isinstance(age, int):
        raise ValueError(f"Age must be an integer, received {age!r}.")
    if age < 0:
        raise ValueError(f"Age must be non-negative, received {age}.")
