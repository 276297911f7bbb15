"""Extraction of structure volume tables from loosely formatted report text."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence, Tuple

from neurovol.normative.aliases import StructureAliasResolver
from neurovol.parsers.models import MeasurementRecord
from neurovol.utils.logger import get_logger

if TYPE_CHECKING:  # pragma: no cover - typing only
    from neurovol.pipeline.trace import ExtractionTrace

LOGGER = get_logger(__name__)

# --------------------------------------------------------------------------- #
# Section gate
# --------------------------------------------------------------------------- #

DEFAULT_SECTION_HEADERS: Tuple[str, ...] = (
    "morphometry",
    "neuroquant",
    "volumetric analysis",
    "volumetry",
    "brain structure",
    "structure volume",
    "age-matched normative",
)

LINE_SPLIT_PATTERN = re.compile(r"\r\n|\r|\n")

# --------------------------------------------------------------------------- #
# Value patterns
# --------------------------------------------------------------------------- #

DECIMAL_PATTERN = re.compile(r"(?<![\d.])\d+\.\d+(?![\d.])")

LEFT_TAG_PATTERN = re.compile(r"\b(?:left|l)\s*:\s*(?P<value>\d+\.\d+)", re.IGNORECASE)
RIGHT_TAG_PATTERN = re.compile(r"\b(?:right|r)\s*:\s*(?P<value>\d+\.\d+)", re.IGNORECASE)
TOTAL_TAG_PATTERN = re.compile(r"\b(?:total|bilateral)\s*:\s*(?P<value>\d+\.\d+)", re.IGNORECASE)

LEFT_WORD_PATTERN = re.compile(r"\b(?:left|lh)\b|\bl\.", re.IGNORECASE)
RIGHT_WORD_PATTERN = re.compile(r"\b(?:right|rh)\b|\br\.", re.IGNORECASE)

_NAME = r"^\s*(?P<name>[^\d\r\n]+?)[\s:|-]+"
# Trailing tokens may be anything except another decimal value.
_TAIL = r"(?:\s+(?!\d+\.\d)\S+)*\s*$"


def _value(group: str) -> str:
    return rf"(?P<{group}>\d+\.\d+)%?"


SIX_VALUE_PATTERN = re.compile(
    _NAME
    + r"\s+".join(_value(group) for group in ("left", "right", "total", "normative", "sd"))
    + _TAIL
)
THREE_VALUE_PATTERN = re.compile(
    _NAME + r"\s+".join(_value(group) for group in ("total", "normative", "sd")) + _TAIL
)

NAME_STRIP_CHARS = " \t:|-–,;"


@dataclass(frozen=True)
class ColumnLayout:
    """Zero-based column positions discovered from a table header row.

    Positions are rebased so that the leftmost discovered column maps to the
    first decimal value of a data row.
    """

    left: int
    right: int
    total: Optional[int] = None

    @property
    def max_index(self) -> int:
        return max(index for index in (self.left, self.right, self.total) if index is not None)


@dataclass
class ParseOutcome:
    records: List[MeasurementRecord] = field(default_factory=list)
    gate: Optional[str] = None
    layout: Optional[ColumnLayout] = None
    skipped_lines: int = 0

    @property
    def table_found(self) -> bool:
        return self.gate is not None


Extractor = Callable[[str, str], Optional[MeasurementRecord]]


class ReportParser:
    """Heuristic extractor for morphometry tables in report text.

    Candidate lines are offered to an ordered list of strategies; the first
    strategy that produces a record wins.
    """

    def __init__(
        self,
        resolver: StructureAliasResolver,
        section_headers: Optional[Sequence[str]] = None,
    ) -> None:
        self._resolver = resolver
        self._section_headers = tuple(
            header.lower() for header in (section_headers or DEFAULT_SECTION_HEADERS)
        )

    def extract_records(self, text: str) -> List[MeasurementRecord]:
        """Return provisional measurement records found in ``text``."""

        return self.parse(text).records

    def parse(self, text: str, trace: Optional["ExtractionTrace"] = None) -> ParseOutcome:
        """Parse ``text`` and report which gate admitted it."""

        outcome = ParseOutcome()
        if not isinstance(text, str) or not text.strip():
            return outcome

        lines = LINE_SPLIT_PATTERN.split(text)
        outcome.gate = self._detect_gate(lines)
        if trace is not None:
            trace.record("gate", passed=outcome.gate is not None, gate=outcome.gate)
        if outcome.gate is None:
            LOGGER.debug("No measurement table detected.", extra={"context": {"lines": len(lines)}})
            return outcome

        strategies = self._strategies(None)
        for line_number, raw_line in enumerate(lines, start=1):
            line = raw_line.strip()
            keyword = self._resolver.find_keyword(line)

            # The latest header row governs the data rows below it.
            if keyword is None and not DECIMAL_PATTERN.search(line):
                layout = self.header_layout(line)
                if layout is not None:
                    outcome.layout = layout
                    strategies = self._strategies(layout)
                    if trace is not None:
                        trace.record(
                            "columns",
                            line=line_number,
                            left=layout.left,
                            right=layout.right,
                            total=layout.total,
                        )
                continue

            if keyword is None or len(DECIMAL_PATTERN.findall(line)) < 2:
                continue

            record = None
            for name, extractor in strategies:
                record = extractor(line, keyword)
                if record is not None:
                    record.strategy = name
                    record.source_line = line
                    break

            if record is None:
                outcome.skipped_lines += 1
                if trace is not None:
                    trace.record("line_skipped", line=line_number, text=line)
                continue

            record.canonical_name = self._resolver.resolve(record.name)
            outcome.records.append(record)
            if trace is not None:
                trace.record(
                    "line_parsed",
                    line=line_number,
                    strategy=record.strategy,
                    name=record.name,
                    canonical=record.canonical_name,
                )

        LOGGER.debug(
            "Parsed measurement table.",
            extra={
                "context": {
                    "gate": outcome.gate,
                    "records": len(outcome.records),
                    "skipped": outcome.skipped_lines,
                }
            },
        )
        return outcome

    # ------------------------------------------------------------------ #
    # Gates and layout
    # ------------------------------------------------------------------ #

    def _detect_gate(self, lines: Sequence[str]) -> Optional[str]:
        for line in lines:
            folded = line.lower()
            if any(header in folded for header in self._section_headers):
                return "header"

        for line in lines:
            folded = line.lower()
            for keyword in self._resolver.keywords:
                position = folded.find(keyword)
                if position < 0:
                    continue
                if len(DECIMAL_PATTERN.findall(line[position + len(keyword):])) >= 3:
                    return "content"
        return None

    def header_layout(self, line: str) -> Optional[ColumnLayout]:
        """Read column positions from a single header row.

        A header row has at least three tokens and names distinct left and
        right columns. Callers apply the most recent header above a data row.
        """

        tokens = [token.strip("|,;:()[]") for token in line.lower().split()]
        tokens = [token for token in tokens if token]
        if len(tokens) < 3:
            return None
        left = _first_index(tokens, _is_left_token)
        right = _first_index(tokens, _is_right_token)
        if left is None or right is None or left == right:
            return None
        total = _first_index(tokens, lambda token: "total" in token or "bilateral" in token)
        base = min(index for index in (left, right, total) if index is not None)
        return ColumnLayout(
            left=left - base,
            right=right - base,
            total=total - base if total is not None else None,
        )

    # ------------------------------------------------------------------ #
    # Strategies
    # ------------------------------------------------------------------ #

    def _strategies(self, layout: Optional[ColumnLayout]) -> List[Tuple[str, Extractor]]:
        strategies: List[Tuple[str, Extractor]] = [
            ("tagged", self._extract_tagged),
            ("positional_6", self._extract_six_values),
            ("positional_3", self._extract_three_values),
        ]
        if layout is not None:
            strategies.append(("columns", lambda line, keyword: self._extract_by_columns(line, layout)))
        strategies.append(("fallback", self._extract_fallback))
        return strategies

    def _extract_tagged(self, line: str, keyword: str) -> Optional[MeasurementRecord]:
        left = LEFT_TAG_PATTERN.search(line)
        right = RIGHT_TAG_PATTERN.search(line)
        if left is None or right is None:
            return None

        total = TOTAL_TAG_PATTERN.search(line)
        starts = [left.start(), right.start()] + ([total.start()] if total is not None else [])
        name = _clean_name(line[: min(starts)])
        if name is None:
            return None

        left_volume = float(left.group("value"))
        right_volume = float(right.group("value"))
        record = MeasurementRecord(name=name, left_volume=left_volume, right_volume=right_volume)
        if total is not None:
            record.total_volume = float(total.group("value"))
        else:
            record.total_volume = round(left_volume + right_volume, 2)
            record.total_derived = True
        return record

    def _extract_six_values(self, line: str, keyword: str) -> Optional[MeasurementRecord]:
        match = SIX_VALUE_PATTERN.match(line)
        if match is None:
            return None
        name = _clean_name(match.group("name"))
        if name is None:
            return None
        return MeasurementRecord(
            name=name,
            left_volume=float(match.group("left")),
            right_volume=float(match.group("right")),
            total_volume=float(match.group("total")),
            normative_value=float(match.group("normative")),
            standard_deviation=float(match.group("sd")),
        )

    def _extract_three_values(self, line: str, keyword: str) -> Optional[MeasurementRecord]:
        match = THREE_VALUE_PATTERN.match(line)
        if match is None:
            return None
        name = _clean_name(match.group("name"))
        if name is None:
            return None
        return MeasurementRecord(
            name=name,
            total_volume=float(match.group("total")),
            normative_value=float(match.group("normative")),
            standard_deviation=float(match.group("sd")),
        )

    def _extract_by_columns(self, line: str, layout: ColumnLayout) -> Optional[MeasurementRecord]:
        values = [float(value) for value in DECIMAL_PATTERN.findall(line)]
        if layout.left >= len(values) or layout.right >= len(values):
            return None
        name = _leading_name(line)
        if name is None:
            return None

        record = MeasurementRecord(
            name=name,
            left_volume=values[layout.left],
            right_volume=values[layout.right],
        )
        if layout.total is not None and layout.total < len(values):
            record.total_volume = values[layout.total]

        trailing = values[layout.max_index + 1 :]
        if trailing:
            record.normative_value = trailing[0]
        if len(trailing) > 1:
            record.standard_deviation = trailing[1]
        return record

    def _extract_fallback(self, line: str, keyword: str) -> Optional[MeasurementRecord]:
        values = [float(value) for value in DECIMAL_PATTERN.findall(line)]
        if len(values) < 3:
            return None
        name = _leading_name(line)
        if name is None:
            return None

        record = MeasurementRecord(name=name, needs_normative=True)
        if LEFT_WORD_PATTERN.search(line) and RIGHT_WORD_PATTERN.search(line):
            record.left_volume = values[0]
            record.right_volume = values[1]
            record.total_volume = values[2]
        else:
            record.total_volume = values[0]
        return record


# --------------------------------------------------------------------------- #
# Convenience wrapper
# --------------------------------------------------------------------------- #


def extract_records(text: str) -> List[MeasurementRecord]:
    """Convenience wrapper using the packaged alias table."""

    from neurovol.normative.loader import get_alias_resolver

    return ReportParser(get_alias_resolver()).extract_records(text)


# --------------------------------------------------------------------------- #
# Helper functions
# --------------------------------------------------------------------------- #


def _is_left_token(token: str) -> bool:
    return "left" in token or token in {"l", "l.", "lh"}


def _is_right_token(token: str) -> bool:
    return "right" in token or token in {"r", "r.", "rh"}


def _first_index(tokens: Sequence[str], predicate: Callable[[str], bool]) -> Optional[int]:
    for index, token in enumerate(tokens):
        if predicate(token):
            return index
    return None


def _leading_name(line: str) -> Optional[str]:
    match = DECIMAL_PATTERN.search(line)
    if match is None:
        return None
    return _clean_name(line[: match.start()])


def _clean_name(raw: str) -> Optional[str]:
    """Normalise whitespace and reject fragments that cannot be names."""

    name = re.sub(r"\s+", " ", raw).strip(NAME_STRIP_CHARS)
    if len(name) < 3:
        return None
    if not re.search(r"[A-Za-z]", name):
        return None
    return name
