"""Loading and validation of the packaged reference tables."""

from __future__ import annotations

import json
from functools import lru_cache
from json import JSONDecodeError
from pathlib import Path
from typing import Any, Dict, Optional

from jsonschema import ValidationError, validate

from neurovol.normative.aliases import StructureAliasResolver
from neurovol.normative.reference_store import AgeRange, NormativeEntry, NormativeReferenceStore
from neurovol.utils.config import get_settings
from neurovol.utils.logger import get_logger

LOGGER = get_logger(__name__)

DATA_DIR = Path(__file__).resolve().parent / "data"
DEFAULT_NORMATIVE_PATH = DATA_DIR / "normative_ranges.json"
DEFAULT_ALIAS_PATH = DATA_DIR / "structure_aliases.json"


class ReferenceDataError(RuntimeError):
    """Raised when a reference table cannot be loaded or fails validation."""


_BOUND = {"type": ["integer", "null"], "minimum": 0}

_MEAN_SD = {
    "type": "object",
    "required": ["mean"],
    "properties": {
        "mean": {"type": "number"},
        "sd": {"type": ["number", "null"], "minimum": 0},
    },
}

NORMATIVE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["age_ranges", "structures"],
    "properties": {
        "age_ranges": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "required": ["label", "min", "max"],
                "properties": {
                    "label": {"type": "string", "minLength": 1},
                    "min": {"type": "integer", "minimum": 0},
                    "max": _BOUND,
                },
            },
        },
        "structures": {
            "type": "object",
            "minProperties": 1,
            "additionalProperties": {
                "type": "object",
                "required": ["age_ranges"],
                "properties": {
                    "default_sd": {"type": ["number", "null"], "minimum": 0},
                    "aggregates": {"type": "object", "additionalProperties": _MEAN_SD},
                    "age_ranges": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "required": ["label", "min", "max", "mean"],
                            "properties": {
                                "label": {"type": "string", "minLength": 1},
                                "min": {"type": "integer", "minimum": 0},
                                "max": _BOUND,
                                "mean": {"type": "number"},
                                "sd": {"type": ["number", "null"], "minimum": 0},
                            },
                        },
                    },
                },
            },
        },
    },
}

ALIAS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["display_aliases", "keywords"],
    "properties": {
        "display_aliases": {"type": "object", "additionalProperties": {"type": "string"}},
        "keywords": {
            "type": "array",
            "items": {
                "type": "array",
                "minItems": 2,
                "maxItems": 2,
                "items": {"type": "string", "minLength": 1},
            },
        },
        "display_names": {"type": "object", "additionalProperties": {"type": "string"}},
    },
}


def _read_json(path: Path, schema: Dict[str, Any]) -> Dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, JSONDecodeError) as exc:
        raise ReferenceDataError(f"Unable to read reference table {path}: {exc}") from exc

    try:
        validate(instance=data, schema=schema)
    except ValidationError as exc:
        raise ReferenceDataError(f"Reference table {path} failed validation: {exc.message}") from exc
    return data


def _build_ranges(raw_ranges: Any, owner: str, with_values: bool = True) -> tuple[AgeRange, ...]:
    ranges = tuple(
        AgeRange(
            label=item["label"],
            min=item["min"],
            max=item["max"],
            mean=item.get("mean") if with_values else None,
            sd=item.get("sd") if with_values else None,
        )
        for item in raw_ranges
    )
    _check_contiguous(ranges, owner)
    return ranges


def _check_contiguous(ranges: tuple[AgeRange, ...], owner: str) -> None:
    for index, current in enumerate(ranges):
        if current.max is not None and current.max < current.min:
            raise ReferenceDataError(f"{owner}: range '{current.label}' has max below min.")
        if index == 0:
            continue
        previous = ranges[index - 1]
        if previous.max is None:
            raise ReferenceDataError(f"{owner}: open-ended range '{previous.label}' must be last.")
        if current.min != previous.max + 1:
            raise ReferenceDataError(
                f"{owner}: ranges '{previous.label}' and '{current.label}' are not contiguous."
            )


def load_reference_store(path: Optional[Path] = None) -> NormativeReferenceStore:
    """Build a reference store from the JSON table at ``path``."""

    table_path = path or DEFAULT_NORMATIVE_PATH
    data = _read_json(table_path, NORMATIVE_SCHEMA)

    default_ranges = _build_ranges(data["age_ranges"], "age_ranges", with_values=False)
    entries: Dict[str, NormativeEntry] = {}
    for name, raw in data["structures"].items():
        aggregates = {
            label: (value["mean"], value.get("sd"))
            for label, value in (raw.get("aggregates") or {}).items()
        }
        entries[name] = NormativeEntry(
            canonical_structure=name,
            age_ranges=_build_ranges(raw["age_ranges"], name),
            aggregates=aggregates,
            default_sd=raw.get("default_sd"),
        )

    LOGGER.debug(
        "Loaded normative reference table.",
        extra={"context": {"path": str(table_path), "structures": len(entries)}},
    )
    return NormativeReferenceStore(default_ranges, entries)


def load_alias_resolver(path: Optional[Path] = None) -> StructureAliasResolver:
    """Build an alias resolver from the JSON table at ``path``.

    Keyword order in the file is the substring-match precedence.
    """

    table_path = path or DEFAULT_ALIAS_PATH
    data = _read_json(table_path, ALIAS_SCHEMA)
    keywords = [(keyword, canonical) for keyword, canonical in data["keywords"]]

    LOGGER.debug(
        "Loaded structure alias table.",
        extra={"context": {"path": str(table_path), "keywords": len(keywords)}},
    )
    return StructureAliasResolver(
        display_aliases=data["display_aliases"],
        keywords=keywords,
        display_names=data.get("display_names"),
    )


@lru_cache(maxsize=1)
def get_reference_store() -> NormativeReferenceStore:
    """Return the process-wide reference store."""

    return load_reference_store(get_settings().NORMATIVE_TABLE_PATH)


@lru_cache(maxsize=1)
def get_alias_resolver() -> StructureAliasResolver:
    """Return the process-wide alias resolver."""

    return load_alias_resolver(get_settings().ALIAS_TABLE_PATH)
