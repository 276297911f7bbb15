from __future__ import annotations

from pathlib import Path

import pytest

from neurovol.normative.aliases import StructureAliasResolver
from neurovol.normative.loader import get_alias_resolver, get_reference_store
from neurovol.normative.reference_store import NormativeReferenceStore
from neurovol.parsers.report_parser import ReportParser
from neurovol.pipeline.orchestrator import ExtractionOrchestrator

SAMPLE_DIR = Path(__file__).resolve().parents[1] / "data" / "sample_reports"


@pytest.fixture(scope="session")
def sample_dir() -> Path:
    """Path to the ``data/sample_reports`` folder."""
    return SAMPLE_DIR


@pytest.fixture(scope="session")
def morphometry_report(sample_dir: Path) -> str:
    return (sample_dir / "neuroquant_morphometry.txt").read_text(encoding="utf-8")


@pytest.fixture(scope="session")
def tagged_report(sample_dir: Path) -> str:
    return (sample_dir / "tagged_volumes.txt").read_text(encoding="utf-8")


@pytest.fixture(scope="session")
def resolver() -> StructureAliasResolver:
    return get_alias_resolver()


@pytest.fixture(scope="session")
def store() -> NormativeReferenceStore:
    return get_reference_store()


@pytest.fixture()
def parser(resolver: StructureAliasResolver) -> ReportParser:
    return ReportParser(resolver)


@pytest.fixture()
def orchestrator(store: NormativeReferenceStore, resolver: StructureAliasResolver) -> ExtractionOrchestrator:
    return ExtractionOrchestrator(store=store, resolver=resolver)
