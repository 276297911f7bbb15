from __future__ import annotations

from pathlib import Path

import pytest

from neurovol.services.document_reader import DocumentReadError, DocumentReader


def test_reads_text_document(sample_dir: Path) -> None:
    text = DocumentReader().read_text(sample_dir / "tagged_volumes.txt")
    assert text.startswith("Volumetric Analysis Summary")


def test_missing_document(tmp_path: Path) -> None:
    with pytest.raises(DocumentReadError):
        DocumentReader().read_text(tmp_path / "missing.txt")


def test_invalid_utf8(tmp_path: Path) -> None:
    document = tmp_path / "report.txt"
    document.write_bytes(b"Volumetry \xc3\x28")

    with pytest.raises(DocumentReadError):
        DocumentReader().read_text(document)


def test_unsupported_suffix(tmp_path: Path) -> None:
    document = tmp_path / "report.docx"
    document.write_bytes(b"PK\x03\x04")

    with pytest.raises(DocumentReadError, match="unsupported file type"):
        DocumentReader().read_text(document)


def test_corrupt_pdf(tmp_path: Path) -> None:
    document = tmp_path / "report.pdf"
    document.write_bytes(b"this is not a pdf")

    with pytest.raises(DocumentReadError):
        DocumentReader().read_text(document)


def test_alternative_encoding(tmp_path: Path) -> None:
    document = tmp_path / "report.txt"
    document.write_bytes("Volumetrie é".encode("latin-1"))

    assert DocumentReader(encoding="latin-1").read_text(document) == "Volumetrie é"
