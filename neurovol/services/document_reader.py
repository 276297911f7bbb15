"""Acquisition of report text from documents on disk."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Union

import pdfplumber

from neurovol.utils.logger import get_logger

LOGGER = get_logger(__name__)

TEXT_SUFFIXES = {".txt", ".text", ".md", ".csv", ".tsv", ""}
PDF_SUFFIXES = {".pdf"}


class DocumentReadError(RuntimeError):
    """Raised when the text of a document cannot be obtained."""


class DocumentReader:
    """Return a document's content as a single newline-delimited string.

    Plain-text documents are decoded as UTF-8. PDF documents are delegated to
    pdfplumber and their pages joined with newlines.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    def read_text(self, path: Union[str, Path]) -> str:
        document = Path(path)

        try:
            payload = document.read_bytes()
        except OSError as exc:
            LOGGER.error(
                "Failed to read document.",
                extra={"context": {"path": str(document), "error": str(exc)}},
            )
            raise DocumentReadError(f"Could not read document {document}: {exc}") from exc

        return self.read_payload(payload, str(document))

    def read_payload(self, payload: bytes, filename: str) -> str:
        """Return the text of an in-memory document, dispatching on ``filename``'s suffix."""

        suffix = Path(filename).suffix.lower()
        if suffix in PDF_SUFFIXES:
            return self.extract_pdf_text(payload, source=filename)
        if suffix in TEXT_SUFFIXES:
            return self.decode_text(payload, source=filename)
        raise DocumentReadError(f"Could not read document {filename}: unsupported file type '{suffix}'.")

    def decode_text(self, payload: bytes, source: str = "<bytes>") -> str:
        try:
            return payload.decode(self.encoding)
        except UnicodeDecodeError as exc:
            raise DocumentReadError(f"Could not read document {source}: {exc}") from exc

    def extract_pdf_text(self, payload: bytes, source: str = "<bytes>") -> str:
        """Extract the text layer of a PDF byte stream."""

        try:
            with pdfplumber.open(io.BytesIO(payload)) as pdf:
                pages = [page.extract_text() or "" for page in pdf.pages]
        except Exception as exc:  # noqa: BLE001 - pdfminer raises assorted error types
            LOGGER.error(
                "Failed to extract text using pdfplumber.",
                extra={"context": {"source": source, "error": str(exc)}},
            )
            raise DocumentReadError(f"Could not read document {source}: {exc}") from exc

        text = "\n".join(pages)
        if not text.strip():
            raise DocumentReadError(f"Could not read document {source}: no text layer found.")
        return text
