"""Command-line interface for scoring volumetry reports."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Optional

import typer

from neurovol.normative.loader import ReferenceDataError, get_alias_resolver, get_reference_store
from neurovol.pipeline.orchestrator import ExtractionOrchestrator
from neurovol.services.document_reader import DocumentReadError, DocumentReader
from neurovol.utils.config import get_settings
from neurovol.utils.logger import log_error

app = typer.Typer(help="Extract brain volumetry tables from reports and score them.")


def _refresh_settings() -> None:
    """Reload cached settings so newly-set env vars are respected."""

    get_settings.cache_clear()  # type: ignore[attr-defined]
    get_settings()


@app.command("analyze")
def analyze(
    document: Path = typer.Argument(..., help="Report document (.txt or .pdf)."),
    age: Optional[int] = typer.Option(
        None,
        "--age",
        "-a",
        min=0,
        max=130,
        help="Patient age in years; overrides the Age field in the report.",
    ),
    sex: Optional[str] = typer.Option(None, "--sex", help="male or female."),
    patient_id: Optional[str] = typer.Option(None, "--patient-id", help="Patient identifier override."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Include the extraction decision trace."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write JSON here instead of stdout."),
) -> None:
    """
    Read a report, extract its measurement table, attach age-adjusted
    normative values and print the scored result as JSON.
    """

    _refresh_settings()

    if sex is not None and sex.strip().lower() not in {"male", "female", "m", "f"}:
        typer.secho(f"Invalid sex '{sex}'; expected male or female.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    if not document.exists():
        typer.secho(f"Document not found: {document}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    try:
        text = DocumentReader().read_text(document)
    except DocumentReadError as exc:
        log_error(exc, context={"path": str(document)})
        typer.secho(f"Could not read document: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2) from exc

    try:
        orchestrator = ExtractionOrchestrator()
    except ReferenceDataError as exc:
        typer.secho(f"Reference data could not be loaded: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=4) from exc

    try:
        analysis = orchestrator.process(text, known_age=age, sex=sex, patient_id=patient_id, verbose=verbose)
    except ValueError as exc:
        typer.secho(f"Invalid report: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc

    rendered = json.dumps(analysis.to_dict(), indent=2)
    if output is not None:
        output.write_text(rendered + "\n", encoding="utf-8")
        typer.echo(f"Wrote {len(analysis.measurements)} measurements to {output}")
    else:
        typer.echo(rendered)

    if analysis.status == "no_measurement_table":
        typer.secho(analysis.message or "No measurement table found", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=3)


@app.command("lookup")
def lookup(
    structure: str = typer.Argument(..., help="Structure name in any supported spelling."),
    age: int = typer.Option(..., "--age", "-a", min=0, max=130, help="Patient age in years."),
) -> None:
    """Print the normative mean and SD for a structure at an age."""

    _refresh_settings()
    canonical = get_alias_resolver().resolve(structure)
    if canonical is None:
        typer.secho(f"Unknown structure: {structure}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    store = get_reference_store()
    value = store.lookup(canonical, age)
    if value is None:
        typer.secho(f"No normative data for {canonical}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    typer.echo(
        json.dumps(
            {
                "structure": canonical,
                "age_group": store.age_group(age),
                "bucket": value.bucket,
                "mean": value.mean,
                "sd": value.sd,
                "fallback": value.fallback,
            }
        )
    )


def main(argv: Optional[list[str]] = None) -> None:
    """Entrypoint compatible with python -m execution."""

    app(standalone_mode=True, prog_name="neurovol", args=argv or sys.argv[1:])


if __name__ == "__main__":
    main()
