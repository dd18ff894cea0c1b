"""Typer CLI for running the claim workflow locally."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from app.common.exceptions import ClaimsSuiteError
from app.common.knowledge_cli import print_knowledge_info
from app.common.text_io import load_note
from claim_schemas.claim import Claim
from claim_schemas.coding import CodeMappingResult, MappedCode
from claim_schemas.validation import ValidationResult
from config.settings import Settings

from .adapters.llm.stub_reasoner import DeterministicStubReasoner
from .application.claims_service import ClaimsService

app = typer.Typer(help="Map clinician notes to billing codes and validate claims.")
console = Console()


@app.callback(invoke_without_command=True)
def _cli_entry(
    ctx: typer.Context,
    knowledge_info: bool = typer.Option(
        False,
        "--knowledge-info",
        help="Print knowledge table metadata and exit.",
        is_eager=True,
    ),
) -> None:
    if knowledge_info:
        print_knowledge_info(console)
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def _service(offline: bool) -> ClaimsService:
    reasoner = DeterministicStubReasoner(reason="--offline") if offline else None
    return ClaimsService.from_settings(Settings(), reasoner=reasoner)


@app.command()
def validate(
    claim_path: Path = typer.Argument(..., exists=True, readable=True, help="Path to a claim JSON file"),
    json_output: bool = typer.Option(False, "--json", help="Emit JSON output."),
) -> None:
    """Validate the claim in CLAIM_PATH against the rule tables."""

    try:
        claim = Claim.model_validate_json(claim_path.read_text(encoding="utf-8"))
    except ValidationError as exc:
        typer.secho(f"Invalid claim file: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=2)

    result = _service(offline=True).validate_claim(claim)
    if json_output:
        typer.echo(result.model_dump_json(indent=2))
    else:
        _print_validation(result)
    if not result.valid:
        raise typer.Exit(code=1)


@app.command("map")
def map_note(
    note: str = typer.Argument(..., help="Clinician note (path or raw text)"),
    json_output: bool = typer.Option(False, "--json", help="Emit JSON output."),
    offline: bool = typer.Option(
        False,
        "--offline",
        help="Use the deterministic stub instead of the configured reasoning provider.",
    ),
) -> None:
    """Extract entities from NOTE and map them to CPT / ICD-10 codes."""

    text = load_note(note)
    service = _service(offline)
    try:
        entities = asyncio.run(service.extract_entities(text))
    except ClaimsSuiteError as exc:
        typer.secho(f"Entity extraction failed [{exc.code}]: {exc.message}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1)

    mapping = service.map_codes(entities)
    if json_output:
        typer.echo(mapping.model_dump_json(indent=2))
        return
    _print_mapping(mapping)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address."),
    port: int = typer.Option(8000, help="Bind port."),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes (development)."),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    uvicorn.run("app.api.fastapi_app:app", host=host, port=port, reload=reload)


def _codes_table(title: str, codes: list[MappedCode]) -> Table:
    table = Table(title=title, show_lines=False)
    table.add_column("Code", style="cyan", no_wrap=True)
    table.add_column("Description")
    table.add_column("Confidence", justify="right")
    table.add_column("Source")
    table.add_column("Matched")
    for mapped in codes:
        table.add_row(
            mapped.code,
            mapped.description,
            f"{mapped.confidence:.2f}",
            mapped.source,
            mapped.matched_term or "—",
        )
    return table


def _print_mapping(mapping: CodeMappingResult) -> None:
    entities = mapping.entities.model_dump(exclude_none=True)
    summary = "\n".join(f"{key}: {value}" for key, value in entities.items()) or "—"
    console.print(Panel(summary, title="Extracted Entities"))
    console.print(_codes_table("CPT Candidates", mapping.cpt_codes))
    console.print(_codes_table("ICD-10 Candidates", mapping.icd_codes))


def _print_validation(result: ValidationResult) -> None:
    if not result.issues:
        console.print(Panel("No issues found", title="Claim Valid", style="green"))
        return

    table = Table(title="Validation Issues", show_lines=False)
    table.add_column("Severity", no_wrap=True)
    table.add_column("Code", style="cyan", no_wrap=True)
    table.add_column("Message")
    table.add_column("Suggested Fix")
    for issue in result.issues:
        table.add_row(issue.severity.value, issue.code, issue.message, issue.suggested_fix or "—")
    console.print(table)
    style = "green" if result.valid else "red"
    console.print(f"[{style}]valid: {result.valid}[/{style}] ({len(result.errors)} errors)")


if __name__ == "__main__":  # pragma: no cover
    app()


__all__ = ["app"]
