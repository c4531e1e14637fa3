"""Command Line Interface for MedRegistry.

This module provides a CLI using Typer for invoking registry operations
against the configured ledger.

Examples:
    MR_LEDGER_TYPE=duckdb MR_LEDGER_PATH=registry.duckdb medregistry invoke createPatient 1 Ali Cairo
    medregistry invoke getPatientbyID 1
    medregistry list-ids patient
"""

import json
from enum import Enum
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from medregistry.dispatcher import OPERATION_NAMES, RegistryDispatcher
from medregistry.domain.services.registry import iter_disease_ids, iter_patient_ids
from medregistry.infrastructure.logging_config import setup_logging
from medregistry.infrastructure.settings import settings
from medregistry.main import create_ledger_adapter

app = typer.Typer(
    name="medregistry",
    help="MedRegistry: patient and disease registry on a transactional ledger",
    add_completion=False
)
console = Console()
err_console = Console(stderr=True)

class EntityType(str, Enum):
    patient = "patient"
    disease = "disease"

def _configure_logging(verbose: bool) -> None:
    setup_logging(use_json=settings.log_json, log_level="DEBUG" if verbose else settings.log_level)

def _render_payload(payload: Optional[bytes]) -> None:
    if not payload:
        return
    try:
        console.print_json(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        console.print(repr(payload))

@app.command()
def invoke(
    function: str = typer.Argument(..., help="Operation name, e.g. createPatient"),
    args: Optional[List[str]] = typer.Argument(None, help="Operation arguments"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Invoke one registry operation and print its payload."""
    _configure_logging(verbose)

    ledger = create_ledger_adapter()
    try:
        result = RegistryDispatcher(ledger).invoke(function, args or [])
    finally:
        ledger.close()

    if result.is_failure():
        err_console.print(f"[red]✗[/red] {result.error_type}: {result.error}")
        raise typer.Exit(code=1)

    err_console.print(f"[green]✓[/green] {function}")
    _render_payload(result.value)

@app.command()
def operations() -> None:
    """List the operation names accepted by invoke."""
    table = Table(title="Registry operations")
    table.add_column("Operation", style="bold")
    for name in OPERATION_NAMES:
        table.add_row(name)
    console.print(table)

@app.command("list-ids")
def list_ids(
    entity: EntityType = typer.Argument(..., help="patient or disease"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """List indexed patient or disease ids."""
    _configure_logging(verbose)

    ledger = create_ledger_adapter()
    try:
        stub = ledger.begin_transaction()
        iterate = iter_patient_ids if entity == EntityType.patient else iter_disease_ids
        ids = list(iterate(stub))
    finally:
        ledger.close()

    for entity_id in ids:
        console.print(entity_id)
    err_console.print(f"[dim]{len(ids)} {entity.value}(s)[/dim]")

def _version_callback(value: bool) -> None:
    if value:
        console.print(f"{settings.app_name} v{settings.app_version}")
        raise typer.Exit()

@app.callback()
def main_callback(
    version: bool = typer.Option(
        False, "--version", help="Show version information",
        callback=_version_callback, is_eager=True
    )
) -> None:
    """MedRegistry: patient and disease registry on a transactional ledger."""

if __name__ == "__main__":
    app()
