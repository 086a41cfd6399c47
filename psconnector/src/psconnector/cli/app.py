"""Typer CLI application."""

import json
import typer
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from psconnector.binding.seeding import build_command_stub, seed_connection_globals
from psconnector.compiler.descriptor import CompileOptions, compile_descriptor
from psconnector.config.logging import setup_logging
from psconnector.config.settings import get_settings
from psconnector.parsing.commands import CommandParser
from psconnector.utils.ir_io import (
    commands_to_json,
    load_project_from_json,
    read_text_file,
    save_project_to_json,
    write_text_file,
)
from psconnector.validation.validator import validate_descriptor

app = typer.Typer(help="psconnector: PowerShell connector descriptor authoring tools")


def _load_project(project_file: Path):
    try:
        return load_project_from_json(project_file)
    except (FileNotFoundError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _read(path: Path) -> str:
    try:
        return read_text_file(path)
    except FileNotFoundError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def parse(source_file: Path, out: Optional[Path] = typer.Option(None, help="Write JSON here")):
    """
    Parse PowerShell source into command signatures.

    Args:
        source_file: Path to the .ps1/.psm1 file
        out: Optional output path for the commands JSON
    """
    setup_logging()
    parser = CommandParser()
    commands = parser.parse(_read(source_file))
    payload = commands_to_json(commands)

    if out is not None:
        write_text_file(payload, out)
        typer.echo(f"✓ {len(commands)} commands written to {out}")
    else:
        typer.echo(payload)

    for defect in parser.defects:
        typer.echo(f"  line {defect.line}: {defect.message}", err=True)


@app.command(name="compile")
def compile_project(
    project_file: Path,
    source_file: Path,
    out_xml: Path,
    compact: bool = typer.Option(False, help="Write without indentation"),
):
    """
    Compile a connector project and its PowerShell source into a descriptor.

    Args:
        project_file: Path to the ConnectorProject JSON file
        source_file: Path to the PowerShell module
        out_xml: Output path for the descriptor
        compact: Skip indentation
    """
    setup_logging()
    settings = get_settings()

    project = _load_project(project_file)
    commands = CommandParser().parse(_read(source_file))

    options = CompileOptions(
        connector_id=settings.connector_id,
        connector_description=settings.connector_description,
        connector_version=settings.connector_version,
        module_path_parameter=settings.module_path_parameter,
    )
    result = compile_descriptor(project, commands, options)
    pretty = not (compact or settings.compact_output)
    write_text_file(result.to_xml(pretty=pretty, indent=settings.descriptor_indent), out_xml)

    typer.echo(f"✓ Descriptor written to {out_xml}")
    if result.omitted_entities:
        typer.echo(f"  Omitted entities: {', '.join(result.omitted_entities)}")
    for gap in result.gaps:
        slot = f".{gap.parameter}" if gap.parameter else ""
        typer.echo(f"  gap {gap.entity}/{gap.operation} {gap.command}{slot}: {gap.message}")


@app.command()
def validate(
    descriptor_file: Path,
    source_file: Path,
    out: Optional[Path] = typer.Option(None, help="Write findings as JSON here"),
):
    """
    Validate a descriptor against its PowerShell source.

    Exits with status 1 when any error is found.
    """
    setup_logging()
    report = validate_descriptor(_read(descriptor_file), _read(source_file))

    for issue in report.issues:
        typer.echo(f"{issue.severity.upper():7} line {issue.line}: [{issue.code}] {issue.message}")

    if out is not None:
        write_text_file(json.dumps([asdict(i) for i in report.issues], indent=2), out)

    typer.echo(f"{len(report.errors)} errors, {len(report.warnings)} warnings")
    if not report.ok:
        raise typer.Exit(1)


@app.command()
def stub(command_name: str, project_file: Path):
    """Print a PowerShell stub for an entity operation, e.g. Create-User."""
    setup_logging()
    project = _load_project(project_file)
    text = build_command_stub(command_name, project.entities)
    if text is None:
        typer.echo(f"Error: cannot build a stub for {command_name}", err=True)
        raise typer.Exit(1)
    typer.echo(text)


@app.command()
def seed_globals(source_file: Path, project_file: Path):
    """Add connection parameters for every `# Source: Connection` parameter."""
    setup_logging()
    project = _load_project(project_file)
    commands = CommandParser().parse(_read(source_file))
    seeded = seed_connection_globals(commands, project.global_parameters)
    added = len(seeded) - len(project.global_parameters)
    save_project_to_json(project.model_copy(update={"global_parameters": seeded}), project_file)
    typer.echo(f"✓ Added {added} connection parameters to {project_file}")


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
