"""envaudit CLI - cross-reference declared environment variables against their usages."""
import dataclasses
import json
from pathlib import Path
from typing import List, Optional, Tuple

import click
import typer
from rich.markup import escape
from rich.table import Table

from .analyzer.category_registry import CategoryRegistry, load_allow_list
from .analyzer.engine import analyze, template_entries
from .analyzer.errors import EnvAuditError, ScanError
from .analyzer.models import (
    DECLARED_WITHOUT_VALUE,
    SCOPE_MISMATCH,
    TYPO_CANDIDATE,
    AnalysisResult,
    DeclarationLayer,
    TemplateEntry,
)
from .config import Config, __version__
from .utils.logger import setup_logging
from .utils.safe_console import SafeConsole

app = typer.Typer(
    name="envaudit",
    help="Cross-reference declared environment variables against their usages",
    add_completion=False,
)
console = SafeConsole()
err_console = SafeConsole(stderr=True)

SOURCE_EXTENSIONS = ('.js', '.jsx', '.mjs', '.cjs', '.ts', '.tsx', '.py')

EXCLUDED_DIRS = {
    'venv', '.venv', 'env', '.virtualenv',
    'vendor', 'extern', 'third_party',
    '.tox', 'site-packages', 'dist', 'build', 'out', '__pycache__',
    'node_modules', '.git', '.next', '.turbo', 'coverage',
}

ANOMALY_STYLES = {
    SCOPE_MISMATCH: "bold red",
    TYPO_CANDIDATE: "yellow",
    DECLARED_WITHOUT_VALUE: "magenta",
}


def discover_sources(project_path: Path) -> Tuple[List[Tuple[str, bytes]], List[ScanError]]:
    """Collect source files under project_path as (relative posix path, bytes).

    Unreadable files become ScanErrors; vendored and build directories are skipped.
    """
    sources = []
    errors = []
    for file_path in sorted(project_path.rglob('*')):
        if file_path.suffix.lower() not in SOURCE_EXTENSIONS or not file_path.is_file():
            continue
        relative = file_path.relative_to(project_path)
        if any(part in EXCLUDED_DIRS for part in relative.parts[:-1]):
            continue
        try:
            sources.append((relative.as_posix(), file_path.read_bytes()))
        except OSError as e:
            errors.append(ScanError(relative.as_posix(), f"unreadable: {e.strerror or e}"))
    return sources, errors


def load_layers(project_path: Path, layer_files: List[str]) -> List[DeclarationLayer]:
    """Read existing declaration files; their list position is their priority."""
    layers = []
    for ordinal, name in enumerate(layer_files):
        layer_path = project_path / name
        if not layer_path.is_file():
            continue
        layers.append(DeclarationLayer(
            path=name,
            content=layer_path.read_text(encoding='utf-8', errors='replace'),
            ordinal=ordinal,
        ))
    return layers


def run_analysis(project_path: Path, env_files: Optional[List[str]], allow: Optional[List[str]],
                 rules: Optional[Path], allow_list_file: Optional[Path],
                 workers: Optional[int]) -> Tuple[AnalysisResult, CategoryRegistry]:
    config = Config(project_path / ".envaudit")
    settings = config.analysis_settings()
    if workers:
        settings = dataclasses.replace(settings, max_workers=workers)

    registry = CategoryRegistry.from_path(rules or config.rules_path)
    allow_list = load_allow_list(allow_list_file, extra=allow or ())

    layers = load_layers(project_path, env_files or config.layer_files)
    sources, read_errors = discover_sources(project_path)

    with err_console.status("[bold blue]Scanning sources...[/bold blue]"):
        result = analyze(layers, sources, allow_list=allow_list, registry=registry, settings=settings)

    result.scan_errors = sorted(read_errors + result.scan_errors, key=lambda error: error.file)
    return result, registry


def render_template(entries: List[TemplateEntry]) -> str:
    """Render template entries as a .env.example file grouped by category."""
    lines = ["# Generated by envaudit. Copy to .env.local and fill in real values."]
    current_category = None
    for entry in entries:
        if entry.category != current_category:
            current_category = entry.category
            lines.append("")
            lines.append(f"# {current_category}")
        lines.append(f"{entry.name}={entry.placeholder}")
    return "\n".join(lines) + "\n"


def _print_records(result: AnalysisResult):
    table = Table(title="Environment Variables")
    table.add_column("Name", style="cyan")
    table.add_column("Category", style="yellow")
    table.add_column("Visibility")
    table.add_column("Declared In", style="magenta")
    table.add_column("Uses", justify="right", style="green")
    table.add_column("Files", justify="right", style="green")
    table.add_column("Flags", style="bold red")

    for record in result.records:
        classification = result.classifications[record.name]
        declared_in = ", ".join(
            f"{d.source_file}{'' if d.has_value else ' (empty)'}" for d in record.declarations
        )
        table.add_row(
            record.name,
            classification.category,
            classification.visibility,
            escape(declared_in) or "-",
            str(record.usage_count),
            str(record.file_count),
            ", ".join(sorted(record.flags)),
        )
    console.print(table)


def _print_anomalies(result: AnalysisResult):
    if not result.anomalies:
        console.print("[bold green]✓ No anomalies found[/bold green]\n")
        return

    table = Table(title="Anomalies")
    table.add_column("Kind")
    table.add_column("Name", style="cyan")
    table.add_column("Location", style="magenta")
    table.add_column("Detail")

    for anomaly in result.anomalies:
        location = f"{anomaly.file}:{anomaly.line}" if anomaly.file else "-"
        if anomaly.kind == TYPO_CANDIDATE:
            detail = f"did you mean {anomaly.suggested}? (distance {anomaly.distance})"
        elif anomaly.kind == SCOPE_MISMATCH:
            detail = "private variable read in a client file; it is undefined at runtime"
        else:
            detail = "declared but no layer gives it a value"
        style = ANOMALY_STYLES.get(anomaly.kind, "")
        table.add_row(f"[{style}]{anomaly.kind}[/{style}]", anomaly.name, escape(location), detail)
    console.print(table)


def _print_caveats(result: AnalysisResult):
    if result.dynamic_usage_count:
        console.print(
            f"[yellow]⚠ {result.dynamic_usage_count} dynamic access(es) could not be resolved; "
            f"coverage is incomplete[/yellow]"
        )
        for usage in result.dynamic_usages:
            console.print(f"  [dim]{escape(usage.file)}:{usage.line}[/dim]")

    if result.manual_review:
        console.print("[yellow]⚠ Private variables used in files of undetermined context "
                      "(review manually):[/yellow]")
        for usage in result.manual_review:
            console.print(f"  {usage.name} [dim]{escape(usage.file)}:{usage.line}[/dim]")

    for error in result.parse_errors:
        console.print(f"[red]✗ Parse error[/red] {escape(str(error))}")
    for error in result.scan_errors:
        console.print(f"[red]✗ Scan error[/red] {escape(str(error))}")


@app.command()
def audit(
    project_path: str = typer.Argument(".", help="Project root path to analyze"),
    env_file: Optional[List[str]] = typer.Option(None, "--env-file", "-e", help="Declaration file, highest priority first (repeatable)"),
    allow: Optional[List[str]] = typer.Option(None, "--allow", "-a", help="Name exempt from unused flagging (repeatable)"),
    rules: Optional[Path] = typer.Option(None, "--rules", help="Category rules JSON file or directory"),
    allow_list_file: Optional[Path] = typer.Option(None, "--allow-list", help="JSON file with reserved names"),
    output_format: str = typer.Option("table", "--format", "-f", click_type=click.Choice(["table", "json"]), help="Output format"),
    strict: bool = typer.Option(False, "--strict", help="Exit with status 1 when anomalies or missing variables exist"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", min=1, help="Scanner threads"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Cross-reference declarations against usages and report anomalies."""
    setup_logging(err_console, verbose)
    project_path = Path(project_path).resolve()

    if not project_path.exists():
        console.print(f"[bold red]Error:[/bold red] Project path does not exist: {escape(str(project_path))}")
        raise typer.Exit(1)

    try:
        result, _ = run_analysis(project_path, env_file, allow, rules, allow_list_file, workers)
    except EnvAuditError as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)

    if output_format == "json":
        typer.echo(json.dumps(result.as_dict(), indent=2))
    else:
        console.print(f"[bold blue]Analyzing project:[/bold blue] {escape(str(project_path))}\n")
        _print_records(result)
        _print_anomalies(result)
        _print_caveats(result)

        console.print("\n[bold yellow]Summary:[/bold yellow]")
        console.print(f"  Variables: {len(result.records)}")
        console.print(f"  Missing: {len(result.missing)}")
        console.print(f"  Unused: {len(result.unused)}")
        console.print(f"  Anomalies: {len(result.anomalies)}")

    if strict and (result.anomalies or result.missing):
        raise typer.Exit(1)


@app.command()
def template(
    project_path: str = typer.Argument(".", help="Project root path to analyze"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the template here instead of stdout"),
    env_file: Optional[List[str]] = typer.Option(None, "--env-file", "-e", help="Declaration file, highest priority first (repeatable)"),
    rules: Optional[Path] = typer.Option(None, "--rules", help="Category rules JSON file or directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Generate a .env.example template from every declared or used variable."""
    setup_logging(err_console, verbose)
    project_path = Path(project_path).resolve()

    if not project_path.exists():
        console.print(f"[bold red]Error:[/bold red] Project path does not exist: {escape(str(project_path))}")
        raise typer.Exit(1)

    try:
        result, registry = run_analysis(project_path, env_file, None, rules, None, None)
    except EnvAuditError as e:
        console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)

    text = render_template(template_entries(result, registry))
    if output is None:
        typer.echo(text, nl=False)
        return

    output.write_text(text, encoding='utf-8')
    console.print(f"[green]✓ Template written to {escape(str(output))}[/green]")


@app.command()
def version():
    """Show the envaudit version."""
    typer.echo(f"envaudit {__version__}")


if __name__ == "__main__":
    app()
