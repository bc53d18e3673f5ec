"""projref CLI - Replace package references with project references."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import NoReturn

import click

from projref.config import MAP_FILE_NAME, REPLACED_PROJECTS_FOLDER, ConversionConfig, ConversionResult
from projref.errors import ProjrefError


@click.group()
def cli() -> None:
    """projref - Point package references at the source projects on disk."""
    pass


def _configure_logging(verbose: bool, quiet: bool, log_file: str | None) -> None:
    """Console logging through Rich on stderr, plus an optional log file."""
    from rich.console import Console
    from rich.logging import RichHandler

    root = logging.getLogger("projref")
    root.setLevel(logging.DEBUG if (verbose or log_file) else logging.WARNING)
    root.handlers.clear()

    console = RichHandler(console=Console(stderr=True), show_path=False, markup=False)
    if verbose:
        console.setLevel(logging.DEBUG)
    else:
        console.setLevel(logging.ERROR if quiet else logging.WARNING)
    root.addHandler(console)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        root.addHandler(file_handler)


def _fail(message: str) -> NoReturn:
    from rich.console import Console

    Console(stderr=True).print(f"[red]Error:[/red] {message}", markup=True, highlight=False)
    sys.exit(1)


def _run_with_progress(config: ConversionConfig) -> ConversionResult:
    """Run the conversion with Rich progress display."""
    from rich.console import Console
    from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
    from rich.table import Table

    from projref.pipeline import run_conversion

    console = Console()

    with Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Initialising...", total=None)

        def on_phase(name, label):
            progress.update(task, description=label)

        result = run_conversion(config, progress_callback=on_phase)

    # Summary table
    table = Table(title=f"projref: {Path(result.workspace).name}", show_edge=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Projects processed", str(len(result.processed)))
    table.add_row("References converted", str(len(result.conversions)))
    table.add_row("Projects registered", str(len(result.registered)))
    table.add_row("Unresolved packages", str(sum(len(v) for v in result.unresolved.values())))
    if result.index_stats is not None:
        table.add_row("Indexed projects", str(result.index_stats.total_projects))
        table.add_row("Duplicate names", str(result.index_stats.duplicates))
    if result.cycles:
        table.add_row("Reference cycles", str(len(result.cycles)))

    duration = result.metadata.get("duration_ms", 0)
    table.add_row("Duration", f"{duration:.1f}ms")

    console.print(table)

    if config.verbose and result.conversions:
        conv_table = Table(title="Conversions", show_edge=False)
        conv_table.add_column("Project", style="bold")
        conv_table.add_column("Package")
        conv_table.add_column("Reference")
        conv_table.add_column("Found via")
        for ref in result.conversions:
            conv_table.add_row(
                os.path.basename(ref.project), ref.package_id, ref.relative_path, ref.strategy,
            )
        console.print(conv_table)

    if config.verbose and result.timings:
        timing_table = Table(title="Phase Timings", show_edge=False)
        timing_table.add_column("Phase", style="bold")
        timing_table.add_column("Time (ms)", justify="right")
        for phase, seconds in result.timings.items():
            timing_table.add_row(phase, f"{seconds * 1000:.1f}")
        console.print(timing_table)

    return result


def _run_quiet(config: ConversionConfig) -> ConversionResult:
    """Run the conversion with no output."""
    from projref.pipeline import run_conversion

    return run_conversion(config)


@cli.command("convert")
@click.argument("path", type=click.Path(exists=True))
@click.option("--map-file", default=MAP_FILE_NAME, show_default=True, help="Package map file name in the workspace root")
@click.option("--max-parent-levels", default=2, type=int, show_default=True, help="Parent directories of the root to search")
@click.option("--no-index", is_flag=True, help="Skip building the project index")
@click.option("--no-verify-paths", is_flag=True, help="Treat paths lexically, without checking directories exist")
@click.option("--exclude", multiple=True, help="Additional directory names to skip while scanning")
@click.option("--folder", default=REPLACED_PROJECTS_FOLDER, show_default=True, help="Solution folder for replaced projects")
@click.option("--report", "report_path", default=None, help="Write a JSON report of the run")
@click.option("--log-file", default=None, help="Write a diagnostic log to this file")
@click.option("--verbose", is_flag=True, help="Show conversions, timings and debug logging")
@click.option("--quiet", is_flag=True, help="Suppress all output except errors")
def convert_cmd(
    path: str,
    map_file: str,
    max_parent_levels: int,
    no_index: bool,
    no_verify_paths: bool,
    exclude: tuple[str, ...],
    folder: str,
    report_path: str | None,
    log_file: str | None,
    verbose: bool,
    quiet: bool,
) -> None:
    """Convert package references in a solution (.sln) or directory."""
    _configure_logging(verbose and not quiet, quiet, log_file)

    config = ConversionConfig(
        workspace_path=str(Path(path).resolve()),
        map_file_name=map_file,
        max_parent_levels=max_parent_levels,
        use_index=not no_index,
        verify_paths=not no_verify_paths,
        exclude_patterns=list(exclude),
        folder_name=folder,
        verbose=verbose,
        quiet=quiet,
    )

    try:
        if quiet:
            result = _run_quiet(config)
        else:
            result = _run_with_progress(config)
    except ProjrefError as e:
        _fail(str(e))

    if report_path:
        from projref.output import write_report

        write_report(result, report_path)
        if not quiet:
            from rich.console import Console
            Console().print(f"[green]Report written to:[/green] {report_path}")


@cli.command("index")
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.option("--exclude", multiple=True, help="Additional directory names to skip while scanning")
def index_cmd(path: str, exclude: tuple[str, ...]) -> None:
    """Index the project files under PATH and report duplicate names."""
    from rich.console import Console
    from rich.table import Table

    from projref.graph.project_index import ProjectIndex

    config = ConversionConfig(workspace_path=path, exclude_patterns=list(exclude))
    index = ProjectIndex(extensions=config.project_extensions, ignore=config.ignore_set())
    try:
        index.build_index(path)
    except ProjrefError as e:
        _fail(str(e))

    stats = index.get_stats()
    console = Console()
    table = Table(title=f"Project index: {Path(path).resolve().name}", show_edge=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Projects", str(stats.total_projects))
    table.add_row("Directories", str(stats.indexed_directories))
    table.add_row("Duplicate names", str(stats.duplicates))
    table.add_row("Duration", f"{stats.build_duration * 1000:.1f}ms")
    console.print(table)

    if index.duplicates:
        dup_table = Table(title="Duplicates", show_edge=False)
        dup_table.add_column("Name", style="bold")
        dup_table.add_column("Kept")
        dup_table.add_column("Ignored")
        for dup in index.duplicates:
            dup_table.add_row(dup.name, dup.kept, dup.ignored)
        console.print(dup_table)


@cli.command("mapping")
@click.argument("path", type=click.Path(exists=True))
@click.option("--map-file", default=MAP_FILE_NAME, show_default=True, help="Package map file name in the workspace root")
@click.option("--unresolved", is_flag=True, help="Only list packages with no known project")
def mapping_cmd(path: str, map_file: str, unresolved: bool) -> None:
    """List the package map of a solution (.sln) or directory for review."""
    from rich.console import Console
    from rich.table import Table

    from projref.mapping import MappingStore
    from projref.paths import PathResolver

    root_dir = path if os.path.isdir(path) else os.path.dirname(os.path.abspath(path))
    store = MappingStore(root_dir, path_resolver=PathResolver(verify_base_exists=False), file_name=map_file)
    if not os.path.isfile(store.path):
        _fail(f"No package map at {store.path}")
    try:
        store.load()
    except ProjrefError as e:
        _fail(str(e))

    table = Table(title=f"Package map: {store.path}", show_edge=False)
    table.add_column("Package", style="bold")
    table.add_column("Project")
    for package_id, project_path in store.items():
        if unresolved and project_path is not None:
            continue
        if project_path is None:
            table.add_row(package_id, "[yellow]unresolved[/yellow]")
        else:
            table.add_row(package_id, os.path.relpath(project_path, store.root_dir))
    Console().print(table)


if __name__ == "__main__":
    cli()
