"""Thin CLI wrapper for appbuild.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from appbuild import __version__
from appbuild.config import get_configuration_resolver, get_settings, print_settings_json
from appbuild.errors import AppBuildError

app = typer.Typer(
    name="appbuild",
    help="Build an application, cache its output and restore it into the workspace",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)


def print_json(data: object) -> None:
    """Print data as indented JSON, without markup or wrapping."""
    console.print(json.dumps(data, indent=2), markup=False, highlight=False, soft_wrap=True)


def print_error(error: AppBuildError, json_output: bool) -> None:
    """Print a failure as JSON or as a red message."""
    if json_output:
        print_json({"error": error.code, "message": str(error)})
    else:
        console.print(f"[red]{escape(str(error))}[/red]")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"appbuild version {__version__}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Route log records through rich at the given level."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="Override the configured log level"),
    ] = None,
) -> None:
    """Build an application, cache its output and restore it into the workspace."""
    configure_logging((log_level or get_settings().log_level).upper())


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(print_settings_json(settings), markup=False, highlight=False, soft_wrap=True)
        return

    resolver = get_configuration_resolver(settings)
    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Paths:[/bold]")
    console.print(f"  Workspace:           {settings.workspace_dir}")
    console.print(f"  Cache directory:     {settings.cache_dir}")
    console.print(f"  Dependency cache:    {settings.dependency_cache_dir or '(disabled)'}")
    console.print(f"  SBOM directory:      {settings.sbom_dir}")
    console.print(f"  Database URL:        {settings.db_url}")
    console.print()
    console.print("[bold]Operational:[/bold]")
    console.print(f"  Log level:           {settings.log_level}")
    console.print(f"  Provenance disabled: {settings.provenance_disabled}")
    version_command = " ".join(settings.tool_version_command) or "(none)"
    console.print(f"  Tool version:        {version_command}")
    console.print()
    console.print("[bold]Build configuration:[/bold]")
    for configuration in resolver.configurations:
        value, is_set = resolver.resolve(configuration.name)
        source = "set" if is_set else "default"
        console.print(f"  ${configuration.name}: {escape(repr(value))} ({source})")


@app.command()
def resolve(
    root: Annotated[
        Path,
        typer.Argument(help="Application root to resolve artifacts in"),
    ],
    many: Annotated[
        bool,
        typer.Option("--many", "-m", help="Resolve every artifact the pattern names"),
    ] = False,
    detector: Annotated[
        str,
        typer.Option(
            "--detector", "-d", help="Interest detector (always/executable-archive)"
        ),
    ] = "always",
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Resolve the built artifact(s) without building."""
    from appbuild.artifacts.interest import get_detector
    from appbuild.artifacts.resolver import new_artifact_resolver

    settings = get_settings()

    try:
        interesting_file_detector = get_detector(detector)
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None

    resolver = new_artifact_resolver(
        get_configuration_resolver(settings),
        settings.artifact_key,
        settings.module_key,
        interesting_file_detector,
    )

    try:
        if many:
            artifacts = resolver.resolve_many(root)
        else:
            artifacts = [resolver.resolve(root)]
    except AppBuildError as e:
        print_error(e, json_output)
        raise typer.Exit(code=1) from None

    if json_output:
        print_json({"pattern": resolver.pattern(), "artifacts": artifacts})
        return

    for artifact in artifacts:
        console.print(artifact, markup=False, highlight=False, soft_wrap=True)


@app.command()
def build(
    command: Annotated[
        str,
        typer.Argument(help="Build command, e.g. mvn or ./gradlew"),
    ],
    workspace: Annotated[
        Path | None,
        typer.Option("--workspace", "-w", help="Application workspace (default: cwd)"),
    ] = None,
    cache_dir: Annotated[
        Path | None,
        typer.Option("--cache-dir", help="Cache directory for captured output"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Build the application, or reuse cached output, then restore it."""
    from appbuild.builds.application import create_application
    from appbuild.builds.ledger import DatabaseLedger
    from appbuild.builds.service import run_application
    from appbuild.db import create_all_tables, get_engine, get_session_factory

    settings = get_settings()
    overrides: dict[str, Path] = {}
    if workspace is not None:
        overrides["workspace_dir"] = workspace
    if cache_dir is not None:
        overrides["cache_dir"] = cache_dir
    if overrides:
        settings = settings.model_copy(update=overrides)

    engine = get_engine(settings.db_url)
    create_all_tables(engine)
    factory = get_session_factory(engine)

    with factory() as session:
        try:
            application = create_application(
                settings,
                command,
                get_configuration_resolver(settings),
                ledger=DatabaseLedger(session),
            )
            run, result = run_application(session, application)
        except AppBuildError as e:
            # Keep the failed run record
            session.commit()
            print_error(e, json_output)
            raise typer.Exit(code=1) from None
        session.commit()

        if json_output:
            print_json({"run_id": run.id, **result.to_dict()})
            return

        label = "[green]Cache hit[/green]" if result.cache_hit else "[green]Built[/green]"
        console.print(f"{label} run #{run.id}")
        console.print(f"  Fingerprint: {result.fingerprint}")
        console.print(f"  Cache directory: {escape(str(result.cache_dir))}")
        for artifact in result.artifacts:
            console.print(f"  Artifact: {escape(artifact)}")


runs_app = typer.Typer(help="Inspect run history")
app.add_typer(runs_app, name="runs")


@runs_app.command("list")
def runs_list(
    status: Annotated[
        str | None,
        typer.Option(
            "--status", "-s", help="Filter by status (pending/running/succeeded/failed)"
        ),
    ] = None,
    limit: Annotated[
        int,
        typer.Option("--limit", "-l", help="Maximum number of records to return"),
    ] = 100,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List run records."""
    from appbuild.builds.service import list_runs
    from appbuild.db import create_all_tables, get_engine, get_session_factory
    from appbuild.types import RunStatus

    engine = get_engine()
    create_all_tables(engine)
    factory = get_session_factory(engine)

    status_filter: RunStatus | None = None
    if status:
        try:
            status_filter = RunStatus(status)
        except ValueError:
            console.print(f"[red]Invalid status: {escape(status)}[/red]")
            console.print("Valid values: pending, running, succeeded, failed")
            raise typer.Exit(code=1) from None

    with factory() as session:
        runs = list_runs(session, status=status_filter, limit=limit)

        if not runs:
            if json_output:
                print_json([])
            else:
                console.print("[yellow]No run records found[/yellow]")
            return

        if json_output:
            print_json([r.to_dict() for r in runs])
            return

        console.print(f"[bold]Found {len(runs)} run(s):[/bold]")
        console.print()
        for r in runs:
            status_color = {
                "succeeded": "green",
                "failed": "red",
                "running": "blue",
                "pending": "yellow",
            }.get(r.status, "white")
            console.print(f"  [{status_color}]Run #{r.id}[/{status_color}]")
            console.print(f"    Workspace: {escape(r.workspace)}")
            console.print(f"    Status: {r.status} ({r.state})")
            console.print(f"    Cache hit: {r.is_cache_hit}")
            console.print(f"    Artifacts: {len(r.artifacts or [])}")
            if r.error_message:
                console.print(f"    Error: {escape(r.error_message)}")
            console.print()


@runs_app.command("show")
def runs_show(
    run_id: Annotated[int, typer.Argument(help="Run ID")],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show a single run."""
    from appbuild.builds.service import RunNotFoundError, get_run
    from appbuild.db import create_all_tables, get_engine, get_session_factory

    engine = get_engine()
    create_all_tables(engine)
    factory = get_session_factory(engine)

    with factory() as session:
        try:
            run = get_run(session, run_id)
        except RunNotFoundError:
            console.print(f"[red]Run not found: {run_id}[/red]")
            raise typer.Exit(code=1) from None

        data = run.to_dict()
        if json_output:
            print_json(data)
            return

        for key, value in data.items():
            console.print(f"  {key}: {escape(str(value))}")


if __name__ == "__main__":
    app()
