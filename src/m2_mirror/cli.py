"""Typer CLI entry point for m2-mirror."""

from __future__ import annotations

import logging
import zipfile
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from m2_mirror.config import SyncConfig
from m2_mirror.exceptions import MirrorError
from m2_mirror.logging_utils import configure_logging
from m2_mirror.models import INDEX_FILE_SUFFIX
from m2_mirror.pipeline import run_sync
from m2_mirror.scanner import walk_local_repo

app = typer.Typer(add_completion=False, help="Mirror a local Maven repository to a remote repository.")
console = Console()


def _override(config: SyncConfig, **values: object) -> SyncConfig:
    for name, value in values.items():
        if value is not None:
            setattr(config, name, value)
    return config


@app.command()
def sync(
    index_group_id: Annotated[Optional[str], typer.Option("--index-group-id", help="groupId of this run's index.")] = None,
    index_artifact_id: Annotated[
        Optional[str], typer.Option("--index-artifact-id", help="artifactId of this run's index.")
    ] = None,
    alt_index: Annotated[
        Optional[str], typer.Option("--alt-index", help="Other indexes to honour: groupId:artifactId,...")
    ] = None,
    local_repo: Annotated[Optional[Path], typer.Option("--local-repo", help="Local repository to mirror.")] = None,
    deploy_repo: Annotated[
        Optional[str], typer.Option("--deploy-repo", help="Deployment repository for releases and snapshots (id::url).")
    ] = None,
    release_repo: Annotated[Optional[str], typer.Option("--release-repo", help="Release repository (id::url).")] = None,
    snapshot_repo: Annotated[Optional[str], typer.Option("--snapshot-repo", help="Snapshot repository (id::url).")] = None,
    project_dir: Annotated[
        Optional[Path], typer.Option("--project-dir", help="Directory of the reactor's root pom.xml.")
    ] = None,
    skip_resolve_index: Annotated[
        Optional[bool], typer.Option("--skip-resolve-index/--resolve-index", help="Rebuild the index from scratch.")
    ] = None,
    skip_deploy_index: Annotated[
        Optional[bool], typer.Option("--skip-deploy-index/--deploy-index", help="Do not upload the new index.")
    ] = None,
    ignore_failures: Annotated[
        Optional[bool], typer.Option("--ignore-failures/--fail-on-failures", help="Exit 0 despite sync failures.")
    ] = None,
    terminate_at_failure_count: Annotated[
        Optional[int], typer.Option("--terminate-at-failure-count", help="Stop after N failures (0 = never).")
    ] = None,
    reactor_aware: Annotated[
        Optional[bool], typer.Option("--reactor-aware/--no-reactor-aware", help="Fail hard on reactor artifacts.")
    ] = None,
    reactor_deploy_snapshots: Annotated[
        Optional[bool],
        typer.Option("--reactor-deploy-snapshots/--no-reactor-deploy-snapshots", help="Deploy reactor snapshots."),
    ] = None,
    limit: Annotated[Optional[int], typer.Option("--limit", help="Only consider the first N artifact groups.")] = None,
    workers: Annotated[Optional[int], typer.Option("--workers", help="Parallel uploads.")] = None,
    temp_dir: Annotated[Optional[Path], typer.Option("--temp-dir", help="Parent directory for temporary files.")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging.")] = False,
    log_file: Annotated[Optional[Path], typer.Option("--log-file", help="Also write logs to this file.")] = None,
) -> None:
    """Upload new artifacts from the local repository and publish the updated index."""
    configure_logging(logging.DEBUG if verbose else logging.INFO, log_file=log_file, console=console)
    try:
        config = _override(
            SyncConfig.from_env(),
            index_group_id=index_group_id,
            index_artifact_id=index_artifact_id,
            alt_index=alt_index,
            local_repo=local_repo,
            alt_deployment_repository=deploy_repo,
            alt_release_deployment_repository=release_repo,
            alt_snapshot_deployment_repository=snapshot_repo,
            project_dir=project_dir,
            skip_resolve_index=skip_resolve_index,
            skip_deploy_index=skip_deploy_index,
            ignore_failures=ignore_failures,
            terminate_at_failure_count=terminate_at_failure_count,
            reactor_aware=reactor_aware,
            reactor_deploy_snapshots=reactor_deploy_snapshots,
            limit_artifact_count=limit,
            workers=workers,
            temp_directory=temp_dir,
        )
        result = run_sync(config)
    except MirrorError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=1) from None

    status = "[green]published[/green]" if result.stats.dirty and not config.skip_deploy_index else "[dim]not published[/dim]"
    console.print(
        f"Index [bold]{result.index_coordinate.compact()}[/bold] {status}; "
        f"{result.stats.failure_count} failure(s). Archive: {result.index_archive}"
    )


@app.command()
def scan(
    local_repo: Annotated[
        Optional[Path], typer.Argument(help="Local repository (default: ~/.m2/repository).")
    ] = None,
    limit: Annotated[int, typer.Option("--limit", help="Max rows to print.")] = 200,
) -> None:
    """List the artifact groups found in a local repository."""
    rows: list[tuple[str, str]] = []
    count = 0
    try:
        root = local_repo or SyncConfig.from_env().local_repo
        for bundle in walk_local_repo(root):
            count += 1
            if count <= limit:
                rows.append((bundle.coordinate.compact(), bundle.layout_prefix))
    except MirrorError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=1) from None

    table = Table(title=f"Artifact groups in {root}")
    table.add_column("#", style="dim", width=6)
    table.add_column("Coordinate")
    table.add_column("Layout prefix", style="dim")
    for number, (coordinate, layout_prefix) in enumerate(rows, start=1):
        table.add_row(str(number), coordinate, layout_prefix)
    console.print(table)
    if count > limit:
        console.print(f"[dim]Truncated: showing {limit}/{count}[/dim]")


@app.command("show-index")
def show_index(
    archive: Annotated[Path, typer.Argument(help="Index jar file.")],
    prefix: Annotated[str, typer.Option("--prefix", help="Only entries below this layout prefix.")] = "",
) -> None:
    """Show the artifact groups recorded in an index jar."""
    try:
        with zipfile.ZipFile(archive) as zf:
            rows = [
                (info.filename[: -len(INDEX_FILE_SUFFIX)], zf.read(info).decode("utf-8").split())
                for info in zf.infolist()
                if not info.is_dir()
                and info.filename.endswith(INDEX_FILE_SUFFIX)
                and info.filename.startswith(prefix)
            ]
    except (OSError, zipfile.BadZipFile, UnicodeDecodeError) as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=1) from None

    table = Table(title=f"Index {archive.name}")
    table.add_column("Layout prefix")
    table.add_column("Files", justify="right")
    for layout_prefix, names in sorted(rows):
        table.add_row(layout_prefix, str(len(names)))
    console.print(table)
    console.print(f"[dim]{len(rows)} artifact group(s)[/dim]")


def main() -> None:
    """Console-script entry point."""
    app()
