"""Main CLI interface for repo-scm."""

import json
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from repo_scm import __version__
from repo_scm.core.checkout import RepoCheckout
from repo_scm.core.codec import SnapshotStore, dump_snapshot, load_changelog
from repo_scm.core.config import load_config
from repo_scm.core.logging import setup_logging
from repo_scm.core.manifest import ManifestResolver
from repo_scm.exceptions import RepoScmError
from repo_scm.models.commit_entry import ChangeLogSet
from repo_scm.models.config import RepoScmConfig
from repo_scm.models.module import ModuleCache
from repo_scm.models.snapshot import Snapshot

console = Console()


def _abort(error: RepoScmError):
    # messages quote values as [name], which rich would read as markup
    console.print(f"[red]Error: {escape(str(error))}[/red]")
    raise click.Abort() from error


def _load_config_or_exit(workspace: Path, **overrides) -> RepoScmConfig:
    """Load the workspace config; without --log-level, its log level applies."""
    try:
        config = load_config(workspace, **overrides)
    except RepoScmError as e:
        _abort(e)
    if click.get_current_context().find_root().obj.get("log_level") is None:
        setup_logging(config.log_level)
    return config


def _short(revision: Optional[str]) -> str:
    return revision[:8] if revision else "-"


def _snapshot_table(snapshot: Snapshot, title: str) -> Table:
    table = Table(title=title)
    table.add_column("Path", style="cyan")
    table.add_column("Origin")
    table.add_column("Branch", style="green")
    table.add_column("Revision", style="yellow")

    rows = snapshot.records()
    if snapshot.project is not None and snapshot.project not in rows:
        rows.insert(0, snapshot.project)
    for record in rows:
        table.add_row(record.path, record.origin, record.branch, _short(record.revision))
    return table


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"]),
    default=None,
    help="Log level (defaults to the configured one)",
)
@click.pass_context
def main(ctx, log_level: Optional[str]):
    """repo-scm - manifest-driven multi-repository checkouts and change logs."""
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level
    setup_logging(log_level or "warning")


@main.command()
@click.option(
    "--workspace",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Workspace containing the manifest",
)
@click.option("--manifest", default=None, help="Manifest file name (default repo.xml)")
@click.option("--revisions", is_flag=True, help="Include current revisions of checked-out modules")
@click.option("--json", "as_json", is_flag=True, help="Print the snapshot as JSON")
def resolve(workspace: str, manifest: Optional[str], revisions: bool, as_json: bool):
    """Resolve the manifest and show every module."""
    workspace_path = Path(workspace).resolve()
    config = _load_config_or_exit(workspace_path, manifest_name=manifest)

    try:
        snapshot = ManifestResolver().resolve_file(
            workspace_path, config.manifest_name, include_revisions=revisions
        )
    except RepoScmError as e:
        _abort(e)

    if as_json:
        click.echo(json.dumps(dump_snapshot(snapshot), indent=2))
        return

    console.print(_snapshot_table(snapshot, f"Manifest on branch {snapshot.branch}"))


@main.command()
@click.option(
    "--workspace",
    type=click.Path(file_okay=False),
    default=".",
    help="Workspace to check out into",
)
@click.option("--url", default=None, help="Project repository URL")
@click.option("--branch", default=None, help="Project branch")
@click.option(
    "--first-parent",
    is_flag=True,
    default=False,
    help="Only follow first-parent history when building the change log",
)
@click.option("--workers", type=int, default=None, help="Modules to query in parallel")
def sync(
    workspace: str,
    url: Optional[str],
    branch: Optional[str],
    first_parent: bool,
    workers: Optional[int],
):
    """Check out the project and its modules, then record what changed."""
    workspace_path = Path(workspace).resolve()
    overrides = {"repository_url": url, "branch": branch, "workers": workers}
    if first_parent:
        overrides["include_merge_commits"] = False
    config = _load_config_or_exit(workspace_path, **overrides)

    try:
        result = RepoCheckout(workspace_path, config, cache=ModuleCache()).run()
    except RepoScmError as e:
        _abort(e)

    console.print(_snapshot_table(result.snapshot, f"Checked out {result.snapshot.branch}"))
    if result.is_first_build:
        console.print("[dim]First build on this branch, no change log.[/dim]")
    elif not result.entries:
        console.print("[green]No changes since the last checkout.[/green]")
    else:
        console.print(
            f"[bold]{len(result.entries)} change-log entries[/bold] "
            f"written to {result.changelog_path}"
        )


@main.command()
@click.option(
    "--workspace",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Workspace the change log belongs to",
)
@click.option(
    "--file",
    "changelog_file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Change-log file (defaults to the configured one)",
)
@click.option("--files", "show_files", is_flag=True, help="List modified files")
def changelog(workspace: str, changelog_file: Optional[str], show_files: bool):
    """Show the change log of the last checkout."""
    workspace_path = Path(workspace).resolve()
    config = _load_config_or_exit(workspace_path)
    path = Path(changelog_file) if changelog_file else workspace_path / config.changelog_file

    try:
        change_set = ChangeLogSet(entries=load_changelog(path))
    except RepoScmError as e:
        _abort(e)

    if change_set.is_empty:
        console.print("[yellow]No changes recorded.[/yellow]")
        return

    for module_path, entries in change_set.by_module().items():
        lines = []
        for entry in entries:
            if entry.is_structural:
                lines.append(f"[magenta]{entry.note}[/magenta]")
                continue
            lines.append(
                f"[yellow]{_short(entry.revision)}[/yellow] {escape(entry.summary)} "
                f"[dim]({escape(entry.author_name or '')}, {entry.author_date or ''})[/dim]"
            )
            if show_files:
                for modified in entry.modified_files or []:
                    lines.append(f"    {modified.action} {escape(modified.path)}")
        console.print(Panel("\n".join(lines), title=module_path, expand=False))


@main.command()
@click.option(
    "--workspace",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Workspace the snapshots belong to",
)
@click.option("--limit", default=10, help="Number of snapshots to show")
def history(workspace: str, limit: int):
    """List the snapshots recorded by previous checkouts, newest first."""
    workspace_path = Path(workspace).resolve()
    config = _load_config_or_exit(workspace_path)
    store = SnapshotStore(workspace_path / config.snapshot_file, ModuleCache())

    try:
        snapshots = store.load()
    except RepoScmError as e:
        _abort(e)

    if not snapshots:
        console.print("[yellow]No snapshots recorded.[/yellow]")
        return

    table = Table(title="Snapshots")
    table.add_column("#", justify="right")
    table.add_column("Branch", style="green")
    table.add_column("Project revision", style="yellow")
    table.add_column("Modules", justify="right")
    for index, snapshot in enumerate(snapshots[:limit]):
        project_revision = snapshot.project.revision if snapshot.project else None
        table.add_row(
            str(index), snapshot.branch or "-", _short(project_revision), str(len(snapshot.modules))
        )
    console.print(table)


if __name__ == "__main__":
    main()
