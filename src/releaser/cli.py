"""Command-line interface for the monorepo release tool."""

import asyncio
import os
from pathlib import Path

import structlog
import typer
from rich.console import Console
from rich.panel import Panel

from .config import ReleaseConfig, load_config
from .constants import DEFAULT_CONFIG_FILENAME
from .observability import configure_logging
from .prompts import Prompter
from .utils.exceptions import ReleaseError
from .workspace.discovery import find_workspace_root

app = typer.Typer(
    name="release-tool",
    help="Monorepo release tool - version, cycle-check and publish workspace packages",
    add_completion=False,
)

console = Console()
logger = structlog.get_logger(__name__)


def _bootstrap(ctx: typer.Context) -> tuple[ReleaseConfig, Path, Path]:
    """
    Locate the workspace, load configuration and configure logging.

    Configuration comes from --config, else release.yaml at the workspace
    root, else the environment.

    Returns:
        (config, workspace root, invocation directory)
    """
    options = ctx.obj or {}
    cwd = Path.cwd()
    root = find_workspace_root(cwd)

    config_file: Path | None = options.get("config_file")
    if config_file is None and (root / DEFAULT_CONFIG_FILENAME).is_file():
        config_file = root / DEFAULT_CONFIG_FILENAME
    config = load_config(config_file)

    configure_logging(
        level=options.get("log_level") or config.logging.level,
        json_logs=options.get("json_logs") or config.logging.format == "json",
        log_file=config.logging.file,
    )
    if config_file:
        logger.debug("Configuration loaded", path=str(config_file))
    return config, root, cwd


def _runner(ctx: typer.Context, assume_yes: bool = False):
    from .execution.runner import ReleaseRunner

    config, root, cwd = _bootstrap(ctx)
    return ReleaseRunner(
        config, console, root=root, cwd=cwd, prompter=Prompter(console, assume_yes=assume_yes)
    )


@app.callback()
def main(
    ctx: typer.Context,
    config_file: Path | None = typer.Option(
        None, "--config", "-c", help="Configuration file", exists=True, dir_okay=False
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="Log verbosity: TRACE, DEBUG, VERBOSE, INFO, WARNING, ERROR",
    ),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON"),
) -> None:
    """Release workspace packages in dependency order."""
    ctx.obj = {
        "config_file": config_file,
        "log_level": log_level or os.environ.get("LOG_LEVEL"),
        "json_logs": json_logs,
    }


@app.command("check-cycles")
def check_cycles(
    ctx: typer.Context,
    dot: Path | None = typer.Option(
        None, "--dot", help="Write the dependency graph as a DOT file (for Graphviz)"
    ),
) -> None:
    """
    Assert that there are no dependency cycles that would break publishing.

    Only public packages are checked.

    Examples:
        release-tool check-cycles
        release-tool check-cycles --dot graph.dot
    """
    try:
        exit_code = _runner(ctx).check_cycles(dot_path=dot)
    except (ReleaseError, OSError, ValueError) as e:
        console.print(f"\n[bold red]ERROR:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    if exit_code != 0:
        raise typer.Exit(code=exit_code)


@app.command()
def plan(
    ctx: typer.Context,
    changed: bool = typer.Option(
        False, "--changed", help="Only packages changed since the last release tag"
    ),
) -> None:
    """
    Show the publish batches without publishing.

    Packages in one batch have no dependency on each other and are published
    concurrently.
    """
    try:
        exit_code = _runner(ctx).show_plan(changed_only=changed)
    except (ReleaseError, OSError, ValueError) as e:
        console.print(f"\n[bold red]ERROR:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    if exit_code != 0:
        raise typer.Exit(code=exit_code)


@app.command()
def version(
    ctx: typer.Context,
    new_version: str | None = typer.Argument(
        None, metavar="VERSION", help="Next version (prompted for if omitted)"
    ),
    force_update: list[str] = typer.Option(
        [],
        "--force-update",
        "-f",
        help="Bump a package even without detected changes (repeatable)",
    ),
    release_all: bool = typer.Option(False, "--all", help="Bump every package"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompts"),
    tag_version_prefix: str | None = typer.Option(
        None, "--tag-version-prefix", help="Prefix of the release tag (default: v)"
    ),
) -> None:
    """
    Bump the version of the packages changed since the last release tag.

    Updates the package.json files, then commits and creates a new git tag.

    Examples:
        release-tool version
        release-tool version 2.0.0 --yes
        release-tool version -f @scope/core -f @scope/cli
    """
    try:
        exit_code = _runner(ctx, assume_yes=yes).version(
            version=new_version,
            forced=force_update,
            release_all=release_all,
            tag_prefix=tag_version_prefix,
        )
    except (ReleaseError, OSError, ValueError) as e:
        console.print(f"\n[bold red]ERROR:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    if exit_code != 0:
        raise typer.Exit(code=exit_code)


@app.command()
def publish(
    ctx: typer.Context,
    dry_run: bool = typer.Option(False, "--dry-run", help="Walk the publish order only"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompts"),
) -> None:
    """
    Publish the packages released by the tagged HEAD commit.

    Dependencies are published before their dependents; independent packages
    are published concurrently.

    Examples:
        release-tool publish --dry-run
        release-tool publish --yes
    """
    try:
        runner = _runner(ctx, assume_yes=yes)
    except (ReleaseError, OSError, ValueError) as e:
        console.print(f"\n[bold red]ERROR:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    console.print(
        Panel.fit(
            f"[bold blue]Release Publish[/bold blue]\n\n"
            f"Registry: {runner.config.registry.url}\n"
            f"Mode: [yellow]{'DRY RUN' if dry_run else 'PUBLISH'}[/yellow]\n"
            f"Failure policy: {runner.config.policy.failure_policy.value}\n"
            f"Concurrency: {runner.config.policy.max_concurrent_publishes}",
            border_style="blue",
        )
    )

    try:
        exit_code = asyncio.run(runner.publish(dry_run=dry_run))
    except (ReleaseError, OSError, ValueError) as e:
        console.print(f"\n[bold red]ERROR:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    if exit_code != 0:
        raise typer.Exit(code=exit_code)


if __name__ == "__main__":
    app()
