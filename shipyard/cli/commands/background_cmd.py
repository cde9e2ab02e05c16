"""Background command - generate the installer window background."""

from __future__ import annotations

from pathlib import Path

import typer

from shipyard.cli.context import CLIContext, build_context
from shipyard.core.result import Err
from shipyard.output.errors import pipeline_error_exit_code, print_pipeline_error
from shipyard.pipeline.background import BackgroundGenerator


def make_generator(ctx: CLIContext) -> BackgroundGenerator:
    return BackgroundGenerator(config=ctx.config, console=ctx.console)


def background(
    force: bool = typer.Option(False, "--force", help="Replace an existing background image"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print actions without modifying"),
    config: Path | None = typer.Option(
        None,
        "--config",
        help="Path to shipyard.toml (default: $SHIPYARD_CONFIG or nearest parent)",
        show_default=False,
    ),
) -> None:
    """Generate the installer image background (paths.background)."""
    ctx = build_context(config)
    result = make_generator(ctx).generate(force=force, dry_run=dry_run)
    if isinstance(result, Err):
        print_pipeline_error(result.error, ctx.console)
        raise typer.Exit(code=pipeline_error_exit_code(result.error))
