"""Release command - stamp, build, sign, package, notarize and publish."""

from __future__ import annotations

from pathlib import Path

import typer

from shipyard.cli.context import CLIContext, build_context
from shipyard.core.errors import ErrorCode
from shipyard.core.result import Err
from shipyard.core.version import parse_version
from shipyard.output.errors import pipeline_error_exit_code, print_pipeline_error
from shipyard.output.report import print_report
from shipyard.pipeline.model import RunState
from shipyard.pipeline.orchestrator import Orchestrator


def make_orchestrator(ctx: CLIContext) -> Orchestrator:
    return Orchestrator(config=ctx.config, console=ctx.console, config_path=ctx.config_path)


def release(
    version: str = typer.Argument(..., help="Release version, strictly X.Y.Z (e.g. 1.0.1)"),
    skip_sign: bool = typer.Option(
        False, "--skip-sign", help="Skip code signing and notarization (development builds)"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print actions without modifying"),
    config: Path | None = typer.Option(
        None,
        "--config",
        help="Path to shipyard.toml (default: $SHIPYARD_CONFIG or nearest parent)",
        show_default=False,
    ),
) -> None:
    """Build and publish a release of the app."""
    parsed = parse_version(version)
    if isinstance(parsed, Err):
        typer.echo(f"error: invalid version {version!r}: expected X.Y.Z (e.g. 1.0.1)", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    ctx = build_context(config)
    report = make_orchestrator(ctx).run(version, skip_sign=skip_sign, dry_run=dry_run)

    if report.state == RunState.FAILED and report.failure is not None:
        print_pipeline_error(report.failure, ctx.console)
    print_report(report, ctx.console, ctx.config)

    if report.failure is not None:
        raise typer.Exit(code=pipeline_error_exit_code(report.failure))
