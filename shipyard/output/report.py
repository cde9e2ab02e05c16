"""Final run report.

Real and dry runs render the same sections; a dry run is framed as what
would have happened.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from shipyard.output.console import Style
from shipyard.output.errors import describe_pipeline_error
from shipyard.pipeline.model import RunReport, RunState, StageRecord

if TYPE_CHECKING:
    from shipyard.core.config import ReleaseConfig
    from shipyard.output.console import ConsoleProtocol

__all__ = ["print_report", "next_steps"]

_STATUS_STYLE: dict[str, Style] = {
    "ran": Style.SUCCESS,
    "would-run": Style.INFO,
    "skipped": Style.WARNING,
    "failed": Style.ERROR,
    "not-reached": Style.DIM,
}


def _stage_line(stage: StageRecord) -> str:
    detail = f" ({stage.detail})" if stage.detail else ""
    return f"  {stage.name:<10} {stage.status}{detail}"


def next_steps(report: RunReport, config: ReleaseConfig) -> list[str]:
    """Manual follow-ups after a successful real run."""
    if report.state != RunState.DONE or report.version is None:
        return []

    steps: list[str] = []
    if report.notes_path is not None:
        steps.append(f"Edit the release notes: {report.notes_path}")
    record = report.record
    if record is not None and config.feed.variant == "signed" and record.signature is None:
        steps.append(f"Add sparkle:edSignature for {report.version.tag} to {config.paths.feed.name}")
    if record is not None:
        image = config.paths.releases_dir / record.artifact_file_name
        steps.append(f"Test the installer image: open {image}")
    steps.append(f"Commit and push the feed, release notes and image for {report.version.tag}")
    return steps


def print_report(report: RunReport, console: ConsoleProtocol, config: ReleaseConfig) -> None:
    title = report.version.tag if report.version is not None else report.version_text
    if report.dry_run:
        console.header(f"Dry run summary: {title}")
    else:
        console.header(f"Release summary: {title}")

    for stage in report.stages:
        console.print(_stage_line(stage), _STATUS_STYLE.get(stage.status, Style.DEFAULT))

    if report.build is not None:
        verb = "would be" if report.dry_run else "is now"
        console.print(f"build number {verb} {report.build}")
    if report.image is not None and not report.dry_run:
        stapled = ", stapled" if report.image.stapled else ""
        console.print(f"image: {report.image.path} ({report.image.byte_length} bytes{stapled})")

    if report.warnings:
        console.newline()
        console.print(f"{len(report.warnings)} warning(s):", Style.WARNING)
        for warning in report.warnings:
            console.print(f"  - {warning}", Style.WARNING)

    console.newline()
    match report.state:
        case RunState.FAILED:
            stage = report.failed_stage or "unknown"
            reason = describe_pipeline_error(report.failure) if report.failure else "unknown error"
            console.error(f"release failed at {stage}: {reason}")
        case RunState.DRY_RUN_COMPLETE:
            console.success("dry run complete: no changes were made")
        case _:
            console.success(f"{config.app.name} {title} released")
            steps = next_steps(report, config)
            if steps:
                console.print("Next steps:", Style.BOLD)
                for n, step in enumerate(steps, start=1):
                    console.print(f"  {n}. {step}")
