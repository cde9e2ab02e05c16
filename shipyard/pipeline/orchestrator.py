"""End-to-end release run.

The orchestrator drives the stages in a fixed order::

    Init -> Stamped -> Built -> Signed -> Packaged -> Notarized
         -> Published -> Scaffolded -> Done

Any fatal stage error moves the run to ``Failed`` and later stages are
recorded as not reached. A dry run walks the same path with every stage in
report-only mode and ends in ``DryRunComplete``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from shipyard.core.config import NotaryCredentials, ReleaseConfig
from shipyard.core.result import Err, Ok, Result
from shipyard.core.version import ReleaseVersion, parse_version
from shipyard.output.console import ConsoleProtocol, Style
from shipyard.platform.process import CommandRunner, ToolLookup, run, which

from .base import BaseStage, Clock, utcnow
from .build import BuildRunner
from .errors import PipelineError, kind_name
from .feed import FeedPublisher
from .ledger import VersionLedger
from .model import InstallerImage, RunReport, RunState, StageRecord, StageStatus
from .notarize import NotarizationStage
from .notes import ReleaseNotesScaffolder
from .packaging import PackagingStage
from .signing import SigningStage

__all__ = ["Orchestrator", "STAGES"]


@dataclass(frozen=True, slots=True)
class _Stage:
    name: str
    title: str
    reached: RunState


STAGES: tuple[_Stage, ...] = (
    _Stage("stamp", "Stamp version and build number", RunState.STAMPED),
    _Stage("build", "Build release", RunState.BUILT),
    _Stage("sign", "Code sign", RunState.SIGNED),
    _Stage("package", "Create installer image", RunState.PACKAGED),
    _Stage("notarize", "Notarize", RunState.NOTARIZED),
    _Stage("publish", "Update feed", RunState.PUBLISHED),
    _Stage("notes", "Release notes", RunState.SCAFFOLDED),
)

type _StepResult = Result[tuple[StageStatus, str], PipelineError]


@dataclass(slots=True)
class _Progress:
    version: ReleaseVersion
    skip_sign: bool
    dry_run: bool
    artifact: Path | None = None
    identity: str | None = None
    image: InstallerImage | None = None


class Orchestrator:
    """Sequences the release stages and produces the run report."""

    def __init__(
        self,
        *,
        config: ReleaseConfig,
        console: ConsoleProtocol,
        runner: CommandRunner = run,
        which: ToolLookup = which,
        clock: Clock = utcnow,
        credentials: NotaryCredentials | None = None,
        config_path: Path | None = None,
    ) -> None:
        self._config = config
        self._console = console
        self._credentials = credentials if credentials is not None else NotaryCredentials.from_env()
        self._config_path = config_path

        def make[T: BaseStage](cls: type[T]) -> T:
            return cls(config=config, console=console, runner=runner, which=which, clock=clock)

        self.ledger = make(VersionLedger)
        self.builder = make(BuildRunner)
        self.signer = make(SigningStage)
        self.packager = make(PackagingStage)
        self.notarizer = make(NotarizationStage)
        self.publisher = make(FeedPublisher)
        self.scaffolder = make(ReleaseNotesScaffolder)

    def _stages(self) -> tuple[BaseStage, ...]:
        return (
            self.ledger,
            self.builder,
            self.signer,
            self.packager,
            self.notarizer,
            self.publisher,
            self.scaffolder,
        )

    def run(self, version_text: str, *, skip_sign: bool = False, dry_run: bool = False) -> RunReport:
        report = RunReport(version_text=version_text, dry_run=dry_run)

        # Every later name and record derives from the version, so nothing
        # runs before it parses.
        parsed = parse_version(version_text)
        if isinstance(parsed, Err):
            report.state = RunState.FAILED
            report.failed_stage = "version"
            report.failure = parsed.error
            report.stages = [StageRecord(s.name, "not-reached") for s in STAGES]
            return report

        version = parsed.value
        report.version = version
        self._print_header(version, skip_sign=skip_sign, dry_run=dry_run)

        progress = _Progress(version=version, skip_sign=skip_sign, dry_run=dry_run)
        handlers: dict[str, Callable[[_Progress, RunReport], _StepResult]] = {
            "stamp": self._stamp,
            "build": self._build,
            "sign": self._sign,
            "package": self._package,
            "notarize": self._notarize,
            "publish": self._publish,
            "notes": self._notes,
        }

        total = len(STAGES) + 1
        for index, stage in enumerate(STAGES, start=1):
            self._console.header(f"STEP {index}/{total}: {stage.title}")
            outcome = handlers[stage.name](progress, report)
            self._collect_warnings(report)

            if isinstance(outcome, Err):
                report.state = RunState.FAILED
                report.failed_stage = stage.name
                report.failure = outcome.error
                report.stages.append(StageRecord(stage.name, "failed", kind_name(outcome.error)))
                report.stages += [
                    StageRecord(s.name, "not-reached") for s in STAGES[index:]
                ]
                return report

            status, detail = outcome.value
            report.stages.append(StageRecord(stage.name, status, detail))
            report.state = stage.reached

        self._console.header(f"STEP {total}/{total}: Summary")
        report.state = RunState.DRY_RUN_COMPLETE if dry_run else RunState.DONE
        return report

    def _print_header(self, version: ReleaseVersion, *, skip_sign: bool, dry_run: bool) -> None:
        cfg = self._config
        self._console.header(f"{cfg.app.name} release {version.tag}")
        if self._config_path is not None:
            self._console.print(f"config:   {self._config_path}", Style.DIM)
        self._console.print(f"project:  {cfg.app.project_dir}", Style.DIM)
        self._console.print(f"manifest: {cfg.manifest_path}", Style.DIM)
        self._console.print(f"feed:     {cfg.paths.feed} ({cfg.feed.variant})", Style.DIM)
        if skip_sign:
            self._console.warning("--skip-sign: signing and notarization are disabled")
        if dry_run:
            self._console.info("dry run: nothing will be written, built or submitted")

    def _collect_warnings(self, report: RunReport) -> None:
        for stage in self._stages():
            report.warnings += stage.warnings
            stage.warnings.clear()

    def _warn(self, report: RunReport, message: str) -> None:
        report.warnings.append(message)
        self._console.warning(message)

    def _status(self, progress: _Progress) -> StageStatus:
        return "would-run" if progress.dry_run else "ran"

    # -- stages ---------------------------------------------------------------

    def _stamp(self, progress: _Progress, report: RunReport) -> _StepResult:
        stamped = self.ledger.stamp(progress.version, dry_run=progress.dry_run)
        if isinstance(stamped, Err):
            return stamped
        report.build = stamped.value
        report.previous_build = stamped.value - 1
        return Ok((self._status(progress), f"build {report.previous_build} -> {report.build}"))

    def _build(self, progress: _Progress, report: RunReport) -> _StepResult:
        built = self.builder.build(dry_run=progress.dry_run)
        if isinstance(built, Err):
            return built
        progress.artifact = built.value
        return Ok((self._status(progress), built.value.name))

    def _sign(self, progress: _Progress, report: RunReport) -> _StepResult:
        assert progress.artifact is not None
        signed = self.signer.sign(progress.artifact, skip=progress.skip_sign, dry_run=progress.dry_run)
        if isinstance(signed, Err):
            return signed
        outcome = signed.value
        if outcome.skipped:
            return Ok(("skipped", "--skip-sign"))
        progress.identity = outcome.identity
        detail = outcome.identity or ""
        if outcome.looked_up:
            detail += " (identity lookup ran)"
        return Ok((self._status(progress), detail))

    def _package(self, progress: _Progress, report: RunReport) -> _StepResult:
        assert progress.artifact is not None
        packaged = self.packager.package(progress.artifact, progress.version, dry_run=progress.dry_run)
        if isinstance(packaged, Err):
            return packaged
        progress.image = packaged.value
        report.image = packaged.value
        return Ok((self._status(progress), packaged.value.path.name))

    def _notarize(self, progress: _Progress, report: RunReport) -> _StepResult:
        assert progress.image is not None
        notarized = self.notarizer.notarize(
            progress.image,
            self._credentials,
            identity=progress.identity,
            skip=progress.skip_sign,
            dry_run=progress.dry_run,
        )
        if isinstance(notarized, Err):
            return notarized
        outcome = notarized.value
        if outcome.skipped:
            missing = self._credentials.missing()
            reason = "--skip-sign" if progress.skip_sign else f"missing {', '.join(missing)}"
            return Ok(("skipped", reason))
        if not progress.dry_run:
            progress.image = progress.image.restat(stapled=outcome.stapled)
            report.image = progress.image
        return Ok((self._status(progress), outcome.submission_id or ""))

    def _publish(self, progress: _Progress, report: RunReport) -> _StepResult:
        assert progress.image is not None and report.build is not None
        publisher = self.publisher

        signature = None
        if publisher.variant == "signed":
            if progress.skip_sign:
                self._warn(report, "feed entry has no EdDSA signature (--skip-sign)")
            else:
                signature = publisher.sign_image(progress.image, dry_run=progress.dry_run)

        record = publisher.make_record(
            version=progress.version,
            build=report.build,
            image=progress.image,
            signature=signature,
        )
        report.record = record

        # The image must be in place before the feed points at it.
        staged = publisher.stage_asset(progress.image, dry_run=progress.dry_run)
        if isinstance(staged, Err):
            return staged

        published = publisher.publish(record, dry_run=progress.dry_run)
        if isinstance(published, Err):
            return published

        return Ok((self._status(progress), f"{publisher.variant} feed"))

    def _notes(self, progress: _Progress, report: RunReport) -> _StepResult:
        scaffolder = self.scaffolder
        existed = scaffolder.notes_path(progress.version).exists()
        try:
            report.notes_path = scaffolder.scaffold(progress.version, dry_run=progress.dry_run)
        except OSError as e:
            self._warn(report, f"could not create release notes: {e}")
            return Ok(("skipped", "write failed"))
        if existed:
            return Ok(("skipped", "notes already exist"))
        return Ok((self._status(progress), report.notes_path.name))
