"""Values passed between stages and the run report."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Literal

from shipyard.core.version import BuildNumber, ReleaseVersion

from .errors import PipelineError

__all__ = [
    "InstallerImage",
    "SigningOutcome",
    "NotarizationOutcome",
    "FeedSignature",
    "ReleaseRecord",
    "RunState",
    "StageStatus",
    "StageRecord",
    "RunReport",
]


@dataclass(frozen=True, slots=True)
class InstallerImage:
    path: Path
    byte_length: int
    stapled: bool = False

    @classmethod
    def measure(cls, path: Path, *, stapled: bool = False) -> InstallerImage:
        """Build an image record from the on-disk size of ``path``."""
        return cls(path=path, byte_length=path.stat().st_size, stapled=stapled)

    def restat(self, *, stapled: bool) -> InstallerImage:
        # Stapling appends the ticket, so the length must be re-read.
        if self.path.exists():
            return InstallerImage.measure(self.path, stapled=stapled)
        return replace(self, stapled=stapled)


@dataclass(frozen=True, slots=True)
class SigningOutcome:
    identity: str | None
    succeeded: bool
    skipped: bool = False
    looked_up: bool = False


@dataclass(frozen=True, slots=True)
class NotarizationOutcome:
    stapled: bool
    submission_id: str | None = None
    skipped: bool = False


@dataclass(frozen=True, slots=True)
class FeedSignature:
    signature: str
    length: int | None = None


@dataclass(frozen=True, slots=True)
class ReleaseRecord:
    """One published release, as written to the update feed."""

    version: ReleaseVersion
    build: BuildNumber
    artifact_file_name: str
    artifact_byte_length: int
    publication_timestamp: datetime
    release_notes_url: str
    minimum_system_version: str
    download_url: str
    signature: str | None = None


class RunState(Enum):
    INIT = "init"
    STAMPED = "stamped"
    BUILT = "built"
    SIGNED = "signed"
    PACKAGED = "packaged"
    NOTARIZED = "notarized"
    PUBLISHED = "published"
    SCAFFOLDED = "scaffolded"
    DONE = "done"
    FAILED = "failed"
    DRY_RUN_COMPLETE = "dry-run-complete"

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.DONE, RunState.FAILED, RunState.DRY_RUN_COMPLETE)


StageStatus = Literal["ran", "skipped", "would-run", "failed", "not-reached"]


@dataclass(frozen=True, slots=True)
class StageRecord:
    name: str
    status: StageStatus
    detail: str = ""


def _empty_stages() -> list[StageRecord]:
    return []


def _empty_warnings() -> list[str]:
    return []


@dataclass
class RunReport:
    """What happened during one orchestration run.

    The shape is identical for real and dry runs; ``dry_run`` switches the
    wording when rendered.
    """

    version_text: str
    dry_run: bool
    state: RunState = RunState.INIT
    version: ReleaseVersion | None = None
    previous_build: BuildNumber | None = None
    build: BuildNumber | None = None
    image: InstallerImage | None = None
    record: ReleaseRecord | None = None
    notes_path: Path | None = None
    stages: list[StageRecord] = field(default_factory=_empty_stages)
    warnings: list[str] = field(default_factory=_empty_warnings)
    failed_stage: str | None = None
    failure: PipelineError | None = None

    @property
    def succeeded(self) -> bool:
        return self.state in (RunState.DONE, RunState.DRY_RUN_COMPLETE)

    def stage(self, name: str) -> StageRecord | None:
        for record in self.stages:
            if record.name == name:
                return record
        return None

    def skipped(self) -> list[StageRecord]:
        return [s for s in self.stages if s.status == "skipped"]
