"""Fatal error kinds of the release pipeline.

Each kind aborts the run. Soft failures (skipped signing, missing
credentials, missing feed signature, existing release notes) are not
represented here; stages report them as warnings.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from shipyard.core.version import InvalidVersionFormat

__all__ = [
    "InvalidVersionFormat",
    "ManifestWriteError",
    "CompilationFailed",
    "ArtifactMissing",
    "NoSigningIdentity",
    "SigningFailed",
    "PackagingFailed",
    "NotarizationRejected",
    "StapleFailed",
    "FeedUpdateFailed",
    "PipelineError",
    "kind_name",
]


@dataclass(frozen=True, slots=True)
class ManifestWriteError:
    path: Path
    reason: str


@dataclass(frozen=True, slots=True)
class CompilationFailed:
    returncode: int
    tail: str = ""


@dataclass(frozen=True, slots=True)
class ArtifactMissing:
    path: Path


@dataclass(frozen=True, slots=True)
class NoSigningIdentity:
    identity_filter: str


@dataclass(frozen=True, slots=True)
class SigningFailed:
    path: Path
    reason: str


@dataclass(frozen=True, slots=True)
class PackagingFailed:
    path: Path
    returncode: int
    reason: str = ""


@dataclass(frozen=True, slots=True)
class NotarizationRejected:
    status: str
    submission_id: str | None = None
    reason: str = ""


@dataclass(frozen=True, slots=True)
class StapleFailed:
    path: Path
    reason: str


@dataclass(frozen=True, slots=True)
class FeedUpdateFailed:
    path: Path
    reason: str


PipelineError = (
    InvalidVersionFormat
    | ManifestWriteError
    | CompilationFailed
    | ArtifactMissing
    | NoSigningIdentity
    | SigningFailed
    | PackagingFailed
    | NotarizationRejected
    | StapleFailed
    | FeedUpdateFailed
)


def kind_name(error: PipelineError) -> str:
    """Stable name of the error kind, e.g. ``"ArtifactMissing"``."""
    return type(error).__name__
