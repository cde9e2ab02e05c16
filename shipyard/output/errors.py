"""Error presentation utilities.

Centralized error formatting and exit code mapping for consistent UX.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from shipyard.core.config import ConfigError
from shipyard.core.errors import ErrorCode
from shipyard.output.console import Style
from shipyard.pipeline.errors import (
    ArtifactMissing,
    CompilationFailed,
    FeedUpdateFailed,
    InvalidVersionFormat,
    ManifestWriteError,
    NoSigningIdentity,
    NotarizationRejected,
    PackagingFailed,
    PipelineError,
    SigningFailed,
    StapleFailed,
)

if TYPE_CHECKING:
    from shipyard.output.console import ConsoleProtocol

__all__ = [
    "describe_pipeline_error",
    "print_pipeline_error",
    "pipeline_error_exit_code",
    "print_config_error",
]


def describe_pipeline_error(error: PipelineError) -> str:
    """One-line description of a fatal pipeline error."""
    match error:
        case InvalidVersionFormat(value=value):
            return f"invalid version {value!r}: expected X.Y.Z (e.g. 1.0.1)"
        case ManifestWriteError(path=path, reason=reason):
            return f"cannot update manifest {path}: {reason}"
        case CompilationFailed(returncode=rc):
            return f"build failed (exit {rc})"
        case ArtifactMissing(path=path):
            return f"build output not found: {path}"
        case NoSigningIdentity(identity_filter=identity_filter):
            return f"no '{identity_filter}' signing identity found in the keychain"
        case SigningFailed(path=path, reason=reason):
            return f"code signing failed for {path.name}: {reason}"
        case PackagingFailed(path=path, returncode=rc, reason=reason):
            detail = f": {reason}" if reason else ""
            return f"image creation failed for {path.name} (exit {rc}){detail}"
        case NotarizationRejected(status=status, submission_id=submission_id):
            sid = f" (submission {submission_id})" if submission_id else ""
            return f"notarization was not accepted: {status}{sid}"
        case StapleFailed(path=path, reason=reason):
            return f"stapling the ticket to {path.name} failed: {reason}"
        case FeedUpdateFailed(path=path, reason=reason):
            return f"publishing {path.name} failed: {reason}"


def print_pipeline_error(error: PipelineError, console: ConsoleProtocol) -> None:
    """Print pipeline error to console with appropriate formatting."""
    console.error(describe_pipeline_error(error))
    match error:
        case CompilationFailed(tail=tail) if tail:
            for line in tail.splitlines():
                console.print(f"  {line}", Style.DIM)
        case NoSigningIdentity():
            console.print(
                "hint: set SIGNING_IDENTITY, or release a development build with --skip-sign",
                Style.DIM,
            )
        case NotarizationRejected(submission_id=submission_id, reason=reason):
            if reason:
                console.print(reason, Style.DIM)
            if submission_id:
                console.print(
                    f"hint: xcrun notarytool log {submission_id} for the full report",
                    Style.DIM,
                )
        case ManifestWriteError():
            console.print("hint: the manifest was left as it was before the run", Style.DIM)
        case FeedUpdateFailed():
            console.print("hint: the feed still holds its previous content", Style.DIM)
        case _:
            pass


def pipeline_error_exit_code(error: PipelineError) -> int:
    """Get exit code for a pipeline error."""
    match error:
        case InvalidVersionFormat():
            return int(ErrorCode.USER_ERROR)
        case NoSigningIdentity():
            return int(ErrorCode.ENV_ERROR)
        case CompilationFailed() | ArtifactMissing() | PackagingFailed():
            return int(ErrorCode.BUILD_ERROR)
        case SigningFailed() | NotarizationRejected() | StapleFailed():
            return int(ErrorCode.SIGN_ERROR)
        case FeedUpdateFailed():
            return int(ErrorCode.PUBLISH_ERROR)
        case ManifestWriteError():
            return int(ErrorCode.IO_ERROR)


def print_config_error(error: ConfigError, console: ConsoleProtocol) -> None:
    console.error(error.message)
    if error.path is not None:
        console.print(f"path: {error.path}", Style.DIM)
