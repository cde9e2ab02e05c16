"""Release pipeline stages and their orchestration."""

from .background import BackgroundGenerator
from .base import DRY_RUN_PREFIX, BaseStage
from .build import BuildRunner
from .errors import (
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
    kind_name,
)
from .feed import FeedPublisher
from .ledger import VersionLedger
from .model import (
    FeedSignature,
    InstallerImage,
    NotarizationOutcome,
    ReleaseRecord,
    RunReport,
    RunState,
    SigningOutcome,
    StageRecord,
)
from .notarize import NotarizationStage
from .notes import ReleaseNotesScaffolder
from .orchestrator import STAGES, Orchestrator
from .packaging import PackagingStage
from .signing import SigningStage

__all__ = [
    "DRY_RUN_PREFIX",
    "BaseStage",
    "VersionLedger",
    "BuildRunner",
    "SigningStage",
    "PackagingStage",
    "NotarizationStage",
    "FeedPublisher",
    "ReleaseNotesScaffolder",
    "BackgroundGenerator",
    "Orchestrator",
    "STAGES",
    # Errors
    "PipelineError",
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
    "kind_name",
    # Model
    "InstallerImage",
    "SigningOutcome",
    "NotarizationOutcome",
    "FeedSignature",
    "ReleaseRecord",
    "RunReport",
    "RunState",
    "StageRecord",
]
