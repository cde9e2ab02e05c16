"""Release compilation via xcodebuild."""

from __future__ import annotations

from pathlib import Path

from shipyard.core.result import Err, Ok, Result
from shipyard.output.console import Style

from .base import BaseStage
from .errors import ArtifactMissing, CompilationFailed

__all__ = ["BuildRunner", "BuildError"]

BuildError = CompilationFailed | ArtifactMissing

_TAIL_LINES = 20


class BuildRunner(BaseStage):
    """Clean Release build into a fixed output directory."""

    def command(self) -> list[str]:
        app = self._config.app
        paths = self._config.paths
        return [
            "xcodebuild",
            "-project",
            f"{app.name}.xcodeproj",
            "-scheme",
            app.scheme,
            "-configuration",
            "Release",
            "-derivedDataPath",
            str(paths.derived_data_dir),
            f"CONFIGURATION_BUILD_DIR={paths.release_build_dir}",
            "clean",
            "build",
        ]

    def build(self, *, dry_run: bool = False) -> Result[Path, BuildError]:
        """Compile the app and return the path of the built bundle.

        A zero exit status is not trusted on its own: the bundle must exist
        at the expected location afterwards.
        """
        cmd = self.command()
        artifact = self._config.artifact_path

        if dry_run:
            self._would(f"run: {' '.join(cmd)}")
            return Ok(artifact)

        self._config.paths.release_build_dir.mkdir(parents=True, exist_ok=True)
        self._echo(cmd)
        result = self._run(cmd, cwd=self._config.app.project_dir)
        if isinstance(result, Err):
            return Err(
                CompilationFailed(
                    returncode=result.error.returncode,
                    tail=result.error.tail(_TAIL_LINES),
                )
            )

        for line in result.value.rstrip().splitlines()[-_TAIL_LINES:]:
            self._console.print(f"  {line}", Style.DIM)

        if not artifact.is_dir():
            return Err(ArtifactMissing(path=artifact))

        self._console.success(f"build complete: {artifact}")
        return Ok(artifact)
