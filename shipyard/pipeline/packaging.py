"""Installer image (DMG) assembly.

Two strategies implement the same contract:

- ``CreateDmgPackager`` drives the ``create-dmg`` tool for a styled window
  (background art, icon layout, drop link to /Applications).
- ``HdiutilPackager`` uses only the system ``hdiutil``: the staged app plus
  an ``Applications`` symlink compressed into a UDZO image.

Both stage the same files, so the mounted volume has identical contents;
only the Finder presentation differs. The strategy is chosen once, by
probing for ``create-dmg``.
"""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from shipyard.core.result import Err, Ok, Result
from shipyard.core.version import ReleaseVersion
from shipyard.output.console import ConsoleProtocol, Style
from shipyard.platform.process import CommandRunner, ToolLookup

from .base import BaseStage
from .errors import ArtifactMissing, PackagingFailed
from .model import InstallerImage

__all__ = [
    "PackagingStage",
    "PackagingError",
    "ImagePackager",
    "CreateDmgPackager",
    "HdiutilPackager",
    "WindowLayout",
    "image_filename",
    "select_packager",
]

PackagingError = ArtifactMissing | PackagingFailed

APPLICATIONS_DIR = "/Applications"
IMAGE_SUFFIX = ".dmg"


@dataclass(frozen=True, slots=True)
class WindowLayout:
    """Finder window geometry used by the styled image."""

    width: int = 660
    height: int = 400
    icon_size: int = 128
    app_x: int = 180
    app_y: int = 170
    drop_x: int = 480
    drop_y: int = 170
    text_size: int = 14


def image_filename(app_name: str, version: ReleaseVersion) -> str:
    """Deterministic image name; independent of the build number."""
    return f"{app_name}-v{version}{IMAGE_SUFFIX}"


class ImagePackager(Protocol):
    name: str

    def assemble(
        self, staging: Path, output: Path, *, app_bundle: str
    ) -> Result[None, PackagingFailed]: ...


class CreateDmgPackager:
    """Styled image through the ``create-dmg`` tool."""

    name = "create-dmg"

    def __init__(
        self,
        *,
        runner: CommandRunner,
        console: ConsoleProtocol,
        volume_name: str,
        background: Path | None = None,
        layout: WindowLayout = WindowLayout(),
        executable: str = "create-dmg",
    ) -> None:
        self._run = runner
        self._console = console
        self._volume_name = volume_name
        self._background = background
        self._layout = layout
        self._executable = executable

    def command(self, staging: Path, output: Path, *, app_bundle: str) -> list[str]:
        lay = self._layout
        cmd = [
            self._executable,
            "--volname",
            self._volume_name,
            "--window-pos",
            "200",
            "120",
            "--window-size",
            str(lay.width),
            str(lay.height),
            "--icon-size",
            str(lay.icon_size),
            "--icon",
            app_bundle,
            str(lay.app_x),
            str(lay.app_y),
            "--app-drop-link",
            str(lay.drop_x),
            str(lay.drop_y),
            "--hide-extension",
            app_bundle,
        ]
        if self._background is not None and self._background.is_file():
            cmd += ["--background", str(self._background)]
        cmd += ["--text-size", str(lay.text_size), str(output), str(staging)]
        return cmd

    def assemble(
        self, staging: Path, output: Path, *, app_bundle: str
    ) -> Result[None, PackagingFailed]:
        cmd = self.command(staging, output, app_bundle=app_bundle)
        self._console.print(" ".join(cmd), Style.DIM)
        result = self._run(cmd, cwd=staging.parent)
        if isinstance(result, Err):
            return Err(
                PackagingFailed(
                    path=output,
                    returncode=result.error.returncode,
                    reason=result.error.tail(10),
                )
            )
        return Ok(None)


class HdiutilPackager:
    """Plain compressed image built with ``hdiutil``."""

    name = "hdiutil"

    def __init__(
        self, *, runner: CommandRunner, console: ConsoleProtocol, volume_name: str
    ) -> None:
        self._run = runner
        self._console = console
        self._volume_name = volume_name

    def command(self, staging: Path, output: Path) -> list[str]:
        return [
            "hdiutil",
            "create",
            "-srcfolder",
            str(staging),
            "-volname",
            self._volume_name,
            "-format",
            "UDZO",
            "-o",
            str(output),
        ]

    def assemble(
        self, staging: Path, output: Path, *, app_bundle: str
    ) -> Result[None, PackagingFailed]:
        link = staging / "Applications"
        if not link.is_symlink():
            os.symlink(APPLICATIONS_DIR, link)

        cmd = self.command(staging, output)
        self._console.print(" ".join(cmd), Style.DIM)
        result = self._run(cmd, cwd=staging.parent)
        if isinstance(result, Err):
            return Err(
                PackagingFailed(
                    path=output,
                    returncode=result.error.returncode,
                    reason=result.error.tail(10),
                )
            )
        return Ok(None)


def select_packager(
    *,
    runner: CommandRunner,
    console: ConsoleProtocol,
    which: ToolLookup,
    volume_name: str,
    background: Path | None,
) -> ImagePackager:
    """Probe for ``create-dmg`` once and return the matching strategy."""
    executable = which("create-dmg")
    if executable:
        return CreateDmgPackager(
            runner=runner,
            console=console,
            volume_name=volume_name,
            background=background,
            executable=executable,
        )
    return HdiutilPackager(runner=runner, console=console, volume_name=volume_name)


class PackagingStage(BaseStage):
    def output_path(self, version: ReleaseVersion) -> Path:
        return self._config.paths.output_dir / image_filename(self._config.app.name, version)

    def packager(self) -> ImagePackager:
        return select_packager(
            runner=self._run,
            console=self._console,
            which=self._which,
            volume_name=self._config.app.name,
            background=self._config.paths.background,
        )

    def package(
        self, artifact: Path, version: ReleaseVersion, *, dry_run: bool = False
    ) -> Result[InstallerImage, PackagingError]:
        output = self.output_path(version)
        packager = self.packager()
        if packager.name != CreateDmgPackager.name:
            self._console.print("  create-dmg not found; using hdiutil fallback", Style.DIM)
        elif not self._config.paths.background.is_file():
            self._console.print(
                f"  no background at {self._config.paths.background}; "
                "run `shipyard background` to generate one",
                Style.DIM,
            )

        if dry_run:
            self._would(f"create {output} from {artifact.name} using {packager.name}")
            return Ok(InstallerImage(path=output, byte_length=0))

        if not artifact.is_dir():
            return Err(ArtifactMissing(path=artifact))

        output.parent.mkdir(parents=True, exist_ok=True)
        if output.exists():
            output.unlink()

        staging = output.parent / ".staging"
        shutil.rmtree(staging, ignore_errors=True)
        assembled: Result[None, PackagingFailed]
        try:
            staging.mkdir(parents=True)
            shutil.copytree(artifact, staging / artifact.name, symlinks=True)
            assembled = packager.assemble(staging, output, app_bundle=artifact.name)
        except OSError as e:
            assembled = Err(PackagingFailed(path=output, returncode=-1, reason=str(e)))
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        if isinstance(assembled, Err):
            return assembled
        if not output.is_file():
            return Err(
                PackagingFailed(path=output, returncode=0, reason="image was not created")
            )

        image = InstallerImage.measure(output)
        self._console.success(f"image created: {output} ({image.byte_length} bytes)")
        return Ok(image)
