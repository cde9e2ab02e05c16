from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from shipyard.core.config import ReleaseConfig
from shipyard.core.result import Err, Ok
from shipyard.core.version import ReleaseVersion
from shipyard.output.console import MockConsole
from shipyard.pipeline.errors import ArtifactMissing, PackagingFailed
from shipyard.pipeline.packaging import (
    CreateDmgPackager,
    HdiutilPackager,
    PackagingStage,
    image_filename,
    select_packager,
)

if TYPE_CHECKING:
    from conftest import ScriptedRunner

V = ReleaseVersion(1, 0, 1)


def _app(config: ReleaseConfig) -> Path:
    app = config.artifact_path
    (app / "Contents" / "MacOS").mkdir(parents=True)
    (app / "Contents" / "MacOS" / "Dimmer").write_bytes(b"binary")
    return app


def _with_create_dmg(name: str) -> str | None:
    return "/usr/local/bin/create-dmg" if name == "create-dmg" else None


def test_image_filename_ignores_build_number() -> None:
    assert image_filename("Dimmer", V) == "Dimmer-v1.0.1.dmg"


def test_probe_selects_strategy(console: MockConsole, runner: ScriptedRunner) -> None:
    rich = select_packager(
        runner=runner, console=console, which=_with_create_dmg, volume_name="Dimmer", background=None
    )
    plain = select_packager(
        runner=runner, console=console, which=lambda _n: None, volume_name="Dimmer", background=None
    )
    assert isinstance(rich, CreateDmgPackager)
    assert isinstance(plain, HdiutilPackager)


def test_create_dmg_command_layout(tmp_path: Path, console: MockConsole, runner: ScriptedRunner) -> None:
    background = tmp_path / "background.png"
    background.write_bytes(b"png")
    packager = CreateDmgPackager(runner=runner, console=console, volume_name="Dimmer", background=background)

    cmd = packager.command(tmp_path / "stage", tmp_path / "out.dmg", app_bundle="Dimmer.app")

    assert cmd[0] == "create-dmg"
    assert cmd[cmd.index("--volname") + 1] == "Dimmer"
    assert cmd[cmd.index("--window-size") + 1 : cmd.index("--window-size") + 3] == ["660", "400"]
    assert cmd[cmd.index("--icon") + 1 : cmd.index("--icon") + 4] == ["Dimmer.app", "180", "170"]
    assert cmd[cmd.index("--app-drop-link") + 1 : cmd.index("--app-drop-link") + 3] == ["480", "170"]
    assert cmd[cmd.index("--background") + 1] == str(background)
    assert cmd[-2:] == [str(tmp_path / "out.dmg"), str(tmp_path / "stage")]


def test_missing_background_is_omitted(tmp_path: Path, console: MockConsole, runner: ScriptedRunner) -> None:
    packager = CreateDmgPackager(
        runner=runner, console=console, volume_name="Dimmer", background=tmp_path / "none.png"
    )
    assert "--background" not in packager.command(tmp_path, tmp_path / "o.dmg", app_bundle="Dimmer.app")


def test_hdiutil_fallback_stages_app_and_applications_link(
    config: ReleaseConfig,
    console: MockConsole,
    runner: ScriptedRunner,
    no_tools: Callable[[str], str | None],
) -> None:
    app = _app(config)
    staged: list[str] = []

    def capture(cmd: list[str]) -> None:
        staging = Path(cmd[cmd.index("-srcfolder") + 1])
        staged.extend(sorted(p.name for p in staging.iterdir()))
        assert (staging / "Applications").is_symlink()
        assert (staging / "Dimmer.app" / "Contents" / "MacOS" / "Dimmer").is_file()
        Path(cmd[cmd.index("-o") + 1]).write_bytes(b"x" * 2048)

    runner.respond("hdiutil", "create", effect=capture)
    stage = PackagingStage(config=config, console=console, runner=runner, which=no_tools)

    result = stage.package(app, V)

    assert isinstance(result, Ok)
    image = result.value
    assert image.path == config.paths.output_dir / "Dimmer-v1.0.1.dmg"
    assert image.byte_length == 2048
    assert not image.stapled
    assert staged == ["Applications", "Dimmer.app"]
    assert not (config.paths.output_dir / ".staging").exists()
    assert console.find("using hdiutil fallback")


def test_create_dmg_strategy_is_used_when_available(
    config: ReleaseConfig, console: MockConsole, runner: ScriptedRunner
) -> None:
    app = _app(config)

    def make_image(cmd: list[str]) -> None:
        Path(cmd[-2]).write_bytes(b"y" * 10)

    runner.respond("/usr/local/bin/create-dmg", effect=make_image)
    stage = PackagingStage(config=config, console=console, runner=runner, which=_with_create_dmg)

    result = stage.package(app, V)

    assert isinstance(result, Ok)
    assert result.value.byte_length == 10
    assert runner.programs() == ["/usr/local/bin/create-dmg"]


def test_existing_image_is_replaced(
    config: ReleaseConfig, console: MockConsole, runner: ScriptedRunner, no_tools: Callable[[str], str | None]
) -> None:
    app = _app(config)
    out = config.paths.output_dir / "Dimmer-v1.0.1.dmg"
    out.parent.mkdir(parents=True)
    out.write_bytes(b"stale")
    runner.respond("hdiutil", "create", effect=lambda cmd: Path(cmd[-1]).write_bytes(b"fresh image"))

    stage = PackagingStage(config=config, console=console, runner=runner, which=no_tools)
    result = stage.package(app, V)

    assert isinstance(result, Ok)
    assert out.read_bytes() == b"fresh image"


def test_tool_failure_is_packaging_failed(
    config: ReleaseConfig, console: MockConsole, runner: ScriptedRunner, no_tools: Callable[[str], str | None]
) -> None:
    app = _app(config)
    runner.respond("hdiutil", "create", returncode=1, stderr="hdiutil: create failed - Resource busy")

    stage = PackagingStage(config=config, console=console, runner=runner, which=no_tools)
    result = stage.package(app, V)

    assert isinstance(result, Err)
    assert isinstance(result.error, PackagingFailed)
    assert result.error.returncode == 1
    assert "Resource busy" in result.error.reason
    assert not (config.paths.output_dir / ".staging").exists()


def test_tool_success_without_image_is_packaging_failed(
    config: ReleaseConfig, console: MockConsole, runner: ScriptedRunner, no_tools: Callable[[str], str | None]
) -> None:
    app = _app(config)
    stage = PackagingStage(config=config, console=console, runner=runner, which=no_tools)

    result = stage.package(app, V)

    assert isinstance(result, Err)
    assert result.error == PackagingFailed(
        path=config.paths.output_dir / "Dimmer-v1.0.1.dmg", returncode=0, reason="image was not created"
    )


def test_missing_artifact(config: ReleaseConfig, console: MockConsole, runner: ScriptedRunner) -> None:
    stage = PackagingStage(config=config, console=console, runner=runner, which=lambda _n: None)

    result = stage.package(config.artifact_path, V)

    assert result == Err(ArtifactMissing(path=config.artifact_path))
    assert runner.calls == []


@pytest.mark.parametrize("tool", ["create-dmg", None])
def test_dry_run_creates_nothing(
    config: ReleaseConfig, console: MockConsole, runner: ScriptedRunner, tool: str | None
) -> None:
    stage = PackagingStage(
        config=config,
        console=console,
        runner=runner,
        which=lambda name: f"/opt/bin/{name}" if name == tool else None,
    )

    result = stage.package(config.artifact_path, V, dry_run=True)

    assert isinstance(result, Ok)
    assert runner.calls == []
    assert not config.paths.output_dir.exists()
    assert console.find("[dry-run] would create")
