"""Shared fixtures: an isolated project tree and a scripted process runner."""

from __future__ import annotations

import plistlib
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

import pytest

from shipyard.core.config import ReleaseConfig
from shipyard.core.result import Err, Ok, Result
from shipyard.output.console import MockConsole
from shipyard.platform.process import ProcessError

APP_NAME = "Dimmer"

FEED_WITH_ONE_RELEASE = """<?xml version="1.0" encoding="utf-8"?>
<rss version="2.0" xmlns:sparkle="http://www.andymatuschak.org/xml-namespaces/sparkle" xmlns:dc="http://purl.org/dc/elements/1.1/">
    <channel>
        <title>Dimmer Updates</title>
        <language>en</language>

        <!-- Release v1.0.0 -->
        <item>
            <title>Version 1.0.0</title>
            <pubDate>Mon, 05 Jan 2026 10:00:00 +0000</pubDate>
            <sparkle:releaseNotesLink>
                https://dimmer.example/release-notes/v1.0.0.html
            </sparkle:releaseNotesLink>
            <sparkle:version>5</sparkle:version>
            <sparkle:shortVersionString>1.0.0</sparkle:shortVersionString>
            <sparkle:minimumSystemVersion>13.0</sparkle:minimumSystemVersion>
            <enclosure
                url="https://dimmer.example/releases/Dimmer-v1.0.0.dmg"
                length="1048576"
                type="application/octet-stream"
                sparkle:edSignature="b2xkc2lnbmF0dXJl"/>
        </item>
    </channel>
</rss>
"""


IDENTITY_OUTPUT = """  1) 0123456789ABCDEF0123456789ABCDEF01234567 "Developer ID Application: Example Corp (TEAM123456)"
     1 valid identities found
"""

ACCEPTED_VERDICT = '{"id": "2f3c1a9e-0000-4000-8000-000000000001", "status": "Accepted", "message": "Processing complete"}'


Effect = Callable[[list[str]], None]


@dataclass
class _Rule:
    prefix: tuple[str, ...]
    stdout: str
    returncode: int
    stderr: str
    effect: Effect | None


@dataclass
class ScriptedRunner:
    """Stand-in for ``shipyard.platform.process.run``.

    Commands are matched by prefix against the registered rules (first
    match wins); unmatched commands succeed with empty output.
    """

    calls: list[list[str]] = field(default_factory=lambda: [])
    rules: list[_Rule] = field(default_factory=lambda: [])

    def respond(
        self,
        *prefix: str,
        stdout: str = "",
        returncode: int = 0,
        stderr: str = "",
        effect: Effect | None = None,
    ) -> None:
        self.rules.append(_Rule(tuple(prefix), stdout, returncode, stderr, effect))

    def __call__(
        self,
        cmd: list[str],
        cwd: Path,
        env: dict[str, str] | None = None,
        *,
        timeout: float | None = None,
    ) -> Result[str, ProcessError]:
        del cwd, env, timeout
        self.calls.append(list(cmd))
        for rule in self.rules:
            if tuple(cmd[: len(rule.prefix)]) != rule.prefix:
                continue
            if rule.effect is not None:
                rule.effect(cmd)
            if rule.returncode != 0:
                return Err(
                    ProcessError(
                        command=tuple(cmd),
                        returncode=rule.returncode,
                        stdout=rule.stdout,
                        stderr=rule.stderr,
                    )
                )
            return Ok(rule.stdout)
        return Ok("")

    def script_release(self, config: ReleaseConfig) -> None:
        """Register tool behaviour for a release that succeeds end to end."""
        self.respond("xcodebuild", stdout="** BUILD SUCCEEDED **\n", effect=_build_effect(config))
        self.respond("security", "find-identity", stdout=IDENTITY_OUTPUT)
        self.respond("hdiutil", "create", effect=_hdiutil_effect)
        self.respond("xcrun", "notarytool", stdout=ACCEPTED_VERDICT)
        self.respond("xcrun", "stapler", effect=_staple_effect)

    def programs(self) -> list[str]:
        return [cmd[0] for cmd in self.calls]

    def find(self, *prefix: str) -> list[list[str]]:
        return [c for c in self.calls if tuple(c[: len(prefix)]) == prefix]


def _write_manifest(path: Path, *, version: str = "1.0.0", build: str = "5") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {
        "CFBundleName": APP_NAME,
        "CFBundleShortVersionString": version,
        "CFBundleVersion": build,
        "LSMinimumSystemVersion": "13.0",
    }
    path.write_bytes(plistlib.dumps(data))


def _make_config(tmp_path: Path, *, variant: str = "signed") -> ReleaseConfig:
    root = tmp_path / "site"
    root.mkdir(exist_ok=True)
    data: dict[str, object] = {
        "app": {"name": APP_NAME, "project_dir": str(tmp_path / "app")},
        "feed": {
            "variant": variant,
            "download_url": "https://dimmer.example/releases",
            "notes_url": "https://dimmer.example/release-notes",
        },
    }
    return ReleaseConfig.from_dict(data, root=root)


def _build_effect(config: ReleaseConfig) -> Effect:
    """xcodebuild side effect: produce the app bundle."""

    def effect(cmd: list[str]) -> None:
        del cmd
        macos = config.artifact_path / "Contents" / "MacOS"
        macos.mkdir(parents=True, exist_ok=True)
        (macos / APP_NAME).write_bytes(b"\xcf\xfa\xed\xfe binary")

    return effect


def _hdiutil_effect(cmd: list[str]) -> None:
    """hdiutil side effect: write the image named after ``-o``."""
    out = Path(cmd[cmd.index("-o") + 1])
    out.write_bytes(b"dmg" * 1000)


def _staple_effect(cmd: list[str]) -> None:
    with Path(cmd[-1]).open("ab") as handle:
        handle.write(b"ticket" * 10)


@pytest.fixture
def console() -> MockConsole:
    return MockConsole()


@pytest.fixture
def runner() -> ScriptedRunner:
    return ScriptedRunner()


@pytest.fixture
def no_tools() -> Callable[[str], str | None]:
    def which(name: str) -> str | None:
        del name
        return None

    return which


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


@pytest.fixture
def config(tmp_path: Path) -> ReleaseConfig:
    """Signed-feed project: manifest at 1.0.0 (build 5), feed with one release."""
    cfg = _make_config(tmp_path)
    _write_manifest(cfg.manifest_path)
    cfg.paths.feed.parent.mkdir(parents=True, exist_ok=True)
    cfg.paths.feed.write_text(FEED_WITH_ONE_RELEASE, encoding="utf-8")
    return cfg


@pytest.fixture
def unsigned_config(tmp_path: Path) -> ReleaseConfig:
    cfg = _make_config(tmp_path, variant="unsigned")
    _write_manifest(cfg.manifest_path)
    return cfg


@pytest.fixture
def write_manifest() -> Callable[..., None]:
    return _write_manifest


@pytest.fixture
def feed_text() -> str:
    return FEED_WITH_ONE_RELEASE
