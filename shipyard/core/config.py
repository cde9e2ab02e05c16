"""Typed release configuration.

The configuration lives in ``shipyard.toml`` next to the website checkout
that serves the update feed. Every path in the file is relative to the
directory that contains it.

Example::

    [app]
    name = "SuperDimmer"
    project_dir = "../SuperDimmer-Mac-App"

    [feed]
    variant = "signed"
    download_url = "https://superdimmer.app/releases"
    notes_url = "https://superdimmer.app/release-notes"
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_str, get_table

__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "AppConfig",
    "PathsConfig",
    "FeedConfig",
    "SigningConfig",
    "ReleaseConfig",
    "NotaryCredentials",
    "FeedVariant",
    "find_config",
    "load_config",
]

CONFIG_FILENAME = "shipyard.toml"
CONFIG_ENV = "SHIPYARD_CONFIG"

DEFAULT_MINIMUM_SYSTEM_VERSION = "13.0"
DEFAULT_IDENTITY_FILTER = "Developer ID Application"

FeedVariant = Literal["signed", "unsigned"]


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when the release configuration cannot be located or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class AppConfig:
    """The application being released."""

    name: str
    scheme: str
    project_dir: Path
    info_plist: Path
    entitlements: Path

    @property
    def bundle_name(self) -> str:
        return f"{self.name}.app"


@dataclass(frozen=True, slots=True)
class PathsConfig:
    """Absolute locations of build outputs and published files."""

    build_dir: Path
    output_dir: Path
    releases_dir: Path
    notes_dir: Path
    feed: Path
    background: Path

    @property
    def release_build_dir(self) -> Path:
        return self.build_dir / "Release"

    @property
    def derived_data_dir(self) -> Path:
        return self.build_dir / "DerivedData"


@dataclass(frozen=True, slots=True)
class FeedConfig:
    variant: FeedVariant = "signed"
    download_url: str = ""
    notes_url: str = ""
    minimum_system_version: str = DEFAULT_MINIMUM_SYSTEM_VERSION
    title: str = ""


@dataclass(frozen=True, slots=True)
class SigningConfig:
    """Code-signing and feed-signing inputs.

    ``identity`` short-circuits discovery in the credential store when set.
    """

    identity: str | None = None
    identity_filter: str = DEFAULT_IDENTITY_FILTER
    sparkle_bin: Path | None = None
    sparkle_key_path: Path | None = None

    def with_env(self, environ: Mapping[str, str]) -> SigningConfig:
        identity = (environ.get("SIGNING_IDENTITY") or "").strip() or self.identity
        sparkle_bin = _env_path(environ, "SPARKLE_BIN") or self.sparkle_bin
        key_path = _env_path(environ, "SPARKLE_KEY_PATH") or self.sparkle_key_path
        return SigningConfig(
            identity=identity,
            identity_filter=self.identity_filter,
            sparkle_bin=sparkle_bin,
            sparkle_key_path=key_path,
        )


@dataclass(frozen=True, slots=True)
class NotaryCredentials:
    """The three identifiers the notarization service requires."""

    apple_id: str | None = None
    password: str | None = None
    team_id: str | None = None

    ENV_NAMES = ("APPLE_ID", "APPLE_APP_PASSWORD", "APPLE_TEAM_ID")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> NotaryCredentials:
        env = os.environ if environ is None else environ
        return cls(
            apple_id=(env.get("APPLE_ID") or "").strip() or None,
            password=(env.get("APPLE_APP_PASSWORD") or "").strip() or None,
            team_id=(env.get("APPLE_TEAM_ID") or "").strip() or None,
        )

    def missing(self) -> tuple[str, ...]:
        values = (self.apple_id, self.password, self.team_id)
        return tuple(name for name, v in zip(self.ENV_NAMES, values) if not v)

    @property
    def complete(self) -> bool:
        return not self.missing()


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    """Main configuration container, passed explicitly to every stage."""

    root: Path
    app: AppConfig
    paths: PathsConfig
    feed: FeedConfig = field(default_factory=FeedConfig)
    signing: SigningConfig = field(default_factory=SigningConfig)

    @property
    def manifest_path(self) -> Path:
        return self.app.info_plist

    @property
    def artifact_path(self) -> Path:
        return self.paths.release_build_dir / self.app.bundle_name

    @classmethod
    def from_dict(cls, data: Mapping[str, object], *, root: Path) -> ReleaseConfig:
        """Create a config from parsed TOML, resolving paths against ``root``."""
        app: StrDict = get_table(data, "app") or {}
        paths: StrDict = get_table(data, "paths") or {}
        feed: StrDict = get_table(data, "feed") or {}
        signing: StrDict = get_table(data, "signing") or {}

        name = get_str(app, "name")
        if name is None:
            raise ValueError("[app].name is required")

        project_dir = _resolve(root, get_str(app, "project_dir") or ".")
        support = f"{name}/Supporting Files"

        variant = get_str(feed, "variant") or "signed"
        if variant not in ("signed", "unsigned"):
            raise ValueError(f"[feed].variant must be 'signed' or 'unsigned', got {variant!r}")

        build_dir = get_str(paths, "build_dir")
        sparkle_bin = get_str(signing, "sparkle_bin")
        key_path = get_str(signing, "sparkle_key_path")

        return cls(
            root=root,
            app=AppConfig(
                name=name,
                scheme=get_str(app, "scheme") or name,
                project_dir=project_dir,
                info_plist=_resolve(
                    project_dir, get_str(app, "info_plist") or f"{support}/Info.plist"
                ),
                entitlements=_resolve(
                    project_dir,
                    get_str(app, "entitlements") or f"{support}/{name}.entitlements",
                ),
            ),
            paths=PathsConfig(
                build_dir=_resolve(root, build_dir) if build_dir else project_dir / "build",
                output_dir=_resolve(root, get_str(paths, "output_dir") or "packaging/output"),
                releases_dir=_resolve(root, get_str(paths, "releases_dir") or "releases"),
                notes_dir=_resolve(root, get_str(paths, "notes_dir") or "release-notes"),
                feed=_resolve(root, get_str(paths, "feed") or "sparkle/appcast.xml"),
                background=_resolve(
                    root, get_str(paths, "background") or "packaging/background.png"
                ),
            ),
            feed=FeedConfig(
                variant="signed" if variant == "signed" else "unsigned",
                download_url=(get_str(feed, "download_url") or "").rstrip("/"),
                notes_url=(get_str(feed, "notes_url") or "").rstrip("/"),
                minimum_system_version=get_str(feed, "minimum_system_version")
                or DEFAULT_MINIMUM_SYSTEM_VERSION,
                title=get_str(feed, "title") or name,
            ),
            signing=SigningConfig(
                identity=get_str(signing, "identity"),
                identity_filter=get_str(signing, "identity_filter") or DEFAULT_IDENTITY_FILTER,
                sparkle_bin=_resolve(root, sparkle_bin) if sparkle_bin else None,
                sparkle_key_path=_resolve(root, key_path) if key_path else None,
            ),
        )

    def with_env(self, environ: Mapping[str, str]) -> ReleaseConfig:
        """Return a copy with environment overrides applied to signing inputs."""
        return ReleaseConfig(
            root=self.root,
            app=self.app,
            paths=self.paths,
            feed=self.feed,
            signing=self.signing.with_env(environ),
        )


def _resolve(base: Path, value: str) -> Path:
    p = Path(value).expanduser()
    if p.is_absolute():
        return p
    return base / p


def _env_path(environ: Mapping[str, str], name: str) -> Path | None:
    value = (environ.get(name) or "").strip()
    return Path(value).expanduser() if value else None


def find_config(
    start: Path, *, explicit: Path | None = None, environ: Mapping[str, str] | None = None
) -> Result[Path, ConfigError]:
    """Locate ``shipyard.toml``.

    Lookup order: explicit path, ``SHIPYARD_CONFIG``, then the first
    ``shipyard.toml`` walking upward from ``start``.
    """
    env = os.environ if environ is None else environ
    if explicit is not None:
        candidate = explicit.expanduser()
        if candidate.is_file():
            return Ok(candidate.resolve())
        return Err(ConfigError(f"Config file not found: {candidate}", path=candidate))

    from_env = (env.get(CONFIG_ENV) or "").strip()
    if from_env:
        candidate = Path(from_env).expanduser()
        if candidate.is_file():
            return Ok(candidate.resolve())
        return Err(ConfigError(f"{CONFIG_ENV} points to a missing file: {candidate}"))

    start = start.resolve()
    for parent in (start, *start.parents):
        candidate = parent / CONFIG_FILENAME
        if candidate.is_file():
            return Ok(candidate)

    return Err(ConfigError(f"No {CONFIG_FILENAME} found in {start} or its parents", path=start))


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        data_obj: object = tomllib.loads(path.read_bytes().decode("utf-8"))
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Config root must be a TOML table", path=path))
    return Ok(data)


def load_config(
    path: Path, *, environ: Mapping[str, str] | None = None
) -> Result[ReleaseConfig, ConfigError]:
    """Load ``shipyard.toml`` and apply environment overrides.

    Returns:
        Ok(ReleaseConfig) on success, Err(ConfigError) on failure
    """
    parsed = _parse_toml(path)
    if isinstance(parsed, Err):
        return parsed

    try:
        config = ReleaseConfig.from_dict(parsed.value, root=path.parent.resolve())
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))

    return Ok(config.with_env(os.environ if environ is None else environ))
