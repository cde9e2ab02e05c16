"""Version and build-number bookkeeping in the application manifest.

The manifest is the app's ``Info.plist``: ``CFBundleShortVersionString``
holds the release version and ``CFBundleVersion`` the build number. Every
successful stamp sets the build number to ``previous + 1``, whether or not
the version changed.
"""

from __future__ import annotations

import plistlib
from pathlib import Path
from xml.parsers.expat import ExpatError

from shipyard.core.result import Err, Ok, Result
from shipyard.core.structured import as_str_dict, get_int
from shipyard.core.version import BuildNumber, ReleaseVersion
from shipyard.platform.files import atomic_write_bytes

from .base import BaseStage
from .errors import ManifestWriteError

__all__ = ["VersionLedger", "VERSION_KEY", "BUILD_KEY"]

VERSION_KEY = "CFBundleShortVersionString"
BUILD_KEY = "CFBundleVersion"

_UNREADABLE = (OSError, ValueError, ExpatError)


def _load_plist(path: Path) -> tuple[dict[str, object], plistlib.PlistFormat]:
    raw = path.read_bytes()
    fmt = plistlib.FMT_BINARY if raw.startswith(b"bplist00") else plistlib.FMT_XML
    data = as_str_dict(plistlib.loads(raw))
    if data is None:
        raise ValueError("manifest root is not a dictionary")
    return data, fmt


class VersionLedger(BaseStage):
    """Reads and stamps the version/build pair of the manifest."""

    @property
    def manifest_path(self) -> Path:
        return self._config.manifest_path

    def current_build(self) -> BuildNumber:
        """Current build number, or 0 when the manifest cannot be read.

        The lenient default is kept so a fresh project can be released, but
        it is always reported as a warning.
        """
        path = self.manifest_path
        try:
            data, _ = _load_plist(path)
        except _UNREADABLE as e:
            self._warn(f"could not read build number from {path} ({e}); assuming 0")
            return 0

        build = get_int(data, BUILD_KEY)
        if build is None or build < 0:
            self._warn(f"{BUILD_KEY} missing or not a number in {path}; assuming 0")
            return 0
        return build

    def current_version(self) -> str | None:
        try:
            data, _ = _load_plist(self.manifest_path)
        except _UNREADABLE:
            return None
        value = data.get(VERSION_KEY)
        return value if isinstance(value, str) else None

    def stamp(
        self, requested: ReleaseVersion, *, dry_run: bool = False
    ) -> Result[BuildNumber, ManifestWriteError]:
        """Write ``requested`` and the next build number into the manifest."""
        current = self.current_build()
        new_build = current + 1

        if dry_run:
            self._would(f"set {VERSION_KEY}={requested} {BUILD_KEY}={new_build}")
            self._console.print(f"  build: {current} -> {new_build}")
            return Ok(new_build)

        path = self.manifest_path
        try:
            data, fmt = _load_plist(path)
        except _UNREADABLE as e:
            return Err(ManifestWriteError(path=path, reason=f"cannot load manifest: {e}"))

        data[VERSION_KEY] = str(requested)
        data[BUILD_KEY] = str(new_build)

        try:
            atomic_write_bytes(path, plistlib.dumps(data, fmt=fmt, sort_keys=False))
        except (OSError, TypeError, OverflowError) as e:
            return Err(ManifestWriteError(path=path, reason=str(e)))

        self._console.success(f"manifest stamped: v{requested} (build {new_build})")
        return Ok(new_build)
