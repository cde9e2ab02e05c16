from __future__ import annotations

from html import escape
from pathlib import Path
from string import Template

from shipyard.core.version import ReleaseVersion
from shipyard.platform.files import atomic_write_text

from .base import BaseStage

__all__ = ["ReleaseNotesScaffolder", "NOTES_TEMPLATE", "notes_filename"]

NOTES_TEMPLATE = Template(
    """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>$app v$version Release Notes</title>
    <style>
        body { font-family: -apple-system, BlinkMacSystemFont, sans-serif; padding: 20px; line-height: 1.6; font-size: 14px; }
        h1 { font-size: 1.5rem; font-weight: 600; margin-bottom: 8px; }
        h2 { font-size: 1.1rem; margin-top: 20px; margin-bottom: 10px; font-weight: 500; }
        .version-badge { display: inline-block; padding: 4px 12px; border-radius: 20px; font-size: 12px; font-weight: 600; }
        .date { color: #6b665c; font-size: 13px; margin-bottom: 20px; }
    </style>
</head>
<body>
    <h1>$app</h1>
    <span class="version-badge">v$version</span>
    <p class="date">$date</p>

    <h2>What's New</h2>
    <ul>
        <li>New feature: description here</li>
    </ul>

    <h2>Bug Fixes</h2>
    <ul>
        <li>Fixed issue with...</li>
    </ul>

    <h2>Improvements</h2>
    <ul>
        <li>Performance improvements</li>
    </ul>
</body>
</html>
"""
)


def notes_filename(version: ReleaseVersion) -> str:
    return f"{version.tag}.html"


class ReleaseNotesScaffolder(BaseStage):
    def notes_path(self, version: ReleaseVersion) -> Path:
        return self._config.paths.notes_dir / notes_filename(version)

    def render(self, version: ReleaseVersion) -> str:
        return NOTES_TEMPLATE.substitute(
            app=escape(self._config.app.name),
            version=str(version),
            date=self._clock().strftime("%B %d, %Y"),
        )

    def scaffold(self, version: ReleaseVersion, *, dry_run: bool = False) -> Path:
        """Create the notes document for ``version`` unless it already exists.

        Existing notes are never rewritten; the call warns and returns the
        existing path.
        """
        path = self.notes_path(version)
        if path.exists():
            self._warn(f"release notes already exist, left untouched: {path}")
            return path

        if dry_run:
            self._would(f"create release notes at {path}")
            return path

        atomic_write_text(path, self.render(version))
        self._console.success(f"release notes template created: {path}")
        self._console.info(f"edit {path.name} before publishing the release")
        return path
