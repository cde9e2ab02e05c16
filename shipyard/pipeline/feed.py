"""Update feed publication.

Two document variants share the ``ReleaseRecord`` payload:

- ``signed``: a Sparkle ``appcast.xml`` listing every release newest-first.
  New items are spliced in as text right after the ``</language>`` anchor,
  so every existing byte of the document is preserved. The rewrite goes
  through ``rewrite_with_backup`` and is rolled back on any failure.
- ``unsigned``: a flat JSON descriptor of the latest release only,
  regenerated and overwritten on every publish.
"""

from __future__ import annotations

import json
import os
import re
import shutil
import xml.etree.ElementTree as ET
from datetime import UTC, datetime
from email.utils import format_datetime, parsedate_to_datetime
from pathlib import Path
from xml.sax.saxutils import escape, quoteattr

from shipyard.core.config import FeedVariant
from shipyard.core.result import Err, Ok, Result
from shipyard.core.structured import as_str_dict, get_int, get_str
from shipyard.core.version import BuildNumber, ReleaseVersion, parse_version
from shipyard.output.console import Style
from shipyard.platform.files import atomic_write_text, rewrite_with_backup

from .base import BaseStage
from .errors import FeedUpdateFailed
from .model import FeedSignature, InstallerImage, ReleaseRecord

__all__ = [
    "FeedPublisher",
    "FEED_ANCHOR",
    "SPARKLE_NS",
    "insert_entry",
    "read_entries",
    "read_descriptor",
    "render_descriptor",
    "render_item",
    "feed_skeleton",
    "parse_sign_output",
]

SPARKLE_NS = "http://www.andymatuschak.org/xml-namespaces/sparkle"
FEED_ANCHOR = "</language>"
ENCLOSURE_TYPE = "application/octet-stream"

_SIGNATURE_RE = re.compile(r'sparkle:edSignature="([^"]*)"')
_LENGTH_RE = re.compile(r'length="([0-9]+)"')


# -----------------------------------------------------------------------------
# Signed form (appcast)
# -----------------------------------------------------------------------------


def feed_skeleton(title: str) -> str:
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        f'<rss version="2.0" xmlns:sparkle="{SPARKLE_NS}" '
        'xmlns:dc="http://purl.org/dc/elements/1.1/">\n'
        "    <channel>\n"
        f"        <title>{escape(title)} Updates</title>\n"
        "        <description>Most recent changes with links to updates.</description>\n"
        "        <language>en</language>\n"
        "    </channel>\n"
        "</rss>\n"
    )


def render_item(record: ReleaseRecord, *, newline: str = "\n") -> str:
    enclosure = [
        f"url={quoteattr(record.download_url)}",
        f'length="{record.artifact_byte_length}"',
        f'type="{ENCLOSURE_TYPE}"',
    ]
    if record.signature:
        enclosure.append(f"sparkle:edSignature={quoteattr(record.signature)}")

    lines = [
        "        <item>",
        f"            <title>Version {record.version}</title>",
        f"            <pubDate>{format_datetime(record.publication_timestamp)}</pubDate>",
        "            <sparkle:releaseNotesLink>",
        f"                {escape(record.release_notes_url)}",
        "            </sparkle:releaseNotesLink>",
        f"            <sparkle:version>{record.build}</sparkle:version>",
        f"            <sparkle:shortVersionString>{record.version}</sparkle:shortVersionString>",
        "            <sparkle:minimumSystemVersion>"
        f"{escape(record.minimum_system_version)}</sparkle:minimumSystemVersion>",
        "            <enclosure",
        *(f"                {attr}" for attr in enclosure[:-1]),
        f"                {enclosure[-1]}/>",
        "        </item>",
    ]
    return newline.join(lines)


def insert_entry(document: str, record: ReleaseRecord) -> str:
    """Splice ``record`` in directly after the anchor, ahead of every item.

    Raises:
        ValueError: if the document has no anchor.
    """
    idx = document.find(FEED_ANCHOR)
    if idx < 0:
        raise ValueError(f"feed has no {FEED_ANCHOR} anchor")

    newline = "\r\n" if "\r\n" in document else "\n"
    end = idx + len(FEED_ANCHOR)
    block = newline.join(
        [
            "",
            "",
            f"        <!-- Release v{record.version} -->",
            render_item(record, newline=newline),
        ]
    )
    return document[:end] + block + document[end:]


_EPOCH = datetime.fromtimestamp(0, UTC)


def _pub_date(text: str | None) -> datetime:
    """RFC 2822 date, or the epoch when absent or hand-edited beyond parsing."""
    if not text:
        return _EPOCH
    try:
        return parsedate_to_datetime(text)
    except (TypeError, ValueError):
        return _EPOCH


def _text(item: ET.Element, tag: str) -> str:
    node = item.find(tag)
    if node is None or node.text is None:
        return ""
    return node.text.strip()


def read_entries(document: str) -> list[ReleaseRecord]:
    """Parse every ``<item>`` of a signed feed, in document order.

    Raises:
        ET.ParseError: if the document is not well-formed XML.
    """
    root = ET.fromstring(document)
    s = f"{{{SPARKLE_NS}}}"
    records: list[ReleaseRecord] = []
    for item in root.iter("item"):
        version = parse_version(_text(item, f"{s}shortVersionString"))
        if isinstance(version, Err):
            continue
        enclosure = item.find("enclosure")
        attrs = enclosure.attrib if enclosure is not None else {}
        url = attrs.get("url", "")
        length = attrs.get("length", "0")
        build = _text(item, f"{s}version")
        records.append(
            ReleaseRecord(
                version=version.value,
                build=int(build) if build.isdigit() else 0,
                artifact_file_name=url.rsplit("/", 1)[-1],
                artifact_byte_length=int(length) if length.isdigit() else 0,
                publication_timestamp=_pub_date(_text(item, "pubDate")),
                release_notes_url=_text(item, f"{s}releaseNotesLink"),
                minimum_system_version=_text(item, f"{s}minimumSystemVersion"),
                download_url=url,
                signature=attrs.get(f"{s}edSignature"),
            )
        )
    return records


# -----------------------------------------------------------------------------
# Unsigned form (latest-release descriptor)
# -----------------------------------------------------------------------------


def render_descriptor(record: ReleaseRecord) -> str:
    data = {
        "version": str(record.version),
        "build": record.build,
        "url": record.download_url,
        "length": record.artifact_byte_length,
        "releaseNotesURL": record.release_notes_url,
        "minimumSystemVersion": record.minimum_system_version,
        "pubDate": format_datetime(record.publication_timestamp),
    }
    return json.dumps(data, indent=2) + "\n"


def read_descriptor(document: str) -> ReleaseRecord | None:
    data = as_str_dict(json.loads(document))
    if data is None:
        return None
    version = parse_version(get_str(data, "version") or "")
    if isinstance(version, Err):
        return None
    url = get_str(data, "url") or ""
    return ReleaseRecord(
        version=version.value,
        build=get_int(data, "build") or 0,
        artifact_file_name=url.rsplit("/", 1)[-1],
        artifact_byte_length=get_int(data, "length") or 0,
        publication_timestamp=_pub_date(get_str(data, "pubDate")),
        release_notes_url=get_str(data, "releaseNotesURL") or "",
        minimum_system_version=get_str(data, "minimumSystemVersion") or "",
        download_url=url,
    )


def parse_sign_output(output: str) -> FeedSignature | None:
    """Read ``sparkle:edSignature="..." length="..."`` from sign_update."""
    sig = _SIGNATURE_RE.search(output)
    if sig is None or not sig.group(1):
        return None
    length = _LENGTH_RE.search(output)
    return FeedSignature(
        signature=sig.group(1),
        length=int(length.group(1)) if length else None,
    )


# -----------------------------------------------------------------------------
# Publisher stage
# -----------------------------------------------------------------------------


class FeedPublisher(BaseStage):
    @property
    def variant(self) -> FeedVariant:
        return self._config.feed.variant

    def sign_tool_dirs(self) -> list[Path]:
        """Directories searched for Sparkle's ``sign_update``, in order."""
        dirs: list[Path] = []
        if self._config.signing.sparkle_bin is not None:
            dirs.append(self._config.signing.sparkle_bin)
        home = Path.home()
        dirs += [
            home / "Sparkle" / "bin",
            Path("/usr/local/opt/sparkle/bin"),
            self._config.app.project_dir / ".build" / "artifacts" / "sparkle" / "Sparkle" / "bin",
        ]
        derived = home / "Library" / "Developer" / "Xcode" / "DerivedData"
        pattern = f"{self._config.app.name}-*/SourcePackages/artifacts/sparkle/Sparkle/bin"
        if derived.is_dir():
            dirs += sorted(derived.glob(pattern))
        return dirs

    def find_sign_tool(self) -> Path | None:
        for directory in self.sign_tool_dirs():
            tool = directory / "sign_update"
            if tool.is_file() and os.access(tool, os.X_OK):
                return tool
        on_path = self._which("sign_update")
        return Path(on_path) if on_path else None

    def sign_image(
        self, image: InstallerImage, *, dry_run: bool = False
    ) -> FeedSignature | None:
        """EdDSA-sign the image for the signed feed.

        A missing tool, key or unparsable output is a warning: the record is
        published without a signature and must be completed by hand.
        """
        tool = self.find_sign_tool()
        if tool is None:
            self._warn(
                "sign_update not found (set SPARKLE_BIN); "
                "feed entry will lack an EdDSA signature and must be completed by hand"
            )
            return None

        cmd = [str(tool), str(image.path)]
        key_path = self._config.signing.sparkle_key_path
        if key_path is not None:
            cmd += ["-f", str(key_path)]

        if dry_run:
            self._would(f"run: {' '.join(cmd)}")
            return None

        self._echo(cmd)
        result = self._run(cmd, cwd=self._config.root)
        output = result.value if isinstance(result, Ok) else result.error.tail(10)
        signature = parse_sign_output(output)
        if signature is None:
            self._warn(
                "could not obtain an EdDSA signature from sign_update; "
                "feed entry must be completed by hand"
            )
            return None

        if signature.length is not None and signature.length != image.byte_length:
            self._warn(
                f"sign_update reported length {signature.length}, "
                f"image is {image.byte_length} bytes; using the file size"
            )
        self._console.success(f"EdDSA signature: {signature.signature[:40]}...")
        return signature

    def make_record(
        self,
        *,
        version: ReleaseVersion,
        build: BuildNumber,
        image: InstallerImage,
        signature: FeedSignature | None,
    ) -> ReleaseRecord:
        feed = self._config.feed
        filename = image.path.name
        return ReleaseRecord(
            version=version,
            build=build,
            artifact_file_name=filename,
            artifact_byte_length=image.byte_length,
            publication_timestamp=self._clock(),
            release_notes_url=_join_url(feed.notes_url, f"{version.tag}.html"),
            minimum_system_version=feed.minimum_system_version,
            download_url=_join_url(feed.download_url, filename),
            signature=signature.signature if signature else None,
        )

    def publish(
        self,
        record: ReleaseRecord,
        variant: FeedVariant | None = None,
        *,
        dry_run: bool = False,
    ) -> Result[None, FeedUpdateFailed]:
        variant = variant or self.variant
        path = self._config.paths.feed

        if dry_run:
            self._would(
                f"write v{record.version} (build {record.build}, "
                f"{record.artifact_byte_length} bytes) to {path.name} [{variant}]"
            )
            self._console.print(f"  download: {record.download_url}")
            self._console.print(f"  notes:    {record.release_notes_url}")
            return Ok(None)

        if variant == "unsigned":
            return self._write_descriptor(path, record)
        return self._insert_into_feed(path, record)

    def _write_descriptor(self, path: Path, record: ReleaseRecord) -> Result[None, FeedUpdateFailed]:
        try:
            atomic_write_text(path, render_descriptor(record))
        except OSError as e:
            return Err(FeedUpdateFailed(path=path, reason=str(e)))
        self._console.success(f"{path.name} now describes v{record.version}")
        return Ok(None)

    def _insert_into_feed(self, path: Path, record: ReleaseRecord) -> Result[None, FeedUpdateFailed]:
        if not path.exists():
            self._console.print(f"  {path.name} does not exist; creating it", Style.DIM)
            try:
                atomic_write_text(path, feed_skeleton(self._config.feed.title))
            except OSError as e:
                return Err(FeedUpdateFailed(path=path, reason=str(e)))

        try:
            current = path.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return Err(FeedUpdateFailed(path=path, reason=f"cannot read feed: {e}"))

        if FEED_ANCHOR not in current:
            return Err(FeedUpdateFailed(path=path, reason=f"no {FEED_ANCHOR} anchor in feed"))

        try:
            listed = {r.version for r in read_entries(current)}
        except ET.ParseError as e:
            return Err(FeedUpdateFailed(path=path, reason=f"feed is not well-formed XML: {e}"))
        if record.version in listed:
            self._warn(f"{path.name} already lists v{record.version}; adding another entry")

        if record.signature is None:
            self._warn(
                f"v{record.version} published without sparkle:edSignature; "
                "add it by hand before deploying"
            )

        def transform(original: bytes) -> bytes:
            updated = insert_entry(original.decode("utf-8"), record)
            try:
                entries = read_entries(updated)
            except ET.ParseError as e:
                raise ValueError(f"updated feed is not well-formed XML: {e}") from e
            if not entries or entries[0].version != record.version:
                raise ValueError(f"v{record.version} is not the first item of the updated feed")
            return updated.encode("utf-8")

        try:
            rewrite_with_backup(path, transform)
        except (OSError, ValueError) as e:
            return Err(FeedUpdateFailed(path=path, reason=str(e)))

        self._console.success(f"{path.name} updated with v{record.version}")
        return Ok(None)

    def stage_asset(self, image: InstallerImage, *, dry_run: bool = False) -> Result[Path, FeedUpdateFailed]:
        """Copy the image into the published releases directory."""
        target = self._config.paths.releases_dir / image.path.name
        if dry_run:
            self._would(f"copy {image.path.name} to {target.parent}")
            return Ok(target)

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(image.path, target)
        except OSError as e:
            return Err(FeedUpdateFailed(path=target, reason=f"cannot copy image: {e}"))

        self._console.success(f"image copied to {target}")
        return Ok(target)


def _join_url(base: str, name: str) -> str:
    return f"{base}/{name}" if base else name
