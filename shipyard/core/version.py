"""Release version parsing.

A release version is exactly three dot-separated runs of ASCII digits.
Anything else (``1.2``, ``1.2.x``, ``v1.2.3``, ``1.2.3-beta``) is rejected
before any stage runs, because every artifact name and feed record is
derived from it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .result import Err, Ok, Result

__all__ = ["ReleaseVersion", "BuildNumber", "InvalidVersionFormat", "parse_version"]

_VERSION_RE = re.compile(r"([0-9]+)\.([0-9]+)\.([0-9]+)")

BuildNumber = int


@dataclass(frozen=True, slots=True, order=True)
class ReleaseVersion:
    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    @property
    def tag(self) -> str:
        return f"v{self}"


@dataclass(frozen=True, slots=True)
class InvalidVersionFormat:
    value: str


def parse_version(text: str) -> Result[ReleaseVersion, InvalidVersionFormat]:
    m = _VERSION_RE.fullmatch(text)
    if m is None:
        return Err(InvalidVersionFormat(value=text))
    return Ok(ReleaseVersion(int(m.group(1)), int(m.group(2)), int(m.group(3))))
