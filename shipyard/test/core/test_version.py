from __future__ import annotations

import pytest

from shipyard.core.result import Err, Ok
from shipyard.core.version import InvalidVersionFormat, ReleaseVersion, parse_version


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("1.0.1", ReleaseVersion(1, 0, 1)),
        ("0.0.0", ReleaseVersion(0, 0, 0)),
        ("10.20.300", ReleaseVersion(10, 20, 300)),
        ("01.2.3", ReleaseVersion(1, 2, 3)),
    ],
)
def test_parse_version_accepts_three_numeric_components(text: str, expected: ReleaseVersion) -> None:
    assert parse_version(text) == Ok(expected)


@pytest.mark.parametrize(
    "text",
    ["1.2", "1.2.x", "v1.2.3", "1.2.3-beta", "1.2.3.4", "", " 1.2.3", "1..3", "١.٢.٣"],
)
def test_parse_version_rejects_malformed(text: str) -> None:
    result = parse_version(text)
    assert isinstance(result, Err)
    assert result.error == InvalidVersionFormat(value=text)


def test_versions_order_numerically() -> None:
    assert ReleaseVersion(1, 10, 0) > ReleaseVersion(1, 9, 0)
    assert ReleaseVersion(2, 0, 0) > ReleaseVersion(1, 99, 99)
    assert sorted([ReleaseVersion(1, 0, 10), ReleaseVersion(1, 0, 2)])[0] == ReleaseVersion(1, 0, 2)


def test_version_text_and_tag() -> None:
    version = ReleaseVersion(1, 0, 1)
    assert str(version) == "1.0.1"
    assert version.tag == "v1.0.1"
