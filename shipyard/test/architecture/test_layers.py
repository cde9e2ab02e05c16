"""Layering rules: core <- platform <- output <- pipeline <- cli."""

from __future__ import annotations

import ast
from dataclasses import dataclass
from pathlib import Path

import pytest


@dataclass(frozen=True, slots=True)
class ImportRef:
    module: str
    line: int


def package_root() -> Path:
    return Path(__file__).resolve().parents[2]


def iter_source_files() -> list[Path]:
    """Non-test modules of the package."""
    root = package_root()
    files: list[Path] = []
    for path in sorted(root.rglob("*.py")):
        rel = path.relative_to(root)
        if rel.parts[0] == "test" or "__pycache__" in rel.parts:
            continue
        files.append(path)
    return files


def read_tree(path: Path) -> ast.AST:
    return ast.parse(path.read_text(encoding="utf-8"), filename=str(path))


def parse_imports(path: Path) -> list[ImportRef]:
    imports: list[ImportRef] = []
    for node in ast.walk(read_tree(path)):
        if isinstance(node, ast.Import):
            imports += [ImportRef(module=alias.name, line=node.lineno) for alias in node.names]
        elif isinstance(node, ast.ImportFrom) and not node.level and node.module is not None:
            imports.append(ImportRef(module=node.module, line=node.lineno))
    return imports


def matches_prefix(module: str, prefix: str) -> bool:
    return module == prefix or module.startswith(prefix + ".")


FORBIDDEN = {
    "core": ("shipyard.platform", "shipyard.output", "shipyard.pipeline", "shipyard.cli"),
    "platform": ("shipyard.output", "shipyard.pipeline", "shipyard.cli"),
    "pipeline": ("shipyard.cli",),
    "output": ("shipyard.cli",),
}


@pytest.mark.parametrize("layer", sorted(FORBIDDEN))
def test_layer_does_not_import_upward(layer: str) -> None:
    root = package_root()
    offenders: list[str] = []
    for path in iter_source_files():
        rel = path.relative_to(root)
        if rel.parts[0] != layer:
            continue
        for item in parse_imports(path):
            if any(matches_prefix(item.module, p) for p in FORBIDDEN[layer]):
                offenders.append(f"{rel}:{item.line}: forbidden import '{item.module}'")

    assert not offenders, f"{layer} layering violations:\n" + "\n".join(offenders)


def test_rich_is_only_imported_by_the_console() -> None:
    root = package_root()
    offenders = [
        f"{path.relative_to(root)}:{item.line}"
        for path in iter_source_files()
        for item in parse_imports(path)
        if matches_prefix(item.module, "rich") and str(path.relative_to(root)) != "output/console.py"
    ]
    assert not offenders, "direct rich imports:\n" + "\n".join(offenders)


def test_subprocess_is_only_used_by_the_process_module() -> None:
    root = package_root()
    offenders = [
        f"{path.relative_to(root)}:{item.line}"
        for path in iter_source_files()
        for item in parse_imports(path)
        if item.module == "subprocess" and str(path.relative_to(root)) != "platform/process.py"
    ]
    assert not offenders, "direct subprocess imports:\n" + "\n".join(offenders)
