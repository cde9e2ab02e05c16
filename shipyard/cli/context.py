from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import typer

from shipyard.core.config import ReleaseConfig, find_config, load_config
from shipyard.core.errors import ErrorCode
from shipyard.core.result import Err
from shipyard.output.console import ConsoleProtocol, RichConsole
from shipyard.output.errors import print_config_error


@dataclass(frozen=True, slots=True)
class CLIContext:
    config: ReleaseConfig
    config_path: Path
    console: ConsoleProtocol


def build_context(config_path: Path | None = None) -> CLIContext:
    """Locate and load ``shipyard.toml`` or exit with ENV_ERROR."""
    console = RichConsole()

    found = find_config(Path.cwd(), explicit=config_path)
    if isinstance(found, Err):
        print_config_error(found.error, console)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    loaded = load_config(found.value)
    if isinstance(loaded, Err):
        print_config_error(loaded.error, console)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    return CLIContext(config=loaded.value, config_path=found.value, console=console)
