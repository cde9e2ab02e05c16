from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

from shipyard.core.config import ReleaseConfig
from shipyard.output.console import ConsoleProtocol, Style
from shipyard.platform.process import CommandRunner, ToolLookup, run, which

DRY_RUN_PREFIX = "[dry-run] would"

type Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


class BaseStage:
    """Shared wiring for pipeline stages.

    Stages receive the release configuration, a console, and the process
    runner / tool lookup they use to reach external tools. Warnings are
    printed and also collected so the orchestrator can echo them in the
    final report.
    """

    def __init__(
        self,
        *,
        config: ReleaseConfig,
        console: ConsoleProtocol,
        runner: CommandRunner = run,
        which: ToolLookup = which,
        clock: Clock = utcnow,
    ) -> None:
        self._config = config
        self._console = console
        self._run = runner
        self._which = which
        self._clock = clock
        self.warnings: list[str] = []

    def _warn(self, message: str) -> None:
        self.warnings.append(message)
        self._console.warning(message)

    def _echo(self, cmd: list[str]) -> None:
        self._console.print(" ".join(cmd), Style.DIM)

    def _would(self, action: str) -> None:
        self._console.info(f"{DRY_RUN_PREFIX} {action}")
