"""Process exit codes for the shipyard CLI.

The numeric values are part of the command-line contract and must stay
stable: release automation branches on them.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    - 0: Success (including a completed dry run)
    - 1: User error (bad version string, bad arguments)
    - 2: Environment error (missing config, no signing identity)
    - 3: Build error (compiler, missing artifact, image creation)
    - 4: Signing error (code signing, notarization, stapling)
    - 5: Publish error (update feed could not be rewritten)
    - 6: I/O error (manifest could not be written)
    """

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    SIGN_ERROR = 4
    PUBLISH_ERROR = 5
    IO_ERROR = 6

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK

    @property
    def is_error(self) -> bool:
        return self != ErrorCode.OK
