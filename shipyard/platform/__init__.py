"""Platform abstraction layer: processes, tool lookup and files."""

from .files import atomic_write_bytes, atomic_write_text, rewrite_with_backup
from .process import CommandRunner, ProcessError, ToolLookup, run, which

__all__ = [
    # files
    "atomic_write_bytes",
    "atomic_write_text",
    "rewrite_with_backup",
    # process
    "CommandRunner",
    "ProcessError",
    "ToolLookup",
    "run",
    "which",
]
