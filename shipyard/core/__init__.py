"""Core domain types: results, exit codes, versions and configuration."""

from .config import (
    ConfigError,
    NotaryCredentials,
    ReleaseConfig,
    find_config,
    load_config,
)
from .errors import ErrorCode
from .result import Err, Ok, Result, is_err, is_ok
from .version import BuildNumber, InvalidVersionFormat, ReleaseVersion, parse_version

__all__ = [
    # config
    "ConfigError",
    "NotaryCredentials",
    "ReleaseConfig",
    "find_config",
    "load_config",
    # errors
    "ErrorCode",
    # result
    "Err",
    "Ok",
    "Result",
    "is_err",
    "is_ok",
    # version
    "BuildNumber",
    "InvalidVersionFormat",
    "ReleaseVersion",
    "parse_version",
]
