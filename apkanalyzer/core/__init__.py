"""Core infrastructure components for apkanalyzer."""

from .config import Config, get_config
from .exceptions import (
    APKAnalyzerError,
    DecodeError,
    DuplicateClassError,
    InvalidClassNameError,
    InvalidMappingFormatError,
    MalformedHeaderError,
    OutOfBoundsReadError,
    ServiceError,
    ValidationError,
)
from .logging import bind_context, clear_context, get_logger, log_context, setup_logging
from .types import ApkPath, EntryName, ServiceResult

__all__ = [
    "Config",
    "get_config",
    "APKAnalyzerError",
    "DecodeError",
    "DuplicateClassError",
    "InvalidClassNameError",
    "InvalidMappingFormatError",
    "MalformedHeaderError",
    "OutOfBoundsReadError",
    "ServiceError",
    "ValidationError",
    "bind_context",
    "clear_context",
    "get_logger",
    "log_context",
    "setup_logging",
    "ApkPath",
    "EntryName",
    "ServiceResult",
]
