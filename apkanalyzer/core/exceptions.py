"""
Custom exception hierarchy for apkanalyzer.

All exceptions inherit from APKAnalyzerError so callers can catch every failure
raised by the decoders, the mapping loader and the tree builder in one place.
Each exception carries enough context (offsets, line numbers, class names) to
locate the offending input.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class APKAnalyzerError(Exception):
    """Base exception for all apkanalyzer errors."""

    message: str
    context: dict[str, Any] = field(default_factory=dict)
    cause: Exception | None = None

    def __str__(self) -> str:
        ctx = f" | context: {self.context}" if self.context else ""
        cause = f" | caused by: {self.cause}" if self.cause else ""
        return f"{self.message}{ctx}{cause}"


@dataclass
class ValidationError(APKAnalyzerError):
    """Raised when an input (APK path, archive entry) is unusable."""

    field_name: str | None = None
    actual_value: Any = None

    def __str__(self) -> str:
        base = super().__str__()
        if self.field_name:
            return f"Validation failed for '{self.field_name}': {base}"
        return f"Validation failed: {base}"


@dataclass
class ServiceError(APKAnalyzerError):
    """Raised when a facade operation fails."""

    service_name: str = ""
    operation: str = ""

    def __str__(self) -> str:
        base = super().__str__()
        return f"[{self.service_name}.{self.operation}]: {base}"


@dataclass
class DecodeError(APKAnalyzerError):
    """Base for binary decoding failures. Always carries the offending offset."""

    offset: int = 0

    def __str__(self) -> str:
        return f"{super().__str__()} (at offset {self.offset})"


@dataclass
class MalformedHeaderError(DecodeError):
    """Chunk header fields are inconsistent with declared sizes or buffer bounds."""


@dataclass
class OutOfBoundsReadError(DecodeError):
    """A payload-relative position falls beyond the end of its chunk."""

    limit: int = 0

    def __str__(self) -> str:
        return f"{super().__str__()} [chunk end: {self.limit}]"


@dataclass
class InvalidMappingFormatError(APKAnalyzerError):
    """The ProGuard/R8 mapping source could not be parsed."""

    line_number: int = 0
    source: str = ""

    def __str__(self) -> str:
        where = f"{self.source}:{self.line_number}" if self.source else f"line {self.line_number}"
        return f"Invalid mapping format at {where}: {super().__str__()}"


@dataclass
class InvalidClassNameError(APKAnalyzerError):
    """A class name cannot be split into package path segments."""

    class_name: str = ""
    file_name: str = ""


@dataclass
class DuplicateClassError(APKAnalyzerError):
    """A class was declared twice while the builder runs with the ERROR policy."""

    class_name: str = ""
    file_name: str = ""
