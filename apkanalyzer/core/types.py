"""
Core type definitions for apkanalyzer.

Provides type aliases and the result wrapper returned by the analysis facade.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Generic, TypeVar

# Type aliases
ApkPath = Path
EntryName = str  # path of an entry inside the APK archive

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """Result wrapper for facade operations.

    Provides a consistent return type that includes success/failure status,
    the result data, and any errors or warnings.
    """

    success: bool
    data: T | None = None
    error: str | None = None
    warnings: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    duration_ms: float = 0.0

    @classmethod
    def ok(cls, data: T, **metadata: Any) -> ServiceResult[T]:
        """Create a successful result."""
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def fail(cls, error: str, **metadata: Any) -> ServiceResult[T]:
        """Create a failed result."""
        return cls(success=False, error=error, metadata=metadata)

    @classmethod
    def with_warnings(cls, data: T, warnings: list[str], **metadata: Any) -> ServiceResult[T]:
        """Create a successful result with warnings."""
        return cls(success=True, data=data, warnings=warnings, metadata=metadata)
