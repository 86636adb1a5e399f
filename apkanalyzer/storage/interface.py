"""
Report store interface.

Analysis reports are pydantic models persisted as JSON under a string key.
Keys are derived from the analysed APK so that re-running an analysis on the
same file overwrites the previous report instead of adding a new one.
"""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel

T = TypeVar("T", bound=BaseModel)

REPORT_SUFFIX = ".json"
_HASH_CHUNK = 64 * 1024


class ReportStore(ABC):
    """Abstract store for analysis reports."""

    @abstractmethod
    async def store_report(self, key: str, report: BaseModel, metadata: dict[str, Any] | None = None) -> str:
        """Store a report as JSON.

        Args:
            key: Report key (see :meth:`report_key`)
            report: Pydantic model to serialize
            metadata: Optional metadata kept next to the report

        Returns:
            The final storage key
        """
        ...

    @abstractmethod
    async def load_report(self, key: str, model_type: type[T]) -> T:
        """Load a report back into ``model_type``.

        Raises:
            FileNotFoundError: If no report is stored under ``key``.
        """
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool: ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a report and its metadata. Returns False if nothing was stored."""
        ...

    @abstractmethod
    async def list_reports(self, prefix: str = "") -> list[str]:
        """Sorted keys of all stored reports under ``prefix``."""
        ...

    @abstractmethod
    async def get_metadata(self, key: str) -> dict[str, Any]: ...

    @abstractmethod
    def get_local_path(self, key: str) -> Path | None:
        """Filesystem path of a stored report, for backends that have one."""
        ...

    @staticmethod
    def compute_hash(data: bytes) -> str:
        """SHA-256 hex digest of ``data``."""
        return hashlib.sha256(data).hexdigest()

    @staticmethod
    def report_key(apk_path: Path) -> str:
        """Key of the report for ``apk_path``: ``<apk stem>/<content digest>.json``."""
        apk_path = Path(apk_path)
        digest = hashlib.sha256()
        with open(apk_path, "rb") as f:
            while chunk := f.read(_HASH_CHUNK):
                digest.update(chunk)
        return f"{apk_path.stem}/{digest.hexdigest()[:16]}{REPORT_SUFFIX}"
