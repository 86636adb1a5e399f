"""
Local filesystem report store.

Each report is a JSON file below ``base_path`` with a ``.meta.json`` sidecar
holding its metadata (model type, size, hash, time stored).
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TypeVar

import aiofiles
import aiofiles.os
from pydantic import BaseModel

from ..core.logging import get_logger
from .interface import REPORT_SUFFIX, ReportStore

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)

METADATA_SUFFIX = ".meta.json"


class LocalReportStore(ReportStore):
    """Report store backed by a local directory."""

    def __init__(self, base_path: Path) -> None:
        self.base_path = Path(base_path).resolve()

    def _get_full_path(self, key: str) -> Path:
        """Map a key to a path that is guaranteed to stay inside ``base_path``."""
        clean_key = key.lstrip("/\\").replace("..", "").replace(":", "")
        full_path = (self.base_path / clean_key).resolve()
        try:
            full_path.relative_to(self.base_path)
        except ValueError:
            full_path = self.base_path / clean_key.replace("/", "_").replace("\\", "_")
        return full_path

    def _get_metadata_path(self, key: str) -> Path:
        return self._get_full_path(key + METADATA_SUFFIX)

    async def _write_text(self, path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(content)

    async def store_report(self, key: str, report: BaseModel, metadata: dict[str, Any] | None = None) -> str:
        content = report.model_dump_json(indent=2)
        await self._write_text(self._get_full_path(key), content)

        meta = dict(metadata or {})
        meta["model_type"] = type(report).__name__
        meta["size_chars"] = len(content)
        meta["hash"] = self.compute_hash(content.encode("utf-8"))
        meta["_stored_at"] = datetime.now(timezone.utc).isoformat()
        meta["_key"] = key
        await self._write_text(self._get_metadata_path(key), json.dumps(meta, indent=2, default=str))

        logger.info("Stored report", key=key, model_type=meta["model_type"], size_chars=len(content))
        return key

    async def load_report(self, key: str, model_type: type[T]) -> T:
        full_path = self._get_full_path(key)
        if not full_path.exists():
            raise FileNotFoundError(f"Report not found: {key}")
        async with aiofiles.open(full_path, "r", encoding="utf-8") as f:
            return model_type.model_validate_json(await f.read())

    async def exists(self, key: str) -> bool:
        return self._get_full_path(key).exists()

    async def delete(self, key: str) -> bool:
        full_path = self._get_full_path(key)
        meta_path = self._get_metadata_path(key)

        deleted = False
        if full_path.exists():
            await aiofiles.os.remove(full_path)
            deleted = True
        if meta_path.exists():
            await aiofiles.os.remove(meta_path)
        return deleted

    async def list_reports(self, prefix: str = "") -> list[str]:
        search_path = self._get_full_path(prefix) if prefix else self.base_path
        if not search_path.exists():
            return []

        keys = []
        for path in search_path.rglob(f"*{REPORT_SUFFIX}"):
            if path.is_file() and not path.name.endswith(METADATA_SUFFIX):
                keys.append(path.relative_to(self.base_path).as_posix())
        return sorted(keys)

    async def get_metadata(self, key: str) -> dict[str, Any]:
        meta_path = self._get_metadata_path(key)
        if not meta_path.exists():
            return {}
        async with aiofiles.open(meta_path, "r", encoding="utf-8") as f:
            return json.loads(await f.read())

    def get_local_path(self, key: str) -> Path | None:
        full_path = self._get_full_path(key)
        return full_path if full_path.exists() else None
