"""
Archive Service.

Opens the APK (a ZIP archive), lists its entries with their sizes and yields
the bytes of individual entries to the decoders. Also estimates the download
size of the whole package with gzip.
"""

from __future__ import annotations

import re
import zipfile
import zlib
from pathlib import Path
from types import TracebackType

from ...core.exceptions import ValidationError
from ...core.logging import get_logger
from ...models.apk import ArchiveEntry

logger = get_logger(__name__)

ANDROID_MANIFEST_XML = "AndroidManifest.xml"
RESOURCES_ARSC = "resources.arsc"

_PRIMARY_DEX = re.compile(r"^classes(\d*)\.dex$")
_READ_CHUNK = 64 * 1024


def _dex_order(name: str) -> tuple[int, int, str]:
    match = _PRIMARY_DEX.match(name)
    if match:
        return 0, int(match.group(1) or 1), name
    return 1, 0, name


class ArchiveReader:
    """Read-only access to the entries of an APK."""

    def __init__(self, apk_path: Path) -> None:
        self.apk_path = Path(apk_path)
        self._validate()
        self._zip = zipfile.ZipFile(self.apk_path, "r")

    def _validate(self) -> None:
        """Validate that the file exists and is a ZIP archive.

        Raises:
            ValidationError: If the APK is missing or is not a ZIP archive.
        """
        if not self.apk_path.exists():
            raise ValidationError(
                message=f"APK file not found: {self.apk_path}",
                field_name="apk_path",
                actual_value=str(self.apk_path),
            )
        if not zipfile.is_zipfile(self.apk_path):
            raise ValidationError(
                message="Invalid APK: not a valid ZIP archive",
                field_name="apk_path",
                actual_value=str(self.apk_path),
            )

    def __enter__(self) -> ArchiveReader:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        self._zip.close()

    def names(self) -> list[str]:
        return self._zip.namelist()

    def entries(self) -> list[ArchiveEntry]:
        """All entries in archive order."""
        return [
            ArchiveEntry(
                path=info.filename,
                raw_size=info.file_size,
                download_size=info.compress_size,
                is_directory=info.is_dir(),
            )
            for info in self._zip.infolist()
        ]

    def dex_names(self) -> list[str]:
        """DEX entries with classes.dex, classes2.dex, ... first, in load order."""
        return sorted((n for n in self.names() if n.endswith(".dex")), key=_dex_order)

    def has(self, name: str) -> bool:
        try:
            self._zip.getinfo(name)
        except KeyError:
            return False
        return True

    def read(self, name: str) -> bytes:
        """Bytes of one entry.

        Raises:
            ValidationError: If the entry does not exist.
        """
        if not self.has(name):
            raise ValidationError(
                message=f"Entry not found in APK: {name}",
                field_name="entry",
                actual_value=name,
            )
        data = self._zip.read(name)
        logger.debug("Read archive entry", entry=name, size=len(data))
        return data


def file_size(apk_path: Path) -> int:
    """Raw size of the package on disk."""
    path = Path(apk_path)
    if not path.exists():
        raise ValidationError(message=f"APK file not found: {path}", field_name="apk_path")
    return path.stat().st_size


def download_size(apk_path: Path, level: int = 9) -> int:
    """Estimated download size: the package gzip-compressed at ``level``."""
    path = Path(apk_path)
    if not path.exists():
        raise ValidationError(message=f"APK file not found: {path}", field_name="apk_path")

    # wbits 31 selects the gzip container
    compressor = zlib.compressobj(level, zlib.DEFLATED, 31)
    total = 0
    with open(path, "rb") as f:
        while chunk := f.read(_READ_CHUNK):
            total += len(compressor.compress(chunk))
    total += len(compressor.flush())
    return total
