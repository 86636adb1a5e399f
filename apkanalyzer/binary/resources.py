"""
Shallow, chunk-level walk of the compiled resource table (``resources.arsc``).

Only the structure needed for size auditing is decoded: the global string
pool, package names and a count of every chunk type encountered. Entry values
are not interpreted.
"""

from __future__ import annotations

from collections import Counter

from pydantic import BaseModel, Field

from ..core.exceptions import MalformedHeaderError
from ..core.logging import get_logger
from .chunk import ChunkCursor, ChunkHeader
from .constants import (
    CHUNK_TYPE_NAMES,
    RES_STRING_POOL_TYPE,
    RES_TABLE_PACKAGE_TYPE,
    RES_TABLE_TYPE,
    RES_TABLE_TYPE_SPEC_TYPE,
    RES_TABLE_TYPE_TYPE,
)
from .string_pool import StringPool

logger = get_logger(__name__)

# ResTable_package: header, uint32 id, char16 name[128], then pool offsets
PACKAGE_NAME_OFFSET = 12
PACKAGE_NAME_BYTES = 256


class ResourcePackage(BaseModel):
    """One package chunk of the resource table."""

    package_id: int
    name: str
    type_spec_count: int = 0
    type_count: int = 0
    size_bytes: int = 0


class ResourceTableSummary(BaseModel):
    """Chunk-level summary of a resource table."""

    declared_package_count: int = 0
    string_count: int = 0
    packages: list[ResourcePackage] = Field(default_factory=list)
    chunk_counts: dict[str, int] = Field(default_factory=dict)

    @property
    def package_names(self) -> list[str]:
        return [package.name for package in self.packages]

    @property
    def type_spec_count(self) -> int:
        return sum(package.type_spec_count for package in self.packages)


class ResourceTableReader:
    """Walk the chunks of a resource table."""

    def __init__(self, data: bytes) -> None:
        self.cursor = ChunkCursor(data)
        self._counts: Counter[str] = Counter()

    def read(self) -> ResourceTableSummary:
        table = self.cursor.read_header(0)
        if table.chunk_type != RES_TABLE_TYPE:
            raise MalformedHeaderError(
                message=f"Not a resource table (token {table.chunk_type:#06x})",
                offset=0,
            )
        self._count(table)

        summary = ResourceTableSummary(declared_package_count=self.cursor.read_u32(table, 8))
        for header in self.cursor.iter_chunks(table.data_offset, table.chunk_end):
            self._count(header)
            if header.chunk_type == RES_STRING_POOL_TYPE:
                summary.string_count = len(StringPool.parse(self.cursor, header))
            elif header.chunk_type == RES_TABLE_PACKAGE_TYPE:
                summary.packages.append(self._read_package(header))

        summary.chunk_counts = dict(self._counts)
        logger.debug(
            "Read resource table",
            packages=len(summary.packages),
            strings=summary.string_count,
        )
        return summary

    def _read_package(self, header: ChunkHeader) -> ResourcePackage:
        package_id = self.cursor.read_u32(header, 8)
        raw_name = self.cursor.read_bytes(header, PACKAGE_NAME_OFFSET, PACKAGE_NAME_BYTES)
        name = raw_name.decode("utf-16-le", errors="replace").split("\x00", 1)[0]

        package = ResourcePackage(package_id=package_id, name=name, size_bytes=header.chunk_size)
        for child in self.cursor.iter_chunks(header.data_offset, header.chunk_end):
            self._count(child)
            if child.chunk_type == RES_TABLE_TYPE_SPEC_TYPE:
                package.type_spec_count += 1
            elif child.chunk_type == RES_TABLE_TYPE_TYPE:
                package.type_count += 1
        logger.debug(
            "Read resource package",
            package=name,
            package_id=f"{package_id:#04x}",
            offset=header.offset,
            types=package.type_count,
        )
        return package

    def _count(self, header: ChunkHeader) -> None:
        self._counts[CHUNK_TYPE_NAMES.get(header.chunk_type, f"{header.chunk_type:#06x}")] += 1


def read_resource_table(data: bytes) -> ResourceTableSummary:
    """Summarize the chunks of a compiled resource table."""
    return ResourceTableReader(data).read()
